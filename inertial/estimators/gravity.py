"""
Gravity and gravity-norm estimators.

GravityEstimator publishes the gravity vector either straight from a
gravity sensor or by averaging accelerometer samples. GravityNormEstimator
accumulates the norm of gravity sensor samples over a bounded window and,
once the configured stop condition is met, freezes:

    - average norm, variance and standard deviation
    - gravity noise PSD and root PSD (variance times average interval)
    - average sampling interval, its variance and standard deviation
    - elapsed time

Both are driven by SensorSource callbacks on a single thread.
"""

import logging
from enum import Enum
from typing import Callable, Optional

import numpy as np

from inertial.errors import EstimatorStateError
from inertial.estimators.filters import AveragingFilter, LowPassAveragingFilter
from inertial.estimators.statistics import RunningStatistics, TimeIntervalEstimator
from inertial.sensors.types import SensorAccuracy, SensorMeasurement, SensorSource

logger = logging.getLogger(__name__)

NANOS_PER_MILLI = 1_000_000
NANOS_PER_SECOND = 1e9

DEFAULT_MAX_SAMPLES = 1000
DEFAULT_MAX_DURATION_MILLIS = 20000


class GravityEstimator:
    """
    Gravity vector from a gravity sensor or from filtered accelerometer samples.

    The listener receives ``(estimator, gx, gy, gz, timestamp)`` where the
    vector is the negated sensor reading, i.e. the specific force that a
    device at rest senses because of gravity.

    Args:
        gravity_source: Gravity sensor source (required unless
            use_accelerometer is True).
        accelerometer_source: Accelerometer source (required when
            use_accelerometer is True).
        use_accelerometer: Derive gravity from the accelerometer.
        averaging_filter: Filter applied to accelerometer samples. A
            LowPassAveragingFilter is used when omitted.
        listener: Gravity estimation callback.
        delay: Sampling period hint forwarded to the sources.
        accelerometer_measurement_listener: Receives every raw accelerometer
            SensorMeasurement before it is filtered.
    """

    def __init__(
        self,
        gravity_source: Optional[SensorSource] = None,
        accelerometer_source: Optional[SensorSource] = None,
        use_accelerometer: bool = False,
        averaging_filter: Optional[AveragingFilter] = None,
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        accelerometer_measurement_listener: Optional[Callable] = None,
    ):
        if use_accelerometer and accelerometer_source is None:
            raise ValueError("accelerometer_source is required when use_accelerometer is True")
        if not use_accelerometer and gravity_source is None:
            raise ValueError("gravity_source is required when use_accelerometer is False")

        self.gravity_source = gravity_source
        self.accelerometer_source = accelerometer_source
        self.use_accelerometer = use_accelerometer
        self.averaging_filter = averaging_filter or LowPassAveragingFilter()
        self.listener = listener
        self.delay = delay
        self.accelerometer_measurement_listener = accelerometer_measurement_listener
        self.running = False

        if gravity_source is not None:
            gravity_source.measurement_listener = self._on_gravity_measurement
        if accelerometer_source is not None:
            accelerometer_source.measurement_listener = self._on_accelerometer_measurement

    def start(self) -> bool:
        """
        Start the selected source.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("gravity estimator is already running")

        self.averaging_filter.reset()
        source = self.accelerometer_source if self.use_accelerometer else self.gravity_source
        self.running = source.start(self.delay)
        if not self.running:
            logger.warning("Gravity estimator source could not be started")
        return self.running

    def stop(self) -> None:
        if self.gravity_source is not None:
            self.gravity_source.stop()
        if self.accelerometer_source is not None:
            self.accelerometer_source.stop()
        self.running = False

    def _on_gravity_measurement(self, measurement: SensorMeasurement) -> None:
        if self.use_accelerometer:
            return
        self._notify(measurement.values, measurement.timestamp)

    def _on_accelerometer_measurement(self, measurement: SensorMeasurement) -> None:
        if self.accelerometer_measurement_listener is not None:
            self.accelerometer_measurement_listener(measurement)
        if not self.use_accelerometer:
            return
        accepted, output = self.averaging_filter.filter(
            measurement.corrected(), measurement.timestamp
        )
        if accepted:
            self._notify(output, measurement.timestamp)

    def _notify(self, values: np.ndarray, timestamp: int) -> None:
        if self.listener is not None:
            self.listener(self, -values[0], -values[1], -values[2], timestamp)


class StopMode(Enum):
    """Condition that completes a gravity-norm estimation."""

    MAX_SAMPLES_ONLY = "max_samples_only"
    MAX_DURATION_ONLY = "max_duration_only"
    MAX_SAMPLES_OR_DURATION = "max_samples_or_duration"


class GravityNormEstimator:
    """
    Accumulates gravity norm statistics until a stop condition is met.

    Args:
        source: Gravity sensor source.
        max_samples: Samples needed to complete (sample-bounded modes).
        max_duration_millis: Duration needed to complete (duration-bounded
            modes), measured between sample timestamps.
        stop_mode: Which limit completes the estimation.
        completed_listener: Called once with the estimator on completion.
        unreliable_listener: Called with the estimator each time the sensor
            reports UNRELIABLE accuracy. Unreliable samples only set
            ``result_unreliable``.
        delay: Sampling period hint forwarded to the source.

    Raises:
        ValueError: If max_samples <= 0 or max_duration_millis < 0.

    Example:
        >>> source = ManualSensorSource()
        >>> estimator = GravityNormEstimator(source, max_samples=2,
        ...                                  stop_mode=StopMode.MAX_SAMPLES_ONLY)
        >>> estimator.start()
        True
        >>> source.emit([0.0, 0.0, 9.81], 0)
        True
        >>> source.emit([0.0, 0.0, 9.81], 20_000_000)
        True
        >>> estimator.average_gravity_norm
        9.81
    """

    def __init__(
        self,
        source: SensorSource,
        max_samples: int = DEFAULT_MAX_SAMPLES,
        max_duration_millis: int = DEFAULT_MAX_DURATION_MILLIS,
        stop_mode: StopMode = StopMode.MAX_SAMPLES_OR_DURATION,
        completed_listener: Optional[Callable] = None,
        unreliable_listener: Optional[Callable] = None,
        delay: Optional[float] = None,
    ):
        if max_samples <= 0:
            raise ValueError(f"max_samples must be positive, got {max_samples}")
        if max_duration_millis < 0:
            raise ValueError(
                f"max_duration_millis must be >= 0, got {max_duration_millis}"
            )

        self.source = source
        self.max_samples = max_samples
        self.max_duration_millis = max_duration_millis
        self.stop_mode = stop_mode
        self.completed_listener = completed_listener
        self.unreliable_listener = unreliable_listener
        self.delay = delay

        self._noise = RunningStatistics()
        self._time_intervals = TimeIntervalEstimator()
        self.running = False
        self.result_available = False
        self.result_unreliable = False
        self.initial_timestamp = 0
        self.end_timestamp = 0
        self.number_of_processed_measurements = 0

        source.measurement_listener = self._on_measurement
        source.accuracy_changed_listener = self._on_accuracy_changed

    def start(self) -> bool:
        """
        Reset accumulators and start the gravity source.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("gravity norm estimator is already running")

        self._reset()
        self.running = self.source.start(self.delay)
        if not self.running:
            logger.warning("Gravity source could not be started")
        return self.running

    def stop(self) -> None:
        self.source.stop()
        self.running = False

    def _reset(self) -> None:
        self._noise.reset()
        if self.stop_mode == StopMode.MAX_DURATION_ONLY:
            self._time_intervals.max_samples = None
        else:
            self._time_intervals.max_samples = self.max_samples
        self._time_intervals.reset()

        self.result_available = False
        self.result_unreliable = False
        self.initial_timestamp = 0
        self.end_timestamp = 0
        self.number_of_processed_measurements = 0

    def _on_accuracy_changed(self, accuracy: SensorAccuracy) -> None:
        # Notified on every UNRELIABLE report; the flag itself stays set
        if accuracy == SensorAccuracy.UNRELIABLE:
            self.result_unreliable = True
            logger.warning("Gravity sensor accuracy is unreliable")
            if self.unreliable_listener is not None:
                self.unreliable_listener(self)

    def _on_measurement(self, measurement: SensorMeasurement) -> None:
        if not self.running:
            return

        if measurement.accuracy == SensorAccuracy.UNRELIABLE:
            self.result_unreliable = True

        if self.number_of_processed_measurements == 0:
            self.initial_timestamp = measurement.timestamp

        self._noise.add(float(np.linalg.norm(measurement.values)))
        self._time_intervals.add_timestamp(
            (measurement.timestamp - self.initial_timestamp) / NANOS_PER_SECOND
        )

        self.end_timestamp = measurement.timestamp
        self.number_of_processed_measurements += 1

        if self._is_complete():
            self.stop()
            self.result_available = True
            logger.info(
                "Gravity norm estimation completed after %d samples",
                self.number_of_processed_measurements,
            )
            if self.completed_listener is not None:
                self.completed_listener(self)

    def _is_complete(self) -> bool:
        samples_reached = self.number_of_processed_measurements >= self.max_samples
        duration_reached = (
            self.elapsed_time_nanos_raw // NANOS_PER_MILLI >= self.max_duration_millis
        )
        if self.stop_mode == StopMode.MAX_SAMPLES_ONLY:
            return samples_reached
        if self.stop_mode == StopMode.MAX_DURATION_ONLY:
            return duration_reached
        return samples_reached or duration_reached

    @property
    def elapsed_time_nanos_raw(self) -> int:
        return self.end_timestamp - self.initial_timestamp

    @property
    def average_gravity_norm(self) -> Optional[float]:
        return self._noise.mean if self.result_available else None

    @property
    def gravity_norm_variance(self) -> Optional[float]:
        return self._noise.variance if self.result_available else None

    @property
    def gravity_norm_standard_deviation(self) -> Optional[float]:
        return self._noise.standard_deviation if self.result_available else None

    @property
    def gravity_psd(self) -> Optional[float]:
        """Gravity noise PSD in (m/s²)²·s."""
        if not self.result_available:
            return None
        return self._noise.psd(self._time_intervals.average_time_interval)

    @property
    def gravity_root_psd(self) -> Optional[float]:
        if not self.result_available:
            return None
        return self._noise.root_psd(self._time_intervals.average_time_interval)

    @property
    def average_time_interval(self) -> Optional[float]:
        """Average sampling interval in seconds."""
        return self._time_intervals.average_time_interval if self.result_available else None

    @property
    def time_interval_variance(self) -> Optional[float]:
        return self._time_intervals.time_interval_variance if self.result_available else None

    @property
    def time_interval_standard_deviation(self) -> Optional[float]:
        if not self.result_available:
            return None
        return self._time_intervals.time_interval_standard_deviation

    @property
    def elapsed_time_nanos(self) -> Optional[int]:
        return self.elapsed_time_nanos_raw if self.result_available else None

    @property
    def elapsed_time_seconds(self) -> Optional[float]:
        if not self.result_available:
            return None
        return self.elapsed_time_nanos_raw / NANOS_PER_SECOND
