"""
Relative attitude from gyroscope integration.

Each angular rate sample ω (bias-corrected when a bias is reported) is
turned into a delta rotation over the interval since the previous sample:

    axis  = ω / |ω|
    angle = |ω| · Δt
    q_int = q_int ⊗ Δq

The internal attitude starts at identity when the estimator starts, so the
published attitude is relative to the device orientation at start-up.
Δt is the running average of the sample intervals, which smooths timestamp
jitter.

With accurate integration the delta rotation is instead obtained with a
Runge-Kutta step (attitude_integration_step) over the previous and current
angular rates. The first sample only provides the starting rate and
publishes nothing.
"""

import logging
from typing import Callable, Optional

import numpy as np

from inertial.coords.rotations import quat_from_axis_angle, quat_multiply, quat_normalize
from inertial.errors import EstimatorStateError
from inertial.estimators.base import AttitudeEstimator
from inertial.estimators.statistics import TimeIntervalEstimator
from inertial.navigation.integration import attitude_integration_step
from inertial.sensors.types import SensorMeasurement, SensorSource

logger = logging.getLogger(__name__)

NANOS_PER_SECOND = 1e9


class RelativeGyroscopeAttitudeEstimator(AttitudeEstimator):
    """
    Integrates gyroscope samples into a relative attitude.

    The listener receives
    ``(estimator, attitude, roll, pitch, yaw, transformation)``.

    Args:
        gyroscope_source: Gyroscope SensorSource (rad/s).
        listener: Attitude callback.
        delay: Sampling period hint forwarded to the source.
        gyroscope_measurement_listener: Receives every raw gyroscope
            SensorMeasurement before it is integrated.
        use_accurate_integration: Integrate with RK4 over consecutive
            angular rates instead of a constant-rate rotation.
        **kwargs: AttitudeEstimator options (display orientation, outputs).
    """

    def __init__(
        self,
        gyroscope_source: SensorSource,
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        gyroscope_measurement_listener: Optional[Callable] = None,
        use_accurate_integration: bool = False,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self._use_accurate_integration = use_accurate_integration
        self.gyroscope_source = gyroscope_source
        self.listener = listener
        self.delay = delay
        self.gyroscope_measurement_listener = gyroscope_measurement_listener

        self._time_interval_estimator = TimeIntervalEstimator()
        self.internal_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._delta_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._previous_angular_rate = np.zeros(3)
        self.initial_timestamp = 0
        self.last_timestamp = 0

        gyroscope_source.measurement_listener = self._on_measurement

    @property
    def use_accurate_integration(self) -> bool:
        return self._use_accurate_integration

    @use_accurate_integration.setter
    def use_accurate_integration(self, value: bool) -> None:
        self._check_not_running("change integration mode")
        self._use_accurate_integration = value

    @property
    def average_time_interval(self) -> float:
        """Average gyroscope sampling interval in seconds."""
        return self._time_interval_estimator.average_time_interval

    def start(self) -> bool:
        """
        Reset the integrated attitude and start the gyroscope.

        Returns:
            False if the gyroscope could not be started.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("relative gyroscope estimator is already running")

        self._reset()
        self._running = self.gyroscope_source.start(self.delay)
        if not self._running:
            logger.warning("Gyroscope could not be started")
            self.stop()
        return self._running

    def stop(self) -> None:
        self.gyroscope_source.stop()
        self._running = False

    def _reset(self) -> None:
        self._time_interval_estimator.reset()
        self.internal_attitude[:] = (1.0, 0.0, 0.0, 0.0)
        self._delta_attitude[:] = (1.0, 0.0, 0.0, 0.0)
        self._previous_angular_rate[:] = 0.0
        self.attitude[:] = (1.0, 0.0, 0.0, 0.0)
        self.initial_timestamp = 0
        self.last_timestamp = 0

    def _on_measurement(self, measurement: SensorMeasurement) -> None:
        if self.gyroscope_measurement_listener is not None:
            self.gyroscope_measurement_listener(measurement)

        is_first = self._time_interval_estimator.number_of_processed_timestamps == 0
        if is_first:
            self.initial_timestamp = measurement.timestamp
        self.last_timestamp = measurement.timestamp

        self._time_interval_estimator.add_timestamp(
            (measurement.timestamp - self.initial_timestamp) / NANOS_PER_SECOND
        )
        time_interval = self._time_interval_estimator.average_time_interval

        angular_rate = measurement.corrected()
        if self._use_accurate_integration:
            if is_first:
                self._previous_angular_rate[:] = angular_rate
                return
            self._delta_attitude[:] = (1.0, 0.0, 0.0, 0.0)
            attitude_integration_step(
                self._delta_attitude,
                self._previous_angular_rate,
                angular_rate,
                time_interval,
                out=self._delta_attitude,
            )
            self._previous_angular_rate[:] = angular_rate
        else:
            quat_from_axis_angle(
                angular_rate,
                float(np.linalg.norm(angular_rate)) * time_interval,
                out=self._delta_attitude,
            )
        quat_normalize(self._delta_attitude, out=self._delta_attitude)

        quat_multiply(self.internal_attitude, self._delta_attitude, out=self.internal_attitude)
        quat_normalize(self.internal_attitude, out=self.internal_attitude)

        self.attitude[:] = self.internal_attitude
        self._post_process(self.attitude)

        euler, transformation = self._derive_outputs(self.attitude)
        if self.listener is not None:
            if euler is None:
                self.listener(self, self.attitude, None, None, None, transformation)
            else:
                roll, pitch, yaw = (float(angle) for angle in euler)
                self.listener(self, self.attitude, roll, pitch, yaw, transformation)
