"""
Absolute attitude fusing geomagnetic and gyroscope estimates.

The geomagnetic attitude is absolute but noisy (leveling follows every
linear acceleration, the compass every magnetic disturbance). The
gyroscope attitude is smooth but relative and drifts. The fused attitude
is propagated with the gyroscope and pulled towards the geomagnetic one:

    Δq      = q_rel(k) ⊗ q_rel(k-1)⁻¹          gyroscope change since last fusion
    q_fused = Δq ⊗ q_fused
    if |q_fused · q_geo| >= outlier threshold:
        q_fused = slerp(q_fused, q_geo, min(i + w·|angle(Δq)/Δt|, 1))

Geomagnetic samples that disagree too much with the propagated attitude
are treated as outliers and only the gyroscope change is applied. Strong
disagreements increase a panic counter; once it reaches its threshold the
fused attitude is reset to the geomagnetic one. The counter starts at the
threshold so that the first fused attitude is the geomagnetic one.
A reference attitude is fused at most once per gyroscope attitude; later
ones are dropped until the gyroscope publishes again.

GyroscopeFusionEstimator holds this fusion loop and the gyroscope side;
the leveled relative estimator reuses it with leveling as the reference.

Both inner estimators publish attitudes already display-corrected and
inverted, so fusion operates directly on published attitudes.
"""

import datetime
import logging
import warnings
from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from inertial.coords.rotations import (
    quat_inverse,
    quat_multiply,
    quat_normalize,
    quat_rotation_angle,
    quat_slerp,
)
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.base import AttitudeEstimator
from inertial.estimators.filters import AveragingFilter
from inertial.estimators.geomagnetic import GeomagneticAttitudeEstimator
from inertial.estimators.relative import RelativeGyroscopeAttitudeEstimator
from inertial.sensors.environment import WorldMagneticModel
from inertial.sensors.types import SensorSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FusionParameters:
    """
    Tunables of the geomagnetic/gyroscope fusion.

    Attributes:
        use_indirect_interpolation: Scale the slerp factor with the
            gyroscope rotation speed.
        interpolation_value: Base slerp factor in [0, 1].
        indirect_interpolation_weight: Gain applied to the rotation speed
            (rad/s) when use_indirect_interpolation is True. Must be > 0.
        outlier_threshold: |dot| below which a geomagnetic sample is an
            outlier, in [0, 1].
        outlier_panic_threshold: |dot| below which an outlier increases the
            panic counter, in [0, 1].
        panic_counter_threshold: Consecutive panics that force a reset to
            the geomagnetic attitude. Must be > 0.
    """

    use_indirect_interpolation: bool = True
    interpolation_value: float = 0.005
    indirect_interpolation_weight: float = 0.01
    outlier_threshold: float = 0.85
    outlier_panic_threshold: float = 0.65
    panic_counter_threshold: int = 60

    def __post_init__(self):
        if not 0.0 <= self.interpolation_value <= 1.0:
            raise ValueError(
                f"interpolation_value must be within [0, 1], got {self.interpolation_value}"
            )
        if self.indirect_interpolation_weight <= 0.0:
            raise ValueError(
                "indirect_interpolation_weight must be positive, "
                f"got {self.indirect_interpolation_weight}"
            )
        if not 0.0 <= self.outlier_threshold <= 1.0:
            raise ValueError(
                f"outlier_threshold must be within [0, 1], got {self.outlier_threshold}"
            )
        if not 0.0 <= self.outlier_panic_threshold <= 1.0:
            raise ValueError(
                "outlier_panic_threshold must be within [0, 1], "
                f"got {self.outlier_panic_threshold}"
            )
        if self.panic_counter_threshold <= 0:
            raise ValueError(
                f"panic_counter_threshold must be positive, got {self.panic_counter_threshold}"
            )

        # Panics are meant to be a subset of outliers
        if self.outlier_panic_threshold > self.outlier_threshold:
            warnings.warn(
                f"outlier_panic_threshold ({self.outlier_panic_threshold}) is above "
                f"outlier_threshold ({self.outlier_threshold}); every outlier "
                "will count towards a reset.",
                UserWarning,
            )


class GyroscopeFusionEstimator(AttitudeEstimator):
    """
    Gyroscope-propagated attitude pulled towards a reference attitude.

    Owns the gyroscope estimator and the fusion state. Subclasses own the
    source of reference attitudes and hand each one to ``_fuse``. Every
    reference attitude is fused at most once per gyroscope attitude: after
    a fusion, reference attitudes are dropped until the gyroscope publishes
    again.

    Args:
        gyroscope_source: Gyroscope SensorSource (rad/s).
        use_accurate_relative_gyroscope: Integrate the gyroscope with RK4.
        parameters: Fusion tunables. Defaults when None.
        listener: Attitude callback.
        delay: Sampling period hint forwarded to the sources.
        **kwargs: AttitudeEstimator options (display orientation, outputs).
    """

    reference_name = "reference"

    def __init__(
        self,
        gyroscope_source: SensorSource,
        use_accurate_relative_gyroscope: bool = False,
        parameters: Optional[FusionParameters] = None,
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.listener = listener
        self._parameters = parameters or FusionParameters()

        self.relative_estimator = RelativeGyroscopeAttitudeEstimator(
            gyroscope_source,
            listener=self._on_relative_attitude,
            delay=delay,
            use_accurate_integration=use_accurate_relative_gyroscope,
            **self._inner_options(),
        )

        self._relative_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._previous_relative_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._inverse_previous_relative_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._delta_relative_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._reference_attitude = np.array([1.0, 0.0, 0.0, 0.0])

        self._has_relative_attitude = False
        self._has_previous_relative_attitude = False
        self._has_delta_relative_attitude = False
        self.panic_counter = self._parameters.panic_counter_threshold

    def _inner_options(self) -> dict:
        return dict(
            display_orientation=self.display_orientation,
            ignore_display_orientation=self.ignore_display_orientation,
            estimate_coordinate_transformation=False,
            estimate_euler_angles=False,
        )

    @property
    def parameters(self) -> FusionParameters:
        return self._parameters

    @parameters.setter
    def parameters(self, value: FusionParameters) -> None:
        self._check_not_running("change fusion parameters")
        self._parameters = value

    @property
    def use_accurate_relative_gyroscope(self) -> bool:
        return self.relative_estimator.use_accurate_integration

    @use_accurate_relative_gyroscope.setter
    def use_accurate_relative_gyroscope(self, value: bool) -> None:
        self._check_not_running("change gyroscope integration mode")
        self.relative_estimator.use_accurate_integration = value

    @property
    def average_time_interval(self) -> float:
        """Average gyroscope sampling interval in seconds."""
        return self.relative_estimator.average_time_interval

    @property
    def last_timestamp(self) -> int:
        """Timestamp (ns) of the latest gyroscope sample."""
        return self.relative_estimator.last_timestamp

    @property
    def gyroscope_measurement_listener(self) -> Optional[Callable]:
        return self.relative_estimator.gyroscope_measurement_listener

    @gyroscope_measurement_listener.setter
    def gyroscope_measurement_listener(self, value: Optional[Callable]) -> None:
        self.relative_estimator.gyroscope_measurement_listener = value

    def _reset(self) -> None:
        self._has_relative_attitude = False
        self._has_previous_relative_attitude = False
        self._has_delta_relative_attitude = False
        self.panic_counter = self._parameters.panic_counter_threshold

    def _on_relative_attitude(self, estimator, attitude, roll, pitch, yaw, transformation) -> None:
        self._relative_attitude[:] = attitude
        self._has_relative_attitude = True

        if self._has_previous_relative_attitude:
            quat_inverse(
                self._previous_relative_attitude, out=self._inverse_previous_relative_attitude
            )
            quat_multiply(
                self._relative_attitude,
                self._inverse_previous_relative_attitude,
                out=self._delta_relative_attitude,
            )
            self._has_delta_relative_attitude = True
        else:
            self._previous_relative_attitude[:] = self._relative_attitude
            self._has_previous_relative_attitude = True

    def _fuse(self, reference_attitude: NDArray[np.float64]) -> None:
        if not self._has_relative_attitude:
            return

        self._reference_attitude[:] = reference_attitude
        if not self._has_delta_relative_attitude:
            return

        params = self._parameters
        if self.panic_counter >= params.panic_counter_threshold:
            self.attitude[:] = self._reference_attitude
            self._consume_delta()
            self.panic_counter = 0
            logger.warning("Fused attitude reset to %s attitude", self.reference_name)
            return

        quat_multiply(self._delta_relative_attitude, self.attitude, out=self.attitude)
        quat_normalize(self.attitude, out=self.attitude)

        abs_dot = abs(float(np.dot(self.attitude, self._reference_attitude)))
        if abs_dot < params.outlier_threshold:
            logger.debug(
                "%s attitude rejected as outlier: |dot| = %.4f",
                self.reference_name.capitalize(),
                abs_dot,
            )
            if abs_dot < params.outlier_panic_threshold:
                self.panic_counter += 1
                logger.debug("Panic counter increased to %d", self.panic_counter)
        else:
            quat_slerp(
                self.attitude,
                self._reference_attitude,
                self._slerp_factor(),
                out=self.attitude,
            )
            self.panic_counter = 0

        self._consume_delta()

        euler, transformation = self._derive_outputs(self.attitude)
        if self.listener is not None:
            if euler is None:
                self.listener(self, self.attitude, None, None, None, transformation)
            else:
                out_roll, out_pitch, out_yaw = (float(angle) for angle in euler)
                self.listener(self, self.attitude, out_roll, out_pitch, out_yaw, transformation)

    def _consume_delta(self) -> None:
        self._previous_relative_attitude[:] = self._relative_attitude
        self._delta_relative_attitude[:] = (1.0, 0.0, 0.0, 0.0)
        # Wait for the next gyroscope attitude
        self._has_relative_attitude = False

    def _slerp_factor(self) -> float:
        params = self._parameters
        time_interval = self.relative_estimator.average_time_interval
        if not params.use_indirect_interpolation or time_interval <= 0.0:
            return params.interpolation_value

        angle = quat_rotation_angle(self._delta_relative_attitude)
        if angle > np.pi:
            angle = 2.0 * np.pi - angle
        rotation_speed = angle / time_interval
        return min(
            params.interpolation_value + params.indirect_interpolation_weight * abs(rotation_speed),
            1.0,
        )


class FusedGeomagneticAttitudeEstimator(GyroscopeFusionEstimator):
    """
    Geomagnetic attitude smoothed with gyroscope integration.

    The listener receives
    ``(estimator, attitude, roll, pitch, yaw, transformation)``.

    Args:
        magnetometer_source: Magnetometer SensorSource (µT).
        gyroscope_source: Gyroscope SensorSource (rad/s).
        gravity_source: Gravity sensor source (unless use_accelerometer).
        accelerometer_source: Accelerometer source (when use_accelerometer).
        use_accelerometer: Level with filtered accelerometer samples.
        location: Device location.
        use_accurate_leveling: Level against the true gravity direction.
        world_magnetic_model: Declination model.
        use_world_magnetic_model: Correct yaw with the model declination.
        hard_iron: Magnetometer hard-iron offset (µT).
        timestamp: Date used for model lookups. Today when None.
        averaging_filter: Accelerometer averaging filter.
        use_accurate_relative_gyroscope: Integrate the gyroscope with RK4.
        parameters: Fusion tunables. Defaults when None.
        listener: Attitude callback.
        delay: Sampling period hint forwarded to the sources.
        **kwargs: AttitudeEstimator options (display orientation, outputs).
    """

    reference_name = "geomagnetic"

    def __init__(
        self,
        magnetometer_source: SensorSource,
        gyroscope_source: SensorSource,
        gravity_source: Optional[SensorSource] = None,
        accelerometer_source: Optional[SensorSource] = None,
        use_accelerometer: bool = False,
        location: Optional[GeodeticLocation] = None,
        use_accurate_leveling: bool = False,
        world_magnetic_model: Optional[WorldMagneticModel] = None,
        use_world_magnetic_model: bool = False,
        hard_iron: Optional[NDArray[np.float64]] = None,
        timestamp: Optional[datetime.date] = None,
        averaging_filter: Optional[AveragingFilter] = None,
        use_accurate_relative_gyroscope: bool = False,
        parameters: Optional[FusionParameters] = None,
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        **kwargs,
    ):
        super().__init__(
            gyroscope_source,
            use_accurate_relative_gyroscope,
            parameters,
            listener,
            delay,
            **kwargs,
        )
        self.geomagnetic_estimator = GeomagneticAttitudeEstimator(
            magnetometer_source,
            gravity_source,
            accelerometer_source,
            use_accelerometer,
            location=location,
            use_accurate_leveling=use_accurate_leveling,
            world_magnetic_model=world_magnetic_model,
            use_world_magnetic_model=use_world_magnetic_model,
            hard_iron=hard_iron,
            timestamp=timestamp,
            averaging_filter=averaging_filter,
            listener=self._on_geomagnetic_attitude,
            delay=delay,
            **self._inner_options(),
        )

    # Configuration delegated to the geomagnetic estimator, which applies
    # the running gate.

    @property
    def location(self) -> Optional[GeodeticLocation]:
        return self.geomagnetic_estimator.location

    @location.setter
    def location(self, value: Optional[GeodeticLocation]) -> None:
        self.geomagnetic_estimator.location = value

    @property
    def use_accurate_leveling(self) -> bool:
        return self.geomagnetic_estimator.use_accurate_leveling

    @use_accurate_leveling.setter
    def use_accurate_leveling(self, value: bool) -> None:
        self._check_not_running("change leveling mode")
        self.geomagnetic_estimator.use_accurate_leveling = value

    @property
    def world_magnetic_model(self) -> Optional[WorldMagneticModel]:
        return self.geomagnetic_estimator.world_magnetic_model

    @world_magnetic_model.setter
    def world_magnetic_model(self, value: Optional[WorldMagneticModel]) -> None:
        self._check_not_running("change world magnetic model")
        self.geomagnetic_estimator.world_magnetic_model = value

    @property
    def use_world_magnetic_model(self) -> bool:
        return self.geomagnetic_estimator.use_world_magnetic_model

    @use_world_magnetic_model.setter
    def use_world_magnetic_model(self, value: bool) -> None:
        self._check_not_running("change world magnetic model usage")
        self.geomagnetic_estimator.use_world_magnetic_model = value

    @property
    def timestamp(self) -> Optional[datetime.date]:
        return self.geomagnetic_estimator.timestamp

    @timestamp.setter
    def timestamp(self, value: Optional[datetime.date]) -> None:
        self.geomagnetic_estimator.timestamp = value

    @property
    def hard_iron(self) -> Optional[NDArray[np.float64]]:
        return self.geomagnetic_estimator.hard_iron

    @hard_iron.setter
    def hard_iron(self, value: Optional[NDArray[np.float64]]) -> None:
        self.geomagnetic_estimator.hard_iron = value

    @property
    def use_accelerometer(self) -> bool:
        return self.geomagnetic_estimator.use_accelerometer

    # Raw measurement forwarding.

    @property
    def accelerometer_measurement_listener(self) -> Optional[Callable]:
        return self.geomagnetic_estimator.accelerometer_measurement_listener

    @accelerometer_measurement_listener.setter
    def accelerometer_measurement_listener(self, value: Optional[Callable]) -> None:
        self.geomagnetic_estimator.accelerometer_measurement_listener = value

    @property
    def gravity_estimation_listener(self) -> Optional[Callable]:
        return self.geomagnetic_estimator.gravity_estimation_listener

    @gravity_estimation_listener.setter
    def gravity_estimation_listener(self, value: Optional[Callable]) -> None:
        self.geomagnetic_estimator.gravity_estimation_listener = value

    @property
    def magnetometer_measurement_listener(self) -> Optional[Callable]:
        return self.geomagnetic_estimator.magnetometer_measurement_listener

    @magnetometer_measurement_listener.setter
    def magnetometer_measurement_listener(self, value: Optional[Callable]) -> None:
        self.geomagnetic_estimator.magnetometer_measurement_listener = value

    def start(self) -> bool:
        """
        Start the geomagnetic estimator, then the gyroscope estimator.

        If either fails, both are stopped and False is returned.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("fused estimator is already running")

        self._reset()
        self._running = self.geomagnetic_estimator.start() and self.relative_estimator.start()
        if not self._running:
            logger.warning("Fused estimator sources could not be started")
            self.stop()
        return self._running

    def stop(self) -> None:
        self.geomagnetic_estimator.stop()
        self.relative_estimator.stop()
        self._running = False

    def _on_geomagnetic_attitude(
        self, estimator, attitude, roll, pitch, yaw, transformation
    ) -> None:
        self._fuse(attitude)
