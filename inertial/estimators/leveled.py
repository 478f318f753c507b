"""
Leveled relative attitude: gyroscope integration kept level by gravity.

The gyroscope attitude is smooth but its roll and pitch drift. Leveling
observes roll and pitch without drift but follows every linear
acceleration. The leveled attitude is propagated with the gyroscope and
pulled towards a reference built from both:

    roll, pitch  from leveling
    yaw          from the gyroscope attitude (relative to start-up)

Yaw therefore stays relative to the device orientation when the
estimator started, as no magnetometer is involved. Outliers, panic resets
and the slerp factor follow FusedGeomagneticAttitudeEstimator.
"""

import logging
from typing import Callable, Optional

import numpy as np

from inertial.coords.rotations import euler_to_quat, quat_inverse, quat_to_euler
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.filters import AveragingFilter
from inertial.estimators.fused import FusionParameters, GyroscopeFusionEstimator
from inertial.estimators.gravity import GravityEstimator
from inertial.estimators.leveling import AccurateLevelingEstimator, LevelingEstimator
from inertial.sensors.types import SensorSource

logger = logging.getLogger(__name__)


class LeveledRelativeAttitudeEstimator(GyroscopeFusionEstimator):
    """
    Gyroscope attitude with roll and pitch corrected by leveling.

    The listener receives
    ``(estimator, attitude, roll, pitch, yaw, transformation)``.

    Args:
        gyroscope_source: Gyroscope SensorSource (rad/s).
        gravity_source: Gravity sensor source (unless use_accelerometer).
        accelerometer_source: Accelerometer source (when use_accelerometer).
        use_accelerometer: Level with filtered accelerometer samples.
        location: Device location, required for accurate leveling.
        use_accurate_leveling: Level against the true gravity direction.
        averaging_filter: Accelerometer averaging filter.
        use_accurate_relative_gyroscope: Integrate the gyroscope with RK4.
        parameters: Fusion tunables. Defaults when None.
        listener: Attitude callback.
        delay: Sampling period hint forwarded to the sources.
        **kwargs: AttitudeEstimator options (display orientation, outputs).

    Raises:
        EstimatorStateError: If accurate leveling is requested without a
            location.
    """

    reference_name = "leveling"

    def __init__(
        self,
        gyroscope_source: SensorSource,
        gravity_source: Optional[SensorSource] = None,
        accelerometer_source: Optional[SensorSource] = None,
        use_accelerometer: bool = False,
        location: Optional[GeodeticLocation] = None,
        use_accurate_leveling: bool = False,
        averaging_filter: Optional[AveragingFilter] = None,
        use_accurate_relative_gyroscope: bool = False,
        parameters: Optional[FusionParameters] = None,
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        **kwargs,
    ):
        if use_accurate_leveling and location is None:
            raise EstimatorStateError("accurate leveling requires a location")
        super().__init__(
            gyroscope_source,
            use_accurate_relative_gyroscope,
            parameters,
            listener,
            delay,
            **kwargs,
        )
        self._location = location
        self._use_accurate_leveling = use_accurate_leveling
        self._gravity_estimation_listener: Optional[Callable] = None

        self.gravity_estimator = GravityEstimator(
            gravity_source,
            accelerometer_source,
            use_accelerometer,
            averaging_filter,
            delay=delay,
        )
        self.leveling_estimator: LevelingEstimator = self._build_leveling_estimator()

        self._leveling_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._leveled_attitude = np.array([1.0, 0.0, 0.0, 0.0])

    @property
    def location(self) -> Optional[GeodeticLocation]:
        return self._location

    @location.setter
    def location(self, value: Optional[GeodeticLocation]) -> None:
        if value is None and self.running:
            raise EstimatorStateError("cannot clear location while running")
        self._location = value
        if (
            value is not None
            and not self.running
            and isinstance(self.leveling_estimator, AccurateLevelingEstimator)
        ):
            self.leveling_estimator.location = value

    @property
    def use_accurate_leveling(self) -> bool:
        return self._use_accurate_leveling

    @use_accurate_leveling.setter
    def use_accurate_leveling(self, value: bool) -> None:
        self._check_not_running("change leveling mode")
        if value and self._location is None:
            raise EstimatorStateError("accurate leveling requires a location")
        self._use_accurate_leveling = value
        self.leveling_estimator = self._build_leveling_estimator()

    @property
    def use_accelerometer(self) -> bool:
        return self.gravity_estimator.use_accelerometer

    @property
    def accelerometer_measurement_listener(self) -> Optional[Callable]:
        return self.gravity_estimator.accelerometer_measurement_listener

    @accelerometer_measurement_listener.setter
    def accelerometer_measurement_listener(self, value: Optional[Callable]) -> None:
        self.gravity_estimator.accelerometer_measurement_listener = value

    @property
    def gravity_estimation_listener(self) -> Optional[Callable]:
        """Receives ``(estimator, fx, fy, fz, timestamp)`` for each gravity estimation."""
        return self._gravity_estimation_listener

    @gravity_estimation_listener.setter
    def gravity_estimation_listener(self, value: Optional[Callable]) -> None:
        self._gravity_estimation_listener = value
        self.leveling_estimator.gravity_listener = value

    def start(self) -> bool:
        """
        Start leveling, then the gyroscope estimator.

        If either fails, both are stopped and False is returned.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("leveled relative estimator is already running")

        self._reset()
        self._running = self.leveling_estimator.start() and self.relative_estimator.start()
        if not self._running:
            logger.warning("Leveled relative estimator sources could not be started")
            self.stop()
        return self._running

    def stop(self) -> None:
        self.leveling_estimator.stop()
        self.relative_estimator.stop()
        self._running = False

    def _build_leveling_estimator(self) -> LevelingEstimator:
        options = dict(
            listener=self._on_leveling,
            gravity_listener=self._gravity_estimation_listener,
            ignore_display_orientation=True,
            estimate_coordinate_transformation=False,
            estimate_euler_angles=False,
        )
        if self._use_accurate_leveling:
            return AccurateLevelingEstimator(
                self.gravity_estimator, self._location, **options
            )
        return LevelingEstimator(self.gravity_estimator, **options)

    def _on_leveling(self, estimator, attitude, roll, pitch, transformation) -> None:
        if not self._has_relative_attitude:
            return

        # Both attitudes back to body-to-NED before mixing their angles
        quat_inverse(attitude, out=self._leveling_attitude)
        leveling_roll, leveling_pitch, _ = quat_to_euler(self._leveling_attitude)
        _, _, relative_yaw = quat_to_euler(self.relative_estimator.internal_attitude)

        euler_to_quat(leveling_roll, leveling_pitch, relative_yaw, out=self._leveled_attitude)
        self._post_process(self._leveled_attitude)
        self._fuse(self._leveled_attitude)
