"""
Absolute attitude from leveling and magnetometer heading.

Each leveling result (roll and pitch from gravity) is combined with the
heading computed from the most recent magnetometer sample:

    1. invert the leveling attitude back to body-to-NED and extract
       roll/pitch
    2. yaw = magnetic_yaw(b - hard_iron, roll, pitch) + declination
    3. fused = euler(roll, pitch, yaw), then display correction,
       inversion and normalization as in every attitude estimator

Declination comes from a World Magnetic Model when enabled and a location
is known, and is zero otherwise. Leveling results that arrive before any
magnetometer sample are dropped.
"""

import datetime
import logging
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from inertial.coords.rotations import euler_to_quat, quat_inverse, quat_normalize, quat_to_euler
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.base import AttitudeEstimator
from inertial.estimators.filters import AveragingFilter
from inertial.estimators.gravity import GravityEstimator
from inertial.estimators.leveling import AccurateLevelingEstimator, LevelingEstimator
from inertial.sensors.environment import (
    MICROTESLA_TO_TESLA,
    AhrsWorldMagneticModel,
    WorldMagneticModel,
    compensate_hard_iron,
    magnetic_yaw,
)
from inertial.sensors.types import SensorMeasurement, SensorSource

logger = logging.getLogger(__name__)


class GeomagneticAttitudeEstimator(AttitudeEstimator):
    """
    Leveling plus magnetometer heading.

    The listener receives
    ``(estimator, attitude, roll, pitch, yaw, transformation)``.

    Args:
        magnetometer_source: Magnetometer SensorSource (µT).
        gravity_source: Gravity sensor source (unless use_accelerometer).
        accelerometer_source: Accelerometer source (when use_accelerometer).
        use_accelerometer: Level with filtered accelerometer samples.
        location: Device location, required for accurate leveling and
            used for World Magnetic Model lookups.
        use_accurate_leveling: Level against the true gravity direction.
        world_magnetic_model: Model used when use_world_magnetic_model is
            True. AhrsWorldMagneticModel is used when omitted.
        use_world_magnetic_model: Correct yaw with the model declination.
        hard_iron: Magnetometer hard-iron offset (µT).
        timestamp: Date used for model lookups. Today when None.
        averaging_filter: Accelerometer averaging filter.
        listener: Attitude callback.
        delay: Sampling period hint forwarded to the sources.
        magnetometer_measurement_listener: Receives every raw magnetometer
            SensorMeasurement.
        **kwargs: AttitudeEstimator options (display orientation, outputs).

    Raises:
        EstimatorStateError: If accurate leveling is requested without a
            location.
    """

    def __init__(
        self,
        magnetometer_source: SensorSource,
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
        listener: Optional[Callable] = None,
        delay: Optional[float] = None,
        magnetometer_measurement_listener: Optional[Callable] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        if use_accurate_leveling and location is None:
            raise EstimatorStateError("accurate leveling requires a location")

        self.magnetometer_source = magnetometer_source
        self.hard_iron = hard_iron
        self.timestamp = timestamp
        self.listener = listener
        self.delay = delay
        self.magnetometer_measurement_listener = magnetometer_measurement_listener
        self._gravity_estimation_listener: Optional[Callable] = None

        self._location = location
        self._use_accurate_leveling = use_accurate_leveling
        self._world_magnetic_model = world_magnetic_model
        self._use_world_magnetic_model = use_world_magnetic_model
        self._wmm: Optional[WorldMagneticModel] = None

        self.gravity_estimator = GravityEstimator(
            gravity_source,
            accelerometer_source,
            use_accelerometer,
            averaging_filter,
            delay=delay,
        )
        self.leveling_estimator: LevelingEstimator = self._build_leveling_estimator()
        self._build_world_magnetic_model()

        self.magnetic_field = np.zeros(3)
        self.has_magnetometer_values = False
        self._leveling_attitude = np.array([1.0, 0.0, 0.0, 0.0])

        magnetometer_source.measurement_listener = self._on_magnetometer

    @property
    def use_accelerometer(self) -> bool:
        return self.gravity_estimator.use_accelerometer

    @property
    def accelerometer_measurement_listener(self) -> Optional[Callable]:
        """Receives raw accelerometer samples (accelerometer mode only)."""
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
    def world_magnetic_model(self) -> Optional[WorldMagneticModel]:
        return self._world_magnetic_model

    @world_magnetic_model.setter
    def world_magnetic_model(self, value: Optional[WorldMagneticModel]) -> None:
        self._check_not_running("change world magnetic model")
        self._world_magnetic_model = value
        self._build_world_magnetic_model()

    @property
    def use_world_magnetic_model(self) -> bool:
        return self._use_world_magnetic_model

    @use_world_magnetic_model.setter
    def use_world_magnetic_model(self, value: bool) -> None:
        self._check_not_running("change world magnetic model usage")
        self._use_world_magnetic_model = value
        self._build_world_magnetic_model()

    def start(self) -> bool:
        """
        Start leveling, then the magnetometer.

        If either fails, both are stopped and False is returned.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("geomagnetic estimator is already running")

        self.has_magnetometer_values = False
        self._running = self.leveling_estimator.start() and self.magnetometer_source.start(
            self.delay
        )
        if not self._running:
            logger.warning("Geomagnetic estimator sources could not be started")
            self.stop()
        return self._running

    def stop(self) -> None:
        self.leveling_estimator.stop()
        self.magnetometer_source.stop()
        self._running = False

    def declination(self) -> float:
        """Current magnetic declination in radians (zero without a model)."""
        if self._wmm is None or self._location is None:
            return 0.0
        when = self.timestamp or datetime.date.today()
        return self._wmm.declination(self._location, when)

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

    def _build_world_magnetic_model(self) -> None:
        if not self._use_world_magnetic_model:
            self._wmm = None
        elif self._world_magnetic_model is not None:
            self._wmm = self._world_magnetic_model
        else:
            self._wmm = AhrsWorldMagneticModel()

    def _on_magnetometer(self, measurement: SensorMeasurement) -> None:
        if self.magnetometer_measurement_listener is not None:
            self.magnetometer_measurement_listener(measurement)

        corrected = compensate_hard_iron(measurement.values, self.hard_iron)
        self.magnetic_field[:] = corrected * MICROTESLA_TO_TESLA
        self.has_magnetometer_values = True

    def _on_leveling(self, estimator, attitude, roll, pitch, transformation) -> None:
        if not self.has_magnetometer_values:
            return

        quat_inverse(attitude, out=self._leveling_attitude)
        leveling_roll, leveling_pitch, _ = quat_to_euler(self._leveling_attitude)
        yaw = magnetic_yaw(
            self.magnetic_field, leveling_roll, leveling_pitch, self.declination()
        )

        euler_to_quat(leveling_roll, leveling_pitch, yaw, out=self.attitude)
        quat_normalize(self.attitude, out=self.attitude)
        self._post_process(self.attitude)

        euler, transformation = self._derive_outputs(self.attitude)
        if self.listener is not None:
            if euler is None:
                self.listener(self, self.attitude, None, None, None, transformation)
            else:
                out_roll, out_pitch, out_yaw = (float(angle) for angle in euler)
                self.listener(self, self.attitude, out_roll, out_pitch, out_yaw, transformation)
