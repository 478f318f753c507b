"""
Pose estimation: fused attitude plus ECEF strapdown navigation.

The first attitude published by the fused estimator fixes the reference
frame: the device is placed at the configured location with the given NED
velocity and the published attitude. Every later attitude advances the
previous ECEF frame by one navigator step using the latest body
kinematics:

    f = a - g_meas + f_static
    ω = ω_gyro

where a and ω are the bias-corrected accelerometer and gyroscope samples,
g_meas is the gravity currently sensed by the device and f_static is the
specific force that a device at rest at the previous frame would sense
(estimate_kinematics_ecef of the frame with itself). Device triads are
converted from ENU-like device axes to NED body axes before use.

The integration step is the gyroscope average sampling interval.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from inertial.coords.frames import ECEFFrame, NEDFrame, ned_to_ecef_frame
from inertial.coords.transforms import GeodeticLocation, enu_to_ned
from inertial.errors import EstimatorStateError
from inertial.estimators.fused import FusedGeomagneticAttitudeEstimator
from inertial.navigation.kinematics import BodyKinematics
from inertial.navigation.navigator import estimate_kinematics_ecef, navigate_ecef
from inertial.sensors.types import SensorMeasurement

logger = logging.getLogger(__name__)


@dataclass
class EuclideanTransformation:
    """Rigid transformation p' = R p + t."""

    rotation: NDArray[np.float64] = field(default_factory=lambda: np.eye(3))
    translation: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))

    def apply(self, point: NDArray[np.float64]) -> NDArray[np.float64]:
        return self.rotation @ np.asarray(point, dtype=np.float64) + self.translation

    def as_matrix(self) -> NDArray[np.float64]:
        """4x4 homogeneous matrix."""
        T = np.eye(4)
        T[:3, :3] = self.rotation
        T[:3, 3] = self.translation
        return T


def compute_transformation(
    start_frame: ECEFFrame,
    end_frame: ECEFFrame,
    out: Optional[EuclideanTransformation] = None,
) -> EuclideanTransformation:
    """
    Rigid transformation taking start_frame onto end_frame.

    The rotation is the attitude change C_end C_startᵀ and the translation
    makes the start ECEF position map exactly onto the end position.

    Args:
        start_frame: Frame the transformation starts from.
        end_frame: Frame the transformation ends at.
        out: Optional transformation overwritten with the result.

    Returns:
        EuclideanTransformation with apply(start.position) == end.position.
    """
    rotation = (
        end_frame.coordinate_transformation.matrix
        @ start_frame.coordinate_transformation.matrix.T
    )
    translation = end_frame.position - rotation @ start_frame.position

    if out is None:
        return EuclideanTransformation(rotation, translation)
    out.rotation = rotation
    out.translation = translation
    return out


class PoseEstimator:
    """
    ECEF pose from a fused attitude estimator and inertial samples.

    The listener receives ``(estimator, current_frame, previous_frame,
    initial_frame, current_attitude, previous_attitude, initial_attitude,
    timestamp, initial_transformation, previous_transformation)``;
    transformations are None unless enabled. Attitudes are the published
    (NED->device) quaternions of the fused estimator. Frames and attitudes
    are owned by the estimator and overwritten on the next sample.

    Args:
        attitude_estimator: Fused estimator working on accelerometer
            samples. Its listeners are taken over by this estimator.
        location: Starting location.
        initial_velocity: Starting NED velocity in m/s. Zero when None.
        estimate_initial_transformation: Publish initial->current.
        estimate_previous_transformation: Publish previous->current.
        listener: Pose callback.

    Raises:
        ValueError: If the attitude estimator does not use the
            accelerometer or location is None.
    """

    def __init__(
        self,
        attitude_estimator: FusedGeomagneticAttitudeEstimator,
        location: GeodeticLocation,
        initial_velocity: Optional[NDArray[np.float64]] = None,
        estimate_initial_transformation: bool = False,
        estimate_previous_transformation: bool = True,
        listener: Optional[Callable] = None,
    ):
        if not attitude_estimator.use_accelerometer:
            raise ValueError("pose estimation requires an accelerometer based attitude estimator")
        if location is None:
            raise ValueError("location is required")

        self.attitude_estimator = attitude_estimator
        self.initial_velocity = (
            np.zeros(3) if initial_velocity is None else np.asarray(initial_velocity, float)
        )
        self.estimate_initial_transformation = estimate_initial_transformation
        self.estimate_previous_transformation = estimate_previous_transformation
        self.listener = listener
        self._location = location

        self.initialized = False
        self.initial_frame = ECEFFrame()
        self.previous_frame = ECEFFrame()
        self.current_frame = ECEFFrame()
        self.initial_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self.previous_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self.initial_transformation = EuclideanTransformation()
        self.previous_transformation = EuclideanTransformation()

        self.body_kinematics = BodyKinematics()
        self._acceleration = np.zeros(3)
        self._angular_rate = np.zeros(3)
        self._gravity = np.zeros(3)

        attitude_estimator.location = location
        attitude_estimator.estimate_coordinate_transformation = True
        attitude_estimator.listener = self._on_attitude
        attitude_estimator.accelerometer_measurement_listener = self._on_accelerometer
        attitude_estimator.gyroscope_measurement_listener = self._on_gyroscope
        attitude_estimator.gravity_estimation_listener = self._on_gravity

    @property
    def running(self) -> bool:
        return self.attitude_estimator.running

    @property
    def location(self) -> GeodeticLocation:
        return self._location

    @location.setter
    def location(self, value: GeodeticLocation) -> None:
        if value is None:
            raise ValueError("location is required")
        self.attitude_estimator.location = value
        self._location = value

    def start(self) -> bool:
        """
        Start the attitude estimator and re-establish the reference frame.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("pose estimator is already running")

        if not self.attitude_estimator.start():
            logger.warning("Pose estimator could not start its attitude estimator")
            self.stop()
            return False

        self.initialized = False
        return True

    def stop(self) -> None:
        self.attitude_estimator.stop()

    def _on_accelerometer(self, measurement: SensorMeasurement) -> None:
        self._acceleration[:] = enu_to_ned(measurement.corrected())

    def _on_gyroscope(self, measurement: SensorMeasurement) -> None:
        self._angular_rate[:] = enu_to_ned(measurement.corrected())

    def _on_gravity(self, estimator, fx: float, fy: float, fz: float, timestamp: int) -> None:
        # Estimations are the negated sensed gravity
        self._gravity[:] = enu_to_ned(np.array([-fx, -fy, -fz]))

    def _initialize(self, attitude, transformation) -> None:
        ned_frame = NEDFrame(
            self._location.latitude,
            self._location.longitude,
            self._location.height,
            self.initial_velocity,
            transformation.inverse(),
        )
        self.initial_frame = ned_to_ecef_frame(ned_frame)
        self.previous_frame.copy_from(self.initial_frame)
        self.initial_attitude[:] = attitude
        self.previous_attitude[:] = attitude
        self.initialized = True
        logger.info(
            "Pose reference frame initialized at ECEF position %s",
            np.array2string(self.initial_frame.position, precision=3),
        )

    def _on_attitude(self, estimator, attitude, roll, pitch, yaw, transformation) -> None:
        if transformation is None:
            logger.debug("Attitude without coordinate transformation ignored")
            return

        if not self.initialized:
            self._initialize(attitude, transformation)
            return

        time_interval = self.attitude_estimator.average_time_interval
        if time_interval <= 0.0:
            logger.debug("Gyroscope interval not yet available, pose step skipped")
            return

        previous = self.previous_frame
        static_kinematics = estimate_kinematics_ecef(
            time_interval,
            previous.coordinate_transformation.matrix,
            previous.coordinate_transformation.matrix,
            previous.velocity,
            previous.velocity,
            previous.position,
        )
        self.body_kinematics.set_specific_force(
            self._acceleration - self._gravity + static_kinematics.specific_force
        )
        self.body_kinematics.set_angular_rate(self._angular_rate)

        navigate_ecef(time_interval, previous, self.body_kinematics, out=self.current_frame)

        initial_transformation = None
        if self.estimate_initial_transformation:
            initial_transformation = compute_transformation(
                self.initial_frame, self.current_frame, out=self.initial_transformation
            )
        previous_transformation = None
        if self.estimate_previous_transformation:
            previous_transformation = compute_transformation(
                previous, self.current_frame, out=self.previous_transformation
            )

        if self.listener is not None:
            self.listener(
                self,
                self.current_frame,
                previous,
                self.initial_frame,
                attitude,
                self.previous_attitude,
                self.initial_attitude,
                self.attitude_estimator.last_timestamp,
                initial_transformation,
                previous_transformation,
            )

        self.previous_frame.copy_from(self.current_frame)
        self.previous_attitude[:] = attitude
