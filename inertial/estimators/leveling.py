"""
Leveling estimators: roll and pitch from the sensed gravity direction.

Yaw is unobservable from gravity alone and is left at zero.

LevelingEstimator assumes gravity points exactly along the local vertical:
    roll  = atan2(-fy, -fz)
    pitch = atan(fx / sqrt(fy² + fz²))
where f is the specific force caused by gravity (the negated gravity
reading published by GravityEstimator).

AccurateLevelingEstimator instead aligns the measured specific force with
the direction of the Somigliana gravity vector at a known location, which
includes the small north component caused by the ellipsoid (Groves 2013,
Eq. 2.139).
"""

import logging
from typing import Callable, Optional

import numpy as np
from numpy.typing import NDArray

from inertial.coords.rotations import euler_to_quat, quat_from_axis_angle, skew
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.base import AttitudeEstimator
from inertial.estimators.gravity import GravityEstimator
from inertial.navigation.gravity import gravity_ned

logger = logging.getLogger(__name__)


def leveling_roll(fy: float, fz: float) -> float:
    """Roll angle from the specific force y/z components (radians)."""
    return float(np.arctan2(-fy, -fz))


def leveling_pitch(fx: float, fy: float, fz: float) -> float:
    """Pitch angle from the specific force components (radians)."""
    return float(np.arctan(fx / np.sqrt(fy * fy + fz * fz)))


class LevelingEstimator(AttitudeEstimator):
    """
    Tilt-only attitude from a GravityEstimator.

    The listener receives
    ``(estimator, attitude, roll, pitch, transformation)`` where roll and
    pitch are those of the published attitude (None when
    estimate_euler_angles is False) and transformation maps NED to BODY
    (None when disabled or invalid).

    Args:
        gravity_estimator: Source of gravity samples. Its listener slot is
            taken over by this estimator.
        listener: Leveling callback.
        gravity_listener: Receives each gravity estimation
            ``(estimator, fx, fy, fz, timestamp)`` before it is leveled.
        **kwargs: AttitudeEstimator options (display orientation, outputs).
    """

    def __init__(
        self,
        gravity_estimator: GravityEstimator,
        listener: Optional[Callable] = None,
        gravity_listener: Optional[Callable] = None,
        **kwargs,
    ):
        super().__init__(**kwargs)
        self.gravity_estimator = gravity_estimator
        self.listener = listener
        self.gravity_listener = gravity_listener
        gravity_estimator.listener = self._on_gravity

    @property
    def running(self) -> bool:
        return self.gravity_estimator.running

    def start(self) -> bool:
        """
        Start the gravity estimator.

        Raises:
            EstimatorStateError: If already running.
        """
        if self.running:
            raise EstimatorStateError("leveling estimator is already running")
        return self.gravity_estimator.start()

    def stop(self) -> None:
        self.gravity_estimator.stop()

    def _on_gravity(
        self, estimator: GravityEstimator, fx: float, fy: float, fz: float, timestamp: int
    ) -> None:
        if self.gravity_listener is not None:
            self.gravity_listener(estimator, fx, fy, fz, timestamp)

        self._level(fx, fy, fz, self.attitude)
        self._post_process(self.attitude)

        euler, transformation = self._derive_outputs(self.attitude)
        roll = float(euler[0]) if euler is not None else None
        pitch = float(euler[1]) if euler is not None else None

        if self.listener is not None:
            self.listener(self, self.attitude, roll, pitch, transformation)

    def _level(
        self, fx: float, fy: float, fz: float, out: NDArray[np.float64]
    ) -> None:
        euler_to_quat(leveling_roll(fy, fz), leveling_pitch(fx, fy, fz), 0.0, out=out)


class AccurateLevelingEstimator(LevelingEstimator):
    """
    Leveling against the true gravity direction at ``location``.

    Raises:
        EstimatorStateError: If location is None.
    """

    def __init__(
        self,
        gravity_estimator: GravityEstimator,
        location: GeodeticLocation,
        listener: Optional[Callable] = None,
        gravity_listener: Optional[Callable] = None,
        **kwargs,
    ):
        if location is None:
            raise EstimatorStateError("accurate leveling requires a location")
        super().__init__(gravity_estimator, listener, gravity_listener, **kwargs)
        self._location = location

    @property
    def location(self) -> GeodeticLocation:
        return self._location

    @location.setter
    def location(self, value: GeodeticLocation) -> None:
        self._check_not_running("change location")
        if value is None:
            raise EstimatorStateError("accurate leveling requires a location")
        self._location = value

    def _level(
        self, fx: float, fy: float, fz: float, out: NDArray[np.float64]
    ) -> None:
        f = np.array([fx, fy, fz])
        norm_f = f / np.linalg.norm(f)
        g = -gravity_ned(self._location.latitude, self._location.height)
        norm_g = g / np.linalg.norm(g)

        cos_alpha = float(np.dot(norm_f, norm_g))
        axis = skew(norm_g) @ norm_f
        sin_alpha = float(np.linalg.norm(axis))
        alpha = np.arctan2(sin_alpha, cos_alpha)

        if sin_alpha == 0.0:
            # Parallel (identity) or antiparallel (half turn about x)
            axis = np.array([1.0, 0.0, 0.0])
        quat_from_axis_angle(axis, -alpha, out=out)
