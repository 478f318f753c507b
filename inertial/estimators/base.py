"""
Base class for attitude estimators.

Every attitude estimator in this package follows the same life cycle and
post-processing:

    start() -> bool      raises EstimatorStateError when already running
    stop()               always stops the underlying sources

After an attitude has been computed in the body-to-NED sense it is
combined with the display orientation correction (unless ignored),
normalized, inverted and normalized again, so that the published attitude
maps NED coordinates into the (display-corrected) device frame. Euler
angles and a NED->BODY coordinate transformation are then optionally
derived from it.

Estimators reuse their working quaternions across samples; the attitude
array handed to listeners is owned by the estimator and is overwritten on
the next sample, so listeners must copy it if they keep it.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional, Tuple

import numpy as np
from numpy.typing import NDArray

from inertial.coords.frames import CoordinateTransformation, FrameType
from inertial.coords.rotations import (
    quat_inverse,
    quat_multiply,
    quat_normalize,
    quat_to_euler,
)
from inertial.errors import EstimatorStateError, InvalidRotationMatrixError
from inertial.sensors.types import (
    DisplayOrientationProvider,
    display_orientation_quaternion,
    natural_display_orientation,
)

logger = logging.getLogger(__name__)


class AttitudeEstimator(ABC):
    """
    Common state and post-processing of attitude estimators.

    Args:
        display_orientation: Provider of the current screen rotation in
            degrees. Defaults to the natural orientation (0°).
        ignore_display_orientation: Skip the display correction.
        estimate_coordinate_transformation: Publish a NED->BODY
            CoordinateTransformation with each attitude.
        estimate_euler_angles: Publish roll/pitch/yaw with each attitude.
    """

    def __init__(
        self,
        display_orientation: DisplayOrientationProvider = natural_display_orientation,
        ignore_display_orientation: bool = False,
        estimate_coordinate_transformation: bool = True,
        estimate_euler_angles: bool = True,
    ):
        self.display_orientation = display_orientation
        self.ignore_display_orientation = ignore_display_orientation
        self.estimate_coordinate_transformation = estimate_coordinate_transformation
        self.estimate_euler_angles = estimate_euler_angles

        self.attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._display_attitude = np.array([1.0, 0.0, 0.0, 0.0])
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    @abstractmethod
    def start(self) -> bool:
        """Start the estimator and its sources."""

    @abstractmethod
    def stop(self) -> None:
        """Stop the estimator and its sources."""

    def _check_not_running(self, action: str) -> None:
        if self.running:
            raise EstimatorStateError(f"cannot {action} while running")

    def _post_process(self, attitude: NDArray[np.float64]) -> None:
        """Apply display correction and inversion to ``attitude`` in place."""
        if not self.ignore_display_orientation:
            display_orientation_quaternion(
                self.display_orientation(), out=self._display_attitude
            )
            quat_multiply(attitude, self._display_attitude, out=attitude)
            quat_normalize(attitude, out=attitude)

        quat_inverse(attitude, out=attitude)
        quat_normalize(attitude, out=attitude)

    def _derive_outputs(
        self, attitude: NDArray[np.float64]
    ) -> Tuple[Optional[NDArray[np.float64]], Optional[CoordinateTransformation]]:
        """Euler angles and coordinate transformation of ``attitude`` if enabled."""
        euler = quat_to_euler(attitude) if self.estimate_euler_angles else None

        transformation = None
        if self.estimate_coordinate_transformation:
            try:
                transformation = CoordinateTransformation.from_quaternion(
                    attitude, FrameType.LOCAL_NAVIGATION, FrameType.BODY
                )
            except InvalidRotationMatrixError:
                logger.debug("Attitude is not a valid rotation, transformation omitted")

        return euler, transformation
