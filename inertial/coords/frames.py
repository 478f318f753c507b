"""Coordinate frame types, transformations and navigation frames.

This module defines the frames used by the navigator and the estimators:
- BODY: Sensor/device frame
- LOCAL_NAVIGATION: North-East-Down local tangent plane at the device
- ECEF: Earth-Centered Earth-Fixed Cartesian frame

A CoordinateTransformation tags a rotation matrix with its source and
destination frame types so that operations can reject transformations
between the wrong pair of frames. NEDFrame and ECEFFrame hold a full
navigation solution (position, velocity and body attitude).

Reference: Groves (2013), Section 2.1 - Coordinate Frames
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import numpy as np
from numpy.typing import NDArray

from inertial.coords.rotations import (
    DEFAULT_ROTATION_THRESHOLD,
    is_valid_rotation_matrix,
    quat_to_rotation_matrix,
    rotation_matrix_to_quat,
)
from inertial.coords.transforms import ecef_to_llh, llh_to_ecef, ned_to_ecef_rotation
from inertial.errors import InvalidFrameTransformationError, InvalidRotationMatrixError


class FrameType(Enum):
    """Enumeration of coordinate frame types.

    Attributes:
        BODY: Sensor/device body frame.
        LOCAL_NAVIGATION: North-East-Down local tangent plane frame.
        ECEF: Earth-Centered Earth-Fixed Cartesian frame.
    """

    BODY = "body"
    LOCAL_NAVIGATION = "ned"
    ECEF = "ecef"


class CoordinateTransformation:
    """Rotation between two coordinate frames.

    The matrix C maps coordinates expressed in the source frame into the
    destination frame: v_dst = C @ v_src.

    Args:
        source_type: Frame the transformation maps from.
        destination_type: Frame the transformation maps to.
        matrix: 3x3 rotation matrix. Identity when omitted.
        threshold: Tolerance used to validate the matrix.

    Raises:
        InvalidRotationMatrixError: If matrix is not a proper rotation.

    Example:
        >>> c = CoordinateTransformation(FrameType.BODY, FrameType.ECEF)
        >>> c.inverse().source_type
        <FrameType.ECEF: 'ecef'>
    """

    def __init__(
        self,
        source_type: FrameType,
        destination_type: FrameType,
        matrix: Optional[NDArray[np.float64]] = None,
        threshold: float = DEFAULT_ROTATION_THRESHOLD,
    ):
        self.source_type = source_type
        self.destination_type = destination_type
        self.threshold = threshold
        self._matrix = np.eye(3)
        if matrix is not None:
            self.matrix = matrix

    @property
    def matrix(self) -> NDArray[np.float64]:
        return self._matrix

    @matrix.setter
    def matrix(self, value: NDArray[np.float64]) -> None:
        value = np.asarray(value, dtype=np.float64)
        if not is_valid_rotation_matrix(value, self.threshold):
            raise InvalidRotationMatrixError(
                "matrix must be a 3x3 orthonormal matrix with determinant +1"
            )
        self._matrix = value.copy()

    @classmethod
    def from_quaternion(
        cls,
        q: NDArray[np.float64],
        source_type: FrameType,
        destination_type: FrameType,
    ) -> "CoordinateTransformation":
        """Build a transformation from a unit quaternion [qw, qx, qy, qz]."""
        return cls(source_type, destination_type, quat_to_rotation_matrix(q))

    def as_quaternion(self) -> NDArray[np.float64]:
        return rotation_matrix_to_quat(self._matrix)

    def inverse(self) -> "CoordinateTransformation":
        """Transformation mapping destination back to source."""
        return CoordinateTransformation(
            self.destination_type, self.source_type, self._matrix.T, self.threshold
        )

    def copy(self) -> "CoordinateTransformation":
        return CoordinateTransformation(
            self.source_type, self.destination_type, self._matrix, self.threshold
        )

    def copy_from(self, other: "CoordinateTransformation") -> None:
        """Overwrite this transformation with the contents of another."""
        self.source_type = other.source_type
        self.destination_type = other.destination_type
        self.threshold = other.threshold
        self._matrix = other._matrix.copy()

    def is_between(self, source_type: FrameType, destination_type: FrameType) -> bool:
        return (
            self.source_type == source_type
            and self.destination_type == destination_type
        )

    def equals(self, other: "CoordinateTransformation", threshold: float = 0.0) -> bool:
        """Compare frame types and matrices element-wise within threshold."""
        return self.is_between(other.source_type, other.destination_type) and bool(
            np.all(np.abs(self._matrix - other._matrix) <= threshold)
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CoordinateTransformation):
            return NotImplemented
        return self.equals(other)

    def __repr__(self) -> str:
        return (
            f"CoordinateTransformation({self.source_type.value}->"
            f"{self.destination_type.value}, matrix={self._matrix.tolist()})"
        )


def _body_to_ned() -> CoordinateTransformation:
    return CoordinateTransformation(FrameType.BODY, FrameType.LOCAL_NAVIGATION)


def _body_to_ecef() -> CoordinateTransformation:
    return CoordinateTransformation(FrameType.BODY, FrameType.ECEF)


@dataclass
class NEDFrame:
    """Navigation solution resolved in the local NED frame.

    Attributes:
        latitude: Latitude in radians.
        longitude: Longitude in radians.
        height: Height above the WGS84 ellipsoid in meters.
        velocity: Velocity [vn, ve, vd] in m/s.
        coordinate_transformation: Body-to-NED attitude.
    """

    latitude: float = 0.0
    longitude: float = 0.0
    height: float = 0.0
    velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    coordinate_transformation: CoordinateTransformation = field(
        default_factory=_body_to_ned
    )

    def __post_init__(self):
        self.velocity = np.asarray(self.velocity, dtype=np.float64)
        if self.velocity.shape != (3,):
            raise ValueError(f"velocity must have shape (3,), got {self.velocity.shape}")


@dataclass
class ECEFFrame:
    """Navigation solution resolved in the ECEF frame.

    Attributes:
        position: Position [x, y, z] in meters.
        velocity: Velocity [vx, vy, vz] in m/s.
        coordinate_transformation: Body-to-ECEF attitude. The frame types
            are checked by the operations that consume the frame.
    """

    position: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    velocity: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    coordinate_transformation: CoordinateTransformation = field(
        default_factory=_body_to_ecef
    )

    def __post_init__(self):
        self.position = np.asarray(self.position, dtype=np.float64)
        self.velocity = np.asarray(self.velocity, dtype=np.float64)
        if self.position.shape != (3,):
            raise ValueError(f"position must have shape (3,), got {self.position.shape}")
        if self.velocity.shape != (3,):
            raise ValueError(f"velocity must have shape (3,), got {self.velocity.shape}")

    @property
    def x(self) -> float:
        return float(self.position[0])

    @property
    def y(self) -> float:
        return float(self.position[1])

    @property
    def z(self) -> float:
        return float(self.position[2])

    def copy(self) -> "ECEFFrame":
        return ECEFFrame(
            self.position.copy(),
            self.velocity.copy(),
            self.coordinate_transformation.copy(),
        )

    def copy_from(self, other: "ECEFFrame") -> None:
        """Overwrite this frame in place with the contents of another."""
        self.position[:] = other.position
        self.velocity[:] = other.velocity
        self.coordinate_transformation.copy_from(other.coordinate_transformation)

    def equals(self, other: "ECEFFrame", threshold: float = 0.0) -> bool:
        return (
            bool(np.all(np.abs(self.position - other.position) <= threshold))
            and bool(np.all(np.abs(self.velocity - other.velocity) <= threshold))
            and self.coordinate_transformation.equals(
                other.coordinate_transformation, threshold
            )
        )


def ned_to_ecef_frame(ned_frame: NEDFrame) -> ECEFFrame:
    """Convert a NED frame into the equivalent ECEF frame.

    Raises:
        InvalidFrameTransformationError: If the NED attitude is not BODY->NED.

    Reference:
        Groves (2013), Eqs. (2.112), (2.152) and (2.154)
    """
    c_b_n = ned_frame.coordinate_transformation
    if not c_b_n.is_between(FrameType.BODY, FrameType.LOCAL_NAVIGATION):
        raise InvalidFrameTransformationError(
            "NED frame attitude must transform BODY to LOCAL_NAVIGATION"
        )

    c_n_e = ned_to_ecef_rotation(ned_frame.latitude, ned_frame.longitude)
    position = llh_to_ecef(ned_frame.latitude, ned_frame.longitude, ned_frame.height)
    c_b_e = CoordinateTransformation(
        FrameType.BODY, FrameType.ECEF, c_n_e @ c_b_n.matrix, c_b_n.threshold
    )
    return ECEFFrame(position, c_n_e @ ned_frame.velocity, c_b_e)


def ecef_to_ned_frame(ecef_frame: ECEFFrame) -> NEDFrame:
    """Convert an ECEF frame into the equivalent NED frame.

    Raises:
        InvalidFrameTransformationError: If the ECEF attitude is not BODY->ECEF.
    """
    c_b_e = ecef_frame.coordinate_transformation
    if not c_b_e.is_between(FrameType.BODY, FrameType.ECEF):
        raise InvalidFrameTransformationError(
            "ECEF frame attitude must transform BODY to ECEF"
        )

    lat, lon, height = ecef_to_llh(*ecef_frame.position)
    c_e_n = ned_to_ecef_rotation(lat, lon).T
    c_b_n = CoordinateTransformation(
        FrameType.BODY, FrameType.LOCAL_NAVIGATION, c_e_n @ c_b_e.matrix, c_b_e.threshold
    )
    return NEDFrame(float(lat), float(lon), float(height), c_e_n @ ecef_frame.velocity, c_b_n)
