"""Coordinate frames, rotations and geodetic conversions.

This package provides the geometric building blocks used by the
navigator and the attitude estimators:
- Quaternion, rotation matrix and Euler angle conversions
- Frame-tagged coordinate transformations (BODY, NED, ECEF)
- NED and ECEF navigation frames and the converters between them
- LLH <-> ECEF conversions on the WGS84 ellipsoid

Reference: Groves (2013), Chapter 2 - Coordinate Frames, Kinematics and
the Earth
"""

from inertial.coords.frames import (
    CoordinateTransformation,
    ECEFFrame,
    FrameType,
    NEDFrame,
    ecef_to_ned_frame,
    ned_to_ecef_frame,
)
from inertial.coords.rotations import (
    euler_to_quat,
    euler_to_rotation_matrix,
    is_valid_rotation_matrix,
    quat_from_axis_angle,
    quat_from_rotation_vector,
    quat_inverse,
    quat_multiply,
    quat_normalize,
    quat_rotate,
    quat_rotation_angle,
    quat_slerp,
    quat_to_euler,
    quat_to_rotation_matrix,
    rotation_matrix_to_quat,
    skew,
)
from inertial.coords.transforms import (
    GeodeticLocation,
    ecef_to_llh,
    enu_to_ned,
    llh_to_ecef,
    ned_to_ecef_rotation,
)

__all__ = [
    # Frames
    "FrameType",
    "CoordinateTransformation",
    "NEDFrame",
    "ECEFFrame",
    "ned_to_ecef_frame",
    "ecef_to_ned_frame",
    # Transforms
    "GeodeticLocation",
    "llh_to_ecef",
    "ecef_to_llh",
    "ned_to_ecef_rotation",
    "enu_to_ned",
    # Rotations
    "skew",
    "euler_to_quat",
    "euler_to_rotation_matrix",
    "quat_to_euler",
    "quat_to_rotation_matrix",
    "rotation_matrix_to_quat",
    "quat_multiply",
    "quat_inverse",
    "quat_normalize",
    "quat_from_axis_angle",
    "quat_from_rotation_vector",
    "quat_rotation_angle",
    "quat_rotate",
    "quat_slerp",
    "is_valid_rotation_matrix",
]
