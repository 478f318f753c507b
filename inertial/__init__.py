"""
inertial: attitude fusion and ECEF pose estimation from inertial sensors.

Subpackages:
    coords: Rotations, frame-tagged coordinate transformations, NED/ECEF
        frames and geodetic conversions
    navigation: Gravity models, body kinematics and ECEF strapdown
        navigation
    sensors: Sensor source interface, measurements and magnetometer helpers
    estimators: Gravity, leveling, gyroscope, geomagnetic, fused attitude
        and pose estimators
    utils: Shared numeric helpers

Reference: Groves, P. D. (2013). Principles of GNSS, Inertial, and
Multisensor Integrated Navigation Systems, 2nd ed. Artech House.
"""

from inertial.errors import (
    EstimatorStateError,
    InertialError,
    InvalidFrameTransformationError,
    InvalidRotationMatrixError,
)

__version__ = "0.1.0"

__all__ = [
    "InertialError",
    "EstimatorStateError",
    "InvalidFrameTransformationError",
    "InvalidRotationMatrixError",
    "__version__",
]
