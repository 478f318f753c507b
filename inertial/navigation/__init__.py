"""Strapdown inertial navigation in the ECEF frame.

Modules:
    gravity: J2 ECEF gravity and Somigliana NED gravity models
    kinematics: BodyKinematics (specific force and angular rate)
    integration: RK4 quaternion kinematics step for gyroscope propagation
    navigator: ECEF mechanization (two equivalent formulations) and the
        inverse kinematics estimation
"""

from inertial.navigation.gravity import (
    EARTH_ROTATION_RATE,
    gravity_ecef,
    gravity_ned,
)
from inertial.navigation.integration import attitude_integration_step, omega_matrix
from inertial.navigation.kinematics import BodyKinematics
from inertial.navigation.navigator import (
    estimate_kinematics_ecef,
    navigate_ecef,
    navigate_ecef_exponential,
)

__all__ = [
    "EARTH_ROTATION_RATE",
    "gravity_ecef",
    "gravity_ned",
    "BodyKinematics",
    "omega_matrix",
    "attitude_integration_step",
    "navigate_ecef",
    "navigate_ecef_exponential",
    "estimate_kinematics_ecef",
]
