"""Sensor collaborators and magnetometer/geomagnetic helpers.

Modules:
    types: SensorSource interface, measurements, accuracy and display
        orientation helpers
    environment: Hard-iron compensation, magnetic heading and the World
        Magnetic Model lookup
"""

from inertial.sensors.environment import (
    MICROTESLA_TO_TESLA,
    AhrsWorldMagneticModel,
    WorldMagneticModel,
    compensate_hard_iron,
    magnetic_yaw,
)
from inertial.sensors.types import (
    DisplayOrientationProvider,
    ManualSensorSource,
    SensorAccuracy,
    SensorMeasurement,
    SensorSource,
    display_orientation_quaternion,
    natural_display_orientation,
)

__all__ = [
    # Types
    "SensorAccuracy",
    "SensorMeasurement",
    "SensorSource",
    "ManualSensorSource",
    "DisplayOrientationProvider",
    "display_orientation_quaternion",
    "natural_display_orientation",
    # Environment
    "MICROTESLA_TO_TESLA",
    "compensate_hard_iron",
    "magnetic_yaw",
    "WorldMagneticModel",
    "AhrsWorldMagneticModel",
]
