"""
Unit tests for inertial/sensors/environment.py.

Tests cover:
    - Hard-iron compensation
    - Magnetic heading for level and tilted devices
    - Declination correction and angle wrapping
    - World Magnetic Model lookup through ahrs

Run with: pytest tests/inertial/sensors/test_sensors_environment.py -v
"""

import datetime
import unittest

import numpy as np
import pytest

from inertial.coords.rotations import euler_to_rotation_matrix
from inertial.coords.transforms import GeodeticLocation
from inertial.sensors.environment import (
    AhrsWorldMagneticModel,
    compensate_hard_iron,
    magnetic_yaw,
)


class TestCompensateHardIron(unittest.TestCase):
    """Test suite for hard-iron compensation."""

    def test_subtracts_offset(self) -> None:
        """Test the offset is subtracted component-wise."""
        result = compensate_hard_iron(np.array([30.0, -10.0, 45.0]), np.array([5.0, 5.0, 5.0]))

        np.testing.assert_allclose(result, [25.0, -15.0, 40.0])

    def test_none_offset_copies(self) -> None:
        """Test that no offset returns an independent copy."""
        raw = np.array([30.0, -10.0, 45.0])

        result = compensate_hard_iron(raw, None)
        result[0] = 0.0

        self.assertEqual(raw[0], 30.0)

    def test_shape_validation(self) -> None:
        """Test malformed inputs raise ValueError."""
        with pytest.raises(ValueError, match="mag_raw"):
            compensate_hard_iron(np.zeros(2), None)
        with pytest.raises(ValueError, match="offset"):
            compensate_hard_iron(np.zeros(3), np.zeros(4))


class TestMagneticYaw(unittest.TestCase):
    """Test suite for tilt-compensated heading."""

    # Earth field in NED (north, east, down), Tesla
    FIELD_NED = np.array([22e-6, 0.0, 40e-6])

    def _body_field(self, roll: float, pitch: float, yaw: float) -> np.ndarray:
        c_b_n = euler_to_rotation_matrix(roll, pitch, yaw)
        return c_b_n.T @ self.FIELD_NED

    def test_level_north(self) -> None:
        """Test a level device facing magnetic north has zero heading."""
        self.assertAlmostEqual(magnetic_yaw(self.FIELD_NED, 0.0, 0.0), 0.0)

    def test_level_headings(self) -> None:
        """Test headings of a level device over the full circle."""
        for yaw in (-2.5, -1.0, 0.5, 1.5, 3.0):
            with self.subTest(yaw=yaw):
                self.assertAlmostEqual(
                    magnetic_yaw(self._body_field(0.0, 0.0, yaw), 0.0, 0.0), yaw, places=10
                )

    def test_tilted_device(self) -> None:
        """Test tilt compensation recovers the heading."""
        roll, pitch, yaw = 0.3, -0.4, 2.0

        result = magnetic_yaw(self._body_field(roll, pitch, yaw), roll, pitch)

        self.assertAlmostEqual(result, yaw, places=10)

    def test_declination_wraps(self) -> None:
        """Test declination is added and the result wrapped to [-π, π]."""
        field = self._body_field(0.0, 0.0, 3.0)

        result = magnetic_yaw(field, 0.0, 0.0, declination=0.5)

        self.assertAlmostEqual(result, 3.5 - 2.0 * np.pi, places=10)

    def test_shape_validation(self) -> None:
        """Test malformed fields raise ValueError."""
        with pytest.raises(ValueError, match="shape"):
            magnetic_yaw(np.zeros(2), 0.0, 0.0)


class TestAhrsWorldMagneticModel(unittest.TestCase):
    """Test suite for the ahrs backed World Magnetic Model."""

    def test_declination_is_small_in_western_europe(self) -> None:
        """Test declination near Barcelona is a few degrees east at most."""
        model = AhrsWorldMagneticModel()
        location = GeodeticLocation.from_degrees(41.38, 2.17, 100.0)

        declination = model.declination(location, datetime.date(2022, 6, 1))

        self.assertTrue(np.isfinite(declination))
        self.assertLess(abs(declination), np.deg2rad(10.0))

    def test_accepts_datetime(self) -> None:
        """Test a datetime is reduced to its date."""
        model = AhrsWorldMagneticModel()
        location = GeodeticLocation.from_degrees(41.38, 2.17)

        a = model.declination(location, datetime.datetime(2022, 6, 1, 12, 30))
        b = model.declination(location, datetime.date(2022, 6, 1))

        self.assertAlmostEqual(a, b)


if __name__ == "__main__":
    unittest.main()
