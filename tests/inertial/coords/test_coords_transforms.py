"""
Unit tests for inertial/coords/transforms.py.

Tests cover:
    - LLH <-> ECEF on the WGS84 ellipsoid (known points and round trip)
    - NED -> ECEF rotation axes
    - ENU -> NED triad swap
    - GeodeticLocation validation and degree constructor

Reference: Groves (2013), Section 2.4

Run with: pytest tests/inertial/coords/test_coords_transforms.py -v
"""

import unittest

import numpy as np
import pytest

from inertial.coords.transforms import (
    WGS84_A,
    WGS84_B,
    GeodeticLocation,
    ecef_to_llh,
    enu_to_ned,
    llh_to_ecef,
    ned_to_ecef_rotation,
)


class TestLLHToECEF(unittest.TestCase):
    """Test cases for geodetic to ECEF conversion."""

    def test_equator_prime_meridian(self) -> None:
        """Test the point on the equator at longitude 0."""
        np.testing.assert_allclose(llh_to_ecef(0.0, 0.0, 0.0), [WGS84_A, 0.0, 0.0], atol=1e-6)

    def test_north_pole(self) -> None:
        """Test the north pole lies on the semi-minor axis."""
        np.testing.assert_allclose(
            llh_to_ecef(np.pi / 2, 0.0, 0.0), [0.0, 0.0, WGS84_B], atol=1e-6
        )

    def test_round_trip(self) -> None:
        """Test LLH -> ECEF -> LLH."""
        llh = np.array([np.deg2rad(-33.9), np.deg2rad(151.2), 45.0])

        result = ecef_to_llh(*llh_to_ecef(*llh))

        np.testing.assert_allclose(result[:2], llh[:2], atol=1e-11)
        self.assertAlmostEqual(result[2], llh[2], places=4)

    def test_pole_branch(self) -> None:
        """Test ECEF -> LLH on the polar axis."""
        result = ecef_to_llh(0.0, 0.0, -WGS84_B - 10.0)

        self.assertAlmostEqual(result[0], -np.pi / 2)
        self.assertAlmostEqual(result[2], 10.0, places=6)


class TestNEDToECEFRotation(unittest.TestCase):
    """Test cases for C_n^e."""

    def test_equator_axes(self) -> None:
        """Test NED axes at (0, 0): north = +z, east = +y, down = -x."""
        c_n_e = ned_to_ecef_rotation(0.0, 0.0)

        np.testing.assert_allclose(c_n_e @ [1.0, 0.0, 0.0], [0.0, 0.0, 1.0], atol=1e-12)
        np.testing.assert_allclose(c_n_e @ [0.0, 1.0, 0.0], [0.0, 1.0, 0.0], atol=1e-12)
        np.testing.assert_allclose(c_n_e @ [0.0, 0.0, 1.0], [-1.0, 0.0, 0.0], atol=1e-12)

    def test_orthonormal(self) -> None:
        """Test that C_n^e is a proper rotation."""
        c_n_e = ned_to_ecef_rotation(0.7, -1.2)

        np.testing.assert_allclose(c_n_e @ c_n_e.T, np.eye(3), atol=1e-12)
        self.assertAlmostEqual(float(np.linalg.det(c_n_e)), 1.0)


class TestENUToNED(unittest.TestCase):
    """Test cases for the device triad axis swap."""

    def test_swap(self) -> None:
        """Test (x, y, z) -> (y, x, -z)."""
        np.testing.assert_allclose(enu_to_ned(np.array([1.0, 2.0, 3.0])), [2.0, 1.0, -3.0])

    def test_shape(self) -> None:
        """Test that malformed triads are rejected."""
        with pytest.raises(ValueError, match="shape"):
            enu_to_ned(np.zeros(4))


class TestGeodeticLocation(unittest.TestCase):
    """Test cases for GeodeticLocation."""

    def test_from_degrees(self) -> None:
        """Test the degree constructor converts to radians."""
        location = GeodeticLocation.from_degrees(45.0, -90.0, 10.0)

        self.assertAlmostEqual(location.latitude, np.pi / 4)
        self.assertAlmostEqual(location.longitude, -np.pi / 2)
        self.assertEqual(location.height, 10.0)

    def test_to_ecef(self) -> None:
        """Test the ECEF position matches llh_to_ecef."""
        location = GeodeticLocation(0.5, 0.25, 100.0)

        np.testing.assert_allclose(location.to_ecef(), llh_to_ecef(0.5, 0.25, 100.0))

    def test_invalid_latitude(self) -> None:
        """Test that latitudes beyond the poles are rejected."""
        with pytest.raises(ValueError, match="latitude"):
            GeodeticLocation(2.0, 0.0)

    def test_non_finite(self) -> None:
        """Test that non-finite longitude or height are rejected."""
        with pytest.raises(ValueError, match="finite"):
            GeodeticLocation(0.0, np.inf)


if __name__ == "__main__":
    unittest.main()
