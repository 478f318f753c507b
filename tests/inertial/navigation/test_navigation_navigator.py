"""
Unit tests for inertial/navigation/navigator.py.

Tests cover:
    - Equivalence of the Rodrigues and exponential mechanizations
    - Frame type and time interval validation
    - In-place propagation (out aliasing the input frame)
    - Kinematics estimation as the inverse of navigation
    - Stationary device: static kinematics keep the frame at rest

Reference: Groves (2013), Section 5.2

Run with: pytest tests/inertial/navigation/test_navigation_navigator.py -v
"""

import unittest

import numpy as np
import pytest

from inertial.coords.frames import CoordinateTransformation, ECEFFrame, FrameType
from inertial.coords.rotations import euler_to_rotation_matrix
from inertial.coords.transforms import llh_to_ecef, ned_to_ecef_rotation
from inertial.errors import InvalidFrameTransformationError
from inertial.navigation.gravity import EARTH_ROTATION_RATE
from inertial.navigation.kinematics import BodyKinematics
from inertial.navigation.navigator import (
    estimate_kinematics_ecef,
    navigate_ecef,
    navigate_ecef_exponential,
)


def make_frame(
    lat_deg: float = 41.38,
    lon_deg: float = 2.17,
    height: float = 50.0,
    velocity_ned=(1.0, -0.5, 0.1),
    euler=(0.1, -0.05, 0.8),
) -> ECEFFrame:
    """Build a BODY->ECEF frame from geodetic position and NED attitude."""
    lat = np.deg2rad(lat_deg)
    lon = np.deg2rad(lon_deg)
    c_n_e = ned_to_ecef_rotation(lat, lon)
    c_b_e = c_n_e @ euler_to_rotation_matrix(*euler)
    return ECEFFrame(
        llh_to_ecef(lat, lon, height),
        c_n_e @ np.asarray(velocity_ned, dtype=float),
        CoordinateTransformation(FrameType.BODY, FrameType.ECEF, c_b_e),
    )


class TestNavigatorEquivalence(unittest.TestCase):
    """Test that both mechanizations agree."""

    def _assert_frames_close(self, a: ECEFFrame, b: ECEFFrame) -> None:
        np.testing.assert_allclose(a.position, b.position, atol=1e-6)
        np.testing.assert_allclose(a.velocity, b.velocity, atol=1e-9)
        np.testing.assert_allclose(
            a.coordinate_transformation.matrix, b.coordinate_transformation.matrix, atol=1e-12
        )

    def test_rotating_and_accelerating(self) -> None:
        """Test agreement for a general motion."""
        frame = make_frame()
        kinematics = BodyKinematics(
            np.array([0.3, -0.2, -9.6]), np.array([0.05, -0.02, 0.3])
        )

        for dt in (0.005, 0.02, 0.1):
            with self.subTest(dt=dt):
                self._assert_frames_close(
                    navigate_ecef(dt, frame, kinematics),
                    navigate_ecef_exponential(dt, frame, kinematics),
                )

    def test_zero_rotation(self) -> None:
        """Test agreement when the angular rate is zero (small angle branch)."""
        frame = make_frame(lat_deg=-10.0, lon_deg=120.0)
        kinematics = BodyKinematics(np.array([0.0, 0.0, -9.8]), np.zeros(3))

        self._assert_frames_close(
            navigate_ecef(0.02, frame, kinematics),
            navigate_ecef_exponential(0.02, frame, kinematics),
        )

    def test_long_sequence(self) -> None:
        """Test the mechanizations stay together over many steps."""
        frame_a = make_frame()
        frame_b = make_frame()
        kinematics = BodyKinematics(
            np.array([0.1, 0.1, -9.8]), np.array([0.01, 0.02, -0.03])
        )

        for _ in range(50):
            navigate_ecef(0.02, frame_a, kinematics, out=frame_a)
            navigate_ecef_exponential(0.02, frame_b, kinematics, out=frame_b)

        self._assert_frames_close(frame_a, frame_b)


class TestNavigatorValidation(unittest.TestCase):
    """Test input validation."""

    def test_body_to_body_rejected(self) -> None:
        """Test that a BODY->BODY transformation raises."""
        frame = ECEFFrame(
            llh_to_ecef(0.0, 0.0, 0.0),
            np.zeros(3),
            CoordinateTransformation(FrameType.BODY, FrameType.BODY),
        )

        for navigate in (navigate_ecef, navigate_ecef_exponential):
            with self.subTest(navigate=navigate.__name__):
                with pytest.raises(InvalidFrameTransformationError, match="BODY to ECEF"):
                    navigate(0.02, frame, BodyKinematics())

    def test_non_positive_interval(self) -> None:
        """Test that zero or negative intervals raise ValueError."""
        frame = make_frame()

        for navigate in (navigate_ecef, navigate_ecef_exponential):
            with pytest.raises(ValueError, match="time_interval"):
                navigate(0.0, frame, BodyKinematics())
            with pytest.raises(ValueError, match="time_interval"):
                navigate(-1.0, frame, BodyKinematics())

    def test_out_receives_result(self) -> None:
        """Test that out is the returned object and may be the input frame."""
        frame = make_frame()
        expected = navigate_ecef(0.02, frame, BodyKinematics(np.array([0.0, 0.0, -9.8])))

        result = navigate_ecef(0.02, frame, BodyKinematics(np.array([0.0, 0.0, -9.8])), out=frame)

        self.assertIs(result, frame)
        self.assertTrue(result.equals(expected, 1e-12))


class TestKinematicsEstimation(unittest.TestCase):
    """Test estimate_kinematics_ecef."""

    def test_inverse_of_navigation(self) -> None:
        """Test that the estimated kinematics reproduce the applied ones."""
        frame = make_frame()
        kinematics = BodyKinematics(
            np.array([0.4, -0.3, -9.7]), np.array([0.02, 0.1, -0.05])
        )
        dt = 0.02

        new_frame = navigate_ecef(dt, frame, kinematics)
        estimated = estimate_kinematics_ecef(
            dt,
            new_frame.coordinate_transformation.matrix,
            frame.coordinate_transformation.matrix,
            new_frame.velocity,
            frame.velocity,
            frame.position,
        )

        np.testing.assert_allclose(estimated.specific_force, kinematics.specific_force, atol=1e-6)
        np.testing.assert_allclose(estimated.angular_rate, kinematics.angular_rate, atol=1e-8)

    def test_stationary_device(self) -> None:
        """Test a device at rest senses gravity and the Earth rotation rate."""
        frame = make_frame(velocity_ned=(0.0, 0.0, 0.0))
        c_b_e = frame.coordinate_transformation.matrix

        static = estimate_kinematics_ecef(
            0.02, c_b_e, c_b_e, frame.velocity, frame.velocity, frame.position
        )

        self.assertAlmostEqual(float(np.linalg.norm(static.specific_force)), 9.80, delta=0.03)
        self.assertAlmostEqual(
            float(np.linalg.norm(static.angular_rate)), EARTH_ROTATION_RATE, delta=1e-9
        )

    def test_static_kinematics_keep_frame_still(self) -> None:
        """Test navigating with static kinematics leaves the device in place."""
        frame = make_frame(velocity_ned=(0.0, 0.0, 0.0))
        c_b_e = frame.coordinate_transformation.matrix
        static = estimate_kinematics_ecef(
            0.02, c_b_e, c_b_e, frame.velocity, frame.velocity, frame.position
        )

        new_frame = navigate_ecef(0.02, frame, static)

        np.testing.assert_allclose(new_frame.position, frame.position, atol=1e-6)
        np.testing.assert_allclose(new_frame.velocity, np.zeros(3), atol=1e-9)
        np.testing.assert_allclose(new_frame.coordinate_transformation.matrix, c_b_e, atol=1e-9)

    def test_non_positive_interval(self) -> None:
        """Test that a non-positive interval gives zero kinematics."""
        frame = make_frame()
        c_b_e = frame.coordinate_transformation.matrix

        result = estimate_kinematics_ecef(
            0.0, c_b_e, c_b_e, frame.velocity, frame.velocity, frame.position
        )

        np.testing.assert_allclose(result.specific_force, np.zeros(3))
        np.testing.assert_allclose(result.angular_rate, np.zeros(3))


if __name__ == "__main__":
    unittest.main()
