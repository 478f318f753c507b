"""
Unit tests for inertial/estimators/pose.py.

Tests cover:
    - Rigid transformation between ECEF frames
    - Reference frame initialization from the first fused attitude
    - Pose steps and listener arguments
    - Construction requirements and life cycle

Run with: pytest tests/inertial/estimators/test_estimators_pose.py -v
"""

import unittest
from unittest.mock import Mock

import numpy as np
import pytest

from inertial.coords.frames import CoordinateTransformation, ECEFFrame, FrameType
from inertial.coords.rotations import euler_to_rotation_matrix
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.fused import FusedGeomagneticAttitudeEstimator
from inertial.estimators.pose import (
    EuclideanTransformation,
    PoseEstimator,
    compute_transformation,
)
from inertial.sensors.types import ManualSensorSource

G = 9.81
DT_NANOS = 20_000_000
LOCATION = GeodeticLocation.from_degrees(41.38, 2.17, 100.0)


def make_frame(position, roll=0.0, pitch=0.0, yaw=0.0) -> ECEFFrame:
    """ECEF frame at ``position`` with the given body-to-ECEF Euler angles."""
    transformation = CoordinateTransformation(
        FrameType.BODY, FrameType.ECEF, euler_to_rotation_matrix(roll, pitch, yaw)
    )
    return ECEFFrame(np.asarray(position, dtype=float), np.zeros(3), transformation)


class TestComputeTransformation(unittest.TestCase):
    """Test suite for compute_transformation."""

    def test_translation_only(self) -> None:
        """Test frames differing only in position give a pure translation."""
        start = make_frame([4.0e6, 1.0e5, 4.9e6], 0.1, 0.2, 0.3)
        end = make_frame([4.0e6 + 1.5, 1.0e5 - 2.0, 4.9e6 + 0.5], 0.1, 0.2, 0.3)

        transformation = compute_transformation(start, end)

        np.testing.assert_allclose(transformation.rotation, np.eye(3), atol=1e-12)
        np.testing.assert_allclose(
            transformation.apply(start.position), end.position, atol=1e-6
        )

    def test_rotation_and_translation(self) -> None:
        """Test the rotation is the attitude change and positions map exactly."""
        start = make_frame([1.0, 2.0, 3.0], 0.0, 0.0, 0.2)
        end = make_frame([-4.0, 5.0, 0.5], 0.3, -0.1, 1.2)

        transformation = compute_transformation(start, end)

        np.testing.assert_allclose(
            transformation.rotation @ start.coordinate_transformation.matrix,
            end.coordinate_transformation.matrix,
            atol=1e-12,
        )
        np.testing.assert_allclose(transformation.apply(start.position), end.position)

    def test_out_parameter(self) -> None:
        """Test the result can be written into an existing transformation."""
        out = EuclideanTransformation()

        result = compute_transformation(make_frame([0.0, 0.0, 0.0]), make_frame([1.0, 0.0, 0.0]), out)

        self.assertIs(result, out)
        np.testing.assert_allclose(out.translation, [1.0, 0.0, 0.0])

    def test_as_matrix(self) -> None:
        """Test the homogeneous matrix layout."""
        transformation = EuclideanTransformation(
            euler_to_rotation_matrix(0.0, 0.0, 0.5), np.array([1.0, 2.0, 3.0])
        )

        matrix = transformation.as_matrix()

        np.testing.assert_allclose(matrix[:3, :3], transformation.rotation)
        np.testing.assert_allclose(matrix[:3, 3], [1.0, 2.0, 3.0])
        np.testing.assert_allclose(matrix[3], [0.0, 0.0, 0.0, 1.0])


class PoseTestCase(unittest.TestCase):
    """Sources and stepping shared by the pose estimator tests."""

    def setUp(self) -> None:
        self.gyroscope = ManualSensorSource()
        self.magnetometer = ManualSensorSource()
        self.accelerometer = ManualSensorSource()
        self.step_index = 0

    def _fused(self, **kwargs) -> FusedGeomagneticAttitudeEstimator:
        return FusedGeomagneticAttitudeEstimator(
            self.magnetometer,
            self.gyroscope,
            accelerometer_source=self.accelerometer,
            use_accelerometer=True,
            **kwargs,
        )

    def _step(self, heading: float = 0.0) -> None:
        timestamp = self.step_index * DT_NANOS
        self.gyroscope.emit([0.0, 0.0, 0.0], timestamp)
        self.magnetometer.emit([20.0 * np.cos(heading), -20.0 * np.sin(heading), -40.0], timestamp)
        self.accelerometer.emit([0.0, 0.0, G], timestamp)
        self.step_index += 1


class TestPoseEstimator(PoseTestCase):
    """Test suite for PoseEstimator."""

    def test_requires_accelerometer(self) -> None:
        """Test a gravity sensor based attitude estimator is rejected."""
        fused = FusedGeomagneticAttitudeEstimator(
            self.magnetometer, self.gyroscope, ManualSensorSource()
        )

        with pytest.raises(ValueError, match="accelerometer"):
            PoseEstimator(fused, LOCATION)

    def test_requires_location(self) -> None:
        """Test a location is required at construction and afterwards."""
        with pytest.raises(ValueError, match="location"):
            PoseEstimator(self._fused(), None)

        estimator = PoseEstimator(self._fused(), LOCATION)
        with pytest.raises(ValueError, match="location"):
            estimator.location = None

    def test_configures_attitude_estimator(self) -> None:
        """Test the fused estimator is set up for pose estimation."""
        fused = self._fused(estimate_coordinate_transformation=False)

        PoseEstimator(fused, LOCATION)

        self.assertIs(fused.location, LOCATION)
        self.assertTrue(fused.estimate_coordinate_transformation)
        self.assertIsNotNone(fused.accelerometer_measurement_listener)
        self.assertIsNotNone(fused.gyroscope_measurement_listener)
        self.assertIsNotNone(fused.gravity_estimation_listener)

    def test_initialization(self) -> None:
        """Test the first fused attitude fixes the reference frame silently."""
        listener = Mock()
        estimator = PoseEstimator(
            self._fused(), LOCATION, initial_velocity=[1.0, 0.0, 0.0], listener=listener
        )
        self.assertTrue(estimator.start())

        for _ in range(3):
            self._step()

        self.assertTrue(estimator.initialized)
        listener.assert_not_called()
        np.testing.assert_allclose(
            estimator.initial_frame.position, LOCATION.to_ecef(), atol=1e-6
        )
        self.assertAlmostEqual(float(np.linalg.norm(estimator.initial_frame.velocity)), 1.0)
        self.assertTrue(
            estimator.initial_frame.coordinate_transformation.is_between(
                FrameType.BODY, FrameType.ECEF
            )
        )
        np.testing.assert_allclose(
            estimator.previous_frame.position, estimator.initial_frame.position
        )

    def test_pose_step(self) -> None:
        """Test each later attitude advances the frame and notifies."""
        listener = Mock()
        estimator = PoseEstimator(
            self._fused(),
            LOCATION,
            estimate_initial_transformation=True,
            listener=listener,
        )
        estimator.start()

        for _ in range(4):
            self._step()

        listener.assert_called_once()
        (
            source,
            current,
            previous,
            initial,
            current_attitude,
            previous_attitude,
            initial_attitude,
            timestamp,
            initial_transformation,
            previous_transformation,
        ) = listener.call_args[0]
        self.assertIs(source, estimator)
        self.assertIs(current, estimator.current_frame)
        self.assertIs(initial, estimator.initial_frame)
        self.assertIs(initial_attitude, estimator.initial_attitude)
        self.assertIs(previous_attitude, estimator.previous_attitude)
        np.testing.assert_allclose(
            current_attitude, estimator.attitude_estimator.attitude, atol=1e-12
        )
        np.testing.assert_allclose(previous_attitude, current_attitude, atol=1e-12)
        self.assertEqual(timestamp, 3 * DT_NANOS)
        self.assertIsNotNone(initial_transformation)
        self.assertIsNotNone(previous_transformation)
        np.testing.assert_allclose(
            initial_transformation.apply(initial.position), current.position, atol=1e-6
        )
        # A 20 ms step cannot move the device more than a few centimeters
        self.assertLess(
            float(np.linalg.norm(current.position - initial.position)), 0.1
        )
        np.testing.assert_allclose(
            estimator.previous_frame.position, estimator.current_frame.position
        )

    def test_attitudes_tracked(self) -> None:
        """Test the listener receives current, previous and initial attitudes."""
        calls = []

        def record(estimator, current, previous, initial, attitude, previous_attitude,
                   initial_attitude, timestamp, initial_t, previous_t):
            calls.append((attitude.copy(), previous_attitude.copy(), initial_attitude.copy()))

        estimator = PoseEstimator(self._fused(), LOCATION, listener=record)
        estimator.start()

        for _ in range(3):
            self._step()
        bootstrap_attitude = estimator.initial_attitude.copy()
        self._step(0.5)
        self._step(0.5)

        self.assertEqual(len(calls), 2)
        first, second = calls
        np.testing.assert_allclose(first[1], bootstrap_attitude)
        np.testing.assert_allclose(first[2], bootstrap_attitude)
        self.assertGreater(float(np.linalg.norm(first[0] - first[1])), 1e-6)
        np.testing.assert_allclose(second[1], first[0])
        np.testing.assert_allclose(second[2], bootstrap_attitude)
        np.testing.assert_allclose(estimator.previous_attitude, second[0])

    def test_transformations_disabled(self) -> None:
        """Test transformations are None when not requested."""
        listener = Mock()
        estimator = PoseEstimator(
            self._fused(),
            LOCATION,
            estimate_previous_transformation=False,
            listener=listener,
        )
        estimator.start()

        for _ in range(4):
            self._step()

        args = listener.call_args[0]
        self.assertIsNone(args[8])
        self.assertIsNone(args[9])

    def test_restart_reinitializes(self) -> None:
        """Test a restart establishes a new reference frame."""
        listener = Mock()
        estimator = PoseEstimator(self._fused(), LOCATION, listener=listener)
        estimator.start()
        for _ in range(4):
            self._step()
        estimator.stop()

        self.assertFalse(estimator.running)
        self.assertTrue(estimator.start())
        self.assertFalse(estimator.initialized)

    def test_start_twice(self) -> None:
        """Test starting a running estimator raises."""
        estimator = PoseEstimator(self._fused(), LOCATION)
        estimator.start()

        with pytest.raises(EstimatorStateError, match="already running"):
            estimator.start()
        self.assertEqual(self.gyroscope.start_count, 1)
        self.assertEqual(self.magnetometer.start_count, 1)
        self.assertEqual(self.accelerometer.start_count, 1)

    def test_unavailable_sensor(self) -> None:
        """Test start returns False when a sensor is missing."""
        fused = FusedGeomagneticAttitudeEstimator(
            self.magnetometer,
            ManualSensorSource(available=False),
            accelerometer_source=self.accelerometer,
            use_accelerometer=True,
        )
        estimator = PoseEstimator(fused, LOCATION)

        self.assertFalse(estimator.start())
        self.assertFalse(estimator.running)
        self.assertFalse(self.accelerometer.running)


if __name__ == "__main__":
    unittest.main()
