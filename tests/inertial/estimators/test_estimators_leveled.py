"""
Unit tests for inertial/estimators/leveled.py.

Tests cover:
    - First leveled attitude taken from leveling with gyroscope yaw
    - Yaw following the gyroscope on a level device
    - Roll and pitch pulled back to leveling
    - Life cycle, configuration gates and forwarding

Run with: pytest tests/inertial/estimators/test_estimators_leveled.py -v
"""

import unittest
from typing import List
from unittest.mock import Mock

import numpy as np
import pytest

from inertial.coords.rotations import euler_to_quat, quat_inverse
from inertial.coords.transforms import GeodeticLocation
from inertial.errors import EstimatorStateError
from inertial.estimators.fused import FusionParameters
from inertial.estimators.leveled import LeveledRelativeAttitudeEstimator
from inertial.estimators.leveling import AccurateLevelingEstimator
from inertial.sensors.types import ManualSensorSource

G = 9.81
DT_NANOS = 20_000_000
DT = 0.02


def gravity_reading(roll: float, pitch: float) -> List[float]:
    """Gravity sensor reading of a device at rest with the given tilt."""
    sr, cr = np.sin(roll), np.cos(roll)
    sp, cp = np.sin(pitch), np.cos(pitch)
    return [-G * sp, G * cp * sr, G * cp * cr]


class AttitudeRecorder:
    """Listener keeping a copy of every published attitude."""

    def __init__(self):
        self.attitudes = []
        self.yaws = []

    def __call__(self, estimator, attitude, roll, pitch, yaw, transformation) -> None:
        self.attitudes.append(attitude.copy())
        self.yaws.append(yaw)


class TestLeveledRelativeAttitudeEstimator(unittest.TestCase):
    """Test suite for LeveledRelativeAttitudeEstimator."""

    def setUp(self) -> None:
        self.gyroscope = ManualSensorSource()
        self.gravity = ManualSensorSource()
        self.recorder = AttitudeRecorder()
        self.step_index = 0

    def _estimator(self, **kwargs) -> LeveledRelativeAttitudeEstimator:
        estimator = LeveledRelativeAttitudeEstimator(
            self.gyroscope, self.gravity, listener=self.recorder, **kwargs
        )
        self.assertTrue(estimator.start())
        return estimator

    def _step(self, roll=0.0, pitch=0.0, rate=(0.0, 0.0, 0.0)) -> None:
        timestamp = self.step_index * DT_NANOS
        self.gyroscope.emit(rate, timestamp)
        self.gravity.emit(gravity_reading(roll, pitch), timestamp)
        self.step_index += 1

    def test_tilted_device(self) -> None:
        """Test a still tilted device publishes the leveling attitude."""
        estimator = self._estimator()

        self._step(0.2, -0.1)
        self._step(0.2, -0.1)
        self.assertEqual(self.recorder.attitudes, [])
        self.assertEqual(estimator.panic_counter, 0)

        self._step(0.2, -0.1)

        self.assertEqual(len(self.recorder.attitudes), 1)
        expected = quat_inverse(euler_to_quat(0.2, -0.1, 0.0))
        self.assertAlmostEqual(abs(float(np.dot(self.recorder.attitudes[0], expected))), 1.0)

    def test_yaw_follows_gyroscope(self) -> None:
        """Test a level device turning about z publishes the integrated yaw."""
        rate = 0.5
        self._estimator(ignore_display_orientation=True)

        for _ in range(5):
            self._step(rate=(0.0, 0.0, rate))

        self.assertEqual(len(self.recorder.yaws), 3)
        self.assertAlmostEqual(self.recorder.yaws[-1], -4 * rate * DT, places=9)

    def test_roll_pulled_to_leveling(self) -> None:
        """Test a full slerp removes gyroscope roll on a level device."""
        self._estimator(
            parameters=FusionParameters(use_indirect_interpolation=False, interpolation_value=1.0)
        )

        for _ in range(6):
            self._step(rate=(0.3, 0.0, 0.0))

        self.assertAlmostEqual(
            abs(float(np.dot(self.recorder.attitudes[-1], [1.0, 0.0, 0.0, 0.0]))), 1.0
        )

    def test_leveling_waits_for_gyroscope(self) -> None:
        """Test gravity samples before any gyroscope sample are dropped."""
        self._estimator()

        self.gravity.emit(gravity_reading(0.0, 0.0), 0)
        self.gravity.emit(gravity_reading(0.0, 0.0), DT_NANOS)

        self.assertEqual(self.recorder.attitudes, [])

    def test_accurate_relative_gyroscope(self) -> None:
        """Test the RK4 switch reaches the gyroscope estimator and is gated."""
        estimator = self._estimator(use_accurate_relative_gyroscope=True)

        self.assertTrue(estimator.relative_estimator.use_accurate_integration)
        with pytest.raises(EstimatorStateError, match="running"):
            estimator.use_accurate_relative_gyroscope = False

        estimator.stop()
        estimator.use_accurate_relative_gyroscope = False
        self.assertFalse(estimator.relative_estimator.use_accurate_integration)

    def test_accurate_leveling_requires_location(self) -> None:
        """Test accurate leveling cannot be enabled without a location."""
        with pytest.raises(EstimatorStateError, match="location"):
            LeveledRelativeAttitudeEstimator(
                self.gyroscope, self.gravity, use_accurate_leveling=True
            )

        estimator = LeveledRelativeAttitudeEstimator(self.gyroscope, self.gravity)
        with pytest.raises(EstimatorStateError, match="location"):
            estimator.use_accurate_leveling = True

        estimator.location = GeodeticLocation(0.0, 0.0)
        estimator.use_accurate_leveling = True
        self.assertIsInstance(estimator.leveling_estimator, AccurateLevelingEstimator)

    def test_location_while_running(self) -> None:
        """Test the location cannot be cleared while running."""
        location = GeodeticLocation.from_degrees(41.38, 2.17)
        estimator = self._estimator(location=location, use_accurate_leveling=True)

        with pytest.raises(EstimatorStateError, match="running"):
            estimator.location = None
        self.assertIs(estimator.location, location)

    def test_gravity_forwarding(self) -> None:
        """Test gravity estimations reach the forwarding listener."""
        estimator = self._estimator()
        hook = Mock()
        estimator.gravity_estimation_listener = hook

        self._step()

        hook.assert_called_once()
        self.assertEqual(hook.call_args[0][1:], (0.0, 0.0, -G, 0))

    def test_start_twice(self) -> None:
        """Test starting a running estimator raises without restarting sensors."""
        estimator = self._estimator()

        with pytest.raises(EstimatorStateError, match="already running"):
            estimator.start()
        self.assertEqual(self.gyroscope.start_count, 1)
        self.assertEqual(self.gravity.start_count, 1)

    def test_missing_gyroscope(self) -> None:
        """Test a missing gyroscope stops the gravity sensor."""
        estimator = LeveledRelativeAttitudeEstimator(
            ManualSensorSource(available=False), self.gravity
        )

        self.assertFalse(estimator.start())
        self.assertFalse(estimator.running)
        self.assertFalse(self.gravity.running)

    def test_restart_resets_fusion(self) -> None:
        """Test a restart begins again from the leveling attitude."""
        estimator = self._estimator()
        for _ in range(3):
            self._step()
        estimator.stop()

        self.assertTrue(estimator.start())
        self.assertEqual(estimator.panic_counter, estimator.parameters.panic_counter_threshold)
        self.assertFalse(estimator.use_accelerometer)


if __name__ == "__main__":
    unittest.main()
