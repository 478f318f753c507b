"""
Sensor collaborator interfaces.

Estimators never talk to hardware directly. Each physical sensor
(accelerometer, gyroscope, magnetometer, gravity) is represented by a
SensorSource that can be started and stopped and that pushes timestamped
measurements to a single registered listener. The host application (or a
test) is responsible for delivering measurements one at a time on a single
thread.

Primary data structures:
    SensorAccuracy: Accuracy level reported with each measurement
    SensorMeasurement: Immutable (values, bias, timestamp, accuracy) sample
    SensorSource: Abstract start/stop source with listener slots
    ManualSensorSource: In-process source fed by explicit emit() calls

Display orientation:
    A DisplayOrientationProvider is any zero-argument callable returning the
    current screen rotation in degrees (0, 90, 180 or 270).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from inertial.coords.rotations import euler_to_quat

DisplayOrientationProvider = Callable[[], int]

DISPLAY_ROTATIONS = (0, 90, 180, 270)


class SensorAccuracy(Enum):
    """Accuracy level reported by a sensor."""

    UNRELIABLE = 0
    LOW = 1
    MEDIUM = 2
    HIGH = 3


@dataclass(frozen=True)
class SensorMeasurement:
    """
    Single timestamped sensor sample.

    Attributes:
        values: Measured triad. Shape: (3,). Units depend on the sensor
                (m/s² for accelerometer/gravity, rad/s for gyroscope,
                µT for magnetometer).
        timestamp: Sample time in nanoseconds (monotonic clock).
        bias: Optional bias estimate with the same shape/units as values.
        accuracy: Accuracy reported by the sensor.
    """

    values: NDArray[np.float64]
    timestamp: int
    bias: Optional[NDArray[np.float64]] = None
    accuracy: SensorAccuracy = SensorAccuracy.HIGH

    def __post_init__(self):
        values = np.asarray(self.values, dtype=np.float64)
        if values.shape != (3,):
            raise ValueError(f"values must have shape (3,), got {values.shape}")
        object.__setattr__(self, "values", values)

        if self.bias is not None:
            bias = np.asarray(self.bias, dtype=np.float64)
            if bias.shape != (3,):
                raise ValueError(f"bias must have shape (3,), got {bias.shape}")
            object.__setattr__(self, "bias", bias)

    def corrected(self) -> NDArray[np.float64]:
        """Values minus bias, or the raw values when no bias is present."""
        if self.bias is None:
            return self.values
        return self.values - self.bias


MeasurementListener = Callable[[SensorMeasurement], None]
AccuracyListener = Callable[[SensorAccuracy], None]


class SensorSource(ABC):
    """
    Abstract source of sensor measurements.

    Subclasses deliver samples by calling ``self.deliver(measurement)``
    while started. Consumers register themselves in the single-slot
    ``measurement_listener`` and ``accuracy_changed_listener`` attributes.
    """

    def __init__(self):
        self.measurement_listener: Optional[MeasurementListener] = None
        self.accuracy_changed_listener: Optional[AccuracyListener] = None

    @abstractmethod
    def start(self, delay: Optional[float] = None) -> bool:
        """Start delivering measurements.

        Args:
            delay: Optional sampling period hint in seconds.

        Returns:
            True if the source started, False if it is unavailable.
        """

    @abstractmethod
    def stop(self) -> None:
        """Stop delivering measurements. Safe to call when stopped."""

    def deliver(self, measurement: SensorMeasurement) -> None:
        if self.measurement_listener is not None:
            self.measurement_listener(measurement)

    def deliver_accuracy(self, accuracy: SensorAccuracy) -> None:
        if self.accuracy_changed_listener is not None:
            self.accuracy_changed_listener(accuracy)


class ManualSensorSource(SensorSource):
    """
    Sensor source driven explicitly by the caller.

    Measurements passed to ``emit`` are forwarded only while the source is
    started, mirroring a hardware sensor that is not registered.

    Args:
        available: Value returned by ``start()``. False simulates a missing
                   sensor.

    Example:
        >>> source = ManualSensorSource()
        >>> source.measurement_listener = lambda m: print(m.timestamp)
        >>> source.start()
        True
        >>> source.emit([0.0, 0.0, 9.81], timestamp=1_000_000)
        1000000
        True
    """

    def __init__(self, available: bool = True):
        super().__init__()
        self.available = available
        self.running = False
        self.start_count = 0
        self.stop_count = 0
        self.delay: Optional[float] = None

    def start(self, delay: Optional[float] = None) -> bool:
        self.start_count += 1
        self.delay = delay
        self.running = self.available
        return self.running

    def stop(self) -> None:
        self.stop_count += 1
        self.running = False

    def emit(
        self,
        values: Sequence[float],
        timestamp: int,
        bias: Optional[Sequence[float]] = None,
        accuracy: SensorAccuracy = SensorAccuracy.HIGH,
    ) -> bool:
        """Deliver a measurement. Returns False if the source is stopped."""
        if not self.running:
            return False
        self.deliver(SensorMeasurement(np.asarray(values), timestamp, bias, accuracy))
        return True

    def report_accuracy(self, accuracy: SensorAccuracy) -> None:
        self.deliver_accuracy(accuracy)


def natural_display_orientation() -> int:
    """Provider for a device shown in its natural orientation."""
    return 0


def display_orientation_quaternion(
    rotation_degrees: int,
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """
    Correction quaternion for a screen rotated by ``rotation_degrees``.

    The correction is a rotation of -rotation_degrees about the device z
    axis; it is right-multiplied onto device attitudes.

    Raises:
        ValueError: If the rotation is not 0, 90, 180 or 270 degrees.
    """
    if rotation_degrees not in DISPLAY_ROTATIONS:
        raise ValueError(
            f"display rotation must be one of {DISPLAY_ROTATIONS}, got {rotation_degrees}"
        )
    return euler_to_quat(0.0, 0.0, -np.deg2rad(rotation_degrees), out=out)
