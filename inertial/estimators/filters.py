"""
Averaging filters that extract gravity from accelerometer triads.

An accelerometer measures gravity plus the device's own acceleration. When
no gravity sensor is available, gravity is approximated by averaging the
accelerometer over a time constant long enough to cancel user motion.

All filters share the same contract:
    - timestamps are in nanoseconds
    - the first sample only primes the filter: filter() returns False and
      the output stays at zero
    - a sample with the same timestamp as the previous one is rejected
      (returns False, output unchanged)
"""

from abc import ABC, abstractmethod
from collections import deque
from typing import Sequence, Tuple

import numpy as np
from numpy.typing import NDArray

NANOS_PER_SECOND = 1e9

DEFAULT_TIME_CONSTANT = 0.1  # [s]


class AveragingFilter(ABC):
    """
    Base class of the accelerometer averaging filters.

    Args:
        time_constant: Averaging time constant in seconds. Must be >= 0.
    """

    def __init__(self, time_constant: float = DEFAULT_TIME_CONSTANT):
        if time_constant < 0.0:
            raise ValueError(f"time_constant must be >= 0, got {time_constant}")
        self.time_constant = time_constant
        self.output = np.zeros(3)
        self.previous_timestamp = -1

    def reset(self) -> None:
        self.output[:] = 0.0
        self.previous_timestamp = -1

    def filter(
        self, values: Sequence[float], timestamp: int
    ) -> Tuple[bool, NDArray[np.float64]]:
        """
        Process one triad.

        Args:
            values: Input triad. Shape: (3,).
            timestamp: Sample time in nanoseconds.

        Returns:
            (accepted, output) where output is a copy of the filtered triad.
        """
        values = np.asarray(values, dtype=np.float64)
        if values.shape != (3,):
            raise ValueError(f"values must have shape (3,), got {values.shape}")

        if self.previous_timestamp < 0:
            self.previous_timestamp = timestamp
            return False, self.output.copy()

        time_interval = (timestamp - self.previous_timestamp) / NANOS_PER_SECOND
        if time_interval <= 0.0:
            return False, self.output.copy()

        self.previous_timestamp = timestamp
        self._process(values, time_interval)
        return True, self.output.copy()

    @abstractmethod
    def _process(self, values: NDArray[np.float64], time_interval: float) -> None:
        """Update ``self.output`` with a new sample."""


class LowPassAveragingFilter(AveragingFilter):
    """
    First order low-pass filter.

        α = τ / (τ + Δt)
        y_k = α · y_{k-1} + (1 - α) · x_k
    """

    def _process(self, values: NDArray[np.float64], time_interval: float) -> None:
        alpha = self.time_constant / (self.time_constant + time_interval)
        self.output *= alpha
        self.output += (1.0 - alpha) * values


class _WindowAveragingFilter(AveragingFilter):
    """Filter keeping the last round(τ / Δt) samples (at least one)."""

    def __init__(self, time_constant: float = DEFAULT_TIME_CONSTANT):
        super().__init__(time_constant)
        self.window = deque()

    def reset(self) -> None:
        super().reset()
        self.window.clear()

    def _process(self, values: NDArray[np.float64], time_interval: float) -> None:
        size = max(1, int(round(self.time_constant / time_interval)))
        self.window.append(values.copy())
        while len(self.window) > size:
            self.window.popleft()
        self.output[:] = self._average(np.array(self.window))

    @abstractmethod
    def _average(self, samples: NDArray[np.float64]) -> NDArray[np.float64]:
        pass


class MeanAveragingFilter(_WindowAveragingFilter):
    """Moving average over the time constant window."""

    def _average(self, samples: NDArray[np.float64]) -> NDArray[np.float64]:
        return samples.mean(axis=0)


class MedianAveragingFilter(_WindowAveragingFilter):
    """Moving median over the time constant window (robust to spikes)."""

    def _average(self, samples: NDArray[np.float64]) -> NDArray[np.float64]:
        return np.median(samples, axis=0)
