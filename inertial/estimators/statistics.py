"""
Online (single-pass) accumulators for sensor noise characterisation.

RunningStatistics keeps mean and variance with Welford's algorithm so that
long acquisitions never store raw samples. TimeIntervalEstimator applies the
same accumulation to the intervals between consecutive timestamps, which
gives the average sampling period needed to convert a variance into a
power spectral density (PSD):

    PSD = σ² · Δt̄        [unit² · s]
    root PSD = sqrt(PSD)  [unit · sqrt(s)]
"""

from typing import Optional

import numpy as np


class RunningStatistics:
    """
    Welford accumulator of mean and sample variance.

    Args:
        max_samples: Optional cap on accepted samples. Samples added after
                     the cap is reached are ignored.

    Example:
        >>> stats = RunningStatistics()
        >>> for value in (9.80, 9.81, 9.82):
        ...     stats.add(value)
        >>> round(stats.mean, 2)
        9.81
    """

    def __init__(self, max_samples: Optional[int] = None):
        if max_samples is not None and max_samples <= 0:
            raise ValueError(f"max_samples must be positive, got {max_samples}")
        self.max_samples = max_samples
        self.reset()

    def reset(self) -> None:
        self.count = 0
        self.mean = 0.0
        self._m2 = 0.0

    def add(self, value: float) -> bool:
        """Accumulate a sample. Returns False if the cap was already reached."""
        if self.max_samples is not None and self.count >= self.max_samples:
            return False

        self.count += 1
        delta = value - self.mean
        self.mean += delta / self.count
        self._m2 += delta * (value - self.mean)
        return True

    @property
    def variance(self) -> float:
        """Unbiased sample variance (zero with fewer than two samples)."""
        if self.count < 2:
            return 0.0
        return max(self._m2 / (self.count - 1), 0.0)

    @property
    def standard_deviation(self) -> float:
        return float(np.sqrt(self.variance))

    def psd(self, time_interval: float) -> float:
        """Noise PSD for samples taken every ``time_interval`` seconds."""
        return self.variance * time_interval

    def root_psd(self, time_interval: float) -> float:
        return float(np.sqrt(self.psd(time_interval)))


class TimeIntervalEstimator:
    """
    Statistics of the intervals between consecutive timestamps.

    Args:
        max_samples: Optional cap on the number of timestamps processed.
                     None accumulates without limit.
    """

    def __init__(self, max_samples: Optional[int] = None):
        if max_samples is not None and max_samples <= 0:
            raise ValueError(f"max_samples must be positive, got {max_samples}")
        self.max_samples = max_samples
        self._intervals = RunningStatistics()
        self.reset()

    def reset(self) -> None:
        self._intervals.reset()
        self.number_of_processed_timestamps = 0
        self.first_timestamp: Optional[float] = None
        self.last_timestamp: Optional[float] = None

    def add_timestamp(self, timestamp: float) -> bool:
        """
        Add a timestamp in seconds.

        Returns:
            False if the cap was reached and the timestamp was ignored.
        """
        if (
            self.max_samples is not None
            and self.number_of_processed_timestamps >= self.max_samples
        ):
            return False

        if self.last_timestamp is None:
            self.first_timestamp = timestamp
        else:
            self._intervals.add(timestamp - self.last_timestamp)
        self.last_timestamp = timestamp
        self.number_of_processed_timestamps += 1
        return True

    @property
    def average_time_interval(self) -> float:
        return self._intervals.mean

    @property
    def time_interval_variance(self) -> float:
        return self._intervals.variance

    @property
    def time_interval_standard_deviation(self) -> float:
        return self._intervals.standard_deviation

    @property
    def elapsed_time(self) -> float:
        """Seconds between the first and the last processed timestamp."""
        if self.first_timestamp is None:
            return 0.0
        return self.last_timestamp - self.first_timestamp
