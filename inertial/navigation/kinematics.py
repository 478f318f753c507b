"""Body kinematics: specific force and angular rate resolved in body axes."""

from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np
from numpy.typing import NDArray


def _corrected(values: Sequence[float], bias: Optional[Sequence[float]]) -> NDArray[np.float64]:
    values = np.asarray(values, dtype=np.float64)
    if values.shape != (3,):
        raise ValueError(f"values must have shape (3,), got {values.shape}")
    if bias is None:
        return values
    bias = np.asarray(bias, dtype=np.float64)
    if bias.shape != (3,):
        raise ValueError(f"bias must have shape (3,), got {bias.shape}")
    return values - bias


@dataclass
class BodyKinematics:
    """Specific force and angular rate of the body w.r.t. inertial space.

    Attributes:
        specific_force: f_ib^b [fx, fy, fz]. Units: m/s².
        angular_rate: ω_ib^b [wx, wy, wz]. Units: rad/s.
    """

    specific_force: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))
    angular_rate: NDArray[np.float64] = field(default_factory=lambda: np.zeros(3))

    def __post_init__(self):
        self.specific_force = _corrected(self.specific_force, None).copy()
        self.angular_rate = _corrected(self.angular_rate, None).copy()

    def set_specific_force(
        self, values: Sequence[float], bias: Optional[Sequence[float]] = None
    ) -> None:
        """Store accelerometer values, subtracting the bias when provided."""
        self.specific_force[:] = _corrected(values, bias)

    def set_angular_rate(
        self, values: Sequence[float], bias: Optional[Sequence[float]] = None
    ) -> None:
        """Store gyroscope values, subtracting the bias when provided."""
        self.angular_rate[:] = _corrected(values, bias)

    def copy(self) -> "BodyKinematics":
        return BodyKinematics(self.specific_force.copy(), self.angular_rate.copy())
