"""
Angle wrapping utilities.

Headings built from a magnetic yaw plus a declination, or Euler angles
compared across samples, must stay within [-π, π] to be comparable.
"""

import numpy as np


def wrap_angle(angle: float) -> float:
    """
    Wrap angle to [-π, π] range.

    Args:
        angle: Angle in radians (can be any value)

    Returns:
        Wrapped angle in range [-π, π]

    Example:
        >>> round(wrap_angle(3.5 * np.pi), 6)  # 630° -> -90°
        -1.570796
    """
    return float(np.arctan2(np.sin(angle), np.cos(angle)))
