"""
Quaternion kinematics integration for gyroscope attitude propagation.

The attitude derivative for a body angular rate ω is

    dq/dt = 0.5 · Ω(ω) · q        (equivalently 0.5 · q ⊗ [0, ω])

attitude_integration_step solves it over one sampling interval with a
fourth-order Runge-Kutta scheme. The angular rate is taken to vary
linearly between the previous and the current gyroscope sample, so the
two mid-point evaluations use their average.

References:
    Groves (2013), Section 5.3.2 (attitude update)
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray


def omega_matrix(omega: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Build the Ω(ω) matrix of the quaternion kinematics equation.

        Ω(ω) = [  0    -ωx   -ωy   -ωz ]
               [ ωx     0     ωz   -ωy ]
               [ ωy    -ωz    0     ωx ]
               [ ωz     ωy   -ωx    0  ]

    Args:
        omega: Body angular rate [ωx, ωy, ωz] in rad/s. Shape: (3,).

    Returns:
        Skew-symmetric 4x4 matrix.

    Raises:
        ValueError: If omega does not have shape (3,).
    """
    omega = np.asarray(omega, dtype=np.float64)
    if omega.shape != (3,):
        raise ValueError(f"omega must have shape (3,), got {omega.shape}")

    wx, wy, wz = omega
    return np.array([
        [0.0, -wx, -wy, -wz],
        [wx, 0.0, wz, -wy],
        [wy, -wz, 0.0, wx],
        [wz, wy, -wx, 0.0],
    ])


def attitude_integration_step(
    q: NDArray[np.float64],
    omega_start: NDArray[np.float64],
    omega_end: NDArray[np.float64],
    dt: float,
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """
    Propagate an attitude over one interval with RK4.

    Args:
        q: Attitude at the start of the interval, scalar-first. Shape: (4,).
        omega_start: Angular rate at the start of the interval [rad/s].
        omega_end: Angular rate at the end of the interval [rad/s].
        dt: Interval length [s]. Zero returns the normalized input.
        out: Optional array receiving the result. May alias ``q``.

    Returns:
        Normalized attitude at the end of the interval.

    Raises:
        ValueError: If q does not have shape (4,) or dt is negative.

    Example:
        >>> q = attitude_integration_step(
        ...     np.array([1.0, 0.0, 0.0, 0.0]), [0.0, 0.0, 0.5], [0.0, 0.0, 0.5], 0.02)
        >>> round(float(2.0 * np.arctan2(q[3], q[0])), 6)
        0.01
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"q must have shape (4,), got {q.shape}")
    if dt < 0:
        raise ValueError(f"dt must be >= 0, got {dt}")

    omega_start = np.asarray(omega_start, dtype=np.float64)
    omega_end = np.asarray(omega_end, dtype=np.float64)

    omega_0 = omega_matrix(omega_start)
    omega_mid = omega_matrix(0.5 * (omega_start + omega_end))
    omega_1 = omega_matrix(omega_end)

    k1 = 0.5 * omega_0 @ q
    k2 = 0.5 * omega_mid @ (q + 0.5 * dt * k1)
    k3 = 0.5 * omega_mid @ (q + 0.5 * dt * k2)
    k4 = 0.5 * omega_1 @ (q + dt * k3)

    result = q + dt * (k1 + 2.0 * k2 + 2.0 * k3 + k4) / 6.0
    result /= np.linalg.norm(result)

    if out is None:
        return result
    out[:] = result
    return out
