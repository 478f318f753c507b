"""Rotation representations and conversions.

This module provides the quaternion, rotation matrix and Euler angle
helpers shared by the navigator and the attitude estimators:
- Rotation matrices (3x3 orthogonal matrices, SO(3))
- Quaternions (unit quaternions, q = [qw, qx, qy, qz])
- Euler angles (roll-pitch-yaw, ZYX convention)

Conventions:
- Quaternions: [qw, qx, qy, qz] where qw is the scalar part, combined with
  the Hamilton product. ``quat_multiply(p, q)`` applies q first, then p.
- Euler angles: [roll, pitch, yaw] in radians (ZYX/3-2-1 convention)
  - Roll: rotation about x-axis (φ)
  - Pitch: rotation about y-axis (θ)
  - Yaw: rotation about z-axis (ψ)
- Rotation matrices: 3x3 numpy arrays, R such that v_dst = R @ v_src

Functions that are called once per sensor sample accept an optional
``out`` array so that estimators can reuse their own working buffers.

Reference: Groves (2013), Chapter 2 - Coordinate Frames, Kinematics and
the Earth, Appendix E.6 - Quaternion attitude representation
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray

DEFAULT_ROTATION_THRESHOLD = 1e-9


def skew(v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Skew-symmetric matrix [v]x such that [v]x @ u = v x u.

    Args:
        v: 3-vector.

    Returns:
        3x3 skew-symmetric matrix.

    Raises:
        ValueError: If v is not a 3-element array.
    """
    v = np.asarray(v, dtype=np.float64)
    if v.shape != (3,):
        raise ValueError(f"v must have shape (3,), got {v.shape}")

    return np.array(
        [
            [0.0, -v[2], v[1]],
            [v[2], 0.0, -v[0]],
            [-v[1], v[0], 0.0],
        ],
        dtype=np.float64,
    )


def euler_to_rotation_matrix(
    roll: float,
    pitch: float,
    yaw: float,
) -> NDArray[np.float64]:
    """Convert Euler angles to rotation matrix.

    Converts roll-pitch-yaw Euler angles (ZYX convention) to a 3x3
    rotation matrix that transforms vectors from body frame to
    local navigation (NED) frame.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).

    Returns:
        3x3 rotation matrix C such that v_nav = C @ v_body.

    Reference:
        Groves (2013), Eq. (2.22) - body-to-NED matrix from Euler angles
    """
    cr = np.cos(roll)
    sr = np.sin(roll)
    cp = np.cos(pitch)
    sp = np.sin(pitch)
    cy = np.cos(yaw)
    sy = np.sin(yaw)

    return np.array(
        [
            [cy * cp, cy * sp * sr - sy * cr, cy * sp * cr + sy * sr],
            [sy * cp, sy * sp * sr + cy * cr, sy * sp * cr - cy * sr],
            [-sp, cp * sr, cp * cr],
        ],
        dtype=np.float64,
    )


def euler_to_quat(
    roll: float,
    pitch: float,
    yaw: float,
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Convert Euler angles to quaternion.

    Args:
        roll: Roll angle φ in radians (rotation about x-axis).
        pitch: Pitch angle θ in radians (rotation about y-axis).
        yaw: Yaw angle ψ in radians (rotation about z-axis).
        out: Optional array of shape (4,) receiving the result.

    Returns:
        Unit quaternion as numpy array [qw, qx, qy, qz].

    Example:
        >>> q = euler_to_quat(0.0, 0.0, np.pi / 2)  # 90° yaw
        >>> print(f"Norm (should be 1.0): {np.linalg.norm(q):.6f}")
    """
    cr = np.cos(roll / 2.0)
    sr = np.sin(roll / 2.0)
    cp = np.cos(pitch / 2.0)
    sp = np.sin(pitch / 2.0)
    cy = np.cos(yaw / 2.0)
    sy = np.sin(yaw / 2.0)

    if out is None:
        out = np.empty(4, dtype=np.float64)
    out[0] = cr * cp * cy + sr * sp * sy
    out[1] = sr * cp * cy - cr * sp * sy
    out[2] = cr * sp * cy + sr * cp * sy
    out[3] = cr * cp * sy - sr * sp * cy
    return out


def quat_to_euler(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to Euler angles.

    Extracts roll-pitch-yaw Euler angles (ZYX convention) from a
    unit quaternion. Pitch is clamped near ±90° (gimbal lock).

    Args:
        q: Unit quaternion as numpy array [qw, qx, qy, qz].

    Returns:
        Euler angles as numpy array [roll, pitch, yaw] in radians.

    Raises:
        ValueError: If q is not a 4-element array.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"q must have shape (4,), got {q.shape}")

    qw, qx, qy, qz = q

    roll = np.arctan2(2.0 * (qw * qx + qy * qz), 1.0 - 2.0 * (qx * qx + qy * qy))
    sin_pitch = np.clip(2.0 * (qw * qy - qz * qx), -1.0, 1.0)
    pitch = np.arcsin(sin_pitch)
    yaw = np.arctan2(2.0 * (qw * qz + qx * qy), 1.0 - 2.0 * (qy * qy + qz * qz))

    return np.array([roll, pitch, yaw], dtype=np.float64)


def quat_to_rotation_matrix(q: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert quaternion to rotation matrix.

    Args:
        q: Unit quaternion as numpy array [qw, qx, qy, qz].

    Returns:
        3x3 rotation matrix R such that v_dst = R @ v_src.

    Raises:
        ValueError: If q is not a 4-element array.
    """
    q = np.asarray(q, dtype=np.float64)
    if q.shape != (4,):
        raise ValueError(f"q must have shape (4,), got {q.shape}")

    qw, qx, qy, qz = q

    return np.array(
        [
            [
                1.0 - 2.0 * (qy * qy + qz * qz),
                2.0 * (qx * qy - qw * qz),
                2.0 * (qx * qz + qw * qy),
            ],
            [
                2.0 * (qx * qy + qw * qz),
                1.0 - 2.0 * (qx * qx + qz * qz),
                2.0 * (qy * qz - qw * qx),
            ],
            [
                2.0 * (qx * qz - qw * qy),
                2.0 * (qy * qz + qw * qx),
                1.0 - 2.0 * (qx * qx + qy * qy),
            ],
        ],
        dtype=np.float64,
    )


def rotation_matrix_to_quat(R: NDArray[np.float64]) -> NDArray[np.float64]:
    """Convert rotation matrix to quaternion.

    Extracts a unit quaternion from a 3x3 rotation matrix using
    Shepperd's method for numerical stability. The returned quaternion
    has a non-negative scalar part.

    Args:
        R: 3x3 rotation matrix (orthogonal matrix in SO(3)).

    Returns:
        Unit quaternion as numpy array [qw, qx, qy, qz].

    Raises:
        ValueError: If R is not a 3x3 matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3):
        raise ValueError(f"R must have shape (3, 3), got {R.shape}")

    trace = np.trace(R)

    if trace > 0:
        s = 0.5 / np.sqrt(trace + 1.0)
        qw = 0.25 / s
        qx = (R[2, 1] - R[1, 2]) * s
        qy = (R[0, 2] - R[2, 0]) * s
        qz = (R[1, 0] - R[0, 1]) * s
    elif R[0, 0] > R[1, 1] and R[0, 0] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[0, 0] - R[1, 1] - R[2, 2])
        qw = (R[2, 1] - R[1, 2]) / s
        qx = 0.25 * s
        qy = (R[0, 1] + R[1, 0]) / s
        qz = (R[0, 2] + R[2, 0]) / s
    elif R[1, 1] > R[2, 2]:
        s = 2.0 * np.sqrt(1.0 + R[1, 1] - R[0, 0] - R[2, 2])
        qw = (R[0, 2] - R[2, 0]) / s
        qx = (R[0, 1] + R[1, 0]) / s
        qy = 0.25 * s
        qz = (R[1, 2] + R[2, 1]) / s
    else:
        s = 2.0 * np.sqrt(1.0 + R[2, 2] - R[0, 0] - R[1, 1])
        qw = (R[1, 0] - R[0, 1]) / s
        qx = (R[0, 2] + R[2, 0]) / s
        qy = (R[1, 2] + R[2, 1]) / s
        qz = 0.25 * s

    q = np.array([qw, qx, qy, qz], dtype=np.float64)
    if qw < 0.0:
        q = -q
    return q / np.linalg.norm(q)


def quat_multiply(
    p: NDArray[np.float64],
    q: NDArray[np.float64],
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Hamilton product p ⊗ q.

    The rotation matrix of the product is R(p) @ R(q). ``out`` may alias
    either operand.

    Args:
        p: Left quaternion [qw, qx, qy, qz].
        q: Right quaternion [qw, qx, qy, qz].
        out: Optional array of shape (4,) receiving the result.

    Returns:
        Product quaternion (not renormalized).
    """
    pw, px, py, pz = p
    qw, qx, qy, qz = q

    if out is None:
        out = np.empty(4, dtype=np.float64)
    out[0] = pw * qw - px * qx - py * qy - pz * qz
    out[1] = pw * qx + px * qw + py * qz - pz * qy
    out[2] = pw * qy - px * qz + py * qw + pz * qx
    out[3] = pw * qz + px * qy - py * qx + pz * qw
    return out


def quat_inverse(
    q: NDArray[np.float64],
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Inverse of a quaternion (conjugate divided by squared norm)."""
    norm_sq = float(np.dot(q, q))
    if norm_sq == 0.0:
        raise ValueError("Cannot invert a zero quaternion")

    if out is None:
        out = np.empty(4, dtype=np.float64)
    out[0] = q[0] / norm_sq
    out[1:] = -np.asarray(q[1:]) / norm_sq
    return out


def quat_normalize(
    q: NDArray[np.float64],
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Scale a quaternion to unit norm.

    Raises:
        ValueError: If q has zero norm.
    """
    norm = np.linalg.norm(q)
    if norm == 0.0:
        raise ValueError("Cannot normalize a zero quaternion")

    if out is None:
        out = np.empty(4, dtype=np.float64)
    np.divide(q, norm, out=out)
    return out


def quat_from_axis_angle(
    axis: NDArray[np.float64],
    angle: float,
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Quaternion rotating by ``angle`` radians about ``axis``.

    The axis is normalized internally. A zero axis yields the identity.
    """
    axis = np.asarray(axis, dtype=np.float64)
    if axis.shape != (3,):
        raise ValueError(f"axis must have shape (3,), got {axis.shape}")

    if out is None:
        out = np.empty(4, dtype=np.float64)

    norm = np.linalg.norm(axis)
    if norm == 0.0:
        out[:] = (1.0, 0.0, 0.0, 0.0)
        return out

    half = 0.5 * angle
    out[0] = np.cos(half)
    out[1:] = axis / norm * np.sin(half)
    return out


def quat_from_rotation_vector(
    rotation_vector: NDArray[np.float64],
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Quaternion exponential of a rotation vector (axis times angle).

    Small angles use the first terms of the series of sin(x/2)/x to avoid
    dividing by a vanishing norm.
    """
    rotation_vector = np.asarray(rotation_vector, dtype=np.float64)
    angle = np.linalg.norm(rotation_vector)

    if out is None:
        out = np.empty(4, dtype=np.float64)

    if angle < 1e-8:
        out[0] = 1.0 - angle * angle / 8.0
        out[1:] = rotation_vector * (0.5 - angle * angle / 48.0)
    else:
        out[0] = np.cos(0.5 * angle)
        out[1:] = rotation_vector * (np.sin(0.5 * angle) / angle)
    return out


def quat_rotation_angle(q: NDArray[np.float64]) -> float:
    """Rotation angle in radians, in [0, 2π), of a unit quaternion."""
    return float(2.0 * np.arccos(np.clip(q[0], -1.0, 1.0)))


def quat_rotate(q: NDArray[np.float64], v: NDArray[np.float64]) -> NDArray[np.float64]:
    """Rotate a 3-vector by a unit quaternion."""
    return quat_to_rotation_matrix(q) @ np.asarray(v, dtype=np.float64)


def quat_slerp(
    q0: NDArray[np.float64],
    q1: NDArray[np.float64],
    t: float,
    out: Optional[NDArray[np.float64]] = None,
) -> NDArray[np.float64]:
    """Spherical linear interpolation from q0 (t=0) to q1 (t=1).

    Takes the shortest path: q1 is negated when the quaternions lie in
    opposite hemispheres. Nearly parallel inputs fall back to normalized
    linear interpolation.

    Args:
        q0: Start unit quaternion.
        q1: End unit quaternion.
        t: Interpolation factor in [0, 1].
        out: Optional array of shape (4,) receiving the result.

    Returns:
        Interpolated unit quaternion.
    """
    if not 0.0 <= t <= 1.0:
        raise ValueError(f"t must be within [0, 1], got {t}")

    q0 = np.asarray(q0, dtype=np.float64)
    q1 = np.asarray(q1, dtype=np.float64)
    cos_half = float(np.dot(q0, q1))
    if cos_half < 0.0:
        q1 = -q1
        cos_half = -cos_half

    if cos_half > 0.9995:
        result = q0 + t * (q1 - q0)
    else:
        half = np.arccos(cos_half)
        sin_half = np.sin(half)
        result = (np.sin((1.0 - t) * half) * q0 + np.sin(t * half) * q1) / sin_half

    return quat_normalize(result, out=out)


def is_valid_rotation_matrix(
    R: NDArray[np.float64],
    threshold: float = DEFAULT_ROTATION_THRESHOLD,
) -> bool:
    """Check that R is orthonormal with determinant +1.

    Args:
        R: Candidate 3x3 matrix.
        threshold: Maximum absolute deviation of R @ R.T from identity
                   and of det(R) from 1.

    Returns:
        True if R is a proper rotation within the threshold.
    """
    R = np.asarray(R, dtype=np.float64)
    if R.shape != (3, 3) or not np.all(np.isfinite(R)):
        return False

    if np.max(np.abs(R @ R.T - np.eye(3))) > threshold:
        return False
    return abs(np.linalg.det(R) - 1.0) <= threshold
