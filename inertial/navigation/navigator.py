"""
ECEF strapdown inertial navigation equations.

This module propagates an ECEF navigation solution (position, velocity and
body-to-ECEF attitude) over one time interval given the body kinematics
(specific force and angular rate) measured during that interval, and
provides the inverse operation that recovers the body kinematics relating
two consecutive ECEF frames.

Two implementations of the mechanization are provided. They use different
numerical formulations of the same equations and must agree to floating
point precision:
    - navigate_ecef: closed-form Rodrigues matrices (Groves Eqs. 5.73, 5.84)
    - navigate_ecef_exponential: quaternion exponential for the attitude
      increment and a Van Loan block matrix exponential for the
      time-averaged body-to-ECEF transformation

Both assume constant specific force and angular rate over the interval and
resolve gravity at the previous position.

Reference: Groves (2013), Section 5.2 - Earth-Centered Earth-Fixed
Frame Mechanization
"""

from typing import Optional

import numpy as np
from numpy.typing import NDArray
from scipy.linalg import expm

from inertial.coords.frames import CoordinateTransformation, ECEFFrame, FrameType
from inertial.coords.rotations import (
    quat_from_rotation_vector,
    quat_multiply,
    quat_normalize,
    quat_to_rotation_matrix,
    rotation_matrix_to_quat,
    skew,
)
from inertial.errors import InvalidFrameTransformationError
from inertial.navigation.gravity import EARTH_ROTATION_RATE, gravity_ecef
from inertial.navigation.kinematics import BodyKinematics

_SMALL_ANGLE = 1e-8

_EARTH_RATE_VECTOR = np.array([0.0, 0.0, EARTH_ROTATION_RATE])
_OMEGA_IE = skew(_EARTH_RATE_VECTOR)


def _check_inputs(time_interval: float, frame: ECEFFrame) -> None:
    if time_interval <= 0.0:
        raise ValueError(f"time_interval must be positive, got {time_interval}")
    if not frame.coordinate_transformation.is_between(FrameType.BODY, FrameType.ECEF):
        raise InvalidFrameTransformationError(
            "frame attitude must transform BODY to ECEF, got "
            f"{frame.coordinate_transformation.source_type.value}->"
            f"{frame.coordinate_transformation.destination_type.value}"
        )


def _earth_rotation_matrix(time_interval: float) -> NDArray[np.float64]:
    """C_Earth: rotation of the ECEF frame w.r.t. inertial space, Eq. (5.74)."""
    alpha_ie = EARTH_ROTATION_RATE * time_interval
    c = np.cos(alpha_ie)
    s = np.sin(alpha_ie)
    return np.array([[c, s, 0.0], [-s, c, 0.0], [0.0, 0.0, 1.0]])


def _write_frame(
    out: Optional[ECEFFrame],
    position: NDArray[np.float64],
    velocity: NDArray[np.float64],
    c_b_e: NDArray[np.float64],
    threshold: float,
) -> ECEFFrame:
    transformation = CoordinateTransformation(
        FrameType.BODY, FrameType.ECEF, c_b_e, threshold
    )
    if out is None:
        return ECEFFrame(position, velocity, transformation)

    out.position = position
    out.velocity = velocity
    out.coordinate_transformation = transformation
    return out


def navigate_ecef(
    time_interval: float,
    old_frame: ECEFFrame,
    kinematics: BodyKinematics,
    out: Optional[ECEFFrame] = None,
) -> ECEFFrame:
    """
    Propagate an ECEF frame with the closed-form (Rodrigues) mechanization.

    Attitude update, Eqs. (5.73) and (5.75)-(5.76):
        α = ω_ib^b Δt,  A = [α]x
        C_new_old = I + sin|α|/|α| A + (1-cos|α|)/|α|² A²
        C_b^e(+) = C_Earth C_b^e(-) C_new_old

    Specific force frame transformation, Eqs. (5.84)-(5.85):
        C̄_b^e = C_b^e(-) (I + (1-cos|α|)/|α|² A + (1-sin|α|/|α|)/|α|² A²)
                - ½ Ω_ie C_b^e(-) Δt
        f^e = C̄_b^e f^b

    Velocity and position update, Eqs. (5.36) and (5.38):
        v(+) = v(-) + (f^e + g(r(-)) - 2 Ω_ie v(-)) Δt
        r(+) = r(-) + (v(+) + v(-)) Δt / 2

    Args:
        time_interval: Propagation interval Δt. Units: seconds. Must be > 0.
        old_frame: ECEF frame at the start of the interval. Its coordinate
            transformation must map BODY to ECEF.
        kinematics: Body kinematics measured over the interval.
        out: Optional frame receiving the result (may be old_frame).

    Returns:
        ECEF frame at the end of the interval.

    Raises:
        ValueError: If time_interval is not positive.
        InvalidFrameTransformationError: If old_frame's transformation is not
            BODY->ECEF.
    """
    _check_inputs(time_interval, old_frame)

    old_c_b_e = old_frame.coordinate_transformation.matrix
    old_r = old_frame.position
    old_v = old_frame.velocity

    alpha = kinematics.angular_rate * time_interval
    mag_alpha = np.linalg.norm(alpha)
    big_alpha = skew(alpha)
    big_alpha_sq = big_alpha @ big_alpha

    if mag_alpha > _SMALL_ANGLE:
        c_new_old = (
            np.eye(3)
            + np.sin(mag_alpha) / mag_alpha * big_alpha
            + (1.0 - np.cos(mag_alpha)) / mag_alpha**2 * big_alpha_sq
        )
        ave_c_b_e = old_c_b_e @ (
            np.eye(3)
            + (1.0 - np.cos(mag_alpha)) / mag_alpha**2 * big_alpha
            + (1.0 - np.sin(mag_alpha) / mag_alpha) / mag_alpha**2 * big_alpha_sq
        ) - 0.5 * _OMEGA_IE @ old_c_b_e * time_interval
    else:
        c_new_old = np.eye(3) + big_alpha
        ave_c_b_e = old_c_b_e - 0.5 * _OMEGA_IE @ old_c_b_e * time_interval

    c_b_e = _earth_rotation_matrix(time_interval) @ old_c_b_e @ c_new_old

    f_ib_e = ave_c_b_e @ kinematics.specific_force
    v = old_v + time_interval * (f_ib_e + gravity_ecef(old_r) - 2.0 * _OMEGA_IE @ old_v)
    r = old_r + (v + old_v) * 0.5 * time_interval

    return _write_frame(
        out, r, v, c_b_e, old_frame.coordinate_transformation.threshold
    )


def navigate_ecef_exponential(
    time_interval: float,
    old_frame: ECEFFrame,
    kinematics: BodyKinematics,
    out: Optional[ECEFFrame] = None,
) -> ECEFFrame:
    """
    Propagate an ECEF frame using exponential maps.

    The attitude is propagated as the quaternion product
        q_b^e(+) = exp(-α_ie ẑ / 2) ⊗ q_b^e(-) ⊗ exp(α / 2)
    and the time-averaged attitude uses the Van Loan identity
        expm([[A, I], [0, 0]])[:3, 3:] = ∫₀¹ exp(sA) ds
    instead of the closed-form coefficients. Velocity and position follow
    the same equations as navigate_ecef, written with cross products.

    Args:
        time_interval: Propagation interval Δt. Units: seconds. Must be > 0.
        old_frame: ECEF frame at the start of the interval (BODY->ECEF).
        kinematics: Body kinematics measured over the interval.
        out: Optional frame receiving the result (may be old_frame).

    Returns:
        ECEF frame at the end of the interval.

    Raises:
        ValueError: If time_interval is not positive.
        InvalidFrameTransformationError: If old_frame's transformation is not
            BODY->ECEF.
    """
    _check_inputs(time_interval, old_frame)

    old_c_b_e = old_frame.coordinate_transformation.matrix
    old_r = old_frame.position
    old_v = old_frame.velocity

    alpha = kinematics.angular_rate * time_interval

    q_earth = quat_from_rotation_vector(-_EARTH_RATE_VECTOR * time_interval)
    q_alpha = quat_from_rotation_vector(alpha)
    q_b_e = quat_multiply(q_earth, rotation_matrix_to_quat(old_c_b_e))
    quat_multiply(q_b_e, q_alpha, out=q_b_e)
    c_b_e = quat_to_rotation_matrix(quat_normalize(q_b_e))

    block = np.zeros((6, 6))
    block[:3, :3] = skew(alpha)
    block[:3, 3:] = np.eye(3)
    integrated = expm(block)[:3, 3:]

    f_old_e = old_c_b_e @ kinematics.specific_force
    f_ib_e = old_c_b_e @ (integrated @ kinematics.specific_force) - (
        0.5 * time_interval * np.cross(_EARTH_RATE_VECTOR, f_old_e)
    )

    coriolis = 2.0 * np.cross(_EARTH_RATE_VECTOR, old_v)
    v = old_v + time_interval * (f_ib_e + gravity_ecef(old_r) - coriolis)
    r = old_r + 0.5 * time_interval * (v + old_v)

    return _write_frame(
        out, r, v, c_b_e, old_frame.coordinate_transformation.threshold
    )


def estimate_kinematics_ecef(
    time_interval: float,
    c_b_e: NDArray[np.float64],
    old_c_b_e: NDArray[np.float64],
    velocity: NDArray[np.float64],
    old_velocity: NDArray[np.float64],
    position: NDArray[np.float64],
) -> BodyKinematics:
    """
    Body kinematics that take the old ECEF state into the new one.

    Inverse of navigate_ecef, Groves (2013) Section 5.9 / Eqs. (5.84)-(5.86):
    the attitude increment is recovered from C_old_new = C_b^e(+)ᵀ C_Earth C_b^e(-)
    and the specific force from the velocity change.

    Applying it to a frame and itself yields the kinematics sensed by a
    device that stays still on the rotating Earth.

    Args:
        time_interval: Interval Δt between the states. Units: seconds.
        c_b_e: New body-to-ECEF matrix.
        old_c_b_e: Previous body-to-ECEF matrix.
        velocity: New ECEF velocity. Units: m/s.
        old_velocity: Previous ECEF velocity. Units: m/s.
        position: ECEF position used to resolve gravity. Units: meters.

    Returns:
        BodyKinematics; all zeros when time_interval is not positive.
    """
    if time_interval <= 0.0:
        return BodyKinematics()

    c_old_new = c_b_e.T @ _earth_rotation_matrix(time_interval) @ old_c_b_e

    alpha = 0.5 * np.array(
        [
            c_old_new[1, 2] - c_old_new[2, 1],
            c_old_new[2, 0] - c_old_new[0, 2],
            c_old_new[0, 1] - c_old_new[1, 0],
        ]
    )
    cos_angle = np.clip(0.5 * (np.trace(c_old_new) - 1.0), -1.0, 1.0)
    angle = np.arccos(cos_angle)
    if angle > 2e-5:
        alpha = alpha * angle / np.sin(angle)

    mag_alpha = np.linalg.norm(alpha)
    big_alpha = skew(alpha)
    if mag_alpha > _SMALL_ANGLE:
        ave_c_b_e = old_c_b_e @ (
            np.eye(3)
            + (1.0 - np.cos(mag_alpha)) / mag_alpha**2 * big_alpha
            + (1.0 - np.sin(mag_alpha) / mag_alpha) / mag_alpha**2 * big_alpha @ big_alpha
        ) - 0.5 * _OMEGA_IE @ old_c_b_e * time_interval
    else:
        ave_c_b_e = old_c_b_e - 0.5 * _OMEGA_IE @ old_c_b_e * time_interval

    f_ib_e = (
        (velocity - old_velocity) / time_interval
        - gravity_ecef(position)
        + 2.0 * _OMEGA_IE @ old_velocity
    )
    return BodyKinematics(np.linalg.solve(ave_c_b_e, f_ib_e), alpha / time_interval)
