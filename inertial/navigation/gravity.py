"""
Earth gravity models used by the navigator and accurate leveling.

Two models are provided:
    - gravity_ecef: gravitational attraction with the J2 zonal harmonic plus
      the centripetal term of the Earth's rotation, resolved in ECEF axes.
      This is the acceleration due to gravity seen by a body co-rotating
      with the Earth, as required by the ECEF mechanization equations.
    - gravity_ned: Somigliana surface gravity with a free-air height
      correction, resolved in the local NED frame. Accurate leveling uses
      its direction as the true local vertical.

Constants follow WGS84 (Groves 2013, Section 2.4.7).
"""

import numpy as np
from numpy.typing import NDArray

from inertial.coords.transforms import WGS84_A, WGS84_B, WGS84_F

EARTH_ROTATION_RATE = 7.292115e-5  # ω_ie [rad/s]
EARTH_GRAVITATIONAL_CONSTANT = 3.986004418e14  # μ [m^3/s^2]
EARTH_SECOND_GRAVITATIONAL_CONSTANT = 1.082627e-3  # J2
EARTH_ECCENTRICITY = 0.0818191908425

# Somigliana parameters
_EQUATORIAL_GRAVITY = 9.7803253359  # [m/s^2]
_SOMIGLIANA_K = 0.001931853


def gravity_ecef(position: NDArray[np.float64]) -> NDArray[np.float64]:
    """
    Acceleration due to gravity in ECEF axes at an ECEF position.

    Implements Groves (2013) Eqs. (2.142) and (2.133):
        γ = -μ/|r|³ · (r + 1.5·J2·(R0/|r|)²·[(1-5z²/|r|²)x, (1-5z²/|r|²)y, (3-5z²/|r|²)z])
        g = γ + ω_ie²·[x, y, 0]

    Args:
        position: ECEF position [x, y, z]. Shape: (3,). Units: meters.

    Returns:
        Gravity vector g_e. Shape: (3,). Units: m/s².
        Zero at the Earth's centre.

    Raises:
        ValueError: If position does not have shape (3,).

    Example:
        >>> from inertial.coords import llh_to_ecef
        >>> g = gravity_ecef(llh_to_ecef(0.0, 0.0, 0.0))
        >>> print(np.linalg.norm(g))  # ≈ 9.780
    """
    position = np.asarray(position, dtype=np.float64)
    if position.shape != (3,):
        raise ValueError(f"position must have shape (3,), got {position.shape}")

    mag_r = np.linalg.norm(position)
    if mag_r == 0.0:
        return np.zeros(3)

    z_scale = 5.0 * (position[2] / mag_r) ** 2
    scale = np.array([1.0 - z_scale, 1.0 - z_scale, 3.0 - z_scale])
    gamma = (
        -EARTH_GRAVITATIONAL_CONSTANT
        / mag_r**3
        * (
            position
            + 1.5
            * EARTH_SECOND_GRAVITATIONAL_CONSTANT
            * (WGS84_A / mag_r) ** 2
            * scale
            * position
        )
    )

    g = gamma.copy()
    g[:2] += EARTH_ROTATION_RATE**2 * position[:2]
    return g


def gravity_ned(latitude: float, height: float = 0.0) -> NDArray[np.float64]:
    """
    Acceleration due to gravity in NED axes.

    Implements Groves (2013) Eqs. (2.134) and (2.139):
        g0(L) = 9.7803253359 (1 + 0.001931853 sin²L) / sqrt(1 - e² sin²L)
        g_n = -8.08e-9 · h · sin(2L)
        g_e = 0
        g_d = g0 (1 - 2/R0 (1 + f (1 - 2 sin²L) + ω²R0²Rp/μ) h + 3h²/R0²)

    Args:
        latitude: Geodetic latitude. Units: radians.
        height: Height above the ellipsoid. Units: meters.

    Returns:
        Gravity vector [g_n, g_e, g_d]. Shape: (3,). Units: m/s².
        Points down (positive g_d) near the surface.
    """
    sin_sq_lat = np.sin(latitude) ** 2
    g0 = (
        _EQUATORIAL_GRAVITY
        * (1.0 + _SOMIGLIANA_K * sin_sq_lat)
        / np.sqrt(1.0 - EARTH_ECCENTRICITY**2 * sin_sq_lat)
    )

    g_north = -8.08e-9 * height * np.sin(2.0 * latitude)
    g_down = g0 * (
        1.0
        - (2.0 / WGS84_A)
        * (
            1.0
            + WGS84_F * (1.0 - 2.0 * sin_sq_lat)
            + EARTH_ROTATION_RATE**2
            * WGS84_A**2
            * WGS84_B
            / EARTH_GRAVITATIONAL_CONSTANT
        )
        * height
        + 3.0 * height**2 / WGS84_A**2
    )

    return np.array([g_north, 0.0, g_down], dtype=np.float64)
