"""Geodetic conversions between LLH, ECEF and NED.

This module implements the conversions needed to place a local
North-East-Down (NED) navigation frame on the Earth:
- LLH (latitude, longitude, height) <-> ECEF Cartesian position
- NED -> ECEF rotation at a given latitude/longitude
- ENU-style device triads -> NED-style body triads

WGS84 ellipsoid parameters:
- Semi-major axis (a): 6378137.0 m
- Flattening (f): 1/298.257223563
- Semi-minor axis (b): 6356752.314245 m
- First eccentricity squared (e²): 0.00669437999014

Reference: Groves (2013), Section 2.4 - Earth Surface and Gravity Models
"""

from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray

# WGS84 ellipsoid parameters
WGS84_A = 6378137.0  # Semi-major axis (m)
WGS84_F = 1.0 / 298.257223563  # Flattening
WGS84_B = WGS84_A * (1.0 - WGS84_F)  # Semi-minor axis (m)
WGS84_E2 = 1.0 - (WGS84_B / WGS84_A) ** 2  # First eccentricity squared


@dataclass(frozen=True)
class GeodeticLocation:
    """Geodetic position on the WGS84 ellipsoid.

    Attributes:
        latitude: Latitude in radians, within [-π/2, π/2].
        longitude: Longitude in radians.
        height: Height above the ellipsoid in meters.
    """

    latitude: float
    longitude: float
    height: float = 0.0

    def __post_init__(self):
        if not -np.pi / 2.0 <= self.latitude <= np.pi / 2.0:
            raise ValueError(
                f"latitude must be within [-pi/2, pi/2] rad, got {self.latitude}"
            )
        if not np.isfinite(self.longitude) or not np.isfinite(self.height):
            raise ValueError("longitude and height must be finite")

    @classmethod
    def from_degrees(
        cls, latitude: float, longitude: float, height: float = 0.0
    ) -> "GeodeticLocation":
        """Build a location from latitude/longitude in degrees."""
        return cls(float(np.deg2rad(latitude)), float(np.deg2rad(longitude)), height)

    def to_ecef(self) -> NDArray[np.float64]:
        """ECEF position [x, y, z] of this location in meters."""
        return llh_to_ecef(self.latitude, self.longitude, self.height)


def llh_to_ecef(
    lat: float,
    lon: float,
    height: float,
) -> NDArray[np.float64]:
    """Convert geodetic coordinates (LLH) to ECEF Cartesian coordinates.

    Args:
        lat: Latitude in radians (positive north).
        lon: Longitude in radians (positive east).
        height: Height above WGS84 ellipsoid in meters.

    Returns:
        ECEF coordinates as numpy array [x, y, z] in meters.

    Reference:
        Groves (2013), Eq. (2.112)
    """
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    # Radius of curvature in the prime vertical
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat**2)

    x = (N + height) * cos_lat * np.cos(lon)
    y = (N + height) * cos_lat * np.sin(lon)
    z = (N * (1.0 - WGS84_E2) + height) * sin_lat

    return np.array([x, y, z], dtype=np.float64)


def ecef_to_llh(
    x: float,
    y: float,
    z: float,
    tol: float = 1e-12,
    max_iter: int = 10,
) -> NDArray[np.float64]:
    """Convert ECEF Cartesian coordinates to geodetic coordinates (LLH).

    Uses fixed-point iteration on latitude and height.

    Args:
        x: ECEF x-coordinate in meters.
        y: ECEF y-coordinate in meters.
        z: ECEF z-coordinate in meters.
        tol: Convergence tolerance on latitude (radians).
        max_iter: Maximum number of iterations.

    Returns:
        Geodetic coordinates as numpy array [lat, lon, height] where
        lat and lon are in radians, height is in meters.
    """
    lon = np.arctan2(y, x)
    p = np.sqrt(x**2 + y**2)

    if p < 1e-10:
        lat = np.copysign(np.pi / 2.0, z)
        return np.array([lat, lon, abs(z) - WGS84_B], dtype=np.float64)

    lat = np.arctan2(z, p * (1.0 - WGS84_E2))
    for _ in range(max_iter):
        N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * np.sin(lat) ** 2)
        height = p / np.cos(lat) - N
        lat_new = np.arctan2(z, p * (1.0 - WGS84_E2 * N / (N + height)))
        if abs(lat_new - lat) < tol:
            lat = lat_new
            break
        lat = lat_new

    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * np.sin(lat) ** 2)
    height = p / np.cos(lat) - N

    return np.array([lat, lon, height], dtype=np.float64)


def ned_to_ecef_rotation(lat: float, lon: float) -> NDArray[np.float64]:
    """Rotation matrix C_n^e from NED to ECEF axes at (lat, lon).

    Args:
        lat: Latitude in radians.
        lon: Longitude in radians.

    Returns:
        3x3 matrix such that v_ecef = C_n^e @ v_ned.

    Reference:
        Groves (2013), Eq. (2.150)
    """
    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    sin_lon = np.sin(lon)
    cos_lon = np.cos(lon)

    c_e_n = np.array(
        [
            [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
            [-sin_lon, cos_lon, 0.0],
            [-cos_lat * cos_lon, -cos_lat * sin_lon, -sin_lat],
        ],
        dtype=np.float64,
    )
    return c_e_n.T


def enu_to_ned(triad: NDArray[np.float64]) -> NDArray[np.float64]:
    """Swap an ENU-style triad (x, y, z) into NED-style axes (y, x, -z).

    Device sensors report triads with x to the right, y up the screen and
    z out of the screen; navigation equations use x forward, y right and
    z down.
    """
    triad = np.asarray(triad, dtype=np.float64)
    if triad.shape != (3,):
        raise ValueError(f"triad must have shape (3,), got {triad.shape}")
    return np.array([triad[1], triad[0], -triad[2]], dtype=np.float64)
