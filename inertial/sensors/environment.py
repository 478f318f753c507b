"""
Magnetometer heading and World Magnetic Model lookups.

This module implements:
    - Hard-iron compensation of magnetometer triads
    - Tilt-compensated magnetic heading with declination correction
    - A World Magnetic Model (WMM) interface and its ``ahrs`` implementation

Magnetometer samples arrive in µT; heading computations are scale free but
values are converted to Tesla (MICROTESLA_TO_TESLA) before use so that they
can be compared with model outputs.
"""

import datetime
from abc import ABC, abstractmethod
from typing import Optional

import numpy as np
from ahrs.utils import WMM
from numpy.typing import NDArray

from inertial.coords.transforms import GeodeticLocation
from inertial.utils.angles import wrap_angle

MICROTESLA_TO_TESLA = 1e-6


def compensate_hard_iron(
    mag_raw: NDArray[np.float64],
    offset: Optional[NDArray[np.float64]],
) -> NDArray[np.float64]:
    """
    Correct magnetometer hard-iron bias.

    Correction:
        mag_corrected = mag_raw - offset

    Args:
        mag_raw: Raw magnetometer measurement in body frame.
                 Shape: (3,). Units: µT.
        offset: Hard-iron offset in body frame, same units as mag_raw.
                None means no correction.

    Returns:
        Hard-iron corrected magnetic field. Shape: (3,).

    Raises:
        ValueError: If an input does not have shape (3,).
    """
    mag_raw = np.asarray(mag_raw, dtype=np.float64)
    if mag_raw.shape != (3,):
        raise ValueError(f"mag_raw must have shape (3,), got {mag_raw.shape}")
    if offset is None:
        return mag_raw.copy()

    offset = np.asarray(offset, dtype=np.float64)
    if offset.shape != (3,):
        raise ValueError(f"offset must have shape (3,), got {offset.shape}")
    return mag_raw - offset


def magnetic_yaw(
    mag_b: NDArray[np.float64],
    roll: float,
    pitch: float,
    declination: float = 0.0,
) -> float:
    """
    Heading (yaw) from a body-frame magnetic field and known tilt.

    Implements Groves (2013) Eqs. (6.7)-(6.8):
        ψ_mb = atan2(-m_y cosφ + m_z sinφ,
                     m_x cosθ + m_y sinφ sinθ + m_z cosφ sinθ)
        ψ_nb = ψ_mb + α_nm

    Args:
        mag_b: Magnetic flux density in body frame. Shape: (3,).
        roll: Roll angle φ. Units: radians.
        pitch: Pitch angle θ. Units: radians.
        declination: Magnetic declination α_nm (positive when magnetic north
                     is east of true north). Units: radians.

    Returns:
        True heading in radians, wrapped to [-π, π].

    Example:
        >>> # Level device, field pointing north and down
        >>> magnetic_yaw(np.array([20e-6, 0.0, 40e-6]), 0.0, 0.0)
        0.0
    """
    mag_b = np.asarray(mag_b, dtype=np.float64)
    if mag_b.shape != (3,):
        raise ValueError(f"mag_b must have shape (3,), got {mag_b.shape}")

    bx, by, bz = mag_b
    sin_roll = np.sin(roll)
    cos_roll = np.cos(roll)
    sin_pitch = np.sin(pitch)
    cos_pitch = np.cos(pitch)

    yaw = np.arctan2(
        -by * cos_roll + bz * sin_roll,
        bx * cos_pitch + by * sin_roll * sin_pitch + bz * cos_roll * sin_pitch,
    )
    return float(wrap_angle(yaw + declination))


class WorldMagneticModel(ABC):
    """Source of magnetic declination for a location and date."""

    @abstractmethod
    def declination(self, location: GeodeticLocation, when: datetime.date) -> float:
        """Magnetic declination in radians at ``location`` on ``when``."""


class AhrsWorldMagneticModel(WorldMagneticModel):
    """
    World Magnetic Model backed by ``ahrs.utils.WMM``.

    The underlying model expects latitude/longitude in degrees and height in
    kilometers, and reports declination in degrees.
    """

    def __init__(self):
        self._model = WMM()

    def declination(self, location: GeodeticLocation, when: datetime.date) -> float:
        if isinstance(when, datetime.datetime):
            when = when.date()
        self._model.magnetic_field(
            float(np.rad2deg(location.latitude)),
            float(np.rad2deg(location.longitude)),
            height=location.height / 1000.0,
            date=when,
        )
        return float(np.deg2rad(self._model.D))
