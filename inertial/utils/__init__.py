"""Shared numeric helpers."""

from inertial.utils.angles import wrap_angle

__all__ = ["wrap_angle"]
