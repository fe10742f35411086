"""
Environment Module
==================

Built-in Solar System tables.
"""

from .solar_system import SOLAR_SYSTEM_BODIES, SOLAR_SYSTEM_POINTS, EARTH_L2_DISTANCE

__all__ = [
    'SOLAR_SYSTEM_BODIES',
    'SOLAR_SYSTEM_POINTS',
    'EARTH_L2_DISTANCE',
]
