"""
Solar System Model
==================

Built-in body and derived-point tables for the Solar System orrery.

Distances, radii and rates are in scaled simulation units (not to scale
with each other). Eccentricities and inclinations follow the real orbits;
gravitational parameters are the real mass ratios to the Sun times the
scaled solar parameter.
"""

import numpy as np

from ..core.config import GRAVITATIONAL_PARAMETER, BodyConfig, DerivedPointConfig, OrbitalElements


def _mu(mass_ratio: float) -> float:
    """Scaled gravitational parameter from a mass ratio to the Sun."""
    return GRAVITATIONAL_PARAMETER * mass_ratio


def _planet(body_id, name, radius, distance, rate, eccentricity, inclination_deg,
            rotation_rate, mass_ratio, kind="planet", center="origin", node_deg=0.0):
    return BodyConfig(
        id=body_id,
        name=name,
        kind=kind,
        radius=radius,
        gravitational_parameter=_mu(mass_ratio),
        rotation_rate=rotation_rate,
        elements=OrbitalElements(
            semi_major_axis=distance,
            eccentricity=eccentricity,
            orbital_plane_tilt=np.radians(inclination_deg),
            orbital_period_scale=rate,
            reference_center_id=center,
            ascending_node=np.radians(node_deg),
        ),
    )


# Distance of the L2-style point beyond Earth, away from the Sun
EARTH_L2_DISTANCE = 25.0

SUN = BodyConfig(
    id="sun",
    name="Sun",
    kind="star",
    radius=20.0,
    gravitational_parameter=GRAVITATIONAL_PARAMETER,
    rotation_rate=0.0001,
)

SOLAR_SYSTEM_BODIES = (
    SUN,
    _planet("mercury", "Mercury", 2.0, 35.0, 0.00047, 0.206, 7.0, 0.0005, 1.66e-7),
    _planet("venus", "Venus", 3.8, 50.0, 0.00035, 0.007, 3.4, 0.0002, 2.45e-6),
    _planet("earth", "Earth", 4.0, 70.0, 0.0003, 0.017, 0.0, 0.001, 3.0e-6),
    _planet("moon", "Moon", 1.1, 6.0, 0.001, 0.055, 5.1, 0.0001, 3.7e-8,
            kind="moon", center="earth"),
    _planet("mars", "Mars", 3.5, 90.0, 0.00024, 0.093, 1.85, 0.0009, 3.23e-7),
    _planet("jupiter", "Jupiter", 8.0, 130.0, 0.00013, 0.049, 1.3, 0.002, 9.548e-4),
    _planet("saturn", "Saturn", 7.0, 170.0, 0.00009, 0.057, 2.5, 0.0018, 2.859e-4),
    _planet("uranus", "Uranus", 5.5, 200.0, 0.00006, 0.046, 0.8, 0.0014, 4.37e-5),
    _planet("neptune", "Neptune", 5.3, 230.0, 0.00004, 0.010, 1.8, 0.0015, 5.15e-5),
    _planet("pluto", "Pluto", 1.0, 260.0, 0.00003, 0.249, 17.2, 0.0003, 6.6e-9,
            kind="dwarf", node_deg=110.3),
    _planet("iss", "International Space Station", 0.2, 5.5, 0.005, 0.0, 51.6, 0.0, 0.0,
            kind="spacecraft", center="earth"),
    _planet("jwst", "James Webb Space Telescope", 0.3, 3.0, 0.002, 0.0, 60.0, 0.0001, 0.0,
            kind="spacecraft", center="earth-l2"),
)

SOLAR_SYSTEM_POINTS = (
    DerivedPointConfig(
        id="earth-l2",
        anchor_id="earth",
        away_from_id="sun",
        distance=EARTH_L2_DISTANCE,
    ),
)
