"""
Kepler Solver
=============

Analytic positions on closed Keplerian orbits.

Bodies follow prescribed orbits: mean anomaly grows linearly with
simulation time, Kepler's equation M = E - e*sin(E) gives the eccentric
anomaly, and the focus-based polar form gives the distance from the
reference center. The orbital plane is x-z (y is "up") and is tilted about
the x axis.

Convergence: Newton-Raphson from E0 = M (E0 = pi for e >= 0.8) reaches
1e-10 within 50 iterations for every e <= 0.99. If the iteration budget is
exhausted the last finite iterate is used and a warning is logged.
"""

import logging
import math
from typing import Optional

import numpy as np

from ..core.config import OrbitalElements

logger = logging.getLogger(__name__)

TWO_PI = 2 * np.pi


def wrap_angle(angle: float) -> float:
    """Wrap an angle into [0, 2*pi)."""
    wrapped = float(np.mod(angle, TWO_PI))
    if wrapped >= TWO_PI:
        wrapped = 0.0
    return wrapped


def circular_speed(radius: float, mu: float) -> float:
    """Speed on a circular orbit of the given radius."""
    return math.sqrt(mu / radius)


def orbital_period(semi_major_axis: float, mu: float) -> float:
    """Orbital period from Kepler's third law."""
    return TWO_PI * math.sqrt(semi_major_axis**3 / mu)


def rotation_x(angle: float) -> np.ndarray:
    """Rotation matrix about the x axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([
        [1, 0, 0],
        [0, c, -s],
        [0, s, c]
    ])


def rotation_y(angle: float) -> np.ndarray:
    """Rotation matrix about the y axis."""
    c, s = np.cos(angle), np.sin(angle)
    return np.array([
        [c, 0, s],
        [0, 1, 0],
        [-s, 0, c]
    ])


class KeplerSolver:
    """
    Position solver for elliptical orbits (0 <= e < 1).

    Deterministic: identical inputs give bit-identical outputs, so the
    renderer, path previews and mission logic agree on where a body is.
    """

    def __init__(self,
                 max_iterations: int = 50,
                 tolerance: float = 1e-10):
        """
        Initialize solver.

        Args:
            max_iterations: Newton-Raphson iteration budget
            tolerance: Stop when successive iterates differ by less than this
        """
        self.max_iterations = max_iterations
        self.tolerance = tolerance

    def mean_anomaly(self, elements: OrbitalElements, elapsed: float) -> float:
        """Mean anomaly at the given simulation time, wrapped to [0, 2*pi)."""
        return wrap_angle(elapsed * elements.orbital_period_scale
                          + elements.mean_anomaly_at_epoch)

    def solve_eccentric_anomaly(self, mean_anomaly: float, eccentricity: float) -> float:
        """
        Solve Kepler's equation M = E - e*sin(E) for E.

        Args:
            mean_anomaly: Mean anomaly (rad)
            eccentricity: Orbital eccentricity in [0, 1)

        Returns:
            Eccentric anomaly (rad)
        """
        M = mean_anomaly
        e = eccentricity
        E = M if e < 0.8 else np.pi

        for _ in range(self.max_iterations):
            E_next = E - (E - e * np.sin(E) - M) / (1 - e * np.cos(E))
            if not np.isfinite(E_next):
                logger.warning("Kepler iteration diverged (M=%.6f, e=%.6f), "
                               "using last finite iterate", M, e)
                return float(E)
            if abs(E_next - E) < self.tolerance:
                return float(E_next)
            E = E_next

        logger.warning("Kepler solver did not converge in %d iterations "
                       "(M=%.6f, e=%.6f)", self.max_iterations, M, e)
        return float(E)

    @staticmethod
    def true_anomaly(eccentric_anomaly: float, eccentricity: float) -> float:
        """Convert eccentric anomaly to true anomaly."""
        E, e = eccentric_anomaly, eccentricity
        denom = 1 - e * np.cos(E)
        cos_f = (np.cos(E) - e) / denom
        sin_f = np.sqrt(1 - e * e) * np.sin(E) / denom
        return float(np.arctan2(sin_f, cos_f))

    @staticmethod
    def radius(semi_major_axis: float, eccentricity: float, true_anomaly: float) -> float:
        """Distance from the focus at a given true anomaly."""
        e = eccentricity
        return semi_major_axis * (1 - e * e) / (1 + e * np.cos(true_anomaly))

    @staticmethod
    def orientation(plane_tilt: float,
                    argument_of_periapsis: float = 0.0,
                    ascending_node: float = 0.0) -> np.ndarray:
        """Rotation from the x-z orbital plane to the reference frame."""
        R = rotation_x(plane_tilt)
        if argument_of_periapsis:
            R = R @ rotation_y(argument_of_periapsis)
        if ascending_node:
            R = rotation_y(ascending_node) @ R
        return R

    def position(self,
                 center,
                 semi_major_axis: float,
                 eccentricity: float,
                 plane_tilt: float,
                 mean_anomaly: float,
                 argument_of_periapsis: float = 0.0,
                 ascending_node: float = 0.0) -> np.ndarray:
        """
        Calculate position on the orbit.

        Args:
            center: Focus position [x, y, z]
            semi_major_axis: Semi-major axis
            eccentricity: Eccentricity in [0, 1)
            plane_tilt: Rotation of the orbital plane about x (rad)
            mean_anomaly: Mean anomaly (rad), wrapped internally
            argument_of_periapsis: In-plane rotation (rad)
            ascending_node: Rotation about y after tilting (rad)

        Returns:
            Position [x, y, z]
        """
        M = wrap_angle(mean_anomaly)
        E = self.solve_eccentric_anomaly(M, eccentricity)
        f = self.true_anomaly(E, eccentricity)
        r = self.radius(semi_major_axis, eccentricity, f)

        planar = np.array([r * np.cos(f), 0.0, r * np.sin(f)])
        R = self.orientation(plane_tilt, argument_of_periapsis, ascending_node)

        return np.asarray(center, dtype=float) + R @ planar

    def velocity_direction(self,
                           semi_major_axis: float,
                           eccentricity: float,
                           plane_tilt: float,
                           mean_anomaly: float,
                           argument_of_periapsis: float = 0.0,
                           ascending_node: float = 0.0) -> np.ndarray:
        """
        Unit direction of motion for prograde travel at the given anomaly.

        Returns:
            Unit vector [x, y, z]
        """
        e = eccentricity
        E = self.solve_eccentric_anomaly(wrap_angle(mean_anomaly), e)
        b = semi_major_axis * np.sqrt(1 - e * e)

        # d/dE of (a*(cos E - e), b*sin E)
        tangent = np.array([-semi_major_axis * np.sin(E), 0.0, b * np.cos(E)])
        R = self.orientation(plane_tilt, argument_of_periapsis, ascending_node)
        direction = R @ tangent

        return direction / np.linalg.norm(direction)

    def position_from_elements(self,
                               elements: OrbitalElements,
                               elapsed: float,
                               center: Optional[np.ndarray] = None) -> np.ndarray:
        """Position of a body with the given elements at a simulation time."""
        if center is None:
            center = np.zeros(3)
        return self.position(
            center,
            elements.semi_major_axis,
            elements.eccentricity,
            elements.orbital_plane_tilt,
            self.mean_anomaly(elements, elapsed),
            elements.argument_of_periapsis,
            elements.ascending_node,
        )
