"""
Transfer Planner
================

Delta-v and timing budgets for transfers between circular orbits, and a
simplified gravity-assist deflection.

Equations (coplanar circular orbits about a central body with parameter mu):

    Transfer ellipse:      a_t  = (r1 + r2) / 2
    Circular speed:        v_c  = sqrt(mu / r)
    Vis-viva on ellipse:   v_t  = sqrt(mu * (2/r - 1/a_t))
    Burns:                 dv1  = |v_t1 - v_c1|,  dv2 = |v_c2 - v_t2|
    Transfer time:         T    = pi * sqrt(a_t^3 / mu)   (half a period)

The gravity assist is an approximation, not a patched-conic or three-body
solution: the incoming velocity is turned by atan(mu / (k * R * |v|^2))
and scaled by an empirical boost factor standing in for momentum taken from
the body's orbital motion.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional, Union

import numpy as np

from ..core.config import GRAVITATIONAL_PARAMETER

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IntermediateLeg:
    """Second ellipse of a bi-elliptic transfer (r_intermediate -> r2)."""
    radius: float
    semi_major_axis: float
    eccentricity: float
    delta_v: float  # burn at r_intermediate
    duration: float


@dataclass(frozen=True)
class TransferPlan:
    """Delta-v and timing budget for an orbit transfer."""
    kind: str  # 'hohmann' or 'bi-elliptic'
    origin_radius: float
    destination_radius: float
    semi_major_axis: float
    delta_v1: float
    delta_v2: float
    total_delta_v: float
    transfer_duration: float
    eccentricity: float
    intermediate: Optional[IntermediateLeg] = None
    mu: float = GRAVITATIONAL_PARAMETER

    @property
    def first_leg_duration(self) -> float:
        if self.intermediate is None:
            return self.transfer_duration
        return self.transfer_duration - self.intermediate.duration


@dataclass(frozen=True)
class GravityAssistResult:
    """Outcome of a simplified gravity-assist flyby."""
    incoming_velocity: np.ndarray
    outgoing_velocity: np.ndarray
    turn_angle: float  # rad
    rotation_axis: np.ndarray
    boost_factor: float

    @property
    def speed_gain(self) -> float:
        return float(np.linalg.norm(self.outgoing_velocity) - np.linalg.norm(self.incoming_velocity))


def _check_positive(**values):
    for name, value in values.items():
        if not math.isfinite(value) or value <= 0:
            raise ValueError(f"{name} must be positive (got {value})")


def rotate_about_axis(vector: np.ndarray, axis: np.ndarray, angle: float) -> np.ndarray:
    """Rotate a vector about a unit axis (Rodrigues' formula)."""
    c, s = np.cos(angle), np.sin(angle)
    return vector * c + np.cross(axis, vector) * s + axis * np.dot(axis, vector) * (1 - c)


class TransferPlanner:
    """
    Transfer and gravity-assist planner.

    Supports:
    - Hohmann transfers (two burns)
    - Bi-elliptic transfers (three burns)
    - Simplified gravity assists
    """

    def __init__(self,
                 central_mu: float = GRAVITATIONAL_PARAMETER,
                 assist_boost_factor: float = 1.1,
                 closest_approach_factor: float = 1.5):
        """
        Initialize planner.

        Args:
            central_mu: Gravitational parameter of the central body
            assist_boost_factor: Speed multiplier applied by a gravity assist
            closest_approach_factor: Default flyby distance in body radii
        """
        self.central_mu = central_mu
        self.assist_boost_factor = assist_boost_factor
        self.closest_approach_factor = closest_approach_factor

    def _hohmann_leg(self, r1: float, r2: float, mu: float):
        a = (r1 + r2) / 2
        v1 = math.sqrt(mu / r1)
        v2 = math.sqrt(mu / r2)
        vt1 = math.sqrt(mu * (2 / r1 - 1 / a))
        vt2 = math.sqrt(mu * (2 / r2 - 1 / a))
        duration = math.pi * math.sqrt(a**3 / mu)
        eccentricity = abs(r2 - r1) / (r2 + r1)
        return a, v1, v2, vt1, vt2, duration, eccentricity

    def plan_hohmann(self, r1: float, r2: float, mu: Optional[float] = None) -> TransferPlan:
        """
        Plan a Hohmann transfer between two circular orbits.

        Equal radii give a degenerate plan with zero delta-v.

        Args:
            r1: Radius of the starting orbit
            r2: Radius of the target orbit
            mu: Central gravitational parameter (default: planner's)

        Returns:
            TransferPlan
        """
        mu = self.central_mu if mu is None else mu
        _check_positive(r1=r1, r2=r2, mu=mu)

        a, v1, v2, vt1, vt2, duration, eccentricity = self._hohmann_leg(r1, r2, mu)
        if r1 == r2:
            dv1 = dv2 = 0.0
        else:
            dv1 = abs(vt1 - v1)
            dv2 = abs(v2 - vt2)

        logger.debug("Hohmann %.3f -> %.3f: dv1=%.4f dv2=%.4f T=%.3f",
                     r1, r2, dv1, dv2, duration)

        return TransferPlan(
            kind='hohmann',
            origin_radius=r1,
            destination_radius=r2,
            semi_major_axis=a,
            delta_v1=dv1,
            delta_v2=dv2,
            total_delta_v=dv1 + dv2,
            transfer_duration=duration,
            eccentricity=eccentricity,
            mu=mu,
        )

    def plan_bi_elliptic(self,
                         r1: float,
                         r2: float,
                         r_intermediate: float,
                         mu: Optional[float] = None) -> TransferPlan:
        """
        Plan a bi-elliptic transfer via an intermediate apoapsis.

        The intermediate radius is the caller's choice; it only pays off when
        it is much larger than both r1 and r2.

        Args:
            r1: Radius of the starting orbit
            r2: Radius of the target orbit
            r_intermediate: Apoapsis shared by both transfer ellipses
            mu: Central gravitational parameter (default: planner's)

        Returns:
            TransferPlan with an intermediate leg
        """
        mu = self.central_mu if mu is None else mu
        _check_positive(r1=r1, r2=r2, r_intermediate=r_intermediate, mu=mu)

        # First ellipse: r1 -> r_intermediate
        a1, v1, _, vt1, v_int1, t1, e1 = self._hohmann_leg(r1, r_intermediate, mu)
        dv1 = abs(vt1 - v1)

        # Second ellipse: r_intermediate -> r2
        a2, _, v2, v_int2, vt2, t2, e2 = self._hohmann_leg(r_intermediate, r2, mu)
        dv_intermediate = abs(v_int2 - v_int1)
        dv2 = abs(v2 - vt2)

        logger.debug("Bi-elliptic %.3f -> %.3f -> %.3f: dv=%.4f+%.4f+%.4f T=%.3f",
                     r1, r_intermediate, r2, dv1, dv_intermediate, dv2, t1 + t2)

        return TransferPlan(
            kind='bi-elliptic',
            origin_radius=r1,
            destination_radius=r2,
            semi_major_axis=a1,
            delta_v1=dv1,
            delta_v2=dv2,
            total_delta_v=dv1 + dv_intermediate + dv2,
            transfer_duration=t1 + t2,
            eccentricity=e1,
            intermediate=IntermediateLeg(
                radius=r_intermediate,
                semi_major_axis=a2,
                eccentricity=e2,
                delta_v=dv_intermediate,
                duration=t2,
            ),
            mu=mu,
        )

    def compare_transfers(self,
                          r1: float,
                          r2: float,
                          r_intermediate: float,
                          mu: Optional[float] = None) -> TransferPlan:
        """Return whichever of Hohmann or bi-elliptic needs less delta-v."""
        hohmann = self.plan_hohmann(r1, r2, mu)
        bi_elliptic = self.plan_bi_elliptic(r1, r2, r_intermediate, mu)
        if bi_elliptic.total_delta_v < hohmann.total_delta_v:
            return bi_elliptic
        return hohmann

    def plan_gravity_assist(self,
                            incoming_velocity: Union[np.ndarray, list],
                            body_mu: float,
                            body_radius: float,
                            closest_approach_factor: Optional[float] = None,
                            up=(0.0, 1.0, 0.0)) -> GravityAssistResult:
        """
        Simplified gravity-assist deflection.

        Args:
            incoming_velocity: Velocity before the flyby [vx, vy, vz]
            body_mu: Gravitational parameter of the flyby body
            body_radius: Radius of the flyby body
            closest_approach_factor: Closest approach in body radii
            up: Reference direction defining the deflection plane

        Returns:
            GravityAssistResult
        """
        k = self.closest_approach_factor if closest_approach_factor is None \
            else closest_approach_factor
        _check_positive(body_radius=body_radius, closest_approach_factor=k)
        if not math.isfinite(body_mu) or body_mu < 0:
            raise ValueError(f"body_mu must be non-negative (got {body_mu})")

        v_in = np.asarray(incoming_velocity, dtype=float)
        speed = np.linalg.norm(v_in)
        if speed < 1e-12:
            return GravityAssistResult(
                incoming_velocity=v_in.copy(),
                outgoing_velocity=v_in.copy(),
                turn_angle=0.0,
                rotation_axis=np.asarray(up, dtype=float),
                boost_factor=1.0,
            )

        turn_angle = math.atan(body_mu / (k * body_radius * speed**2))

        axis = np.cross(np.asarray(up, dtype=float), v_in)
        if np.linalg.norm(axis) < 1e-12:
            # Velocity parallel to up: any perpendicular axis will do
            axis = np.cross(np.array([1.0, 0.0, 0.0]), v_in)
            if np.linalg.norm(axis) < 1e-12:
                axis = np.cross(np.array([0.0, 0.0, 1.0]), v_in)
        axis = axis / np.linalg.norm(axis)

        v_out = rotate_about_axis(v_in, axis, turn_angle) * self.assist_boost_factor

        return GravityAssistResult(
            incoming_velocity=v_in.copy(),
            outgoing_velocity=v_out,
            turn_angle=turn_angle,
            rotation_axis=axis,
            boost_factor=self.assist_boost_factor,
        )
