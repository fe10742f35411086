"""
Trajectory Sampler
==================

Path geometry for mission waypoints and polyline previews of orbits,
transfers and mission legs.

A mission leg maps normalized progress (0 to 1) to a position. Legs anchored
to a body are expressed relative to it and follow its current position;
unanchored legs (transfers around the star, paths to fixed points) are
fixed in the reference frame once built.
"""

import math
from typing import Optional, Union

import numpy as np

from ..core.config import SimulationConfig, WaypointKind, MissionWaypoint
from .frames import NodeKind, ReferenceFrameResolver, ResolvedFrame
from .kepler import KeplerSolver, TWO_PI, circular_speed, wrap_angle
from .transfers import GravityAssistResult, TransferPlan, TransferPlanner

UP = np.array([0.0, 1.0, 0.0])

# Parking orbit shape used for orbit waypoints
ORBIT_ECCENTRICITY = 0.01
ORBIT_TILT = math.radians(15.0)
ORBIT_ASCENDING_NODE = math.radians(30.0)

# Height of the arc on flyby paths, as a fraction of the path length
FLYBY_BULGE = 0.1


def _unit(vector: np.ndarray, fallback: np.ndarray) -> np.ndarray:
    norm = np.linalg.norm(vector)
    if norm < 1e-12:
        return np.asarray(fallback, dtype=float)
    return vector / norm


def _perpendicular(direction: np.ndarray) -> np.ndarray:
    """Prograde in-plane direction for a radial direction."""
    q = np.cross(direction, UP)
    if np.linalg.norm(q) < 1e-12:
        q = np.cross(direction, np.array([0.0, 0.0, 1.0]))
    return q / np.linalg.norm(q)


class MissionLeg:
    """Geometry of one waypoint: normalized progress -> position."""

    kind: WaypointKind = None
    closed = False

    def __init__(self, anchor_id: Optional[str] = None, plan=None):
        self.anchor_id = anchor_id
        self.plan = plan

    def local_position(self, progress: float) -> np.ndarray:
        """Position relative to the anchor (or the origin if unanchored)."""
        raise NotImplementedError

    def position(self, progress: float, frame: Optional[ResolvedFrame] = None) -> np.ndarray:
        """
        Position along the leg.

        Args:
            progress: Normalized progress, clamped to [0, 1]
            frame: Resolved positions used for the anchor body

        Returns:
            Position [x, y, z]
        """
        progress = min(1.0, max(0.0, progress))
        local = self.local_position(progress)
        if self.anchor_id is None:
            return local
        if frame is None:
            raise ValueError(f"leg anchored to '{self.anchor_id}' needs a resolved frame")
        return frame.position(self.anchor_id) + local

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind}, anchor={self.anchor_id})"


class OrbitLeg(MissionLeg):
    """One revolution of a parking orbit around the anchor."""

    kind = WaypointKind.ORBIT
    closed = True

    def __init__(self, anchor_id: str, radius: float, solver: KeplerSolver):
        super().__init__(anchor_id)
        self.radius = radius
        self.solver = solver

    def local_position(self, progress: float) -> np.ndarray:
        return self.solver.position(
            np.zeros(3), self.radius, ORBIT_ECCENTRICITY, ORBIT_TILT,
            TWO_PI * progress, 0.0, ORBIT_ASCENDING_NODE,
        )


class LineLeg(MissionLeg):
    """Straight path, optionally arched along the up axis."""

    def __init__(self, kind: WaypointKind, start, end,
                 anchor_id: Optional[str] = None, bulge: float = 0.0):
        super().__init__(anchor_id)
        self.kind = kind
        self.start = np.asarray(start, dtype=float)
        self.end = np.asarray(end, dtype=float)
        self.bulge = bulge

    def local_position(self, progress: float) -> np.ndarray:
        delta = self.end - self.start
        arch = math.sin(progress * math.pi) * np.linalg.norm(delta) * self.bulge
        return self.start + delta * progress + UP * arch


class ArcLeg(MissionLeg):
    """Half-circle swing around the anchor at closest-approach distance."""

    kind = WaypointKind.GRAVITY_ASSIST

    def __init__(self, anchor_id: str, radius: float,
                 approach: np.ndarray, swing: np.ndarray,
                 plan: Optional[GravityAssistResult] = None):
        super().__init__(anchor_id, plan)
        self.radius = radius
        self.approach = approach
        self.swing = swing

    def local_position(self, progress: float) -> np.ndarray:
        angle = math.pi * progress
        return self.radius * (math.cos(angle) * self.approach + math.sin(angle) * self.swing)


class _HalfEllipse:
    """Half of a transfer ellipse focused on the origin, timed by Kepler's equation."""

    def __init__(self, start_radius: float, end_radius: float,
                 start_direction: np.ndarray, solver: KeplerSolver):
        self.solver = solver
        self.semi_major_axis = (start_radius + end_radius) / 2
        self.eccentricity = abs(end_radius - start_radius) / (start_radius + end_radius)
        if end_radius >= start_radius:
            # Depart at periapsis
            self.periapsis = start_direction
            self.mean_anomaly_start = 0.0
        else:
            # Depart at apoapsis
            self.periapsis = -start_direction
            self.mean_anomaly_start = math.pi
        self.normal = _perpendicular(self.periapsis)
        self.end_direction = -start_direction

    def position(self, progress: float) -> np.ndarray:
        M = wrap_angle(self.mean_anomaly_start + math.pi * progress)
        E = self.solver.solve_eccentric_anomaly(M, self.eccentricity)
        f = self.solver.true_anomaly(E, self.eccentricity)
        r = self.solver.radius(self.semi_major_axis, self.eccentricity, f)
        return r * (math.cos(f) * self.periapsis + math.sin(f) * self.normal)


class TransferLeg(MissionLeg):
    """Hohmann or bi-elliptic transfer around the origin."""

    def __init__(self, plan: TransferPlan, solver: KeplerSolver,
                 departure_direction=(1.0, 0.0, 0.0)):
        super().__init__(None, plan)
        direction = _unit(np.asarray(departure_direction, dtype=float), np.array([1.0, 0.0, 0.0]))

        first_end = plan.destination_radius if plan.intermediate is None \
            else plan.intermediate.radius
        self._segments = [_HalfEllipse(plan.origin_radius, first_end, direction, solver)]
        self._split = 1.0

        if plan.intermediate is None:
            self.kind = WaypointKind.HOHMANN_TRANSFER
        else:
            self.kind = WaypointKind.BI_ELLIPTIC_TRANSFER
            self._segments.append(_HalfEllipse(
                plan.intermediate.radius, plan.destination_radius,
                self._segments[0].end_direction, solver))
            if plan.transfer_duration > 0:
                self._split = plan.first_leg_duration / plan.transfer_duration
            else:
                self._split = 0.5

    def local_position(self, progress: float) -> np.ndarray:
        if len(self._segments) == 1:
            return self._segments[0].position(progress)
        if progress <= self._split:
            return self._segments[0].position(progress / self._split)
        return self._segments[1].position((progress - self._split) / (1 - self._split))


class LegBuilder:
    """
    Builds the geometry for each waypoint when the mission reaches it.

    Transfers are planned from the departure and target positions at the
    moment the waypoint begins.
    """

    def __init__(self,
                 config: SimulationConfig,
                 planner: Optional[TransferPlanner] = None,
                 solver: Optional[KeplerSolver] = None):
        self.config = config
        self.planner = planner or TransferPlanner(
            central_mu=config.central_mu,
            assist_boost_factor=config.assist_boost_factor,
            closest_approach_factor=config.closest_approach_factor,
        )
        self.solver = solver or KeplerSolver(config.kepler_max_iterations,
                                             config.kepler_tolerance)

    def _radius(self, body_id: str) -> float:
        body = self.config.body(body_id)
        return body.radius if body is not None else 1.0

    def _mu(self, body_id: str) -> float:
        body = self.config.body(body_id)
        return body.gravitational_parameter if body is not None else 0.0

    def build(self,
              waypoint: MissionWaypoint,
              departure_id: str,
              frame: ResolvedFrame) -> MissionLeg:
        """
        Build the leg for a waypoint.

        Args:
            waypoint: Waypoint being entered
            departure_id: Body the spacecraft leaves from
            frame: Positions at the moment the waypoint begins

        Returns:
            MissionLeg

        Raises:
            ValueError: the transfer cannot be planned (e.g. zero radius)
        """
        target_id = waypoint.target_body_id
        departure = frame.position(departure_id)
        target = frame.position(target_id)
        body_radius = self._radius(target_id)
        parking_radius = waypoint.orbit_radius or body_radius * self.config.orbit_radius_factor

        kind = waypoint.kind
        if kind is WaypointKind.ORBIT:
            return OrbitLeg(target_id, parking_radius, self.solver)

        if kind in (WaypointKind.FLYBY, WaypointKind.LANDING) and waypoint.position is not None:
            bulge = FLYBY_BULGE if kind is WaypointKind.FLYBY else 0.0
            return LineLeg(kind, departure, waypoint.position, bulge=bulge)

        if kind is WaypointKind.FLYBY:
            closest = UP * body_radius * self.config.closest_approach_factor
            return LineLeg(kind, departure - target, closest, anchor_id=target_id,
                           bulge=FLYBY_BULGE)

        if kind is WaypointKind.LANDING:
            direction = _unit(departure - target, UP)
            return LineLeg(kind, direction * parking_radius, direction * body_radius,
                           anchor_id=target_id)

        if kind is WaypointKind.GRAVITY_ASSIST:
            return self._build_assist(target_id, departure, target, body_radius)

        r1 = float(np.linalg.norm(departure))
        r2 = float(np.linalg.norm(target))
        if kind is WaypointKind.HOHMANN_TRANSFER:
            plan = self.planner.plan_hohmann(r1, r2)
        else:
            r_intermediate = waypoint.intermediate_radius or \
                self.config.bi_elliptic_radius_factor * max(r1, r2)
            plan = self.planner.plan_bi_elliptic(r1, r2, r_intermediate)
        return TransferLeg(plan, self.solver, departure)

    def _build_assist(self, target_id: str, departure: np.ndarray,
                      target: np.ndarray, body_radius: float) -> ArcLeg:
        heading = _unit(target - departure, _perpendicular(_unit(target, np.array([1.0, 0.0, 0.0]))))
        speed = circular_speed(max(np.linalg.norm(target), body_radius), self.config.central_mu)

        plan = self.planner.plan_gravity_assist(heading * speed, self._mu(target_id), body_radius)

        approach = -heading
        out = plan.outgoing_velocity / np.linalg.norm(plan.outgoing_velocity)
        deflection = out - np.dot(out, heading) * heading
        swing = -_unit(deflection, np.cross(plan.rotation_axis, approach))

        radius = body_radius * self.planner.closest_approach_factor
        return ArcLeg(target_id, radius, approach, swing, plan)


class TrajectorySampler:
    """
    Polyline previews of orbits, transfer plans and mission legs.

    Sampling has no side effects and can be repeated with any point count.
    Closed orbits are sampled at mean anomaly 2*pi*i/N for i = 0..N, so the
    first and last points coincide.
    """

    def __init__(self, resolver: ReferenceFrameResolver, solver: Optional[KeplerSolver] = None):
        self.resolver = resolver
        self.solver = solver or resolver.solver

    def sample(self,
               target: Union[str, TransferPlan, MissionLeg],
               point_count: int,
               elapsed: float = 0.0) -> np.ndarray:
        """
        Sample a path.

        Args:
            target: Body id, transfer plan or mission leg
            point_count: Number of intervals N (N + 1 points are returned)
            elapsed: Simulation time at which moving centers are evaluated

        Returns:
            Array of shape (N + 1, 3)
        """
        if isinstance(point_count, bool) or not isinstance(point_count, (int, np.integer)) \
                or point_count < 1:
            raise ValueError(f"point_count must be a positive integer (got {point_count!r})")

        if isinstance(target, str):
            return self.sample_body(target, point_count, elapsed)
        if isinstance(target, TransferPlan):
            return self.sample_leg(TransferLeg(target, self.solver), point_count, elapsed)
        if isinstance(target, MissionLeg):
            return self.sample_leg(target, point_count, elapsed)
        raise TypeError(f"cannot sample {type(target).__name__}")

    def sample_body(self, body_id: str, point_count: int, elapsed: float = 0.0) -> np.ndarray:
        """Closed orbit of a body around its center as it is at ``elapsed``."""
        graph = self.resolver.graph
        if body_id not in graph:
            raise ValueError(f"unknown body '{body_id}'")
        node = graph.nodes[graph.index_of(body_id)]

        if node.kind is not NodeKind.ORBITING:
            position = self.resolver.position_of(body_id, elapsed)
            return np.tile(position, (point_count + 1, 1))

        center = self.resolver.center_of(body_id, elapsed)
        el = node.elements
        return np.array([
            self.solver.position(center, el.semi_major_axis, el.eccentricity,
                                 el.orbital_plane_tilt, TWO_PI * i / point_count,
                                 el.argument_of_periapsis, el.ascending_node)
            for i in range(point_count + 1)
        ])

    def sample_leg(self, leg: MissionLeg, point_count: int, elapsed: float = 0.0) -> np.ndarray:
        """Leg positions at evenly spaced progress values."""
        frame = self.resolver.resolve(elapsed) if leg.anchor_id is not None else None
        return np.array([leg.position(i / point_count, frame) for i in range(point_count + 1)])
