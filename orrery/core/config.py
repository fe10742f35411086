"""
Simulation Configuration
========================

Static body, derived-point and mission tables for the orrery, plus the
simulation options. Loaded once at startup and validated before the first
tick; invalid data raises ConfigurationError.
"""

import json
import math
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

# Reserved reference id for the coordinate origin
ORIGIN_ID = "origin"

# Scaled gravitational parameter of the star (simulation units)
GRAVITATIONAL_PARAMETER = 100000.0


class ConfigurationError(ValueError):
    """Static configuration violates an invariant."""

    def __init__(self, problems):
        if isinstance(problems, str):
            problems = [problems]
        self.problems = list(problems)
        super().__init__("Invalid configuration:\n  - " + "\n  - ".join(self.problems))


class WaypointKind(str, Enum):
    """Mission waypoint type."""
    ORBIT = "orbit"
    FLYBY = "flyby"
    LANDING = "landing"
    GRAVITY_ASSIST = "gravity-assist"
    HOHMANN_TRANSFER = "hohmann-transfer"
    BI_ELLIPTIC_TRANSFER = "bi-elliptic-transfer"


def _finite(value) -> bool:
    return isinstance(value, (int, float)) and math.isfinite(value)


@dataclass(frozen=True)
class OrbitalElements:
    """Orbital elements of a body relative to its reference center."""
    semi_major_axis: float
    eccentricity: float = 0.0
    orbital_plane_tilt: float = 0.0  # rad, rotation about the x axis
    orbital_period_scale: float = 0.0  # rad per simulation time unit
    reference_center_id: str = ORIGIN_ID
    mean_anomaly_at_epoch: float = 0.0  # rad
    argument_of_periapsis: float = 0.0  # rad, in-plane rotation
    ascending_node: float = 0.0  # rad, rotation about the y axis

    @property
    def periapsis(self) -> float:
        """Closest distance to the reference center."""
        return self.semi_major_axis * (1 - self.eccentricity)

    @property
    def apoapsis(self) -> float:
        """Farthest distance from the reference center."""
        return self.semi_major_axis * (1 + self.eccentricity)

    @property
    def period(self) -> float:
        """Simulation time for one revolution (inf when stationary)."""
        if self.orbital_period_scale == 0:
            return float('inf')
        return 2 * math.pi / abs(self.orbital_period_scale)

    def problems(self, owner: str) -> List[str]:
        """List invariant violations for these elements."""
        found = []
        if not _finite(self.semi_major_axis) or self.semi_major_axis <= 0:
            found.append(f"{owner}: semi_major_axis must be > 0 (got {self.semi_major_axis})")
        if not _finite(self.eccentricity) or not 0 <= self.eccentricity < 1:
            found.append(f"{owner}: eccentricity must be in [0, 1) (got {self.eccentricity})")
        for name in ('orbital_plane_tilt', 'orbital_period_scale', 'mean_anomaly_at_epoch',
                     'argument_of_periapsis', 'ascending_node'):
            if not _finite(getattr(self, name)):
                found.append(f"{owner}: {name} must be finite")
        if not self.reference_center_id:
            found.append(f"{owner}: reference_center_id must not be empty")
        return found


@dataclass(frozen=True)
class BodyConfig:
    """A celestial body or spacecraft with a prescribed orbit."""
    id: str
    name: str = ""
    kind: str = "planet"  # star, planet, moon, dwarf, spacecraft
    radius: float = 1.0
    gravitational_parameter: float = 0.0
    rotation_rate: float = 0.0  # rad per simulation time unit
    elements: Optional[OrbitalElements] = None  # None: fixed at fixed_position
    fixed_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)

    @property
    def reference_center_id(self) -> Optional[str]:
        return self.elements.reference_center_id if self.elements else None


@dataclass(frozen=True)
class DerivedPointConfig:
    """
    Synthetic reference point computed from two other positions.

    The point sits ``distance`` beyond ``anchor_id`` on the line pointing
    away from ``away_from_id`` (an L2-style point).
    """
    id: str
    anchor_id: str
    away_from_id: str = ORIGIN_ID
    distance: float = 0.0


@dataclass(frozen=True)
class MissionWaypoint:
    """One step of a mission."""
    kind: WaypointKind
    target_body_id: str
    duration: float  # simulation time units
    name: str = ""
    description: str = ""
    orbit_radius: Optional[float] = None
    position: Optional[Tuple[float, float, float]] = None
    delta_v_budget: Optional[float] = None
    intermediate_radius: Optional[float] = None  # bi-elliptic only


@dataclass(frozen=True)
class Mission:
    """Ordered sequence of waypoints flown by one spacecraft."""
    id: str
    name: str
    waypoints: Tuple[MissionWaypoint, ...]
    description: str = ""
    spacecraft_id: str = "probe"
    difficulty: str = "easy"
    starting_body_id: Optional[str] = None
    total_delta_v_budget: Optional[float] = None

    @property
    def total_duration(self) -> float:
        return sum(max(0.0, w.duration) for w in self.waypoints)


@dataclass
class SimulationConfig:
    """Complete orrery configuration."""
    bodies: List[BodyConfig] = field(default_factory=list)
    derived_points: List[DerivedPointConfig] = field(default_factory=list)
    missions: List[Mission] = field(default_factory=list)

    # Transfer planning
    central_mu: float = GRAVITATIONAL_PARAMETER
    assist_boost_factor: float = 1.1  # empirical, tunable
    closest_approach_factor: float = 1.5  # multiples of body radius
    bi_elliptic_radius_factor: float = 3.0  # default r_intermediate / max(r1, r2)
    orbit_radius_factor: float = 3.0  # default waypoint orbit radius / body radius

    # Clock
    initial_time_scale: float = 1.0
    min_time_scale: float = 0.01

    # Kepler solver
    kepler_max_iterations: int = 50
    kepler_tolerance: float = 1e-10

    # Output options
    preview_points: int = 100
    history_interval: float = 1.0  # simulation time between history records
    history_limit: int = 1000  # snapshots kept, oldest dropped first
    report_limit: int = 500  # reports kept, oldest dropped first
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration."""
        problems = self.validate()
        if problems:
            raise ConfigurationError(problems)

    @property
    def node_ids(self) -> List[str]:
        return [b.id for b in self.bodies] + [p.id for p in self.derived_points]

    def body(self, body_id: str) -> Optional[BodyConfig]:
        for b in self.bodies:
            if b.id == body_id:
                return b
        return None

    def mission(self, mission_id: str) -> Optional[Mission]:
        for m in self.missions:
            if m.id == mission_id:
                return m
        return None

    def validate(self) -> List[str]:
        """
        Check every static invariant.

        Reference cycles are detected separately when the frame graph is
        built (also before the first tick).

        Returns:
            List of problem descriptions (empty when valid)
        """
        problems = []

        if not _finite(self.central_mu) or self.central_mu <= 0:
            problems.append("central_mu must be > 0")
        if not _finite(self.min_time_scale) or self.min_time_scale <= 0:
            problems.append("min_time_scale must be > 0")
        if not _finite(self.initial_time_scale) or self.initial_time_scale <= 0:
            problems.append("initial_time_scale must be > 0")
        if self.kepler_max_iterations < 1:
            problems.append("kepler_max_iterations must be >= 1")
        if not _finite(self.kepler_tolerance) or self.kepler_tolerance <= 0:
            problems.append("kepler_tolerance must be > 0")
        if self.preview_points < 1:
            problems.append("preview_points must be >= 1")
        if self.history_limit < 1:
            problems.append("history_limit must be >= 1")
        if self.report_limit < 1:
            problems.append("report_limit must be >= 1")

        seen = set()
        for node_id in self.node_ids:
            if node_id == ORIGIN_ID:
                problems.append(f"'{ORIGIN_ID}' is reserved for the coordinate origin")
            elif node_id in seen:
                problems.append(f"duplicate id '{node_id}'")
            seen.add(node_id)
        known = seen | {ORIGIN_ID}

        for b in self.bodies:
            if not _finite(b.radius) or b.radius <= 0:
                problems.append(f"body '{b.id}': radius must be > 0")
            if not _finite(b.gravitational_parameter) or b.gravitational_parameter < 0:
                problems.append(f"body '{b.id}': gravitational_parameter must be >= 0")
            if not _finite(b.rotation_rate):
                problems.append(f"body '{b.id}': rotation_rate must be finite")
            if b.elements is None:
                if len(b.fixed_position) != 3 or not all(_finite(c) for c in b.fixed_position):
                    problems.append(f"body '{b.id}': fixed_position must be 3 finite numbers")
                continue
            problems.extend(b.elements.problems(f"body '{b.id}'"))
            if b.elements.reference_center_id not in known:
                problems.append(
                    f"body '{b.id}': unknown reference center '{b.elements.reference_center_id}'")

        for p in self.derived_points:
            if not _finite(p.distance):
                problems.append(f"derived point '{p.id}': distance must be finite")
            for ref in (p.anchor_id, p.away_from_id):
                if ref not in known:
                    problems.append(f"derived point '{p.id}': unknown reference '{ref}'")
            if p.anchor_id == p.away_from_id:
                problems.append(f"derived point '{p.id}': anchor and away_from must differ")

        mission_ids = set()
        for m in self.missions:
            if m.id in mission_ids:
                problems.append(f"duplicate mission id '{m.id}'")
            mission_ids.add(m.id)
            if m.starting_body_id is not None and m.starting_body_id not in known:
                problems.append(f"mission '{m.id}': unknown starting body '{m.starting_body_id}'")
            for i, w in enumerate(m.waypoints):
                problems.extend(_waypoint_problems(f"mission '{m.id}' waypoint {i}", w, known))

        return problems

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationConfig':
        """
        Build a configuration from plain data (e.g. parsed JSON).

        Args:
            data: Mapping with 'bodies', 'derived_points', 'missions' and
                  optional scalar options

        Returns:
            Validated SimulationConfig
        """
        try:
            bodies = [_body_from_dict(b) for b in data.get('bodies', [])]
            points = [DerivedPointConfig(**p) for p in data.get('derived_points', [])]
            missions = [_mission_from_dict(m) for m in data.get('missions', [])]
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigurationError(f"malformed configuration data: {exc}") from exc

        options = {k: v for k, v in data.items()
                   if k not in ('bodies', 'derived_points', 'missions')}
        try:
            return cls(bodies=bodies, derived_points=points, missions=missions, **options)
        except TypeError as exc:
            raise ConfigurationError(f"unknown configuration option: {exc}") from exc


def _waypoint_problems(owner: str, w: MissionWaypoint, known) -> List[str]:
    found = []
    if not isinstance(w.kind, WaypointKind):
        found.append(f"{owner}: unknown kind '{w.kind}'")
    if w.target_body_id not in known:
        found.append(f"{owner}: unknown target '{w.target_body_id}'")
    if not _finite(w.duration) or w.duration <= 0:
        found.append(f"{owner}: duration must be > 0 (got {w.duration})")
    if w.orbit_radius is not None and (not _finite(w.orbit_radius) or w.orbit_radius <= 0):
        found.append(f"{owner}: orbit_radius must be > 0")
    if w.delta_v_budget is not None and (not _finite(w.delta_v_budget) or w.delta_v_budget < 0):
        found.append(f"{owner}: delta_v_budget must be >= 0")
    if w.intermediate_radius is not None and (
            not _finite(w.intermediate_radius) or w.intermediate_radius <= 0):
        found.append(f"{owner}: intermediate_radius must be > 0")
    if w.position is not None and (
            len(w.position) != 3 or not all(_finite(c) for c in w.position)):
        found.append(f"{owner}: position must be 3 finite numbers")
    return found


def _body_from_dict(data: Dict[str, Any]) -> BodyConfig:
    data = dict(data)
    elements = data.pop('elements', None)
    if elements is not None:
        data['elements'] = OrbitalElements(**elements)
    if 'fixed_position' in data:
        data['fixed_position'] = tuple(data['fixed_position'])
    return BodyConfig(**data)


def _waypoint_from_dict(data: Dict[str, Any]) -> MissionWaypoint:
    data = dict(data)
    data['kind'] = WaypointKind(data['kind'])
    if data.get('position') is not None:
        data['position'] = tuple(data['position'])
    return MissionWaypoint(**data)


def _mission_from_dict(data: Dict[str, Any]) -> Mission:
    data = dict(data)
    data['waypoints'] = tuple(_waypoint_from_dict(w) for w in data.get('waypoints', []))
    return Mission(**data)


def load_config(path) -> SimulationConfig:
    """
    Load a configuration from a JSON file.

    Args:
        path: Path to the JSON file

    Returns:
        Validated SimulationConfig
    """
    path = Path(path)
    with path.open("r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"{path}: invalid JSON ({exc})") from exc
    return SimulationConfig.from_dict(data)


# Pre-defined configurations
def create_solar_system_config(**options) -> SimulationConfig:
    """Create configuration with the built-in Solar System and missions."""
    from ..environment.solar_system import SOLAR_SYSTEM_BODIES, SOLAR_SYSTEM_POINTS
    from ..missions.catalog import MISSIONS

    return SimulationConfig(
        bodies=list(SOLAR_SYSTEM_BODIES),
        derived_points=list(SOLAR_SYSTEM_POINTS),
        missions=list(MISSIONS),
        **options,
    )
