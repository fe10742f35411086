"""
Reference Frame Resolver
========================

Resolves orbit centers that are themselves moving: moons around planets,
spacecraft around planets, and spacecraft around derived points (an
L2-style point beyond a planet on the star-planet line).

The dependency graph between bodies and derived points is built once from
static configuration, stored as a dense integer arena and topologically
sorted. Every resolution pass evaluates nodes strictly in that order, so a
node's center is always the position computed for the same time in the
same pass.
"""

import graphlib
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple

import numpy as np

from ..core.config import (
    ORIGIN_ID,
    BodyConfig,
    ConfigurationError,
    DerivedPointConfig,
    OrbitalElements,
    SimulationConfig,
)
from .kepler import KeplerSolver, wrap_angle


class UnresolvedReferenceError(RuntimeError):
    """A node was evaluated before the node it references."""


class NodeKind(Enum):
    """How a node's position is produced."""
    FIXED = "fixed"
    ORBITING = "orbiting"
    DERIVED = "derived"


@dataclass(frozen=True)
class FrameNode:
    """One entry of the frame arena."""
    index: int
    id: str
    kind: NodeKind
    center_index: Optional[int] = None  # ORBITING; None means the origin
    elements: Optional[OrbitalElements] = None
    fixed_position: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    anchor_index: Optional[int] = None  # DERIVED
    away_index: Optional[int] = None  # DERIVED; None means the origin
    distance: float = 0.0
    rotation_rate: float = 0.0

    @property
    def dependencies(self) -> Tuple[int, ...]:
        deps = (self.center_index, self.anchor_index, self.away_index)
        return tuple(d for d in deps if d is not None)


@dataclass(frozen=True)
class BodyState:
    """Position and spin of one node at one time."""
    id: str
    position: np.ndarray
    rotation_angle: float = 0.0


class FrameGraph:
    """
    Dependency graph over bodies and derived points.

    Nodes are indexed densely in configuration order; ``order`` lists the
    indices so that every node follows everything it references.
    """

    def __init__(self, nodes: List[FrameNode], order: Tuple[int, ...]):
        self.nodes = nodes
        self.order = order
        self._index = {node.id: node.index for node in nodes}
        self._ancestors = self._build_ancestors()

    @classmethod
    def from_config(cls, config: SimulationConfig) -> 'FrameGraph':
        """
        Build and validate the graph.

        Raises:
            ConfigurationError: unknown or duplicate ids, or a reference cycle
        """
        entries: List[object] = list(config.bodies) + list(config.derived_points)
        index: Dict[str, int] = {}
        problems = []
        for i, entry in enumerate(entries):
            if entry.id == ORIGIN_ID or entry.id in index:
                problems.append(f"id '{entry.id}' is duplicated or reserved")
            index[entry.id] = i

        def lookup(owner: str, ref: str) -> Optional[int]:
            if ref == ORIGIN_ID:
                return None
            if ref not in index:
                problems.append(f"'{owner}' references unknown id '{ref}'")
                return None
            if ref == owner:
                problems.append(f"'{owner}' references itself")
                return None
            return index[ref]

        nodes = []
        for i, entry in enumerate(entries):
            if isinstance(entry, BodyConfig):
                if entry.elements is None:
                    nodes.append(FrameNode(
                        index=i, id=entry.id, kind=NodeKind.FIXED,
                        fixed_position=tuple(entry.fixed_position),
                        rotation_rate=entry.rotation_rate,
                    ))
                else:
                    nodes.append(FrameNode(
                        index=i, id=entry.id, kind=NodeKind.ORBITING,
                        center_index=lookup(entry.id, entry.elements.reference_center_id),
                        elements=entry.elements,
                        rotation_rate=entry.rotation_rate,
                    ))
            elif isinstance(entry, DerivedPointConfig):
                nodes.append(FrameNode(
                    index=i, id=entry.id, kind=NodeKind.DERIVED,
                    anchor_index=lookup(entry.id, entry.anchor_id),
                    away_index=lookup(entry.id, entry.away_from_id),
                    distance=entry.distance,
                ))

        if problems:
            raise ConfigurationError(problems)

        sorter = graphlib.TopologicalSorter()
        for node in nodes:
            sorter.add(node.index, *node.dependencies)
        try:
            order = tuple(sorter.static_order())
        except graphlib.CycleError as exc:
            cycle = " -> ".join(nodes[i].id for i in exc.args[1])
            raise ConfigurationError(f"reference cycle: {cycle}") from exc

        return cls(nodes, order)

    def _build_ancestors(self) -> List[FrozenSet[int]]:
        ancestors: List[FrozenSet[int]] = [frozenset()] * len(self.nodes)
        for i in self.order:
            found = set()
            for dep in self.nodes[i].dependencies:
                found.add(dep)
                found |= ancestors[dep]
            ancestors[i] = frozenset(found)
        return ancestors

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._index

    @property
    def ids(self) -> Tuple[str, ...]:
        return tuple(node.id for node in self.nodes)

    def index_of(self, node_id: str) -> int:
        """Arena index for an id (KeyError if unknown)."""
        return self._index[node_id]

    def ancestors(self, index: int) -> FrozenSet[int]:
        """Every node the given node depends on, transitively."""
        return self._ancestors[index]


@dataclass(frozen=True)
class ResolvedFrame:
    """Positions of every node at one simulation time."""
    elapsed: float
    ids: Tuple[str, ...]
    positions: np.ndarray  # (N, 3)
    rotation_angles: np.ndarray  # (N,)
    index: Dict[str, int]

    def position(self, node_id: str) -> np.ndarray:
        """Copy of a node's position; the origin id maps to zero."""
        if node_id == ORIGIN_ID:
            return np.zeros(3)
        return self.positions[self.index[node_id]].copy()

    def as_dict(self) -> Dict[str, np.ndarray]:
        return {node_id: self.positions[i].copy() for i, node_id in enumerate(self.ids)}

    def body_states(self) -> List[BodyState]:
        return [
            BodyState(node_id, self.positions[i].copy(), float(self.rotation_angles[i]))
            for i, node_id in enumerate(self.ids)
        ]


class ReferenceFrameResolver:
    """
    Evaluates node positions in dependency order.

    Pure and re-entrant: every call works on fresh arrays, so it can be used
    for the live tick and for previews at arbitrary times alike.
    """

    def __init__(self, graph: FrameGraph, solver: Optional[KeplerSolver] = None):
        """
        Initialize resolver.

        Args:
            graph: Validated frame graph
            solver: Kepler solver for orbiting nodes
        """
        self.graph = graph
        self.solver = solver or KeplerSolver()

    def resolve(self, elapsed: float) -> ResolvedFrame:
        """
        Resolve every node at a simulation time.

        Args:
            elapsed: Simulation time

        Returns:
            ResolvedFrame with all positions
        """
        return self._evaluate(elapsed, self.graph.order)

    def position_of(self, node_id: str, elapsed: float) -> np.ndarray:
        """Position of a single node, evaluating only the chain it needs."""
        if node_id == ORIGIN_ID:
            return np.zeros(3)
        index = self.graph.index_of(node_id)
        frame = self._evaluate(elapsed, self._chain(index))
        return frame.positions[index].copy()

    def center_of(self, node_id: str, elapsed: float) -> np.ndarray:
        """
        Current orbital focus of a node.

        Returns the referenced node's position evaluated at the same time;
        zero for nodes centered on the origin or fixed in place.
        """
        node = self.graph.nodes[self.graph.index_of(node_id)]
        if node.center_index is None:
            return np.zeros(3)
        return self.position_of(self.graph.nodes[node.center_index].id, elapsed)

    def _chain(self, index: int) -> Tuple[int, ...]:
        needed = self.graph.ancestors(index) | {index}
        return tuple(i for i in self.graph.order if i in needed)

    def _evaluate(self, elapsed: float, order: Tuple[int, ...]) -> ResolvedFrame:
        n = len(self.graph)
        positions = np.zeros((n, 3))
        rotations = np.zeros(n)
        resolved = np.zeros(n, dtype=bool)

        def lookup(owner: FrameNode, index: Optional[int]) -> np.ndarray:
            if index is None:
                return np.zeros(3)
            if not resolved[index]:
                raise UnresolvedReferenceError(
                    f"'{owner.id}' evaluated before '{self.graph.nodes[index].id}'")
            return positions[index]

        for i in order:
            node = self.graph.nodes[i]
            if node.kind is NodeKind.FIXED:
                positions[i] = node.fixed_position
            elif node.kind is NodeKind.ORBITING:
                center = lookup(node, node.center_index)
                positions[i] = self.solver.position_from_elements(node.elements, elapsed, center)
            else:
                positions[i] = self._derived_position(node, lookup)
            rotations[i] = wrap_angle(node.rotation_rate * elapsed)
            resolved[i] = True

        return ResolvedFrame(
            elapsed=elapsed,
            ids=self.graph.ids,
            positions=positions,
            rotation_angles=rotations,
            index={node_id: i for i, node_id in enumerate(self.graph.ids)},
        )

    @staticmethod
    def _derived_position(node: FrameNode, lookup) -> np.ndarray:
        anchor = lookup(node, node.anchor_index)
        away = lookup(node, node.away_index)
        direction = anchor - away
        norm = np.linalg.norm(direction)
        if norm < 1e-12:
            return anchor.copy()
        return anchor + direction / norm * node.distance
