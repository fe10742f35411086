"""
Mission Sequencer
=================

Waypoint-by-waypoint state machine for a mission.

    IDLE -> RUNNING <-> PAUSED -> COMPLETED
            RUNNING / PAUSED  -> CANCELLED

Waiting for a waypoint to finish is state checked on each update, never a
suspended task. Progress on the current waypoint is

    progress = min(1, (elapsed - waypoint_start) / duration)

and at most one waypoint completes per update.
"""

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import List, Optional, Tuple

import numpy as np

from ..core.config import Mission, MissionWaypoint
from ..core.time_manager import SimulationClock
from ..dynamics.frames import ResolvedFrame
from ..dynamics.trajectory import LegBuilder, MissionLeg
from ..dynamics.transfers import TransferPlan

logger = logging.getLogger(__name__)


class MissionStatus(Enum):
    """Mission lifecycle state."""
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class MissionEventType(Enum):
    """Signals emitted by the sequencer."""
    WAYPOINT_STARTED = "waypoint_started"
    WAYPOINT_COMPLETED = "waypoint_completed"
    MISSION_COMPLETED = "mission_completed"
    FOCUS_REQUESTED = "focus_requested"
    MISSION_CANCELLED = "mission_cancelled"


@dataclass(frozen=True)
class MissionEvent:
    """One sequencer signal."""
    type: MissionEventType
    mission_id: str
    elapsed: float
    waypoint_index: Optional[int] = None
    target_id: Optional[str] = None


@dataclass(frozen=True)
class MissionSnapshot:
    """Read-only view of the sequencer after a tick."""
    mission_id: str
    status: MissionStatus
    current_waypoint_index: int
    progress: float
    completed: Tuple[bool, ...]
    delta_v_spent: float
    budget_exceeded: bool
    spacecraft_position: Optional[np.ndarray] = None
    focus_target: Optional[str] = None


@dataclass
class _SequencerState:
    status: MissionStatus = MissionStatus.IDLE
    index: int = 0
    waypoint_start: float = 0.0
    paused_at: float = 0.0
    progress: float = 0.0
    completed: List[bool] = field(default_factory=list)
    delta_v_spent: float = 0.0
    departure_id: Optional[str] = None
    leg: Optional[MissionLeg] = None
    spacecraft_position: Optional[np.ndarray] = None
    focus_target: Optional[str] = None


class MissionSequencer:
    """
    Runs one mission against the shared simulation clock.

    The sequencer only reads the clock. Positions come from the resolved
    frame of the current tick, which is also used to build each waypoint's
    path geometry when the waypoint is entered.
    """

    def __init__(self,
                 mission: Mission,
                 clock: SimulationClock,
                 leg_builder: Optional[LegBuilder] = None):
        """
        Initialize sequencer.

        Args:
            mission: Mission definition
            clock: Simulation clock (read only)
            leg_builder: Builds waypoint geometry; without one only timing
                         is tracked
        """
        self.mission = mission
        self.clock = clock
        self.leg_builder = leg_builder
        self.leg_errors: List[str] = []
        self._state = _SequencerState(completed=[False] * len(mission.waypoints))

    # Read-only state

    @property
    def status(self) -> MissionStatus:
        return self._state.status

    @property
    def current_waypoint_index(self) -> int:
        return self._state.index

    @property
    def current_waypoint(self) -> Optional[MissionWaypoint]:
        if self._state.index < len(self.mission.waypoints):
            return self.mission.waypoints[self._state.index]
        return None

    @property
    def progress(self) -> float:
        return self._state.progress

    @property
    def completed(self) -> Tuple[bool, ...]:
        return tuple(self._state.completed)

    @property
    def leg(self) -> Optional[MissionLeg]:
        return self._state.leg

    @property
    def delta_v_spent(self) -> float:
        return self._state.delta_v_spent

    @property
    def spacecraft_position(self) -> Optional[np.ndarray]:
        if self._state.spacecraft_position is None:
            return None
        return self._state.spacecraft_position.copy()

    @property
    def budget_exceeded(self) -> bool:
        budget = self.mission.total_delta_v_budget
        return budget is not None and self._state.delta_v_spent > budget

    @property
    def is_active(self) -> bool:
        return self._state.status in (MissionStatus.RUNNING, MissionStatus.PAUSED)

    def waypoint_progress(self, index: int) -> float:
        """Progress of any waypoint: 1 once completed, 0 before it starts."""
        if self._state.completed[index]:
            return 1.0
        if index == self._state.index:
            return self._state.progress
        return 0.0

    # Transitions

    def start(self, frame: Optional[ResolvedFrame] = None) -> List[MissionEvent]:
        """
        Start the mission from its first waypoint.

        Only an idle sequencer starts; a finished or cancelled mission keeps
        its completion state until the mission is selected again.

        Args:
            frame: Positions at the current time, used for waypoint geometry

        Returns:
            Events emitted (waypoint started, focus request)
        """
        if self.status is not MissionStatus.IDLE:
            logger.warning("Mission '%s' cannot start: already %s",
                           self.mission.id, self.status.value)
            return []

        waypoints = self.mission.waypoints
        self._state = _SequencerState(
            status=MissionStatus.RUNNING,
            waypoint_start=self.clock.elapsed,
            completed=[False] * len(waypoints),
            departure_id=self.mission.starting_body_id,
        )
        self.leg_errors = []
        logger.info("Mission '%s' started at t=%.3f", self.mission.id, self.clock.elapsed)

        if not waypoints:
            self._state.status = MissionStatus.COMPLETED
            self._state.progress = 1.0
            return [self._event(MissionEventType.MISSION_COMPLETED)]

        return self._enter_waypoint(frame)

    def update(self, frame: Optional[ResolvedFrame] = None) -> List[MissionEvent]:
        """
        Re-evaluate progress after the clock advanced.

        Args:
            frame: Positions resolved for the current tick

        Returns:
            Events emitted during this update
        """
        state = self._state
        if state.status is not MissionStatus.RUNNING:
            return []

        waypoint = self.mission.waypoints[state.index]
        if waypoint.duration <= 0:
            progress = 1.0
        else:
            progress = (self.clock.elapsed - state.waypoint_start) / waypoint.duration
            progress = min(1.0, max(0.0, progress))
        state.progress = progress
        self._track_spacecraft(frame)

        if progress >= 1.0:
            return self._complete_waypoint(frame)
        return []

    def pause(self) -> bool:
        """Freeze waypoint progress. Returns True if the state changed."""
        if self._state.status is not MissionStatus.RUNNING:
            return False
        self._state.status = MissionStatus.PAUSED
        self._state.paused_at = self.clock.elapsed
        logger.info("Mission '%s' paused at t=%.3f", self.mission.id, self.clock.elapsed)
        return True

    def resume(self) -> bool:
        """Continue from the frozen progress. Returns True if the state changed."""
        if self._state.status is not MissionStatus.PAUSED:
            return False
        self._state.waypoint_start += self.clock.elapsed - self._state.paused_at
        self._state.status = MissionStatus.RUNNING
        logger.info("Mission '%s' resumed at t=%.3f", self.mission.id, self.clock.elapsed)
        return True

    def cancel(self) -> List[MissionEvent]:
        """Abort a running or paused mission."""
        if not self.is_active:
            return []
        self._state.status = MissionStatus.CANCELLED
        logger.info("Mission '%s' cancelled at waypoint %d",
                    self.mission.id, self._state.index)
        return [self._event(MissionEventType.MISSION_CANCELLED, self._state.index)]

    # Tick rollback

    def checkpoint(self) -> _SequencerState:
        """Copy of the internal state for restore()."""
        return replace(self._state, completed=list(self._state.completed))

    def restore(self, checkpoint: _SequencerState):
        self._state = replace(checkpoint, completed=list(checkpoint.completed))

    def snapshot(self) -> MissionSnapshot:
        """Get an immutable copy of the mission state."""
        return MissionSnapshot(
            mission_id=self.mission.id,
            status=self._state.status,
            current_waypoint_index=self._state.index,
            progress=self._state.progress,
            completed=tuple(self._state.completed),
            delta_v_spent=self._state.delta_v_spent,
            budget_exceeded=self.budget_exceeded,
            spacecraft_position=self.spacecraft_position,
            focus_target=self._state.focus_target,
        )

    # Internals

    def _event(self, event_type: MissionEventType,
               index: Optional[int] = None,
               target_id: Optional[str] = None) -> MissionEvent:
        return MissionEvent(event_type, self.mission.id, self.clock.elapsed, index, target_id)

    def _enter_waypoint(self, frame: Optional[ResolvedFrame]) -> List[MissionEvent]:
        state = self._state
        waypoint = self.mission.waypoints[state.index]
        departure_id = state.departure_id or waypoint.target_body_id

        state.leg = None
        if self.leg_builder is not None and frame is not None:
            try:
                state.leg = self.leg_builder.build(waypoint, departure_id, frame)
            except ValueError as e:
                message = (f"waypoint {state.index} ({waypoint.kind.value} to "
                           f"'{waypoint.target_body_id}'): {e}")
                logger.warning("Mission '%s' has no path for %s", self.mission.id, message)
                self.leg_errors.append(message)

        state.progress = 0.0
        state.focus_target = waypoint.target_body_id
        self._track_spacecraft(frame)

        return [
            self._event(MissionEventType.WAYPOINT_STARTED, state.index, waypoint.target_body_id),
            self._event(MissionEventType.FOCUS_REQUESTED, state.index, waypoint.target_body_id),
        ]

    def _complete_waypoint(self, frame: Optional[ResolvedFrame]) -> List[MissionEvent]:
        state = self._state
        index = state.index
        waypoint = self.mission.waypoints[index]

        state.completed[index] = True
        was_exceeded = self.budget_exceeded
        state.delta_v_spent += self._waypoint_delta_v(waypoint, state.leg)
        if self.budget_exceeded and not was_exceeded:
            logger.warning("Mission '%s' exceeded its delta-v budget (%.3f > %.3f)",
                           self.mission.id, state.delta_v_spent,
                           self.mission.total_delta_v_budget)

        events = [self._event(MissionEventType.WAYPOINT_COMPLETED, index, waypoint.target_body_id)]
        logger.debug("Mission '%s' waypoint %d complete at t=%.3f",
                     self.mission.id, index, self.clock.elapsed)

        state.departure_id = waypoint.target_body_id
        if index + 1 < len(self.mission.waypoints):
            state.index = index + 1
            state.waypoint_start = self.clock.elapsed
            events.extend(self._enter_waypoint(frame))
        else:
            state.index = len(self.mission.waypoints)
            state.status = MissionStatus.COMPLETED
            events.append(self._event(MissionEventType.MISSION_COMPLETED))
            logger.info("Mission '%s' completed at t=%.3f (delta-v %.3f)",
                        self.mission.id, self.clock.elapsed, state.delta_v_spent)
        return events

    def _track_spacecraft(self, frame: Optional[ResolvedFrame]):
        leg = self._state.leg
        if leg is None or (leg.anchor_id is not None and frame is None):
            return
        self._state.spacecraft_position = leg.position(self._state.progress, frame)

    @staticmethod
    def _waypoint_delta_v(waypoint: MissionWaypoint, leg: Optional[MissionLeg]) -> float:
        if waypoint.delta_v_budget is not None:
            return waypoint.delta_v_budget
        if leg is not None and isinstance(leg.plan, TransferPlan):
            return leg.plan.total_delta_v
        return 0.0
