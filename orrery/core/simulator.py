"""
Main Simulator
==============

Central engine orchestrating the clock, frame resolution and the mission
sequencer.

Each tick performs exactly one clock advance, one full resolution pass in
dependency order and one sequencer update, then commits the new state and
notifies listeners. Collaborators only ever read the state of the most
recently completed tick.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable, Deque, Dict, List, Optional, Tuple

import numpy as np

from .config import SimulationConfig, create_solar_system_config
from .time_manager import SimulationClock
from ..dynamics.frames import BodyState, FrameGraph, ReferenceFrameResolver, ResolvedFrame
from ..dynamics.kepler import KeplerSolver
from ..dynamics.trajectory import LegBuilder, TrajectorySampler
from ..dynamics.transfers import TransferPlanner
from ..missions.sequencer import (
    MissionEvent,
    MissionEventType,
    MissionSequencer,
    MissionSnapshot,
    MissionStatus,
)

logger = logging.getLogger(__name__)


class ReportSeverity(IntEnum):
    """Severity of a reported runtime condition."""
    INFO = 0
    WARNING = 1
    ERROR = 2


@dataclass(frozen=True)
class Report:
    """Recoverable runtime condition surfaced to the caller."""
    severity: ReportSeverity
    message: str
    elapsed: float
    source: str = ""


@dataclass
class SimulationSnapshot:
    """Complete state after one tick, for collaborators and logging."""
    tick: int = 0
    elapsed: float = 0.0
    time_scale: float = 1.0
    paused: bool = False
    positions: Dict[str, np.ndarray] = field(default_factory=dict)
    rotation_angles: Dict[str, float] = field(default_factory=dict)
    focused_body: Optional[str] = None
    mission: Optional[MissionSnapshot] = None


@dataclass(frozen=True)
class TickResult:
    """Outcome of Simulator.tick()."""
    success: bool
    elapsed: float
    events: Tuple[MissionEvent, ...] = ()
    reports: Tuple[Report, ...] = ()


EventListener = Callable[['Simulator', MissionEvent], None]


class Simulator:
    """
    Orrery simulation engine.

    Integrates:
    - Simulation clock (elapsed time, time scale, pause)
    - Keplerian positions for every body, resolved in dependency order
    - Transfer planning and path previews
    - Mission sequencing with waypoint events

    Nothing raises across the tick boundary: a failing tick keeps the
    previous tick's state and is returned as a report.
    """

    def __init__(self,
                 config: Optional[SimulationConfig] = None,
                 clock: Optional[SimulationClock] = None):
        """
        Initialize simulator.

        Args:
            config: Simulation configuration (default: built-in Solar System)
            clock: Simulation clock (default: new clock from config)

        Raises:
            ConfigurationError: the body graph has unknown references or a cycle
        """
        self.config = config or create_solar_system_config()

        self.clock = clock or SimulationClock(
            time_scale=self.config.initial_time_scale,
            min_time_scale=self.config.min_time_scale,
        )

        self.solver = KeplerSolver(
            max_iterations=self.config.kepler_max_iterations,
            tolerance=self.config.kepler_tolerance,
        )
        self.graph = FrameGraph.from_config(self.config)
        self.resolver = ReferenceFrameResolver(self.graph, self.solver)

        self.planner = TransferPlanner(
            central_mu=self.config.central_mu,
            assist_boost_factor=self.config.assist_boost_factor,
            closest_approach_factor=self.config.closest_approach_factor,
        )
        self.leg_builder = LegBuilder(self.config, self.planner, self.solver)
        self.sampler = TrajectorySampler(self.resolver, self.solver)

        # Mission state
        self.sequencer: Optional[MissionSequencer] = None
        self.focused_body: Optional[str] = None

        # Simulation state
        self.is_running = False
        self.step_count = 0
        self._in_tick = False
        self._frame: ResolvedFrame = self.resolver.resolve(self.clock.elapsed)

        # Data logging
        self.history: Deque[SimulationSnapshot] = deque(maxlen=self.config.history_limit)
        self.reports: Deque[Report] = deque(maxlen=self.config.report_limit)

        # Callbacks
        self.event_listeners: List[EventListener] = []

    def reset(self):
        """Reset simulation to initial state."""
        self.clock.reset()
        if self.sequencer is not None:
            self.sequencer = MissionSequencer(self.sequencer.mission, self.clock, self.leg_builder)
        self.focused_body = None
        self.step_count = 0
        self._frame = self.resolver.resolve(self.clock.elapsed)
        self.history.clear()
        self.reports.clear()

    # === Tick ===

    def tick(self, real_delta_seconds: float) -> TickResult:
        """
        Advance the simulation by one tick.

        Args:
            real_delta_seconds: Real elapsed seconds since the last tick

        Returns:
            TickResult with the events and reports of this tick
        """
        if self._in_tick:
            report = self._report(ReportSeverity.WARNING,
                                  "re-entrant tick refused", "tick")
            return TickResult(False, self._frame.elapsed, (), (report,))

        self._in_tick = True
        try:
            return self._tick(real_delta_seconds)
        finally:
            self._in_tick = False

    def _tick(self, real_delta_seconds: float) -> TickResult:
        reports = []
        try:
            delta = float(real_delta_seconds)
        except (TypeError, ValueError):
            delta = math.nan
        if not math.isfinite(delta) or delta < 0:
            reports.append(self._report(
                ReportSeverity.WARNING,
                f"invalid real time delta {real_delta_seconds!r} ignored", "clock"))
            delta = 0.0

        clock_state = self.clock.snapshot()
        tick_count = self.clock.tick_count
        sequencer = self.sequencer
        checkpoint = sequencer.checkpoint() if sequencer else None
        leg_errors = len(sequencer.leg_errors) if sequencer else 0
        was_exceeded = sequencer.budget_exceeded if sequencer else False

        try:
            elapsed = self.clock.advance(delta)
            frame = self.resolver.resolve(elapsed)
            events = sequencer.update(frame) if sequencer else []
        except Exception as e:
            self.clock.restore(clock_state)
            self.clock.tick_count = tick_count
            if sequencer is not None:
                sequencer.restore(checkpoint)
                del sequencer.leg_errors[leg_errors:]
            reports.append(self._report(ReportSeverity.ERROR, f"tick failed: {e}", "tick"))
            return TickResult(False, self._frame.elapsed, (), tuple(reports))

        # === Commit ===

        self._frame = frame
        self.step_count += 1

        if sequencer is not None:
            for message in sequencer.leg_errors[leg_errors:]:
                reports.append(self._report(ReportSeverity.WARNING, message, "mission"))
            if sequencer.budget_exceeded and not was_exceeded:
                reports.append(self._report(
                    ReportSeverity.WARNING,
                    f"mission '{sequencer.mission.id}' exceeded its delta-v budget "
                    f"({sequencer.delta_v_spent:.3f} > {sequencer.mission.total_delta_v_budget:.3f})",
                    "mission"))

        self._record_history()
        reports.extend(self._dispatch(events))

        return TickResult(True, elapsed, tuple(events), tuple(reports))

    def run(self,
            duration: float,
            real_delta_seconds: float = 0.1,
            progress_callback: Optional[Callable[[float], None]] = None) -> List[SimulationSnapshot]:
        """
        Run headless for a span of real time.

        Args:
            duration: Real seconds to simulate
            real_delta_seconds: Real seconds per tick
            progress_callback: Called with progress (0-1)

        Returns:
            List of logged snapshots
        """
        if real_delta_seconds <= 0:
            raise ValueError(f"real_delta_seconds must be > 0 (got {real_delta_seconds})")

        steps = int(math.floor(duration / real_delta_seconds + 1e-9))
        remainder = duration - steps * real_delta_seconds

        self.is_running = True
        for i in range(steps):
            self.tick(real_delta_seconds)
            if progress_callback and (i + 1) % 100 == 0:
                progress_callback((i + 1) / steps)
        if remainder > 1e-9:
            self.tick(remainder)
        self.is_running = False

        if self.config.verbose:
            print(f"Simulation complete: {self.step_count} ticks, "
                  f"{len(self.history)} logged states")

        return list(self.history)

    # === User intents ===

    def set_paused(self, paused: bool):
        """Pause or resume simulation time."""
        self.clock.set_paused(paused)

    def set_time_scale(self, time_scale: float) -> bool:
        """Set the time scale; out-of-range values are clamped and reported."""
        accepted = self.clock.set_time_scale(time_scale)
        if not accepted:
            self._report(ReportSeverity.WARNING,
                         f"time scale {time_scale!r} clamped to {self.clock.time_scale:g}",
                         "clock")
        return accepted

    def select_mission(self, mission_id: str) -> bool:
        """
        Make a mission current without starting it.

        An active mission is cancelled first. Unknown ids are reported and
        leave the current mission untouched.
        """
        mission = self.config.mission(mission_id)
        if mission is None:
            self._report(ReportSeverity.WARNING, f"unknown mission '{mission_id}'", "mission")
            return False

        if self.sequencer is not None and self.sequencer.is_active:
            self._dispatch(self.sequencer.cancel())

        self.sequencer = MissionSequencer(mission, self.clock, self.leg_builder)
        logger.info("Selected mission '%s'", mission_id)
        return True

    def start_mission(self, mission_id: Optional[str] = None) -> bool:
        """Start the current mission, or select and start the given one."""
        if mission_id is not None and not self.select_mission(mission_id):
            return False
        if self.sequencer is None:
            self._report(ReportSeverity.WARNING, "no mission selected", "mission")
            return False
        if self.sequencer.is_active:
            self._report(ReportSeverity.INFO,
                         f"mission '{self.sequencer.mission.id}' is already running", "mission")
            return False
        if self.sequencer.status is not MissionStatus.IDLE:
            self._report(ReportSeverity.WARNING,
                         f"mission '{self.sequencer.mission.id}' is "
                         f"{self.sequencer.status.value}; select it again to restart", "mission")
            return False

        leg_errors = len(self.sequencer.leg_errors)
        events = self.sequencer.start(self._frame)
        for message in self.sequencer.leg_errors[leg_errors:]:
            self._report(ReportSeverity.WARNING, message, "mission")
        self._dispatch(events)
        return True

    def pause_mission(self) -> bool:
        if self.sequencer is None:
            return False
        return self.sequencer.pause()

    def resume_mission(self) -> bool:
        if self.sequencer is None:
            return False
        return self.sequencer.resume()

    def cancel_mission(self) -> bool:
        """Cancel the running or paused mission."""
        if self.sequencer is None or not self.sequencer.is_active:
            self._report(ReportSeverity.INFO, "no active mission to cancel", "mission")
            return False
        self._dispatch(self.sequencer.cancel())
        return True

    def focus_body(self, body_id: Optional[str]) -> bool:
        """Set the focused body (None clears it); unknown ids are reported."""
        if body_id is not None and body_id not in self.graph:
            self._report(ReportSeverity.WARNING, f"unknown body '{body_id}'", "focus")
            return False
        self.focused_body = body_id
        return True

    # === Outputs ===

    @property
    def elapsed(self) -> float:
        return self._frame.elapsed

    @property
    def frame(self) -> ResolvedFrame:
        """Positions of the most recently completed tick."""
        return self._frame

    def positions(self) -> Dict[str, np.ndarray]:
        """Mapping body id -> position (copies)."""
        return self._frame.as_dict()

    def position_of(self, body_id: str) -> np.ndarray:
        return self._frame.position(body_id)

    def body_states(self) -> List[BodyState]:
        return self._frame.body_states()

    def mission_snapshot(self) -> Optional[MissionSnapshot]:
        return self.sequencer.snapshot() if self.sequencer else None

    def snapshot(self) -> SimulationSnapshot:
        """Get a copy of the committed state."""
        clock = self.clock.snapshot()
        return SimulationSnapshot(
            tick=self.step_count,
            elapsed=self._frame.elapsed,
            time_scale=clock.time_scale,
            paused=clock.paused,
            positions=self._frame.as_dict(),
            rotation_angles={
                node_id: float(self._frame.rotation_angles[i])
                for i, node_id in enumerate(self._frame.ids)
            },
            focused_body=self.focused_body,
            mission=self.mission_snapshot(),
        )

    def sample(self, target, point_count: Optional[int] = None) -> np.ndarray:
        """
        Path preview for a body orbit, transfer plan or mission leg.

        Args:
            target: Body id, TransferPlan or MissionLeg
            point_count: Number of intervals (default: config.preview_points)

        Returns:
            Array of shape (point_count + 1, 3)
        """
        if point_count is None:
            point_count = self.config.preview_points
        return self.sampler.sample(target, point_count, self._frame.elapsed)

    def sample_mission_leg(self, point_count: Optional[int] = None) -> Optional[np.ndarray]:
        """Path preview of the current waypoint, if it has geometry."""
        if self.sequencer is None or self.sequencer.leg is None:
            return None
        return self.sample(self.sequencer.leg, point_count)

    def add_event_listener(self, listener: EventListener):
        """Add listener called with (simulator, event) after each tick."""
        self.event_listeners.append(listener)

    def remove_event_listener(self, listener: EventListener):
        self.event_listeners.remove(listener)

    def get_status(self) -> Dict:
        """
        Get current status data.

        Returns:
            Dictionary of status values
        """
        clock = self.clock.snapshot()
        status = {
            'elapsed': clock.elapsed,
            'time_scale': clock.time_scale,
            'paused': clock.paused,
            'ticks': self.step_count,
            'focused_body': self.focused_body,
            'mission': None,
        }
        if self.sequencer is not None:
            mission = self.sequencer.snapshot()
            status['mission'] = {
                'id': mission.mission_id,
                'status': mission.status.value,
                'waypoint': mission.current_waypoint_index,
                'progress': mission.progress,
                'delta_v_spent': mission.delta_v_spent,
                'spacecraft_position': (None if mission.spacecraft_position is None
                                        else mission.spacecraft_position.tolist()),
            }
        return status

    # === Internals ===

    def _report(self, severity: ReportSeverity, message: str, source: str = "") -> Report:
        report = Report(severity, message, self._frame.elapsed, source)
        self.reports.append(report)
        level = {
            ReportSeverity.INFO: logging.INFO,
            ReportSeverity.WARNING: logging.WARNING,
            ReportSeverity.ERROR: logging.ERROR,
        }[severity]
        logger.log(level, "[%s] %s", source or "sim", message)
        return report

    def _dispatch(self, events: List[MissionEvent]) -> List[Report]:
        reports = []
        for event in events:
            if event.type is MissionEventType.FOCUS_REQUESTED:
                self.focused_body = event.target_id
            for listener in list(self.event_listeners):
                try:
                    listener(self, event)
                except Exception as e:
                    reports.append(self._report(
                        ReportSeverity.ERROR,
                        f"listener failed on {event.type.value}: {e}", "listener"))
        return reports

    def _record_history(self):
        if not self.history or \
           (self._frame.elapsed - self.history[-1].elapsed) >= self.config.history_interval:
            self.history.append(self.snapshot())
        elif self.sequencer is not None and self.sequencer.status is MissionStatus.COMPLETED \
                and self.history[-1].mission is not None \
                and self.history[-1].mission.status is not MissionStatus.COMPLETED:
            self.history.append(self.snapshot())
