"""
Mission Scenario
================

Headless run of one mission against the orrery, with analysis, a text
summary and plots.
"""

import math
import numpy as np
from typing import Dict, List, Optional
from dataclasses import dataclass

from ..core.config import SimulationConfig, create_solar_system_config, load_config
from ..core.simulator import Simulator
from ..missions.sequencer import MissionEvent, MissionEventType, MissionStatus


@dataclass
class MissionScenarioConfig:
    """Configuration for a mission scenario."""
    mission_id: str = "earth-mars-direct"
    time_scale: float = 1.0
    real_delta_seconds: float = 0.5
    max_duration: Optional[float] = None  # real seconds; default from mission length
    config_path: Optional[str] = None     # JSON configuration, default built-in
    quiet: bool = False


class MissionScenario:
    """
    Mission flight scenario.

    Simulates:
    - Planet and moon motion on their Keplerian orbits
    - Waypoint sequencing with focus requests
    - Transfer and gravity-assist paths for the spacecraft

    Success criteria:
    - Mission reaches COMPLETED within the time limit
    """

    def __init__(self, config: MissionScenarioConfig = None,
                 sim_config: Optional[SimulationConfig] = None):
        """
        Initialize mission scenario.

        Args:
            config: Scenario configuration
            sim_config: Simulation configuration (overrides config_path)
        """
        self.config = config or MissionScenarioConfig()

        if sim_config is not None:
            self.sim_config = sim_config
        elif self.config.config_path:
            self.sim_config = load_config(self.config.config_path)
        else:
            self.sim_config = create_solar_system_config()

        self.simulator: Optional[Simulator] = None
        self.results: Dict = {}

        # Track events and spacecraft path for analysis
        self.events: List[Dict] = []
        self.time_history: List[float] = []
        self.progress_history: List[float] = []
        self.position_history: List[Optional[np.ndarray]] = []

    def _print(self, message: str):
        if not self.config.quiet:
            print(message)

    def setup(self):
        """Setup scenario and start the mission."""
        mission = self.sim_config.mission(self.config.mission_id)
        if mission is None:
            known = ", ".join(m.id for m in self.sim_config.missions)
            raise ValueError(f"Unknown mission '{self.config.mission_id}' (known: {known})")

        self.simulator = Simulator(self.sim_config)
        self.simulator.set_time_scale(self.config.time_scale)

        self.events.clear()
        self.time_history.clear()
        self.progress_history.clear()
        self.position_history.clear()

        self.simulator.add_event_listener(self._event_monitor)
        self.simulator.start_mission(self.config.mission_id)

    def _event_monitor(self, sim: Simulator, event: MissionEvent):
        """Record and print mission events."""
        self.events.append({
            'type': event.type.value,
            'time': event.elapsed,
            'waypoint': event.waypoint_index,
            'target': event.target_id,
        })

        mission = sim.sequencer.mission
        if event.type is MissionEventType.WAYPOINT_STARTED:
            waypoint = mission.waypoints[event.waypoint_index]
            self._print(f"  t={event.elapsed:8.1f}  -> {waypoint.name or waypoint.kind.value} "
                        f"({waypoint.kind.value}, {event.target_id})")
        elif event.type is MissionEventType.WAYPOINT_COMPLETED:
            self._print(f"  t={event.elapsed:8.1f}  waypoint {event.waypoint_index} complete")
        elif event.type is MissionEventType.MISSION_COMPLETED:
            self._print(f"  t={event.elapsed:8.1f}  MISSION COMPLETE")
        elif event.type is MissionEventType.MISSION_CANCELLED:
            self._print(f"  t={event.elapsed:8.1f}  mission cancelled")

    def _time_limit(self) -> float:
        if self.config.max_duration is not None:
            return self.config.max_duration
        mission = self.sim_config.mission(self.config.mission_id)
        # Margin for clamped time scales and tick granularity
        return mission.total_duration / self.simulator.clock.time_scale \
            + 10 * self.config.real_delta_seconds

    def run(self, progress_callback=None) -> Dict:
        """
        Run mission scenario.

        Returns:
            Results dictionary with success/failure and metrics
        """
        if self.simulator is None:
            self.setup()

        sim = self.simulator
        mission = sim.sequencer.mission
        limit = self._time_limit()
        dt = self.config.real_delta_seconds

        self._print(f"Running Mission Scenario: {mission.name} ({mission.id})")
        self._print(f"  Waypoints: {len(mission.waypoints)}, "
                    f"planned duration {mission.total_duration:.0f}")
        self._print(f"  Time scale: {sim.clock.time_scale:g}")

        steps = int(math.ceil(limit / dt))
        for i in range(steps):
            if not sim.sequencer.is_active:
                break
            sim.tick(dt)
            self._record()

            if progress_callback and (i + 1) % 100 == 0:
                progress_callback((i + 1) / steps)

        self.results = self._analyze_results()
        return self.results

    def _record(self):
        sequencer = self.simulator.sequencer
        self.time_history.append(self.simulator.elapsed)
        total = len(sequencer.mission.waypoints)
        done = sum(sequencer.completed)
        current = sequencer.progress if sequencer.current_waypoint is not None else 0.0
        self.progress_history.append((done + current) / total if total else 1.0)
        self.position_history.append(sequencer.spacecraft_position)

    @property
    def track(self) -> List[np.ndarray]:
        """Spacecraft positions of every tick that had path geometry."""
        return [p for p in self.position_history if p is not None]

    def _analyze_results(self) -> Dict:
        """Analyze mission performance."""
        sim = self.simulator
        sequencer = sim.sequencer
        mission = sequencer.mission

        completion_time = None
        for event in self.events:
            if event['type'] == MissionEventType.MISSION_COMPLETED.value:
                completion_time = event['time']

        budget = mission.total_delta_v_budget
        return {
            'success': sequencer.status is MissionStatus.COMPLETED,
            'mission_id': mission.id,
            'status': sequencer.status.value,
            'waypoints_completed': sum(sequencer.completed),
            'waypoints_total': len(mission.waypoints),
            'completion_time': completion_time,
            'planned_duration': mission.total_duration,
            'delta_v_spent': sequencer.delta_v_spent,
            'delta_v_budget': budget,
            'within_budget': budget is None or sequencer.delta_v_spent <= budget + 1e-9,
            'ticks': sim.step_count,
            'reports': len(sim.reports),
            'track_length': self._track_length(),
        }

    def _track_length(self) -> float:
        if len(self.track) < 2:
            return 0.0
        points = np.array(self.track)
        return float(np.sum(np.linalg.norm(np.diff(points, axis=0), axis=1)))

    def get_summary(self) -> str:
        """Get human-readable summary."""
        if not self.results:
            return "Scenario not yet run."

        status = "SUCCESS ✓" if self.results['success'] else "FAILED ✗"

        time_str = f"{self.results['completion_time']:.1f}" \
                   if self.results['completion_time'] is not None else "N/A"
        budget_str = f"{self.results['delta_v_budget']:.2f}" \
                     if self.results['delta_v_budget'] is not None else "none"

        return f"""
Mission Scenario Summary
========================
Mission: {self.results['mission_id']}
Result: {status} ({self.results['status']})

Waypoints: {self.results['waypoints_completed']}/{self.results['waypoints_total']}
Completion time: {time_str} (planned {self.results['planned_duration']:.1f})
Delta-v spent: {self.results['delta_v_spent']:.2f} (budget {budget_str})

Ticks: {self.results['ticks']}
Reports: {self.results['reports']}
Spacecraft track length: {self.results['track_length']:.1f}
"""

    def plot_results(self, point_count: int = 200):
        """Plot the spacecraft track over the body orbits and mission progress."""
        import matplotlib.pyplot as plt

        sim = self.simulator
        fig, (ax_map, ax_progress) = plt.subplots(1, 2, figsize=(14, 6))

        for node_id in sim.graph.ids:
            path = sim.sample(node_id, point_count)
            ax_map.plot(path[:, 0], path[:, 2], linewidth=0.5, color='gray')
            position = sim.position_of(node_id)
            ax_map.plot(position[0], position[2], 'o', markersize=3)
            ax_map.annotate(node_id, (position[0], position[2]), fontsize=7)

        if self.track:
            track = np.array(self.track)
            ax_map.plot(track[:, 0], track[:, 2], 'r-', label='Spacecraft')
            ax_map.legend()

        ax_map.set_xlabel('x')
        ax_map.set_ylabel('z')
        ax_map.set_title('Mission Track (x-z plane)')
        ax_map.set_aspect('equal', adjustable='datalim')
        ax_map.grid(True)

        ax_progress.plot(self.time_history, self.progress_history)
        for event in self.events:
            if event['type'] == MissionEventType.WAYPOINT_COMPLETED.value:
                ax_progress.axvline(x=event['time'], color='r', linestyle='--', linewidth=0.5)
        ax_progress.set_xlabel('Simulation time')
        ax_progress.set_ylabel('Mission progress')
        ax_progress.set_title('Waypoint Progress')
        ax_progress.set_ylim(0, 1.05)
        ax_progress.grid(True)

        plt.tight_layout()
        return fig
