import numpy as np
import pytest

from orrery.core.config import Mission, MissionWaypoint, WaypointKind, create_solar_system_config
from orrery.core.time_manager import SimulationClock
from orrery.dynamics.frames import FrameGraph, ReferenceFrameResolver
from orrery.dynamics.trajectory import LegBuilder
from orrery.missions.sequencer import MissionEventType, MissionSequencer, MissionStatus


def _mission(*durations, budget=None, dv=None):
    waypoints = tuple(
        MissionWaypoint(WaypointKind.ORBIT, "earth", duration=d, delta_v_budget=dv)
        for d in durations
    )
    return Mission(id="test", name="Test", waypoints=waypoints, total_delta_v_budget=budget)


def _types(events):
    return [e.type for e in events]


@pytest.fixture
def clock():
    return SimulationClock()


def test_start_enters_running_and_requests_focus(clock):
    seq = MissionSequencer(_mission(10), clock)
    events = seq.start()

    assert seq.status is MissionStatus.RUNNING
    assert seq.current_waypoint_index == 0
    assert _types(events) == [MissionEventType.WAYPOINT_STARTED, MissionEventType.FOCUS_REQUESTED]
    assert events[1].target_id == "earth"


def test_waypoint_completes_after_its_duration(clock):
    seq = MissionSequencer(_mission(10, 10), clock)
    seq.start()

    for _ in range(9):
        clock.advance(1.0)
        assert seq.update() == []
    assert np.isclose(seq.progress, 0.9)

    clock.advance(1.0)
    events = seq.update()

    assert seq.completed == (True, False)
    assert seq.waypoint_progress(0) == 1.0
    assert seq.current_waypoint_index == 1
    assert _types(events) == [
        MissionEventType.WAYPOINT_COMPLETED,
        MissionEventType.WAYPOINT_STARTED,
        MissionEventType.FOCUS_REQUESTED,
    ]


def test_last_waypoint_completes_mission_once(clock):
    seq = MissionSequencer(_mission(5), clock)
    seq.start()

    clock.advance(5.0)
    events = seq.update()
    assert _types(events) == [MissionEventType.WAYPOINT_COMPLETED, MissionEventType.MISSION_COMPLETED]
    assert seq.status is MissionStatus.COMPLETED
    assert seq.current_waypoint_index == 1
    assert seq.progress == 1.0

    clock.advance(5.0)
    assert seq.update() == []


def test_at_most_one_waypoint_completes_per_update(clock):
    seq = MissionSequencer(_mission(1, 1, 1), clock)
    seq.start()

    clock.advance(10.0)
    seq.update()
    assert seq.completed == (True, False, False)

    # The second waypoint started at t=10
    seq.update()
    assert seq.completed == (True, False, False)
    clock.advance(1.0)
    seq.update()
    assert seq.completed == (True, True, False)


def test_non_positive_duration_completes_immediately(clock):
    seq = MissionSequencer(_mission(0, -3, 5), clock)
    seq.start()

    seq.update()
    assert seq.completed == (True, False, False)
    seq.update()
    assert seq.completed == (True, True, False)
    assert seq.current_waypoint_index == 2


def test_pause_freezes_progress(clock):
    seq = MissionSequencer(_mission(10), clock)
    seq.start()

    clock.advance(4.0)
    seq.update()
    assert seq.pause()
    assert seq.status is MissionStatus.PAUSED

    clock.advance(100.0)
    assert seq.update() == []
    assert np.isclose(seq.progress, 0.4)

    assert seq.resume()
    seq.update()
    assert np.isclose(seq.progress, 0.4)

    clock.advance(6.0)
    seq.update()
    assert seq.status is MissionStatus.COMPLETED


def test_pause_and_resume_only_from_valid_states(clock):
    seq = MissionSequencer(_mission(10), clock)
    assert not seq.pause()
    assert not seq.resume()

    seq.start()
    assert not seq.resume()
    assert seq.pause()
    assert not seq.pause()


def test_cancel_is_terminal(clock):
    seq = MissionSequencer(_mission(10), clock)
    seq.start()

    events = seq.cancel()
    assert _types(events) == [MissionEventType.MISSION_CANCELLED]
    assert seq.status is MissionStatus.CANCELLED

    clock.advance(20.0)
    assert seq.update() == []
    assert seq.cancel() == []


def test_cancel_from_paused(clock):
    seq = MissionSequencer(_mission(10), clock)
    seq.start()
    seq.pause()

    assert seq.cancel()
    assert seq.status is MissionStatus.CANCELLED


def test_completed_mission_does_not_restart(clock):
    seq = MissionSequencer(_mission(2), clock)
    seq.start()
    clock.advance(2.0)
    seq.update()
    assert seq.status is MissionStatus.COMPLETED

    assert seq.start() == []
    assert seq.status is MissionStatus.COMPLETED
    assert seq.completed == (True,)
    assert seq.progress == 1.0


def test_cancelled_mission_does_not_restart(clock):
    seq = MissionSequencer(_mission(5), clock)
    seq.start()
    seq.cancel()

    assert seq.start() == []
    assert seq.status is MissionStatus.CANCELLED


def test_checkpoint_restore_rolls_back(clock):
    seq = MissionSequencer(_mission(2, 2), clock)
    seq.start()
    saved = seq.checkpoint()

    clock.advance(2.0)
    seq.update()
    assert seq.current_waypoint_index == 1

    seq.restore(saved)
    assert seq.current_waypoint_index == 0
    assert seq.completed == (False, False)


def test_delta_v_budget_tracking(clock):
    seq = MissionSequencer(_mission(1, 1, budget=1.5, dv=1.0), clock)
    seq.start()

    clock.advance(1.0)
    seq.update()
    assert seq.delta_v_spent == 1.0
    assert not seq.budget_exceeded

    clock.advance(1.0)
    seq.update()
    assert seq.delta_v_spent == 2.0
    assert seq.budget_exceeded
    assert seq.snapshot().budget_exceeded


def test_empty_mission_completes_on_start(clock):
    seq = MissionSequencer(Mission(id="empty", name="Empty", waypoints=()), clock)
    events = seq.start()

    assert seq.status is MissionStatus.COMPLETED
    assert _types(events) == [MissionEventType.MISSION_COMPLETED]


def test_spacecraft_follows_leg_geometry(clock):
    config = create_solar_system_config()
    resolver = ReferenceFrameResolver(FrameGraph.from_config(config))
    seq = MissionSequencer(config.mission("earth-mars-direct"), clock, LegBuilder(config))

    seq.start(resolver.resolve(clock.elapsed))
    earth = resolver.position_of("earth", 0.0)
    assert np.isclose(np.linalg.norm(seq.spacecraft_position - earth), 4.8, rtol=0.02)

    # Second waypoint is the transfer; it spends the planned budget
    clock.advance(10.0)
    seq.update(resolver.resolve(clock.elapsed))
    assert seq.current_waypoint_index == 1
    assert seq.leg.plan is not None
    assert np.isclose(np.linalg.norm(seq.spacecraft_position),
                      np.linalg.norm(resolver.position_of("earth", 10.0)))

    snap = seq.snapshot()
    assert snap.focus_target == "mars"
    assert snap.status is MissionStatus.RUNNING
