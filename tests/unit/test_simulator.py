import math

import numpy as np
import pytest

from orrery.core.config import (
    BodyConfig,
    ConfigurationError,
    Mission,
    MissionWaypoint,
    OrbitalElements,
    SimulationConfig,
    WaypointKind,
)
from orrery.core.simulator import ReportSeverity, Simulator
from orrery.dynamics.frames import UnresolvedReferenceError
from orrery.missions.sequencer import MissionEventType, MissionStatus


def _two_step_config(**options):
    bodies = [
        BodyConfig(id="sun", kind="star", radius=20.0),
        BodyConfig(id="earth", radius=4.0, gravitational_parameter=3.0,
                   elements=OrbitalElements(semi_major_axis=70.0, orbital_period_scale=0.01)),
        BodyConfig(id="moon", kind="moon", radius=1.0,
                   elements=OrbitalElements(semi_major_axis=6.0, orbital_period_scale=0.1,
                                            reference_center_id="earth")),
    ]
    mission = Mission(
        id="two-step",
        name="Two Step",
        starting_body_id="earth",
        waypoints=(
            MissionWaypoint(WaypointKind.ORBIT, "earth", duration=5, orbit_radius=6.0),
            MissionWaypoint(WaypointKind.FLYBY, "moon", duration=5),
        ),
    )
    return SimulationConfig(bodies=bodies, missions=[mission], **options)


@pytest.fixture
def sim():
    return Simulator(_two_step_config())


def test_end_to_end_two_waypoint_mission(sim):
    assert sim.start_mission("two-step")

    for _ in range(6):
        sim.tick(1.0)

    snap = sim.snapshot()
    assert snap.mission.current_waypoint_index == 1
    assert snap.mission.completed[0]
    assert snap.mission.status is MissionStatus.RUNNING

    for _ in range(5):
        sim.tick(1.0)

    assert math.isclose(sim.elapsed, 11.0)
    assert sim.snapshot().mission.status is MissionStatus.COMPLETED


def test_tick_resolves_positions_for_current_time(sim):
    sim.tick(2.0)
    positions = sim.positions()

    expected = sim.resolver.resolve(2.0)
    assert set(positions) == {"sun", "earth", "moon"}
    for body_id, position in positions.items():
        assert np.allclose(position, expected.position(body_id))


def test_outputs_are_copies(sim):
    sim.tick(1.0)
    positions = sim.positions()
    positions["earth"][:] = 0.0

    assert not np.allclose(sim.position_of("earth"), 0.0)


def test_events_are_dispatched_to_listeners(sim):
    received = []
    sim.add_event_listener(lambda s, event: received.append(event.type))

    sim.start_mission("two-step")
    for _ in range(11):
        sim.tick(1.0)

    assert received.count(MissionEventType.WAYPOINT_COMPLETED) == 2
    assert received.count(MissionEventType.MISSION_COMPLETED) == 1
    assert received[:2] == [MissionEventType.WAYPOINT_STARTED, MissionEventType.FOCUS_REQUESTED]


def test_focus_requests_move_focus(sim):
    sim.start_mission("two-step")
    assert sim.focused_body == "earth"

    for _ in range(5):
        sim.tick(1.0)
    assert sim.focused_body == "moon"


def test_paused_clock_freezes_positions_and_mission(sim):
    sim.start_mission("two-step")
    sim.tick(1.0)
    before = sim.snapshot()

    sim.set_paused(True)
    for _ in range(10):
        sim.tick(1.0)

    after = sim.snapshot()
    assert after.elapsed == before.elapsed
    assert after.mission.progress == before.mission.progress
    assert np.array_equal(after.positions["moon"], before.positions["moon"])


def test_time_scale_is_clamped_and_reported(sim):
    assert sim.set_time_scale(-1.0) is False
    assert sim.clock.time_scale == sim.config.min_time_scale
    assert sim.reports[-1].severity is ReportSeverity.WARNING


def test_unknown_ids_are_reported_not_raised(sim):
    assert sim.select_mission("nope") is False
    assert sim.focus_body("vulcan") is False
    assert sim.sequencer is None
    assert len(sim.reports) == 2

    assert sim.focus_body("moon")
    assert sim.focus_body(None)
    assert sim.focused_body is None


def test_cancel_mission(sim):
    assert sim.cancel_mission() is False

    sim.start_mission("two-step")
    sim.tick(1.0)
    assert sim.cancel_mission()
    assert sim.snapshot().mission.status is MissionStatus.CANCELLED


def test_pause_and_resume_mission(sim):
    sim.start_mission("two-step")
    sim.tick(2.0)
    assert sim.pause_mission()

    sim.tick(10.0)
    assert np.isclose(sim.snapshot().mission.progress, 0.4)

    assert sim.resume_mission()
    sim.tick(3.0)
    assert sim.snapshot().mission.current_waypoint_index == 1


def test_selecting_another_mission_cancels_the_active_one():
    config = _two_step_config()
    other = Mission(id="other", name="Other",
                    waypoints=(MissionWaypoint(WaypointKind.ORBIT, "moon", duration=3),))
    config = SimulationConfig(bodies=config.bodies, missions=config.missions + [other])
    sim = Simulator(config)

    received = []
    sim.add_event_listener(lambda s, event: received.append(event.type))
    sim.start_mission("two-step")
    sim.select_mission("other")

    assert MissionEventType.MISSION_CANCELLED in received
    assert sim.sequencer.mission.id == "other"
    assert sim.sequencer.status is MissionStatus.IDLE


def test_failed_tick_keeps_previous_state(sim, monkeypatch):
    sim.start_mission("two-step")
    sim.tick(1.0)
    before = sim.snapshot()

    def broken(elapsed):
        raise UnresolvedReferenceError("simulated failure")

    monkeypatch.setattr(sim.resolver, "resolve", broken)
    result = sim.tick(1.0)

    assert not result.success
    assert result.reports[-1].severity is ReportSeverity.ERROR
    assert sim.clock.elapsed == before.elapsed
    assert sim.snapshot().elapsed == before.elapsed
    assert sim.snapshot().mission.progress == before.mission.progress

    monkeypatch.undo()
    assert sim.tick(1.0).success
    assert math.isclose(sim.elapsed, 2.0)


def test_reentrant_tick_from_listener_is_refused(sim):
    results = []

    def listener(s, event):
        results.append(s.tick(1.0))

    sim.start_mission("two-step")
    sim.add_event_listener(listener)

    for _ in range(5):
        sim.tick(1.0)

    assert results
    assert all(not r.success for r in results)
    assert math.isclose(sim.elapsed, 5.0)


def test_listener_errors_are_reported(sim):
    def listener(s, event):
        raise RuntimeError("ui crashed")

    sim.add_event_listener(listener)
    sim.start_mission("two-step")
    result = None
    for _ in range(5):
        result = sim.tick(1.0)

    assert result.success
    assert any(r.source == "listener" for r in result.reports)


def test_invalid_real_delta_is_reported(sim):
    result = sim.tick(-1.0)
    assert result.success
    assert sim.elapsed == 0.0
    assert result.reports[0].severity is ReportSeverity.WARNING


@pytest.mark.parametrize("delta", ["fast", None, [1.0]])
def test_non_numeric_real_delta_is_reported(sim, delta):
    result = sim.tick(delta)

    assert result.success
    assert sim.elapsed == 0.0
    assert result.reports[0].source == "clock"
    assert sim.tick(1.0).success
    assert math.isclose(sim.elapsed, 1.0)


def test_history_and_reports_are_bounded():
    sim = Simulator(_two_step_config(history_limit=5, report_limit=3))

    for _ in range(50):
        sim.tick(1.0)
    for _ in range(10):
        sim.set_time_scale(0.0)

    assert len(sim.history) == 5
    assert math.isclose(sim.history[-1].elapsed, 50.0)
    assert len(sim.reports) == 3
    assert all("time scale" in r.message for r in sim.reports)


def test_completed_mission_restarts_only_when_selected_again(sim):
    sim.start_mission("two-step")
    for _ in range(11):
        sim.tick(1.0)
    assert sim.sequencer.status is MissionStatus.COMPLETED

    assert sim.start_mission() is False
    assert sim.sequencer.status is MissionStatus.COMPLETED
    assert all(sim.sequencer.completed)
    assert sim.reports[-1].severity is ReportSeverity.WARNING

    assert sim.start_mission("two-step")
    assert sim.sequencer.status is MissionStatus.RUNNING
    assert not any(sim.sequencer.completed)


def test_cycle_is_rejected_before_first_tick():
    config = SimulationConfig(bodies=[
        BodyConfig(id="a", elements=OrbitalElements(semi_major_axis=1.0, reference_center_id="b")),
        BodyConfig(id="b", elements=OrbitalElements(semi_major_axis=1.0, reference_center_id="a")),
    ])
    with pytest.raises(ConfigurationError):
        Simulator(config)


def test_run_records_history(sim):
    history = sim.run(10.0, real_delta_seconds=0.5)

    assert sim.step_count == 20
    assert math.isclose(sim.elapsed, 10.0)
    assert history[0].tick == 1
    assert all(b.elapsed - a.elapsed >= sim.config.history_interval - 1e-9
               for a, b in zip(history, history[1:]))


def test_sample_preview(sim):
    points = sim.sample("moon", 16)
    assert points.shape == (17, 3)
    assert np.allclose(points[0], points[-1])

    assert sim.sample_mission_leg() is None
    sim.start_mission("two-step")
    assert sim.sample_mission_leg(8).shape == (9, 3)


def test_status_dictionary(sim):
    sim.start_mission("two-step")
    sim.tick(1.0)
    status = sim.get_status()

    assert status['elapsed'] == 1.0
    assert status['mission']['id'] == "two-step"
    assert status['mission']['status'] == "running"
    assert len(status['mission']['spacecraft_position']) == 3


def test_default_configuration_runs_builtin_missions():
    sim = Simulator()
    assert sim.start_mission("grand-tour")
    sim.set_time_scale(100.0)
    for _ in range(60):
        assert sim.tick(1.0).success
    assert sim.sequencer.status is MissionStatus.COMPLETED
    assert all(sim.sequencer.completed)
