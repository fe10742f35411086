import math

import numpy as np
import pytest

from orrery.core.config import (
    BodyConfig,
    MissionWaypoint,
    OrbitalElements,
    SimulationConfig,
    WaypointKind,
    create_solar_system_config,
)
from orrery.dynamics.frames import FrameGraph, ReferenceFrameResolver
from orrery.dynamics.kepler import KeplerSolver
from orrery.dynamics.trajectory import (
    ArcLeg,
    LegBuilder,
    LineLeg,
    OrbitLeg,
    TrajectorySampler,
    TransferLeg,
)
from orrery.dynamics.transfers import TransferPlanner


@pytest.fixture
def config():
    return create_solar_system_config()


@pytest.fixture
def resolver(config):
    return ReferenceFrameResolver(FrameGraph.from_config(config), KeplerSolver())


@pytest.fixture
def sampler(resolver):
    return TrajectorySampler(resolver)


@pytest.fixture
def builder(config):
    return LegBuilder(config)


@pytest.mark.parametrize("n", [1, 4, 100, 257])
def test_closed_orbit_sample_returns_n_plus_one_points_and_closes(sampler, n):
    points = sampler.sample("mercury", n)

    assert points.shape == (n + 1, 3)
    assert np.linalg.norm(points[0] - points[-1]) < 1e-6


def test_moon_orbit_sample_is_centered_on_planet(sampler, resolver):
    points = sampler.sample("moon", 64, elapsed=300.0)
    earth = resolver.position_of("earth", 300.0)

    distances = np.linalg.norm(points - earth, axis=1)
    e = 0.055
    assert np.all(distances >= 6.0 * (1 - e) - 1e-9)
    assert np.all(distances <= 6.0 * (1 + e) + 1e-9)


def test_fixed_body_sample_repeats_its_position(sampler):
    points = sampler.sample("sun", 5)
    assert points.shape == (6, 3)
    assert np.allclose(points, 0.0)


def test_sampling_is_restartable(sampler):
    first = sampler.sample("earth", 50)
    sampler.sample("earth", 7)
    again = sampler.sample("earth", 50)
    assert np.array_equal(first, again)


@pytest.mark.parametrize("n", [0, -3, 2.5, True])
def test_invalid_point_count_is_rejected(sampler, n):
    with pytest.raises(ValueError):
        sampler.sample("earth", n)


def test_unknown_body_is_rejected(sampler):
    with pytest.raises(ValueError):
        sampler.sample("vulcan", 10)


def test_hohmann_plan_sample_goes_from_r1_to_r2(sampler):
    plan = TransferPlanner().plan_hohmann(70.0, 90.0)
    points = sampler.sample(plan, 40)

    radii = np.linalg.norm(points, axis=1)
    assert points.shape == (41, 3)
    assert np.isclose(radii[0], 70.0)
    assert np.isclose(radii[-1], 90.0)
    assert np.all(radii >= 70.0 - 1e-9) and np.all(radii <= 90.0 + 1e-9)
    # Ends on the far side of the star
    assert np.dot(points[0], points[-1]) < 0


def test_inward_hohmann_descends_from_apoapsis():
    solver = KeplerSolver()
    plan = TransferPlanner().plan_hohmann(70.0, 35.0)
    leg = TransferLeg(plan, solver, departure_direction=(0.0, 0.0, 1.0))

    start = leg.position(0.0)
    end = leg.position(1.0)
    assert np.allclose(start, [0.0, 0.0, 70.0])
    assert np.allclose(end, [0.0, 0.0, -35.0], atol=1e-9)


def test_bi_elliptic_leg_reaches_intermediate_radius():
    solver = KeplerSolver()
    plan = TransferPlanner().plan_bi_elliptic(70.0, 90.0, 300.0)
    leg = TransferLeg(plan, solver, departure_direction=(1.0, 0.0, 0.0))

    split = plan.first_leg_duration / plan.transfer_duration
    assert np.isclose(np.linalg.norm(leg.position(0.0)), 70.0)
    assert np.isclose(np.linalg.norm(leg.position(split)), 300.0)
    assert np.isclose(np.linalg.norm(leg.position(1.0)), 90.0)
    # Second ellipse brings the craft back to the departure side
    assert np.dot(leg.position(1.0), [1.0, 0.0, 0.0]) > 0


def test_orbit_leg_is_closed_and_follows_anchor(resolver):
    leg = OrbitLeg("mars", 4.3, KeplerSolver())
    frame = resolver.resolve(120.0)
    mars = frame.position("mars")

    start = leg.position(0.0, frame)
    end = leg.position(1.0, frame)
    assert np.allclose(start, end)
    for progress in [0.0, 0.3, 0.7]:
        d = np.linalg.norm(leg.position(progress, frame) - mars)
        assert 4.3 * 0.99 - 1e-9 <= d <= 4.3 * 1.01 + 1e-9


def test_anchored_leg_requires_frame():
    leg = OrbitLeg("mars", 4.3, KeplerSolver())
    with pytest.raises(ValueError):
        leg.position(0.5)


def test_line_leg_with_bulge():
    leg = LineLeg(WaypointKind.FLYBY, [0.0, 0.0, 0.0], [10.0, 0.0, 0.0], bulge=0.1)

    assert np.allclose(leg.position(0.0), [0.0, 0.0, 0.0])
    assert np.allclose(leg.position(1.0), [10.0, 0.0, 0.0], atol=1e-12)
    assert np.allclose(leg.position(0.5), [5.0, 1.0, 0.0])


def test_progress_is_clamped():
    leg = LineLeg(WaypointKind.FLYBY, [0.0, 0.0, 0.0], [10.0, 0.0, 0.0])
    assert np.allclose(leg.position(-1.0), leg.position(0.0))
    assert np.allclose(leg.position(2.0), leg.position(1.0))


def test_builder_orbit_radius_defaults_to_body_radii(builder, resolver):
    waypoint = MissionWaypoint(WaypointKind.ORBIT, "jupiter", duration=10)
    leg = builder.build(waypoint, "earth", resolver.resolve(0.0))

    assert isinstance(leg, OrbitLeg)
    assert leg.radius == 8.0 * 3.0


def test_builder_hohmann_uses_current_radii(builder, resolver):
    frame = resolver.resolve(50.0)
    waypoint = MissionWaypoint(WaypointKind.HOHMANN_TRANSFER, "mars", duration=120)
    leg = builder.build(waypoint, "earth", frame)

    assert isinstance(leg, TransferLeg)
    assert np.isclose(leg.plan.origin_radius, np.linalg.norm(frame.position("earth")))
    assert np.isclose(leg.plan.destination_radius, np.linalg.norm(frame.position("mars")))
    assert np.allclose(leg.position(0.0), frame.position("earth"))


def test_builder_bi_elliptic_default_intermediate(builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.BI_ELLIPTIC_TRANSFER, "jupiter", duration=100)
    leg = builder.build(waypoint, "earth", frame)

    r2 = np.linalg.norm(frame.position("jupiter"))
    assert leg.plan.intermediate is not None
    assert np.isclose(leg.plan.intermediate.radius, 3.0 * r2)


def test_builder_gravity_assist_arc(builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.GRAVITY_ASSIST, "venus", duration=10)
    leg = builder.build(waypoint, "earth", frame)

    assert isinstance(leg, ArcLeg)
    venus = frame.position("venus")
    for progress in np.linspace(0.0, 1.0, 9):
        d = np.linalg.norm(leg.position(progress, frame) - venus)
        assert np.isclose(d, 3.8 * 1.5)
    # Starts on the approach side and leaves on the far side
    assert np.allclose(leg.position(0.0, frame) - venus, -leg.position(1.0, frame) + venus)
    assert leg.plan.boost_factor == 1.1


def test_builder_gravity_assist_from_same_body(builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.GRAVITY_ASSIST, "venus", duration=10)
    leg = builder.build(waypoint, "venus", frame)

    assert np.all(np.isfinite(leg.position(0.5, frame)))


def test_builder_explicit_position_is_straight_path(builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.FLYBY, "sun", duration=10, position=(500.0, 0.0, 500.0))
    leg = builder.build(waypoint, "neptune", frame)

    assert leg.anchor_id is None
    assert np.allclose(leg.position(0.0), frame.position("neptune"))
    assert np.allclose(leg.position(1.0), [500.0, 0.0, 500.0])


def test_builder_landing_descends_to_surface(builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.LANDING, "mars", duration=10, orbit_radius=6.0)
    leg = builder.build(waypoint, "earth", frame)

    mars = frame.position("mars")
    assert np.isclose(np.linalg.norm(leg.position(0.0, frame) - mars), 6.0)
    assert np.isclose(np.linalg.norm(leg.position(1.0, frame) - mars), 3.5)


def test_builder_transfer_from_origin_body_is_rejected():
    config = SimulationConfig(bodies=[
        BodyConfig(id="star", radius=5.0),
        BodyConfig(id="planet", radius=1.0, elements=OrbitalElements(semi_major_axis=40.0)),
    ])
    frame = ReferenceFrameResolver(FrameGraph.from_config(config)).resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.HOHMANN_TRANSFER, "planet", duration=10)

    with pytest.raises(ValueError):
        LegBuilder(config).build(waypoint, "star", frame)


def test_sampling_a_leg(sampler, builder, resolver):
    frame = resolver.resolve(0.0)
    waypoint = MissionWaypoint(WaypointKind.ORBIT, "earth", duration=10, orbit_radius=4.8)
    leg = builder.build(waypoint, "earth", frame)

    points = sampler.sample(leg, 32, elapsed=0.0)
    assert points.shape == (33, 3)
    assert np.linalg.norm(points[0] - points[-1]) < 1e-6
    assert math.isclose(np.linalg.norm(points[8] - frame.position("earth")), 4.8, rel_tol=0.02)
