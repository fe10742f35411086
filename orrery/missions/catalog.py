"""
Mission Catalog
===============

Built-in missions flown against the built-in Solar System.

Durations are simulation time units; delta-v values are in the scaled
velocity units of the simulation.
"""

from ..core.config import Mission, MissionWaypoint, WaypointKind


EARTH_MARS_DIRECT = Mission(
    id="earth-mars-direct",
    name="Mars Direct",
    description=("Launch from Earth and perform a Hohmann transfer to reach Mars orbit. "
                 "A basic interplanetary mission introducing transfer orbits."),
    spacecraft_id="voyager",
    difficulty="easy",
    starting_body_id="earth",
    total_delta_v_budget=5.7,
    waypoints=(
        MissionWaypoint(
            kind=WaypointKind.ORBIT,
            target_body_id="earth",
            duration=10,
            name="Earth Orbit",
            description="Begin in a low parking orbit around Earth",
            orbit_radius=4.8,
        ),
        MissionWaypoint(
            kind=WaypointKind.HOHMANN_TRANSFER,
            target_body_id="mars",
            duration=120,
            name="Trans-Mars Injection",
            description="Leave Earth orbit on a Hohmann transfer ellipse to Mars",
            delta_v_budget=3.6,
        ),
        MissionWaypoint(
            kind=WaypointKind.ORBIT,
            target_body_id="mars",
            duration=30,
            name="Mars Orbit Insertion",
            description="Capture burn into Mars orbit",
            orbit_radius=4.3,
            delta_v_budget=2.1,
        ),
    ),
)

VENUS_MERCURY_ASSIST = Mission(
    id="venus-mercury-assist",
    name="Inner System Explorer",
    description=("Use a Venus gravity assist to reduce the delta-v required to reach "
                 "Mercury."),
    spacecraft_id="jwst",
    difficulty="medium",
    starting_body_id="earth",
    total_delta_v_budget=6.3,
    waypoints=(
        MissionWaypoint(
            kind=WaypointKind.HOHMANN_TRANSFER,
            target_body_id="venus",
            duration=80,
            name="Earth Departure",
            description="Launch from Earth into a Venus transfer orbit",
            delta_v_budget=3.5,
        ),
        MissionWaypoint(
            kind=WaypointKind.GRAVITY_ASSIST,
            target_body_id="venus",
            duration=10,
            name="Venus Gravity Assist",
            description="Close flyby of Venus to bend the trajectory and gain speed",
        ),
        MissionWaypoint(
            kind=WaypointKind.FLYBY,
            target_body_id="mercury",
            duration=100,
            name="Mercury Transfer",
            description="Coast to Mercury after the assist",
        ),
        MissionWaypoint(
            kind=WaypointKind.ORBIT,
            target_body_id="mercury",
            duration=30,
            name="Mercury Orbit Insertion",
            description="Enter orbit around Mercury",
            orbit_radius=2.6,
            delta_v_budget=2.8,
        ),
    ),
)

GRAND_TOUR = Mission(
    id="grand-tour",
    name="Grand Tour",
    description=("A Voyager-style tour of the outer planets using successive gravity "
                 "assists, ending in interstellar space."),
    spacecraft_id="voyager",
    difficulty="hard",
    starting_body_id="earth",
    total_delta_v_budget=6.4,
    waypoints=(
        MissionWaypoint(
            kind=WaypointKind.HOHMANN_TRANSFER,
            target_body_id="jupiter",
            duration=400,
            name="Earth Departure",
            description="Launch from Earth toward Jupiter",
            delta_v_budget=6.4,
        ),
        MissionWaypoint(
            kind=WaypointKind.GRAVITY_ASSIST,
            target_body_id="jupiter",
            duration=20,
            name="Jupiter Flyby",
            description="Gravity assist at Jupiter",
        ),
        MissionWaypoint(
            kind=WaypointKind.GRAVITY_ASSIST,
            target_body_id="saturn",
            duration=800,
            name="Saturn Flyby",
            description="Second gravity assist at Saturn",
        ),
        MissionWaypoint(
            kind=WaypointKind.FLYBY,
            target_body_id="uranus",
            duration=1200,
            name="Uranus Flyby",
            description="Continue to Uranus for observations",
        ),
        MissionWaypoint(
            kind=WaypointKind.FLYBY,
            target_body_id="neptune",
            duration=1400,
            name="Neptune Flyby",
            description="Final planetary encounter at Neptune",
        ),
        MissionWaypoint(
            kind=WaypointKind.FLYBY,
            target_body_id="sun",
            duration=1000,
            name="Interstellar Space",
            description="Leave the Solar System",
            position=(500.0, 0.0, 500.0),
        ),
    ),
)

MISSIONS = (EARTH_MARS_DIRECT, VENUS_MERCURY_ASSIST, GRAND_TOUR)
