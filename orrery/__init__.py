"""
Orrery Simulation Core
======================

Orbital mechanics and simulation-time core for an interactive model of the
Solar System.

Components:
- Simulation clock (elapsed time, time scale, pause)
- Kepler solver (orbital elements + time -> position)
- Reference frame resolver (orbits around moving bodies and derived points)
- Transfer planner (Hohmann, bi-elliptic, gravity assist)
- Trajectory sampler (path previews)
- Mission sequencer (waypoint-by-waypoint mission state machine)
"""

__version__ = "1.0.0"

from orrery.core.simulator import Simulator
from orrery.core.time_manager import SimulationClock
from orrery.core.config import SimulationConfig, create_solar_system_config

__all__ = [
    'Simulator',
    'SimulationClock',
    'SimulationConfig',
    'create_solar_system_config',
]
