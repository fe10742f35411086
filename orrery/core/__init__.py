"""
Simulation Core Module
======================

Clock, static configuration and the per-tick simulator.
"""

from .config import (
    ORIGIN_ID,
    BodyConfig,
    ConfigurationError,
    DerivedPointConfig,
    Mission,
    MissionWaypoint,
    OrbitalElements,
    SimulationConfig,
    WaypointKind,
    create_solar_system_config,
    load_config,
)
from .time_manager import SimulationClock, ClockSnapshot
from .simulator import Simulator, SimulationSnapshot, TickResult, Report, ReportSeverity

__all__ = [
    'ORIGIN_ID',
    'BodyConfig',
    'ConfigurationError',
    'DerivedPointConfig',
    'Mission',
    'MissionWaypoint',
    'OrbitalElements',
    'SimulationConfig',
    'WaypointKind',
    'create_solar_system_config',
    'load_config',
    'SimulationClock',
    'ClockSnapshot',
    'Simulator',
    'SimulationSnapshot',
    'TickResult',
    'Report',
    'ReportSeverity',
]
