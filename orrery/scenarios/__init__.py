"""
Simulation Scenarios
====================

Pre-configured scenarios for running orrery missions headless.
"""

from .mission_run import MissionScenario, MissionScenarioConfig

__all__ = [
    'MissionScenario',
    'MissionScenarioConfig',
]
