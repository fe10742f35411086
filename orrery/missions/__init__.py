"""
Missions Module
===============

Mission state machine and the built-in mission catalog.
"""

from .sequencer import (
    MissionEvent,
    MissionEventType,
    MissionSequencer,
    MissionSnapshot,
    MissionStatus,
)
from .catalog import MISSIONS

__all__ = [
    'MissionEvent',
    'MissionEventType',
    'MissionSequencer',
    'MissionSnapshot',
    'MissionStatus',
    'MISSIONS',
]
