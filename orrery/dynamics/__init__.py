"""
Dynamics Module
===============

Prescribed Keplerian motion, reference frames, transfers and path sampling.
"""

from .kepler import KeplerSolver
from .frames import FrameGraph, ReferenceFrameResolver, ResolvedFrame, UnresolvedReferenceError
from .transfers import TransferPlanner, TransferPlan, GravityAssistResult
from .trajectory import LegBuilder, MissionLeg, TrajectorySampler

__all__ = [
    'KeplerSolver',
    'FrameGraph',
    'ReferenceFrameResolver',
    'ResolvedFrame',
    'UnresolvedReferenceError',
    'TransferPlanner',
    'TransferPlan',
    'GravityAssistResult',
    'LegBuilder',
    'MissionLeg',
    'TrajectorySampler',
]
