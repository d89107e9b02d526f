"""
SurvivorPool Engine

Tournament progression and elimination logic.
This module contains no GUI dependencies.
"""

from engine.bracket import BracketGraph, generate_bracket, propagate_winner
from engine.clock import Clock, SystemClock, SimulatedClock
from engine.picks import PickError
from engine.processor import GameProcessor

__all__ = [
    "BracketGraph",
    "generate_bracket",
    "propagate_winner",
    "Clock",
    "SystemClock",
    "SimulatedClock",
    "PickError",
    "GameProcessor",
]
