"""
Decision core for the colony-foraging active-inference agents.

Components, leaves first: the world snapshot and agent state, the
observation normalizer, affect regulation, predictive-coding perception,
pattern terms and the expected-free-energy policy evaluator.
"""

from .colony_world import ColonyWorld, DEFAULT_ACTIONS
from .agent_state import AntState, Belief, PatternState, Precision
from .observe import observe, sense_vector
from .perceive import Perception, perceive
from .policy import choose_action

__all__ = [
    "ColonyWorld",
    "DEFAULT_ACTIONS",
    "AntState",
    "Belief",
    "PatternState",
    "Precision",
    "observe",
    "sense_vector",
    "Perception",
    "perceive",
    "choose_action",
]
