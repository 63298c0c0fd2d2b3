"""
Agent-owned state carried from tick to tick.

Belief (mu) and precision (prec) are owned by exactly one agent. Every
update in the package returns a new AntState through dataclasses.replace,
so a snapshot handed to the core is never mutated in place.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

from ..utils.numerics import clamp01

logger = logging.getLogger(__name__)

Pos = Tuple[int, int]

MODES = ("outbound", "homebound", "maintain")

PATTERN_IDS = ("baseline", "cargo_return", "white_space", "hunger_coupling", "pheromone_tuner")


@dataclass
class Belief:
    """Believed position, goal, hunger and sensory predictions."""

    pos: Optional[Pos] = None
    goal: Optional[Tuple[float, float]] = None
    h: Optional[float] = None
    sens: Dict[str, float] = field(default_factory=dict)
    cargo: Optional[float] = None


@dataclass
class Precision:
    """Per-channel sensory precisions and the softmax temperature."""

    pi_o: Dict[str, float] = field(default_factory=dict)
    tau: Optional[float] = None


@dataclass
class PatternState:
    """Active behavioural pattern and how long it has been active."""

    id: str
    ticks_active: int = 0

    def __post_init__(self):
        if self.id not in PATTERN_IDS:
            raise ValueError(f"Unknown pattern '{self.id}'. Expected one of {PATTERN_IDS}")


@dataclass
class AntState:
    """
    Snapshot of one agent.

    The first block of fields is input owned by the world layer; the
    ``last_*`` fields and streak counters are telemetry written by the
    orchestrator after each tick.
    """

    species: str = "aif"
    loc: Pos = (0, 0)
    cargo: float = 0.0
    ingest: float = 0.0
    recent_gather: float = 0.0
    visit_counts: Dict[Pos, int] = field(default_factory=dict)
    h: Optional[float] = None
    mu: Belief = field(default_factory=Belief)
    prec: Precision = field(default_factory=Precision)
    mode: str = "outbound"
    recent: List[Dict[str, Any]] = field(default_factory=list)
    aif_config: Optional[Dict[str, Any]] = None
    pattern: Optional[PatternState] = None

    last_observation: Optional[Dict[str, Any]] = None
    last_trace: Optional[List[Dict[str, float]]] = None
    last_action: Optional[str] = None
    last_policy: Optional[Dict[str, Any]] = None
    last_g: Optional[float] = None
    need_error: Optional[float] = None
    dhdt: Optional[float] = None
    white_space: bool = False
    white_streak: int = 0
    since_ingest: int = 0

    def visits_at(self, pos: Optional[Pos] = None) -> int:
        pos = self.loc if pos is None else pos
        return int(self.visit_counts.get(tuple(pos), 0))


def blend_ingest(ant: AntState, add: float, decay: float = 0.55) -> AntState:
    """Decay the ingest proxy and add this tick's intake."""
    prior = float(ant.ingest or 0.0)
    return replace(ant, ingest=clamp01(decay * prior + float(add)))


def blend_recent_gather(ant: AntState, sample: float) -> AntState:
    prev = float(ant.recent_gather or 0.0)
    return replace(ant, recent_gather=clamp01(0.5 * prev + 0.5 * clamp01(sample)))


def decay_recent_gather(ant: AntState) -> AntState:
    return replace(ant, recent_gather=clamp01(0.5 * float(ant.recent_gather or 0.0)))


def record_visit(ant: AntState, loc: Optional[Pos] = None) -> AntState:
    """Increment the visit count at loc (default: the agent's location)."""
    loc = tuple(ant.loc if loc is None else loc)
    counts = dict(ant.visit_counts)
    counts[loc] = counts.get(loc, 0) + 1
    return replace(ant, visit_counts=counts)
