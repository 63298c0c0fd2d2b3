"""
Observation normalizer.

Turns a world snapshot plus one agent's state into a flat dict of scalars
in [0, 1]. The function is pure: the same inputs always give the same
observation.

Keys:
    food, pher            local density, normalized by the grid maxima
    food_trace, pher_trace  mean over the in-bounds 8-neighbourhood
    home_prox, enemy_prox   1 at the target home, 0 at the grid diagonal
    h, hunger             felt hunger (belief first, raw field second)
    ingest                recent ingest proxy
    friendly_home         1.0 when standing on the agent's own home cell
    trail_grad            strongest neighbour pheromone above the local value
    novelty               1 / (1 + visits to the current cell)
    dist_home             normalized distance to the own home
    reserve_home          colony reserves over the queen's initial store
    recent_gather         rolling gather proxy
    cargo                 carried load
    white_space           1.0 in a low-signal patch
"""

import logging
import math
from typing import Dict, Optional

import numpy as np

from .agent_state import AntState, Pos
from .colony_world import ColonyWorld
from ..utils.numerics import clamp01, invert, mean, normalize

logger = logging.getLogger(__name__)

SENSE_KEYS = (
    "food", "pher", "food_trace", "pher_trace", "home_prox", "enemy_prox", "h",
    "ingest", "friendly_home", "trail_grad", "novelty", "dist_home",
    "reserve_home", "cargo",
)

WHITE_FOOD_EPS = 0.05
WHITE_PHER_EPS = 0.10
WHITE_TRACE_EPS = 0.10


def _distance(a: Pos, b: Pos) -> float:
    return math.hypot(b[0] - a[0], b[1] - a[1])


def proximity(world: ColonyWorld, loc: Pos, target: Optional[Pos]) -> float:
    """Closeness to target: 1 when collocated, 0 at the grid diagonal or when absent."""
    if target is None or not world.in_bounds(target):
        return 0.0
    max_dist = max(1e-9, world.max_dist)
    return invert(clamp01(_distance(loc, target) / max_dist))


def observe(world: ColonyWorld, ant: AntState) -> Dict[str, float]:
    """
    Gather normalized sensory evidence for an agent.

    Args:
        world: World snapshot
        ant: Agent snapshot

    Returns:
        Observation dict (see module docstring for the keys)
    """
    loc = tuple(ant.loc) if ant.loc is not None else (0, 0)
    species = ant.species or "aif"

    food_max = world.max_food
    pher_max = world.max_pher

    raw_food = world.food_at(loc)
    raw_pher = world.pher_at(loc)
    neighbors = world.neighbors(loc)
    neighbor_foods = [world.food_at(n) for n in neighbors]
    neighbor_phers = [world.pher_at(n) for n in neighbors]

    home = world.home_of(species)
    rival = world.rival_of(species)
    enemy = world.home_of(rival) if rival is not None else None

    if ant.mu is not None and ant.mu.h is not None:
        hunger = ant.mu.h
    elif ant.h is not None:
        hunger = ant.h
    else:
        hunger = 0.5

    friendly_home = 1.0 if (home is not None and loc == home
                            and world.home_owner(loc) == species) else 0.0

    pher_self = normalize(raw_pher, pher_max)
    neighbor_pher_norms = [normalize(p, pher_max) for p in neighbor_phers]
    if neighbor_pher_norms:
        trail_grad = clamp01(max(neighbor_pher_norms) - pher_self)
    else:
        trail_grad = 0.0

    novelty = clamp01(1.0 / (1.0 + float(ant.visits_at(loc))))

    if home is not None:
        dist_home = clamp01(_distance(loc, home) / max(1e-9, world.max_dist))
    else:
        dist_home = 1.0

    reserve_home = clamp01(world.reserves_of(species) / max(world.queen_initial(), 1e-6))

    neighbor_food_mean = mean(neighbor_foods)
    white = (raw_food < WHITE_FOOD_EPS * food_max
             and raw_pher < WHITE_PHER_EPS * pher_max
             and neighbor_food_mean < WHITE_TRACE_EPS * food_max)

    observation = {
        "food": normalize(raw_food, food_max),
        "pher": normalize(raw_pher, pher_max),
        "food_trace": normalize(neighbor_food_mean, food_max),
        "pher_trace": normalize(mean(neighbor_phers), pher_max),
        "home_prox": proximity(world, loc, home),
        "enemy_prox": proximity(world, loc, enemy),
        "h": clamp01(hunger),
        "hunger": clamp01(hunger),
        "ingest": clamp01(ant.ingest or 0.0),
        "friendly_home": friendly_home,
        "trail_grad": trail_grad,
        "novelty": novelty,
        "dist_home": dist_home,
        "reserve_home": reserve_home,
        "recent_gather": clamp01(ant.recent_gather or 0.0),
        "cargo": clamp01(ant.cargo or 0.0),
        "white_space": 1.0 if white else 0.0,
    }
    logger.debug(f"Observation for {species} at {loc}: {observation}")
    return observation


def sense_vector(observation: Dict[str, float]) -> np.ndarray:
    """Observation channels as a vector in SENSE_KEYS order (missing -> 0.0)."""
    return np.array([float(observation.get(k) or 0.0) for k in SENSE_KEYS], dtype=np.float64)
