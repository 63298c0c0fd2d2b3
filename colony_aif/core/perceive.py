"""
Predictive-coding perception.

A fixed number of micro-iterations reconciles the agent's sensory
predictions with the current observation. Each iteration modulates and
anneals precision, computes precision-weighted prediction errors, drifts
the predictions, updates the hunger belief and blends the goal between
the rival home and the own home. ``max_steps`` is a hard cap; there is no
convergence test.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .affect import anneal_tau, modulate_precisions, tick_hunger
from .agent_state import AntState, Belief, Precision
from .colony_world import ColonyWorld
from ..utils.numerics import clamp01, lookup

logger = logging.getLogger(__name__)

SENSORY_KEYS = (
    "food", "pher", "food_trace", "pher_trace", "home_prox", "enemy_prox", "h",
    "ingest", "friendly_home", "trail_grad", "novelty", "dist_home",
    "reserve_home", "cargo",
)

DEFAULT_PI_O = {
    "food": 1.0,
    "pher": 0.8,
    "food_trace": 0.6,
    "pher_trace": 0.5,
    "home_prox": 0.8,
    "enemy_prox": 0.9,
    "h": 1.1,
    "ingest": 0.9,
    "friendly_home": 0.8,
    "trail_grad": 0.7,
    "novelty": 0.6,
    "dist_home": 0.9,
    "reserve_home": 0.6,
    "cargo": 1.2,
}

DEFAULT_TAU = 1.6


@dataclass
class Perception:
    """Result of one perceive() call."""

    mu: Belief
    prec: Precision
    errors: Dict[str, Dict[str, float]]
    free_energy: float
    trace: List[Dict[str, float]] = field(default_factory=list)


def _blend(src: Tuple[float, float], dst: Tuple[float, float], rate: float) -> Tuple[float, float]:
    return (src[0] + rate * (dst[0] - src[0]), src[1] + rate * (dst[1] - src[1]))


def _homes(world: Optional[ColonyWorld], species: str):
    if world is None:
        return None, None
    rival = world.rival_of(species)
    enemy_home = world.home_of(rival) if rival is not None else None
    return world.home_of(species), enemy_home


def ensure_belief(world: Optional[ColonyWorld], ant: AntState,
                  observation: Mapping[str, Any]) -> Belief:
    """
    Seed a usable belief from whatever the agent carries.

    The current observation overrides persisted predictions; channels it
    does not report keep the prediction carried from earlier ticks.
    """
    loc = tuple(ant.loc) if ant.loc is not None else (0, 0)
    existing = ant.mu or Belief()
    home, enemy_home = _homes(world, ant.species or "aif")

    goal = existing.goal
    if goal is None:
        goal = enemy_home or home or loc
    goal = (float(goal[0]), float(goal[1]))

    sens = {k: 0.5 for k in SENSORY_KEYS}
    sens.update(existing.sens or {})
    sens.update({k: float(observation[k]) for k in SENSORY_KEYS
                 if observation.get(k) is not None})

    hunger = existing.h
    if hunger is None:
        hunger = lookup(observation, "h", default=0.5)
    hunger = clamp01(hunger)
    return replace(existing, pos=loc, goal=goal, h=hunger, sens=sens)


def ensure_precision(ant: AntState) -> Precision:
    """Merge the agent's precision over DEFAULT_PI_O / DEFAULT_TAU."""
    prec = ant.prec or Precision()
    pi_o = dict(DEFAULT_PI_O)
    pi_o.update(prec.pi_o or {})
    tau = DEFAULT_TAU if prec.tau is None else float(prec.tau)
    return Precision(pi_o=pi_o, tau=tau)


def compute_errors(mu: Belief, observation: Mapping[str, Any],
                   prec: Precision) -> Dict[str, Dict[str, float]]:
    errors = {}
    for key in SENSORY_KEYS:
        obs = float(observation.get(key) or 0.0)
        pred = float(mu.sens.get(key, obs))
        precision = float(prec.pi_o.get(key, 1.0))
        raw = obs - pred
        errors[key] = {"raw": raw, "precision": precision, "weighted": precision * raw}
    return errors


def weighted_mse(errors: Mapping[str, Mapping[str, float]]) -> float:
    if not errors:
        return 0.0
    total = sum(e["precision"] * e["raw"] * e["raw"] for e in errors.values())
    return total / len(errors)


def update_goal(goal: Tuple[float, float], world: Optional[ColonyWorld], species: str,
                observation: Mapping[str, Any]) -> Tuple[float, float]:
    """Pull the goal toward the rival home, then toward the own home by cargo."""
    home, enemy_home = _homes(world, species)
    enemy_prox = float(observation.get("enemy_prox") or 0.0)
    home_prox = float(observation.get("home_prox") or 0.0)
    cargo = float(observation.get("cargo") or 0.0)
    if enemy_home is not None:
        goal = _blend(goal, enemy_home, 0.05 + 0.2 * max(0.0, enemy_prox - 0.4 * cargo))
    if home is not None:
        bias = min(0.95, 0.05 + 0.5 * cargo + 0.2 * max(0.0, home_prox - 0.4))
        goal = _blend(goal, home, bias)
    return goal


def update_sensory(sens: Mapping[str, float], errors: Mapping[str, Mapping[str, float]],
                   alpha: float) -> Dict[str, float]:
    """Drift every non-hunger prediction by alpha times its weighted error."""
    updated = dict(sens)
    for key, err in errors.items():
        if key == "h":
            continue
        updated[key] = clamp01(float(updated.get(key, 0.5)) + alpha * err["weighted"])
    return updated


def perceive(
    world: Optional[ColonyWorld],
    ant: AntState,
    observation: Mapping[str, Any],
    max_steps: int = 5,
    alpha: float = 0.55,
    beta: float = 0.3,
    hunger_options: Optional[Mapping[str, Any]] = None,
    precision_options: Optional[Mapping[str, Any]] = None,
) -> Perception:
    """
    Run predictive-coding micro-steps and return the updated belief.

    Args:
        world: World snapshot (only the homes are read); may be None
        ant: Agent snapshot
        observation: Output of observe()
        max_steps: Number of iterations (at least 1)
        alpha: Learning rate for sensory predictions
        beta: Learning rate for the hunger belief
        hunger_options: Passed to tick_hunger
        precision_options: Passed to modulate_precisions

    Returns:
        Perception with the final belief, the annealed precision of the last
        step, the last error map, free energy and the per-step trace
    """
    max_steps = max(1, int(max_steps))
    species = ant.species or "aif"
    mu = ensure_belief(world, ant, observation)
    prec = ensure_precision(ant)
    loc = mu.pos

    trace: List[Dict[str, float]] = []
    error_sum = 0.0
    errors: Dict[str, Dict[str, float]] = {}
    prec_step = prec

    for step in range(max_steps):
        hunger = mu.h
        prec_target = modulate_precisions(prec, hunger, observation, precision_options)
        prec_step = anneal_tau(prec_target, step, max_steps)
        errors = compute_errors(mu, observation, prec_step)
        sens = update_sensory(mu.sens, errors, alpha)
        hunger_new = tick_hunger(clamp01(hunger + beta * errors["h"]["weighted"]),
                                 observation, hunger_options)
        mu = replace(mu, sens=sens, h=hunger_new, pos=loc,
                     goal=update_goal(mu.goal, world, species, observation))
        step_error = weighted_mse(errors)
        trace.append({"tau": prec_step.tau, "h": hunger_new, "error": step_error})
        error_sum += step_error
        prec = prec_target

    free_energy = 0.5 * (error_sum / max_steps)
    logger.debug(f"perceive: {max_steps} steps, free_energy={free_energy:.4f}, h={mu.h:.3f}")
    return Perception(mu=mu, prec=prec_step, errors=errors,
                      free_energy=free_energy, trace=trace)
