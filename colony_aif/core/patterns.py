"""
Behavioural pattern terms.

A pattern is a named tuning preset an agent may carry (``AntState.pattern``).
It contributes an extra expected-free-energy term ``lambda * (risk - info)``
per action and exposes a few features for telemetry: whether the current
mode suits the pattern, whether its key constraint holds and how costly
it would be to switch away. With ``lambda`` at its default of 0 patterns
are inert.
"""

import logging
import math
from dataclasses import replace
from typing import Any, Dict, Mapping, Optional

from .agent_state import AntState
from ..utils.numerics import lookup

logger = logging.getLogger(__name__)

MODE_AFFINITY = {
    "baseline": None,
    "hunger_coupling": None,
    "cargo_return": {"homebound"},
    "pheromone_tuner": {"outbound", "maintain"},
    "white_space": {"outbound"},
}


def _f(observation: Mapping[str, Any], key: str, default: float) -> float:
    return float(lookup(observation, key, default=default))


def _in_white_space(observation: Mapping[str, Any]) -> bool:
    return _f(observation, "white_space", 0.0) >= 0.5


def _cargo_return_risk(action: str, observation: Mapping[str, Any]) -> float:
    cargo = _f(observation, "cargo", 0.0)
    mode = observation.get("mode") or "outbound"
    home_prox = _f(observation, "home_prox", 0.0)
    if action == "return" and cargo < 0.15 and mode != "homebound":
        return 0.4
    if action == "forage" and cargo >= 0.5 and mode == "homebound":
        return 0.3
    if action == "hold" and cargo >= 0.3 and home_prox > 0.7:
        return 0.15
    return 0.0


def _white_space_risk(action: str, observation: Mapping[str, Any]) -> float:
    white = _in_white_space(observation)
    if white and action == "forage" and _f(observation, "food", 0.0) < 0.05:
        return 0.3
    if not white and action == "pheromone" and _f(observation, "novelty", 0.5) < 0.3:
        return 0.1
    return 0.0


def _hunger_coupling_risk(action: str, observation: Mapping[str, Any]) -> float:
    h = float(lookup(observation, "h", "hunger", default=0.4))
    home_prox = _f(observation, "home_prox", 0.0)
    cargo = _f(observation, "cargo", 0.0)
    if h > 0.7 and action != "return" and cargo > 0.1:
        return 0.35
    if h > 0.85 and action == "forage" and home_prox < 0.3:
        return 0.5
    return 0.0


def _pheromone_tuner_risk(action: str, observation: Mapping[str, Any]) -> float:
    home_prox = _f(observation, "home_prox", 0.0)
    novelty = _f(observation, "novelty", 0.5)
    reserve = _f(observation, "reserve_home", 0.5)
    if action == "pheromone" and home_prox > 0.9:
        return 0.25
    if action == "pheromone" and reserve < 0.2:
        return 0.2
    if action != "pheromone" and novelty > 0.7 and home_prox < 0.5:
        return 0.1
    return 0.0


_RISKS = {
    "cargo_return": _cargo_return_risk,
    "white_space": _white_space_risk,
    "hunger_coupling": _hunger_coupling_risk,
    "pheromone_tuner": _pheromone_tuner_risk,
}


def pattern_action_risk(pattern_id: str, action: str, observation: Mapping[str, Any]) -> float:
    """Penalty for actions that violate the pattern. Unknown patterns give 0."""
    risk = _RISKS.get(pattern_id)
    return risk(action, observation) if risk else 0.0


def pattern_info_gain(pattern_id: str, action: str, observation: Mapping[str, Any]) -> float:
    """Information value of the action for the pattern."""
    if pattern_id == "cargo_return":
        if (action == "return" and _f(observation, "cargo", 0.0) >= 0.3
                and _f(observation, "home_prox", 0.0) > 0.6):
            return 0.2
        return 0.0
    if pattern_id == "white_space":
        white = _in_white_space(observation)
        novelty = _f(observation, "novelty", 0.5)
        if white and action in ("forage", "hold") and novelty > 0.6:
            return 0.15
        if white and action == "pheromone" and novelty > 0.5:
            return 0.1
    return 0.0


def pattern_efe(pattern_id: str, action: str, observation: Mapping[str, Any],
                lambda_pattern: float = 0.0) -> Dict[str, float]:
    """
    Pattern contribution to an action's expected free energy.

    Returns:
        Dict with ``G`` (lambda * (risk - info)), ``pattern_risk`` and
        ``pattern_info``; all zero when lambda_pattern is 0
    """
    lambda_pattern = float(lambda_pattern or 0.0)
    if lambda_pattern == 0.0:
        return {"G": 0.0, "pattern_risk": 0.0, "pattern_info": 0.0}
    risk = pattern_action_risk(pattern_id, action, observation)
    info = pattern_info_gain(pattern_id, action, observation)
    return {"G": lambda_pattern * (risk - info), "pattern_risk": risk, "pattern_info": info}


def mode_aligned(mode: str, pattern_id: str) -> bool:
    expected = MODE_AFFINITY.get(pattern_id)
    return expected is None or mode in expected


def constraint_satisfied(ant: AntState, observation: Mapping[str, Any], pattern_id: str) -> bool:
    """Whether the pattern's key precondition holds right now."""
    mode = ant.mode or "outbound"
    if pattern_id == "hunger_coupling":
        h = observation.get("h")
        if h is None:
            h = ant.mu.h if ant.mu.h is not None else 0.4
        return h < 0.3 or h > 0.5
    if pattern_id == "cargo_return":
        cargo = _f(observation, "cargo", 0.0)
        return cargo < 0.05 or mode == "homebound"
    if pattern_id == "white_space":
        return (_f(observation, "food", 0.0) < 0.1
                and _f(observation, "pher", 0.0) < 0.2
                and _f(observation, "food_trace", 0.0) < 0.15)
    if pattern_id == "pheromone_tuner":
        return ((mode == "outbound" and _f(observation, "novelty", 0.5) > 0.4)
                or _f(observation, "trail_grad", 0.0) > 0.2)
    return True


def switch_cost(ant: AntState) -> float:
    """Grows with log(1 + ticks active), capped at 1."""
    ticks = ant.pattern.ticks_active if ant.pattern is not None else 0
    return min(1.0, 0.1 * math.log(1 + ticks))


def pattern_features(ant: AntState, observation: Mapping[str, Any]) -> Dict[str, Any]:
    if ant.pattern is None:
        return {"active": None, "mode_aligned": True, "constraint_ok": True, "switch_cost": 0.0}
    pattern_id = ant.pattern.id
    return {
        "active": pattern_id,
        "mode_aligned": mode_aligned(ant.mode, pattern_id),
        "constraint_ok": constraint_satisfied(ant, observation, pattern_id),
        "switch_cost": switch_cost(ant),
    }


def increment_ticks_active(ant: AntState) -> AntState:
    if ant.pattern is None:
        return ant
    return replace(ant, pattern=replace(ant.pattern, ticks_active=ant.pattern.ticks_active + 1))
