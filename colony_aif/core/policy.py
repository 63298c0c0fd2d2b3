"""
Action evaluation via one-step expected free energy and softmax selection.

For each admissible macro-action the evaluator predicts a myopic outcome,
scores it with a weighted expected free energy (risk, ambiguity,
information gain, colony cost, survival cost and a hand-tuned action
prior), adds a stack of small named logit biases, couples the softmax
temperature to colony reserves and survival pressure, and picks the most
probable action. Selection is a deterministic argmax; the full
distribution is returned for diagnostics.
"""

import logging
import math
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from .agent_state import Belief, Precision
from .colony_world import DEFAULT_ACTIONS
from .patterns import pattern_efe
from ..utils.numerics import clamp, clamp01, drift, lookup, softmax

logger = logging.getLogger(__name__)

Observation = Mapping[str, Any]

ACTIONS_BY_MODE = {
    "outbound": ("forage", "pheromone", "hold", "return"),
    "homebound": ("return", "pheromone", "hold", "forage"),
    "maintain": ("pheromone", "hold", "return", "forage"),
}

MODES = ("outbound", "homebound", "maintain")

DEFAULT_PREFERENCES = {
    "hunger": {"mean": 0.40, "sd": 0.08},
    "ingest": {"mean": 0.70, "sd": 0.20},
}

DEFAULT_ACTION_COSTS = {
    "pheromone": {"base_cost": 0.20, "hunger_mult": 0.1, "no_ingest_pen": 4.0,
                  "ingest_thresh": 0.2, "friendly_home_pen": 0.8},
    "forage": {"friendly_home_pen": 1.2},
    "return": {"base_cost": 0.25, "empty_home_pen": 0.9, "cargo_thresh": 0.05,
               "home_thresh": 0.8, "hunger_gap_mult": 3.8},
}

DEFAULT_EFE_LAMBDA = {
    "pragmatic": 1.0,
    "ambiguity": 0.5,
    "info": 0.4,
    "colony": 0.4,
    "survival": 1.2,
    "pattern": 0.0,
}

DEFAULT_COLONY = {
    "reserve_thresh": 1.0,
    "non_return_pen": 0.6,
    "return_pen": 0.0,
}

DEFAULT_SURVIVAL = {
    "hunger_thresh": 0.55,
    "hunger_weight": 1.5,
    "dist_weight": 0.5,
    "ingest_buffer": 0.30,
    "return_reduction": 0.40,
    "pressure_norm": 2.0,
}


def _merged(defaults: Mapping[str, Any], overrides: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    merged = dict(defaults)
    merged.update(overrides or {})
    return merged


def _f(mapping: Optional[Mapping[str, Any]], *keys: str, default: float = 0.0) -> float:
    return float(lookup(mapping, *keys, default=default))


# Mode posterior tilt

MODE_THRESHOLDS = {
    "near_home": 0.80,
    "pher_min": 0.15,
    "trail_weak": 0.25,
    "cargo_min": 0.05,
}

C_PRIOR = {
    "outbound": {"gath": 1.0, "ing": 0.4, "cargo+": 0.8, "near_nest": -0.2, "trail+": 0.2},
    "homebound": {"dep": 1.2, "cargo0": 1.0, "near_nest": 0.8, "gath": 0.0, "trail+": 0.1},
    "maintain": {"trail+": 1.0, "pheromone": 0.8, "near_nest": 0.2},
}


def derive_mode_features(observation: Observation) -> Dict[str, Any]:
    th = MODE_THRESHOLDS
    return {
        "cargo": _f(observation, "cargo"),
        "near": _f(observation, "home_prox", "friendly_home") >= th["near_home"],
        "pher": _f(observation, "pher") >= th["pher_min"],
        "weak": _f(observation, "trail_grad") <= th["trail_weak"],
    }


def infer_mode(features: Mapping[str, Any]) -> Dict[str, float]:
    """Posterior over modes from a soft evidence template."""
    cargo = features["cargo"]
    empty = cargo <= 0.0
    log_evidence = [
        2.0 * (empty and not features["near"]) + 0.5 * features["pher"] + 0.5 * features["weak"],
        2.5 * (cargo > MODE_THRESHOLDS["cargo_min"]) + 1.0 * features["near"],
        1.5 * features["weak"] + 0.5 * (empty and features["pher"]),
    ]
    probs = softmax([float(v) for v in log_evidence])
    return {mode: float(p) for mode, p in zip(MODES, probs)}


def predict_mode_outcomes(observation: Observation, action: str) -> Dict[str, float]:
    """Light feature predictions keyed like C_PRIOR."""
    features = derive_mode_features(observation)
    loaded = features["cargo"] > 0.0
    if action == "return":
        return {"near_nest": 1.0 if features["near"] else 0.4,
                "cargo+": 0.1 if loaded else 0.0}
    if action == "forage":
        return {"gath": 0.0 if loaded else 0.5,
                "cargo+": 0.0 if loaded else 0.6}
    if action == "pheromone":
        return {"trail+": 0.8 if features["weak"] else 0.3,
                "pheromone": 1.0}
    return {}


def efe_tilt(observation: Observation, action: str, lam: float = 0.6) -> float:
    """Logit adjustment: lam times the mode-posterior weighted preference score."""
    q = infer_mode(derive_mode_features(observation))
    predicted = predict_mode_outcomes(observation, action)
    extrinsic = 0.0
    for mode, pm in q.items():
        prior = C_PRIOR[mode]
        extrinsic += pm * sum(prior.get(k, 0.0) * v for k, v in predicted.items())
    return lam * extrinsic


# Outcome model

def predict_outcome(mu: Belief, observation: Observation, action: str) -> Dict[str, Any]:
    """
    Myopic one-step outcome for an action, including the ingest proxy.

    Each field drifts toward an action-specific target at an
    action-specific rate and is clamped to [0, 1].
    """
    h = 0.5 if mu.h is None else float(mu.h)
    cargo = _f(observation, "cargo", default=mu.cargo if mu.cargo is not None else 0.0)
    ingest = _f(observation, "ingest")
    friendly_home = _f(observation, "friendly_home")
    trail_grad = _f(observation, "trail_grad")
    novelty = _f(observation, "novelty")
    dist_home = _f(observation, "dist_home")
    reserve_home = _f(observation, "reserve_home")
    local_food = _f(observation, "food")
    food_trace = _f(observation, "food_trace")
    recent_gather = _f(observation, "recent_gather")

    state = dict(observation)

    def shift(key: str, toward: float, rate: float) -> None:
        state[key] = drift(_f(state, key), toward, rate)

    if action == "forage":
        availability = clamp01(0.55 * local_food + 0.25 * food_trace
                               + 0.20 * max(recent_gather, food_trace))
        seed = 0.05 + 0.60 * local_food + 0.30 * availability
        potential = clamp01(max(local_food, seed))
        food_target = clamp01(local_food + potential * (1.0 - local_food))
        food_rate = 0.08 + 0.35 * potential + 0.12 * availability
        cargo_target = clamp01(cargo + potential * (1.0 - cargo))
        cargo_rate = 0.12 + 0.55 * potential + 0.15 * availability
        at_home = friendly_home > 0.5
        ingest_floor = 0.25 if at_home else 0.35
        ingest_peak = 0.55 if at_home else 0.9
        ingest_target = clamp01(potential * ingest_peak
                                + (1.0 - potential) * ingest_floor
                                + 0.25 * max(0.0, local_food - 0.25))
        ingest_rate = 0.32 + 0.40 * potential + 0.15 * max(availability, local_food)
        pref_h = 0.34 if at_home else 0.38
        hunger_gap = max(0.0, h - pref_h)
        hunger_catch = clamp(0.45 + 0.35 * potential + 0.30 * availability, 0.10, 0.85)
        hunger_fill = clamp(0.30 + 0.35 * potential + 0.20 * availability, 0.10, 0.70)
        if hunger_gap > 0:
            hunger_target = clamp01(h - hunger_gap * hunger_catch)
        else:
            hunger_target = clamp01(h + (pref_h - h) * hunger_fill)
        hunger_rate = 0.32 + 0.48 * potential + 0.18 * availability
        pher_rate = 0.05 + 0.18 * potential

        shift("food", food_target, food_rate)
        shift("pher", 0.1, pher_rate)
        shift("home_prox", 0.1, 0.4)
        shift("enemy_prox", 0.8, 0.35)
        shift("h", hunger_target, hunger_rate)
        shift("cargo", cargo_target, cargo_rate)

    elif action == "return":
        shift("food", 0.2, 0.45)
        shift("pher", 0.25, 0.4)
        shift("home_prox", 1.0, 0.65)
        shift("enemy_prox", 0.05, 0.45)
        state["cargo"] = drift(cargo, 0.0, 1.2)
        cargo_gap = max(0.0, 0.3 - cargo)
        hunger_relief = max(0.15, h - 0.25)
        hunger_bias = min(0.35, hunger_relief * (0.6 * cargo))
        if cargo > 0:
            hunger_target = clamp01(h - hunger_bias)
            hunger_rate = 0.25 + 0.5 * clamp01(cargo)
        else:
            hunger_target = clamp01(h - 0.05 * cargo_gap)
            hunger_rate = 0.08
        if friendly_home > 0.5 and cargo < 0.1:
            ingest_target = 0.05
        else:
            ingest_target = min(0.9, 0.5 + 0.3 * clamp01(cargo))
        ingest_rate = 0.55 if cargo > 0 else 0.35
        shift("h", hunger_target, hunger_rate)

    elif action == "pheromone":
        away = max(0.0, 1.0 - friendly_home)
        shift("pher", 1.0, 0.6 * away)
        shift("pher_trace", 1.0, 0.55 * away)
        shift("food", 0.4, 0.25)
        shift("home_prox", 0.6, 0.35)
        shift("enemy_prox", 0.5, 0.35)
        shift("h", 0.4, 0.3)
        shift("cargo", 0.7, 0.45)
        ingest_target, ingest_rate = 0.1, 0.45

    elif action == "hold":
        shift("food", 0.3, 0.25)
        shift("pher", 0.15, 0.25)
        shift("home_prox", 0.2, 0.35)
        shift("enemy_prox", 0.7, 0.3)
        shift("h", 0.5, 0.2)
        shift("cargo", cargo, 0.1)
        ingest_target, ingest_rate = 0.35, 0.35

    else:
        ingest_target, ingest_rate = 0.25, 0.25

    h_next = _f(state, "h", default=_f(observation, "h", default=h))

    if action == "pheromone":
        trail_bump = 0.12 + 0.45 * clamp01(cargo)
        trail_next = trail_grad + min(0.6, trail_bump + 0.25 * max(cargo, 0.0))
    else:
        trail_next = trail_grad

    if action == "return":
        dist_next = 0.6 * dist_home
    elif action == "forage":
        dist_next = min(1.0, dist_home + 0.05)
    else:
        dist_next = dist_home

    state.update({
        "ingest": drift(ingest, ingest_target, ingest_rate),
        "h": clamp01(h_next),
        "friendly_home": friendly_home,
        "trail_grad": clamp01(trail_next),
        "novelty": clamp01(0.75 * novelty if action == "forage" else novelty),
        "dist_home": clamp01(dist_next),
        "reserve_home": clamp01(reserve_home),
        "hunger": clamp01(h_next),
    })
    return state


# EFE terms

def nll(x: float, pref: Mapping[str, float]) -> float:
    """Gaussian negative log-likelihood up to a constant."""
    mean = _f(pref, "mean", default=0.0)
    sd = max(1e-6, _f(pref, "sd", default=0.2))
    z = (float(x) - mean) / sd
    return 0.5 * z * z


def risk_from_preferences(outcome: Observation, preferences: Optional[Mapping[str, Any]]) -> float:
    prefs = _merged(DEFAULT_PREFERENCES, preferences)
    hunger = _f(outcome, "hunger", "h")
    ingest = _f(outcome, "ingest")
    return nll(hunger, prefs["hunger"]) + nll(ingest, prefs["ingest"])


def action_prior_cost(action: str, outcome: Observation, hunger: float,
                      action_cfg: Optional[Mapping[str, Any]]) -> float:
    """Hand-tuned per-action cost added to G."""
    cfg = action_cfg or {}
    if action == "pheromone":
        base_cost = _f(cfg, "base_cost", default=0.01)
        hunger_mult = _f(cfg, "hunger_mult", default=0.1)
        no_ingest_pen = _f(cfg, "no_ingest_pen", default=0.3)
        ingest_thresh = _f(cfg, "ingest_thresh", default=0.2)
        friendly_home_pen = _f(cfg, "friendly_home_pen", default=0.8)
        ingest = _f(outcome, "ingest")
        friendly_home = _f(outcome, "friendly_home")
        return (base_cost
                + hunger_mult * clamp01(hunger)
                + no_ingest_pen * max(0.0, ingest_thresh - ingest)
                + friendly_home_pen * friendly_home)

    if action == "forage":
        return _f(cfg, "friendly_home_pen", default=1.2) * _f(outcome, "friendly_home")

    if action == "return":
        base_cost = _f(cfg, "base_cost", default=0.25)
        empty_home_pen = _f(cfg, "empty_home_pen", default=0.9)
        cargo_thresh = _f(cfg, "cargo_thresh", default=0.05)
        home_thresh = _f(cfg, "home_thresh", default=0.8)
        hunger_gap_mult = _f(cfg, "hunger_gap_mult", default=3.8)
        friendly_home = _f(outcome, "friendly_home")
        cargo = _f(outcome, "cargo")
        h = _f(outcome, "h", "hunger")
        reserve = clamp01(_f(outcome, "reserve_home", default=0.5))
        dist = _f(outcome, "dist_home", default=1.0)
        empty = cargo < cargo_thresh
        # Empty-handed trips home from afar cost extra.
        far_empty_pen = 0.60 if empty and dist > 0.30 else 0.0
        hunger_term = (hunger_gap_mult * max(0.0, h - 0.35)
                       * (1.0 if empty else 0.4) * max(0.2, reserve))
        if empty:
            base = base_cost * max(0.2, reserve) + hunger_term + far_empty_pen
        else:
            base = 0.25 * hunger_term
        if friendly_home >= home_thresh and empty:
            return base + empty_home_pen
        return base

    return 0.0


def info_gain(observation: Observation, outcome: Observation) -> float:
    """Novelty reduction plus a quarter of the trail-gradient increase."""
    nov_before = _f(observation, "novelty")
    nov_after = _f(outcome, "novelty", default=nov_before)
    grad_before = _f(observation, "trail_grad")
    grad_after = _f(outcome, "trail_grad", default=grad_before)
    return max(0.0, nov_before - nov_after) + 0.25 * max(0.0, grad_after - grad_before)


def colony_cost(action: str, observation: Observation, cfg: Mapping[str, Any]) -> float:
    reserve = _f(observation, "reserve_home", default=1.0)
    thresh = _f(cfg, "reserve_thresh", default=0.2)
    deficit = max(0.0, thresh - reserve)
    if deficit == 0.0:
        return 0.0
    scaled = 0.15 + deficit
    if action == "return":
        return _f(cfg, "return_pen", default=0.0) * scaled
    return _f(cfg, "non_return_pen", default=1.0) * scaled


def survival_cost(action: str, observation: Observation, outcome: Observation,
                  cfg: Mapping[str, Any]) -> float:
    hunger = float(lookup(outcome, "hunger", "h",
                          default=lookup(observation, "h", default=0.0)))
    dist = float(lookup(outcome, "dist_home", default=lookup(observation, "dist_home", default=0.0)))
    ingest = float(lookup(outcome, "ingest", default=lookup(observation, "ingest", default=0.0)))
    hunger_term = _f(cfg, "hunger_weight", default=1.5) * max(
        0.0, hunger - _f(cfg, "hunger_thresh", default=0.55))
    dist_term = max(0.0, dist) * _f(cfg, "dist_weight", default=0.5)
    ingest_term = max(0.0, _f(cfg, "ingest_buffer", default=0.3) - ingest)
    cost = hunger_term + dist_term + ingest_term
    if action == "return":
        return _f(cfg, "return_reduction", default=0.4) * cost
    return cost


def expected_ambiguity(prec: Precision, outcome: Observation) -> float:
    """Inverse-precision weighted Bernoulli variance over numeric outcome fields."""
    pi_o = prec.pi_o or {}
    acc = 0.0
    for key, value in outcome.items():
        if key == "hunger" or isinstance(value, bool) or not isinstance(value, (int, float)):
            continue
        precision = float(pi_o.get(key, 1.0))
        v = clamp01(value)
        acc += (1.0 / max(precision, 0.2)) * v * (1.0 - v)
    return 0.5 * acc


def expected_free_energy(
    mu: Belief,
    prec: Precision,
    observation: Observation,
    action: str,
    preferences: Optional[Mapping[str, Any]] = None,
    action_costs: Optional[Mapping[str, Any]] = None,
    efe: Optional[Mapping[str, Any]] = None,
    pattern: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Score one action.

    Returns:
        Dict with G and its sub-terms (risk, ambiguity, info, colony,
        survival, action_cost) plus the predicted outcome. When a pattern
        is active its weighted term is folded into G as well.
    """
    efe = efe or {}
    outcome = predict_outcome(mu, observation, action)
    costs = _merged(DEFAULT_ACTION_COSTS, action_costs)
    lam = _merged(DEFAULT_EFE_LAMBDA, efe.get("lambda"))
    colony_cfg = _merged(DEFAULT_COLONY, efe.get("colony"))
    survival_cfg = _merged(DEFAULT_SURVIVAL, efe.get("survival"))

    risk = risk_from_preferences(outcome, preferences)
    ambiguity = expected_ambiguity(prec, outcome)
    info = info_gain(observation, outcome)
    colony = colony_cost(action, observation, colony_cfg)
    survival = survival_cost(action, observation, outcome, survival_cfg)
    prior = action_prior_cost(action, outcome, _f(outcome, "hunger", "h"), costs.get(action))

    G = (lam["pragmatic"] * risk
         + lam["ambiguity"] * ambiguity
         + lam["colony"] * colony
         + lam["survival"] * survival
         + prior
         - lam["info"] * info)

    result = {
        "G": G,
        "risk": risk,
        "ambiguity": ambiguity,
        "info": info,
        "colony": colony,
        "survival": survival,
        "action_cost": prior,
        "outcome": outcome,
    }
    if pattern is not None:
        term = pattern_efe(pattern, action, observation, lam.get("pattern", 0.0))
        result["G"] = G + term["G"]
        result["pattern_risk"] = term["pattern_risk"]
        result["pattern_info"] = term["pattern_info"]
    return result


# Temperature coupling

def reserve_delta(observation: Observation, cfg: Mapping[str, Any]) -> float:
    thresh = _f(cfg, "reserve_thresh", default=1.0)
    if "reserve_home" in observation:
        reserve = _f(observation, "reserve_home", default=thresh)
    else:
        reserve = thresh
    return thresh - reserve


def survival_pressure_from_observation(observation: Observation, cfg: Mapping[str, Any]) -> float:
    h = _f(observation, "hunger", "h")
    dist = _f(observation, "dist_home")
    ingest = _f(observation, "ingest")
    raw = (max(0.0, h - _f(cfg, "hunger_thresh", default=0.55))
           + _f(cfg, "dist_weight", default=0.5) * max(0.0, dist)
           + max(0.0, _f(cfg, "ingest_buffer", default=0.30) - ingest))
    return clamp01(raw / max(1e-6, _f(cfg, "pressure_norm", default=2.0)))


def survival_pressure_from_evaluations(evaluations: Sequence[Mapping[str, Any]],
                                       cfg: Mapping[str, Any]) -> float:
    if not evaluations:
        return 0.0
    norm = max(1e-6, _f(cfg, "pressure_norm", default=2.0))
    worst = max(0.0, max(_f(e["result"], "survival") for e in evaluations))
    return clamp01(worst / norm)


def couple_tau(base: Optional[float], reserve_delta_value: float, survival_pressure: float,
               cfg: Optional[Mapping[str, Any]] = None) -> float:
    """
    Lower tau as the colony falls short of its reserve target or survival
    pressure rises; raise it on reserve surplus. Result lies in [floor, cap].
    """
    floor = _f(cfg, "tau_floor", default=0.08)
    cap = _f(cfg, "tau_cap", default=1.5)
    reserve_gain = _f(cfg, "tau_reserve_gain", default=0.6)
    survival_gain = _f(cfg, "tau_survival_gain", default=0.5)
    base = 1.0 if base is None else float(base)
    delta = clamp(reserve_delta_value, -1.0, 1.0)
    tau = base - reserve_gain * delta - survival_gain * clamp01(survival_pressure)
    return min(cap, max(floor, tau))


def choose_tau(base_tau: Optional[float], reserve_delta_value: float, survival_pressure: float,
               precision_cfg: Optional[Mapping[str, Any]], friendly_home: float, cargo: float,
               local_food: float, trail_grad: float, hunger: float) -> float:
    """couple_tau followed by the hunger clamp, the nest clamps and the nest boost."""
    tau = couple_tau(base_tau, reserve_delta_value, survival_pressure, precision_cfg)
    if hunger > 0.8:
        tau = min(tau, 0.8)
    cap = _f(precision_cfg, "tau_cap", default=1.5)

    if friendly_home >= 0.95 and cargo > 0.25:
        tau = min(tau, 0.60)
    elif friendly_home >= 0.80 and cargo > 0.10:
        tau = min(tau, 0.75)

    if friendly_home >= 0.90 and cargo < 0.10 and local_food < 0.02 and trail_grad < 0.20:
        tau = min(cap, max(tau, 1.15))
    return tau


# Admissibility

def admissible_actions(cargo: float, friendly_home: float, reserve_home: float,
                       local_food: float, trail_grad: float,
                       base_actions: Sequence[str]) -> List[str]:
    """Apply the cargo, nest, depleted-nest and empty-return guards in order."""
    actions = list(base_actions)
    if cargo > 0.6:
        prioritized = [a for a in actions if a in ("return", "hold")]
        if prioritized:
            actions = prioritized
    if friendly_home >= 0.90:
        actions = [a for a in actions if a not in ("forage", "pheromone")]
    if friendly_home >= 0.50 and reserve_home < 0.2 and local_food < 0.02 and trail_grad < 0.20:
        actions = [a for a in actions if a != "forage"]
    if cargo < 0.05 and friendly_home < 0.70 and local_food >= 0.10:
        actions = [a for a in actions if a != "return"]
    return actions


def base_ordering(mode: str, actions: Optional[Iterable[str]] = None) -> List[str]:
    """
    Mode-dependent action ordering, optionally restricted to a caller's set.

    Supplied actions unknown to the mode ordering keep their given order
    after the known ones.
    """
    ordering = list(ACTIONS_BY_MODE.get(mode, DEFAULT_ACTIONS))
    if not actions:
        return ordering
    supplied = list(dict.fromkeys(actions))
    return [a for a in ordering if a in supplied] + [a for a in supplied if a not in ordering]


# Logit bias stack

def pheromone_bonus(reserve_home: float) -> float:
    if reserve_home < 0.2:
        return -0.6
    if reserve_home < 0.35:
        return -0.4
    return -0.15


def base_adjust(cargo: float, action: str, pher_bonus: float) -> float:
    """Cargo-conditioned baseline."""
    if cargo < 0.2:
        return {"forage": -1.2, "return": 0.85, "hold": 0.60,
                "pheromone": -0.45 + pher_bonus}.get(action, 0.0)
    if cargo > 0.6:
        return {"return": -0.75, "hold": 0.35, "forage": 0.40,
                "pheromone": 0.20}.get(action, 0.0)
    return {"hold": 0.20, "return": 0.25 if cargo < 0.35 else 0.10,
            "pheromone": -0.05}.get(action, 0.0)


def situation_adjust(ctx: Mapping[str, float], action: str) -> float:
    """Nine independent situational rules, summed."""
    cargo = ctx["cargo"]
    novelty = ctx["novelty"]
    trail = ctx["trail_grad"]
    home = ctx["friendly_home"]
    food = ctx["local_food"]
    reserve = ctx["reserve_home"]
    rules = []
    if cargo < 0.1 and ctx["home_prox"] > 0.8:
        rules.append({"forage": -0.6, "hold": -0.3, "pheromone": 0.6, "return": 0.1})
    if novelty < 0.45 and trail < 0.3 and home < 0.7:
        rules.append({"pheromone": -0.55, "hold": 0.4, "return": 0.25, "forage": -0.25})
    if novelty > 0.7 and cargo < 0.4 and home < 0.3:
        rules.append({"pheromone": -0.25, "hold": 0.15})
    if trail > 0.35 and novelty > 0.25 and home < 0.6:
        rules.append({"forage": -0.35, "return": 0.25, "hold": 0.2, "pheromone": 0.1})
    if reserve > 0.6:
        rules.append({"hold": 0.35})
    if food < 0.05:
        rules.append({"forage": -0.55, "pheromone": -0.3 if trail < 0.2 else -0.1,
                      "hold": 0.65, "return": 0.35})
    if food < 0.05 and ctx["recent_gather"] < 0.05:
        rules.append({"forage": 1.50, "hold": 1.20, "pheromone": -0.80})
    if reserve < 0.25 and cargo > 0.35:
        rules.append({"return": -0.7, "pheromone": -0.25, "hold": 0.25, "forage": 0.35})
    if ctx["hunger"] > 0.8 and cargo > 0.2:
        rules.append({"return": -3.0, "forage": 1.2, "hold": 0.6, "pheromone": -0.4})
    return sum(rule.get(action, 0.0) for rule in rules)


def visit_bias(novelty: float, dist_home: float, recent_gather: float, action: str) -> float:
    bias = {"pheromone": 0.60, "hold": 0.12, "return": 0.05, "forage": -0.30}.get(action, 0.0)
    if novelty < 0.20 and dist_home < 0.25:
        bias += {"forage": 0.85, "hold": -0.35, "return": -0.35, "pheromone": 0.65}.get(action, 0.0)
    if novelty > 0.70 or dist_home > 0.70:
        bias += {"forage": -0.40, "hold": 0.12, "return": 0.05}.get(action, 0.0)
    # Stalled foraging away from home.
    if recent_gather < 0.15 and dist_home > 0.25:
        bias += {"forage": -4.00, "pheromone": 0.60}.get(action, 0.0)
    return bias


def is_white_space(local_food: float, trail_grad: float, recent_gather: float,
                   friendly_home: float, novelty: float) -> bool:
    """Low-signal patch away from the nest."""
    return (local_food < 0.05 and trail_grad < 0.22 and recent_gather < 0.08
            and friendly_home < 0.70 and novelty > 0.25)


def white_space_adjust(action: str) -> float:
    return {"forage": 0.90, "hold": 0.35, "return": -0.40, "pheromone": -0.45}.get(action, 0.0)


MODE_ADJUST = {
    "outbound": {"forage": -0.35, "return": 0.35, "hold": 0.10, "pheromone": -0.05},
    "homebound": {"return": -0.50, "forage": 0.40, "hold": 0.10, "pheromone": -0.10},
    "maintain": {"pheromone": -0.40, "hold": -0.20, "return": 0.15, "forage": 0.20},
}


def mode_adjust(mode: str, action: str) -> float:
    return MODE_ADJUST.get(mode, {}).get(action, 0.0)


# Selection

def choose_action(mu: Belief, prec: Precision, observation: Observation,
                  options: Optional[Mapping[str, Any]] = None) -> Dict[str, Any]:
    """
    Evaluate candidate actions and select via softmax over -G/tau.

    Args:
        mu: Belief (``h`` and ``cargo`` are read)
        prec: Precision (``pi_o`` weights ambiguity, ``tau`` is the base temperature)
        observation: Observation dict, optionally carrying ``mode``
        options: ``actions``, ``preferences``, ``action_costs``, ``efe``,
            ``efe_lambda``, ``precision`` and ``pattern``

    Returns:
        Dict with the chosen ``action``, the ``policies`` map (action ->
        G, p and diagnostics) and the coupled ``tau``
    """
    options = options or {}
    efe = dict(options.get("efe") or {})
    efe["lambda"] = _merged(DEFAULT_EFE_LAMBDA, options.get("efe_lambda") or efe.get("lambda"))
    colony_cfg = _merged(DEFAULT_COLONY, efe.get("colony"))
    survival_cfg = _merged(DEFAULT_SURVIVAL, efe.get("survival"))
    precision_cfg = options.get("precision") or {}
    pattern = options.get("pattern")

    cargo = _f(observation, "cargo")
    home_prox = _f(observation, "home_prox")
    reserve_home = _f(observation, "reserve_home", default=0.5)
    local_food = _f(observation, "food")
    trail_grad = _f(observation, "trail_grad")
    novelty = _f(observation, "novelty")
    friendly_home = _f(observation, "friendly_home")
    dist_home = _f(observation, "dist_home")
    recent_gather = _f(observation, "recent_gather")
    hunger = _f(observation, "h", default=mu.h if mu.h is not None else 0.0)

    mode = observation.get("mode") or "outbound"
    ordering = base_ordering(mode, options.get("actions"))
    admissible = admissible_actions(cargo, friendly_home, reserve_home,
                                    local_food, trail_grad, ordering)
    if not admissible:
        logger.debug(f"All actions guarded out, falling back to '{ordering[0]}'")
        admissible = ordering[:1]

    ctx = {"cargo": cargo, "home_prox": home_prox, "novelty": novelty,
           "trail_grad": trail_grad, "friendly_home": friendly_home,
           "reserve_home": reserve_home, "local_food": local_food,
           "recent_gather": recent_gather, "hunger": hunger, "dist_home": dist_home}
    pher_bonus = pheromone_bonus(reserve_home)
    white = is_white_space(local_food, trail_grad, recent_gather, friendly_home, novelty)

    evaluations = []
    for action in admissible:
        result = expected_free_energy(mu, prec, observation, action,
                                      preferences=options.get("preferences"),
                                      action_costs=options.get("action_costs"),
                                      efe=efe, pattern=pattern)
        adjust = (base_adjust(cargo, action, pher_bonus)
                  + situation_adjust(ctx, action)
                  + visit_bias(novelty, dist_home, recent_gather, action)
                  + (white_space_adjust(action) if white else 0.0)
                  + mode_adjust(mode, action))
        result["adjust"] = adjust
        result["G"] = result["G"] + adjust
        evaluations.append({"action": action, "result": result})

    pressure = max(survival_pressure_from_observation(observation, survival_cfg),
                   survival_pressure_from_evaluations(evaluations, survival_cfg))
    tau = choose_tau(prec.tau if prec.tau is not None else 1.0,
                     reserve_delta(observation, colony_cfg), pressure, precision_cfg,
                     friendly_home, cargo, local_food, trail_grad, hunger)

    safe_tau = max(1e-3, tau)
    logits = [-e["result"]["G"] / safe_tau + efe_tilt(observation, e["action"], 0.6)
              for e in evaluations]
    probs = softmax(logits)

    policies: Dict[str, Dict[str, Any]] = {}
    best, best_p = admissible[0], -math.inf
    for e, p in zip(evaluations, probs):
        e["result"]["p"] = float(p)
        policies[e["action"]] = e["result"]
        # Ties go to the later action.
        if p >= best_p:
            best, best_p = e["action"], p

    logger.debug(
        f"choose_action mode={mode} tau={tau:.3f} "
        + ", ".join(f"{a}: G={r['G']:.3f} p={r['p']:.3f}" for a, r in policies.items())
    )
    return {"action": best, "policies": policies, "tau": tau}
