"""
Affect regulation: hunger dynamics, precision modulation and temperature.

Hunger is a drive in [0, 1] (higher is hungrier). It lowers the softmax
temperature (hungrier agents exploit more) and raises the precision of the
food and hunger channels. The mode controller adds hysteresis over the
outbound / homebound / maintain phases.
"""

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .agent_state import Precision
from ..utils.numerics import clamp, clamp01, lookup

logger = logging.getLogger(__name__)

BASE_PRECISIONS = {
    "food": 1.0,
    "pher": 0.8,
    "food_trace": 0.6,
    "pher_trace": 0.5,
    "home_prox": 0.7,
    "enemy_prox": 0.9,
    "h": 1.0,
}

DEFAULT_MODE_THRESHOLDS = {
    "cargo_high": 0.60,
    "cargo_low": 0.10,
    "home_high": 0.80,
    "home_low": 0.50,
    "reserve_low": 0.20,
    "trail_min": 0.20,
    "food_eps": 0.02,
}

Options = Optional[Mapping[str, Any]]


def _num(mapping: Options, key: str, default: float) -> float:
    return float(lookup(mapping, key, default=default))


def tick_hunger(current: Optional[float], observation: Mapping[str, Any],
                options: Options = None) -> float:
    """
    Advance the hunger drive by one perceptual step.

    Hunger rises with metabolic burn and load, and falls when food or home
    comfort is sensed.

    Args:
        current: Current hunger (None -> 0.5)
        observation: Needs ``food``, ``home_prox`` and ``cargo``
        options: Optional ``burn``, ``feed``, ``rest``, ``load_pressure``

    Returns:
        New hunger in [0, 1]
    """
    burn = _num(options, "burn", 0.02)
    feed = _num(options, "feed", 0.05)
    rest = _num(options, "rest", 0.03)
    load_pressure = _num(options, "load_pressure", 0.25)
    food = _num(observation, "food", 0.0)
    home = _num(observation, "home_prox", 0.0)
    load = _num(observation, "cargo", 0.0)
    delta = burn + load_pressure * load - feed * food - rest * home
    start = 0.5 if current is None else float(current)
    return clamp01(start + delta)


def update_hunger(h: Optional[float], outcome: Mapping[str, Any],
                  cfg: Options = None) -> Tuple[float, float]:
    """
    Settle hunger after the world layer executed an action.

    Args:
        h: Hunger before the action (None -> 0.5)
        outcome: ``ingest``, ``deposit`` and ``risk`` observed this tick
        cfg: Optional ``metabolic_rate`` (default 0.010)

    Returns:
        Tuple of (new hunger, delta)
    """
    h0 = 0.5 if h is None else float(h)
    ingest = max(0.0, _num(outcome, "ingest", 0.0))
    deposit = max(0.0, _num(outcome, "deposit", 0.0))
    risk = max(0.0, _num(outcome, "risk", 0.0))
    metabolic_rate = max(0.0, _num(cfg, "metabolic_rate", 0.010))
    h_new = clamp01(h0
                    - 0.60 * ingest
                    - 0.05 * deposit
                    + 0.015 * max(metabolic_rate, 1e-6)
                    + 0.020 * risk)
    return h_new, h_new - h0


def warn_if_ingesting_while_hunger_rises(
    outcome: Mapping[str, Any],
    dh: float,
    log_fn: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> bool:
    """
    Flag the anomaly of heavy ingest paired with rising hunger.

    Returns:
        True when the warning fired
    """
    ingest = _num(outcome, "ingest", 0.0)
    if ingest > 0.6 and dh > 1e-6:
        payload = {
            "warn": "ingest_but_hunger_up",
            "ingest": outcome.get("ingest"),
            "deposit": outcome.get("deposit"),
            "risk": outcome.get("risk"),
            "delta_h": dh,
        }
        logger.warning(f"Hunger rose by {dh:.6f} despite ingest {ingest:.3f}")
        if log_fn is not None:
            log_fn(payload)
        return True
    return False


def hunger_to_tau(h: float, tau_min: float = 0.35, tau_max: float = 2.6) -> float:
    """Map hunger to a softmax temperature, linearly decreasing in hunger."""
    return tau_min + (tau_max - tau_min) * (1.0 - clamp01(h))


def modulate_precisions(prec: Precision, hunger: float, observation: Mapping[str, Any],
                        options: Options = None) -> Precision:
    """
    Scale channel precisions by hunger and home context, and derive tau.

    Args:
        prec: Current precision state; its ``pi_o`` overrides BASE_PRECISIONS
        hunger: Hunger belief
        observation: Needs ``home_prox``
        options: ``food_scale``, ``pher_scale``, ``h_scale``, ``tau_min``,
            ``tau_max`` and optional ``tau_floor`` / ``tau_cap`` bounds

    Returns:
        New Precision
    """
    food_scale = _num(options, "food_scale", 1.4)
    pher_scale = _num(options, "pher_scale", 0.6)
    h_scale = _num(options, "h_scale", 1.1)
    tau_min = _num(options, "tau_min", 0.35)
    tau_max = _num(options, "tau_max", 2.6)
    tau_floor = _num(options, "tau_floor", tau_min)
    tau_cap = _num(options, "tau_cap", tau_max)

    pi_o = dict(BASE_PRECISIONS)
    pi_o.update(prec.pi_o or {})
    home_prox = _num(observation, "home_prox", 0.0)
    safety = 1.0 + 0.5 * home_prox
    hunger = clamp01(hunger)

    pi_o.update({
        "food": pi_o["food"] + food_scale * hunger,
        "pher": pi_o["pher"] + pher_scale * (1.0 - hunger),
        "food_trace": pi_o["food_trace"] + 0.3 * hunger,
        "pher_trace": pi_o["pher_trace"] + 0.2 * (1.0 - hunger),
        "home_prox": pi_o["home_prox"] + 0.4 * home_prox,
        "enemy_prox": pi_o["enemy_prox"] + 0.6 * hunger,
        "h": pi_o["h"] + h_scale * hunger,
    })
    tau = clamp(hunger_to_tau(hunger, tau_min, tau_max) * (safety / 1.5), tau_floor, tau_cap)
    return Precision(pi_o=pi_o, tau=tau)


def anneal_tau(prec: Precision, step: int, max_steps: int) -> Precision:
    """Interpolate tau from 1.5x its target down to the target over the steps."""
    progress = (step + 1) / float(max_steps) if max_steps > 0 else 1.0
    target = 1.0 if prec.tau is None else float(prec.tau)
    start = max(0.2, 1.5 * target)
    tau = (1.0 - progress) * start + progress * target
    return replace(prec, tau=clamp(tau, 0.2, 4.0))


def need_error(observation: Mapping[str, Any], cfg: Options = None) -> float:
    """Hunger above its setpoint plus ingest below its setpoint."""
    hunger_thresh = _num(cfg, "hunger_thresh", 0.45)
    ingest_thresh = _num(cfg, "ingest_thresh", 0.60)
    h = float(lookup(observation, "hunger", "h", default=0.0))
    ingest = _num(observation, "ingest", 0.0)
    return max(0.0, h - hunger_thresh) + max(0.0, ingest_thresh - ingest)


def _reserve_term(reserve: float) -> float:
    if reserve < 0.2:
        return -0.18
    if reserve < 0.35:
        return -0.12
    if reserve < 0.5:
        return -0.05
    if reserve > 0.75:
        return 0.08
    if reserve > 0.6:
        return 0.04
    return 0.0


def update_tau(prec: Precision, observation: Mapping[str, Any], dhdt: float = 0.0,
               cfg: Options = None) -> Precision:
    """
    Couple tau to need violation, hunger trend and colony reserves.

    Args:
        prec: Precision whose tau is adjusted (None tau starts at the floor)
        observation: ``hunger``/``h``, ``ingest``, ``cargo``, ``reserve_home``
        dhdt: Hunger trend over the recent window; only rises count
        cfg: ``tau_floor``, ``tau_cap``, ``need_gain``, ``dhdt_gain``,
            ``hunger_thresh``, ``ingest_thresh`` and an optional
            ``reserve_home`` override

    Returns:
        New Precision with tau clamped to [tau_floor, tau_cap]
    """
    tau_floor = _num(cfg, "tau_floor", 0.08)
    tau_cap = _num(cfg, "tau_cap", 1.5)
    need_gain = _num(cfg, "need_gain", 0.6)
    dhdt_gain = _num(cfg, "dhdt_gain", 0.8)
    hunger_thresh = _num(cfg, "hunger_thresh", 0.45)
    ingest_thresh = _num(cfg, "ingest_thresh", 0.60)

    need = need_error(observation, {"hunger_thresh": hunger_thresh,
                                    "ingest_thresh": ingest_thresh})
    rise = max(0.0, float(dhdt or 0.0))
    reserve = lookup(cfg, "reserve_home")
    if reserve is None:
        reserve = lookup(observation, "reserve_home", default=0.5)
    reserve = float(reserve)

    delta = need_gain * need + dhdt_gain * rise + _reserve_term(reserve)

    h = float(lookup(observation, "hunger", "h", default=0.0))
    ingest = _num(observation, "ingest", 0.0)
    cargo = _num(observation, "cargo", 0.0)
    clamp_delta = 0.0
    if h > hunger_thresh and ingest < ingest_thresh and cargo > 0.25:
        clamp_delta = 0.25 - 0.35 * max(0.0, h - hunger_thresh)

    tau = tau_floor if prec.tau is None else float(prec.tau)
    tau_new = min(tau_cap, max(tau_floor, tau + delta + clamp_delta))
    logger.debug(f"update_tau: need={need:.3f} dhdt={rise:.3f} reserve={reserve:.2f} "
                 f"tau {tau:.3f} -> {tau_new:.3f}")
    return replace(prec, tau=tau_new)


def next_mode(current: Optional[str], observation: Mapping[str, Any],
              cfg: Options = None) -> str:
    """
    Mode controller with hysteresis over outbound, homebound and maintain.

    Unknown or missing modes behave as outbound.
    """
    th = dict(DEFAULT_MODE_THRESHOLDS)
    th.update({k: v for k, v in (cfg or {}).items() if v is not None})

    cargo = _num(observation, "cargo", 0.0)
    home = _num(observation, "friendly_home", 0.0)
    reserve = _num(observation, "reserve_home", 0.5)
    trail = _num(observation, "trail_grad", 0.0)
    food = _num(observation, "food", 0.0)

    on_home = home >= th["home_high"]
    near_home = home >= th["home_low"]
    no_food = food < th["food_eps"]
    weak_trail = trail < th["trail_min"]
    depleted_nest = near_home and (no_food or weak_trail) and reserve <= th["reserve_low"]

    if current == "homebound":
        if cargo <= th["cargo_low"]:
            return "maintain" if depleted_nest else "outbound"
        return "homebound"

    if current == "maintain":
        if cargo >= th["cargo_high"]:
            return "homebound"
        if not near_home and not on_home:
            return "outbound"
        return "maintain"

    if cargo >= th["cargo_high"]:
        return "homebound"
    if depleted_nest:
        return "maintain"
    return "outbound"
