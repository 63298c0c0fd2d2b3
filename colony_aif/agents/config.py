"""
AIF configuration defaults and layered resolution.

Configuration is a nested dict. Resolution layers the package defaults,
the world-level ``config["aif"]`` block and the agent's own
``aif_config`` override, producing a fresh tree every time.
"""

import copy
import logging
from typing import Any, Dict, Mapping, Optional

from ..core.agent_state import AntState
from ..core.colony_world import ColonyWorld

logger = logging.getLogger(__name__)

DEFAULT_AIF_CONFIG: Dict[str, Any] = {
    "preferences": {
        "hunger": {"mean": 0.40, "sd": 0.08},
        "ingest": {"mean": 0.70, "sd": 0.20},
    },
    "precision": {
        "tau_floor": 0.08,
        "tau_cap": 1.5,
        "need_gain": 0.6,
        "dhdt_gain": 0.8,
        "hunger_thresh": 0.45,
        "ingest_thresh": 0.60,
        "tau_reserve_gain": 0.6,
        "tau_survival_gain": 0.5,
    },
    "actions": {
        "pheromone": {"base_cost": 0.01, "hunger_mult": 0.1, "no_ingest_pen": 0.3,
                      "ingest_thresh": 0.2},
        "forage": {"friendly_home_pen": 1.2},
        "return": {"empty_home_pen": 0.9, "cargo_thresh": 0.05, "home_thresh": 0.8},
    },
    "efe": {
        "lambda": {"pragmatic": 1.0, "ambiguity": 0.5, "info": 0.4, "colony": 0.4,
                   "survival": 1.2, "pattern": 0.0},
        "colony": {"reserve_thresh": 1.0, "non_return_pen": 0.6, "return_pen": 0.0},
        "survival": {"hunger_thresh": 0.55, "hunger_weight": 1.5, "dist_weight": 0.5,
                     "ingest_buffer": 0.30, "return_reduction": 0.40},
    },
    "trend": {"window": 5},
    "modes": {
        "cargo_high": 0.60,   # enter homebound
        "cargo_low": 0.10,    # leave homebound
        "home_high": 0.80,    # on home
        "home_low": 0.50,     # near home
        "reserve_low": 0.20,
        "trail_min": 0.20,
        "food_eps": 0.02,
    },
}


def merge_deep(*maps: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Recursively merge nested dicts, later maps winning.

    None layers are skipped. Dict values merge key by key; anything else
    replaces. Inputs are never mutated.
    """
    def merge(a: Dict[str, Any], b: Mapping[str, Any]) -> Dict[str, Any]:
        for key, value in b.items():
            if isinstance(a.get(key), dict) and isinstance(value, Mapping):
                a[key] = merge(a[key], value)
            else:
                a[key] = copy.deepcopy(value)
        return a

    result: Dict[str, Any] = {}
    for m in maps:
        if m is not None:
            result = merge(result, m)
    return result


def resolve_aif_config(world: Optional[ColonyWorld], ant: Optional[AntState] = None) -> Dict[str, Any]:
    """Defaults, then ``world.config["aif"]``, then ``ant.aif_config``."""
    world_layer = (world.config or {}).get("aif") if world is not None else None
    ant_layer = ant.aif_config if ant is not None else None
    return merge_deep(DEFAULT_AIF_CONFIG, world_layer, ant_layer)
