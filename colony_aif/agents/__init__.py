"""
Colony AIF agents.

Configuration resolution, the per-tick orchestrator, the agent factory and
the domain adapters built on top of the decision core.
"""

from .adapters import AifAdapter, AifEngine, CandidateAdapter, ColonyAdapter
from .config import DEFAULT_AIF_CONFIG, merge_deep, resolve_aif_config
from .factory import build_colony_agent
from .orchestrator import StepResult, aif_step, dhdt, settle_hunger

__all__ = [
    "AifAdapter",
    "AifEngine",
    "CandidateAdapter",
    "ColonyAdapter",
    "DEFAULT_AIF_CONFIG",
    "merge_deep",
    "resolve_aif_config",
    "build_colony_agent",
    "StepResult",
    "aif_step",
    "dhdt",
    "settle_hunger",
]
