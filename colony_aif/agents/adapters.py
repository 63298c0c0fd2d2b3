"""
Adapters that expose the EFE/softmax machinery to different domains.

Every adapter implements two operations: ``select`` picks among candidates
given a context, and ``update_beliefs`` folds an observed outcome back into
the adapter state. Both return a result dict whose optional ``state`` entry
is merged into the engine's state by AifEngine.

ColonyAdapter drives the spatial foraging agent. CandidateAdapter applies
the same scoring and softmax to a non-spatial list of named candidates
with reproducible seeded sampling.
"""

import logging
import re
import zlib
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from .orchestrator import aif_step, settle_hunger
from ..utils.numerics import clamp, softmax

logger = logging.getLogger(__name__)


class AifAdapter(ABC):
    """Capability interface for domain-specific active-inference integration."""

    @abstractmethod
    def select(self, state: Dict[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
        """Choose among candidates for the given context."""

    @abstractmethod
    def update_beliefs(self, state: Dict[str, Any], observation: Mapping[str, Any]) -> Dict[str, Any]:
        """Fold an observed outcome into the state."""


class AifEngine:
    """
    Holds an adapter and its state.

    Args:
        adapter: AifAdapter implementation
        initial_state: Starting state dict
    """

    def __init__(self, adapter: AifAdapter, initial_state: Optional[Dict[str, Any]] = None):
        self.adapter = adapter
        self.state: Dict[str, Any] = dict(initial_state or {})

    def _absorb(self, result: Dict[str, Any]) -> Dict[str, Any]:
        update = result.get("state")
        if isinstance(update, dict):
            self.state.update(update)
        return result

    def select(self, context: Mapping[str, Any]) -> Dict[str, Any]:
        return self._absorb(self.adapter.select(self.state, context))

    def update_beliefs(self, observation: Mapping[str, Any]) -> Dict[str, Any]:
        return self._absorb(self.adapter.update_beliefs(self.state, observation))


class ColonyAdapter(AifAdapter):
    """
    Adapter over the foraging agent.

    The state holds the agent snapshot under ``ant``. ``select`` needs a
    ``world`` in its context and runs one orchestrated tick; the
    observation passed to ``update_beliefs`` carries the realised
    ``ingest``, ``deposit`` and ``risk``.
    """

    def __init__(self, max_steps: int = 5, alpha: float = 0.55, beta: float = 0.3):
        self.max_steps = max_steps
        self.alpha = alpha
        self.beta = beta

    def select(self, state: Dict[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
        world = context.get("world")
        if world is None or "ant" not in state:
            raise TypeError("ColonyAdapter.select needs a 'world' in context and an 'ant' in state")
        result = aif_step(world, state["ant"], actions=context.get("candidates"),
                          max_steps=self.max_steps, alpha=self.alpha, beta=self.beta)
        return {
            "decision_id": context.get("decision_id"),
            "candidates": list(result.policy["policies"]),
            "chosen": result.action,
            "aif": {
                "G": result.G,
                "P": result.P,
                "tau": result.policy["tau"],
                "diagnostics": result.diagnostics,
            },
            "state": {"ant": result.ant},
        }

    def update_beliefs(self, state: Dict[str, Any], observation: Mapping[str, Any]) -> Dict[str, Any]:
        if "ant" not in state:
            raise TypeError("ColonyAdapter.update_beliefs needs an 'ant' in state")
        ant, dh = settle_hunger(state["ant"],
                                ingest=float(observation.get("ingest") or 0.0),
                                deposit=float(observation.get("deposit") or 0.0),
                                risk=float(observation.get("risk") or 0.0))
        return {"state": {"ant": ant}, "aif": {"h": ant.h, "dh": dh}}


DEFAULT_CANDIDATE_CONFIG: Dict[str, Any] = {
    "g_weights": {"base": 0.1, "anchors": 0.05, "forecast": 0.02},
    "evidence_weights": {"read": -0.02, "off_trail": 0.12, "implement": -0.08, "update": -0.05},
    "evidence_min": -0.3,
    "evidence_max": 0.3,
    "tau_scale": 1.0,
    "tau_min": 0.1,
    "tau_max": 2.0,
    "tau_min_sample": 0.55,
}


def text_score(value: Any) -> int:
    """Word count for strings, length for collections, 1 otherwise."""
    if isinstance(value, str):
        return len(re.split(r"\s+", value))
    if isinstance(value, (list, tuple, set, dict)):
        return len(value)
    return 1


def uncertainty_score(value: Any) -> float:
    if value is None:
        return 1.0
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return max(0.1, float(value))
    if isinstance(value, str):
        return float(max(1, len(re.split(r"\s+", value))))
    if isinstance(value, (list, tuple, set, dict)):
        return float(max(1, len(value)))
    return 1.0


def stable_seed(context: Mapping[str, Any]) -> int:
    """Seed derived from the session, decision and candidate set."""
    candidates = ",".join(sorted(str(c) for c in context.get("candidates") or []))
    basis = f"{context.get('session_id')}|{context.get('decision_id')}|{candidates}"
    return zlib.crc32(basis.encode("utf-8"))


def sample_choice(probs: Mapping[str, float], seed: int) -> Optional[str]:
    """Inverse-CDF draw over candidates sorted by name."""
    if not probs:
        return None
    rng = np.random.default_rng(seed)
    target = rng.random()
    acc = 0.0
    for key, p in sorted(probs.items()):
        acc += p
        if target <= acc:
            return key
    return None


class CandidateAdapter(AifAdapter):
    """
    Softmax selection over named candidates.

    G for a candidate is ``base * (score + evidence) + anchors * |anchors| +
    forecast * |forecast|`` where score comes from ``candidate_scores`` (or
    the candidate's word count) and evidence accumulates from observed
    pattern actions. Tau shrinks as uncertainty and prediction error grow;
    below ``tau_min_sample`` the adapter abstains.

    Args:
        config: Overrides merged over DEFAULT_CANDIDATE_CONFIG
    """

    def __init__(self, config: Optional[Mapping[str, Any]] = None):
        self.config = dict(DEFAULT_CANDIDATE_CONFIG)
        self.config.update(config or {})

    def evidence_score(self, state: Mapping[str, Any], candidate: str) -> float:
        weights = dict(DEFAULT_CANDIDATE_CONFIG["evidence_weights"])
        weights.update(self.config.get("evidence_weights") or {})
        counts = (state.get("pattern_evidence") or {}).get(candidate) or {}
        raw = sum(weights.get(action, 0.0) * float(n or 0) for action, n in counts.items())
        return clamp(raw, self.config["evidence_min"], self.config["evidence_max"])

    def compute_g(self, candidate: str, state: Mapping[str, Any], context: Mapping[str, Any]) -> float:
        weights = self.config["g_weights"]
        scores = context.get("candidate_scores") or {}
        base_score = float(scores[candidate]) if candidate in scores else float(text_score(candidate))
        return (weights["base"] * (base_score + self.evidence_score(state, candidate))
                + weights["anchors"] * text_score(context.get("anchors"))
                + weights["forecast"] * text_score(context.get("forecast")))

    def compute_tau(self, context: Mapping[str, Any]) -> float:
        combined = (uncertainty_score(context.get("uncertainty"))
                    + max(0.0, float(context.get("prediction_error") or 0.0)))
        tau = self.config["tau_scale"] / max(1e-6, combined)
        return clamp(tau, self.config["tau_min"], self.config["tau_max"])

    def select(self, state: Dict[str, Any], context: Mapping[str, Any]) -> Dict[str, Any]:
        candidates: List[str] = list(context.get("candidates") or [])
        scored = {c: self.compute_g(c, state, context) for c in candidates}
        tau = self.compute_tau(context)
        seed = context.get("seed")
        if seed is None:
            seed = stable_seed(context)
        min_sample = float(self.config.get("tau_min_sample") or 0.55)

        logits = probs = None
        if candidates and tau > 0:
            logits = {c: -g / tau for c, g in scored.items()}
            probs = dict(zip(logits, (float(p) for p in softmax(list(logits.values())))))

        forced = context.get("chosen")
        abstain = forced is None and tau < min_sample
        sampled = None
        if not abstain and forced is None and probs:
            sampled = sample_choice(probs, seed)

        if forced is not None:
            chosen = forced
        elif abstain:
            chosen = None
        elif sampled is not None:
            chosen = sampled
        elif candidates:
            chosen = min(candidates, key=lambda c: scored[c])
        else:
            chosen = None

        result = {
            "decision_id": context.get("decision_id"),
            "candidates": candidates,
            "chosen": chosen,
            "aif": {
                "G_chosen": scored.get(chosen),
                "G_rejected": {c: g for c, g in scored.items() if c != chosen},
                "G_scores": scored,
                "tau": tau,
                "logits": logits,
                "probs": probs,
                "seed": seed,
                "sampled": sampled is not None and forced is None,
                "abstain": abstain,
                "min_sample": min_sample,
                "belief_id": context.get("belief_id") or context.get("decision_id"),
            },
        }
        logger.debug(f"CandidateAdapter select {context.get('decision_id')}: chosen={chosen} "
                     f"tau={tau:.3f} abstain={abstain}")
        return result

    def update_beliefs(self, state: Dict[str, Any], observation: Mapping[str, Any]) -> Dict[str, Any]:
        pattern_id = observation.get("pattern_id")
        action = observation.get("pattern_action")
        if pattern_id and action:
            action = action if isinstance(action, str) else "unknown"
            prev = self.evidence_score(state, pattern_id)
            evidence = {k: dict(v) for k, v in (state.get("pattern_evidence") or {}).items()}
            counts = evidence.setdefault(pattern_id, {})
            counts[action] = counts.get(action, 0) + 1
            updated = dict(state, pattern_evidence=evidence)
            score = self.evidence_score(updated, pattern_id)
            return {
                "state": updated,
                "aif": {
                    "tau_updated": self.compute_tau(observation),
                    "evidence_score": score,
                    "evidence_delta": score - prev,
                    "evidence_counts": dict(counts),
                    "belief_delta": {"decision_id": observation.get("decision_id"),
                                     "pattern_id": pattern_id,
                                     "action": action,
                                     "status": observation.get("status") or "observed"},
                },
            }

        error = float(max(0, text_score(observation.get("outcome")) - 1))
        tau = self.compute_tau(dict(observation, prediction_error=error))
        return {
            "state": {"belief_updated": True},
            "aif": {
                "prediction_error": error,
                "tau_updated": tau,
                "belief_delta": {"decision_id": observation.get("decision_id"),
                                 "status": observation.get("status") or "unknown"},
            },
        }
