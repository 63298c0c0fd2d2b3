"""
Per-tick orchestration of observe -> perceive -> affect coupling -> policy.

aif_step is pure with respect to the world: it returns the updated agent
and diagnostics, and leaves executing the chosen action to the caller.
After the world layer has acted, settle_hunger folds the realised ingest,
deposit and risk back into the agent's hunger.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .config import resolve_aif_config
from ..core.affect import (need_error, next_mode, update_hunger, update_tau,
                           warn_if_ingesting_while_hunger_rises)
from ..core.agent_state import AntState, Belief, Precision
from ..core.colony_world import ColonyWorld
from ..core.observe import observe
from ..core.patterns import increment_ticks_active, pattern_features
from ..core.perceive import Perception, perceive
from ..core.policy import choose_action
from ..utils.numerics import clamp01, lookup

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Outcome of one aif_step call."""

    ant: AntState
    action: str
    observation: Dict[str, Any]
    policy: Dict[str, Any]
    perception: Perception
    G: Optional[float]
    P: Optional[float]
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly summary (predicted outcomes omitted)."""
        policies = {
            action: {k: v for k, v in stats.items() if k != "outcome"}
            for action, stats in self.policy["policies"].items()
        }
        return {
            "action": self.action,
            "G": self.G,
            "P": self.P,
            "tau": self.policy["tau"],
            "mode": self.ant.mode,
            "observation": dict(self.observation),
            "policies": policies,
            "perception": {
                "h": self.perception.mu.h,
                "goal": list(self.perception.mu.goal) if self.perception.mu.goal else None,
                "free_energy": self.perception.free_energy,
                "trace": list(self.perception.trace),
            },
            "diagnostics": dict(self.diagnostics),
        }

    def __repr__(self) -> str:
        g = f"{self.G:.3f}" if self.G is not None else "None"
        p = f"{self.P:.3f}" if self.P is not None else "None"
        return f"StepResult(action={self.action}, G={g}, P={p}, mode={self.ant.mode})"


def dhdt(recent: Sequence[Mapping[str, Any]]) -> float:
    """Hunger trend (last minus first) over the recent window."""
    hs = []
    for entry in recent or []:
        obs = entry.get("obs") or {}
        hs.append(float(lookup(obs, "hunger", "h", default=lookup(entry, "h", default=0.0))))
    if len(hs) < 2:
        return 0.0
    return hs[-1] - hs[0]


def append_recent(recent: Sequence[Dict[str, Any]], observation: Mapping[str, Any],
                  window: int, tau: Optional[float]) -> List[Dict[str, Any]]:
    """
    Append this tick's trend entry and keep the newest ``window`` entries.

    Entries also carry ``white_space``, so ``white_streak`` counts trailing
    low-signal ticks instead of staying at zero.
    """
    entry = {
        "obs": {
            "hunger": float(lookup(observation, "hunger", "h", default=0.0)),
            "ingest": float(lookup(observation, "ingest", default=0.0)),
            "white_space": float(lookup(observation, "white_space", default=0.0)),
        },
        "tau": tau,
    }
    window = max(1, int(window))
    return (list(recent or []) + [entry])[-window:]


def trailing_streak(recent: Sequence[Mapping[str, Any]], key: str,
                    pred: Callable[[float], bool]) -> int:
    """Length of the run at the end of recent whose obs[key] satisfies pred."""
    n = 0
    for entry in reversed(list(recent or [])):
        if not pred(float((entry.get("obs") or {}).get(key) or 0.0)):
            break
        n += 1
    return n


def ensure_baseline(ant: AntState) -> AntState:
    ingest = ant.ingest if isinstance(ant.ingest, (int, float)) else 0.0
    return replace(
        ant,
        mu=ant.mu if ant.mu is not None else Belief(),
        prec=ant.prec if ant.prec is not None else Precision(),
        recent=list(ant.recent or []),
        ingest=clamp01(ingest),
        mode=ant.mode or "outbound",
    )


def aif_step(
    world: ColonyWorld,
    ant: AntState,
    actions: Optional[Sequence[str]] = None,
    max_steps: int = 5,
    alpha: float = 0.55,
    beta: float = 0.3,
    hunger_options: Optional[Mapping[str, Any]] = None,
    precision_options: Optional[Mapping[str, Any]] = None,
) -> StepResult:
    """
    Run one active-inference update for an agent.

    Args:
        world: World snapshot
        ant: Agent snapshot
        actions: Optional restriction of the candidate actions
        max_steps: Predictive-coding iterations
        alpha: Sensory learning rate
        beta: Hunger learning rate
        hunger_options: tick_hunger overrides
        precision_options: Merged over the resolved ``precision`` config

    Returns:
        StepResult with the updated agent, chosen action and diagnostics
    """
    ant = ensure_baseline(ant)
    cfg = resolve_aif_config(world, ant)
    window = lookup(cfg.get("trend"), "window", default=5)

    observation = observe(world, ant)
    recent = append_recent(ant.recent, observation, window, ant.prec.tau)
    white_streak = trailing_streak(recent, "white_space", lambda v: v >= 0.5)
    since_ingest = trailing_streak(recent, "ingest", lambda v: v < 0.20)
    observation["white_streak"] = white_streak
    observation["since_ingest"] = since_ingest

    mode = next_mode(ant.mode, observation, cfg.get("modes"))
    observation["mode"] = mode
    ant = replace(ant, mode=mode, recent=recent)

    precision_opts = dict(cfg.get("precision") or {})
    precision_opts.update(precision_options or {})

    perception = perceive(world, ant, observation, max_steps=max_steps, alpha=alpha,
                          beta=beta, hunger_options=hunger_options,
                          precision_options=precision_opts)
    mu = perception.mu
    need = need_error(observation, precision_opts)
    trend = dhdt(recent)
    prec = update_tau(perception.prec, observation, trend, precision_opts)

    pattern_id = ant.pattern.id if ant.pattern is not None else None
    policy = choose_action(mu, prec, observation, {
        "actions": actions,
        "preferences": cfg.get("preferences"),
        "action_costs": cfg.get("actions"),
        "efe": cfg.get("efe"),
        "precision": precision_opts,
        "pattern": pattern_id,
    })
    tau = policy["tau"]
    prec = replace(prec, tau=tau)
    perception = replace(perception, prec=prec)

    chosen = policy["action"]
    stats = policy["policies"].get(chosen, {"G": 0.0, "p": 1.0})

    diagnostics = {
        "need": need,
        "dhdt": trend,
        "tau": tau,
        "risk": stats.get("risk"),
        "ambiguity": stats.get("ambiguity"),
        "info": stats.get("info"),
        "colony": stats.get("colony"),
        "survival": stats.get("survival"),
        "action_cost": stats.get("action_cost"),
    }
    if pattern_id is not None:
        diagnostics["pattern"] = pattern_features(ant, observation)

    updated = replace(
        ant,
        mu=mu,
        prec=prec,
        recent=recent,
        last_observation=observation,
        last_trace=perception.trace,
        last_action=chosen,
        last_policy=policy,
        last_g=stats.get("G"),
        need_error=need,
        dhdt=trend,
        white_space=float(observation.get("white_space") or 0.0) >= 0.5,
        white_streak=white_streak,
        since_ingest=since_ingest,
    )
    updated = increment_ticks_active(updated)

    logger.debug(f"aif_step {ant.species}@{ant.loc}: mode={mode} action={chosen} tau={tau:.3f}")
    return StepResult(ant=updated, action=chosen, observation=observation, policy=policy,
                      perception=perception, G=stats.get("G"), P=stats.get("p"),
                      diagnostics=diagnostics)


def settle_hunger(
    ant: AntState,
    ingest: float = 0.0,
    deposit: float = 0.0,
    risk: float = 0.0,
    metabolic_rate: Optional[float] = None,
    log_fn: Optional[Callable[[Dict[str, Any]], None]] = None,
) -> Tuple[AntState, float]:
    """
    Apply the realised outcome of the executed action to hunger.

    Writes the new hunger into ``ant.h``, ``ant.mu.h`` and the newest recent
    entry (as both ``h`` and ``hunger``), and stores this tick's change in
    ``ant.dhdt``.

    Returns:
        Tuple of (updated agent, hunger delta)
    """
    h0 = ant.mu.h if ant.mu is not None and ant.mu.h is not None else ant.h
    outcome = {"ingest": ingest, "deposit": deposit, "risk": risk}
    cfg = {"metabolic_rate": metabolic_rate} if metabolic_rate is not None else None
    h_new, dh = update_hunger(h0, outcome, cfg)
    warn_if_ingesting_while_hunger_rises(outcome, dh, log_fn)

    recent = list(ant.recent or [])
    if recent:
        last = dict(recent[-1])
        last["obs"] = dict(last.get("obs") or {}, h=h_new, hunger=h_new)
        recent[-1] = last

    mu = replace(ant.mu if ant.mu is not None else Belief(), h=h_new)
    return replace(ant, h=h_new, mu=mu, recent=recent, dhdt=dh), dh
