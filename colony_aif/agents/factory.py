"""
Colony AIF agent factory.

Builds an initial agent snapshot for a world, the resolved configuration
it will run under, and a controls dict with the per-tick step function
bound to the chosen perception settings.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

from .config import resolve_aif_config
from .orchestrator import StepResult, aif_step, settle_hunger
from ..core.agent_state import AntState, Belief, PatternState, Precision
from ..core.colony_world import ColonyWorld

logger = logging.getLogger(__name__)


def build_colony_agent(
    world: ColonyWorld,
    species: str = "aif",
    loc: Optional[Tuple[int, int]] = None,
    cargo: float = 0.0,
    ingest: float = 0.0,
    hunger: Optional[float] = None,
    tau: Optional[float] = None,
    pi_o: Optional[Dict[str, float]] = None,
    mode: str = "outbound",
    aif_config: Optional[Dict[str, Any]] = None,
    pattern: Optional[str] = None,
    max_steps: int = 5,
    alpha: float = 0.55,
    beta: float = 0.3,
    actions: Optional[Sequence[str]] = None,
    hunger_options: Optional[Dict[str, Any]] = None,
    precision_options: Optional[Dict[str, Any]] = None,
) -> Tuple[AntState, Dict[str, Any], Dict[str, Any]]:
    """
    Build an AIF agent for a colony world.

    Args:
        world: World the agent lives in
        species: Population id
        loc: Starting cell, defaults to the population's home (or (0, 0))
        cargo: Initial load
        ingest: Initial ingest proxy
        hunger: Initial hunger belief (None lets perception seed it)
        tau: Initial softmax temperature
        pi_o: Initial per-channel precisions
        mode: Initial behavioural mode
        aif_config: Per-agent configuration override
        pattern: Optional behavioural pattern id
        max_steps: Predictive-coding iterations per tick
        alpha: Sensory learning rate
        beta: Hunger learning rate
        actions: Optional restriction of the candidate actions
        hunger_options: tick_hunger overrides
        precision_options: Precision config overrides

    Returns:
        Tuple of (ant, config, controls) where:
        - ant: Initial AntState
        - config: Resolved AIF configuration for this agent
        - controls: Dict with ``step(world, ant) -> StepResult``,
          ``settle(ant, **outcome)`` and the bound settings

    Raises:
        ValueError: If the starting cell lies outside the grid
    """
    if loc is None:
        loc = world.home_of(species) or (0, 0)
    loc = (int(loc[0]), int(loc[1]))
    if not world.in_bounds(loc):
        raise ValueError(f"Start position {loc} out of bounds for {world.width}×{world.height} grid")

    logger.info(
        f"Building colony agent: species={species}, loc={loc}, mode={mode}, "
        f"max_steps={max_steps}, alpha={alpha}, beta={beta}, pattern={pattern}"
    )

    ant = AntState(
        species=species,
        loc=loc,
        cargo=float(cargo),
        ingest=float(ingest),
        mu=Belief(pos=loc, h=hunger),
        prec=Precision(pi_o=dict(pi_o or {}), tau=tau),
        mode=mode,
        aif_config=aif_config,
        pattern=PatternState(pattern) if pattern is not None else None,
    )
    config = resolve_aif_config(world, ant)

    def step(current_world: ColonyWorld, current_ant: AntState) -> StepResult:
        return aif_step(current_world, current_ant, actions=actions, max_steps=max_steps,
                        alpha=alpha, beta=beta, hunger_options=hunger_options,
                        precision_options=precision_options)

    controls = {
        "step": step,
        "settle": settle_hunger,
        "max_steps": max_steps,
        "alpha": alpha,
        "beta": beta,
        "actions": list(actions) if actions else None,
    }
    return ant, config, controls
