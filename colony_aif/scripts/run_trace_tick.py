"""
Run a single colony AIF tick on the baseline world and print a JSON trace.

The baseline is a 7×7 grid with a food patch around (2, 2), a second
patch near (4, 3) and the two colony homes in opposite corners. The
snapshot printed to stdout holds the observation, the perception trace,
the ranked policies and the step diagnostics.
"""

import argparse
import json
import logging
from dataclasses import replace
from typing import Dict, List, Optional, Tuple

from ..agents.factory import build_colony_agent
from ..agents.orchestrator import StepResult
from ..core import Belief, ColonyWorld
from ..utils.parsers import (create_trace_parser, parse_agent_args,
                             parse_perception_args, parse_world_args)

logger = logging.getLogger(__name__)

BASELINE_CELLS = {
    (2, 2): {"food": 4.5, "pher": 1.5},
    (2, 3): {"food": 2.8, "pher": 1.0},
    (3, 2): {"food": 1.2, "pher": 2.0},
    (1, 2): {"food": 0.4, "pher": 0.3},
    (2, 1): {"food": 0.3, "pher": 0.1},
    (4, 2): {"food": 0.6, "pher": 1.8},
    (4, 3): {"food": 4.2, "pher": 2.2},
    (5, 3): {"food": 3.8, "pher": 0.9},
    (5, 4): {"food": 0.5, "pher": 0.7},
}

BASELINE_VISITS = {(2, 2): 5, (2, 3): 2, (3, 2): 1}


def build_baseline_world(
    width: int = 7,
    height: int = 7,
    max_food: float = 5.0,
    max_pher: float = 4.0,
    home: Tuple[int, int] = (0, 0),
    rival_home: Tuple[int, int] = (6, 6),
    reserve: float = 2.5,
) -> ColonyWorld:
    """Baseline trace world; cells outside the grid are dropped."""
    cells = {pos: cell for pos, cell in BASELINE_CELLS.items()
             if 0 <= pos[0] < width and 0 <= pos[1] < height}
    return ColonyWorld.from_cells(
        (width, height),
        cells,
        max_food=max_food,
        max_pher=max_pher,
        homes={"aif": home, "classic": rival_home},
        reserves={"aif": reserve, "classic": 2.0},
        config={"hunger": {"queen": {"initial": 4.0}}},
    )


def run_trace_tick(
    world: ColonyWorld,
    loc: Tuple[int, int] = (2, 2),
    cargo: float = 0.35,
    ingest: float = 0.18,
    hunger: float = 0.62,
    tau: float = 1.1,
    pattern: Optional[str] = None,
    max_steps: int = 4,
    alpha: float = 0.45,
    beta: float = 0.28,
) -> StepResult:
    """
    Build the traced agent and run one orchestrated tick.

    Returns:
        StepResult of the tick
    """
    ant, _, controls = build_colony_agent(
        world, species="aif", loc=loc, cargo=cargo, ingest=ingest, hunger=hunger,
        tau=tau, pattern=pattern, max_steps=max_steps, alpha=alpha, beta=beta,
    )
    ant = replace(ant, recent_gather=0.22, visit_counts=dict(BASELINE_VISITS),
                  mu=Belief(pos=ant.loc, goal=(5.0, 5.0), h=hunger))
    result = controls["step"](world, ant)
    logger.info(f"Trace tick at {loc}: action={result.action}, tau={result.policy['tau']:.3f}")
    return result


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point with argument parsing."""
    parser = create_trace_parser(
        description="Run one colony AIF tick and print its trace as JSON",
    )

    args = parser.parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    world = build_baseline_world(**parse_world_args(args))
    result = run_trace_tick(world, **parse_agent_args(args), **parse_perception_args(args))
    print(json.dumps(result.to_dict(), indent=2, sort_keys=True))


if __name__ == "__main__":
    main()
