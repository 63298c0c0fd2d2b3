"""
Argument parsing utilities for colony AIF scripts.

This module provides the argument groups and parsing functions shared by
the command-line entry points.
"""

import argparse
from typing import Any, Dict, Tuple


def parse_pos(s: str) -> Tuple[int, int]:
    """
    Parse a position string into an (x, y) tuple.

    Args:
        s: Position string in format "x,y"

    Returns:
        Tuple of (x, y) integers

    Raises:
        ValueError: If position string format is invalid
    """
    try:
        x, y = s.split(",")
        return (int(x.strip()), int(y.strip()))
    except ValueError as e:
        raise ValueError(f"Invalid position format '{s}'. Expected 'x,y'") from e


def add_world_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add colony world arguments to parser.

    Args:
        parser: ArgumentParser instance to add arguments to
    """
    world_group = parser.add_argument_group('Colony World')

    world_group.add_argument(
        "--width",
        type=int,
        default=7,
        help="Number of grid columns"
    )
    world_group.add_argument(
        "--height",
        type=int,
        default=7,
        help="Number of grid rows"
    )
    world_group.add_argument(
        "--max-food",
        type=float,
        default=5.0,
        help="Food normalization ceiling"
    )
    world_group.add_argument(
        "--max-pher",
        type=float,
        default=4.0,
        help="Pheromone normalization ceiling"
    )
    world_group.add_argument(
        "--home",
        type=str,
        default="0,0",
        help="Home cell of the AIF colony as 'x,y'"
    )
    world_group.add_argument(
        "--rival-home",
        type=str,
        default="6,6",
        help="Home cell of the rival colony as 'x,y'"
    )
    world_group.add_argument(
        "--reserve",
        type=float,
        default=2.5,
        help="Food reserves of the AIF colony"
    )


def add_agent_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add colony agent arguments to parser.

    Args:
        parser: ArgumentParser instance to add arguments to
    """
    agent_group = parser.add_argument_group('Colony Agent')

    agent_group.add_argument(
        "--loc",
        type=str,
        default="2,2",
        help="Agent cell as 'x,y'"
    )
    agent_group.add_argument(
        "--cargo",
        type=float,
        default=0.35,
        help="Carried load in [0, 1]"
    )
    agent_group.add_argument(
        "--ingest",
        type=float,
        default=0.18,
        help="Recent ingest proxy in [0, 1]"
    )
    agent_group.add_argument(
        "--hunger",
        type=float,
        default=0.62,
        help="Initial hunger belief in [0, 1]"
    )
    agent_group.add_argument(
        "--tau",
        type=float,
        default=1.1,
        help="Initial softmax temperature"
    )
    agent_group.add_argument(
        "--pattern",
        type=str,
        default=None,
        choices=["baseline", "cargo_return", "white_space", "hunger_coupling",
                 "pheromone_tuner"],
        help="Optional behavioural pattern"
    )


def add_perception_arguments(parser: argparse.ArgumentParser) -> None:
    """
    Add predictive-coding arguments to parser.

    Args:
        parser: ArgumentParser instance to add arguments to
    """
    perception_group = parser.add_argument_group('Perception')

    perception_group.add_argument(
        "--max-steps",
        type=int,
        default=4,
        help="Predictive-coding iterations per tick"
    )
    perception_group.add_argument(
        "--alpha",
        type=float,
        default=0.45,
        help="Sensory learning rate"
    )
    perception_group.add_argument(
        "--beta",
        type=float,
        default=0.28,
        help="Hunger learning rate"
    )


def parse_world_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Parse and validate world-related arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Dictionary of world parameters

    Raises:
        ValueError: If position arguments are invalid
    """
    try:
        home = parse_pos(args.home)
        rival_home = parse_pos(args.rival_home)
    except ValueError as e:
        raise ValueError(f"Position parsing error: {e}") from e

    return {
        'width': args.width,
        'height': args.height,
        'max_food': args.max_food,
        'max_pher': args.max_pher,
        'home': home,
        'rival_home': rival_home,
        'reserve': args.reserve,
    }


def parse_agent_args(args: argparse.Namespace) -> Dict[str, Any]:
    """
    Parse colony agent arguments.

    Args:
        args: Parsed command line arguments

    Returns:
        Dictionary of agent parameters

    Raises:
        ValueError: If the location is invalid
    """
    try:
        loc = parse_pos(args.loc)
    except ValueError as e:
        raise ValueError(f"Position parsing error: {e}") from e

    return {
        'loc': loc,
        'cargo': args.cargo,
        'ingest': args.ingest,
        'hunger': args.hunger,
        'tau': args.tau,
        'pattern': getattr(args, 'pattern', None),
    }


def parse_perception_args(args: argparse.Namespace) -> Dict[str, Any]:
    return {
        'max_steps': args.max_steps,
        'alpha': args.alpha,
        'beta': args.beta,
    }


def create_trace_parser(
    description: str = "Colony AIF trace tick",
    add_agent: bool = True,
    add_perception: bool = True,
) -> argparse.ArgumentParser:
    """
    Create a configured argument parser for single-tick traces.

    Args:
        description: Parser description
        add_agent: Whether to add agent arguments
        add_perception: Whether to add perception arguments

    Returns:
        Configured ArgumentParser instance
    """
    parser = argparse.ArgumentParser(description=description)

    add_world_arguments(parser)

    if add_agent:
        add_agent_arguments(parser)

    if add_perception:
        add_perception_arguments(parser)

    return parser
