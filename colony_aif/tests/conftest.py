"""
Pytest configuration and fixtures for colony AIF tests.
"""

import logging
import math

import numpy as np
import pytest

from ..core import AntState, Belief, ColonyWorld


@pytest.fixture
def base_world():
    """5x5 world with a food patch around (2, 2) and homes in opposite corners."""
    return ColonyWorld.from_cells(
        (5, 5),
        {
            (2, 2): {"food": 5.0, "pher": 2.0},
            (1, 2): {"food": 3.0, "pher": 1.0},
            (3, 2): {"food": 1.0, "pher": 0.0},
            (2, 1): {"food": 0.0, "pher": 0.5},
            (2, 3): {"food": 4.0, "pher": 3.5},
        },
        max_food=5.0,
        max_pher=4.0,
        max_dist=math.sqrt(32),
        homes={"aif": (4, 4), "classic": (0, 0)},
    )


@pytest.fixture
def base_ant():
    """AIF agent on the food patch with a moderate hunger belief."""
    return AntState(species="aif", loc=(2, 2), cargo=0.25, ingest=0.4, mu=Belief(h=0.8))


@pytest.fixture
def rng():
    """Deterministic random number generator for reproducible tests."""
    return np.random.default_rng(42)


@pytest.fixture(autouse=True)
def disable_logging():
    """Disable logging in tests unless explicitly needed."""
    logging.getLogger().setLevel(logging.CRITICAL)
    logging.getLogger('colony_aif').setLevel(logging.CRITICAL)
