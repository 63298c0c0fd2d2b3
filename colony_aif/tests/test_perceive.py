"""
Tests for predictive-coding perception.
"""

import math
from dataclasses import replace

import pytest

from ..core.affect import tick_hunger
from ..core.agent_state import AntState, Belief, Precision
from ..core.colony_world import ColonyWorld
from ..core.perceive import (DEFAULT_PI_O, DEFAULT_TAU, SENSORY_KEYS, ensure_belief,
                             ensure_precision, perceive, update_goal)

OBSERVATION = {
    "food": 0.6,
    "pher": 0.5,
    "food_trace": 0.3,
    "pher_trace": 0.2,
    "home_prox": 0.4,
    "enemy_prox": 0.1,
    "h": 0.7,
    "ingest": 0.15,
    "friendly_home": 0.0,
    "trail_grad": 0.2,
    "novelty": 0.9,
    "dist_home": 0.35,
    "reserve_home": 0.5,
    "cargo": 0.2,
}


@pytest.fixture
def perceive_world():
    """5x5 world with homes in opposite corners."""
    return ColonyWorld.from_cells(
        (5, 5),
        {
            (2, 2): {"food": 3.0, "pher": 2.5},
            (2, 1): {"food": 4.0, "pher": 3.4},
            (2, 3): {"food": 1.0, "pher": 0.1},
        },
        max_food=5.0,
        max_pher=5.0,
        homes={"aif": (4, 4), "classic": (0, 0)},
        reserves={"aif": 1.2, "classic": 1.0},
    )


@pytest.fixture
def seeded_ant():
    """Agent carrying persisted sensory predictions."""
    return AntState(
        species="aif",
        loc=(2, 2),
        mu=Belief(pos=(2, 2), goal=(4, 4), h=0.6,
                  sens={"food": 0.2, "pher": 0.7, "food_trace": 0.4, "pher_trace": 0.4,
                        "home_prox": 0.1, "enemy_prox": 0.2, "h": 0.6}),
        prec=Precision(pi_o={"food": 1.2, "pher": 0.9}, tau=1.4),
    )


class TestPerceive:
    """Test perceive()."""

    def test_updates_predictions(self, perceive_world, seeded_ant):
        """Test sensory predictions take on the observation."""
        result = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=3,
                          alpha=0.4, beta=0.2)
        assert result.mu.sens != seeded_ant.mu.sens
        assert result.mu.sens["food"] == pytest.approx(0.6)
        assert result.mu.sens["pher"] == pytest.approx(0.5)

    def test_carried_predictions_add_no_error(self, perceive_world, seeded_ant):
        """Test a second tick with carried predictions only ticks hunger."""
        first = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=3,
                         alpha=0.4, beta=0.2)
        carried = replace(seeded_ant, mu=first.mu, prec=first.prec)
        second_obs = dict(OBSERVATION, food=0.1, pher=0.9, h=0.4, cargo=0.5)
        result = perceive(perceive_world, carried, second_obs, max_steps=3,
                          alpha=0.4, beta=0.2)
        assert [t["error"] for t in result.trace] == [0.0, 0.0, 0.0]
        assert result.free_energy == 0.0
        expected = first.mu.h
        for _ in range(3):
            expected = tick_hunger(expected, second_obs)
        assert result.mu.h == pytest.approx(expected)

    def test_hunger_ticks_from_persisted_belief(self, seeded_ant):
        """Test hunger follows tick_hunger when the observation is fully reported."""
        result = perceive(None, seeded_ant, OBSERVATION, max_steps=3, alpha=0.4, beta=0.2)
        assert all(t["error"] == 0.0 for t in result.trace)
        assert result.mu.h == pytest.approx(0.684)

    def test_trace_and_shapes(self, perceive_world, seeded_ant):
        """Test trace length, hunger range and error keys."""
        result = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=3,
                          alpha=0.4, beta=0.2)
        assert len(result.trace) == 3
        assert 0.0 <= result.mu.h <= 1.0
        assert isinstance(result.prec.tau, float)
        assert set(result.errors) == set(SENSORY_KEYS)
        for entry in result.trace:
            assert set(entry) == {"tau", "h", "error"}

    def test_free_energy_is_half_mean_error(self, perceive_world, seeded_ant):
        """Test free energy is half the mean step error."""
        result = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=4)
        errors = [t["error"] for t in result.trace]
        assert result.free_energy == pytest.approx(0.5 * sum(errors) / len(errors))

    def test_errors_are_precision_weighted(self, perceive_world, seeded_ant):
        """Test weighted error equals precision times raw error."""
        result = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=2)
        for err in result.errors.values():
            assert err["weighted"] == pytest.approx(err["precision"] * err["raw"])

    def test_max_steps_hard_cap(self, perceive_world, seeded_ant):
        """Test the iteration count equals max_steps, with at least one step."""
        assert len(perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=7).trace) == 7
        assert len(perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=0).trace) == 1

    def test_final_tau_is_annealed_target(self, perceive_world, seeded_ant):
        """Test the returned tau is the last step's target, within the modulation range."""
        result = perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=3)
        assert result.prec.tau == pytest.approx(result.trace[-1]["tau"])
        assert 0.35 <= result.prec.tau <= 2.6

    def test_lazy_state_defaults(self, perceive_world):
        """Test a bare agent gets position, goal, hunger and precision."""
        result = perceive(perceive_world, AntState(species="aif", loc=(1, 1)), OBSERVATION)
        assert result.mu.pos == (1, 1)
        assert isinstance(result.mu.goal, tuple) and len(result.mu.goal) == 2
        assert 0.0 <= result.mu.h <= 1.0
        assert set(DEFAULT_PI_O) <= set(result.prec.pi_o)
        assert result.prec.tau is not None

    def test_without_world(self, seeded_ant):
        """Test perception runs without a world snapshot."""
        result = perceive(None, seeded_ant, OBSERVATION, max_steps=2)
        assert result.mu.goal == (4.0, 4.0)
        assert len(result.trace) == 2

    def test_input_not_mutated(self, perceive_world, seeded_ant):
        """Test the agent snapshot is left untouched."""
        before = dict(seeded_ant.mu.sens)
        perceive(perceive_world, seeded_ant, OBSERVATION, max_steps=3)
        assert seeded_ant.mu.sens == before
        assert seeded_ant.mu.h == 0.6


class TestSeeding:
    """Test belief and precision seeding."""

    def test_observation_overrides_persisted_predictions(self, perceive_world, seeded_ant):
        """Test the observation takes precedence over persisted predictions."""
        mu = ensure_belief(perceive_world, seeded_ant, OBSERVATION)
        assert mu.sens["food"] == 0.6
        assert mu.sens["pher"] == 0.5
        assert mu.sens["novelty"] == 0.9
        assert mu.h == 0.6

    def test_unreported_channels_keep_persisted_predictions(self, perceive_world, seeded_ant):
        """Test channels missing from the observation keep the carried prediction."""
        mu = ensure_belief(perceive_world, seeded_ant, {"food": 0.3})
        assert mu.sens["food"] == 0.3
        assert mu.sens["pher"] == 0.7
        assert mu.sens["novelty"] == 0.5

    def test_unseen_channels_from_observation(self, perceive_world):
        """Test an empty belief is filled from the observation, then 0.5."""
        mu = ensure_belief(perceive_world, AntState(loc=(1, 1)), {"food": 0.3})
        assert mu.sens["food"] == 0.3
        assert mu.sens["pher"] == 0.5
        assert mu.h == 0.5

    def test_goal_seeds_to_enemy_home(self, perceive_world):
        """Test the initial goal is the rival's home."""
        mu = ensure_belief(perceive_world, AntState(species="aif", loc=(1, 1)), OBSERVATION)
        assert mu.goal == (0.0, 0.0)

    def test_ensure_precision_defaults(self):
        """Test missing precision falls back to the defaults."""
        prec = ensure_precision(AntState())
        assert prec.tau == DEFAULT_TAU
        assert prec.pi_o == DEFAULT_PI_O
        prec = ensure_precision(AntState(prec=Precision(pi_o={"food": 3.0}, tau=0.9)))
        assert prec.pi_o["food"] == 3.0
        assert prec.tau == 0.9


class TestGoal:
    """Test goal blending."""

    def test_cargo_pulls_goal_home(self, perceive_world):
        """Test a loaded agent's goal moves toward its home."""
        start = (0.0, 0.0)
        goal = update_goal(start, perceive_world, "aif", {"cargo": 0.9, "home_prox": 0.5})
        assert math.dist(goal, (4, 4)) < math.dist(start, (4, 4))

    def test_goal_without_homes(self):
        """Test the goal is kept when no homes are known."""
        assert update_goal((1.0, 2.0), ColonyWorld(3, 3), "aif", {"cargo": 0.5}) == (1.0, 2.0)
