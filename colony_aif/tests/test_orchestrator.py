"""
Tests for the per-tick orchestrator.
"""

import json
from dataclasses import replace
from unittest.mock import Mock

import pytest

from ..agents.orchestrator import (StepResult, aif_step, append_recent, dhdt,
                                   settle_hunger, trailing_streak)
from ..core.agent_state import AntState, Belief, PatternState
from ..core.colony_world import DEFAULT_ACTIONS, ColonyWorld


class TestAifStep:
    """Test aif_step."""

    def test_step_result(self, base_world, base_ant):
        """Test one tick returns an action and an updated agent."""
        result = aif_step(base_world, base_ant)
        assert isinstance(result, StepResult)
        assert result.action in DEFAULT_ACTIONS
        assert result.ant.last_action == result.action
        assert result.ant.last_g == result.G
        assert result.P == pytest.approx(result.policy["policies"][result.action]["p"])
        assert result.ant.prec.tau == result.policy["tau"]
        assert 0.0 <= result.ant.mu.h <= 1.0

    def test_observation_extras(self, base_world, base_ant):
        """Test streak counters and mode are added to the observation."""
        result = aif_step(base_world, base_ant)
        obs = result.ant.last_observation
        assert obs["mode"] == result.ant.mode
        assert obs["white_streak"] == 0
        assert obs["since_ingest"] == 0
        assert len(result.ant.recent) == 1

    def test_diagnostics(self, base_world, base_ant):
        """Test diagnostics mirror the chosen policy."""
        result = aif_step(base_world, base_ant)
        stats = result.policy["policies"][result.action]
        for key in ("risk", "ambiguity", "info", "colony", "survival", "action_cost"):
            assert result.diagnostics[key] == stats[key]
        assert result.diagnostics["tau"] == result.policy["tau"]
        assert "pattern" not in result.diagnostics

    def test_snapshot_not_mutated(self, base_world, base_ant):
        """Test the input agent is left untouched."""
        aif_step(base_world, base_ant)
        assert base_ant.recent == []
        assert base_ant.last_action is None

    def test_actions_restriction(self, base_world, base_ant):
        """Test the caller's action set is honoured."""
        result = aif_step(base_world, base_ant, actions=["hold", "pheromone"])
        assert result.action in ("hold", "pheromone")

    def test_streaks_accumulate(self):
        """Test white-space and no-ingest streaks grow over ticks."""
        world = ColonyWorld(5, 5, max_food=5.0, max_pher=4.0, homes={"aif": (0, 0)})
        ant = AntState(loc=(3, 3))
        for _ in range(3):
            ant = aif_step(world, ant).ant
        assert ant.white_streak == 3
        assert ant.since_ingest == 3
        assert ant.white_space

    def test_trend_window(self):
        """Test the recent window is bounded by trend.window."""
        world = ColonyWorld(4, 4, homes={"aif": (0, 0)}, config={"aif": {"trend": {"window": 2}}})
        ant = AntState(loc=(1, 1))
        for _ in range(4):
            ant = aif_step(world, ant).ant
        assert len(ant.recent) == 2

    def test_pattern_diagnostics(self, base_world, base_ant):
        """Test an active pattern reports features and counts ticks."""
        ant = replace(base_ant, pattern=PatternState("cargo_return"))
        result = aif_step(base_world, ant)
        assert result.diagnostics["pattern"]["active"] == "cargo_return"
        assert result.ant.pattern.ticks_active == 1

    def test_to_dict_is_json(self, base_world, base_ant):
        """Test the summary serializes and omits predicted outcomes."""
        summary = aif_step(base_world, base_ant).to_dict()
        json.dumps(summary)
        for stats in summary["policies"].values():
            assert "outcome" not in stats
        assert summary["action"] in summary["policies"]

    def test_repr(self, base_world, base_ant):
        """Test repr names the action."""
        result = aif_step(base_world, base_ant)
        assert result.action in repr(result)


class TestTrend:
    """Test trend-window helpers."""

    def test_dhdt(self):
        """Test hunger trend is last minus first."""
        recent = [{"obs": {"hunger": 0.4}}, {"obs": {"hunger": 0.5}}, {"obs": {"hunger": 0.6}}]
        assert dhdt(recent) == pytest.approx(0.2)
        assert dhdt(recent[:1]) == 0.0
        assert dhdt([]) == 0.0

    def test_dhdt_h_fallback(self):
        """Test entries without hunger fall back to h."""
        assert dhdt([{"obs": {"h": 0.3}}, {"h": 0.1}]) == pytest.approx(-0.2)

    def test_append_recent_window(self):
        """Test the window keeps the newest entries."""
        recent = []
        for h in (0.1, 0.2, 0.3):
            recent = append_recent(recent, {"hunger": h, "ingest": 0.0}, 2, 1.0)
        assert [e["obs"]["hunger"] for e in recent] == [0.2, 0.3]
        assert recent[-1]["tau"] == 1.0

    def test_trailing_streak(self):
        """Test streaks count from the newest entry backwards."""
        recent = [{"obs": {"ingest": 0.1}}, {"obs": {"ingest": 0.5}},
                  {"obs": {"ingest": 0.1}}, {"obs": {"ingest": 0.0}}]
        assert trailing_streak(recent, "ingest", lambda v: v < 0.2) == 2
        assert trailing_streak([], "ingest", lambda v: v < 0.2) == 0


class TestSettleHunger:
    """Test settle_hunger."""

    def test_ingest_lowers_hunger(self):
        """Test realised ingest lowers hunger everywhere it is stored."""
        ant = AntState(mu=Belief(h=0.5), recent=[{"obs": {"hunger": 0.4}},
                                                {"obs": {"hunger": 0.5}}])
        settled, dh = settle_hunger(ant, ingest=0.5)
        expected = 0.5 - 0.3 + 0.015 * 0.010
        assert settled.h == pytest.approx(expected)
        assert settled.mu.h == pytest.approx(expected)
        assert settled.recent[-1]["obs"]["hunger"] == pytest.approx(expected)
        assert settled.recent[-1]["obs"]["h"] == pytest.approx(expected)
        assert dh == pytest.approx(expected - 0.5)
        assert ant.recent[0]["obs"] == {"hunger": 0.4}
        assert ant.recent[-1]["obs"]["hunger"] == 0.5

    def test_dhdt_is_tick_change(self):
        """Test dhdt records this tick's hunger change, not the window trend."""
        ant = AntState(mu=Belief(h=0.6), recent=[{"obs": {"hunger": 0.2}},
                                                {"obs": {"hunger": 0.4}},
                                                {"obs": {"hunger": 0.6}}])
        settled, dh = settle_hunger(ant, deposit=1.0, risk=0.5)
        assert settled.dhdt == dh
        assert dh == pytest.approx(-0.05 + 0.015 * 0.010 + 0.01)
        assert dhdt(settled.recent) != pytest.approx(dh)

    def test_raw_hunger_fallback(self):
        """Test the raw hunger field seeds settlement without a belief."""
        settled, dh = settle_hunger(AntState(h=0.7), risk=1.0)
        assert settled.h == pytest.approx(0.7 + 0.015 * 0.010 + 0.02)
        assert dh > 0.0

    def test_no_warning_when_hunger_falls(self):
        """Test the ingest warning stays quiet on normal intake."""
        callback = Mock()
        settle_hunger(AntState(mu=Belief(h=0.6)), ingest=0.8, log_fn=callback)
        callback.assert_not_called()
