"""
Tests for hunger dynamics, precision modulation and the mode controller.
"""

from unittest.mock import Mock

import pytest

from ..core.affect import (anneal_tau, hunger_to_tau, modulate_precisions, need_error,
                           next_mode, tick_hunger, update_hunger, update_tau,
                           warn_if_ingesting_while_hunger_rises)
from ..core.agent_state import Precision

PRECISION_CONFIG = {
    "tau_floor": 0.08,
    "tau_cap": 1.5,
    "need_gain": 0.6,
    "dhdt_gain": 0.8,
    "hunger_thresh": 0.45,
    "ingest_thresh": 0.60,
}


class TestHungerDynamics:
    """Test tick_hunger and update_hunger."""

    def test_tick_hunger_burns(self):
        """Test hunger rises with nothing sensed."""
        obs = {"food": 0.0, "home_prox": 0.0, "cargo": 0.0}
        assert tick_hunger(0.5, obs) == pytest.approx(0.52)

    def test_tick_hunger_food_relief(self):
        """Test sensed food lowers hunger."""
        obs = {"food": 1.0, "home_prox": 0.0, "cargo": 0.0}
        assert tick_hunger(0.5, obs) == pytest.approx(0.47)

    def test_tick_hunger_load_pressure(self):
        """Test carried load raises hunger."""
        light = tick_hunger(0.5, {"cargo": 0.0})
        heavy = tick_hunger(0.5, {"cargo": 0.8})
        assert heavy > light

    def test_tick_hunger_defaults_and_clamp(self):
        """Test missing hunger starts at 0.5 and results stay in [0, 1]."""
        assert tick_hunger(None, {}) == pytest.approx(0.52)
        assert tick_hunger(1.0, {"cargo": 1.0}) == 1.0
        assert tick_hunger(0.0, {"food": 1.0, "home_prox": 1.0}) == 0.0

    def test_update_hunger_ingest(self):
        """Test ingest reduces hunger."""
        h, dh = update_hunger(0.5, {"ingest": 0.5})
        assert h == pytest.approx(0.5 - 0.3 + 0.015 * 0.010)
        assert dh == pytest.approx(h - 0.5)

    def test_update_hunger_risk(self):
        """Test risk raises hunger."""
        h, dh = update_hunger(0.5, {"risk": 1.0})
        assert dh > 0.0
        assert h == pytest.approx(0.5 + 0.015 * 0.010 + 0.020)

    def test_update_hunger_negative_inputs_ignored(self):
        """Test negative outcomes are floored at zero."""
        h, _ = update_hunger(0.5, {"ingest": -1.0, "deposit": -1.0, "risk": -1.0})
        assert h == pytest.approx(0.5 + 0.015 * 0.010)

    def test_update_hunger_metabolic_rate(self):
        """Test metabolic rate overrides the default burn."""
        h, _ = update_hunger(0.5, {}, {"metabolic_rate": 1.0})
        assert h == pytest.approx(0.515)


class TestIngestWarning:
    """Test warn_if_ingesting_while_hunger_rises."""

    def test_warns_on_anomaly(self):
        """Test heavy ingest with rising hunger fires the warning."""
        callback = Mock()
        fired = warn_if_ingesting_while_hunger_rises({"ingest": 0.8}, 0.01, callback)
        assert fired
        payload = callback.call_args[0][0]
        assert payload["warn"] == "ingest_but_hunger_up"
        assert payload["delta_h"] == 0.01

    def test_quiet_when_hunger_falls(self):
        """Test no warning when hunger falls."""
        callback = Mock()
        assert not warn_if_ingesting_while_hunger_rises({"ingest": 0.8}, -0.1, callback)
        callback.assert_not_called()

    def test_quiet_on_light_ingest(self):
        """Test no warning below the ingest threshold."""
        assert not warn_if_ingesting_while_hunger_rises({"ingest": 0.5}, 0.1)


class TestPrecision:
    """Test precision modulation and annealing."""

    def test_hunger_to_tau_range(self):
        """Test tau spans [tau_min, tau_max] and falls with hunger."""
        assert hunger_to_tau(1.0) == pytest.approx(0.35)
        assert hunger_to_tau(0.0) == pytest.approx(2.6)
        assert hunger_to_tau(0.8) < hunger_to_tau(0.2)

    def test_modulate_hunger_raises_food_precision(self):
        """Test hungrier agents weight food more and explore less."""
        calm = modulate_precisions(Precision(), 0.1, {"home_prox": 0.0})
        hungry = modulate_precisions(Precision(), 0.9, {"home_prox": 0.0})
        assert hungry.pi_o["food"] > calm.pi_o["food"]
        assert hungry.pi_o["h"] > calm.pi_o["h"]
        assert hungry.pi_o["pher"] < calm.pi_o["pher"]
        assert hungry.tau < calm.tau

    def test_modulate_home_safety(self):
        """Test tau scales with home safety."""
        away = modulate_precisions(Precision(), 0.0, {"home_prox": 0.0})
        home = modulate_precisions(Precision(), 0.0, {"home_prox": 1.0})
        assert away.tau == pytest.approx(2.6 / 1.5)
        assert home.tau == pytest.approx(2.6)

    def test_modulate_tau_bounds(self):
        """Test optional floor and cap bound tau."""
        prec = modulate_precisions(Precision(), 0.0, {"home_prox": 1.0}, {"tau_cap": 1.0})
        assert prec.tau == pytest.approx(1.0)

    def test_modulate_keeps_existing_precisions(self):
        """Test agent precisions seed the modulation."""
        prec = modulate_precisions(Precision(pi_o={"food": 2.0, "novelty": 0.3}), 0.0, {})
        assert prec.pi_o["food"] == pytest.approx(2.0)
        assert prec.pi_o["novelty"] == 0.3

    def test_anneal_lands_on_target(self):
        """Test the final step reaches the target tau."""
        prec = Precision(tau=1.0)
        assert anneal_tau(prec, 3, 4).tau == pytest.approx(1.0)
        assert anneal_tau(prec, 0, 4).tau == pytest.approx(1.375)

    def test_anneal_bounds(self):
        """Test annealed tau stays in [0.2, 4.0]."""
        assert anneal_tau(Precision(tau=0.05), 0, 2).tau == pytest.approx(0.2)
        assert anneal_tau(Precision(tau=5.0), 1, 2).tau == pytest.approx(4.0)


class TestTauCoupling:
    """Test need_error and update_tau."""

    def test_need_error(self):
        """Test need error near and away from the setpoint."""
        assert need_error({"hunger": 0.35, "ingest": 0.65}) <= 0.05
        assert need_error({"hunger": 0.80, "ingest": 0.05}) > 0.7
        assert need_error({"hunger": 0.20, "ingest": 0.00}) > 0.5

    def test_need_raises_tau(self):
        """Test need and rising hunger raise tau."""
        updated = update_tau(Precision(tau=0.2), {"hunger": 0.7, "ingest": 0.1}, 0.05,
                             PRECISION_CONFIG)
        assert updated.tau == pytest.approx(0.69)

    def test_tau_responds_to_need(self):
        """Test calm and needy agents land on either side of 0.5."""
        cool = update_tau(Precision(tau=0.4), {"hunger": 0.35, "ingest": 0.7})
        hot = update_tau(Precision(tau=0.4), {"hunger": 0.8, "ingest": 0.0})
        assert cool.tau < 0.5
        assert hot.tau > 0.5

    def test_falling_hunger_ignored(self):
        """Test only rising hunger trends count."""
        obs = {"hunger": 0.4, "ingest": 0.7}
        flat = update_tau(Precision(tau=0.5), obs, 0.0, PRECISION_CONFIG)
        falling = update_tau(Precision(tau=0.5), obs, -0.3, PRECISION_CONFIG)
        assert flat.tau == pytest.approx(falling.tau)

    def test_loaded_clamp_term(self):
        """Test the loaded-and-hungry clamp term."""
        obs = {"hunger": 0.7, "ingest": 0.1, "cargo": 0.5}
        updated = update_tau(Precision(tau=0.2), obs, 0.05, PRECISION_CONFIG)
        assert updated.tau == pytest.approx(0.69 + 0.25 - 0.35 * 0.25)

    def test_low_reserve_lowers_tau(self):
        """Test depleted reserves cool tau, down to the floor."""
        obs = {"hunger": 0.3, "ingest": 0.7, "reserve_home": 0.1}
        assert update_tau(Precision(tau=0.5), obs).tau == pytest.approx(0.32)
        assert update_tau(Precision(tau=0.1), obs).tau == pytest.approx(0.08)

    def test_reserve_override(self):
        """Test a configured reserve wins over the observation."""
        obs = {"hunger": 0.3, "ingest": 0.7, "reserve_home": 0.1}
        cfg = dict(PRECISION_CONFIG, reserve_home=0.9)
        assert update_tau(Precision(tau=0.5), obs, 0.0, cfg).tau == pytest.approx(0.58)

    def test_cap(self):
        """Test tau never exceeds the cap."""
        obs = {"hunger": 1.0, "ingest": 0.0}
        assert update_tau(Precision(tau=1.4), obs, 0.5).tau == pytest.approx(1.5)


class TestModeController:
    """Test next_mode hysteresis."""

    def test_outbound_to_homebound(self):
        """Test heavy cargo sends the agent home."""
        assert next_mode("outbound", {"cargo": 0.7}) == "homebound"

    def test_homebound_holds_until_unloaded(self):
        """Test homebound persists while cargo stays above the low mark."""
        assert next_mode("homebound", {"cargo": 0.3}) == "homebound"
        assert next_mode("outbound", {"cargo": 0.3}) == "outbound"

    def test_homebound_to_outbound(self):
        """Test unloading away from a depleted nest resumes foraging."""
        assert next_mode("homebound", {"cargo": 0.05}) == "outbound"

    def test_homebound_to_maintain(self):
        """Test unloading at a depleted nest switches to maintenance."""
        obs = {"cargo": 0.05, "friendly_home": 0.6, "reserve_home": 0.1, "food": 0.0}
        assert next_mode("homebound", obs) == "maintain"

    def test_maintain_transitions(self):
        """Test leaving maintenance on load or distance."""
        assert next_mode("maintain", {"cargo": 0.7}) == "homebound"
        assert next_mode("maintain", {"cargo": 0.0, "friendly_home": 0.2}) == "outbound"
        assert next_mode("maintain", {"cargo": 0.0, "friendly_home": 0.9}) == "maintain"

    def test_unknown_mode_acts_outbound(self):
        """Test unknown and missing modes behave as outbound."""
        assert next_mode("foo", {"cargo": 0.7}) == "homebound"
        assert next_mode(None, {"cargo": 0.0}) == "outbound"
        depleted = {"cargo": 0.0, "friendly_home": 0.9, "reserve_home": 0.1, "food": 0.0}
        assert next_mode(None, depleted) == "maintain"
