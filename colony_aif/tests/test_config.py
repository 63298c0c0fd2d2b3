"""
Tests for AIF configuration resolution.
"""

from ..agents.config import DEFAULT_AIF_CONFIG, merge_deep, resolve_aif_config
from ..core.agent_state import AntState
from ..core.colony_world import ColonyWorld


class TestMergeDeep:
    """Test merge_deep."""

    def test_nested_merge(self):
        """Test nested dicts merge key by key."""
        merged = merge_deep({"a": {"x": 1, "y": 2}, "b": 1}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}, "b": 1}

    def test_scalars_replace(self):
        """Test non-dict values replace."""
        assert merge_deep({"a": {"x": 1}}, {"a": 5}) == {"a": 5}

    def test_none_layers_skipped(self):
        """Test None layers are ignored."""
        assert merge_deep(None, {"a": 1}, None) == {"a": 1}

    def test_inputs_not_mutated(self):
        """Test merged trees do not alias their inputs."""
        base = {"a": {"x": 1}}
        merged = merge_deep(base, {"a": {"y": 2}})
        merged["a"]["x"] = 99
        assert base == {"a": {"x": 1}}


class TestResolveAifConfig:
    """Test layered configuration resolution."""

    def test_defaults(self):
        """Test a bare world resolves to the defaults."""
        cfg = resolve_aif_config(ColonyWorld(2, 2))
        assert cfg == DEFAULT_AIF_CONFIG
        assert cfg is not DEFAULT_AIF_CONFIG
        assert cfg["efe"]["lambda"]["pattern"] == 0.0
        assert cfg["trend"]["window"] == 5

    def test_layers(self):
        """Test world config then agent override."""
        world = ColonyWorld(2, 2, config={"aif": {"precision": {"tau_cap": 1.2},
                                                  "trend": {"window": 3}}})
        ant = AntState(aif_config={"precision": {"tau_cap": 1.0}})
        cfg = resolve_aif_config(world, ant)
        assert cfg["precision"]["tau_cap"] == 1.0
        assert cfg["precision"]["tau_floor"] == 0.08
        assert cfg["trend"]["window"] == 3

    def test_without_world(self):
        """Test resolution tolerates a missing world."""
        cfg = resolve_aif_config(None, AntState(aif_config={"trend": {"window": 2}}))
        assert cfg["trend"]["window"] == 2
