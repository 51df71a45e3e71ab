"""
tests/test_config.py - Configuration models and loading
"""

import pytest
from pydantic import ValidationError

from hdc_core import AlgebraConfig, ConfigError, ThresholdOverrides, Thresholds
from hdc_reasoning import ReasoningConfig, ReasoningSession, load_config


class TestReasoningConfig:
    def test_defaults(self):
        config = ReasoningConfig()
        assert config.algebra.strategy == "dense-binary"
        assert config.max_proof_depth == 10
        assert config.closed_world is False
        assert config.rule_confidence_decay == 0.95

    def test_invalid_values(self):
        with pytest.raises(ConfigError):
            ReasoningConfig.create(max_proof_depth=-1)
        with pytest.raises(ConfigError):
            ReasoningConfig.create(max_positions=100)

    def test_frozen(self):
        config = ReasoningConfig()
        with pytest.raises(ValidationError):
            config.closed_world = True

    def test_with_overrides(self):
        config = ReasoningConfig().with_overrides(closed_world=True, max_proof_depth=4)
        assert config.closed_world is True
        assert config.max_proof_depth == 4
        assert config.algebra.strategy == "dense-binary"


class TestLoadConfig:
    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "algebra:\n"
            "  strategy: metric-affine\n"
            "  dimensions: 256\n"
            "  thresholds:\n"
            "    strong: 0.95\n"
            "max_proof_depth: 8\n"
            "closed_world: true\n"
        )
        config = load_config(path)
        assert config.algebra.strategy == "metric-affine"
        assert config.algebra.thresholds.strong == 0.95
        assert config.max_proof_depth == 8

        session = ReasoningSession(config)
        assert session.algebra.thresholds.strong == 0.95

    def test_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text('{"algebra": {"strategy": "exact", "dimensions": 16}}')
        assert load_config(path).algebra.dimensions == 16

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(path) == ReasoningConfig()

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            load_config(path)

    def test_missing(self, tmp_path):
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml")

    def test_invalid_value_in_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("query_top_k: 0\n")
        with pytest.raises(ConfigError):
            load_config(path)


class TestThresholds:
    def test_relative_to_identity_at_half(self):
        t = Thresholds.relative_to(0.5)
        assert (t.strong, t.good, t.weak) == pytest.approx((0.8, 0.65, 0.55))

    def test_relative_to_shifts_bands(self):
        t = Thresholds.relative_to(0.7)
        assert t.strong == pytest.approx(0.88)
        assert t.weak == pytest.approx(0.73)
        assert t.weak > t.baseline

    def test_order_enforced(self):
        with pytest.raises(ValidationError):
            Thresholds(baseline=0.5, strong=0.6, good=0.7, weak=0.55)

    def test_overrides(self):
        base = Thresholds.relative_to(0.5)
        assert ThresholdOverrides().apply(base) is base
        assert ThresholdOverrides(weak=0.6).apply(base).weak == 0.6
        with pytest.raises(ConfigError):
            ThresholdOverrides(weak=0.9).apply(base)

    def test_algebra_config_create(self):
        with pytest.raises(ConfigError):
            AlgebraConfig.create(scope="")
