"""
hdc_reasoning/config.py - Session configuration

A ReasoningConfig bundles the algebra choice with the query and proof
engine limits. It can be built in code or loaded from YAML/JSON:

    algebra:
      strategy: metric-affine
      dimensions: 256
      thresholds:
        strong: 0.9
    max_proof_depth: 8
    closed_world: true
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from hdc_core.errors import ConfigError
from hdc_core.types import AlgebraConfig


class ReasoningConfig(BaseModel):
    """Configuration for one reasoning session."""

    algebra: AlgebraConfig = Field(default_factory=AlgebraConfig)

    # Proof search
    max_proof_depth: int = Field(default=10, ge=0, le=1000)
    closed_world: bool = Field(
        default=False,
        description="Negation as failure; otherwise Not needs an explicit negation"
    )
    max_proof_steps: int = Field(default=10000, ge=1)
    proof_timeout: float | None = Field(default=None, gt=0.0, description="Seconds")
    min_proof_confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    rule_confidence_decay: float = Field(default=0.95, gt=0.0, le=1.0)
    transitive_decay: float = Field(default=0.98, gt=0.0, le=1.0)
    inheritance: bool = Field(default=True, description="Inherit properties along isA")
    inheritance_relation: str = Field(default="isA", min_length=1)

    # Learning
    check_contradictions: bool = Field(
        default=True,
        description="Reject facts that conflict with declared contradictsSameArgs / mutuallyExclusive constraints"
    )

    # Encoding
    max_positions: int = Field(default=20, ge=1, le=63)

    # Query
    query_top_k: int = Field(default=5, ge=1, le=100)
    validate_candidates: bool = Field(default=True)
    symbolic_fallback: bool = Field(default=True)
    max_joint_combinations: int = Field(
        default=4096, ge=1,
        description="Candidate pairs a multi-hole decode may score before narrowing its pools"
    )
    extra_hole_penalty: float = Field(default=0.1, ge=0.0, lt=1.0)
    ambiguity_penalty: float = Field(default=0.15, ge=0.0, lt=1.0)

    model_config = {"frozen": True}

    @classmethod
    def create(cls, **kwargs: Any) -> "ReasoningConfig":
        """Build a config, converting validation failures into ConfigError."""
        try:
            return cls(**kwargs)
        except ValidationError as e:
            raise ConfigError(f"Invalid reasoning configuration: {e}") from e

    def with_overrides(self, **kwargs: Any) -> "ReasoningConfig":
        return self.create(**{**self.model_dump(), **kwargs})


def load_config(path: str | Path) -> ReasoningConfig:
    """Load a ReasoningConfig from a YAML or JSON file.

    Raises:
        ConfigError: unreadable file or invalid values
    """
    path = Path(path)
    try:
        with open(path) as f:
            if path.suffix == ".json":
                raw = json.load(f)
            else:
                raw = yaml.safe_load(f)
    except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
        raise ConfigError(f"Cannot read configuration {path}: {e}") from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ConfigError(f"Configuration {path} must be a mapping, got {type(raw).__name__}")
    return ReasoningConfig.create(**raw)
