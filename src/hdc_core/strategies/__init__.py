"""
hdc_core/strategies - Interchangeable vector algebras

    dense-binary        XOR / majority / Hamming, baseline 0.5
    sparse-polynomial   XOR-product / sampled union / Jaccard, baseline ≈0
    metric-affine       XOR / mean / L1, baseline ≈0.665
    exact               OR-product / union / Jaccard, lossless quotient unbind

create_algebra() returns a fresh, independent instance per call.
"""
from __future__ import annotations

import logging

from ..errors import ConfigError
from ..types import AlgebraConfig
from .base import BundleAccumulator, Vector, VectorAlgebra
from .dense_binary import DenseBinaryAlgebra
from .exact import ExactAlgebra
from .metric_affine import MetricAffineAlgebra
from .sparse_polynomial import SparsePolynomialAlgebra

logger = logging.getLogger(__name__)

_STRATEGIES: dict[str, type[VectorAlgebra]] = {
    DenseBinaryAlgebra.name: DenseBinaryAlgebra,
    SparsePolynomialAlgebra.name: SparsePolynomialAlgebra,
    MetricAffineAlgebra.name: MetricAffineAlgebra,
    ExactAlgebra.name: ExactAlgebra,
}


def register_strategy(name: str, cls: type[VectorAlgebra]) -> None:
    """Make an additional algebra available to create_algebra()."""
    if not (isinstance(cls, type) and issubclass(cls, VectorAlgebra)):
        raise ConfigError(f"Strategy {name!r} must subclass VectorAlgebra")
    _STRATEGIES[name] = cls


def available_strategies() -> list[str]:
    return sorted(_STRATEGIES)


def create_algebra(config: AlgebraConfig | None = None, **kwargs) -> VectorAlgebra:
    """Instantiate the configured strategy.

    Args:
        config: Algebra configuration (built from kwargs when omitted)
        **kwargs: Fields of AlgebraConfig

    Raises:
        ConfigError: unknown strategy or invalid sizing
    """
    if config is None:
        config = AlgebraConfig.create(**kwargs)
    cls = _STRATEGIES.get(config.strategy)
    if cls is None:
        raise ConfigError(
            f"Unknown strategy {config.strategy!r}; available: {', '.join(available_strategies())}"
        )
    algebra = cls(dimensions=config.dimensions, scope=config.scope, thresholds=config.thresholds)
    logger.info(f"Using {algebra.name} algebra with dimensions={algebra.dimensions}")
    return algebra


__all__ = [
    "BundleAccumulator",
    "DenseBinaryAlgebra",
    "ExactAlgebra",
    "MetricAffineAlgebra",
    "SparsePolynomialAlgebra",
    "Vector",
    "VectorAlgebra",
    "available_strategies",
    "create_algebra",
    "register_strategy",
]
