"""
hdc_core - Pluggable hyperdimensional vector algebras

Interchangeable encodings with different numeric semantics behind one
strategy contract (create_from_name, bind, bundle, similarity, unbind,
top_k_similar).

Quick Start:
    from hdc_core import create_algebra

    algebra = create_algebra(strategy="dense-binary", dimensions=4096)
    role = algebra.create_from_name("color")
    filler = algebra.create_from_name("red")

    pair = algebra.bind(role, filler)
    algebra.similarity(algebra.unbind(pair, role), filler)   # 1.0

Modules:
    hdc_core.strategies  - VectorAlgebra contract, the four strategies, registry
    hdc_core.vectors     - Deterministic name-seeded bytes and words
    hdc_core.types       - Pydantic configuration and threshold models
    hdc_core.errors      - Error taxonomy shared with hdc_reasoning
"""

__version__ = "0.1.0"

# Errors
from .errors import (
    HDCError,
    ConfigError,
    UnboundReferenceError,
    StatementError,
    QueryError,
    QueryFailure,
    ProofError,
    ProofFailure,
    ContradictionError,
    CapacityWarning,
)

# Types
from .types import (
    AlgebraConfig,
    Thresholds,
    ThresholdOverrides,
)

# Strategies
from .strategies import (
    VectorAlgebra,
    DenseBinaryAlgebra,
    SparsePolynomialAlgebra,
    MetricAffineAlgebra,
    ExactAlgebra,
    available_strategies,
    create_algebra,
    register_strategy,
)

# Seeding
from .vectors import seed_bytes, seed_words, splitmix64

__all__ = [
    # Version
    "__version__",
    # Errors
    "HDCError",
    "ConfigError",
    "UnboundReferenceError",
    "StatementError",
    "QueryError",
    "QueryFailure",
    "ProofError",
    "ProofFailure",
    "ContradictionError",
    "CapacityWarning",
    # Types
    "AlgebraConfig",
    "Thresholds",
    "ThresholdOverrides",
    # Strategies
    "VectorAlgebra",
    "DenseBinaryAlgebra",
    "SparsePolynomialAlgebra",
    "MetricAffineAlgebra",
    "ExactAlgebra",
    "available_strategies",
    "create_algebra",
    "register_strategy",
    # Seeding
    "seed_bytes",
    "seed_words",
    "splitmix64",
]
