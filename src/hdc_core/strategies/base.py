"""
hdc_core/strategies/base.py - The VectorAlgebra strategy contract

A strategy owns one numeric representation of hypervectors and the four
operations over it:

    BIND      structure-combining (role ⊗ filler)
    BUNDLE    superposition of many vectors into one
    SIMILARITY  normalized agreement in [0, 1]
    UNBIND    recover a residue from a composite and a partial pattern

Vectors are opaque to everyone but the strategy that produced them. Each
session holds exactly one strategy instance; instances never share state, so
atom tables (e.g. the exact strategy's index allocator) are session-local.
"""
from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from typing import Any, Iterable, Mapping, Sequence

from ..errors import ConfigError, UnboundReferenceError
from ..types import ThresholdOverrides, Thresholds

logger = logging.getLogger(__name__)

Vector = Any

# Unrelated-vector noise must sit this many standard deviations below a
# member's expected similarity for a superposed fact to remain decodable.
CAPACITY_SIGMAS = 6.0


def majority_capacity(bits: int) -> int:
    """Number of random binary vectors a majority bundle can hold.

    A member of an n-way majority bundle agrees with the bundle on roughly
    0.5 + 1/sqrt(2*pi*n) of its bits, while unrelated vectors fluctuate
    around 0.5 with standard deviation 0.5/sqrt(bits).
    """
    return max(1, int(2 * bits / (math.pi * CAPACITY_SIGMAS ** 2)))


class BundleAccumulator:
    """Running bundle for strategies whose bundle is associative.

    Strategies with count-based bundles (majority vote, mean) override
    ``start_bundle`` so that incremental insertion and a full rebuild produce
    the same aggregate.
    """

    def __init__(self, algebra: "VectorAlgebra"):
        self.algebra = algebra
        self.value: Vector | None = None
        self.count = 0

    def add(self, vector: Vector) -> None:
        if self.value is None:
            self.value = vector
        else:
            self.value = self.algebra.bundle([self.value, vector])
        self.count += 1

    def result(self) -> Vector | None:
        return self.value


class VectorAlgebra(ABC):
    """Strategy contract implemented by every vector algebra."""

    name: str = "abstract"
    default_dimensions: int = 0

    def __init__(
        self,
        dimensions: int | None = None,
        scope: str = "default",
        thresholds: ThresholdOverrides | None = None,
    ):
        dims = self.default_dimensions if dimensions is None else dimensions
        self.validate_dimensions(dims)
        self.dimensions = dims
        self.scope = scope
        self.thresholds = (thresholds or ThresholdOverrides()).apply(self.default_thresholds())
        self._atoms: dict[tuple[str, str], Vector] = {}
        logger.debug(f"Created {self.name} algebra (dimensions={dims}, scope={scope})")

    # =========================================================================
    # ATOMS
    # =========================================================================

    def create_from_name(self, name: str, scope: str | None = None) -> Vector:
        """Deterministic vector for ``name``; repeated calls return the same vector."""
        key = (scope or self.scope, name)
        vec = self._atoms.get(key)
        if vec is None:
            vec = self._generate(name, key[0])
            self._atoms[key] = vec
        return vec

    def atom(self, name: str, scope: str | None = None) -> Vector:
        """Vector of an atom that has already been created.

        Raises:
            UnboundReferenceError: if the atom was never created
        """
        try:
            return self._atoms[(scope or self.scope, name)]
        except KeyError:
            raise UnboundReferenceError(name) from None

    def has_atom(self, name: str, scope: str | None = None) -> bool:
        return (scope or self.scope, name) in self._atoms

    @property
    def atom_count(self) -> int:
        return len(self._atoms)

    @abstractmethod
    def _generate(self, name: str, scope: str) -> Vector:
        """Build the vector for a new atom."""

    # =========================================================================
    # CORE OPERATIONS
    # =========================================================================

    @abstractmethod
    def validate_dimensions(self, dimensions: int) -> None:
        """Raise ConfigError for an unusable sizing parameter."""

    @abstractmethod
    def bind(self, a: Vector, b: Vector) -> Vector:
        ...

    def bind_all(self, *vectors: Vector) -> Vector:
        """Bind an arbitrary number of vectors left to right."""
        if not vectors:
            raise ValueError("bind_all requires at least one vector")
        result = vectors[0]
        for v in vectors[1:]:
            result = self.bind(result, v)
        return result

    def bundle(self, vectors: Sequence[Vector]) -> Vector:
        """Superpose vectors into one aggregate."""
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        acc = self.start_bundle()
        for v in vectors:
            acc.add(v)
        return acc.result()

    @abstractmethod
    def similarity(self, a: Vector, b: Vector) -> float:
        """Agreement in [0, 1]; similarity(v, v) == 1.0."""

    def unbind(self, composite: Vector, key: Vector) -> Vector:
        """Recover the residue of ``composite`` once ``key`` is removed."""
        return self.bind(composite, key)

    @abstractmethod
    def equals(self, a: Vector, b: Vector) -> bool:
        ...

    def start_bundle(self) -> BundleAccumulator:
        return BundleAccumulator(self)

    # =========================================================================
    # POSITION TAGGING
    # =========================================================================

    @abstractmethod
    def tag_position(self, marker: Vector, value: Vector, ordinal: int) -> Vector:
        """Pair ``value`` with a position marker.

        Must be invertible through ``untag_position`` and must not commute
        with the outer bind: tag(P1, x) ⊗ tag(P2, y) differs from
        tag(P1, y) ⊗ tag(P2, x).
        """

    @abstractmethod
    def untag_position(self, tagged: Vector, marker: Vector, ordinal: int) -> Vector:
        ...

    def max_ordinal(self) -> int | None:
        """Largest position ordinal the strategy can tag, None if unbounded."""
        return None

    # =========================================================================
    # RETRIEVAL
    # =========================================================================

    def top_k_similar(
        self,
        query: Vector,
        candidates: Mapping[str, Vector] | Iterable[tuple[str, Vector]],
        k: int = 5,
    ) -> list[tuple[str, float]]:
        """Rank named candidates by similarity to ``query``.

        Ties are broken by name so the ranking is deterministic.
        """
        items = candidates.items() if isinstance(candidates, Mapping) else candidates
        scored = [(name, self.score_candidate(query, vec)) for name, vec in items]
        scored.sort(key=lambda x: (-x[1], x[0]))
        return scored[:k]

    def score_candidate(self, query: Vector, candidate: Vector) -> float:
        """Score used by top_k_similar; defaults to similarity."""
        return self.similarity(query, candidate)

    # =========================================================================
    # CALIBRATION
    # =========================================================================

    @abstractmethod
    def default_thresholds(self) -> Thresholds:
        ...

    @property
    def baseline(self) -> float:
        return self.thresholds.baseline

    @abstractmethod
    def capacity(self) -> int:
        """Facts that can be superposed before decoding degrades."""

    def saturation(self, n_items: int) -> float:
        """Fraction of capacity used by ``n_items`` superposed vectors."""
        return n_items / self.capacity()

    def describe(self) -> dict[str, Any]:
        return {
            "strategy": self.name,
            "dimensions": self.dimensions,
            "scope": self.scope,
            "atoms": self.atom_count,
            "capacity": self.capacity(),
            "thresholds": self.thresholds.model_dump(),
        }


def check_range(name: str, dimensions: int, low: int, high: int) -> None:
    """Shared sizing validation."""
    if not isinstance(dimensions, int) or isinstance(dimensions, bool):
        raise ConfigError(f"{name}: dimensions must be an integer, got {dimensions!r}")
    if not low <= dimensions <= high:
        raise ConfigError(f"{name}: dimensions must be in [{low}, {high}], got {dimensions}")
