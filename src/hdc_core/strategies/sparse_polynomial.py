"""
hdc_core/strategies/sparse_polynomial.py - Sparse integer-set ("polynomial") vectors

A vector is a small set of 64-bit integers (exponents).

BINDING:   cartesian pairwise XOR of the two sets, reduced back to k
           elements by min-hash sampling
BUNDLING:  set union, min-hash sampled when over the bundle limit
SIMILARITY: Jaccard index (≈0 for unrelated vectors)

Reduction always orders by a SplitMix64 hash of each exponent, never by the
exponent itself: XOR is not monotonic, so keeping the numerically smallest
values would silently discard structure. Min-hash sampling of a union also
equals sampling the union of already-sampled parts, which keeps incremental
bundling consistent with a rebuild.
"""
from __future__ import annotations

import logging
from typing import Iterable

from ..types import Thresholds
from ..vectors import rotl64, rotr64, seed_words, splitmix64
from .base import VectorAlgebra, check_range

logger = logging.getLogger(__name__)

SparseVector = frozenset

# Upper bound on intermediate products in bind_all before early sampling.
MAX_PRODUCT = 4096


def sparsify(exponents: Iterable[int], limit: int) -> frozenset:
    """Keep the ``limit`` exponents with the smallest SplitMix64 hash."""
    exps = set(exponents)
    if len(exps) <= limit:
        return frozenset(exps)
    ordered = sorted(exps, key=lambda e: (splitmix64(e), e))
    return frozenset(ordered[:limit])


class SparsePolynomialAlgebra(VectorAlgebra):
    """k-element sets of 64-bit integers."""

    name = "sparse-polynomial"
    default_dimensions = 4

    # Bundles may hold this many times k exponents before sampling.
    bundle_factor = 64

    def validate_dimensions(self, dimensions: int) -> None:
        check_range(self.name, dimensions, 1, 64)

    @property
    def k(self) -> int:
        return self.dimensions

    @property
    def bundle_limit(self) -> int:
        return self.k * self.bundle_factor

    def _generate(self, name: str, scope: str) -> frozenset:
        return frozenset(seed_words(name, scope, self.k))

    def bind_full(self, a: frozenset, b: frozenset) -> frozenset:
        """Cartesian XOR without sampling (up to k² exponents)."""
        return frozenset(x ^ y for x in a for y in b)

    def bind(self, a: frozenset, b: frozenset) -> frozenset:
        return sparsify(self.bind_full(a, b), self.k)

    def bind_all(self, *vectors: frozenset) -> frozenset:
        """Full cartesian product of all operands, sampled once at the end."""
        if not vectors:
            raise ValueError("bind_all requires at least one vector")
        product = vectors[0]
        for v in vectors[1:]:
            product = self.bind_full(product, v)
            if len(product) > MAX_PRODUCT:
                logger.debug(f"bind_all: sampling {len(product)} intermediate exponents")
                product = sparsify(product, MAX_PRODUCT)
        return sparsify(product, self.k)

    def unbind(self, composite: frozenset, key: frozenset) -> frozenset:
        # Unsampled so every exponent the key contributed can cancel.
        return self.bind_full(composite, key)

    def bundle(self, vectors) -> frozenset:
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        union: set[int] = set()
        for v in vectors:
            union.update(v)
        return sparsify(union, self.bundle_limit)

    def similarity(self, a: frozenset, b: frozenset) -> float:
        union = len(a | b)
        if union == 0:
            return 1.0
        return len(a & b) / union

    def containment(self, candidate: frozenset, container: frozenset) -> float:
        """Fraction of ``candidate`` found inside ``container``."""
        if not candidate:
            return 1.0
        return len(candidate & container) / len(candidate)

    def equals(self, a: frozenset, b: frozenset) -> bool:
        return a == b

    def tag_position(self, marker: frozenset, value: frozenset, ordinal: int) -> frozenset:
        return self.bind(marker, frozenset(rotl64(x, ordinal) for x in value))

    def untag_position(self, tagged: frozenset, marker: frozenset, ordinal: int) -> frozenset:
        return frozenset(rotr64(x, ordinal) for x in self.unbind(tagged, marker))

    def max_ordinal(self) -> int:
        return 63

    def default_thresholds(self) -> Thresholds:
        return Thresholds(baseline=0.0, strong=0.15, good=0.05, weak=0.03)

    def capacity(self) -> int:
        return self.bundle_factor
