"""
hdc_core/strategies/exact.py - Exact (lossless) bitset-polynomial vectors

Atoms receive an appearance index from a per-instance allocator; the atom's
vector is a single monomial with that index's bit set. A vector is a set of
monomials (Python ints used as bitsets).

BINDING:   cross-product OR of monomials
BUNDLING:  lossless set union
SIMILARITY: Jaccard over monomial sets
UNBIND:    quotient, not an inverse of bind:
           for every stored monomial t ⊇ q, emit t \\ q

Position lanes:
    Bits are laid out in ``lanes`` interleaved lanes. Atoms live in lane 0
    (atom i -> bit i * lanes). Tagging a value with position p moves every
    bit b to b * lanes + p, which is injective, keeps lanes disjoint, and is
    undone by projecting a residue back onto lane p.
"""
from __future__ import annotations

import sys
from typing import Iterable

from ..errors import UnboundReferenceError
from ..types import Thresholds
from .base import VectorAlgebra, check_range

ExactVector = frozenset


def _bits(monomial: int) -> Iterable[int]:
    while monomial:
        low = monomial & -monomial
        yield low.bit_length() - 1
        monomial ^= low


def bit_jaccard(a: int, b: int) -> float:
    union = (a | b).bit_count()
    if union == 0:
        return 1.0
    return (a & b).bit_count() / union


class ExactAlgebra(VectorAlgebra):
    """Lossless monomial-set vectors with a session-local atom index."""

    name = "exact"
    default_dimensions = 32

    def __init__(self, *args, **kwargs):
        self._index_of: dict[tuple[str, str], int] = {}
        self._names: list[tuple[str, str]] = []
        super().__init__(*args, **kwargs)

    @property
    def lanes(self) -> int:
        return self.dimensions

    def validate_dimensions(self, dimensions: int) -> None:
        check_range(self.name, dimensions, 2, 64)

    def _generate(self, name: str, scope: str) -> frozenset:
        key = (scope, name)
        index = self._index_of.get(key)
        if index is None:
            index = len(self._names)
            self._index_of[key] = index
            self._names.append(key)
        return frozenset({1 << (index * self.lanes)})

    def index_of(self, name: str, scope: str | None = None) -> int:
        try:
            return self._index_of[(scope or self.scope, name)]
        except KeyError:
            raise UnboundReferenceError(name) from None

    def name_of(self, index: int) -> str:
        if not 0 <= index < len(self._names):
            raise UnboundReferenceError(f"#{index}", f"No atom with index {index}")
        return self._names[index][1]

    def decompose(self, monomial: int) -> list[str]:
        """Atom names of the lane-0 bits of a monomial."""
        return [self.name_of(b // self.lanes) for b in _bits(monomial) if b % self.lanes == 0]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    def bind(self, a: frozenset, b: frozenset) -> frozenset:
        return frozenset(t | u for t in a for u in b)

    def bundle(self, vectors) -> frozenset:
        if not vectors:
            raise ValueError("bundle requires at least one vector")
        out: set[int] = set()
        for v in vectors:
            out.update(v)
        return frozenset(out)

    def unbind(self, composite: frozenset, key: frozenset) -> frozenset:
        return frozenset(t & ~q for q in key for t in composite if t & q == q)

    def similarity(self, a: frozenset, b: frozenset) -> float:
        union = len(a | b)
        if union == 0:
            return 1.0
        return len(a & b) / union

    def equals(self, a: frozenset, b: frozenset) -> bool:
        return a == b

    def score_candidate(self, query: frozenset, candidate: frozenset) -> float:
        """Best bit-Jaccard between any residue monomial and any candidate monomial."""
        best = 0.0
        for q in query:
            for c in candidate:
                s = bit_jaccard(q, c)
                if s > best:
                    best = s
        return best

    # =========================================================================
    # POSITION LANES
    # =========================================================================

    def _to_lane(self, monomial: int, lane: int) -> int:
        out = 0
        for b in _bits(monomial):
            out |= 1 << (b * self.lanes + lane)
        return out

    def _from_lane(self, monomial: int, lane: int) -> int:
        out = 0
        for b in _bits(monomial):
            if b % self.lanes == lane:
                out |= 1 << ((b - lane) // self.lanes)
        return out

    def tag_position(self, marker: frozenset, value: frozenset, ordinal: int) -> frozenset:
        self._check_ordinal(ordinal)
        return self.bind(marker, frozenset(self._to_lane(t, ordinal) for t in value))

    def untag_position(self, tagged: frozenset, marker: frozenset, ordinal: int) -> frozenset:
        self._check_ordinal(ordinal)
        projected = (self._from_lane(t, ordinal) for t in self.unbind(tagged, marker))
        return frozenset(p for p in projected if p)

    def _check_ordinal(self, ordinal: int) -> None:
        if not 1 <= ordinal < self.lanes:
            raise ValueError(f"Position {ordinal} outside lanes 1..{self.lanes - 1}")

    def max_ordinal(self) -> int:
        return self.lanes - 1

    # =========================================================================
    # CALIBRATION
    # =========================================================================

    def default_thresholds(self) -> Thresholds:
        return Thresholds(baseline=0.0, strong=0.9, good=0.5, weak=0.25)

    def capacity(self) -> int:
        # Lossless: superposition never degrades retrieval.
        return sys.maxsize
