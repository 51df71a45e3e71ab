"""
hdc_core/strategies/dense_binary.py - Dense fixed-width bit vectors

BINDING:   bitwise XOR (self-inverse, associative, commutative)
BUNDLING:  per-bit majority vote, ties resolved by a fixed tie-break vector
SIMILARITY: 1 - hamming(a, b) / d   (≈0.5 for unrelated vectors)

Bundling is count-based, so the accumulator keeps per-bit vote counts and
incremental insertion matches a full rebuild bit for bit.
"""
from __future__ import annotations

import math

import numpy as np
import torch

from ..errors import ConfigError
from ..types import Thresholds
from ..vectors import seed_bytes
from .base import BundleAccumulator, VectorAlgebra, check_range, majority_capacity

TIE_BREAK_NAME = "__BundleTieBreak__"


class _MajorityAccumulator(BundleAccumulator):
    """Per-bit vote counts."""

    def __init__(self, algebra: "DenseBinaryAlgebra"):
        super().__init__(algebra)
        self.counts = torch.zeros(algebra.dimensions, dtype=torch.int32)

    def add(self, vector: torch.Tensor) -> None:
        self.counts += vector.to(torch.int32)
        self.count += 1

    def result(self) -> torch.Tensor | None:
        if self.count == 0:
            return None
        doubled = self.counts * 2
        out = doubled > self.count
        ties = doubled == self.count
        if bool(ties.any()):
            out = torch.where(ties, self.algebra.tie_breaker, out)
        return out


class DenseBinaryAlgebra(VectorAlgebra):
    """Dense binary hypervectors stored as torch bool tensors."""

    name = "dense-binary"
    default_dimensions = 16384

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._tie_breaker: torch.Tensor | None = None

    def validate_dimensions(self, dimensions: int) -> None:
        check_range(self.name, dimensions, 256, 131072)
        if dimensions % 64 != 0:
            raise ConfigError(f"{self.name}: dimensions must be a multiple of 64, got {dimensions}")

    def _generate(self, name: str, scope: str) -> torch.Tensor:
        raw = seed_bytes(name, scope, self.dimensions // 8)
        bits = np.unpackbits(raw)
        return torch.from_numpy(bits.astype(np.bool_))

    @property
    def tie_breaker(self) -> torch.Tensor:
        if self._tie_breaker is None:
            self._tie_breaker = self._generate(TIE_BREAK_NAME, self.scope)
        return self._tie_breaker

    def bind(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        return torch.bitwise_xor(a, b)

    def similarity(self, a: torch.Tensor, b: torch.Tensor) -> float:
        hamming = int(torch.bitwise_xor(a, b).sum().item())
        return 1.0 - hamming / self.dimensions

    def equals(self, a: torch.Tensor, b: torch.Tensor) -> bool:
        return bool(torch.equal(a, b))

    def start_bundle(self) -> _MajorityAccumulator:
        return _MajorityAccumulator(self)

    def tag_position(self, marker: torch.Tensor, value: torch.Tensor, ordinal: int) -> torch.Tensor:
        return self.bind(marker, torch.roll(value, shifts=ordinal))

    def untag_position(self, tagged: torch.Tensor, marker: torch.Tensor, ordinal: int) -> torch.Tensor:
        return torch.roll(self.bind(tagged, marker), shifts=-ordinal)

    def default_thresholds(self) -> Thresholds:
        return Thresholds.relative_to(0.5)

    def capacity(self) -> int:
        return majority_capacity(self.dimensions)

    @staticmethod
    def expected_member_similarity(n_items: int) -> float:
        """Expected similarity between an n-way majority bundle and one member.

        Counts the other n-1 random votes that side with the member; an even
        split goes to the tie-break vector, which agrees half the time.
        """
        if n_items <= 1:
            return 1.0
        others = n_items - 1
        total = 2 ** others
        agree = 0.0
        for j in range(others + 1):
            votes = 1 + j
            if votes * 2 > n_items:
                agree += math.comb(others, j)
            elif votes * 2 == n_items:
                agree += 0.5 * math.comb(others, j)
        return agree / total
