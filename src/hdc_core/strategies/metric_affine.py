"""
hdc_core/strategies/metric_affine.py - Metric-affine byte vectors

Each vector is a fixed-length array of byte channels (0-255).

BINDING:   byte-wise XOR
BUNDLING:  arithmetic mean per channel, rounded half up
SIMILARITY: 1 - L1(a, b) / (255 * d)

Two independent uniform bytes differ by (256² - 1) / (3 · 256) ≈ 85.3 on
average, so unrelated vectors sit near 0.665 rather than 0.5. All bands are
derived from that baseline.
"""
from __future__ import annotations

import torch

from ..types import Thresholds
from ..vectors import seed_bytes
from .base import BundleAccumulator, VectorAlgebra, check_range, majority_capacity

MAX_CHANNEL = 255
BASELINE = 1.0 - ((256 ** 2 - 1) / (3 * 256)) / MAX_CHANNEL


class _MeanAccumulator(BundleAccumulator):
    """Per-channel integer sums."""

    def __init__(self, algebra: "MetricAffineAlgebra"):
        super().__init__(algebra)
        self.sums = torch.zeros(algebra.dimensions, dtype=torch.int64)

    def add(self, vector: torch.Tensor) -> None:
        self.sums += vector.to(torch.int64)
        self.count += 1

    def result(self) -> torch.Tensor | None:
        if self.count == 0:
            return None
        n = self.count
        return torch.div(self.sums * 2 + n, 2 * n, rounding_mode="floor").to(torch.uint8)


class MetricAffineAlgebra(VectorAlgebra):
    """Byte-channel hypervectors stored as torch uint8 tensors."""

    name = "metric-affine"
    default_dimensions = 128

    def validate_dimensions(self, dimensions: int) -> None:
        check_range(self.name, dimensions, 8, 65536)

    def _generate(self, name: str, scope: str) -> torch.Tensor:
        return torch.from_numpy(seed_bytes(name, scope, self.dimensions))

    def bind(self, a: torch.Tensor, b: torch.Tensor) -> torch.Tensor:
        return torch.bitwise_xor(a, b)

    def similarity(self, a: torch.Tensor, b: torch.Tensor) -> float:
        l1 = int((a.to(torch.int32) - b.to(torch.int32)).abs().sum().item())
        return 1.0 - l1 / (MAX_CHANNEL * self.dimensions)

    def equals(self, a: torch.Tensor, b: torch.Tensor) -> bool:
        return bool(torch.equal(a, b))

    def start_bundle(self) -> _MeanAccumulator:
        return _MeanAccumulator(self)

    def tag_position(self, marker: torch.Tensor, value: torch.Tensor, ordinal: int) -> torch.Tensor:
        return self.bind(marker, torch.roll(value, shifts=ordinal))

    def untag_position(self, tagged: torch.Tensor, marker: torch.Tensor, ordinal: int) -> torch.Tensor:
        return torch.roll(self.bind(tagged, marker), shifts=-ordinal)

    def default_thresholds(self) -> Thresholds:
        return Thresholds.relative_to(BASELINE)

    def capacity(self) -> int:
        # Treat every channel as eight independent bits.
        return majority_capacity(self.dimensions * 8)
