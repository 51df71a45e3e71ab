"""
hdc_reasoning/positions.py - Reserved position markers

Pos1..PosN are ordinary atoms with reserved names. Pairing an argument with
the marker of its slot is what keeps ``Loves John Mary`` distinct from
``Loves Mary John`` even though the outer bind is commutative.
"""
from __future__ import annotations

from typing import Any

from hdc_core.errors import ConfigError, StatementError
from hdc_core.strategies import VectorAlgebra

MARKER_FORMAT = "__Pos{}__"


class PositionRegistry:
    """Fixed set of position markers for one algebra instance."""

    def __init__(self, algebra: VectorAlgebra, max_positions: int = 20):
        limit = algebra.max_ordinal()
        if limit is not None and max_positions > limit:
            raise ConfigError(
                f"{algebra.name} supports at most {limit} positions, got max_positions={max_positions}"
            )
        self.algebra = algebra
        self.max_positions = max_positions
        self._markers = [
            algebra.create_from_name(MARKER_FORMAT.format(i))
            for i in range(1, max_positions + 1)
        ]

    def marker(self, position: int) -> Any:
        """Marker vector for a 1-based position."""
        if not 1 <= position <= self.max_positions:
            raise StatementError(
                f"Position {position} outside 1..{self.max_positions}"
            )
        return self._markers[position - 1]

    def tag(self, position: int, value: Any) -> Any:
        return self.algebra.tag_position(self.marker(position), value, position)

    def untag(self, position: int, tagged: Any) -> Any:
        return self.algebra.untag_position(tagged, self.marker(position), position)

    @staticmethod
    def marker_name(position: int) -> str:
        return MARKER_FORMAT.format(position)

    def __len__(self) -> int:
        return self.max_positions
