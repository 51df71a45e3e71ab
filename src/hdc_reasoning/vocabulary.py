"""
hdc_reasoning/vocabulary.py - Name to atom mapping and lexical scopes

The Vocabulary creates atoms on first reference and remembers how each
name was used, so query decoding can restrict candidates to entities.
Scopes hold statement destinations (``@name``) and graph parameters; a child
scope falls back to its parent for names it does not define.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterator

from hdc_core.errors import UnboundReferenceError
from hdc_core.strategies import VectorAlgebra

from .terms import CONSTRAINT_FUNCTORS, LOGICAL_FUNCTORS, PROPERTY_FUNCTORS, TermLike

logger = logging.getLogger(__name__)

RESERVED_PREFIX = "__"
HOLE_PREFIX = "?"


class Vocabulary:
    """Session-local atom dictionary."""

    def __init__(self, algebra: VectorAlgebra):
        self.algebra = algebra
        self._entities: dict[str, Any] = {}
        self._operators: set[str] = set()

    def atom(self, name: str) -> Any:
        """Vector for ``name`` used as an argument, created on first use."""
        vec = self.algebra.create_from_name(name)
        if name not in self._entities and not self.is_reserved(name):
            self._entities[name] = vec
        return vec

    def operator(self, name: str) -> Any:
        """Vector for ``name`` used as an operator."""
        self._operators.add(name)
        return self.algebra.create_from_name(name)

    def reserved(self, name: str) -> Any:
        """Vector for an internal atom that never appears as a decode candidate."""
        return self.algebra.create_from_name(name)

    def get(self, name: str) -> Any:
        """Existing atom; raises UnboundReferenceError if never created."""
        return self.algebra.atom(name)

    def __contains__(self, name: str) -> bool:
        return self.algebra.has_atom(name)

    @staticmethod
    def is_reserved(name: str) -> bool:
        return (
            name.startswith(RESERVED_PREFIX)
            or name.startswith(HOLE_PREFIX)
            or name in LOGICAL_FUNCTORS
            or name in PROPERTY_FUNCTORS
            or name in CONSTRAINT_FUNCTORS
        )

    def is_operator(self, name: str) -> bool:
        return name in self._operators

    def candidates(self) -> dict[str, Any]:
        """Decode candidates: entities that are not only ever operators."""
        return {
            name: vec for name, vec in self._entities.items()
            if name not in self._operators
        }

    def __len__(self) -> int:
        return len(self._entities)


# =============================================================================
# SCOPES
# =============================================================================

@dataclass(frozen=True)
class ScopeEntry:
    """A named value: its vector and its symbolic term."""
    vector: Any
    term: TermLike


class Scope:
    """Lexical scope for destinations and graph parameters."""

    def __init__(self, name: str = "global", parent: "Scope | None" = None):
        self.name = name
        self.parent = parent
        self.depth = 0 if parent is None else parent.depth + 1
        self._entries: dict[str, ScopeEntry] = {}

    def define(self, name: str, entry: ScopeEntry) -> None:
        self._entries[name] = entry

    def lookup(self, name: str) -> ScopeEntry:
        scope: Scope | None = self
        while scope is not None:
            if name in scope._entries:
                return scope._entries[name]
            scope = scope.parent
        raise UnboundReferenceError(name, f"Unbound reference: ${name} in scope {self.name}")

    def __contains__(self, name: str) -> bool:
        try:
            self.lookup(name)
        except UnboundReferenceError:
            return False
        return True

    def child(self, name: str) -> "Scope":
        return Scope(name=f"{self.name}/{name}", parent=self)

    def names(self) -> Iterator[str]:
        return iter(self._entries)
