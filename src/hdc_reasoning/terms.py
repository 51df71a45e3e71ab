"""
hdc_reasoning/terms.py - Symbolic view of facts, rules and goals

Every encoded fact carries an authoritative symbolic twin built from these
types. The proof engine and exact enumeration work exclusively on terms; the
vectors are only a retrieval accelerator.

- Atom: ground constant ("Tweety", "100")
- Var:  logical variable, written ?x in statements
- Term: operator applied to ordered arguments; And/Or/Not/Implies are
        ordinary terms with reserved functors
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Union

# Reserved functors with logical meaning
AND = "And"
OR = "Or"
NOT = "Not"
IMPLIES = "Implies"

# Relation property declarations: ``TransitiveRelation isA``
TRANSITIVE = "TransitiveRelation"
SYMMETRIC = "SymmetricRelation"
REFLEXIVE = "ReflexiveRelation"

# Learn-time constraints:
#   contradictsSameArgs before after        before A B conflicts with after A B
#   mutuallyExclusive hasState Open Closed  hasState X Open conflicts with hasState X Closed
CONTRADICTS = "contradictsSameArgs"
EXCLUSIVE = "mutuallyExclusive"

LOGICAL_FUNCTORS = frozenset({AND, OR, NOT, IMPLIES})
PROPERTY_FUNCTORS = frozenset({TRANSITIVE, SYMMETRIC, REFLEXIVE})
CONSTRAINT_FUNCTORS = frozenset({CONTRADICTS, EXCLUSIVE})


class TermBase(ABC):
    """Base class for all term types."""

    @abstractmethod
    def is_ground(self) -> bool:
        """Return True if term contains no variables."""

    @abstractmethod
    def variables(self) -> set[str]:
        """Return set of variable names in term."""


@dataclass(frozen=True)
class Var(TermBase):
    """Logical variable (a hole in a pattern)."""
    name: str

    def is_ground(self) -> bool:
        return False

    def variables(self) -> set[str]:
        return {self.name}

    def __repr__(self) -> str:
        return f"?{self.name}"


@dataclass(frozen=True)
class Atom(TermBase):
    """Ground constant.

    Values are normalized to strings so that ``100`` learned from a
    statement and ``"100"`` in a query name the same atom.
    """
    value: str

    def __post_init__(self):
        if not isinstance(self.value, str):
            object.__setattr__(self, "value", str(self.value))

    def is_ground(self) -> bool:
        return True

    def variables(self) -> set[str]:
        return set()

    def __repr__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Term(TermBase):
    """Operator applied to ordered arguments.

    Example:
        Term("sell", "Alice", "Bob", "Car", 100)
        Term("Not", Term("canFly", "Opus"))
    """
    functor: str
    args: tuple[Var | Atom | Term, ...] = field(default_factory=tuple)

    def __init__(self, functor: str, *args: Var | Atom | Term | str | int | float):
        processed = []
        for arg in args:
            if isinstance(arg, (Var, Atom, Term)):
                processed.append(arg)
            else:
                processed.append(Atom(arg))

        object.__setattr__(self, "functor", functor)
        object.__setattr__(self, "args", tuple(processed))

    @property
    def arity(self) -> int:
        return len(self.args)

    @property
    def key(self) -> str:
        """Index key ``functor/arity``."""
        return f"{self.functor}/{self.arity}"

    def is_ground(self) -> bool:
        return all(arg.is_ground() for arg in self.args)

    def variables(self) -> set[str]:
        result = set()
        for arg in self.args:
            result.update(arg.variables())
        return result

    def __repr__(self) -> str:
        if not self.args:
            return self.functor
        args_str = " ".join(
            f"({arg!r})" if isinstance(arg, Term) and arg.args else repr(arg)
            for arg in self.args
        )
        return f"{self.functor} {args_str}"


TermLike = Union[Var, Atom, Term]


def fingerprint(term: TermLike) -> str:
    """Canonical string identity of a term, used for cycle detection.

    Variables are numbered by first appearance, so goals that differ only
    in renamed variables (``p ?x_1`` vs ``p ?x_7``) share a fingerprint.
    """
    names: dict[str, str] = {}

    def canon(t: TermLike) -> str:
        if isinstance(t, Var):
            if t.name not in names:
                names[t.name] = f"?_{len(names)}"
            return names[t.name]
        if isinstance(t, Atom):
            return repr(t.value)
        return "(" + " ".join([t.functor, *(canon(a) for a in t.args)]) + ")"

    return canon(term)


def negate(term: Term) -> Term:
    """Wrap ``term`` in Not, unwrapping a double negation."""
    if term.functor == NOT and term.arity == 1 and isinstance(term.args[0], Term):
        return term.args[0]
    return Term(NOT, term)


# =============================================================================
# SERIALIZATION
# =============================================================================

def term_to_dict(term: TermLike) -> dict[str, Any]:
    """Convert term to dictionary."""
    if isinstance(term, Var):
        return {"type": "var", "name": term.name}
    if isinstance(term, Atom):
        return {"type": "atom", "value": term.value}
    if isinstance(term, Term):
        return {
            "type": "term",
            "functor": term.functor,
            "args": [term_to_dict(arg) for arg in term.args],
        }
    raise ValueError(f"Unknown term type: {type(term)}")


def term_from_dict(data: dict[str, Any]) -> TermLike:
    """Convert dictionary to term."""
    t = data["type"]
    if t == "var":
        return Var(data["name"])
    if t == "atom":
        return Atom(data["value"])
    if t == "term":
        args = [term_from_dict(arg) for arg in data.get("args", [])]
        return Term(data["functor"], *args)
    raise ValueError(f"Unknown term type: {t}")
