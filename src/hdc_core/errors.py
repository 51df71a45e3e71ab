"""
hdc_core/errors.py - Error taxonomy shared by the algebra and reasoning layers

Fatal conditions raise; expected "no answer" outcomes are reported as values
and only become exceptions when a caller asks for it via raise_for_failure().

    ConfigError            bad strategy id or sizing (fatal at construction)
    UnboundReferenceError  unknown atom / variable (aborts one statement)
    StatementError         malformed statement (aborts one statement)
    QueryError             no_match | ambiguous | below_threshold
    ProofError             depth_limit | cycle | no_evidence | ...
    ContradictionError     new fact conflicts with a declared constraint
    CapacityWarning        aggregate saturation (advisory)
"""
from __future__ import annotations

from enum import Enum


class HDCError(Exception):
    """Base class for all engine errors."""


class ConfigError(HDCError, ValueError):
    """Invalid strategy identifier, sizing parameter or threshold."""


class UnboundReferenceError(HDCError, LookupError):
    """A name was used that no scope or vocabulary can resolve."""

    def __init__(self, name: str, message: str | None = None):
        self.name = name
        super().__init__(message or f"Unbound reference: {name}")


class StatementError(HDCError, ValueError):
    """A statement is malformed (arity mismatch, too many arguments, ...)."""


# =============================================================================
# QUERY / PROOF FAILURES
# =============================================================================

class QueryFailure(str, Enum):
    """Why a query produced no usable answer."""
    NO_MATCH = "no_match"
    AMBIGUOUS = "ambiguous"
    BELOW_THRESHOLD = "below_threshold"


class ProofFailure(str, Enum):
    """Why a goal could not be proven."""
    DEPTH_LIMIT = "depth_limit"
    CYCLE = "cycle"
    NO_EVIDENCE = "no_evidence"
    EXPLICIT_NEGATION = "explicit_negation"
    OPEN_WORLD = "open_world"
    BUDGET_EXHAUSTED = "budget_exhausted"


class QueryError(HDCError):
    """Raised on request when a query result is unusable."""

    def __init__(self, kind: QueryFailure, message: str = ""):
        self.kind = QueryFailure(kind)
        super().__init__(message or self.kind.value)


class ProofError(HDCError):
    """Raised on request when a proof attempt failed."""

    def __init__(self, kind: ProofFailure, message: str = ""):
        self.kind = ProofFailure(kind)
        super().__init__(message or self.kind.value)


class ContradictionError(HDCError):
    """A new fact conflicts with a stored fact under a declared constraint.

    ``kind`` names the constraint (``contradictsSameArgs`` or
    ``mutuallyExclusive``); the ids point at the conflicting fact and at the
    constraint declaration.
    """

    def __init__(self, kind: str, message: str, conflicting_id: int, constraint_id: int):
        self.kind = kind
        self.conflicting_id = conflicting_id
        self.constraint_id = constraint_id
        super().__init__(message)


class CapacityWarning(UserWarning):
    """The knowledge aggregate holds more facts than the strategy can decode reliably."""
