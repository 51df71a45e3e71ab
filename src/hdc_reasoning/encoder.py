"""
hdc_reasoning/encoder.py - The binding formula

    dest = bind(Operator, tag(Pos1, Arg1), tag(Pos2, Arg2), ..., tag(PosN, ArgN))

Operators with a registered graph expand instead:

    dest = bind(Operator, expansion)

where the expansion runs the graph body in a child scope with parameters
bound to the call arguments. Every encoding also yields the statement's
symbolic term, which is what the knowledge store treats as authoritative.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Sequence

from hdc_core.errors import StatementError, UnboundReferenceError
from hdc_core.strategies import VectorAlgebra

from .positions import PositionRegistry
from .statements import (
    ArgRef,
    Compound,
    GraphDef,
    Hole,
    Identifier,
    Literal,
    OperatorRef,
    Reference,
    Statement,
)
from .terms import Atom, Term, TermLike, Var
from .vocabulary import HOLE_PREFIX, Scope, ScopeEntry, Vocabulary

logger = logging.getLogger(__name__)

# Nested graph calls deeper than this are treated as runaway recursion.
MAX_EXPANSION_DEPTH = 32


@dataclass(frozen=True)
class EncodedStatement:
    """Vector plus symbolic twin of one statement."""
    vector: Any
    term: Term

    @property
    def entry(self) -> ScopeEntry:
        return ScopeEntry(self.vector, self.term)


class FactEncoder:
    """Turns statements and terms into vectors."""

    def __init__(self, algebra: VectorAlgebra, vocabulary: Vocabulary, positions: PositionRegistry):
        self.algebra = algebra
        self.vocabulary = vocabulary
        self.positions = positions
        self.graphs: dict[str, GraphDef] = {}

    def define_graph(self, graph: GraphDef) -> None:
        if graph.name in self.graphs:
            logger.debug(f"Redefining graph {graph.name}")
        self.graphs[graph.name] = graph

    # =========================================================================
    # BINDING FORMULA
    # =========================================================================

    def encode(self, operator: str, args: Sequence[Any]) -> Any:
        """Bind an operator with position-tagged argument vectors."""
        if len(args) > self.positions.max_positions:
            raise StatementError(
                f"{operator}: {len(args)} arguments exceed {self.positions.max_positions} positions"
            )
        op_vec = self.vocabulary.operator(operator)
        tagged = [self.positions.tag(i, vec) for i, vec in enumerate(args, start=1)]
        return self.algebra.bind_all(op_vec, *tagged)

    def encode_term(self, term: TermLike, scope: Scope | None = None) -> Any:
        """Vector of a symbolic term (used when re-encoding stored facts)."""
        if isinstance(term, Atom):
            return self.vocabulary.atom(term.value)
        if isinstance(term, Var):
            return self.vocabulary.reserved(f"{HOLE_PREFIX}{term.name}")

        entries = [ScopeEntry(self.encode_term(a, scope), a) for a in term.args]
        graph = self.graphs.get(term.functor)
        if graph is not None:
            return self._bind_expansion(term.functor, graph, entries, scope or Scope())
        return self.encode(term.functor, [e.vector for e in entries])

    # =========================================================================
    # STATEMENTS
    # =========================================================================

    def encode_statement(self, statement: Statement, scope: Scope) -> EncodedStatement:
        """Resolve a statement's references in ``scope`` and encode it.

        Raises:
            UnboundReferenceError: a $reference cannot be resolved
            StatementError: arity mismatch or too many arguments
        """
        return self._encode_parts(statement.operator, statement.args, scope)

    def _encode_parts(self, op_ref: OperatorRef, args: Sequence[ArgRef], scope: Scope) -> EncodedStatement:
        operator = self._operator_name(op_ref, scope)
        entries = [self._resolve_arg(a, scope) for a in args]
        term = Term(operator, *(e.term for e in entries))

        graph = self.graphs.get(operator)
        if graph is not None:
            vector = self._bind_expansion(operator, graph, entries, scope)
        else:
            vector = self.encode(operator, [e.vector for e in entries])

        logger.debug(f"Encoded {term!r}")
        return EncodedStatement(vector, term)

    def _operator_name(self, op_ref: OperatorRef, scope: Scope) -> str:
        if isinstance(op_ref, Identifier):
            return op_ref.name
        entry = scope.lookup(op_ref.name)
        if not isinstance(entry.term, Atom):
            raise StatementError(f"${op_ref.name} does not name an operator: {entry.term!r}")
        return entry.term.value

    def _resolve_arg(self, ref: ArgRef, scope: Scope) -> ScopeEntry:
        if isinstance(ref, (Identifier, Literal)):
            return ScopeEntry(self.vocabulary.atom(ref.name), Atom(ref.name))
        if isinstance(ref, Hole):
            return ScopeEntry(self.vocabulary.reserved(f"{HOLE_PREFIX}{ref.name}"), Var(ref.name))
        if isinstance(ref, Reference):
            return scope.lookup(ref.name)
        if isinstance(ref, Compound):
            return self._encode_parts(ref.operator, ref.args, scope).entry
        raise StatementError(f"Unsupported argument {ref!r}")

    # =========================================================================
    # GRAPH EXPANSION
    # =========================================================================

    def _bind_expansion(self, operator: str, graph: GraphDef, args: Sequence[ScopeEntry], scope: Scope) -> Any:
        result = self.expand(graph, args, scope)
        return self.algebra.bind(self.vocabulary.operator(operator), result)

    def expand(self, graph: GraphDef, args: Sequence[ScopeEntry], scope: Scope) -> Any:
        """Run a graph body in a child scope and return its result vector."""
        if len(args) != len(graph.params):
            raise StatementError(
                f"Graph {graph.name} expects {len(graph.params)} arguments, got {len(args)}"
            )
        child = scope.child(graph.name)
        if child.depth > MAX_EXPANSION_DEPTH:
            raise StatementError(f"Graph {graph.name} nested deeper than {MAX_EXPANSION_DEPTH} levels")
        for param, entry in zip(graph.params, args):
            child.define(param, entry)

        for statement in graph.body:
            encoded = self.encode_statement(statement, child)
            if statement.destination:
                child.define(statement.destination, encoded.entry)

        try:
            return child.lookup(graph.return_ref).vector
        except UnboundReferenceError:
            raise UnboundReferenceError(
                graph.return_ref, f"Graph {graph.name} never binds its return ${graph.return_ref}"
            ) from None
