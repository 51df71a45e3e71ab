"""
hdc_reasoning/session.py - One isolated reasoning session

A ReasoningSession owns everything that must not leak between sessions:
the algebra instance (and with it the atom table), the vocabulary, the
global scope, the knowledge store and the engines reading it.

    session = ReasoningSession(algebra={"strategy": "dense-binary", "dimensions": 4096})
    session.learn(Statement.of("isA", "Tweety", "Bird"))
    session.learn(Statement.of("isA", "Bird", "Animal"))
    session.declare_transitive("isA")

    session.prove(Term("isA", "Tweety", "Animal")).valid       # True
    session.query(Term("isA", "Tweety", Var("what"))).values() # {"what": "Bird"}

learn() never raises for a bad statement; it returns a LearnResult so a
batch can continue past it.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import yaml

from hdc_core.errors import ConfigError, ContradictionError, HDCError
from hdc_core.strategies import create_algebra

from .config import ReasoningConfig
from .encoder import FactEncoder
from .inference import ProofEngine, ProofResult
from .knowledge_base import Fact, KnowledgeStore
from .positions import PositionRegistry
from .query import QueryEngine, QueryResult
from .statements import GraphDef, Statement
from .terms import (
    CONTRADICTS,
    EXCLUSIVE,
    IMPLIES,
    REFLEXIVE,
    SYMMETRIC,
    TRANSITIVE,
    Term,
    negate,
    term_from_dict,
)
from .vocabulary import Scope, Vocabulary

logger = logging.getLogger(__name__)

SAVE_FORMAT_VERSION = 1


@dataclass
class LearnResult:
    """Outcome of learning one statement."""
    ok: bool
    statement: Statement | GraphDef | Term
    fact: Fact | None = None
    error: Exception | None = None

    @property
    def message(self) -> str:
        return str(self.error) if self.error else ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "fact": self.fact.id if self.fact else None,
            "error": type(self.error).__name__ if self.error else None,
            "message": self.message,
        }


class ReasoningSession:
    """Learn / query / prove over one knowledge store."""

    def __init__(self, config: ReasoningConfig | None = None, **overrides: Any):
        if config is None:
            config = ReasoningConfig.create(**overrides)
        elif overrides:
            config = config.with_overrides(**overrides)
        self.config = config

        self.algebra = create_algebra(config.algebra)
        self.vocabulary = Vocabulary(self.algebra)
        self.scope = Scope()
        self.positions = PositionRegistry(self.algebra, config.max_positions)
        self.encoder = FactEncoder(self.algebra, self.vocabulary, self.positions)
        self.store = KnowledgeStore(self.algebra)
        self.prover = ProofEngine(self.store, config)
        self.engine = QueryEngine(
            self.algebra, self.vocabulary, self.positions, self.encoder,
            self.store, self.prover, config,
        )

    # =========================================================================
    # LEARNING
    # =========================================================================

    def learn(self, item: Statement | GraphDef, source: str | None = None) -> LearnResult:
        """Learn one statement or graph definition.

        Errors in the statement (unbound reference, arity mismatch, ...) and
        contradictions with declared constraints are returned in the
        LearnResult rather than raised.
        """
        if isinstance(item, GraphDef):
            self.encoder.define_graph(item)
            return LearnResult(True, item)

        try:
            encoded = self.encoder.encode_statement(item, self.scope)
            fact = None
            if item.persistent:
                fact = self._store(encoded.term, encoded.vector, item.export_name, source)
        except (HDCError, ValueError) as e:
            logger.warning(f"Skipping statement {item!r}: {e}")
            return LearnResult(False, item, error=e)

        if item.destination:
            self.scope.define(item.destination, encoded.entry)
        return LearnResult(True, item, fact=fact)

    def _store(self, term: Term, vector, name: str | None, source: str | None) -> Fact:
        if self.config.check_contradictions:
            conflict = self.store.find_contradiction(term)
            if conflict is not None:
                raise ContradictionError(
                    conflict.kind, conflict.message, conflict.fact.id, conflict.constraint.id
                )
        return self.store.add(term, vector, name=name, source=source)

    def learn_all(self, items: Iterable[Statement | GraphDef], source: str | None = None) -> list[LearnResult]:
        """Learn a batch; a failing statement does not stop the rest."""
        results = [self.learn(item, source=source) for item in items]
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.info(f"Learned {len(results) - failed}/{len(results)} statements ({failed} failed)")
        return results

    def define_graph(self, graph: GraphDef) -> None:
        self.encoder.define_graph(graph)

    def tell(self, term: Term, name: str | None = None, source: str | None = None) -> Fact:
        """Store a symbolic term directly, encoding it on the way in.

        Raises:
            ContradictionError: ``term`` conflicts with a declared constraint
        """
        vector = self.encoder.encode_term(term, self.scope)
        return self._store(term, vector, name, source)

    def fact(self, operator: str, *args: Any, name: str | None = None) -> LearnResult:
        """Shorthand for ``learn(Statement.of(operator, *args))``."""
        return self.learn(Statement.of(operator, *args, dest=name, export=name))

    def rule(self, antecedent: Term, consequent: Term, name: str | None = None) -> Fact:
        return self.tell(Term(IMPLIES, antecedent, consequent), name=name)

    def negate(self, term: Term) -> Fact:
        """Record an explicit negation of ``term``; negating ``Not X`` asserts X."""
        return self.tell(negate(term))

    def declare_transitive(self, relation: str) -> Fact:
        return self.tell(Term(TRANSITIVE, relation))

    def declare_symmetric(self, relation: str) -> Fact:
        return self.tell(Term(SYMMETRIC, relation))

    def declare_reflexive(self, relation: str) -> Fact:
        return self.tell(Term(REFLEXIVE, relation))

    def declare_contradictory(self, first: str, second: str) -> Fact:
        """``first A B`` and ``second A B`` may not both be learned."""
        return self.tell(Term(CONTRADICTS, first, second))

    def declare_exclusive(self, operator: str, value: str, other: str) -> Fact:
        """``operator X value`` and ``operator X other`` may not both be learned."""
        return self.tell(Term(EXCLUSIVE, operator, value, other))

    # =========================================================================
    # QUERYING
    # =========================================================================

    def _pattern(self, pattern: Term | Statement) -> Term:
        if isinstance(pattern, Statement):
            return self.encoder.encode_statement(pattern, self.scope).term
        return pattern

    def query(self, pattern: Term | Statement) -> QueryResult:
        return self.engine.query(self._pattern(pattern))

    def find_all(self, pattern: Term | Statement) -> list[dict[str, str]]:
        return self.engine.find_all(self._pattern(pattern))

    def prove(self, goal: Term | Statement, **overrides: Any) -> ProofResult:
        return self.prover.prove(self._pattern(goal), **overrides)

    # =========================================================================
    # PERSISTENCE
    # =========================================================================

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": SAVE_FORMAT_VERSION,
            "config": self.config.model_dump(mode="json"),
            **self.store.to_dict(),
        }

    def save(self, path: str | Path) -> Path:
        """Write facts and configuration as YAML (``.yaml``/``.yml``) or JSON."""
        path = Path(path)
        data = self.to_dict()
        with open(path, "w") as f:
            if path.suffix in (".yaml", ".yml"):
                yaml.safe_dump(data, f, sort_keys=False)
            else:
                json.dump(data, f, indent=2)
        logger.info(f"Saved {len(self.store)} facts to {path}")
        return path

    @classmethod
    def load(
        cls,
        path: str | Path,
        config: ReasoningConfig | None = None,
        graphs: Iterable[GraphDef] = (),
    ) -> "ReasoningSession":
        """Rebuild a session from a saved file.

        Vectors are not stored; every fact is re-encoded, so graph
        definitions used by saved facts must be passed in ``graphs``.

        Raises:
            ConfigError: unreadable or malformed file
        """
        path = Path(path)
        try:
            with open(path) as f:
                if path.suffix in (".yaml", ".yml"):
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read session file {path}: {e}") from e

        if not isinstance(data, dict) or "facts" not in data:
            raise ConfigError(f"{path} is not a saved session")

        if config is None:
            config = ReasoningConfig.create(**data.get("config", {}))
        session = cls(config)
        for graph in graphs:
            session.define_graph(graph)
        for entry in data["facts"]:
            term = term_from_dict(entry["term"])
            session.tell(term, name=entry.get("name"), source=entry.get("source"))
        logger.info(f"Loaded {len(session.store)} facts from {path}")
        return session

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        return {
            "algebra": self.algebra.describe(),
            "vocabulary": len(self.vocabulary),
            "graphs": sorted(self.encoder.graphs),
            "store": self.store.stats(),
        }
