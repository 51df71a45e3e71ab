"""
hdc_reasoning/knowledge_base.py - Fact store and knowledge aggregate

The store keeps two views of what has been learned:

- The list of Facts, each with its symbolic term. This is the truth: exact
  enumeration and proof search read only this view.
- The knowledge aggregate, a bundle of every fact vector. It is derived,
  maintained incrementally on insertion, rebuildable on demand, and used
  only to accelerate approximate retrieval.

Facts are immutable. Revision is additive: a correction is a new fact, and
a retraction is an explicit ``Not`` fact.
"""
from __future__ import annotations

import logging
import warnings
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterator

from hdc_core.errors import CapacityWarning
from hdc_core.strategies import BundleAccumulator, VectorAlgebra

from .terms import (
    CONTRADICTS,
    EXCLUSIVE,
    IMPLIES,
    NOT,
    PROPERTY_FUNCTORS,
    REFLEXIVE,
    SYMMETRIC,
    TRANSITIVE,
    Atom,
    Term,
    term_to_dict,
)
from .unification import Substitution, match

logger = logging.getLogger(__name__)


class FactKind(str, Enum):
    """What a stored entry represents."""
    FACT = "fact"
    RULE = "rule"
    NEGATION = "negation"
    PROPERTY = "property"
    CONSTRAINT = "constraint"


@dataclass(frozen=True)
class Fact:
    """One learned statement."""
    id: int
    term: Term
    kind: FactKind
    vector: Any = field(compare=False, repr=False)
    name: str | None = None
    source: str | None = None

    @property
    def operator(self) -> str:
        return self.term.functor

    @property
    def args(self) -> tuple:
        return self.term.args

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "name": self.name,
            "source": self.source,
            "term": term_to_dict(self.term),
        }


@dataclass(frozen=True)
class Rule:
    """``Implies antecedent consequent`` with a reference to its fact."""
    fact_id: int
    antecedent: Term
    consequent: Term
    name: str | None = None

    def __repr__(self) -> str:
        return f"({self.antecedent!r}) => ({self.consequent!r})"


@dataclass(frozen=True)
class Contradiction:
    """A conflicting stored fact and the constraint that makes it conflict."""
    kind: str
    fact: Fact
    constraint: Fact
    message: str


def classify(term: Term) -> FactKind:
    if term.functor == IMPLIES and term.arity == 2 and all(isinstance(a, Term) for a in term.args):
        return FactKind.RULE
    if term.functor == NOT and term.arity == 1 and isinstance(term.args[0], Term):
        return FactKind.NEGATION
    if term.functor in PROPERTY_FUNCTORS and term.arity == 1 and isinstance(term.args[0], Atom):
        return FactKind.PROPERTY
    if term.functor == CONTRADICTS and term.arity == 2 and all(isinstance(a, Atom) for a in term.args):
        return FactKind.CONSTRAINT
    if term.functor == EXCLUSIVE and term.arity == 3 and all(isinstance(a, Atom) for a in term.args):
        return FactKind.CONSTRAINT
    return FactKind.FACT


class KnowledgeStore:
    """Facts, rules, negations and relation properties for one session.

    Example:
        store = KnowledgeStore(algebra)
        store.add(Term("isA", "Tweety", "Bird"), vector)
        for fact, theta in store.lookup(Term("isA", Var("x"), "Bird")):
            print(theta["x"])       # Tweety
    """

    def __init__(self, algebra: VectorAlgebra):
        self.algebra = algebra
        self._facts: list[Fact] = []
        self._by_key: dict[str, list[Fact]] = defaultdict(list)
        self._by_name: dict[str, Fact] = {}
        self._rules: dict[str, list[Rule]] = defaultdict(list)
        self._properties: dict[str, set[str]] = {TRANSITIVE: set(), SYMMETRIC: set(), REFLEXIVE: set()}
        self._entities: set[str] = set()
        # operator -> {conflicting operator: declaring fact}
        self._contradicts: dict[str, dict[str, Fact]] = defaultdict(dict)
        # operator -> [(value, exclusive value, declaring fact)]
        self._exclusive: dict[str, list[tuple[str, str, Fact]]] = defaultdict(list)

        self._accumulator: BundleAccumulator = algebra.start_bundle()
        self._aggregate: Any = None
        self._aggregate_stale = False
        self._capacity_warned = False

        self._stats = {
            "facts_added": 0,
            "rules_added": 0,
            "negations_added": 0,
            "properties_added": 0,
            "constraints_added": 0,
            "rebuilds": 0,
        }

    # =========================================================================
    # INSERTION
    # =========================================================================

    def add(self, term: Term, vector: Any, name: str | None = None, source: str | None = None) -> Fact:
        """Store a fact and fold its vector into the aggregate.

        Args:
            term: Symbolic form (authoritative)
            vector: Encoded vector of ``term``
            name: Optional external name (export name)
            source: Optional provenance label

        Returns:
            The new Fact
        """
        kind = classify(term)
        fact = Fact(id=len(self._facts), term=term, kind=kind, vector=vector, name=name, source=source)

        self._facts.append(fact)
        self._by_key[term.key].append(fact)
        if name:
            self._by_name[name] = fact

        if kind == FactKind.RULE:
            antecedent, consequent = term.args
            self._rules[consequent.key].append(Rule(fact.id, antecedent, consequent, name))
            self._stats["rules_added"] += 1
        elif kind == FactKind.NEGATION:
            self._stats["negations_added"] += 1
        elif kind == FactKind.PROPERTY:
            self._properties[term.functor].add(term.args[0].value)
            self._stats["properties_added"] += 1
        elif kind == FactKind.CONSTRAINT:
            self._add_constraint(fact)
        else:
            self._entities.update(a.value for a in term.args if isinstance(a, Atom))
            self._stats["facts_added"] += 1

        self._accumulator.add(vector)
        self._aggregate_stale = True
        self._check_capacity()

        logger.debug(f"Stored #{fact.id} [{kind.value}] {term!r}")
        return fact

    def _check_capacity(self) -> None:
        n = len(self._facts)
        capacity = self.algebra.capacity()
        if n > capacity and not self._capacity_warned:
            self._capacity_warned = True
            message = (
                f"Knowledge aggregate holds {n} facts, above the {self.algebra.name} "
                f"capacity estimate of {capacity}; approximate retrieval will degrade"
            )
            logger.warning(message)
            warnings.warn(message, CapacityWarning, stacklevel=3)

    # =========================================================================
    # CONSTRAINTS
    # =========================================================================

    def _add_constraint(self, fact: Fact) -> None:
        if fact.term.functor == CONTRADICTS:
            first, second = (a.value for a in fact.args)
            self._contradicts[first][second] = fact
            self._contradicts[second][first] = fact
        else:
            operator, value, other = (a.value for a in fact.args)
            self._exclusive[operator].append((value, other, fact))
        self._stats["constraints_added"] += 1

    def find_contradiction(self, term: Term) -> Contradiction | None:
        """Stored fact that ``term`` would contradict under a declared constraint.

        ``contradictsSameArgs p q`` rejects ``p A B`` when ``q A B`` is stored.
        ``mutuallyExclusive p V W`` rejects ``p X V`` when ``p X W`` is stored.
        Only the first two arguments are compared.
        """
        if classify(term) != FactKind.FACT or term.arity < 2:
            return None
        head = term.args[:2]

        for other, constraint in self._contradicts.get(term.functor, {}).items():
            for fact in self._by_key.get(f"{other}/{term.arity}", []):
                if fact.kind == FactKind.FACT and fact.args[:2] == head:
                    return Contradiction(
                        kind=CONTRADICTS,
                        fact=fact,
                        constraint=constraint,
                        message=f"{term!r} contradicts {fact.term!r} ({constraint.term!r})",
                    )

        subject, value = head
        if not isinstance(value, Atom):
            return None
        for first, second, constraint in self._exclusive.get(term.functor, []):
            if value.value == first:
                excluded = second
            elif value.value == second:
                excluded = first
            else:
                continue
            for fact in self._by_key.get(term.key, []):
                if fact.kind == FactKind.FACT and fact.args[:2] == (subject, Atom(excluded)):
                    return Contradiction(
                        kind=EXCLUSIVE,
                        fact=fact,
                        constraint=constraint,
                        message=f"{subject!r} cannot be both {value!r} and {excluded} ({constraint.term!r})",
                    )
        return None

    # =========================================================================
    # AGGREGATE
    # =========================================================================

    @property
    def aggregate(self) -> Any:
        """Bundle of every fact vector (None while empty)."""
        if self._aggregate_stale:
            self._aggregate = self._accumulator.result()
            self._aggregate_stale = False
        return self._aggregate

    def rebuild(self) -> Any:
        """Recompute the aggregate from the fact list."""
        acc = self.algebra.start_bundle()
        for fact in self._facts:
            acc.add(fact.vector)
        self._accumulator = acc
        self._aggregate = acc.result()
        self._aggregate_stale = False
        self._stats["rebuilds"] += 1
        logger.info(f"Rebuilt knowledge aggregate from {len(self._facts)} facts")
        return self._aggregate

    def verify_aggregate(self) -> bool:
        """True if the incrementally maintained aggregate matches a fresh rebuild."""
        current = self.aggregate
        acc = self.algebra.start_bundle()
        for fact in self._facts:
            acc.add(fact.vector)
        rebuilt = acc.result()
        if current is None or rebuilt is None:
            return current is None and rebuilt is None
        return self.algebra.equals(current, rebuilt)

    def saturation(self) -> float:
        return self.algebra.saturation(len(self._facts))

    # =========================================================================
    # RETRIEVAL
    # =========================================================================

    def __len__(self) -> int:
        return len(self._facts)

    def __iter__(self) -> Iterator[Fact]:
        return iter(self._facts)

    @property
    def facts(self) -> tuple[Fact, ...]:
        return tuple(self._facts)

    def get(self, fact_id: int) -> Fact:
        return self._facts[fact_id]

    def by_name(self, name: str) -> Fact | None:
        return self._by_name.get(name)

    def facts_for(self, functor: str, arity: int) -> list[Fact]:
        """Facts with this operator and arity, in insertion order."""
        return list(self._by_key.get(f"{functor}/{arity}", []))

    def lookup(self, pattern: Term) -> Iterator[tuple[Fact, Substitution]]:
        """Stored facts matching ``pattern``, with the bindings of its variables."""
        for fact in self._by_key.get(pattern.key, []):
            theta = match(pattern, fact.term)
            if theta is not None:
                yield fact, theta

    def contains(self, term: Term) -> Fact | None:
        for fact in self._by_key.get(term.key, []):
            if fact.term == term:
                return fact
        return None

    def negation_of(self, term: Term) -> Fact | None:
        """Explicit ``Not`` fact for a ground term, if stored."""
        return self.contains(Term(NOT, term))

    def rules_for(self, goal: Term) -> list[Rule]:
        """Rules whose consequent has the goal's operator and arity."""
        return list(self._rules.get(goal.key, []))

    @property
    def rules(self) -> list[Rule]:
        return [r for rules in self._rules.values() for r in rules]

    def is_transitive(self, relation: str) -> bool:
        return relation in self._properties[TRANSITIVE]

    def is_symmetric(self, relation: str) -> bool:
        return relation in self._properties[SYMMETRIC]

    def is_reflexive(self, relation: str) -> bool:
        return relation in self._properties[REFLEXIVE]

    def knows_entity(self, name: str) -> bool:
        return name in self._entities

    # =========================================================================
    # INTROSPECTION
    # =========================================================================

    def stats(self) -> dict[str, Any]:
        return {
            **self._stats,
            "total": len(self._facts),
            "capacity": self.algebra.capacity(),
            "saturation": round(self.saturation(), 4),
            "transitive": sorted(self._properties[TRANSITIVE]),
            "symmetric": sorted(self._properties[SYMMETRIC]),
            "reflexive": sorted(self._properties[REFLEXIVE]),
        }

    def to_dict(self) -> dict[str, Any]:
        """Export facts (symbolic form only; vectors are re-derivable)."""
        return {
            "strategy": self.algebra.name,
            "dimensions": self.algebra.dimensions,
            "facts": [f.to_dict() for f in self._facts],
        }
