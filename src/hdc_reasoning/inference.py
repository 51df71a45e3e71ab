"""
hdc_reasoning/inference.py - Backward chaining proof engine

Goal-driven search over the knowledge store's symbolic facts. Each goal is
tried, in order, by:

    1. explicit negation     a stored ``Not goal`` refutes it outright; a
                             solution binding a variable goal to a negated
                             instance is dropped
    2. direct lookup         a stored fact unifies with the goal
    3. relation properties   symmetric / reflexive / transitive chains,
                             driven by declared ``*Relation`` facts
    4. rule application      ``Implies A C`` with C unifying the goal
    5. inheritance           ``rel X V`` from ``isA X Y`` and ``rel Y V``

Compound goals decompose structurally: And needs every part, Or needs one,
Not succeeds on an explicit negation or, under the closed-world assumption,
when its inner goal cannot be proven and the inner search was not cut
off by the depth limit or the cycle guard.

Search is cycle-safe (a visited-goal fingerprint set is passed down each
branch), depth-limited, and bounded by a cooperative step/time budget.
Failure is reported, never raised: depth_limit, cycle and no_evidence are
distinct outcomes on the ProofResult.

Confidence policy:
    direct fact            1.0
    rule                   min(premises) * rule_confidence_decay
    transitive chain       transitive_decay ** (hops - 1)
    inheritance            inherited * rule_confidence_decay
    And / Or               min(parts) / the proven branch

Proof nodes live in an arena and refer to children by index.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from hdc_core.errors import ProofError, ProofFailure

from .config import ReasoningConfig
from .knowledge_base import FactKind, KnowledgeStore
from .terms import AND, NOT, OR, Atom, Term, fingerprint
from .unification import (
    Substitution,
    compose_substitutions,
    rename_apart,
    resolve_bindings,
    substitute,
    unify,
)

logger = logging.getLogger(__name__)


class ProofMethod(str, Enum):
    """How a proof node was established."""

    DIRECT = "direct"
    RULE = "rule"
    TRANSITIVE = "transitive"
    SYMMETRIC = "symmetric"
    REFLEXIVE = "reflexive"
    INHERITANCE = "inheritance"
    NEGATION = "negation"
    COMPOUND = "compound"
    FAILED = "failed"


@dataclass
class ProofNode:
    """One step of a derivation.

    ``fact_ids`` and ``rule_id`` reference the supporting store entries so
    the step can be re-checked without searching again.
    """

    goal: Term
    method: ProofMethod
    valid: bool
    confidence: float = 0.0
    children: tuple[int, ...] = ()
    fact_ids: tuple[int, ...] = ()
    rule_id: int | None = None
    reason: ProofFailure | None = None
    depth: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": repr(self.goal),
            "method": self.method.value,
            "valid": self.valid,
            "confidence": round(self.confidence, 4),
            "children": list(self.children),
            "facts": list(self.fact_ids),
            "rule": self.rule_id,
            "reason": self.reason.value if self.reason else None,
            "depth": self.depth,
        }

    def __repr__(self) -> str:
        mark = "✓" if self.valid else "✗"
        return f"[{mark}] {self.goal!r} ({self.method.value})"


class ProofArena:
    """Flat storage for proof nodes; children are indices into ``nodes``."""

    def __init__(self):
        self.nodes: list[ProofNode] = []

    def add(self, node: ProofNode) -> int:
        self.nodes.append(node)
        return len(self.nodes) - 1

    def __getitem__(self, index: int) -> ProofNode:
        return self.nodes[index]

    def __len__(self) -> int:
        return len(self.nodes)

    def compact(self, root: int) -> tuple["ProofArena", int]:
        """Copy only the nodes reachable from ``root`` into a new arena."""
        out = ProofArena()
        remap: dict[int, int] = {}

        def copy(index: int) -> int:
            if index in remap:
                return remap[index]
            node = self.nodes[index]
            children = tuple(copy(c) for c in node.children)
            new_index = out.add(ProofNode(
                goal=node.goal,
                method=node.method,
                valid=node.valid,
                confidence=node.confidence,
                children=children,
                fact_ids=node.fact_ids,
                rule_id=node.rule_id,
                reason=node.reason,
                depth=node.depth,
            ))
            remap[index] = new_index
            return new_index

        return out, copy(root)


@dataclass
class ProofResult:
    """Outcome of proving one goal."""

    goal: Term
    valid: bool
    confidence: float
    arena: ProofArena
    root: int
    reason: ProofFailure | None = None
    bindings: dict[str, str] = field(default_factory=dict)
    steps: int = 0

    @property
    def proof_tree(self) -> ProofNode:
        return self.arena[self.root]

    @property
    def method(self) -> ProofMethod:
        return self.proof_tree.method

    def children(self, node: ProofNode) -> list[ProofNode]:
        return [self.arena[i] for i in node.children]

    def raise_for_failure(self) -> None:
        """Raise ProofError if the goal was not proven."""
        if not self.valid:
            kind = self.reason or ProofFailure.NO_EVIDENCE
            raise ProofError(kind, f"Cannot prove {self.goal!r}: {kind.value}")

    def explain(self) -> str:
        """Indented rendering of the proof tree."""
        lines: list[str] = []

        def walk(index: int, indent: int) -> None:
            node = self.arena[index]
            mark = "✓" if node.valid else "✗"
            detail = node.method.value
            if node.fact_ids:
                detail += " " + " ".join(f"#{i}" for i in node.fact_ids)
            if node.rule_id is not None:
                detail += f" via rule #{node.rule_id}"
            if node.reason:
                detail += f" ({node.reason.value})"
            lines.append(f"{'  ' * indent}{mark} {node.goal!r} [{detail}, {node.confidence:.3f}]")
            for child in node.children:
                walk(child, indent + 1)

        walk(self.root, 0)
        return "\n".join(lines)

    def to_dict(self) -> dict[str, Any]:
        return {
            "goal": repr(self.goal),
            "valid": self.valid,
            "confidence": round(self.confidence, 4),
            "reason": self.reason.value if self.reason else None,
            "bindings": dict(self.bindings),
            "steps": self.steps,
            "root": self.root,
            "nodes": [n.to_dict() for n in self.arena.nodes],
        }

    def verify(self, store: KnowledgeStore) -> bool:
        """Re-check a valid proof against the store without searching."""
        if not self.valid:
            return False
        return _check_node(self.arena, self.root, store)


# =============================================================================
# SEARCH STATE
# =============================================================================


class _BudgetExhausted(Exception):
    """Internal: step or time budget ran out."""


@dataclass
class _Search:
    arena: ProofArena
    max_depth: int
    closed_world: bool
    max_steps: int
    deadline: float | None
    steps: int = 0
    renames: int = 0
    hit_depth: bool = False
    hit_cycle: bool = False
    hit_open_world: bool = False
    hit_negation: bool = False

    def tick(self) -> None:
        self.steps += 1
        if self.steps > self.max_steps:
            raise _BudgetExhausted(f"step budget {self.max_steps} exhausted")
        if self.deadline is not None and time.monotonic() > self.deadline:
            raise _BudgetExhausted("time budget exhausted")

    def fresh_suffix(self) -> str:
        self.renames += 1
        return f"_{self.renames}"


Solution = tuple[Substitution, int, float]


class ProofEngine:
    """Backward chaining over a KnowledgeStore.

    Example:
        engine = ProofEngine(store, config)
        result = engine.prove(Term("isA", "Tweety", "Animal"))
        print(result.valid, result.method, result.confidence)
        print(result.explain())
    """

    def __init__(self, store: KnowledgeStore, config: ReasoningConfig | None = None):
        self.store = store
        self.config = config or ReasoningConfig()

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def prove(
        self,
        goal: Term,
        *,
        max_depth: int | None = None,
        closed_world: bool | None = None,
        max_steps: int | None = None,
        timeout: float | None = None,
    ) -> ProofResult:
        """Try to prove ``goal``; never raises on failure.

        Args:
            goal: Goal term (may contain variables)
            max_depth: Override of config.max_proof_depth
            closed_world: Override of config.closed_world
            max_steps: Override of config.max_proof_steps
            timeout: Override of config.proof_timeout (seconds)

        Returns:
            ProofResult with validity, confidence, proof tree and reason
        """
        for result in self._run(goal, 1, max_depth, closed_world, max_steps, timeout):
            return result
        raise AssertionError("proof search produced no result")

    def prove_all(self, goal: Term, max_results: int = 100, **overrides: Any) -> list[ProofResult]:
        """All distinct valid proofs of ``goal`` (by bindings), up to ``max_results``."""
        results = list(self._run(goal, max_results, **overrides))
        return [r for r in results if r.valid]

    # =========================================================================
    # DRIVER
    # =========================================================================

    def _run(
        self,
        goal: Term,
        limit: int,
        max_depth: int | None = None,
        closed_world: bool | None = None,
        max_steps: int | None = None,
        timeout: float | None = None,
    ) -> Iterator[ProofResult]:
        cfg = self.config
        limit_timeout = cfg.proof_timeout if timeout is None else timeout
        s = _Search(
            arena=ProofArena(),
            max_depth=cfg.max_proof_depth if max_depth is None else max_depth,
            closed_world=cfg.closed_world if closed_world is None else closed_world,
            max_steps=cfg.max_proof_steps if max_steps is None else max_steps,
            deadline=time.monotonic() + limit_timeout if limit_timeout else None,
        )

        if goal.functor not in (AND, OR, NOT) and goal.is_ground():
            negation = self.store.negation_of(goal)
            if negation is not None:
                logger.debug(f"{goal!r} refuted by explicit negation #{negation.id}")
                root = s.arena.add(ProofNode(
                    goal=goal, method=ProofMethod.NEGATION, valid=False, confidence=1.0,
                    fact_ids=(negation.id,), reason=ProofFailure.EXPLICIT_NEGATION,
                ))
                yield ProofResult(goal, False, 0.0, s.arena, root,
                                  reason=ProofFailure.EXPLICIT_NEGATION, steps=s.steps)
                return

        seen: set[tuple] = set()
        produced = 0
        reason: ProofFailure | None = None
        try:
            for theta, index, conf in self._solve(goal, {}, 0, frozenset(), s):
                if conf < cfg.min_proof_confidence:
                    continue
                bindings = {
                    name: repr(value) for name, value in resolve_bindings(theta, goal.variables()).items()
                }
                key = tuple(sorted(bindings.items()))
                if key in seen:
                    continue
                seen.add(key)
                arena, root = s.arena.compact(index)
                logger.debug(f"Proved {goal!r} by {arena[root].method.value} (conf={conf:.3f})")
                yield ProofResult(goal, True, conf, arena, root, bindings=bindings, steps=s.steps)
                produced += 1
                if produced >= limit:
                    return
        except _BudgetExhausted as e:
            logger.warning(f"Proof of {goal!r} aborted: {e}")
            reason = ProofFailure.BUDGET_EXHAUSTED

        if produced:
            return

        if reason is None:
            reason = self._failure_reason(s)
        root = s.arena.add(ProofNode(goal=goal, method=ProofMethod.FAILED, valid=False, reason=reason))
        arena, root = s.arena.compact(root)
        logger.debug(f"Could not prove {goal!r}: {reason.value}")
        yield ProofResult(goal, False, 0.0, arena, root, reason=reason, steps=s.steps)

    @staticmethod
    def _failure_reason(s: _Search) -> ProofFailure:
        if s.hit_depth:
            return ProofFailure.DEPTH_LIMIT
        if s.hit_cycle:
            return ProofFailure.CYCLE
        if s.hit_negation:
            return ProofFailure.EXPLICIT_NEGATION
        if s.hit_open_world:
            return ProofFailure.OPEN_WORLD
        return ProofFailure.NO_EVIDENCE

    # =========================================================================
    # GOAL DISPATCH
    # =========================================================================

    def _solve(
        self, goal: Term, theta: Substitution, depth: int, visited: frozenset[str], s: _Search
    ) -> Iterator[Solution]:
        s.tick()
        goal = substitute(goal, theta)

        if depth > s.max_depth:
            s.hit_depth = True
            return

        fp = fingerprint(goal)
        if fp in visited:
            s.hit_cycle = True
            return
        visited = visited | {fp}

        if goal.functor == AND:
            yield from self._solve_and(goal, theta, depth, visited, s)
        elif goal.functor == OR:
            yield from self._solve_or(goal, theta, depth, visited, s)
        elif goal.functor == NOT and goal.arity == 1 and isinstance(goal.args[0], Term):
            yield from self._solve_not(goal, theta, depth, visited, s)
        else:
            yield from self._solve_atomic(goal, theta, depth, visited, s)

    def _solve_and(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        parts = [a for a in goal.args if isinstance(a, Term)]
        if len(parts) != goal.arity:
            return
        for t2, indices, confs in self._solve_all(parts, theta, depth, visited, s):
            conf = min(confs) if confs else 1.0
            node = s.arena.add(ProofNode(
                goal=substitute(goal, t2), method=ProofMethod.COMPOUND, valid=True,
                confidence=conf, children=tuple(indices), depth=depth,
            ))
            yield t2, node, conf

    def _solve_all(self, goals, theta, depth, visited, s) -> Iterator[tuple[Substitution, list[int], list[float]]]:
        if not goals:
            yield theta, [], []
            return
        first, *rest = goals
        for t1, index, conf in self._solve(first, theta, depth, visited, s):
            for t2, indices, confs in self._solve_all(rest, t1, depth, visited, s):
                yield t2, [index, *indices], [conf, *confs]

    def _solve_or(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        for part in goal.args:
            if not isinstance(part, Term):
                continue
            for t2, index, conf in self._solve(part, theta, depth, visited, s):
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.COMPOUND, valid=True,
                    confidence=conf, children=(index,), depth=depth,
                ))
                yield t2, node, conf

    def _solve_not(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        found = False
        for solution in self._solve_atomic(goal, theta, depth, visited, s):
            found = True
            yield solution
        if found:
            return

        if not s.closed_world:
            s.hit_open_world = True
            return

        # Negation as failure only holds if the inner search ran to completion.
        saved = (s.hit_depth, s.hit_cycle)
        s.hit_depth = s.hit_cycle = False
        proved = next(iter(self._solve(goal.args[0], theta, depth, visited, s)), None) is not None
        cut_off = s.hit_depth or s.hit_cycle
        s.hit_depth = s.hit_depth or saved[0]
        s.hit_cycle = s.hit_cycle or saved[1]
        if proved:
            return
        if cut_off:
            logger.debug(f"{goal!r} unresolved: inner search was cut off")
            return
        node = s.arena.add(ProofNode(
            goal=goal, method=ProofMethod.NEGATION, valid=True, confidence=1.0, depth=depth,
        ))
        yield theta, node, 1.0

    # =========================================================================
    # ATOMIC GOALS
    # =========================================================================

    def _solve_atomic(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        if goal.functor == NOT:
            yield from self._solve_evidence(goal, theta, depth, visited, s)
            return

        if goal.is_ground() and self.store.negation_of(goal) is not None:
            s.hit_negation = True
            return

        # A variable goal can bind to an explicitly negated instance.
        for t2, index, conf in self._solve_evidence(goal, theta, depth, visited, s):
            instance = substitute(goal, t2)
            if instance.is_ground() and self.store.negation_of(instance) is not None:
                logger.debug(f"Dropping {instance!r}: explicitly negated")
                s.hit_negation = True
                continue
            yield t2, index, conf

    def _solve_evidence(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        store = self.store
        method = ProofMethod.NEGATION if goal.functor == NOT else ProofMethod.DIRECT
        for fact, ft in store.lookup(goal):
            if fact.kind == FactKind.RULE:
                continue
            s.tick()
            node = s.arena.add(ProofNode(
                goal=fact.term, method=method, valid=True, confidence=1.0,
                fact_ids=(fact.id,), depth=depth,
            ))
            yield compose_substitutions(ft, theta), node, 1.0

        if goal.arity == 2 and goal.functor != NOT:
            yield from self._solve_properties(goal, theta, depth, s)

        yield from self._solve_rules(goal, theta, depth, visited, s)

        if self.config.inheritance and goal.arity == 2 and goal.functor not in (
            NOT, self.config.inheritance_relation
        ):
            yield from self._solve_inheritance(goal, theta, depth, visited, s)

    def _solve_properties(self, goal, theta, depth, s) -> Iterator[Solution]:
        store = self.store
        rel = goal.functor
        a, b = goal.args

        if store.is_symmetric(rel):
            for fact, ft in store.lookup(Term(rel, b, a)):
                if fact.kind != FactKind.FACT:
                    continue
                s.tick()
                t2 = compose_substitutions(ft, theta)
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.SYMMETRIC, valid=True,
                    confidence=1.0, fact_ids=(fact.id,), depth=depth,
                ))
                yield t2, node, 1.0

        if store.is_reflexive(rel):
            t2 = unify(a, b, theta)
            value = substitute(a, t2) if t2 is not None else None
            if isinstance(value, Atom) and store.knows_entity(value.value):
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.REFLEXIVE, valid=True,
                    confidence=1.0, depth=depth,
                ))
                yield t2, node, 1.0

        if store.is_transitive(rel):
            yield from self._solve_transitive(goal, theta, depth, s)

    def _edges(self, rel: str, reverse: bool) -> dict[str, list[tuple[str, int]]]:
        """Adjacency of a binary relation built from stored facts."""
        edges: dict[str, list[tuple[str, int]]] = {}
        symmetric = self.store.is_symmetric(rel)
        for fact in self.store.facts_for(rel, 2):
            if fact.kind != FactKind.FACT:
                continue
            x, y = fact.args
            if not (isinstance(x, Atom) and isinstance(y, Atom)):
                continue
            src, dst = (y.value, x.value) if reverse else (x.value, y.value)
            edges.setdefault(src, []).append((dst, fact.id))
            if symmetric:
                edges.setdefault(dst, []).append((src, fact.id))
        return edges

    def _solve_transitive(self, goal, theta, depth, s) -> Iterator[Solution]:
        rel = goal.functor
        a, b = goal.args
        if isinstance(a, Atom):
            start, target, reverse = a.value, b, False
        elif isinstance(b, Atom):
            start, target, reverse = b.value, a, True
        else:
            return

        edges = self._edges(rel, reverse)
        max_hops = s.max_depth - depth + 1
        decay = self.config.transitive_decay

        queue: deque[tuple[str, tuple[int, ...]]] = deque([(start, ())])
        reached = {start}
        while queue:
            current, path = queue.popleft()
            for nxt, fact_id in edges.get(current, []):
                if nxt in reached:
                    continue
                s.tick()
                chain = path + (fact_id,)
                if len(chain) > max_hops:
                    s.hit_depth = True
                    continue
                reached.add(nxt)
                queue.append((nxt, chain))
                # single hops are already covered by direct lookup
                if len(chain) < 2:
                    continue
                t2 = unify(target, Atom(nxt), theta)
                if t2 is None:
                    continue
                conf = decay ** (len(chain) - 1)
                ordered = tuple(reversed(chain)) if reverse else chain
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.TRANSITIVE, valid=True,
                    confidence=conf, fact_ids=ordered, depth=depth,
                ))
                yield t2, node, conf

    def _solve_rules(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        decay = self.config.rule_confidence_decay
        for rule in self.store.rules_for(goal):
            (antecedent, consequent), _ = rename_apart(
                [rule.antecedent, rule.consequent], s.fresh_suffix()
            )
            head_theta = unify(goal, consequent, theta)
            if head_theta is None:
                continue
            for t2, index, conf in self._solve(antecedent, head_theta, depth + 1, visited, s):
                conf = conf * decay
                if conf < self.config.min_proof_confidence:
                    continue
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.RULE, valid=True,
                    confidence=conf, children=(index,), rule_id=rule.fact_id, depth=depth,
                ))
                yield t2, node, conf

    def _ancestors(self, name: str, max_hops: int) -> Iterator[tuple[str, tuple[int, ...]]]:
        """Breadth-first ``isA`` parents of ``name`` with the supporting fact path."""
        edges = self._edges(self.config.inheritance_relation, reverse=False)
        queue: deque[tuple[str, tuple[int, ...]]] = deque([(name, ())])
        reached = {name}
        while queue:
            current, path = queue.popleft()
            if len(path) >= max_hops:
                continue
            for parent, fact_id in edges.get(current, []):
                if parent in reached:
                    continue
                reached.add(parent)
                chain = path + (fact_id,)
                queue.append((parent, chain))
                yield parent, chain

    def _solve_inheritance(self, goal, theta, depth, visited, s) -> Iterator[Solution]:
        subject, value = goal.args
        if not isinstance(subject, Atom):
            return
        decay = self.config.rule_confidence_decay
        for parent, path in self._ancestors(subject.value, s.max_depth - depth):
            s.tick()
            inherited = Term(goal.functor, parent, value)
            for t2, index, conf in self._solve(inherited, theta, depth + 1, visited, s):
                conf = conf * decay
                if conf < self.config.min_proof_confidence:
                    continue
                node = s.arena.add(ProofNode(
                    goal=substitute(goal, t2), method=ProofMethod.INHERITANCE, valid=True,
                    confidence=conf, children=(index,), fact_ids=path, depth=depth,
                ))
                yield t2, node, conf


# =============================================================================
# PROOF CHECKING
# =============================================================================


def _check_node(arena: ProofArena, index: int, store: KnowledgeStore) -> bool:
    node = arena[index]
    if not node.valid:
        return False
    if not all(_check_node(arena, c, store) for c in node.children):
        return False

    goal = node.goal
    try:
        facts = [store.get(i) for i in node.fact_ids]
    except IndexError:
        return False
    children = [arena[c] for c in node.children]

    if node.method in (ProofMethod.DIRECT, ProofMethod.NEGATION) and facts:
        return len(facts) == 1 and facts[0].term == goal
    if node.method == ProofMethod.NEGATION:
        # closed-world negation carries no stored evidence
        return not children
    if node.method == ProofMethod.SYMMETRIC:
        a, b = goal.args
        return (
            store.is_symmetric(goal.functor)
            and len(facts) == 1
            and facts[0].term == Term(goal.functor, b, a)
        )
    if node.method == ProofMethod.REFLEXIVE:
        return store.is_reflexive(goal.functor) and goal.args[0] == goal.args[1]
    if node.method == ProofMethod.TRANSITIVE:
        if not store.is_transitive(goal.functor):
            return False
        return _is_chain(facts, goal.functor, goal.args[0], goal.args[1], store)
    if node.method == ProofMethod.INHERITANCE:
        if len(children) != 1:
            return False
        inherited = children[0].goal
        parent = inherited.args[0]
        return (
            inherited.functor == goal.functor
            and inherited.args[1] == goal.args[1]
            and _is_chain(facts, facts[0].operator if facts else "", goal.args[0], parent, store)
        )
    if node.method == ProofMethod.RULE:
        if node.rule_id is None or len(children) != 1:
            return False
        rule_fact = store.get(node.rule_id)
        if rule_fact.kind != FactKind.RULE:
            return False
        antecedent, consequent = rule_fact.term.args
        theta = unify(consequent, goal)
        if theta is None:
            return False
        return unify(substitute(antecedent, theta), children[0].goal) is not None
    if node.method == ProofMethod.COMPOUND:
        if goal.functor == AND:
            return len(children) == goal.arity and all(
                unify(part, child.goal) is not None for part, child in zip(goal.args, children)
            )
        if goal.functor == OR:
            return len(children) == 1 and any(
                unify(part, children[0].goal) is not None for part in goal.args
            )
    return False


def _is_chain(facts, rel: str, start, end, store: KnowledgeStore) -> bool:
    if not facts:
        return False
    current = start
    symmetric = store.is_symmetric(rel)
    for fact in facts:
        if fact.operator != rel or fact.kind != FactKind.FACT:
            return False
        x, y = fact.args
        if x == current:
            current = y
        elif symmetric and y == current:
            current = x
        else:
            return False
    return current == end
