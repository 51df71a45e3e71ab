"""
hdc_reasoning/query.py - Hole-filling queries over the knowledge aggregate

Two retrieval modes:

    query(pattern)      approximate: unbind the known part of the pattern
                        from the aggregate and decode each hole by
                        nearest-neighbour search over the vocabulary
    find_all(pattern)   exact: scan stored facts, every match in insertion
                        order, no confidence

Algebraic decode for one hole at position p:

    partial = bind(Op, tag(P_i, known_i), ...)
    raw     = untag(unbind(aggregate, partial), P_p)
    ranked  = top_k_similar(raw, vocabulary)

With several holes the residue still carries every unknown tag at once, so
holes are decoded jointly: each combination of vocabulary values for all but
the last hole is unbound in turn and the last hole is scored on what remains.

Decoded candidates are validated against the symbolic store (or the proof
engine) before being returned; when nothing validates, the query falls back
to exact enumeration and then to proof search.
"""
from __future__ import annotations

import itertools
import logging
import math
from dataclasses import dataclass, field
from typing import Any

from hdc_core.errors import QueryError, QueryFailure
from hdc_core.strategies import VectorAlgebra

from .config import ReasoningConfig
from .encoder import FactEncoder
from .inference import ProofEngine
from .knowledge_base import FactKind, KnowledgeStore
from .positions import PositionRegistry
from .terms import Atom, Term, Var
from .unification import resolve_bindings, substitute
from .vocabulary import Vocabulary

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    """One ranked value for a hole."""
    value: str
    similarity: float


@dataclass
class HoleBinding:
    """Decoded value of one hole with its runner-up alternatives."""
    name: str
    value: str
    similarity: float
    level: str = "strong"
    alternatives: list[Candidate] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "value": self.value,
            "similarity": round(self.similarity, 4),
            "level": self.level,
            "alternatives": [
                {"value": c.value, "similarity": round(c.similarity, 4)} for c in self.alternatives
            ],
        }


@dataclass
class QueryResult:
    """Answer to a hole-containing pattern."""
    pattern: Term
    success: bool
    bindings: dict[str, HoleBinding] = field(default_factory=dict)
    confidence: float = 0.0
    method: str = "none"
    reason: QueryFailure | None = None
    ambiguous: bool = False
    message: str = ""

    def values(self) -> dict[str, str]:
        """Plain ``{hole: value}`` view of the bindings."""
        return {name: b.value for name, b in self.bindings.items()}

    def raise_for_failure(self) -> None:
        """Raise QueryError if the query did not succeed."""
        if not self.success:
            kind = self.reason or QueryFailure.NO_MATCH
            raise QueryError(kind, self.message or f"No answer for {self.pattern!r}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": repr(self.pattern),
            "success": self.success,
            "method": self.method,
            "confidence": round(self.confidence, 4),
            "ambiguous": self.ambiguous,
            "reason": self.reason.value if self.reason else None,
            "bindings": {name: b.to_dict() for name, b in self.bindings.items()},
        }


class QueryEngine:
    """Answers patterns with holes.

    Example:
        engine = QueryEngine(algebra, vocabulary, positions, encoder, store, prover, config)
        result = engine.query(Term("sell", Var("who"), "Bob", "Car", Var("price")))
        result.values()     # {"who": "Alice", "price": "100"}
    """

    def __init__(
        self,
        algebra: VectorAlgebra,
        vocabulary: Vocabulary,
        positions: PositionRegistry,
        encoder: FactEncoder,
        store: KnowledgeStore,
        prover: ProofEngine,
        config: ReasoningConfig | None = None,
    ):
        self.algebra = algebra
        self.vocabulary = vocabulary
        self.positions = positions
        self.encoder = encoder
        self.store = store
        self.prover = prover
        self.config = config or ReasoningConfig()

    # =========================================================================
    # EXACT ENUMERATION
    # =========================================================================

    def find_all(self, pattern: Term) -> list[dict[str, str]]:
        """Every stored fact matching ``pattern``, as binding maps in insertion order."""
        names = pattern.variables()
        results = []
        for fact, theta in self.store.lookup(pattern):
            if fact.kind == FactKind.RULE:
                continue
            results.append({name: repr(v) for name, v in resolve_bindings(theta, names).items()})
        return results

    # =========================================================================
    # APPROXIMATE QUERY
    # =========================================================================

    def query(self, pattern: Term) -> QueryResult:
        """Fill the holes of ``pattern``; failure is reported, not raised."""
        holes = self._holes(pattern)
        if not holes:
            return self._check_ground(pattern)

        if len(self.store) == 0:
            return self._fail(pattern, QueryFailure.NO_MATCH, "Knowledge store is empty")

        if pattern.functor not in self.vocabulary:
            return self._fail(pattern, QueryFailure.NO_MATCH, f"Unknown operator {pattern.functor!r}")

        known = []
        for position, arg in enumerate(pattern.args, start=1):
            if isinstance(arg, Var):
                continue
            if isinstance(arg, Atom) and arg.value not in self.vocabulary:
                return self._fail(pattern, QueryFailure.NO_MATCH, f"Unknown atom {arg.value!r}")
            known.append(self.positions.tag(position, self.encoder.encode_term(arg)))

        candidates = self.vocabulary.candidates()
        if not candidates:
            return self._fail(pattern, QueryFailure.NO_MATCH, "Vocabulary has no candidate atoms")

        partial = self.algebra.bind_all(self.vocabulary.get(pattern.functor), *known)
        residue = self.algebra.unbind(self.store.aggregate, partial)

        if len(holes) == 1:
            proposals = self._decode_single(residue, holes[0], candidates)
        else:
            proposals = self._decode_joint(residue, holes, candidates)

        floor = self.algebra.thresholds.weak
        accepted = [p for p in proposals if p[0] >= floor]

        for score, assignment in accepted:
            if not self.config.validate_candidates or self._validates(pattern, assignment):
                return self._algebraic_result(pattern, residue, holes, assignment, candidates)

        if self.config.symbolic_fallback:
            fallback = self._symbolic(pattern, holes)
            if fallback is not None:
                return fallback

        if proposals and not accepted:
            best = proposals[0][0]
            return self._fail(
                pattern, QueryFailure.BELOW_THRESHOLD,
                f"Best candidate similarity {best:.3f} below floor {floor:.3f}",
            )
        return self._fail(pattern, QueryFailure.NO_MATCH, f"No candidate for {pattern!r} validated")

    # =========================================================================
    # DECODING
    # =========================================================================

    @staticmethod
    def _holes(pattern: Term) -> list[tuple[str, int]]:
        """(name, position) of each distinct hole, first occurrence wins."""
        seen: dict[str, int] = {}
        for position, arg in enumerate(pattern.args, start=1):
            if isinstance(arg, Var) and arg.name not in seen:
                seen[arg.name] = position
        return list(seen.items())

    def _raw(self, residue: Any, position: int, assignment: dict[str, str], holes) -> Any:
        """Residue for ``position`` once the other holes' assigned values are removed."""
        for name, pos in holes:
            if pos == position or name not in assignment:
                continue
            tagged = self.positions.tag(pos, self.vocabulary.get(assignment[name]))
            residue = self.algebra.unbind(residue, tagged)
        return self.positions.untag(position, residue)

    def _decode_single(self, residue, hole, candidates) -> list[tuple[float, dict[str, str]]]:
        name, position = hole
        raw = self.positions.untag(position, residue)
        ranked = self.algebra.top_k_similar(raw, candidates, k=self.config.query_top_k)
        return [(score, {name: value}) for value, score in ranked]

    def _decode_joint(self, residue, holes, candidates) -> list[tuple[float, dict[str, str]]]:
        *leading, (last_name, last_pos) = holes
        pools = self._candidate_pools(residue, leading, candidates)

        scored: list[tuple[float, dict[str, str]]] = []
        for values in itertools.product(*pools):
            assignment = {name: v for (name, _), v in zip(leading, values)}
            raw = self._raw(residue, last_pos, assignment, holes)
            for value, score in self.algebra.top_k_similar(raw, candidates, k=self.config.query_top_k):
                scored.append((score, {**assignment, last_name: value}))

        scored.sort(key=lambda p: (-p[0], tuple(p[1].values())))
        logger.debug(f"Joint decode over {len(scored)} proposals for {len(holes)} holes")
        return scored[: self.config.query_top_k * len(holes)]

    def _candidate_pools(self, residue, leading, candidates) -> list[list[str]]:
        """Values to enumerate for each leading hole.

        Every combination scores the whole vocabulary for the last hole, so
        the cap bounds combinations times vocabulary size.
        """
        names = sorted(candidates)
        cap = self.config.max_joint_combinations
        combinations = max(1, cap // len(names))
        if len(names) ** len(leading) <= combinations:
            return [names for _ in leading]

        per_hole = max(1, int(math.floor(combinations ** (1.0 / len(leading)) + 1e-9)))
        logger.debug(f"Joint decode capped at {per_hole} values per hole")
        pools = []
        for _, position in leading:
            raw = self.positions.untag(position, residue)
            ranked = self.algebra.top_k_similar(raw, candidates, k=per_hole)
            pools.append([value for value, _ in ranked])
        return pools

    # =========================================================================
    # RESULTS
    # =========================================================================

    def _validates(self, pattern: Term, assignment: dict[str, str]) -> bool:
        ground = substitute(pattern, {name: Atom(v) for name, v in assignment.items()})
        if not ground.is_ground():
            return False
        if self.store.contains(ground) is not None:
            return True
        return self.prover.prove(ground).valid

    def _algebraic_result(self, pattern, residue, holes, assignment, candidates) -> QueryResult:
        thresholds = self.algebra.thresholds
        bindings: dict[str, HoleBinding] = {}
        ambiguous = False

        for name, position in holes:
            raw = self._raw(residue, position, assignment, holes)
            value = assignment[name]
            similarity = self.algebra.score_candidate(raw, candidates[value])
            ranked = self.algebra.top_k_similar(raw, candidates, k=self.config.query_top_k)
            alternatives = [Candidate(v, s) for v, s in ranked if v != value]
            if alternatives and alternatives[0].similarity >= similarity - thresholds.ambiguity_margin:
                ambiguous = True
            bindings[name] = HoleBinding(
                name=name,
                value=value,
                similarity=similarity,
                level=thresholds.level(similarity),
                alternatives=alternatives,
            )

        confidence = sum(b.similarity for b in bindings.values()) / len(bindings)
        confidence *= max(0.0, 1.0 - self.config.extra_hole_penalty * (len(holes) - 1))
        if ambiguous:
            confidence *= 1.0 - self.config.ambiguity_penalty

        if ambiguous and not self.config.validate_candidates:
            return QueryResult(
                pattern, False, bindings, confidence, method="algebraic",
                reason=QueryFailure.AMBIGUOUS, ambiguous=True,
                message="Runner-up candidate within the ambiguity margin",
            )

        logger.debug(f"Query {pattern!r} -> {assignment} (conf={confidence:.3f})")
        return QueryResult(pattern, True, bindings, confidence, method="algebraic", ambiguous=ambiguous)

    def _symbolic(self, pattern: Term, holes) -> QueryResult | None:
        matches = self.find_all(pattern)
        if matches:
            return self._exact_result(pattern, holes, matches[0], matches[1:], 1.0, "symbolic")

        proof = self.prover.prove(pattern)
        if proof.valid and all(name in proof.bindings for name, _ in holes):
            return self._exact_result(pattern, holes, proof.bindings, [], proof.confidence, "proof")
        return None

    def _exact_result(self, pattern, holes, chosen, others, confidence, method) -> QueryResult:
        bindings = {}
        for name, _ in holes:
            alternatives = []
            for other in others:
                value = other[name]
                if value != chosen[name] and all(a.value != value for a in alternatives):
                    alternatives.append(Candidate(value, 1.0))
            bindings[name] = HoleBinding(
                name=name, value=chosen[name], similarity=1.0, alternatives=alternatives,
            )
        logger.debug(f"Query {pattern!r} answered by {method} search")
        return QueryResult(pattern, True, bindings, confidence, method=method)

    def _check_ground(self, pattern: Term) -> QueryResult:
        if self.store.contains(pattern) is not None:
            return QueryResult(pattern, True, confidence=1.0, method="direct")
        proof = self.prover.prove(pattern)
        if proof.valid:
            return QueryResult(pattern, True, confidence=proof.confidence, method="proof")
        return self._fail(pattern, QueryFailure.NO_MATCH, f"{pattern!r} is not known")

    @staticmethod
    def _fail(pattern: Term, reason: QueryFailure, message: str) -> QueryResult:
        logger.debug(f"Query {pattern!r} failed: {message}")
        return QueryResult(pattern, False, reason=reason, message=message)
