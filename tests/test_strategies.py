"""
tests/test_strategies.py - Vector algebra contract tests

Every strategy is run through the same contract; strategy-specific numeric
behaviour is tested per class below.

Key Properties Tested:
    - create_from_name is deterministic across instances
    - similarity(v, v) == 1.0 and similarity is symmetric
    - unbind recovers bound components (exactly, or within tolerance)
    - incremental bundling equals a full rebuild
    - sizing errors surface as ConfigError
"""

import math

import pytest
import torch

from hdc_core import (
    ConfigError,
    DenseBinaryAlgebra,
    ExactAlgebra,
    MetricAffineAlgebra,
    SparsePolynomialAlgebra,
    UnboundReferenceError,
    VectorAlgebra,
    available_strategies,
    create_algebra,
    register_strategy,
)
from hdc_core import strategies
from hdc_core.strategies.metric_affine import BASELINE as METRIC_BASELINE
from hdc_core.vectors import rotl64, rotr64, seed_bytes, seed_words

from .conftest import TEST_SIZES

# =============================================================================
# CONTRACT
# =============================================================================


class TestContract:
    """Properties every strategy must satisfy."""

    def test_create_from_name_deterministic(self, algebra):
        other = create_algebra(strategy=algebra.name, dimensions=algebra.dimensions)
        v1 = algebra.create_from_name("Alice")
        v2 = other.create_from_name("Alice")
        assert algebra.equals(v1, v2), "Same name must give the same vector in a new instance"
        assert algebra.equals(v1, algebra.create_from_name("Alice"))

    def test_scope_changes_vector(self, algebra):
        a = algebra.create_from_name("Alice", scope="one")
        b = algebra.create_from_name("Alice", scope="two")
        assert not algebra.equals(a, b)

    def test_self_similarity(self, algebra):
        v = algebra.create_from_name("Alice")
        assert algebra.similarity(v, v) == 1.0

    def test_similarity_symmetric(self, algebra):
        a = algebra.create_from_name("Alice")
        b = algebra.create_from_name("Bob")
        ab = algebra.bind(a, b)
        assert algebra.similarity(a, b) == algebra.similarity(b, a)
        assert algebra.similarity(ab, a) == algebra.similarity(a, ab)

    def test_similarity_in_unit_range(self, algebra):
        a = algebra.create_from_name("Alice")
        b = algebra.create_from_name("Bob")
        sim = algebra.similarity(a, b)
        assert 0.0 <= sim <= 1.0

    def test_unrelated_near_baseline(self, algebra):
        a = algebra.create_from_name("Alice")
        b = algebra.create_from_name("Bob")
        sim = algebra.similarity(a, b)
        assert abs(sim - algebra.baseline) < 0.05, (
            f"Unrelated atoms should sit near baseline {algebra.baseline}, got {sim}"
        )

    def test_unknown_atom_raises(self, algebra):
        with pytest.raises(UnboundReferenceError):
            algebra.atom("NeverCreated")

    def test_atom_after_creation(self, algebra):
        v = algebra.create_from_name("Alice")
        assert algebra.has_atom("Alice")
        assert algebra.equals(algebra.atom("Alice"), v)

    def test_top_k_finds_exact_match(self, algebra):
        names = ["Alice", "Bob", "Carol", "Dave"]
        candidates = {n: algebra.create_from_name(n) for n in names}
        ranked = algebra.top_k_similar(candidates["Carol"], candidates, k=2)
        assert ranked[0] == ("Carol", 1.0)
        assert len(ranked) == 2

    def test_top_k_deterministic(self, algebra):
        names = ["Alice", "Bob", "Carol", "Dave"]
        candidates = {n: algebra.create_from_name(n) for n in names}
        query = algebra.create_from_name("Query")
        first = algebra.top_k_similar(query, candidates, k=4)
        second = algebra.top_k_similar(query, list(reversed(list(candidates.items()))), k=4)
        assert first == second

    def test_incremental_bundle_matches_rebuild(self, algebra):
        vectors = [
            algebra.bind(algebra.create_from_name(f"f{i}"), algebra.create_from_name(f"g{i}"))
            for i in range(6)
        ]
        acc = algebra.start_bundle()
        for v in vectors:
            acc.add(v)
        assert algebra.equals(acc.result(), algebra.bundle(vectors))

    def test_bundle_rejects_empty(self, algebra):
        with pytest.raises(ValueError):
            algebra.bundle([])

    def test_bundle_member_above_baseline(self, algebra):
        vectors = [algebra.create_from_name(n) for n in ("a", "b", "c")]
        agg = algebra.bundle(vectors)
        for v in vectors:
            assert algebra.similarity(agg, v) > algebra.baseline

    def test_position_tag_roundtrip(self, algebra):
        marker = algebra.create_from_name("__Pos2__")
        value = algebra.create_from_name("Mary")
        tagged = algebra.tag_position(marker, value, 2)
        recovered = algebra.untag_position(tagged, marker, 2)
        if isinstance(algebra, SparsePolynomialAlgebra):
            assert algebra.containment(value, recovered) > 0.0
        else:
            assert algebra.equals(recovered, value)

    def test_capacity_positive(self, algebra):
        assert algebra.capacity() >= 1
        assert algebra.saturation(0) == 0.0

    def test_describe(self, algebra):
        info = algebra.describe()
        assert info["strategy"] == algebra.name
        assert info["dimensions"] == TEST_SIZES[algebra.name]


# =============================================================================
# UNBINDING
# =============================================================================


@pytest.mark.parametrize("strategy", ["dense-binary", "metric-affine", "exact"])
def test_unbind_recovers_exactly(strategy):
    """unbind(bind(a, b), b) == a for the exact-recovery strategies."""
    algebra = create_algebra(strategy=strategy, dimensions=TEST_SIZES[strategy])
    a = algebra.create_from_name("role")
    b = algebra.create_from_name("filler")
    recovered = algebra.unbind(algebra.bind(a, b), b)
    assert algebra.equals(recovered, a)
    assert algebra.similarity(recovered, a) == 1.0


def test_sparse_unbind_within_tolerance():
    """Every sampled product exponent cancels back to an element of a."""
    algebra = create_algebra(strategy="sparse-polynomial", dimensions=8)
    a = algebra.create_from_name("role")
    b = algebra.create_from_name("filler")
    bound = algebra.bind(a, b)
    recovered = algebra.unbind(bound, b)
    assert all(any((t ^ y) in a for y in b) for t in bound)
    assert algebra.containment(a, recovered) >= 1 / algebra.k


# =============================================================================
# SIZING AND REGISTRY
# =============================================================================


class TestSizing:
    """Invalid sizing fails at construction with ConfigError."""

    @pytest.mark.parametrize("strategy,dimensions", [
        ("dense-binary", 1000),
        ("dense-binary", 128),
        ("dense-binary", 262144),
        ("metric-affine", 4),
        ("sparse-polynomial", 0),
        ("sparse-polynomial", 65),
        ("exact", 1),
        ("exact", 65),
    ])
    def test_out_of_range(self, strategy, dimensions):
        with pytest.raises(ConfigError):
            create_algebra(strategy=strategy, dimensions=dimensions)

    def test_non_integer_dimensions(self):
        with pytest.raises(ConfigError):
            DenseBinaryAlgebra(dimensions=True)

    def test_unknown_strategy(self):
        with pytest.raises(ConfigError, match="Unknown strategy"):
            create_algebra(strategy="quantum")

    def test_invalid_threshold_override(self):
        with pytest.raises(ConfigError):
            create_algebra(strategy="dense-binary", dimensions=4096, thresholds={"strong": 0.1})

    def test_threshold_override_applied(self):
        algebra = create_algebra(strategy="dense-binary", dimensions=4096, thresholds={"strong": 0.9})
        assert algebra.thresholds.strong == 0.9
        assert algebra.thresholds.good == pytest.approx(0.65)

    def test_defaults(self):
        assert create_algebra().dimensions == 16384
        assert create_algebra(strategy="exact").dimensions == 32


class TestRegistry:
    def test_available(self):
        assert set(available_strategies()) >= {
            "dense-binary", "sparse-polynomial", "metric-affine", "exact",
        }

    def test_register_rejects_non_algebra(self):
        with pytest.raises(ConfigError):
            register_strategy("bogus", dict)

    def test_register_custom(self, monkeypatch):
        class WideDense(DenseBinaryAlgebra):
            name = "wide-dense"
            default_dimensions = 8192

        shared = strategies._STRATEGIES
        monkeypatch.setattr(strategies, "_STRATEGIES", dict(shared))

        register_strategy(WideDense.name, WideDense)
        algebra = create_algebra(strategy="wide-dense")
        assert isinstance(algebra, VectorAlgebra)
        assert algebra.dimensions == 8192
        assert "wide-dense" not in shared

    def test_instances_are_independent(self):
        first = create_algebra(strategy="exact")
        second = create_algebra(strategy="exact")
        first.create_from_name("Alice")
        assert not second.has_atom("Alice")


# =============================================================================
# STRATEGY SPECIFICS
# =============================================================================


class TestDenseBinary:
    def test_bundle_of_three_above_baseline(self, dense):
        """Members of a 3-way majority bundle agree on ~75% of bits."""
        facts = [
            dense.bind_all(dense.create_from_name(op), dense.create_from_name(x))
            for op, x in [("likes", "tea"), ("owns", "car"), ("sees", "moon")]
        ]
        aggregate = dense.bundle(facts)
        for fact in facts:
            sim = dense.similarity(aggregate, fact)
            assert sim > 0.7, f"Bundle member similarity should be ~0.75, got {sim}"
            assert sim - dense.baseline > 0.15

    def test_expected_member_similarity(self):
        assert DenseBinaryAlgebra.expected_member_similarity(1) == 1.0
        assert DenseBinaryAlgebra.expected_member_similarity(2) == 0.75
        assert DenseBinaryAlgebra.expected_member_similarity(3) == 0.75
        assert DenseBinaryAlgebra.expected_member_similarity(5) == pytest.approx(0.6875)

    def test_two_way_tie_break(self, dense):
        a = dense.create_from_name("a")
        b = dense.create_from_name("b")
        agg = dense.bundle([a, b])
        assert abs(dense.similarity(agg, a) - 0.75) < 0.03

    def test_thresholds(self, dense):
        t = dense.thresholds
        assert (t.baseline, t.strong, t.good, t.weak) == pytest.approx((0.5, 0.8, 0.65, 0.55))
        assert t.level(0.9) == "strong"
        assert t.level(0.7) == "good"
        assert t.level(0.6) == "weak"
        assert t.level(0.5) == "failed"

    def test_capacity(self, dense):
        assert dense.capacity() == int(2 * 4096 / (math.pi * 36))


class TestMetricAffine:
    def test_baseline_bands(self):
        algebra = MetricAffineAlgebra(dimensions=512)
        b = METRIC_BASELINE
        assert b == pytest.approx(0.6654, abs=1e-3)
        assert algebra.thresholds.strong == pytest.approx(b + 0.6 * (1 - b))
        assert algebra.thresholds.weak == pytest.approx(b + 0.1 * (1 - b))

    def test_mean_bundle_rounds_half_up(self):
        algebra = MetricAffineAlgebra(dimensions=8)
        a = torch.tensor([0, 1, 2, 255, 10, 10, 0, 0], dtype=torch.uint8)
        b = torch.tensor([1, 2, 2, 0, 11, 10, 0, 1], dtype=torch.uint8)
        mean = algebra.bundle([a, b])
        assert mean.tolist() == [1, 2, 2, 128, 11, 10, 0, 1]


class TestSparsePolynomial:
    @pytest.fixture
    def sparse(self):
        return SparsePolynomialAlgebra(dimensions=8)

    def test_atoms_have_k_exponents(self, sparse):
        assert len(sparse.create_from_name("x")) == 8

    def test_bind_sampled_to_k(self, sparse):
        a = sparse.create_from_name("a")
        b = sparse.create_from_name("b")
        assert len(sparse.bind(a, b)) == 8
        assert len(sparse.bind_full(a, b)) == 64

    def test_bundle_limit(self, sparse):
        vectors = [sparse.create_from_name(f"v{i}") for i in range(100)]
        agg = sparse.bundle(vectors)
        assert len(agg) == sparse.bundle_limit

    def test_containment(self, sparse):
        a = sparse.create_from_name("a")
        b = sparse.create_from_name("b")
        union = sparse.bundle([a, b])
        assert sparse.containment(a, union) == 1.0
        assert sparse.similarity(frozenset(), frozenset()) == 1.0

    def test_rotation_inverse(self):
        x = 0x0123456789ABCDEF
        for r in (1, 7, 63):
            assert rotr64(rotl64(x, r), r) == x


class TestExact:
    def test_session_local_indices(self):
        first = ExactAlgebra()
        second = ExactAlgebra()
        first.create_from_name("x")
        second.create_from_name("y")
        assert first.index_of("x") == 0
        assert second.index_of("y") == 0
        with pytest.raises(UnboundReferenceError):
            second.index_of("x")

    def test_quotient_independent_of_bind(self):
        algebra = ExactAlgebra()
        composite = frozenset({0b0111, 0b1010, 0b1100})
        key = frozenset({0b0010})
        assert algebra.unbind(composite, key) == frozenset({0b0101, 0b1000})

    def test_quotient_ignores_non_supersets(self):
        algebra = ExactAlgebra()
        assert algebra.unbind(frozenset({0b0001}), frozenset({0b0110})) == frozenset()

    def test_quotient_over_bundle(self):
        algebra = ExactAlgebra()
        a, b, c, d = (algebra.create_from_name(n) for n in "abcd")
        agg = algebra.bundle([algebra.bind(a, b), algebra.bind(c, d)])
        assert algebra.unbind(agg, a) == b
        assert algebra.unbind(agg, d) == c

    def test_bundle_lossless(self):
        algebra = ExactAlgebra()
        vectors = [algebra.create_from_name(f"v{i}") for i in range(200)]
        assert len(algebra.bundle(vectors)) == 200

    def test_decompose(self):
        algebra = ExactAlgebra()
        a = algebra.create_from_name("a")
        b = algebra.create_from_name("b")
        (monomial,) = algebra.bind(a, b)
        assert sorted(algebra.decompose(monomial)) == ["a", "b"]

    def test_score_candidate_partial_overlap(self):
        algebra = ExactAlgebra()
        assert algebra.score_candidate(frozenset({0b011}), frozenset({0b001})) == 0.5

    def test_ordinal_bounds(self):
        algebra = ExactAlgebra(dimensions=4)
        marker = algebra.create_from_name("__Pos1__")
        value = algebra.create_from_name("v")
        with pytest.raises(ValueError):
            algebra.tag_position(marker, value, 4)
        assert algebra.max_ordinal() == 3


# =============================================================================
# SEEDING
# =============================================================================


class TestSeeding:
    def test_seed_bytes_repeatable(self):
        assert (seed_bytes("x", "s", 100) == seed_bytes("x", "s", 100)).all()
        assert len(seed_bytes("x", "s", 100)) == 100

    def test_seed_bytes_depend_on_scope(self):
        assert not (seed_bytes("x", "s1", 32) == seed_bytes("x", "s2", 32)).all()

    def test_seed_words(self):
        words = seed_words("x", "s", 4)
        assert len(words) == 4
        assert all(0 <= w < 2 ** 64 for w in words)
