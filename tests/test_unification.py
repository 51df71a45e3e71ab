"""
tests/test_unification.py - Terms, unification and fingerprints
"""

import pytest

from hdc_reasoning import (
    Atom,
    Term,
    Var,
    fingerprint,
    match,
    negate,
    rename_apart,
    substitute,
    term_from_dict,
    term_to_dict,
    unify,
)
from hdc_reasoning.unification import compose_substitutions, occurs_check, resolve_bindings


class TestTerms:
    def test_raw_values_become_atoms(self):
        t = Term("sell", "Alice", 100)
        assert t.args == (Atom("Alice"), Atom("100"))
        assert t.key == "sell/2"

    def test_ground_and_variables(self):
        t = Term("likes", Var("x"), Term("friendOf", Var("y"), "Bob"))
        assert not t.is_ground()
        assert t.variables() == {"x", "y"}
        assert Term("likes", "a", "b").is_ground()

    def test_repr(self):
        t = Term("Not", Term("canFly", "Opus"))
        assert repr(t) == "Not (canFly Opus)"
        assert repr(Var("x")) == "?x"

    def test_dict_roundtrip_nested(self):
        t = Term("Implies", Term("isA", Var("x"), "Bird"), Term("canFly", Var("x")))
        assert term_from_dict(term_to_dict(t)) == t

    def test_from_dict_unknown_type(self):
        with pytest.raises(ValueError):
            term_from_dict({"type": "blob"})

    def test_negate_unwraps_double_negation(self):
        t = Term("canFly", "Opus")
        assert negate(t) == Term("Not", t)
        assert negate(negate(t)) == t


class TestUnify:
    def test_binds_holes(self):
        theta = unify(
            Term("sell", Var("who"), "Bob", "Car", Var("price")),
            Term("sell", "Alice", "Bob", "Car", "100"),
        )
        assert theta == {"who": Atom("Alice"), "price": Atom("100")}

    def test_mismatch(self):
        assert unify(Term("p", "a"), Term("p", "b")) is None
        assert unify(Term("p", "a"), Term("q", "a")) is None
        assert unify(Term("p", "a"), Term("p", "a", "b")) is None

    def test_shared_variable(self):
        assert unify(Term("p", Var("x"), Var("x")), Term("p", "a", "b")) is None
        assert unify(Term("p", Var("x"), Var("x")), Term("p", "a", "a")) == {"x": Atom("a")}

    def test_occurs_check(self):
        assert unify(Var("x"), Term("f", Var("x"))) is None
        assert occurs_check(Var("x"), Term("f", Term("g", Var("x"))), {})

    def test_variable_chain(self):
        theta = unify(Term("p", Var("x"), Var("y")), Term("p", Var("y"), "a"))
        assert substitute(Var("x"), theta) == Atom("a")

    def test_existing_substitution_respected(self):
        assert unify(Var("x"), Atom("b"), {"x": Atom("a")}) is None


class TestHelpers:
    def test_match_is_one_way(self):
        assert match(Term("p", Var("x")), Term("p", "a")) == {"x": Atom("a")}
        assert match(Term("p", "a"), Term("p", Var("y"))) is None

    def test_rename_apart(self):
        rule = [Term("isA", Var("x"), "Bird"), Term("canFly", Var("x"))]
        renamed, renaming = rename_apart(rule, "_1")
        assert renamed[1] == Term("canFly", Var("x_1"))
        assert renaming == {"x": Var("x_1")}

    def test_compose(self):
        theta = compose_substitutions({"y": Atom("a")}, {"x": Var("y")})
        assert theta == {"x": Atom("a"), "y": Atom("a")}

    def test_resolve_bindings(self):
        theta = {"x": Var("y"), "y": Atom("a")}
        assert resolve_bindings(theta, {"x", "z"}) == {"x": Atom("a")}


class TestFingerprint:
    def test_renamed_variables_share_fingerprint(self):
        assert fingerprint(Term("p", Var("x_1"), "a")) == fingerprint(Term("p", Var("x_7"), "a"))

    def test_distinct_terms(self):
        assert fingerprint(Term("p", "a", "b")) != fingerprint(Term("p", "b", "a"))
        assert fingerprint(Term("p", Var("x"), Var("y"))) != fingerprint(Term("p", Var("x"), Var("x")))

    def test_atom_vs_functor_name(self):
        assert fingerprint(Term("p", "q")) != fingerprint(Term("p", Term("q")))
