"""
tests/test_session.py - Learning, statement persistence and save/load
"""

import pytest

from hdc_core import ConfigError, ContradictionError, UnboundReferenceError
from hdc_reasoning import (
    FactKind,
    GraphDef,
    ProofMethod,
    ReasoningSession,
    Statement,
    Term,
    Var,
)

# =============================================================================
# LEARNING
# =============================================================================


class TestLearn:
    def test_batch_continues_past_bad_statement(self, session):
        results = session.learn_all([
            Statement.of("isA", "Tweety", "Bird"),
            Statement.of("believes", "Bob", "$missing"),
            Statement.of("isA", "Bird", "Animal"),
        ])
        assert [r.ok for r in results] == [True, False, True]
        assert isinstance(results[1].error, UnboundReferenceError)
        assert "missing" in results[1].message
        assert len(session.store) == 2

    def test_learn_result_reports_fact(self, session):
        result = session.learn(Statement.of("isA", "Tweety", "Bird"))
        assert result.fact.id == 0
        assert result.to_dict() == {"ok": True, "fact": 0, "error": None, "message": ""}

    def test_destination_only_binds_scope(self, session):
        result = session.learn(Statement.of("Loves", "John", "Mary", dest="love"))
        assert result.ok
        assert result.fact is None
        assert len(session.store) == 0
        assert "love" in session.scope

    def test_reference_to_destination(self, session):
        session.learn(Statement.of("Loves", "John", "Mary", dest="love"))
        result = session.learn(Statement.of("believes", "Bob", "$love"))
        assert result.fact.term == Term("believes", "Bob", Term("Loves", "John", "Mary"))

    def test_export_persists_under_name(self, session):
        result = session.learn(Statement.of("Loves", "John", "Mary", dest="love", export="JohnLovesMary"))
        assert result.fact is not None
        assert session.store.by_name("JohnLovesMary") is result.fact
        assert "love" in session.scope

    def test_rule_from_statements(self, session):
        session.learn_all([
            Statement.of("isA", "Tweety", "Bird"),
            Statement.of("isA", "?x", "Bird", dest="cond"),
            Statement.of("canFly", "?x", dest="concl"),
            Statement.of("Implies", "$cond", "$concl"),
        ])
        rule = session.store.facts[-1]
        assert rule.kind == FactKind.RULE
        result = session.prove(Term("canFly", "Tweety"))
        assert result.valid
        assert result.method == ProofMethod.RULE

    def test_negation_from_statements(self, session):
        session.learn_all([
            Statement.of("canFly", "Opus", dest="f"),
            Statement.of("Not", "$f"),
        ])
        assert session.store.negation_of(Term("canFly", "Opus")) is not None

    def test_negate(self, session):
        fact = session.negate(Term("canFly", "Opus"))
        assert fact.kind == FactKind.NEGATION
        assert fact.term == Term("Not", Term("canFly", "Opus"))

    def test_negating_a_negation_asserts(self, session):
        fact = session.negate(Term("Not", Term("canFly", "Opus")))
        assert fact.kind == FactKind.FACT
        assert fact.term == Term("canFly", "Opus")

    def test_relation_property_from_statement(self, session):
        session.learn(Statement.of("TransitiveRelation", "isA"))
        assert session.store.is_transitive("isA")

    def test_graph_definition(self, session):
        graph = GraphDef(
            name="gift",
            params=("giver", "receiver"),
            body=(Statement.of("give", "$giver", "$receiver", "Present", dest="g"),),
            return_ref="g",
        )
        assert session.learn(graph).ok
        result = session.learn(Statement.of("gift", "Ann", "Ben"))
        assert result.ok
        assert result.fact.term == Term("gift", "Ann", "Ben")
        assert "gift" in session.stats()["graphs"]

    def test_graph_error_is_per_statement(self, session):
        session.define_graph(GraphDef("g", ("a",), (Statement.of("f", "$a", dest="r"),), "r"))
        result = session.learn(Statement.of("g", "x", "y"))
        assert not result.ok
        assert len(session.store) == 0


# =============================================================================
# ISOLATION AND CONFIGURATION
# =============================================================================


class TestIsolation:
    def test_sessions_do_not_share_atoms(self, make_session):
        first = make_session("exact")
        second = make_session("exact")
        first.fact("isA", "Tweety", "Bird")
        assert "Tweety" in first.vocabulary
        assert "Tweety" not in second.vocabulary
        assert len(second.store) == 0

    def test_overrides(self):
        session = ReasoningSession(max_proof_depth=3, algebra={"strategy": "exact"})
        assert session.config.max_proof_depth == 3
        assert session.algebra.name == "exact"

    def test_bad_configuration(self):
        with pytest.raises(ConfigError):
            ReasoningSession(algebra={"strategy": "dense-binary", "dimensions": 100})

    def test_stats(self, session):
        session.fact("isA", "Tweety", "Bird")
        stats = session.stats()
        assert stats["algebra"]["strategy"] == "dense-binary"
        assert stats["store"]["total"] == 1
        assert stats["vocabulary"] == 2


# =============================================================================
# CONTRADICTIONS
# =============================================================================


class TestContradictions:
    def test_same_args_rejected(self, session):
        session.declare_contradictory("before", "after")
        assert session.fact("before", "Breakfast", "Lunch").ok
        result = session.fact("after", "Breakfast", "Lunch")
        assert not result.ok
        assert isinstance(result.error, ContradictionError)
        assert result.error.kind == "contradictsSameArgs"
        assert result.error.conflicting_id == 1
        assert result.error.constraint_id == 0
        assert len(session.store) == 2

    def test_other_arguments_allowed(self, session):
        session.declare_contradictory("before", "after")
        session.fact("before", "Breakfast", "Lunch")
        assert session.fact("after", "Lunch", "Breakfast").ok
        assert session.fact("after", "Dinner", "Lunch").ok

    def test_declared_by_statement(self, session):
        results = session.learn_all([
            Statement.of("contradictsSameArgs", "before", "after"),
            Statement.of("after", "Lunch", "Breakfast"),
            Statement.of("before", "Lunch", "Breakfast"),
        ])
        assert [r.ok for r in results] == [True, True, False]
        assert session.store.facts[0].kind == FactKind.CONSTRAINT
        assert results[2].to_dict()["error"] == "ContradictionError"

    def test_mutually_exclusive(self, session):
        session.declare_exclusive("hasState", "Open", "Closed")
        assert session.fact("hasState", "Door", "Open").ok
        result = session.fact("hasState", "Door", "Closed")
        assert not result.ok
        assert result.error.kind == "mutuallyExclusive"
        assert session.fact("hasState", "Window", "Closed").ok
        assert session.fact("hasState", "Door", "Locked").ok

    def test_rejected_statement_binds_nothing(self, session):
        session.declare_exclusive("hasState", "Open", "Closed")
        session.fact("hasState", "Door", "Open")
        result = session.learn(Statement.of("hasState", "Door", "Closed", dest="s", export="DoorClosed"))
        assert not result.ok
        assert "s" not in session.scope
        assert session.store.by_name("DoorClosed") is None

    def test_tell_raises(self, session):
        session.declare_contradictory("before", "after")
        session.tell(Term("before", "a", "b"))
        with pytest.raises(ContradictionError):
            session.tell(Term("after", "a", "b"))

    def test_negation_is_not_a_contradiction(self, session):
        session.declare_contradictory("before", "after")
        session.fact("before", "a", "b")
        session.negate(Term("after", "a", "b"))
        assert len(session.store) == 3

    def test_check_disabled(self, make_session):
        session = make_session(check_contradictions=False)
        session.declare_exclusive("hasState", "Open", "Closed")
        assert session.fact("hasState", "Door", "Open").ok
        assert session.fact("hasState", "Door", "Closed").ok


# =============================================================================
# PERSISTENCE
# =============================================================================


def populate(session):
    session.learn_all([
        Statement.of("isA", "Tweety", "Bird"),
        Statement.of("isA", "Bird", "Animal"),
        Statement.of("TransitiveRelation", "isA"),
        Statement.of("sell", "Alice", "Bob", "Car", 100, dest="sale", export="sale1"),
    ])
    session.rule(Term("isA", Var("x"), "Bird"), Term("canFly", Var("x")))
    session.negate(Term("canFly", "Opus"))


class TestPersistence:
    @pytest.mark.parametrize("filename", ["kb.yaml", "kb.json"])
    def test_save_and_load(self, session, tmp_path, filename):
        populate(session)
        path = session.save(tmp_path / filename)

        loaded = ReasoningSession.load(path)

        assert len(loaded.store) == len(session.store)
        assert [f.term for f in loaded.store] == [f.term for f in session.store]
        assert loaded.store.by_name("sale1") is not None
        assert loaded.config == session.config
        assert loaded.algebra.equals(loaded.store.aggregate, session.store.aggregate)
        assert loaded.prove(Term("isA", "Tweety", "Animal")).valid
        assert loaded.prove(Term("canFly", "Tweety")).valid
        assert not loaded.prove(Term("canFly", "Opus")).valid
        assert loaded.query(Term("sell", Var("who"), "Bob", "Car", Var("price"))).values() == {
            "who": "Alice", "price": "100",
        }

    def test_load_with_graphs(self, session, tmp_path):
        graph = GraphDef("gift", ("a", "b"), (Statement.of("give", "$a", "$b", dest="g"),), "g")
        session.learn(graph)
        session.learn(Statement.of("gift", "Ann", "Ben"))
        path = session.save(tmp_path / "kb.json")

        loaded = ReasoningSession.load(path, graphs=[graph])
        assert loaded.algebra.equals(loaded.store.facts[0].vector, session.store.facts[0].vector)

    def test_load_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            ReasoningSession.load(tmp_path / "missing.json")

    def test_load_rejects_other_files(self, tmp_path):
        path = tmp_path / "other.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ConfigError):
            ReasoningSession.load(path)
