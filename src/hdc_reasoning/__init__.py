"""
hdc_reasoning - Knowledge representation and reasoning over hdc_core algebras

Facts are encoded with a reversible binding formula, superposed into a
knowledge aggregate for approximate retrieval, and kept symbolically for
exact enumeration and backward-chaining proof.

Example:
    from hdc_reasoning import ReasoningSession, Statement, Term, Var

    session = ReasoningSession(algebra={"strategy": "dense-binary", "dimensions": 4096})
    session.learn(Statement.of("sell", "Alice", "Bob", "Car", 100))

    result = session.query(Term("sell", Var("who"), "Bob", "Car", Var("price")))
    result.values()         # {"who": "Alice", "price": "100"}

    session.learn_all([
        Statement.of("isA", "Tweety", "Bird"),
        Statement.of("isA", "Bird", "Animal"),
        Statement.of("TransitiveRelation", "isA"),
    ])
    proof = session.prove(Term("isA", "Tweety", "Animal"))
    print(proof.explain())

Modules:
    session         - ReasoningSession, LearnResult
    statements      - Statement / GraphDef AST
    encoder         - FactEncoder (binding formula, graph expansion)
    positions       - PositionRegistry
    knowledge_base  - KnowledgeStore, Fact, Rule
    query           - QueryEngine (algebraic decode, find_all)
    inference       - ProofEngine (backward chaining, proof arena)
    unification     - Robinson unification
    terms           - Atom / Var / Term
    config          - ReasoningConfig, load_config
"""

__version__ = "0.1.0"

# Terms
from .terms import (
    Atom,
    Var,
    Term,
    AND,
    OR,
    NOT,
    IMPLIES,
    TRANSITIVE,
    SYMMETRIC,
    REFLEXIVE,
    CONTRADICTS,
    EXCLUSIVE,
    fingerprint,
    negate,
    term_to_dict,
    term_from_dict,
)

# Unification
from .unification import (
    Substitution,
    unify,
    substitute,
    match,
    rename_apart,
)

# Statements
from .statements import (
    Statement,
    GraphDef,
    Identifier,
    Literal,
    Reference,
    Hole,
    Compound,
)

# Encoding
from .vocabulary import Vocabulary, Scope, ScopeEntry
from .positions import PositionRegistry
from .encoder import FactEncoder, EncodedStatement

# Knowledge store
from .knowledge_base import KnowledgeStore, Fact, FactKind, Rule, Contradiction

# Engines
from .inference import ProofEngine, ProofResult, ProofNode, ProofMethod, ProofArena
from .query import QueryEngine, QueryResult, HoleBinding, Candidate

# Session
from .config import ReasoningConfig, load_config
from .session import ReasoningSession, LearnResult

__all__ = [
    # Version
    "__version__",
    # Terms
    "Atom",
    "Var",
    "Term",
    "AND",
    "OR",
    "NOT",
    "IMPLIES",
    "TRANSITIVE",
    "SYMMETRIC",
    "REFLEXIVE",
    "CONTRADICTS",
    "EXCLUSIVE",
    "fingerprint",
    "negate",
    "term_to_dict",
    "term_from_dict",
    # Unification
    "Substitution",
    "unify",
    "substitute",
    "match",
    "rename_apart",
    # Statements
    "Statement",
    "GraphDef",
    "Identifier",
    "Literal",
    "Reference",
    "Hole",
    "Compound",
    # Encoding
    "Vocabulary",
    "Scope",
    "ScopeEntry",
    "PositionRegistry",
    "FactEncoder",
    "EncodedStatement",
    # Knowledge store
    "KnowledgeStore",
    "Fact",
    "FactKind",
    "Rule",
    "Contradiction",
    # Engines
    "ProofEngine",
    "ProofResult",
    "ProofNode",
    "ProofMethod",
    "ProofArena",
    "QueryEngine",
    "QueryResult",
    "HoleBinding",
    "Candidate",
    # Session
    "ReasoningConfig",
    "load_config",
    "ReasoningSession",
    "LearnResult",
]
