"""
hdc_reasoning/unification.py - Unification over fact terms

Implements the Martelli-Montanari unification algorithm for the term types
in terms.py. Used by the proof engine to match goals against stored facts
and rule consequents, and by exact enumeration to match patterns.

Key operations:
- unify(t1, t2): Find substitution θ such that t1θ = t2θ
- substitute(t, θ): Apply substitution to term
- rename_apart(terms, suffix): Fresh variables for a rule application
"""
from __future__ import annotations

from .terms import Atom, Term, TermLike, Var

# Type alias for substitution
Substitution = dict[str, TermLike]


def unify(
    t1: TermLike,
    t2: TermLike,
    theta: Substitution | None = None
) -> Substitution | None:
    """Unify two terms and return most general unifier (MGU).

    Args:
        t1: First term
        t2: Second term
        theta: Initial substitution (default: empty)

    Returns:
        Most general unifier, or None if unification fails

    Example:
        t1 = Term("sell", Var("who"), "Bob", "Car", Var("price"))
        t2 = Term("sell", "Alice", "Bob", "Car", "100")
        unify(t1, t2)   # {"who": Atom("Alice"), "price": Atom("100")}
    """
    if theta is None:
        theta = {}

    t1 = substitute(t1, theta)
    t2 = substitute(t2, theta)

    if t1 == t2:
        return theta

    if isinstance(t1, Var):
        return _unify_var(t1, t2, theta)
    if isinstance(t2, Var):
        return _unify_var(t2, t1, theta)

    if isinstance(t1, Atom) and isinstance(t2, Atom):
        return theta if t1.value == t2.value else None

    if isinstance(t1, Term) and isinstance(t2, Term):
        if t1.functor != t2.functor or t1.arity != t2.arity:
            return None
        for arg1, arg2 in zip(t1.args, t2.args):
            theta = unify(arg1, arg2, theta)
            if theta is None:
                return None
        return theta

    return None


def _unify_var(var: Var, term: TermLike, theta: Substitution) -> Substitution | None:
    """Unify a variable with a term."""
    if var.name in theta:
        return unify(theta[var.name], term, theta)

    # X = f(X) would build an infinite term
    if occurs_check(var, term, theta):
        return None

    theta = dict(theta)
    theta[var.name] = term
    return theta


def occurs_check(var: Var, term: TermLike, theta: Substitution) -> bool:
    """True if ``var`` occurs inside ``term`` under ``theta``."""
    term = substitute(term, theta)

    if isinstance(term, Var):
        return term.name == var.name
    if isinstance(term, Term):
        return any(occurs_check(var, arg, theta) for arg in term.args)
    return False


def substitute(term: TermLike, theta: Substitution) -> TermLike:
    """Apply substitution to term, following variable chains."""
    if isinstance(term, Var):
        if term.name in theta:
            return substitute(theta[term.name], theta)
        return term
    if isinstance(term, Term):
        if not theta:
            return term
        return Term(term.functor, *(substitute(arg, theta) for arg in term.args))
    return term


def compose_substitutions(theta1: Substitution, theta2: Substitution) -> Substitution:
    """(θ1 ∘ θ2)(t) = θ1(θ2(t))"""
    result = {var: substitute(term, theta1) for var, term in theta2.items()}
    for var, term in theta1.items():
        if var not in result:
            result[var] = term
    return result


def rename_apart(terms: list[Term], suffix: str) -> tuple[list[Term], Substitution]:
    """Rename every variable in ``terms`` by appending ``suffix``.

    Returns:
        (renamed_terms, renaming_substitution)
    """
    all_vars: set[str] = set()
    for t in terms:
        all_vars.update(t.variables())

    renaming: Substitution = {v: Var(f"{v}{suffix}") for v in all_vars}
    return [substitute(t, renaming) for t in terms], renaming


def match(pattern: TermLike, ground: TermLike) -> Substitution | None:
    """One-way match: bind variables of ``pattern`` only."""
    theta = unify(pattern, ground)
    if theta is None:
        return None
    pattern_vars = pattern.variables()
    if any(var not in pattern_vars for var in theta):
        return None
    return theta


def resolve_bindings(theta: Substitution, names: set[str]) -> dict[str, TermLike]:
    """Fully substituted values for the requested variable names."""
    return {name: substitute(Var(name), theta) for name in sorted(names) if name in theta}
