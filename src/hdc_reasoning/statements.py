"""
hdc_reasoning/statements.py - Statement AST consumed by the encoder

The textual parser lives outside this package; it hands over Statement and
GraphDef values built from these types.

    @dest:export operator arg1 arg2 ...

Argument references:
    Identifier   bare name, resolved to an atom (created on first use)
    Literal      number or quoted string, an atom named by its text
    Reference    $name, resolved through the scope chain
    Hole         ?name, a variable in rules and query patterns
    Compound     an inline nested statement (op args...)
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


@dataclass(frozen=True)
class Identifier:
    name: str


@dataclass(frozen=True)
class Literal:
    value: str | int | float

    @property
    def name(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Reference:
    name: str


@dataclass(frozen=True)
class Hole:
    name: str


@dataclass(frozen=True)
class Compound:
    operator: "OperatorRef"
    args: tuple["ArgRef", ...] = ()


OperatorRef = Union[Identifier, Reference]
ArgRef = Union[Identifier, Literal, Reference, Hole, Compound]


def arg(value: "ArgRef | str | int | float | tuple") -> ArgRef:
    """Convert shorthand into an ArgRef.

    ``"?x"`` -> Hole, ``"$x"`` -> Reference, numbers -> Literal,
    tuples -> Compound, other strings -> Identifier.
    """
    if isinstance(value, (Identifier, Literal, Reference, Hole, Compound)):
        return value
    if isinstance(value, bool):
        return Identifier(str(value))
    if isinstance(value, (int, float)):
        return Literal(value)
    if isinstance(value, tuple):
        if not value:
            raise ValueError("Compound argument needs an operator")
        return Compound(operator(value[0]), tuple(arg(v) for v in value[1:]))
    text = str(value)
    if text.startswith("?") and len(text) > 1:
        return Hole(text[1:])
    if text.startswith("$") and len(text) > 1:
        return Reference(text[1:])
    return Identifier(text)


def operator(value: "OperatorRef | str") -> OperatorRef:
    if isinstance(value, (Identifier, Reference)):
        return value
    text = str(value)
    if text.startswith("$") and len(text) > 1:
        return Reference(text[1:])
    return Identifier(text)


@dataclass(frozen=True)
class Statement:
    """One line of input: ``@destination:export operator args...``

    A statement without a destination is persisted to the knowledge store.
    With a destination it only binds a scope variable, unless an export
    name is given, in which case it is also persisted under that name.
    """
    operator: OperatorRef
    args: tuple[ArgRef, ...] = ()
    destination: str | None = None
    export_name: str | None = None

    @classmethod
    def of(
        cls,
        op: "OperatorRef | str",
        *args: "ArgRef | str | int | float | tuple",
        dest: str | None = None,
        export: str | None = None,
    ) -> "Statement":
        """Shorthand constructor.

        Example:
            Statement.of("sell", "Alice", "Bob", "Car", 100)
            Statement.of("isA", "?x", "Bird", dest="cond")
            Statement.of("Implies", "$cond", "$concl")
        """
        return cls(operator(op), tuple(arg(a) for a in args), dest, export)

    @property
    def persistent(self) -> bool:
        return self.destination is None or self.export_name is not None

    @property
    def operator_name(self) -> str:
        return self.operator.name


@dataclass(frozen=True)
class GraphDef:
    """Named expansion: a body of statements run in a child scope.

    Parameters are bound to the call's arguments; the value of
    ``return_ref`` in the child scope is the expansion result.
    """
    name: str
    params: tuple[str, ...]
    body: tuple[Statement, ...] = field(default_factory=tuple)
    return_ref: str = ""

    def __post_init__(self):
        if not self.return_ref:
            raise ValueError(f"Graph {self.name} needs a return reference")
