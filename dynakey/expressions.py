"""
Language-agnostic expression tree for resolver templates.

Generators build trees out of these nodes; a backend turns them into
something executable. Two backends ship with dynakey:

- printer.VtlPrinter renders Velocity (VTL) mapping template text
- runtime.TemplateRuntime evaluates a tree locally against a request context

Expressions produce values, statements produce effects (assignments, map
puts, errors, output). Both are immutable dataclasses.

Usage:
    check = If(
        Not(IsNull(Ref("ctx.args.sortDirection"))),
        (Error(Str("sortDirection is not supported"), Str("InvalidArgumentsError")),),
    )
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union


class Node:
    """Base class of every tree node."""


class Expression(Node):
    """A node that evaluates to a value."""


class Statement(Node):
    """A node executed for its effect."""


# --- EXPRESSIONS ---


@dataclass(frozen=True)
class Ref(Expression):
    """Reference to a variable path, e.g. Ref("ctx.args.input") -> $ctx.args.input"""

    path: str

    def child(self, name: str) -> Ref:
        return Ref(f"{self.path}.{name}")


@dataclass(frozen=True)
class Str(Expression):
    """
    String literal. $var and ${var.path} references inside it are
    interpolated at runtime, as in VTL double-quoted strings.
    """

    value: str


@dataclass(frozen=True)
class Int(Expression):
    value: int


@dataclass(frozen=True)
class Bool(Expression):
    value: bool


@dataclass(frozen=True)
class Obj(Expression):
    """Map literal. Keys are plain strings, values are expressions."""

    entries: dict[str, Expression] = field(default_factory=dict)


@dataclass(frozen=True)
class ListLiteral(Expression):
    items: tuple[Expression, ...] = ()


@dataclass(frozen=True)
class IsNull(Expression):
    value: Expression


@dataclass(frozen=True)
class Not(Expression):
    value: Expression


@dataclass(frozen=True)
class And(Expression):
    values: tuple[Expression, ...]


@dataclass(frozen=True)
class Equals(Expression):
    left: Expression
    right: Expression


@dataclass(frozen=True)
class ContainsKey(Expression):
    target: Ref
    key: Expression


@dataclass(frozen=True)
class DefaultIfNull(Expression):
    value: Expression
    default: Expression


@dataclass(frozen=True)
class ToDynamoDB(Expression):
    """Converts a value into the DynamoDB attribute value wrapper ({"S": ...})."""

    value: Expression


@dataclass(frozen=True)
class ToDynamoDBFilterExpression(Expression):
    """Translates a GraphQL filter input into a DynamoDB filter expression object."""

    value: Expression


# --- STATEMENTS ---


@dataclass(frozen=True)
class Set(Statement):
    """Assignment, e.g. Set(Ref("limit"), Int(10)) -> #set( $limit = 10 )"""

    target: Ref
    value: Expression


@dataclass(frozen=True)
class MapPut(Statement):
    """Puts a key into a map, discarding the method's return value."""

    target: Ref
    key: Expression
    value: Expression


@dataclass(frozen=True)
class PutAll(Statement):
    target: Ref
    value: Expression


@dataclass(frozen=True)
class MetadataPut(Statement):
    """
    Stores a value in the per-request resolver metadata under a well-known
    name (see config.MODEL_OBJECT_KEY and friends).
    """

    name: str
    value: Expression


@dataclass(frozen=True)
class If(Statement):
    condition: Expression
    then: tuple[Statement, ...]
    otherwise: tuple[Statement, ...] | None = None


@dataclass(frozen=True)
class ForEach(Statement):
    variable: str
    iterable: Expression
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class Error(Statement):
    """Aborts the request with a client-visible error."""

    message: Expression
    error_type: Expression | None = None


@dataclass(frozen=True)
class Emit(Statement):
    """Writes the JSON rendition of a value to the template output."""

    value: Expression


@dataclass(frozen=True)
class Block(Statement):
    """A named group of statements, rendered between start/end comments."""

    name: str
    body: tuple[Statement, ...]


@dataclass(frozen=True)
class Compound(Statement):
    body: tuple[Statement, ...]


Template = Union[Block, Compound]


def compound(*statements: Statement | None) -> Compound:
    """Builds a Compound, dropping None entries (optional snippets)."""
    return Compound(tuple(s for s in statements if s is not None))
