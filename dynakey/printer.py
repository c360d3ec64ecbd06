"""
VTL backend: renders expression trees as AppSync mapping template text.
"""

from __future__ import annotations

import json

from .expressions import (
    And,
    Block,
    Bool,
    Compound,
    ContainsKey,
    DefaultIfNull,
    Emit,
    Equals,
    Error,
    Expression,
    ForEach,
    If,
    Int,
    IsNull,
    ListLiteral,
    MapPut,
    MetadataPut,
    Node,
    Not,
    Obj,
    PutAll,
    Ref,
    Set,
    Statement,
    Str,
    ToDynamoDB,
    ToDynamoDBFilterExpression,
)

INDENT = "  "


class VtlPrinter:
    """
    Renders nodes to Velocity Template Language.

    Each statement goes on its own line, #if/#foreach bodies are indented.
    """

    def print(self, node: Node) -> str:
        if isinstance(node, Statement):
            return "\n".join(self._statement_lines(node, 0))
        return self.expression(node)  # type: ignore[arg-type]

    def print_block(self, name: str, node: Statement) -> str:
        """Renders a statement wrapped in '## [Start] name. **' / '## [End] name. **' comments."""
        return self.print(Block(name, (node,)))

    # --- STATEMENTS ---

    def _statement_lines(self, node: Statement, depth: int) -> list[str]:
        pad = INDENT * depth

        if isinstance(node, Compound):
            lines: list[str] = []
            for statement in node.body:
                lines.extend(self._statement_lines(statement, depth))
            return lines

        if isinstance(node, Block):
            lines = [f"{pad}## [Start] {node.name}. **"]
            for statement in node.body:
                lines.extend(self._statement_lines(statement, depth))
            lines.append(f"{pad}## [End] {node.name}. **")
            return lines

        if isinstance(node, Set):
            return [f"{pad}#set( {self.expression(node.target)} = {self.expression(node.value)} )"]

        if isinstance(node, MapPut):
            target = self.expression(node.target)
            key = self.expression(node.key)
            return [f"{pad}$util.qr({target}.put({key}, {self.expression(node.value)}))"]

        if isinstance(node, PutAll):
            target = self.expression(node.target)
            return [f"{pad}$util.qr({target}.putAll({self.expression(node.value)}))"]

        if isinstance(node, MetadataPut):
            value = self.expression(node.value)
            return [f'{pad}$util.qr($ctx.stash.metadata.put("{node.name}", {value}))']

        if isinstance(node, If):
            lines = [f"{pad}#if( {self.expression(node.condition)} )"]
            for statement in node.then:
                lines.extend(self._statement_lines(statement, depth + 1))
            if node.otherwise is not None:
                lines.append(f"{pad}#else")
                for statement in node.otherwise:
                    lines.extend(self._statement_lines(statement, depth + 1))
            lines.append(f"{pad}#end")
            return lines

        if isinstance(node, ForEach):
            iterable = self.expression(node.iterable)
            lines = [f"{pad}#foreach( ${node.variable} in {iterable} )"]
            for statement in node.body:
                lines.extend(self._statement_lines(statement, depth + 1))
            lines.append(f"{pad}#end")
            return lines

        if isinstance(node, Error):
            args = self.expression(node.message)
            if node.error_type is not None:
                args += f", {self.expression(node.error_type)}"
            return [f"{pad}$util.error({args})"]

        if isinstance(node, Emit):
            return [f"{pad}$util.toJson({self.expression(node.value)})"]

        raise TypeError(f"Cannot print statement of type {type(node).__name__}")

    # --- EXPRESSIONS ---

    def expression(self, node: Expression) -> str:
        if isinstance(node, Ref):
            return f"${node.path}"
        if isinstance(node, Str):
            return f'"{node.value}"'
        if isinstance(node, Bool):
            return "true" if node.value else "false"
        if isinstance(node, Int):
            return str(node.value)
        if isinstance(node, Obj):
            if not node.entries:
                return "{}"
            entries = ", ".join(
                f"{json.dumps(key)}: {self.expression(value)}"
                for key, value in node.entries.items()
            )
            return f"{{ {entries} }}"
        if isinstance(node, ListLiteral):
            return "[" + ", ".join(self.expression(item) for item in node.items) + "]"
        if isinstance(node, IsNull):
            return f"$util.isNull({self.expression(node.value)})"
        if isinstance(node, Not):
            return f"!{self.expression(node.value)}"
        if isinstance(node, And):
            return " && ".join(self.expression(value) for value in node.values)
        if isinstance(node, Equals):
            return f"{self.expression(node.left)} == {self.expression(node.right)}"
        if isinstance(node, ContainsKey):
            return f"{self.expression(node.target)}.containsKey({self.expression(node.key)})"
        if isinstance(node, DefaultIfNull):
            value = self.expression(node.value)
            return f"$util.defaultIfNull({value}, {self.expression(node.default)})"
        if isinstance(node, ToDynamoDB):
            return f"$util.dynamodb.toDynamoDB({self.expression(node.value)})"
        if isinstance(node, ToDynamoDBFilterExpression):
            value = self.expression(node.value)
            return f'$util.parseJson("$util.transform.toDynamoDBFilterExpression({value})")'

        raise TypeError(f"Cannot print expression of type {type(node).__name__}")


_default_printer = VtlPrinter()


def print_vtl(node: Node) -> str:
    """Renders a node with the default VTL printer."""
    return _default_printer.print(node)
