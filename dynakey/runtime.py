"""
Local runtime for generated resolver templates.

Evaluates expression trees against a typed request context, with the
semantics of the AppSync VTL runtime that matter to key handling:

- null-safe reference paths ($ctx.args.missing is null)
- #if truthiness: anything but null and false
- string interpolation of $var and ${var.path}
- $util.error() aborts the request (TemplateRuntimeError)
- $util.dynamodb.toDynamoDB() and filter translation go through boto3

Resolver metadata is a typed record (ResolverMetadata) instead of a
string-keyed stash map, so snippets and tests agree on what each name holds.

Usage:
    context = RequestContext(args={"input": {"year": 2024}})
    runtime = TemplateRuntime()
    runtime.evaluate_template(resolver.slot("postAuth")[0], context)
    context.stash.metadata.model_object_key
"""

from __future__ import annotations

import json
import re
from decimal import Decimal
from typing import Any, cast

from boto3.dynamodb.conditions import Attr as Boto3Attr
from boto3.dynamodb.conditions import ConditionBase as Boto3ConditionBase
from boto3.dynamodb.conditions import ConditionExpressionBuilder
from boto3.dynamodb.conditions import Not as Boto3Not
from boto3.dynamodb.types import TypeSerializer
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ._logging import logger
from .exceptions import TemplateEvaluationError, TemplateRuntimeError, handle_template_errors
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
from .resolvers import MappingTemplate, Resolver

_INTERPOLATION = re.compile(
    r"\$!?\{(?P<braced>[A-Za-z_][\w.\[\]]*)\}"
    r"|\$!?(?P<bare>[A-Za-z_]\w*(?:\.[A-Za-z_]\w*|\[\d+\])*)"
)
_INDEXED_SEGMENT = re.compile(r"^(?P<name>[A-Za-z_]\w*)\[(?P<index>\d+)\]$")


# --- REQUEST CONTEXT ---


class ResolverMetadata(BaseModel):
    """Values the key snippets hand to the DynamoDB operation template."""

    model_config = ConfigDict(
        populate_by_name=True, alias_generator=to_camel, protected_namespaces=()
    )

    model_object_key: dict[str, Any] | None = None
    dynamodb_name_override_map: dict[str, str] | None = None
    model_query_expression: dict[str, Any] | None = None


class StashRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    metadata: ResolverMetadata = Field(default_factory=ResolverMetadata)
    default_values: dict[str, Any] | None = None


class ErrorInfo(BaseModel):
    message: str
    type: str | None = None


class RequestContext(BaseModel):
    """$ctx of a resolver invocation."""

    model_config = ConfigDict(populate_by_name=True)

    arguments: dict[str, Any] = Field(default_factory=dict, alias="args")
    stash: StashRecord = Field(default_factory=StashRecord)
    result: Any = None
    error: ErrorInfo | None = None


class _Output:
    __slots__ = ("value",)

    def __init__(self) -> None:
        self.value: Any = None


# --- RUNTIME ---


class TemplateRuntime:
    """
    Evaluates expression trees.

    Args:
        composite_key_separator: Separator to watch for in interpolated key
            components. A component containing it makes the stored composite
            value ambiguous; the runtime logs a warning when it sees one.
    """

    def __init__(self, composite_key_separator: str = "#") -> None:
        self.composite_key_separator = composite_key_separator
        self._serializer = TypeSerializer()

    def evaluate(self, node: Statement, context: RequestContext) -> Any:
        """
        Runs a statement tree.

        Returns:
            The value written by the last Emit, or None.

        Raises:
            TemplateRuntimeError: If the template raises a client-visible error
            TemplateEvaluationError: If the tree cannot be evaluated
        """
        output = _Output()
        variables: dict[str, Any] = {"ctx": context, "context": context}
        with handle_template_errors():
            self._execute(node, variables, output)
        return output.value

    def evaluate_template(self, template: MappingTemplate, context: RequestContext) -> Any:
        """Runs every stage of a template in order, sharing local variables."""
        output = _Output()
        variables: dict[str, Any] = {"ctx": context, "context": context}
        logger.debug("Evaluating template", extra={"template": template.name})
        with handle_template_errors(template.name):
            for stage in template.stages:
                self._execute(stage, variables, output)
        return output.value

    def evaluate_slot(self, resolver: Resolver, slot_name: str, context: RequestContext) -> None:
        """Runs the templates of a resolver slot in order against one context."""
        for template in resolver.slot(slot_name):
            self.evaluate_template(template, context)

    # --- STATEMENTS ---

    def _execute(self, node: Statement, variables: dict[str, Any], output: _Output) -> None:
        if isinstance(node, (Block, Compound)):
            for statement in node.body:
                self._execute(statement, variables, output)
        elif isinstance(node, Set):
            self._assign(node.target.path, self._value(node.value, variables), variables)
        elif isinstance(node, MapPut):
            target = self._map_target(node.target, variables)
            target[self._value(node.key, variables)] = self._value(node.value, variables)
        elif isinstance(node, PutAll):
            target = self._map_target(node.target, variables)
            source = self._value(node.value, variables)
            if source is not None:
                target.update(source)
        elif isinstance(node, MetadataPut):
            context = cast(RequestContext, variables["ctx"])
            metadata = context.stash.metadata
            field_name = _model_field_name(metadata, node.name)
            if field_name is None:
                raise TemplateEvaluationError(f"Unknown resolver metadata '{node.name}'")
            setattr(metadata, field_name, self._value(node.value, variables))
        elif isinstance(node, If):
            if _truthy(self._value(node.condition, variables)):
                branch: tuple[Statement, ...] | None = node.then
            else:
                branch = node.otherwise
            for statement in branch or ():
                self._execute(statement, variables, output)
        elif isinstance(node, ForEach):
            items = self._value(node.iterable, variables) or []
            for item in list(items):
                variables[node.variable] = item
                for statement in node.body:
                    self._execute(statement, variables, output)
        elif isinstance(node, Error):
            message = self._value(node.message, variables)
            error_type = self._value(node.error_type, variables) if node.error_type else None
            raise TemplateRuntimeError(str(message), error_type=error_type)
        elif isinstance(node, Emit):
            output.value = self._value(node.value, variables)
        else:
            raise TemplateEvaluationError(f"Cannot execute node of type {type(node).__name__}")

    # --- EXPRESSIONS ---

    def _value(self, node: Expression, variables: dict[str, Any]) -> Any:
        if isinstance(node, Ref):
            return _resolve(node.path, variables)
        if isinstance(node, Str):
            return self._interpolate(node.value, variables)
        if isinstance(node, (Bool, Int)):
            return node.value
        if isinstance(node, Obj):
            return {key: self._value(value, variables) for key, value in node.entries.items()}
        if isinstance(node, ListLiteral):
            return [self._value(item, variables) for item in node.items]
        if isinstance(node, IsNull):
            return self._value(node.value, variables) is None
        if isinstance(node, Not):
            return not _truthy(self._value(node.value, variables))
        if isinstance(node, And):
            return all(_truthy(self._value(value, variables)) for value in node.values)
        if isinstance(node, Equals):
            return self._value(node.left, variables) == self._value(node.right, variables)
        if isinstance(node, ContainsKey):
            target = self._value(node.target, variables)
            return isinstance(target, dict) and self._value(node.key, variables) in target
        if isinstance(node, DefaultIfNull):
            value = self._value(node.value, variables)
            return self._value(node.default, variables) if value is None else value
        if isinstance(node, ToDynamoDB):
            return self.to_dynamodb(self._value(node.value, variables))
        if isinstance(node, ToDynamoDBFilterExpression):
            return self.to_filter_expression(self._value(node.value, variables))
        raise TemplateEvaluationError(f"Cannot evaluate node of type {type(node).__name__}")

    def _interpolate(self, text: str, variables: dict[str, Any]) -> str:
        components: list[str] = []

        def replace(match: re.Match[str]) -> str:
            path = match.group("braced") or match.group("bare")
            value = _resolve(path, variables)
            if value is None:
                # VTL leaves unresolved references in place
                return match.group(0)
            rendered = _stringify(value)
            if "." in path:
                components.append(rendered)
            return rendered

        result = _INTERPOLATION.sub(replace, text)

        literal = _INTERPOLATION.sub("", text)
        separator = self.composite_key_separator
        if len(components) > 1 and literal and not literal.replace(separator, ""):
            ambiguous = [c for c in components if separator in c]
            if ambiguous:
                logger.warning(
                    "Composite key component contains the key separator",
                    extra={"separator": separator, "value": result},
                )
        return result

    def _assign(self, path: str, value: Any, variables: dict[str, Any]) -> None:
        parent_path, _, name = path.rpartition(".")
        if not parent_path:
            variables[name] = value
            return
        parent = _resolve(parent_path, variables)
        if isinstance(parent, dict):
            parent[name] = value
        elif isinstance(parent, BaseModel):
            field_name = _model_field_name(parent, name)
            if field_name is None:
                raise TemplateEvaluationError(f"Cannot assign unknown field '{path}'")
            setattr(parent, field_name, value)
        else:
            raise TemplateEvaluationError(f"Cannot assign '{path}': '{parent_path}' is not a map")

    def _map_target(self, ref: Ref, variables: dict[str, Any]) -> dict[Any, Any]:
        target = _resolve(ref.path, variables)
        if not isinstance(target, dict):
            raise TemplateEvaluationError(f"'${ref.path}' is not a map")
        return target

    # --- DYNAMODB HELPERS ---

    def to_dynamodb(self, value: Any) -> dict[str, Any]:
        """$util.dynamodb.toDynamoDB: wraps a value as a DynamoDB attribute value."""
        return cast(dict[str, Any], self._serializer.serialize(_prepare_for_dynamo(value)))

    def to_filter_expression(self, filter_input: dict[str, Any] | None) -> dict[str, Any] | None:
        """
        $util.transform.toDynamoDBFilterExpression: compiles a GraphQL filter
        input into {expression, expressionNames, expressionValues}.
        """
        if not filter_input:
            return None

        condition = _filter_condition(filter_input)
        if condition is None:
            return None

        builder = ConditionExpressionBuilder()
        expression = builder.build_expression(condition, is_key_condition=False)
        return {
            "expression": expression.condition_expression,
            "expressionNames": dict(expression.attribute_name_placeholders),
            "expressionValues": {
                placeholder: self.to_dynamodb(value)
                for placeholder, value in expression.attribute_value_placeholders.items()
            },
        }


# --- HELPERS ---


def _truthy(value: Any) -> bool:
    return value is not None and value is not False


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str)
    return str(value)


def _prepare_for_dynamo(value: Any) -> Any:
    # boto3's TypeSerializer rejects floats
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, list):
        return [_prepare_for_dynamo(v) for v in value]
    if isinstance(value, dict):
        return {k: _prepare_for_dynamo(v) for k, v in value.items()}
    return value


def _model_field_name(model: BaseModel, segment: str) -> str | None:
    for name, info in type(model).model_fields.items():
        if segment == name or segment == info.alias:
            return name
    return None


def _resolve(path: str, variables: dict[str, Any]) -> Any:
    """Resolves a dotted reference path; any missing step yields None."""
    segments = path.split(".")
    head, index = _split_segment(segments[0])
    current = variables.get(head)
    if index is not None:
        current = _index(current, index)

    for segment in segments[1:]:
        if current is None:
            return None
        name, index = _split_segment(segment)
        if isinstance(current, dict):
            current = current.get(name)
        elif isinstance(current, BaseModel):
            field_name = _model_field_name(current, name)
            current = getattr(current, field_name) if field_name else None
        else:
            return None
        if index is not None:
            current = _index(current, index)
    return current


def _split_segment(segment: str) -> tuple[str, int | None]:
    match = _INDEXED_SEGMENT.match(segment)
    if match:
        return match.group("name"), int(match.group("index"))
    return segment, None


def _index(value: Any, index: int) -> Any:
    if isinstance(value, list) and index < len(value):
        return value[index]
    return None


_COMPARISONS = {
    "eq": "eq",
    "ne": "ne",
    "le": "lte",
    "lt": "lt",
    "ge": "gte",
    "gt": "gt",
    "contains": "contains",
    "beginsWith": "begins_with",
    "attributeType": "attribute_type",
}


def _filter_condition(filter_input: dict[str, Any]) -> Boto3ConditionBase | None:
    """Translates one level of a GraphQL filter input into a boto3 condition."""
    conditions: list[Boto3ConditionBase] = []

    for key, value in filter_input.items():
        if value is None:
            continue
        if key in ("and", "or"):
            nested = [c for c in (_filter_condition(f) for f in value) if c is not None]
            if not nested:
                continue
            combined = nested[0]
            for condition in nested[1:]:
                combined = (combined & condition) if key == "and" else (combined | condition)
            conditions.append(combined)
        elif key == "not":
            negated = _filter_condition(value)
            if negated is not None:
                conditions.append(Boto3Not(negated))
        else:
            conditions.extend(_field_conditions(key, value))

    if not conditions:
        return None
    result = conditions[0]
    for condition in conditions[1:]:
        result = result & condition
    return result


def _field_conditions(name: str, operators: dict[str, Any]) -> list[Boto3ConditionBase]:
    attr = Boto3Attr(name)
    conditions: list[Boto3ConditionBase] = []
    for operator, operand in operators.items():
        if operand is None:
            continue
        operand = _prepare_for_dynamo(operand)
        if operator in _COMPARISONS:
            conditions.append(getattr(attr, _COMPARISONS[operator])(operand))
        elif operator == "notContains":
            conditions.append(Boto3Not(attr.contains(operand)))
        elif operator == "between":
            low, high = operand
            conditions.append(attr.between(low, high))
        elif operator == "in":
            conditions.append(attr.is_in(operand))
        elif operator == "attributeExists":
            conditions.append(attr.exists() if operand else attr.not_exists())
        else:
            raise TemplateEvaluationError(f"Unsupported filter operator '{operator}' on '{name}'")
    return conditions
