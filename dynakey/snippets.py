"""
Resolver snippet generation for primary keys and secondary indexes.

Every function returns an expression tree (see expressions.py), or None when
the key declaration does not need the snippet. Rendering is left to the
caller, so the same snippets can be printed as VTL or run by the local
runtime.

Snippets cooperate through a few well-known names:

- mergedValues: mutation input laid over the model's default values
- hasSeenSomeKeyArg: set by the index validation, read by the conditional
  composite key write
- resolver metadata modelObjectKey / dynamodbNameOverrideMap /
  modelQueryExpression: consumed by the DynamoDB operation template
"""

from typing import Literal

from .config import (
    DYNAMODB_NAME_OVERRIDE_MAP,
    HAS_SEEN_SOME_KEY_ARG,
    MERGED_VALUES,
    MODEL_OBJECT_KEY,
    MODEL_QUERY_EXPRESSION,
    RESOLVER_VERSION_ID,
    IndexConfiguration,
    PrimaryKeyConfiguration,
    TransformerOptions,
)
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
    compound,
)
from .keys import (
    composite_argument_name,
    composite_sort_key_name,
    composite_value_template,
    sort_key_argument_name,
    sort_key_name,
)

INVALID_ARGUMENTS_ERROR = "InvalidArgumentsError"

# Operator argument -> key condition fragment on the sort key
SORT_KEY_OPERATORS: dict[str, str] = {
    "eq": "#sortKey = :sortKey",
    "lt": "#sortKey < :sortKey",
    "le": "#sortKey <= :sortKey",
    "gt": "#sortKey > :sortKey",
    "ge": "#sortKey >= :sortKey",
    "beginsWith": "begins_with(#sortKey, :sortKey)",
}
BETWEEN_CONDITION = "#sortKey BETWEEN :sortKey0 AND :sortKey1"

_VERBS = {"create": "creating", "update": "updating"}


def _present(value: Expression) -> Expression:
    return Not(IsNull(value))


def merge_inputs_and_defaults_snippet() -> Block:
    """mergedValues = default values of the model, overridden by the mutation input."""
    merged = Ref(MERGED_VALUES)
    return Block(
        "Merge default values and inputs",
        (
            Set(merged, DefaultIfNull(Ref("ctx.stash.defaultValues"), Obj())),
            PutAll(merged, DefaultIfNull(Ref("ctx.args.input"), Obj())),
        ),
    )


def model_object_key(
    config: PrimaryKeyConfiguration, is_mutation: bool, options: TransformerOptions | None = None
) -> Obj:
    """
    The physical key object of an item: partition value plus (encoded) sort value,
    each wrapped as a DynamoDB attribute value.

    Reads read key values from the arguments. Writes read them from
    mergedValues, since defaults may fill key fields the caller omitted.
    """
    prefix = MERGED_VALUES if is_mutation else "ctx.args"
    partition = config.field.name
    entries: dict[str, Expression] = {partition: ToDynamoDB(Ref(f"{prefix}.{partition}"))}

    fields = config.sort_key_fields
    if len(fields) > 1:
        composite = composite_value_template(prefix, fields, options)
        entries[composite_sort_key_name(fields, options)] = ToDynamoDB(Str(composite))
    elif len(fields) == 1:
        entries[fields[0]] = ToDynamoDB(Ref(f"{prefix}.{fields[0]}"))

    return Obj(entries)


def set_primary_key_snippet(
    config: PrimaryKeyConfiguration, is_mutation: bool, options: TransformerOptions | None = None
) -> Block:
    """Stores the item key in the resolver metadata for the DynamoDB operation."""
    return Block(
        "Set the primary key",
        (MetadataPut(MODEL_OBJECT_KEY, model_object_key(config, is_mutation, options)),),
    )


def ensure_composite_key_snippet(
    config: PrimaryKeyConfiguration,
    conditionally_set_sort_key: bool,
    options: TransformerOptions | None = None,
) -> Compound | None:
    """
    Writes the composite sort key value into the mutation input.

    Also records synthetic attribute name -> GraphQL name in the name
    override map, so the operation template maps the condensed attribute
    back correctly.

    With conditionally_set_sort_key the write only happens when the
    validation snippet saw at least one component field in the input
    (hasSeenSomeKeyArg). Used for secondary indexes, where a mutation may
    leave the whole index key alone.

    Returns:
        None unless the sort key spans two or more fields.
    """
    fields = config.sort_key_fields
    if len(fields) < 2:
        return None

    condensed = composite_sort_key_name(fields, options)
    friendly = composite_argument_name(fields)
    value = composite_value_template(MERGED_VALUES, fields, options)
    override_map = Ref(f"ctx.stash.metadata.{DYNAMODB_NAME_OVERRIDE_MAP}")

    write: Statement = MapPut(Ref("ctx.args.input"), Str(condensed), Str(value))
    if conditionally_set_sort_key:
        write = If(Ref(HAS_SEEN_SOME_KEY_ARG), (write,))

    return Compound(
        (
            If(
                IsNull(override_map),
                (MetadataPut(DYNAMODB_NAME_OVERRIDE_MAP, Obj({condensed: Str(friendly)})),),
                (MapPut(override_map, Str(condensed), Str(friendly)),),
            ),
            write,
        )
    )


def validate_index_argument_snippet(
    config: IndexConfiguration, key_operation: Literal["create", "update"]
) -> Block | None:
    """
    Rejects mutations that touch only part of a composite index sort key.

    The condensed attribute can only be rebuilt from all of its components;
    a partial update would store a corrupt value. Sets hasSeenSomeKeyArg
    when any component is present, for ensure_composite_key_snippet.

    Returns:
        None unless the index sort key spans two or more fields.
    """
    fields = config.sort_key_fields
    if len(fields) < 2:
        return None

    has_seen = Ref(HAS_SEEN_SOME_KEY_ARG)
    names = Ref("keyFieldNames")
    input_ref = Ref("ctx.args.input")
    current = Str("$keyFieldName")
    message = (
        f"When {_VERBS[key_operation]} any part of the composite sort key for @index "
        f"'{config.name}', you must provide all fields for the key. "
        "Missing key: '$keyFieldName'."
    )

    return Block(
        f"Validate {key_operation} mutation for @index '{config.name}'",
        (
            Set(has_seen, Bool(False)),
            Set(names, ListLiteral(tuple(Str(f) for f in fields))),
            ForEach(
                "keyFieldName",
                names,
                (If(ContainsKey(input_ref, current), (Set(has_seen, Bool(True)),)),),
            ),
            ForEach(
                "keyFieldName",
                names,
                (
                    If(
                        And((has_seen, Not(ContainsKey(input_ref, current)))),
                        (Error(Str(message)),),
                    ),
                ),
            ),
        ),
    )


def _assemble_composite_value(
    operand: Ref, fields: tuple[str, ...], variable: str, options: TransformerOptions | None
) -> Compound:
    """
    Builds `variable` from the leading components of a composite operand,
    in declared order, stopping at the first missing component.
    """
    separator = (options or TransformerOptions()).composite_key_separator
    inner: If | None = None
    for position in reversed(range(len(fields))):
        component = operand.child(fields[position])
        if position == 0:
            value = Str(f"${{{component.path}}}")
        else:
            value = Str(f"${{{variable}}}{separator}${{{component.path}}}")
        body: tuple[Statement, ...] = (Set(Ref(variable), value),)
        if inner is not None:
            body += (inner,)
        inner = If(_present(component), body)

    assert inner is not None
    return Compound((Set(Ref(variable), Str("")), inner))


def _sort_key_conditions(
    config: PrimaryKeyConfiguration, query: Ref, options: TransformerOptions | None
) -> tuple[Statement, ...]:
    argument = Ref(f"ctx.args.{sort_key_argument_name(config)}")
    attribute_name = sort_key_name(config, options)
    fields = config.sort_key_fields
    composite = len(fields) > 1

    def operand_value(operand: Ref, variable: str) -> tuple[tuple[Statement, ...], Expression]:
        if composite:
            assembled = _assemble_composite_value(operand, fields, variable, options)
            return (assembled,), Str(f"${{{variable}}}")
        return (), operand

    statements: list[Statement] = []
    for operator, condition in SORT_KEY_OPERATORS.items():
        operand = argument.child(operator)
        prepare, value = operand_value(operand, "sortKeyValue")
        statements.append(
            If(
                And((_present(argument), _present(operand))),
                (
                    *prepare,
                    Set(
                        query.child("expression"),
                        Str(f"${{{query.path}.expression}} AND {condition}"),
                    ),
                    MapPut(query.child("expressionNames"), Str("#sortKey"), Str(attribute_name)),
                    MapPut(query.child("expressionValues"), Str(":sortKey"), ToDynamoDB(value)),
                ),
            )
        )

    between = argument.child("between")
    low_prepare, low = operand_value(Ref(f"{between.path}[0]"), "sortKeyValue0")
    high_prepare, high = operand_value(Ref(f"{between.path}[1]"), "sortKeyValue1")
    statements.append(
        If(
            And((_present(argument), _present(between))),
            (
                *low_prepare,
                *high_prepare,
                Set(
                    query.child("expression"),
                    Str(f"${{{query.path}.expression}} AND {BETWEEN_CONDITION}"),
                ),
                MapPut(query.child("expressionNames"), Str("#sortKey"), Str(attribute_name)),
                MapPut(query.child("expressionValues"), Str(":sortKey0"), ToDynamoDB(low)),
                MapPut(query.child("expressionValues"), Str(":sortKey1"), ToDynamoDB(high)),
            ),
        )
    )
    return tuple(statements)


def key_condition_snippet(
    config: PrimaryKeyConfiguration,
    query_variable: str = MODEL_QUERY_EXPRESSION,
    options: TransformerOptions | None = None,
) -> Statement:
    """
    Fills `query_variable` with a key condition on the leading key arguments:
    the partition argument, then optionally the sort key argument.
    """
    query = Ref(query_variable)
    partition = config.field.name
    partition_arg = Ref(f"ctx.args.{partition}")

    body: tuple[Statement, ...] = (
        Set(query.child("expression"), Str(f"#{partition} = :{partition}")),
        Set(query.child("expressionNames"), Obj({f"#{partition}": Str(partition)})),
        Set(query.child("expressionValues"), Obj({f":{partition}": ToDynamoDB(partition_arg)})),
    )
    if config.sort_key_fields:
        body += _sort_key_conditions(config, query, options)

    return If(_present(partition_arg), body)


def query_expression_snippet(
    config: PrimaryKeyConfiguration,
    is_list_resolver: bool,
    options: TransformerOptions | None = None,
) -> Block:
    """
    Validates the sortDirection argument and builds modelQueryExpression.

    - without a sort key, sortDirection is rejected
    - on list resolvers, sortDirection requires the partition argument
    """
    partition = config.field.name
    sort_direction = Ref("ctx.args.sortDirection")
    statements: list[Statement] = []

    if not config.sort_key_fields:
        statements.append(
            If(
                _present(sort_direction),
                (
                    Error(
                        Str(
                            "sortDirection is not supported for List operations "
                            "without a Sort key defined."
                        ),
                        Str(INVALID_ARGUMENTS_ERROR),
                    ),
                ),
            )
        )
    elif is_list_resolver:
        statements.append(
            If(
                And((IsNull(Ref(f"ctx.args.{partition}")), _present(sort_direction))),
                (
                    Error(
                        Str(
                            "When providing argument 'sortDirection' you must also "
                            f"provide argument '{partition}'."
                        ),
                        Str(INVALID_ARGUMENTS_ERROR),
                    ),
                ),
            )
        )

    statements.append(Set(Ref(MODEL_QUERY_EXPRESSION), Obj()))
    statements.append(key_condition_snippet(config, MODEL_QUERY_EXPRESSION, options))
    return Block("Set query expression for key", tuple(statements))


def list_query_snippet(
    config: PrimaryKeyConfiguration, options: TransformerOptions | None = None
) -> Compound:
    """Query expression for a list resolver, published in the resolver metadata."""
    return Compound(
        (
            query_expression_snippet(config, True, options),
            MetadataPut(MODEL_QUERY_EXPRESSION, Ref(MODEL_QUERY_EXPRESSION)),
        )
    )


def query_request_template(
    config: IndexConfiguration, options: TransformerOptions | None = None
) -> Compound:
    """
    Request template of a secondary index query field.

    limit defaults to the page limit, results are ascending unless
    sortDirection is "DESC", nextToken and filter are forwarded when given.
    """
    options = options or TransformerOptions()
    request = Ref("QueryRequest")
    sort_direction = Ref("ctx.args.sortDirection")
    next_token = Ref("ctx.args.nextToken")
    filter_arg = Ref("ctx.args.filter")

    return compound(
        query_expression_snippet(config, False, options),
        Set(Ref("limit"), DefaultIfNull(Ref("ctx.args.limit"), Int(options.default_page_limit))),
        Set(
            request,
            Obj(
                {
                    "version": Str(RESOLVER_VERSION_ID),
                    "operation": Str("Query"),
                    "limit": Ref("limit"),
                    "query": Ref(MODEL_QUERY_EXPRESSION),
                    "index": Str(config.name),
                }
            ),
        ),
        If(
            And((_present(sort_direction), Equals(sort_direction, Str("DESC")))),
            (Set(request.child("scanIndexForward"), Bool(False)),),
            (Set(request.child("scanIndexForward"), Bool(True)),),
        ),
        If(next_token, (Set(request.child("nextToken"), next_token),)),
        If(filter_arg, (Set(request.child("filter"), ToDynamoDBFilterExpression(filter_arg)),)),
        Emit(request),
    )


def query_response_template() -> Compound:
    """Response template of a secondary index query field."""
    return Compound(
        (
            If(Ref("ctx.error"), (Error(Ref("ctx.error.message"), Ref("ctx.error.type")),)),
            Emit(Ref("ctx.result")),
        )
    )
