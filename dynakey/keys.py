"""
Key schema translation and composite sort key encoding.

A key declaration has one partition field and any number of sort fields.
DynamoDB tables and indexes only have two key attributes, so two or more sort
fields are condensed into one synthetic string attribute:

    @primaryKey(sortKeyFields: ["year", "month", "day"])

    key schema:  id (HASH), year#month#day (RANGE)
    stored value for {year: 2024, month: 3, day: 1}:  "2024#3#1"

The encoding is one-way. Resolvers re-derive the component values from their
arguments and never parse the stored string back.
"""

import re
from collections.abc import Sequence
from typing import Any

from .config import PrimaryKeyConfiguration, TransformerOptions
from .schema import Schema
from .table import AttributeDefinition, KeySchemaElement

_NON_ALPHANUMERIC = re.compile(r"[^_0-9A-Za-z]")


def composite_sort_key_name(
    sort_key_fields: Sequence[str], options: TransformerOptions | None = None
) -> str:
    """Synthetic attribute name: the sort field names joined in declared order."""
    options = options or TransformerOptions()
    return options.composite_name_separator.join(sort_key_fields)


def sort_key_name(
    config: PrimaryKeyConfiguration, options: TransformerOptions | None = None
) -> str | None:
    """
    Physical sort attribute name for a key declaration.

    Returns the field name verbatim for a single sort field, the synthetic
    name for a composite sort key, and None when there is no sort key.
    """
    fields = config.sort_key_fields
    if not fields:
        return None
    if len(fields) == 1:
        return fields[0]
    return composite_sort_key_name(fields, options)


def graphql_name(name: str) -> str:
    """Strips characters GraphQL does not allow in names."""
    return _NON_ALPHANUMERIC.sub("", name)


def composite_argument_name(sort_key_fields: Sequence[str]) -> str:
    """
    camelCase name for a composite key, e.g. ["year", "month"] -> "yearMonth".

    Used as the query argument carrying the composite sort condition and as
    the GraphQL-side name of the synthetic attribute.
    """
    parts = [graphql_name(f) for f in sort_key_fields]
    parts = [p for p in parts if p]
    if not parts:
        return ""
    head, *rest = parts
    return head[:1].lower() + head[1:] + "".join(p[:1].upper() + p[1:] for p in rest)


def sort_key_argument_name(config: PrimaryKeyConfiguration) -> str | None:
    """Name of the query argument that carries the sort key condition."""
    fields = config.sort_key_fields
    if not fields:
        return None
    if len(fields) == 1:
        return fields[0]
    return composite_argument_name(fields)


def key_schema(
    config: PrimaryKeyConfiguration, options: TransformerOptions | None = None
) -> list[KeySchemaElement]:
    """Physical key schema: the partition attribute and at most one sort attribute."""
    schema = [KeySchemaElement(attribute_name=config.field.name, key_type="HASH")]
    range_name = sort_key_name(config, options)
    if range_name is not None:
        schema.append(KeySchemaElement(attribute_name=range_name, key_type="RANGE"))
    return schema


def attribute_definitions(
    config: PrimaryKeyConfiguration,
    schema: Schema,
    options: TransformerOptions | None = None,
) -> list[AttributeDefinition]:
    """
    Attribute definitions for the key attributes of a declaration.

    The composite attribute is always a string, whatever its component types.

    Raises:
        InvalidKeyFieldError: If a key field cannot back a key attribute
    """
    definitions = [
        AttributeDefinition(
            attribute_name=config.field.name,
            attribute_type=schema.attribute_type_for(config.field),
        )
    ]

    if len(config.sort_key) == 1:
        definitions.append(
            AttributeDefinition(
                attribute_name=config.sort_key[0].name,
                attribute_type=schema.attribute_type_for(config.sort_key[0]),
            )
        )
    elif len(config.sort_key) > 1:
        # Validate the component fields even though the attribute is a string
        for sort_field in config.sort_key:
            schema.attribute_type_for(sort_field)
        definitions.append(
            AttributeDefinition(
                attribute_name=composite_sort_key_name(config.sort_key_fields, options),
                attribute_type="S",
            )
        )

    return definitions


def composite_value_template(
    prefix: str, sort_key_fields: Sequence[str], options: TransformerOptions | None = None
) -> str:
    """
    Template string that assembles the composite value at request time.

    composite_value_template("mergedValues", ["year", "month"])
        -> "${mergedValues.year}#${mergedValues.month}"
    """
    options = options or TransformerOptions()
    return options.composite_key_separator.join(
        f"${{{prefix}.{name}}}" for name in sort_key_fields
    )


def encode_composite_value(values: Sequence[Any], options: TransformerOptions | None = None) -> str:
    """
    Encodes concrete component values the way the templates store them.

    encode_composite_value([2024, 3, 1]) -> "2024#3#1"

    Every component must be present. A template with a missing component
    keeps the unresolved reference in the stored value, which has no
    encoded equivalent.

    Raises:
        ValueError: If a component is None
    """
    options = options or TransformerOptions()
    return options.composite_key_separator.join(_format_component(v) for v in values)


def _format_component(value: Any) -> str:
    if value is None:
        raise ValueError("Composite key components must not be None")
    # Template interpolation renders booleans lowercase
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
