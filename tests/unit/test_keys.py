"""
Unit tests for key schema translation and composite sort key encoding.
"""

import pytest

from dynakey.config import PrimaryKeyConfiguration, TransformerOptions
from dynakey.exceptions import InvalidKeyFieldError
from dynakey.expressions import compound
from dynakey.keys import (
    attribute_definitions,
    composite_argument_name,
    composite_sort_key_name,
    composite_value_template,
    encode_composite_value,
    graphql_name,
    key_schema,
    sort_key_argument_name,
    sort_key_name,
)
from dynakey.runtime import RequestContext
from dynakey.snippets import ensure_composite_key_snippet, merge_inputs_and_defaults_snippet


@pytest.mark.unit
class TestSortKeyNames:
    """Test physical and GraphQL names of sort keys."""

    def test_composite_name_joins_in_declared_order(self) -> None:
        assert composite_sort_key_name(["year", "month", "day"]) == "year#month#day"
        assert composite_sort_key_name(["day", "month", "year"]) == "day#month#year"

    def test_composite_name_uses_name_separator(self) -> None:
        options = TransformerOptions(composite_name_separator="_", composite_key_separator="|")

        assert composite_sort_key_name(["year", "month"], options) == "year_month"

    def test_sort_key_name(self, simple_primary_key, composite_primary_key, todo) -> None:
        """Test no sort key, one sort field verbatim, and the synthetic name."""
        single = PrimaryKeyConfiguration(
            object=todo, field=todo.fields["id"], sort_key=(todo.fields["createdAt"],)
        )

        assert sort_key_name(simple_primary_key) is None
        assert sort_key_name(single) == "createdAt"
        assert sort_key_name(composite_primary_key) == "year#month#day"

    def test_composite_argument_name(self) -> None:
        assert composite_argument_name(["year", "month", "day"]) == "yearMonthDay"
        assert composite_argument_name(["Status", "created_at"]) == "statusCreated_at"

    def test_graphql_name_strips_invalid_characters(self) -> None:
        assert graphql_name("year#month") == "yearmonth"

    def test_sort_key_argument_name(self, simple_primary_key, composite_primary_key) -> None:
        assert sort_key_argument_name(simple_primary_key) is None
        assert sort_key_argument_name(composite_primary_key) == "yearMonthDay"


@pytest.mark.unit
class TestKeySchema:
    """Test translation of key declarations into key schema and attribute definitions."""

    def test_partition_only(self, simple_primary_key) -> None:
        schema = key_schema(simple_primary_key)

        assert [e.to_cfn() for e in schema] == [{"AttributeName": "id", "KeyType": "HASH"}]

    def test_at_most_two_elements(self, composite_primary_key) -> None:
        """Test any number of sort fields condenses into a single RANGE element."""
        schema = key_schema(composite_primary_key)

        assert [e.to_cfn() for e in schema] == [
            {"AttributeName": "id", "KeyType": "HASH"},
            {"AttributeName": "year#month#day", "KeyType": "RANGE"},
        ]

    def test_composite_attribute_is_string(self, schema, composite_primary_key) -> None:
        """Test the synthetic attribute is S even though its components are Int."""
        definitions = attribute_definitions(composite_primary_key, schema)

        assert [d.to_cfn() for d in definitions] == [
            {"AttributeName": "id", "AttributeType": "S"},
            {"AttributeName": "year#month#day", "AttributeType": "S"},
        ]

    def test_single_sort_field_keeps_its_type(self, schema, todo) -> None:
        config = PrimaryKeyConfiguration(
            object=todo, field=todo.fields["status"], sort_key=(todo.fields["year"],)
        )

        definitions = {
            d.attribute_name: d.attribute_type for d in attribute_definitions(config, schema)
        }

        assert definitions == {"status": "S", "year": "N"}

    def test_translation_is_pure(self, schema, status_date_index) -> None:
        """Test repeated translation gives equal results and leaves the declaration as it was."""
        sort_key = status_date_index.sort_key
        before = (status_date_index.field, sort_key, status_date_index.sort_key_fields)

        first = (key_schema(status_date_index), attribute_definitions(status_date_index, schema))
        second = (key_schema(status_date_index), attribute_definitions(status_date_index, schema))

        assert first == second
        assert status_date_index.sort_key is sort_key
        assert (
            status_date_index.field,
            status_date_index.sort_key,
            status_date_index.sort_key_fields,
        ) == before
        assert status_date_index.sort_key_fields == ("year", "month")

    def test_invalid_composite_component_rejected(self, schema, todo) -> None:
        """Test component types are validated even though the attribute is a string."""
        config = PrimaryKeyConfiguration(
            object=todo,
            field=todo.fields["id"],
            sort_key=(todo.fields["year"], todo.fields["done"]),
        )

        with pytest.raises(InvalidKeyFieldError, match="done"):
            attribute_definitions(config, schema)


@pytest.mark.unit
class TestCompositeValues:
    """Test the encoding of composite sort key values."""

    def test_encode(self) -> None:
        assert encode_composite_value([2024, 3, 1]) == "2024#3#1"

    def test_encode_custom_separator(self) -> None:
        options = TransformerOptions(composite_key_separator="|")

        assert encode_composite_value([2024, 3, 1], options) == "2024|3|1"

    def test_encode_matches_stored_value(self, composite_primary_key, runtime) -> None:
        """Test the encoder agrees with the value the write templates store."""
        context = RequestContext(args={"input": {"id": "t1", "year": 2024, "month": 3, "day": 1}})

        runtime.evaluate(
            compound(
                merge_inputs_and_defaults_snippet(),
                ensure_composite_key_snippet(composite_primary_key, False),
            ),
            context,
        )

        stored = context.arguments["input"]["year#month#day"]
        assert stored == encode_composite_value([2024, 3, 1])

    def test_missing_component(self, composite_primary_key, runtime) -> None:
        """Test a missing component has no encoding; the template keeps the reference."""
        context = RequestContext(args={"input": {"id": "t1", "year": 2024, "month": 3}})

        runtime.evaluate(
            compound(
                merge_inputs_and_defaults_snippet(),
                ensure_composite_key_snippet(composite_primary_key, False),
            ),
            context,
        )

        assert context.arguments["input"]["year#month#day"] == "2024#3#${mergedValues.day}"
        with pytest.raises(ValueError, match="must not be None"):
            encode_composite_value([2024, 3, None])

    def test_encode_booleans_lowercase(self) -> None:
        assert encode_composite_value(["a", True]) == "a#true"

    def test_order_is_significant(self) -> None:
        assert encode_composite_value(["a", "b"]) != encode_composite_value(["b", "a"])

    def test_distinct_tuples_encode_distinctly(self) -> None:
        """Without the separator inside a component, the encoding is injective."""
        values = [(2024, 3, 1), (2024, 31, 0), (202, 43, 1), (2024, 3, 10)]

        encoded = {encode_composite_value(v) for v in values}

        assert len(encoded) == len(values)

    def test_value_template(self) -> None:
        template = composite_value_template("mergedValues", ["year", "month"])

        assert template == "${mergedValues.year}#${mergedValues.month}"
