"""
Unit tests for transformer options and key declarations.
"""

import pytest

from dynakey.config import (
    SECONDARY_KEY_AS_GSI,
    FeatureFlags,
    IndexConfiguration,
    PrimaryKeyConfiguration,
    TransformerOptions,
)


@pytest.mark.unit
class TestTransformerOptions:
    """Test TransformerOptions defaults and validation."""

    def test_defaults(self) -> None:
        """Test both separators default to '#' and the stack names are the model stack's."""
        options = TransformerOptions()

        assert options.composite_key_separator == "#"
        assert options.composite_name_separator == "#"
        assert options.default_page_limit == 100
        assert options.read_iops_parameter == "DynamoDBModelTableReadIOPS"
        assert options.write_iops_parameter == "DynamoDBModelTableWriteIOPS"
        assert options.pay_per_request_condition == "ShouldUsePayPerRequestBilling"
        assert options.slot_name == "postAuth"
        assert options.secondary_key_as_gsi is False

    def test_separators_configurable_independently(self) -> None:
        options = TransformerOptions(composite_key_separator="|", composite_name_separator="_")

        assert options.composite_key_separator == "|"
        assert options.composite_name_separator == "_"

    @pytest.mark.parametrize("field_name", ["composite_key_separator", "composite_name_separator"])
    def test_empty_separator_rejected(self, field_name: str) -> None:
        with pytest.raises(ValueError, match=field_name):
            TransformerOptions(**{field_name: ""})

    def test_secondary_key_as_gsi_flag(self) -> None:
        """Test the feature flag forces every index to be global."""
        options = TransformerOptions(feature_flags=FeatureFlags({SECONDARY_KEY_AS_GSI: True}))

        assert options.secondary_key_as_gsi is True


@pytest.mark.unit
class TestFeatureFlags:
    def test_missing_flag_uses_default(self) -> None:
        flags = FeatureFlags()

        assert flags.get_boolean("anything") is False
        assert flags.get_boolean("anything", True) is True

    def test_set_flag(self) -> None:
        flags = FeatureFlags({"someFlag": False})

        assert flags.get_boolean("someFlag", True) is False

    @pytest.mark.parametrize("raw,expected", [("false", False), ("FALSE", False), ("true", True)])
    def test_string_flag_parsed(self, raw: str, expected: bool) -> None:
        options = TransformerOptions(feature_flags=FeatureFlags({SECONDARY_KEY_AS_GSI: raw}))

        assert options.secondary_key_as_gsi is expected

    def test_non_boolean_flag_rejected(self) -> None:
        flags = FeatureFlags({"someFlag": "sometimes"})

        with pytest.raises(ValueError, match="Feature flag 'someFlag' is not a boolean"):
            flags.get_boolean("someFlag")


@pytest.mark.unit
class TestPrimaryKeyConfiguration:
    """Test key declaration invariants."""

    def test_sort_key_stored_as_tuple(self, todo) -> None:
        config = PrimaryKeyConfiguration(
            object=todo, field=todo.fields["id"], sort_key=[todo.fields["year"]]
        )

        assert config.sort_key == (todo.fields["year"],)
        assert config.sort_key_fields == ("year",)

    def test_key_fields_partition_first(self, composite_primary_key) -> None:
        names = [f.name for f in composite_primary_key.key_fields]

        assert names == ["id", "year", "month", "day"]

    def test_has_composite_sort_key(self, simple_primary_key, composite_primary_key) -> None:
        assert simple_primary_key.has_composite_sort_key is False
        assert composite_primary_key.has_composite_sort_key is True

    def test_duplicate_sort_fields_rejected(self, todo) -> None:
        with pytest.raises(ValueError, match="must be unique"):
            PrimaryKeyConfiguration(
                object=todo,
                field=todo.fields["id"],
                sort_key=(todo.fields["year"], todo.fields["year"]),
            )

    def test_partition_field_in_sort_key_rejected(self, todo) -> None:
        with pytest.raises(ValueError, match="both partition key and sort key"):
            PrimaryKeyConfiguration(
                object=todo, field=todo.fields["id"], sort_key=(todo.fields["id"],)
            )


@pytest.mark.unit
class TestIndexConfiguration:
    def test_name_required(self, todo) -> None:
        with pytest.raises(ValueError, match="must have a name"):
            IndexConfiguration(object=todo, field=todo.fields["status"])

    def test_primary_partition_key_name(self, todo) -> None:
        """Test the primary partition name is only known when the field is given."""
        unknown = IndexConfiguration(object=todo, field=todo.fields["status"], name="byStatus")
        known = IndexConfiguration(
            object=todo,
            field=todo.fields["status"],
            name="byStatus",
            primary_key_field=todo.fields["email"],
        )

        assert unknown.primary_partition_key_name is None
        assert known.primary_partition_key_name == "email"

    def test_index_is_a_key_declaration(self, status_date_index) -> None:
        assert isinstance(status_date_index, PrimaryKeyConfiguration)
        assert status_date_index.sort_key_fields == ("year", "month")
        assert status_date_index.query_field == "todosByStatus"
