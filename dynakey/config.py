from dataclasses import dataclass, field
from typing import Any

from .schema import FieldDefinition, ObjectType

# Stash metadata keys shared between injected snippets and the DynamoDB
# operation templates generated by the model transformer.
MODEL_OBJECT_KEY = "modelObjectKey"
DYNAMODB_NAME_OVERRIDE_MAP = "dynamodbNameOverrideMap"
MODEL_QUERY_EXPRESSION = "modelQueryExpression"

# Template variables
HAS_SEEN_SOME_KEY_ARG = "hasSeenSomeKeyArg"
MERGED_VALUES = "mergedValues"

# Stack parameters and conditions owned by the model stack
DYNAMODB_MODEL_TABLE_READ_IOPS = "DynamoDBModelTableReadIOPS"
DYNAMODB_MODEL_TABLE_WRITE_IOPS = "DynamoDBModelTableWriteIOPS"
SHOULD_USE_PAY_PER_REQUEST_BILLING = "ShouldUsePayPerRequestBilling"

RESOLVER_VERSION_ID = "2018-05-29"
DEFAULT_PAGE_LIMIT = 100
POST_AUTH_SLOT = "postAuth"

SECONDARY_KEY_AS_GSI = "secondaryKeyAsGSI"


@dataclass
class FeatureFlags:
    """Boolean/number feature flags handed down by the host compiler."""

    values: dict[str, Any] = field(default_factory=dict)

    def get_boolean(self, name: str, default: bool = False) -> bool:
        value = self.values.get(name)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "false"):
            return value.strip().lower() == "true"
        raise ValueError(f"Feature flag '{name}' is not a boolean: {value!r}")


@dataclass
class TransformerOptions:
    """
    Knobs for key and index generation.

    Both separators default to '#'. composite_key_separator joins values
    into the stored composite sort key; composite_name_separator joins field
    names into the synthetic attribute name.
    """

    composite_key_separator: str = "#"
    composite_name_separator: str = "#"
    default_page_limit: int = DEFAULT_PAGE_LIMIT
    read_iops_parameter: str = DYNAMODB_MODEL_TABLE_READ_IOPS
    write_iops_parameter: str = DYNAMODB_MODEL_TABLE_WRITE_IOPS
    pay_per_request_condition: str = SHOULD_USE_PAY_PER_REQUEST_BILLING
    slot_name: str = POST_AUTH_SLOT
    feature_flags: FeatureFlags = field(default_factory=FeatureFlags)

    def __post_init__(self) -> None:
        if not self.composite_key_separator:
            raise ValueError("composite_key_separator must not be empty")
        if not self.composite_name_separator:
            raise ValueError("composite_name_separator must not be empty")

    @property
    def secondary_key_as_gsi(self) -> bool:
        return self.feature_flags.get_boolean(SECONDARY_KEY_AS_GSI, False)


@dataclass(frozen=True)
class PrimaryKeyConfiguration:
    """
    A @primaryKey declaration: one partition field and ordered sort fields.

    Sort field order is significant: it decides the composite attribute
    name, the encoded value, and the precedence of query conditions.
    """

    object: ObjectType
    field: FieldDefinition
    sort_key: tuple[FieldDefinition, ...] = ()

    def __post_init__(self) -> None:
        # Accept any sequence, store a tuple
        object.__setattr__(self, "sort_key", tuple(self.sort_key))
        names = [f.name for f in self.sort_key]
        if len(set(names)) != len(names):
            raise ValueError(
                f"Sort key fields of '{self.object.name}' must be unique, got {names}"
            )
        if self.field.name in names:
            raise ValueError(
                f"Field '{self.field.name}' of '{self.object.name}' cannot be both "
                "partition key and sort key"
            )

    @property
    def sort_key_fields(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.sort_key)

    @property
    def key_fields(self) -> tuple[FieldDefinition, ...]:
        return (self.field, *self.sort_key)

    @property
    def has_composite_sort_key(self) -> bool:
        return len(self.sort_key) > 1


@dataclass(frozen=True)
class IndexConfiguration(PrimaryKeyConfiguration):
    """
    An @index declaration on a model type.

    primary_key_field is the table's primary partition field; when unknown
    the partition key of the table itself is used. When given it must match
    that key.
    """

    name: str = ""
    query_field: str | None = None
    primary_key_field: FieldDefinition | None = None

    def __post_init__(self) -> None:
        super().__post_init__()
        if not self.name:
            raise ValueError(f"Index on '{self.object.name}.{self.field.name}' must have a name")

    @property
    def primary_partition_key_name(self) -> str | None:
        if self.primary_key_field is None:
            return None
        return self.primary_key_field.name
