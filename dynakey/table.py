"""
In-memory DynamoDB table resource.

The host stack describes every model table twice: a high-level construct
(partition/sort key, index helpers) and the low-level CloudFormation
declaration underneath it. Only partly reconciled by the framework, the two
used to be updated by hand and could drift. Here a single Table entity owns
the key schema, attribute definitions and indexes; describe() and
to_cloudformation() are both derived from it.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_pascal

from ._logging import logger

KeyType = Literal["HASH", "RANGE"]
ScalarAttributeType = Literal["S", "N", "B"]

NO_VALUE = {"Ref": "AWS::NoValue"}


def ref(name: str) -> dict[str, str]:
    """CloudFormation Ref intrinsic."""
    return {"Ref": name}


def fn_if(condition: str, if_true: Any, if_false: Any) -> dict[str, list[Any]]:
    """CloudFormation Fn::If intrinsic."""
    return {"Fn::If": [condition, if_true, if_false]}


class _CfnModel(BaseModel):
    # Field names are snake_case in Python, PascalCase in CloudFormation
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_pascal)

    def to_cfn(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class KeySchemaElement(_CfnModel):
    attribute_name: str
    key_type: KeyType


class AttributeDefinition(_CfnModel):
    attribute_name: str
    attribute_type: ScalarAttributeType


class KeyAttribute(BaseModel):
    """High-level key attribute: a name and its scalar type."""

    model_config = ConfigDict(frozen=True)

    name: str
    type: ScalarAttributeType = "S"


class LocalSecondaryIndex(BaseModel):
    model_config = ConfigDict(frozen=True)

    index_name: str
    sort_key: KeyAttribute | None = None
    projection_type: str = "ALL"


class GlobalSecondaryIndex(BaseModel):
    model_config = ConfigDict(frozen=True)

    index_name: str
    partition_key: KeyAttribute
    sort_key: KeyAttribute | None = None
    projection_type: str = "ALL"
    read_capacity: Any = None
    write_capacity: Any = None


class Table(BaseModel):
    """
    The single authoritative model of a table resource.

    Mutate it only through its methods: they keep key schema, partition/sort
    key and attribute definitions consistent with each other.
    """

    logical_id: str
    partition_key: KeyAttribute
    sort_key: KeyAttribute | None = None
    attribute_definitions: list[AttributeDefinition] = Field(default_factory=list)
    local_secondary_indexes: list[LocalSecondaryIndex] = Field(default_factory=list)
    global_secondary_indexes: list[GlobalSecondaryIndex] = Field(default_factory=list)
    pay_per_request_condition: str = "ShouldUsePayPerRequestBilling"

    @classmethod
    def create(
        cls,
        logical_id: str,
        partition_key: KeyAttribute | None = None,
        sort_key: KeyAttribute | None = None,
        **kwargs: Any,
    ) -> "Table":
        """Creates a table keyed like a freshly generated model table (id: S) by default."""
        partition_key = partition_key or KeyAttribute(name="id", type="S")
        table = cls(logical_id=logical_id, partition_key=partition_key, sort_key=sort_key, **kwargs)
        table._register_attribute(partition_key)
        if sort_key is not None:
            table._register_attribute(sort_key)
        return table

    @property
    def key_schema(self) -> list[KeySchemaElement]:
        schema = [KeySchemaElement(attribute_name=self.partition_key.name, key_type="HASH")]
        if self.sort_key is not None:
            schema.append(KeySchemaElement(attribute_name=self.sort_key.name, key_type="RANGE"))
        return schema

    def attribute_type(self, attribute_name: str) -> ScalarAttributeType | None:
        for definition in self.attribute_definitions:
            if definition.attribute_name == attribute_name:
                return definition.attribute_type
        return None

    # --- MUTATIONS ---

    def replace_primary_key(
        self,
        key_schema: list[KeySchemaElement],
        attribute_definitions: list[AttributeDefinition],
    ) -> None:
        """
        Replaces the primary key.

        Attribute definitions of the current key attributes are dropped, then
        the new key attributes are defined. Definitions used by indexes are
        left alone.

        Args:
            key_schema: HASH element, optionally followed by a RANGE element
            attribute_definitions: Definitions covering every key_schema attribute
        """
        types = {d.attribute_name: d.attribute_type for d in attribute_definitions}
        hash_elements = [e for e in key_schema if e.key_type == "HASH"]
        range_elements = [e for e in key_schema if e.key_type == "RANGE"]
        if len(hash_elements) != 1 or len(range_elements) > 1:
            raise ValueError(
                f"Key schema of '{self.logical_id}' needs one HASH and at most one RANGE "
                f"element, got {[e.to_cfn() for e in key_schema]}"
            )
        missing = [e.attribute_name for e in key_schema if e.attribute_name not in types]
        if missing:
            raise ValueError(f"Key attributes {missing} of '{self.logical_id}' have no definition")

        old_key_names = {e.attribute_name for e in self.key_schema}
        still_used = self._index_attribute_names()
        self.attribute_definitions = [
            d
            for d in self.attribute_definitions
            if d.attribute_name not in old_key_names or d.attribute_name in still_used
        ]

        partition_name = hash_elements[0].attribute_name
        self.partition_key = KeyAttribute(name=partition_name, type=types[partition_name])
        if range_elements:
            sort_name = range_elements[0].attribute_name
            self.sort_key = KeyAttribute(name=sort_name, type=types[sort_name])
        else:
            self.sort_key = None

        for definition in attribute_definitions:
            self._register_attribute(
                KeyAttribute(name=definition.attribute_name, type=definition.attribute_type)
            )

        logger.info(
            "Replaced primary key",
            extra={
                "table": self.logical_id,
                "key_schema": [e.to_cfn() for e in self.key_schema],
            },
        )

    def add_local_secondary_index(self, index: LocalSecondaryIndex) -> None:
        self._ensure_unique_index_name(index.index_name)
        if index.sort_key is not None:
            self._register_attribute(index.sort_key)
        self.local_secondary_indexes.append(index)
        logger.info(
            "Added local secondary index",
            extra={"table": self.logical_id, "index": index.index_name},
        )

    def add_global_secondary_index(self, index: GlobalSecondaryIndex) -> None:
        self._ensure_unique_index_name(index.index_name)
        self._register_attribute(index.partition_key)
        if index.sort_key is not None:
            self._register_attribute(index.sort_key)
        self.global_secondary_indexes.append(index)
        logger.info(
            "Added global secondary index",
            extra={"table": self.logical_id, "index": index.index_name},
        )

    def get_index(self, index_name: str) -> LocalSecondaryIndex | GlobalSecondaryIndex | None:
        for index in [*self.local_secondary_indexes, *self.global_secondary_indexes]:
            if index.index_name == index_name:
                return index
        return None

    def _register_attribute(self, attribute: KeyAttribute) -> None:
        existing = self.attribute_type(attribute.name)
        if existing is None:
            self.attribute_definitions.append(
                AttributeDefinition(attribute_name=attribute.name, attribute_type=attribute.type)
            )
        elif existing != attribute.type:
            raise ValueError(
                f"Attribute '{attribute.name}' of '{self.logical_id}' is already defined "
                f"as '{existing}', cannot redefine it as '{attribute.type}'"
            )

    def _ensure_unique_index_name(self, index_name: str) -> None:
        if self.get_index(index_name) is not None:
            raise ValueError(f"Index '{index_name}' already exists on '{self.logical_id}'")

    def _index_attribute_names(self) -> set[str]:
        names: set[str] = set()
        for lsi in self.local_secondary_indexes:
            if lsi.sort_key is not None:
                names.add(lsi.sort_key.name)
        for gsi in self.global_secondary_indexes:
            names.add(gsi.partition_key.name)
            if gsi.sort_key is not None:
                names.add(gsi.sort_key.name)
        return names

    # --- VIEWS ---

    def describe(self) -> dict[str, Any]:
        """High-level construct view (partition/sort key and index props)."""
        return {
            "partitionKey": self.partition_key.model_dump(),
            "sortKey": self.sort_key.model_dump() if self.sort_key else None,
            "keySchema": [
                {"attributeName": e.attribute_name, "keyType": e.key_type}
                for e in self.key_schema
            ],
            "attributeDefinitions": [
                {"attributeName": d.attribute_name, "attributeType": d.attribute_type}
                for d in self.attribute_definitions
            ],
            "localSecondaryIndexes": [
                {
                    "indexName": lsi.index_name,
                    "sortKey": lsi.sort_key.model_dump() if lsi.sort_key else None,
                    "projectionType": lsi.projection_type,
                }
                for lsi in self.local_secondary_indexes
            ],
            "globalSecondaryIndexes": [
                {
                    "indexName": gsi.index_name,
                    "partitionKey": gsi.partition_key.model_dump(),
                    "sortKey": gsi.sort_key.model_dump() if gsi.sort_key else None,
                    "projectionType": gsi.projection_type,
                    "readCapacity": gsi.read_capacity,
                    "writeCapacity": gsi.write_capacity,
                }
                for gsi in self.global_secondary_indexes
            ],
        }

    def to_cloudformation(self) -> dict[str, Any]:
        """Low-level AWS::DynamoDB::Table declaration."""
        properties: dict[str, Any] = {
            "KeySchema": [e.to_cfn() for e in self.key_schema],
            "AttributeDefinitions": [d.to_cfn() for d in self.attribute_definitions],
        }

        if self.local_secondary_indexes:
            properties["LocalSecondaryIndexes"] = [
                {
                    "IndexName": lsi.index_name,
                    "KeySchema": [e.to_cfn() for e in self._lsi_key_schema(lsi)],
                    "Projection": {"ProjectionType": lsi.projection_type},
                }
                for lsi in self.local_secondary_indexes
            ]

        if self.global_secondary_indexes:
            properties["GlobalSecondaryIndexes"] = [
                self._gsi_to_cfn(gsi) for gsi in self.global_secondary_indexes
            ]

        return {"Type": "AWS::DynamoDB::Table", "Properties": properties}

    def _lsi_key_schema(self, lsi: LocalSecondaryIndex) -> list[KeySchemaElement]:
        schema = [KeySchemaElement(attribute_name=self.partition_key.name, key_type="HASH")]
        if lsi.sort_key is not None:
            schema.append(KeySchemaElement(attribute_name=lsi.sort_key.name, key_type="RANGE"))
        return schema

    def _gsi_to_cfn(self, gsi: GlobalSecondaryIndex) -> dict[str, Any]:
        schema = [KeySchemaElement(attribute_name=gsi.partition_key.name, key_type="HASH")]
        if gsi.sort_key is not None:
            schema.append(KeySchemaElement(attribute_name=gsi.sort_key.name, key_type="RANGE"))

        declaration: dict[str, Any] = {
            "IndexName": gsi.index_name,
            "KeySchema": [e.to_cfn() for e in schema],
            "Projection": {"ProjectionType": gsi.projection_type},
        }
        if gsi.read_capacity is not None or gsi.write_capacity is not None:
            # Capacity must disappear entirely for on-demand tables
            declaration["ProvisionedThroughput"] = fn_if(
                self.pay_per_request_condition,
                NO_VALUE,
                {
                    "ReadCapacityUnits": gsi.read_capacity,
                    "WriteCapacityUnits": gsi.write_capacity,
                },
            )
        return declaration


class DataSource(BaseModel):
    """A DynamoDB data source bound to a model table."""

    name: str
    table: Table
