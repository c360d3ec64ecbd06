"""
Minimal schema introspection for key and index generation.

The host compiler owns schema parsing. This module only models what the key
generators need to ask of a parsed schema: the declared type of a field,
whether that type is an enum, the root operation type names, and the names of
the operations a model type generates.
"""

from dataclasses import dataclass, field
from typing import Literal

from .exceptions import InvalidKeyFieldError

AttributeType = Literal["S", "N", "B"]

# GraphQL scalar -> DynamoDB scalar attribute type.
# AppSync scalars are backed by String or Int on the wire.
SCALAR_ATTRIBUTE_TYPES: dict[str, AttributeType] = {
    "ID": "S",
    "String": "S",
    "Int": "N",
    "Float": "N",
    "AWSDate": "S",
    "AWSTime": "S",
    "AWSDateTime": "S",
    "AWSTimestamp": "N",
    "AWSEmail": "S",
    "AWSJSON": "S",
    "AWSURL": "S",
    "AWSPhone": "S",
    "AWSIPAddress": "S",
}

QUERY_OPERATIONS = ("get", "list")
MUTATION_OPERATIONS = ("create", "update", "delete")


@dataclass(frozen=True)
class FieldDefinition:
    """A field of an object type, reduced to its base type and wrappers."""

    name: str
    type_name: str
    required: bool = False
    is_list: bool = False


@dataclass
class ObjectType:
    """
    A model type of the schema.

    `queries` and `mutations` override the generated operation names:
    a string renames the operation, None means the model does not generate it.
    """

    name: str
    fields: dict[str, FieldDefinition] = field(default_factory=dict)
    queries: dict[str, str | None] = field(default_factory=dict)
    mutations: dict[str, str | None] = field(default_factory=dict)
    plural_name: str | None = None

    @classmethod
    def build(cls, name: str, *fields: FieldDefinition, **kwargs) -> "ObjectType":
        return cls(name=name, fields={f.name: f for f in fields}, **kwargs)

    def get_field(self, field_name: str) -> FieldDefinition | None:
        return self.fields.get(field_name)

    def plural(self) -> str:
        if self.plural_name:
            return self.plural_name
        return pluralize(self.name)

    def operation_name(self, operation: str) -> str | None:
        """
        Returns the name of the root field generated for a model operation.

        Args:
            operation: One of get, list, create, update, delete

        Returns:
            The field name (e.g. getTodo, listTodos), or None if the model
            does not generate that operation.
        """
        if operation not in QUERY_OPERATIONS + MUTATION_OPERATIONS:
            raise ValueError(f"Unknown model operation '{operation}'")

        overrides = self.queries if operation in QUERY_OPERATIONS else self.mutations
        if operation in overrides:
            return overrides[operation]

        capitalized = self.name[:1].upper() + self.name[1:]
        if operation == "list":
            plural = self.plural()
            return f"list{plural[:1].upper()}{plural[1:]}"
        return f"{operation}{capitalized}"


@dataclass
class Schema:
    """Object types, enum names and root type names of a parsed schema."""

    types: dict[str, ObjectType] = field(default_factory=dict)
    enums: dict[str, tuple[str, ...]] = field(default_factory=dict)
    query_type_name: str | None = "Query"
    mutation_type_name: str | None = "Mutation"

    def add_type(self, object_type: ObjectType) -> ObjectType:
        self.types[object_type.name] = object_type
        return object_type

    def add_enum(self, name: str, values: tuple[str, ...] | list[str]) -> None:
        self.enums[name] = tuple(values)

    def get_type(self, name: str) -> ObjectType | None:
        return self.types.get(name)

    def is_enum(self, type_name: str) -> bool:
        return type_name in self.enums

    def attribute_type_for(self, field_def: FieldDefinition) -> AttributeType:
        """
        Resolves the DynamoDB attribute type for a key field.

        Enums are stored as their string names. Scalars map through
        SCALAR_ATTRIBUTE_TYPES.

        Raises:
            InvalidKeyFieldError: For Boolean, list, object or unknown types
        """
        if field_def.is_list:
            raise InvalidKeyFieldError(
                field_def.name, field_def.type_name, "list values cannot be used as keys"
            )
        if self.is_enum(field_def.type_name):
            return "S"
        if field_def.type_name == "Boolean":
            raise InvalidKeyFieldError(
                field_def.name, field_def.type_name, "Boolean values cannot be used as keys"
            )
        attribute_type = SCALAR_ATTRIBUTE_TYPES.get(field_def.type_name)
        if attribute_type is None:
            raise InvalidKeyFieldError(
                field_def.name,
                field_def.type_name,
                "there is no valid DynamoDB attribute type for this type",
            )
        return attribute_type


def pluralize(name: str) -> str:
    """Naive English plural used for default list operation names."""
    lower = name.lower()
    if lower.endswith("y") and len(name) > 1 and lower[-2] not in "aeiou":
        return name[:-1] + "ies"
    if lower.endswith(("s", "x", "z", "ch", "sh")):
        return name + "es"
    return name + "s"
