"""
Unit tests for schema introspection: key attribute types and model operation names.
"""

import pytest

from dynakey.exceptions import InvalidKeyFieldError
from dynakey.schema import FieldDefinition, ObjectType, Schema, pluralize


@pytest.mark.unit
class TestAttributeTypes:
    """Test GraphQL type -> DynamoDB attribute type resolution."""

    @pytest.mark.parametrize(
        "type_name,expected",
        [
            ("ID", "S"),
            ("String", "S"),
            ("AWSDateTime", "S"),
            ("AWSEmail", "S"),
            ("Int", "N"),
            ("Float", "N"),
            ("AWSTimestamp", "N"),
        ],
    )
    def test_scalar_types(self, schema: Schema, type_name: str, expected: str) -> None:
        assert schema.attribute_type_for(FieldDefinition("f", type_name)) == expected

    def test_enum_stored_as_string(self, schema: Schema) -> None:
        assert schema.attribute_type_for(FieldDefinition("status", "Status")) == "S"

    def test_boolean_rejected(self, schema: Schema) -> None:
        with pytest.raises(InvalidKeyFieldError) as exc_info:
            schema.attribute_type_for(FieldDefinition("done", "Boolean"))

        assert exc_info.value.field_name == "done"
        assert "Boolean values cannot be used as keys" in str(exc_info.value)

    def test_list_rejected(self, schema: Schema) -> None:
        with pytest.raises(InvalidKeyFieldError, match="list values"):
            schema.attribute_type_for(FieldDefinition("tags", "String", is_list=True))

    def test_object_type_rejected(self, schema: Schema) -> None:
        """Test types with no DynamoDB attribute type (e.g. nested objects)."""
        with pytest.raises(InvalidKeyFieldError, match="no valid DynamoDB attribute type"):
            schema.attribute_type_for(FieldDefinition("owner", "User"))


@pytest.mark.unit
class TestOperationNames:
    """Test names of the root fields a model type generates."""

    def test_default_names(self, todo: ObjectType) -> None:
        assert todo.operation_name("get") == "getTodo"
        assert todo.operation_name("list") == "listTodos"
        assert todo.operation_name("create") == "createTodo"
        assert todo.operation_name("update") == "updateTodo"
        assert todo.operation_name("delete") == "deleteTodo"

    def test_renamed_operation(self) -> None:
        post = ObjectType.build("Post", queries={"get": "post", "list": "posts"})

        assert post.operation_name("get") == "post"
        assert post.operation_name("list") == "posts"
        assert post.operation_name("create") == "createPost"

    def test_disabled_operation(self) -> None:
        """Test an explicit None means the model does not generate the operation."""
        post = ObjectType.build("Post", mutations={"delete": None})

        assert post.operation_name("delete") is None
        assert post.operation_name("update") == "updatePost"

    def test_unknown_operation(self, todo: ObjectType) -> None:
        with pytest.raises(ValueError, match="Unknown model operation 'sync'"):
            todo.operation_name("sync")

    def test_plural_override(self) -> None:
        person = ObjectType.build("Person", plural_name="People")

        assert person.operation_name("list") == "listPeople"

    @pytest.mark.parametrize(
        "name,plural",
        [("Todo", "Todos"), ("Category", "Categories"), ("Day", "Days"), ("Box", "Boxes")],
    )
    def test_pluralize(self, name: str, plural: str) -> None:
        assert pluralize(name) == plural


@pytest.mark.unit
class TestSchemaLookup:
    def test_get_type(self, schema: Schema, todo: ObjectType) -> None:
        assert schema.get_type("Todo") is todo
        assert schema.get_type("Missing") is None

    def test_get_field(self, todo: ObjectType) -> None:
        assert todo.get_field("year") == FieldDefinition("year", "Int")
        assert todo.get_field("missing") is None

    def test_is_enum(self, schema: Schema) -> None:
        assert schema.is_enum("Status") is True
        assert schema.is_enum("String") is False
