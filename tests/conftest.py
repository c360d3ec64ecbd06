"""
Shared pytest fixtures and configuration for dynakey tests.

Provides a small schema with a Todo model type, key declarations on it and a
transformer context pre-populated with the model's table, data source and
CRUDL resolvers, the way the model transformer leaves them.
"""

import pytest

from dynakey.config import IndexConfiguration, PrimaryKeyConfiguration, TransformerOptions
from dynakey.resolvers import Resolver
from dynakey.runtime import TemplateRuntime
from dynakey.schema import FieldDefinition, ObjectType, Schema
from dynakey.transformer import TransformerContext

MODEL_RESOLVERS = [
    ("Query", "getTodo"),
    ("Query", "listTodos"),
    ("Mutation", "createTodo"),
    ("Mutation", "updateTodo"),
    ("Mutation", "deleteTodo"),
]


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests without external dependencies")


@pytest.fixture
def schema() -> Schema:
    """A schema with a Status enum and a Todo model type."""
    schema = Schema()
    schema.add_enum("Status", ["OPEN", "DONE"])
    schema.add_type(
        ObjectType.build(
            "Todo",
            FieldDefinition("id", "ID", required=True),
            FieldDefinition("email", "AWSEmail"),
            FieldDefinition("title", "String"),
            FieldDefinition("status", "Status"),
            FieldDefinition("year", "Int"),
            FieldDefinition("month", "Int"),
            FieldDefinition("day", "Int"),
            FieldDefinition("createdAt", "AWSDateTime"),
            FieldDefinition("done", "Boolean"),
            FieldDefinition("tags", "String", is_list=True),
        )
    )
    return schema


@pytest.fixture
def todo(schema: Schema) -> ObjectType:
    return schema.types["Todo"]


@pytest.fixture
def options() -> TransformerOptions:
    return TransformerOptions()


@pytest.fixture
def simple_primary_key(todo: ObjectType) -> PrimaryKeyConfiguration:
    """@primaryKey on id, no sort key."""
    return PrimaryKeyConfiguration(object=todo, field=todo.fields["id"])


@pytest.fixture
def composite_primary_key(todo: ObjectType) -> PrimaryKeyConfiguration:
    """@primaryKey(sortKeyFields: ["year", "month", "day"]) on id."""
    return PrimaryKeyConfiguration(
        object=todo,
        field=todo.fields["id"],
        sort_key=(todo.fields["year"], todo.fields["month"], todo.fields["day"]),
    )


@pytest.fixture
def status_date_index(todo: ObjectType) -> IndexConfiguration:
    """@index on status named byStatusDate, sorted by year and month, queried by todosByStatus."""
    return IndexConfiguration(
        object=todo,
        field=todo.fields["status"],
        sort_key=(todo.fields["year"], todo.fields["month"]),
        name="byStatusDate",
        query_field="todosByStatus",
    )


@pytest.fixture
def transformer_ctx(schema: Schema, todo: ObjectType) -> TransformerContext:
    """
    A context holding the Todo model table (keyed on id), its data source and
    the five model resolvers, without any key snippets injected yet.
    """
    ctx = TransformerContext(schema)
    ctx.add_model_table(todo)
    data_source = ctx.get_data_source("TodoTable")
    for type_name, field_name in MODEL_RESOLVERS:
        ctx.resolvers.add_resolver(
            type_name, field_name, Resolver(type_name, field_name, data_source=data_source)
        )
    return ctx


@pytest.fixture
def runtime() -> TemplateRuntime:
    return TemplateRuntime()
