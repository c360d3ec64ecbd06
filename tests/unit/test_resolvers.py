"""
Unit tests for resolver slots, lookup and snippet injection.
"""

import logging

import pytest

from dynakey.config import PrimaryKeyConfiguration, TransformerOptions
from dynakey.expressions import Int, Ref, Set
from dynakey.resolvers import (
    MappingTemplate,
    Resolver,
    ResolverRegistry,
    add_index_to_resolver_slot,
    get_resolver_object,
    lookup_resolver_name,
)
from dynakey.schema import FieldDefinition, ObjectType


@pytest.mark.unit
class TestSlots:
    """Test slot naming and ordering."""

    def test_slot_names_are_positional(self) -> None:
        resolver = Resolver("Mutation", "createTodo")
        snippet = Set(Ref("a"), Int(1))

        first = add_index_to_resolver_slot(resolver, [snippet])
        second = add_index_to_resolver_slot(resolver, [snippet])

        assert first.name == "Mutation.createTodo.postAuth.1.req.vtl"
        assert second.name == "Mutation.createTodo.postAuth.2.req.vtl"
        assert [t.name for t in resolver.slot("postAuth")] == [first.name, second.name]

    def test_custom_slot(self) -> None:
        resolver = Resolver("Query", "getTodo")

        stored = add_index_to_resolver_slot(
            resolver, [Set(Ref("a"), Int(1))], TransformerOptions(slot_name="preDataLoad")
        )

        assert stored.name == "Query.getTodo.preDataLoad.1.req.vtl"
        assert resolver.slot("postAuth") == []

    def test_none_snippets_dropped_and_terminated(self) -> None:
        """Test optional snippets are skipped and the template ends with a no-op."""
        resolver = Resolver("Mutation", "createTodo")

        stored = add_index_to_resolver_slot(resolver, [None, Set(Ref("a"), Int(1)), None])

        assert len(stored.stages) == 1
        assert stored.render() == "#set( $a = 1 )\n{}"

    def test_slot_returns_copy(self) -> None:
        resolver = Resolver("Query", "getTodo")

        resolver.slot("postAuth").append(MappingTemplate("x"))

        assert resolver.slot("postAuth") == []


@pytest.mark.unit
class TestResolverRegistry:
    def test_add_and_get(self) -> None:
        registry = ResolverRegistry()
        resolver = Resolver("Query", "getTodo")

        registry.add_resolver("Query", "getTodo", resolver)

        assert registry.get_resolver("Query", "getTodo") is resolver
        assert registry.has_resolver("Query", "getTodo")
        assert registry.get_resolver("Query", "listTodos") is None
        assert list(registry) == [resolver]
        assert len(registry) == 1

    def test_duplicate_rejected(self) -> None:
        registry = ResolverRegistry()
        registry.add_resolver("Query", "getTodo", Resolver("Query", "getTodo"))

        with pytest.raises(ValueError, match="already exists"):
            registry.add_resolver("Query", "getTodo", Resolver("Query", "getTodo"))

    def test_generate_query_resolver_does_not_register(self) -> None:
        registry = ResolverRegistry()

        resolver = registry.generate_query_resolver(
            "Query", "todosByStatus", None, MappingTemplate("req"), MappingTemplate("res")
        )

        assert resolver.field_name == "todosByStatus"
        assert resolver.request.name == "req"
        assert len(registry) == 0


@pytest.mark.unit
class TestResolverLookup:
    """Test finding the resolver of a model operation."""

    def test_query_and_mutation_types(
        self, simple_primary_key, transformer_ctx, schema
    ) -> None:
        get_resolver = get_resolver_object(
            simple_primary_key, schema, transformer_ctx.resolvers, "get"
        )
        create_resolver = get_resolver_object(
            simple_primary_key, schema, transformer_ctx.resolvers, "create"
        )

        assert (get_resolver.type_name, get_resolver.field_name) == ("Query", "getTodo")
        assert (create_resolver.type_name, create_resolver.field_name) == (
            "Mutation",
            "createTodo",
        )

    def test_disabled_operation(self, schema, transformer_ctx) -> None:
        post_id = FieldDefinition("id", "ID", required=True)
        post = schema.add_type(ObjectType.build("Post", post_id, mutations={"delete": None}))
        config = PrimaryKeyConfiguration(object=post, field=post_id)

        assert lookup_resolver_name(config, "delete") is None
        assert get_resolver_object(config, schema, transformer_ctx.resolvers, "delete") is None

    def test_missing_resolver_skipped_silently(
        self, simple_primary_key, schema, caplog
    ) -> None:
        caplog.set_level(logging.DEBUG, logger="dynakey")

        resolver = get_resolver_object(simple_primary_key, schema, ResolverRegistry(), "list")

        assert resolver is None
        records = [r for r in caplog.records if r.getMessage() == "No resolver to inject into"]
        assert records[0].field == "listTodos"
        assert not [r for r in caplog.records if r.levelno >= logging.WARNING]

    def test_schema_without_mutation_type(
        self, simple_primary_key, schema, transformer_ctx
    ) -> None:
        schema.mutation_type_name = None

        assert (
            get_resolver_object(simple_primary_key, schema, transformer_ctx.resolvers, "create")
            is None
        )
