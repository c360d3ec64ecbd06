"""
Primary key and secondary index transformation of model tables and resolvers.

Runs once per compilation, type by type: the primary key of a type is
applied before its indexes, since index placement depends on the table's
partition key.

Usage:
    ctx = TransformerContext(schema)
    ctx.add_model_table(todo_type)
    ... register the generated model resolvers in ctx.resolvers ...
    KeyTransformer(ctx).transform(primary_keys=[todo_pk], indexes=[by_status])
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from ._logging import key_label, logger
from .config import IndexConfiguration, PrimaryKeyConfiguration, TransformerOptions
from .exceptions import DataSourceNotFoundError, TableNotFoundError
from .keys import attribute_definitions, key_schema
from .resolvers import (
    MappingTemplate,
    Resolver,
    ResolverRegistry,
    add_index_to_resolver_slot,
    get_resolver_object,
)
from .schema import ObjectType, Schema
from .snippets import (
    ensure_composite_key_snippet,
    list_query_snippet,
    merge_inputs_and_defaults_snippet,
    query_request_template,
    query_response_template,
    set_primary_key_snippet,
    validate_index_argument_snippet,
)
from .table import DataSource, GlobalSecondaryIndex, KeyAttribute, LocalSecondaryIndex, Table, ref


def model_table_resource_id(type_name: str) -> str:
    return f"{type_name}Table"


@dataclass
class TransformerContext:
    """Everything the key transformation reads and mutates for one API."""

    schema: Schema
    options: TransformerOptions = field(default_factory=TransformerOptions)
    resolvers: ResolverRegistry = field(default_factory=ResolverRegistry)
    tables: dict[str, Table] = field(default_factory=dict)
    data_sources: dict[str, DataSource] = field(default_factory=dict)

    def add_model_table(self, object_type: ObjectType) -> Table:
        """Registers the default model table (keyed on id) and its data source."""
        resource_id = model_table_resource_id(object_type.name)
        table = Table.create(
            resource_id, pay_per_request_condition=self.options.pay_per_request_condition
        )
        self.tables[object_type.name] = table
        self.data_sources[resource_id] = DataSource(name=resource_id, table=table)
        return table

    def get_table(self, object_type: ObjectType) -> Table:
        """
        Raises:
            TableNotFoundError: If the type has no table resource
        """
        table = self.tables.get(object_type.name)
        if table is None:
            raise TableNotFoundError(object_type.name)
        return table

    def get_data_source(self, name: str) -> DataSource | None:
        return self.data_sources.get(name)


def replace_ddb_primary_key(config: PrimaryKeyConfiguration, ctx: TransformerContext) -> None:
    """Replaces the table's primary key with the declared one."""
    table = ctx.get_table(config.object)
    table.replace_primary_key(
        key_schema(config, ctx.options),
        attribute_definitions(config, ctx.schema, ctx.options),
    )


def update_resolvers(config: PrimaryKeyConfiguration, ctx: TransformerContext) -> None:
    """Injects primary key handling into the model's CRUDL resolvers."""
    options = ctx.options

    def resolver_for(operation: str) -> Resolver | None:
        return get_resolver_object(config, ctx.schema, ctx.resolvers, operation)

    get_resolver = resolver_for("get")
    if get_resolver:
        add_index_to_resolver_slot(
            get_resolver, [set_primary_key_snippet(config, False, options)], options
        )

    list_resolver = resolver_for("list")
    if list_resolver:
        add_index_to_resolver_slot(list_resolver, [list_query_snippet(config, options)], options)

    for operation in ("create", "update"):
        resolver = resolver_for(operation)
        if resolver:
            add_index_to_resolver_slot(
                resolver,
                [
                    merge_inputs_and_defaults_snippet(),
                    set_primary_key_snippet(config, True, options),
                    ensure_composite_key_snippet(config, False, options),
                ],
                options,
            )

    delete_resolver = resolver_for("delete")
    if delete_resolver:
        add_index_to_resolver_slot(
            delete_resolver,
            [merge_inputs_and_defaults_snippet(), set_primary_key_snippet(config, True, options)],
            options,
        )


def append_secondary_index(config: IndexConfiguration, ctx: TransformerContext) -> None:
    """
    Adds the index to the table.

    A local index when it shares the table's partition key (and GSIs are not
    forced by the secondaryKeyAsGSI flag), otherwise a global index with
    capacity taken from the stack parameters.
    """
    options = ctx.options
    table = ctx.get_table(config.object)
    schema = key_schema(config, options)
    definitions = {
        d.attribute_name: d.attribute_type
        for d in attribute_definitions(config, ctx.schema, options)
    }

    partition_name = schema[0].attribute_name
    partition_key = KeyAttribute(name=partition_name, type=definitions.get(partition_name, "S"))
    sort_key = None
    if len(schema) > 1:
        sort_name = schema[1].attribute_name
        sort_key = KeyAttribute(name=sort_name, type=definitions.get(sort_name, "S"))

    label = key_label(
        config.object.name,
        config.field.name,
        config.sort_key_fields,
        options.composite_name_separator,
    )
    primary_partition_name = table.partition_key.name
    if config.primary_partition_key_name not in (None, primary_partition_name):
        raise ValueError(
            f"Index '{config.name}' declares primary key field "
            f"'{config.primary_partition_key_name}' but table '{table.logical_id}' "
            f"is keyed on '{primary_partition_name}'"
        )
    if not options.secondary_key_as_gsi and primary_partition_name == partition_name:
        table.add_local_secondary_index(
            LocalSecondaryIndex(index_name=config.name, sort_key=sort_key)
        )
        logger.info(
            "Index placed as local secondary index",
            extra={"type": config.object.name, "index": config.name, "key": label},
        )
    else:
        table.add_global_secondary_index(
            GlobalSecondaryIndex(
                index_name=config.name,
                partition_key=partition_key,
                sort_key=sort_key,
                read_capacity=ref(options.read_iops_parameter),
                write_capacity=ref(options.write_iops_parameter),
            )
        )
        logger.info(
            "Index placed as global secondary index",
            extra={"type": config.object.name, "index": config.name, "key": label},
        )


def update_resolvers_for_index(config: IndexConfiguration, ctx: TransformerContext) -> None:
    """
    Injects composite index key maintenance into the model's mutations and
    generates the index query field, if one is declared.
    """
    options = ctx.options

    for operation in ("create", "update"):
        resolver = get_resolver_object(config, ctx.schema, ctx.resolvers, operation)
        if not resolver:
            continue
        checks = [
            validate_index_argument_snippet(config, operation),  # type: ignore[arg-type]
            ensure_composite_key_snippet(config, True, options),
        ]
        if any(checks):
            add_index_to_resolver_slot(
                resolver, [merge_inputs_and_defaults_snippet(), *checks], options
            )

    delete_resolver = get_resolver_object(config, ctx.schema, ctx.resolvers, "delete")
    if delete_resolver:
        ensure = ensure_composite_key_snippet(config, False, options)
        if ensure:
            add_index_to_resolver_slot(
                delete_resolver, [merge_inputs_and_defaults_snippet(), ensure], options
            )

    if config.query_field:
        make_query_resolver(config, ctx)


def make_query_resolver(config: IndexConfiguration, ctx: TransformerContext) -> Resolver:
    """
    Generates and registers the resolver of an index query field.

    Raises:
        DataSourceNotFoundError: If the model table has no data source
        TableNotFoundError: If the type has no table resource
        ValueError: If the index declares no query field
    """
    if not config.query_field:
        raise ValueError(f"Index '{config.name}' on '{config.object.name}' has no query field")
    data_source_name = model_table_resource_id(config.object.name)
    data_source = ctx.get_data_source(data_source_name)
    query_type_name = ctx.schema.query_type_name or "Query"
    ctx.get_table(config.object)

    if data_source is None:
        raise DataSourceNotFoundError(data_source_name)

    resolver = ctx.resolvers.generate_query_resolver(
        query_type_name,
        config.query_field,
        data_source,
        MappingTemplate(
            name=f"{query_type_name}.{config.query_field}.req.vtl",
            stages=(query_request_template(config, ctx.options),),
        ),
        MappingTemplate(
            name=f"{query_type_name}.{config.query_field}.res.vtl",
            stages=(query_response_template(),),
        ),
    )
    ctx.resolvers.add_resolver(config.object.name, config.query_field, resolver)
    logger.info(
        "Generated index query resolver",
        extra={"type": query_type_name, "field": config.query_field, "index": config.name},
    )
    return resolver


class KeyTransformer:
    """Applies primary keys and indexes to a TransformerContext."""

    def __init__(self, ctx: TransformerContext) -> None:
        self.ctx = ctx

    def apply_primary_key(self, config: PrimaryKeyConfiguration) -> None:
        replace_ddb_primary_key(config, self.ctx)
        update_resolvers(config, self.ctx)

    def apply_index(self, config: IndexConfiguration) -> None:
        append_secondary_index(config, self.ctx)
        update_resolvers_for_index(config, self.ctx)

    def transform(
        self,
        primary_keys: Iterable[PrimaryKeyConfiguration] = (),
        indexes: Iterable[IndexConfiguration] = (),
    ) -> None:
        """
        Processes every type that declares a key or index, in first-seen
        order; each type's primary key is applied before its indexes.
        """
        by_type: dict[str, tuple[list[PrimaryKeyConfiguration], list[IndexConfiguration]]] = {}
        for pk in primary_keys:
            by_type.setdefault(pk.object.name, ([], []))[0].append(pk)
        for index in indexes:
            by_type.setdefault(index.object.name, ([], []))[1].append(index)

        for type_name, (type_primary_keys, type_indexes) in by_type.items():
            if len(type_primary_keys) > 1:
                raise ValueError(f"Type '{type_name}' declares more than one primary key")
            logger.debug(
                "Transforming keys",
                extra={"type": type_name, "indexes": [i.name for i in type_indexes]},
            )
            for pk in type_primary_keys:
                self.apply_primary_key(pk)
            for index in type_indexes:
                self.apply_index(index)
