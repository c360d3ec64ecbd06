"""
Resolver pipelines and snippet injection.

A Resolver owns a request/response template pair and an ordered list of
templates per named slot. The key generators never touch a resolver's main
templates: they append templates to the post-authorization slot, where the
model operation template picks up what they store in the resolver metadata.
"""

from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field

from ._logging import logger
from .config import PrimaryKeyConfiguration, TransformerOptions
from .expressions import Statement
from .printer import VtlPrinter
from .schema import QUERY_OPERATIONS, Schema
from .table import DataSource

# Replaced by the slot name and 1-based position when added to a slot
SLOT_NAME_PLACEHOLDER = "{slotName}"
SLOT_INDEX_PLACEHOLDER = "{slotIndex}"

NO_OP_TERMINATOR = "{}"


@dataclass
class MappingTemplate:
    """
    A named template made of ordered stages.

    Each stage is an expression tree; render() prints them in order with
    the given printer and appends the optional terminator line.
    """

    name: str
    stages: tuple[Statement, ...] = ()
    terminator: str | None = None

    def render(self, printer: VtlPrinter | None = None) -> str:
        printer = printer or VtlPrinter()
        lines = [printer.print(stage) for stage in self.stages]
        if self.terminator is not None:
            lines.append(self.terminator)
        return "\n".join(lines)


@dataclass
class Resolver:
    type_name: str
    field_name: str
    data_source: DataSource | None = None
    request: MappingTemplate | None = None
    response: MappingTemplate | None = None
    slots: dict[str, list[MappingTemplate]] = field(default_factory=dict)

    def add_to_slot(self, slot_name: str, template: MappingTemplate) -> MappingTemplate:
        """
        Appends a template to a slot, resolving the {slotName}/{slotIndex}
        placeholders of its name.

        Returns:
            The template as stored, with its final name
        """
        entries = self.slots.setdefault(slot_name, [])
        name = template.name.replace(SLOT_NAME_PLACEHOLDER, slot_name).replace(
            SLOT_INDEX_PLACEHOLDER, str(len(entries) + 1)
        )
        stored = MappingTemplate(name=name, stages=template.stages, terminator=template.terminator)
        entries.append(stored)
        return stored

    def slot(self, slot_name: str) -> list[MappingTemplate]:
        return list(self.slots.get(slot_name, []))


class ResolverRegistry:
    """Resolvers of the API, keyed by (type name, field name)."""

    def __init__(self) -> None:
        self._resolvers: dict[tuple[str, str], Resolver] = {}

    def get_resolver(self, type_name: str, field_name: str) -> Resolver | None:
        return self._resolvers.get((type_name, field_name))

    def has_resolver(self, type_name: str, field_name: str) -> bool:
        return (type_name, field_name) in self._resolvers

    def add_resolver(self, type_name: str, field_name: str, resolver: Resolver) -> Resolver:
        if self.has_resolver(type_name, field_name):
            raise ValueError(f"Resolver for '{type_name}.{field_name}' already exists")
        self._resolvers[(type_name, field_name)] = resolver
        return resolver

    def generate_query_resolver(
        self,
        type_name: str,
        field_name: str,
        data_source: DataSource,
        request: MappingTemplate,
        response: MappingTemplate,
    ) -> Resolver:
        """Builds (but does not register) a resolver for a query field."""
        return Resolver(
            type_name=type_name,
            field_name=field_name,
            data_source=data_source,
            request=request,
            response=response,
        )

    def __iter__(self) -> Iterator[Resolver]:
        return iter(self._resolvers.values())

    def __len__(self) -> int:
        return len(self._resolvers)


def lookup_resolver_name(config: PrimaryKeyConfiguration, operation: str) -> str | None:
    """Root field name the model generates for an operation, or None."""
    return config.object.operation_name(operation)


def get_resolver_object(
    config: PrimaryKeyConfiguration,
    schema: Schema,
    registry: ResolverRegistry,
    operation: str,
) -> Resolver | None:
    """
    Finds the resolver of a model operation (get/list on the query type,
    create/update/delete on the mutation type).

    Returns None when the operation is not generated or has no resolver;
    callers skip injection in that case.
    """
    # TODO: sync queries need the same lookup once they are generated.
    resolver_name = lookup_resolver_name(config, operation)
    if not resolver_name:
        return None

    if operation in QUERY_OPERATIONS:
        object_name = schema.query_type_name
    else:
        object_name = schema.mutation_type_name
    if not object_name:
        return None

    resolver = registry.get_resolver(object_name, resolver_name)
    if resolver is None:
        logger.debug(
            "No resolver to inject into",
            extra={"type": object_name, "field": resolver_name, "operation": operation},
        )
    return resolver


def add_index_to_resolver_slot(
    resolver: Resolver,
    snippets: Sequence[Statement | None],
    options: TransformerOptions | None = None,
) -> MappingTemplate:
    """
    Appends generated snippets, followed by a no-op, to the resolver's
    post-authorization slot. None snippets are dropped.
    """
    options = options or TransformerOptions()
    template = MappingTemplate(
        name=(
            f"{resolver.type_name}.{resolver.field_name}."
            f"{SLOT_NAME_PLACEHOLDER}.{SLOT_INDEX_PLACEHOLDER}.req.vtl"
        ),
        stages=tuple(s for s in snippets if s is not None),
        terminator=NO_OP_TERMINATOR,
    )
    stored = resolver.add_to_slot(options.slot_name, template)
    logger.debug(
        "Injected key snippets",
        extra={
            "type": resolver.type_name,
            "field": resolver.field_name,
            "slot": options.slot_name,
            "template": stored.name,
        },
    )
    return stored
