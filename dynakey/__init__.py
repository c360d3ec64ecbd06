from .config import FeatureFlags, IndexConfiguration, PrimaryKeyConfiguration, TransformerOptions
from .exceptions import (
    DataSourceNotFoundError,
    DynakeyError,
    InvalidKeyFieldError,
    TableNotFoundError,
    TemplateEvaluationError,
    TemplateRuntimeError,
)
from .keys import composite_sort_key_name, encode_composite_value, key_schema, sort_key_name
from .printer import VtlPrinter, print_vtl
from .resolvers import MappingTemplate, Resolver, ResolverRegistry
from .runtime import RequestContext, ResolverMetadata, TemplateRuntime
from .schema import FieldDefinition, ObjectType, Schema
from .table import DataSource, Table
from .transformer import KeyTransformer, TransformerContext

__all__ = [
    "KeyTransformer",
    "TransformerContext",
    "TransformerOptions",
    "FeatureFlags",
    # Declarations
    "PrimaryKeyConfiguration",
    "IndexConfiguration",
    "Schema",
    "ObjectType",
    "FieldDefinition",
    # Resources
    "Table",
    "DataSource",
    "Resolver",
    "ResolverRegistry",
    "MappingTemplate",
    # Keys
    "composite_sort_key_name",
    "sort_key_name",
    "key_schema",
    "encode_composite_value",
    # Backends
    "VtlPrinter",  # Renders templates as VTL
    "print_vtl",
    "TemplateRuntime",  # Evaluates templates locally
    "RequestContext",
    "ResolverMetadata",
    # Exceptions
    "DynakeyError",
    "TableNotFoundError",
    "DataSourceNotFoundError",
    "InvalidKeyFieldError",
    "TemplateRuntimeError",
    "TemplateEvaluationError",
]
