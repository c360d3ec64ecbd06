from collections.abc import Generator
from contextlib import contextmanager


class DynakeyError(Exception):
    """Base exception for all dynakey errors."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.original_error = original_error


class TableNotFoundError(DynakeyError):
    """Raised when a type declares a key or index but has no table resource."""

    def __init__(self, type_name: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Table for type '{type_name}' not found", original_error)
        self.type_name = type_name


class DataSourceNotFoundError(DynakeyError):
    """Raised when an index query resolver has no data source to attach to."""

    def __init__(self, data_source_name: str, original_error: Exception | None = None) -> None:
        super().__init__(f"Data source '{data_source_name}' not found", original_error)
        self.data_source_name = data_source_name


class InvalidKeyFieldError(DynakeyError):
    """Raised when a field's declared type cannot back a DynamoDB key attribute."""

    def __init__(
        self,
        field_name: str,
        type_name: str,
        reason: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        msg = f"Field '{field_name}' of type '{type_name}' cannot be used as a key"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, original_error)
        self.field_name = field_name
        self.type_name = type_name
        self.reason = reason


class TemplateRuntimeError(DynakeyError):
    """
    Raised by the local runtime when a template calls $util.error().

    This is the error an API caller would see, e.g. a partial update of a
    composite index key or a sortDirection without a sort key.
    """

    def __init__(
        self,
        message: str,
        error_type: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(message, original_error)
        self.error_type = error_type


class TemplateEvaluationError(DynakeyError):
    """Raised when the local runtime meets a reference or construct it cannot evaluate."""

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        super().__init__(message, original_error)


@contextmanager
def handle_template_errors(template_name: str | None = None) -> Generator[None, None, None]:
    """
    Context manager that catches Python lookup/type errors raised while
    evaluating a template and raises TemplateEvaluationError instead.

    TemplateRuntimeError passes through untouched: it is the template's own
    client-visible error, not an evaluation failure.

    Usage:
        with handle_template_errors("Mutation.createTodo.postAuth.1.req.vtl"):
            runtime.evaluate(tree, context)
    """
    try:
        yield
    except DynakeyError:
        raise
    except (KeyError, TypeError, AttributeError) as e:
        where = f" in '{template_name}'" if template_name else ""
        raise TemplateEvaluationError(
            f"Template evaluation failed{where}: {type(e).__name__}: {e}", original_error=e
        ) from e
