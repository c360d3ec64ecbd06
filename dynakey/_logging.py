import logging
from collections.abc import Sequence

# Create the library logger
logger = logging.getLogger("dynakey")

# Add NullHandler to prevent "No handlers could be found" warnings
# if the host compiler doesn't configure logging.
logger.addHandler(logging.NullHandler())


def key_label(
    type_name: str, partition: str, sort_fields: Sequence[str] = (), separator: str = "#"
) -> str:
    """
    Builds a short, stable label for a key declaration, used as log context.

    Todo(id)              -> partition key only
    Todo(id, year#month)  -> partition key plus (composite) sort key
    """
    if not sort_fields:
        return f"{type_name}({partition})"
    return f"{type_name}({partition}, {separator.join(sort_fields)})"
