"""
Identifier parsing for path and body parameters.

IDs travel as strings. A value that is not a valid ID cannot name an
existing entity, so it is reported as not found rather than as bad input.
"""
from barsuite.core.exceptions import NotFoundError


def parse_id(value, entity: str) -> int:
    try:
        parsed = int(str(value))
    except (TypeError, ValueError):
        raise NotFoundError(f"{entity} with ID \"{value}\" not found") from None
    if parsed <= 0:
        raise NotFoundError(f"{entity} with ID \"{value}\" not found")
    return parsed
