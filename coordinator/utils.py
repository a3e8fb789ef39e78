"""Utility helper functions for the upload coordinator."""

from common.exceptions import InvalidChunkError


def parse_int_field(name: str, value: str) -> int:
    """
    Parse an integer form field.

    Args:
        name: Field name used in the error message (e.g., "chunkIndex")
        value: Raw form value

    Returns:
        Parsed integer

    Raises:
        InvalidChunkError: If value is not a base-10 integer
    """
    try:
        return int(value.strip())
    except (AttributeError, ValueError):
        raise InvalidChunkError(f"Invalid {name}: {value!r}")
