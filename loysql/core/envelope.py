import logging
import math
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional, Tuple

from loysql.core.schemas import Envelope
from loysql.core.exceptions import SerializationError

# -----------------------------------------------------------------------------
# ENVELOPE MODULE
# Purpose: turn (queryName, params) into the JSON text the central routine reads.
# -----------------------------------------------------------------------------

logger = logging.getLogger(__name__)

def _check_finite(value: Any, path: str, seen: set) -> None:
    """JSON has no NaN or Infinity, refuse them instead of sending null."""

    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"Non-finite number {value!r} at '{path}'")
        return
    if isinstance(value, Decimal):
        if not value.is_finite():
            raise ValueError(f"Non-finite number {value!r} at '{path}'")
        return

    if isinstance(value, Mapping):
        items = value.items()
    elif isinstance(value, (list, tuple, set, frozenset)):
        items = enumerate(value)
    else:
        return

    # cycles are reported by the serializer itself
    if id(value) in seen:
        return
    seen.add(id(value))
    for key, item in items:
        _check_finite(item, f"{path}.{key}", seen)


def encode(query_name: Optional[str], params: Optional[Mapping[str, Any]] = None) -> str:
    """
    Serialize a query name and its parameters into the routine's JSON payload.

    Both fields are always written; missing params become an empty object and
    None values stay in the document as explicit nulls.

    Args:
        query_name: Identifier the routine uses to pick the SQL to run.
        params: Parameter values (scalars, None, nested dicts and lists).

    Returns:
        JSON text like {"queryName":"GET_USERS","params":{"cityId":23}}.

    Raises:
        SerializationError: A value is cyclic, NaN or infinite, has a non-string
            key or a type pydantic cannot serialize.

    Example:
        payload = encode("GET_USERS", {"categoryId": 1})
    """

    try:
        params = dict(params or {})
        _check_finite(params, "params", set())
        envelope = Envelope(queryName=query_name, params=params)
        return envelope.model_dump_json(by_alias=True)
    except (ValueError, TypeError) as error:
        # pydantic's ValidationError and PydanticSerializationError are both ValueErrors
        logger.error("Failed to create JSON payload for query: %s", query_name)
        raise SerializationError(
            f"Failed to serialize JSON payload for query {query_name!r}: {error}"
        ) from error

def decode(document) -> Tuple[Optional[str], Dict[str, Any]]:
    """Read a payload produced by encode() back into (query_name, params)."""

    try:
        envelope = Envelope.model_validate_json(document)
    except ValueError as error:
        raise SerializationError(f"Invalid JSON payload: {error}") from error
    return envelope.query_name, envelope.params
