from decimal import Decimal
from functools import lru_cache
from typing import Any, List, Optional, get_origin

from pydantic import TypeAdapter, ValidationError

from loysql.core.schemas import ResultShape
from loysql.core.exceptions import MappingError


# -----------------------------------------------------------------------------
# MAPPER MODULE
# Purpose: convert whatever the routine returned into the caller's types.
# -----------------------------------------------------------------------------

_ZERO_VALUES = {
    int: 0,
    float: 0.0,
    bool: False,
    str: "",
    bytes: b"",
    Decimal: Decimal(0),
}

_TEXT_TYPES = (str, bytes)


def zero_value(result_type: Any) -> Any:
    """
    Value returned by a single-result call when the routine produced nothing.

    Numbers give 0, text gives "", containers give an empty container and
    everything else (models, Optional[...], None) gives None.
    """

    if result_type is None or result_type is type(None):
        return None

    try:
        if result_type in _ZERO_VALUES:
            return _ZERO_VALUES[result_type]
    except TypeError:
        # unhashable annotation
        return None

    origin = get_origin(result_type) or result_type
    if origin in (list, dict, set, tuple):
        return origin()
    return None


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter:
    return TypeAdapter(target)


def _get_adapter(target: Any) -> TypeAdapter:
    try:
        return _adapter(target)
    except TypeError:
        return TypeAdapter(target)


def _plain(raw: Any) -> Any:
    """Unwrap SQLAlchemy rows into dicts so pydantic can read them by column name."""

    if hasattr(raw, "_mapping"):
        return dict(raw._mapping)
    if isinstance(raw, (list, tuple)):
        return [_plain(item) for item in raw]
    return raw


def _mapping_error(error: ValidationError, result_type: Any) -> MappingError:
    details = error.errors()
    if not details:
        return MappingError("<root>", result_type, str(error))

    first = details[0]
    field = ".".join(str(part) for part in first.get("loc", ())) or "<root>"
    return MappingError(field, result_type, first.get("msg", ""))


def map_result(raw: Any, shape: ResultShape, result_type: Optional[Any] = None) -> Any:
    """
    Convert the routine's raw result into the shape the caller asked for.

    Args:
        raw: Scalar, JSON text, SQLAlchemy row(s), dict(s) or None.
        shape: LIST, SINGLE or VOID.
        result_type: Element type for LIST, value type for SINGLE.

    Returns:
        A fully built list, a single value (zero-equivalent for no value)
        or None for VOID.

    Raises:
        MappingError: The data does not validate against result_type.

    Example:
        users = map_result('[{"id": 1}]', ResultShape.LIST, UserRecord)
    """

    if shape == ResultShape.VOID:
        return None

    if shape == ResultShape.LIST:
        if raw is None:
            return []
        adapter = _get_adapter(List[result_type] if result_type is not None else List[Any])
        parse_text = True
    else:
        if result_type is None or result_type is type(None):
            return None
        if raw is None:
            return zero_value(result_type)
        adapter = _get_adapter(result_type)
        parse_text = result_type not in _TEXT_TYPES

    try:
        if parse_text and isinstance(raw, (str, bytes, bytearray)):
            return _validate_text(adapter, raw, shape)
        return adapter.validate_python(_plain(raw), from_attributes=True)
    except ValidationError as error:
        raise _mapping_error(error, result_type) from error


def _validate_text(adapter: TypeAdapter, raw: Any, shape: ResultShape) -> Any:
    """
    Read a text result as JSON first, then as the plain value itself.

    A single "ACTIVE" or "2024-01-31" is not JSON but is a valid Enum or date.
    When both readings fail the JSON error is the one reported.
    """

    try:
        return adapter.validate_json(raw)
    except ValidationError as json_error:
        if shape == ResultShape.LIST:
            raise
        try:
            return adapter.validate_python(raw)
        except ValidationError:
            raise json_error
