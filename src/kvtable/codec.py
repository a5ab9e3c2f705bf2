from __future__ import annotations

from collections.abc import Mapping, Sequence, Set
from decimal import Decimal, DecimalException
from typing import Any

from boto3.dynamodb.types import Binary, TypeDeserializer, TypeSerializer

from .attribute_value import AttributeValue
from .errors import MalformedValueError, UnsupportedTypeError, ValidationError

_serializer = TypeSerializer()
_deserializer = TypeDeserializer()


def encode(value: Any) -> AttributeValue:
    """Convert a Python value to an AttributeValue.

    Floats are rejected; use ``int`` or ``Decimal``. Tuples are stored as
    lists and decode as ``list``.
    """
    _check_encodable(value, active=set())
    try:
        wire = _serializer.serialize(value)
    except TypeError as err:
        raise UnsupportedTypeError(f"unsupported value: {err}") from err
    except DecimalException as err:
        raise UnsupportedTypeError(f"number cannot be stored exactly: {value!r}") from err

    try:
        return AttributeValue.from_wire(wire)
    except MalformedValueError as err:
        raise UnsupportedTypeError(f"number cannot be stored exactly: {value!r}") from err


def decode(av: AttributeValue) -> Any:
    """Convert an AttributeValue back to plain Python: ``int`` for integral numbers, ``bytes`` for binary."""
    return _plain(_deserializer.deserialize(av.to_wire()))


def encode_item(item: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(item, Mapping):
        raise UnsupportedTypeError(f"item must be a mapping, got {type(item).__name__}")

    out: dict[str, Any] = {}
    for name, value in item.items():
        if not isinstance(name, str) or not name:
            raise UnsupportedTypeError(f"field names must be non-empty strings: {name!r}")
        out[name] = encode(value).to_wire()
    return out


def decode_item(wire_item: Mapping[str, Any]) -> dict[str, Any]:
    if not isinstance(wire_item, Mapping):
        raise MalformedValueError("item must be a map")
    return {name: decode(AttributeValue.from_wire(wire)) for name, wire in wire_item.items()}


def encode_key(key: Mapping[str, Any], key_fields: Sequence[str] | None = None) -> dict[str, Any]:
    if not key:
        raise ValidationError("key is required")
    if key_fields:
        missing = [f for f in key_fields if f not in key]
        if missing:
            raise ValidationError(f"key is missing fields: {missing}")
        extra = sorted(set(key).difference(key_fields))
        if extra:
            raise ValidationError(f"key has non-key fields: {extra}")

    out = encode_item(key)
    for name, wire in out.items():
        if next(iter(wire)) not in {"S", "N", "B"}:
            raise ValidationError(f"key field must be a string, number or binary: {name}")
    return out


def _check_encodable(value: Any, *, active: set[int]) -> None:
    # TypeSerializer recurses without a guard and accepts bools as set members.
    if isinstance(value, Set):
        if any(isinstance(v, bool) for v in value):
            raise UnsupportedTypeError("boolean sets are not supported")
        return
    if not isinstance(value, (list, tuple, Mapping)):
        return

    marker = id(value)
    if marker in active:
        raise UnsupportedTypeError("circular reference in value")
    active.add(marker)
    try:
        if isinstance(value, Mapping):
            for k, v in value.items():
                if not isinstance(k, str):
                    raise UnsupportedTypeError(f"map keys must be strings: {k!r}")
                _check_encodable(v, active=active)
        else:
            for v in value:
                _check_encodable(v, active=active)
    finally:
        active.discard(marker)


def _plain(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value.as_tuple().exponent == 0 else value
    if isinstance(value, Binary):
        return bytes(value.value)
    if isinstance(value, set):
        return {_plain(v) for v in value}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    return value
