from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import Decimal, DecimalException
from typing import Any

from boto3.dynamodb.types import DYNAMODB_CONTEXT, Binary

from .errors import MalformedValueError

SCALAR_TAGS = frozenset({"S", "N", "B", "BOOL", "NULL"})
SET_TAGS = frozenset({"SS", "NS", "BS"})
DOCUMENT_TAGS = frozenset({"L", "M"})
WIRE_TAGS = SCALAR_TAGS | SET_TAGS | DOCUMENT_TAGS


def parse_number(text: str) -> Decimal:
    """Parse a service number literal, rejecting anything the store could not hold exactly."""
    if not isinstance(text, str) or not text.strip():
        raise MalformedValueError(f"number must be a non-empty string, got {text!r}")
    try:
        number = DYNAMODB_CONTEXT.create_decimal(text)
    except DecimalException as err:
        raise MalformedValueError(f"invalid number: {text!r}") from err
    if not number.is_finite():
        raise MalformedValueError(f"number must be finite: {text!r}")
    return number


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, Binary):
        return bytes(value.value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise MalformedValueError(f"binary value must be bytes, got {type(value).__name__}")


@dataclass(frozen=True)
class AttributeValue:
    """One storable value; exactly one wire tag, payload kept in a hashable canonical form."""

    tag: str
    value: Any

    def __post_init__(self) -> None:
        tag, value = self.tag, self.value
        if tag not in WIRE_TAGS:
            raise MalformedValueError(f"unknown attribute value tag: {tag!r}")
        if tag == "S" and not isinstance(value, str):
            raise MalformedValueError("S value must be a string")
        if tag == "N":
            parse_number(value)
        if tag == "B" and not isinstance(value, bytes):
            raise MalformedValueError("B value must be bytes")
        if tag == "BOOL" and not isinstance(value, bool):
            raise MalformedValueError("BOOL value must be a boolean")
        if tag == "NULL" and value is not True:
            raise MalformedValueError("NULL value must be true")
        if tag in SET_TAGS or tag == "L":
            if not isinstance(value, tuple):
                raise MalformedValueError(f"{tag} value must be a tuple")
        if tag == "L" and not all(isinstance(v, AttributeValue) for v in value):
            raise MalformedValueError("L elements must be attribute values")
        if tag == "M":
            if not isinstance(value, tuple) or not all(
                isinstance(pair, tuple)
                and len(pair) == 2
                and isinstance(pair[0], str)
                and isinstance(pair[1], AttributeValue)
                for pair in value
            ):
                raise MalformedValueError("M value must be a tuple of (name, attribute value) pairs")

    @classmethod
    def string(cls, value: str) -> AttributeValue:
        return cls("S", value)

    @classmethod
    def number(cls, value: str | int | Decimal) -> AttributeValue:
        text = value if isinstance(value, str) else str(value)
        parse_number(text)
        return cls("N", text)

    @classmethod
    def boolean(cls, value: bool) -> AttributeValue:
        return cls("BOOL", value)

    @classmethod
    def binary(cls, value: bytes | bytearray | Binary) -> AttributeValue:
        return cls("B", _as_bytes(value))

    @classmethod
    def null(cls) -> AttributeValue:
        return cls("NULL", True)

    @classmethod
    def string_set(cls, values: Iterable[str]) -> AttributeValue:
        items = list(values)
        if not all(isinstance(v, str) for v in items):
            raise MalformedValueError("SS elements must be strings")
        return cls("SS", tuple(sorted(set(items))))

    @classmethod
    def number_set(cls, values: Iterable[str | int | Decimal]) -> AttributeValue:
        unique: dict[Decimal, str] = {}
        for v in values:
            text = v if isinstance(v, str) else str(v)
            unique.setdefault(parse_number(text), text)
        return cls("NS", tuple(unique[n] for n in sorted(unique)))

    @classmethod
    def binary_set(cls, values: Iterable[bytes | bytearray | Binary]) -> AttributeValue:
        return cls("BS", tuple(sorted({_as_bytes(v) for v in values})))

    @classmethod
    def list_of(cls, values: Iterable[AttributeValue]) -> AttributeValue:
        return cls("L", tuple(values))

    @classmethod
    def map_of(cls, values: Mapping[str, AttributeValue]) -> AttributeValue:
        return cls("M", tuple(sorted(values.items(), key=lambda kv: kv[0])))

    def to_wire(self) -> dict[str, Any]:
        if self.tag in SET_TAGS:
            return {self.tag: list(self.value)}
        if self.tag == "L":
            return {"L": [v.to_wire() for v in self.value]}
        if self.tag == "M":
            return {"M": {k: v.to_wire() for k, v in self.value}}
        return {self.tag: self.value}

    @classmethod
    def from_wire(cls, wire: Any) -> AttributeValue:
        if not isinstance(wire, Mapping):
            raise MalformedValueError(f"attribute value must be a map, got {type(wire).__name__}")
        populated = [tag for tag, payload in wire.items() if payload is not None]
        if len(populated) != 1:
            raise MalformedValueError(f"attribute value must have exactly one type tag, got {sorted(populated)}")

        tag = populated[0]
        payload = wire[tag]
        if tag not in WIRE_TAGS:
            raise MalformedValueError(f"unknown attribute value tag: {tag!r}")

        if tag == "S":
            return cls.string(payload)
        if tag == "N":
            return cls("N", payload)
        if tag == "B":
            return cls.binary(payload)
        if tag == "BOOL":
            return cls("BOOL", payload)
        if tag == "NULL":
            return cls("NULL", payload)

        if tag in SET_TAGS or tag == "L":
            if not isinstance(payload, (list, tuple)):
                raise MalformedValueError(f"{tag} value must be a list")
        if tag == "SS":
            return cls.string_set(payload)
        if tag == "NS":
            if not all(isinstance(v, str) for v in payload):
                raise MalformedValueError("NS elements must be number strings")
            return cls.number_set(payload)
        if tag == "BS":
            return cls.binary_set(payload)
        if tag == "L":
            return cls.list_of(cls.from_wire(v) for v in payload)

        if not isinstance(payload, Mapping):
            raise MalformedValueError("M value must be a map")
        return cls.map_of({str(k): cls.from_wire(v) for k, v in payload.items()})
