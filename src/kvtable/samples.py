from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from importlib.resources import files
from typing import Any, cast

import yaml

from .descriptor import (
    IndexScope,
    Projection,
    ProvisionedThroughput,
    ScalarType,
    SecondaryIndex,
    TableDescriptor,
)
from .errors import InvalidSchemaError, ValidationError
from .table import ItemTable

logger = logging.getLogger(__name__)

SAMPLE_DATA_RESOURCE = "sample_data.yaml"


@dataclass(frozen=True)
class SampleTable:
    descriptor: TableDescriptor
    items: tuple[Mapping[str, Any], ...]


def parse_sample_document(raw: str) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(raw)
    except yaml.YAMLError as err:
        raise ValidationError("invalid sample data YAML") from err

    if not isinstance(parsed, dict):
        raise ValidationError("sample data document must be a map")
    if parsed.get("version") != 1:
        raise ValidationError(f"unsupported sample data version: {parsed.get('version')!r}")

    tables = parsed.get("tables")
    if not isinstance(tables, list) or not tables:
        raise ValidationError("sample data document must include tables[]")
    return parsed


def load_sample_document() -> dict[str, Any]:
    raw = files(__package__).joinpath(SAMPLE_DATA_RESOURCE).read_text(encoding="utf-8")
    return parse_sample_document(raw)


def sample_tables(
    doc: Mapping[str, Any] | None = None,
    *,
    now: Callable[[], datetime] | None = None,
) -> list[SampleTable]:
    doc = doc if doc is not None else load_sample_document()
    current = (now or (lambda: datetime.now(tz=UTC)))()

    out: list[SampleTable] = []
    for raw_table in cast(list[Any], doc.get("tables") or []):
        if not isinstance(raw_table, dict):
            raise ValidationError("sample table entry must be a map")
        descriptor = _descriptor_from_document(raw_table)
        relative = tuple(raw_table.get("relative_days") or ())
        items = tuple(
            _resolve_relative_days(item, relative, current, table=descriptor.name)
            for item in raw_table.get("items") or ()
        )
        out.append(SampleTable(descriptor=descriptor, items=items))
    return out


def load_items(table: ItemTable, items: Sequence[Mapping[str, Any]]) -> int:
    for item in items:
        table.put(item)
    logger.info("loaded %d items into %s", len(items), table.name)
    return len(items)


def _descriptor_from_document(raw: Mapping[str, Any]) -> TableDescriptor:
    name = raw.get("name")
    if not isinstance(name, str) or not name:
        raise InvalidSchemaError("sample table requires a name")

    partition = _key_from_document(name, raw.get("partition"), "partition")
    sort = _key_from_document(name, raw["sort"], "sort") if raw.get("sort") is not None else None

    attributes: dict[str, ScalarType] = {}
    for attr_name, attr_type in (raw.get("attributes") or {}).items():
        attributes[str(attr_name)] = _scalar_type(name, attr_type)

    indexes = [_index_from_document(name, idx) for idx in raw.get("indexes") or ()]

    throughput: ProvisionedThroughput | None = None
    raw_throughput = raw.get("throughput")
    if raw_throughput is not None:
        if not isinstance(raw_throughput, dict):
            raise InvalidSchemaError(f"{name}: throughput must be a map")
        throughput = ProvisionedThroughput(
            read_units=int(raw_throughput.get("read", 0)),
            write_units=int(raw_throughput.get("write", 0)),
        )

    return TableDescriptor.create(
        name,
        partition=partition,
        sort=sort,
        attributes=attributes,
        indexes=indexes,
        throughput=throughput,
    )


def _key_from_document(table: str, raw: Any, role: str) -> tuple[str, ScalarType]:
    if not isinstance(raw, dict) or not isinstance(raw.get("name"), str):
        raise InvalidSchemaError(f"{table}: {role} key must be a map with a name")
    return raw["name"], _scalar_type(table, raw.get("type"))


def _scalar_type(table: str, raw: Any) -> ScalarType:
    try:
        return ScalarType(raw)
    except ValueError as err:
        raise InvalidSchemaError(f"{table}: attribute type must be S, N or B (got {raw!r})") from err


def _index_from_document(table: str, raw: Any) -> SecondaryIndex:
    if not isinstance(raw, dict):
        raise InvalidSchemaError(f"{table}: index entry must be a map")

    try:
        scope = IndexScope(str(raw.get("scope", "")).upper())
    except ValueError as err:
        raise InvalidSchemaError(f"{table}: index scope must be local or global") from err

    projection_type = str(raw.get("projection", "ALL")).upper()
    if projection_type == "INCLUDE":
        projection = Projection.include(*[str(f) for f in raw.get("include") or ()])
    else:
        projection = Projection(type=projection_type)

    return SecondaryIndex(
        name=str(raw.get("name") or ""),
        scope=scope,
        partition=str(raw.get("partition") or ""),
        sort=raw.get("sort"),
        projection=projection,
    )


def _resolve_relative_days(
    item: Any, fields: Sequence[str], now: datetime, *, table: str
) -> dict[str, Any]:
    if not isinstance(item, dict):
        raise ValidationError(f"{table}: sample items must be maps")

    out = dict(item)
    for field_name in fields:
        if field_name not in out:
            continue
        days = out[field_name]
        if not isinstance(days, int) or isinstance(days, bool):
            raise ValidationError(f"{table}: {field_name} must be a whole number of days")
        stamp = now - timedelta(days=days)
        out[field_name] = stamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return out
