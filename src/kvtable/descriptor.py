from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .errors import InvalidSchemaError


class KeyRole(Enum):
    PARTITION = "HASH"
    SORT = "RANGE"


class ScalarType(Enum):
    STRING = "S"
    NUMBER = "N"
    BINARY = "B"


class IndexScope(Enum):
    LOCAL = "LOCAL"
    GLOBAL = "GLOBAL"


@dataclass(frozen=True)
class KeyElement:
    name: str
    role: KeyRole


@dataclass(frozen=True)
class Projection:
    type: str
    fields: tuple[str, ...] = ()

    @staticmethod
    def all() -> Projection:
        return Projection(type="ALL")

    @staticmethod
    def keys_only() -> Projection:
        return Projection(type="KEYS_ONLY")

    @staticmethod
    def include(*fields: str) -> Projection:
        return Projection(type="INCLUDE", fields=tuple(fields))


@dataclass(frozen=True)
class ProvisionedThroughput:
    read_units: int
    write_units: int

    def to_request(self) -> dict[str, int]:
        return {"ReadCapacityUnits": self.read_units, "WriteCapacityUnits": self.write_units}


@dataclass(frozen=True)
class SecondaryIndex:
    name: str
    scope: IndexScope
    partition: str
    sort: str | None = None
    projection: Projection = field(default_factory=Projection.all)
    throughput: ProvisionedThroughput | None = None

    def key_schema(self) -> tuple[KeyElement, ...]:
        elements = [KeyElement(self.partition, KeyRole.PARTITION)]
        if self.sort is not None:
            elements.append(KeyElement(self.sort, KeyRole.SORT))
        return tuple(elements)


def local_index(
    name: str, *, partition: str, sort: str, projection: Projection | None = None
) -> SecondaryIndex:
    return SecondaryIndex(
        name=name,
        scope=IndexScope.LOCAL,
        partition=partition,
        sort=sort,
        projection=projection or Projection.all(),
    )


def global_index(
    name: str,
    *,
    partition: str,
    sort: str | None = None,
    projection: Projection | None = None,
    throughput: ProvisionedThroughput | None = None,
) -> SecondaryIndex:
    return SecondaryIndex(
        name=name,
        scope=IndexScope.GLOBAL,
        partition=partition,
        sort=sort,
        projection=projection or Projection.all(),
        throughput=throughput,
    )


@dataclass(frozen=True)
class TableDescriptor:
    name: str
    key_schema: tuple[KeyElement, ...]
    attributes: Mapping[str, ScalarType]
    indexes: tuple[SecondaryIndex, ...] = ()
    throughput: ProvisionedThroughput | None = None

    @classmethod
    def create(
        cls,
        name: str,
        *,
        partition: tuple[str, ScalarType],
        sort: tuple[str, ScalarType] | None = None,
        attributes: Mapping[str, ScalarType] | None = None,
        indexes: Sequence[SecondaryIndex] = (),
        throughput: ProvisionedThroughput | None = None,
    ) -> TableDescriptor:
        declared: dict[str, ScalarType] = {partition[0]: partition[1]}
        key_schema = [KeyElement(partition[0], KeyRole.PARTITION)]
        if sort is not None:
            declared[sort[0]] = sort[1]
            key_schema.append(KeyElement(sort[0], KeyRole.SORT))
        declared.update(attributes or {})

        return cls(
            name=name,
            key_schema=tuple(key_schema),
            attributes=declared,
            indexes=tuple(indexes),
            throughput=throughput,
        )

    @property
    def partition_key(self) -> str:
        for element in self.key_schema:
            if element.role is KeyRole.PARTITION:
                return element.name
        raise InvalidSchemaError(f"{self.name}: key schema has no partition key")

    @property
    def sort_key(self) -> str | None:
        for element in self.key_schema:
            if element.role is KeyRole.SORT:
                return element.name
        return None

    @property
    def key_fields(self) -> tuple[str, ...]:
        return tuple(element.name for element in self.key_schema)

    def validate(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidSchemaError("table name is required")

        _validate_key_schema(self.name, self.key_schema)
        for element in self.key_schema:
            if element.name not in self.attributes:
                raise InvalidSchemaError(
                    f"{self.name}: key field {element.name!r} is missing from attribute declarations"
                )

        for attr_name, attr_type in self.attributes.items():
            if not isinstance(attr_type, ScalarType):
                raise InvalidSchemaError(f"{self.name}: attribute {attr_name!r} must be S, N or B")

        used = set(self.key_fields)
        seen_index_names: set[str] = set()
        for idx in self.indexes:
            where = f"{self.name}: index {idx.name!r}"
            if not idx.name:
                raise InvalidSchemaError(f"{self.name}: index name is required")
            if idx.name in seen_index_names:
                raise InvalidSchemaError(f"{self.name}: duplicate index name: {idx.name}")
            seen_index_names.add(idx.name)

            _validate_key_schema(where, idx.key_schema())
            for element in idx.key_schema():
                if element.name not in self.attributes:
                    raise InvalidSchemaError(
                        f"{where}: key field {element.name!r} is missing from attribute declarations"
                    )
                used.add(element.name)

            if idx.scope is IndexScope.LOCAL:
                if self.sort_key is None:
                    raise InvalidSchemaError(f"{where}: local indexes require a table sort key")
                if idx.partition != self.partition_key:
                    raise InvalidSchemaError(
                        f"{where}: local index partition key must be the table partition key ({self.partition_key})"
                    )
                if idx.sort is None:
                    raise InvalidSchemaError(f"{where}: local indexes require a sort key")
                if idx.throughput is not None:
                    raise InvalidSchemaError(f"{where}: local indexes share the table throughput")

            if idx.projection.type not in {"ALL", "KEYS_ONLY", "INCLUDE"}:
                raise InvalidSchemaError(f"{where}: unsupported projection: {idx.projection.type}")
            if idx.projection.type == "INCLUDE" and not idx.projection.fields:
                raise InvalidSchemaError(f"{where}: INCLUDE projection requires fields")
            if idx.projection.type != "INCLUDE" and idx.projection.fields:
                raise InvalidSchemaError(f"{where}: only INCLUDE projections list fields")

        unused = sorted(set(self.attributes).difference(used))
        if unused:
            raise InvalidSchemaError(f"{self.name}: declared attributes are not used by any key: {unused}")

        _validate_throughput(self.name, self.throughput)
        for idx in self.indexes:
            _validate_throughput(f"{self.name}: index {idx.name!r}", idx.throughput)
            if idx.throughput is not None and self.throughput is None:
                raise InvalidSchemaError(
                    f"{self.name}: index {idx.name!r} sets throughput on an on-demand table"
                )

    def to_create_table_request(self) -> dict[str, Any]:
        self.validate()

        req: dict[str, Any] = {
            "TableName": self.name,
            "KeySchema": _key_schema_request(self.key_schema),
            "AttributeDefinitions": [
                {"AttributeName": name, "AttributeType": self.attributes[name].value}
                for name in sorted(self.attributes)
            ],
        }
        if self.throughput is not None:
            req["BillingMode"] = "PROVISIONED"
            req["ProvisionedThroughput"] = self.throughput.to_request()
        else:
            req["BillingMode"] = "PAY_PER_REQUEST"

        gsis: list[dict[str, Any]] = []
        lsis: list[dict[str, Any]] = []
        for idx in self.indexes:
            proj: dict[str, Any] = {"ProjectionType": idx.projection.type}
            if idx.projection.type == "INCLUDE":
                proj["NonKeyAttributes"] = list(idx.projection.fields)

            spec: dict[str, Any] = {
                "IndexName": idx.name,
                "KeySchema": _key_schema_request(idx.key_schema()),
                "Projection": proj,
            }
            if idx.scope is IndexScope.GLOBAL:
                throughput = idx.throughput or self.throughput
                if throughput is not None:
                    spec["ProvisionedThroughput"] = throughput.to_request()
                gsis.append(spec)
            else:
                lsis.append(spec)

        if gsis:
            req["GlobalSecondaryIndexes"] = gsis
        if lsis:
            req["LocalSecondaryIndexes"] = lsis
        return req


def _validate_key_schema(where: str, key_schema: Sequence[KeyElement]) -> None:
    if not 1 <= len(key_schema) <= 2:
        raise InvalidSchemaError(f"{where}: key schema must have 1 or 2 elements (got {len(key_schema)})")

    partitions = [e for e in key_schema if e.role is KeyRole.PARTITION]
    sorts = [e for e in key_schema if e.role is KeyRole.SORT]
    if len(partitions) != 1:
        raise InvalidSchemaError(f"{where}: key schema must have exactly one partition key (found {len(partitions)})")
    if len(sorts) > 1:
        raise InvalidSchemaError(f"{where}: key schema must have at most one sort key (found {len(sorts)})")
    if len({e.name for e in key_schema}) != len(key_schema):
        raise InvalidSchemaError(f"{where}: partition and sort key must be different fields")
    for element in key_schema:
        if not element.name:
            raise InvalidSchemaError(f"{where}: key field name is required")


def _validate_throughput(where: str, throughput: ProvisionedThroughput | None) -> None:
    if throughput is None:
        return
    if throughput.read_units <= 0 or throughput.write_units <= 0:
        raise InvalidSchemaError(f"{where}: provisioned read and write units must be > 0")


def _key_schema_request(key_schema: Sequence[KeyElement]) -> list[dict[str, str]]:
    ordered = sorted(key_schema, key=lambda e: 0 if e.role is KeyRole.PARTITION else 1)
    return [{"AttributeName": e.name, "KeyType": e.role.value} for e in ordered]
