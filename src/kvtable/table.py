from __future__ import annotations

import logging
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_store_error
from .codec import decode_item, encode_item, encode_key
from .descriptor import TableDescriptor
from .errors import ConditionalCheckFailedError, ValidationError
from .retry import RetryPolicy, call_with_retry
from .update_builder import (
    Condition,
    ExpressionPlaceholders,
    ReturnValues,
    UpdateBuilder,
    UpdateRequest,
    build_condition_expression,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WriteOutcome:
    """Result of a guarded write: either applied, or skipped because its condition did not hold."""

    applied: bool
    attributes: dict[str, Any] | None = None
    failure: ConditionalCheckFailedError | None = None


class ItemTable:
    def __init__(
        self,
        name: str | TableDescriptor,
        *,
        client: Any | None = None,
        key_fields: Sequence[str] | None = None,
        retry: RetryPolicy | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if isinstance(name, TableDescriptor):
            key_fields = key_fields or name.key_fields
            name = name.name
        if not name:
            raise ValueError("table name is required")

        self._name = name
        self._client: Any = client or boto3.client("dynamodb")
        self._key_fields = tuple(key_fields or ())
        self._retry = retry
        self._sleep = sleep

    @property
    def name(self) -> str:
        return self._name

    @property
    def key_fields(self) -> tuple[str, ...]:
        return self._key_fields

    def put(
        self,
        item: Mapping[str, Any],
        *,
        condition: Condition | Sequence[Condition] | None = None,
        return_values: ReturnValues = ReturnValues.NONE,
    ) -> WriteOutcome:
        if return_values not in {ReturnValues.NONE, ReturnValues.ALL_OLD}:
            raise ValidationError("PutItem supports only NONE or ALL_OLD return values")

        missing = [f for f in self._key_fields if f not in item]
        if missing:
            raise ValidationError(f"item is missing key fields: {missing}")

        req: dict[str, Any] = {
            "TableName": self._name,
            "Item": encode_item(item),
            "ReturnValues": return_values.value,
        }
        self._apply_condition(req, condition)
        key = {f: item[f] for f in self._key_fields} or None
        return self._write("PutItem", self._client.put_item, req, key)

    def get(
        self,
        key: Mapping[str, Any],
        *,
        consistent_read: bool = False,
        projection: Sequence[str] | None = None,
    ) -> dict[str, Any] | None:
        req: dict[str, Any] = {
            "TableName": self._name,
            "Key": encode_key(key, self._key_fields or None),
            "ConsistentRead": consistent_read,
        }
        if projection is not None:
            if not projection:
                raise ValidationError("projection must name at least one field")
            refs = ExpressionPlaceholders()
            req["ProjectionExpression"] = ", ".join(refs.name(f) for f in projection)
            req["ExpressionAttributeNames"] = refs.names()

        resp = self._call("GetItem", self._client.get_item, req, key)
        item = resp.get("Item")
        if not item:
            return None
        return decode_item(item)

    def update_builder(self, key: Mapping[str, Any]) -> UpdateBuilder:
        return UpdateBuilder(self._name, key, key_fields=self._key_fields or None, table=self)

    def execute_update(self, request: UpdateRequest) -> WriteOutcome:
        if request.table_name != self._name:
            raise ValidationError(f"update targets table {request.table_name!r}, not {self._name!r}")
        key = decode_item(request.key)
        return self._write("UpdateItem", self._client.update_item, request.to_params(), key)

    def delete(
        self,
        key: Mapping[str, Any],
        *,
        condition: Condition | Sequence[Condition] | None = None,
        return_values: ReturnValues = ReturnValues.ALL_OLD,
    ) -> WriteOutcome:
        if return_values not in {ReturnValues.NONE, ReturnValues.ALL_OLD}:
            raise ValidationError("DeleteItem supports only NONE or ALL_OLD return values")

        req: dict[str, Any] = {
            "TableName": self._name,
            "Key": encode_key(key, self._key_fields or None),
            "ReturnValues": return_values.value,
        }
        self._apply_condition(req, condition)
        return self._write("DeleteItem", self._client.delete_item, req, key)

    def _apply_condition(
        self, req: dict[str, Any], condition: Condition | Sequence[Condition] | None
    ) -> None:
        if condition is None:
            return
        conditions = [condition] if isinstance(condition, Condition) else list(condition)
        refs = ExpressionPlaceholders()
        expr = build_condition_expression(conditions, refs)
        if expr is None:
            return
        req["ConditionExpression"] = expr
        req["ExpressionAttributeNames"] = refs.names()
        values = refs.values()
        if values:
            req["ExpressionAttributeValues"] = values

    def _write(
        self,
        operation: str,
        method: Callable[..., Mapping[str, Any]],
        req: dict[str, Any],
        key: Mapping[str, Any] | None,
    ) -> WriteOutcome:
        try:
            resp = self._call(operation, method, req, key)
        except ConditionalCheckFailedError as err:
            logger.info("%s %s: condition not met", operation, self._name)
            return WriteOutcome(applied=False, failure=err)

        attrs = resp.get("Attributes")
        return WriteOutcome(applied=True, attributes=decode_item(attrs) if attrs else None)

    def _call(
        self,
        operation: str,
        method: Callable[..., Mapping[str, Any]],
        req: dict[str, Any],
        key: Mapping[str, Any] | None,
    ) -> Mapping[str, Any]:
        def once() -> Mapping[str, Any]:
            try:
                return method(**req)
            except (ClientError, BotoCoreError) as err:
                raise map_store_error(err, operation=operation, table=self._name, key=key) from err

        if self._retry is None:
            return once()
        return call_with_retry(once, self._retry, sleep=self._sleep)
