from __future__ import annotations

from collections import deque
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, NamedTuple

from .attribute_value import AttributeValue
from .codec import encode_item, encode_key
from .errors import MalformedValueError
from .lifecycle import TableStatus
from .testkit import client_error

OPERATIONS = frozenset(
    {
        "create_table",
        "delete_table",
        "describe_table",
        "put_item",
        "get_item",
        "update_item",
        "delete_item",
    }
)


class _Anything:
    def __repr__(self) -> str:  # pragma: no cover
        return "ANY"


ANY: Any = _Anything()


class RecordedCall(NamedTuple):
    operation: str
    request: dict[str, Any]


@dataclass(frozen=True)
class ScriptedCall:
    operation: str
    request: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None
    response: Mapping[str, Any] | None = None
    error: Exception | None = None


def describe_mismatch(expected: Any, actual: Any, path: str = "request") -> str | None:
    """Explain the first place `actual` departs from `expected`, or return None.

    Maps match as subsets, lists match exactly, `ANY` matches anything and an
    `AttributeValue` matches any wire form that decodes to an equal value (so set
    ordering on the wire does not matter).
    """
    if expected is ANY:
        return None

    if isinstance(expected, AttributeValue):
        try:
            got = AttributeValue.from_wire(actual)
        except MalformedValueError:
            return f"{path}: not an attribute value: {actual!r}"
        return None if got == expected else f"{path}: wanted {expected.to_wire()!r}, got {actual!r}"

    if isinstance(expected, Mapping):
        if not isinstance(actual, Mapping):
            return f"{path}: wanted a map, got {type(actual).__name__}"
        for name, want in expected.items():
            if name not in actual:
                return f"{path}.{name}: absent"
            problem = describe_mismatch(want, actual[name], f"{path}.{name}")
            if problem:
                return problem
        return None

    if isinstance(expected, list):
        if not isinstance(actual, list):
            return f"{path}: wanted a list, got {type(actual).__name__}"
        if len(expected) != len(actual):
            return f"{path}: wanted {len(expected)} entries, got {len(actual)}"
        for i, (want, got) in enumerate(zip(expected, actual, strict=True)):
            problem = describe_mismatch(want, got, f"{path}[{i}]")
            if problem:
                return problem
        return None

    return None if expected == actual else f"{path}: wanted {expected!r}, got {actual!r}"


def _api_name(operation: str) -> str:
    return "".join(part.title() for part in operation.split("_"))


class FakeDynamoDBClient:
    """Stands in for a boto3 DynamoDB client, answering from a script consumed in order."""

    def __init__(self) -> None:
        self._script: deque[ScriptedCall] = deque()
        self.calls: list[RecordedCall] = []

    def expect(
        self,
        operation: str,
        request: Mapping[str, Any] | Callable[[Mapping[str, Any]], None] | None = None,
        *,
        response: Mapping[str, Any] | None = None,
        error: Exception | None = None,
    ) -> None:
        if operation not in OPERATIONS:
            raise ValueError(f"unsupported operation: {operation}")
        self._script.append(ScriptedCall(operation, request, response, error))

    def expect_statuses(self, table_name: str, *statuses: TableStatus | str) -> None:
        """Script DescribeTable answers; NOT_FOUND becomes ResourceNotFoundException, strings pass through raw."""
        for status in statuses:
            if status is TableStatus.NOT_FOUND:
                self.expect(
                    "describe_table",
                    {"TableName": table_name},
                    error=client_error(
                        "ResourceNotFoundException", "DescribeTable", f"Table: {table_name} not found"
                    ),
                )
                continue
            raw = status.value if isinstance(status, TableStatus) else status
            self.expect(
                "describe_table",
                {"TableName": table_name},
                response={"Table": {"TableName": table_name, "TableStatus": raw}},
            )

    def expect_item(
        self, table_name: str, key: Mapping[str, Any], item: Mapping[str, Any] | None
    ) -> None:
        """Script a GetItem of `key` answered with `item`, or a miss when `item` is None."""
        self.expect(
            "get_item",
            {"TableName": table_name, "Key": encode_key(key)},
            response={"Item": encode_item(item)} if item is not None else {},
        )

    def expect_condition_failure(self, operation: str, table_name: str | None = None) -> None:
        self.expect(
            operation,
            {"TableName": table_name} if table_name else None,
            error=client_error(
                "ConditionalCheckFailedException", _api_name(operation), "The conditional request failed"
            ),
        )

    def assert_no_pending(self) -> None:
        if self._script:
            raise AssertionError(f"scripted calls never made: {[step.operation for step in self._script]}")

    def __getattr__(self, name: str) -> Callable[..., Mapping[str, Any]]:
        if name not in OPERATIONS:
            raise AttributeError(name)

        def call(**request: Any) -> Mapping[str, Any]:
            return self._answer(name, request)

        return call

    def _answer(self, operation: str, request: dict[str, Any]) -> Mapping[str, Any]:
        self.calls.append(RecordedCall(operation, dict(request)))
        if not self._script:
            raise AssertionError(f"unscripted call: {operation}")

        step = self._script.popleft()
        if step.operation != operation:
            raise AssertionError(f"scripted {step.operation}, called {operation}")

        if callable(step.request):
            step.request(request)
        elif step.request is not None:
            problem = describe_mismatch(step.request, request, operation)
            if problem:
                raise AssertionError(problem)

        if step.error is not None:
            raise step.error
        return dict(step.response or {})
