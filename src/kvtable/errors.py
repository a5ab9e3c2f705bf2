from __future__ import annotations

from collections.abc import Mapping
from typing import Any


class KvTableError(Exception):
    pass


class ValidationError(KvTableError):
    pass


class InvalidSchemaError(KvTableError):
    pass


class UnsupportedTypeError(KvTableError):
    pass


class MalformedValueError(KvTableError):
    pass


class StoreError(KvTableError):
    """A failed exchange with the store, with enough context to diagnose it."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "",
        operation: str = "",
        table: str = "",
        key: Mapping[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.operation = operation
        self.table = table
        self.key = dict(key) if key is not None else None
        self.message = message
        super().__init__(self._render())

    def _render(self) -> str:
        context = [part for part in (self.operation, self.table) if part]
        prefix = " ".join(context)
        if self.key:
            prefix = f"{prefix} key={self.key!r}" if prefix else f"key={self.key!r}"
        head = f"{self.code}: {self.message}" if self.code else self.message
        return f"{prefix}: {head}" if prefix else head


class NotFoundError(StoreError):
    pass


class AlreadyExistsError(StoreError):
    pass


class ConditionalCheckFailedError(StoreError):
    pass


class TransientStoreError(StoreError):
    pass


class PermanentStoreError(StoreError):
    pass


class UnknownStateError(KvTableError):
    def __init__(self, *, table: str, status: str, expected: str) -> None:
        super().__init__(f"{table}: unexpected table status {status!r} while waiting for {expected}")
        self.table = table
        self.status = status
        self.expected = expected


class WaitTimeoutError(KvTableError, TimeoutError):
    def __init__(self, *, table: str, target: str, last_status: str, timeout_seconds: float) -> None:
        super().__init__(
            f"{table}: timed out after {timeout_seconds:g}s waiting for {target} (last status {last_status})"
        )
        self.table = table
        self.target = target
        self.last_status = last_status
        self.timeout_seconds = timeout_seconds


class WaitCancelledError(KvTableError):
    def __init__(self, *, table: str, target: str) -> None:
        super().__init__(f"{table}: wait for {target} was cancelled")
        self.table = table
        self.target = target
