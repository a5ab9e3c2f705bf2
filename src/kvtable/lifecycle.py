from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .aws_errors import map_store_error
from .descriptor import TableDescriptor
from .errors import (
    AlreadyExistsError,
    InvalidSchemaError,
    NotFoundError,
    UnknownStateError,
    ValidationError,
    WaitCancelledError,
    WaitTimeoutError,
)

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 5.0
DEFAULT_WAIT_TIMEOUT_SECONDS = 300.0


class TableStatus(Enum):
    CREATING = "CREATING"
    ACTIVE = "ACTIVE"
    DELETING = "DELETING"
    NOT_FOUND = "NOT_FOUND"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_service(cls, raw: str | None) -> TableStatus:
        if raw == "CREATING":
            return cls.CREATING
        if raw == "ACTIVE":
            return cls.ACTIVE
        if raw == "DELETING":
            return cls.DELETING
        return cls.UNKNOWN


# Statuses that may legitimately be observed on the way to each target.
_PATH_TO: dict[TableStatus, frozenset[TableStatus]] = {
    TableStatus.ACTIVE: frozenset({TableStatus.CREATING, TableStatus.NOT_FOUND}),
    TableStatus.CREATING: frozenset({TableStatus.NOT_FOUND}),
    TableStatus.DELETING: frozenset({TableStatus.ACTIVE}),
    TableStatus.NOT_FOUND: frozenset({TableStatus.DELETING}),
}


@dataclass(frozen=True)
class TableHandle:
    name: str
    status: TableStatus
    description: Mapping[str, Any] = field(default_factory=dict)


class StatusWait:
    """A table status wait running on its own thread, so waits on independent tables never queue."""

    def __init__(self, future: Future[TableStatus], cancel_event: threading.Event) -> None:
        self._future = future
        self._cancel_event = cancel_event

    def cancel(self) -> None:
        self._cancel_event.set()

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> TableStatus:
        return self._future.result(timeout=timeout)


class TableManager:
    def __init__(
        self,
        client: Any | None = None,
        *,
        poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS,
        wait_timeout_seconds: float = DEFAULT_WAIT_TIMEOUT_SECONDS,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._client: Any = client or boto3.client("dynamodb")
        self._poll_interval_seconds = poll_interval_seconds
        self._wait_timeout_seconds = wait_timeout_seconds
        self._sleep = sleep
        self._clock = clock
        self._waits: set[threading.Event] = set()
        self._waits_lock = threading.Lock()

    def create_table(self, descriptor: TableDescriptor) -> TableHandle:
        req = descriptor.to_create_table_request()

        try:
            resp = self._client.create_table(**req)
        except (ClientError, BotoCoreError) as err:
            raise map_store_error(err, operation="CreateTable", table=descriptor.name) from err

        description = dict(resp.get("TableDescription") or {})
        status = TableStatus.from_service(description.get("TableStatus"))
        logger.info("create table %s submitted: %s", descriptor.name, status.value)
        return TableHandle(name=descriptor.name, status=status, description=description)

    def delete_table(
        self,
        name: str,
        *,
        wait: bool = True,
        poll_interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
        cancel: threading.Event | None = None,
    ) -> TableStatus:
        _require_name(name)
        try:
            resp = self._client.delete_table(TableName=name)
        except (ClientError, BotoCoreError) as err:
            mapped = map_store_error(err, operation="DeleteTable", table=name)
            if isinstance(mapped, NotFoundError):
                logger.info("delete table %s: already absent", name)
                return TableStatus.NOT_FOUND
            raise mapped from err

        status = TableStatus.from_service((resp.get("TableDescription") or {}).get("TableStatus"))
        logger.info("delete table %s submitted: %s", name, status.value)
        if not wait:
            return status

        return self.await_status(
            name,
            TableStatus.NOT_FOUND,
            poll_interval_seconds=poll_interval_seconds,
            timeout_seconds=timeout_seconds,
            cancel=cancel,
        )

    def describe_status(self, name: str) -> TableStatus:
        _require_name(name)
        try:
            resp = self._client.describe_table(TableName=name)
        except (ClientError, BotoCoreError) as err:
            mapped = map_store_error(err, operation="DescribeTable", table=name)
            if isinstance(mapped, NotFoundError):
                return TableStatus.NOT_FOUND
            raise mapped from err

        raw = (resp.get("Table") or {}).get("TableStatus")
        status = TableStatus.from_service(raw)
        if status is TableStatus.UNKNOWN:
            logger.warning("table %s reported unrecognised status %r", name, raw)
        return status

    def await_status(
        self,
        name: str,
        target: TableStatus,
        *,
        poll_interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
        cancel: threading.Event | None = None,
    ) -> TableStatus:
        _require_name(name)
        if target not in _PATH_TO:
            raise ValidationError(f"cannot wait for table status {target.value}")

        interval = self._poll_interval_seconds if poll_interval_seconds is None else poll_interval_seconds
        timeout = self._wait_timeout_seconds if timeout_seconds is None else timeout_seconds
        if interval < 0:
            raise ValidationError("poll_interval_seconds must be >= 0")
        if timeout < 0:
            raise ValidationError("timeout_seconds must be >= 0")

        cancel = cancel or threading.Event()
        deadline = self._clock() + timeout
        last: TableStatus | None = None

        while True:
            if cancel.is_set():
                raise WaitCancelledError(table=name, target=target.value)

            status = self.describe_status(name)
            if status is not last:
                logger.info("table %s: %s", name, status.value)
                last = status

            if status is target:
                return status
            if status not in _PATH_TO[target]:
                raise UnknownStateError(table=name, status=status.value, expected=target.value)

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise WaitTimeoutError(
                    table=name, target=target.value, last_status=status.value, timeout_seconds=timeout
                )
            self._pause(min(interval, remaining), cancel)

    def await_status_in_background(
        self,
        name: str,
        target: TableStatus,
        *,
        poll_interval_seconds: float | None = None,
        timeout_seconds: float | None = None,
    ) -> StatusWait:
        cancel = threading.Event()
        future: Future[TableStatus] = Future()

        def run() -> None:
            if not future.set_running_or_notify_cancel():
                return
            try:
                future.set_result(
                    self.await_status(
                        name,
                        target,
                        poll_interval_seconds=poll_interval_seconds,
                        timeout_seconds=timeout_seconds,
                        cancel=cancel,
                    )
                )
            except Exception as err:
                future.set_exception(err)
            finally:
                with self._waits_lock:
                    self._waits.discard(cancel)

        with self._waits_lock:
            self._waits.add(cancel)
        threading.Thread(target=run, name=f"kvtable-wait-{name}", daemon=True).start()
        return StatusWait(future, cancel)

    def ensure_table(
        self,
        descriptor: TableDescriptor,
        *,
        timeout_seconds: float | None = None,
        cancel: threading.Event | None = None,
    ) -> TableHandle:
        descriptor.validate()
        status = self.describe_status(descriptor.name)
        if status is TableStatus.NOT_FOUND:
            try:
                self.create_table(descriptor)
            except AlreadyExistsError:
                logger.info("create table %s: created concurrently", descriptor.name)

        status = self.await_status(
            descriptor.name, TableStatus.ACTIVE, timeout_seconds=timeout_seconds, cancel=cancel
        )
        return TableHandle(name=descriptor.name, status=status)

    def create_and_wait(
        self,
        descriptor: TableDescriptor,
        *,
        timeout_seconds: float | None = None,
        cancel: threading.Event | None = None,
    ) -> TableHandle:
        handle = self.create_table(descriptor)
        if handle.status is TableStatus.ACTIVE:
            return handle

        status = self.await_status(
            descriptor.name, TableStatus.ACTIVE, timeout_seconds=timeout_seconds, cancel=cancel
        )
        return TableHandle(name=descriptor.name, status=status, description=handle.description)

    def provision_all(
        self,
        descriptors: Sequence[TableDescriptor],
        *,
        max_workers: int | None = None,
        timeout_seconds: float | None = None,
    ) -> list[TableHandle]:
        if not descriptors:
            return []

        names = [d.name for d in descriptors]
        if len(set(names)) != len(names):
            raise InvalidSchemaError(f"duplicate table names: {sorted(names)}")
        for descriptor in descriptors:
            descriptor.validate()

        if max_workers is None:
            max_workers = len(descriptors)
        if max_workers <= 0:
            raise ValidationError("max_workers must be > 0")

        with ThreadPoolExecutor(max_workers=max_workers) as ex:
            futures = [
                ex.submit(self.create_and_wait, descriptor, timeout_seconds=timeout_seconds)
                for descriptor in descriptors
            ]
            return [fut.result() for fut in futures]

    def recreate_tables(
        self,
        descriptors: Sequence[TableDescriptor],
        *,
        timeout_seconds: float | None = None,
    ) -> list[TableHandle]:
        for descriptor in descriptors:
            descriptor.validate()

        for descriptor in descriptors:
            self.delete_table(descriptor.name, timeout_seconds=timeout_seconds)

        return [self.create_and_wait(d, timeout_seconds=timeout_seconds) for d in descriptors]

    def close(self) -> None:
        """Cancel every background wait that is still polling."""
        with self._waits_lock:
            pending = list(self._waits)
        for cancel in pending:
            cancel.set()

    def _pause(self, seconds: float, cancel: threading.Event) -> None:
        if self._sleep is not None:
            self._sleep(seconds)
            return
        cancel.wait(seconds)


def _require_name(name: str) -> None:
    if not name or not name.strip():
        raise ValidationError("table name is required")
