from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    ConnectionClosedError,
    ConnectTimeoutError,
    EndpointConnectionError,
    ReadTimeoutError,
)

from .errors import (
    AlreadyExistsError,
    ConditionalCheckFailedError,
    NotFoundError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
)

TRANSIENT_ERROR_CODES = frozenset(
    {
        "ProvisionedThroughputExceededException",
        "ThrottlingException",
        "RequestLimitExceeded",
        "InternalServerError",
        "ServiceUnavailable",
        "LimitExceededException",
        "TransactionConflictException",
    }
)

_NETWORK_ERRORS = (EndpointConnectionError, ConnectionClosedError, ConnectTimeoutError, ReadTimeoutError)


def map_client_error(
    err: ClientError,
    *,
    operation: str,
    table: str,
    key: Mapping[str, Any] | None = None,
) -> StoreError:
    code = str(err.response.get("Error", {}).get("Code", ""))
    message = str(err.response.get("Error", {}).get("Message", "")) or str(err)
    status = err.response.get("ResponseMetadata", {}).get("HTTPStatusCode")
    context: dict[str, Any] = {"code": code or "UnknownError", "operation": operation, "table": table, "key": key}

    if code == "ConditionalCheckFailedException":
        return ConditionalCheckFailedError(message, **context)
    if code == "ResourceNotFoundException":
        return NotFoundError(message, **context)
    if code == "ResourceInUseException":
        return AlreadyExistsError(message, **context)
    if code in TRANSIENT_ERROR_CODES:
        return TransientStoreError(message, **context)
    if isinstance(status, int) and status >= 500:
        return TransientStoreError(message, **context)

    return PermanentStoreError(message, **context)


def map_store_error(
    err: Exception,
    *,
    operation: str,
    table: str,
    key: Mapping[str, Any] | None = None,
) -> StoreError:
    if isinstance(err, ClientError):
        return map_client_error(err, operation=operation, table=table, key=key)

    code = type(err).__name__
    if isinstance(err, _NETWORK_ERRORS):
        return TransientStoreError(str(err), code=code, operation=operation, table=table, key=key)
    if isinstance(err, BotoCoreError):
        return PermanentStoreError(str(err), code=code, operation=operation, table=table, key=key)

    raise TypeError(f"not a store error: {code}")
