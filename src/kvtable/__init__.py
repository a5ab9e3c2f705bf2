from __future__ import annotations

import json
import re
from importlib.resources import files
from typing import TYPE_CHECKING, Any

from .attribute_value import AttributeValue
from .codec import decode, decode_item, encode, encode_item, encode_key
from .descriptor import (
    IndexScope,
    KeyElement,
    KeyRole,
    Projection,
    ProvisionedThroughput,
    ScalarType,
    SecondaryIndex,
    TableDescriptor,
    global_index,
    local_index,
)
from .errors import (
    AlreadyExistsError,
    ConditionalCheckFailedError,
    InvalidSchemaError,
    KvTableError,
    MalformedValueError,
    NotFoundError,
    PermanentStoreError,
    StoreError,
    TransientStoreError,
    UnknownStateError,
    UnsupportedTypeError,
    ValidationError,
    WaitCancelledError,
    WaitTimeoutError,
)
from .update_builder import Condition, ReturnValues, UpdateBuilder, UpdateRequest, build_update

if TYPE_CHECKING:
    from .config import Settings, create_dynamodb_client, load_settings
    from .lifecycle import StatusWait, TableHandle, TableManager, TableStatus
    from .retry import RetryPolicy, call_with_retry
    from .samples import SampleTable, sample_tables
    from .table import ItemTable, WriteOutcome


def _read_repo_version() -> str:
    try:
        data = json.loads(files(__package__).joinpath("version.json").read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return "0.0.0"

    version = data.get("version")
    return version if isinstance(version, str) and version else "0.0.0"


def _normalize_repo_version(repo_version: str) -> str:
    match = re.match(r"^(\d+\.\d+\.\d+)-rc\.?([0-9]+)$", repo_version)
    if match:
        return f"{match.group(1)}rc{match.group(2)}"
    return repo_version


__repo_version__ = _read_repo_version()
__version__ = _normalize_repo_version(__repo_version__)


def __getattr__(name: str) -> Any:
    if name in {"StatusWait", "TableHandle", "TableManager", "TableStatus"}:
        from . import lifecycle

        return getattr(lifecycle, name)
    if name in {"ItemTable", "WriteOutcome"}:
        from . import table

        return getattr(table, name)
    if name in {"RetryPolicy", "call_with_retry"}:
        from . import retry

        return getattr(retry, name)
    if name in {"Settings", "create_dynamodb_client", "load_settings"}:
        from . import config

        return getattr(config, name)
    if name in {"SampleTable", "sample_tables"}:
        from . import samples

        return getattr(samples, name)
    raise AttributeError(name)


__all__ = [
    "AlreadyExistsError",
    "AttributeValue",
    "Condition",
    "ConditionalCheckFailedError",
    "IndexScope",
    "InvalidSchemaError",
    "ItemTable",
    "KeyElement",
    "KeyRole",
    "KvTableError",
    "MalformedValueError",
    "NotFoundError",
    "PermanentStoreError",
    "Projection",
    "ProvisionedThroughput",
    "RetryPolicy",
    "ReturnValues",
    "SampleTable",
    "ScalarType",
    "SecondaryIndex",
    "Settings",
    "StatusWait",
    "StoreError",
    "TableDescriptor",
    "TableHandle",
    "TableManager",
    "TableStatus",
    "TransientStoreError",
    "UnknownStateError",
    "UnsupportedTypeError",
    "UpdateBuilder",
    "UpdateRequest",
    "ValidationError",
    "WaitCancelledError",
    "WaitTimeoutError",
    "WriteOutcome",
    "__repo_version__",
    "__version__",
    "build_update",
    "call_with_retry",
    "create_dynamodb_client",
    "decode",
    "decode_item",
    "encode",
    "encode_item",
    "encode_key",
    "global_index",
    "load_settings",
    "local_index",
    "sample_tables",
]
