from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, cast

import boto3
import yaml
from botocore.config import Config

from .errors import ValidationError

logger = logging.getLogger(__name__)

# settings-file key (under "aws") -> Settings field
_FILE_KEYS = {
    "region": "region",
    "endpointUrl": "endpoint_url",
    "accessKeyId": "access_key_id",
    "secretAccessKey": "secret_access_key",
    "tableName": "table_name",
    "connectTimeout": "connect_timeout",
    "readTimeout": "read_timeout",
    "maxAttempts": "max_attempts",
    "pollIntervalSeconds": "poll_interval_seconds",
    "waitTimeoutSeconds": "wait_timeout_seconds",
}

# environment variable -> Settings field; later entries win
_ENV_KEYS = (
    ("AWS_DEFAULT_REGION", "region"),
    ("AWS_REGION", "region"),
    ("DYNAMODB_ENDPOINT", "endpoint_url"),
    ("AWS_ACCESS_KEY_ID", "access_key_id"),
    ("AWS_SECRET_ACCESS_KEY", "secret_access_key"),
    ("KVTABLE_REGION", "region"),
    ("KVTABLE_ENDPOINT_URL", "endpoint_url"),
    ("KVTABLE_TABLE_NAME", "table_name"),
    ("KVTABLE_POLL_INTERVAL_SECONDS", "poll_interval_seconds"),
    ("KVTABLE_WAIT_TIMEOUT_SECONDS", "wait_timeout_seconds"),
)


@dataclass(frozen=True)
class Settings:
    region: str | None = None
    endpoint_url: str | None = None
    access_key_id: str | None = None
    secret_access_key: str | None = None
    table_name: str | None = None
    connect_timeout: float = 2.0
    read_timeout: float = 10.0
    max_attempts: int = 3
    poll_interval_seconds: float = 5.0
    wait_timeout_seconds: float = 300.0


def load_settings(
    path: str | Path | None = None,
    *,
    environ: Mapping[str, str] = os.environ,
) -> Settings:
    """Read settings from an optional YAML/JSON file, then apply environment overrides."""
    values: dict[str, Any] = {}

    if path is not None:
        values.update(_read_settings_file(Path(path)))

    for env_name, field_name in _ENV_KEYS:
        raw = environ.get(env_name)
        if raw:
            values[field_name] = raw

    return _coerce(values)


def create_boto3_config(settings: Settings) -> Config:
    return Config(
        connect_timeout=settings.connect_timeout,
        read_timeout=settings.read_timeout,
        retries={"max_attempts": settings.max_attempts, "mode": "adaptive"},
    )


def create_dynamodb_client(settings: Settings, *, session: Any | None = None) -> Any:
    sess = session or boto3.session.Session(region_name=settings.region)
    kwargs: dict[str, Any] = {
        "region_name": settings.region,
        "config": create_boto3_config(settings),
    }
    if settings.endpoint_url:
        kwargs["endpoint_url"] = settings.endpoint_url
    if settings.access_key_id and settings.secret_access_key:
        kwargs["aws_access_key_id"] = settings.access_key_id
        kwargs["aws_secret_access_key"] = settings.secret_access_key

    logger.debug("creating dynamodb client region=%s endpoint=%s", settings.region, settings.endpoint_url)
    return cast(Any, sess).client("dynamodb", **kwargs)


def _read_settings_file(path: Path) -> dict[str, Any]:
    try:
        parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as err:
        raise ValidationError(f"cannot read settings file: {path}") from err
    except yaml.YAMLError as err:
        raise ValidationError(f"invalid settings file: {path}") from err

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ValidationError(f"settings file must be a map: {path}")

    section = parsed.get("aws", {})
    if not isinstance(section, dict):
        raise ValidationError(f"settings 'aws' section must be a map: {path}")

    out: dict[str, Any] = {}
    for file_key, field_name in _FILE_KEYS.items():
        if section.get(file_key) is not None:
            out[field_name] = section[file_key]
    return out


def _coerce(values: Mapping[str, Any]) -> Settings:
    defaults = Settings()
    converted: dict[str, Any] = {}
    for f in fields(Settings):
        if f.name not in values:
            continue
        raw = values[f.name]
        default = getattr(defaults, f.name)
        try:
            if default is None:
                converted[f.name] = str(raw)
            elif isinstance(default, int):
                converted[f.name] = int(raw)
            elif isinstance(default, float):
                converted[f.name] = float(raw)
            else:
                converted[f.name] = raw
        except (TypeError, ValueError) as err:
            raise ValidationError(f"invalid setting {f.name}: {raw!r}") from err

    settings = replace(defaults, **converted)
    if settings.max_attempts < 1:
        raise ValidationError("max_attempts must be >= 1")
    if settings.poll_interval_seconds < 0 or settings.wait_timeout_seconds < 0:
        raise ValidationError("poll interval and wait timeout must be >= 0")
    return settings
