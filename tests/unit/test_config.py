from __future__ import annotations

from pathlib import Path

import pytest

from kvtable import Settings, ValidationError, create_dynamodb_client, load_settings
from kvtable.config import create_boto3_config


def test_defaults_without_file_or_environment() -> None:
    settings = load_settings(environ={})
    assert settings == Settings()
    assert settings.poll_interval_seconds == 5.0
    assert settings.wait_timeout_seconds == 300.0


def test_file_values_and_environment_overrides(tmp_path: Path) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(
        "aws:\n"
        "  region: us-west-2\n"
        "  endpointUrl: http://localhost:8000\n"
        "  maxAttempts: 5\n"
        "  waitTimeoutSeconds: 60\n",
        encoding="utf-8",
    )

    settings = load_settings(
        path,
        environ={
            "AWS_DEFAULT_REGION": "eu-west-1",
            "KVTABLE_POLL_INTERVAL_SECONDS": "0.5",
            "KVTABLE_TABLE_NAME": "ProductCatalog",
        },
    )

    assert settings.region == "eu-west-1"
    assert settings.endpoint_url == "http://localhost:8000"
    assert settings.max_attempts == 5
    assert settings.wait_timeout_seconds == 60.0
    assert settings.poll_interval_seconds == 0.5
    assert settings.table_name == "ProductCatalog"


def test_later_environment_variables_win() -> None:
    settings = load_settings(
        environ={"AWS_DEFAULT_REGION": "a", "AWS_REGION": "b", "KVTABLE_REGION": "c", "DYNAMODB_ENDPOINT": "http://x"}
    )
    assert settings.region == "c"
    assert settings.endpoint_url == "http://x"


def test_empty_file_is_allowed(tmp_path: Path) -> None:
    path = tmp_path / "empty.yaml"
    path.write_text("", encoding="utf-8")
    assert load_settings(path, environ={}) == Settings()


@pytest.mark.parametrize(
    ("content", "match"),
    [
        ("- a\n- b\n", "settings file must be a map"),
        ("aws: [1]\n", "'aws' section must be a map"),
        ("aws: {maxAttempts: nope}\n", "invalid setting max_attempts"),
        ("aws: {maxAttempts: 0}\n", "max_attempts must be >= 1"),
        ("aws: {pollIntervalSeconds: -1}\n", "must be >= 0"),
        ("aws: {region: [\n", "invalid settings file"),
    ],
)
def test_bad_settings_files(tmp_path: Path, content: str, match: str) -> None:
    path = tmp_path / "settings.yaml"
    path.write_text(content, encoding="utf-8")
    with pytest.raises(ValidationError, match=match):
        load_settings(path, environ={})


def test_missing_settings_file(tmp_path: Path) -> None:
    with pytest.raises(ValidationError, match="cannot read settings file"):
        load_settings(tmp_path / "nope.yaml", environ={})


def test_create_boto3_config() -> None:
    cfg = create_boto3_config(Settings(connect_timeout=1.0, read_timeout=4.0, max_attempts=2))
    assert cfg.connect_timeout == 1.0
    assert cfg.read_timeout == 4.0
    assert cfg.retries == {"max_attempts": 2, "mode": "adaptive"}


def test_create_dynamodb_client_passes_endpoint_and_credentials() -> None:
    class FakeSession:
        def __init__(self) -> None:
            self.calls: list[tuple[str, dict[str, object]]] = []

        def client(self, service_name: str, **kwargs: object) -> object:
            self.calls.append((service_name, kwargs))
            return "client"

    sess = FakeSession()
    settings = Settings(
        region="us-east-1",
        endpoint_url="http://localhost:8000",
        access_key_id="local",
        secret_access_key="local",
    )

    assert create_dynamodb_client(settings, session=sess) == "client"
    service, kwargs = sess.calls[0]
    assert service == "dynamodb"
    assert kwargs["region_name"] == "us-east-1"
    assert kwargs["endpoint_url"] == "http://localhost:8000"
    assert kwargs["aws_access_key_id"] == "local"
    assert kwargs["aws_secret_access_key"] == "local"

    create_dynamodb_client(Settings(region="us-east-1"), session=sess)
    assert "endpoint_url" not in sess.calls[1][1]
    assert "aws_access_key_id" not in sess.calls[1][1]
