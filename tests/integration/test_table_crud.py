from __future__ import annotations

import os
import uuid
from decimal import Decimal

import boto3
import pytest

from kvtable import (
    Condition,
    ItemTable,
    ReturnValues,
    ScalarType,
    TableDescriptor,
    TableManager,
    TableStatus,
    UnknownStateError,
)

pytestmark = pytest.mark.integration


def _dynamodb_endpoint() -> str:
    return os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000")


def _client():
    return boto3.client(
        "dynamodb",
        endpoint_url=_dynamodb_endpoint(),
        region_name=os.environ.get("AWS_REGION", "us-east-1"),
        aws_access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
        aws_secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
    )


@pytest.fixture()
def catalog():
    client = _client()
    manager = TableManager(client, poll_interval_seconds=0.2, wait_timeout_seconds=60)
    desc = TableDescriptor.create(f"kvtable_catalog_{uuid.uuid4().hex[:12]}", partition=("Id", ScalarType.NUMBER))
    manager.ensure_table(desc)
    try:
        yield manager, ItemTable(desc, client=client)
    finally:
        manager.delete_table(desc.name)
        manager.close()


def test_item_crud_and_conditional_updates(catalog) -> None:
    _, table = catalog
    book = {
        "Id": 201,
        "Title": "Book 201 Title",
        "ISBN": "111-1111111111",
        "Authors": {"Author1", "Author2"},
        "Price": 20,
        "Dimensions": Decimal("8.5"),
        "InPublication": False,
        "Tags": ["new", {"featured": True}],
        "Cover": b"\x89PNG",
    }

    assert table.put(book, condition=Condition.not_exists("Id")).applied
    assert table.put(book, condition=Condition.not_exists("Id")).applied is False
    assert table.get({"Id": 201}, consistent_read=True) == book
    assert table.get({"Id": 201}, projection=["Title", "Price"], consistent_read=True) == {
        "Title": "Book 201 Title",
        "Price": 20,
    }

    out = (
        table.update_builder({"Id": 201})
        .add("Authors", {"Author YY", "Author ZZ"})
        .set("NewAttribute", "New Value")
        .remove("ISBN")
        .return_values(ReturnValues.ALL_NEW)
        .execute()
    )
    assert out.applied
    assert out.attributes is not None
    assert out.attributes["Authors"] == {"Author1", "Author2", "Author YY", "Author ZZ"}
    assert "ISBN" not in out.attributes

    def reprice() -> bool:
        return table.update_builder({"Id": 201}).set("Price", 22).condition("Price", "=", 20).execute().applied

    assert reprice() is True
    assert reprice() is False
    assert table.get({"Id": 201}, consistent_read=True)["Price"] == 22

    assert table.delete({"Id": 201}, condition=Condition.equals("InPublication", True)).applied is False
    deleted = table.delete({"Id": 201}, condition=Condition.equals("InPublication", False))
    assert deleted.applied
    assert deleted.attributes is not None and deleted.attributes["Price"] == 22
    assert table.get({"Id": 201}, consistent_read=True) is None


def test_waiting_for_creating_on_an_active_table_fails(catalog) -> None:
    manager, table = catalog
    assert manager.describe_status(table.name) is TableStatus.ACTIVE
    with pytest.raises(UnknownStateError):
        manager.await_status(table.name, TableStatus.CREATING, timeout_seconds=5)
