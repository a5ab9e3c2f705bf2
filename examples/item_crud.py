from __future__ import annotations

import logging
import os
import uuid

from kvtable import (
    Condition,
    ItemTable,
    ReturnValues,
    ScalarType,
    Settings,
    TableDescriptor,
    TableManager,
    create_dynamodb_client,
)

logger = logging.getLogger("item_crud")


def _client():
    return create_dynamodb_client(
        Settings(
            region=os.environ.get("AWS_REGION", "us-east-1"),
            endpoint_url=os.environ.get("DYNAMODB_ENDPOINT", "http://localhost:8000"),
            access_key_id=os.environ.get("AWS_ACCESS_KEY_ID", "dummy"),
            secret_access_key=os.environ.get("AWS_SECRET_ACCESS_KEY", "dummy"),
        )
    )


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    client = _client()
    manager = TableManager(client, poll_interval_seconds=1.0)
    desc = TableDescriptor.create(f"kvtable_example_{uuid.uuid4().hex[:12]}", partition=("Id", ScalarType.STRING))
    manager.ensure_table(desc)

    try:
        table = ItemTable(desc, client=client)
        book_id = str(uuid.uuid4())

        table.put(
            {
                "Id": book_id,
                "Title": "Book 201 Title",
                "ISBN": "11-11-11-11",
                "Authors": {"Author1", "Author2"},
                "Price": 20,
                "Dimensions": "8.5x11.0x.75",
                "InPublication": False,
            }
        )
        logger.info("projected: %s", table.get({"Id": book_id}, projection=["Title", "ISBN", "Authors"]))

        out = (
            table.update_builder({"Id": book_id})
            .add("Authors", {"Author YY", "Author ZZ"})
            .set("NewAttribute", "New Value")
            .remove("ISBN")
            .return_values(ReturnValues.ALL_NEW)
            .execute()
        )
        logger.info("after multi-attribute update: %s", out.attributes)

        for attempt in (1, 2):
            out = table.update_builder({"Id": book_id}).set("Price", 22).condition("Price", "=", 20).execute()
            logger.info("conditional price update %d applied=%s", attempt, out.applied)

        out = table.delete({"Id": book_id}, condition=Condition.equals("InPublication", False))
        logger.info("deleted: %s", out.attributes)
    finally:
        manager.delete_table(desc.name)
        manager.close()


if __name__ == "__main__":
    main()
