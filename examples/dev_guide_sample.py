from __future__ import annotations

import argparse
import logging

from kvtable import ItemTable, TableManager, create_dynamodb_client, load_settings, sample_tables
from kvtable.samples import load_items


def main() -> None:
    parser = argparse.ArgumentParser(description="Recreate the sample tables and load their records.")
    parser.add_argument("--settings", help="YAML settings file (an 'aws' section)")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    settings = load_settings(args.settings)
    client = create_dynamodb_client(settings)
    manager = TableManager(
        client,
        poll_interval_seconds=settings.poll_interval_seconds,
        wait_timeout_seconds=settings.wait_timeout_seconds,
    )

    tables = sample_tables()
    try:
        manager.recreate_tables([t.descriptor for t in tables])
        for sample in tables:
            load_items(ItemTable(sample.descriptor, client=client), sample.items)
    finally:
        manager.close()


if __name__ == "__main__":
    main()
