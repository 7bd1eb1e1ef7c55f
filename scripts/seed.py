"""Seed helper that loads sample documents into MongoDB."""

from __future__ import annotations

import logging
from pathlib import Path

from pymongo import MongoClient
from pymongo.errors import PyMongoError

from sis import config
from sis.config import ConfigError, get_db_name, get_mongo_uri
from sis.db import set_client
from sis.seed import load_seed, read_seed_file

SEED_PATH = Path(__file__).resolve().parent / "seed.json"


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    try:
        uri = get_mongo_uri()
        db_name = get_db_name()
        term = config.get_current_term()
    except ConfigError as exc:  # pragma: no cover - simple CLI utility
        print(f"Configuration error: {exc}")
        raise SystemExit(1)

    client = MongoClient(uri, serverSelectionTimeoutMS=5000)
    set_client(client, db_name)

    try:
        load_seed(read_seed_file(SEED_PATH), term)
        print(f"Seeding complete for database '{db_name}' ({term}).")
    except PyMongoError as exc:  # pragma: no cover - requires Mongo connection
        print(f"MongoDB error: {exc}")
        raise SystemExit(1)
    finally:
        client.close()


if __name__ == "__main__":
    main()
