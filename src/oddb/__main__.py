"""Entry point: python -m oddb [backup|count <collection>]

- "backup":             Prune old snapshots and snapshot the store root
- "count <collection>": Print the number of files in a collection
"""

from __future__ import annotations

import asyncio
import logging
import sys

from oddb.config import load_config
from oddb.db import Database
from oddb.store import DocumentStore


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _usage() -> None:
    print("Usage: python -m oddb [backup|count <collection>]")
    print("  backup              Snapshot the store root into <root>-backup/")
    print("  count <collection>  Print the number of documents in a collection")
    sys.exit(1)


def _run_backup() -> None:
    config = load_config()
    _setup_logging(config.log_level)
    Database.from_config(config).backup()


def _run_count(collection: str) -> None:
    """Print the document count without creating a missing collection."""
    config = load_config()
    _setup_logging(config.log_level)
    if not (config.root / collection).is_dir():
        print(0)
        return
    store = DocumentStore(collection, config.root, production=config.is_production)
    print(asyncio.run(store.count_documents()))


def main() -> None:
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""

    if cmd == "backup":
        _run_backup()
    elif cmd == "count" and len(sys.argv) > 2:
        _run_count(sys.argv[2])
    else:
        _usage()


if __name__ == "__main__":
    main()
