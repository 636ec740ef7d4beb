"""Collection storage: one JSON file per document.

Layout:
    <root>/
    └── <collection>/
        ├── <id>.json
        └── ...

Every operation is a coroutine; blocking file calls run in a worker thread
and multi-document operations walk the directory one file at a time. There
is no locking between writers: the last write to a path wins.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from oddb.errors import PolicyViolation, StoreIOError
from oddb.filters import FilterEvaluator

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".json"

# Files the OS drops into directories; never parsed as documents.
IGNORED_FILES = frozenset({".DS_Store", "Thumbs.db", "desktop.ini"})


def generate_id() -> str:
    return uuid.uuid4().hex


def timestamp() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2026-02-18T03:04:05.678Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def document_filename(stem: str) -> str:
    return stem if stem.endswith(DOCUMENT_SUFFIX) else f"{stem}{DOCUMENT_SUFFIX}"


class DocumentStore:
    """CRUD access to a single collection directory."""

    def __init__(
        self,
        collection: str,
        root: Path,
        *,
        production: bool = False,
        json_indent: int | None = 2,
        id_factory: Callable[[], str] = generate_id,
    ) -> None:
        self.name = collection
        self.path = Path(root) / collection
        self.production = production
        self.json_indent = json_indent
        self._id_factory = id_factory
        self.path.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return f"DocumentStore({self.name!r}, path={str(self.path)!r})"

    # ── Paths & serialization ─────────────────────────────────

    def document_path(self, id: str) -> Path:
        return self.path / document_filename(id)

    def _dumps(self, document: Mapping[str, Any]) -> str:
        return json.dumps(document, indent=self.json_indent, ensure_ascii=False)

    async def _read(self, path: Path) -> dict:
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        document = json.loads(text)
        if not isinstance(document, dict):
            raise ValueError(f"{path.name} does not hold a JSON object")
        return document

    async def _write(self, path: Path, document: Mapping[str, Any]) -> None:
        await asyncio.to_thread(path.write_text, self._dumps(document), encoding="utf-8")

    async def _list(self) -> list[str]:
        names = await asyncio.to_thread(os.listdir, self.path)
        return sorted(names)

    async def _scan(self) -> list[tuple[Path, dict]]:
        """Load every document in listing order. Any failure propagates."""
        documents = []
        for name in await self._list():
            if name in IGNORED_FILES:
                continue
            path = self.path / name
            documents.append((path, await self._read(path)))
        return documents

    # ── Insert ────────────────────────────────────────────────

    async def insert_one(
        self, document: Mapping[str, Any], filename: str | None = None
    ) -> dict:
        """Store a document, assigning `id` if absent. Overwrites an existing id."""
        now = timestamp()
        stored = dict(document)
        stored["id"] = stored.get("id") or self._id_factory()
        stored["createdAt"] = now
        stored["updatedAt"] = now

        path = self.document_path(filename or stored["id"])
        try:
            await self._write(path, stored)
        except (OSError, TypeError, ValueError) as e:
            raise StoreIOError(f"Error inserting document: {e}") from e
        logger.debug("Inserted %s/%s", self.name, stored["id"])
        return stored

    async def insert_many(self, documents: Iterable[Mapping[str, Any]]) -> list[dict]:
        """Insert sequentially. A failure leaves earlier documents written."""
        inserted = []
        for document in documents:
            inserted.append(await self.insert_one(document))
        return inserted

    # ── Find ──────────────────────────────────────────────────

    async def find_one(self, id: str) -> dict | None:
        """Load a document by id. Returns None on any read or parse failure."""
        try:
            return await self._read(self.document_path(id))
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning("Failed to read %s/%s: %s", self.name, id, e)
            return None

    async def find_many(self, filter: Mapping[str, Any] | None = None) -> list[dict]:
        """Return every document, or only those matching `filter`."""
        try:
            documents = await self._scan()
        except (OSError, ValueError) as e:
            raise StoreIOError(f"Error finding documents: {e}") from e
        if not filter:
            return [doc for _, doc in documents]
        evaluator = FilterEvaluator(filter)
        return [doc for _, doc in documents if evaluator.matches(doc)]

    # ── Update ────────────────────────────────────────────────

    def _merge(self, existing: Mapping[str, Any], update: Mapping[str, Any], id: Any) -> dict:
        merged = {**existing, **update}
        merged["id"] = id
        merged["updatedAt"] = timestamp()
        return merged

    async def find_by_id_and_update(self, id: str, update: Mapping[str, Any]) -> dict | None:
        """Shallow-merge `update` into a document. Returns None if it does not exist."""
        existing = await self.find_one(id)
        if existing is None:
            return None
        merged = self._merge(existing, update, existing.get("id", id))
        try:
            await self._write(self.document_path(id), merged)
        except (OSError, TypeError, ValueError) as e:
            raise StoreIOError(f"Error updating document: {e}") from e
        return merged

    async def find_many_and_update(
        self, filter: Mapping[str, Any] | None, update: Mapping[str, Any]
    ) -> list[dict]:
        """Update every matching document.

        Returns the documents as they were *before* the update, for every
        scanned file whether it matched or not.
        """
        evaluator = FilterEvaluator(filter)
        scanned = []
        updated = 0
        try:
            for name in await self._list():
                if name in IGNORED_FILES:
                    continue
                path = self.path / name
                document = await self._read(path)
                scanned.append(document)
                if evaluator.matches(document):
                    merged = self._merge(document, update, document.get("id", path.stem))
                    await self._write(path, merged)
                    updated += 1
        except (OSError, TypeError, ValueError) as e:
            raise StoreIOError(f"Error updating documents: {e}") from e
        logger.debug("Updated %d/%d documents in %s", updated, len(scanned), self.name)
        return scanned

    # ── Delete ────────────────────────────────────────────────

    async def find_by_id_and_delete(self, id: str) -> dict | None:
        """Delete a document. Returns the deleted document, or None if absent."""
        existing = await self.find_one(id)
        if existing is None:
            return None
        try:
            await asyncio.to_thread(self.document_path(id).unlink)
        except OSError as e:
            raise StoreIOError(f"Error deleting document: {e}") from e
        return existing

    async def find_many_and_delete(self, filter: Mapping[str, Any] | None) -> list[dict]:
        """Delete every matching document in listing order; no rollback."""
        evaluator = FilterEvaluator(filter)
        deleted = []
        try:
            for name in await self._list():
                if name in IGNORED_FILES:
                    continue
                path = self.path / name
                document = await self._read(path)
                if evaluator.matches(document):
                    await asyncio.to_thread(path.unlink)
                    deleted.append(document)
        except (OSError, ValueError) as e:
            raise StoreIOError(f"Error deleting documents: {e}") from e
        logger.debug("Deleted %d documents from %s", len(deleted), self.name)
        return deleted

    # ── Collection-level ──────────────────────────────────────

    async def count_documents(self) -> int:
        """Number of entries in the collection directory, OS artifacts included."""
        try:
            return len(await self._list())
        except OSError as e:
            raise StoreIOError(f"Error counting documents: {e}") from e

    async def drop_collection(self) -> int:
        """Delete every file in the collection. Refused in production."""
        if self.production:
            raise PolicyViolation(f"Refusing to drop collection {self.name!r} in production")
        removed = 0
        try:
            for name in await self._list():
                path = self.path / name
                if path.is_file() or path.is_symlink():
                    await asyncio.to_thread(path.unlink)
                    removed += 1
        except OSError as e:
            raise StoreIOError(f"Error dropping collection: {e}") from e
        logger.info("Dropped collection %s (%d files)", self.name, removed)
        return removed
