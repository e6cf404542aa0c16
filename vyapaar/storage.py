"""Persistence for the application document.

The whole ``AppData`` aggregate lives as one serialized JSON string under a
fixed key in a small key-value store. Every save rewrites that string.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable, Dict, Optional

from vyapaar.constants import (
    DEFAULT_BUSINESS_UNITS,
    DEFAULT_CATEGORIES,
    INITIAL_EXPENSES,
    STORAGE_KEY,
)
from vyapaar.domain import AppData
from vyapaar.errors import CorruptStateError

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """String-to-string storage, the shape of a browser's localStorage."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemoryStore(KeyValueStore):

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._items: Dict[str, str] = dict(initial or {})
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        self._items[key] = value

    def delete(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStore(KeyValueStore):
    """All keys kept in one JSON object on disk.

    Writes go to a temporary file next to the target and are moved into place
    with ``os.replace`` so a crash mid-write leaves the previous file intact.
    """

    def __init__(self, path: Path | str):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except json.JSONDecodeError as exc:
            raise CorruptStateError(f"{self.path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise CorruptStateError(f"{self.path} does not hold a JSON object")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        value = self._read().get(key)
        return None if value is None else str(value)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def quarantine(self) -> Path:
        """Move an unreadable file to ``<name>.corrupt`` so the next read starts empty."""
        target = self.path.with_name(self.path.name + ".corrupt")
        os.replace(self.path, target)
        logger.warning("Moved unreadable %s to %s", self.path, target)
        return target


def default_document() -> AppData:
    return AppData(
        expenses=INITIAL_EXPENSES,
        business_units=DEFAULT_BUSINESS_UNITS,
        categories=DEFAULT_CATEGORIES,
    )


class DocumentStore:
    """Load, save and clear the single ``AppData`` document."""

    def __init__(
        self,
        backend: KeyValueStore,
        key: str = STORAGE_KEY,
        seed: Callable[[], AppData] = default_document,
        strict: bool = False,
    ):
        self.backend = backend
        self.key = key
        self.seed = seed
        self.strict = strict

    def load(self) -> AppData:
        raw = self.backend.get(self.key)
        if raw is None:
            logger.info("No stored document under %r, seeding defaults", self.key)
            return self._seed_and_save()

        try:
            return AppData.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError) as exc:
            if self.strict:
                raise CorruptStateError(f"stored document {self.key!r} is unreadable: {exc}") from exc
            logger.error("Stored document %r is unreadable (%s); keeping a copy and reseeding", self.key, exc)
            self.backend.set(self.key + ".corrupt", raw)
            return self._seed_and_save()

    def save(self, document: AppData) -> None:
        self.backend.set(self.key, json.dumps(document.to_dict(), ensure_ascii=False))
        logger.debug("Saved document %r with %d expenses", self.key, len(document.expenses))

    def clear(self) -> None:
        self.backend.delete(self.key)
        logger.info("Cleared stored document %r", self.key)

    def _seed_and_save(self) -> AppData:
        document = self.seed()
        self.save(document)
        return document
