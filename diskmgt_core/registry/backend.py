"""
Registry backends - where the drives document lives.

The store talks to an explicit backend (open/read/write/close) instead of a
global file path, so tests can run against MemoryBackend.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional
import copy
import json
import logging
import os

from ..errors import StoreCorruption

logger = logging.getLogger('diskmgt.registry.backend')


def empty_document() -> Dict[str, Any]:
    return {"drives": []}


def _validate(doc: Any, source: str) -> Dict[str, Any]:
    if not isinstance(doc, dict) or not isinstance(doc.get("drives"), list):
        raise StoreCorruption(f"{source}: expected an object with a 'drives' list")
    if not all(isinstance(d, dict) and isinstance(d.get("uuid"), str) for d in doc["drives"]):
        raise StoreCorruption(f"{source}: every drive needs a string 'uuid'")
    return doc


class StoreBackend(ABC):
    """Backing storage for the registry document."""

    @abstractmethod
    def open(self) -> None:
        """Ensure the location and an empty collection exist. Idempotent."""
        pass

    @abstractmethod
    def read(self) -> Dict[str, Any]:
        """
        Read the full document.

        Raises:
            StoreCorruption: the stored document cannot be parsed.
        """
        pass

    @abstractmethod
    def write(self, doc: Dict[str, Any]) -> None:
        """Replace the full document."""
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> "StoreBackend":
        self.open()
        return self

    def __exit__(self, *exc) -> None:
        self.close()


class JsonFileBackend(StoreBackend):
    """Pretty-printed JSON file, e.g. ~/.config/diskmgt/drives.json."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def open(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.write(empty_document())
            logger.info(f"Created registry at {self.path}")

    def read(self) -> Dict[str, Any]:
        self.open()
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                doc = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreCorruption(f"{self.path}: {e}") from e
        return _validate(doc, str(self.path))

    def write(self, doc: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + '.tmp')
        with open(tmp, 'w', encoding='utf-8') as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)
            f.write('\n')
        os.replace(tmp, self.path)


class MemoryBackend(StoreBackend):
    """In-memory backend; stores deep copies so callers cannot alias state."""

    def __init__(self, doc: Optional[Dict[str, Any]] = None):
        self._doc: Any = copy.deepcopy(doc) if doc is not None else None

    def open(self) -> None:
        if self._doc is None:
            self._doc = empty_document()

    def read(self) -> Dict[str, Any]:
        self.open()
        return copy.deepcopy(_validate(self._doc, "memory"))

    def write(self, doc: Dict[str, Any]) -> None:
        self._doc = copy.deepcopy(doc)
