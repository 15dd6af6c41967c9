"""
Keyed JSON document store.

One file per key under a collection directory, written atomically
(temp file + replace) so readers never see a half-written record.
Storage failures are raised as PersistenceError, never swallowed.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

from ..utils.exceptions import PersistenceError

_KEY_RE = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


class DocumentStore:
    """A directory of `<key>.json` documents."""

    def __init__(self, root: Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid document key: {key!r}")
        return self.root / f"{key}.json"

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        path = self._path(key)
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Failed to read {path}: {e}", {"key": key})

    def exists(self, key: str) -> bool:
        return self._path(key).exists()

    def put(self, key: str, document: Dict[str, Any]) -> None:
        path = self._path(key)
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w", dir=str(self.root), delete=False, encoding="utf-8", suffix=".tmp"
            ) as tf:
                json.dump(document, tf, indent=2, ensure_ascii=False, default=str)
                temp_path = Path(tf.name)
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}", {"key": key})
        try:
            os.replace(temp_path, path)
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise PersistenceError(f"Failed to write {path}: {e}", {"key": key})

    def delete(self, key: str) -> bool:
        """Remove a document. Returns False if it was already gone."""
        path = self._path(key)
        try:
            path.unlink()
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise PersistenceError(f"Failed to delete {path}: {e}", {"key": key})

    def keys(self) -> Iterator[str]:
        if not self.root.exists():
            return iter(())
        try:
            names = sorted(p.stem for p in self.root.glob("*.json"))
        except OSError as e:
            raise PersistenceError(f"Failed to list {self.root}: {e}")
        return iter(names)
