"""
Durable key-value slots for client-side state (cart snapshot, redirect after login).

One store is one profile: a browser profile on the web side, a Telegram
user on the bot side. Values are plain strings; callers serialize.
"""
from __future__ import annotations

import json
import os
import sqlite3
from pathlib import Path
from typing import Dict, Optional, Protocol

from pathlab.config import settings
from pathlab.constants import STORAGE_FILE, STORAGE_MEMORY, STORAGE_SQLITE


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    def __init__(self, data: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(data or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore:
    """All keys of one profile in a single JSON object file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False)
        os.replace(tmp, self.path)

    def get(self, key: str) -> Optional[str]:
        v = self._read().get(key)
        return v if isinstance(v, str) else None

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class SqliteStore:
    def __init__(self, db_path: str, namespace: str) -> None:
        self.db_path = db_path
        self.namespace = namespace

    def _connect(self) -> sqlite3.Connection:
        os.makedirs(os.path.dirname(self.db_path) or ".", exist_ok=True)
        conn = sqlite3.connect(self.db_path)
        conn.execute(
            "CREATE TABLE IF NOT EXISTS kv("
            "namespace TEXT NOT NULL, key TEXT NOT NULL, value TEXT NOT NULL, "
            "PRIMARY KEY(namespace, key))"
        )
        return conn

    def get(self, key: str) -> Optional[str]:
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value FROM kv WHERE namespace=? AND key=?",
                (self.namespace, key),
            ).fetchone()
            return row[0] if row else None
        finally:
            conn.close()

    def set(self, key: str, value: str) -> None:
        conn = self._connect()
        try:
            conn.execute(
                "INSERT INTO kv(namespace, key, value) VALUES(?,?,?) "
                "ON CONFLICT(namespace, key) DO UPDATE SET value=excluded.value",
                (self.namespace, key, value),
            )
            conn.commit()
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = self._connect()
        try:
            conn.execute("DELETE FROM kv WHERE namespace=? AND key=?", (self.namespace, key))
            conn.commit()
        finally:
            conn.close()


def make_store(namespace: str) -> KeyValueStore:
    backend = settings.storage_backend
    if backend == STORAGE_SQLITE:
        return SqliteStore(settings.db_path, namespace)
    if backend == STORAGE_FILE:
        safe = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in namespace)
        return JsonFileStore(Path(settings.storage_dir) / f"{safe}.json")
    if backend == STORAGE_MEMORY:
        return MemoryStore()
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend}")
