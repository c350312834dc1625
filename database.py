"""
Local blob store for MediVault.

Every logical collection lives under one fixed key and is kept as a single
JSON text value, the same way the browser client keeps them in
localStorage. Reads load the whole collection and writes replace it.
"""
import json
import logging
import os
import tempfile
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

STORAGE_KEYS = {
    "users": "medivault_users",
    "current_user": "medivault_current_user",
    "patient_reports": "medivault_patient_reports",
    "blood_donors": "medivault_blood_donors",
}


class DecodeFailure(ValueError):
    """A stored value could not be decoded into the expected shape."""


# Backends

class MemoryBackend:
    name = "memory"

    def __init__(self) -> None:
        self._items: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove(self, key: str) -> None:
        self._items.pop(key, None)


class FileBackend:
    """One ``<key>.json`` file per key inside ``directory``."""

    name = "file"

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def _path(self, key: str) -> str:
        return os.path.join(self.directory, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        try:
            with open(self._path(key), "r", encoding="utf-8") as fh:
                return fh.read()
        except FileNotFoundError:
            return None

    def set(self, key: str, value: str) -> None:
        os.makedirs(self.directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(value)
            os.replace(tmp_path, self._path(key))
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def remove(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass


# Store

def _decode_collection(raw: str) -> List[Dict[str, Any]]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeFailure(str(e)) from e
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise DecodeFailure("expected a list of records")
    return value


def _decode_record(raw: str) -> Dict[str, Any]:
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise DecodeFailure(str(e)) from e
    if not isinstance(value, dict):
        raise DecodeFailure("expected a single record")
    return value


class LocalStore:
    def __init__(self, backend) -> None:
        self.backend = backend

    def load(self, collection: str) -> List[Dict[str, Any]]:
        key = STORAGE_KEYS[collection]
        raw = self.backend.get(key)
        if raw is None:
            return []
        try:
            return _decode_collection(raw)
        except DecodeFailure as e:
            logger.warning("Discarding unreadable %s collection: %s", collection, e)
            return []

    def save(self, collection: str, records: List[Dict[str, Any]]) -> None:
        self.backend.set(STORAGE_KEYS[collection], json.dumps(records, ensure_ascii=False))

    def get_session(self) -> Optional[Dict[str, Any]]:
        raw = self.backend.get(STORAGE_KEYS["current_user"])
        if raw is None:
            return None
        try:
            return _decode_record(raw)
        except DecodeFailure as e:
            logger.warning("Discarding unreadable session: %s", e)
            return None

    def set_session(self, user: Dict[str, Any]) -> None:
        self.backend.set(STORAGE_KEYS["current_user"], json.dumps(user, ensure_ascii=False))

    def clear_session(self) -> None:
        self.backend.remove(STORAGE_KEYS["current_user"])

    def stats(self) -> Dict[str, Any]:
        return {
            "backend": self.backend.name,
            "collections": {
                name: len(self.load(name))
                for name in ("users", "patient_reports", "blood_donors")
            },
            "session": self.get_session() is not None,
        }


def open_store(backend: str = "file", data_dir: str = "instance") -> LocalStore:
    if backend == "memory":
        return LocalStore(MemoryBackend())
    if backend == "file":
        return LocalStore(FileBackend(data_dir))
    raise ValueError(f"Unknown store backend: {backend}")


# Helpers shared by the services

def upsert_by_patient(records: List[Dict[str, Any]], row: Dict[str, Any]) -> List[Dict[str, Any]]:
    for i, existing in enumerate(records):
        if existing.get("patientId") == row["patientId"]:
            records[i] = row
            return records
    records.append(row)
    return records


def find_by_patient(records: List[Dict[str, Any]], patient_id: str) -> Optional[Dict[str, Any]]:
    return next((r for r in records if r.get("patientId") == patient_id), None)
