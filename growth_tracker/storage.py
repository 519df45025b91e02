"""Offline persistence: one JSON document under a fixed key in a key-value store.

The document has the shape ``{children, growthRecords, parents, lastSync,
version}``. Every write replaces the whole snapshot. A document written by a
different storage version is discarded on read, not migrated.
"""
from __future__ import annotations

import json
import logging
import os
import re
import time
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from . import config
from .errors import NotFoundError, StorageError, ValidationError
from .models import Child, Gender, GrowthRecord, Parent
from .records import GrowthRecordStore
from .who_reference import WHOReference

logger = logging.getLogger(__name__)

NIK_PATTERN = re.compile(r"^\d{%d}$" % config.NIK_LENGTH)
NIK_FORMAT_MESSAGE = f"NIK harus berupa {config.NIK_LENGTH} digit angka"
NIK_TAKEN_MESSAGE = "NIK sudah terdaftar dalam sistem"
NIK_AVAILABLE_MESSAGE = "NIK tersedia"


def utc_iso_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def is_valid_nik(nik) -> bool:
    return isinstance(nik, str) and bool(NIK_PATTERN.match(nik))


class MemoryStore:
    """Dict-backed key-value store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileStore:
    """One ``<key>.json`` file per key inside a directory."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = Path(directory or config.LOCAL_STORE_DIR)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()


class LocalStorageService:
    """Repository over the namespaced offline document."""

    def __init__(self, store=None, key: str = config.STORAGE_KEY,
                 version: str = config.STORAGE_VERSION,
                 clock: Callable[[], str] = utc_iso_now,
                 reference: Optional[WHOReference] = None):
        self.store = store if store is not None else MemoryStore()
        self.key = key
        self.version = version
        self.clock = clock
        self.reference = reference

    # ----- document -----

    def default_data(self) -> dict:
        return {
            "children": [],
            "growthRecords": {},
            "parents": [],
            "lastSync": self.clock(),
            "version": self.version,
        }

    def load(self) -> dict:
        try:
            raw = self.store.get(self.key)
        except OSError as e:
            raise StorageError("Gagal membaca data dari penyimpanan lokal") from e
        if not raw:
            return self.default_data()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.error("Local storage document is not valid JSON, starting fresh")
            return self.default_data()
        if not isinstance(data, dict) or data.get("version") != self.version:
            logger.warning("Storage version mismatch (%r != %r), resetting data",
                           data.get("version") if isinstance(data, dict) else None, self.version)
            return self.default_data()
        data.setdefault("children", [])
        data.setdefault("growthRecords", {})
        data.setdefault("parents", [])
        return data

    def save(self, data: dict) -> None:
        data["lastSync"] = self.clock()
        try:
            self.store.set(self.key, json.dumps(data))
        except (OSError, TypeError, ValueError) as e:
            logger.error("Error saving local storage document: %s", e)
            raise StorageError("Gagal menyimpan data ke penyimpanan lokal") from e

    def _next_id(self, existing: List[int]) -> int:
        candidate = int(time.time() * 1000)
        if existing:
            candidate = max(candidate, max(existing) + 1)
        return candidate

    # ----- children -----

    def get_children(self) -> List[Child]:
        return [Child.from_dict(c) for c in self.load()["children"]]

    def get_child_by_id(self, child_id: int) -> Optional[Child]:
        for c in self.load()["children"]:
            if int(c["id"]) == int(child_id):
                return Child.from_dict(c)
        return None

    def replace_children(self, children: List[Child]) -> None:
        data = self.load()
        data["children"] = [c.to_dict() for c in children]
        self.save(data)

    def add_child(self, name: str, dob: str, nik: str, gender, user_id=None) -> Child:
        data = self.load()
        if any(c.get("nik") == nik for c in data["children"]):
            raise ValidationError(NIK_TAKEN_MESSAGE)
        now = self.clock()
        child = Child(
            id=self._next_id([int(c["id"]) for c in data["children"]]),
            name=name,
            dob=dob,
            nik=nik,
            gender=Gender.parse(gender),
            user_id=user_id,
            created_at=now,
            updated_at=now,
        )
        data["children"].append(child.to_dict())
        self.save(data)
        return child

    def cache_child(self, child: Child) -> None:
        data = self.load()
        data["children"] = [c for c in data["children"] if int(c["id"]) != child.id]
        data["children"].append(child.to_dict())
        self.save(data)

    # ----- growth records -----

    def get_growth_records(self, child_id: int) -> List[GrowthRecord]:
        raw = self.load()["growthRecords"].get(str(child_id), [])
        return [GrowthRecord.from_dict(r) for r in raw]

    def replace_growth_records(self, child_id: int, records: List[GrowthRecord]) -> None:
        data = self.load()
        data["growthRecords"][str(child_id)] = [r.to_dict() for r in records]
        self.save(data)

    def record_store(self, child_id: int) -> GrowthRecordStore:
        child = self.get_child_by_id(child_id)
        if child is None:
            raise NotFoundError(f"Data anak dengan id {child_id} tidak ditemukan")
        return GrowthRecordStore(child, self.get_growth_records(child_id), reference=self.reference)

    def append_growth_record(self, record: GrowthRecord) -> GrowthRecord:
        """Insert an already-annotated record (e.g. one returned by the server)."""
        store = self.record_store(record.child_id)
        store.insert(record)
        self.replace_growth_records(record.child_id, list(store))
        return record

    def add_growth_record(self, child_id: int, measured_on, height, weight,
                          head_circumference=None, input_by=None,
                          today: Optional[date] = None) -> GrowthRecord:
        """Annotate raw input locally and persist it in date order."""
        store = self.record_store(child_id)
        existing = [r.id for r in store if r.id is not None]
        annotated = store.add(measured_on, height, weight, head_circumference=head_circumference,
                              input_by=input_by, today=today)
        record = annotated.with_identity(self._next_id(existing), self.clock())
        records = [record if r is annotated else r for r in store]
        self.replace_growth_records(child_id, records)
        return record

    # ----- parents -----

    def get_parents(self, query: Optional[str] = None) -> List[Parent]:
        parents = [Parent.from_dict(p) for p in self.load()["parents"]]
        if not query:
            return parents
        q = query.lower()
        return [p for p in parents if q in p.name.lower() or q in p.email.lower()]

    def replace_parents(self, parents: List[Parent]) -> None:
        data = self.load()
        data["parents"] = [p.to_dict() for p in parents]
        self.save(data)

    # ----- utilities -----

    def validate_nik(self, nik) -> dict:
        if not is_valid_nik(nik):
            return {"available": False, "message": NIK_FORMAT_MESSAGE}
        exists = any(c.get("nik") == nik for c in self.load()["children"])
        return {
            "available": not exists,
            "message": NIK_TAKEN_MESSAGE if exists else NIK_AVAILABLE_MESSAGE,
        }

    def clear_all_data(self) -> None:
        self.store.remove(self.key)

    def get_storage_info(self) -> dict:
        data = self.load()
        size_kb = len(json.dumps(data).encode("utf-8")) / 1024
        return {
            "totalChildren": len(data["children"]),
            "totalRecords": sum(len(r) for r in data["growthRecords"].values()),
            "totalParents": len(data["parents"]),
            "lastSync": data["lastSync"],
            "storageSize": f"{size_kb:.2f} KB",
        }

    def export_data(self) -> str:
        return json.dumps(self.load(), indent=2)

    def import_data(self, json_data: str) -> None:
        try:
            imported = json.loads(json_data)
        except ValueError as e:
            logger.error("Error importing data: %s", e)
            raise StorageError("Gagal mengimpor data: format tidak valid") from e
        if not isinstance(imported, dict) or not all(
            isinstance(imported.get(k), t)
            for k, t in (("children", list), ("growthRecords", dict), ("parents", list))
        ):
            raise StorageError("Gagal mengimpor data: format tidak valid")
        if imported.get("version", self.version) != self.version:
            raise StorageError("Gagal mengimpor data: versi data tidak didukung")
        imported["version"] = self.version
        self.save(imported)
