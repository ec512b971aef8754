"""
Storage collaborators for finalized snapshots.

The pipeline itself never touches storage. Callers load a snapshot, run an
ingestion, and hand a ``Complete`` result's snapshot to ``save_snapshot``.
Identifiers (``id``) are always assigned here, never by the pipeline.
"""

from __future__ import annotations

import json
import os
import tempfile
import uuid
from pathlib import Path
from typing import Any, Protocol

import requests

from cutoff_intake.config import settings
from cutoff_intake.errors import StoreError
from cutoff_intake.models import COLLECTIONS, ENTITY_TYPES, Snapshot

TABLES = {
    "records": "colleges_data",
    "institutes": "institutes",
    "programs": "programs",
    "categories": "categories",
    "rounds": "rounds",
}
ORDER_BY = {
    "records": "rank.asc",
    "institutes": "label.asc",
    "programs": "label.asc",
    "categories": "label.asc",
    "rounds": "label.asc",
}
# Institutes and programs are keyed by a `value` column on the backend.
WRITE_COLUMNS = {
    "institutes": {"code": "value"},
    "programs": {"code": "value"},
}
WRITE_ORDER = ("institutes", "programs", "categories", "rounds", "records")


def _check_collection(table: str) -> None:
    if table not in COLLECTIONS:
        raise StoreError(f"Invalid table: {table}", table=table)


def _require_id(table: str, item_id: Any) -> None:
    if item_id is None or item_id == "":
        raise StoreError(f"{table}: an item id is required", table=table)


def _to_row(table: str, item: dict[str, Any]) -> dict[str, Any]:
    columns = WRITE_COLUMNS.get(table, {})
    return {columns.get(key, key): value for key, value in item.items()}


class SnapshotStore(Protocol):
    def load_snapshot(self) -> Snapshot: ...

    def save_snapshot(self, snapshot: Snapshot) -> None: ...

    def add_item(self, table: str, data: dict[str, Any]) -> dict[str, Any]: ...

    def update_item(self, table: str, item_id: Any, data: dict[str, Any]) -> None: ...

    def delete_item(self, table: str, item_id: Any) -> None: ...


# ══════════════════════════════════════════════════════════════════════════════
# LOCAL JSON FILE
# ══════════════════════════════════════════════════════════════════════════════

class JsonFileStore:
    def __init__(self, path: str | Path | None = None) -> None:
        self.path = Path(path) if path is not None else settings.store_path

    def _read(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            return json.loads(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, json.JSONDecodeError) as exc:
            raise StoreError(f"Could not read data file {self.path}: {exc}") from exc

    def _write(self, payload: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
            os.replace(tmp_name, self.path)
        except OSError as exc:
            if os.path.exists(tmp_name):
                os.remove(tmp_name)
            raise StoreError(f"Could not write data file {self.path}: {exc}") from exc

    def load_snapshot(self) -> Snapshot:
        return Snapshot.from_dict(self._read())

    def save_snapshot(self, snapshot: Snapshot) -> None:
        for table in COLLECTIONS:
            for item in getattr(snapshot, table):
                if item.id is None:
                    item.id = uuid.uuid4().hex
        self._write(snapshot.to_dict())

    def add_item(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        _check_collection(table)
        payload = Snapshot.from_dict(self._read()).to_dict()
        item = ENTITY_TYPES[table].from_dict(data).to_dict()
        item["id"] = uuid.uuid4().hex
        payload[table].append(item)
        self._write(payload)
        return item

    def update_item(self, table: str, item_id: Any, data: dict[str, Any]) -> None:
        _check_collection(table)
        _require_id(table, item_id)
        payload = Snapshot.from_dict(self._read()).to_dict()
        for index, item in enumerate(payload[table]):
            if item.get("id") == item_id:
                merged = {**item, **data, "id": item_id}
                payload[table][index] = ENTITY_TYPES[table].from_dict(merged).to_dict()
                self._write(payload)
                return
        raise StoreError(f"{table}: no item with id {item_id}", table=table)

    def delete_item(self, table: str, item_id: Any) -> None:
        _check_collection(table)
        _require_id(table, item_id)
        payload = Snapshot.from_dict(self._read()).to_dict()
        kept = [item for item in payload[table] if item.get("id") != item_id]
        if len(kept) == len(payload[table]):
            raise StoreError(f"{table}: no item with id {item_id}", table=table)
        payload[table] = kept
        self._write(payload)


# ══════════════════════════════════════════════════════════════════════════════
# MANAGED BACKEND (PostgREST / Supabase REST)
# ══════════════════════════════════════════════════════════════════════════════

class RestStore:
    """
    Writes go table by table and are not transactional. Entity tables are
    written before records, so a failure part way leaves no record pointing
    at an entity the backend never received.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        table_suffix: str | None = None,
        timeout: float | None = None,
        session: requests.Session | None = None,
    ) -> None:
        base_url = base_url or settings.store_url
        api_key = api_key or settings.store_key
        if not base_url or not api_key:
            raise StoreError("Remote store needs both a URL and an API key.")
        self.rest_root = base_url.rstrip("/")
        if not self.rest_root.endswith("/rest/v1"):
            self.rest_root += "/rest/v1"
        self.table_suffix = settings.table_suffix if table_suffix is None else table_suffix
        self.timeout = settings.request_timeout if timeout is None else timeout
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def table_name(self, table: str) -> str:
        _check_collection(table)
        return TABLES[table] + self.table_suffix

    def _request(self, method: str, table: str, **kwargs: Any) -> requests.Response:
        url = f"{self.rest_root}/{self.table_name(table)}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise StoreError(f"{table}: {exc}", table=table) from exc
        return response

    def load_snapshot(self) -> Snapshot:
        data: dict[str, list[dict[str, Any]]] = {}
        for table in COLLECTIONS:
            response = self._request("GET", table, params={"select": "*", "order": ORDER_BY[table]})
            try:
                data[table] = response.json() or []
            except ValueError as exc:
                raise StoreError(f"{table}: response was not JSON", table=table) from exc
        return Snapshot.from_dict(data)

    def save_snapshot(self, snapshot: Snapshot) -> None:
        for table in WRITE_ORDER:
            rows = [_to_row(table, item.to_dict()) for item in getattr(snapshot, table)]
            stored = [row for row in rows if row.get("id") is not None]
            fresh = [row for row in rows if row.get("id") is None]
            if stored:
                self._request(
                    "POST",
                    table,
                    json=stored,
                    headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
                )
            if fresh:
                self._request("POST", table, json=fresh, headers={"Prefer": "return=minimal"})

    def add_item(self, table: str, data: dict[str, Any]) -> dict[str, Any]:
        payload = ENTITY_TYPES[table].from_dict(data).to_dict() if table in ENTITY_TYPES else data
        payload = _to_row(table, payload)
        response = self._request("POST", table, json=payload, headers={"Prefer": "return=representation"})
        created = response.json()
        if isinstance(created, list):
            if not created:
                raise StoreError(f"{table}: insert returned no rows", table=table)
            return created[0]
        return created

    def update_item(self, table: str, item_id: Any, data: dict[str, Any]) -> None:
        _require_id(table, item_id)
        payload = _to_row(table, {key: value for key, value in data.items() if key != "id"})
        self._request("PATCH", table, params={"id": f"eq.{item_id}"}, json=payload)

    def delete_item(self, table: str, item_id: Any) -> None:
        _require_id(table, item_id)
        self._request("DELETE", table, params={"id": f"eq.{item_id}"})


def open_store(*, remote: bool = False, path: str | Path | None = None) -> SnapshotStore:
    if remote:
        return RestStore()
    return JsonFileStore(path)
