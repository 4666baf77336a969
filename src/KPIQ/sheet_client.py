"""
Remote sheet persistence helpers.

High level
----------
KPI records and definitions live in a spreadsheet exposed through a small
web-app endpoint:

- GET  <base>?tab=Records | Definitions   → JSON list of row objects
- POST <base> {"action": "add" | "update" | "delete", "tab": ..., ...}

Key behaviors
-------------
- Reads are served from a time-boxed cache (an injectable `CachePort`)
  while the cached entry is younger than the TTL.
- Any write invalidates the records cache so the next read refetches.
- GETs use small retry/backoff; persistent failure raises
  `SheetClientError`.
- Rows are mapped to domain objects through `RecordMapper`; row-level
  problems are collected in a stairval Notepad, not raised.

Environment
-----------
KPIQ_SHEET_URL     : Base URL of the sheet endpoint.
KPIQ_CACHE_TTL     : Cache lifetime in seconds (default 300).
KPIQ_HTTP_TIMEOUT  : Per-request timeout in seconds (default 10).
"""

from __future__ import annotations

import dataclasses
import json
import logging
import os
import time
from datetime import date
from enum import Enum
from typing import Any, Callable, Optional, Protocol, Sequence

import requests
from stairval.notepad import Notepad, create_notepad

from .mapper import RecordMapper
from .definition import KPIDefinition
from .record import KPIRecord
from .section import RecordStatus

logger = logging.getLogger(__name__)

RECORDS_TAB = "Records"
DEFINITIONS_TAB = "Definitions"
CACHE_KEY_RECORDS = "kpi_records_cache"
CACHE_KEY_DEFINITIONS = "kpi_definitions_cache"
DEFAULT_CACHE_TTL = 300.0
DEFAULT_TIMEOUT = 10.0

_CACHE_KEYS = {RECORDS_TAB: CACHE_KEY_RECORDS, DEFINITIONS_TAB: CACHE_KEY_DEFINITIONS}


class SheetClientError(RuntimeError):
    """Raised when the remote sheet cannot be read or written."""


class CachePort(Protocol):
    def get(self, key: str) -> Optional[tuple[float, Any]]: ...

    def set(self, key: str, data: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryCache:
    """In-process CachePort storing (timestamp, data) pairs."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Optional[tuple[float, Any]]:
        return self._entries.get(key)

    def set(self, key: str, data: Any) -> None:
        self._entries[key] = (self._clock(), data)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)


# ------------------------------------------------------------------------------
# Small utilities
# ------------------------------------------------------------------------------


def _sleep_backoff(i: int) -> None:
    """Sequence ~ 0.25s, 0.5s, 1s, 2s."""
    time.sleep(0.25 * (2**i))


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r", name, raw)
        return default


def _serialize_record(record: KPIRecord) -> dict[str, Any]:
    """Flatten a record into the JSON row shape the sheet stores."""
    payload: dict[str, Any] = {}
    for field in dataclasses.fields(record):
        value = getattr(record, field.name)
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        payload[_camel(field.name)] = value
    return payload


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


class SheetClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        cache: Optional[CachePort] = None,
        ttl: Optional[float] = None,
        timeout: Optional[float] = None,
        mapper: Optional[RecordMapper] = None,
        clock: Callable[[], float] = time.time,
    ):
        base_url = base_url or os.getenv("KPIQ_SHEET_URL", "")
        if not base_url:
            raise SheetClientError("No sheet endpoint configured (set KPIQ_SHEET_URL).")
        self._base_url = base_url.rstrip("/")
        self._clock = clock
        self._cache = cache if cache is not None else MemoryCache(clock)
        self._ttl = ttl if ttl is not None else _env_float("KPIQ_CACHE_TTL", DEFAULT_CACHE_TTL)
        self._timeout = timeout if timeout is not None else _env_float("KPIQ_HTTP_TIMEOUT", DEFAULT_TIMEOUT)
        self._mapper = mapper or RecordMapper()

    # -- reads ---------------------------------------------------------------

    def _request_json(self, params: dict[str, str]) -> Any:
        """
        GET JSON with simple retry/backoff; raises SheetClientError if all
        attempts fail.
        """
        last_exc: Exception | None = None
        for i in range(4):  # attempts: 0,1,2,3
            try:
                resp = requests.get(self._base_url, params=params, timeout=self._timeout)
                resp.raise_for_status()
                return resp.json()
            except (requests.RequestException, json.JSONDecodeError, ValueError) as e:
                last_exc = e
                logger.debug("GET %s %s failed (attempt %d): %s", self._base_url, params, i + 1, e)
                _sleep_backoff(i)
        assert last_exc is not None
        raise SheetClientError(f"Failed GET {self._base_url} {params}: {last_exc}") from last_exc

    def fetch_rows(self, tab: str, force_refresh: bool = False) -> list[dict[str, Any]]:
        key = _CACHE_KEYS.get(tab, f"kpi_{tab.lower()}_cache")
        if force_refresh:
            self._cache.delete(key)

        cached = self._cache.get(key)
        if cached is not None:
            stored_at, data = cached
            age = self._clock() - stored_at
            if age < self._ttl:
                logger.debug("Serving %s from cache (%ds old)", key, int(age))
                return data

        data = self._request_json({"tab": tab})
        if not isinstance(data, list):
            logger.warning("Sheet tab %r returned %s, not a list; treating as empty", tab, type(data).__name__)
            return []
        self._cache.set(key, data)
        return data

    def list_records(self, notepad: Optional[Notepad] = None, force_refresh: bool = False) -> list[KPIRecord]:
        notepad = notepad or create_notepad("records")
        rows = self.fetch_rows(RECORDS_TAB, force_refresh)
        return self._mapper.map_record_rows(rows, RECORDS_TAB, notepad)

    def list_definitions(self, notepad: Optional[Notepad] = None, force_refresh: bool = False) -> list[KPIDefinition]:
        notepad = notepad or create_notepad("definitions")
        rows = self.fetch_rows(DEFINITIONS_TAB, force_refresh)
        return self._mapper.map_definition_rows(rows, DEFINITIONS_TAB, notepad)

    # -- writes --------------------------------------------------------------

    def _post(self, payload: dict[str, Any]) -> None:
        try:
            resp = requests.post(self._base_url, data=json.dumps(payload), timeout=self._timeout)
            resp.raise_for_status()
        except requests.RequestException as e:
            raise SheetClientError(f"Failed {payload.get('action')} on {self._base_url}: {e}") from e
        finally:
            self._cache.delete(CACHE_KEY_RECORDS)

    def add_record(self, record: KPIRecord) -> KPIRecord:
        """Store a new record under a generated `gen-<epoch ms>` id."""
        created = dataclasses.replace(record, id=f"gen-{int(self._clock() * 1000)}")
        self._post({"action": "add", "tab": RECORDS_TAB, "data": _serialize_record(created)})
        logger.info("Added record %s for %s", created.id, created.section.value)
        return created

    def update_record(self, record: KPIRecord) -> KPIRecord:
        self._post({"action": "update", "tab": RECORDS_TAB, "id": record.id, "data": _serialize_record(record)})
        return record

    def delete_record(self, record_id: str) -> None:
        self._post({"action": "delete", "tab": RECORDS_TAB, "id": record_id})
        logger.info("Deleted record %s", record_id)

    def approve_drafts(self, records: Sequence[KPIRecord]) -> list[KPIRecord]:
        """
        Promote every DRAFT in `records` to APPROVED. Only the status
        changes; approved records are skipped.
        """
        approved: list[KPIRecord] = []
        for record in records:
            if record.status is not RecordStatus.DRAFT:
                continue
            approved.append(self.update_record(dataclasses.replace(record, status=RecordStatus.APPROVED)))
        logger.info("Approved %d draft records", len(approved))
        return approved

    def clear_cache(self) -> None:
        self._cache.delete(CACHE_KEY_RECORDS)
        self._cache.delete(CACHE_KEY_DEFINITIONS)
