"""Persistence of derived audio-version metadata.

The analysis engine only needs two operations on the audio-version
record: read it (to skip already-analysed versions) and set the derived
fields on it. When Supabase is configured the record lives in the
``track_audio_versions`` table and is reached through PostgREST;
otherwise an in-process store keeps things working for local runs and
tests.
"""
from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Protocol

import requests

from . import settings

logger = logging.getLogger("mixarchitect_dsp.storage")

METADATA_FIELDS = ("measured_lufs", "sample_rate", "bit_depth", "file_format")


class MetadataStore(Protocol):
    def get_audio_version(self, version_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update_audio_version(self, version_id: str, fields: Dict[str, Any]) -> None:
        ...


class InMemoryMetadataStore:
    """Thread-safe dict-backed store."""

    def __init__(self, records: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self._records: Dict[str, Dict[str, Any]] = {k: dict(v) for k, v in (records or {}).items()}
        self._lock = threading.Lock()
        self.update_calls = 0

    def get_audio_version(self, version_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            record = self._records.get(version_id)
            return dict(record) if record is not None else None

    def update_audio_version(self, version_id: str, fields: Dict[str, Any]) -> None:
        with self._lock:
            self._records.setdefault(version_id, {}).update(fields)
            self.update_calls += 1


class SupabaseMetadataStore:
    """PostgREST access to the audio-version table."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        *,
        table: str = "track_audio_versions",
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self._endpoint = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self._session = session or requests.Session()
        self._timeout = timeout
        self._headers = {
            "apikey": service_key,
            "Authorization": f"Bearer {service_key}",
            "Content-Type": "application/json",
        }

    def get_audio_version(self, version_id: str) -> Optional[Dict[str, Any]]:
        response = self._session.get(
            self._endpoint,
            params={"id": f"eq.{version_id}", "select": ",".join(("id",) + METADATA_FIELDS)},
            headers=self._headers,
            timeout=self._timeout,
        )
        response.raise_for_status()
        rows = response.json()
        return rows[0] if rows else None

    def update_audio_version(self, version_id: str, fields: Dict[str, Any]) -> None:
        response = self._session.patch(
            self._endpoint,
            params={"id": f"eq.{version_id}"},
            json=fields,
            headers={**self._headers, "Prefer": "return=minimal"},
            timeout=self._timeout,
        )
        response.raise_for_status()
        logger.info("[STORE] Updated audio version %s: %s", version_id, sorted(fields))


_default_store: Optional[MetadataStore] = None


def get_metadata_store() -> MetadataStore:
    """Return the configured store, falling back to an in-memory one.

    Supabase is used only when both the project URL and the service key
    are present in the environment.
    """

    global _default_store
    if _default_store is None:
        if settings.SUPABASE_URL and settings.SUPABASE_SERVICE_ROLE_KEY:
            _default_store = SupabaseMetadataStore(
                settings.SUPABASE_URL,
                settings.SUPABASE_SERVICE_ROLE_KEY,
                table=settings.AUDIO_VERSIONS_TABLE,
            )
        else:
            logger.info("[STORE] Supabase not configured, using in-memory metadata store")
            _default_store = InMemoryMetadataStore()
    return _default_store
