"""Download audio assets over HTTP."""
from __future__ import annotations

import logging
from typing import Optional

import requests

from . import settings
from .cancellation import CancellationToken, check_cancelled
from .exceptions import FetchError

logger = logging.getLogger("mixarchitect_dsp.fetch")


def fetch_audio_bytes(
    url: str,
    *,
    cancel_token: Optional[CancellationToken] = None,
    session: Optional[requests.Session] = None,
    timeout: Optional[float] = None,
    chunk_size: Optional[int] = None,
    max_bytes: Optional[int] = None,
) -> bytes:
    """Fetch the raw bytes of one audio asset.

    The body is streamed so the cancellation token is polled between
    chunks; a cancelled download raises ``AnalysisCancelled``.
    """

    http = session or requests
    timeout = timeout if timeout is not None else settings.FETCH_TIMEOUT_SECONDS
    chunk_size = chunk_size or settings.FETCH_CHUNK_BYTES
    max_bytes = max_bytes if max_bytes is not None else settings.MAX_AUDIO_MB * 1024 * 1024

    check_cancelled(cancel_token)
    try:
        response = http.get(url, stream=True, timeout=timeout)
    except requests.RequestException as exc:
        raise FetchError(f"Failed to fetch audio: {exc}") from exc

    try:
        if not response.ok:
            raise FetchError(f"Failed to fetch audio: {response.status_code}")

        body = bytearray()
        try:
            for part in response.iter_content(chunk_size=chunk_size):
                check_cancelled(cancel_token)
                if not part:
                    continue
                body.extend(part)
                if len(body) > max_bytes:
                    raise FetchError(f"Audio exceeds {max_bytes} bytes")
        except requests.RequestException as exc:
            raise FetchError(f"Failed to fetch audio: {exc}") from exc
    finally:
        response.close()

    logger.info("[FETCH] %d bytes from %s", len(body), url)
    return bytes(body)
