"""One analysis pass per audio version: fetch, decode, measure, persist.

The fetched bytes and decoded buffer are shared between the loudness
meter and the header parser so each asset is downloaded and decoded
once. The merge is total: sample rate comes from the decoder, bit depth
and container format from the header, loudness from the meter.
"""
from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass
from posixpath import basename
from typing import Any, Callable, Dict, Optional
from urllib.parse import unquote, urlparse

from .buffers import SampleBuffer
from .cancellation import CancellationToken, check_cancelled
from .container_headers import RawBytes, parse_audio_header
from .decode import decode_audio_bytes
from .dsp_engine.loudness import measure_integrated_loudness
from .exceptions import AnalysisCancelled, AnalysisFailed
from .fetch import fetch_audio_bytes
from .storage import MetadataStore

logger = logging.getLogger("mixarchitect_dsp.analysis")

Fetcher = Callable[..., bytes]
Decoder = Callable[..., SampleBuffer]


@dataclass(frozen=True)
class AudioVersionRef:
    version_id: str
    audio_url: str
    file_name: Optional[str] = None
    track_id: Optional[str] = None

    def resolved_file_name(self) -> Optional[str]:
        if self.file_name:
            return self.file_name
        name = basename(unquote(urlparse(self.audio_url).path))
        return name or None


@dataclass(frozen=True)
class AudioMetadata:
    measured_lufs: Optional[float]
    sample_rate: int
    bit_depth: Optional[int]
    file_format: str
    channels: int
    duration_seconds: float

    def to_record(self) -> Dict[str, Any]:
        """Fields persisted on the audio-version record."""
        return {
            "measured_lufs": self.measured_lufs,
            "sample_rate": self.sample_rate,
            "bit_depth": self.bit_depth,
            "file_format": self.file_format,
        }


def analyze_buffers(
    raw: RawBytes,
    buf: SampleBuffer,
    file_name: Optional[str] = None,
    cancel_token: Optional[CancellationToken] = None,
) -> AudioMetadata:
    """Merge header and loudness analysis of one asset."""

    header = parse_audio_header(raw, file_name)
    lufs = measure_integrated_loudness(buf, cancel_token)

    return AudioMetadata(
        measured_lufs=lufs if math.isfinite(lufs) else None,
        sample_rate=buf.sample_rate,
        bit_depth=header.bit_depth,
        file_format=header.file_format,
        channels=buf.num_channels,
        duration_seconds=buf.duration_seconds,
    )


def needs_analysis(record: Optional[Dict[str, Any]]) -> bool:
    """True unless a previous analysis already populated the record.

    ``measured_lufs`` is legitimately null for silent audio, so the
    decision rests on the fields every analysis sets.
    """

    if not record:
        return True
    return record.get("sample_rate") is None or record.get("file_format") is None


class AudioVersionAnalyzer:
    def __init__(
        self,
        store: MetadataStore,
        *,
        fetcher: Fetcher = fetch_audio_bytes,
        decoder: Decoder = decode_audio_bytes,
    ) -> None:
        self._store = store
        self._fetch = fetcher
        self._decode = decoder

    def analyze_version(
        self,
        version: AudioVersionRef,
        cancel_token: Optional[CancellationToken] = None,
        *,
        force: bool = False,
    ) -> Optional[AudioMetadata]:
        """Analyse one audio version and persist the derived fields.

        Returns ``None`` when the record is already populated. Raises
        ``AnalysisCancelled`` (nothing written) or ``AnalysisFailed``
        (fetch/decode error, nothing written).
        """

        if not force and not needs_analysis(self._store.get_audio_version(version.version_id)):
            logger.info("[ANALYZE] version=%s already analysed, skipping", version.version_id)
            return None

        file_name = version.resolved_file_name()
        try:
            raw = self._fetch(version.audio_url, cancel_token=cancel_token)
            check_cancelled(cancel_token)
            buf = self._decode(raw, file_name)
            check_cancelled(cancel_token)
            metadata = analyze_buffers(raw, buf, file_name, cancel_token)
            check_cancelled(cancel_token)
        except AnalysisCancelled:
            logger.info("[ANALYZE] version=%s cancelled", version.version_id)
            raise
        except AnalysisFailed as exc:
            logger.warning("[ANALYZE] version=%s failed: %s", version.version_id, exc)
            raise

        self._store.update_audio_version(version.version_id, metadata.to_record())
        logger.info(
            "[ANALYZE] version=%s lufs=%s sr=%d bit_depth=%s format=%s",
            version.version_id,
            "silence" if metadata.measured_lufs is None else f"{metadata.measured_lufs:.2f}",
            metadata.sample_rate,
            metadata.bit_depth,
            metadata.file_format,
        )
        return metadata


class AnalysisSupervisor:
    """Tracks the in-flight analysis per track.

    Only one audio version of a track is analysed at a time: starting a
    new run cancels the previous one, which then finishes without a
    write.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens: Dict[str, CancellationToken] = {}

    def start(self, key: str) -> CancellationToken:
        token = CancellationToken()
        with self._lock:
            previous = self._tokens.get(key)
            self._tokens[key] = token
        if previous is not None:
            logger.info("[ANALYZE] superseding in-flight analysis for %s", key)
            previous.cancel()
        return token

    def cancel(self, key: str) -> bool:
        with self._lock:
            token = self._tokens.pop(key, None)
        if token is None:
            return False
        token.cancel()
        return True

    def finish(self, key: str, token: CancellationToken) -> None:
        with self._lock:
            if self._tokens.get(key) is token:
                del self._tokens[key]

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._tokens
