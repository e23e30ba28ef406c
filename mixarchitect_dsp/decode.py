"""Decode raw audio bytes into a SampleBuffer.

libsndfile (via soundfile) covers WAV, AIFF, FLAC, OGG and, on recent
builds, MP3. Containers it cannot open (AAC/M4A) go through librosa,
which hands off to audioread/ffmpeg and needs a real file on disk.
"""
from __future__ import annotations

import io
import logging
import os
import tempfile
from typing import Optional

import librosa
import numpy as np
import soundfile as sf

from .buffers import SampleBuffer
from .exceptions import DecodeError

logger = logging.getLogger("mixarchitect_dsp.decode")


def _decode_with_soundfile(raw: bytes) -> SampleBuffer:
    data, sr = sf.read(io.BytesIO(raw), dtype="float32", always_2d=True)  # shape (N, C)
    return SampleBuffer(channels=np.ascontiguousarray(data.T), sample_rate=int(sr))


def _decode_with_librosa(raw: bytes, file_name: Optional[str]) -> SampleBuffer:
    suffix = os.path.splitext(file_name or "")[1] or ".audio"
    fd, path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(raw)
        y, sr = librosa.load(path, sr=None, mono=False)
    finally:
        try:
            os.unlink(path)
        except OSError:
            pass
    return SampleBuffer(channels=np.asarray(y, dtype=np.float32), sample_rate=int(sr))


def decode_audio_bytes(raw: bytes, file_name: Optional[str] = None) -> SampleBuffer:
    """Decode ``raw`` into channel-first float samples plus sample rate."""

    if not raw:
        raise DecodeError("No audio data")

    try:
        return _decode_with_soundfile(raw)
    except RuntimeError as exc:
        logger.info("[DECODE] libsndfile could not read %s (%s), trying librosa", file_name or "upload", exc)

    try:
        return _decode_with_librosa(raw, file_name)
    except Exception as exc:
        raise DecodeError(f"Failed to decode audio: {exc}") from exc
