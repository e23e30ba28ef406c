"""Container sniffing and bit-depth recovery from raw audio bytes.

Decoders hand back float samples whatever the source resolution was, so
the stored bit depth has to be read from the container header itself.

Supported: WAV (RIFF, little-endian), AIFF/AIFC (IFF, big-endian) and
FLAC (STREAMINFO). MP3 and AAC/M4A are identified but carry no bit depth.
Anything unrecognised falls back to the file-name extension.
"""
from __future__ import annotations

import logging
import os
import struct
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Union

logger = logging.getLogger("mixarchitect_dsp.container_headers")

RawBytes = Union[bytes, bytearray, memoryview]

MIN_HEADER_BYTES = 12
FLAC_MIN_BYTES = 4 + 4 + 18

_EXTENSION_FORMATS = {
    "wav": "WAV",
    "aif": "AIFF",
    "aiff": "AIFF",
    "flac": "FLAC",
    "mp3": "MP3",
    "aac": "AAC",
    "m4a": "M4A",
}


@dataclass(frozen=True)
class AudioHeaderMeta:
    bit_depth: Optional[int]
    file_format: str


class HeaderParseIncomplete(Exception):
    """A recognised container ended before the bit-depth field."""


def _read(fmt: str, data: bytes, offset: int) -> int:
    if offset < 0 or offset + struct.calcsize(fmt) > len(data):
        raise HeaderParseIncomplete(f"need {struct.calcsize(fmt)} bytes at offset {offset}, have {len(data)}")
    return struct.unpack_from(fmt, data, offset)[0]


def _tag(data: bytes, offset: int) -> bytes:
    return data[offset:offset + 4]


def _file_extension(file_name: Optional[str]) -> Optional[str]:
    if not file_name:
        return None
    ext = os.path.splitext(file_name)[1][1:].lower()
    return ext or None


def format_from_file_name(file_name: Optional[str]) -> str:
    """Map a file name to a format tag; unknown extensions are uppercased."""
    ext = _file_extension(file_name)
    if ext is None:
        return "AUDIO"
    return _EXTENSION_FORMATS.get(ext, ext.upper())


def _walk_chunks(data: bytes, size_fmt: str, wanted: bytes) -> int:
    """Offset of the first ``wanted`` chunk after the 12-byte form header."""
    offset = MIN_HEADER_BYTES
    while offset + 8 <= len(data):
        chunk_id = _tag(data, offset)
        size = _read(size_fmt, data, offset + 4)
        if chunk_id == wanted:
            return offset
        # chunks are word aligned
        offset += 8 + size + (size % 2)
    raise HeaderParseIncomplete(f"no {wanted!r} chunk")


def wav_bit_depth(data: bytes) -> int:
    chunk = _walk_chunks(data, "<I", b"fmt ")
    # audioFormat, channels, sampleRate, byteRate, blockAlign, bitsPerSample
    if chunk + 8 + 16 > len(data):
        raise HeaderParseIncomplete("truncated fmt chunk")
    return _read("<H", data, chunk + 8 + 14)


def aiff_bit_depth(data: bytes) -> int:
    chunk = _walk_chunks(data, ">I", b"COMM")
    # numChannels, numSampleFrames, sampleSize
    if chunk + 8 + 8 > len(data):
        raise HeaderParseIncomplete("truncated COMM chunk")
    return _read(">h", data, chunk + 8 + 6)


def flac_bit_depth(data: bytes) -> int:
    if len(data) < FLAC_MIN_BYTES:
        raise HeaderParseIncomplete("truncated STREAMINFO")
    if data[4] & 0x7F != 0:
        raise HeaderParseIncomplete("first metadata block is not STREAMINFO")

    # STREAMINFO bytes 12-13: SR[3:0] CH[2:0] BPS[4] | BPS[3:0] TS[35:32]
    payload = 8
    bps_high = data[payload + 12] & 0x01
    bps_low = (data[payload + 13] >> 4) & 0x0F
    return ((bps_high << 4) | bps_low) + 1


def _no_bit_depth(data: bytes) -> None:
    return None


def sniff_container(data: bytes, file_name: Optional[str] = None) -> Optional[str]:
    """Identify the container from magic bytes, or None if unrecognised."""

    if len(data) < MIN_HEADER_BYTES:
        return None

    magic = _tag(data, 0)
    if magic == b"RIFF" and _tag(data, 8) == b"WAVE":
        return "WAV"
    if magic == b"FORM" and _tag(data, 8) in (b"AIFF", b"AIFC"):
        return "AIFF"
    if magic == b"fLaC":
        return "FLAC"
    if magic[:3] == b"ID3" or (data[0] == 0xFF and (data[1] & 0xE0) == 0xE0):
        return "MP3"
    if _tag(data, 4) == b"ftyp":
        return "AAC" if _file_extension(file_name) == "aac" else "M4A"
    return None


_BIT_DEPTH_READERS: Dict[str, Callable[[bytes], Optional[int]]] = {
    "WAV": wav_bit_depth,
    "AIFF": aiff_bit_depth,
    "FLAC": flac_bit_depth,
    "MP3": _no_bit_depth,
    "AAC": _no_bit_depth,
    "M4A": _no_bit_depth,
}


def parse_audio_header(data: Optional[RawBytes], file_name: Optional[str] = None) -> AudioHeaderMeta:
    """Best-effort bit depth and format for an audio file. Never raises."""

    raw = bytes(data) if data is not None else b""
    file_format = sniff_container(raw, file_name)
    if file_format is None:
        return AudioHeaderMeta(bit_depth=None, file_format=format_from_file_name(file_name))

    try:
        bit_depth = _BIT_DEPTH_READERS[file_format](raw)
    except HeaderParseIncomplete as exc:
        logger.debug("[HEADER] %s header incomplete (%s): %s", file_format, file_name, exc)
        bit_depth = None

    return AudioHeaderMeta(bit_depth=bit_depth, file_format=file_format)
