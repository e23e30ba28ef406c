import io
import os
import struct
import sys

import numpy as np
import pytest
import soundfile as sf

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from mixarchitect_dsp.buffers import SampleBuffer


def tone(freq=997.0, dbfs=-20.0, seconds=5.0, sr=48000, channels=1):
    """Sine at ``dbfs`` peak level, identical on every channel."""
    t = np.arange(int(round(sr * seconds))) / sr
    x = (10 ** (dbfs / 20.0)) * np.sin(2 * np.pi * freq * t)
    return np.tile(x, (channels, 1))


def encode(data, sr, fmt='WAV', subtype='PCM_24'):
    """Encode [channels, samples] audio to container bytes with libsndfile."""
    buf = io.BytesIO()
    sf.write(buf, np.asarray(data).T, sr, format=fmt, subtype=subtype)
    return buf.getvalue()


def riff_wav_header(bits=24, channels=2, sr=48000, extra_chunks=b''):
    fmt = struct.pack('<HHIIHH', 1, channels, sr, sr * channels * bits // 8, channels * bits // 8, bits)
    body = b'WAVE' + extra_chunks + b'fmt ' + struct.pack('<I', len(fmt)) + fmt + b'data' + struct.pack('<I', 0)
    return b'RIFF' + struct.pack('<I', len(body)) + body


def aiff_header(bits=16, channels=2, frames=1000, form_type=b'AIFF', extra_chunks=b''):
    # 80-bit extended 44100.0
    rate = bytes.fromhex('400EAC44000000000000')
    comm = struct.pack('>hIh', channels, frames, bits) + rate
    body = form_type + extra_chunks + b'COMM' + struct.pack('>I', len(comm)) + comm
    return b'FORM' + struct.pack('>I', len(body)) + body


def flac_header(bits=24, channels=2, sr=44100, total_samples=441000, block_type=0):
    packed = (sr << 44) | ((channels - 1) << 41) | ((bits - 1) << 36) | total_samples
    streaminfo = (
        struct.pack('>HH', 4096, 4096)
        + (0).to_bytes(3, 'big')
        + (0).to_bytes(3, 'big')
        + packed.to_bytes(8, 'big')
        + bytes(16)
    )
    block_header = bytes([0x80 | block_type]) + len(streaminfo).to_bytes(3, 'big')
    return b'fLaC' + block_header + streaminfo


@pytest.fixture
def stereo_tone():
    return SampleBuffer(channels=tone(freq=1000.0, dbfs=-23.0, seconds=10.0, channels=2), sample_rate=48000)
