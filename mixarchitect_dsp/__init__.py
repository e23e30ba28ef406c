"""Audio analysis engine for Mix Architect.

Integrated loudness and container-header metadata for uploaded audio
versions, plus the FastAPI service in ``mixarchitect_dsp.main``.
"""
from .analysis import AudioMetadata, AudioVersionAnalyzer, AudioVersionRef, analyze_buffers
from .buffers import SampleBuffer
from .container_headers import AudioHeaderMeta, parse_audio_header

__all__ = [
    "AudioMetadata",
    "AudioVersionAnalyzer",
    "AudioVersionRef",
    "analyze_buffers",
    "SampleBuffer",
    "AudioHeaderMeta",
    "parse_audio_header",
]
