import numpy as np
import logging

import pytest

from conftest import encode, tone
from mixarchitect_dsp.analysis import (
    AnalysisSupervisor,
    AudioMetadata,
    AudioVersionAnalyzer,
    AudioVersionRef,
    analyze_buffers,
    needs_analysis,
)
from mixarchitect_dsp.buffers import SampleBuffer
from mixarchitect_dsp.cancellation import CancellationToken
from mixarchitect_dsp.decode import decode_audio_bytes
from mixarchitect_dsp.exceptions import AnalysisCancelled, AnalysisFailed, DecodeError, FetchError
from mixarchitect_dsp.storage import InMemoryMetadataStore


@pytest.fixture
def wav_24bit():
    return encode(tone(freq=1000.0, dbfs=-23.0, seconds=3.0, sr=48000, channels=2), 48000, subtype="PCM_24")


def _fetcher(payload, calls=None):
    def fetch(url, *, cancel_token=None):
        if calls is not None:
            calls.append(url)
        return payload

    return fetch


def test_analyze_buffers_merges_both_paths(wav_24bit):
    buf = decode_audio_bytes(wav_24bit, "mix.wav")
    meta = analyze_buffers(wav_24bit, buf, "mix.wav")

    assert meta.bit_depth == 24
    assert meta.file_format == "WAV"
    assert meta.sample_rate == 48000
    assert meta.channels == 2
    assert meta.duration_seconds == pytest.approx(3.0)
    assert meta.measured_lufs == pytest.approx(-23.0, abs=0.1)


def test_sample_rate_comes_from_decoded_buffer(wav_24bit):
    buf = SampleBuffer(channels=tone(seconds=1.0, sr=44100), sample_rate=44100)
    meta = analyze_buffers(wav_24bit, buf)
    assert meta.sample_rate == 44100
    assert meta.bit_depth == 24


def test_silence_is_persisted_as_null():
    buf = SampleBuffer(channels=np.zeros((2, 48000)), sample_rate=48000)
    meta = analyze_buffers(b"garbage-bytes-here", buf, "bounce.flac")

    assert meta.to_record() == {
        "measured_lufs": None,
        "sample_rate": 48000,
        "bit_depth": None,
        "file_format": "FLAC",
    }


def test_repeated_analysis_is_identical(wav_24bit):
    buf = decode_audio_bytes(wav_24bit)
    assert analyze_buffers(wav_24bit, buf, "a.wav") == analyze_buffers(wav_24bit, buf, "a.wav")


@pytest.mark.parametrize(
    "record, expected",
    [
        (None, True),
        ({}, True),
        ({"sample_rate": None, "file_format": None}, True),
        ({"sample_rate": 48000, "file_format": None}, True),
        ({"sample_rate": 48000, "file_format": "WAV", "measured_lufs": None}, False),
    ],
)
def test_needs_analysis(record, expected):
    assert needs_analysis(record) is expected


def test_resolved_file_name_from_url():
    ref = AudioVersionRef(version_id="v1", audio_url="https://cdn.test/audio/My%20Mix%20v3.wav?token=abc")
    assert ref.resolved_file_name() == "My Mix v3.wav"
    assert AudioVersionRef("v1", "https://cdn.test/", file_name="x.aif").resolved_file_name() == "x.aif"
    assert AudioVersionRef("v1", "https://cdn.test/").resolved_file_name() is None


def test_analyzer_persists_once(wav_24bit):
    store = InMemoryMetadataStore({"v1": {"id": "v1"}})
    calls = []
    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit, calls))

    meta = analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"))

    assert isinstance(meta, AudioMetadata)
    assert calls == ["https://cdn.test/mix.wav"]
    assert store.update_calls == 1
    record = store.get_audio_version("v1")
    assert record["bit_depth"] == 24
    assert record["file_format"] == "WAV"
    assert record["sample_rate"] == 48000
    assert record["measured_lufs"] == pytest.approx(-23.0, abs=0.1)


def test_analyzer_skips_populated_records(wav_24bit):
    store = InMemoryMetadataStore({"v1": {"sample_rate": 44100, "file_format": "MP3", "measured_lufs": -9.1}})
    calls = []
    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit, calls))

    assert analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav")) is None
    assert calls == []
    assert store.update_calls == 0


def test_force_reanalyses_populated_records(wav_24bit):
    store = InMemoryMetadataStore({"v1": {"sample_rate": 44100, "file_format": "MP3"}})
    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit))

    analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"), force=True)
    assert store.get_audio_version("v1")["file_format"] == "WAV"


def test_idempotent_writes(wav_24bit):
    store = InMemoryMetadataStore()
    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit))
    ref = AudioVersionRef("v1", "https://cdn.test/mix.wav")

    analyzer.analyze_version(ref)
    first = store.get_audio_version("v1")
    analyzer.analyze_version(ref, force=True)

    assert store.get_audio_version("v1") == first


def test_pre_cancelled_run_writes_nothing(wav_24bit):
    store = InMemoryMetadataStore()
    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit))
    token = CancellationToken()
    token.cancel()

    with pytest.raises(AnalysisCancelled):
        analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"), token)
    assert store.update_calls == 0


def test_cancel_during_decode_writes_nothing(wav_24bit):
    store = InMemoryMetadataStore()
    token = CancellationToken()

    def decoder(raw, file_name=None):
        buf = decode_audio_bytes(raw, file_name)
        token.cancel()  # user switched versions while decoding
        return buf

    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit), decoder=decoder)
    with pytest.raises(AnalysisCancelled):
        analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"), token)
    assert store.update_calls == 0
    assert store.get_audio_version("v1") is None


def test_fetch_failure_is_analysis_failed():
    store = InMemoryMetadataStore()

    def fetcher(url, *, cancel_token=None):
        raise FetchError("Failed to fetch audio: 404")

    analyzer = AudioVersionAnalyzer(store, fetcher=fetcher)
    with pytest.raises(AnalysisFailed):
        analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/missing.wav"))
    assert store.update_calls == 0


def test_decode_failure_is_analysis_failed(wav_24bit):
    store = InMemoryMetadataStore()

    def decoder(raw, file_name=None):
        raise DecodeError("Failed to decode audio")

    analyzer = AudioVersionAnalyzer(store, fetcher=_fetcher(wav_24bit), decoder=decoder)
    with pytest.raises(AnalysisFailed):
        analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"))
    assert store.update_calls == 0


def test_supervisor_supersedes_previous_run():
    supervisor = AnalysisSupervisor()
    first = supervisor.start("track-1")
    second = supervisor.start("track-1")

    assert first.cancelled
    assert not second.cancelled

    # the superseded run finishing must not drop the newer token
    supervisor.finish("track-1", first)
    assert supervisor.in_flight("track-1")

    supervisor.finish("track-1", second)
    assert not supervisor.in_flight("track-1")


def test_supervisor_cancel():
    supervisor = AnalysisSupervisor()
    token = supervisor.start("track-1")
    other = supervisor.start("track-2")

    assert supervisor.cancel("track-1") is True
    assert token.cancelled
    assert not other.cancelled
    assert supervisor.cancel("track-1") is False


def test_failure_is_logged_without_traceback(caplog):
    def fetcher(url, *, cancel_token=None):
        raise FetchError("Failed to fetch audio: 500")

    analyzer = AudioVersionAnalyzer(InMemoryMetadataStore(), fetcher=fetcher)
    with caplog.at_level(logging.WARNING, logger="mixarchitect_dsp.analysis"):
        with pytest.raises(AnalysisFailed):
            analyzer.analyze_version(AudioVersionRef("v1", "https://cdn.test/mix.wav"))

    records = [r for r in caplog.records if r.name == "mixarchitect_dsp.analysis"]
    assert len(records) == 1
    assert records[0].exc_info is None
    assert "500" in records[0].getMessage()
