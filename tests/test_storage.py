import pytest

from mixarchitect_dsp import settings, storage
from mixarchitect_dsp.storage import InMemoryMetadataStore, SupabaseMetadataStore


class FakeResponse:
    def __init__(self, payload=None, status_code=200):
        self._payload = payload
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise RuntimeError(f"HTTP {self.status_code}")

    def json(self):
        return self._payload


class FakeSession:
    def __init__(self, payload=None):
        self.payload = payload
        self.calls = []

    def get(self, url, **kwargs):
        self.calls.append(("GET", url, kwargs))
        return FakeResponse(self.payload)

    def patch(self, url, **kwargs):
        self.calls.append(("PATCH", url, kwargs))
        return FakeResponse()


def test_in_memory_store_round_trip():
    store = InMemoryMetadataStore({"v1": {"id": "v1", "waveform_peaks": [0.1]}})
    store.update_audio_version("v1", {"sample_rate": 48000, "bit_depth": 24})

    record = store.get_audio_version("v1")
    assert record == {"id": "v1", "waveform_peaks": [0.1], "sample_rate": 48000, "bit_depth": 24}
    assert store.get_audio_version("missing") is None


def test_in_memory_store_returns_copies():
    store = InMemoryMetadataStore({"v1": {"sample_rate": 44100}})
    store.get_audio_version("v1")["sample_rate"] = 1
    assert store.get_audio_version("v1")["sample_rate"] == 44100


def test_supabase_update_patches_the_version_row():
    session = FakeSession()
    store = SupabaseMetadataStore("https://proj.supabase.co/", "service-key", session=session)

    fields = {"measured_lufs": -9.4, "sample_rate": 48000, "bit_depth": 24, "file_format": "WAV"}
    store.update_audio_version("abc", fields)

    method, url, kwargs = session.calls[0]
    assert method == "PATCH"
    assert url == "https://proj.supabase.co/rest/v1/track_audio_versions"
    assert kwargs["params"] == {"id": "eq.abc"}
    assert kwargs["json"] == fields
    assert kwargs["headers"]["apikey"] == "service-key"
    assert kwargs["headers"]["Authorization"] == "Bearer service-key"
    assert kwargs["headers"]["Prefer"] == "return=minimal"


def test_supabase_get_returns_first_row_or_none():
    row = {"id": "abc", "sample_rate": 44100, "file_format": "FLAC"}
    store = SupabaseMetadataStore("https://proj.supabase.co", "k", session=FakeSession([row]))
    assert store.get_audio_version("abc") == row

    empty = SupabaseMetadataStore("https://proj.supabase.co", "k", session=FakeSession([]))
    assert empty.get_audio_version("abc") is None


def test_default_store_without_supabase(monkeypatch):
    monkeypatch.setattr(storage, "_default_store", None)
    monkeypatch.setattr(settings, "SUPABASE_URL", None)
    assert isinstance(storage.get_metadata_store(), InMemoryMetadataStore)
    assert storage.get_metadata_store() is storage.get_metadata_store()


def test_default_store_with_supabase(monkeypatch):
    monkeypatch.setattr(storage, "_default_store", None)
    monkeypatch.setattr(settings, "SUPABASE_URL", "https://proj.supabase.co")
    monkeypatch.setattr(settings, "SUPABASE_SERVICE_ROLE_KEY", "k")
    assert isinstance(storage.get_metadata_store(), SupabaseMetadataStore)
