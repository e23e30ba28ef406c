import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

import requests
from fastapi import Depends, FastAPI, File, Form, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from mixarchitect_dsp import settings
from mixarchitect_dsp.analysis import (
    AnalysisSupervisor,
    AudioVersionAnalyzer,
    AudioVersionRef,
    analyze_buffers,
)
from mixarchitect_dsp.decode import decode_audio_bytes
from mixarchitect_dsp.dsp_engine.targets import normalization_offsets, reference_delta
from mixarchitect_dsp.exceptions import AnalysisCancelled, AnalysisFailed, DecodeError
from mixarchitect_dsp.models import AnalysisResponse, AnalyzeVersionRequest, AnalyzeVersionResponse
from mixarchitect_dsp.storage import get_metadata_store

logger = logging.getLogger("mixarchitect_dsp")
logger.setLevel(settings.LOG_LEVEL)

app = FastAPI(title="Mix Architect Audio Analysis")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

supervisor = AnalysisSupervisor()


def get_analyzer() -> AudioVersionAnalyzer:
    return AudioVersionAnalyzer(get_metadata_store())


@app.get("/health")
def health():
    """Static payload for uptime checks; does not touch the DSP stack."""
    return {"status": "ok"}


@app.post("/analyze", response_model=AnalysisResponse)
def analyze(file: UploadFile = File(...), file_name: Optional[str] = Form(None)):
    """Loudness, bit depth and format for an uploaded file.

    Nothing is persisted; this is the preview path used before a version
    record exists.
    """

    name = file_name or file.filename
    try:
        raw = file.file.read()
        buf = decode_audio_bytes(raw, name)
    except DecodeError as exc:
        raise HTTPException(status_code=400, detail=f"Failed to read audio: {exc}") from exc
    finally:
        file.file.close()

    metadata = analyze_buffers(raw, buf, name)
    return {
        "metadata": asdict(metadata),
        "reference_delta": reference_delta(metadata.measured_lufs),
        "normalization": normalization_offsets(metadata.measured_lufs),
    }


@app.post("/versions/{version_id}/analyze", response_model=AnalyzeVersionResponse)
def analyze_version(
    version_id: str,
    body: AnalyzeVersionRequest,
    analyzer: AudioVersionAnalyzer = Depends(get_analyzer),
):
    """Fetch, analyse and persist derived metadata for one audio version.

    Runs are keyed by track: a request for another version of the same
    track cancels the one in flight, which answers 409 without writing.
    """

    version = AudioVersionRef(
        version_id=version_id,
        audio_url=body.audio_url,
        file_name=body.file_name,
        track_id=body.track_id,
    )
    key = body.track_id or version_id
    token = supervisor.start(key)
    try:
        metadata = analyzer.analyze_version(version, token, force=body.force)
    except AnalysisCancelled as exc:
        raise HTTPException(status_code=409, detail={"status": "cancelled", "version_id": version_id}) from exc
    except AnalysisFailed as exc:
        logger.exception("[ANALYZE] Analysis failed version_id=%s: %s", version_id, exc)
        detail: Dict[str, Any] = {
            "error": "ANALYSIS_FAILED",
            "message": str(exc),
            "version_id": version_id,
        }
        raise HTTPException(status_code=502, detail=detail) from exc
    except requests.RequestException as exc:
        logger.exception("[STORE] Metadata store request failed version_id=%s: %s", version_id, exc)
        detail = {
            "error": "METADATA_STORE_UNAVAILABLE",
            "message": str(exc),
            "version_id": version_id,
        }
        raise HTTPException(status_code=502, detail=detail) from exc
    finally:
        supervisor.finish(key, token)

    if metadata is None:
        return {"status": "skipped", "version_id": version_id}
    return {"status": "analyzed", "version_id": version_id, "metadata": asdict(metadata)}


@app.delete("/tracks/{track_id}/analysis")
def cancel_analysis(track_id: str):
    """Abort the in-flight analysis for a track, if any."""
    return {"cancelled": supervisor.cancel(track_id)}


def run() -> None:
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
