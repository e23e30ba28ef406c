import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

HOST = os.getenv("HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8000"))

FETCH_TIMEOUT_SECONDS = float(os.getenv("FETCH_TIMEOUT_SECONDS", "30"))
FETCH_CHUNK_BYTES = int(os.getenv("FETCH_CHUNK_BYTES", str(256 * 1024)))
MAX_AUDIO_MB = int(os.getenv("MAX_AUDIO_MB", "500"))

SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_SERVICE_ROLE_KEY = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
AUDIO_VERSIONS_TABLE = os.getenv("AUDIO_VERSIONS_TABLE", "track_audio_versions")

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]
