# counsel_intake/core/config.py
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

BASE_DIR = Path(__file__).resolve().parent.parent
DATA_DIR = BASE_DIR / "data"


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """
    Runtime configuration, read from the environment once at import.
    Pass `settings` around instead of reading os.environ in services.
    """
    # --- App / logging
    log_level: str = field(default_factory=lambda: os.getenv("INTAKE_LOG_LEVEL", "INFO").upper())
    frontend_url: str = field(default_factory=lambda: os.getenv("FRONTEND_URL", "http://localhost:5173"))
    cors_origins: List[str] = field(
        default_factory=lambda: _env_list(
            "CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000"
        )
    )

    # --- Database
    database_url: str = field(
        default_factory=lambda: os.getenv("DATABASE_URL", "sqlite:///./counsel_intake.db")
    )

    # --- Auth
    secret_key: str = field(default_factory=lambda: os.getenv("INTAKE_SECRET", "dev-secret-change-me"))
    jwt_expire_min: int = field(default_factory=lambda: int(os.getenv("INTAKE_JWT_EXPIRE_MIN", "1440")))

    # --- Intake links
    link_ttl_days: int = field(default_factory=lambda: int(os.getenv("INTAKE_LINK_TTL_DAYS", "7")))

    # --- Extraction service (OpenAI-compatible chat completions)
    extraction_api_key: str = field(default_factory=lambda: os.getenv("EXTRACTION_API_KEY", ""))
    extraction_url: str = field(
        default_factory=lambda: os.getenv("EXTRACTION_API_URL", "https://api.deepseek.com/chat/completions")
    )
    extraction_model: str = field(default_factory=lambda: os.getenv("EXTRACTION_MODEL", "deepseek-chat"))
    extraction_connect_timeout: float = field(
        default_factory=lambda: float(os.getenv("EXTRACTION_CONNECT_TIMEOUT", "5"))
    )
    extraction_read_timeout: float = field(
        default_factory=lambda: float(os.getenv("EXTRACTION_READ_TIMEOUT", "30"))
    )
    # one retry before the driver falls back to a clarification prompt
    extraction_retries: int = field(default_factory=lambda: int(os.getenv("EXTRACTION_RETRIES", "1")))

    # --- Transcription service (OpenAI-compatible audio transcriptions)
    transcription_api_key: str = field(default_factory=lambda: os.getenv("TRANSCRIPTION_API_KEY", ""))
    transcription_url: str = field(
        default_factory=lambda: os.getenv(
            "TRANSCRIPTION_API_URL", "https://api.openai.com/v1/audio/transcriptions"
        )
    )
    transcription_model: str = field(default_factory=lambda: os.getenv("TRANSCRIPTION_MODEL", "whisper-1"))

    # --- Document storage
    storage_backend: str = field(default_factory=lambda: os.getenv("STORAGE_BACKEND", "local").lower())
    local_storage_path: str = field(
        default_factory=lambda: os.getenv("LOCAL_STORAGE_PATH", str(Path.cwd() / "uploads"))
    )
    public_upload_base_url: str = field(default_factory=lambda: os.getenv("PUBLIC_UPLOAD_BASE_URL", "/uploads"))
    s3_bucket: str = field(default_factory=lambda: os.getenv("S3_BUCKET", "legal-intake-documents"))
    s3_region: str = field(default_factory=lambda: os.getenv("S3_REGION", "us-east-1"))
    s3_endpoint_url: str = field(default_factory=lambda: os.getenv("S3_ENDPOINT_URL", ""))
    aws_access_key_id: str = field(default_factory=lambda: os.getenv("AWS_ACCESS_KEY_ID", ""))
    aws_secret_access_key: str = field(default_factory=lambda: os.getenv("AWS_SECRET_ACCESS_KEY", ""))
    max_upload_bytes: int = field(
        default_factory=lambda: int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    )
    max_upload_files: int = field(default_factory=lambda: int(os.getenv("MAX_UPLOAD_FILES", "10")))


settings = Settings()
