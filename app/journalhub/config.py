import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    storage_backend: str
    document_storage_path: str
    legacy_storage_roots: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str
    s3_upload_prefix: str

    remote_fetch_timeout_seconds: float
    remote_fetch_retries: int


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_float(name: str, default: float) -> float:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    return Settings(
        secret_key=_getenv("SECRET_KEY", "change-me"),
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///journalhub.db"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        document_storage_path=_getenv("DOCUMENT_STORAGE_PATH", "uploads/journals"),
        legacy_storage_roots=_getenv("LEGACY_STORAGE_ROOTS", "uploads,../uploads/journals"),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
        s3_upload_prefix=_getenv("S3_UPLOAD_PREFIX", "journals"),
        remote_fetch_timeout_seconds=_getenv_float("REMOTE_FETCH_TIMEOUT_SECONDS", 30.0),
        remote_fetch_retries=_getenv_int("REMOTE_FETCH_RETRIES", 0),
    )


def load_config() -> dict:
    s = load_settings()
    is_production = s.env in ("prod", "production")
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "STORAGE_BACKEND": s.storage_backend,
        "DOCUMENT_STORAGE_PATH": s.document_storage_path,
        "LEGACY_STORAGE_ROOTS": [p.strip() for p in s.legacy_storage_roots.split(",") if p.strip()],
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        "S3_UPLOAD_PREFIX": s.s3_upload_prefix,
        "REMOTE_FETCH_TIMEOUT_SECONDS": s.remote_fetch_timeout_seconds,
        "REMOTE_FETCH_RETRIES": s.remote_fetch_retries,
        # security defaults
        "SESSION_COOKIE_HTTPONLY": True,
        "SESSION_COOKIE_SAMESITE": "Lax",
        "SESSION_COOKIE_SECURE": is_production,  # Require HTTPS in production
        # manuscript upload limit (10MB)
        "MAX_CONTENT_LENGTH": 10 * 1024 * 1024,
    }


def is_production_env(config: dict) -> bool:
    return (config.get("ENV") or "").strip().lower() in ("prod", "production")
