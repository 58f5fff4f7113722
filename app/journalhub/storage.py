from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


class StorageError(RuntimeError):
    pass


class Storage:
    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        raise NotImplementedError

    def public_url(self, key: str) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class LocalStorage(Storage):
    """Filesystem-resident copies of uploaded documents (the local fallback source)."""

    root: Path

    def path_for(self, key: str) -> Path:
        safe_key = key.lstrip("/").replace("\\", "/")
        return self.root / safe_key

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        p = self.path_for(key)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(data)

    def public_url(self, key: str) -> str:
        raise StorageError("Local storage has no public URL; configure STORAGE_BACKEND=s3.")


@dataclass(frozen=True)
class S3Storage(Storage):
    """S3-compatible object storage (DigitalOcean Spaces style endpoints)."""

    endpoint: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def _client(self):
        import boto3

        return boto3.client(
            "s3",
            endpoint_url=f"https://{self.endpoint}" if self.endpoint else None,
            region_name=self.region or None,
            aws_access_key_id=self.access_key_id,
            aws_secret_access_key=self.secret_access_key,
        )

    def put_bytes(self, key: str, data: bytes, *, content_type: str | None = None) -> None:
        extra: dict[str, object] = {"ACL": "public-read"}
        if content_type:
            extra["ContentType"] = content_type
        try:
            self._client().put_object(Bucket=self.bucket, Key=key, Body=data, **extra)
        except Exception as e:
            raise StorageError(f"Upload to bucket {self.bucket!r} failed: {e}") from e

    def public_url(self, key: str) -> str:
        if self.endpoint:
            return f"https://{self.bucket}.{self.endpoint}/{key}"
        return f"https://{self.bucket}.s3.{self.region}.amazonaws.com/{key}"


def local_storage_from_config(config: dict) -> LocalStorage:
    raw = (config.get("DOCUMENT_STORAGE_PATH") or "uploads/journals").strip()
    root = Path(raw)
    if not root.is_absolute():
        root = Path(os.getcwd()) / root
    return LocalStorage(root=root.resolve())


def remote_storage_from_config(config: dict) -> Storage | None:
    """Object storage that produces public URLs, or None when only local storage is configured."""
    backend = (config.get("STORAGE_BACKEND") or "local").strip().lower()
    if backend != "s3":
        return None
    return S3Storage(
        endpoint=(config.get("S3_ENDPOINT") or "").strip(),
        region=(config.get("S3_REGION") or "nyc3").strip(),
        bucket=(config.get("S3_BUCKET") or "").strip(),
        access_key_id=(config.get("S3_ACCESS_KEY_ID") or "").strip(),
        secret_access_key=(config.get("S3_SECRET_ACCESS_KEY") or "").strip(),
    )
