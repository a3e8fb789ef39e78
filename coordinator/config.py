"""Configuration settings for the upload coordinator."""

import os
from dataclasses import dataclass
from pathlib import Path

from common.constants import (
    DEFAULT_CHUNK_EXTENSION,
    DEFAULT_GCS_BUCKET,
    DEFAULT_GCS_KEY_FILE,
    DEFAULT_MAX_CHUNK_BYTES,
    DEFAULT_PORT,
    DEFAULT_PUBLIC_BASE_URL,
    DEFAULT_REMOTE_PREFIX,
    DEFAULT_TEMP_CHUNKS_DIR,
    DEFAULT_UPLOADS_DIR,
)

STORAGE_MODE_LOCAL = "local"
STORAGE_MODE_GCS = "gcs"
STORAGE_MODES = (STORAGE_MODE_LOCAL, STORAGE_MODE_GCS)


@dataclass(frozen=True)
class UploadConfig:
    """
    Settings passed to the coordinator at construction time.

    storage_mode "local" keeps chunks and artifacts on disk and serves the
    artifacts statically; "gcs" stores chunks as objects and relocates the
    final artifact to the bucket.
    """
    uploads_dir: Path = Path(DEFAULT_UPLOADS_DIR)
    temp_chunks_dir: Path = Path(DEFAULT_TEMP_CHUNKS_DIR)
    chunk_extension: str = DEFAULT_CHUNK_EXTENSION
    storage_mode: str = STORAGE_MODE_LOCAL
    gcs_bucket: str = DEFAULT_GCS_BUCKET
    gcs_key_file: str = DEFAULT_GCS_KEY_FILE
    remote_prefix: str = DEFAULT_REMOTE_PREFIX
    signed_url_ttl: int = 0
    public_base_url: str = DEFAULT_PUBLIC_BASE_URL
    max_chunk_bytes: int = DEFAULT_MAX_CHUNK_BYTES
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT

    def __post_init__(self):
        if self.storage_mode not in STORAGE_MODES:
            raise ValueError(
                f"Unknown storage mode {self.storage_mode!r}, expected one of {STORAGE_MODES}"
            )
        if self.max_chunk_bytes <= 0:
            raise ValueError("max_chunk_bytes must be positive")

    @property
    def uses_remote_storage(self) -> bool:
        return self.storage_mode == STORAGE_MODE_GCS

    @classmethod
    def from_env(cls) -> "UploadConfig":
        """
        Build configuration from UPLOAD_* environment variables.

        Returns:
            UploadConfig with defaults for every unset variable
        """
        return cls(
            uploads_dir=Path(os.environ.get("UPLOAD_UPLOADS_DIR", DEFAULT_UPLOADS_DIR)),
            temp_chunks_dir=Path(os.environ.get("UPLOAD_TEMP_CHUNKS_DIR", DEFAULT_TEMP_CHUNKS_DIR)),
            chunk_extension=os.environ.get("UPLOAD_CHUNK_EXTENSION", DEFAULT_CHUNK_EXTENSION),
            storage_mode=os.environ.get("UPLOAD_STORAGE_MODE", STORAGE_MODE_LOCAL).lower(),
            gcs_bucket=os.environ.get("UPLOAD_GCS_BUCKET", DEFAULT_GCS_BUCKET),
            gcs_key_file=os.environ.get("UPLOAD_GCS_KEY_FILE", DEFAULT_GCS_KEY_FILE),
            remote_prefix=os.environ.get("UPLOAD_REMOTE_PREFIX", DEFAULT_REMOTE_PREFIX),
            signed_url_ttl=int(os.environ.get("UPLOAD_SIGNED_URL_TTL", "0")),
            public_base_url=os.environ.get("UPLOAD_PUBLIC_BASE_URL", DEFAULT_PUBLIC_BASE_URL).rstrip("/"),
            max_chunk_bytes=int(os.environ.get("UPLOAD_MAX_CHUNK_BYTES", str(DEFAULT_MAX_CHUNK_BYTES))),
            host=os.environ.get("UPLOAD_HOST", "0.0.0.0"),
            port=int(os.environ.get("UPLOAD_PORT", str(DEFAULT_PORT))),
        )
