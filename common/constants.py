"""Project-wide constants (default directories, naming, transfer sizes)."""

DEFAULT_UPLOADS_DIR: str = "uploads"
DEFAULT_TEMP_CHUNKS_DIR: str = "temp_chunks"
DEFAULT_CHUNK_EXTENSION: str = ".webm"

DEFAULT_GCS_BUCKET: str = "fsr-bucket"
DEFAULT_GCS_KEY_FILE: str = "./gcp-key.json"
DEFAULT_REMOTE_PREFIX: str = "testing"

DEFAULT_PORT: int = 8080
DEFAULT_PUBLIC_BASE_URL: str = "http://localhost:8080"
STATIC_FILES_ROUTE: str = "/files/uploads"

FINAL_ARTIFACT_SUFFIX: str = "_final_video"
PARTIAL_ARTIFACT_SUFFIX: str = ".part"

COPY_PIECE_SIZE: int = 64 * 1024  # 64 KiB per read while merging
DEFAULT_MAX_CHUNK_BYTES: int = 64 * 1024 * 1024
CLIENT_CHUNK_SIZE: int = 128 * 1024  # 128 KiB per uploaded chunk

MAX_SESSION_ID_LENGTH: int = 128
MAX_TOMBSTONES: int = 10_000
