"""Pydantic schemas for API requests and responses."""

from coordinator.schemas.upload import (
    ChunkReceivedResponse,
    UploadCompleteResponse,
    FinalizeRequest,
    SessionStatusResponse,
    ResetSessionResponse
)
from coordinator.schemas.common import ErrorResponse

__all__ = [
    "ChunkReceivedResponse",
    "UploadCompleteResponse",
    "FinalizeRequest",
    "SessionStatusResponse",
    "ResetSessionResponse",
    "ErrorResponse"
]
