"""Pydantic schemas for upload endpoints."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ChunkReceivedResponse(BaseModel):
    """Response model for a stored chunk whose session is not yet finalized."""
    message: str
    session: str
    chunk_index: int = Field(alias="chunkIndex")
    received_chunks: int = Field(alias="receivedChunks")
    total_chunks: int = Field(alias="totalChunks")
    complete: bool = False

    model_config = ConfigDict(populate_by_name=True)


class UploadCompleteResponse(BaseModel):
    """Response model for the call that produced the final artifact."""
    message: str = "Upload complete"
    url: str
    session: str
    artifact_id: str = Field(alias="artifactId")
    size: Optional[int] = None

    model_config = ConfigDict(populate_by_name=True)


class FinalizeRequest(BaseModel):
    """Request model for explicit finalize."""
    total_chunks: int = Field(alias="totalChunks", ge=1)
    session: str = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class SessionStatusResponse(BaseModel):
    """Response model for session status."""
    session: str
    state: str
    total_chunks: int = Field(alias="totalChunks")
    received: List[int]
    missing: List[int]
    url: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class ResetSessionResponse(BaseModel):
    """Response model for explicit session reset."""
    session: str
    deleted_chunks: int = Field(alias="deletedChunks")

    model_config = ConfigDict(populate_by_name=True)
