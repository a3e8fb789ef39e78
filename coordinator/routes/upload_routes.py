"""Chunk upload and finalize API routes."""

from typing import Union

from fastapi import APIRouter, Depends, File, Form, UploadFile

from common.exceptions import InvalidChunkError
from coordinator.schemas.common import ErrorResponse
from coordinator.schemas.upload import (
    ChunkReceivedResponse,
    FinalizeRequest,
    ResetSessionResponse,
    SessionStatusResponse,
    UploadCompleteResponse,
)
from coordinator.service_locator import get_coordinator
from coordinator.upload_coordinator import SubmitResult, UploadCoordinator
from coordinator.utils import parse_int_field

router = APIRouter(tags=["Uploads"])

CHUNK_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    413: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}

FINALIZE_ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    502: {"model": ErrorResponse},
}


def _submit_response(session: str, result: SubmitResult):
    receipt = result.receipt
    if result.artifact is not None:
        return UploadCompleteResponse(
            url=result.artifact.url,
            session=session,
            artifact_id=result.artifact.artifact_id,
            size=result.artifact.size,
        )
    return ChunkReceivedResponse(
        message=f"Chunk {receipt.chunk_index} received",
        session=session,
        chunk_index=receipt.chunk_index,
        received_chunks=receipt.received_count,
        total_chunks=receipt.total_chunks,
        complete=receipt.is_complete,
    )


async def _submit(
    coordinator: UploadCoordinator,
    session: str,
    chunk_index: str,
    total_chunks: str,
    video_chunk: UploadFile,
    auto_finalize: bool,
) -> SubmitResult:
    index = parse_int_field("chunkIndex", chunk_index)
    total = parse_int_field("totalChunks", total_chunks)
    if total < 1:
        raise InvalidChunkError("totalChunks must be at least 1")

    await video_chunk.seek(0)
    try:
        return await coordinator.submit_chunk(
            session_id=session,
            index=index,
            total=total,
            reader=video_chunk.file,
            auto_finalize=auto_finalize,
        )
    finally:
        await video_chunk.close()


@router.post(
    "/upload",
    response_model=Union[UploadCompleteResponse, ChunkReceivedResponse],
    responses=CHUNK_ERROR_RESPONSES,
)
async def upload_chunk(
    chunkIndex: str = Form(...),
    totalChunks: str = Form(...),
    session: str = Form(...),
    videoChunk: UploadFile = File(...),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Upload one chunk; the chunk that completes the session triggers the merge.

    Parameters:
        - chunkIndex: Zero-based chunk index
        - totalChunks: Total number of chunks in the session
        - session: Client-supplied session identifier
        - videoChunk: Chunk payload (multipart/form-data)

    Returns:
        - While incomplete: message, receivedChunks, totalChunks
        - For the completing call: message "Upload complete" and the artifact url

    Raises:
        - 400: Malformed or out-of-range chunkIndex/totalChunks, bad session id
        - 409: Session already finalized or being finalized
        - 413: Chunk larger than the configured limit
        - 422: Missing form field
        - 500: Storage I/O failure
        - 502: Remote transfer failure
    """
    result = await _submit(coordinator, session, chunkIndex, totalChunks, videoChunk, auto_finalize=True)
    return _submit_response(session, result)


@router.post(
    "/upload-screen-recording",
    response_model=ChunkReceivedResponse,
    responses=CHUNK_ERROR_RESPONSES,
)
async def upload_screen_recording_chunk(
    chunkIndex: str = Form(...),
    totalChunks: str = Form(...),
    session: str = Form(...),
    videoChunk: UploadFile = File(...),
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Upload one screen-recording chunk without finalizing.

    The client calls POST /finalize once every chunk has been accepted.
    """
    result = await _submit(coordinator, session, chunkIndex, totalChunks, videoChunk, auto_finalize=False)
    return _submit_response(session, result)


@router.post("/finalize", response_model=UploadCompleteResponse, responses=FINALIZE_ERROR_RESPONSES)
async def finalize_upload(
    request: FinalizeRequest,
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Merge a complete session into uploads/{session}/{uuid}_final_video.

    Parameters:
        - totalChunks: Total number of chunks the client uploaded
        - session: Session identifier

    Returns:
        - message: "Upload complete"
        - url: Artifact URL (static file URL or blob store URL)

    Raises:
        - 400: totalChunks does not match the session
        - 404: Unknown session
        - 409: Chunks missing, already finalized, or finalize in progress
        - 500: Missing chunk or storage I/O failure during merge
        - 502: Remote transfer failure (retry finalize to redo only that step)
    """
    artifact = await coordinator.finalize(request.session, request.total_chunks)
    return UploadCompleteResponse(
        url=artifact.url,
        session=request.session,
        artifact_id=artifact.artifact_id,
        size=artifact.size,
    )


@router.get(
    "/upload/{session}",
    response_model=SessionStatusResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_session_status(
    session: str,
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Report received and missing chunks, state, and the artifact url once done.
    """
    snapshot = coordinator.status(session)
    return SessionStatusResponse(
        session=snapshot.session_id,
        state=snapshot.state.value,
        total_chunks=snapshot.total_chunks,
        received=list(snapshot.received),
        missing=list(snapshot.missing),
        url=snapshot.artifact_url,
    )


@router.delete("/upload/{session}", response_model=ResetSessionResponse)
async def reset_session(
    session: str,
    coordinator: UploadCoordinator = Depends(get_coordinator),
):
    """
    Forget a session and delete its scratch chunks.
    """
    deleted = await coordinator.reset(session)
    return ResetSessionResponse(session=session, deleted_chunks=deleted)
