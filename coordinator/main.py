"""Entry point for the upload coordinator service."""

import time
import uuid

import uvicorn
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse

from common.constants import STATIC_FILES_ROUTE
from common.exceptions import (
    ChunkMissingError,
    ChunkTooLargeError,
    ClientInputError,
    FinalizeInProgressError,
    InvalidChunkError,
    InvalidSessionIdError,
    RemoteTransferError,
    SessionClosedError,
    SessionIncompleteError,
    SessionNotFoundError,
    StorageError,
    UploadError,
)
from common.logging_config import setup_logging
from coordinator.config import UploadConfig
from coordinator.routes.upload_routes import router as upload_router
from coordinator.service_locator import get_coordinator, has_coordinator, set_coordinator
from coordinator.upload_coordinator import UploadCoordinator

logger = setup_logging('coordinator')

app = FastAPI(
    title="Chunked Recording Upload Service",
    description="Accepts chunked screen/video recordings and reassembles them in order",
    version="1.0.0"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "POST", "DELETE"],
    allow_headers=["Content-Type"],
    expose_headers=["X-Request-ID"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Middleware to log all HTTP requests and responses.
    """
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()

    logger.info(f"Request started: {request.method} {request.url.path} [request_id={request_id}]")

    response = await call_next(request)

    duration = time.time() - start_time

    logger.info(
        f"Request completed: {request.method} {request.url.path} "
        f"status={response.status_code} duration={duration:.3f}s [request_id={request_id}]"
    )

    response.headers["X-Request-ID"] = request_id

    return response


@app.on_event("startup")
async def startup_event():
    """
    Build the coordinator from the environment unless one was provided.
    """
    logger.info("Upload service starting up...")

    if not has_coordinator():
        config = UploadConfig.from_env()
        set_coordinator(UploadCoordinator.from_config(config))

    logger.info("Upload coordinator initialized")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Release the coordinator on application shutdown.
    """
    logger.info("Upload service shutting down...")
    set_coordinator(None)


def _error_response(request: Request, exc: Exception, status_code: int, code: str, **extra) -> JSONResponse:
    request_id = getattr(request.state, 'request_id', 'unknown')
    if status_code >= 500:
        logger.error(
            f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}",
            exc_info=True
        )
    else:
        logger.warning(f"{type(exc).__name__}: {exc} [request_id={request_id}] path={request.url.path}")

    content = {"detail": str(exc), "code": code}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(InvalidChunkError)
async def invalid_chunk_handler(request: Request, exc: InvalidChunkError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_CHUNK")


@app.exception_handler(InvalidSessionIdError)
async def invalid_session_handler(request: Request, exc: InvalidSessionIdError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_SESSION")


@app.exception_handler(ChunkTooLargeError)
async def chunk_too_large_handler(request: Request, exc: ChunkTooLargeError):
    return _error_response(request, exc, status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "CHUNK_TOO_LARGE")


@app.exception_handler(ClientInputError)
async def client_input_handler(request: Request, exc: ClientInputError):
    return _error_response(request, exc, status.HTTP_400_BAD_REQUEST, "INVALID_INPUT")


@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    return _error_response(request, exc, status.HTTP_404_NOT_FOUND, "SESSION_NOT_FOUND")


@app.exception_handler(SessionIncompleteError)
async def session_incomplete_handler(request: Request, exc: SessionIncompleteError):
    return _error_response(
        request, exc, status.HTTP_409_CONFLICT, "SESSION_INCOMPLETE", missing=list(exc.missing)
    )


@app.exception_handler(SessionClosedError)
async def session_closed_handler(request: Request, exc: SessionClosedError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "SESSION_CLOSED")


@app.exception_handler(FinalizeInProgressError)
async def finalize_in_progress_handler(request: Request, exc: FinalizeInProgressError):
    return _error_response(request, exc, status.HTTP_409_CONFLICT, "FINALIZE_IN_PROGRESS")


@app.exception_handler(ChunkMissingError)
async def chunk_missing_handler(request: Request, exc: ChunkMissingError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "CHUNK_MISSING")


@app.exception_handler(StorageError)
async def storage_error_handler(request: Request, exc: StorageError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "STORAGE_ERROR")


@app.exception_handler(RemoteTransferError)
async def remote_transfer_handler(request: Request, exc: RemoteTransferError):
    return _error_response(request, exc, status.HTTP_502_BAD_GATEWAY, "REMOTE_TRANSFER_FAILED")


@app.exception_handler(UploadError)
async def upload_error_handler(request: Request, exc: UploadError):
    return _error_response(request, exc, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR")


app.include_router(upload_router)


@app.get(STATIC_FILES_ROUTE + "/{file_path:path}")
async def serve_uploaded_file(file_path: str):
    """
    Serve a finalized artifact from the uploads directory (local storage mode).
    """
    uploads_dir = get_coordinator().config.uploads_dir.resolve()
    target = (uploads_dir / file_path).resolve()

    if uploads_dir not in target.parents or not target.is_file():
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": f"File {file_path} not found", "code": "FILE_NOT_FOUND"}
        )

    return FileResponse(target)


@app.get("/")
async def root():
    """
    Root endpoint for health check.
    """
    return {"message": "Chunked Recording Upload API", "status": "running"}


@app.get("/health")
async def health_check():
    """
    Health check endpoint for container healthchecks.
    """
    coordinator = get_coordinator()
    return {
        "status": "healthy",
        "service": "upload-coordinator",
        "storage_mode": coordinator.config.storage_mode,
        "active_sessions": len(coordinator.registry),
    }


def main() -> None:
    """
    Start the FastAPI server with uvicorn.
    """
    config = UploadConfig.from_env()
    uvicorn.run(
        "coordinator.main:app",
        host=config.host,
        port=config.port,
    )


if __name__ == "__main__":
    main()
