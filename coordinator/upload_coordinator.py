"""Upload coordinator: chunk submission, completeness hand-off and finalize."""

import asyncio
import functools
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, BinaryIO, Callable, Optional, Tuple

from chunkstore.base import ChunkStore, validate_session_id
from chunkstore.blob_chunk_store import BlobChunkStore
from chunkstore.blob_store import BlobStore
from chunkstore.local_store import LocalChunkStore
from common.constants import FINAL_ARTIFACT_SUFFIX, STATIC_FILES_ROUTE
from common.exceptions import (
    ChunkMissingError,
    ChunkTooLargeError,
    RemoteTransferError,
    SessionClosedError,
    StorageError,
)
from common.logging_config import get_logger
from common.types import ChunkReceipt, FinalArtifact, SessionSnapshot
from coordinator.config import UploadConfig
from coordinator.reassembly import ReassemblyEngine
from coordinator.session_registry import SessionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class SubmitResult:
    """
    Result of one chunk submission; artifact is set only for the call that
    completed the session and ran the merge.
    """
    receipt: ChunkReceipt
    artifact: Optional[FinalArtifact] = None


def payload_size(reader: BinaryIO) -> Optional[int]:
    """
    Number of bytes left in a seekable reader, or None if it cannot seek.
    """
    try:
        position = reader.tell()
        reader.seek(0, os.SEEK_END)
        end = reader.tell()
        reader.seek(position)
    except (AttributeError, OSError, ValueError):
        return None
    return end - position


class UploadCoordinator:
    """
    Public entry points for chunked uploads.

    Owns the RECEIVING -> COMPLETE -> MERGING -> DONE/FAILED transitions.
    Bookkeeping is serialized per session by the registry; chunk and artifact
    I/O runs in the default executor outside of any lock.
    """

    def __init__(
        self,
        config: UploadConfig,
        chunk_store: ChunkStore,
        engine: ReassemblyEngine,
        registry: Optional[SessionRegistry] = None,
    ):
        self.config = config
        self.chunk_store = chunk_store
        self.engine = engine
        self.registry = registry or SessionRegistry()

    @classmethod
    def from_config(cls, config: UploadConfig, blob_store: Optional[BlobStore] = None) -> "UploadCoordinator":
        """
        Wire chunk store, reassembly engine and registry for a configuration.

        Args:
            config: Upload configuration
            blob_store: Blob store to use in remote mode; a GcsBlobStore is
                created from the configuration when omitted

        Returns:
            Ready-to-use coordinator
        """
        if config.uses_remote_storage:
            if blob_store is None:
                from chunkstore.gcs_blob_store import GcsBlobStore

                blob_store = GcsBlobStore(
                    bucket_name=config.gcs_bucket,
                    key_file=config.gcs_key_file,
                    signed_url_ttl=config.signed_url_ttl,
                )
            chunk_store = BlobChunkStore(blob_store, config.remote_prefix, config.chunk_extension)
        else:
            blob_store = None
            chunk_store = LocalChunkStore(config.temp_chunks_dir, config.chunk_extension)
            chunk_store.ensure_directory()
            config.uploads_dir.mkdir(parents=True, exist_ok=True)

        engine = ReassemblyEngine(
            chunk_store=chunk_store,
            uploads_dir=config.uploads_dir,
            extension=config.chunk_extension,
            blob_store=blob_store,
            remote_prefix=config.remote_prefix,
        )
        logger.info(
            f"Upload coordinator ready [storage_mode={config.storage_mode}] "
            f"[uploads_dir={config.uploads_dir}]"
        )
        return cls(config, chunk_store, engine)

    async def _run_blocking(self, func: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    async def submit_chunk(
        self,
        session_id: str,
        index: int,
        total: int,
        reader: BinaryIO,
        auto_finalize: bool = True,
    ) -> SubmitResult:
        """
        Store one chunk and record it for its session.

        When auto_finalize is set, the call whose chunk completes the session
        also merges it and returns the artifact; every other call gets a
        receipt only.

        Args:
            session_id: Client-supplied session identifier
            index: Zero-based chunk index
            total: Total chunk count for the session
            reader: Chunk payload stream
            auto_finalize: Merge as soon as the session is complete

        Returns:
            SubmitResult with the receipt and, for the completing call, the artifact

        Raises:
            ClientInputError: Invalid session id, index, total or oversized payload
            SessionClosedError: Session was already finalized
            StorageError: Chunk could not be stored, or the merge failed
            RemoteTransferError: Artifact relocation failed
        """
        validate_session_id(session_id)

        size = payload_size(reader)
        if size is not None and size > self.config.max_chunk_bytes:
            raise ChunkTooLargeError(
                f"Chunk {index} is {size} bytes, limit is {self.config.max_chunk_bytes}"
            )

        already_stored = await self.registry.ensure_accepting(session_id, index, total)
        if already_stored:
            logger.info(f"Chunk {index} of session {session_id} already received")
        else:
            try:
                await self._run_blocking(self.chunk_store.put, session_id, index, reader)
            except StorageError:
                await self.registry.discard_if_empty(session_id)
                raise

        try:
            receipt = await self.registry.record_chunk(
                session_id, index, total, claim_finalize=auto_finalize
            )
        except SessionClosedError:
            # finalized while this chunk was being stored
            if not already_stored:
                await self._run_blocking(self.chunk_store.delete, session_id, index)
            raise

        logger.info(
            f"Chunk {index} processed for session {session_id} "
            f"({receipt.received_count}/{receipt.total_chunks})"
        )

        artifact = None
        if receipt.finalize_claimed:
            artifact = await asyncio.shield(
                self._finalize(session_id, total, per_session_dir=False, pending=None)
            )
        return SubmitResult(receipt=receipt, artifact=artifact)

    async def finalize(self, session_id: str, total: int) -> FinalArtifact:
        """
        Explicitly finalize a session whose chunks have all arrived.

        Used by the screen-recording flow, where the client asserts completion
        instead of relying on the chunk that completes the set. The artifact
        is placed under uploads/{session}/. A FAILED session may be finalized
        again; if only the remote relocation failed, only that step is redone.

        Args:
            session_id: Session identifier
            total: Total chunk count asserted by the client

        Returns:
            The final artifact

        Raises:
            SessionStateError: Unknown, incomplete, finalized or already merging
            InvalidChunkError: total does not match the session
            StorageError: Merge failed
            RemoteTransferError: Artifact relocation failed
        """
        validate_session_id(session_id)
        pending = await self.registry.begin_merge(session_id, total)
        logger.info(f"Finalizing upload of session {session_id} with totalChunks={total}")
        return await asyncio.shield(
            self._finalize(session_id, total, per_session_dir=True, pending=pending)
        )

    async def _finalize(
        self,
        session_id: str,
        total: int,
        per_session_dir: bool,
        pending: Optional[Path],
    ) -> FinalArtifact:
        artifact_path = pending
        if artifact_path is None:
            try:
                artifact_path = await self._run_blocking(
                    self.engine.merge, session_id, total, per_session_dir
                )
            except Exception as e:
                # any failure moves the session out of MERGING
                lost = list(getattr(e, 'consumed', ()))
                if isinstance(e, ChunkMissingError) and e.index is not None:
                    lost.append(e.index)
                await self.registry.mark_failed(session_id, consumed=lost)
                if isinstance(e, StorageError):
                    raise
                raise StorageError(f"Merge of session {session_id} failed: {e}", lost) from e

        try:
            size, remote_key, url = await self._run_blocking(self._publish, artifact_path)
        except Exception as e:
            logger.error(f"Publishing artifact of session {session_id} failed: {type(e).__name__}: {e}")
            await self.registry.mark_failed(session_id, pending_artifact=artifact_path)
            if isinstance(e, RemoteTransferError):
                raise
            raise RemoteTransferError(f"Failed to publish {artifact_path.name}: {e}") from e

        await self.registry.mark_done(session_id, url)

        artifact = FinalArtifact(
            artifact_id=artifact_path.name.split(FINAL_ARTIFACT_SUFFIX)[0],
            session_id=session_id,
            url=url,
            size=size,
            local_path=None if remote_key else artifact_path,
            remote_key=remote_key,
        )
        logger.info(f"Upload complete for session {session_id}: {url}")
        return artifact

    def _publish(self, artifact_path: Path) -> Tuple[Optional[int], Optional[str], str]:
        """
        Relocate the artifact if a blob store is configured and build its URL.

        A retried relocation whose local copy is already gone only rebuilds
        the URL for the object uploaded earlier.
        """
        size = artifact_path.stat().st_size if artifact_path.exists() else None

        if self.engine.blob_store is None:
            relative = artifact_path.relative_to(self.engine.uploads_dir).as_posix()
            return size, None, f"{self.config.public_base_url}{STATIC_FILES_ROUTE}/{relative}"

        if artifact_path.exists():
            remote_key = self.engine.relocate(artifact_path)
        else:
            remote_key = self.engine.remote_key(artifact_path)
        return size, remote_key, self.engine.blob_store.url_for(remote_key)

    def status(self, session_id: str) -> SessionSnapshot:
        """
        Current bookkeeping for a session.

        Raises:
            SessionNotFoundError: Unknown session
        """
        validate_session_id(session_id)
        return self.registry.snapshot(session_id)

    async def reset(self, session_id: str) -> int:
        """
        Forget a session and delete its scratch chunks.

        Args:
            session_id: Session identifier

        Returns:
            Number of scratch chunks deleted

        Raises:
            SessionNotFoundError: Unknown session
            FinalizeInProgressError: A merge is running
        """
        validate_session_id(session_id)
        entry = await self.registry.reset(session_id)
        if entry is None:
            return 0

        indices = set(entry.received)
        if isinstance(self.chunk_store, LocalChunkStore):
            indices.update(await self._run_blocking(self.chunk_store.list_chunks, session_id))

        deleted = 0
        for index in sorted(indices):
            if await self._run_blocking(self.chunk_store.delete, session_id, index):
                deleted += 1

        if entry.pending_artifact is not None and entry.pending_artifact.exists():
            await self._run_blocking(entry.pending_artifact.unlink)

        logger.info(f"Deleted {deleted} scratch chunks of session {session_id}")
        return deleted
