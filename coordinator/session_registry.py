"""In-memory registry: session_id -> received chunk indices, total and lifecycle state."""

import asyncio
import time
from collections import OrderedDict
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import AsyncIterator, Dict, Iterable, List, Optional, Set

from common.constants import MAX_TOMBSTONES
from common.exceptions import (
    FinalizeInProgressError,
    InvalidChunkError,
    SessionClosedError,
    SessionIncompleteError,
    SessionNotFoundError,
)
from common.logging_config import get_logger
from common.types import ChunkReceipt, SessionSnapshot, SessionState

logger = get_logger(__name__)


@dataclass
class SessionEntry:
    """
    Bookkeeping for one upload session.
    """
    session_id: str
    total_chunks: int
    received: Set[int] = field(default_factory=set)
    state: SessionState = SessionState.RECEIVING
    pending_artifact: Optional[Path] = None
    created_at: float = field(default_factory=time.time)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False, compare=False)

    def is_complete(self) -> bool:
        # received only ever holds indices validated against [0, total)
        return len(self.received) == self.total_chunks

    def missing(self) -> List[int]:
        return [i for i in range(self.total_chunks) if i not in self.received]

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            total_chunks=self.total_chunks,
            received=tuple(sorted(self.received)),
            missing=tuple(self.missing()),
            state=self.state,
        )


@dataclass
class TombstoneEntry:
    """
    Marks a finalized session so late chunks cannot resurrect it.
    """
    session_id: str
    total_chunks: int
    artifact_url: str
    finished_at: float = field(default_factory=time.time)


def validate_chunk_position(index: int, total: int) -> None:
    """
    Validate a chunk index against the canonical zero-based [0, total) range.

    Raises:
        InvalidChunkError: If total is not positive or index is out of range
    """
    if isinstance(total, bool) or not isinstance(total, int) or total < 1:
        raise InvalidChunkError(f"totalChunks must be a positive integer, got {total!r}")
    if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < total:
        raise InvalidChunkError(f"chunkIndex {index!r} out of range [0, {total})")


class SessionRegistry:
    """
    Tracks which chunks each session has received.

    Every session has its own asyncio.Lock, so the record -> check ->
    claim sequence is serialized per session while unrelated sessions
    proceed independently. Only one caller per completeness event ever
    sees is_complete=True.
    """

    def __init__(self, max_tombstones: int = MAX_TOMBSTONES):
        self._entries: Dict[str, SessionEntry] = {}
        self._tombstones: "OrderedDict[str, TombstoneEntry]" = OrderedDict()
        self.max_tombstones = max_tombstones

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._entries

    def _lookup(self, session_id: str, total: Optional[int], create: bool) -> SessionEntry:
        if session_id in self._tombstones:
            raise SessionClosedError(f"Session {session_id} has already been finalized")

        entry = self._entries.get(session_id)
        if entry is None:
            if not create:
                raise SessionNotFoundError(f"Session {session_id} not found")
            entry = SessionEntry(session_id=session_id, total_chunks=total)
            self._entries[session_id] = entry
            logger.info(f"Created session {session_id} expecting {total} chunks")
        return entry

    @asynccontextmanager
    async def _locked(
        self,
        session_id: str,
        total: Optional[int] = None,
        create: bool = False,
    ) -> AsyncIterator[SessionEntry]:
        """
        Acquire the per-session lock for the live entry of session_id.

        An entry may be removed (finalized or reset) while a caller waits on its
        lock; in that case the lookup is retried against the current table.
        """
        while True:
            entry = self._lookup(session_id, total, create)
            await entry.lock.acquire()
            if self._entries.get(session_id) is entry:
                break
            entry.lock.release()

        try:
            yield entry
        finally:
            entry.lock.release()

    @staticmethod
    def _check_total(entry: SessionEntry, total: int) -> None:
        if entry.total_chunks != total:
            raise InvalidChunkError(
                f"totalChunks {total} does not match {entry.total_chunks} "
                f"established for session {entry.session_id}"
            )

    async def ensure_accepting(self, session_id: str, index: int, total: int) -> bool:
        """
        Validate a chunk before its bytes are stored.

        Creates the session on first sight. Nothing is recorded here; the
        caller stores the bytes and then calls record_chunk.

        Args:
            session_id: Session identifier
            index: Zero-based chunk index
            total: Declared total chunk count

        Returns:
            True if the index was already received (a retransmission whose
            bytes need not be stored again), False otherwise

        Raises:
            InvalidChunkError: Bad index/total or total mismatch
            SessionClosedError: Session was already finalized
        """
        validate_chunk_position(index, total)
        async with self._locked(session_id, total, create=True) as entry:
            self._check_total(entry, total)
            return index in entry.received

    async def discard_if_empty(self, session_id: str) -> bool:
        """
        Drop a session that has not recorded any chunk yet.

        Used when storing the first chunk of a new session fails, so the entry
        created by ensure_accepting does not linger.

        Returns:
            True if the entry was removed
        """
        entry = self._entries.get(session_id)
        if entry is None:
            return False

        async with entry.lock:
            if self._entries.get(session_id) is not entry:
                return False
            if entry.received or entry.state != SessionState.RECEIVING:
                return False
            del self._entries[session_id]

        logger.info(f"Dropped empty session {session_id}")
        return True

    async def record_chunk(
        self,
        session_id: str,
        index: int,
        total: int,
        claim_finalize: bool = False,
    ) -> ChunkReceipt:
        """
        Record that chunk `index` of a session is durably stored.

        Duplicate indices count once. is_complete is True only for the call
        that turned the received set into {0..total-1}. With claim_finalize
        that same call also moves the session to MERGING, so no other caller
        can start a merge for this completeness event.

        Args:
            session_id: Session identifier
            index: Zero-based chunk index
            total: Declared total chunk count
            claim_finalize: Claim the merge when this call completes the set

        Returns:
            ChunkReceipt describing the session after this chunk

        Raises:
            InvalidChunkError: Bad index/total or total mismatch
            SessionClosedError: Session was already finalized
        """
        validate_chunk_position(index, total)
        async with self._locked(session_id, total, create=True) as entry:
            self._check_total(entry, total)

            was_complete = entry.is_complete()
            entry.received.add(index)
            newly_complete = not was_complete and entry.is_complete()

            claimed = False
            if newly_complete:
                entry.state = SessionState.COMPLETE
                logger.info(f"Session {session_id} complete with {total} chunks")
                if claim_finalize:
                    entry.state = SessionState.MERGING
                    claimed = True

            return ChunkReceipt(
                session_id=session_id,
                chunk_index=index,
                received_count=len(entry.received),
                total_chunks=entry.total_chunks,
                is_complete=newly_complete,
                finalize_claimed=claimed,
            )

    async def begin_merge(self, session_id: str, total: int) -> Optional[Path]:
        """
        Claim the COMPLETE -> MERGING transition for an explicit finalize.

        A FAILED session whose received set is still complete may be claimed
        again to retry.

        Args:
            session_id: Session identifier
            total: Total chunk count asserted by the caller

        Returns:
            Local artifact left by an attempt whose remote relocation failed,
            or None when the chunks still have to be merged

        Raises:
            SessionNotFoundError: Unknown session
            SessionClosedError: Session was already finalized
            InvalidChunkError: total does not match the session
            FinalizeInProgressError: Another merge is running
            SessionIncompleteError: Some chunks have not arrived
        """
        if isinstance(total, bool) or not isinstance(total, int) or total < 1:
            raise InvalidChunkError(f"totalChunks must be a positive integer, got {total!r}")

        async with self._locked(session_id) as entry:
            self._check_total(entry, total)

            if entry.state == SessionState.MERGING:
                raise FinalizeInProgressError(f"Session {session_id} is already being finalized")

            if not entry.is_complete():
                missing = entry.missing()
                raise SessionIncompleteError(
                    f"Session {session_id} is missing {len(missing)} of {total} chunks",
                    missing=missing,
                )

            entry.state = SessionState.MERGING
            return entry.pending_artifact

    async def mark_done(self, session_id: str, artifact_url: str) -> None:
        """
        MERGING -> DONE: drop the session's bookkeeping and leave a tombstone.
        """
        async with self._locked(session_id) as entry:
            entry.state = SessionState.DONE
            del self._entries[session_id]

            self._tombstones[session_id] = TombstoneEntry(
                session_id=session_id,
                total_chunks=entry.total_chunks,
                artifact_url=artifact_url,
            )
            while len(self._tombstones) > self.max_tombstones:
                self._tombstones.popitem(last=False)

        logger.info(f"Session {session_id} finalized")

    async def mark_failed(
        self,
        session_id: str,
        consumed: Iterable[int] = (),
        pending_artifact: Optional[Path] = None,
    ) -> SessionSnapshot:
        """
        MERGING -> FAILED, keeping bookkeeping so the caller can retry.

        Args:
            session_id: Session identifier
            consumed: Chunk indices already merged and deleted; they are no
                longer stored and must be submitted again
            pending_artifact: Local artifact that was fully merged but not yet
                relocated; a retry only repeats the remote step

        Returns:
            Snapshot of the failed session
        """
        async with self._locked(session_id) as entry:
            entry.received.difference_update(consumed)
            entry.pending_artifact = pending_artifact
            entry.state = SessionState.FAILED
            snapshot = entry.snapshot()

        logger.warning(
            f"Session {session_id} failed to finalize; "
            f"{len(snapshot.missing)} chunks must be re-submitted"
        )
        return snapshot

    async def reset(self, session_id: str) -> Optional[SessionEntry]:
        """
        Forget a session explicitly.

        Args:
            session_id: Session identifier

        Returns:
            The removed entry, or None if only a tombstone was cleared

        Raises:
            SessionNotFoundError: Unknown session
            FinalizeInProgressError: A merge is running
        """
        if session_id in self._tombstones:
            del self._tombstones[session_id]
            logger.info(f"Cleared tombstone for session {session_id}")
            return None

        async with self._locked(session_id) as entry:
            if entry.state == SessionState.MERGING:
                raise FinalizeInProgressError(f"Session {session_id} is being finalized")
            del self._entries[session_id]

        logger.info(f"Reset session {session_id}")
        return entry

    def snapshot(self, session_id: str) -> SessionSnapshot:
        """
        Current view of a session, including finalized ones.

        Raises:
            SessionNotFoundError: Unknown session
        """
        tombstone = self._tombstones.get(session_id)
        if tombstone is not None:
            return SessionSnapshot(
                session_id=session_id,
                total_chunks=tombstone.total_chunks,
                received=tuple(range(tombstone.total_chunks)),
                missing=(),
                state=SessionState.DONE,
                artifact_url=tombstone.artifact_url,
            )

        entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return entry.snapshot()
