"""Shared data type definitions (SessionState, ChunkReceipt, FinalArtifact, etc.)."""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple


class SessionState(str, Enum):
    """
    Lifecycle of an upload session.

    RECEIVING -> COMPLETE -> MERGING -> DONE, with FAILED reachable from MERGING.
    """
    RECEIVING = "receiving"
    COMPLETE = "complete"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ChunkReceipt:
    """
    Outcome of recording one chunk in the session registry.
    """
    session_id: str
    chunk_index: int
    received_count: int
    total_chunks: int
    is_complete: bool
    finalize_claimed: bool = False


@dataclass(frozen=True)
class SessionSnapshot:
    """
    Point-in-time view of a session's bookkeeping.
    """
    session_id: str
    total_chunks: int
    received: Tuple[int, ...]
    missing: Tuple[int, ...]
    state: SessionState
    artifact_url: Optional[str] = None


@dataclass(frozen=True)
class FinalArtifact:
    """
    The reassembled recording produced by one finalize.
    """
    artifact_id: str
    session_id: str
    url: str
    size: Optional[int]
    local_path: Optional[Path] = None
    remote_key: Optional[str] = None
