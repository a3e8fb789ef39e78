"""Error body returned by every exception handler."""

from typing import List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """JSON body of 4xx/5xx upload errors."""
    detail: str = Field(description="Human-readable error message")
    code: str = Field(description="Machine-readable error code, e.g. SESSION_INCOMPLETE")
    missing: Optional[List[int]] = Field(
        default=None,
        description="Chunk indices still missing (SESSION_INCOMPLETE only)",
    )
