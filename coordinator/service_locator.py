"""Service locator for the process-wide upload coordinator."""

from typing import Optional

from common.exceptions import UploadError
from coordinator.upload_coordinator import UploadCoordinator

_coordinator: Optional[UploadCoordinator] = None


def set_coordinator(coordinator: Optional[UploadCoordinator]) -> None:
    """Set global upload coordinator instance"""
    global _coordinator
    _coordinator = coordinator


def get_coordinator() -> UploadCoordinator:
    """
    Get global upload coordinator instance.

    Used as a FastAPI dependency by the upload routes.

    Raises:
        UploadError: If the application has not been started
    """
    if _coordinator is None:
        raise UploadError("Upload coordinator is not initialized")
    return _coordinator


def has_coordinator() -> bool:
    """Check whether a coordinator instance has been set"""
    return _coordinator is not None
