"""Exceptions raised across the sync service.

Per-item reconciliation failures are not exceptions: they travel as
``ItemResult.error`` values so a single bad product never aborts a chunk.
"""


class CatalogSyncError(Exception):
    """Base exception for the catalog sync service."""

    default_message = "Catalog sync error"
    error_code = "sync_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# =============================================================================
# Vendor API
# =============================================================================


class VendorAPIError(CatalogSyncError):
    """Raised when the vendor API cannot be reached or answers badly."""

    default_message = "Vendor API request failed"
    error_code = "vendor_error"


class AuthError(VendorAPIError):
    """Raised when authentication against the vendor API fails."""

    default_message = "Authentication failed"
    error_code = "auth_failed"


class FetchError(VendorAPIError):
    """Raised when fetching inventories from the vendor API fails."""

    default_message = "Failed to fetch inventories"
    error_code = "fetch_failed"


class ImageError(CatalogSyncError):
    """Raised when a product image cannot be downloaded or stored."""

    default_message = "Image processing failed"
    error_code = "image_failed"


# =============================================================================
# Sync runs
# =============================================================================


class SyncRunError(CatalogSyncError):
    """Base class for run lifecycle conditions reported to callers."""

    default_message = "Sync run error"


class NothingToSyncError(SyncRunError):
    """Raised when a run would start with zero candidates."""

    default_message = "No products to sync. Please check your category mapping."
    error_code = "nothing_to_sync"


class AlreadyRunningError(SyncRunError):
    """Raised when a run is started while another one holds the running flag."""

    default_message = "A sync is already in progress."
    error_code = "already_running"


class SessionExpiredError(SyncRunError):
    """Raised when the run state for a chunk call is gone (expired, finished or cancelled)."""

    default_message = "Sync session expired. Please start a new sync."
    error_code = "session_expired"
