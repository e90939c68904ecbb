"""
Counting engine error taxonomy.

Every error raised by the counting services belongs to exactly one category so
that callers (and the HTTP layer) can tell an "already counted" answer apart
from a system fault:

    VALIDATION  -> bad client input, rejected before any write     (400)
    CONFLICT    -> request clashes with current state              (409)
    NOT_FOUND   -> referenced activity / scan does not exist       (404)
    TRANSIENT   -> store unavailable or transaction timed out      (503)

Anything that is not a CountingError is a programmer/fatal error and is
propagated untouched.
"""
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    """Category of a counting failure."""
    VALIDATION = "VALIDATION"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    TRANSIENT = "TRANSIENT"


class CountingError(Exception):
    """Base class for expected counting failures."""

    category: ErrorCategory = ErrorCategory.VALIDATION
    status_code: int = 400

    def __init__(self, message: str, **extra: Any):
        super().__init__(message)
        self.message = message
        self.extra: Dict[str, Any] = extra

    def to_dict(self) -> Dict[str, Any]:
        return {"detail": self.message, "category": self.category.value, **self.extra}


class CountingValidationError(CountingError):
    """Raised when client input is missing or malformed."""
    category = ErrorCategory.VALIDATION
    status_code = 400


class CountingNotFoundError(CountingError):
    """Raised when an activity, scan or referenced record does not exist."""
    category = ErrorCategory.NOT_FOUND
    status_code = 404


class CountingConflictError(CountingError):
    """Raised when the request conflicts with the current state."""
    category = ErrorCategory.CONFLICT
    status_code = 409


class DuplicateScanError(CountingConflictError):
    """Raised when a tag has already been counted in the activity."""

    def __init__(self, asset_tag: str, activity_id: Optional[Any] = None):
        super().__init__(
            f"Asset tag {asset_tag} has already been counted in this activity",
            classification="DUPLICATE",
            asset_tag=asset_tag,
        )
        self.asset_tag = asset_tag
        self.activity_id = activity_id


class AssetTagConflictError(CountingConflictError):
    """Raised when promoting a tag that already belongs to an asset."""

    def __init__(self, asset_tag: str):
        super().__init__(
            f"Asset tag {asset_tag} already exists in the asset register",
            asset_tag=asset_tag,
        )
        self.asset_tag = asset_tag


class ScanAlreadyPromotedError(CountingConflictError):
    """Raised when the scan for a tag is already linked to an asset."""

    def __init__(self, asset_tag: str):
        super().__init__(
            f"Scan for {asset_tag} is already linked to an asset",
            asset_tag=asset_tag,
        )
        self.asset_tag = asset_tag


class ActivityStateError(CountingConflictError):
    """Raised when an activity's status does not allow the operation."""

    def __init__(self, message: str, current_status: str):
        super().__init__(message, current_status=current_status)
        self.current_status = current_status


class CountingTransientError(CountingError):
    """Raised when the store is unavailable. Safe to retry."""
    category = ErrorCategory.TRANSIENT
    status_code = 503


class TransactionTimeoutError(CountingTransientError):
    """Raised when a transaction exceeds DB_TRANSACTION_TIMEOUT."""

    def __init__(self, timeout: float):
        super().__init__(f"Transaction did not complete within {timeout} seconds", timeout=timeout)
        self.timeout = timeout
