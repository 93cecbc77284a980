"""
Custom exception hierarchy for the workshop repair engine.

Every engine exception inherits from WorkshopException and carries a
stable error_code that the API layer maps to an HTTP status.
"""
from typing import Optional, Any


class WorkshopException(Exception):
    """
    Base exception for the whole engine.

    All custom exceptions inherit from this class.
    """

    def __init__(
        self,
        message: str,
        error_code: str,
        data: Optional[dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.data = data or {}
        super().__init__(self.message)


# ==================== 404 (NOT FOUND) ====================

class NotFoundError(WorkshopException):
    """Unknown job, technician or equipment status record."""

    def __init__(self, resource: str, resource_id: str, message: Optional[str] = None):
        super().__init__(
            message=message or f"{resource} '{resource_id}' not found",
            error_code="NOT_FOUND",
            data={"resource": resource, "id": resource_id}
        )


# ==================== 400 (BAD REQUEST) - BUSINESS RULES ====================

class InvalidTransitionError(WorkshopException):
    """
    Requested status is not reachable from the current status.

    Always user-correctable; never retried automatically.
    """

    def __init__(
        self,
        job_id: str,
        current_status: Optional[str],
        requested_status: str,
        allowed: Optional[list[str]] = None,
        message: Optional[str] = None
    ):
        allowed = allowed or []
        if message is None:
            allowed_text = ", ".join(allowed) if allowed else "none (terminal state)"
            message = (
                f"Cannot transition job '{job_id}' from '{current_status}' to "
                f"'{requested_status}'. Allowed transitions: {allowed_text}"
            )

        self.job_id = job_id
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed = allowed

        super().__init__(
            message=message,
            error_code="INVALID_TRANSITION",
            data={
                "job_id": job_id,
                "current_status": current_status,
                "requested_status": requested_status,
                "allowed_transitions": allowed
            }
        )


class InvalidSettingsError(WorkshopException):
    """A workshop settings update failed validation."""

    def __init__(self, field: str, message: str):
        super().__init__(
            message=message,
            error_code="INVALID_SETTINGS",
            data={"field": field}
        )


# ==================== 409 (CONFLICT) - CONCURRENCY & CAPACITY ====================

class AlreadyExistsError(WorkshopException):
    """Intake attempted for a job that already has a status record."""

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Equipment status already exists for job '{job_id}'",
            error_code="ALREADY_EXISTS",
            data={"job_id": job_id}
        )


class AlreadyClaimedError(WorkshopException):
    """
    Lost the claim race: the job is assigned to another technician.

    Caller should re-fetch the queue and pick another job.
    """

    def __init__(self, job_id: str, owner_id: Optional[str] = None):
        message = f"Job '{job_id}' is already assigned to a technician"
        if owner_id:
            message += f" ({owner_id})"

        super().__init__(
            message=message,
            error_code="ALREADY_CLAIMED",
            data={"job_id": job_id, "owner_id": owner_id}
        )


class CapacityExceededError(WorkshopException):
    """
    Workshop-wide or per-technician ceiling reached.

    Reflects real-world load; caller should retry later or escalate.
    """

    def __init__(
        self,
        scope: str,
        current_count: int,
        max_capacity: int,
        technician_id: Optional[str] = None
    ):
        if scope == "technician":
            message = (
                f"Technician has reached maximum capacity ({max_capacity} jobs). "
                f"Current active jobs: {current_count}"
            )
        else:
            message = (
                f"Workshop has reached maximum capacity ({max_capacity} jobs). "
                f"Current active jobs: {current_count}"
            )

        super().__init__(
            message=message,
            error_code="CAPACITY_EXCEEDED",
            data={
                "scope": scope,
                "current_count": current_count,
                "max_capacity": max_capacity,
                "technician_id": technician_id
            }
        )


class VersionConflictError(WorkshopException):
    """
    Optimistic write lost against a concurrent writer.

    Raised by repositories when the stored version differs from the one
    the caller read; services translate it into BusyError.
    """

    def __init__(self, job_id: str, expected: int, actual: Optional[int]):
        super().__init__(
            message=(
                f"Version conflict on job '{job_id}': expected {expected}, "
                f"actual {actual}. The record was modified concurrently."
            ),
            error_code="VERSION_CONFLICT",
            data={"job_id": job_id, "expected_version": expected, "actual_version": actual}
        )


# ==================== 503 (SERVICE UNAVAILABLE) ====================

class BusyError(WorkshopException):
    """
    Per-job lock could not be acquired within the bounded timeout.

    Safe to retry immediately.
    """

    def __init__(self, resource_key: str, timeout_seconds: float):
        super().__init__(
            message=(
                f"Resource '{resource_key}' is busy (lock not acquired within "
                f"{timeout_seconds}s). Please retry."
            ),
            error_code="BUSY",
            data={"resource": resource_key, "retry_after_seconds": 0}
        )


class StorageError(WorkshopException):
    """Persistence backend failure (Redis unreachable, corrupt document)."""

    def __init__(self, message: str, details: Optional[str] = None):
        full_message = f"Storage error: {message}"
        if details:
            full_message += f" | Details: {details}"

        super().__init__(
            message=full_message,
            error_code="STORAGE_ERROR",
            data={"details": details} if details else {}
        )
