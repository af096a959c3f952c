"""
Domain Exceptions

Custom exceptions for the audit pipeline.
Each carries a stable machine-readable ``code`` and the HTTP status it maps to
when it reaches the request boundary.
"""

from typing import List, Optional


class DomainError(Exception):
    """Base class for domain exceptions."""

    status_code: int = 500
    retryable: bool = False

    def __init__(self, message: str, code: str = None):
        self.message = message
        self.code = code or self.__class__.__name__
        super().__init__(message)

    @property
    def is_client_error(self) -> bool:
        return 400 <= self.status_code < 500


class UnauthorizedError(DomainError):
    """Raised when the request carries no authenticated identity."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message=message, code="UNAUTHORIZED")


class ForbiddenError(DomainError):
    """Raised when the caller's tenant does not own the resource."""

    status_code = 403

    def __init__(self, message: str = "Forbidden"):
        super().__init__(message=message, code="FORBIDDEN")


class JobNotFoundError(DomainError):
    """Raised when a job cannot be found."""

    status_code = 404

    def __init__(self, job_id: str):
        super().__init__(
            message=f"Job not found: {job_id}",
            code="JOB_NOT_FOUND"
        )
        self.job_id = job_id


class RequirementNotFoundError(DomainError):
    """Raised when a compliance requirement cannot be found."""

    status_code = 404

    def __init__(self, requirement_id: str):
        super().__init__(
            message=f"Requirement not found: {requirement_id}",
            code="REQUIREMENT_NOT_FOUND"
        )
        self.requirement_id = requirement_id


class RateLimitedError(DomainError):
    """Raised when the caller exceeded the audit request quota."""

    status_code = 429

    def __init__(self, key: str, limit: int, window_seconds: int):
        super().__init__(
            message=f"Rate limit exceeded: {limit} requests per {window_seconds}s",
            code="RATE_LIMITED"
        )
        self.key = key
        self.limit = limit
        self.window_seconds = window_seconds


class InvalidModelOutputError(DomainError):
    """Raised when the reasoning service response cannot be parsed."""

    status_code = 500
    retryable = True

    def __init__(self, reason: str):
        super().__init__(
            message=f"Invalid model output: {reason}",
            code="INVALID_MODEL_OUTPUT"
        )
        self.reason = reason


class UpstreamUnavailableError(DomainError):
    """Raised on timeout or network failure towards the reasoning service or storage."""

    status_code = 500
    retryable = True

    def __init__(self, service: str, reason: str):
        super().__init__(
            message=f"{service} unavailable: {reason}",
            code="UPSTREAM_UNAVAILABLE"
        )
        self.service = service
        self.reason = reason


class EmptyAuditSetError(DomainError):
    """Raised when an audit run produced zero findings."""

    status_code = 422

    def __init__(self, job_id: str):
        super().__init__(
            message="Model returned empty audit set",
            code="EMPTY_AUDIT_SET"
        )
        self.job_id = job_id


class PartialPersistenceError(DomainError):
    """Some but not all audit rows of a run were written. Logged, never raised to clients."""

    def __init__(self, job_id: str, inserted_ids: List[str], failed_count: int, reason: str):
        super().__init__(
            message=(
                f"Persisted {len(inserted_ids)} of {len(inserted_ids) + failed_count} "
                f"audits for job '{job_id}': {reason}"
            ),
            code="PARTIAL_PERSISTENCE_FAILURE"
        )
        self.job_id = job_id
        self.inserted_ids = inserted_ids
        self.failed_count = failed_count
        self.reason = reason


class SignalDeliveryError(DomainError):
    """The workflow signal could not be delivered after a successful persistence."""

    def __init__(self, signal_name: str, reason: str, message_id: Optional[str] = None):
        super().__init__(
            message=f"Signal '{signal_name}' delivery failed: {reason}",
            code="SIGNAL_DELIVERY_FAILURE"
        )
        self.signal_name = signal_name
        self.reason = reason
        self.message_id = message_id


class IdempotencyConflictError(DomainError):
    """Raised when an idempotency key is re-used for a different job."""

    status_code = 409

    def __init__(self, key: str, job_id: str):
        super().__init__(
            message=f"Idempotency key already used for job '{job_id}'",
            code="IDEMPOTENCY_CONFLICT"
        )
        self.key = key
        self.job_id = job_id


class IdempotencyInProgressError(DomainError):
    """Raised while another request holding the same idempotency key is running."""

    status_code = 409

    def __init__(self, key: str):
        super().__init__(
            message="A request with this idempotency key is still in progress",
            code="IDEMPOTENCY_IN_PROGRESS"
        )
        self.key = key


class ConfigurationError(DomainError):
    """Raised when a required service is missing or misconfigured."""

    def __init__(self, message: str):
        super().__init__(message=message, code="CONFIGURATION_ERROR")


class InvalidRequestError(DomainError):
    """Raised when a request body is structurally valid but semantically wrong."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message=message, code="INVALID_BODY")
