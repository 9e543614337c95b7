"""
Failure taxonomy for the binder sync engine.

Every error the engine raises is a BinderError carrying a FailureKind.
Handling policy per kind:

- MALFORMED_RECORD: batch-local, the offending record is skipped
- NOT_FOUND: treated as an empty result, never fatal
- REMOTE_UNAVAILABLE / NOT_AUTHENTICATED: surfaced to the initiator,
  no automatic retry (the user re-triggers)
- STALE_OPERATION: a completed load whose context has changed, discarded

No error in this package is fatal to the process.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    MALFORMED_RECORD = "malformed_record"
    NOT_FOUND = "not_found"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    NOT_AUTHENTICATED = "not_authenticated"
    STALE_OPERATION = "stale_operation"


class FailureDetail(BaseModel):
    """Detailed information about a failure, as returned by the API."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class BinderError(Exception):
    """
    Base class for known, explainable engine failures.

    Subclasses fix the kind, the HTTP status and a default suggestion.
    """

    kind: FailureKind = FailureKind.NOT_FOUND
    status_code: int = 400
    default_suggestion: str | None = None

    def __init__(
        self,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        self.message = message
        self.detail = detail
        self.suggestion = suggestion or self.default_suggestion
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a FailureDetail."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class MalformedRecord(BinderError):
    """A raw catalog record has no usable primary identifier."""

    kind = FailureKind.MALFORMED_RECORD
    status_code = 422


class NotFound(BinderError):
    """A requested ledger row, binder or entry does not exist."""

    kind = FailureKind.NOT_FOUND
    status_code = 404


class RemoteUnavailable(BinderError):
    """The remote store failed or timed out."""

    kind = FailureKind.REMOTE_UNAVAILABLE
    status_code = 503
    default_suggestion = "Check your connection and try again."


class NotAuthenticated(BinderError):
    """No owner is signed in."""

    kind = FailureKind.NOT_AUTHENTICATED
    status_code = 401
    default_suggestion = "Sign in and try again."


class StaleOperation(BinderError):
    """
    A reconciliation finished after its container/game context changed.

    Raised and caught inside the engine; callers never see it.
    """

    kind = FailureKind.STALE_OPERATION
    status_code = 409
