"""Error taxonomy shared by the deal engine, submission capture and agents.

Each error carries the HTTP status the routes translate it to.
"""


class PlatformError(Exception):
    """Base class for all domain errors."""

    status_code = 400

    def __init__(self, message: str | None = None):
        super().__init__(message or self.default_message)

    default_message = "Request failed"


class Unauthenticated(PlatformError):
    """No caller identity where one is required."""

    status_code = 401
    default_message = "Not authenticated"


class UserNotFound(PlatformError):
    """Identity present but no provisioned user row for it."""

    status_code = 404
    default_message = "User not found"


class NotFound(PlatformError):
    """Referenced deal or submission does not exist."""

    status_code = 404

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


class NotDealOwner(PlatformError):
    """Caller does not own the deal (only raised when ownership is enforced)."""

    status_code = 403
    default_message = "Deal belongs to another user"


class ValidationFailed(PlatformError):
    """Step payload is missing required fields or has the wrong types."""

    status_code = 422

    def __init__(self, message: str, errors: list | None = None):
        self.errors = errors or []
        super().__init__(message)


class StepLocked(ValidationFailed):
    """Step submitted before its prerequisite steps were completed."""

    status_code = 409

    def __init__(self, step: int, current_step: int):
        self.step = step
        self.current_step = current_step
        super().__init__(
            f"Step {step} is locked; complete step {current_step} first"
        )


class UpstreamGenerationFailed(PlatformError):
    """The text-generation endpoint errored or timed out."""

    status_code = 502
    default_message = "AI analysis failed"
