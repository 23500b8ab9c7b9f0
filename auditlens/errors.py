"""Exception hierarchy for the audit history pipeline.

Every error raised across the pipeline boundary derives from AuditLensError,
which carries both a diagnostic message and a display-safe summary.
"""

DEFAULT_USER_MESSAGE = "There has been an unexpected error"


class AuditLensError(Exception):
    """Base exception for all pipeline errors.

    Subclasses set default_user_message to the summary shown to end users
    when no specific one is given.
    """

    default_user_message: str = DEFAULT_USER_MESSAGE

    def __init__(self, message: str, user_message: str | None = None) -> None:
        self.message = message
        self.user_message = user_message or self.default_user_message
        super().__init__(message)


class ConfigError(AuditLensError):
    """Raised when a query descriptor is malformed or violates a rule."""

    default_user_message = "The audit view is not configured correctly"


class TransportError(AuditLensError):
    """Raised when an upstream fetch fails.

    The original exception is kept on ``cause`` in addition to the
    exception chain so callers can inspect it without walking __cause__.
    """

    default_user_message = "Unable to retrieve audit data"

    def __init__(
        self,
        message: str,
        cause: BaseException | None = None,
        user_message: str | None = None,
    ) -> None:
        super().__init__(message, user_message)
        self.cause = cause


class DataShapeError(AuditLensError):
    """Raised when a fetched record lacks an attribute the pipeline requires."""

    default_user_message = "Audit data was returned in an unexpected format"
