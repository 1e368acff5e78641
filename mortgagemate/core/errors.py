"""
Advisor error taxonomy.

Every error carries the HTTP status the API layer answers with,
so the core never imports FastAPI.
"""


class AdvisorError(Exception):
    """Base class for errors surfaced to callers."""

    status_code: int = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationError(AdvisorError):
    """Malformed or missing input. Raised before any state mutation."""

    status_code = 422


class NotFoundError(AdvisorError):
    """Unknown chat, or a chat the caller does not own."""

    status_code = 404


class TransactionError(AdvisorError):
    """A create/save transaction failed and was rolled back."""

    status_code = 500


class CollaboratorError(AdvisorError):
    """The LLM or document parser failed. The turn was not recorded and can be resubmitted."""

    status_code = 502
