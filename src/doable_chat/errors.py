"""Tool error taxonomy.

Errors reach the language model as plain strings, so each class only
carries a message. Handlers raise them; the guard in results.py turns them
into failed ToolResults.
"""


class ToolError(Exception):
    """Base class for expected tool failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ToolError):
    """Required fields are missing or malformed."""


class NotFoundError(ToolError):
    """A reference matched nothing."""


class AmbiguousReferenceError(ToolError):
    """A reference matched more than one entity."""


class ConflictError(ToolError):
    """Duplicate title or key, already invited, already a member."""


class AuthorizationError(ToolError):
    """The acting user lacks the role for the operation."""


class UnexpectedError(ToolError):
    """Persistence or network failure."""

    @classmethod
    def from_exception(cls, exc: Exception, fallback: str) -> "UnexpectedError":
        return cls(str(exc) or fallback)
