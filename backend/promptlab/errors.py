"""Domain error taxonomy shared by the service, the API layer and the client.

Resolution sentinels ("N/A", "No tasks found", ...) are plain strings and
never appear here.
"""


class PromptLabError(Exception):
    """Base class for errors that map onto an HTTP status and an error code."""

    status_code: int = 500
    code: str = "INTERNAL_SERVER_ERROR"

    def __init__(self, message: str = ""):
        self.message = message or self.code
        super().__init__(self.message)


class UnauthenticatedError(PromptLabError):
    """No identity was supplied with the request."""
    status_code = 401
    code = "UNAUTHENTICATED"


class ForbiddenError(PromptLabError):
    """Identity present but lacks ownership or project membership."""
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(PromptLabError):
    status_code = 404
    code = "NOT_FOUND"


class BadInputError(PromptLabError):
    status_code = 400
    code = "BAD_USER_INPUT"


ERRORS_BY_STATUS: dict[int, type[PromptLabError]] = {
    cls.status_code: cls
    for cls in (UnauthenticatedError, ForbiddenError, NotFoundError, BadInputError)
}
