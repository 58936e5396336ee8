"""
Error taxonomy for the portal core.
Each error carries the HTTP status the API layer answers with.
"""


class PortalError(Exception):
    """Base class for errors surfaced to callers as {"error": message}."""
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class Unauthorized(PortalError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(PortalError):
    status_code = 403
    default_message = "Forbidden"


class InvalidCredentials(PortalError):
    """Login failure. Same message whether the user is unknown or the password is wrong."""
    status_code = 401
    default_message = "Invalid username or password"


class NotFound(PortalError):
    status_code = 404
    default_message = "Not found"


class Conflict(PortalError):
    status_code = 409
    default_message = "Conflict"


class ValidationError(PortalError):
    status_code = 400
    default_message = "Invalid request"


class Unexpected(PortalError):
    status_code = 500


# ===== Token errors (translated to Forbidden by the guard) =====

class TokenError(Exception):
    """Session token could not be accepted."""


class TokenMalformed(TokenError):
    """Token cannot be parsed, its signature does not match, or its claims are invalid."""


class TokenExpired(TokenError):
    """Token was valid but its expiry has passed."""
