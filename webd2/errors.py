"""Error taxonomy for the data-mapping layer."""


class Webd2Error(Exception):
    """Base class for all webd2 errors."""

    status: int = 500


class SchemaError(Webd2Error):
    """Raised when entity schemas are mis-declared or cannot be wired together.

    These are configuration errors: they surface at startup, never per request.
    """

    pass


class UsageError(Webd2Error, ValueError):
    """Raised when the builder, caster or gateway is called the wrong way."""

    pass


class NotFoundError(Webd2Error, LookupError):
    """Raised when a row that must exist is absent."""

    code = "ENOTFOUND"
    status = 404


class DatabaseError(Webd2Error):
    """Wraps a failure of the underlying transport or SQL engine."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequestError(Webd2Error):
    """Raised when a request is malformed."""

    status = 400


class UnauthorizedError(Webd2Error):
    """Raised when credentials do not match."""

    status = 401


class MethodError(Webd2Error):
    """Raised when a request names an unsupported method."""

    status = 405
