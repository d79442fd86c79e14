"""Exceptions raised by the service layer.

Each error carries the HTTP status the web layer answers with.
"""


class BreaktoolError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(BreaktoolError):
    """Malformed or missing field, or an unrecognized enum value."""

    status_code = 400


class NotFound(BreaktoolError):
    """A referenced user, review or tool does not exist."""

    status_code = 404


class StorageFailure(BreaktoolError):
    """The database is unreachable or a write failed."""

    status_code = 500
