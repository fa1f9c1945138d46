"""Error taxonomy shared by the directories and the HTTP boundary."""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    STORAGE = "storage"


class DirectoryError(Exception):
    """Base class for failures raised by directory operations.

    Each subclass carries an :class:`ErrorKind` which the API layer maps to
    an HTTP status code.
    """

    kind: ErrorKind = ErrorKind.STORAGE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidArgument(DirectoryError):
    """Unsupported discriminator, missing parameter or inconsistent payload."""

    kind = ErrorKind.INVALID_ARGUMENT


class Unauthorized(DirectoryError):
    kind = ErrorKind.UNAUTHORIZED


class Forbidden(DirectoryError):
    kind = ErrorKind.FORBIDDEN


class NotFound(DirectoryError):
    kind = ErrorKind.NOT_FOUND


class StorageError(DirectoryError):
    """The underlying database rejected or failed an operation."""

    kind = ErrorKind.STORAGE


STATUS_BY_KIND = {
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.STORAGE: 500,
}
