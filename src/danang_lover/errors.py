"""Exception types raised by the DaNangLover application.

The UI reports each family differently: a ``ValidationError`` means the user
picked the wrong file, ``DecodeError``/``EncodeError`` mean the file itself is
broken, and ``TransportError`` means the storage service failed and the user
may try again later.
"""


class DaNangLoverError(Exception):
    """Base class for all application errors."""


class ValidationError(DaNangLoverError):
    """An upload was rejected before preprocessing.

    Attributes:
        check: Which check failed, ``"type"`` or ``"size"``.
    """

    def __init__(self, check: str, message: str) -> None:
        self.check = check
        super().__init__(message)


class DecodeError(DaNangLoverError):
    """Image data could not be decoded."""


class EncodeError(DaNangLoverError):
    """The resized image could not be re-encoded."""


class TransportError(DaNangLoverError):
    """The storage service failed or refused the request."""


class AuthenticationError(DaNangLoverError):
    """The operation requires a signed-in user."""


class PermissionDeniedError(DaNangLoverError):
    """The signed-in user does not own the record."""


class NotFoundError(DaNangLoverError):
    """The requested record does not exist."""
