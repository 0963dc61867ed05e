"""Structured errors shared by every layer of the service.

A :class:`ThumbnailError` is raised at the point of failure with an
:class:`ErrorKind` and the original cause. Each enclosing layer adds a
short context frame (``"load image"``, ``"save thumbnail"``...) through
:func:`error_context` instead of re-raising a new exception, so the
original cause is never lost. Only the HTTP layer turns an error into a
status code and decides how much of it the client gets to see.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum
from http import HTTPStatus
from typing import Iterator, List, Optional, Union


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNSUPPORTED_MEDIA_TYPE = "unsupported_media_type"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


STATUS_CODES = {
    ErrorKind.INVALID_ARGUMENT: HTTPStatus.BAD_REQUEST,
    ErrorKind.UNSUPPORTED_MEDIA_TYPE: HTTPStatus.UNSUPPORTED_MEDIA_TYPE,
    ErrorKind.NOT_FOUND: HTTPStatus.NOT_FOUND,
    ErrorKind.INTERNAL: HTTPStatus.INTERNAL_SERVER_ERROR,
}

Cause = Union[BaseException, str, None]


class ThumbnailError(Exception):
    """Failure carrying a kind, its original cause and a context trail.

    Attributes:
        kind: Category of the failure; decides the HTTP status.
        cause: The underlying exception or a text describing it. Empty
            when the kind alone says everything (e.g. a missing key).
        argument: Name of the offending argument (invalid arguments only).
        details: What is wrong with the argument (invalid arguments only).
        trail: Context frames added while the error propagated, innermost
            first.
    """

    def __init__(
        self,
        kind: ErrorKind,
        cause: Cause = None,
        *,
        argument: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.cause = cause
        self.argument = argument
        self.details = details
        self.trail: List[str] = []
        super().__init__(kind, cause)

    @classmethod
    def invalid_argument(cls, argument: str, details: str, cause: Cause = None) -> "ThumbnailError":
        return cls(ErrorKind.INVALID_ARGUMENT, cause, argument=argument, details=details)

    @classmethod
    def unsupported_media_type(cls) -> "ThumbnailError":
        return cls(ErrorKind.UNSUPPORTED_MEDIA_TYPE)

    @classmethod
    def not_found(cls, cause: Cause = None) -> "ThumbnailError":
        return cls(ErrorKind.NOT_FOUND, cause)

    @classmethod
    def internal(cls, cause: Cause) -> "ThumbnailError":
        return cls(ErrorKind.INTERNAL, cause)

    def context(self, frame: str) -> "ThumbnailError":
        """Record that the error passed through ``frame`` and return it."""
        self.trail.append(frame)
        return self

    @property
    def status_code(self) -> int:
        return int(STATUS_CODES[self.kind])

    @property
    def is_server_error(self) -> bool:
        return self.status_code >= 500

    @property
    def message(self) -> str:
        """The original cause rendered as text, without context frames."""
        cause = "" if self.cause is None else str(self.cause)
        if self.kind is ErrorKind.INVALID_ARGUMENT:
            text = f"{self.argument}: {self.details}"
            return f"{text}: {cause}" if cause else text
        return cause

    def reason(self) -> str:
        """Text safe to hand back to the client.

        Server errors are reduced to the generic status phrase so that
        internal details never leave the process.
        """
        message = self.message
        if self.is_server_error or not message:
            return HTTPStatus(self.status_code).phrase
        return str(self)

    def __str__(self) -> str:
        return "".join(f"{frame}: " for frame in reversed(self.trail)) + self.message

    def __repr__(self) -> str:
        return f"ThumbnailError({self.kind.value!r}, {str(self)!r})"


@contextmanager
def error_context(frame: str) -> Iterator[None]:
    """Add ``frame`` to any error escaping the block.

    Errors that are not :class:`ThumbnailError` yet are treated as
    internal failures and wrapped, keeping the original exception as the
    cause.
    """
    try:
        yield
    except ThumbnailError as err:
        raise err.context(frame)
    except Exception as exc:
        raise ThumbnailError.internal(exc).context(frame) from exc
