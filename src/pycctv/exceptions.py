"""Custom exception hierarchy for pycctv."""

from __future__ import annotations


class CctvError(Exception):
    """Base exception for all pycctv errors."""


class CctvConfigError(CctvError):
    """Invalid or missing configuration."""


class CctvNotFoundError(CctvError):
    """No device or service matches the requested identity or position."""


class CctvInvalidArgumentError(CctvError):
    """An operation was called with an argument it can never accept."""


class CctvInvalidPositionError(CctvNotFoundError, CctvInvalidArgumentError):
    """Device position is zero or negative.

    Positions are 1-based, so such a position is both invalid and can
    never resolve to a device.  Callers may catch either parent class.
    """

    def __init__(self, position: int) -> None:
        self.position = position
        super().__init__(f"Device position must be >= 1, got {position}")


class CctvProtocolError(CctvError):
    """The protocol layer reported a non-success code."""

    def __init__(
        self,
        message: str,
        *,
        code: int | None = None,
        operation: str = "",
    ) -> None:
        self.code = code
        self.operation = operation
        super().__init__(message)


class CctvParseError(CctvError):
    """Malformed device description or event payload."""


class CctvTransportError(CctvError):
    """HTTP-level failure while fetching a description document."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        location: str = "",
    ) -> None:
        self.status_code = status_code
        self.location = location
        super().__init__(message)
