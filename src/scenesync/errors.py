"""Error taxonomy shared by the engine, the remote client and the scene flows."""

from __future__ import annotations


class SceneSyncError(Exception):
    """Base class for all scenesync errors."""


class ValidationError(SceneSyncError):
    """A document or user input is missing something a flow requires."""


class RemoteError(SceneSyncError):
    """Any failure talking to the bot API."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class AuthError(RemoteError):
    """The API rejected the credential (HTTP 401)."""

    def __init__(self, message: str = "Invalid API key or unauthorized access") -> None:
        super().__init__(message, status=401)


class ApiError(RemoteError):
    """Non-200 response other than 401."""


class TransportError(RemoteError):
    """Network failure, timeout or an undecodable response body."""
