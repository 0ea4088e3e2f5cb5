"""Custom exception hierarchy for pyhighscore."""

from __future__ import annotations


class HighscoreError(Exception):
    """Base exception for all pyhighscore errors."""


class HighscoreConfigError(HighscoreError):
    """Invalid or missing configuration."""


class HighscoreTransportError(HighscoreError):
    """HTTP-level failure talking to the device (network, non-200, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class HighscoreNetworkError(HighscoreTransportError):
    """The device could not be reached (refused, unreachable, reset)."""


class HighscoreTimeoutError(HighscoreNetworkError):
    """The request did not complete within its timeout."""


class HighscoreResponseError(HighscoreTransportError):
    """The device answered, but the body was not the expected JSON shape.

    Handled exactly like a network failure: nothing from the body is applied.
    """
