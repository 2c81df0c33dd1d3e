"""
httpbuilder/utils/errors.py

WHAT THIS FILE IS FOR
---------------------
This module defines the exception taxonomy shared by the request builder
and the shared HTTP client.

There are exactly two failure families:

- Invalid configuration
    Raised synchronously by the builder call that received the bad value
    (absent/blank argument, non-positive timeout, non-http(s) URL).
    Never deferred to send time.

- Request failure
    Raised by `RequestBuilder.send()` when the transport fails or the
    deadline expires. The original exception is always chained as
    `__cause__`.

ERROR HIERARCHY
---------------
    HttpBuilderError
    ├── InvalidRequestConfigurationError   (also a ValueError)
    └── RequestFailedError                 (also a RuntimeError)
        ├── RequestTimeoutError
        └── RequestTransportError

Callers that only care whether the request worked catch
`RequestFailedError`. Callers that need to decide whether a retry is
safe can catch the two subclasses separately.

WHAT THIS FILE IS NOT FOR
-------------------------
- HTTP status handling (a 4xx/5xx response is a response, not an error)
- Retry decisions
"""

from __future__ import annotations

from typing import Optional

REQUEST_FAILED_MESSAGE = "HTTP request failed."


class HttpBuilderError(Exception):
    """Base class for every error raised by httpbuilder."""


class InvalidRequestConfigurationError(HttpBuilderError, ValueError):
    """
    A builder argument was absent, blank or out of range.

    `field` names the offending argument (e.g. "url", "timeout_ms").
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class RequestFailedError(HttpBuilderError, RuntimeError):
    """The request did not produce a response."""

    def __init__(self, message: str = REQUEST_FAILED_MESSAGE, *, method: Optional[str] = None, url: Optional[str] = None) -> None:
        super().__init__(message)
        self.method = method
        self.url = url


class RequestTimeoutError(RequestFailedError):
    """The configured deadline expired before a response was obtained."""


class RequestTransportError(RequestFailedError):
    """Connection, protocol or other transport-level failure."""
