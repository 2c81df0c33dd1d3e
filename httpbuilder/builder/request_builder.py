"""
httpbuilder/builder/request_builder.py

WHAT THIS FILE IS FOR
---------------------
This module provides `RequestBuilder`, a fluent, chainable surface for
configuring ONE outbound HTTP request and dispatching it asynchronously
through a shared `httpx.AsyncClient`.

    response = await (
        RequestBuilder.create("https://api.example.com/items", client=client)
        .set_method("POST")
        .set_body('{"name": "x"}')
        .set_media_type("application/json")
        .set_bearer_auth(token)
        .set_timeout(5000)
        .send()
    )

LIFECYCLE
---------
- Created with an absolute http/https URL and an injected client
- Mutated only through its own setters (each returns the same builder)
- `build()` freezes the accumulated state into an immutable
  `PreparedRequest`; `send()` builds and dispatches it
- Calling `send()` twice resends the same configuration

VALIDATION
----------
Every setter validates eagerly and raises
`InvalidRequestConfigurationError` at the offending call. Nothing is
deferred to send time.

SEND / FAILURE SEMANTICS
------------------------
- The timeout is a deadline around the whole call (`anyio.fail_after`)
- Deadline expiry / httpx timeouts      -> RequestTimeoutError
- Any other httpx.RequestError          -> RequestTransportError
- Both are RequestFailedError and chain the original exception
- No retries. Non-2xx responses are returned, not raised.

WHAT THIS FILE IS NOT FOR
-------------------------
- Owning or closing the HTTP client (see utils/http_client.py)
- Parsing or interpreting response bodies
- Choosing the payload shape (see content_resolver.py)
"""

from __future__ import annotations

import base64
import codecs
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

import anyio
import httpx
import structlog

from httpbuilder.builder.content_resolver import ResolvedContent, resolve_content
from httpbuilder.utils.errors import (
    InvalidRequestConfigurationError,
    RequestTimeoutError,
    RequestTransportError,
)
from httpbuilder.utils.settings import DEFAULT_TIMEOUT_MS

logger = structlog.get_logger(__name__)

AUTHORIZATION_HEADER = "Authorization"
ALLOWED_SCHEMES = ("http", "https")

# RFC 7230 token (header names and methods)
_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")

URLTypes = Union[str, httpx.URL]
FormValues = Union[Mapping[str, Any], Iterable[Tuple[str, Any]]]


@dataclass(frozen=True)
class PreparedRequest:
    """Immutable snapshot of a builder, ready to be sent."""

    method: str
    url: httpx.URL
    headers: Tuple[Tuple[str, str], ...]
    content: ResolvedContent
    timeout_ms: int

    def httpx_kwargs(self) -> Dict[str, Any]:
        # Explicit headers win over the payload's default Content-Type
        headers = httpx.Headers(self.content.default_headers())
        headers.update(httpx.Headers(list(self.headers)))
        return {
            "method": self.method,
            "url": self.url,
            "headers": headers,
            **self.content.to_httpx_kwargs(),
        }

    def to_httpx_request(self, client: Optional[httpx.AsyncClient] = None) -> httpx.Request:
        """
        Standalone httpx.Request, or one built by `client` so the client's
        default headers (User-Agent, ...) apply underneath ours.
        """
        if client is not None:
            return client.build_request(**self.httpx_kwargs())
        return httpx.Request(**self.httpx_kwargs())


# ---------------------------------------------------------------------- #
# Argument checks
# ---------------------------------------------------------------------- #
def _require_text(field: str, value: Any) -> str:
    if value is None:
        raise InvalidRequestConfigurationError(field, "cannot be None.")
    if not isinstance(value, str):
        raise InvalidRequestConfigurationError(field, f"must be a string, got {type(value).__name__}.")
    return value


def _require_non_blank(field: str, value: Any) -> str:
    value = _require_text(field, value)
    if not value.strip():
        raise InvalidRequestConfigurationError(field, "cannot be empty.")
    return value


def _require_header_name(name: Any) -> str:
    name = _require_non_blank("name", name)
    if not _TOKEN_RE.fullmatch(name):
        raise InvalidRequestConfigurationError("name", f"{name!r} is not a valid header name.")
    return name


def _require_header_value(value: Any, field: str = "value") -> str:
    value = _require_text(field, value)
    if "\r" in value or "\n" in value or "\x00" in value:
        raise InvalidRequestConfigurationError(field, "header values cannot contain CR, LF or NUL.")
    if not value.isascii():
        raise InvalidRequestConfigurationError(field, "header values must be ASCII.")
    return value


def _parse_url(url: Any) -> httpx.URL:
    if url is None:
        raise InvalidRequestConfigurationError("url", "cannot be None.")
    if not isinstance(url, (str, httpx.URL)):
        raise InvalidRequestConfigurationError("url", f"must be a string or httpx.URL, got {type(url).__name__}.")

    try:
        parsed = httpx.URL(url)
    except httpx.InvalidURL as exc:
        raise InvalidRequestConfigurationError("url", f"is not a valid URL ({exc}).") from exc

    if parsed.scheme not in ALLOWED_SCHEMES:
        raise InvalidRequestConfigurationError("url", "URI has to be accessed through HTTP or HTTPS only.")
    if not parsed.host:
        raise InvalidRequestConfigurationError("url", "must be an absolute URL with a host.")
    return parsed


def _validate_timeout(timeout_ms: Any) -> int:
    # bool is an int subclass; True is not a timeout
    if isinstance(timeout_ms, bool) or not isinstance(timeout_ms, int):
        raise InvalidRequestConfigurationError("timeout_ms", "must be an integer number of milliseconds.")
    if timeout_ms <= 0:
        raise InvalidRequestConfigurationError("timeout_ms", "Timeout value cannot be negative or zero.")
    return timeout_ms


class RequestBuilder:
    """
    Mutable builder for a single outbound request.

    Defaults: GET, empty body, utf-8, 20000 ms timeout.
    """

    def __init__(
        self,
        url: URLTypes,
        *,
        client: httpx.AsyncClient,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> None:
        self._url = _parse_url(url)
        if client is None:
            raise InvalidRequestConfigurationError("client", "cannot be None.")
        self._client = client

        self._method = "GET"
        self._body = ""
        self._media_type: Optional[str] = None
        self._encoding = "utf-8"
        self._headers = httpx.Headers()
        self._form_fields: List[Tuple[str, str]] = []
        self._encoded_form: Optional[Tuple[Tuple[str, str], ...]] = None
        self._timeout_ms = _validate_timeout(timeout_ms)

    @classmethod
    def create(
        cls,
        url: URLTypes,
        *,
        client: httpx.AsyncClient,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
    ) -> "RequestBuilder":
        return cls(url, client=client, timeout_ms=timeout_ms)

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #
    @property
    def url(self) -> httpx.URL:
        return self._url

    @property
    def method(self) -> str:
        return self._method

    @property
    def headers(self) -> httpx.Headers:
        """A copy; mutate through set_header()."""
        return self._headers.copy()

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    # ------------------------------------------------------------------ #
    # Setters
    # ------------------------------------------------------------------ #
    def set_method(self, method: str) -> "RequestBuilder":
        """Accepts any verb string (or http.HTTPMethod); stored upper-cased."""
        method = _require_non_blank("method", method).strip().upper()
        if not _TOKEN_RE.fullmatch(method):
            raise InvalidRequestConfigurationError("method", f"{method!r} is not a valid HTTP method.")
        self._method = method
        return self

    def set_body(self, body: str) -> "RequestBuilder":
        self._body = _require_text("body", body)
        return self

    def set_media_type(self, media_type: str) -> "RequestBuilder":
        media_type = _require_non_blank("media_type", media_type).strip()
        self._media_type = _require_header_value(media_type, "media_type")
        return self

    def set_encoding(self, encoding: str) -> "RequestBuilder":
        """
        Body encoding, given as a Python codec name ("utf-8", "latin-1", ...).

        Its IANA label (latin-1 -> iso-8859-1) becomes the Content-Type charset.
        """
        encoding = _require_non_blank("encoding", encoding).strip()
        try:
            codecs.lookup(encoding)
        except LookupError as exc:
            raise InvalidRequestConfigurationError("encoding", f"unknown encoding {encoding!r}.") from exc
        # rot13, base64, hex, ... are codecs but not str -> bytes encodings
        try:
            "".encode(encoding)
        except LookupError as exc:
            raise InvalidRequestConfigurationError("encoding", f"{encoding!r} is not a text encoding.") from exc
        self._encoding = encoding
        return self

    def add_form_field(self, name: str, value: str) -> "RequestBuilder":
        """
        Append a multipart/form-data field.

        The first call switches the payload to multipart; later calls keep
        appending in order. Multipart wins over set_encoded_form().
        """
        name = _require_non_blank("name", name)
        value = _require_text("value", value)
        self._form_fields.append((name, value))
        return self

    def set_encoded_form(self, values: FormValues) -> "RequestBuilder":
        """
        Replace the application/x-www-form-urlencoded payload wholesale.

        `values` is a mapping or an iterable of (key, value) pairs; pair
        order and duplicate keys are kept.
        """
        if values is None:
            raise InvalidRequestConfigurationError("values", "cannot be None.")

        if isinstance(values, (str, bytes)):
            raise InvalidRequestConfigurationError("values", "must be a mapping or (key, value) pairs.")

        try:
            items = iter(values.items() if isinstance(values, Mapping) else values)
        except TypeError as exc:
            raise InvalidRequestConfigurationError("values", "must be a mapping or (key, value) pairs.") from exc

        pairs: List[Tuple[str, str]] = []
        for item in items:
            try:
                key, value = item
            except (TypeError, ValueError) as exc:
                raise InvalidRequestConfigurationError("values", "must be a mapping or (key, value) pairs.") from exc
            if key is None or value is None:
                raise InvalidRequestConfigurationError("values", "keys and values cannot be None.")
            pairs.append((str(key), str(value)))

        self._encoded_form = tuple(pairs)
        return self

    def set_header(self, name: str, value: str) -> "RequestBuilder":
        """Set a header, replacing any existing one with the same name (any case)."""
        name = _require_header_name(name)
        value = _require_header_value(value)
        self._replace_header(name, value)
        return self

    def set_basic_auth(self, username: str, password: str) -> "RequestBuilder":
        username = _require_text("username", username)
        password = _require_text("password", password)

        try:
            raw = f"{username}:{password}".encode("latin-1")
        except UnicodeEncodeError as exc:
            raise InvalidRequestConfigurationError(
                "credentials", "username and password must be representable in ISO-8859-1."
            ) from exc

        token = base64.b64encode(raw).decode("ascii")
        self._replace_header(AUTHORIZATION_HEADER, f"Basic {token}")
        return self

    def set_bearer_auth(self, token: str) -> "RequestBuilder":
        token = _require_header_value(_require_non_blank("token", token), "token")
        self._replace_header(AUTHORIZATION_HEADER, f"Bearer {token}")
        return self

    def set_timeout(self, timeout_ms: int) -> "RequestBuilder":
        self._timeout_ms = _validate_timeout(timeout_ms)
        return self

    # ------------------------------------------------------------------ #
    # Terminal operations
    # ------------------------------------------------------------------ #
    def build(self) -> PreparedRequest:
        """Freeze the current configuration into an immutable PreparedRequest."""
        try:
            content = resolve_content(
                method=self._method,
                body=self._body,
                media_type=self._media_type,
                encoding=self._encoding,
                form_fields=self._form_fields,
                encoded_form=self._encoded_form,
            )
        except UnicodeEncodeError as exc:
            raise InvalidRequestConfigurationError(
                "body", f"cannot be encoded with {self._encoding!r}."
            ) from exc

        return PreparedRequest(
            method=self._method,
            url=self._url,
            # raw keeps the caller's header-name casing
            headers=tuple(
                (key.decode(self._headers.encoding), value.decode(self._headers.encoding))
                for key, value in self._headers.raw
            ),
            content=content,
            timeout_ms=self._timeout_ms,
        )

    async def send(self, *, stream: bool = False) -> httpx.Response:
        """
        Build and dispatch the request under the configured deadline.

        With stream=True the response body is not read; the caller must
        close the response (`await response.aclose()`).
        """
        prepared = self.build()
        request = prepared.to_httpx_request(self._client)

        log = logger.bind(
            method=prepared.method,
            host=prepared.url.host,
            path=prepared.url.path,
            timeout_ms=prepared.timeout_ms,
        )
        log.info("http_request_sending", content_kind=prepared.content.kind.value)

        started = time.perf_counter()
        try:
            with anyio.fail_after(prepared.timeout_ms / 1000):
                response = await self._client.send(request, stream=stream)
        except (TimeoutError, httpx.TimeoutException) as exc:
            log.warning(
                "http_request_failed",
                reason="timeout",
                error_type=type(exc).__name__,
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise RequestTimeoutError(method=prepared.method, url=str(prepared.url)) from exc
        except httpx.RequestError as exc:
            log.warning(
                "http_request_failed",
                reason="transport",
                error_type=type(exc).__name__,
                error=str(exc),
                elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
            )
            raise RequestTransportError(method=prepared.method, url=str(prepared.url)) from exc

        log.info(
            "http_request_completed",
            status_code=response.status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000, 1),
        )
        return response

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #
    def _replace_header(self, name: str, value: str) -> None:
        if name in self._headers:
            del self._headers[name]
        self._headers[name] = value

    def __repr__(self) -> str:
        return f"RequestBuilder(method={self._method!r}, url={str(self._url)!r}, timeout_ms={self._timeout_ms})"
