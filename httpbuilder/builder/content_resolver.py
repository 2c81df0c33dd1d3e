"""
httpbuilder/builder/content_resolver.py

WHAT THIS FILE IS FOR
---------------------
This module defines the *single canonical rule* for choosing the request
payload from the builder's accumulated state.

PAYLOAD SELECTION RULE
----------------------
Evaluated in order, first match wins:

1) method is GET               -> no payload (everything else ignored)
2) any multipart field added   -> multipart/form-data, fields in insertion order
3) encoded form set            -> application/x-www-form-urlencoded
4) otherwise                   -> raw body encoded with the configured
                                  encoding, tagged with the media type
                                  (text/plain when none was set) plus the
                                  IANA charset label of the encoding

Only GET suppresses the payload. HEAD/DELETE/OPTIONS still carry whatever
was configured.

WHAT THIS FILE IS NOT FOR
-------------------------
This module MUST NOT:
- Validate builder arguments (the builder does that eagerly)
- Perform I/O or logging
- Produce the multipart wire bytes (httpx renders those at send time)

It performs **pure, deterministic mapping only**.
"""

from __future__ import annotations

import codecs
import enum
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode

DEFAULT_MEDIA_TYPE = "text/plain"
MULTIPART_PART_CONTENT_TYPE = "text/plain; charset=utf-8"
URLENCODED_CONTENT_TYPE = "application/x-www-form-urlencoded"

Pairs = Tuple[Tuple[str, str], ...]


class ContentKind(str, enum.Enum):
    NONE = "none"
    MULTIPART = "multipart"
    URLENCODED = "urlencoded"
    TEXT = "text"


@dataclass(frozen=True)
class ResolvedContent:
    """
    Payload chosen for a request.

    - NONE:       nothing else is set
    - MULTIPART:  `fields` holds the (name, value) parts; the boundary and
                  Content-Type are generated by httpx
    - URLENCODED: `data` + `content_type`
    - TEXT:       `data` + `content_type`
    """

    kind: ContentKind
    fields: Pairs = ()
    data: Optional[bytes] = None
    content_type: Optional[str] = None

    def to_httpx_kwargs(self) -> Dict[str, Any]:
        """Keyword arguments for `httpx.Request(...)` carrying this payload."""
        if self.kind is ContentKind.NONE:
            return {}
        if self.kind is ContentKind.MULTIPART:
            # (None, value, type) -> form-data part without filename
            return {
                "files": [
                    (name, (None, value, MULTIPART_PART_CONTENT_TYPE))
                    for name, value in self.fields
                ]
            }
        return {"content": self.data}

    def default_headers(self) -> Dict[str, str]:
        if self.content_type is None:
            return {}
        return {"Content-Type": self.content_type}


_IANA_CHARSET_ALIASES = {
    "ascii": "us-ascii",
    "utf-16-le": "utf-16le",
    "utf-16-be": "utf-16be",
    "utf-32-le": "utf-32le",
    "utf-32-be": "utf-32be",
    "euc_jp": "euc-jp",
    "euc_kr": "euc-kr",
    "koi8_r": "koi8-r",
    "koi8_u": "koi8-u",
}


def charset_label(encoding: str) -> str:
    """
    IANA charset label for a Python codec name.

        charset_label("latin-1") -> "iso-8859-1"
        charset_label("cp1252")  -> "windows-1252"
        charset_label("UTF8")    -> "utf-8"
    """
    name = codecs.lookup(encoding).name
    if name.startswith("iso8859-"):
        return "iso-8859-" + name[len("iso8859-"):]
    if name.startswith("cp125"):
        return "windows-" + name[len("cp"):]
    return _IANA_CHARSET_ALIASES.get(name, name)


def build_text_content_type(media_type: Optional[str], charset: str) -> str:
    """
    "<media_type>; charset=<charset>", keeping a caller-supplied charset.

        build_text_content_type(None, "utf-8")
        -> "text/plain; charset=utf-8"
        build_text_content_type("application/json; charset=latin-1", "utf-8")
        -> "application/json; charset=latin-1"
    """
    base = media_type or DEFAULT_MEDIA_TYPE
    params = [p.strip().lower() for p in base.split(";")[1:]]
    if any(p.startswith("charset=") for p in params):
        return base
    return f"{base}; charset={charset}"


def resolve_content(
    *,
    method: str,
    body: str,
    media_type: Optional[str],
    encoding: str,
    form_fields: Sequence[Tuple[str, str]],
    encoded_form: Optional[Sequence[Tuple[str, str]]],
) -> ResolvedContent:
    if method == "GET":
        return ResolvedContent(kind=ContentKind.NONE)

    if form_fields:
        return ResolvedContent(kind=ContentKind.MULTIPART, fields=tuple(form_fields))

    if encoded_form is not None:
        return ResolvedContent(
            kind=ContentKind.URLENCODED,
            data=urlencode(list(encoded_form)).encode("ascii"),
            content_type=URLENCODED_CONTENT_TYPE,
        )

    return ResolvedContent(
        kind=ContentKind.TEXT,
        data=body.encode(encoding),
        content_type=build_text_content_type(media_type, charset_label(encoding)),
    )
