"""
=============================================================================
HTTP/1.0 REQUEST PARSING
=============================================================================

Turns the raw bytes a peer sent into an HttpRequest.

    POST /api/v1/get?user=guest HTTP/1.0\r\n     ← request line
    Content-Type: application/json\r\n           ← headers
    Content-Length: 21\r\n
    \r\n                                         ← head/body separator
    {"content": "hello"}                         ← body

Only GET, POST and HEAD are understood. Header lines that don't look like
``Name: value`` are skipped rather than rejected.

=============================================================================
INCOMPLETE REQUESTS
=============================================================================

TCP delivers a stream, so a request may arrive in several chunks. When
Content-Length announces more body than we have, parse() returns None:
"not an error, just not finished". The caller keeps buffering and tries
again with more bytes.

=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


METHODS = ("GET", "POST", "HEAD")

_REQUEST_LINE = re.compile(r"^(GET|POST|HEAD) (.*) HTTP/([0-9.]+)$", re.IGNORECASE)
_HEADER_LINE = re.compile(r"^([a-zA-Z\-]+):\s(.*)$")

HEAD_SEPARATOR = b"\r\n\r\n"


class HttpParseError(Exception):
    """
    Raised when an HTTP request cannot be parsed.

    Carries the status code the server should answer with.
    """

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class URI:
    """
    A request target split into path segments and query parameters.

        URI("/api/v1/get?user=guest&feedback=none")
          .path        → ["api", "v1", "get"]
          .parameters  → {"user": "guest", "feedback": "none"}

    Query pairs without ``=`` are ignored. Values are not percent-decoded.
    """

    raw: str
    path: List[str] = field(init=False)
    parameters: Dict[str, str] = field(init=False)

    def __post_init__(self):
        resource, _, query = self.raw.partition("?")

        parameters = {}
        for expression in query.split("&"):
            key, equal, value = expression.partition("=")
            if equal:
                parameters[key] = value

        # Frozen dataclass: assign computed fields through object.__setattr__
        object.__setattr__(self, "path", [segment for segment in resource.split("/") if segment])
        object.__setattr__(self, "parameters", parameters)


@dataclass
class HttpRequest:
    """
    A parsed HTTP request.

    Attributes:
        method: "GET", "POST" or "HEAD" (always upper case).
        uri: The request target.
        version: Version number from the request line, e.g. "1.0".
        headers: Header names as sent, mapped to their values.
        body: Everything after the head separator.
    """

    method: str
    uri: URI
    version: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @classmethod
    def parse(cls, data: bytes) -> Optional["HttpRequest"]:
        """
        Parse raw request bytes.

        Returns:
            The request, or None if Content-Length says the body is
            still incomplete.

        Raises:
            HttpParseError: Empty input or malformed request line.
        """
        head_bytes, separator, body = data.partition(HEAD_SEPARATOR)
        if not separator:
            body = b""

        head = head_bytes.decode("utf-8", errors="replace")
        lines = [line.strip(" \t\r\n") for line in head.split("\r\n")]
        lines = [line for line in lines if line]
        if not lines:
            raise HttpParseError("Empty request")

        match = _REQUEST_LINE.match(lines[0])
        if match is None:
            raise HttpParseError(f"Malformed request line: {lines[0][:100]!r}")

        method, target, version = match.groups()

        headers = {}
        for line in lines[1:]:
            header = _HEADER_LINE.match(line)
            if header is not None:
                headers[header.group(1)] = header.group(2)

        request = cls(
            method=method.upper(),
            uri=URI(target),
            version=version,
            headers=headers,
            body=body,
        )

        expected = request.content_length
        if expected is not None and len(body) < expected:
            return None
        return request

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """Case-insensitive header lookup."""
        wanted = name.lower()
        for key, value in self.headers.items():
            if key.lower() == wanted:
                return value
        return default

    @property
    def content_length(self) -> Optional[int]:
        """Content-Length as an integer, None if missing or not a number."""
        value = self.header("Content-Length")
        if value is None:
            return None
        try:
            return int(value.strip())
        except ValueError:
            return None

    @property
    def content(self) -> Optional[str]:
        """The body as UTF-8 text, or None if it isn't valid UTF-8."""
        try:
            return self.body.decode("utf-8")
        except UnicodeDecodeError:
            return None

    @property
    def json(self) -> Any:
        """
        The body parsed as JSON.

        Raises:
            HttpParseError: Body is not valid JSON.
        """
        try:
            return json.loads(self.body.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise HttpParseError(f"Invalid JSON body: {e}")
