"""
=============================================================================
HTTP/1.0 RESPONSE BUILDING
=============================================================================

    HttpResponse(body, status, headers)
        │
        └── encode()
              │
              ▼
        HTTP/1.0 200 OK\r\n
        content-type: application/json\r\n
        date: Wed, 01 Jan 2026 12:00:00 GMT\r\n      ← added by encode()
        content-length: 12\r\n                       ← added by encode()
        \r\n
        {"error": 0}

HTTP/1.0 closes the connection after every response, so the body length
is strictly informational for the client. We still send it.

=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from .status_codes import HttpStatus


HTTP_VERSION = "HTTP/1.0"


@dataclass
class HttpResponse:
    """
    An HTTP response ready to be encoded.

    Header names are kept lower case, matching the ``date`` and
    ``content-length`` headers encode() adds.
    """

    body: bytes = b""
    status: HttpStatus = HttpStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def text(cls, content: str = "", status: HttpStatus = HttpStatus.OK) -> "HttpResponse":
        """A text/plain response."""
        return cls(
            body=content.encode("utf-8"),
            status=status,
            headers={"content-type": "text/plain; charset=utf-8"},
        )

    @classmethod
    def json(cls, data: Any, status: HttpStatus = HttpStatus.OK) -> "HttpResponse":
        """An application/json response from any JSON-serializable value."""
        return cls(
            body=json.dumps(data).encode("utf-8"),
            status=status,
            headers={"content-type": "application/json"},
        )

    @classmethod
    def error(cls, status: Union[HttpStatus, int], message: Optional[str] = None) -> "HttpResponse":
        """A plain-text error response; the reason phrase is the default body."""
        status = HttpStatus(status)
        return cls.text(message or status.phrase, status)

    @property
    def status_line(self) -> str:
        return f"{HTTP_VERSION} {self.status} {self.status.phrase}"

    def set_header(self, name: str, value: str) -> "HttpResponse":
        """Set a header, returning self for chaining."""
        self.headers[name.lower()] = value
        return self

    def encode(self, server_name: Optional[str] = None, include_body: bool = True) -> bytes:
        """
        Serialize to bytes for TcpSocket.send().

        Args:
            server_name: Value for the ``server`` header, omitted if None.
            include_body: False for HEAD requests: headers (including the
                          real content-length) without the body.
        """
        self.headers["date"] = format_http_date(datetime.now(timezone.utc))
        self.headers["content-length"] = str(len(self.body))
        if server_name:
            self.headers.setdefault("server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in self.headers.items())
        head = ("\r\n".join(lines) + "\r\n\r\n").encode("utf-8")

        if not include_body:
            return head
        return head + self.body


def format_http_date(dt: datetime) -> str:
    """
    Format a datetime as an HTTP-date: ``Wed, 01 Jan 2026 12:00:00 GMT``.

    Always GMT; the datetime should already be UTC.
    """
    days = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]
    months = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

    return (
        f"{days[dt.weekday()]}, "
        f"{dt.day:02d} {months[dt.month - 1]} {dt.year} "
        f"{dt.hour:02d}:{dt.minute:02d}:{dt.second:02d} GMT"
    )
