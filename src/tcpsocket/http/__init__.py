"""
=============================================================================
HTTP/1.0 ON TOP OF THE SOCKET ENDPOINT
=============================================================================

    request.py       Raw bytes → HttpRequest (+ URI)
    response.py      HttpResponse → raw bytes
    status_codes.py  HttpStatus enum with reason phrases
    server.py        HttpServer: a TcpSocket whose handler speaks HTTP/1.0

Message framing lives entirely here; the event loop only moves bytes.

=============================================================================
"""

from .status_codes import HttpStatus
from .request import HttpRequest, HttpParseError, URI
from .response import HttpResponse, format_http_date
from .server import HttpServer, HttpServerDelegate

__all__ = [
    "HttpStatus",
    "HttpRequest",
    "HttpParseError",
    "URI",
    "HttpResponse",
    "format_http_date",
    "HttpServer",
    "HttpServerDelegate",
]
