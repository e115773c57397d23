"""
=============================================================================
HTTP STATUS CODES
=============================================================================

The status codes the HTTP/1.0 server can produce, with reason phrases.

    ┌────────┬───────────────────────────────────────────────────────────┐
    │  2xx   │ SUCCESS: the delegate produced a response                 │
    │  4xx   │ CLIENT ERROR: unparseable request, too large, no answer   │
    │  5xx   │ SERVER ERROR: the delegate raised                         │
    └────────┴───────────────────────────────────────────────────────────┘

=============================================================================
"""

from enum import IntEnum


class HttpStatus(IntEnum):
    """
    HTTP status codes.

    IntEnum so a status compares equal to its number:

        HttpStatus.OK == 200           # True
        f"{HttpStatus.NOT_FOUND}"      # "404"
    """

    # 2xx Success
    OK = 200

    # 4xx Client Errors
    BAD_REQUEST = 400
    NOT_FOUND = 404
    PAYLOAD_TOO_LARGE = 413

    # 5xx Server Errors
    INTERNAL_SERVER_ERROR = 500

    def __str__(self) -> str:
        return str(self.value)

    @property
    def phrase(self) -> str:
        """Reason phrase, as in ``HTTP/1.0 404 Not Found``."""
        return _STATUS_PHRASES.get(self, "Unknown")

    @property
    def is_success(self) -> bool:
        return 200 <= self < 300

    @property
    def is_error(self) -> bool:
        return self >= 400


_STATUS_PHRASES = {
    HttpStatus.OK: "OK",
    HttpStatus.BAD_REQUEST: "Bad Request",
    HttpStatus.NOT_FOUND: "Not Found",
    HttpStatus.PAYLOAD_TOO_LARGE: "Payload Too Large",
    HttpStatus.INTERNAL_SERVER_ERROR: "Internal Server Error",
}
