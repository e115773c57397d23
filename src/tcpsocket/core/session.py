"""
=============================================================================
SESSION HANDLER CONTRACT
=============================================================================

The event loop knows nothing about the protocol spoken on a connection.
For every chunk of bytes a peer sends, it asks a SESSION HANDLER what to
do next:

    handler(descriptor, data)  ──►  bytes   "send this back, keep going"
                               ──►  Close   "we're done with this peer"

    ┌─────────────────────────────────────────────────────────────────────┐
    │                      HANDLER RETURN VALUES                          │
    ├──────────────────────────┬──────────────────────────────────────────┤
    │ b"pong"                  │ Send b"pong", connection stays open      │
    │ b""                      │ Send nothing, connection STAYS OPEN      │
    │                          │ (e.g. request not complete yet)          │
    │ CLOSE                    │ Send nothing, close the connection       │
    │ Close(farewell=b"bye")   │ Send b"bye", then close the connection   │
    └──────────────────────────┴──────────────────────────────────────────┘

WHY NOT "EMPTY MEANS CLOSE"?
────────────────────────────

An empty response is a perfectly normal answer: a handler that buffers a
partial message has nothing to say yet, but certainly doesn't want the
connection dropped. So closing is an explicit, separate value (a tagged
result) instead of an overloaded empty byte string.

Any callable works as a handler: a plain function, a bound method, a
lambda, or an object with __call__ that keeps state between calls.

=============================================================================
"""

from dataclasses import dataclass
from typing import Callable, Union


@dataclass(frozen=True)
class Close:
    """
    Handler result asking the event loop to close the connection.

    Attributes:
        farewell: Final bytes sent before the connection is closed.
                  Empty (the default) means nothing is sent.
    """

    farewell: bytes = b""


CLOSE = Close()
"""The plain close sentinel: send nothing more, close the connection."""


SessionResult = Union[bytes, Close]

SessionHandler = Callable[[int, bytes], SessionResult]
"""(descriptor, received bytes) -> bytes to send back, or a Close."""


def echo(descriptor: int, data: bytes) -> SessionResult:
    """
    Echo handler: send every chunk straight back.

    Closes the connection when the peer sends ``quit`` (surrounding
    whitespace ignored).
    """
    if data.strip() == b"quit":
        return CLOSE
    return data
