"""
=============================================================================
SOCKET ERRORS
=============================================================================

Every failure the socket endpoint can report, grouped by who has to care.

=============================================================================
ERROR TAXONOMY
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        WHO HANDLES WHAT?                            │
    ├──────────────────────┬──────────────────────────────────────────────┤
    │ SETUP                │ BindError, ListenError                       │
    │                      │ └── Abort startup, the caller must fix it    │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ TRANSIENT            │ NoPendingConnection, WouldBlock              │
    │                      │ └── Not really errors: "nothing this tick"   │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ PER-CONNECTION       │ ReadError, WriteError                        │
    │                      │ └── Drop that one peer, keep serving others  │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ LISTENER-FATAL       │ ListenerError                                │
    │                      │ └── Clean all peers, leave the event loop,   │
    │                      │     re-raise from run()                      │
    └──────────────────────┴──────────────────────────────────────────────┘

All of them derive from TcpSocketError, so an embedding application can
catch the whole family with one except clause. The underlying OSError is
kept as __cause__ (raise ... from e) and its errno is copied onto the
exception for logging.

=============================================================================
"""

from typing import Optional


class TcpSocketError(Exception):
    """
    Base class for all socket endpoint errors.

    Carries the errno of the OS error that caused it (if any) so log
    lines can show the exact failure without digging into __cause__.
    """

    def __init__(self, message: str, errno: Optional[int] = None):
        super().__init__(message)
        self.errno = errno


# ─────────────────────────────────────────────────────────────────────────
# SETUP ERRORS
# ─────────────────────────────────────────────────────────────────────────

class BindError(TcpSocketError):
    """
    Raised when bind() fails.

    Typical causes: address already in use (call reuse() first if the old
    socket is only lingering in TIME_WAIT), invalid host, privileged port.
    """

    def __init__(self, message: str, address: tuple = (), errno: Optional[int] = None):
        super().__init__(message, errno)
        self.address = address


class ListenError(TcpSocketError):
    """Raised when listen()/accept() is used on an endpoint in the wrong state."""


# ─────────────────────────────────────────────────────────────────────────
# TRANSIENT CONDITIONS
# ─────────────────────────────────────────────────────────────────────────

class NoPendingConnection(TcpSocketError):
    """accept() found an empty queue. Expected in non-blocking mode."""


class WouldBlock(TcpSocketError):
    """A non-blocking read found no data yet. Distinct from an orderly close."""


# ─────────────────────────────────────────────────────────────────────────
# PER-CONNECTION ERRORS
# ─────────────────────────────────────────────────────────────────────────

class ReadError(TcpSocketError):
    """The peer's transport failed while reading (reset, aborted, ...)."""


class WriteError(TcpSocketError):
    """The peer's transport failed while writing (broken pipe, reset, ...)."""


# ─────────────────────────────────────────────────────────────────────────
# LISTENER-FATAL
# ─────────────────────────────────────────────────────────────────────────

class ListenerError(TcpSocketError):
    """
    The listening descriptor itself is unusable.

    This is the only error that escapes TcpSocket.run(); by the time it
    is raised every peer has already been cleaned up.
    """
