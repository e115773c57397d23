"""
=============================================================================
TCPSOCKET - Single-Threaded TCP Server Endpoint
=============================================================================

One class, TcpSocket, is both the listening socket and every accepted
connection. A listener runs an event loop that serves any number of
clients from ONE thread: no thread per connection, no locks.

=============================================================================
PACKAGE STRUCTURE
=============================================================================

    tcpsocket/
    ├── __init__.py          # This file - package exports
    ├── __main__.py          # CLI entry point (python -m tcpsocket)
    ├── config.py            # SocketConfig dataclass
    ├── errors.py            # Exception hierarchy
    ├── logs.py              # Logging setup
    ├── core/
    │   ├── endpoint.py      # TcpSocket + event loop
    │   └── session.py       # Session handler contract (bytes | Close)
    └── http/                # HTTP/1.0 built on the endpoint
        ├── request.py
        ├── response.py
        ├── status_codes.py
        └── server.py

=============================================================================
QUICK START
=============================================================================

    from tcpsocket import TcpSocket, CLOSE

    def handler(descriptor: int, data: bytes):
        if data.strip() == b"quit":
            return CLOSE          # Close this connection
        return data               # Echo everything else

    with TcpSocket() as server:
        server.reuse()
        server.bind("127.0.0.1", 8181)
        server.listen()
        server.run(1, handler)    # Blocks until server.terminate()

=============================================================================
"""

__version__ = "1.0.0"

from .config import SocketConfig
from .core import (
    CLOSE,
    INVALID_DESCRIPTOR,
    Close,
    SessionHandler,
    ShutdownMethod,
    TcpSocket,
    echo,
)
from .errors import (
    BindError,
    ListenError,
    ListenerError,
    NoPendingConnection,
    ReadError,
    TcpSocketError,
    WouldBlock,
    WriteError,
)

__all__ = [
    "TcpSocket",
    "ShutdownMethod",
    "INVALID_DESCRIPTOR",
    "Close",
    "CLOSE",
    "SessionHandler",
    "echo",
    "SocketConfig",
    "TcpSocketError",
    "BindError",
    "ListenError",
    "ListenerError",
    "NoPendingConnection",
    "WouldBlock",
    "ReadError",
    "WriteError",
    "__version__",
]
