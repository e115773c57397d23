"""
=============================================================================
CORE: SOCKET ENDPOINT + SESSION CONTRACT
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                          TCP SOCKET                                  │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Listener: bind, listen, accept, owns the registered peers        │
    │  • Peer: one accepted connection, send/recv with a reusable buffer  │
    │  • Event loop: one thread, one readiness wait, many connections     │
    └─────────────────────────────────────────────────────────────────────┘
                                    │
                                    │ (descriptor, bytes)
                                    ▼
    ┌─────────────────────────────────────────────────────────────────────┐
    │                        SESSION HANDLER                               │
    │  ─────────────────────────────────────────────────────────────────  │
    │  • Supplied by the application, knows the protocol                  │
    │  • Returns bytes to send back, or Close to end the connection       │
    └─────────────────────────────────────────────────────────────────────┘
"""

from .endpoint import TcpSocket, ShutdownMethod, INVALID_DESCRIPTOR
from .session import Close, CLOSE, SessionHandler, SessionResult, echo

__all__ = [
    "TcpSocket",          # Listener / peer endpoint with the event loop
    "ShutdownMethod",     # READ / WRITE / BOTH for shutdown()
    "INVALID_DESCRIPTOR", # Descriptor of a closed endpoint
    "Close",              # Handler result: close (optionally with farewell)
    "CLOSE",              # Plain close sentinel
    "SessionHandler",     # Handler callable type
    "SessionResult",      # bytes | Close
    "echo",               # Reference echo handler
]
