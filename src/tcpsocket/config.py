"""
=============================================================================
SOCKET CONFIGURATION
=============================================================================

Centralized configuration for a listening endpoint and the servers built
on top of it.

=============================================================================
CONFIGURATION SOURCES
=============================================================================

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Priority (highest to lowest):                                     │
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m tcpsocket --port 3000                           │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── TCPSOCKET_PORT=3000 python -m tcpsocket                   │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Validate eagerly at startup, not lazily at first use: a bad port should
fail before anything binds, not hours later.

=============================================================================
"""

import os
from dataclasses import dataclass
from typing import Optional


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class SocketConfig:
    """
    Configuration for a listening TCP endpoint.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK SETTINGS
    - host, port, backlog, reuse

    EVENT LOOP
    - timeout, buffer_size, send_timeout

    HTTP SETTINGS
    - max_request_size, server_name

    LOGGING
    - log_level, log_file

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """
    The IP address to bind to.
    - "127.0.0.1" - Localhost only (development)
    - "0.0.0.0" - All network interfaces
    """

    port: int = 8181
    """Port to listen on. 0 lets the OS pick a free ephemeral port."""

    backlog: int = 128
    """Connections the OS queues before refusing new ones."""

    reuse: bool = True
    """Set SO_REUSEADDR before binding so restarts don't hit TIME_WAIT."""

    # ─────────────────────────────────────────────────────────────────────
    # EVENT LOOP
    # ─────────────────────────────────────────────────────────────────────

    timeout: int = 1
    """
    Readiness wait per loop iteration, in whole seconds.
    This is how long terminate() may take to be noticed, not a
    per-connection timeout.
    """

    buffer_size: int = 8192
    """Bytes read per recv() into each endpoint's reusable buffer."""

    send_timeout: float = 30.0
    """How long send() waits for a peer that stopped reading."""

    # ─────────────────────────────────────────────────────────────────────
    # HTTP SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    max_request_size: int = 10 * 1024 * 1024  # 10 MB
    """Largest request the HTTP server buffers before answering 413."""

    server_name: str = "TcpSocket/1.0"
    """Value of the Server header sent by the HTTP server."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"
    """DEBUG shows every connect/disconnect, INFO only lifecycle."""

    log_file: Optional[str] = None
    """Error-log sink path. None = events go only to the stderr log handler."""

    @classmethod
    def from_env(cls) -> "SocketConfig":
        """
        Create configuration from environment variables.

        TCPSOCKET_HOST         Bind host (default: 127.0.0.1)
        TCPSOCKET_PORT         Bind port (default: 8181)
        TCPSOCKET_TIMEOUT      Readiness wait in seconds (default: 1)
        TCPSOCKET_BUFFER_SIZE  Receive buffer size (default: 8192)
        TCPSOCKET_LOG_LEVEL    Logging level (default: INFO)
        TCPSOCKET_LOG_FILE     Error-log file (default: stderr)
        """
        return cls(
            host=os.getenv("TCPSOCKET_HOST", "127.0.0.1"),
            port=int(os.getenv("TCPSOCKET_PORT", "8181")),
            timeout=int(os.getenv("TCPSOCKET_TIMEOUT", "1")),
            buffer_size=int(os.getenv("TCPSOCKET_BUFFER_SIZE", "8192")),
            log_level=os.getenv("TCPSOCKET_LOG_LEVEL", "INFO"),
            log_file=os.getenv("TCPSOCKET_LOG_FILE"),
        )

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: On the first invalid value found.
        """
        if not 0 <= self.port < 65536:
            raise ValueError(f"Invalid port: {self.port}. Must be 0-65535.")

        if self.backlog < 1:
            raise ValueError("backlog must be >= 1")

        if self.timeout < 0:
            raise ValueError("timeout must be >= 0")

        if self.buffer_size < 1:
            raise ValueError("buffer_size must be >= 1")

        if self.send_timeout <= 0:
            raise ValueError("send_timeout must be > 0")

        if self.max_request_size < 1:
            raise ValueError("max_request_size must be >= 1")

        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
