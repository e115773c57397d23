"""
=============================================================================
TCP SOCKET ENDPOINT + SINGLE-THREADED EVENT LOOP
=============================================================================

One class, two roles:

    LISTENER   Bound to IP:PORT, accepts connections, owns its peers,
               runs the event loop.
    PEER       One accepted connection. Created only by the listener's
               accept(), destroyed by the listener's discard().

=============================================================================
ONE THREAD, MANY CONNECTIONS
=============================================================================

A thread-per-connection server parks a thread in recv() for every client.
Here there is exactly ONE thread, and it never blocks on a single client.
Instead it asks the OS "which of these sockets have something for me?"
and only touches those:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                        EVENT LOOP ITERATION                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. readiness set = listener + every registered peer               │
    │                                                                      │
    │   2. selector.select(timeout)    ◄── the ONLY place we wait          │
    │         │                                                            │
    │         ├── nothing ready? timeout is not an error, loop again       │
    │         │                                                            │
    │   3.    ├── listener ready ──► accept() until NoPendingConnection    │
    │         │                        └── new peer joins the set          │
    │         │                                                            │
    │   4.    └── peer ready ──► recv()                                    │
    │                  ├── 0 bytes / ReadError ──► discard(peer)           │
    │                  └── data ──► handler(descriptor, data)              │
    │                                 ├── bytes ──► send() back            │
    │                                 └── Close ──► farewell, discard      │
    │                                                                      │
    │   5. terminate() called? ──► clean() and leave                      │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Every socket in the loop is NON-BLOCKING (see unblock()). A blocking
recv() on one quiet client would freeze every other client.

=============================================================================
OWNERSHIP
=============================================================================

    listener ──owns──► { descriptor: peer, descriptor: peer, ... }

Peers don't know about the listener or each other. A peer leaves the
registry only through discard() (which also closes it) or clean() (which
discards everyone). Closing the listener cleans its peers first.

=============================================================================
"""

import errno
import logging
import selectors
import socket
import time
from enum import IntEnum
from typing import Dict, Optional, TextIO, Tuple, Union

from ..config import SocketConfig
from ..errors import (
    BindError,
    ListenError,
    ListenerError,
    NoPendingConnection,
    ReadError,
    TcpSocketError,
    WouldBlock,
    WriteError,
)
from .session import Close, SessionHandler


logger = logging.getLogger(__name__)


INVALID_DESCRIPTOR = -1
"""Descriptor value of an endpoint that no longer owns an OS socket."""

DEFAULT_BUFFER_SIZE = 8192

# accept() failures that are about the pending connection (or a momentary
# resource shortage), not about the listener itself.
_TRANSIENT_ACCEPT_ERRNOS = frozenset(
    code for code in (
        getattr(errno, "ECONNABORTED", None),
        getattr(errno, "EPROTO", None),
        getattr(errno, "EMFILE", None),
        getattr(errno, "ENFILE", None),
        getattr(errno, "ENOBUFS", None),
        getattr(errno, "ENOMEM", None),
        getattr(errno, "EPERM", None),
    )
    if code is not None
)


class ShutdownMethod(IntEnum):
    """Which direction(s) of the transport shutdown() should close."""
    READ = socket.SHUT_RD
    WRITE = socket.SHUT_WR
    BOTH = socket.SHUT_RDWR


class TcpSocket:
    """
    A TCP endpoint: either a listener or one accepted peer.

    Usage:
        def handler(descriptor: int, data: bytes):
            if data.strip() == b"quit":
                return CLOSE
            return data

        with TcpSocket() as server:
            server.reuse()
            server.bind("127.0.0.1", 8181)
            server.listen()
            server.run(1, handler)   # Blocks until terminate()

    Attributes:
        ip: Bound host (listener) or remote host (peer).
        port: Bound port (listener) or remote port (peer).
        send_timeout: Seconds send() waits for a stalled peer to drain.
    """

    def __init__(
        self,
        sock: Optional[socket.socket] = None,
        ip: str = "",
        port: int = 0,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
    ):
        """
        Create an endpoint.

        Args:
            sock: An already-accepted connection to wrap. When omitted a
                  fresh, unbound TCP socket is created (listener use).
            ip: Remote host of an accepted connection.
            port: Remote port of an accepted connection.
            buffer_size: Size of the receive buffer, reused by every recv().
        """
        if sock is None:
            sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
            # Small handler replies should leave immediately, not wait
            # for Nagle to batch them.
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        self._socket: Optional[socket.socket] = sock
        self.ip = ip
        self.port = port
        self.send_timeout: float = 30.0

        self._live = True
        self._bound = False
        self._listening = False
        self._terminated = False

        # Receive buffer: one allocation, filled in place by recv_into()
        self._buffer = bytearray(buffer_size)
        self._received = 0

        # Injected error-log sink, never closed by us
        self._error_log: Optional[TextIO] = None

        # Listener-only state
        self._clients: Dict[int, "TcpSocket"] = {}
        self._selector: Optional[selectors.BaseSelector] = None

    @classmethod
    def from_config(cls, config: SocketConfig) -> "TcpSocket":
        """
        Build a listening endpoint from a SocketConfig.

        Applies reuse() (if configured), bind() and listen(). The socket is
        released again if any step fails.
        """
        endpoint = cls(buffer_size=config.buffer_size)
        endpoint.send_timeout = config.send_timeout
        try:
            endpoint.prepare(config)
        except BaseException:
            endpoint.close()
            raise
        return endpoint

    def prepare(self, config: SocketConfig) -> None:
        """Run the reuse/bind/listen sequence for an unbound endpoint."""
        if config.reuse:
            self.reuse()
        self.bind(config.host, config.port)
        self.listen(config.backlog)

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def descriptor(self) -> int:
        """The OS socket number, or INVALID_DESCRIPTOR once closed."""
        if self._socket is None:
            return INVALID_DESCRIPTOR
        return self._socket.fileno()

    @property
    def address(self) -> Tuple[str, int]:
        return (self.ip, self.port)

    @property
    def live(self) -> bool:
        """False once the endpoint has been closed. Never becomes True again."""
        return self._live

    @property
    def terminated(self) -> bool:
        """True once terminate() has been requested."""
        return self._terminated

    @property
    def is_listening(self) -> bool:
        return self._listening

    @property
    def peers(self) -> Tuple["TcpSocket", ...]:
        """Snapshot of the registered peers."""
        return tuple(self._clients.values())

    @property
    def peer_count(self) -> int:
        return len(self._clients)

    @property
    def buffer_size(self) -> int:
        return len(self._buffer)

    @property
    def received(self) -> bytes:
        """The bytes delivered by the most recent recv()."""
        return bytes(self._buffer[:self._received])

    # =========================================================================
    # IDENTITY
    # =========================================================================

    def equal(self, other: "TcpSocket") -> bool:
        """Two endpoints are equal when (descriptor, ip, port) match."""
        return (self.descriptor, self.ip, self.port) == (other.descriptor, other.ip, other.port)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TcpSocket):
            return NotImplemented
        return self.equal(other)

    # Equality follows the descriptor, which changes on close()
    __hash__ = None  # type: ignore[assignment]

    def __repr__(self) -> str:
        state = "live" if self._live else "closed"
        if self._listening:
            state += ", listening"
        return f"<TcpSocket fd={self.descriptor} {self.ip}:{self.port} {state}>"

    def __str__(self) -> str:
        return f"{self.ip}:{self.port}"

    # =========================================================================
    # LIFECYCLE: reuse → bind → unblock → listen → accept
    # =========================================================================

    def reuse(self) -> None:
        """
        Allow bind() to reclaim an address still lingering in TIME_WAIT.

        Must be called BEFORE bind(). Without it a restarted server sees
        "Address already in use" for up to a minute after the previous
        one stopped.
        """
        sock = self._require_socket(BindError, "reuse")
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

    def bind(self, ip: str, port: int) -> None:
        """
        Associate the endpoint with a local address.

        Port 0 asks the OS for a free ephemeral port; the endpoint's
        ``port`` is updated to the one actually assigned.

        Raises:
            BindError: Address in use, invalid host/port, or endpoint closed.
        """
        sock = self._require_socket(BindError, "bind")
        try:
            sock.bind((ip, port))
        except (OSError, OverflowError, TypeError) as e:
            raise BindError(
                f"Failed to bind to {ip}:{port}: {e}",
                address=(ip, port),
                errno=getattr(e, "errno", None),
            ) from e

        self.ip = ip
        self.port = sock.getsockname()[1]
        self._bound = True

    def unblock(self) -> None:
        """
        Switch the descriptor to non-blocking mode.

        Required before the descriptor joins the event loop: a blocking
        accept() or recv() would stall every other connection.
        """
        sock = self._require_socket(TcpSocketError, "unblock")
        sock.setblocking(False)

    def listen(self, backlog: int = 128) -> None:
        """
        Put a bound endpoint into listening state.

        Args:
            backlog: How many connections the OS queues before refusing.

        Raises:
            ListenError: The endpoint is not bound (or is closed).
        """
        sock = self._require_socket(ListenError, "listen")
        if not self._bound:
            raise ListenError("Endpoint must be bound before listen()")
        try:
            sock.listen(backlog)
        except OSError as e:
            raise ListenError(f"listen() failed on {self}: {e}", e.errno) from e
        self._listening = True

    def accept(self) -> "TcpSocket":
        """
        Accept the next pending connection and register it as a peer.

        The new peer is non-blocking, shares this listener's log sink and
        buffer size, and is watched by the event loop from the next
        readiness wait on.

        Returns:
            The new peer endpoint.

        Raises:
            ListenError: This endpoint is not listening.
            NoPendingConnection: Nothing queued right now (not fatal).
            ListenerError: The listening descriptor itself failed.
        """
        if self._socket is None or not self._listening:
            raise ListenError("accept() requires a listening endpoint")

        try:
            client, address = self._socket.accept()
        except (BlockingIOError, InterruptedError, socket.timeout) as e:
            raise NoPendingConnection("No pending connection") from e
        except OSError as e:
            if e.errno in _TRANSIENT_ACCEPT_ERRNOS:
                raise NoPendingConnection(f"Accept failed: {e}", e.errno) from e
            raise ListenerError(f"Accept failed on {self}: {e}", e.errno) from e

        peer = TcpSocket(client, address[0], address[1], buffer_size=len(self._buffer))
        peer.send_timeout = self.send_timeout
        peer.setup(self._error_log)
        peer.unblock()

        if peer.descriptor in self._clients:
            # The previous owner of this number was closed outside the loop
            self._forget(peer.descriptor)

        self._clients[peer.descriptor] = peer
        if self._selector is not None:
            self._selector.register(client, selectors.EVENT_READ, peer)

        logger.debug(f"Accepted connection from {peer} (fd={peer.descriptor})")
        return peer

    # =========================================================================
    # TEARDOWN: shutdown → close, discard, clean, terminate
    # =========================================================================

    def shutdown(self, method: ShutdownMethod = ShutdownMethod.BOTH) -> None:
        """
        Close one or both directions of the transport, keeping the descriptor.

        shutdown(WRITE) sends a FIN: the peer sees end-of-stream while we can
        still read whatever it sends back.
        """
        if self._socket is None:
            return
        try:
            self._socket.shutdown(ShutdownMethod(method))
        except OSError as e:
            # Already disconnected, nothing left to shut down
            logger.debug(f"shutdown({ShutdownMethod(method).name}) on {self}: {e}")

    def close(self) -> None:
        """
        Release the descriptor. Safe to call any number of times.

        A listener discards (and closes) all of its peers first.
        """
        if self._socket is None:
            self._live = False
            return

        if self._clients:
            self.clean()
        if self._selector is not None:
            self._selector.close()
            self._selector = None

        sock, self._socket = self._socket, None
        self._live = False
        self._listening = False
        try:
            sock.close()
        except OSError as e:
            logger.debug(f"close() on {self}: {e}")

    def discard(self, peer: "TcpSocket") -> bool:
        """
        Remove a peer from the registry and close it.

        Returns:
            True if the peer was registered here, False otherwise.
        """
        descriptor = peer.descriptor
        found = self._clients.get(descriptor)
        if found is None or not found.equal(peer):
            # A peer closed directly no longer knows the number it is filed under
            descriptor = next((fd for fd, known in self._clients.items() if known is peer), None)
            if descriptor is None:
                return False
            found = peer

        self._forget(descriptor)
        found.close()
        return True

    def clean(self) -> None:
        """Discard every registered peer."""
        for peer in list(self._clients.values()):
            self.discard(peer)

    def _forget(self, descriptor: int) -> None:
        """Drop a registry entry and its selector key, by descriptor number."""
        del self._clients[descriptor]
        if self._selector is None:
            return
        try:
            self._selector.unregister(descriptor)
        except (KeyError, ValueError):
            pass  # Accepted before the selector existed and never watched

    def _sweep(self) -> None:
        """Forget peers that were closed without going through discard()."""
        for descriptor, peer in list(self._clients.items()):
            if not peer.live:
                self.log(f"Forgetting {peer}: closed outside the event loop", logging.DEBUG)
                self._forget(descriptor)

    def terminate(self) -> None:
        """
        Ask the event loop to stop.

        Cooperative: the flag is checked at the top of each iteration, so
        an in-flight handler call or send finishes and every peer already
        marked ready in the current iteration is still serviced.
        """
        self._terminated = True
        logger.info(f"Termination requested for {self}")

    # =========================================================================
    # I/O
    # =========================================================================

    def send(self, data: Union[bytes, bytearray, memoryview, str]) -> int:
        """
        Write ALL of ``data`` to the peer.

        A single send() may only push part of the data into the kernel
        buffer, and a non-blocking socket may refuse outright when that
        buffer is full. Both are normal: we keep going, waiting for write
        readiness when needed, until every byte is out.

        Args:
            data: Bytes to send. Text is encoded as UTF-8.

        Returns:
            Number of bytes sent (always len(data) on success).

        Raises:
            WriteError: Peer reset / broken pipe, the peer stopped reading
                        for longer than send_timeout, or endpoint closed.
        """
        sock = self._require_socket(WriteError, "send")
        if isinstance(data, str):
            data = data.encode("utf-8")

        view = memoryview(data).cast("B")
        total = 0
        deadline: Optional[float] = None

        while total < len(view):
            try:
                total += sock.send(view[total:])
                deadline = None
            except (BlockingIOError, InterruptedError):
                if deadline is None:
                    deadline = time.monotonic() + self.send_timeout
                self._wait_writable(sock, deadline)
            except socket.timeout as e:
                raise WriteError(f"Send to {self} timed out") from e
            except OSError as e:
                raise WriteError(f"Send to {self} failed: {e}", e.errno) from e

        return total

    def _wait_writable(self, sock: socket.socket, deadline: float) -> None:
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise WriteError(f"Send to {self} timed out after {self.send_timeout}s")
        with selectors.DefaultSelector() as selector:
            selector.register(sock, selectors.EVENT_WRITE)
            selector.select(remaining)

    def recv(self, peek: bool = False) -> int:
        """
        Read whatever is available into the receive buffer.

        Args:
            peek: Look at the data without consuming it (MSG_PEEK). The
                  next recv() sees the same bytes again.

        Returns:
            Number of bytes read; ``received`` holds them. 0 means the peer
            closed the connection in an orderly way.

        Raises:
            WouldBlock: Non-blocking socket with nothing to read yet.
            ReadError: Connection reset, aborted, or endpoint closed.
        """
        sock = self._require_socket(ReadError, "recv")
        flags = socket.MSG_PEEK if peek else 0
        try:
            count = sock.recv_into(self._buffer, len(self._buffer), flags)
        except (BlockingIOError, InterruptedError, socket.timeout) as e:
            raise WouldBlock(f"No data available from {self}") from e
        except OSError as e:
            raise ReadError(f"Receive from {self} failed: {e}", e.errno) from e

        self._received = count
        return count

    # =========================================================================
    # LOGGING
    # =========================================================================

    def setup(self, error_log: Optional[TextIO]) -> None:
        """
        Attach the error-log sink.

        The sink receives one line per lifecycle event or ignorable error.
        It is borrowed, not owned: close() never closes it.
        """
        self._error_log = error_log

    def log(self, message: str, level: int = logging.WARNING) -> None:
        """Send a message to the module logger and, if set, the sink."""
        logger.log(level, message)
        if self._error_log is None:
            return
        stamp = time.strftime("%Y-%m-%d %H:%M:%S")
        self._error_log.write(f"{stamp} [{logging.getLevelName(level)}] {message}\n")
        self._error_log.flush()

    # =========================================================================
    # EVENT LOOP
    # =========================================================================

    def run(self, timeout: Optional[float], handler: SessionHandler) -> None:
        """
        Drive the event loop until terminate() or a listener failure.

        The endpoint must already be bound and listening. Per-connection
        problems are logged and only cost that connection; ListenerError
        is the single error that reaches the caller.

        Args:
            timeout: Seconds per readiness wait. Bounds how long it takes
                     to notice terminate(); None waits indefinitely.
            handler: Session handler, see tcpsocket.core.session.

        Raises:
            ListenError: The endpoint is not listening.
            ListenerError: The listening descriptor failed. Peers are
                           already cleaned up.
        """
        if self._socket is None or not self._listening:
            raise ListenError("run() requires a listening endpoint")

        self.unblock()
        self.log(f"Serving on {self}", logging.INFO)
        try:
            while self._live and not self._terminated:
                self.select(timeout, handler)
        finally:
            self.clean()
            self.log(f"Event loop on {self} stopped", logging.INFO)

    def select(self, timeout: Optional[float], handler: SessionHandler) -> int:
        """
        Run ONE event loop iteration.

        Returns:
            Number of peers that were ready (0 when the wait timed out).

        Raises:
            ListenError: The endpoint is not listening.
            ListenerError: The readiness wait or accept() failed on the
                           listener. Peers are cleaned before raising.
        """
        selector = self._watch()
        self._sweep()

        try:
            events = selector.select(timeout)
        except (OSError, ValueError) as e:
            self._fail(f"Readiness wait failed on {self}: {e}", e)

        ready = []
        for key, _mask in events:
            if key.data is None:
                self._accept_pending()
            else:
                ready.append(key.data)

        for peer in ready:
            # A handler may have torn this peer down already
            if self._clients.get(peer.descriptor) is peer:
                self._service(peer, handler)

        return len(ready)

    def _watch(self) -> selectors.BaseSelector:
        """Create the selector on first use: listener + all known peers."""
        if self._selector is not None:
            return self._selector
        if self._socket is None or not self._listening:
            raise ListenError("select() requires a listening endpoint")

        self.unblock()
        selector = selectors.DefaultSelector()
        selector.register(self._socket, selectors.EVENT_READ, None)
        for peer in self._clients.values():
            if peer._socket is not None:
                selector.register(peer._socket, selectors.EVENT_READ, peer)
        self._selector = selector
        return selector

    def _accept_pending(self) -> None:
        """Accept until the OS queue is drained."""
        while True:
            try:
                peer = self.accept()
            except NoPendingConnection as e:
                if e.errno is not None:
                    self.log(f"Accept failed: {e}")
                return
            except ListenerError as e:
                self._fail(str(e), e)
            self.log(f"Peer {peer} connected", logging.DEBUG)

    def _service(self, peer: "TcpSocket", handler: SessionHandler) -> None:
        """Read from one ready peer, run the handler, act on its result."""
        try:
            count = peer.recv()
        except WouldBlock:
            return  # Spurious readiness
        except ReadError as e:
            self.log(f"Dropping {peer}: {e}")
            self.discard(peer)
            return

        if count == 0:
            self.log(f"Peer {peer} closed", logging.DEBUG)
            self.discard(peer)
            return

        descriptor = peer.descriptor
        try:
            result = handler(descriptor, peer.received)
        except Exception as e:
            logger.exception(f"Session handler failed for {peer}")
            self.log(f"Dropping {peer}: handler raised {e!r}", logging.ERROR)
            self.discard(peer)
            return

        if isinstance(result, Close):
            if result.farewell:
                self._reply(peer, result.farewell)
            self.log(f"Handler closed {peer}", logging.DEBUG)
            self.discard(peer)
            return

        if result is None:
            return  # Nothing to say yet, connection stays open

        if not isinstance(result, (bytes, bytearray, memoryview, str)):
            self.log(f"Dropping {peer}: handler returned {type(result).__name__}", logging.ERROR)
            self.discard(peer)
            return

        if not result:
            return

        if not self._reply(peer, result):
            self.discard(peer)

    def _reply(self, peer: "TcpSocket", data: Union[bytes, bytearray, memoryview, str]) -> bool:
        try:
            peer.send(data)
        except WriteError as e:
            self.log(f"Dropping {peer}: {e}")
            return False
        return True

    def _fail(self, message: str, error: BaseException) -> None:
        """Listener-fatal: log, clean every peer, raise ListenerError."""
        self.log(message, logging.ERROR)
        self.clean()
        if isinstance(error, ListenerError):
            raise error
        raise ListenerError(message, getattr(error, "errno", None)) from error

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _require_socket(self, error: type, action: str) -> socket.socket:
        if self._socket is None:
            raise error(f"Cannot {action}: endpoint is closed")
        return self._socket

    # =========================================================================
    # CONTEXT MANAGER
    # =========================================================================

    def __enter__(self) -> "TcpSocket":
        """
        Scoped ownership of the descriptor:

            with TcpSocket() as server:
                ...
            # Descriptor (and every peer) released here
        """
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
