"""
pytest configuration and fixtures.
"""

import io
import socket
import threading
import time
from typing import Callable, Generator, Optional
import pytest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tcpsocket import TcpSocket, echo


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    """Poll until predicate() is true or the timeout runs out."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


def recv_exactly(sock: socket.socket, size: int) -> bytes:
    """Read from a blocking client socket until size bytes arrived or EOF."""
    data = b""
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return data


def recv_all(sock: socket.socket) -> bytes:
    """Read from a blocking client socket until the server closes it."""
    data = b""
    while True:
        chunk = sock.recv(4096)
        if not chunk:
            return data
        data += chunk


class LoopRunner:
    """Runs an event loop in a background thread, like a real server process."""

    def __init__(self, endpoint: TcpSocket, target: Callable[[], None]):
        self.endpoint = endpoint
        self.target = target
        self.error: Optional[BaseException] = None
        self._thread: Optional[threading.Thread] = None

    def start(self) -> "LoopRunner":
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()
        return self

    def _run(self):
        try:
            self.target()
        except BaseException as e:
            self.error = e

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def connect(self) -> socket.socket:
        """Open a blocking client connection to the endpoint."""
        return socket.create_connection(("127.0.0.1", self.endpoint.port), timeout=5.0)

    def wait_for_peers(self, count: int, timeout: float = 5.0) -> bool:
        return wait_for(lambda: self.endpoint.peer_count == count, timeout)

    def stop(self, timeout: float = 5.0):
        self.endpoint.terminate()
        if self._thread is not None:
            self._thread.join(timeout=timeout)


@pytest.fixture
def free_port() -> int:
    """Get a free port for testing."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(('127.0.0.1', 0))
        return s.getsockname()[1]


@pytest.fixture
def log_sink() -> io.StringIO:
    """In-memory error-log sink."""
    return io.StringIO()


@pytest.fixture
def listener() -> Generator[TcpSocket, None, None]:
    """A listening endpoint on an ephemeral loopback port."""
    endpoint = TcpSocket()
    endpoint.reuse()
    endpoint.bind("127.0.0.1", 0)
    endpoint.listen()
    yield endpoint
    endpoint.close()


@pytest.fixture
def client_factory(listener: TcpSocket) -> Generator[Callable[[], socket.socket], None, None]:
    """Open client connections to the listener; all closed at teardown."""
    clients = []

    def connect() -> socket.socket:
        client = socket.create_connection(("127.0.0.1", listener.port), timeout=5.0)
        clients.append(client)
        return client

    yield connect

    for client in clients:
        client.close()


@pytest.fixture
def loop_factory(listener: TcpSocket, log_sink: io.StringIO) -> Generator[Callable, None, None]:
    """Start the listener's event loop in a background thread with a given handler."""
    runners = []

    def start(handler=echo, timeout: float = 0.05) -> LoopRunner:
        listener.setup(log_sink)
        runner = LoopRunner(listener, lambda: listener.run(timeout, handler)).start()
        runners.append(runner)
        return runner

    yield start

    for runner in runners:
        runner.stop()
