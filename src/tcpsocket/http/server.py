"""
=============================================================================
HTTP/1.0 SERVER ON THE SINGLE-THREADED EVENT LOOP
=============================================================================

HttpServer is a listening TcpSocket whose session handler speaks HTTP/1.0:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                   ONE CONNECTION, ONE REQUEST                        │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   chunk ──► pending[fd] += chunk                                     │
    │                │                                                     │
    │                ├── head not complete yet ──► b""   (keep reading)    │
    │                ├── body not complete yet ──► b""   (keep reading)    │
    │                ├── too large ──────────────► 413 + close             │
    │                ├── unparseable ────────────► 400 + close             │
    │                │                                                     │
    │                └── complete ──► delegate.on_session(request)         │
    │                                    ├── HttpResponse ──► send + close │
    │                                    ├── None ──────────► 404 + close  │
    │                                    └── raises ────────► 500 + close  │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Partial requests live in a per-descriptor buffer. Whenever a peer leaves
the registry (answered, reset, closed by the client) its buffer goes
with it, so a recycled descriptor number never inherits stale bytes.

=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..config import SocketConfig
from ..core.endpoint import TcpSocket
from ..core.session import Close, SessionResult
from .request import HEAD_SEPARATOR, HttpParseError, HttpRequest
from .response import HttpResponse
from .status_codes import HttpStatus


logger = logging.getLogger(__name__)


class HttpServerDelegate(ABC):
    """
    Application side of the HTTP server.

    Example:
        class Hello(HttpServerDelegate):
            def on_session(self, request):
                return HttpResponse.text(f"Hello {request.uri.parameters.get('name')}")
    """

    @abstractmethod
    def on_session(self, request: HttpRequest) -> Optional[HttpResponse]:
        """
        Answer one request.

        Returns:
            The response, or None for "nothing here" (sent as 404).
        """


class HttpServer(TcpSocket):
    """
    A listening endpoint that serves HTTP/1.0.

    The constructor binds and listens, so a constructed server is ready
    for serve():

        server = HttpServer(MyDelegate(), SocketConfig(port=8181))
        try:
            server.serve()     # Blocks until terminate()
        finally:
            server.close()
    """

    def __init__(self, delegate: HttpServerDelegate, config: Optional[SocketConfig] = None):
        self.config = config or SocketConfig()
        self.config.validate()  # Fail-fast on invalid config

        super().__init__(buffer_size=self.config.buffer_size)
        self.send_timeout = self.config.send_timeout
        self.delegate = delegate
        self._pending: Dict[int, bytearray] = {}

        try:
            self.prepare(self.config)
        except BaseException:
            self.close()
            raise

    def serve(self, timeout: Optional[float] = None) -> None:
        """Run the event loop with handle() as the session handler."""
        self.run(self.config.timeout if timeout is None else timeout, self.handle)

    def handle(self, descriptor: int, data: bytes) -> SessionResult:
        """Session handler: buffer, parse, dispatch, answer, close."""
        pending = self._pending.setdefault(descriptor, bytearray())
        pending += data

        if len(pending) > self.config.max_request_size:
            logger.warning(f"fd={descriptor}: request exceeds {self.config.max_request_size} bytes")
            return self._finish(descriptor, HttpResponse.error(HttpStatus.PAYLOAD_TOO_LARGE))

        if HEAD_SEPARATOR not in pending:
            return b""

        try:
            request = HttpRequest.parse(bytes(pending))
        except HttpParseError as e:
            logger.info(f"fd={descriptor}: bad request: {e}")
            return self._finish(descriptor, HttpResponse.error(e.status_code, str(e)))

        if request is None:
            return b""

        try:
            response = self.delegate.on_session(request)
        except Exception:
            logger.exception(f"fd={descriptor}: delegate failed for {request.method} {request.uri.raw}")
            response = HttpResponse.error(HttpStatus.INTERNAL_SERVER_ERROR)

        if response is None:
            response = HttpResponse.error(HttpStatus.NOT_FOUND)

        logger.debug(f"fd={descriptor}: {request.method} {request.uri.raw} -> {response.status}")
        return self._finish(descriptor, response, include_body=request.method != "HEAD")

    def _forget(self, descriptor: int) -> None:
        self._pending.pop(descriptor, None)
        super()._forget(descriptor)

    def _finish(self, descriptor: int, response: HttpResponse, include_body: bool = True) -> Close:
        self._pending.pop(descriptor, None)
        return Close(farewell=response.encode(self.config.server_name, include_body))
