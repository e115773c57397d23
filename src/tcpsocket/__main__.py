"""
=============================================================================
TCPSOCKET CLI ENTRY POINT
=============================================================================

    # Echo server on localhost:8181 (send "quit" to disconnect)
    python -m tcpsocket

    # HTTP/1.0 server on all interfaces
    python -m tcpsocket --mode http --host 0.0.0.0 --port 8080

    # Lifecycle events and dropped connections to a file
    python -m tcpsocket --log-file errors.log --log-level DEBUG

Ctrl+C (SIGINT) and SIGTERM request termination; the loop notices within
one --timeout period, closes every connection and exits.

=============================================================================
"""

import argparse
import signal
import sys
from contextlib import ExitStack
from typing import Optional

from . import __version__
from .config import LOG_LEVELS, SocketConfig
from .core import TcpSocket, echo
from .errors import TcpSocketError
from .http import HttpRequest, HttpResponse, HttpServer, HttpServerDelegate
from .logs import setup_logging


class ReportDelegate(HttpServerDelegate):
    """Answers every request with a JSON description of what was received."""

    def on_session(self, request: HttpRequest) -> Optional[HttpResponse]:
        return HttpResponse.json({
            "method": request.method,
            "path": request.uri.path,
            "parameters": request.uri.parameters,
            "version": request.version,
            "length": len(request.body),
        })


def install_signal_handlers(endpoint: TcpSocket) -> dict:
    """
    Route SIGINT/SIGTERM to endpoint.terminate().

    Returns the previous handlers so they can be restored.
    """
    def shutdown_handler(signum, frame):
        endpoint.log(f"Received {signal.Signals(signum).name}, terminating")
        endpoint.terminate()

    return {
        sig: signal.signal(sig, shutdown_handler)
        for sig in (signal.SIGINT, signal.SIGTERM)
    }


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tcpsocket",
        description="Single-threaded TCP server (echo or HTTP/1.0)",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m tcpsocket                          # Echo server on 127.0.0.1:8181
  python -m tcpsocket --mode http --port 8080  # HTTP/1.0 server
  python -m tcpsocket --log-file errors.log    # Error log to a file
        """
    )

    parser.add_argument("--host", "-H", default=None,
                        help="Host to bind to (default: 127.0.0.1)")
    parser.add_argument("--port", "-p", type=int, default=None,
                        help="Port to listen on (default: 8181, 0 = any free port)")
    parser.add_argument("--timeout", "-t", type=int, default=None,
                        help="Readiness wait per loop iteration in seconds (default: 1)")
    parser.add_argument("--mode", "-m", choices=["echo", "http"], default="echo",
                        help="Session handler to run (default: echo)")
    parser.add_argument("--log-level", "-l", choices=list(LOG_LEVELS), default=None,
                        help="Logging level (default: INFO)")
    parser.add_argument("--log-file", default=None,
                        help="Error-log sink (default: stderr)")
    parser.add_argument("--version", "-v", action="version",
                        version=f"tcpsocket {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> SocketConfig:
    """Environment first, then whatever was given on the command line."""
    config = SocketConfig.from_env()
    for name in ("host", "port", "timeout", "log_level", "log_file"):
        value = getattr(args, name)
        if value is not None:
            setattr(config, name, value)
    config.validate()
    return config


def main(argv: Optional[list] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = build_config(args)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    setup_logging(config.log_level)

    with ExitStack() as stack:
        # Without a log file the stderr logging handler already shows every event
        sink = None
        if config.log_file:
            sink = stack.enter_context(open(config.log_file, "a", encoding="utf-8"))

        try:
            if args.mode == "http":
                server = HttpServer(ReportDelegate(), config)
            else:
                server = TcpSocket.from_config(config)
        except TcpSocketError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        stack.enter_context(server)
        server.setup(sink)
        previous = install_signal_handlers(server)
        try:
            if isinstance(server, HttpServer):
                server.serve()
            else:
                server.run(config.timeout, echo)
        except TcpSocketError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        finally:
            for sig, handler in previous.items():
                signal.signal(sig, handler)

    return 0


if __name__ == "__main__":
    sys.exit(main())
