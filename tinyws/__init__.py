"""A small WebSockets client and server with a polling, callback-driven API."""

__version__ = "0.1.0"

__all__ = ["cli", "client", "crypto", "endpoint", "frames", "message", "network", "server"]