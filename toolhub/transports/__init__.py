# toolhub/transports/__init__.py
from .stdio import StdioTransport, TransportError, TransportTimeout

__all__ = ["StdioTransport", "TransportError", "TransportTimeout"]
