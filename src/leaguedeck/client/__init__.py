"""
HTTP access to the League client APIs
"""

from .discovery import ClientCredentials, ConnectionDiscoverer
from .handle import ConnectionHandle
from .live import LiveClient

__all__ = ["ClientCredentials", "ConnectionDiscoverer", "ConnectionHandle", "LiveClient"]
