"""
Client package for communicating with the discussion backend.
"""

from .api_client import APIClient
from .socket_client import SocketChannel

__all__ = ["APIClient", "SocketChannel"]
