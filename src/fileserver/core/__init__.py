"""
=============================================================================
CORE NETWORKING COMPONENTS
=============================================================================

    SocketServer   Owns the listening socket and the accept loop
    Connection     Wraps one client socket: buffered reads, state, close
    ThreadPool     Runs each connection on a worker thread

    accept() ──► Connection ──► ThreadPool.submit() ──► worker handles it

=============================================================================
"""

from .socket_server import SocketServer
from .connection import Connection, ConnectionState
from .thread_pool import ThreadPool

__all__ = ["SocketServer", "Connection", "ConnectionState", "ThreadPool"]
