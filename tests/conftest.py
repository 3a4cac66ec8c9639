"""
Pytest Configuration and Fixtures

This module provides shared fixtures and configuration for all tests.
"""

import io
import socket
import threading
from contextlib import closing
from typing import Callable, Generator

import pytest

from kvclient.network.connection import Connection
from kvclient.pool.pool import Pool
from kvclient.protocol.codec import ProtocolCodec
from tests.fake_server import FakeServer


def find_free_port() -> int:
    """Find an available port for testing."""
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as s:
        s.bind(('', 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


# ============================================================================
# In-memory streams
# ============================================================================

class ScriptedStream:
    """
    In-memory stream that replays canned server bytes.

    Writes land in `pending` until flush() moves them to `sent`, so tests
    can see exactly when a command went out on the wire.

    Usage:
        stream = ScriptedStream(b"+PONG\\r\\n")
        conn = Connection(stream)
        conn.send("PING")
        assert stream.sent == b"PING\\r\\n"
    """

    def __init__(self, replies: bytes = b""):
        self._input = io.BytesIO(replies)
        self.pending = bytearray()
        self.sent = bytearray()
        self.flush_count = 0
        self.closed = False

    def read(self, size: int) -> bytes:
        return self._input.read(size)

    def readline(self) -> bytes:
        return self._input.readline()

    def write(self, data: bytes) -> None:
        self.pending += data

    def flush(self) -> None:
        self.sent += self.pending
        self.pending.clear()
        self.flush_count += 1

    def close(self) -> None:
        self.closed = True

    @property
    def remaining(self) -> bytes:
        """Reply bytes not consumed yet."""
        position = self._input.tell()
        data = self._input.read()
        self._input.seek(position)
        return data


class FakeConnection:
    """Stand-in for pooled connections in pool tests."""

    _ids = 0
    _ids_lock = threading.Lock()

    def __init__(self):
        with FakeConnection._ids_lock:
            FakeConnection._ids += 1
            self.id = FakeConnection._ids
        self.closed = False

    def close(self) -> None:
        self.closed = True

    def __repr__(self) -> str:
        return f"<FakeConnection {self.id}>"


# ============================================================================
# Codec / Connection Fixtures
# ============================================================================

@pytest.fixture
def codec() -> ProtocolCodec:
    """Create a ProtocolCodec instance."""
    return ProtocolCodec()


@pytest.fixture
def scripted() -> Callable[[bytes], Connection]:
    """
    Factory fixture building a Connection over canned reply bytes.

    Usage:
        def test_something(scripted):
            conn = scripted(b"+OK\\r\\n")
            assert conn.send("SET", "k", "v") == SimpleString("OK")
            assert conn.stream.sent.startswith(b"*3\\r\\n")
    """
    def factory(replies: bytes = b"") -> Connection:
        return Connection(ScriptedStream(replies))
    return factory


# ============================================================================
# Pool Fixtures
# ============================================================================

@pytest.fixture
def connection_factory():
    """Counting factory producing FakeConnection objects."""
    created = []

    def factory() -> FakeConnection:
        conn = FakeConnection()
        created.append(conn)
        return conn

    factory.created = created
    return factory


@pytest.fixture
def pool(connection_factory) -> Pool:
    """A pool of two fake connections."""
    return Pool(connection_factory, capacity=2)


@pytest.fixture
def single_pool(connection_factory) -> Pool:
    """A pool with capacity 1."""
    return Pool(connection_factory, capacity=1)


# ============================================================================
# Server Fixtures
# ============================================================================

@pytest.fixture
def server_port() -> int:
    """Get a free port for server testing."""
    return find_free_port()


@pytest.fixture
def server(server_port: int) -> Generator[FakeServer, None, None]:
    """
    Start a FakeServer on a free port for the duration of a test.
    """
    srv = FakeServer(host='127.0.0.1', port=server_port)
    srv.start()

    yield srv

    srv.stop()


@pytest.fixture
def connection(server: FakeServer) -> Generator[Connection, None, None]:
    """A real TCP connection to the fake server."""
    conn = Connection.connect('127.0.0.1', server.port, connect_timeout=2.0, socket_timeout=5.0)

    yield conn

    conn.close()


# ============================================================================
# Pytest Configuration
# ============================================================================

def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
