"""
Connection Pool Module

This module implements a bounded, thread-safe pool of connections.

Connections are leased exclusively: a connection handed out by acquire()
is removed from the free queue and belongs to the caller until it is
passed back to release(). Free connections are reused oldest-released
first (FIFO). When the pool is at capacity, acquire() waits on a
condition variable that release() notifies.
"""

import logging
import threading
import time
from collections import deque
from contextlib import contextmanager
from functools import partial
from typing import Callable, Deque, Iterator, Optional, Set, TypeVar

from ..config.settings import settings
from ..errors import PoolTimeoutError, UsageError
from ..network.connection import Connection

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Pool:
    """
    A bounded pool of connections.

    Usage:
        pool = Pool.from_url("redis://127.0.0.1:6379", capacity=10)

        with pool.lease(timeout=1.0) as conn:
            conn.send("PING")

        pool.scoped_acquire(lambda conn: conn.send("GET", "foo"))

    Invariant:
        free_count + leased_count never exceeds capacity, and every pooled
        connection is either free or leased, never both.

    Attributes:
        capacity: Maximum number of connections, or None for unbounded
    """

    def __init__(
            self,
            factory: Callable[[], Connection],
            capacity: int = None,
            initial_size: int = None,
    ):
        """
        Initialize the pool.

        Args:
            factory: Zero-argument callable returning a new connection
            capacity: Maximum simultaneous connections (default from
                      settings.POOL_CAPACITY, where 0 means unbounded)
            initial_size: Connections to create eagerly (default from
                          settings.POOL_INITIAL_SIZE)

        Raises:
            ValueError: capacity < 1, a negative settings capacity,
                        initial_size < 0, or initial_size > capacity
        """
        if capacity is None:
            if settings.POOL_CAPACITY < 0:
                raise ValueError(f"KV_CLIENT_POOL_CAPACITY must not be negative, got {settings.POOL_CAPACITY}")
            capacity = settings.POOL_CAPACITY or None
        elif capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")

        initial_size = initial_size if initial_size is not None else settings.POOL_INITIAL_SIZE
        if initial_size < 0:
            raise ValueError(f"initial_size must not be negative, got {initial_size}")
        if capacity is not None and initial_size > capacity:
            raise ValueError(f"initial_size {initial_size} exceeds capacity {capacity}")

        self._factory = factory
        self._capacity: Optional[int] = capacity
        self._condition = threading.Condition()

        self._free: Deque[Connection] = deque()
        self._leased: Set[Connection] = set()
        self._creating = 0
        self._closed = False

        try:
            for _ in range(initial_size):
                self._free.append(factory())
        except BaseException:
            logger.warning(f"Pool pre-warm failed after {len(self._free)} connections")
            while self._free:
                self._free.popleft().close()
            raise
        if initial_size:
            logger.debug(f"Pool pre-warmed with {initial_size} connections")

    @classmethod
    def from_url(
            cls,
            url: str,
            capacity: int = None,
            initial_size: int = None,
            **connect_kwargs,
    ) -> "Pool":
        """
        Create a pool whose factory opens connections to url.

        Extra keyword arguments (connect_timeout, socket_timeout, codec)
        are passed to Connection.from_url().
        """
        factory = partial(Connection.from_url, url, **connect_kwargs)
        return cls(factory, capacity=capacity, initial_size=initial_size)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def capacity(self) -> Optional[int]:
        return self._capacity

    @property
    def free_count(self) -> int:
        with self._condition:
            return len(self._free)

    @property
    def leased_count(self) -> int:
        with self._condition:
            return len(self._leased)

    @property
    def size(self) -> int:
        """Total connections owned by the pool (free plus leased)."""
        with self._condition:
            return len(self._free) + len(self._leased)

    @property
    def closed(self) -> bool:
        return self._closed

    # ------------------------------------------------------------------
    # Leasing
    # ------------------------------------------------------------------

    def acquire(self, timeout: float = None) -> Connection:
        """
        Lease a connection.

        Args:
            timeout: Seconds to wait when the pool is at capacity.
                     None waits forever.

        Returns:
            A connection owned by the caller until release().

        Raises:
            PoolTimeoutError: No connection became available in time
            UsageError: The pool is closed
        """
        deadline = None if timeout is None else time.monotonic() + timeout

        with self._condition:
            while True:
                if self._closed:
                    raise UsageError("pool is closed")

                if self._free:
                    conn = self._free.popleft()
                    self._leased.add(conn)
                    return conn

                if self._has_room():
                    # Reserve the slot; the factory runs outside the lock
                    self._creating += 1
                    break

                if deadline is None:
                    logger.debug("Pool exhausted, waiting for a release")
                    self._condition.wait()
                    continue

                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    logger.debug(f"Pool acquire timed out after {timeout}s")
                    raise PoolTimeoutError(f"no connection available within {timeout} seconds")
                self._condition.wait(remaining)

        try:
            conn = self._factory()
        except BaseException:
            with self._condition:
                self._creating -= 1
                self._condition.notify()
            raise

        with self._condition:
            self._creating -= 1
            self._leased.add(conn)
            logger.debug(f"Pool created connection ({len(self._leased)} leased)")
        return conn

    def release(self, conn: Connection) -> None:
        """
        Return a leased connection to the free queue.

        The connection is not inspected or reset. Callers holding a broken
        connection should use discard() instead.

        Raises:
            UsageError: conn is not currently leased from this pool
        """
        with self._condition:
            if conn not in self._leased:
                raise UsageError("connection is not leased from this pool")
            self._leased.remove(conn)

            if not self._closed:
                self._free.append(conn)
                self._condition.notify()
                return

        # Pool closed while the connection was out
        conn.close()

    def discard(self, conn: Connection) -> None:
        """
        Close a leased connection and drop it from the pool, freeing its slot.

        Raises:
            UsageError: conn is not currently leased from this pool
        """
        with self._condition:
            if conn not in self._leased:
                raise UsageError("connection is not leased from this pool")
            self._leased.remove(conn)
            self._condition.notify()

        logger.debug("Discarding leased connection")
        conn.close()

    def scoped_acquire(self, body: Callable[[Connection], T], timeout: float = None) -> T:
        """
        Lease a connection, call body(conn) and release it on every exit path.

        Returns:
            Whatever body returns.
        """
        conn = self.acquire(timeout)
        try:
            return body(conn)
        finally:
            self.release(conn)

    @contextmanager
    def lease(self, timeout: float = None) -> Iterator[Connection]:
        """Context-manager form of scoped_acquire()."""
        conn = self.acquire(timeout)
        try:
            yield conn
        finally:
            self.release(conn)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def close(self) -> None:
        """
        Close every free connection and refuse further leases.

        Leased connections stay with their owners; release() closes them
        once the pool is closed.
        """
        with self._condition:
            self._closed = True
            idle = list(self._free)
            self._free.clear()
            self._condition.notify_all()

        for conn in idle:
            conn.close()
        logger.debug(f"Pool closed ({len(idle)} idle connections closed)")

    def __enter__(self) -> "Pool":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def _has_room(self) -> bool:
        if self._capacity is None:
            return True
        return len(self._free) + len(self._leased) + self._creating < self._capacity
