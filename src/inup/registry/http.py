"""Shared HTTP plumbing for registry clients.

Owns the aiohttp connection pool lifecycle and the classification of
request failures into transient (retry) and fatal (give up) faults.
"""

from __future__ import annotations

import asyncio
import logging
import socket
from typing import Dict, Optional

import aiohttp

from inup.constants import Constants

logger = logging.getLogger(__name__)

JSON_ACCEPT = "application/json"

# 408 Request Timeout, 429 Too Many Requests, and every 5xx
RETRYABLE_STATUSES = frozenset({408, 429})


class RegistryError(Exception):
    """Error interacting with a package registry."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


def is_retryable_status(status: int) -> bool:
    return status in RETRYABLE_STATUSES or status >= 500


def is_timeout_error(exc: BaseException) -> bool:
    """Header, body, connect, or generic timeout."""
    return isinstance(exc, (asyncio.TimeoutError, TimeoutError, aiohttp.ServerTimeoutError))


def is_transient_error(exc: BaseException) -> bool:
    """Timeouts and network faults worth retrying (DNS, reset, refused, broken pipe)."""
    if is_timeout_error(exc):
        return True
    return isinstance(
        exc,
        (
            aiohttp.ServerDisconnectedError,
            aiohttp.ClientConnectorError,
            aiohttp.ClientOSError,
            ConnectionResetError,
            ConnectionRefusedError,
            BrokenPipeError,
            socket.gaierror,
        ),
    )


class ConnectionPool:
    """Long-lived aiohttp session bound to a bounded connector.

    Safe for concurrent use by all tasks on one event loop. The session is
    created on first use and must be closed once at shutdown.
    """

    def __init__(
        self,
        *,
        limit: int = Constants.MAX_CONCURRENT_REQUESTS,
        keepalive_timeout: float = Constants.POOL_KEEPALIVE_TIMEOUT,
        connect_timeout: Optional[float] = None,
        total_timeout: Optional[float] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        """Initialize the pool.

        Args:
            limit: Maximum simultaneous connections (0 for no limit)
            keepalive_timeout: Idle keep-alive in seconds
            connect_timeout: Socket connect timeout in seconds
            total_timeout: Default whole-request timeout in seconds
            headers: Default headers sent with every request
        """
        self._limit = limit
        self._keepalive_timeout = keepalive_timeout
        self._timeout = aiohttp.ClientTimeout(total=total_timeout, sock_connect=connect_timeout)
        self._headers = {"User-Agent": Constants.USER_AGENT, "Accept": JSON_ACCEPT}
        if headers:
            self._headers.update(headers)
        self._session: Optional[aiohttp.ClientSession] = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def session(self) -> aiohttp.ClientSession:
        """Return the shared session, creating it on first use.

        Raises:
            RegistryError: If the pool was already closed
        """
        if self._closed:
            raise RegistryError("connection pool is closed")
        if self._session is None:
            connector = aiohttp.TCPConnector(
                limit=self._limit,
                keepalive_timeout=self._keepalive_timeout,
            )
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=self._timeout,
                headers=self._headers,
            )
            logger.debug("Opened connection pool (limit=%d)", self._limit)
        return self._session

    async def close(self) -> None:
        """Close the session; later calls are no-ops."""
        if self._closed:
            return
        self._closed = True
        if self._session is not None:
            await self._session.close()
            self._session = None
            logger.debug("Closed connection pool")

    async def __aenter__(self) -> "ConnectionPool":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
