"""
Single WebSocket connection to one relay.

A [RelayConnection][nostrview.client.connection.RelayConnection] moves
through ``CONNECTING -> OPEN -> CLOSED`` exactly once. While open it runs
two tasks:

* a reader that hands every TEXT frame, in arrival order, to the
  synchronous ``on_message(relay_url, text)`` handler;
* a writer that drains an outbound queue fed by
  [send()][nostrview.client.connection.RelayConnection.send].

The transition to CLOSED (peer close, transport error or
[close()][nostrview.client.connection.RelayConnection.close]) fires
``on_close(connection)`` once.

Note:
    TLS failures on ``wss://`` relays follow a two-phase strategy: a fully
    verified handshake first, then, only when ``allow_insecure`` is set, a
    single retry with certificate checks disabled.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Final

import aiohttp
from aiohttp_socks import ProxyError

from nostrview.core.exceptions import RelayConnectionError, RelaySSLError, RelayTimeoutError
from nostrview.core.logger import Logger
from nostrview.models.constants import ConnectionState
from nostrview.models.relay import Relay


DEFAULT_HEARTBEAT: Final[float] = 30.0
DEFAULT_CLOSE_TIMEOUT: Final[float] = 5.0

MessageHandler = Callable[[str, str], None]
CloseHandler = Callable[["RelayConnection"], None]


class RelayConnection:
    """Supervised WebSocket to a single [Relay][nostrview.models.relay.Relay].

    Args:
        relay: Target relay.
        session: aiohttp session used for the handshake. Owned by the caller.
        on_message: Called with ``(relay_url, text)`` for each TEXT frame.
        on_close: Called once with this connection when it becomes CLOSED.
        heartbeat: WebSocket ping interval in seconds.
        close_timeout: Upper bound for the closing handshake.
        allow_insecure: Retry once without certificate verification after
            a TLS failure.
    """

    def __init__(
        self,
        relay: Relay,
        session: aiohttp.ClientSession,
        on_message: MessageHandler,
        on_close: CloseHandler | None = None,
        *,
        heartbeat: float = DEFAULT_HEARTBEAT,
        close_timeout: float = DEFAULT_CLOSE_TIMEOUT,
        allow_insecure: bool = False,
    ) -> None:
        self._relay = relay
        self._session = session
        self._on_message = on_message
        self._on_close = on_close
        self._heartbeat = heartbeat
        self._close_timeout = close_timeout
        self._allow_insecure = allow_insecure

        self._state = ConnectionState.CONNECTING
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._outbox: asyncio.Queue[str | None] = asyncio.Queue()
        self._reader: asyncio.Task[None] | None = None
        self._writer: asyncio.Task[None] | None = None
        self._logger = Logger("connection")

    def __repr__(self) -> str:
        return f"RelayConnection({self.url!r}, state={self._state.value})"

    @property
    def relay(self) -> Relay:
        return self._relay

    @property
    def url(self) -> str:
        return self._relay.url

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is ConnectionState.OPEN

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def open(self, timeout: float) -> None:  # noqa: ASYNC109
        """Perform the WebSocket handshake and start the reader and writer.

        Args:
            timeout: Seconds allowed for the whole handshake, including the
                insecure retry.

        Raises:
            RelayTimeoutError: The handshake did not finish in time.
            RelaySSLError: Certificate verification failed and insecure
                fallback is disabled (or failed too).
            RelayConnectionError: Any other transport failure, including a
                SOCKS proxy refusing the connection.
            RuntimeError: The connection was already opened once.
        """
        if self._state is not ConnectionState.CONNECTING or self._ws is not None:
            raise RuntimeError(f"{self!r} cannot be opened again")

        try:
            async with asyncio.timeout(timeout):
                self._ws = await self._handshake()
        except TimeoutError as e:
            self._state = ConnectionState.CLOSED
            raise RelayTimeoutError(f"connect to {self.url} timed out after {timeout}s") from e
        except aiohttp.ClientSSLError as e:
            self._state = ConnectionState.CLOSED
            raise RelaySSLError(f"TLS failure for {self.url}: {e}") from e
        except (aiohttp.ClientError, ProxyError, OSError) as e:
            self._state = ConnectionState.CLOSED
            raise RelayConnectionError(f"connect to {self.url} failed: {e}") from e

        self._state = ConnectionState.OPEN
        self._reader = asyncio.create_task(self._read_loop(), name=f"reader:{self.url}")
        self._writer = asyncio.create_task(self._write_loop(), name=f"writer:{self.url}")

    async def _handshake(self) -> aiohttp.ClientWebSocketResponse:
        try:
            return await self._session.ws_connect(self.url, heartbeat=self._heartbeat)
        except aiohttp.ClientSSLError as e:
            if not self._allow_insecure or self._relay.scheme != "wss":
                raise
            self._logger.warning("ssl_fallback", relay=self.url, error=str(e))
        return await self._session.ws_connect(self.url, heartbeat=self._heartbeat, ssl=False)

    def send(self, frame: str) -> bool:
        """Queue *frame* for the writer.

        Returns:
            True if the connection is OPEN and the frame was queued.
        """
        if self._state is not ConnectionState.OPEN:
            return False
        self._outbox.put_nowait(frame)
        return True

    async def close(self) -> None:
        """Close the connection. Idempotent.

        Stops the reader and writer, then closes the socket, waiting at most
        ``close_timeout`` seconds for the closing handshake.
        """
        self._mark_closed("closed_by_client")
        current = asyncio.current_task()
        tasks = [
            t for t in (self._reader, self._writer) if t is not None and t is not current and not t.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        await self._close_socket()

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _mark_closed(self, reason: str) -> None:
        if self._state is ConnectionState.CLOSED:
            return
        was_open = self._state is ConnectionState.OPEN
        self._state = ConnectionState.CLOSED
        # Wake the writer so it can exit
        self._outbox.put_nowait(None)
        if not was_open:
            return
        self._logger.info("relay_closed", relay=self.url, reason=reason)
        if self._on_close is not None:
            try:
                self._on_close(self)
            except Exception as e:
                self._logger.error("close_handler_failed", relay=self.url, error=str(e))

    async def _close_socket(self) -> None:
        ws = self._ws
        if ws is None or ws.closed:
            return
        try:
            async with asyncio.timeout(self._close_timeout):
                await ws.close()
        except (TimeoutError, aiohttp.ClientError, OSError) as e:
            self._logger.debug("socket_close_failed", relay=self.url, error=str(e))

    async def _read_loop(self) -> None:
        assert self._ws is not None
        ws = self._ws
        reason = "peer_closed"
        try:
            async for msg in ws:
                if msg.type is aiohttp.WSMsgType.TEXT:
                    try:
                        self._on_message(self.url, msg.data)
                    except Exception as e:
                        self._logger.error("message_handler_failed", relay=self.url, error=str(e))
                elif msg.type is aiohttp.WSMsgType.ERROR:
                    reason = "read_error"
                    self._logger.warning("relay_read_error", relay=self.url, error=str(ws.exception()))
                    break
        finally:
            self._mark_closed(reason)
        await self._close_socket()

    async def _write_loop(self) -> None:
        assert self._ws is not None
        ws = self._ws
        while True:
            frame = await self._outbox.get()
            if frame is None or self._state is not ConnectionState.OPEN:
                return
            try:
                await ws.send_str(frame)
            except (aiohttp.ClientError, OSError) as e:
                self._logger.warning("relay_write_failed", relay=self.url, error=str(e))
                self._mark_closed("write_error")
                await self._close_socket()
                return
