"""
Event stream connection manager.

Owns the push channel lifecycle: connect, receive, detect failure, wait a
fixed delay and reconnect. Each decoded message is handed to a callback
(normally ``JobStore.upsert``); the manager knows nothing about merging.
"""
import asyncio
import json
from collections.abc import Mapping
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Optional, Protocol, Union

from websockets.asyncio.client import connect as websocket_connect

from ..core.config import settings
from ..core.exceptions import ConnectError, DecodeError
from ..core.logging import logger


Frame = Union[str, bytes]


class StreamChannel(Protocol):
    """An open push channel: async-iterable frames plus close()."""

    def __aiter__(self) -> AsyncIterator[Frame]:
        ...

    async def close(self) -> None:
        ...


Connector = Callable[[str], Awaitable[StreamChannel]]
EventHandler = Callable[[Dict[str, Any]], Any]


class ConnectionState(str, Enum):
    """Lifecycle states of the stream connection."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"
    CLOSING = "closing"


async def websocket_connector(url: str) -> StreamChannel:
    """Open a websocket with the ``websockets`` asyncio client."""
    return await websocket_connect(url)


def decode_event(frame: Frame) -> Dict[str, Any]:
    """Decode one stream frame into a raw job payload."""
    if isinstance(frame, (bytes, bytearray)):
        try:
            frame = frame.decode("utf-8")
        except UnicodeDecodeError as e:
            raise DecodeError(f"invalid utf-8: {e}", payload=frame) from e

    try:
        payload = json.loads(frame)
    except (TypeError, ValueError) as e:
        raise DecodeError(str(e), payload=frame) from e

    if not isinstance(payload, Mapping):
        raise DecodeError(f"expected a JSON object, got {type(payload).__name__}", payload=frame)

    return payload


class StreamConnectionManager:
    """
    Keeps one event stream connection alive and forwards its events.

    State machine::

        DISCONNECTED -> CONNECTING -> OPEN -> DISCONNECTED
                  ^                               |
                  +---- reconnect timer ----------+

    ``stop()`` passes through CLOSING and suppresses the reconnect. At most
    one reconnect timer and one receive task exist at any time.
    """

    def __init__(
        self,
        on_event: EventHandler,
        url: Optional[str] = None,
        connector: Optional[Connector] = None,
        reconnect_delay: Optional[float] = None,
    ):
        self.on_event = on_event
        self.url = url or settings.WS_URL
        self.connector = connector or websocket_connector
        self.reconnect_delay = (
            settings.RECONNECT_DELAY_SECONDS if reconnect_delay is None else reconnect_delay
        )

        self._state = ConnectionState.DISCONNECTED
        self._started = False
        self._stopping = False
        self._channel: Optional[StreamChannel] = None
        self._task: Optional[asyncio.Task] = None
        self._reconnect_handle: Optional[asyncio.TimerHandle] = None

        self.connect_attempts = 0
        self.messages_received = 0
        self.messages_dropped = 0

    async def __aenter__(self):
        """Async context manager entry."""
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop()

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def pending_reconnects(self) -> int:
        """1 while a reconnect timer is armed, else 0."""
        if self._reconnect_handle is None or self._reconnect_handle.cancelled():
            return 0
        return 1

    # ==================== Public lifecycle ====================

    def start(self):
        """Begin connecting. Must run inside an event loop; once per session."""
        if self._started:
            logger.warning("Stream manager already started; ignoring start()")
            return

        self._started = True
        self._stopping = False
        logger.info(f"Starting event stream for {self.url}")
        self._begin_connect()

    async def stop(self):
        """
        Shut down deliberately.

        Cancels any pending reconnect, closes the channel and waits for the
        receive task. No event is forwarded once this returns.
        """
        self._stopping = True
        self._state = ConnectionState.CLOSING
        self._cancel_reconnect()

        channel, self._channel = self._channel, None
        if channel is not None:
            try:
                await channel.close()
            except Exception as e:
                logger.debug(f"Error while closing stream channel: {e}")

        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

        self._state = ConnectionState.DISCONNECTED
        self._started = False
        logger.info("Event stream stopped")

    # ==================== Connection loop ====================

    def _begin_connect(self):
        """Move to CONNECTING and spawn the receive task."""
        self._cancel_reconnect()

        if self._stopping:
            return
        if self._task is not None and not self._task.done():
            logger.debug("Connect requested while a connection task is active; ignoring")
            return

        self._state = ConnectionState.CONNECTING
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        self.connect_attempts += 1

        try:
            channel = await self.connector(self.url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = ConnectError(self.url, str(e) or type(e).__name__)
            logger.warning(error.message)
            self._handle_closure()
            return

        if self._stopping:
            await channel.close()
            return

        self._channel = channel
        self._state = ConnectionState.OPEN
        logger.info("Event stream connection established")

        try:
            async for frame in channel:
                if self._stopping:
                    break
                self._dispatch(frame)
            else:
                if not self._stopping:
                    logger.warning("Event stream closed by server")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Event stream connection lost: {e}")
        finally:
            if self._channel is channel:
                self._channel = None

        self._handle_closure()

    def _dispatch(self, frame: Frame):
        """Decode a frame and forward it; bad frames are dropped."""
        self.messages_received += 1

        try:
            payload = decode_event(frame)
        except DecodeError as e:
            self.messages_dropped += 1
            logger.warning(f"Dropping stream message: {e.message}")
            return

        logger.debug(f"Stream event received with keys: {list(payload.keys())}")

        try:
            self.on_event(payload)
        except Exception:
            self.messages_dropped += 1
            logger.exception("Stream event handler failed")

    # ==================== Reconnect timer ====================

    def _handle_closure(self):
        """Land in DISCONNECTED and arm a reconnect unless stopping."""
        if self._stopping:
            return
        self._state = ConnectionState.DISCONNECTED
        self._schedule_reconnect()

    def _schedule_reconnect(self):
        self._cancel_reconnect()
        logger.info(f"Reconnecting event stream in {self.reconnect_delay}s")
        loop = asyncio.get_running_loop()
        self._reconnect_handle = loop.call_later(self.reconnect_delay, self._on_reconnect_timer)

    def _on_reconnect_timer(self):
        self._reconnect_handle = None
        self._begin_connect()

    def _cancel_reconnect(self):
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
