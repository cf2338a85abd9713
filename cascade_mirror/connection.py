"""CDP WebSocket client for the host application's debug endpoint.

Provides CDPClient: one persistent connection, id-correlated calls and an
append-only registry of execution contexts captured from
Runtime.executionContextCreated events.
"""

import asyncio
import enum
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

try:
    import websockets
    from websockets.exceptions import ConnectionClosed
except ImportError:
    raise ImportError(
        "websockets library not found. Install with: pip3 install websockets"
    )

from .exceptions import (
    CallTimeoutError,
    CommandFailedError,
    ConnectionClosedError,
    ConnectionFailedError,
    NotConnectedError,
)

logger = logging.getLogger(__name__)

CONTEXT_CREATED_EVENT = "Runtime.executionContextCreated"


class ConnectionState(enum.Enum):
    """Lifecycle of a CDPClient connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True)
class ExecutionContext:
    """A script-evaluation scope announced by the host."""

    id: int
    name: str = ""
    origin: str = ""

    @classmethod
    def from_event(cls, params: dict) -> "ExecutionContext":
        context = params["context"]
        return cls(
            id=int(context["id"]),
            name=context.get("name", ""),
            origin=context.get("origin", ""),
        )


class CDPClient:
    """Manages the WebSocket connection to the host's CDP endpoint.

    Handles:
    - Connection lifecycle (connect, close, context manager)
    - Call correlation by integer id, in any completion order
    - Capture of execution contexts into ``contexts``
    - Dispatch of other events to subscribed callbacks

    Usage:
        client = CDPClient()
        await client.connect(ws_url)
        result = await client.call("Runtime.evaluate", {"expression": "1+1"})
        await client.close()

    Attributes:
        ws_url: WebSocket debugger URL (set by connect)
        timeout: Default call timeout in seconds (None waits indefinitely)
        settle_delay: Grace period after Runtime.enable so early context
            events land before connect() returns
        max_size: Maximum WebSocket message size in bytes (snapshots are large)
    """

    def __init__(
        self,
        ws_url: Optional[str] = None,
        *,
        timeout: Optional[float] = 30.0,
        settle_delay: float = 1.0,
        max_size: int = 16_777_216  # 16MB, captured stylesheets are big
    ):
        self.ws_url = ws_url
        self.timeout = timeout
        self.settle_delay = settle_delay
        self.max_size = max_size

        self._ws: Optional[Any] = None
        self._state = ConnectionState.DISCONNECTED
        self._next_call_id: int = 1
        self._pending_calls: Dict[int, asyncio.Future] = {}
        self._contexts: List[ExecutionContext] = []
        self._event_handlers: Dict[str, List[Callable[[dict], Awaitable[None]]]] = {}
        self._receive_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        """Check if the client is in the connected state."""
        return self._state is ConnectionState.CONNECTED and self._ws is not None

    @property
    def contexts(self) -> List[ExecutionContext]:
        """Execution contexts in arrival order for the current connection."""
        return list(self._contexts)

    async def connect(self, ws_url: Optional[str] = None) -> None:
        """Open the connection, enable the Runtime domain and let contexts settle.

        Args:
            ws_url: WebSocket debugger URL (default: the URL given at construction)

        Raises:
            ValueError: If the URL is not a ws:// or wss:// URL
            ConnectionFailedError: If the WebSocket handshake fails
            CommandFailedError, CallTimeoutError: If Runtime.enable fails; the
                connection is closed first
        """
        url = ws_url or self.ws_url
        if not url or not url.startswith(("ws://", "wss://")):
            raise ValueError(f"Invalid WebSocket URL: {url}")
        self.ws_url = url

        self._contexts = []
        self._state = ConnectionState.CONNECTING
        try:
            logger.info(f"Connecting to {url}")
            self._ws = await websockets.connect(url, max_size=self.max_size)
        except Exception as e:
            self._state = ConnectionState.DISCONNECTED
            self._ws = None
            raise ConnectionFailedError(
                f"Failed to connect to {url}: {e}",
                details={"url": url, "error": str(e)},
            ) from e

        self._state = ConnectionState.CONNECTED
        self._receive_task = asyncio.create_task(self._receive_loop())
        logger.info("CDP connection established")

        try:
            await self.call("Runtime.enable", {})
        except Exception:
            await self.close()
            raise
        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        logger.info(f"Runtime enabled, {len(self._contexts)} execution contexts known")

    async def close(self) -> None:
        """Close the connection. Safe to call in any state."""
        ws = self._ws
        self._ws = None
        self._state = ConnectionState.DISCONNECTED

        if self._receive_task and not self._receive_task.done():
            self._receive_task.cancel()
            try:
                await self._receive_task
            except asyncio.CancelledError:
                pass
        self._receive_task = None

        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {e}")
            logger.info("CDP connection closed")

        self._fail_pending(ConnectionClosedError("Connection closed during call"))

    async def __aenter__(self) -> "CDPClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def call(
        self,
        method: str,
        params: Optional[dict] = None,
        *,
        timeout: Optional[float] = None
    ) -> dict:
        """Send a CDP call and wait for the response carrying its id.

        Args:
            method: CDP method name (e.g., "Runtime.evaluate")
            params: Method parameters (default: empty dict)
            timeout: Call timeout in seconds (default: self.timeout)

        Returns:
            The ``result`` object of the matching response frame

        Raises:
            NotConnectedError: If the client is not connected (nothing is sent)
            CommandFailedError: If the peer answers with an error frame
            CallTimeoutError: If no response arrives within the timeout
            ConnectionClosedError: If the connection closes first
        """
        if not self.is_connected:
            raise NotConnectedError(f"Cannot call {method}: not connected")

        call_id = self._next_call_id
        self._next_call_id += 1

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending_calls[call_id] = future

        message = json.dumps({"id": call_id, "method": method, "params": params or {}})
        call_timeout = timeout if timeout is not None else self.timeout

        try:
            await self._ws.send(message)
            logger.debug(f"Sent call {call_id}: {method}")
            if call_timeout is None:
                return await future
            return await asyncio.wait_for(future, timeout=call_timeout)
        except asyncio.TimeoutError:
            raise CallTimeoutError(
                "Call timed out", method=method, timeout=call_timeout
            )
        finally:
            self._pending_calls.pop(call_id, None)

    def subscribe(self, event_name: str, callback: Callable[[dict], Awaitable[None]]) -> None:
        """Register an async callback for a CDP event."""
        self._event_handlers.setdefault(event_name, []).append(callback)
        logger.debug(f"Subscribed to event: {event_name}")

    def unsubscribe(self, event_name: str, callback: Callable[[dict], Awaitable[None]]) -> None:
        """Remove a previously registered event callback."""
        if event_name in self._event_handlers:
            try:
                self._event_handlers[event_name].remove(callback)
            except ValueError:
                logger.warning(f"Callback not found for event: {event_name}")

    def _fail_pending(self, error: Exception) -> None:
        for future in self._pending_calls.values():
            if not future.done():
                future.set_exception(error)
        self._pending_calls.clear()

    def handle_frame(self, raw: Any) -> None:
        """Route one inbound frame to its pending call or event handler.

        Malformed frames and responses with unknown ids are dropped.
        """
        try:
            data = json.loads(raw)
        except (TypeError, ValueError) as e:
            logger.debug(f"Dropping malformed CDP frame: {e}")
            return
        if not isinstance(data, dict):
            return

        if "id" in data:
            if not isinstance(data["id"], int):
                return
            future = self._pending_calls.pop(data["id"], None)
            if future is None or future.done():
                return
            if "error" in data:
                error = data["error"]
                message = "Unknown CDP error"
                code = None
                if isinstance(error, dict):
                    message = error.get("message", message)
                    code = error.get("code")
                future.set_exception(
                    CommandFailedError(message, error_code=code, error=error)
                )
            else:
                future.set_result(data.get("result", {}))
            return

        method = data.get("method")
        if not method:
            return
        params = data.get("params") or {}

        if method == CONTEXT_CREATED_EVENT:
            try:
                context = ExecutionContext.from_event(params)
            except (KeyError, TypeError, ValueError):
                logger.debug("Dropping malformed executionContextCreated event")
                return
            self._contexts.append(context)
            logger.debug(f"Execution context created: {context.id} {context.name!r}")

        for handler in self._event_handlers.get(method, []):
            asyncio.create_task(handler(params))

    async def _receive_loop(self) -> None:
        """Read frames until the transport closes."""
        try:
            async for message in self._ws:
                try:
                    self.handle_frame(message)
                except Exception as e:
                    logger.error(f"Error processing message: {e}", exc_info=True)
        except ConnectionClosed as e:
            logger.warning(f"WebSocket connection closed: {e}")
        except Exception as e:
            logger.error(f"Receive loop error: {e}", exc_info=True)
        finally:
            self._state = ConnectionState.DISCONNECTED
            self._fail_pending(ConnectionClosedError("Connection closed"))
