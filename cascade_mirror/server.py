"""
HTTP and WebSocket surface for remote viewers.

Routes:
- GET /snapshot - latest captured snapshot
- POST /send    - inject a message into the host chat
- GET /ws       - push channel for snapshot_update frames, answers pings
- /             - optional static viewer files
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, Set

from aiohttp import WSMsgType, web
from aiohttp.web import Application, Request, Response

from .evaluator import NO_CONTEXT_RESULT
from .exceptions import HostNotConnectedError

logger = logging.getLogger(__name__)

# Viewers only send pings; anything larger is dropped unanswered.
MAX_MESSAGE_SIZE = 1024


def snapshot_update_frame() -> dict:
    """Build the broadcast frame announcing a new snapshot."""
    return {
        "type": "snapshot_update",
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


class MirrorServer:
    """
    aiohttp server exposing the latest snapshot and message injection.

    The server only routes; state lives in the callbacks it is given.

    Attributes:
        get_latest_snapshot: Returns the latest snapshot or None
        send_to_host: Coroutine delivering a message, returns the injector result
        on_activity: Optional hook called on viewer activity
        static_dir: Optional directory served at /
        connections: Currently open viewer WebSockets
    """

    def __init__(
        self,
        get_latest_snapshot: Callable[[], Optional[dict]],
        send_to_host: Callable[[str], Awaitable[dict]],
        on_activity: Optional[Callable[[], None]] = None,
        static_dir: Optional[str] = None,
    ):
        self.get_latest_snapshot = get_latest_snapshot
        self.send_to_host = send_to_host
        self.on_activity = on_activity
        self.static_dir = Path(static_dir) if static_dir else None

        self.connections: Set[web.WebSocketResponse] = set()
        self.app: Optional[Application] = None
        self.runner: Optional[web.AppRunner] = None
        self.site: Optional[web.TCPSite] = None
        self._accepting = True

    def create_app(self) -> Application:
        """Create the aiohttp application with routes."""
        app = web.Application()
        app.router.add_get("/snapshot", self.handle_snapshot)
        app.router.add_post("/send", self.handle_send)
        app.router.add_get("/ws", self.handle_ws)
        if self.static_dir is not None:
            if self.static_dir.is_dir():
                app.router.add_get("/", self.handle_index)
                app.router.add_static("/", self.static_dir)
            else:
                logger.warning(f"Static directory not found: {self.static_dir}")
        self.app = app
        return app

    async def start(self, host: str, port: int) -> None:
        """Bind the listener."""
        if self.app is None:
            self.create_app()
        self.runner = web.AppRunner(self.app)
        await self.runner.setup()
        self.site = web.TCPSite(self.runner, host, port)
        await self.site.start()
        logger.info(f"Server running on http://{host}:{port}")

    async def close_connections(self) -> None:
        """Close every open viewer WebSocket."""
        for ws in list(self.connections):
            try:
                await ws.close()
            except Exception as e:
                logger.warning(f"Error closing viewer connection: {e}")
        self.connections.clear()

    async def stop_accepting(self) -> None:
        """Refuse new viewer WebSockets and stop the listening socket."""
        self._accepting = False
        if self.site is not None:
            await self.site.stop()
            self.site = None

    async def close(self) -> None:
        """Release the runner and the application."""
        if self.runner is not None:
            await self.runner.cleanup()
            self.runner = None
        logger.info("HTTP server closed")

    async def broadcast(self, frame: dict) -> int:
        """
        Send a frame to every open viewer connection.

        Returns:
            Number of connections the frame was sent to
        """
        payload = json.dumps(frame)
        sent = 0
        for ws in list(self.connections):
            if ws.closed:
                self.connections.discard(ws)
                continue
            try:
                await ws.send_str(payload)
                sent += 1
            except Exception as e:
                logger.warning(f"Broadcast to viewer failed: {e}")
                self.connections.discard(ws)
        return sent

    def _json_response(self, data: Any, status: int = 200) -> Response:
        return web.json_response(data, status=status)

    async def handle_index(self, request: Request) -> web.StreamResponse:
        return web.FileResponse(self.static_dir / "index.html")

    async def handle_snapshot(self, request: Request) -> Response:
        """Return the latest snapshot, 503 until one was captured."""
        snapshot = self.get_latest_snapshot()
        if not snapshot:
            return self._json_response({"error": "No snapshot available yet"}, status=503)
        return self._json_response(snapshot)

    async def handle_send(self, request: Request) -> Response:
        """Deliver {message} to the host chat."""
        try:
            body = await request.json()
        except Exception:
            return self._json_response(
                {"success": False, "error": "Invalid JSON in request body"}, status=400
            )

        message = body.get("message") if isinstance(body, dict) else None
        if not message or not isinstance(message, str):
            return self._json_response(
                {"success": False, "error": "Message required"}, status=400
            )

        if self.on_activity is not None:
            self.on_activity()

        try:
            result = await self.send_to_host(message)
        except HostNotConnectedError:
            return self._json_response(
                {"success": False, "error": "host_not_connected"}, status=503
            )
        except Exception as e:
            logger.error(f"Message injection failed: {e}", exc_info=True)
            return self._json_response({"success": False, "error": str(e)}, status=500)

        if not isinstance(result, dict):
            return self._json_response(
                {"success": False, "error": "Unexpected injection result"}, status=500
            )
        if result.get("ok"):
            return self._json_response({"success": True, "method": result.get("method")})
        reason = result.get("reason") or result.get("error") or "Unknown error"
        status = 503 if reason == NO_CONTEXT_RESULT["reason"] else 500
        return self._json_response({"success": False, "error": reason}, status=status)

    async def handle_ws(self, request: Request) -> web.StreamResponse:
        """Viewer push channel: snapshot_update out, ping/pong in."""
        if not self._accepting:
            return self._json_response({"error": "Server shutting down"}, status=503)

        ws = web.WebSocketResponse()
        await ws.prepare(request)
        self.connections.add(ws)
        logger.info(f"Viewer connected ({len(self.connections)} open)")
        if self.on_activity is not None:
            self.on_activity()

        try:
            async for msg in ws:
                if msg.type == WSMsgType.TEXT:
                    await self._handle_viewer_frame(ws, msg.data)
                elif msg.type == WSMsgType.BINARY:
                    if len(msg.data) > MAX_MESSAGE_SIZE:
                        logger.warning(f"Rejected oversized message ({len(msg.data)} bytes)")
                elif msg.type == WSMsgType.ERROR:
                    logger.error(f"Viewer WebSocket error: {ws.exception()}")
        finally:
            self.connections.discard(ws)
            logger.info("Viewer disconnected")
        return ws

    async def _handle_viewer_frame(self, ws: web.WebSocketResponse, data: str) -> None:
        if len(data.encode("utf-8")) > MAX_MESSAGE_SIZE:
            logger.warning(f"Rejected oversized message ({len(data)} chars)")
            return
        try:
            frame = json.loads(data)
        except ValueError:
            return
        if isinstance(frame, dict) and frame.get("type") == "ping":
            await ws.send_str(json.dumps({"type": "pong"}))
