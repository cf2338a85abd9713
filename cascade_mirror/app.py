"""
Lifecycle orchestration for the bridge.

MirrorApp owns every long-lived resource (CDP client, poller, viewer server,
latest snapshot) and wires them together at startup.
"""

import asyncio
import logging
from typing import Optional

from .config import Configuration
from .connection import CDPClient
from .discovery import Endpoint, EndpointResolver
from .evaluator import MessageInjector, SnapshotExtractor
from .exceptions import HostNotConnectedError
from .logging_setup import log_with_context
from .network import get_primary_tailscale_ip
from .poller import AdaptivePoller
from .server import MirrorServer, snapshot_update_frame

logger = logging.getLogger(__name__)


class MirrorApp:
    """
    Composition root: startup sequence, change fan-out and shutdown.

    Startup order: resolve endpoint, connect client, build extractor and
    injector, build server and poller, start poller, bind listener. Any
    failure aborts startup and propagates unchanged.

    Usage:
        app = MirrorApp(config)
        await app.start()
        try:
            await app.run_forever()
        finally:
            await app.stop()

    Attributes:
        config: Configuration in effect
        endpoint: Resolved debug endpoint (after start)
        client: CDPClient (after connect)
        poller: AdaptivePoller (after start)
        server: MirrorServer (after start)
    """

    def __init__(
        self,
        config: Optional[Configuration] = None,
        *,
        resolver: Optional[EndpointResolver] = None,
        client: Optional[CDPClient] = None,
        server: Optional[MirrorServer] = None,
    ):
        self.config = config or Configuration()
        self._resolver = resolver
        self._client_override = client
        self._server_override = server

        self.endpoint: Optional[Endpoint] = None
        self.client: Optional[CDPClient] = None
        self.extractor: Optional[SnapshotExtractor] = None
        self.injector: Optional[MessageInjector] = None
        self.poller: Optional[AdaptivePoller] = None
        self.server: Optional[MirrorServer] = None
        self._latest_snapshot: Optional[dict] = None
        self._stopped = asyncio.Event()

    def get_latest_snapshot(self) -> Optional[dict]:
        return self._latest_snapshot

    async def start(self) -> None:
        """Run the startup sequence.

        Raises:
            EndpointNotFoundError: If discovery exhausted every candidate port
            ConnectionFailedError: If the CDP connection could not be opened
        """
        config = self.config

        resolver = self._resolver or EndpointResolver(config.cdp_ports, host=config.cdp_host)
        logger.info("Discovering CDP endpoint...")
        self.endpoint = await resolver.find_endpoint()
        logger.info(f"Found host on port {self.endpoint.port}")

        self.client = self._client_override or CDPClient(timeout=config.timeout)
        logger.info("Connecting to CDP...")
        await self.client.connect(self.endpoint.ws_url)
        logger.info(f"Connected, {len(self.client.contexts)} execution contexts")

        self.extractor = SnapshotExtractor(self.client)
        self.injector = MessageInjector(self.client)

        self.server = self._server_override or MirrorServer(
            get_latest_snapshot=self.get_latest_snapshot,
            send_to_host=self.send_to_host,
            on_activity=self._on_viewer_activity,
            static_dir=config.static_dir,
        )
        self.poller = AdaptivePoller(
            self.extractor, config.poll_interval, self._on_snapshot_update
        )
        self.poller.start()

        await self.server.start(config.bind_host, config.port)
        self._log_access_urls()

    def _log_access_urls(self) -> None:
        port = self.config.port
        try:
            tailscale_ip = get_primary_tailscale_ip()
        except Exception as e:
            logger.debug(f"Interface discovery failed: {e}")
            tailscale_ip = None
        if tailscale_ip:
            logger.info(f"Access from other devices: http://{tailscale_ip}:{port}")
        else:
            logger.info(f"Access from other devices: http://<your-ip>:{port}")

    def _on_viewer_activity(self) -> None:
        if self.poller is not None:
            self.poller.signal_activity()

    async def _on_snapshot_update(self, snapshot: dict) -> None:
        """Store the new snapshot and notify every open viewer."""
        self._latest_snapshot = snapshot
        viewers = 0
        if self.server is not None:
            viewers = await self.server.broadcast(snapshot_update_frame())
        log_with_context(logger, logging.INFO, "Snapshot updated", viewers=viewers)

    async def send_to_host(self, message: str) -> dict:
        """
        Replay a viewer message into the host's chat.

        Returns:
            The injector result (``ok`` plus ``method`` or ``reason``)

        Raises:
            HostNotConnectedError: If the CDP client is absent or disconnected
        """
        if self.client is None or not self.client.is_connected:
            raise HostNotConnectedError("CDP not connected")
        if self.injector is None:
            raise HostNotConnectedError("Injection service not initialized")
        if self.poller is not None:
            self.poller.signal_activity()
        return await self.injector.inject(message)

    async def run_forever(self) -> None:
        """Block until stop() is called."""
        await self._stopped.wait()

    async def stop(self) -> None:
        """Release resources. Each step is guarded and logged independently."""
        logger.info("Stopping...")

        if self.poller is not None:
            try:
                self.poller.stop()
            except Exception as e:
                logger.error(f"Error stopping poller: {e}", exc_info=True)

        if self.client is not None:
            try:
                await self.client.close()
            except Exception as e:
                logger.error(f"Error closing CDP client: {e}", exc_info=True)

        if self.server is not None and self.server.connections:
            try:
                await self.server.close_connections()
            except Exception as e:
                logger.error(f"Error closing viewer connections: {e}", exc_info=True)

        if self.server is not None:
            try:
                await self.server.stop_accepting()
            except Exception as e:
                logger.error(f"Error stopping viewer connection acceptor: {e}", exc_info=True)

        if self.server is not None:
            try:
                await self.server.close()
            except Exception as e:
                logger.error(f"Error closing HTTP server: {e}", exc_info=True)

        self._stopped.set()
        logger.info("Stopped")
