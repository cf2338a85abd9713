"""
Debug endpoint discovery.

Scans candidate ports for the host's workbench page target and returns the
WebSocket URL to connect to.
"""

import asyncio
import json
import logging
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from .exceptions import EndpointNotFoundError

logger = logging.getLogger(__name__)

# Marker identifying the host surface that renders the chat panel
TARGET_MARKER = "workbench"
TARGET_URL_MARKER = "workbench.html"


@dataclass(frozen=True)
class Endpoint:
    """A resolved debug endpoint. Immutable once resolved."""

    port: int
    ws_url: str
    host: str = "127.0.0.1"

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def get_json(url: str, timeout: float = 2.0) -> Any:
    """
    Fetch a URL and decode its body as JSON.

    Args:
        url: HTTP URL to fetch
        timeout: Socket timeout in seconds

    Returns:
        Decoded JSON document

    Raises:
        urllib.error.URLError: If the request fails or the status is not 2xx
        json.JSONDecodeError: If the body is not valid JSON
    """
    with urllib.request.urlopen(url, timeout=timeout) as response:
        status = getattr(response, "status", 200)
        if status < 200 or status >= 300:
            raise urllib.error.URLError(f"Request failed with status code {status}")
        return json.loads(response.read())


def matches_target(target: Dict[str, Any]) -> bool:
    """Check whether a /json/list entry is the workbench surface."""
    url = target.get("url") or ""
    title = target.get("title") or ""
    return TARGET_URL_MARKER in url or TARGET_MARKER in title


def select_target(targets: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Pick the first matching target that can be connected to.

    First match wins, not best match.
    """
    for target in targets:
        if not isinstance(target, dict):
            continue
        if matches_target(target) and target.get("webSocketDebuggerUrl"):
            return target
    return None


class EndpointResolver:
    """
    Finds the host's debug endpoint among a list of candidate ports.

    Usage:
        resolver = EndpointResolver([9000, 9001])
        endpoint = await resolver.find_endpoint()
        await client.connect(endpoint.ws_url)

    Attributes:
        ports: Candidate ports, tried in order
        host: Host the ports live on (default: 127.0.0.1)
        timeout: HTTP timeout per candidate in seconds
    """

    def __init__(
        self,
        ports: Iterable[int],
        host: str = "127.0.0.1",
        timeout: float = 2.0,
        get_json_fn: Optional[Callable[[str], Any]] = None,
    ):
        """
        Args:
            ports: Candidate ports, tried in list order
            host: Host to query
            timeout: HTTP timeout in seconds
            get_json_fn: Optional fetcher (url -> decoded JSON), sync or async
        """
        self.ports: List[int] = list(ports)
        self.host = host
        self.timeout = timeout
        self._get_json = get_json_fn

    async def _fetch(self, url: str) -> Any:
        if self._get_json is not None:
            result = self._get_json(url)
            if asyncio.iscoroutine(result):
                result = await result
            return result
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, get_json, url, self.timeout)

    async def find_endpoint(self) -> Endpoint:
        """
        Try every candidate port in order and return the first match.

        Returns:
            Endpoint for the first workbench target found

        Raises:
            EndpointNotFoundError: If no candidate yielded a match
        """
        for port in self.ports:
            url = f"http://{self.host}:{port}/json/list"
            try:
                targets = await self._fetch(url)
            except Exception as e:
                logger.debug(f"No debug endpoint at {url}: {e}")
                continue

            if not isinstance(targets, list):
                logger.debug(f"Unexpected target listing from {url}")
                continue

            target = select_target(targets)
            if target is not None:
                logger.info(f"Found workbench target on port {port}")
                return Endpoint(
                    port=port, ws_url=target["webSocketDebuggerUrl"], host=self.host
                )
            logger.debug(f"No workbench target among {len(targets)} targets on port {port}")

        raise EndpointNotFoundError(
            "CDP not found. Is the host started with --remote-debugging-port?",
            ports=self.ports,
            details={"host": self.host, "ports": self.ports},
        )
