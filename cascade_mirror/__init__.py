"""cascade-mirror: relays a host application's chat panel to remote viewers over CDP.

This package provides:
- CDPClient: WebSocket connection to the host's debug endpoint
- EndpointResolver: discovery of the debug endpoint among candidate ports
- SnapshotExtractor / MessageInjector: context-scoped evaluation
- AdaptivePoller: change-detecting snapshot polling
- MirrorApp: startup and shutdown of the whole bridge
- RemoteClient: reconnecting viewer-side client
- CLI: `cascade-mirror serve | watch | discover`
"""

__version__ = "0.1.0"
