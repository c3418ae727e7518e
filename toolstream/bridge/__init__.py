"""HTTP/SSE bridge exposing the orchestrator to a UI."""

from toolstream.bridge.client import BridgeClient
from toolstream.bridge.events import EventBroadcaster, format_sse
from toolstream.bridge.server import create_app

__all__ = ["BridgeClient", "EventBroadcaster", "create_app", "format_sse"]
