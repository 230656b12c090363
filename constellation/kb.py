"""Thread-safe in-memory store for platforms and network nodes."""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from constellation.errors import (
    NodeExistsError,
    NodeNotFoundError,
    PlatformExistsError,
    PlatformNotFoundError,
)
from constellation.model import Motion, NetworkNode, PlatformDefinition


class EventType(Enum):
    """Kind of change that happened in the knowledge base."""

    PLATFORM_UPDATED = 0


@dataclass(frozen=True)
class Event:
    """A change notification handed to subscribers."""

    type: EventType
    platform: PlatformDefinition


def _quoted(value: str) -> str:
    return f'"{value}"'


class KnowledgeBase:
    """Stores platforms and nodes by ID and notifies subscribers of motion."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._platforms: dict[str, PlatformDefinition] = {}
        self._nodes: dict[str, NetworkNode] = {}
        self._subscribers: list[tuple[object, Callable[[Event], None]]] = []

    def add_platform(self, platform: PlatformDefinition) -> None:
        """Add a platform; raise PlatformExistsError if its ID is taken."""
        if platform is None or not platform.id:
            raise ValueError("nil or empty platform")
        with self._lock:
            if platform.id in self._platforms:
                raise PlatformExistsError(_quoted(platform.id))
            # Stored by reference so motion models can update it in place.
            self._platforms[platform.id] = platform

    def update_platform(self, platform: PlatformDefinition) -> None:
        """Replace an existing platform entry."""
        if platform is None or not platform.id:
            raise ValueError("nil or empty platform")
        with self._lock:
            if platform.id not in self._platforms:
                raise PlatformNotFoundError(_quoted(platform.id))
            self._platforms[platform.id] = platform

    def delete_platform(self, platform_id: str) -> None:
        """Remove a platform by ID."""
        if not platform_id:
            raise ValueError("empty platform ID")
        with self._lock:
            if platform_id not in self._platforms:
                raise PlatformNotFoundError(_quoted(platform_id))
            del self._platforms[platform_id]

    def clear(self) -> None:
        """Remove all platforms and nodes, keeping subscribers."""
        with self._lock:
            self._platforms = {}
            self._nodes = {}

    def add_network_node(self, node: NetworkNode) -> None:
        """Add a node; its platform, if named, must already exist."""
        if node is None or not node.id:
            raise ValueError("nil or empty node")
        with self._lock:
            if node.id in self._nodes:
                raise NodeExistsError(_quoted(node.id))
            if node.platform_id and node.platform_id not in self._platforms:
                raise PlatformNotFoundError(_quoted(node.platform_id))
            self._nodes[node.id] = node

    def update_network_node(self, node: NetworkNode) -> None:
        """Replace an existing node entry."""
        if node is None or not node.id:
            raise ValueError("nil or empty node")
        with self._lock:
            if node.id not in self._nodes:
                raise NodeNotFoundError(_quoted(node.id))
            if node.platform_id and node.platform_id not in self._platforms:
                raise PlatformNotFoundError(_quoted(node.platform_id))
            self._nodes[node.id] = node

    def delete_network_node(self, node_id: str) -> None:
        """Remove a node by ID."""
        if not node_id:
            raise ValueError("empty node ID")
        with self._lock:
            if node_id not in self._nodes:
                raise NodeNotFoundError(_quoted(node_id))
            del self._nodes[node_id]

    def get_platform(self, platform_id: str) -> PlatformDefinition | None:
        with self._lock:
            return self._platforms.get(platform_id)

    def get_network_node(self, node_id: str) -> NetworkNode | None:
        with self._lock:
            return self._nodes.get(node_id)

    def list_platforms(self) -> list[PlatformDefinition]:
        with self._lock:
            return list(self._platforms.values())

    def list_network_nodes(self) -> list[NetworkNode]:
        with self._lock:
            return list(self._nodes.values())

    def update_platform_position(self, platform_id: str, position: Motion) -> None:
        """Move a platform and notify subscribers with a copy of it."""
        with self._lock:
            platform = self._platforms.get(platform_id)
            if platform is None:
                raise PlatformNotFoundError(_quoted(platform_id))
            platform.coordinates = position
            event = Event(EventType.PLATFORM_UPDATED, dataclasses.replace(platform))
            callbacks = [fn for _, fn in self._subscribers]

        # Called outside the lock so callbacks may use the store.
        for callback in callbacks:
            callback(event)

    def subscribe(self, callback: Callable[[Event], None]) -> Callable[[], None]:
        """Register a callback for events; return a function that removes it."""
        token = object()
        with self._lock:
            self._subscribers.append((token, callback))

        def unsubscribe() -> None:
            with self._lock:
                self._subscribers = [
                    entry for entry in self._subscribers if entry[0] is not token
                ]

        return unsubscribe