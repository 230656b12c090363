"""Scenario-wide state that ties the platform and network stores together."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Protocol

from constellation.errors import (
    InterfaceExistsError,
    InterfaceInUseError,
    InterfaceInvalidError,
    InterfaceNotFoundError,
    LinkNotFoundError,
    NodeExistsError,
    NodeInUseError,
    NodeInvalidError,
    NodeNotFoundError,
    PlatformInUseError,
    PlatformNotFoundError,
    ServiceRequestExistsError,
    ServiceRequestNotFoundError,
    TransceiverNotFoundError,
)
from constellation.kb import KnowledgeBase
from constellation.model import NetworkNode, PlatformDefinition, ServiceRequest
from constellation.validation import split_interface_ref

_log = logging.getLogger(__name__)


def _q(value: str) -> str:
    return f'"{value}"'


class Medium(Enum):
    """Physical medium of an interface or link."""

    WIRED = 0
    WIRELESS = 1


@dataclass
class TransceiverModel:
    """A radio transceiver type that wireless interfaces refer to."""

    id: str
    min_ghz: float = 0.0
    max_ghz: float = 0.0
    max_range_km: float = 0.0


@dataclass
class NetworkInterface:
    """An interface attached to a network node."""

    id: str
    name: str = ""
    medium: Medium = Medium.WIRED
    parent_node_id: str = ""
    is_operational: bool = False
    transceiver_id: str = ""
    link_ids: list[str] = field(default_factory=list)


@dataclass
class NetworkLink:
    """A link between two interfaces."""

    id: str
    interface_a: str = ""
    interface_b: str = ""
    medium: Medium = Medium.WIRED
    is_up: bool = False
    is_impaired: bool = False


class NetworkStore:
    """Thread-safe store of transceiver models, interfaces and links."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._transceivers: dict[str, TransceiverModel] = {}
        self._interfaces: dict[str, NetworkInterface] = {}
        self._links: dict[str, NetworkLink] = {}

    # Transceivers -----------------------------------------------------

    def add_transceiver_model(self, model: TransceiverModel) -> None:
        if model is None or not model.id:
            raise ValueError("nil or empty transceiver model")
        with self._lock:
            if model.id in self._transceivers:
                raise ValueError(f"transceiver model already exists: {_q(model.id)}")
            self._transceivers[model.id] = model

    def get_transceiver_model(self, model_id: str) -> TransceiverModel | None:
        with self._lock:
            return self._transceivers.get(model_id)

    # Interfaces -------------------------------------------------------

    def add_interface(self, interface: NetworkInterface) -> None:
        if interface is None or not interface.id:
            raise InterfaceInvalidError("nil or empty interface")
        with self._lock:
            if interface.id in self._interfaces:
                raise InterfaceExistsError(_q(interface.id))
            self._interfaces[interface.id] = interface

    def get_network_interface(self, interface_id: str) -> NetworkInterface | None:
        with self._lock:
            return self._interfaces.get(interface_id)

    def get_all_interfaces(self) -> list[NetworkInterface]:
        with self._lock:
            return list(self._interfaces.values())

    def get_interfaces_for_node(self, node_id: str) -> list[NetworkInterface]:
        with self._lock:
            return [i for i in self._interfaces.values() if i.parent_node_id == node_id]

    def delete_interface(self, interface_id: str) -> None:
        with self._lock:
            if interface_id not in self._interfaces:
                raise InterfaceNotFoundError(_q(interface_id))
            del self._interfaces[interface_id]

    def replace_interfaces_for_node(
        self, node_id: str, interfaces: list[NetworkInterface] | None
    ) -> None:
        """Swap every interface of a node for the given ones."""
        new = list(interfaces or [])
        with self._lock:
            seen: set[str] = set()
            for interface in new:
                if interface is None or not interface.id:
                    raise InterfaceInvalidError("nil or empty interface")
                if interface.parent_node_id and interface.parent_node_id != node_id:
                    raise InterfaceInvalidError(
                        f"interface {_q(interface.id)} belongs to node {_q(interface.parent_node_id)}"
                    )
                if interface.id in seen:
                    raise InterfaceExistsError(_q(interface.id))
                seen.add(interface.id)
                existing = self._interfaces.get(interface.id)
                if existing is not None and existing.parent_node_id != node_id:
                    raise InterfaceExistsError(_q(interface.id))

            old = {i.id: i for i in self._interfaces.values() if i.parent_node_id == node_id}
            for interface_id in old:
                del self._interfaces[interface_id]
            for interface in new:
                interface.parent_node_id = node_id
                previous = old.get(interface.id)
                if previous is not None:
                    interface.link_ids = list(previous.link_ids)
                self._interfaces[interface.id] = interface

    # Links ------------------------------------------------------------

    def _attach(self, link: NetworkLink) -> None:
        for interface_id in dict.fromkeys((link.interface_a, link.interface_b)):
            interface = self._interfaces.get(interface_id)
            if interface is not None and link.id not in interface.link_ids:
                interface.link_ids.append(link.id)

    def _detach(self, link: NetworkLink) -> None:
        for interface_id in dict.fromkeys((link.interface_a, link.interface_b)):
            interface = self._interfaces.get(interface_id)
            if interface is not None:
                interface.link_ids = [i for i in interface.link_ids if i != link.id]

    def _require_endpoints(self, link: NetworkLink) -> None:
        for interface_id in (link.interface_a, link.interface_b):
            if interface_id not in self._interfaces:
                raise InterfaceNotFoundError(_q(interface_id))

    def add_network_link(self, link: NetworkLink) -> None:
        if link is None or not link.id:
            raise ValueError("nil or empty link")
        with self._lock:
            if link.id in self._links:
                raise ValueError(f"link already exists: {_q(link.id)}")
            self._require_endpoints(link)
            self._links[link.id] = link
            self._attach(link)

    def update_network_link(self, link: NetworkLink) -> None:
        if link is None or not link.id:
            raise ValueError("nil or empty link")
        with self._lock:
            old = self._links.get(link.id)
            if old is None:
                raise LinkNotFoundError(_q(link.id))
            self._require_endpoints(link)
            self._detach(old)
            self._links[link.id] = link
            self._attach(link)

    def delete_network_link(self, link_id: str) -> None:
        with self._lock:
            link = self._links.pop(link_id, None)
            if link is None:
                raise LinkNotFoundError(_q(link_id))
            self._detach(link)

    def get_network_link(self, link_id: str) -> NetworkLink | None:
        with self._lock:
            return self._links.get(link_id)

    def get_all_network_links(self) -> list[NetworkLink]:
        with self._lock:
            return list(self._links.values())

    def get_links_for_interface(self, interface_id: str) -> list[NetworkLink]:
        with self._lock:
            return [
                link
                for link in self._links.values()
                if interface_id in (link.interface_a, link.interface_b)
            ]

    def clear(self) -> None:
        """Remove all interfaces and links; transceiver models are kept."""
        with self._lock:
            self._interfaces = {}
            self._links = {}


class MetricsRecorder(Protocol):
    """Receives entity counts whenever the scenario changes."""

    def set_scenario_counts(
        self, platforms: int, nodes: int, links: int, service_requests: int
    ) -> None: ...


class _Resettable(Protocol):
    def reset(self) -> None: ...


class _MotionUpdater(Protocol):
    def update_positions(self, sim_time: datetime) -> None: ...


class _ConnectivityUpdater(Protocol):
    def update_connectivity(self) -> None: ...


@dataclass
class ScenarioSnapshot:
    """A consistent view of the scenario; the entries are shared, treat as read-only."""

    platforms: list[PlatformDefinition]
    nodes: list[NetworkNode]
    interfaces: list[NetworkInterface]
    interfaces_by_node: dict[str, list[NetworkInterface]]
    links: list[NetworkLink]
    service_requests: list[ServiceRequest]


class ScenarioState:
    """Coordinates the platform store, the network store and service requests."""

    def __init__(
        self,
        physical: KnowledgeBase,
        network: NetworkStore,
        logger: logging.Logger | None = None,
        *,
        motion: _Resettable | None = None,
        connectivity: _Resettable | None = None,
        metrics: MetricsRecorder | None = None,
    ) -> None:
        # Taken before any store lock to keep a single lock ordering.
        self._lock = threading.RLock()
        self.physical_kb = physical
        self.network_kb = network
        self._service_requests: dict[str, ServiceRequest] = {}
        self._motion = motion
        self._connectivity = connectivity
        self._log = logger if logger is not None else _log
        self._metrics = metrics
        self._update_metrics()

    @contextmanager
    def read_lock(self) -> Iterator[None]:
        """Hold the scenario lock for the duration of the block."""
        with self._lock:
            yield

    def run_sim_tick(
        self,
        sim_time: datetime,
        motion: _MotionUpdater | None = None,
        connectivity: _ConnectivityUpdater | None = None,
        fn: Callable[[], None] | None = None,
    ) -> None:
        """Run one simulation step under the scenario lock."""
        with self._lock:
            if fn is not None:
                fn()
            if motion is not None:
                motion.update_positions(sim_time)
            if connectivity is not None:
                connectivity.update_connectivity()

    def snapshot(self) -> ScenarioSnapshot:
        with self._lock:
            nodes = self.physical_kb.list_network_nodes()
            interfaces = self.network_kb.get_all_interfaces()
            return ScenarioSnapshot(
                platforms=self.physical_kb.list_platforms(),
                nodes=nodes,
                interfaces=interfaces,
                interfaces_by_node=self._group_interfaces(nodes, interfaces),
                links=self.network_kb.get_all_network_links(),
                service_requests=list(self._service_requests.values()),
            )

    # Platforms --------------------------------------------------------

    def create_platform(self, platform: PlatformDefinition) -> None:
        if platform is None:
            raise ValueError("platform is nil")
        with self._lock:
            self.physical_kb.add_platform(platform)
            self._update_metrics()

    def get_platform(self, platform_id: str) -> PlatformDefinition:
        with self._lock:
            platform = self.physical_kb.get_platform(platform_id)
            if platform is None:
                raise PlatformNotFoundError()
            return platform

    def list_platforms(self) -> list[PlatformDefinition]:
        with self._lock:
            return self.physical_kb.list_platforms()

    def update_platform(self, platform: PlatformDefinition) -> None:
        if platform is None:
            raise ValueError("platform is nil")
        with self._lock:
            self.physical_kb.update_platform(platform)
            self._update_metrics()

    def delete_platform(self, platform_id: str) -> None:
        with self._lock:
            if self.physical_kb.get_platform(platform_id) is None:
                raise PlatformNotFoundError()
            if self._platform_referenced(platform_id):
                # No cascading delete.
                raise PlatformInUseError()
            self.physical_kb.delete_platform(platform_id)
            self._update_metrics()

    def _platform_referenced(self, platform_id: str) -> bool:
        if not platform_id:
            return False
        return any(
            node is not None and node.platform_id == platform_id
            for node in self.physical_kb.list_network_nodes()
        )

    # Nodes ------------------------------------------------------------

    def create_node(
        self, node: NetworkNode, interfaces: list[NetworkInterface] | None = None
    ) -> None:
        """Add a node together with its interfaces, all or nothing."""
        if node is None or not node.id:
            raise NodeInvalidError("empty node")
        interfaces = list(interfaces or [])
        with self._lock:
            if node.platform_id and self.physical_kb.get_platform(node.platform_id) is None:
                raise PlatformNotFoundError(_q(node.platform_id))
            if self.physical_kb.get_network_node(node.id) is not None:
                raise NodeExistsError(_q(node.id))
            self._validate_interfaces(node.id, interfaces)

            self.physical_kb.add_network_node(node)
            added: list[str] = []
            for interface in interfaces:
                try:
                    self.network_kb.add_interface(interface)
                except Exception:
                    for interface_id in added:
                        self.network_kb.delete_interface(interface_id)
                    self.physical_kb.delete_network_node(node.id)
                    raise
                added.append(interface.id)
            self._update_metrics()

    def get_node(self, node_id: str) -> tuple[NetworkNode, list[NetworkInterface]]:
        with self._lock:
            node = self.physical_kb.get_network_node(node_id)
            if node is None:
                raise NodeNotFoundError()
            return node, self._interfaces_for(node_id)

    def list_nodes(self) -> list[NetworkNode]:
        with self._lock:
            return self.physical_kb.list_network_nodes()

    def list_interfaces_for_node(self, node_id: str) -> list[NetworkInterface]:
        with self._lock:
            return self._interfaces_for(node_id)

    def interfaces_by_node(self) -> dict[str, list[NetworkInterface]]:
        with self._lock:
            return self._group_interfaces(
                self.physical_kb.list_network_nodes(), self.network_kb.get_all_interfaces()
            )

    def update_node(
        self, node: NetworkNode, interfaces: list[NetworkInterface] | None = None
    ) -> None:
        """Replace a node and the full set of its interfaces."""
        if node is None or not node.id:
            raise NodeInvalidError("empty node")
        interfaces = list(interfaces or [])
        with self._lock:
            if self.physical_kb.get_network_node(node.id) is None:
                raise NodeNotFoundError()
            if node.platform_id and self.physical_kb.get_platform(node.platform_id) is None:
                raise PlatformNotFoundError(_q(node.platform_id))
            self._validate_interfaces(node.id, interfaces)
            self.physical_kb.update_network_node(node)
            self.network_kb.replace_interfaces_for_node(node.id, interfaces)
            self._update_metrics()

    def delete_node(self, node_id: str) -> None:
        """Remove a node and its interfaces; refuse if links or requests use it."""
        if not node_id:
            raise NodeInvalidError("empty node ID")
        with self._lock:
            if self.physical_kb.get_network_node(node_id) is None:
                raise NodeNotFoundError()
            if self._node_referenced(node_id):
                raise NodeInUseError()
            self.physical_kb.delete_network_node(node_id)
            self.network_kb.replace_interfaces_for_node(node_id, None)
            self._update_metrics()

    def _node_referenced(self, node_id: str) -> bool:
        interface_ids = {i.id for i in self._interfaces_for(node_id) if i is not None and i.id}
        if interface_ids:
            for link in self.network_kb.get_all_network_links():
                if link is not None and (
                    link.interface_a in interface_ids or link.interface_b in interface_ids
                ):
                    return True
        return any(
            request is not None and node_id in (request.src_node_id, request.dst_node_id)
            for request in self._service_requests.values()
        )

    def delete_interface(self, interface_id: str) -> None:
        """Remove an interface; refuse if links still use it."""
        if not interface_id:
            raise InterfaceInvalidError("empty interface ID")
        with self._lock:
            if self.network_kb.get_network_interface(interface_id) is None:
                raise InterfaceNotFoundError()
            if self.network_kb.get_links_for_interface(interface_id):
                raise InterfaceInUseError()
            self.network_kb.delete_interface(interface_id)
            self._update_metrics()

    # Links ------------------------------------------------------------

    def create_link(self, link: NetworkLink) -> None:
        self.create_links(link)

    def create_links(self, *args: NetworkLink) -> None:
        """Add links, rolling back those added by this call if any one fails."""
        if any(link is None for link in args):
            raise ValueError("link is nil")
        with self._lock:
            added: list[str] = []
            for link in args:
                try:
                    self.network_kb.add_network_link(link)
                except Exception:
                    for link_id in added:
                        self.network_kb.delete_network_link(link_id)
                    raise
                added.append(link.id)
            self._update_metrics()

    def get_link(self, link_id: str) -> NetworkLink:
        with self._lock:
            link = self.network_kb.get_network_link(link_id)
            if link is None:
                raise LinkNotFoundError()
            return link

    def list_links(self) -> list[NetworkLink]:
        with self._lock:
            return self.network_kb.get_all_network_links()

    def delete_link(self, link_id: str) -> None:
        with self._lock:
            self.network_kb.delete_network_link(link_id)
            self._update_metrics()

    def update_link(self, link: NetworkLink) -> None:
        if link is None:
            raise ValueError("link is nil")
        with self._lock:
            self.network_kb.update_network_link(link)
            self._update_metrics()

    # Service requests -------------------------------------------------

    def create_service_request(self, request: ServiceRequest) -> None:
        self._check_request(request)
        with self._lock:
            if request.id in self._service_requests:
                raise ServiceRequestExistsError()
            self._service_requests[request.id] = request
            self._update_metrics()

    def get_service_request(self, request_id: str) -> ServiceRequest:
        with self._lock:
            try:
                return self._service_requests[request_id]
            except KeyError:
                raise ServiceRequestNotFoundError() from None

    def list_service_requests(self) -> list[ServiceRequest]:
        with self._lock:
            return list(self._service_requests.values())

    def update_service_request(self, request: ServiceRequest) -> None:
        self._check_request(request)
        with self._lock:
            if request.id not in self._service_requests:
                raise ServiceRequestNotFoundError()
            self._service_requests[request.id] = request
            self._update_metrics()

    def delete_service_request(self, request_id: str) -> None:
        with self._lock:
            if self._service_requests.pop(request_id, None) is None:
                raise ServiceRequestNotFoundError()
            self._update_metrics()

    @staticmethod
    def _check_request(request: ServiceRequest) -> None:
        if request is None:
            raise ValueError("service request is nil")
        if not request.id:
            raise ValueError("service request ID is empty")

    # Whole scenario ---------------------------------------------------

    def clear_scenario(self) -> None:
        """Wipe all scenario data and reset the attached motion and connectivity."""
        with self._lock:
            counts = (
                len(self.physical_kb.list_platforms()),
                len(self.physical_kb.list_network_nodes()),
                len(self.network_kb.get_all_interfaces()),
                len(self.network_kb.get_all_network_links()),
                len(self._service_requests),
            )
            summary = (
                "platforms=%d nodes=%d interfaces=%d links=%d service_requests=%d" % counts
            )
            self._log.debug("clearing scenario: %s", summary)

            self.physical_kb.clear()
            self.network_kb.clear()
            self._service_requests = {}
            if self._motion is not None:
                self._motion.reset()
            if self._connectivity is not None:
                self._connectivity.reset()
            self._update_metrics()

            self._log.debug("scenario cleared: %s", summary)

    # Helpers ----------------------------------------------------------

    def _update_metrics(self) -> None:
        if self._metrics is None:
            return
        self._metrics.set_scenario_counts(
            len(self.physical_kb.list_platforms()),
            len(self.physical_kb.list_network_nodes()),
            len(self.network_kb.get_all_network_links()),
            len(self._service_requests),
        )

    def _interfaces_for(self, node_id: str) -> list[NetworkInterface]:
        if not node_id:
            return []
        return self.network_kb.get_interfaces_for_node(node_id)

    @staticmethod
    def _group_interfaces(
        nodes: list[NetworkNode], interfaces: list[NetworkInterface]
    ) -> dict[str, list[NetworkInterface]]:
        by_node: dict[str, list[NetworkInterface]] = {}
        for interface in interfaces:
            if interface is not None:
                by_node.setdefault(interface.parent_node_id, []).append(interface)
        for node in nodes:
            if node is not None:
                by_node.setdefault(node.id, [])
        return by_node

    def _validate_interfaces(self, node_id: str, interfaces: list[NetworkInterface]) -> None:
        if not node_id:
            raise NodeInvalidError("empty node ID")
        seen: set[str] = set()
        for interface in interfaces:
            if interface is None:
                raise InterfaceInvalidError("nil interface")
            parent, local = split_interface_ref(interface.id)
            if parent and parent != node_id:
                raise InterfaceInvalidError(
                    f"interface {_q(interface.id)} parent {_q(parent)} "
                    f"does not match node {_q(node_id)}"
                )
            local = local or interface.id
            if not local:
                raise InterfaceInvalidError(f"empty interface_id for node {_q(node_id)}")
            if not interface.parent_node_id:
                interface.parent_node_id = node_id
            if interface.parent_node_id != node_id:
                raise InterfaceInvalidError(
                    f"interface {_q(interface.id)} parent {_q(interface.parent_node_id)} "
                    f"does not match node {_q(node_id)}"
                )
            if local in seen:
                raise InterfaceInvalidError(
                    f"duplicate interface_id {_q(local)} for node {_q(node_id)}"
                )
            seen.add(local)
            if interface.medium is Medium.WIRELESS:
                if not interface.transceiver_id:
                    raise InterfaceInvalidError(
                        f"wireless interface {_q(interface.id)} missing transceiver reference"
                    )
                if self.network_kb.get_transceiver_model(interface.transceiver_id) is None:
                    raise TransceiverNotFoundError(_q(interface.transceiver_id))