"""Structural validation of northbound API resources."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import IntEnum


class ValidationError(ValueError):
    """Base class for malformed API resources; a detail follows the message."""

    message = "invalid resource"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class InvalidPlatformError(ValidationError):
    message = "invalid platform"


class InvalidNodeError(ValidationError):
    message = "invalid node"


class InvalidInterfaceError(ValidationError):
    message = "invalid interface"


class InvalidLinkError(ValidationError):
    message = "invalid link"


class InvalidServiceRequestError(ValidationError):
    message = "invalid service request"


class ProtoMotionSource(IntEnum):
    """Motion source as carried on the wire."""

    UNKNOWN_SOURCE = 0
    SPACETRACK_ORG = 1


@dataclass
class PlatformProto:
    """Platform definition as received over the API; the name is its ID."""

    name: str = ""
    type: str = ""
    motion_source: ProtoMotionSource = ProtoMotionSource.UNKNOWN_SOURCE


@dataclass
class WiredDevice:
    platform_id: str = ""


@dataclass
class WirelessDevice:
    platform: str = ""
    transceiver_model_id: str | None = None


@dataclass
class NetworkInterfaceProto:
    """A node interface; ``medium`` is a wired or wireless device, or None."""

    interface_id: str = ""
    medium: WiredDevice | WirelessDevice | None = None


@dataclass
class NetworkNodeProto:
    node_id: str = ""
    interfaces: list[NetworkInterfaceProto | None] = field(default_factory=list)


@dataclass
class LinkEndId:
    node_id: str = ""
    interface_id: str = ""


@dataclass
class LinkEnd:
    id: LinkEndId | None = None


@dataclass
class BidirectionalLinkProto:
    a_network_node_id: str = ""
    a_tx_interface_id: str = ""
    a_rx_interface_id: str = ""
    a: LinkEnd | None = None
    b_network_node_id: str = ""
    b_tx_interface_id: str = ""
    b_rx_interface_id: str = ""
    b: LinkEnd | None = None


@dataclass
class TimeInterval:
    start_time: datetime | None = None
    end_time: datetime | None = None


@dataclass
class FlowRequirementsProto:
    bandwidth_bps_requested: float = 0.0
    bandwidth_bps_minimum: float = 0.0
    latency_maximum: timedelta | None = None
    time_interval: TimeInterval | None = None


@dataclass
class ServiceRequestProto:
    type: str = ""
    src_node_id: str = ""
    dst_node_id: str = ""
    priority: float = 0.0
    requirements: list[FlowRequirementsProto | None] = field(default_factory=list)


def _q(value: str) -> str:
    return f'"{value}"'


def validate_platform(platform: PlatformProto | None) -> PlatformProto:
    """Check a platform definition; return it unchanged when valid."""
    if platform is None:
        raise InvalidPlatformError("platform definition is required")
    if not (platform.name or "").strip():
        raise InvalidPlatformError("name (used as ID) is required")
    if not (platform.type or "").strip():
        raise InvalidPlatformError("type is required")
    # Orbital platforms need a motion source such as TLE-backed propagation.
    if (
        platform.type.casefold() == "satellite"
        and platform.motion_source == ProtoMotionSource.UNKNOWN_SOURCE
    ):
        raise InvalidPlatformError("motion source is required for orbital platforms")
    return platform


def validate_interface(interface: NetworkInterfaceProto | None) -> NetworkInterfaceProto:
    """Check a single interface; return it unchanged when valid."""
    if interface is None:
        raise InvalidInterfaceError("interface is required")
    if not (interface.interface_id or "").strip():
        raise InvalidInterfaceError("interface_id is required")

    medium = interface.medium
    if isinstance(medium, WiredDevice):
        return interface
    if isinstance(medium, WirelessDevice):
        if not (medium.transceiver_model_id or "").strip():
            raise InvalidInterfaceError(
                f"wireless interface {_q(interface.interface_id)} missing transceiver_model_id"
            )
        return interface
    raise InvalidInterfaceError("interface_medium is required")


def validate_node(node: NetworkNodeProto | None) -> str:
    """Check a node and its interfaces; return the node's platform ID ("" if none)."""
    if node is None:
        raise InvalidNodeError("node is required")
    if not (node.node_id or "").strip():
        raise InvalidNodeError("node_id is required")
    if not node.interfaces:
        raise InvalidNodeError("at least one interface is required")

    platform_id = platform_id_from_interfaces(node)

    seen: set[str] = set()
    for index, interface in enumerate(node.interfaces):
        if interface is None:
            raise InvalidNodeError(f"interface[{index}] is nil")
        try:
            validate_interface(interface)
        except InvalidInterfaceError as exc:
            raise InvalidNodeError(f"interface[{index}]: {exc}") from exc

        parent, local = split_interface_ref(interface.interface_id)
        if parent and parent != node.node_id:
            raise InvalidNodeError(
                f"interface {_q(interface.interface_id)} belongs to different node {_q(parent)}"
            )
        if not local:
            raise InvalidNodeError(f"interface[{index}] id is empty")
        if local in seen:
            raise InvalidNodeError(
                f"duplicate interface_id {_q(local)} for node {_q(node.node_id)}"
            )
        seen.add(local)

    return platform_id


def validate_link(link: BidirectionalLinkProto | None) -> tuple[str, str]:
    """Check a bidirectional link; return its two normalized interface references."""
    if link is None:
        raise InvalidLinkError("link is required")

    end_a = _Endpoint.extract(
        link.a_network_node_id, link.a_tx_interface_id, link.a_rx_interface_id, link.a
    )
    end_b = _Endpoint.extract(
        link.b_network_node_id, link.b_tx_interface_id, link.b_rx_interface_id, link.b
    )

    a_ref = end_a.reference()
    b_ref = end_b.reference()
    if not a_ref or not b_ref:
        raise InvalidLinkError("both link endpoints must specify node and interface IDs")
    if a_ref == b_ref:
        raise InvalidLinkError("link endpoints must be distinct")
    return a_ref, b_ref


def validate_service_request(request: ServiceRequestProto | None) -> ServiceRequestProto:
    """Check a service request; return it unchanged when valid."""
    if request is None:
        raise InvalidServiceRequestError("service request is required")
    if not (request.src_node_id or "").strip() or not (request.dst_node_id or "").strip():
        raise InvalidServiceRequestError("src_node_id and dst_node_id are required")
    if not request.requirements:
        raise InvalidServiceRequestError("at least one flow requirement is required")

    for index, requirement in enumerate(request.requirements):
        if requirement is None:
            raise InvalidServiceRequestError(f"flow requirement {index} is nil")
        if requirement.bandwidth_bps_requested < 0:
            raise InvalidServiceRequestError(
                f"flow requirement {index} requested bandwidth cannot be negative"
            )
        if requirement.bandwidth_bps_minimum < 0:
            raise InvalidServiceRequestError(
                f"flow requirement {index} minimum bandwidth cannot be negative"
            )
        latency = requirement.latency_maximum
        if latency is not None and latency < timedelta(0):
            raise InvalidServiceRequestError(
                f"flow requirement {index} latency cannot be negative"
            )
        interval = requirement.time_interval
        if interval is not None:
            start, end = interval.start_time, interval.end_time
            if start is not None and end is not None and end < start:
                raise InvalidServiceRequestError(
                    f"flow requirement {index} has invalid time interval (end before start)"
                )

    return request


def platform_id_from_interfaces(node: NetworkNodeProto) -> str:
    """Return the single platform ID named by the node's interfaces, or "".

    Raises InvalidNodeError when interfaces name different platforms.
    """
    platform_id = ""
    for interface in node.interfaces:
        if interface is None:
            continue
        medium = interface.medium
        if isinstance(medium, WiredDevice):
            candidate = medium.platform_id
        elif isinstance(medium, WirelessDevice):
            candidate = medium.platform
        else:
            continue
        if not candidate:
            continue
        if not platform_id:
            platform_id = candidate
        elif platform_id != candidate:
            raise InvalidNodeError(
                f"conflicting platform_id values: {_q(platform_id)} vs {_q(candidate)}"
            )
    return platform_id


def split_interface_ref(ref: str) -> tuple[str, str]:
    """Split "node/iface" into its parts; a bare ID has an empty node part."""
    node, sep, local = ref.partition("/")
    if sep:
        return node, local
    return "", ref


def normalize_interface_ref(node_id: str, interface_id: str) -> str:
    """Build a "node/iface" reference, inferring the node from the interface ID."""
    if not node_id:
        parent, local = split_interface_ref(interface_id)
        if parent:
            node_id, interface_id = parent, local
    if not node_id:
        return interface_id
    if not interface_id:
        return node_id
    return f"{node_id}/{interface_id}"


@dataclass(frozen=True)
class _Endpoint:
    node_id: str
    tx_id: str
    rx_id: str

    @classmethod
    def extract(cls, node_id: str, tx_id: str, rx_id: str, end: LinkEnd | None) -> _Endpoint:
        if end is not None and end.id is not None:
            node_id = node_id or end.id.node_id
            tx_id = tx_id or end.id.interface_id
            rx_id = rx_id or end.id.interface_id
        return cls(node_id, tx_id, rx_id)

    @property
    def tx_interface(self) -> str:
        return self.tx_id or self.rx_id

    @property
    def rx_interface(self) -> str:
        return self.rx_id or self.tx_id

    def reference(self) -> str:
        return normalize_interface_ref(self.node_id, self.tx_interface) or normalize_interface_ref(
            self.node_id, self.rx_interface
        )