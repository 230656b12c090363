"""Core scenario entities: platforms, network nodes and service requests."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum


class MotionSource(IntEnum):
    """How a platform's motion is determined."""

    UNKNOWN = 0
    SPACETRACK = 1  # TLE-based orbit propagation


@dataclass(frozen=True)
class Motion:
    """A position in ECEF metres."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0


@dataclass
class PlatformDefinition:
    """A physical asset such as a satellite or a ground station."""

    id: str
    name: str = ""
    type: str = ""
    category_tag: str = ""
    coordinates: Motion = field(default_factory=Motion)
    motion_source: MotionSource = MotionSource.UNKNOWN
    norad_id: int = 0


@dataclass
class NetworkNode:
    """A logical network endpoint, optionally hosted on a platform."""

    id: str
    name: str = ""
    type: str = ""
    platform_id: str = ""


@dataclass
class FlowRequirement:
    """Bandwidth and latency needs of a flow over a time interval.

    Bandwidths are in bits per second, latency in seconds.
    """

    requested_bandwidth: float = 0.0
    min_bandwidth: float = 0.0
    max_latency: float = 0.0
    valid_from: datetime | None = None
    valid_to: datetime | None = None


@dataclass
class ServiceRequest:
    """A request to carry traffic between two network nodes."""

    id: str
    src_node_id: str = ""
    dst_node_id: str = ""
    flow_requirements: list[FlowRequirement] = field(default_factory=list)
    priority: int = 0
    is_disruption_tolerant: bool = False
    allow_partner_resources: bool = False