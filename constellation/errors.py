"""Exceptions raised by the scenario stores."""

from __future__ import annotations


class SimulatorError(Exception):
    """Base class for scenario errors; an optional detail follows the message."""

    message = "simulator error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail
        text = self.message if detail is None else f"{self.message}: {detail}"
        super().__init__(text)


class PlatformExistsError(SimulatorError):
    message = "platform already exists"


class PlatformNotFoundError(SimulatorError, LookupError):
    message = "platform not found"


class NodeExistsError(SimulatorError):
    message = "node already exists"


class NodeNotFoundError(SimulatorError, LookupError):
    message = "node not found"


class InterfaceExistsError(SimulatorError):
    message = "interface already exists"


class InterfaceNotFoundError(SimulatorError, LookupError):
    message = "interface not found"


class InterfaceInvalidError(SimulatorError, ValueError):
    message = "invalid interface"


class TransceiverNotFoundError(SimulatorError, LookupError):
    message = "transceiver model not found"


class NodeInvalidError(SimulatorError, ValueError):
    message = "invalid node"


class LinkNotFoundError(SimulatorError, LookupError):
    message = "link not found"


class ServiceRequestExistsError(SimulatorError):
    message = "service request already exists"


class ServiceRequestNotFoundError(SimulatorError, LookupError):
    message = "service request not found"


class PlatformInUseError(SimulatorError):
    message = "platform is referenced by nodes"


class NodeInUseError(SimulatorError):
    message = "node is referenced by links or service requests"


class InterfaceInUseError(SimulatorError):
    message = "interface is referenced by links"