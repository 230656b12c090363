import pytest

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
    PlatformExistsError,
    PlatformInUseError,
    PlatformNotFoundError,
    ServiceRequestExistsError,
    ServiceRequestNotFoundError,
    SimulatorError,
    TransceiverNotFoundError,
)


@pytest.mark.parametrize(
    "cls, text",
    [
        (PlatformExistsError, "platform already exists"),
        (PlatformNotFoundError, "platform not found"),
        (NodeExistsError, "node already exists"),
        (NodeNotFoundError, "node not found"),
        (InterfaceInvalidError, "invalid interface"),
        (TransceiverNotFoundError, "transceiver model not found"),
        (NodeInvalidError, "invalid node"),
        (ServiceRequestExistsError, "service request already exists"),
        (ServiceRequestNotFoundError, "service request not found"),
        (PlatformInUseError, "platform is referenced by nodes"),
        (NodeInUseError, "node is referenced by links or service requests"),
        (InterfaceInUseError, "interface is referenced by links"),
    ],
)
def test_default_messages(cls, text):
    assert str(cls()) == text


@pytest.mark.parametrize(
    "cls",
    [
        PlatformExistsError,
        PlatformNotFoundError,
        NodeExistsError,
        NodeNotFoundError,
        InterfaceExistsError,
        InterfaceNotFoundError,
        InterfaceInvalidError,
        TransceiverNotFoundError,
        NodeInvalidError,
        LinkNotFoundError,
        ServiceRequestExistsError,
        ServiceRequestNotFoundError,
        PlatformInUseError,
        NodeInUseError,
        InterfaceInUseError,
    ],
)
def test_all_errors_are_simulator_errors(cls):
    err = cls("x")
    assert isinstance(err, SimulatorError)
    assert str(err).endswith(": x")
    assert err.detail == "x"


@pytest.mark.parametrize(
    "cls",
    [
        PlatformExistsError,
        PlatformNotFoundError,
        NodeExistsError,
        NodeNotFoundError,
        InterfaceExistsError,
        InterfaceNotFoundError,
        InterfaceInvalidError,
        TransceiverNotFoundError,
        NodeInvalidError,
        LinkNotFoundError,
        ServiceRequestExistsError,
        ServiceRequestNotFoundError,
        PlatformInUseError,
        NodeInUseError,
        InterfaceInUseError,
    ],
)
def test_detail_is_appended_and_kept(cls):
    err = cls('"n1"')
    base = str(cls())
    assert str(err) == f'{base}: "n1"'
    assert err.detail == '"n1"'


@pytest.mark.parametrize(
    "cls",
    [
        PlatformNotFoundError,
        NodeNotFoundError,
        InterfaceNotFoundError,
        LinkNotFoundError,
        ServiceRequestNotFoundError,
        TransceiverNotFoundError,
    ],
)
def test_not_found_errors_are_lookup_errors(cls):
    err = cls("id-1")
    assert isinstance(err, LookupError)
    assert err.detail == "id-1"


def test_invalid_errors_are_value_errors():
    node_err = NodeInvalidError("empty node")
    assert isinstance(node_err, ValueError)
    assert str(node_err) == "invalid node: empty node"
    iface_err = InterfaceInvalidError("nil interface")
    assert isinstance(iface_err, ValueError)
    assert str(iface_err) == "invalid interface: nil interface"


def test_detail_none_when_not_given():
    assert NodeInUseError().detail is None