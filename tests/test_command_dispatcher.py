import pytest

from conftest import FakeTransport

from udp_matrix_switcher import (
    BROADCAST_ADDRESS,
    DISCOVERY_COMMAND,
    CommandDispatcher,
    MalformedPacket,
    MissingTarget,
    ModuleConfig,
    SendFailure,
    SwitcherContext,
    TransportUnavailable,
)


def make_dispatcher(config=None, open_transport=True):
    context = SwitcherContext(config=config)
    transport = FakeTransport()
    transport.is_open = open_transport
    context.transport = transport
    return CommandDispatcher(context), transport


def test_no_transport_is_unavailable():
    context = SwitcherContext(ModuleConfig(host="10.0.0.5"))
    dispatcher = CommandDispatcher(context)
    with pytest.raises(TransportUnavailable):
        dispatcher.dispatch("a56c", "10.0.0.5", 7000)


def test_closed_transport_is_unavailable_and_sends_nothing():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5"), open_transport=False)
    with pytest.raises(TransportUnavailable):
        dispatcher.send_command("a56c")
    with pytest.raises(TransportUnavailable):
        dispatcher.discover()
    assert transport.sent == []


def test_transport_checked_before_target_and_packet():
    dispatcher, _ = make_dispatcher(open_transport=False)
    with pytest.raises(TransportUnavailable):
        dispatcher.dispatch("xyz", "", None)


@pytest.mark.parametrize("address,port", [("", 7000), (None, 7000), ("not an ip address", 7000), ("switcher.local", 7000), ("10.0.0", 7000), ("10.0.0.5", None), ("10.0.0.5", 0), ("10.0.0.5", 65536), ("10.0.0.5", True)])
def test_missing_or_invalid_target(address, port):
    dispatcher, transport = make_dispatcher()
    with pytest.raises(MissingTarget):
        dispatcher.dispatch("a56c", address, port)
    assert transport.sent == []


def test_empty_target_and_no_configured_host():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="", port=7000))
    with pytest.raises(MissingTarget):
        dispatcher.send_command("a56c", target_ip="")
    assert transport.sent == []


@pytest.mark.parametrize("hex_command", ["a56", "a5zz", "", "   "])
def test_malformed_command(hex_command):
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5"))
    with pytest.raises(MalformedPacket):
        dispatcher.send_command(hex_command)
    assert transport.sent == []


def test_dispatch_sends_encoded_packet():
    dispatcher, transport = make_dispatcher()
    packet = dispatcher.dispatch("a5 6c 01", "10.0.0.9", 7100)
    assert packet.raw_data == b"\xa5\x6c\x01"
    assert transport.sent == [(b"\xa5\x6c\x01", "10.0.0.9", 7100)]


def test_discover_broadcasts_probe_to_configured_port():
    dispatcher, transport = make_dispatcher(ModuleConfig(port=7010))
    dispatcher.discover()
    assert transport.sent == [(DISCOVERY_COMMAND, BROADCAST_ADDRESS, 7010)]


def test_send_command_falls_back_to_configured_host():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5", port=7000))
    dispatcher.send_command("0102")
    dispatcher.send_command("0304", target_ip="")
    assert transport.sent == [
        (b"\x01\x02", "10.0.0.5", 7000),
        (b"\x03\x04", "10.0.0.5", 7000),
    ]


def test_send_command_target_override_uses_configured_port():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5", port=7000))
    dispatcher.send_command("0102", target_ip=" 10.0.0.77 ")
    assert transport.sent == [(b"\x01\x02", "10.0.0.77", 7000)]


def test_send_failure_propagates():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5"))

    def failing_send(packet, address, port):
        raise SendFailure("no route")

    transport.send = failing_send
    with pytest.raises(SendFailure):
        dispatcher.send_command("0102")


def test_invalid_target_ip_override_is_rejected():
    dispatcher, transport = make_dispatcher(ModuleConfig(host="10.0.0.5"))
    with pytest.raises(MissingTarget):
        dispatcher.send_command("0102", target_ip="not an ip address")
    assert transport.sent == []
