import asyncio
import socket

import pytest

from udp_matrix_switcher import (
    BindFailure,
    BroadcastSetupFailure,
    SendFailure,
    SocketFailure,
    SwitcherError,
    SwitcherTransport,
    TransportUnavailable,
)

WAIT = 2.0


class FakeSocket:
    """Socket stub that fails on bind or on enabling broadcast."""

    def __init__(self, fail_bind=False, fail_broadcast=False):
        self.fail_bind = fail_bind
        self.fail_broadcast = fail_broadcast
        self.closed = False

    def bind(self, addr):
        if self.fail_bind:
            raise OSError(98, "Address already in use")

    def setsockopt(self, *args):
        if self.fail_broadcast:
            raise OSError(13, "Permission denied")

    def setblocking(self, flag):  # pragma: no cover - never reached
        pass

    def getsockname(self):  # pragma: no cover - never reached
        return ("0.0.0.0", 54321)

    def close(self):
        self.closed = True


def make_peer():
    peer = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    peer.bind(("127.0.0.1", 0))
    peer.settimeout(WAIT)
    return peer


def test_open_binds_ephemeral_port_with_broadcast():
    async def amain():
        transport = SwitcherTransport()
        listening = []
        transport.on_listening(listening.append)
        await transport.open()
        try:
            assert transport.is_open
            host, port = transport.local_addr
            assert host == "0.0.0.0"
            assert port > 0
            assert listening == [(host, port)]
            assert transport._sock.getsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST) != 0
        finally:
            transport.close()
            await transport.wait_closed()
        assert not transport.is_open
        assert transport.local_addr is None

    asyncio.run(amain())


def test_open_twice_is_an_error():
    async def amain():
        transport = SwitcherTransport()
        await transport.open()
        try:
            with pytest.raises(SwitcherError):
                await transport.open()
        finally:
            transport.close()

    asyncio.run(amain())


def test_close_is_idempotent():
    async def amain():
        transport = SwitcherTransport()
        transport.close()
        await transport.open()
        transport.close()
        transport.close()
        await transport.wait_closed()
        assert not transport.is_open

    asyncio.run(amain())


def test_reopen_after_close_binds_new_socket():
    async def amain():
        transport = SwitcherTransport()
        await transport.open()
        transport.close()
        await transport.open()
        try:
            assert transport.is_open
        finally:
            transport.close()

    asyncio.run(amain())


def test_bind_failure():
    fake = FakeSocket(fail_bind=True)

    async def amain():
        transport = SwitcherTransport(socket_factory=lambda: fake)
        with pytest.raises(BindFailure):
            await transport.open()
        assert not transport.is_open

    asyncio.run(amain())
    assert fake.closed


def test_socket_creation_failure_is_bind_failure():
    def no_sockets():
        raise OSError(24, "Too many open files")

    async def amain():
        transport = SwitcherTransport(socket_factory=no_sockets)
        with pytest.raises(BindFailure):
            await transport.open()

    asyncio.run(amain())


def test_broadcast_setup_failure_closes_socket():
    fake = FakeSocket(fail_broadcast=True)

    async def amain():
        transport = SwitcherTransport(socket_factory=lambda: fake)
        with pytest.raises(BroadcastSetupFailure):
            await transport.open()
        assert not transport.is_open

    asyncio.run(amain())
    assert fake.closed


def test_send_when_not_open():
    transport = SwitcherTransport()
    with pytest.raises(TransportUnavailable):
        transport.send(b"\x01", "127.0.0.1", 7000)


def test_send_reaches_peer():
    peer = make_peer()

    async def amain():
        transport = SwitcherTransport()
        await transport.open()
        try:
            transport.send(b"\xa5\x6c\x01", "127.0.0.1", peer.getsockname()[1])
            data, addr = peer.recvfrom(2048)
            assert data == b"\xa5\x6c\x01"
            assert addr[1] == transport.local_addr[1]
        finally:
            transport.close()

    try:
        asyncio.run(amain())
    finally:
        peer.close()


@pytest.mark.parametrize("address,port", [("", 7000), ("127.0.0.1", 0), ("127.0.0.1", "7000")])
def test_send_to_invalid_destination(address, port):
    async def amain():
        transport = SwitcherTransport()
        await transport.open()
        try:
            with pytest.raises(SendFailure):
                transport.send(b"\x01", address, port)
            assert transport.is_open
        finally:
            transport.close()

    asyncio.run(amain())


def test_messages_delivered_in_arrival_order():
    peer = make_peer()

    async def amain():
        transport = SwitcherTransport()
        received = []
        done = asyncio.Event()

        def on_message(data, addr):
            received.append((data, addr))
            if len(received) == 3:
                done.set()

        transport.on_message(on_message)
        await transport.open()
        try:
            local_port = transport.local_addr[1]
            for i in range(3):
                peer.sendto(bytes([i]), ("127.0.0.1", local_port))
            await asyncio.wait_for(done.wait(), WAIT)
        finally:
            transport.close()
        assert [data for data, _ in received] == [b"\x00", b"\x01", b"\x02"]
        assert all(addr == peer.getsockname() for _, addr in received)

    try:
        asyncio.run(amain())
    finally:
        peer.close()


def test_handler_exception_does_not_stop_other_handlers():
    peer = make_peer()

    async def amain():
        transport = SwitcherTransport()
        done = asyncio.Event()

        def bad_handler(data, addr):
            raise RuntimeError("handler broke")

        transport.on_message(bad_handler)
        transport.on_message(lambda data, addr: done.set())
        await transport.open()
        try:
            peer.sendto(b"\x01", ("127.0.0.1", transport.local_addr[1]))
            await asyncio.wait_for(done.wait(), WAIT)
            assert transport.is_open
        finally:
            transport.close()

    try:
        asyncio.run(amain())
    finally:
        peer.close()


def test_no_delivery_after_close():
    async def amain():
        transport = SwitcherTransport()
        received = []
        transport.on_message(lambda data, addr: received.append(data))
        await transport.open()
        protocol = transport._protocol
        transport.close()
        protocol.datagram_received(b"\x01", ("10.0.0.5", 7000))
        await transport.wait_closed()
        await asyncio.sleep(0.05)
        assert received == []

    asyncio.run(amain())


def test_socket_error_closes_transport_and_notifies():
    async def amain():
        transport = SwitcherTransport()
        errors = []
        done = asyncio.Event()

        def on_error(exc):
            errors.append((exc, transport.is_open))
            done.set()

        transport.on_error(on_error)
        await transport.open()
        transport._protocol.connection_lost(OSError(100, "Network is down"))
        await asyncio.wait_for(done.wait(), WAIT)
        await transport.wait_closed()
        assert len(errors) == 1
        exc, was_open = errors[0]
        assert isinstance(exc, SocketFailure)
        assert isinstance(exc.__cause__, OSError)
        assert not was_open
        assert not transport.is_open
        with pytest.raises(TransportUnavailable):
            transport.send(b"\x01", "127.0.0.1", 7000)

    asyncio.run(amain())


def test_send_error_is_not_a_socket_error():
    async def amain():
        transport = SwitcherTransport()
        errors = []
        transport.on_error(errors.append)
        await transport.open()
        try:
            transport._protocol.error_received(OSError(111, "Connection refused"))
            await asyncio.sleep(0.05)
            assert errors == []
            assert transport.is_open
        finally:
            transport.close()

    asyncio.run(amain())


def test_full_queue_drops_datagrams():
    async def amain():
        transport = SwitcherTransport(max_queue_size=2)
        received = []
        transport.on_message(lambda data, addr: received.append(data))
        await transport.open()
        try:
            protocol = transport._protocol
            for i in range(5):
                protocol.datagram_received(bytes([i]), ("10.0.0.5", 7000))
            await asyncio.sleep(0.05)
        finally:
            transport.close()
        assert received == [b"\x00", b"\x01"]

    asyncio.run(amain())


def test_socket_error_survives_full_queue():
    async def amain():
        transport = SwitcherTransport(max_queue_size=2)
        received = []
        errors = []
        done = asyncio.Event()

        def on_error(exc):
            errors.append(exc)
            done.set()

        transport.on_message(lambda data, addr: received.append(data))
        transport.on_error(on_error)
        await transport.open()
        protocol = transport._protocol
        protocol.datagram_received(b"\x00", ("10.0.0.5", 7000))
        protocol.datagram_received(b"\x01", ("10.0.0.5", 7000))
        protocol.connection_lost(OSError(100, "Network is down"))
        await asyncio.wait_for(done.wait(), WAIT)
        await transport.wait_closed()
        assert len(errors) == 1
        assert isinstance(errors[0], SocketFailure)
        assert not transport.is_open
        assert received == [b"\x01"]

    asyncio.run(amain())
