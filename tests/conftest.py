import pytest

from udp_matrix_switcher import TransportUnavailable


class FakeTransport:
    """In-memory stand-in for SwitcherTransport that records sends and lets tests inject traffic."""

    def __init__(self, fail_open=None, local_addr=("0.0.0.0", 50123)):
        self.fail_open = fail_open
        self.local_addr = None
        self._bound_addr = local_addr
        self.is_open = False
        self.open_calls = 0
        self.close_calls = 0
        self.sent = []
        self._message_handlers = []
        self._error_handlers = []
        self._listening_handlers = []

    def on_message(self, handler):
        self._message_handlers.append(handler)

    def on_error(self, handler):
        self._error_handlers.append(handler)

    def on_listening(self, handler):
        self._listening_handlers.append(handler)

    async def open(self):
        self.open_calls += 1
        if self.fail_open is not None:
            raise self.fail_open
        self.is_open = True
        self.local_addr = self._bound_addr
        for handler in self._listening_handlers:
            handler(self.local_addr)

    def close(self):
        self.close_calls += 1
        self.is_open = False
        self.local_addr = None

    async def wait_closed(self):
        return None

    def send(self, packet, address, port):
        if not self.is_open:
            raise TransportUnavailable("not open")
        self.sent.append((bytes(packet), address, port))

    def inject(self, data, addr):
        """Deliver an inbound datagram as if it arrived from addr."""
        assert self.is_open
        for handler in self._message_handlers:
            handler(data, addr)

    def fail(self, exc):
        """Simulate an asynchronous socket-level error."""
        self.close()
        for handler in self._error_handlers:
            handler(exc)


class FakeTransportFactory:
    def __init__(self):
        self.instances = []
        self.fail_next_open = None

    def __call__(self):
        transport = FakeTransport(fail_open=self.fail_next_open)
        self.fail_next_open = None
        self.instances.append(transport)
        return transport

    @property
    def last(self):
        return self.instances[-1]


class StatusRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, status, message):
        self.calls.append((status, message))

    @property
    def statuses(self):
        return [status for status, _ in self.calls]


@pytest.fixture
def transport_factory():
    return FakeTransportFactory()


@pytest.fixture
def status_recorder():
    return StatusRecorder()
