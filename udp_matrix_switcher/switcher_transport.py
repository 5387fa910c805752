#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SwitcherTransport -- The single UDP endpoint used to talk to switchers. It can:

  1. Bind to an OS-assigned ephemeral port on the IPv4 any-address, with broadcast enabled
  2. Send unicast or broadcast datagrams without blocking the caller
  3. Deliver inbound datagrams and socket errors to registered handlers

  Notifications from the asyncio datagram protocol are converted to typed events and
  placed on a single queue. One pump task drains the queue, so handlers are invoked
  strictly in arrival order and never concurrently.
"""

from __future__ import annotations

import asyncio
import socket

from .internal_types import *
from .pkg_logging import logger
from .exceptions import (
    SwitcherError,
    BindFailure,
    BroadcastSetupFailure,
    SocketFailure,
    SendFailure,
    TransportUnavailable,
  )
from .constants import BIND_ADDRESS, MAX_QUEUE_SIZE
from .config import is_valid_port

MessageHandler = Callable[[bytes, HostAndPort], None]
"""A handler for inbound datagrams: (payload, (source_address, source_port))."""

ErrorHandler = Callable[[SocketFailure], None]
"""A handler for socket-level errors. The transport is already closed when it is called."""

ListeningHandler = Callable[[HostAndPort], None]
"""A handler called once the socket is bound, with the local (address, port)."""

SocketFactory = Callable[[], socket.socket]

def _default_socket_factory() -> socket.socket:
    return socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

class ListeningEvent:
    local_addr: HostAndPort

    def __init__(self, local_addr: HostAndPort):
        self.local_addr = local_addr

    def __repr__(self) -> str:
        return f"ListeningEvent({self.local_addr})"

class DatagramEvent:
    data: bytes
    addr: HostAndPort

    def __init__(self, data: bytes, addr: HostAndPort):
        self.data = data
        self.addr = addr

    def __repr__(self) -> str:
        return f"DatagramEvent({self.addr}, {self.data.hex()})"

class SendErrorEvent:
    """A send or receive operation failed. Not fatal to the socket."""
    exc: Exception

    def __init__(self, exc: Exception):
        self.exc = exc

    def __repr__(self) -> str:
        return f"SendErrorEvent({self.exc!r})"

class SocketErrorEvent:
    """The socket failed and is no longer usable."""
    exc: SocketFailure

    def __init__(self, exc: SocketFailure):
        self.exc = exc

    def __repr__(self) -> str:
        return f"SocketErrorEvent({self.exc!r})"

TransportEvent = Union[ListeningEvent, DatagramEvent, SendErrorEvent, SocketErrorEvent]

class _SwitcherTransportProtocol(asyncio.DatagramProtocol):
    """An adapter between the asyncio transport and SwitcherTransport. A new instance
       is created each time the SwitcherTransport is opened; notifications from an
       instance that belongs to an earlier open are discarded."""

    owner: SwitcherTransport
    generation: int

    def __init__(self, owner: SwitcherTransport, generation: int):
        self.owner = owner
        self.generation = generation

    @property
    def is_current(self) -> bool:
        return self.owner._generation == self.generation

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        """Called when a connection is made."""
        logger.debug(f"Datagram endpoint attached: {transport}")

    def datagram_received(self, data: bytes, addr: Tuple[str, int]) -> None:
        """Called when some datagram is received."""
        if self.is_current:
            self.owner._post_event(DatagramEvent(data, (addr[0], addr[1])))

    def error_received(self, exc: Exception) -> None:
        """Called when a send or receive operation raises an OSError.

        (Other than BlockingIOError or InterruptedError.)
        """
        if self.is_current:
            self.owner._post_event(SendErrorEvent(exc))

    def connection_lost(self, exc: Optional[Exception]) -> None:
        """Called when the connection is lost or closed."""
        if exc is not None and self.is_current:
            failure = SocketFailure(f"UDP socket error: {exc}")
            failure.__cause__ = exc
            self.owner._post_event(SocketErrorEvent(failure))

class SwitcherTransport:
    """
    A UDP/IPv4 endpoint bound to an ephemeral local port, with broadcast enabled.

    At most one socket is open at a time. After close() (or a socket-level error) the
    transport may be opened again, which binds a fresh socket.
    """

    bind_address: str
    """The local address to bind to. Defaults to the IPv4 any-address."""

    bind_port: int
    """The local port to bind to. 0 (the default) lets the OS choose."""

    max_queue_size: int
    """Maximum number of undelivered events before inbound datagrams are dropped.
       A socket error is never dropped; it displaces the oldest pending event."""

    _socket_factory: SocketFactory
    _sock: Optional[socket.socket] = None
    _transport: Optional[asyncio.DatagramTransport] = None
    _protocol: Optional[_SwitcherTransportProtocol] = None
    _events: Optional[asyncio.Queue[Optional[TransportEvent]]] = None
    _pump_task: Optional[asyncio.Task[None]] = None
    _local_addr: Optional[HostAndPort] = None
    _generation: int = 0

    _message_handlers: List[MessageHandler]
    _error_handlers: List[ErrorHandler]
    _listening_handlers: List[ListeningHandler]

    def __init__(
            self,
            bind_address: str=BIND_ADDRESS,
            bind_port: int=0,
            max_queue_size: int=MAX_QUEUE_SIZE,
            socket_factory: Optional[SocketFactory]=None,
          ) -> None:
        self.bind_address = bind_address
        self.bind_port = bind_port
        self.max_queue_size = max_queue_size
        self._socket_factory = _default_socket_factory if socket_factory is None else socket_factory
        self._message_handlers = []
        self._error_handlers = []
        self._listening_handlers = []

    def __str__(self) -> str:
        return f"SwitcherTransport({self._local_addr if self.is_open else 'closed'})"

    def __repr__(self) -> str:
        return str(self)

    @property
    def is_open(self) -> bool:
        return self._transport is not None

    @property
    def local_addr(self) -> Optional[HostAndPort]:
        """The bound local (address, port), or None if not open."""
        return self._local_addr if self.is_open else None

    def on_message(self, handler: MessageHandler) -> None:
        """Registers a handler that is invoked once per inbound datagram, in arrival order."""
        self._message_handlers.append(handler)

    def on_error(self, handler: ErrorHandler) -> None:
        """Registers a handler that is invoked on socket-level errors."""
        self._error_handlers.append(handler)

    def on_listening(self, handler: ListeningHandler) -> None:
        """Registers a handler that is invoked each time the socket is bound and broadcast-enabled."""
        self._listening_handlers.append(handler)

    async def open(self) -> None:
        """Creates and binds the UDP socket and enables broadcast.

        Raises BindFailure if the socket cannot be created or bound, and
        BroadcastSetupFailure if broadcast cannot be enabled. In either case
        no socket is left open.
        """
        if self._sock is not None:
            raise SwitcherError(f"{self} is already open")
        loop = asyncio.get_running_loop()

        try:
            sock = self._socket_factory()
        except OSError as e:
            raise BindFailure(f"Failed to create UDP socket: {e}") from e
        try:
            try:
                sock.bind((self.bind_address, self.bind_port))
            except OSError as e:
                raise BindFailure(f"Failed to bind UDP socket: {e}") from e
            try:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
            except OSError as e:
                raise BroadcastSetupFailure(f"Failed to set broadcast: {e}") from e
            logger.debug("UDP Broadcast enabled.")
            sock.setblocking(False)
            local_addr = sock.getsockname()

            self._generation += 1
            generation = self._generation
            self._sock = sock
            self._events = asyncio.Queue(self.max_queue_size)
            try:
                untyped_transport, protocol = await loop.create_datagram_endpoint(
                    lambda: _SwitcherTransportProtocol(self, generation),
                    sock=sock
                  )
            except OSError as e:
                raise BindFailure(f"Failed to attach UDP socket to event loop: {e}") from e
        except BaseException:
            self._sock = None
            self._events = None
            try:
                sock.close()
            except OSError as close_error:
                logger.debug(f"Ignoring error closing failed socket: {close_error}")
            raise

        # Note: asyncio datagram transports do not inherit from asyncio.DatagramTransport,
        # although they implement the same interface.
        transport: asyncio.DatagramTransport = untyped_transport # type: ignore[assignment]
        assert isinstance(protocol, _SwitcherTransportProtocol)
        self._transport = transport
        self._protocol = protocol
        self._local_addr = (local_addr[0], local_addr[1])
        logger.info(f"UDP Listener active on {self._local_addr[0]}:{self._local_addr[1]}")

        # Listening handlers run before the pump starts, so they always precede datagram handlers.
        self._dispatch_event(ListeningEvent(self._local_addr))
        assert self._events is not None
        self._pump_task = loop.create_task(self._pump_events(self._events, generation))

    def close(self) -> None:
        """Releases the socket. Does nothing if the transport is not open.

        No message or error handler is invoked after this returns.
        """
        sock, self._sock = self._sock, None
        if sock is None:
            return
        self._generation += 1
        transport, self._transport = self._transport, None
        self._protocol = None
        if transport is not None:
            try:
                transport.close()
            except Exception as e:
                logger.error(f"Error closing UDP transport: {e}")
        else:
            try:
                sock.close()
            except OSError as e:
                logger.error(f"Error closing UDP socket: {e}")
        events = self._events
        if events is not None:
            try:
                # wake up the pump task so it can exit
                events.put_nowait(None)
            except asyncio.QueueFull:
                # queue is full so the pump will wake up soon
                pass
        logger.debug("UDP Socket closed")

    async def wait_closed(self) -> None:
        """Waits for the event pump of the most recent open() to exit."""
        pump_task = self._pump_task
        if pump_task is not None and pump_task is not asyncio.current_task():
            await pump_task

    def send(self, packet: bytes, address: str, port: int) -> None:
        """Queues a datagram for transmission. Does not block.

        Raises TransportUnavailable if not open, and SendFailure if the datagram is
        rejected immediately. Errors reported later by the OS are logged only.
        """
        transport = self._transport
        if transport is None:
            raise TransportUnavailable("UDP socket is not initialized. Cannot send command.")
        # asyncio treats anything but an OSError from sendto() as fatal to the socket
        if not isinstance(address, str) or address == '' or not is_valid_port(port):
            raise SendFailure(f"Invalid UDP destination {address}:{port}")
        data = bytes(packet)
        logger.debug(f"Sending UDP packet to {address}:{port} - HEX: {data.hex()}")
        try:
            transport.sendto(data, (address, port))
        except (OSError, ValueError, TypeError) as e:
            raise SendFailure(f"UDP send error to {address}:{port}: {e}") from e

    def _post_event(self, event: TransportEvent) -> None:
        events = self._events
        if events is None:
            return
        try:
            events.put_nowait(event)
        except asyncio.QueueFull:
            if not isinstance(event, SocketErrorEvent):
                logger.warning(f"Queue full, dropping transport event: {event}")
                return
            # socket errors are never dropped; evict the oldest pending event instead
            dropped = events.get_nowait()
            events.task_done()
            logger.warning(f"Queue full, dropping transport event: {dropped}")
            events.put_nowait(event)

    async def _pump_events(self, events: asyncio.Queue[Optional[TransportEvent]], generation: int) -> None:
        while True:
            event = await events.get()
            events.task_done()
            if event is None or generation != self._generation:
                break
            self._dispatch_event(event)
        logger.debug("Transport event pump exiting")

    def _dispatch_event(self, event: TransportEvent) -> None:
        if isinstance(event, DatagramEvent):
            for message_handler in list(self._message_handlers):
                try:
                    message_handler(event.data, event.addr)
                except Exception as e:
                    logger.warning(f"Message handler raised exception processing datagram from {event.addr}: {e}")
        elif isinstance(event, ListeningEvent):
            for listening_handler in list(self._listening_handlers):
                try:
                    listening_handler(event.local_addr)
                except Exception as e:
                    logger.warning(f"Listening handler raised exception: {e}")
        elif isinstance(event, SendErrorEvent):
            logger.error(f"UDP send error: {event.exc}")
        elif isinstance(event, SocketErrorEvent):
            logger.error(f"UDP Socket error: {event.exc}")
            # never hand out a stale socket after a socket-level error
            self.close()
            for error_handler in list(self._error_handlers):
                try:
                    error_handler(event.exc)
                except Exception as e:
                    logger.warning(f"Error handler raised exception processing socket error: {e}")
