#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
SwitcherInstance -- One controlled matrix/multiviewer switcher. It:

  1. Opens a UDP transport on an ephemeral port when initialized, and closes it on destroy
  2. Records every device that answers the discovery probe
  3. Reports connection status transitions to a status sink
  4. Provides the "discover_device" and "send_hex_command" actions

Usage:
    async with SwitcherInstance(ModuleConfig(port=7000)) as instance:
        instance.discover_device()
        await asyncio.sleep(2.0)
        print(instance.devices)
"""

from __future__ import annotations

from .internal_types import *
from .pkg_logging import logger
from .exceptions import (
    SwitcherError,
    BindFailure,
    BroadcastSetupFailure,
    SocketFailure,
    DispatchError,
    MalformedPacket,
    SendFailure,
  )
from .config import ModuleConfig
from .connection_state import ConnectionStatus, StatusSink
from .context import SwitcherContext
from .command_dispatcher import CommandDispatcher
from .device_tracker import DeviceRecord
from .packet_codec import to_hex
from .switcher_transport import SwitcherTransport

TransportFactory = Callable[[], SwitcherTransport]

DeviceDiscoveredHandler = Callable[[DeviceRecord], None]
"""A callback for received discovery responses."""

ACTION_DISCOVER_DEVICE = 'discover_device'
ACTION_SEND_HEX_COMMAND = 'send_hex_command'

class SwitcherInstance(AsyncContextManager['SwitcherInstance']):
    context: SwitcherContext
    """The configuration, transport, discovered devices and status of this instance."""

    dispatcher: CommandDispatcher

    _transport_factory: TransportFactory
    _device_discovered_handlers: List[DeviceDiscoveredHandler]

    def __init__(
            self,
            config: Optional[ModuleConfig]=None,
            status_sink: Optional[StatusSink]=None,
            transport_factory: Optional[TransportFactory]=None,
          ) -> None:
        self.context = SwitcherContext(config=config, status_sink=status_sink)
        self.dispatcher = CommandDispatcher(self.context)
        self._transport_factory = SwitcherTransport if transport_factory is None else transport_factory
        self._device_discovered_handlers = []

    @property
    def config(self) -> ModuleConfig:
        return self.context.config

    @property
    def status(self) -> ConnectionStatus:
        return self.context.state.status

    @property
    def status_message(self) -> Optional[str]:
        return self.context.state.message

    @property
    def transport(self) -> Optional[SwitcherTransport]:
        return self.context.transport

    @property
    def devices(self) -> List[DeviceRecord]:
        return self.context.tracker.devices

    def on_device_discovered(self, handler: DeviceDiscoveredHandler) -> None:
        """Registers a handler that is called each time a discovery response is received."""
        self._device_discovered_handlers.append(handler)

    async def init(self, config: Optional[ModuleConfig]=None) -> bool:
        """Starts (or restarts) the instance with a new transport.

        The discovered device table is cleared. Returns True if the transport
        was opened; on failure the status is CONNECTION_FAILURE and False is returned.
        """
        if config is not None:
            self.context.config = config
        logger.info("Initializing module instance...")
        await self._close_transport()
        self.context.state.connecting("Initializing UDP")
        self.context.tracker.clear()

        logger.debug("Creating UDP socket...")
        transport = self._transport_factory()
        self._attach_handlers(transport)
        try:
            await transport.open()
        except BindFailure as e:
            logger.error(f"Failed to bind UDP socket: {e}")
            self.context.state.failure(f"Bind Error: {e}")
            return False
        except BroadcastSetupFailure as e:
            logger.error(f"Failed to set broadcast: {e}")
            self.context.state.failure("Broadcast Error")
            return False
        self.context.transport = transport
        return True

    async def destroy(self) -> None:
        """Closes the transport and reports DISCONNECTED."""
        logger.info("Destroying module instance")
        await self._close_transport()
        self.context.state.disconnected()

    async def config_updated(self, config: ModuleConfig) -> bool:
        """Tears down the current transport and reinitializes with a new configuration."""
        logger.info("Configuration updated. Re-initializing...")
        await self.destroy()
        return await self.init(config)

    def discover_device(self) -> bool:
        """Broadcasts the discovery probe. Returns False if it could not be sent."""
        logger.info("Action: Discover Device triggered")
        return self._try_dispatch("Discover Device", self.dispatcher.discover)

    def send_hex_command(self, hex_command: str, target_ip: Optional[str]=None) -> bool:
        """Sends a custom hex command to target_ip, or to the configured host.
           Returns False if it could not be sent."""
        logger.info(f"Action: Send HEX '{hex_command}' to {target_ip or self.config.host}:{self.config.port}")
        return self._try_dispatch("Send Custom HEX", lambda: self.dispatcher.send_command(hex_command, target_ip))

    def run_action(self, action_id: str, options: Optional[Mapping[str, Any]]=None) -> bool:
        """Runs an action by id, with options as supplied by the controlling application."""
        if options is None:
            options = {}
        if action_id == ACTION_DISCOVER_DEVICE:
            return self.discover_device()
        if action_id == ACTION_SEND_HEX_COMMAND:
            hex_command = options.get('hex_command', '')
            target_ip = options.get('target_ip', None)
            return self.send_hex_command('' if hex_command is None else str(hex_command), target_ip or None)
        raise SwitcherError(f"Unknown action: {action_id}")

    def _try_dispatch(self, action_name: str, func: Callable[[], Any]) -> bool:
        try:
            func()
        except (MalformedPacket, SendFailure) as e:
            logger.error(f"Action '{action_name}': {e}")
            return False
        except DispatchError as e:
            logger.warning(f"Action '{action_name}': {e}")
            return False
        return True

    def _attach_handlers(self, transport: SwitcherTransport) -> None:
        def on_listening(local_addr: HostAndPort) -> None:
            self.context.state.ready()

        def on_error(exc: SocketFailure) -> None:
            if self.context.transport is transport:
                self.context.transport = None
            self.context.state.failure(f"UDP Error: {exc}")

        transport.on_listening(on_listening)
        transport.on_message(self._on_message)
        transport.on_error(on_error)

    def _on_message(self, data: bytes, addr: HostAndPort) -> None:
        logger.debug(f"UDP Message received from {addr[0]}:{addr[1]} - HEX: {to_hex(data)}")
        record = self.context.tracker.observe(data, addr)
        if record is None:
            return
        logger.info(f"Device Discovery Response from {addr[0]}")
        self.context.state.device_found(addr[0])
        for handler in list(self._device_discovered_handlers):
            try:
                handler(record)
            except Exception as e:
                logger.warning(f"Device discovered handler raised exception: {e}")

    async def _close_transport(self) -> None:
        transport = self.context.transport
        self.context.transport = None
        if transport is not None:
            transport.close()
            await transport.wait_closed()

    async def __aenter__(self) -> SwitcherInstance:
        await self.init()
        return self

    async def __aexit__(
            self,
            exc_type: Optional[type[BaseException]],
            exc: Optional[BaseException],
            tb: Optional[TracebackType]
      ) -> bool:
        await self.destroy()
        return False
