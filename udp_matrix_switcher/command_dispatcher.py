#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
CommandDispatcher -- validates outbound commands and hands them to the transport.

Each failure is raised as a distinct DispatchError subclass. They are local to one
send attempt and never change the connection status.
"""

from __future__ import annotations

import ipaddress

from .internal_types import *
from .pkg_logging import logger
from .exceptions import MalformedPacket, MissingTarget, TransportUnavailable
from .constants import BROADCAST_ADDRESS, DISCOVERY_COMMAND_HEX
from .config import is_valid_port
from .packet_codec import CommandPacket
from .context import SwitcherContext

class CommandDispatcher:
    context: SwitcherContext

    def __init__(self, context: SwitcherContext) -> None:
        self.context = context

    def dispatch(self, hex_command: str, target_address: Optional[str], target_port: Optional[int]) -> CommandPacket:
        """Encodes a hex command and sends it to target_address:target_port.

        Raises:
            TransportUnavailable: no transport is open.
            MissingTarget: the address is empty or not an IPv4 address, or the port is missing or out of range.
            MalformedPacket: the command is not valid hex, or is empty.
            SendFailure: the transport rejected the datagram.
        """
        if not self.context.transport_is_open:
            raise TransportUnavailable("UDP socket is not initialized. Cannot send command.")
        transport = self.context.transport
        assert transport is not None
        if not target_address or not is_valid_port(target_port):
            raise MissingTarget(
                f"Cannot send command: Target IP ({target_address}) or Port ({target_port}) is missing. "
                "Check module configuration."
              )
        try:
            ipaddress.IPv4Address(target_address)
        except ValueError as e:
            raise MissingTarget(f"Cannot send command: Target IP {target_address!r} is not a valid IPv4 address") from e
        assert target_port is not None
        packet = CommandPacket.from_hex(hex_command)
        if len(packet) == 0:
            raise MalformedPacket("No HEX command provided")
        transport.send(packet.raw_data, target_address, target_port)
        return packet

    def discover(self) -> CommandPacket:
        """Broadcasts the discovery probe to the configured port."""
        logger.debug(f"Broadcasting discovery probe to {BROADCAST_ADDRESS}:{self.context.config.port}")
        return self.dispatch(DISCOVERY_COMMAND_HEX, BROADCAST_ADDRESS, self.context.config.port)

    def send_command(self, hex_command: str, target_ip: Optional[str]=None) -> CommandPacket:
        """Sends a custom command to target_ip, or to the configured host if target_ip is empty.
           The configured port is always used."""
        target_address = target_ip.strip() if target_ip else None
        if not target_address:
            target_address = self.context.config.host
        return self.dispatch(hex_command, target_address, self.context.config.port)
