# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Package udp_matrix_switcher discovers and controls matrix/multiviewer switchers over UDP.

Switchers of this family listen on a UDP port (7000 by default) and answer a fixed
20-byte discovery probe sent to the IPv4 limited broadcast address. Any reply that
begins with the bytes A5 6C 2C 00 A1 FF is a discovery response, and the sender's
address is the address of a switcher.

Beyond discovery, commands are sent as raw hex-encoded datagrams. The device's
routing and status command vocabulary (and its checksum scheme) is not documented
well enough to implement here, so only the generic hex command path is provided.
"""

from .version import __version__

from .internal_types import HostAndPort, Jsonable, JsonableDict

from .exceptions import (
    SwitcherError,
    ConfigError,
    BindFailure,
    BroadcastSetupFailure,
    SocketFailure,
    DispatchError,
    MalformedPacket,
    TransportUnavailable,
    MissingTarget,
    SendFailure,
  )

from .constants import (
    DEFAULT_PORT,
    BROADCAST_ADDRESS,
    DISCOVERY_COMMAND,
    DISCOVERY_COMMAND_HEX,
    DISCOVERY_RESPONSE_PREFIX,
    DISCOVERY_RESPONSE_PREFIX_HEX,
  )
from .packet_codec import encode, to_hex, is_discovery_response, CommandPacket
from .config import ModuleConfig, ConfigProperties
from .switcher_transport import SwitcherTransport
from .device_tracker import DeviceTracker, DeviceRecord
from .connection_state import ConnectionState, ConnectionStatus, StatusSink
from .context import SwitcherContext
from .command_dispatcher import CommandDispatcher
from .instance import SwitcherInstance, ACTION_DISCOVER_DEVICE, ACTION_SEND_HEX_COMMAND

__all__ = [
    '__version__',
    'HostAndPort', 'Jsonable', 'JsonableDict',
    'SwitcherError', 'ConfigError', 'BindFailure', 'BroadcastSetupFailure', 'SocketFailure',
    'DispatchError', 'MalformedPacket', 'TransportUnavailable', 'MissingTarget', 'SendFailure',
    'DEFAULT_PORT', 'BROADCAST_ADDRESS',
    'DISCOVERY_COMMAND', 'DISCOVERY_COMMAND_HEX', 'DISCOVERY_RESPONSE_PREFIX', 'DISCOVERY_RESPONSE_PREFIX_HEX',
    'encode', 'to_hex', 'is_discovery_response', 'CommandPacket',
    'ModuleConfig', 'ConfigProperties',
    'SwitcherTransport',
    'DeviceTracker', 'DeviceRecord',
    'ConnectionState', 'ConnectionStatus', 'StatusSink',
    'SwitcherContext',
    'CommandDispatcher',
    'SwitcherInstance', 'ACTION_DISCOVER_DEVICE', 'ACTION_SEND_HEX_COMMAND',
]
