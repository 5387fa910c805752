# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Constants used by this package"""

DEFAULT_PORT = 7000
"""The default UDP port on which the switcher listens for commands."""

BROADCAST_ADDRESS = "255.255.255.255"
"""The limited broadcast address that discovery probes are sent to."""

BIND_ADDRESS = "0.0.0.0"
"""The local IPv4 any-address the transport binds to."""

DISCOVERY_COMMAND_HEX = "a56c140081ff01000000000000000000ffa503ae"
"""The fixed discovery probe, as a hex string (20 bytes)."""

DISCOVERY_COMMAND = bytes.fromhex(DISCOVERY_COMMAND_HEX)
"""The fixed discovery probe."""

DISCOVERY_RESPONSE_PREFIX_HEX = "a56c2c00a1ff"
"""Leading bytes of every discovery response, as a hex string."""

DISCOVERY_RESPONSE_PREFIX = bytes.fromhex(DISCOVERY_RESPONSE_PREFIX_HEX)
"""Leading bytes of every discovery response."""

MAX_QUEUE_SIZE = 1000
"""Maximum number of undelivered transport events before inbound datagrams are dropped."""

MIN_PORT = 1
MAX_PORT = 65535
