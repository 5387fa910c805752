#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
Conversion between hex-string commands and raw UDP payloads.

Commands are entered as strings of hex digit pairs, e.g. "a5 6c 14 00 81 ff ...".
Whitespace anywhere in the string is ignored. Nothing is truncated or padded;
a string that does not describe a whole number of bytes is rejected.
"""

from __future__ import annotations

import re

from .internal_types import *
from .exceptions import MalformedPacket
from .constants import DISCOVERY_RESPONSE_PREFIX

_whitespace_re = re.compile(r'\s+')
_hex_digits_re = re.compile(r'[0-9a-fA-F]*')

def strip_whitespace(hex_string: str) -> str:
    """Removes all whitespace from a hex command string."""
    return _whitespace_re.sub('', hex_string)

def encode(hex_string: str) -> bytes:
    """Converts a hex command string to the raw bytes to be sent.

    Raises MalformedPacket if, after removing whitespace, the string has an odd
    number of characters or contains anything other than hex digits.
    """
    if not isinstance(hex_string, str):
        raise MalformedPacket(f"Expected HEX command string, got {type(hex_string).__name__}")
    cleaned_hex = strip_whitespace(hex_string)
    if len(cleaned_hex) % 2 != 0:
        raise MalformedPacket(f"Invalid HEX string (odd length): {cleaned_hex}")
    if not _hex_digits_re.fullmatch(cleaned_hex):
        raise MalformedPacket(f"Invalid HEX string (non-hex characters): {cleaned_hex}")
    return bytes.fromhex(cleaned_hex)

def to_hex(data: bytes) -> str:
    """Renders raw bytes as a lowercase hex string with no separators."""
    return bytes(data).hex()

def is_discovery_response(data: bytes) -> bool:
    """Returns True if a datagram is a reply to the discovery probe."""
    return bytes(data).startswith(DISCOVERY_RESPONSE_PREFIX)

class CommandPacket:
    """A raw command datagram to be sent to a switcher."""

    raw_data: bytes
    """The datagram payload"""

    def __init__(self, raw_data: bytes):
        self.raw_data = bytes(raw_data)

    @classmethod
    def from_hex(cls, hex_string: str) -> CommandPacket:
        """Creates a packet from a hex command string. Raises MalformedPacket if the string is not valid."""
        return cls(encode(hex_string))

    def hex(self) -> str:
        return to_hex(self.raw_data)

    @property
    def is_discovery_response(self) -> bool:
        return is_discovery_response(self.raw_data)

    def __len__(self) -> int:
        return len(self.raw_data)

    def __bytes__(self) -> bytes:
        return self.raw_data

    def __eq__(self, other: object) -> bool:
        if isinstance(other, CommandPacket):
            return self.raw_data == other.raw_data
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.raw_data)

    def __str__(self) -> str:
        return f"CommandPacket({self.raw_data.hex(' ')})"

    def __repr__(self) -> str:
        return str(self)
