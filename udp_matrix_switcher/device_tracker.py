#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
DeviceTracker -- Remembers the switchers that have answered a discovery probe.

Any datagram that begins with the discovery response prefix, from any source, is
taken as proof that a switcher is reachable at the sender's address. Records are
keyed by address, so a device that answers again is updated rather than duplicated.
Records are never removed automatically; callers that want pruning use expire().
"""

from __future__ import annotations

import time
import datetime

from .internal_types import *
from .pkg_logging import logger
from .packet_codec import is_discovery_response

class DeviceRecord:
    address: str
    """The IP address the discovery response came from"""

    port: int
    """The source port of the most recent discovery response"""

    response: bytes
    """The most recent discovery response datagram. Bytes after the prefix are not parsed."""

    monotonic_time: float
    """The local time (in seconds) since an arbitrary point in the past at which
       the most recent response was received, as returned by time.monotonic(). This
       value is useful for calculating the age of the record."""

    last_seen: datetime.datetime
    """The UTC time at which the most recent response was received."""

    def __init__(self, address: str, port: int, response: bytes) -> None:
        self.address = address
        self.port = port
        self.response = response
        self.monotonic_time = time.monotonic()
        self.last_seen = datetime.datetime.now(datetime.timezone.utc)

    @property
    def age(self) -> float:
        """Seconds since the most recent response from this device."""
        return time.monotonic() - self.monotonic_time

    def to_json_data(self) -> JsonableDict:
        return {
            "address": self.address,
            "port": self.port,
            "last_seen": self.last_seen.isoformat(),
            "response": self.response.hex(),
          }

    def __str__(self) -> str:
        return f"DeviceRecord({self.address}, last_seen={self.last_seen.isoformat()})"

    def __repr__(self) -> str:
        return str(self)

class DeviceTracker:
    """The set of devices that have answered a discovery probe, keyed by address."""

    _devices: Dict[str, DeviceRecord]

    def __init__(self) -> None:
        self._devices = {}

    def observe(self, data: bytes, addr: HostAndPort) -> Optional[DeviceRecord]:
        """Classifies an inbound datagram.

        If it is a discovery response, the sender's record is created or replaced and
        returned. Otherwise None is returned and nothing changes.
        """
        if not is_discovery_response(data):
            return None
        address, port = addr[0], addr[1]
        record = DeviceRecord(address, port, bytes(data))
        if address in self._devices:
            logger.debug(f"Refreshed discovered device {address}")
        else:
            logger.debug(f"New discovered device {address}")
        self._devices[address] = record
        return record

    def get(self, address: str) -> Optional[DeviceRecord]:
        return self._devices.get(address)

    @property
    def devices(self) -> List[DeviceRecord]:
        """A snapshot of all known devices, in discovery order."""
        return list(self._devices.values())

    @property
    def addresses(self) -> List[str]:
        return list(self._devices.keys())

    def expire(self, max_age: float) -> List[DeviceRecord]:
        """Removes and returns records that have not been refreshed within max_age seconds."""
        stale = [ record for record in self._devices.values() if record.age > max_age ]
        for record in stale:
            logger.debug(f"Expiring stale device {record.address} (age {record.age:.1f}s)")
            del self._devices[record.address]
        return stale

    def clear(self) -> None:
        self._devices.clear()

    def __len__(self) -> int:
        return len(self._devices)

    def __contains__(self, address: object) -> bool:
        return address in self._devices

    def __iter__(self) -> Iterator[DeviceRecord]:
        return iter(self.devices)
