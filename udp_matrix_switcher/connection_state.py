#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""
ConnectionState -- tracks the overall connectivity status of a switcher instance.

    CONNECTING --bound+broadcast--> UNKNOWN_WARNING ("Ready to discover")
    UNKNOWN_WARNING/OK --discovery response--> OK
    any --bind/broadcast/socket error--> CONNECTION_FAILURE
    any --teardown--> DISCONNECTED
    any --init--> CONNECTING

The status is informational; it does not decide whether commands are sent.
"""

from __future__ import annotations

from enum import Enum

from .internal_types import *
from .pkg_logging import logger

class ConnectionStatus(Enum):
    """The status values reported to the status sink."""
    CONNECTING = 'connecting'
    OK = 'ok'
    UNKNOWN_WARNING = 'unknown_warning'
    CONNECTION_FAILURE = 'connection_failure'
    DISCONNECTED = 'disconnected'

StatusSink = Callable[[ConnectionStatus, Optional[str]], None]
"""Receives (status, message) on every transition."""

READY_MESSAGE = "Ready to discover"

_allowed_sources: Dict[ConnectionStatus, Optional[Set[ConnectionStatus]]] = {
    ConnectionStatus.CONNECTING: None,
    ConnectionStatus.UNKNOWN_WARNING: { ConnectionStatus.CONNECTING },
    ConnectionStatus.OK: { ConnectionStatus.UNKNOWN_WARNING, ConnectionStatus.OK },
    ConnectionStatus.CONNECTION_FAILURE: None,
    ConnectionStatus.DISCONNECTED: None,
  }
"""For each target status, the statuses it may be entered from. None means any."""

def log_status(status: ConnectionStatus, message: Optional[str]) -> None:
    """The default status sink."""
    if message is None:
        logger.info(f"Status: {status.value}")
    else:
        logger.info(f"Status: {status.value}: {message}")

class ConnectionState:
    status: ConnectionStatus
    message: Optional[str]
    status_sink: StatusSink

    def __init__(self, status_sink: Optional[StatusSink]=None) -> None:
        self.status = ConnectionStatus.CONNECTING
        self.message = None
        self.status_sink = log_status if status_sink is None else status_sink

    @property
    def is_ready(self) -> bool:
        """True once the socket is bound and broadcast-enabled but no device has answered yet."""
        return self.status == ConnectionStatus.UNKNOWN_WARNING

    def connecting(self, message: Optional[str]=None) -> bool:
        return self._transition(ConnectionStatus.CONNECTING, message)

    def ready(self) -> bool:
        return self._transition(ConnectionStatus.UNKNOWN_WARNING, READY_MESSAGE)

    def device_found(self, address: str) -> bool:
        return self._transition(ConnectionStatus.OK, f"Device found at {address}")

    def failure(self, message: str) -> bool:
        return self._transition(ConnectionStatus.CONNECTION_FAILURE, message)

    def disconnected(self) -> bool:
        return self._transition(ConnectionStatus.DISCONNECTED, None)

    def _transition(self, status: ConnectionStatus, message: Optional[str]) -> bool:
        allowed = _allowed_sources[status]
        if allowed is not None and self.status not in allowed:
            logger.debug(f"Ignoring status change {self.status.value} -> {status.value} ({message})")
            return False
        self.status = status
        self.message = message
        try:
            self.status_sink(status, message)
        except Exception as e:
            logger.warning(f"Status sink raised exception: {e}")
        return True

    def __str__(self) -> str:
        if self.message is None:
            return f"ConnectionState({self.status.value})"
        return f"ConnectionState({self.status.value}: {self.message})"

    def __repr__(self) -> str:
        return str(self)
