#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""The mutable state owned by one switcher instance."""

from __future__ import annotations

from .internal_types import *
from .config import ModuleConfig
from .device_tracker import DeviceTracker
from .connection_state import ConnectionState, StatusSink

if TYPE_CHECKING:
    from .switcher_transport import SwitcherTransport

class SwitcherContext:
    """
    Everything one switcher instance knows: its configuration, its transport (if open),
    the devices that have answered discovery, and the connection status.

    Components receive the context explicitly; nothing is kept in module globals, so
    several instances can run side by side.
    """

    config: ModuleConfig
    transport: Optional[SwitcherTransport] = None
    tracker: DeviceTracker
    state: ConnectionState

    def __init__(self, config: Optional[ModuleConfig]=None, status_sink: Optional[StatusSink]=None) -> None:
        self.config = ModuleConfig() if config is None else config
        self.tracker = DeviceTracker()
        self.state = ConnectionState(status_sink)

    @property
    def transport_is_open(self) -> bool:
        return self.transport is not None and self.transport.is_open
