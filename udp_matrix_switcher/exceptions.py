#
# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Exceptions defined by this package"""

class SwitcherError(Exception):
  """Base class for all error exceptions defined by this package."""
  pass

class ConfigError(SwitcherError):
  """The module configuration is missing or invalid."""
  pass

class BindFailure(SwitcherError):
  """The UDP socket could not be created or bound."""
  pass

class BroadcastSetupFailure(SwitcherError):
  """Broadcast transmission could not be enabled on a bound socket."""
  pass

class SocketFailure(SwitcherError):
  """An asynchronous socket-level error occurred after the socket was bound."""
  pass

class DispatchError(SwitcherError):
  """A single command dispatch was rejected or failed. Never affects connection status."""
  pass

class MalformedPacket(DispatchError, ValueError):
  """A hex command string is not an even-length sequence of hex digits."""
  pass

class TransportUnavailable(DispatchError):
  """There is no open transport to send on."""
  pass

class MissingTarget(DispatchError):
  """The target address or port is missing or invalid."""
  pass

class SendFailure(DispatchError):
  """The datagram could not be handed to the operating system."""
  pass
