# Copyright (c) 2023 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration of a switcher instance: the target device IP and UDP port."""

from typing import Optional, Any, Mapping

import ipaddress

from ..internal_types import JsonableDict
from ..exceptions import ConfigError
from ..constants import DEFAULT_PORT, MIN_PORT, MAX_PORT
from .base import ConfigProperties

def is_valid_port(port: Any) -> bool:
  return isinstance(port, int) and not isinstance(port, bool) and MIN_PORT <= port <= MAX_PORT

class ModuleConfig:
  """Immutable instance configuration.

  host is the IPv4 address of the target device, or None if it has not been
  discovered or entered yet. port is the UDP port the device listens on; it is
  also the destination port of discovery broadcasts.
  """
  _host: Optional[str]
  _port: int

  def __init__(self, host: Optional[str]=None, port: int=DEFAULT_PORT):
    if host is not None:
      if not isinstance(host, str):
        raise ConfigError(f"Config: Expected host to be str, got {type(host).__name__}")
      host = host.strip()
      if host == '':
        host = None
      else:
        try:
          ipaddress.IPv4Address(host)
        except ValueError as e:
          raise ConfigError(f"Config: Invalid target device IP {host!r}: {e}") from e
    if not is_valid_port(port):
      raise ConfigError(f"Config: Target port must be an integer between {MIN_PORT} and {MAX_PORT}, got {port!r}")
    self._host = host
    self._port = port

  @property
  def host(self) -> Optional[str]:
    return self._host

  @property
  def port(self) -> int:
    return self._port

  @classmethod
  def from_properties(cls, props: ConfigProperties) -> 'ModuleConfig':
    host = props.get_cfg_property_optional_str('host')
    port = props.get_cfg_property_int('port', DEFAULT_PORT)
    return cls(host=host, port=port)

  @classmethod
  def from_json_data(cls, json_data: Mapping[str, Any]) -> 'ModuleConfig':
    return cls.from_properties(ConfigProperties(json_data))

  @classmethod
  def loads(cls, config_text: str) -> 'ModuleConfig':
    return cls.from_properties(ConfigProperties.loads(config_text))

  @classmethod
  def load_file(cls, config_file: str) -> 'ModuleConfig':
    return cls.from_properties(ConfigProperties.load_file(config_file))

  def with_overrides(self, host: Optional[str]=None, port: Optional[int]=None) -> 'ModuleConfig':
    """Returns a new config with any non-None values replaced."""
    return ModuleConfig(
        host=self._host if host is None else host,
        port=self._port if port is None else port,
      )

  def to_json_data(self) -> JsonableDict:
    return { 'host': '' if self._host is None else self._host, 'port': self._port }

  def __eq__(self, other: object) -> bool:
    if isinstance(other, ModuleConfig):
      return self._host == other._host and self._port == other._port
    return NotImplemented

  def __hash__(self) -> int:
    return hash((self._host, self._port))

  def __repr__(self) -> str:
    return f"ModuleConfig(host={self._host!r}, port={self._port})"
