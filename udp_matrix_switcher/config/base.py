# Copyright (c) 2022 Samuel J. McKelvie
#
# MIT License - See LICENSE file accompanying this package.
#

"""Configuration support.

"""

from typing import Optional, Any, Mapping, TypeVar, Union, overload
from ..internal_types import Jsonable, JsonableDict, JsonableTypes

import os
import json

from requests.structures import CaseInsensitiveDict

from ..exceptions import ConfigError

_T = TypeVar('_T')

class ConfigProperties:
  """Typed, case-insensitive access to the properties of a JSON configuration object."""
  _json_data: CaseInsensitiveDict
  _config_file: Optional[str] = None

  def __init__(self, json_data: Optional[Mapping[str, Any]]=None, config_file: Optional[str]=None):
    if json_data is None:
      json_data = {}
    if not isinstance(json_data, Mapping):
      raise ConfigError(f"Config: Expected config data to be dict, got {type(json_data).__name__}")
    self._json_data = CaseInsensitiveDict(json_data)
    if not config_file is None:
      config_file = os.path.abspath(os.path.expanduser(config_file))
    self._config_file = config_file

  @classmethod
  def loads(cls, config_text: str, config_file: Optional[str]=None) -> 'ConfigProperties':
    try:
      json_data = json.loads(config_text)
    except ValueError as e:
      raise ConfigError(f"Config: Invalid JSON configuration: {e}") from e
    return cls(json_data, config_file=config_file)

  @classmethod
  def load_file(cls, config_file: str) -> 'ConfigProperties':
    try:
      with open(os.path.expanduser(config_file)) as f:
        config_text = f.read()
    except OSError as e:
      raise ConfigError(f"Config: Unable to read configuration file {config_file}: {e}") from e
    return cls.loads(config_text, config_file=config_file)

  @property
  def config_file(self) -> Optional[str]:
    """The fully qualified pathname of the configuration file from which this Config
       originated, or None if not from a file"""
    return self._config_file

  @property
  def config_dir(self) -> Optional[str]:
    """The fully qualified pathname of the directory containing the configuration
       file from which this Config originated, or None if not from a file"""
    config_file = self.config_file
    result: Optional[str]
    if config_file is None:
      result = None
    else:
      result = os.path.dirname(config_file)
    return result

  def __contains__(self, key: object) -> bool:
    return key in self._json_data

  def to_json_data(self) -> JsonableDict:
    return dict(self._json_data.items())

  _no_default = object()

  @overload
  def get_cfg_property(self, key: str, default: _T) -> Union[Jsonable, _T]: pass

  @overload
  def get_cfg_property(self, key: str) -> Jsonable: pass

  def get_cfg_property(self, key: str, default = _no_default):
    result = self._json_data.get(key, default)
    if result is self._no_default:
      raise ConfigError(f"Config: Property {key} does not exist and has no default")
    if not result is None and not isinstance(result, JsonableTypes):
      raise ConfigError(f"Config: Expected property {key} to be JSON-able, got {type(result).__name__}")
    return result

  @overload
  def get_cfg_property_str(self, key: str, default: _T) -> Union[str, _T]: pass

  @overload
  def get_cfg_property_str(self, key: str) -> str: pass

  def get_cfg_property_str(self, key: str, default: Any=_no_default):
    result = self.get_cfg_property(key, default)
    if not isinstance(result, str):
      raise ConfigError(f"Config: Expected property {key} to be str, got {type(result).__name__}")
    return result

  def get_cfg_property_optional_str(self, key: str) -> Optional[str]:
    """Returns a str property, or None if it is missing, null, or blank."""
    result = self.get_cfg_property(key, None)
    if result is None:
      return None
    if not isinstance(result, str):
      raise ConfigError(f"Config: Expected property {key} to be str, got {type(result).__name__}")
    result = result.strip()
    return None if result == '' else result

  @overload
  def get_cfg_property_int(self, key: str, default: _T) -> Union[int, _T]: pass

  @overload
  def get_cfg_property_int(self, key: str) -> int: pass

  def get_cfg_property_int(self, key: str, default: Any=_no_default):
    result = self.get_cfg_property(key, default)
    if isinstance(result, bool):
      raise ConfigError(f"Config: Expected property {key} to be int, got bool")
    if not isinstance(result, int):
      if isinstance(result, str):
        try:
          result = int(result)
        except ValueError:
          pass
    if not isinstance(result, int):
      raise ConfigError(f"Config: Expected property {key} to be int, got {type(result).__name__}")
    return result
