from .base import ConfigProperties
from .module_config import ModuleConfig, is_valid_port
