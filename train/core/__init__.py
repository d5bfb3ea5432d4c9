"""Core domain types and logic."""

from .config import CiConfig, Config, ConfigError, MavenConfig, Service, load_config
from .errors import ErrorCode
from .result import Err, Ok, Result

__all__ = [
    # config
    "CiConfig",
    "Config",
    "ConfigError",
    "MavenConfig",
    "Service",
    "load_config",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
]
