"""Configuration module for ownerstore."""

from ownerstore.config.loader import get_config_path, load_config, save_config
from ownerstore.config.schema import Config

__all__ = ["Config", "get_config_path", "load_config", "save_config"]
