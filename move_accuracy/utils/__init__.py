"""Configuration helpers."""

from .config import Config, get_config
