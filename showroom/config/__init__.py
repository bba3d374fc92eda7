"""Configuration module for the showroom admin client."""

from showroom.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
