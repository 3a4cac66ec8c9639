"""Configuration module for KV-Client."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
