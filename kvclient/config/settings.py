"""
KV-Client Configuration Settings

This module contains the default configuration for connections and pools.
Every value can be overridden per call; the environment only changes the
defaults picked up when an argument is left as None.
"""

import os
from dataclasses import dataclass


def _env_float(name: str, default: str) -> float:
    return float(os.environ.get(name, default))


@dataclass
class Settings:
    """Client configuration settings."""

    # Network settings
    HOST: str = os.environ.get("KV_CLIENT_HOST", "127.0.0.1")
    PORT: int = int(os.environ.get("KV_CLIENT_PORT", "6379"))
    CONNECT_TIMEOUT: float = _env_float("KV_CLIENT_CONNECT_TIMEOUT", "5.0")
    SOCKET_TIMEOUT: float = _env_float("KV_CLIENT_SOCKET_TIMEOUT", "0")  # 0 means block forever

    # Pool settings
    POOL_CAPACITY: int = int(os.environ.get("KV_CLIENT_POOL_CAPACITY", "0"))  # 0 means unbounded
    POOL_INITIAL_SIZE: int = int(os.environ.get("KV_CLIENT_POOL_INITIAL_SIZE", "0"))

    # Protocol settings
    ENCODING: str = "utf-8"
    READ_BUFFER_SIZE: int = 65536

    # Logging settings
    DEBUG: bool = os.environ.get("KV_CLIENT_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("KV_CLIENT_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
