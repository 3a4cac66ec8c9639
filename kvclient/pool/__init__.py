"""Connection pool module for KV-Client."""

from .pool import Pool

__all__ = ["Pool"]
