"""Utility modules for cogload."""

from .atomic import atomic_write_json

__all__ = ["atomic_write_json"]
