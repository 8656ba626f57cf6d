"""
Storage layer.

Loads the read-only bird dataset into memory.
"""

from .dataset import DatasetStore

__all__ = ["DatasetStore"]
