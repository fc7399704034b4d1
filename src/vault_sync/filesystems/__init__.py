"""Filesystem capability and its in-memory implementation."""

from .base import Filesystem, common_test_connection_ops
from .memory import MemoryFilesystem

__all__ = ["Filesystem", "MemoryFilesystem", "common_test_connection_ops"]
