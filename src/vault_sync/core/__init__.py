"""Async helpers shared by the executor and the engine."""

from .async_utils import create_semaphore, gather_limited, run_sync, run_sync_limited

__all__ = ["create_semaphore", "gather_limited", "run_sync", "run_sync_limited"]
