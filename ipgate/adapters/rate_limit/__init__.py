"""Sliding-window request tracking.

The admission gate depends on ``AbstractWindowTracker`` only, so the
in-memory tracker can later be swapped for a shared store without touching
the gate or the HTTP layer.
"""

from ipgate.adapters.rate_limit.base import AbstractWindowTracker
from ipgate.adapters.rate_limit.in_memory import InMemorySlidingWindowTracker

__all__ = ["AbstractWindowTracker", "InMemorySlidingWindowTracker"]
