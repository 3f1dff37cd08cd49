"""
Dispatch Engine

Serialized facade over the Record Store, evaluator, optimizer and matcher,
plus its HTTP router.
"""

from .engine import DispatchEngine
from .admin import router as dispatch_router, get_engine

__all__ = [
    "DispatchEngine",
    "dispatch_router",
    "get_engine",
]
