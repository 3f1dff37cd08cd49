"""Dispatch Shared Utilities"""

from .hashing import fingerprint
from .config import EngineConfig

__all__ = [
    "fingerprint",
    "EngineConfig",
]
