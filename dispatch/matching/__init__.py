"""
Matcher

Irreversible, plaintext-visible binding of a request to a route.
"""

from .match import Matcher

__all__ = ["Matcher"]
