"""
Compatibility Evaluator

Answers "does this request fit this route?" as an encrypted boolean.
"""

from .models import AxisPairing, CompatibilityResult
from .evaluate import CompatibilityEvaluator, DEFAULT_MARGIN

__all__ = [
    "AxisPairing",
    "CompatibilityResult",
    "CompatibilityEvaluator",
    "DEFAULT_MARGIN",
]
