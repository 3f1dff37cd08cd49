"""
Schedule Optimizer

Encrypted load/urgency aggregation and efficiency scoring per route.
"""

from .models import InclusionPolicy
from .optimize import ScheduleOptimizer, DEFAULT_WEIGHT_THRESHOLD, DEFAULT_BOOST_FACTOR

__all__ = [
    "InclusionPolicy",
    "ScheduleOptimizer",
    "DEFAULT_WEIGHT_THRESHOLD",
    "DEFAULT_BOOST_FACTOR",
]
