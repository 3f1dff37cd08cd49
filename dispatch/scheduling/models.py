"""
Schedule Optimizer Models
"""

from enum import Enum


class InclusionPolicy(str, Enum):
    """
    How the encrypted compatibility flag affects a schedule.

    SUGGEST_ALL: every scanned unmatched request is a candidate and counts
        toward the aggregates. The flag is stored per candidate for the
        carrier to decrypt before matching.
    MASKED: every scanned request is a candidate, but its weight and urgency
        enter the aggregates through select(compatible, value, 0).
    GATED: the provider decrypts each flag under the carrier's grant and
        only compatible requests become candidates.
    """
    SUGGEST_ALL = "suggest_all"
    MASKED = "masked"
    GATED = "gated"
