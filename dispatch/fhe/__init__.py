"""
Encrypted Value Boundary

Handles, the provider interface the engine consumes, the in-process mock
coprocessor, and the access-control side table.
"""

from .types import BitWidth, EncryptedValue, EncryptedBool
from .provider import EncryptedValueProvider, ProviderError, DecryptionDenied
from .acl import (
    AccessControlList,
    GrantGap,
    GrantViolation,
    find_grant_gaps,
    require_grants,
)
from .mock import MockCoprocessor

__all__ = [
    "BitWidth",
    "EncryptedValue",
    "EncryptedBool",
    "EncryptedValueProvider",
    "ProviderError",
    "DecryptionDenied",
    "AccessControlList",
    "GrantGap",
    "GrantViolation",
    "find_grant_gaps",
    "require_grants",
    "MockCoprocessor",
]
