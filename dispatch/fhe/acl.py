"""
Access Control Gate

Side table of decryption grants: {handle -> set of principals}.

Every encrypted value the engine persists or hands back must carry two
grants before the producing call returns:
- one to the engine itself (so later computations may use it)
- one to its plaintext owner (carrier or requester)

A value missing either grant is unreadable for good. That is a defect in
the producing code path, so it is raised as GrantViolation and never
translated into an API error.
"""

import logging
from typing import Callable, Dict, Iterable, List, Set, Tuple

from pydantic import BaseModel

from .types import EncryptedValue

logger = logging.getLogger(__name__)


GrantHook = Callable[[str, str], None]


class GrantViolation(RuntimeError):
    """An encrypted value was produced without its mandatory grants."""

    def __init__(self, gaps: List["GrantGap"]):
        self.gaps = gaps
        summary = ", ".join(f"{g.location} missing {g.missing}" for g in gaps)
        super().__init__(f"Incomplete grants: {summary}")


class GrantGap(BaseModel):
    """One encrypted field lacking one or more mandatory grants."""
    location: str
    owner: str
    missing: List[str]


class AccessControlList:
    """Grant relation shared by the provider and the audit."""

    def __init__(self):
        self._grants: Dict[str, Set[str]] = {}
        self._hooks: List[GrantHook] = []

    def add_hook(self, hook: GrantHook) -> None:
        """Register a callable invoked as hook(handle, principal) on every grant."""
        self._hooks.append(hook)

    def grant(self, handle: str, principal: str) -> None:
        self._grants.setdefault(handle, set()).add(principal)
        for hook in self._hooks:
            hook(handle, principal)

    def revoke(self, handle: str, principal: str) -> None:
        principals = self._grants.get(handle)
        if principals is None:
            return
        principals.discard(principal)
        if not principals:
            del self._grants[handle]

    def is_allowed(self, handle: str, principal: str) -> bool:
        return principal in self._grants.get(handle, ())

    def principals(self, handle: str) -> Set[str]:
        return set(self._grants.get(handle, ()))

    def __len__(self) -> int:
        return len(self._grants)


def find_grant_gaps(
    acl: AccessControlList,
    fields: Iterable[Tuple[str, EncryptedValue, str]],
    engine: str,
) -> List[GrantGap]:
    """
    Check (location, value, owner) triples against the ACL.

    Returns:
        One GrantGap per field missing the engine grant, the owner grant, or both.
    """
    gaps: List[GrantGap] = []
    for location, value, owner in fields:
        missing = [
            principal
            for principal in (engine, owner)
            if not acl.is_allowed(value.handle, principal)
        ]
        if missing:
            gaps.append(GrantGap(location=location, owner=owner, missing=sorted(set(missing))))
    return gaps


def require_grants(
    acl: AccessControlList,
    fields: Iterable[Tuple[str, EncryptedValue, str]],
    engine: str,
) -> None:
    """Post-condition for producing operations."""
    gaps = find_grant_gaps(acl, fields, engine)
    if gaps:
        logger.error("Grant post-condition failed for %d field(s)", len(gaps))
        raise GrantViolation(gaps)
