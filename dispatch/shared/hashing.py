"""
Schedule Fingerprints

sha256 over the sorted-key JSON of a plaintext payload. Callers pass only
plaintext-visible, non-volatile content (ids, policy, window), so two
optimizations over unchanged state fingerprint equal.
"""

import hashlib
import json
from typing import Any, Dict


def fingerprint(payload: Dict[str, Any]) -> str:
    """Returns: "sha256:<64-char-hex>" """
    encoded = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return "sha256:" + hashlib.sha256(encoded).hexdigest()
