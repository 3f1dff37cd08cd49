"""
Mock Coprocessor

In-process EncryptedValueProvider used by the test suite and the local API
process. It behaves like an FHE coprocessor seen from the engine:

- plaintexts sit in a private vault keyed by opaque 32-byte handles
- handles minted during the current operation are usable by the engine
  (transient allowance); once the operation ends, only handles holding a
  durable engine grant remain usable
- decryption requires a grant in the shared AccessControlList
- every operation is counted per op name (op_counts) so cost uniformity
  can be asserted
- a value nobody holds a grant on is dropped from the vault when the
  operation ends, or as soon as its last grant is revoked
"""

import itertools
from collections import Counter
from typing import Dict, Optional, Set, Union

from .acl import AccessControlList
from .provider import DecryptionDenied, EncryptedValueProvider, ProviderError
from .types import BitWidth, EncryptedValue, EncryptedBool


class MockCoprocessor(EncryptedValueProvider):
    """Vault-backed provider with ACL enforcement."""

    def __init__(
        self,
        acl: Optional[AccessControlList] = None,
        engine_principal: str = "engine",
        strict: bool = True,
    ):
        self.acl = acl if acl is not None else AccessControlList()
        self.engine_principal = engine_principal
        self.strict = strict
        self.op_counts: Counter = Counter()
        self._vault: Dict[str, int] = {}
        self._widths: Dict[str, BitWidth] = {}
        self._transient: Set[str] = set()
        self._seq = itertools.count(1)

    # ===== internals =====

    def _mint(self, plaintext: int, width: BitWidth) -> EncryptedValue:
        handle = f"0x{next(self._seq):064x}"
        self._vault[handle] = plaintext % width.modulus
        self._widths[handle] = width
        self._transient.add(handle)
        return EncryptedValue(handle=handle, width=width)

    def _load(self, value: EncryptedValue) -> int:
        if not isinstance(value, EncryptedValue) or value.handle not in self._vault:
            raise ProviderError(f"Unknown handle: {value!r}")
        if self._widths[value.handle] != value.width:
            raise ProviderError(f"Handle width mismatch: {value!r}")
        if self.strict and not self._usable(value.handle):
            raise ProviderError(
                f"Engine holds no grant on {value!r}; it cannot be used after the call that produced it"
            )
        return self._vault[value.handle]

    def _discard(self, handle: str) -> None:
        self._vault.pop(handle, None)
        self._widths.pop(handle, None)

    def _usable(self, handle: str) -> bool:
        return handle in self._transient or self.acl.is_allowed(handle, self.engine_principal)

    def _binary(self, op: str, a: EncryptedValue, b: EncryptedValue):
        self.op_counts[op] += 1
        if a.width != b.width:
            raise ProviderError(f"{op}: width mismatch {a.width.value} vs {b.width.value}")
        return self._load(a), self._load(b)

    # ===== EncryptedValueProvider =====

    def encrypt(self, value: Union[int, bool], width: BitWidth) -> EncryptedValue:
        self.op_counts["encrypt"] += 1
        if isinstance(value, bool):
            value = int(value)
        if not isinstance(value, int) or value < 0 or value > width.max_value:
            raise ProviderError(f"Plaintext does not fit {width.value}")
        return self._mint(value, width)

    def add(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        x, y = self._binary("add", a, b)
        return self._mint(x + y, a.width)

    def sub(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        x, y = self._binary("sub", a, b)
        return self._mint(x - y, a.width)

    def mul(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        x, y = self._binary("mul", a, b)
        return self._mint(x * y, a.width)

    def le(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        x, y = self._binary("le", a, b)
        return self._mint(int(x <= y), BitWidth.BOOL)

    def lt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        x, y = self._binary("lt", a, b)
        return self._mint(int(x < y), BitWidth.BOOL)

    def gt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        x, y = self._binary("gt", a, b)
        return self._mint(int(x > y), BitWidth.BOOL)

    def and_(self, a: EncryptedBool, b: EncryptedBool) -> EncryptedBool:
        if a.width != BitWidth.BOOL or b.width != BitWidth.BOOL:
            raise ProviderError("and_: operands must be ebool")
        x, y = self._binary("and", a, b)
        return self._mint(x & y, BitWidth.BOOL)

    def select(
        self,
        condition: EncryptedBool,
        if_true: EncryptedValue,
        if_false: EncryptedValue,
    ) -> EncryptedValue:
        if condition.width != BitWidth.BOOL:
            raise ProviderError("select: condition must be ebool")
        x, y = self._binary("select", if_true, if_false)
        c = self._load(condition)
        return self._mint(x if c else y, if_true.width)

    def cast(self, value: EncryptedValue, width: BitWidth) -> EncryptedValue:
        self.op_counts["cast"] += 1
        return self._mint(self._load(value), width)

    def grant_self(self, value: EncryptedValue) -> None:
        self.grant_to(value, self.engine_principal)

    def grant_to(self, value: EncryptedValue, principal: str) -> None:
        self._load(value)
        self.acl.grant(value.handle, principal)

    def revoke(self, value: EncryptedValue, principal: str) -> None:
        self.acl.revoke(value.handle, principal)
        if value.handle not in self._transient and not self.acl.principals(value.handle):
            self._discard(value.handle)

    def decrypt(self, value: EncryptedValue, principal: str) -> int:
        if not self.acl.is_allowed(value.handle, principal):
            raise DecryptionDenied(value.handle, principal)
        if value.handle not in self._vault:
            raise ProviderError(f"Unknown handle: {value!r}")
        return self._vault[value.handle]

    def end_transaction(self) -> None:
        """Drop every value minted in this call that nobody holds a grant on."""
        for handle in self._transient:
            if not self.acl.principals(handle):
                self._discard(handle)
        self._transient.clear()

    @property
    def handle_count(self) -> int:
        return len(self._vault)

    def reset_op_counts(self) -> None:
        self.op_counts.clear()
