"""
Encrypted Value Provider Interface

The engine consumes encrypted arithmetic; it never implements it. Any
backend (an FHE coprocessor, a local mock) plugs in by implementing this
interface.

Rules every backend honours:
- Operations are side-effect-free on plaintext and return fresh handles.
- Integer arithmetic wraps modulo the operand width.
- Operands of a binary operation share one width (use cast()).
- Failures only come from malformed handles, never from data values.
"""

from abc import ABC, abstractmethod
from typing import Union

from .acl import AccessControlList
from .types import BitWidth, EncryptedValue, EncryptedBool


class ProviderError(Exception):
    """Malformed or mismatched handle (programmer error)."""
    pass


class DecryptionDenied(ProviderError):
    """Principal holds no grant on the handle it asked to decrypt."""

    def __init__(self, handle: str, principal: str):
        self.handle = handle
        self.principal = principal
        super().__init__(f"Principal '{principal}' holds no decryption grant")


class EncryptedValueProvider(ABC):
    """Abstract encrypted-arithmetic capability."""

    engine_principal: str
    acl: AccessControlList

    @abstractmethod
    def encrypt(self, value: Union[int, bool], width: BitWidth) -> EncryptedValue:
        ...

    @abstractmethod
    def add(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        ...

    @abstractmethod
    def sub(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        ...

    @abstractmethod
    def mul(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedValue:
        ...

    @abstractmethod
    def le(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        ...

    @abstractmethod
    def lt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        ...

    @abstractmethod
    def gt(self, a: EncryptedValue, b: EncryptedValue) -> EncryptedBool:
        ...

    @abstractmethod
    def and_(self, a: EncryptedBool, b: EncryptedBool) -> EncryptedBool:
        ...

    @abstractmethod
    def select(
        self,
        condition: EncryptedBool,
        if_true: EncryptedValue,
        if_false: EncryptedValue,
    ) -> EncryptedValue:
        ...

    @abstractmethod
    def cast(self, value: EncryptedValue, width: BitWidth) -> EncryptedValue:
        ...

    @abstractmethod
    def grant_self(self, value: EncryptedValue) -> None:
        """Allow the engine to keep using the value in later calls."""
        ...

    @abstractmethod
    def grant_to(self, value: EncryptedValue, principal: str) -> None:
        """Allow principal to request decryption of the value."""
        ...

    @abstractmethod
    def revoke(self, value: EncryptedValue, principal: str) -> None:
        ...

    @abstractmethod
    def decrypt(self, value: EncryptedValue, principal: str) -> int:
        """Decrypt on behalf of principal. Raises DecryptionDenied without a grant."""
        ...

    def end_transaction(self) -> None:
        """Called once a public engine operation has finished."""
        return None

    def grant_owner(self, value: EncryptedValue, owner: str) -> EncryptedValue:
        """Issue both mandatory grants (engine + owner) and hand the value back."""
        self.grant_self(value)
        self.grant_to(value, owner)
        return value
