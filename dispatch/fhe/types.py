"""
Encrypted Value Types

Opaque, width-tagged ciphertext handles. A handle is only a reference:
the plaintext lives with the provider and is never reachable from the
handle itself.
"""

from dataclasses import dataclass
from enum import Enum


class BitWidth(str, Enum):
    """Ciphertext widths understood by the engine."""
    BOOL = "ebool"
    U16 = "euint16"
    U32 = "euint32"

    @property
    def max_value(self) -> int:
        return _MAX_VALUES[self]

    @property
    def modulus(self) -> int:
        return _MAX_VALUES[self] + 1


_MAX_VALUES = {
    BitWidth.BOOL: 1,
    BitWidth.U16: 0xFFFF,
    BitWidth.U32: 0xFFFFFFFF,
}


@dataclass(frozen=True)
class EncryptedValue:
    """
    Handle to an encrypted value.

    Equality compares handles, never plaintexts. Truth-testing raises so an
    encrypted comparison result can never silently drive a plaintext branch.
    """
    handle: str
    width: BitWidth

    def __bool__(self):
        raise TypeError(
            "EncryptedValue has no plaintext truth value; use provider.select()"
        )

    def __repr__(self) -> str:
        return f"EncryptedValue({self.handle[:10]}..., {self.width.value})"


# An EncryptedValue whose width is BitWidth.BOOL
EncryptedBool = EncryptedValue
