"""
Stable string hashes.

Python's built-in hash() is salted per process, so anything that must give
the same answer across restarts (word problem choices, batch tie-breaks,
seeding offsets) goes through these helpers instead.
"""

FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_MASK_32 = 0xFFFFFFFF


def fnv1a_32(value: str) -> int:
    """32-bit FNV-1a hash of a string."""
    h = FNV_OFFSET_BASIS
    for ch in value:
        h ^= ord(ch)
        h = (h * FNV_PRIME) & _MASK_32
    return h


def polynomial_hash_32(value: str) -> int:
    """32-bit base-31 polynomial hash of a string (h = h * 31 + c)."""
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & _MASK_32
    return h
