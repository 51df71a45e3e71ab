"""
hdc_core/vectors.py - Deterministic name-seeded randomness

Every strategy derives its atom vectors from these helpers. They are pure
functions of (scope, name): SHA-256 is expanded block by block, so the same
inputs reproduce the same bytes across runs, processes and sessions. There is
no process-global generator state anywhere in the package.
"""
from __future__ import annotations

import hashlib

import numpy as np

MASK64 = (1 << 64) - 1


def seed_bytes(name: str, scope: str, n_bytes: int) -> np.ndarray:
    """Expand SHA-256 of ``scope:name`` into ``n_bytes`` deterministic bytes.

    Args:
        name: Atom name
        scope: Seed namespace
        n_bytes: Number of bytes required

    Returns:
        uint8 array of length n_bytes
    """
    hash_bytes = b""
    block_idx = 0
    while len(hash_bytes) < n_bytes:
        block_seed = f"{scope}:{name}:{block_idx}"
        hash_bytes += hashlib.sha256(block_seed.encode()).digest()
        block_idx += 1
    return np.frombuffer(hash_bytes[:n_bytes], dtype=np.uint8).copy()


def seed_words(name: str, scope: str, count: int) -> list[int]:
    """Deterministic 64-bit unsigned integers for ``scope:name``."""
    raw = seed_bytes(name, scope, count * 8)
    return [int(w) for w in np.frombuffer(raw.tobytes(), dtype="<u8")]


def splitmix64(x: int) -> int:
    """SplitMix64 finalizer, used as the min-hash ordering function."""
    z = (x + 0x9E3779B97F4A7C15) & MASK64
    z = ((z ^ (z >> 30)) * 0xBF58476D1CE4E5B9) & MASK64
    z = ((z ^ (z >> 27)) * 0x94D049BB133111EB) & MASK64
    return z ^ (z >> 31)


def rotl64(x: int, r: int) -> int:
    """Rotate a 64-bit word left by r bits."""
    r %= 64
    return ((x << r) | (x >> (64 - r))) & MASK64 if r else x


def rotr64(x: int, r: int) -> int:
    """Rotate a 64-bit word right by r bits."""
    return rotl64(x, 64 - (r % 64))
