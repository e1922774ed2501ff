"""NAR content digests in the text encodings Nix understands."""

from __future__ import annotations

import base64
import hashlib
from dataclasses import dataclass

from gridlock.nar.encode import write_nar
from gridlock.nar.tree import Node

HASH_ALGORITHM = "sha256"
HASH_SIZE = 32

# Nix's base-32 alphabet omits e, o, u and t.
NIX_BASE32_ALPHABET = "0123456789abcdfghijklmnpqrsvwxyz"


def nix_base32_length(size: int) -> int:
    return (size * 8 - 1) // 5 + 1


def nix_base32(raw: bytes) -> str:
    """Encode bytes the way ``nix hash to-base32`` does."""
    size = len(raw)
    chars = []
    for n in range(nix_base32_length(size) - 1, -1, -1):
        bit = n * 5
        index, shift = divmod(bit, 8)
        value = raw[index] >> shift
        if index + 1 < size:
            value |= raw[index + 1] << (8 - shift)
        chars.append(NIX_BASE32_ALPHABET[value & 0x1F])
    return "".join(chars)


def nix_base32_decode(text: str, size: int = HASH_SIZE) -> bytes:
    if len(text) != nix_base32_length(size):
        raise ValueError(f"Expected {nix_base32_length(size)} base-32 characters, got {len(text)}.")
    out = bytearray(size)
    for n, char in enumerate(reversed(text)):
        digit = NIX_BASE32_ALPHABET.find(char)
        if digit < 0:
            raise ValueError(f"Invalid base-32 character: {char!r}")
        bit = n * 5
        index, shift = divmod(bit, 8)
        out[index] |= (digit << shift) & 0xFF
        carry = digit >> (8 - shift)
        if index + 1 < size:
            out[index + 1] |= carry
        elif carry:
            raise ValueError("Invalid base-32 hash: trailing bits set.")
    return bytes(out)


@dataclass(frozen=True, slots=True)
class ContentDigest:
    raw: bytes
    algorithm: str = HASH_ALGORITHM

    def __post_init__(self) -> None:
        if self.algorithm != HASH_ALGORITHM or len(self.raw) != HASH_SIZE:
            raise ValueError(f"ContentDigest requires a {HASH_SIZE}-byte {HASH_ALGORITHM} digest.")

    @property
    def text(self) -> str:
        """``sha256:<base-32>``, the form accepted by fixed-output fetchers."""
        return f"{self.algorithm}:{nix_base32(self.raw)}"

    @property
    def sri(self) -> str:
        return f"{self.algorithm}-{base64.b64encode(self.raw).decode('ascii')}"

    @property
    def hex(self) -> str:
        return self.raw.hex()

    def __str__(self) -> str:
        return self.text

    @classmethod
    def parse(cls, value: str) -> ContentDigest:
        """Parse ``sha256:<base-32>``, ``sha256:<hex>``, SRI ``sha256-<base64>``
        or a bare base-32 string as niv writes it."""
        prefix = f"{HASH_ALGORITHM}:"
        sri_prefix = f"{HASH_ALGORITHM}-"
        if len(value) == nix_base32_length(HASH_SIZE):
            return cls(nix_base32_decode(value))
        if value.startswith(prefix):
            body = value[len(prefix) :]
            if len(body) == HASH_SIZE * 2:
                return cls(bytes.fromhex(body))
            return cls(nix_base32_decode(body))
        if value.startswith(sri_prefix):
            raw = base64.b64decode(value[len(sri_prefix) :], validate=True)
            return cls(raw)
        raise ValueError(f"Unsupported digest format: {value!r}")


class NarHasher:
    """Write sink that hashes a NAR stream as it is produced."""

    def __init__(self) -> None:
        self._hash = hashlib.sha256()

    def write(self, data: bytes) -> int:
        self._hash.update(data)
        return len(data)

    def digest(self) -> ContentDigest:
        return ContentDigest(self._hash.digest())


def digest(archive: bytes) -> ContentDigest:
    return ContentDigest(hashlib.sha256(archive).digest())


def hash_tree(root: Node) -> ContentDigest:
    hasher = NarHasher()
    write_nar(root, hasher)
    return hasher.digest()


__all__ = [
    "ContentDigest",
    "HASH_ALGORITHM",
    "NIX_BASE32_ALPHABET",
    "NarHasher",
    "digest",
    "hash_tree",
    "nix_base32",
    "nix_base32_decode",
]
