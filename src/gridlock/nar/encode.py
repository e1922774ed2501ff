"""Canonical NAR (Nix ARchive) encoder.

Every token is a length-prefixed string: a little-endian u64 length, the raw
bytes, then zero padding up to the next multiple of eight. The byte stream is
bit-for-bit what ``nix-store --dump`` produces for the same tree.
"""

from __future__ import annotations

import io
import struct
from typing import Protocol

from gridlock.nar.tree import Directory, Node, Regular, Symlink

NAR_VERSION_MAGIC = b"nix-archive-1"
ALIGNMENT = 8

_PADDING = b"\x00" * ALIGNMENT


class Sink(Protocol):
    def write(self, data: bytes, /) -> object: ...


class NarWriter:
    """Writes NAR tokens for a tree into ``sink``."""

    def __init__(self, sink: Sink, *, magic: bytes = NAR_VERSION_MAGIC) -> None:
        self._sink = sink
        self._magic = magic

    def write_archive(self, root: Node) -> None:
        self._str(self._magic)
        self._node(root)

    def _node(self, node: Node) -> None:
        self._str(b"(")
        match node:
            case Regular(contents=contents, executable=executable):
                self._str(b"type")
                self._str(b"regular")
                if executable:
                    self._str(b"executable")
                    self._str(b"")
                self._str(b"contents")
                self._str(contents)
            case Symlink(target=target):
                self._str(b"type")
                self._str(b"symlink")
                self._str(b"target")
                self._str(target)
            case Directory():
                self._str(b"type")
                self._str(b"directory")
                for name, child in node:
                    self._str(b"entry")
                    self._str(b"(")
                    self._str(b"name")
                    self._str(name)
                    self._str(b"node")
                    self._node(child)
                    self._str(b")")
            case _:
                raise TypeError(f"Unsupported tree node: {type(node).__name__}")
        self._str(b")")

    def _str(self, data: bytes) -> None:
        self._sink.write(frame(data))


def frame(data: bytes) -> bytes:
    """Return ``data`` framed as a single NAR string token."""
    size = len(data)
    return struct.pack("<Q", size) + data + _PADDING[: -size % ALIGNMENT]


def write_nar(root: Node, sink: Sink) -> None:
    NarWriter(sink).write_archive(root)


def encode(root: Node) -> bytes:
    """Encode ``root`` into a complete in-memory archive."""
    buffer = io.BytesIO()
    write_nar(root, buffer)
    return buffer.getvalue()


__all__ = ["ALIGNMENT", "NAR_VERSION_MAGIC", "NarWriter", "Sink", "encode", "frame", "write_nar"]
