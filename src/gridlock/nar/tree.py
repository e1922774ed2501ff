"""File tree snapshot model.

A tree is a closed set of three node kinds. Only the facts that the archive
format records are kept: file contents, the executable bit, symlink targets
and directory entry names. Directory entries are stored keyed by raw bytes so
that ordering is always byte-lexicographic.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Regular:
    contents: bytes
    executable: bool = False


@dataclass(frozen=True, slots=True)
class Symlink:
    target: bytes

    def __init__(self, target: str | bytes) -> None:
        object.__setattr__(self, "target", _to_bytes(target))


@dataclass(eq=True, slots=True)
class Directory:
    entries: dict[bytes, Node]

    def __init__(self, entries: Mapping[str | bytes, Node] | None = None) -> None:
        self.entries = {}
        for name, node in (entries or {}).items():
            self.entries[validate_name(name)] = node

    def __iter__(self) -> Iterator[tuple[bytes, Node]]:
        """Yield ``(name, node)`` pairs in canonical (byte-sorted) order."""
        for name in sorted(self.entries):
            yield name, self.entries[name]

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, name: str | bytes) -> Node | None:
        return self.entries.get(_to_bytes(name))

    def insert(self, path: str | bytes | Iterable[bytes], node: Node) -> None:
        """Place ``node`` at a relative path, creating parent directories."""
        components = split_path(path) if isinstance(path, (str, bytes)) else list(path)
        if not components:
            raise ValueError("Cannot insert a node at an empty path.")
        current = self
        for component in components[:-1]:
            child = current.entries.get(validate_name(component))
            if child is None:
                child = Directory()
                current.entries[component] = child
            if not isinstance(child, Directory):
                raise ValueError(
                    f"Cannot insert {_display(components)}: "
                    f"{component.decode('utf-8', 'replace')} is not a directory."
                )
            current = child
        current.entries[validate_name(components[-1])] = node


Node = Regular | Symlink | Directory


def split_path(path: str | bytes) -> list[bytes]:
    """Split a slash-separated path, dropping empty and ``.`` components."""
    raw = _to_bytes(path)
    return [part for part in raw.split(b"/") if part not in (b"", b".")]


def validate_name(name: str | bytes) -> bytes:
    raw = _to_bytes(name)
    if not raw or raw in (b".", b"..") or b"/" in raw or b"\x00" in raw:
        raise ValueError(f"Invalid directory entry name: {raw!r}")
    return raw


def walk(node: Node, prefix: bytes = b"") -> Iterator[tuple[bytes, Node]]:
    """Yield ``(path, node)`` for every node below and including ``node``."""
    yield prefix, node
    if isinstance(node, Directory):
        for name, child in node:
            yield from walk(child, prefix + b"/" + name if prefix else name)


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    return value.encode("utf-8", "surrogateescape")


def _display(components: list[bytes]) -> str:
    return b"/".join(components).decode("utf-8", "replace")


__all__ = ["Directory", "Node", "Regular", "Symlink", "split_path", "validate_name", "walk"]
