"""Build file tree snapshots from local directories and tar archives."""

from __future__ import annotations

import os
import stat
import tarfile
from pathlib import Path
from typing import IO

from gridlock.errors import LocalIOError
from gridlock.nar.tree import Directory, Node, Regular, Symlink, split_path

EXECUTABLE_BITS = 0o111


def tree_from_path(path: str | Path) -> Node:
    """Snapshot a file, symlink, or directory on the local filesystem.

    Only the executable bit and symlink targets are read from metadata, so
    timestamps, owners and other permission bits never affect the archive.
    """
    root = Path(path)
    return _node_from_path(root)


def _node_from_path(path: Path) -> Node:
    try:
        info = path.lstat()
        if stat.S_ISLNK(info.st_mode):
            return Symlink(os.fsencode(os.readlink(path)))
        if stat.S_ISREG(info.st_mode):
            return Regular(path.read_bytes(), executable=bool(info.st_mode & EXECUTABLE_BITS))
        if stat.S_ISDIR(info.st_mode):
            directory = Directory()
            for child in path.iterdir():
                directory.entries[os.fsencode(child.name)] = _node_from_path(child)
            return directory
    except OSError as exc:
        raise LocalIOError(
            "Unable to read file tree.",
            hint=exc.strerror,
            context={"operation": "tree_from_path", "path": str(path)},
        ) from exc
    raise LocalIOError(
        "Unsupported file type in tree.",
        hint="Only regular files, symlinks and directories can be archived.",
        context={"operation": "tree_from_path", "path": str(path)},
    )


def tree_from_tar(fileobj: IO[bytes], *, strip_components: int = 0) -> Directory:
    """Build a directory tree from a tar stream (plain or compressed).

    Entries that are not files, directories or symlinks are skipped, as are
    entries that become empty after stripping leading components.
    """
    tree = Directory()
    try:
        with tarfile.open(fileobj=fileobj, mode="r:*") as archive:
            for member in archive:
                components = split_path(os.fsencode(member.name))[strip_components:]
                if not components:
                    continue
                node: Node
                if member.isdir():
                    existing = _lookup(tree, components)
                    if isinstance(existing, Directory):
                        continue
                    node = Directory()
                elif member.isfile():
                    extracted = archive.extractfile(member)
                    if extracted is None:
                        continue
                    with extracted:
                        contents = extracted.read()
                    node = Regular(contents, executable=bool(member.mode & EXECUTABLE_BITS))
                elif member.issym():
                    node = Symlink(os.fsencode(member.linkname))
                else:
                    continue
                try:
                    tree.insert(components, node)
                except ValueError as exc:
                    raise LocalIOError(
                        "Invalid member path in tar archive.",
                        hint=str(exc),
                        context={"operation": "tree_from_tar", "member": member.name},
                    ) from exc
    except (tarfile.TarError, OSError, EOFError) as exc:
        raise LocalIOError(
            "Unable to read tar archive.",
            hint=str(exc),
            context={"operation": "tree_from_tar"},
        ) from exc
    return tree


def _lookup(tree: Directory, components: list[bytes]) -> Node | None:
    node: Node | None = tree
    for component in components:
        if not isinstance(node, Directory):
            return None
        node = node.entries.get(component)
    return node


__all__ = ["tree_from_path", "tree_from_tar"]
