"""Deterministic NAR archive encoding of file tree snapshots."""

from .encode import NAR_VERSION_MAGIC, NarWriter, encode, write_nar
from .sources import tree_from_path, tree_from_tar
from .tree import Directory, Node, Regular, Symlink

__all__ = [
    "NAR_VERSION_MAGIC",
    "Directory",
    "NarWriter",
    "Node",
    "Regular",
    "Symlink",
    "encode",
    "tree_from_path",
    "tree_from_tar",
    "write_nar",
]
