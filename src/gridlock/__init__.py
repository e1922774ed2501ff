"""Public package entrypoint for gridlock, a Nix-hash lockfile manager."""

from .config import Context, Settings
from .errors import (
    GridlockError,
    IncompleteExportError,
    LocalIOError,
    LockfileExistsError,
    LockfileNotFoundError,
    LockfileParseError,
    RemoteUnavailableError,
    UnknownRefError,
    UsageError,
)
from .hashing import ContentDigest, digest, hash_tree
from .lockfile import LockEntry, Lockfile
from .nar import Directory, Regular, Symlink, encode
from .resolve import Remote, RevisionInfo, resolve

__all__ = [
    "ContentDigest",
    "Context",
    "Directory",
    "GridlockError",
    "IncompleteExportError",
    "LocalIOError",
    "LockEntry",
    "Lockfile",
    "LockfileExistsError",
    "LockfileNotFoundError",
    "LockfileParseError",
    "Regular",
    "Remote",
    "RemoteUnavailableError",
    "RevisionInfo",
    "Settings",
    "Symlink",
    "UnknownRefError",
    "UsageError",
    "digest",
    "encode",
    "hash_tree",
    "resolve",
]
