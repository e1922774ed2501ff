"""Lockfile model and persistence APIs."""

from .io import init, load, parse_lockfile, save, serialize_lockfile
from .model import LOCKFILE_VERSION, LockEntry, Lockfile, remove, upsert

__all__ = [
    "LOCKFILE_VERSION",
    "LockEntry",
    "Lockfile",
    "init",
    "load",
    "parse_lockfile",
    "remove",
    "save",
    "serialize_lockfile",
    "upsert",
]
