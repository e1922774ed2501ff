"""Lockfile typed model."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any

from gridlock.hashing import ContentDigest
from gridlock.resolve import RevisionInfo

LOCKFILE_VERSION = 1


@dataclass(frozen=True, slots=True)
class LockEntry:
    revision: RevisionInfo
    digest: ContentDigest
    last_updated: datetime | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def branch(self) -> str:
        return self.revision.ref

    @property
    def rev(self) -> str:
        return self.revision.commit

    @property
    def url(self) -> str:
        return self.revision.remote.archive_url(self.rev)

    @property
    def web_link(self) -> str:
        return self.revision.remote.web_link(self.rev)


@dataclass(frozen=True, slots=True)
class Lockfile:
    version: int = LOCKFILE_VERSION
    packages: dict[str, LockEntry] = field(default_factory=dict)
    extra: dict[str, Any] = field(default_factory=dict)


def upsert(lockfile: Lockfile, name: str, entry: LockEntry) -> Lockfile:
    """Return a copy with ``name`` bound to ``entry``.

    An existing key keeps its position; a new key is appended.
    """
    packages = dict(lockfile.packages)
    packages[name] = entry
    return replace(lockfile, packages=packages)


def remove(lockfile: Lockfile, name: str) -> Lockfile:
    packages = dict(lockfile.packages)
    del packages[name]
    return replace(lockfile, packages=packages)
