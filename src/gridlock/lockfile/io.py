"""Lockfile parser, serializer, and atomic persistence."""

from __future__ import annotations

import json
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from gridlock.errors import (
    LocalIOError,
    LockfileExistsError,
    LockfileNotFoundError,
    LockfileParseError,
)
from gridlock.hashing import ContentDigest
from gridlock.lockfile.model import LOCKFILE_VERSION, LockEntry, Lockfile
from gridlock.resolve import Remote, RevisionInfo

SUPPORTED_VERSIONS = (0, LOCKFILE_VERSION)
DEFAULT_HOST = "github.com"

_ENTRY_KEYS = frozenset(
    {"branch", "host", "last_updated", "owner", "repo", "rev", "sha256", "url"}
)
_TOP_LEVEL_KEYS = frozenset({"packages", "version"})


def serialize_lockfile(lockfile: Lockfile) -> str:
    payload: dict[str, Any] = dict(lockfile.extra)
    payload["packages"] = {
        name: _entry_payload(entry) for name, entry in lockfile.packages.items()
    }
    payload["version"] = lockfile.version
    return json.dumps(payload, indent=2) + "\n"


def parse_lockfile(raw: str) -> Lockfile:
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise LockfileParseError("Invalid lockfile JSON.", hint=str(exc)) from exc

    if not isinstance(payload, dict):
        raise LockfileParseError("Invalid lockfile payload type.")

    version = _required_int(payload, "version")
    if version not in SUPPORTED_VERSIONS:
        raise LockfileParseError(
            "Unsupported lockfile version.",
            hint="Upgrade gridlock to read this lockfile.",
            context={"version": str(version)},
        )
    packages_raw = payload.get("packages")
    if not isinstance(packages_raw, dict):
        raise LockfileParseError("Invalid lockfile `packages` value.")
    packages = {
        _package_name(name): _parse_entry(name, item) for name, item in packages_raw.items()
    }
    extra = {key: value for key, value in payload.items() if key not in _TOP_LEVEL_KEYS}
    # Older lockfiles are upgraded in memory and written back at the current version.
    return Lockfile(version=LOCKFILE_VERSION, packages=packages, extra=extra)


def load(path: str | Path) -> Lockfile:
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise LockfileNotFoundError(
            "Lockfile does not exist.",
            hint="Run `gridlock init` first.",
            context={"path": str(lock_path)},
        ) from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise LocalIOError(
            "Unable to read lockfile.",
            hint=str(exc),
            context={"path": str(lock_path)},
        ) from exc
    try:
        return parse_lockfile(raw)
    except LockfileParseError as exc:
        raise LockfileParseError(
            exc.args[0],
            hint=exc.hint,
            context={**exc.context, "path": str(lock_path)},
        ) from exc


def save(lockfile: Lockfile, path: str | Path) -> Path:
    """Write ``lockfile`` so readers see either the old or the new file, never a mix."""
    lock_path = Path(path)
    encoded = serialize_lockfile(lockfile).encode("utf-8")
    temp_name: str | None = None
    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(
            prefix=f".{lock_path.name}.",
            suffix=".tmp",
            dir=lock_path.parent,
        )
        with os.fdopen(fd, "wb") as handle:
            handle.write(encoded)
            handle.flush()
            os.fsync(handle.fileno())
        os.replace(temp_name, lock_path)
        temp_name = None
    except OSError as exc:
        raise LocalIOError(
            "Unable to write lockfile.",
            hint=str(exc),
            context={"path": str(lock_path)},
        ) from exc
    finally:
        if temp_name is not None and os.path.exists(temp_name):
            os.unlink(temp_name)
    return lock_path


def init(path: str | Path) -> Lockfile:
    lock_path = Path(path)
    if lock_path.exists() or lock_path.is_symlink():
        raise LockfileExistsError(
            "Lockfile already exists.",
            hint="Use `gridlock add` to add packages to the existing lockfile.",
            context={"path": str(lock_path)},
        )
    lockfile = Lockfile()
    save(lockfile, lock_path)
    return lockfile


def format_timestamp(value: datetime) -> str:
    return value.astimezone(UTC).isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValueError("boolean is not a timestamp")
    if isinstance(value, int):
        return datetime.fromtimestamp(value, UTC)
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=UTC)
        return parsed.astimezone(UTC)
    raise ValueError(f"unsupported timestamp value: {value!r}")


def _entry_payload(entry: LockEntry) -> dict[str, Any]:
    remote = entry.revision.remote
    payload: dict[str, Any] = dict(entry.extra)
    payload.update(
        {
            "branch": entry.branch,
            "host": remote.host,
            "last_updated": (
                format_timestamp(entry.last_updated) if entry.last_updated is not None else None
            ),
            "owner": remote.owner,
            "repo": remote.repo,
            "rev": entry.rev,
            "sha256": entry.digest.text,
            "url": entry.url,
        }
    )
    return dict(sorted(payload.items()))


def _parse_entry(name: Any, item: Any) -> LockEntry:
    if not isinstance(item, dict):
        raise LockfileParseError("Invalid package entry in lockfile.", context={"package": str(name)})
    context = {"package": str(name)}
    remote = Remote(
        owner=_required_str(item, "owner", context),
        repo=_required_str(item, "repo", context),
        host=_optional_str(item, "host", context) or DEFAULT_HOST,
    )
    try:
        last_updated = parse_timestamp(item.get("last_updated"))
    except (ValueError, OverflowError, OSError) as exc:
        raise LockfileParseError(
            "Invalid lockfile `last_updated` value.", hint=str(exc), context=context
        ) from exc
    try:
        digest = ContentDigest.parse(_required_str(item, "sha256", context))
    except ValueError as exc:
        raise LockfileParseError(
            "Invalid lockfile `sha256` value.", hint=str(exc), context=context
        ) from exc
    revision = RevisionInfo(
        remote=remote,
        ref=_required_str(item, "branch", context),
        commit=_required_str(item, "rev", context),
        resolved_at=last_updated,
    )
    extra = {key: value for key, value in item.items() if key not in _ENTRY_KEYS}
    return LockEntry(revision=revision, digest=digest, last_updated=last_updated, extra=extra)


def _package_name(name: Any) -> str:
    if not isinstance(name, str) or not name:
        raise LockfileParseError("Invalid lockfile package name.")
    return name


def _required_str(payload: dict[str, Any], key: str, context: dict[str, str]) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise LockfileParseError(f"Invalid lockfile `{key}` value.", context=context)
    return value


def _optional_str(payload: dict[str, Any], key: str, context: dict[str, str]) -> str | None:
    value = payload.get(key)
    if value is not None and not isinstance(value, str):
        raise LockfileParseError(f"Invalid lockfile `{key}` value.", context=context)
    return value


def _required_int(payload: dict[str, Any], key: str) -> int:
    value = payload.get(key)
    if not isinstance(value, int) or isinstance(value, bool):
        raise LockfileParseError(f"Invalid lockfile `{key}` value.")
    return value
