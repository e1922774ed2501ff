"""High-level lockfile operations behind the CLI verbs."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import TypeVar

from gridlock import lockfile as store
from gridlock.config import Context
from gridlock.errors import UsageError
from gridlock.hashing import ContentDigest, hash_tree
from gridlock.lockfile import LockEntry, Lockfile
from gridlock.resolve import Remote, RevisionInfo, export_tree, resolve, resolve_revision

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True, slots=True)
class PackageView:
    name: str
    branch: str
    rev: str
    last_updated: datetime | None
    web_link: str


@dataclass(frozen=True, slots=True)
class UpdateRev:
    name: str
    rev: str


def parse_repository(value: str, *, host: str) -> tuple[Remote, str | None]:
    """Split ``owner/repo[@ref]`` into a remote and an optional ref."""
    repository, sep, ref = value.partition("@")
    if sep and not ref:
        raise UsageError("Empty ref after '@'.", context={"repository": value})
    return Remote.parse(repository, host=host), ref or None


def init_lockfile(ctx: Context) -> Path:
    path = ctx.settings.lockfile
    store.init(path)
    ctx.logger.log(operation="init", package=None, phase=None, message=f"created {path}")
    return path


def add(
    ctx: Context,
    repository: str,
    *,
    name: str | None = None,
    ref: str | None = None,
) -> tuple[str, LockEntry]:
    """Resolve, hash and record ``repository``; the lockfile only changes on success."""
    remote, inline_ref = parse_repository(repository, host=ctx.settings.host)
    if inline_ref is not None and ref is not None and inline_ref != ref:
        raise UsageError(
            "Conflicting refs given.",
            context={"repository": repository, "ref": ref},
        )
    item_name = name or remote.repo
    lockfile = store.load(ctx.settings.lockfile)

    resolved = resolve(ctx, remote, inline_ref or ref)
    ctx.logger.log(
        operation="add",
        package=item_name,
        phase="resolve",
        message=f"{remote.slug} at {resolved.info.ref}: {resolved.info.commit}",
    )
    entry = _lock_entry(ctx, resolved.info, hash_tree(resolved.tree))
    previous = lockfile.packages.get(item_name)
    if previous is not None:
        entry = replace(entry, extra=dict(previous.extra))
    store.save(store.upsert(lockfile, item_name, entry), ctx.settings.lockfile)
    ctx.logger.log(
        operation="add",
        package=item_name,
        phase="save",
        message=f"locked {entry.digest.text}",
    )
    return item_name, entry


def show(ctx: Context) -> list[PackageView]:
    lockfile = store.load(ctx.settings.lockfile)
    return [
        PackageView(
            name=name,
            branch=entry.branch,
            rev=entry.rev,
            last_updated=entry.last_updated,
            web_link=entry.web_link,
        )
        for name, entry in lockfile.packages.items()
    ]


def plan_update(ctx: Context, lockfile: Lockfile, name: str | None = None) -> list[UpdateRev]:
    """List packages whose locked revision differs from the remote branch head."""
    selected = _select_packages(lockfile, name)
    heads = _run_parallel(
        ctx,
        selected,
        lambda entry: resolve_revision(ctx, entry.revision.remote, entry.branch),
    )
    return [
        UpdateRev(name=item_name, rev=heads[item_name].commit)
        for item_name, entry in selected
        if heads[item_name].commit != entry.rev
    ]


def update(ctx: Context, name: str | None = None) -> list[UpdateRev]:
    """Re-lock outdated packages and save the lockfile once, after all succeed."""
    lockfile = store.load(ctx.settings.lockfile)
    plan = plan_update(ctx, lockfile, name)
    ctx.logger.log(
        operation="update",
        package=name,
        phase="plan",
        message=f"{len(plan)} package(s) to update",
    )
    if not plan:
        return plan

    targets = [(change.name, change) for change in plan]

    def relock(change: UpdateRev) -> LockEntry:
        current = lockfile.packages[change.name]
        info = RevisionInfo(
            remote=current.revision.remote,
            ref=current.branch,
            commit=change.rev,
            resolved_at=_now(ctx),
        )
        entry = _lock_entry(ctx, info, hash_tree(export_tree(ctx, info)))
        return replace(entry, extra=dict(current.extra))

    entries = _run_parallel(ctx, targets, relock)
    for change in plan:
        lockfile = store.upsert(lockfile, change.name, entries[change.name])
    store.save(lockfile, ctx.settings.lockfile)
    for change in plan:
        ctx.logger.log(
            operation="update",
            package=change.name,
            phase="save",
            message=f"updated to {change.rev}",
        )
    return plan


def _lock_entry(ctx: Context, info: RevisionInfo, digest: ContentDigest) -> LockEntry:
    resolved_at = info.resolved_at or _now(ctx)
    info = replace(info, resolved_at=resolved_at.replace(microsecond=0))
    return LockEntry(revision=info, digest=digest, last_updated=info.resolved_at)


def _now(ctx: Context) -> datetime:
    return ctx.clock().replace(microsecond=0)


def _select_packages(lockfile: Lockfile, name: str | None) -> list[tuple[str, LockEntry]]:
    if name is None:
        return list(lockfile.packages.items())
    if name not in lockfile.packages:
        raise UsageError("Unknown package.", context={"package": name})
    return [(name, lockfile.packages[name])]


def _run_parallel(
    ctx: Context,
    items: Iterable[tuple[str, T]],
    func: Callable[[T], R],
) -> dict[str, R]:
    """Run ``func`` over items on a bounded pool; the first failure cancels the rest."""
    pending = list(items)
    if not pending:
        return {}
    results: dict[str, R] = {}
    workers = min(ctx.settings.jobs, len(pending))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="gridlock") as executor:
        futures: dict[Future[R], str] = {
            executor.submit(func, item): key for key, item in pending
        }
        try:
            for future in as_completed(futures):
                results[futures[future]] = future.result()
        except BaseException:
            executor.shutdown(wait=True, cancel_futures=True)
            raise
    return results


__all__ = [
    "PackageView",
    "UpdateRev",
    "add",
    "init_lockfile",
    "parse_repository",
    "plan_update",
    "show",
    "update",
]
