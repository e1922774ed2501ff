"""Resolve a remote ref to an immutable commit and its exported tree."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from gridlock.errors import UnknownRefError, UsageError
from gridlock.nar.tree import Directory
from gridlock.vcs import COMMIT_PATTERN, RefListing

if TYPE_CHECKING:
    from gridlock.config import Context

HEADS_PREFIX = "refs/heads/"
TAGS_PREFIX = "refs/tags/"
PEELED_SUFFIX = "^{}"


@dataclass(frozen=True, slots=True)
class Remote:
    owner: str
    repo: str
    host: str = "github.com"

    @classmethod
    def parse(cls, value: str, *, host: str = "github.com") -> Remote:
        """Parse ``owner/repo``."""
        owner, sep, repo = value.strip().partition("/")
        if not sep or not owner or not repo or "/" in repo:
            raise UsageError(
                "Repository should be formatted like 'owner/repo'.",
                context={"repository": value},
            )
        return cls(owner=owner, repo=repo.removesuffix(".git"), host=host)

    @property
    def slug(self) -> str:
        return f"{self.owner}/{self.repo}"

    @property
    def url(self) -> str:
        return f"https://{self.host}/{self.owner}/{self.repo}"

    def web_link(self, rev: str) -> str:
        return f"{self.url}/tree/{rev}"

    def archive_url(self, rev: str) -> str:
        return f"{self.url}/archive/{rev}.tar.gz"

    def __str__(self) -> str:
        return self.slug


@dataclass(frozen=True, slots=True)
class RevisionInfo:
    remote: Remote
    ref: str
    commit: str
    resolved_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class ResolvedRevision:
    info: RevisionInfo
    tree: Directory


def select_ref(listing: RefListing, ref: str | None, *, remote: str = "") -> tuple[str, str]:
    """Pick ``(ref_name, commit)`` for ``ref`` out of an ls-remote listing.

    ``None`` selects the remote's default branch. A short name matching both
    a branch and a tag resolves to the branch. Tags are peeled to the commit
    they point at. A full commit id that is not a ref name is taken as-is.
    """
    if ref is None:
        head = listing.refs.get("HEAD")
        if listing.head_symref is not None:
            commit = listing.refs.get(listing.head_symref, head)
            if commit is not None:
                return _short_name(listing.head_symref), commit
        if head is None:
            raise UnknownRefError(
                "Remote does not advertise a default branch.",
                hint="Pass an explicit branch or tag.",
                context={"operation": "resolve", "remote": remote, "ref": "HEAD"},
            )
        return "HEAD", head

    if ref.startswith("refs/") or ref == "HEAD":
        candidates = [ref + PEELED_SUFFIX, ref]
    else:
        candidates = [
            HEADS_PREFIX + ref,
            TAGS_PREFIX + ref + PEELED_SUFFIX,
            TAGS_PREFIX + ref,
        ]
    for candidate in candidates:
        commit = listing.refs.get(candidate)
        if commit is not None:
            return ref, commit

    if COMMIT_PATTERN.fullmatch(ref):
        return ref, ref
    raise UnknownRefError(
        "Unknown ref on remote.",
        hint="Check the branch or tag name with `git ls-remote`.",
        context={"operation": "resolve", "remote": remote, "ref": ref},
    )


def ref_patterns(ref: str | None) -> list[str]:
    """ls-remote patterns covering every candidate ``select_ref`` looks at.

    git matches a pattern against the tail of each ref name, so a short name
    selects both the branch and the tag. Peeled tag entries carry the
    ``^{}`` suffix and need their own pattern.
    """
    if ref is None:
        return ["HEAD"]
    if COMMIT_PATTERN.fullmatch(ref):
        return [ref]
    return [ref, ref + PEELED_SUFFIX]


def resolve_revision(ctx: Context, remote: Remote, ref: str | None) -> RevisionInfo:
    """Map ``ref`` to a commit using only the remote's ref advertisement."""
    ctx.logger.log(
        operation="resolve",
        package=remote.slug,
        phase="list_refs",
        message=f"listing refs of {remote.url}",
        level="debug",
    )
    listing = ctx.vcs.list_refs(remote.url, ref_patterns(ref))
    ref_name, commit = select_ref(listing, ref, remote=remote.url)
    return RevisionInfo(remote=remote, ref=ref_name, commit=commit, resolved_at=ctx.clock())


def resolve(ctx: Context, remote: Remote, ref: str | None) -> ResolvedRevision:
    info = resolve_revision(ctx, remote, ref)
    return ResolvedRevision(info=info, tree=export_tree(ctx, info))


def export_tree(ctx: Context, info: RevisionInfo) -> Directory:
    ctx.logger.log(
        operation="resolve",
        package=info.remote.slug,
        phase="fetch_tree",
        message=f"fetching {info.commit}",
        level="debug",
    )
    return ctx.vcs.fetch_tree(info.remote.url, info.commit)


def _short_name(ref: str) -> str:
    for prefix in (HEADS_PREFIX, TAGS_PREFIX):
        if ref.startswith(prefix):
            return ref[len(prefix) :]
    return ref


__all__ = [
    "Remote",
    "ResolvedRevision",
    "RevisionInfo",
    "export_tree",
    "ref_patterns",
    "resolve",
    "resolve_revision",
    "select_ref",
]
