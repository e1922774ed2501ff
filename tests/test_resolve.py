from datetime import datetime

import pytest

from gridlock.config import Context
from gridlock.errors import RemoteUnavailableError, UnknownRefError, UsageError
from gridlock.nar import Directory, Regular
from gridlock.resolve import Remote, ref_patterns, resolve, resolve_revision, select_ref
from gridlock.vcs import InMemoryVcs, RefListing

BRANCH_SHA = "a" * 40
TAG_SHA = "b" * 40
TAG_OBJECT_SHA = "c" * 40

LISTING = RefListing(
    refs={
        "HEAD": BRANCH_SHA,
        "refs/heads/master": BRANCH_SHA,
        "refs/tags/master": TAG_SHA,
        "refs/tags/v1.0": TAG_OBJECT_SHA,
        "refs/tags/v1.0^{}": TAG_SHA,
        "refs/tags/light": TAG_SHA,
    },
    head_symref="refs/heads/master",
)


def test_branch_wins_over_tag_with_same_name() -> None:
    assert select_ref(LISTING, "master") == ("master", BRANCH_SHA)


def test_annotated_tag_is_peeled_to_commit() -> None:
    assert select_ref(LISTING, "v1.0") == ("v1.0", TAG_SHA)


def test_lightweight_tag_resolves() -> None:
    assert select_ref(LISTING, "light") == ("light", TAG_SHA)


def test_full_ref_name_selects_exactly() -> None:
    assert select_ref(LISTING, "refs/tags/master") == ("refs/tags/master", TAG_SHA)


def test_default_branch_is_used_without_ref() -> None:
    assert select_ref(LISTING, None) == ("master", BRANCH_SHA)


def test_default_falls_back_to_head_without_symref() -> None:
    listing = RefListing(refs={"HEAD": BRANCH_SHA})

    assert select_ref(listing, None) == ("HEAD", BRANCH_SHA)


def test_commit_id_is_accepted_as_pinned_revision() -> None:
    commit = "d" * 40

    assert select_ref(LISTING, commit) == (commit, commit)


def test_unknown_ref_names_remote_and_ref() -> None:
    with pytest.raises(UnknownRefError) as excinfo:
        select_ref(LISTING, "nope", remote="https://github.com/o/r")

    assert excinfo.value.context["remote"] == "https://github.com/o/r"
    assert excinfo.value.context["ref"] == "nope"


def test_remote_parse_and_links() -> None:
    remote = Remote.parse("lf-/gridlock.git")

    assert remote == Remote(owner="lf-", repo="gridlock")
    assert remote.url == "https://github.com/lf-/gridlock"
    assert remote.web_link("abc") == "https://github.com/lf-/gridlock/tree/abc"
    assert remote.archive_url("abc") == "https://github.com/lf-/gridlock/archive/abc.tar.gz"


@pytest.mark.parametrize("value", ["gridlock", "/repo", "owner/", "a/b/c"])
def test_remote_parse_rejects_malformed_values(value: str) -> None:
    with pytest.raises(UsageError):
        Remote.parse(value)


def test_resolve_returns_commit_and_tree(
    ctx: Context, fake_vcs: InMemoryVcs, fixed_now: datetime
) -> None:
    remote = Remote(owner="o", repo="r")
    tree = Directory({"hello.txt": Regular(b"hi\n")})
    fake_vcs.listings[remote.url] = LISTING
    fake_vcs.trees[(remote.url, BRANCH_SHA)] = tree

    resolved = resolve(ctx, remote, "master")

    assert resolved.info.commit == BRANCH_SHA
    assert resolved.info.ref == "master"
    assert resolved.info.resolved_at == fixed_now
    assert resolved.tree == tree


def test_resolve_revision_does_not_fetch(ctx: Context, fake_vcs: InMemoryVcs) -> None:
    remote = Remote(owner="o", repo="r")
    fake_vcs.listings[remote.url] = LISTING

    resolve_revision(ctx, remote, "v1.0")

    assert [call for call, _ in fake_vcs.calls] == ["list_refs"]


def test_resolve_surfaces_remote_failures(ctx: Context) -> None:
    with pytest.raises(RemoteUnavailableError):
        resolve(ctx, Remote(owner="o", repo="missing"), None)


def test_default_branch_from_head_only_listing() -> None:
    listing = RefListing(refs={"HEAD": BRANCH_SHA}, head_symref="refs/heads/master")

    assert select_ref(listing, None) == ("master", BRANCH_SHA)


@pytest.mark.parametrize(
    ("ref", "patterns"),
    [
        (None, ["HEAD"]),
        ("main", ["main", "main^{}"]),
        ("refs/tags/v1.0", ["refs/tags/v1.0", "refs/tags/v1.0^{}"]),
        ("d" * 40, ["d" * 40]),
    ],
)
def test_ref_patterns_limit_listing(ref: str | None, patterns: list[str]) -> None:
    assert ref_patterns(ref) == patterns


def test_resolve_lists_only_matching_refs(ctx: Context, fake_vcs: InMemoryVcs) -> None:
    remote = Remote(owner="o", repo="r")
    fake_vcs.listings[remote.url] = RefListing(
        refs={
            **LISTING.refs,
            "refs/pull/1/head": "e" * 40,
            "refs/heads/feature/v1.0": "f" * 40,
        },
        head_symref=LISTING.head_symref,
    )

    assert resolve_revision(ctx, remote, None).ref == "master"
    assert resolve_revision(ctx, remote, "v1.0").commit == TAG_SHA
    assert resolve_revision(ctx, remote, "master").commit == BRANCH_SHA


def test_in_memory_listing_filters_by_ref_name_tail(fake_vcs: InMemoryVcs) -> None:
    fake_vcs.listings["u"] = LISTING

    listing = fake_vcs.list_refs("u", ref_patterns("v1.0"))

    assert listing.refs == {"refs/tags/v1.0": TAG_OBJECT_SHA, "refs/tags/v1.0^{}": TAG_SHA}
    assert listing.head_symref is None
