"""Version-control collaborator: list remote refs and export commit trees."""

from __future__ import annotations

import os
import re
import subprocess
import tempfile
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from gridlock.errors import GridlockError, IncompleteExportError, RemoteUnavailableError
from gridlock.nar.tree import Directory, Node, Regular, Symlink

COMMIT_PATTERN = re.compile(r"^[0-9a-f]{40}$")

_SYMREF_LINE = re.compile(r"^ref: (\S+)\s+(\S+)$")
_TIP_LINE = re.compile(r"^([0-9a-f]{40,64})\s+(\S+)$")

MODE_REGULAR = b"100644"
MODE_EXECUTABLE = b"100755"
MODE_SYMLINK = b"120000"
MODE_GITLINK = b"160000"


@dataclass(frozen=True, slots=True)
class RefListing:
    """Refs advertised by a remote: full ref name to commit id."""

    refs: dict[str, str] = field(default_factory=dict)
    head_symref: str | None = None


class VcsClient(Protocol):
    def list_refs(self, url: str, patterns: Sequence[str] = ()) -> RefListing: ...

    def fetch_tree(self, url: str, commit: str) -> Directory: ...


@dataclass(frozen=True, slots=True)
class SymrefLine:
    target: str
    name: str


@dataclass(frozen=True, slots=True)
class TipLine:
    rev: str
    name: str


def parse_ls_remote_line(line: str) -> SymrefLine | TipLine:
    """Parse one line of ``git ls-remote --symref`` output.

    ::

        ref: refs/heads/main	HEAD
        59f5c322b48409c4d6d08cecae50b663151b22ed	HEAD
    """
    symref = _SYMREF_LINE.match(line)
    if symref is not None:
        return SymrefLine(target=symref.group(1), name=symref.group(2))
    tip = _TIP_LINE.match(line)
    if tip is not None:
        return TipLine(rev=tip.group(1), name=tip.group(2))
    raise RemoteUnavailableError(
        "Could not parse git ls-remote output.",
        context={"operation": "list_refs", "line": line},
    )


def parse_ls_remote(output: str) -> RefListing:
    refs: dict[str, str] = {}
    head_symref: str | None = None
    for line in output.splitlines():
        if not line.strip():
            continue
        parsed = parse_ls_remote_line(line)
        if isinstance(parsed, SymrefLine):
            if parsed.name == "HEAD":
                head_symref = parsed.target
        else:
            refs[parsed.name] = parsed.rev
    return RefListing(refs=refs, head_symref=head_symref)


@dataclass(slots=True)
class InMemoryVcs:
    """``VcsClient`` serving registered listings and trees without git or network.

    Ref patterns are tail-matched the way ``git ls-remote`` matches them, and
    the default-branch symref is only reported when ``HEAD`` is selected.
    Every call is recorded in ``calls``.
    """

    listings: dict[str, RefListing] = field(default_factory=dict)
    trees: dict[tuple[str, str], Directory] = field(default_factory=dict)
    calls: list[tuple[str, str]] = field(default_factory=list)

    def list_refs(self, url: str, patterns: Sequence[str] = ()) -> RefListing:
        self.calls.append(("list_refs", url))
        listing = self.listings.get(url)
        if listing is None:
            raise RemoteUnavailableError(
                "Remote is not registered.",
                context={"operation": "list_refs", "url": url},
            )
        if not patterns:
            return listing
        refs = {
            name: rev
            for name, rev in listing.refs.items()
            if any(name == pattern or name.endswith("/" + pattern) for pattern in patterns)
        }
        return RefListing(refs=refs, head_symref=listing.head_symref if "HEAD" in refs else None)

    def fetch_tree(self, url: str, commit: str) -> Directory:
        self.calls.append(("fetch_tree", f"{url}@{commit}"))
        tree = self.trees.get((url, commit))
        if tree is None:
            raise RemoteUnavailableError(
                "Commit is not registered.",
                context={"operation": "fetch_tree", "url": url, "commit": commit},
            )
        return tree


class GitCli:
    """``VcsClient`` backed by the ``git`` executable."""

    def __init__(self, git: str = "git", *, timeout: float | None = None) -> None:
        self.git = git
        self.timeout = timeout

    def list_refs(self, url: str, patterns: Sequence[str] = ()) -> RefListing:
        """List refs of ``url``, limited to refs whose name ends with one of ``patterns``."""
        output = self._run(["ls-remote", "--symref", url, *patterns], operation="list_refs")
        return parse_ls_remote(output.decode("utf-8", "replace"))

    def fetch_tree(self, url: str, commit: str) -> Directory:
        """Shallow-fetch ``commit`` into a scratch repository and export its tree."""
        with tempfile.TemporaryDirectory(prefix="gridlock-git-") as scratch:
            repo = Path(scratch)
            self._run(["init", "--bare", "--quiet", str(repo)], operation="fetch_tree")
            self._run(
                ["fetch", "--quiet", "--no-tags", "--depth", "1", url, commit],
                cwd=repo,
                operation="fetch_tree",
            )
            listing = self._run(
                ["ls-tree", "-r", "-z", "--full-tree", commit],
                cwd=repo,
                operation="fetch_tree",
                error=IncompleteExportError,
            )
            entries = _parse_ls_tree(listing, commit=commit)
            blobs = self._read_blobs(
                repo,
                sorted({sha for mode, sha, _ in entries if mode != MODE_GITLINK}),
                commit=commit,
            )
        return _build_tree(entries, blobs, commit=commit)

    def _read_blobs(self, repo: Path, shas: list[str], *, commit: str) -> dict[str, bytes]:
        if not shas:
            return {}
        stdin = "".join(f"{sha}\n" for sha in shas).encode("ascii")
        output = self._run(
            ["cat-file", "--batch"],
            cwd=repo,
            operation="fetch_tree",
            stdin=stdin,
            error=IncompleteExportError,
        )
        return _parse_cat_file_batch(output, expected=shas, commit=commit)

    def _run(
        self,
        argv: list[str],
        *,
        operation: str,
        cwd: Path | None = None,
        stdin: bytes | None = None,
        error: type[GridlockError] = RemoteUnavailableError,
    ) -> bytes:
        command = [self.git, *argv]
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            completed = subprocess.run(
                command,
                cwd=cwd,
                input=stdin,
                check=False,
                capture_output=True,
                env=env,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise RemoteUnavailableError(
                "Git command timed out.",
                hint="Check network connectivity or raise the git timeout.",
                context={"operation": operation, "argv": " ".join(command)},
            ) from exc
        except OSError as exc:
            raise RemoteUnavailableError(
                "Unable to run git.",
                hint="Ensure git is installed and on PATH.",
                context={"operation": operation, "argv": " ".join(command)},
            ) from exc
        if completed.returncode != 0:
            raise error(
                "Git command failed.",
                hint="Inspect repository/ref inputs and network access.",
                context={
                    "operation": operation,
                    "argv": " ".join(command),
                    "stderr": completed.stderr.decode("utf-8", "replace").strip(),
                },
            )
        return completed.stdout


def _parse_ls_tree(output: bytes, *, commit: str) -> list[tuple[bytes, str, bytes]]:
    entries: list[tuple[bytes, str, bytes]] = []
    for record in output.split(b"\x00"):
        if not record:
            continue
        meta, sep, path = record.partition(b"\t")
        fields = meta.split()
        if not sep or len(fields) != 3 or not path:
            raise IncompleteExportError(
                "Malformed git ls-tree record.",
                context={"operation": "fetch_tree", "commit": commit},
            )
        mode, _kind, sha = fields
        entries.append((mode, sha.decode("ascii"), path))
    return entries


def _parse_cat_file_batch(output: bytes, *, expected: list[str], commit: str) -> dict[str, bytes]:
    blobs: dict[str, bytes] = {}
    offset = 0
    for sha in expected:
        header_end = output.find(b"\n", offset)
        if header_end < 0:
            raise IncompleteExportError(
                "Truncated object data from git.",
                context={"operation": "fetch_tree", "commit": commit, "object": sha},
            )
        header = output[offset:header_end].split()
        if len(header) != 3 or header[0].decode("ascii") != sha:
            raise IncompleteExportError(
                "Object missing from fetched commit.",
                hint="The fetch may have been truncated; retry the operation.",
                context={"operation": "fetch_tree", "commit": commit, "object": sha},
            )
        size = int(header[2])
        start = header_end + 1
        end = start + size
        if end + 1 > len(output) or output[end : end + 1] != b"\n":
            raise IncompleteExportError(
                "Truncated object data from git.",
                context={"operation": "fetch_tree", "commit": commit, "object": sha},
            )
        blobs[sha] = output[start:end]
        offset = end + 1
    return blobs


def _build_tree(
    entries: list[tuple[bytes, str, bytes]],
    blobs: dict[str, bytes],
    *,
    commit: str,
) -> Directory:
    root = Directory()
    for mode, sha, path in entries:
        node: Node
        if mode == MODE_GITLINK:
            node = Directory()
        elif mode == MODE_SYMLINK:
            node = Symlink(blobs[sha])
        elif mode in (MODE_REGULAR, MODE_EXECUTABLE):
            node = Regular(blobs[sha], executable=mode == MODE_EXECUTABLE)
        else:
            raise IncompleteExportError(
                "Unsupported git object mode.",
                context={
                    "operation": "fetch_tree",
                    "commit": commit,
                    "mode": mode.decode("ascii", "replace"),
                    "path": path.decode("utf-8", "replace"),
                },
            )
        root.insert(path, node)
    return root


__all__ = [
    "COMMIT_PATTERN",
    "GitCli",
    "InMemoryVcs",
    "RefListing",
    "SymrefLine",
    "TipLine",
    "VcsClient",
    "parse_ls_remote",
    "parse_ls_remote_line",
]
