"""Command line interface.

Usage:
    gridlock [--lockfile PATH] init
    gridlock add owner/repo[@ref] [--branch REF] [--name NAME]
    gridlock show
    gridlock update [NAME]
    gridlock tar2nar TARFILE NARFILE
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from pathlib import Path

from rich.console import Console
from rich.markup import escape

from gridlock import ops
from gridlock.config import Context, Settings
from gridlock.errors import EXIT_OK, GridlockError, LocalIOError
from gridlock.hashing import NarHasher
from gridlock.nar import tree_from_tar, write_nar
from gridlock.nar.encode import Sink
from gridlock.observability import setup_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gridlock", description="Pin GitHub sources with Nix hashes"
    )
    parser.add_argument("--lockfile", help="Lockfile path (default: gridlock.json)")
    parser.add_argument("--log-level", help="Console log level (default: WARNING)")
    parser.add_argument("--jobs", type=int, help="Parallel resolutions for update")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="Create an empty lockfile")

    add_p = sub.add_parser("add", help="Lock a repository at a branch or tag")
    add_p.add_argument("repository", help="owner/repo, optionally suffixed with @ref")
    add_p.add_argument("--branch", help="Branch or tag (default: the remote default branch)")
    add_p.add_argument("--name", help="Package name (default: the repository name)")

    sub.add_parser("show", help="Show locked packages")

    update_p = sub.add_parser("update", help="Re-lock packages whose branch moved")
    update_p.add_argument("package", nargs="?", help="Package to update (default: all)")

    tar_p = sub.add_parser("tar2nar", help="Convert a tar archive to a NAR file")
    tar_p.add_argument("tarfile", type=Path)
    tar_p.add_argument("narfile", type=Path)
    tar_p.add_argument(
        "--strip-components",
        type=int,
        default=0,
        help="Leading path components to drop, as in tar(1)",
    )
    return parser


def cmd_init(ctx: Context, args: argparse.Namespace, console: Console) -> None:
    path = ops.init_lockfile(ctx)
    console.print(f"Created {escape(str(path))}")


def cmd_add(ctx: Context, args: argparse.Namespace, console: Console) -> None:
    name, entry = ops.add(ctx, args.repository, name=args.name, ref=args.branch)
    remote = entry.revision.remote
    console.print(f"Adding {escape(remote.slug)} at {escape(entry.branch)}: {entry.rev}")
    console.print(f"Locked {escape(name)} {entry.digest.text}")


def cmd_show(ctx: Context, args: argparse.Namespace, console: Console) -> None:
    for package in ops.show(ctx):
        console.print(escape(package.name), highlight=False)
        _field(console, "Branch", package.branch)
        _field(console, "Rev", package.rev)
        last_updated = (
            package.last_updated.astimezone().strftime("%Y-%m-%d %H:%M:%S")
            if package.last_updated is not None
            else "Unknown"
        )
        _field(console, "Last updated", last_updated)
        _field(console, "Web link", package.web_link)


def cmd_update(ctx: Context, args: argparse.Namespace, console: Console) -> None:
    plan = ops.update(ctx, args.package)
    if not plan:
        console.print("Everything is up to date.")
    for change in plan:
        console.print(f"Updated {escape(change.name)} to {change.rev}")


def cmd_tar2nar(ctx: Context, args: argparse.Namespace, console: Console) -> None:
    try:
        with args.tarfile.open("rb") as handle:
            tree = tree_from_tar(handle, strip_components=args.strip_components)
        hasher = NarHasher()
        with args.narfile.open("wb") as out:
            write_nar(tree, _Tee(out, hasher))
    except OSError as exc:
        raise LocalIOError(
            "Unable to convert tar archive.",
            hint=str(exc),
            context={"tarfile": str(args.tarfile), "narfile": str(args.narfile)},
        ) from exc
    console.print(hasher.digest().text)


class _Tee:
    def __init__(self, *sinks: Sink) -> None:
        self._sinks = sinks

    def write(self, data: bytes) -> None:
        for sink in self._sinks:
            sink.write(data)


_COMMANDS = {
    "init": cmd_init,
    "add": cmd_add,
    "show": cmd_show,
    "update": cmd_update,
    "tar2nar": cmd_tar2nar,
}


def _field(console: Console, head: str, value: str) -> None:
    console.print(f"  [bold]{head}[/bold]: {escape(value)}", highlight=False)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.log_level)
    console = Console(soft_wrap=True)
    err_console = Console(stderr=True, soft_wrap=True)
    try:
        settings = Settings.from_env().with_overrides(lockfile=args.lockfile, jobs=args.jobs)
        ctx = Context.from_settings(settings)
        _COMMANDS[args.command](ctx, args, console)
    except GridlockError as exc:
        err_console.print(f"[bold red]error[/bold red] ({exc.code}): {escape(str(exc))}")
        return exc.exit_status
    return EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
