import io
import os
import tarfile
from pathlib import Path

import pytest

from gridlock.errors import LocalIOError
from gridlock.nar import Directory, Regular, Symlink, encode, tree_from_path, tree_from_tar
from gridlock.nar.encode import frame
from gridlock.nar.tree import walk

HELLO_NAR = bytes.fromhex(
    "0d000000000000006e69782d617263686976652d310000000100000000000000"
    "2800000000000000040000000000000074797065000000000900000000000000"
    "6469726563746f7279000000000000000500000000000000656e747279000000"
    "0100000000000000280000000000000004000000000000006e616d6500000000"
    "090000000000000068656c6c6f2e747874000000000000000400000000000000"
    "6e6f646500000000010000000000000028000000000000000400000000000000"
    "74797065000000000700000000000000726567756c6172000800000000000000"
    "636f6e74656e7473030000000000000068690a00000000000100000000000000"
    "2900000000000000010000000000000029000000000000000100000000000000"
    "2900000000000000"
)


def test_single_file_tree_matches_golden_archive() -> None:
    tree = Directory({"hello.txt": Regular(b"hi\n")})

    assert encode(tree) == HELLO_NAR


def test_string_framing_pads_to_eight_bytes() -> None:
    assert frame(b"") == b"\x00" * 8
    assert frame(b"\x10\x12") == b"\x02" + b"\x00" * 7 + b"\x10\x12" + b"\x00" * 6
    assert frame(b"\x10\x11\x12\x13\x14\x15\x16\x17") == (
        b"\x08" + b"\x00" * 7 + b"\x10\x11\x12\x13\x14\x15\x16\x17"
    )


def test_entries_are_emitted_in_byte_order_regardless_of_insertion() -> None:
    unordered = Directory(
        {"b": Regular(b"2"), "a": Regular(b"1"), "c": Regular(b"3")},
    )
    ordered = Directory(
        {"a": Regular(b"1"), "b": Regular(b"2"), "c": Regular(b"3")},
    )

    archive = encode(unordered)

    assert archive == encode(ordered)
    positions = [archive.index(frame(name)) for name in (b"a", b"b", b"c")]
    assert positions == sorted(positions)


def test_uppercase_sorts_before_lowercase() -> None:
    tree = Directory({"b": Regular(b""), "B": Regular(b""), "a": Regular(b"")})

    assert [name for name, _ in tree] == [b"B", b"a", b"b"]


def test_encode_is_deterministic() -> None:
    tree = _basic_tree()

    assert encode(tree) == encode(tree)


def test_executable_flag_changes_archive() -> None:
    plain = Directory({"run.sh": Regular(b"#!/bin/sh\n")})
    executable = Directory({"run.sh": Regular(b"#!/bin/sh\n", executable=True)})

    archive = encode(executable)

    assert archive != encode(plain)
    assert frame(b"executable") + frame(b"") + frame(b"contents") in archive


def test_symlink_target_is_kept_verbatim() -> None:
    archive = encode(Symlink("../lib/"))

    assert frame(b"symlink") + frame(b"target") + frame(b"../lib/") in archive


def test_insert_creates_intermediate_directories() -> None:
    tree = Directory()
    tree.insert("src/pkg/mod.py", Regular(b"x = 1\n"))
    tree.insert("README", Regular(b"readme\n"))

    paths = [path for path, _ in walk(tree)]

    assert paths == [b"", b"README", b"src", b"src/pkg", b"src/pkg/mod.py"]


def test_insert_through_file_is_rejected() -> None:
    tree = Directory({"file": Regular(b"")})

    with pytest.raises(ValueError):
        tree.insert("file/child", Regular(b""))


@pytest.mark.parametrize("name", ["", ".", "..", "a/b", "nul\x00"])
def test_invalid_entry_names_are_rejected(name: str) -> None:
    with pytest.raises(ValueError):
        Directory({name: Regular(b"")})


def test_tree_from_path_ignores_modification_time(tmp_path: Path) -> None:
    root = _write_basic_tree(tmp_path / "src")
    before = encode(tree_from_path(root))

    os.utime(root / "f", (0, 0))
    os.utime(root / "dire", (12345, 12345))

    assert encode(tree_from_path(root)) == before


def test_tree_from_path_matches_in_memory_tree(tmp_path: Path) -> None:
    root = _write_basic_tree(tmp_path / "src")

    assert tree_from_path(root) == _basic_tree()


def test_tree_from_path_reads_only_executable_bit(tmp_path: Path) -> None:
    root = tmp_path / "src"
    root.mkdir()
    script = root / "script"
    script.write_bytes(b"echo\n")
    script.chmod(0o744)
    first = tree_from_path(root)
    script.chmod(0o755)

    assert first == Directory({"script": Regular(b"echo\n", executable=True)})
    assert encode(tree_from_path(root)) == encode(first)


def test_tree_from_path_reports_missing_path(tmp_path: Path) -> None:
    missing = tmp_path / "missing"

    with pytest.raises(LocalIOError) as excinfo:
        tree_from_path(missing)

    assert excinfo.value.context["path"] == str(missing)


def test_tree_from_tar_strips_top_level_directory() -> None:
    payload = _tar_bytes(
        [
            ("repo-abc/", None, 0o755, None),
            ("repo-abc/dire/", None, 0o755, None),
            ("repo-abc/f", b"aaa\n", 0o644, None),
            ("repo-abc/f2", None, 0o777, "f"),
        ]
    )

    tree = tree_from_tar(io.BytesIO(payload), strip_components=1)

    assert tree == _basic_tree()


def test_tree_from_tar_reads_gzip_and_executable_bit() -> None:
    payload = _tar_bytes([("./bin/tool", b"\x7fELF", 0o755, None)], compression="gz")

    tree = tree_from_tar(io.BytesIO(payload))

    assert tree == Directory({"bin": Directory({"tool": Regular(b"\x7fELF", executable=True)})})


def test_tree_from_tar_rejects_garbage() -> None:
    with pytest.raises(LocalIOError):
        tree_from_tar(io.BytesIO(b"not a tar archive"))


@pytest.mark.parametrize(
    ("members", "bad_member"),
    [
        ([("repo/../evil", b"x", 0o644, None)], "repo/../evil"),
        ([("a", b"x", 0o644, None), ("a/b", b"y", 0o644, None)], "a/b"),
    ],
)
def test_tree_from_tar_rejects_invalid_member_paths(
    members: list[tuple[str, bytes | None, int, str | None]], bad_member: str
) -> None:
    with pytest.raises(LocalIOError) as excinfo:
        tree_from_tar(io.BytesIO(_tar_bytes(members)))

    assert excinfo.value.context["member"] == bad_member


def _basic_tree() -> Directory:
    return Directory(
        {
            "dire": Directory(),
            "f": Regular(b"aaa\n"),
            "f2": Symlink("f"),
        }
    )


def _write_basic_tree(root: Path) -> Path:
    root.mkdir()
    (root / "dire").mkdir()
    (root / "f").write_bytes(b"aaa\n")
    (root / "f").chmod(0o644)
    (root / "f2").symlink_to("f")
    return root


def _tar_bytes(
    members: list[tuple[str, bytes | None, int, str | None]],
    *,
    compression: str = "",
) -> bytes:
    buffer = io.BytesIO()
    mode = f"w:{compression}" if compression else "w"
    with tarfile.open(fileobj=buffer, mode=mode) as archive:
        for name, contents, file_mode, link in members:
            info = tarfile.TarInfo(name.rstrip("/") if name.endswith("/") else name)
            info.mode = file_mode
            info.mtime = 1_700_000_000
            if link is not None:
                info.type = tarfile.SYMTYPE
                info.linkname = link
                archive.addfile(info)
            elif contents is None:
                info.type = tarfile.DIRTYPE
                archive.addfile(info)
            else:
                info.size = len(contents)
                archive.addfile(info, io.BytesIO(contents))
    return buffer.getvalue()
