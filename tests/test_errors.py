from gridlock.errors import (
    EXIT_IO,
    EXIT_LOCKFILE,
    EXIT_RESOLUTION,
    EXIT_USAGE,
    ErrorCode,
    IncompleteExportError,
    LocalIOError,
    LockfileExistsError,
    LockfileNotFoundError,
    LockfileParseError,
    RemoteUnavailableError,
    UnknownRefError,
    UsageError,
    exit_status_for,
)


def test_error_codes_are_stable_and_machine_readable() -> None:
    errors = [
        UsageError("bad input"),
        UnknownRefError("no such ref"),
        RemoteUnavailableError("network down"),
        IncompleteExportError("truncated"),
        LocalIOError("disk full"),
        LockfileParseError("bad json"),
        LockfileExistsError("exists"),
        LockfileNotFoundError("missing"),
    ]
    assert [error.code for error in errors] == [
        ErrorCode.USAGE.value,
        ErrorCode.UNKNOWN_REF.value,
        ErrorCode.REMOTE_UNAVAILABLE.value,
        ErrorCode.INCOMPLETE_EXPORT.value,
        ErrorCode.IO.value,
        ErrorCode.LOCKFILE_PARSE.value,
        ErrorCode.LOCKFILE_EXISTS.value,
        ErrorCode.LOCKFILE_NOT_FOUND.value,
    ]
    assert [error.exit_status for error in errors] == [
        EXIT_USAGE,
        EXIT_RESOLUTION,
        EXIT_RESOLUTION,
        EXIT_RESOLUTION,
        EXIT_IO,
        EXIT_LOCKFILE,
        EXIT_LOCKFILE,
        EXIT_LOCKFILE,
    ]


def test_error_message_includes_hint_and_context() -> None:
    error = UnknownRefError(
        "Ref not found.",
        hint="Check the branch name.",
        context={"remote": "https://github.com/o/r", "ref": "nope", "empty": ""},
    )

    assert str(error) == (
        "Ref not found.\n"
        "Hint: Check the branch name.\n"
        "  remote: https://github.com/o/r\n"
        "  ref: nope"
    )
    assert error.to_dict() == {
        "code": "E_UNKNOWN_REF",
        "message": str(error),
        "context": {"remote": "https://github.com/o/r", "ref": "nope", "empty": ""},
        "hint": "Check the branch name.",
    }


def test_unexpected_errors_map_to_generic_exit_status() -> None:
    assert exit_status_for(RuntimeError("boom")) == 1
    assert exit_status_for(LocalIOError("disk full")) == EXIT_IO
