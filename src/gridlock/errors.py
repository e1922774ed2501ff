"""Typed error model with stable, machine-readable error codes."""

from __future__ import annotations

from collections.abc import Mapping
from enum import StrEnum


class ErrorCode(StrEnum):
    """Stable error identifiers used across API and CLI surfaces."""

    USAGE = "E_USAGE"
    UNKNOWN_REF = "E_UNKNOWN_REF"
    REMOTE_UNAVAILABLE = "E_REMOTE_UNAVAILABLE"
    INCOMPLETE_EXPORT = "E_INCOMPLETE_EXPORT"
    IO = "E_IO"
    LOCKFILE_PARSE = "E_LOCKFILE_PARSE"
    LOCKFILE_EXISTS = "E_LOCKFILE_EXISTS"
    LOCKFILE_NOT_FOUND = "E_LOCKFILE_NOT_FOUND"


EXIT_OK = 0
EXIT_USAGE = 2
EXIT_RESOLUTION = 3
EXIT_IO = 4
EXIT_LOCKFILE = 5

_EXIT_STATUS: dict[str, int] = {
    ErrorCode.USAGE: EXIT_USAGE,
    ErrorCode.UNKNOWN_REF: EXIT_RESOLUTION,
    ErrorCode.REMOTE_UNAVAILABLE: EXIT_RESOLUTION,
    ErrorCode.INCOMPLETE_EXPORT: EXIT_RESOLUTION,
    ErrorCode.IO: EXIT_IO,
    ErrorCode.LOCKFILE_PARSE: EXIT_LOCKFILE,
    ErrorCode.LOCKFILE_EXISTS: EXIT_LOCKFILE,
    ErrorCode.LOCKFILE_NOT_FOUND: EXIT_LOCKFILE,
}


class GridlockError(Exception):
    """Base error class that carries code, optional hint, and context."""

    code: str
    hint: str | None
    context: Mapping[str, str]

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code.value
        self.hint = hint
        self.context = dict(context or {})

    def __str__(self) -> str:
        parts = [super().__str__()]
        if self.hint:
            parts.append(f"Hint: {self.hint}")
        if self.context:
            for k, v in self.context.items():
                if v:
                    parts.append(f"  {k}: {v}")
        return "\n".join(parts)

    @property
    def exit_status(self) -> int:
        return _EXIT_STATUS.get(self.code, 1)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "code": self.code,
            "message": str(self),
            "context": dict(self.context),
        }
        if self.hint is not None:
            payload["hint"] = self.hint
        return payload


class UsageError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.USAGE, hint=hint, context=context)


class UnknownRefError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.UNKNOWN_REF, hint=hint, context=context)


class RemoteUnavailableError(GridlockError):
    """Network or git process failure. Callers may retry; nothing here does."""

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.REMOTE_UNAVAILABLE, hint=hint, context=context)


class IncompleteExportError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.INCOMPLETE_EXPORT, hint=hint, context=context)


class LocalIOError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.IO, hint=hint, context=context)


class LockfileParseError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE_PARSE, hint=hint, context=context)


class LockfileExistsError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE_EXISTS, hint=hint, context=context)


class LockfileNotFoundError(GridlockError):
    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        context: Mapping[str, str] | None = None,
    ) -> None:
        super().__init__(message, code=ErrorCode.LOCKFILE_NOT_FOUND, hint=hint, context=context)


def exit_status_for(error: BaseException) -> int:
    if isinstance(error, GridlockError):
        return error.exit_status
    return 1


__all__ = [
    "EXIT_IO",
    "EXIT_LOCKFILE",
    "EXIT_OK",
    "EXIT_RESOLUTION",
    "EXIT_USAGE",
    "ErrorCode",
    "GridlockError",
    "IncompleteExportError",
    "LocalIOError",
    "LockfileExistsError",
    "LockfileNotFoundError",
    "LockfileParseError",
    "RemoteUnavailableError",
    "UnknownRefError",
    "UsageError",
    "exit_status_for",
]
