"""Settings resolution and the per-invocation context object."""

from __future__ import annotations

import os
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from pathlib import Path

from gridlock.errors import UsageError
from gridlock.observability import StructuredLogger
from gridlock.vcs import GitCli, VcsClient

DEFAULT_LOCKFILE = "gridlock.json"
DEFAULT_HOST = "github.com"
DEFAULT_JOBS = 4


@dataclass(frozen=True, slots=True)
class Settings:
    lockfile: Path = Path(DEFAULT_LOCKFILE)
    git: str = "git"
    jobs: int = DEFAULT_JOBS
    git_timeout: float | None = None
    host: str = DEFAULT_HOST

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> Settings:
        env = os.environ if environ is None else environ
        settings = cls()
        return settings.with_overrides(
            lockfile=env.get("GRIDLOCK_LOCKFILE") or None,
            git=env.get("GRIDLOCK_GIT") or None,
            jobs=_parse_int(env, "GRIDLOCK_JOBS"),
            git_timeout=_parse_float(env, "GRIDLOCK_GIT_TIMEOUT"),
            host=env.get("GRIDLOCK_HOST") or None,
        )

    def with_overrides(
        self,
        *,
        lockfile: str | Path | None = None,
        git: str | None = None,
        jobs: int | None = None,
        git_timeout: float | None = None,
        host: str | None = None,
    ) -> Settings:
        """Return a copy with every non-``None`` argument applied."""
        if jobs is not None and jobs < 1:
            raise UsageError("jobs must be at least 1.", context={"jobs": str(jobs)})
        if git_timeout is not None and git_timeout <= 0:
            raise UsageError(
                "git timeout must be positive.",
                context={"git_timeout": str(git_timeout)},
            )
        return replace(
            self,
            lockfile=Path(lockfile) if lockfile is not None else self.lockfile,
            git=git if git is not None else self.git,
            jobs=jobs if jobs is not None else self.jobs,
            git_timeout=git_timeout if git_timeout is not None else self.git_timeout,
            host=host if host is not None else self.host,
        )


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(slots=True)
class Context:
    """Everything an operation needs, passed explicitly instead of held globally."""

    settings: Settings
    vcs: VcsClient
    logger: StructuredLogger = field(default_factory=StructuredLogger)
    clock: Callable[[], datetime] = _utcnow

    @classmethod
    def from_settings(cls, settings: Settings) -> Context:
        return cls(settings=settings, vcs=GitCli(git=settings.git, timeout=settings.git_timeout))


def _parse_int(env: Mapping[str, str], key: str) -> int | None:
    raw = env.get(key)
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError as exc:
        raise UsageError(f"Invalid integer in {key}.", context={key: raw}) from exc


def _parse_float(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(key)
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise UsageError(f"Invalid number in {key}.", context={key: raw}) from exc


__all__ = ["DEFAULT_HOST", "DEFAULT_LOCKFILE", "Context", "Settings"]
