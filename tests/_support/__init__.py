"""
Test support utilities for autocommit tests.

Fakes that stand in for the clock, the random source and the provider
gateway, shared by fixtures and by tests that build their own wiring.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

from autocommit.core.errors import ConflictError
from autocommit.models import FileState, WriteResult

# Wednesday 2025-01-15, 14:30 UTC
REFERENCE_NOW = datetime(2025, 1, 15, 14, 30, tzinfo=UTC)
WEDNESDAY = 3


class FixedClock:
    """Callable clock returning ``self.now``; tests move it explicitly."""

    def __init__(self, now: datetime = REFERENCE_NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: Any) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FixedRandom:
    """Random source whose ``random()`` always returns ``value``."""

    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value

    def randrange(self, stop: int) -> int:
        return 0


class FakeGateway:
    """In-memory RepositoryGateway.

    Files are keyed by ``(owner, repo, path)`` and hold ``(content, revision)``.
    ``read_error`` / ``write_error`` make the next calls raise; ``delay``
    makes every call suspend; ``on_read`` runs inside ``read_file``;
    ``bump_revision_after_read`` simulates a concurrent upstream edit.
    """

    def __init__(self) -> None:
        self.files: dict[tuple[str, str, str], tuple[str, str]] = {}
        self.reads: list[tuple[str, str, str]] = []
        self.writes: list[dict[str, Any]] = []
        self.read_error: Exception | None = None
        self.write_error: Exception | None = None
        self.delay: float = 0.0
        self.on_read: Any = None
        self.bump_revision_after_read = False
        self._sha_counter = 0

    def _next_sha(self) -> str:
        self._sha_counter += 1
        return f"sha{self._sha_counter:04d}"

    async def read_file(self, owner: str, repo: str, path: str, token: str) -> FileState:
        self.reads.append((owner, repo, path))
        if self.on_read:
            self.on_read()
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.read_error:
            raise self.read_error
        key = (owner, repo, path)
        content, revision = self.files.get(key, ("", None))
        if self.bump_revision_after_read and key in self.files:
            self.files[key] = (content + "edited elsewhere\n", self._next_sha())
        return FileState(content=content, revision=revision)

    async def write_file(
        self,
        owner: str,
        repo: str,
        path: str,
        content: str,
        message: str,
        revision: str | None,
        token: str,
    ) -> WriteResult:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.write_error:
            raise self.write_error
        key = (owner, repo, path)
        current = self.files.get(key)
        current_revision = current[1] if current else None
        if revision != current_revision:
            raise ConflictError("revision does not match")
        sha = self._next_sha()
        self.files[key] = (content, sha)
        self.writes.append(
            {"key": key, "content": content, "message": message, "revision": revision, "token": token}
        )
        return WriteResult(commit_id=sha, committed_at=None)

    async def check_token(self, token: str) -> bool:
        return True


__all__ = ["REFERENCE_NOW", "WEDNESDAY", "FixedClock", "FixedRandom", "FakeGateway"]
