"""Repository gateway: read and write one file through a provider API.

Manifesto:
    The executor never speaks HTTP. It calls a narrow gateway that
    returns typed values and raises typed errors, so the provider can be
    swapped (or faked in tests) without touching scheduling logic.

Architecture:
    ::

        CommitExecutor
            │ read_file(owner, repo, path, token)  → FileState(content, revision)
            │ write_file(..., content, message, revision, token) → WriteResult
            ▼
        RepositoryGateway (protocol)
            │
            └── GitHubGateway ── httpx.AsyncClient ──► GitHub contents API

    Status mapping (GitHubGateway):
        401                          → AuthExpiredError
        403 + exhausted rate limit   → RateLimitError
        403 otherwise                → AuthError (missing permission)
        404                          → NotFoundError (read: empty file)
        409, 422 on ``sha``          → ConflictError
        429                          → RateLimitError
        5xx / network                → UnknownProviderError
        timeout                      → ProviderTimeoutError

Tags:
    gateway, github, httpx, contents-api, optimistic-concurrency
"""

from __future__ import annotations

import base64
import time
from datetime import datetime
from typing import Any, Protocol, runtime_checkable
from urllib.parse import quote

import httpx

from autocommit.core.errors import (
    AuthError,
    AuthExpiredError,
    ConflictError,
    NotFoundError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    UnknownProviderError,
)
from autocommit.core.logging import get_logger
from autocommit.models import FileState, WriteResult

logger = get_logger(__name__)


@runtime_checkable
class RepositoryGateway(Protocol):
    """Provider-agnostic access to a single file in a repository."""

    async def read_file(self, owner: str, repo: str, path: str, token: str) -> FileState:
        """Return content + revision; a missing file is ``FileState("", None)``."""
        ...

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
        """Create or update the file; a stale ``revision`` raises ConflictError."""
        ...

    async def check_token(self, token: str) -> bool:
        """True if the provider accepts the credential."""
        ...


class GitHubGateway:
    """GitHub contents API implementation of :class:`RepositoryGateway`.

    A client is opened per call, so the gateway is safe to use from the
    fresh event loop each scheduler tick runs in.

    Args:
        base_url: API root (GitHub Enterprise uses ``https://host/api/v3``)
        user_agent: Sent on every request; GitHub rejects requests without one
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (``httpx.MockTransport`` in tests)
    """

    name = "github"

    def __init__(
        self,
        base_url: str = "https://api.github.com",
        user_agent: str = "autocommit-engine",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_agent = user_agent
        self.timeout = timeout
        self._transport = transport

    # === Gateway API ===

    async def read_file(self, owner: str, repo: str, path: str, token: str) -> FileState:
        response = await self._request("GET", self._contents_url(owner, repo, path), token)
        if response.status_code == 404:
            logger.debug("file_not_found", repository=f"{owner}/{repo}", path=path)
            return FileState(content="", revision=None)
        self._raise_for_status(response, owner, repo, path)

        payload = self._json(response)
        if not isinstance(payload, dict) or payload.get("type", "file") != "file":
            raise UnknownProviderError(
                f"{path} is not a regular file", retryable=False
            ).with_context(repository=f"{owner}/{repo}", path=path)

        raw = payload.get("content") or ""
        try:
            content = base64.b64decode(raw).decode("utf-8")
        except (ValueError, UnicodeDecodeError) as e:
            raise UnknownProviderError(
                f"Could not decode {path}", retryable=False, cause=e
            ).with_context(repository=f"{owner}/{repo}", path=path) from e
        return FileState(content=content, revision=payload.get("sha"))

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
        body: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content.encode("utf-8")).decode("ascii"),
        }
        if revision:
            body["sha"] = revision

        response = await self._request(
            "PUT", self._contents_url(owner, repo, path), token, json=body
        )
        self._raise_for_status(response, owner, repo, path)

        commit = (self._json(response) or {}).get("commit") or {}
        sha = commit.get("sha")
        if not sha:
            raise UnknownProviderError("Write response carried no commit sha").with_context(
                repository=f"{owner}/{repo}", path=path
            )
        committed_at = None
        date_text = (commit.get("committer") or {}).get("date")
        if date_text:
            committed_at = datetime.fromisoformat(date_text.replace("Z", "+00:00"))
        return WriteResult(commit_id=sha, committed_at=committed_at)

    async def check_token(self, token: str) -> bool:
        response = await self._request("GET", f"{self.base_url}/user", token)
        if response.status_code == 401:
            return False
        self._raise_for_status(response, "", "", "")
        return True

    # === Internals ===

    def _contents_url(self, owner: str, repo: str, path: str) -> str:
        return (
            f"{self.base_url}/repos/{quote(owner, safe='')}/{quote(repo, safe='')}"
            f"/contents/{quote(path.lstrip('/'), safe='/')}"
        )

    def _headers(self, token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "User-Agent": self.user_agent,
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _request(
        self, method: str, url: str, token: str, json: dict[str, Any] | None = None
    ) -> httpx.Response:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                return await client.request(method, url, headers=self._headers(token), json=json)
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(f"{method} {url} timed out", cause=e) from e
        except httpx.HTTPError as e:
            raise UnknownProviderError(f"{method} {url} failed: {e}", cause=e) from e

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as e:
            raise UnknownProviderError("Provider returned invalid JSON", cause=e) from e

    @staticmethod
    def _message(response: httpx.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text[:200]
        if isinstance(payload, dict):
            return str(payload.get("message", ""))
        return ""

    @staticmethod
    def _retry_after(response: httpx.Response) -> int | None:
        header = response.headers.get("Retry-After")
        if header and header.isdigit():
            return int(header)
        reset = response.headers.get("X-RateLimit-Reset")
        if reset and reset.isdigit():
            return max(int(reset) - int(time.time()), 0)
        return None

    def _raise_for_status(
        self, response: httpx.Response, owner: str, repo: str, path: str
    ) -> None:
        status = response.status_code
        if status < 400:
            return

        message = self._message(response)
        error: ProviderError
        if status == 401:
            error = AuthExpiredError(f"Credential rejected: {message or 'bad credentials'}")
        elif status == 429 or (
            status == 403
            and (
                response.headers.get("X-RateLimit-Remaining") == "0"
                or "Retry-After" in response.headers
                or "rate limit" in message.lower()
            )
        ):
            error = RateLimitError(
                f"Rate limited: {message or status}", retry_after=self._retry_after(response)
            )
        elif status == 403:
            error = AuthError(f"Permission denied: {message or 'forbidden'}")
        elif status == 404:
            error = NotFoundError(f"Not found: {owner}/{repo}/{path}")
        elif status == 409 or (status == 422 and "sha" in message.lower()):
            error = ConflictError(f"Revision conflict: {message or status}")
        else:
            error = UnknownProviderError(
                f"Provider returned HTTP {status}: {message}",
                retryable=status >= 500,
            )

        raise error.with_context(
            repository=f"{owner}/{repo}" if owner else None,
            path=path or None,
            http_status=status,
        )


__all__ = ["RepositoryGateway", "GitHubGateway"]
