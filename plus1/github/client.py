"""Async GitHub REST client.

Every call carries the configured timeout. Reads are retried on transient
failures (network errors, timeouts, 5xx, rate limits) with exponential
backoff; the ruleset write is issued exactly once.
"""

from __future__ import annotations

import base64
import binascii
from typing import Any

import httpx
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from plus1.config import EnforcementConfig
from plus1.errors import (
    AuthenticationError,
    DocumentNotFoundError,
    GitHubAPIError,
    TransientAPIError,
)

logger = structlog.get_logger(__name__)

MAX_BACKOFF_SECONDS = 60.0


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "request_failed_will_retry",
        attempt=retry_state.attempt_number,
        delay_seconds=round(retry_state.next_action.sleep, 3)
        if retry_state.next_action
        else 0,
        error=str(exc),
    )


class GitHubClient:
    """Client bound to one organization.

    Use as an async context manager so the connection pool is closed::

        async with GitHubClient(token, "my-org", config) as client:
            repos = await client.list_repositories()
    """

    def __init__(
        self,
        token: str,
        organization: str,
        config: EnforcementConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.organization = organization
        self.config = config or EnforcementConfig()
        self._client = httpx.AsyncClient(
            base_url=self.config.api_url,
            timeout=self.config.request_timeout,
            transport=transport,
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {token}",
                "X-GitHub-Api-Version": "2022-11-28",
            },
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    async def list_repositories(self) -> list[dict[str, Any]]:
        """Return every repository in the organization, following pagination."""
        return await self._get_all_pages(
            f"/orgs/{self.organization}/repos",
            params={"type": "all", "per_page": self.config.per_page},
        )

    async def get_file_content(self, repo: str, path: str) -> str:
        """Fetch and decode a file from the repository's default branch.

        Raises:
            DocumentNotFoundError: The file does not exist.
            GitHubAPIError: The path is not a regular file or cannot be decoded.
        """
        response = await self._get_with_retry(
            f"/repos/{self.organization}/{repo}/contents/{path}",
            not_found=DocumentNotFoundError(f"No {path} file found"),
        )
        data = response.json()
        if not isinstance(data, dict) or data.get("type") != "file":
            raise GitHubAPIError(f"{path} is not a file")

        content = data.get("content") or ""
        try:
            if data.get("encoding", "base64") == "base64":
                return base64.b64decode(content).decode("utf-8")
            return content
        except (binascii.Error, UnicodeDecodeError) as e:
            raise GitHubAPIError(f"Cannot decode {path}: {e}") from e

    # ------------------------------------------------------------------
    # Rulesets
    # ------------------------------------------------------------------

    async def list_rulesets(self) -> list[dict[str, Any]]:
        return await self._get_all_pages(
            f"/orgs/{self.organization}/rulesets",
            params={"per_page": self.config.per_page},
        )

    async def get_ruleset(self, ruleset_id: int | str) -> dict[str, Any] | None:
        """Return the full ruleset, or None if it does not exist."""
        try:
            response = await self._get_with_retry(
                f"/orgs/{self.organization}/rulesets/{ruleset_id}",
                not_found=LookupError(ruleset_id),
            )
        except LookupError:
            return None
        return response.json()

    async def update_ruleset(
        self, ruleset_id: int | str, payload: dict[str, Any]
    ) -> dict[str, Any]:
        """Replace the ruleset. Not retried."""
        response = await self._request(
            "PUT", f"/orgs/{self.organization}/rulesets/{ruleset_id}", json=payload
        )
        return response.json()

    # ------------------------------------------------------------------
    # Transport helpers
    # ------------------------------------------------------------------

    async def _get_all_pages(
        self, url: str, params: dict[str, Any] | None = None
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_url: str | None = url
        page = 0
        while next_url:
            page += 1
            response = await self._get_with_retry(next_url, params=params)
            data = response.json()
            if not isinstance(data, list):
                raise GitHubAPIError(f"Expected a list from {url} (page {page})")
            items.extend(data)
            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            params = None
        logger.debug("pages_fetched", url=url, pages=page, items=len(items))
        return items

    async def _get_with_retry(
        self,
        url: str,
        params: dict[str, Any] | None = None,
        not_found: Exception | None = None,
    ) -> httpx.Response:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.config.retry_attempts),
            wait=wait_exponential(
                multiplier=self.config.retry_delay, max=MAX_BACKOFF_SECONDS
            ),
            retry=retry_if_exception_type(TransientAPIError),
            before_sleep=_log_retry,
            reraise=True,
        )
        return await retrying(self._request, "GET", url, params=params, not_found=not_found)

    async def _request(
        self,
        method: str,
        url: str,
        not_found: Exception | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise TransientAPIError(f"{method} {url} timed out") from e
        except httpx.TransportError as e:
            raise TransientAPIError(f"{method} {url} failed: {e}") from e

        status = response.status_code
        if status < 400:
            return response
        if status == 404 and not_found is not None:
            raise not_found
        if status == 401:
            raise AuthenticationError("GitHub rejected the token (401 Unauthorized)")
        if status == 429 or (
            status == 403 and response.headers.get("x-ratelimit-remaining") == "0"
        ):
            raise TransientAPIError(
                f"{method} {url}: rate limit exceeded", status_code=status
            )
        if status >= 500:
            raise TransientAPIError(f"{method} {url}: server error {status}", status)
        raise GitHubAPIError(f"{method} {url}: {status} {_error_message(response)}", status)


def _error_message(response: httpx.Response) -> str:
    try:
        return response.json().get("message", "")
    except (ValueError, AttributeError):
        return response.text[:200]
