"""Async GitHub REST client used by the CLA reconciliation engine."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import quote

import httpx

from cla_bot.config import ClaBotConfig, load_config
from cla_bot.exceptions import (
    AuthError,
    GitHubAPIError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from cla_bot.models import CommitStatus, Label, OwnerRepo

logger = logging.getLogger(__name__)

_GITHUB_BASE_URL = "https://api.github.com"


class GitHubClient:
    """Async GitHub REST client.

    Every call takes the bearer token explicitly: the same client talks to
    GitHub as the App (JWT), as an installation, and as a user.
    """

    def __init__(
        self,
        config: ClaBotConfig | None = None,
        base_url: str = _GITHUB_BASE_URL,
    ) -> None:
        self._config = config if config is not None else load_config()
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Accept": "application/vnd.github+json"},
            timeout=self._config.fetch.timeout_seconds,
        )

    async def __aenter__(self) -> GitHubClient:
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        url: str,
        token: str,
        *,
        json: object | None = None,
        params: dict[str, object] | None = None,
    ) -> httpx.Response:
        """Issue a request and map error responses onto the exception hierarchy.

        Raises:
            AuthError: On 401.
            NotFoundError: On 404.
            RateLimitError: On 429, or 403 with an exhausted rate limit.
            GitHubAPIError: For any other non-2xx response.
        """
        response = await self._client.request(
            method,
            url,
            json=json,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        self._raise_for_status(response, url)
        return response

    @staticmethod
    def _raise_for_status(response: httpx.Response, url: str) -> None:
        if response.is_success:
            return

        remaining = response.headers.get("X-RateLimit-Remaining")
        message = ""
        if response.content:
            try:
                message = str(response.json().get("message", ""))
            except (ValueError, AttributeError):
                message = response.text

        if response.status_code == 401:
            raise AuthError(f"GitHub rejected credentials for {url}: {message}")

        if response.status_code == 404:
            raise NotFoundError(url)

        if response.status_code in (403, 429) and (
            response.status_code == 429
            or remaining == "0"
            or "rate limit" in message.lower()
        ):
            retry_after = response.headers.get("Retry-After", "")
            reset_header = response.headers.get("X-RateLimit-Reset")
            if retry_after.isdigit():
                reset_at = datetime.now(UTC) + timedelta(seconds=int(retry_after))
            elif reset_header and reset_header.isdigit():
                reset_at = datetime.fromtimestamp(int(reset_header), tz=UTC)
            else:
                reset_at = datetime.now(UTC)
            raise RateLimitError(reset_at=reset_at, status_code=response.status_code)

        raise GitHubAPIError(
            message=f"GitHub API returned {response.status_code} for {url}: {message}",
            status_code=response.status_code,
            rate_limit_remaining=int(remaining) if remaining else None,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise ValidationError(f"Expected JSON from {response.url}") from exc

    async def get(
        self, url: str, token: str, params: dict[str, object] | None = None
    ) -> Any:
        return self._json(await self._request("GET", url, token, params=params))

    async def paginate(
        self,
        url: str,
        token: str,
        params: dict[str, object] | None = None,
        key: str | None = None,
        max_pages: int | None = None,
    ) -> list[dict[str, Any]]:
        """Fetch a listing, following ``Link: rel="next"`` up to *max_pages*.

        Pages are concatenated in server order.  *key* unwraps listings that
        come back as an object (e.g. ``{"repositories": [...]}``).
        """
        if max_pages is None:
            max_pages = self._config.fetch.max_pages
        page_params: dict[str, object] | None = {
            "per_page": self._config.fetch.per_page,
            **(params or {}),
        }

        items: list[dict[str, Any]] = []
        next_url: str | None = url
        pages = 0
        while next_url is not None and pages < max_pages:
            response = await self._request("GET", next_url, token, params=page_params)
            data = self._json(response)
            if key is not None:
                if not isinstance(data, dict) or key not in data:
                    raise ValidationError(f"Expected '{key}' in response from {next_url}")
                data = data[key]
            if not isinstance(data, list):
                raise ValidationError(f"Expected a list from {next_url}")
            items.extend(data)
            pages += 1

            next_url = response.links.get("next", {}).get("url")
            # The next link already carries the query string
            page_params = None

        if next_url is not None:
            logger.debug("Stopped paginating %s after %d pages", url, pages)
        return items

    # ------------------------------------------------------------------
    # App and installations
    # ------------------------------------------------------------------

    async def app_installations(self, app_jwt: str) -> list[dict[str, Any]]:
        """``GET /app/installations`` authenticated as the App."""
        return await self.paginate("/app/installations", app_jwt)

    async def installation_access_token(
        self, installation_id: int, app_jwt: str
    ) -> dict[str, Any]:
        """``POST /app/installations/{id}/access_tokens``."""
        response = await self._request(
            "POST", f"/app/installations/{installation_id}/access_tokens", app_jwt
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def installation_repositories(self, token: str) -> list[dict[str, Any]]:
        """``GET /installation/repositories`` with an installation token."""
        return await self.paginate(
            "/installation/repositories", token, key="repositories"
        )

    # ------------------------------------------------------------------
    # Pull requests and commits
    # ------------------------------------------------------------------

    async def pull_requests(
        self, owner_repo: OwnerRepo, token: str, state: str = "open"
    ) -> list[dict[str, Any]]:
        return await self.paginate(
            f"/repos/{owner_repo}/pulls", token, params={"state": state}
        )

    async def get_pull_request(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> dict[str, Any]:
        return await self.get(f"/repos/{owner_repo}/pulls/{number}", token)  # type: ignore[no-any-return]

    async def pull_request_commits(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        return await self.paginate(f"/repos/{owner_repo}/pulls/{number}/commits", token)

    # ------------------------------------------------------------------
    # Commit statuses
    # ------------------------------------------------------------------

    async def commit_status(
        self, owner_repo: OwnerRepo, sha: str, token: str
    ) -> dict[str, Any]:
        """Combined status for a ref: ``GET /repos/{o}/{r}/commits/{sha}/status``."""
        return await self.get(f"/repos/{owner_repo}/commits/{sha}/status", token)  # type: ignore[no-any-return]

    async def create_status(
        self, owner_repo: OwnerRepo, sha: str, status: CommitStatus, token: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{owner_repo}/statuses/{sha}",
            token,
            json=status.to_payload(),
        )
        return self._json(response)  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Labels
    # ------------------------------------------------------------------

    async def issue_labels(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        return await self.paginate(f"/repos/{owner_repo}/issues/{number}/labels", token)

    async def ensure_label(self, owner_repo: OwnerRepo, label: Label, token: str) -> None:
        """Create *label* in the repository unless it already exists."""
        try:
            await self._request(
                "GET", f"/repos/{owner_repo}/labels/{quote(label.name, safe='')}", token
            )
            return
        except NotFoundError:
            pass

        try:
            await self._request(
                "POST",
                f"/repos/{owner_repo}/labels",
                token,
                json={"name": label.name, "color": label.color},
            )
        except GitHubAPIError as exc:
            # 422: created concurrently by a sibling validation
            if exc.status_code != 422:
                raise

    async def apply_label(
        self, owner_repo: OwnerRepo, label: Label, number: int, token: str
    ) -> list[dict[str, Any]]:
        """Add *label* to an issue, creating it with its color if needed."""
        await self.ensure_label(owner_repo, label, token)
        response = await self._request(
            "POST",
            f"/repos/{owner_repo}/issues/{number}/labels",
            token,
            json={"labels": [label.name]},
        )
        return self._json(response)  # type: ignore[no-any-return]

    async def remove_label(
        self, owner_repo: OwnerRepo, label: Label, number: int, token: str
    ) -> None:
        """Remove *label* from an issue; absent labels are not an error."""
        try:
            await self._request(
                "DELETE",
                f"/repos/{owner_repo}/issues/{number}/labels/{quote(label.name, safe='')}",
                token,
            )
        except NotFoundError:
            logger.debug("Label %s already absent from %s#%d", label.name, owner_repo, number)

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def issue_comments(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        return await self.paginate(f"/repos/{owner_repo}/issues/{number}/comments", token)

    async def comment_on_issue(
        self, owner_repo: OwnerRepo, number: int, body: str, token: str
    ) -> dict[str, Any]:
        response = await self._request(
            "POST",
            f"/repos/{owner_repo}/issues/{number}/comments",
            token,
            json={"body": body},
        )
        return self._json(response)  # type: ignore[no-any-return]

    # ------------------------------------------------------------------
    # Organizations
    # ------------------------------------------------------------------

    async def org_members(self, org: str, token: str) -> list[dict[str, Any]]:
        """``GET /orgs/{org}/members``; private members need an org-scoped token."""
        return await self.paginate(f"/orgs/{org}/members", token)
