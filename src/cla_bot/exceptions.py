"""Custom exception hierarchy for CLA Bot."""

from __future__ import annotations

from datetime import UTC, datetime


class ClaBotError(Exception):
    """Base exception for CLA Bot."""


class GitHubAPIError(ClaBotError):
    """Error from the GitHub API."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        rate_limit_remaining: int | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.rate_limit_remaining = rate_limit_remaining


class AuthError(GitHubAPIError):
    """App JWT signing or token exchange failed."""

    def __init__(self, message: str, status_code: int = 401):
        super().__init__(message, status_code=status_code)


class NotFoundError(GitHubAPIError):
    """Resource not found (or not yet visible) on GitHub."""

    def __init__(self, resource: str):
        self.resource = resource
        super().__init__(f"Not found: {resource}", status_code=404)


class RateLimitError(GitHubAPIError):
    """GitHub API rate limit exhausted."""

    def __init__(
        self,
        reset_at: datetime,
        rate_limit_remaining: int = 0,
        status_code: int = 403,
    ):
        self.reset_at = reset_at
        super().__init__(
            f"Rate limit exhausted. Resets at {reset_at.isoformat()}",
            status_code=status_code,
            rate_limit_remaining=rate_limit_remaining,
        )

    @property
    def retry_after(self) -> float:
        """Seconds until the rate limit resets, never negative."""
        return max(0.0, (self.reset_at - datetime.now(UTC)).total_seconds())


class ValidationError(ClaBotError):
    """Malformed or unexpected payload from the GitHub API."""


class ConfigError(ClaBotError):
    """Error with configuration."""


class PollTimeoutError(ClaBotError):
    """A polled condition did not become true within the allowed tries."""

    def __init__(self, description: str, tries: int):
        self.description = description
        self.tries = tries
        super().__init__(f"Gave up waiting for {description} after {tries} tries")
