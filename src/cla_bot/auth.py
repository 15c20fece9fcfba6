"""GitHub App authentication: JWT signing and installation tokens."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime

import jwt

from cla_bot.config import ClaBotConfig
from cla_bot.exceptions import AuthError, ConfigError, ValidationError
from cla_bot.github_client import GitHubClient
from cla_bot.models import InstallationToken

logger = logging.getLogger(__name__)

# Backdate iat to tolerate clock drift between us and GitHub
_CLOCK_DRIFT_SECONDS = 60


class TokenCache:
    """Installation tokens keyed by installation id.

    Owned by whoever owns the :class:`AppAuthenticator`; call :meth:`clear`
    on shutdown.  Each key has its own lock so that concurrent refreshes of
    the same installation collapse into one exchange.
    """

    def __init__(self) -> None:
        self._tokens: dict[int, InstallationToken] = {}
        self._locks: dict[int, asyncio.Lock] = {}

    def get(self, installation_id: int) -> InstallationToken | None:
        return self._tokens.get(installation_id)

    def set(self, installation_id: int, token: InstallationToken) -> None:
        self._tokens[installation_id] = token

    def lock(self, installation_id: int) -> asyncio.Lock:
        if installation_id not in self._locks:
            self._locks[installation_id] = asyncio.Lock()
        return self._locks[installation_id]

    def invalidate(self, installation_id: int) -> None:
        self._tokens.pop(installation_id, None)

    def clear(self) -> None:
        self._tokens.clear()
        self._locks.clear()

    def __len__(self) -> int:
        return len(self._tokens)


class AppAuthenticator:
    """Turns the GitHub App identity into installation-scoped tokens."""

    def __init__(
        self,
        config: ClaBotConfig,
        client: GitHubClient,
        cache: TokenCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._client = client
        self.cache = cache if cache is not None else TokenCache()
        self._clock = clock

    def app_token(self) -> str:
        """Sign a short-lived RS256 JWT asserting the App identity.

        Raises:
            AuthError: If the App id or private key is missing or unusable.
        """
        app = self._config.app
        if not app.app_id:
            raise AuthError("No GitHub App id configured", status_code=0)
        try:
            private_key = app.load_private_key()
        except ConfigError as exc:
            raise AuthError(str(exc), status_code=0) from exc

        now = int(self._clock())
        payload = {
            "iat": now - _CLOCK_DRIFT_SECONDS,
            "exp": now + app.jwt_ttl_seconds,
            "iss": app.app_id,
        }
        try:
            return jwt.encode(payload, private_key, algorithm="RS256")
        except (jwt.PyJWTError, ValueError, TypeError) as exc:
            raise AuthError(f"Could not sign App JWT: {exc}", status_code=0) from exc

    async def installation_token(self, installation_id: int) -> InstallationToken:
        """Return a usable token for *installation_id*, refreshing if needed.

        A cached token is reused until it is within the configured refresh
        margin of its expiry.
        """
        margin = self._config.app.token_refresh_margin_seconds
        cached = self.cache.get(installation_id)
        if cached is not None and not cached.needs_refresh(margin, self._now()):
            return cached

        async with self.cache.lock(installation_id):
            # Another task may have refreshed while we waited
            cached = self.cache.get(installation_id)
            if cached is not None and not cached.needs_refresh(margin, self._now()):
                return cached

            token = await self._exchange(installation_id)
            self.cache.set(installation_id, token)
            return token

    async def _exchange(self, installation_id: int) -> InstallationToken:
        logger.debug("Requesting access token for installation %d", installation_id)
        data = await self._client.installation_access_token(
            installation_id, self.app_token()
        )
        try:
            return InstallationToken(
                token=data["token"],
                expires_at=datetime.fromisoformat(
                    str(data["expires_at"]).replace("Z", "+00:00")
                ),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(
                f"Malformed access token response for installation {installation_id}"
            ) from exc

    def _now(self) -> datetime:
        return datetime.fromtimestamp(self._clock(), tz=UTC)
