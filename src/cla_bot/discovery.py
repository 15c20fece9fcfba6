"""Find pull requests whose CLA status should be (re)validated."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from cla_bot.auth import AppAuthenticator
from cla_bot.config import ClaBotConfig
from cla_bot.contributors import ContributorResolver
from cla_bot.github_client import GitHubClient
from cla_bot.models import CommitState, OwnerRepo, PullRequest, User

logger = logging.getLogger(__name__)


def pull_requests_to_validate(
    payload: dict[str, Any], installation_id: int | None = None
) -> set[PullRequest]:
    """Pull requests to validate for an incoming pull request event payload.

    Closed pull requests are never validated.
    """
    pull_request = PullRequest.from_payload(payload, installation_id=installation_id)
    return {pull_request} if pull_request.is_open else set()


class PullRequestDiscovery:
    """Enumerates open pull requests, across every installation of the App,
    whose CLA status is not yet ``success``.

    Read-only: safe to call as often as needed.
    """

    def __init__(
        self,
        client: GitHubClient,
        authenticator: AppAuthenticator,
        config: ClaBotConfig,
        resolver: ContributorResolver | None = None,
    ) -> None:
        self._client = client
        self._authenticator = authenticator
        self._config = config
        self._resolver = resolver if resolver is not None else ContributorResolver()

    async def pending_validation(self, user: str | None = None) -> set[PullRequest]:
        """Open pull requests awaiting a successful CLA status.

        With *user*, only pull requests that user opened or committed to are
        returned, e.g. to re-validate after that user signs.
        """
        installations = await self._client.app_installations(
            self._authenticator.app_token()
        )
        found = await asyncio.gather(
            *(self._installation_pending(inst, user) for inst in installations)
        )
        return set().union(*found)

    async def _installation_pending(
        self, installation: dict[str, Any], user: str | None
    ) -> set[PullRequest]:
        installation_id = int(installation["id"])
        token = (await self._authenticator.installation_token(installation_id)).token
        repos = await self._client.installation_repositories(token)
        logger.debug(
            "Installation %d can see %d repositories", installation_id, len(repos)
        )

        found = await asyncio.gather(
            *(
                self._repo_pending(OwnerRepo.from_payload(repo), installation_id, token, user)
                for repo in repos
            )
        )
        return set().union(*found)

    async def _repo_pending(
        self,
        owner_repo: OwnerRepo,
        installation_id: int,
        token: str,
        user: str | None,
    ) -> set[PullRequest]:
        pending: set[PullRequest] = set()
        for payload in await self._client.pull_requests(owner_repo, token, state="open"):
            pull_request = PullRequest.from_payload(payload, installation_id=installation_id)
            if not pull_request.is_open:
                continue
            if await self.current_state(pull_request, token) == CommitState.SUCCESS:
                continue
            if user is not None and not await self._involves(pull_request, user, token):
                continue
            pending.add(pull_request)
        return pending

    async def current_state(self, pull_request: PullRequest, token: str) -> CommitState:
        """Latest state of our status context on the head commit.

        A head commit we have never reported on counts as ``pending``.
        """
        combined = await self._client.commit_status(
            pull_request.base, pull_request.head_sha, token
        )
        context = self._config.status.context
        for status in combined.get("statuses") or []:
            if status.get("context") == context:
                return CommitState(status["state"])
        return CommitState.PENDING

    async def _involves(self, pull_request: PullRequest, user: str, token: str) -> bool:
        if pull_request.creator and pull_request.creator.lower() == user.lower():
            return True
        commits = await self._client.pull_request_commits(
            pull_request.base, pull_request.number, token
        )
        return User(username=user) in self._resolver.resolve_all(commits)
