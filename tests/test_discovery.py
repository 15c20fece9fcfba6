"""Tests for pull request discovery."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import make_commit

from cla_bot.discovery import PullRequestDiscovery, pull_requests_to_validate
from cla_bot.exceptions import ValidationError
from cla_bot.github_client import GitHubClient
from cla_bot.models import CommitState, InstallationToken, OwnerRepo


def _pr(number: int, repo: str = "acme/widgets", state: str = "open",
        creator: str = "outsider") -> dict[str, Any]:
    owner, name = repo.split("/")
    return {
        "number": number,
        "state": state,
        "user": {"login": creator},
        "head": {"sha": f"sha{number}"},
        "base": {"repo": {"name": name, "owner": {"login": owner}}},
    }


def _repo(full_name: str) -> dict[str, Any]:
    owner, name = full_name.split("/")
    return {"name": name, "full_name": full_name, "owner": {"login": owner}}


@pytest.fixture
def authenticator() -> MagicMock:
    auth = MagicMock()
    auth.app_token.return_value = "app-jwt"

    async def installation_token(installation_id: int) -> InstallationToken:
        return InstallationToken(
            token=f"tok-{installation_id}", expires_at=datetime(2099, 1, 1, tzinfo=UTC)
        )

    auth.installation_token = AsyncMock(side_effect=installation_token)
    return auth


@pytest.fixture
def client() -> AsyncMock:
    mock = AsyncMock(spec=GitHubClient)
    mock.app_installations.return_value = [{"id": 1}, {"id": 2}]

    repos = {"tok-1": [_repo("acme/widgets")], "tok-2": [_repo("solo/tools")]}
    mock.installation_repositories.side_effect = lambda token: repos[token]

    pulls = {
        "acme/widgets": [_pr(1), _pr(2), _pr(3, state="closed"), _pr(4, creator="maintainer")],
        "solo/tools": [_pr(5, repo="solo/tools", creator="solo")],
    }
    mock.pull_requests.side_effect = lambda owner_repo, token, state="open": pulls[
        str(owner_repo)
    ]

    statuses = {
        "sha1": [{"context": "cla-bot", "state": "success"}],
        "sha2": [{"context": "cla-bot", "state": "failure"}],
        "sha4": [{"context": "ci", "state": "success"}],
        "sha5": [],
    }
    mock.commit_status.side_effect = lambda owner_repo, sha, token: {
        "statuses": statuses.get(sha, [])
    }

    commits = {4: [make_commit("maintainer"), make_commit("outsider")], 5: [make_commit("solo")]}
    mock.pull_request_commits.side_effect = lambda owner_repo, number, token: commits.get(
        number, []
    )
    return mock


class TestPendingValidation:
    async def test_excludes_closed_and_successful(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        discovery = PullRequestDiscovery(client, authenticator, config)
        found = await discovery.pending_validation()

        assert {(str(pr.base), pr.number) for pr in found} == {
            ("acme/widgets", 2),
            ("acme/widgets", 4),
            ("solo/tools", 5),
        }
        client.app_installations.assert_awaited_once_with("app-jwt")

    async def test_carries_installation_id(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        found = await PullRequestDiscovery(client, authenticator, config).pending_validation()
        by_number = {pr.number: pr for pr in found}

        assert by_number[2].installation_id == 1
        assert by_number[5].installation_id == 2
        assert by_number[5].base == OwnerRepo.parse("solo/tools")

    async def test_filter_by_creator(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        found = await PullRequestDiscovery(client, authenticator, config).pending_validation(
            user="Solo"
        )
        assert {pr.number for pr in found} == {5}

    async def test_filter_by_commit_author(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        found = await PullRequestDiscovery(client, authenticator, config).pending_validation(
            user="outsider"
        )
        assert {pr.number for pr in found} == {2, 4}

    async def test_no_installations(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        client.app_installations.return_value = []
        found = await PullRequestDiscovery(client, authenticator, config).pending_validation()
        assert found == set()


class TestCurrentState:
    async def test_never_reported_is_pending(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        discovery = PullRequestDiscovery(client, authenticator, config)
        found = await discovery.pending_validation()
        four = next(pr for pr in found if pr.number == 4)

        assert await discovery.current_state(four, "tok-1") == CommitState.PENDING

    async def test_reported_state(
        self, client: AsyncMock, authenticator: MagicMock, config
    ) -> None:
        discovery = PullRequestDiscovery(client, authenticator, config)
        found = await discovery.pending_validation()
        two = next(pr for pr in found if pr.number == 2)

        assert await discovery.current_state(two, "tok-1") == CommitState.FAILURE


class TestPullRequestsToValidate:
    def test_open(self, pull_request_payload) -> None:
        found = pull_requests_to_validate(pull_request_payload, installation_id=42)
        assert len(found) == 1
        pull_request = next(iter(found))
        assert pull_request.number == 7
        assert pull_request.installation_id == 42

    def test_closed(self, pull_request_payload) -> None:
        pull_request_payload["state"] = "closed"
        assert pull_requests_to_validate(pull_request_payload) == set()

    def test_malformed(self) -> None:
        with pytest.raises(ValidationError):
            pull_requests_to_validate({"number": 7})
