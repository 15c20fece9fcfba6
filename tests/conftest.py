"""Shared test fixtures for CLA Bot tests."""

from __future__ import annotations

import itertools
from datetime import UTC, datetime
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from cla_bot.config import AppConfig, ClaBotConfig, OrganizationConfig
from cla_bot.exceptions import NotFoundError
from cla_bot.models import (
    ClaSignature,
    CommitStatus,
    Label,
    Owner,
    OwnerRepo,
    PullRequest,
    UnknownCommitter,
    User,
)


def make_commit(
    login: str | None,
    name: str | None = None,
    email: str | None = None,
    account_type: str = "User",
) -> dict[str, Any]:
    """A commit as returned by ``GET /repos/{o}/{r}/pulls/{n}/commits``."""
    return {
        "sha": f"sha-{login or name or email}",
        "commit": {"author": {"name": name, "email": email}},
        "author": {"login": login, "type": account_type} if login else None,
    }


class FakeGitHub:
    """In-memory stand-in for :class:`GitHubClient` with per-PR state."""

    def __init__(self, members: dict[str, list[str]] | None = None) -> None:
        self.members = members or {}
        self.commits: dict[int, list[dict[str, Any]]] = {}
        self.labels: dict[int, list[str]] = {}
        self.comments: dict[int, list[dict[str, Any]]] = {}
        self.statuses: list[tuple[str, CommitStatus]] = []
        self.fail_on: set[str] = set()
        self._ids = itertools.count(1)

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_on:
            raise NotFoundError(operation)

    async def pull_request_commits(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        self._maybe_fail("commits")
        return self.commits.get(number, [])

    async def issue_labels(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        self._maybe_fail("labels")
        return [{"name": name} for name in self.labels.get(number, [])]

    async def issue_comments(
        self, owner_repo: OwnerRepo, number: int, token: str
    ) -> list[dict[str, Any]]:
        return list(self.comments.get(number, []))

    async def create_status(
        self, owner_repo: OwnerRepo, sha: str, status: CommitStatus, token: str
    ) -> dict[str, Any]:
        self._maybe_fail("status")
        self.statuses.append((sha, status))
        return {
            "state": status.state.value,
            "context": status.context,
            "creator": {"login": "cla-bot[bot]"},
        }

    async def apply_label(
        self, owner_repo: OwnerRepo, label: Label, number: int, token: str
    ) -> list[dict[str, Any]]:
        current = self.labels.setdefault(number, [])
        if label.name not in current:
            current.append(label.name)
        return [{"name": name} for name in current]

    async def remove_label(
        self, owner_repo: OwnerRepo, label: Label, number: int, token: str
    ) -> None:
        current = self.labels.setdefault(number, [])
        if label.name in current:
            current.remove(label.name)

    async def comment_on_issue(
        self, owner_repo: OwnerRepo, number: int, body: str, token: str
    ) -> dict[str, Any]:
        comment = {
            "id": next(self._ids),
            "body": body,
            "user": {"login": "cla-bot[bot]", "type": "Bot"},
        }
        self.comments.setdefault(number, []).append(comment)
        return comment

    async def org_members(self, org: str, token: str) -> list[dict[str, Any]]:
        if org not in self.members:
            raise NotFoundError(f"/orgs/{org}/members")
        return [{"login": login} for login in self.members[org]]

    def bot_comments(self, number: int) -> list[dict[str, Any]]:
        return [
            c for c in self.comments.get(number, []) if c["user"]["login"].endswith("[bot]")
        ]


@pytest.fixture
def private_key_pem() -> str:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()


@pytest.fixture
def config() -> ClaBotConfig:
    return ClaBotConfig()


@pytest.fixture
def app_config(private_key_pem: str) -> ClaBotConfig:
    return ClaBotConfig(app=AppConfig(app_id="12345", private_key=private_key_pem))


@pytest.fixture
def internal_config() -> ClaBotConfig:
    return ClaBotConfig(
        organization=OrganizationConfig(
            domain="acme.com",
            internal_instructions_url="https://wiki.acme.com/cla",
        )
    )


@pytest.fixture
def owner_repo() -> OwnerRepo:
    return OwnerRepo(owner=Owner(name="acme"), name="widgets")


@pytest.fixture
def pull_request(owner_repo: OwnerRepo) -> PullRequest:
    return PullRequest(
        number=7,
        base=owner_repo,
        head_sha="abc123def456",
        creator="outsider",
        installation_id=42,
    )


@pytest.fixture
def pull_request_payload() -> dict[str, Any]:
    return {
        "number": 7,
        "state": "open",
        "user": {"login": "outsider"},
        "head": {"sha": "abc123def456"},
        "base": {"repo": {"name": "widgets", "owner": {"login": "acme"}}},
    }


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub(members={"acme": ["maintainer", "private-member"]})


@pytest.fixture
def sample_user() -> User:
    return User(username="outsider", name="Out Sider", email="out@example.org")


@pytest.fixture
def sample_unknown() -> UnknownCommitter:
    return UnknownCommitter(name=None, email="asdf@foo.bar.com")


@pytest.fixture
def signature_for():
    def _make(signer: str, version: str = "1.0") -> ClaSignature:
        return ClaSignature(
            signer=signer, signed_at=datetime(2024, 1, 1, tzinfo=UTC), version=version
        )

    return _make
