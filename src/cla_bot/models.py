"""Data models for CLA Bot."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from cla_bot.exceptions import ValidationError


class Owner(BaseModel):
    """A GitHub account name (user or organization), case-insensitive."""
    model_config = ConfigDict(frozen=True)

    name: str

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Owner):
            return self.name.lower() == other.name.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.name.lower())

    def __str__(self) -> str:
        return self.name


class OwnerRepo(BaseModel):
    """A repository identified by its owner and name."""
    model_config = ConfigDict(frozen=True)

    owner: Owner
    name: str

    def __eq__(self, other: object) -> bool:
        if isinstance(other, OwnerRepo):
            return self.owner == other.owner and self.name.lower() == other.name.lower()
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.owner, self.name.lower()))

    def __str__(self) -> str:
        return f"{self.owner.name}/{self.name}"

    @classmethod
    def parse(cls, full_name: str) -> OwnerRepo:
        """Parse an ``owner/name`` string."""
        parts = full_name.split("/")
        if len(parts) != 2 or not parts[0] or not parts[1]:
            raise ValueError(f"repo must be in owner/name format, got: {full_name!r}")
        return cls(owner=Owner(name=parts[0]), name=parts[1])

    @classmethod
    def from_payload(cls, repo: dict[str, Any]) -> OwnerRepo:
        """Build from a GitHub repository payload."""
        try:
            return cls(owner=Owner(name=repo["owner"]["login"]), name=repo["name"])
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed repository payload: {exc}") from exc


def obfuscate_email(email: str) -> str:
    """Hide all but the first character of each part of an email.

    The final domain segment (the TLD) is kept as-is::

        >>> obfuscate_email("asdf@foo.bar.com")
        'a***@f***.b***.com'
    """
    if "@" not in email:
        return f"{email[:1]}***"
    local, domain = email.rsplit("@", 1)
    segments = domain.split(".")
    hidden = [f"{segment[:1]}***" for segment in segments[:-1]]
    hidden.append(segments[-1])
    return f"{local[:1]}***@{'.'.join(hidden)}"


class User(BaseModel):
    """A contributor with a GitHub account."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["user"] = "user"
    username: str
    name: str | None = None
    email: str | None = None

    @property
    def identity_key(self) -> str:
        return self.username.lower()

    def display(self) -> str:
        return f"@{self.username}"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, User):
            return self.identity_key == other.identity_key
        if isinstance(other, UnknownCommitter):
            return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("user", self.identity_key))


class UnknownCommitter(BaseModel):
    """A commit author with no associated GitHub account."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["unknown"] = "unknown"
    name: str | None = None
    email: str | None = None

    @property
    def identity_key(self) -> str:
        return f"{self.name or ''} <{self.email or ''}>"

    def display(self) -> str:
        if self.name:
            return self.name
        if self.email:
            return obfuscate_email(self.email)
        return "an unknown committer"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, UnknownCommitter):
            return (self.name, self.email) == (other.name, other.email)
        if isinstance(other, User):
            return False
        return NotImplemented

    def __hash__(self) -> int:
        return hash(("unknown", self.name, self.email))


Contributor = User | UnknownCommitter


class ClaSignature(BaseModel):
    """A recorded signature of a given CLA version."""
    model_config = ConfigDict(frozen=True)

    signer: str
    signed_at: datetime
    version: str

    def matches(self, contributor: Contributor) -> bool:
        if isinstance(contributor, User):
            return self.signer.lower() == contributor.identity_key
        return self.signer == contributor.identity_key


class PullRequestState(StrEnum):
    OPEN = "open"
    CLOSED = "closed"


class PullRequest(BaseModel):
    """A pull request and where it lives."""
    model_config = ConfigDict(frozen=True)

    number: int
    base: OwnerRepo
    head_sha: str
    state: PullRequestState = PullRequestState.OPEN
    creator: str | None = None
    installation_id: int | None = None

    @property
    def is_open(self) -> bool:
        return self.state == PullRequestState.OPEN

    def __str__(self) -> str:
        return f"{self.base}#{self.number}"

    @classmethod
    def from_payload(
        cls, payload: dict[str, Any], installation_id: int | None = None
    ) -> PullRequest:
        """Build from a GitHub pull request payload."""
        try:
            user = payload.get("user") or {}
            return cls(
                number=payload["number"],
                base=OwnerRepo.from_payload(payload["base"]["repo"]),
                head_sha=payload["head"]["sha"],
                state=PullRequestState(payload.get("state", "open")),
                creator=user.get("login"),
                installation_id=installation_id,
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValidationError(f"Malformed pull request payload: {exc}") from exc


class CommitState(StrEnum):
    """Commit status states."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    ERROR = "error"


class CommitStatus(BaseModel):
    """A commit status as posted to a head sha."""
    state: CommitState
    context: str
    target_url: str
    description: str

    def to_payload(self) -> dict[str, str]:
        return {
            "state": self.state.value,
            "context": self.context,
            "target_url": self.target_url,
            # GitHub rejects descriptions over 140 characters
            "description": self.description[:140],
        }


class ClaLabel(StrEnum):
    """The two mutually exclusive CLA labels."""
    MISSING = "missing"
    SIGNED = "signed"

    @property
    def opposite(self) -> ClaLabel:
        return ClaLabel.SIGNED if self is ClaLabel.MISSING else ClaLabel.MISSING


class Label(BaseModel):
    """A concrete repository label."""
    model_config = ConfigDict(frozen=True)

    name: str
    color: str


class InstallationToken(BaseModel):
    """An installation-scoped access token."""
    token: str
    expires_at: datetime

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return now >= self.expires_at

    def needs_refresh(self, margin_seconds: int, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return now >= self.expires_at - timedelta(seconds=margin_seconds)


class ValidationResult(BaseModel):
    """The outcome of validating one pull request."""
    pull_request: PullRequest
    status: CommitStatus
    response: dict[str, Any] = Field(default_factory=dict)
    external: set[Contributor] = Field(default_factory=set)
    unsigned: set[Contributor] = Field(default_factory=set)
    commented: bool = False
