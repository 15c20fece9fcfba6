"""Pull request validation: decide the CLA outcome and reflect it on GitHub."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from typing import Any

from cla_bot.auth import AppAuthenticator
from cla_bot.config import ClaBotConfig
from cla_bot.contributors import ContributorResolver, is_bot_account
from cla_bot.exceptions import ValidationError
from cla_bot.formatter import (
    COMMENT_MARKER,
    extract_digest,
    format_missing_comment,
    status_description,
    unsigned_digest,
)
from cla_bot.github_client import GitHubClient
from cla_bot.membership import MembershipOracle
from cla_bot.models import (
    ClaLabel,
    CommitState,
    CommitStatus,
    Contributor,
    Label,
    OwnerRepo,
    PullRequest,
    ValidationResult,
)
from cla_bot.signatures import SignatureLookup

logger = logging.getLogger(__name__)

UrlBuilder = Callable[[OwnerRepo, int], str]


class PullRequestValidator:
    """Reconciles one pull request's CLA status, label and comment.

    Signature lookups go through the injected *lookup* so the validator
    never touches the signature store directly.  *status_url* builds the
    link attached to the commit status and *sign_url* the link in the
    comment; both default to the configured CLA form.
    """

    def __init__(
        self,
        client: GitHubClient,
        config: ClaBotConfig,
        lookup: SignatureLookup,
        status_url: UrlBuilder | None = None,
        sign_url: UrlBuilder | None = None,
        resolver: ContributorResolver | None = None,
        oracle: MembershipOracle | None = None,
    ) -> None:
        self._client = client
        self._config = config
        self._lookup = lookup
        self._status_url = status_url or (lambda _repo, _number: config.cla.sign_url)
        self._sign_url = sign_url or (lambda _repo, _number: config.cla.sign_url)
        self._bot_logins = [config.app.bot_login] if config.app.bot_login else []
        self._resolver = (
            resolver if resolver is not None else ContributorResolver(self._bot_logins)
        )
        self._oracle = oracle if oracle is not None else MembershipOracle(client)

    # ------------------------------------------------------------------
    # Decision
    # ------------------------------------------------------------------

    async def external_contributors(
        self, pull_request: PullRequest, contributors: set[Contributor], token: str
    ) -> set[Contributor]:
        """Contributors who are not members of the repository's owner.

        Known gap: when the installation cannot see the pull request
        author's membership, the author is still counted as external.
        """
        org = pull_request.base.owner
        ordered = list(contributors)
        memberships = await asyncio.gather(
            *(self._oracle.is_member(org, c, token) for c in ordered)
        )
        return {c for c, is_member in zip(ordered, memberships) if not is_member}

    async def unsigned_contributors(self, external: set[Contributor]) -> set[Contributor]:
        """External contributors without a signature for the current CLA version."""
        if not external:
            return set()
        version = self._config.cla.version
        signatures = {s for s in await self._lookup(external) if s.version == version}
        return {c for c in external if not any(s.matches(c) for s in signatures)}

    def decide(self, pull_request: PullRequest, unsigned: set[Contributor]) -> CommitStatus:
        state = CommitState.FAILURE if unsigned else CommitState.SUCCESS
        return CommitStatus(
            state=state,
            context=self._config.status.context,
            target_url=self._status_url(pull_request.base, pull_request.number),
            description=status_description(state, len(unsigned)),
        )

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    def label(self, kind: ClaLabel) -> Label:
        labels = self._config.labels
        if kind is ClaLabel.MISSING:
            return Label(name=labels.missing_name, color=labels.missing_color)
        return Label(name=labels.signed_name, color=labels.signed_color)

    async def mark_pending(self, pull_request: PullRequest, token: str) -> dict[str, Any]:
        """Post a ``pending`` status while a decision is still outstanding."""
        status = CommitStatus(
            state=CommitState.PENDING,
            context=self._config.status.context,
            target_url=self._status_url(pull_request.base, pull_request.number),
            description=status_description(CommitState.PENDING),
        )
        return await self._client.create_status(
            pull_request.base, pull_request.head_sha, status, token
        )

    async def _apply_labels(
        self,
        pull_request: PullRequest,
        state: CommitState,
        present: set[str],
        token: str,
    ) -> None:
        wanted = ClaLabel.SIGNED if state == CommitState.SUCCESS else ClaLabel.MISSING
        wanted_label = self.label(wanted)
        other_label = self.label(wanted.opposite)

        if wanted_label.name not in present:
            await self._client.apply_label(
                pull_request.base, wanted_label, pull_request.number, token
            )
        if other_label.name in present:
            await self._client.remove_label(
                pull_request.base, other_label, pull_request.number, token
            )

    async def _apply_comment(
        self,
        pull_request: PullRequest,
        unsigned: set[Contributor],
        comments: list[dict[str, Any]],
        token: str,
    ) -> bool:
        """Comment on the unsigned set unless a bot comment already lists it."""
        if not unsigned:
            return False

        digest = unsigned_digest(unsigned)
        for comment in self._bot_comments(comments):
            body = str(comment.get("body") or "")
            if COMMENT_MARKER in body and extract_digest(body) == digest:
                logger.debug("%s already has a comment for this unsigned set", pull_request)
                return False

        organization = self._config.organization
        internal = {c for c in unsigned if organization.is_internal_email(c.email)}
        body = format_missing_comment(
            unsigned,
            internal,
            sign_url=self._sign_url(pull_request.base, pull_request.number),
            internal_instructions_url=organization.internal_instructions_url,
        )
        await self._client.comment_on_issue(
            pull_request.base, pull_request.number, body, token
        )
        return True

    def _bot_comments(self, comments: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Comments authored by the App: its configured login, else any bot account."""
        if self._bot_logins:
            own = {login.lower() for login in self._bot_logins}
            return [
                c for c in comments
                if str((c.get("user") or {}).get("login", "")).lower() in own
            ]
        return [c for c in comments if is_bot_account(c.get("user"))]

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    async def validate(self, pull_request: PullRequest, token: str) -> ValidationResult:
        """Validate one pull request and apply status, label and comment.

        Everything is read and decided before the first write, so an error
        while gathering leaves the pull request untouched.
        """
        repo, number = pull_request.base, pull_request.number

        commits = await self._client.pull_request_commits(repo, number, token)
        contributors = self._resolver.resolve_all(commits) - self._resolver.bots(commits)
        external = await self.external_contributors(pull_request, contributors, token)
        unsigned = await self.unsigned_contributors(external)
        status = self.decide(pull_request, unsigned)

        try:
            present = {str(label["name"]) for label in await self._client.issue_labels(
                repo, number, token
            )}
        except (KeyError, TypeError) as exc:
            raise ValidationError(f"Malformed labels for {pull_request}") from exc
        comments = await self._client.issue_comments(repo, number, token)

        response = await self._client.create_status(
            repo, pull_request.head_sha, status, token
        )
        await self._apply_labels(pull_request, status.state, present, token)
        commented = await self._apply_comment(pull_request, unsigned, comments, token)

        logger.info(
            "%s: %s (%d external, %d unsigned)",
            pull_request,
            status.state.value,
            len(external),
            len(unsigned),
        )
        return ValidationResult(
            pull_request=pull_request,
            status=status,
            response=response,
            external=external,
            unsigned=unsigned,
            commented=commented,
        )

    async def validate_pull_requests(
        self, pull_requests: dict[PullRequest, str]
    ) -> dict[PullRequest, ValidationResult | BaseException]:
        """Validate many pull requests concurrently, each with its own token.

        A failure in one pipeline is returned for that pull request and does
        not abort the others.
        """
        ordered = list(pull_requests.items())
        outcomes = await asyncio.gather(
            *(self.validate(pr, token) for pr, token in ordered),
            return_exceptions=True,
        )
        return self._collect([pr for pr, _ in ordered], outcomes)

    async def validate_installation_pull_requests(
        self,
        pull_requests: Iterable[PullRequest],
        authenticator: AppAuthenticator,
    ) -> dict[PullRequest, ValidationResult | BaseException]:
        """Validate discovered pull requests using their installation's token."""

        async def run(pull_request: PullRequest) -> ValidationResult:
            if pull_request.installation_id is None:
                raise ValidationError(f"{pull_request} has no installation id")
            token = await authenticator.installation_token(pull_request.installation_id)
            return await self.validate(pull_request, token.token)

        ordered = list(pull_requests)
        outcomes = await asyncio.gather(
            *(run(pr) for pr in ordered), return_exceptions=True
        )
        return self._collect(ordered, outcomes)

    @staticmethod
    def _collect(
        ordered: list[PullRequest],
        outcomes: list[ValidationResult | BaseException],
    ) -> dict[PullRequest, ValidationResult | BaseException]:
        results: dict[PullRequest, ValidationResult | BaseException] = {}
        for pull_request, outcome in zip(ordered, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Validation of %s failed: %s", pull_request, outcome, exc_info=outcome
                )
            results[pull_request] = outcome
        return results
