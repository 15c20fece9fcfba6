"""Click-based CLI for CLA Bot."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Coroutine
from typing import Any, TypeVar

import click

from cla_bot.auth import AppAuthenticator
from cla_bot.config import ClaBotConfig, load_config
from cla_bot.discovery import PullRequestDiscovery
from cla_bot.exceptions import ClaBotError, RateLimitError
from cla_bot.github_client import GitHubClient
from cla_bot.models import InstallationToken, OwnerRepo, PullRequest, ValidationResult
from cla_bot.polling import poll_until
from cla_bot.signatures import StaticSignatureLookup, load_signatures
from cla_bot.validator import PullRequestValidator

T = TypeVar("T")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s: %(name)s: %(message)s",
    )


def _load_config(path: str | None) -> ClaBotConfig:
    try:
        return load_config(path)
    except ClaBotError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning library errors into a clean exit."""
    try:
        return asyncio.run(coro)
    except RateLimitError as exc:
        click.echo(
            f"Error: rate limit exhausted, retry in {exc.retry_after:.0f}s.", err=True
        )
        sys.exit(1)
    except ClaBotError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


@click.group()
@click.version_option(package_name="cla-bot")
def main() -> None:
    """CLA Bot - Contributor License Agreement checks for pull requests."""


@main.command()
@click.argument("repo")
@click.argument("number", type=int)
@click.option("--installation-id", type=int, required=True, help="App installation id")
@click.option(
    "--signers",
    "signers_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False),
    help="YAML file listing CLA signatures",
)
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--wait", is_flag=True, help="Wait for a new pull request to become visible")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def validate(
    repo: str,
    number: int,
    installation_id: int,
    signers_path: str,
    config_path: str | None,
    wait: bool,
    verbose: bool,
) -> None:
    """Validate a single pull request and update its status, label and comment."""
    _setup_logging(verbose)
    try:
        owner_repo = OwnerRepo.parse(repo)
        lookup = StaticSignatureLookup(load_signatures(signers_path))
        config = load_config(config_path)
    except (ValueError, ClaBotError) as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    result = _run(_validate(config, owner_repo, number, installation_id, lookup, wait))

    click.echo(f"{result.pull_request}: {result.status.state.value}")
    for contributor in sorted(c.display() for c in result.unsigned):
        click.echo(f"  unsigned: {contributor}")


async def _validate(
    config: ClaBotConfig,
    owner_repo: OwnerRepo,
    number: int,
    installation_id: int,
    lookup: StaticSignatureLookup,
    wait: bool,
) -> ValidationResult:
    async with GitHubClient(config=config) as client:
        authenticator = AppAuthenticator(config, client)
        token = (await authenticator.installation_token(installation_id)).token

        async def fetch() -> dict[str, object]:
            return await client.get_pull_request(owner_repo, number, token)

        if wait:
            payload = await poll_until(fetch, description=f"{owner_repo}#{number}")
        else:
            payload = await fetch()

        pull_request = PullRequest.from_payload(payload, installation_id=installation_id)
        validator = PullRequestValidator(client, config, lookup)
        return await validator.validate(pull_request, token)


@main.command()
@click.option("--user", default=None, help="Only pull requests involving this login")
@click.option("--config", "config_path", default=None, help="Config file path")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def pending(
    user: str | None,
    config_path: str | None,
    output_json: bool,
    verbose: bool,
) -> None:
    """List open pull requests whose CLA status is not yet success."""
    _setup_logging(verbose)
    config = _load_config(config_path)
    found = _run(_pending(config, user))

    ordered = sorted(found, key=lambda pr: (str(pr.base).lower(), pr.number))
    if output_json:
        click.echo(json.dumps([pr.model_dump(mode="json") for pr in ordered], indent=2))
    else:
        for pull_request in ordered:
            click.echo(f"{pull_request} ({pull_request.head_sha[:7]})")


async def _pending(config: ClaBotConfig, user: str | None) -> set[PullRequest]:
    async with GitHubClient(config=config) as client:
        authenticator = AppAuthenticator(config, client)
        discovery = PullRequestDiscovery(client, authenticator, config)
        return await discovery.pending_validation(user)


@main.command()
@click.argument("installation_id", type=int)
@click.option("--config", "config_path", default=None, help="Config file path")
def token(installation_id: int, config_path: str | None) -> None:
    """Print an installation access token and its expiry."""
    config = _load_config(config_path)

    async def fetch() -> InstallationToken:
        async with GitHubClient(config=config) as client:
            return await AppAuthenticator(config, client).installation_token(installation_id)

    result = _run(fetch())
    click.echo(f"{result.token}\t{result.expires_at.isoformat()}")
