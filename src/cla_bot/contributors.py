"""Resolve commit authors into contributors."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from cla_bot.exceptions import ValidationError
from cla_bot.models import Contributor, UnknownCommitter, User


def is_bot_account(account: dict[str, Any] | None, bot_logins: Iterable[str] = ()) -> bool:
    """Whether a GitHub account payload belongs to a bot.

    Only GitHub's own ``type`` flag counts, or an exact match against one of
    *bot_logins*.  Login lookalikes such as ``renovate-fan`` are humans.
    """
    if not account or not account.get("login"):
        return False
    if account.get("type") == "Bot":
        return True
    login = str(account["login"]).lower()
    return any(login == known.lower() for known in bot_logins)


class ContributorResolver:
    """Maps raw commit records from the pull request commits API to contributors.

    *bot_logins* are accounts treated as bots even when GitHub does not flag
    them, typically the App's own ``name[bot]`` login.
    """

    def __init__(self, bot_logins: Iterable[str] = ()) -> None:
        self._bot_logins = frozenset(login.lower() for login in bot_logins)

    def resolve(self, commit: dict[str, Any]) -> Contributor:
        """Resolve one commit's author.

        A commit linked to a GitHub account yields a :class:`User` carrying
        whatever name and email the commit exposes; otherwise the commit
        metadata alone yields an :class:`UnknownCommitter`.
        """
        try:
            git_author = (commit.get("commit") or {}).get("author") or {}
            account = commit.get("author")
        except AttributeError as exc:
            raise ValidationError(f"Malformed commit payload: {commit!r}") from exc

        name = git_author.get("name") or None
        email = git_author.get("email") or None

        if account and account.get("login"):
            return User(username=account["login"], name=name, email=email)
        return UnknownCommitter(name=name, email=email)

    def resolve_all(self, commits: Iterable[dict[str, Any]]) -> set[Contributor]:
        return {self.resolve(commit) for commit in commits}

    def bots(self, commits: Iterable[dict[str, Any]]) -> set[Contributor]:
        """Contributors among *commits* whose GitHub account is a bot."""
        return {
            self.resolve(commit)
            for commit in commits
            if is_bot_account(commit.get("author"), self._bot_logins)
        }
