"""Organization membership lookups."""

from __future__ import annotations

import asyncio
import logging

from cla_bot.exceptions import NotFoundError
from cla_bot.github_client import GitHubClient
from cla_bot.models import Contributor, Owner, User

logger = logging.getLogger(__name__)


class MembershipOracle:
    """Answers "is this contributor a member of that organization?".

    Queried with an installation token, so private members are visible as
    well as public ones.  Member lists are remembered for the lifetime of
    the oracle; create one per batch run.
    """

    def __init__(self, client: GitHubClient) -> None:
        self._client = client
        self._members: dict[Owner, set[User]] = {}
        self._locks: dict[Owner, asyncio.Lock] = {}

    async def members(self, org: Owner, token: str) -> set[User]:
        """Members of *org*.

        A personal account is not an organization; its only member is the
        account itself.
        """
        lock = self._locks.setdefault(org, asyncio.Lock())
        async with lock:
            if org in self._members:
                return self._members[org]

            try:
                payload = await self._client.org_members(org.name, token)
                members = {User(username=m["login"]) for m in payload if m.get("login")}
            except NotFoundError:
                logger.debug("%s is not an organization, treating as a user", org)
                members = {User(username=org.name)}

            self._members[org] = members
            return members

    async def is_member(self, org: Owner, contributor: Contributor, token: str) -> bool:
        if not isinstance(contributor, User):
            return False
        return contributor in await self.members(org, token)
