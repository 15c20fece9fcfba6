"""Bounded polling for GitHub's eventual consistency.

Freshly created repositories, branches and pull requests can take a moment
to become visible.  The validator never waits; callers that need to (tests,
scripts) poll with :func:`poll_until`.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

from cla_bot.exceptions import NotFoundError, PollTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def poll_until(
    fetch: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool] = lambda _result: True,
    *,
    description: str = "condition",
    max_tries: int = 10,
    delay: float = 1.0,
) -> T:
    """Await *fetch* until *predicate* accepts its result.

    A :class:`NotFoundError` counts as "not yet"; any other error
    propagates.

    Raises:
        PollTimeoutError: After *max_tries* unsuccessful attempts.
    """
    for attempt in range(1, max_tries + 1):
        try:
            result = await fetch()
        except NotFoundError:
            logger.debug("%s not visible yet (try %d/%d)", description, attempt, max_tries)
        else:
            if predicate(result):
                return result
            logger.debug("%s not met yet (try %d/%d)", description, attempt, max_tries)
        if attempt < max_tries:
            await asyncio.sleep(delay)
    raise PollTimeoutError(description, max_tries)
