"""Text shown on pull requests: status descriptions and bot comments."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterable

from cla_bot.models import CommitState, Contributor

COMMENT_MARKER = "<!-- cla-bot -->"

_DIGEST_RE = re.compile(r"<!-- cla-bot:unsigned=([0-9a-f]+) -->")


def status_description(state: CommitState, unsigned_count: int = 0) -> str:
    """Human description for the commit status."""
    if state == CommitState.SUCCESS:
        return "All contributors have signed the CLA or are internal"
    if state == CommitState.FAILURE:
        noun = "contributor" if unsigned_count == 1 else "contributors"
        return f"{unsigned_count} {noun} must sign the CLA"
    return "Checking whether contributors have signed the CLA"


def unsigned_digest(unsigned: Iterable[Contributor]) -> str:
    """Stable fingerprint of an unsigned-contributor set.

    Embedded in comments instead of the identities themselves so that raw
    comment bodies do not leak committer emails.
    """
    keys = sorted(c.identity_key for c in unsigned)
    return hashlib.sha256("\n".join(keys).encode()).hexdigest()[:16]


def extract_digest(body: str) -> str | None:
    """The unsigned-set fingerprint of a bot comment, if it has one."""
    match = _DIGEST_RE.search(body)
    return match.group(1) if match else None


def _sorted_display(contributors: Iterable[Contributor]) -> list[str]:
    return sorted(c.display() for c in contributors)


def format_missing_comment(
    unsigned: set[Contributor],
    internal: set[Contributor],
    sign_url: str,
    internal_instructions_url: str | None = None,
) -> str:
    """Comment listing who still has to sign.

    *internal* is the subset of *unsigned* whose email belongs to the
    organization's domain; they are pointed at the internal instructions
    rather than the public form.
    """
    external = unsigned - internal
    lines: list[str] = [
        COMMENT_MARKER,
        f"<!-- cla-bot:unsigned={unsigned_digest(unsigned)} -->",
        "Thanks for the contribution! Before we can merge this pull request,"
        " the following contributors need to sign our Contributor License"
        " Agreement:",
        "",
    ]

    if external:
        for display in _sorted_display(external):
            lines.append(f"- {display}")
        lines.append("")
        lines.append(f"Sign the CLA here: {sign_url}")
        lines.append("")

    for display in _sorted_display(internal):
        if internal_instructions_url:
            lines.append(
                f"It looks like {display} is an internal user. Please follow the"
                f" internal signing instructions: {internal_instructions_url}"
            )
        else:
            lines.append(
                f"It looks like {display} is an internal user. Please contact"
                " your organization's administrators to sign the CLA."
            )
        lines.append("")

    lines.append(
        "Commits authored by an email that is not linked to a GitHub account"
        " cannot be matched to a signature; add the email to your GitHub"
        " account and the check will be re-run."
    )
    return "\n".join(lines)
