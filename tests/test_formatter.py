"""Tests for status descriptions and bot comments."""

from __future__ import annotations

from cla_bot.formatter import (
    COMMENT_MARKER,
    extract_digest,
    format_missing_comment,
    status_description,
    unsigned_digest,
)
from cla_bot.models import CommitState, UnknownCommitter, User

SIGN_URL = "https://cla.example.com/sign"


class TestStatusDescription:
    def test_success(self) -> None:
        assert "signed" in status_description(CommitState.SUCCESS)

    def test_failure_counts(self) -> None:
        assert status_description(CommitState.FAILURE, 1) == "1 contributor must sign the CLA"
        assert status_description(CommitState.FAILURE, 3) == "3 contributors must sign the CLA"

    def test_pending(self) -> None:
        assert "Checking" in status_description(CommitState.PENDING)


class TestDigest:
    def test_order_independent(self) -> None:
        a = {User(username="a"), UnknownCommitter(name="b", email="b@x.com")}
        b = {UnknownCommitter(name="b", email="b@x.com"), User(username="A")}
        assert unsigned_digest(a) == unsigned_digest(b)

    def test_differs_for_different_sets(self) -> None:
        assert unsigned_digest({User(username="a")}) != unsigned_digest({User(username="b")})

    def test_round_trips_through_comment(self) -> None:
        unsigned = {User(username="outsider")}
        body = format_missing_comment(unsigned, set(), SIGN_URL)
        assert extract_digest(body) == unsigned_digest(unsigned)

    def test_no_digest(self) -> None:
        assert extract_digest("just a human comment") is None


class TestMissingComment:
    def test_lists_external_contributors(self) -> None:
        body = format_missing_comment(
            {User(username="outsider"), UnknownCommitter(email="asdf@foo.bar.com")},
            set(),
            SIGN_URL,
        )
        assert body.startswith(COMMENT_MARKER)
        assert "- @outsider" in body
        assert "- a***@f***.b***.com" in body
        assert SIGN_URL in body
        assert "asdf@foo.bar.com" not in body

    def test_internal_committers_get_instructions(self) -> None:
        internal = UnknownCommitter(name="Dev", email="dev@acme.com")
        body = format_missing_comment(
            {internal}, {internal}, SIGN_URL, "https://wiki.acme.com/cla"
        )
        assert "It looks like Dev is an internal user" in body
        assert "https://wiki.acme.com/cla" in body
        assert SIGN_URL not in body

    def test_internal_user_without_instructions_url(self) -> None:
        user = User(username="dev", email="dev@acme.com")
        body = format_missing_comment({user}, {user}, SIGN_URL)
        assert "It looks like @dev is an internal user" in body
        assert "administrators" in body

    def test_mixed(self) -> None:
        internal = User(username="dev", email="dev@acme.com")
        external = User(username="outsider")
        body = format_missing_comment(
            {internal, external}, {internal}, SIGN_URL, "https://wiki.acme.com/cla"
        )
        assert "- @outsider" in body
        assert "- @dev" not in body
        assert "@dev is an internal user" in body
