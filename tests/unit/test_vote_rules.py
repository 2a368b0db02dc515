"""Input validation, topic windows, transient error classification, rule table."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from ballot.db.models import Topic
from ballot.ledger.achievements import RULES, VoteContext
from ballot.ledger.coordinator import is_transient_error, validate_choice
from ballot.ledger.errors import InvalidChoice, TopicUnavailable, TransientStoreError
from ballot.ledger.tally import TallySnapshot
from ballot.ledger.vote_store import is_topic_open

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestValidateChoice:
    @pytest.mark.parametrize("choice", ["A", "B"])
    def test_valid_tokens(self, choice):
        assert validate_choice(choice) == choice

    @pytest.mark.parametrize("choice", ["a", "C", "", " A", None, 1])
    def test_invalid_tokens(self, choice):
        with pytest.raises(InvalidChoice):
            validate_choice(choice)


class TestTopicWindow:
    def _topic(self, **kwargs) -> Topic:
        defaults = {
            "name": "Coffee vs Tea",
            "option_a": "Coffee",
            "option_b": "Tea",
            "is_active": True,
            "start_date": NOW - timedelta(hours=1),
            "end_date": None,
        }
        defaults.update(kwargs)
        return Topic(**defaults)

    def test_active_and_started_is_open(self):
        assert is_topic_open(self._topic(), NOW) is True

    def test_inactive_is_closed(self):
        assert is_topic_open(self._topic(is_active=False), NOW) is False

    def test_not_started_is_closed(self):
        assert is_topic_open(self._topic(start_date=NOW + timedelta(minutes=1)), NOW) is False

    def test_past_end_date_is_closed(self):
        assert is_topic_open(self._topic(end_date=NOW - timedelta(seconds=1)), NOW) is False

    def test_end_date_is_inclusive(self):
        assert is_topic_open(self._topic(end_date=NOW), NOW) is True

    def test_naive_dates_are_treated_as_utc(self):
        naive_start = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert is_topic_open(self._topic(start_date=naive_start), NOW) is True


class TestTransientErrors:
    def test_operational_error_is_transient(self):
        exc = OperationalError("BEGIN IMMEDIATE", {}, Exception("database is locked"))
        assert is_transient_error(exc) is True

    def test_integrity_error_is_transient(self):
        exc = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
        assert is_transient_error(exc) is True

    def test_pool_timeout_is_transient(self):
        assert is_transient_error(PoolTimeoutError()) is True

    def test_sqlstate_deadlock_is_transient(self):
        class _PgError(Exception):
            sqlstate = "40P01"

        exc = ProgrammingError("UPDATE", {}, _PgError())
        assert is_transient_error(exc) is True

    def test_syntax_error_is_not_transient(self):
        class _PgError(Exception):
            sqlstate = "42601"

        exc = ProgrammingError("SELEC", {}, _PgError())
        assert is_transient_error(exc) is False

    def test_plain_exception_is_not_transient(self):
        assert is_transient_error(ValueError("nope")) is False


class TestErrorTaxonomy:
    def test_only_transient_is_retryable(self):
        assert InvalidChoice("C").retryable is False
        assert TopicUnavailable(1).retryable is False
        assert TransientStoreError(3).retryable is True

    def test_transient_keeps_cause(self):
        cause = OperationalError("x", {}, Exception("locked"))
        err = TransientStoreError(5, cause)
        assert err.attempts == 5
        assert err.__cause__ is cause


class TestRuleTable:
    def test_core_types_have_rules(self):
        for type_ in ("votes", "streak", "social", "categories"):
            assert type_ in RULES

    def test_votes_and_streak_use_ge(self):
        assert RULES["votes"].metric == "total_votes"
        assert RULES["streak"].metric == "current_streak"
        assert RULES["votes"].comparator(10, 10) is True
        assert RULES["streak"].comparator(2, 3) is False

    def test_vote_context_flags(self):
        early = VoteContext(topic_id=1, choice="A", tally=TallySnapshot(1, 3, 2))
        assert early.is_early is True
        assert early.is_rare is False

        rare = VoteContext(topic_id=1, choice="B", tally=TallySnapshot(1, 16, 5))
        assert rare.is_early is False
        assert rare.is_rare is True
