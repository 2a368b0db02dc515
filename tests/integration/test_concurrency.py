"""Concurrent submissions: one row per pair, no lost updates, unique grants."""

import asyncio
from collections import Counter
from datetime import datetime, timezone

import pytest

from ballot.ledger.coordinator import VoteOutcome, submit_vote
from tests.helpers import (
    achievement_id,
    add_definition,
    count_votes,
    create_topic,
    grant_count,
    streak_row,
    topic_tally,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class TestSamePair:
    @pytest.mark.asyncio
    async def test_identical_submissions_record_once(self, ledger):
        topic = await create_topic(ledger)

        results = await asyncio.gather(
            *(submit_vote(ledger, 7, topic, "A", now=NOW) for _ in range(20))
        )

        outcomes = Counter(r.outcome for r in results)
        assert outcomes[VoteOutcome.RECORDED] == 1
        assert outcomes[VoteOutcome.UNCHANGED] == 19
        assert await count_votes(ledger, topic) == 1
        assert await topic_tally(ledger, topic) == (1, 0)
        row = await streak_row(ledger, 7)
        assert row.total_votes == 1
        assert row.current_streak == 1

    @pytest.mark.asyncio
    async def test_fifty_identical_submissions_grant_once(self, ledger):
        first_ballot = await add_definition(ledger, "First Ballot", "votes", 1)
        trendsetter = await achievement_id(ledger, "Trendsetter")
        topic = await create_topic(ledger)

        results = await asyncio.gather(
            *(submit_vote(ledger, 8, topic, "B", now=NOW) for _ in range(50))
        )

        granted = Counter(g for r in results for g in r.newly_granted)
        assert granted[first_ballot] == 1
        assert granted[trendsetter] == 1
        assert await grant_count(ledger, 8, first_ballot) == 1
        assert await grant_count(ledger, 8, trendsetter) == 1
        assert sum(r.outcome == VoteOutcome.RECORDED for r in results) == 1
        assert await count_votes(ledger, topic) == 1
        assert await topic_tally(ledger, topic) == (0, 1)
        assert (await streak_row(ledger, 8)).total_votes == 1

    @pytest.mark.asyncio
    async def test_racing_opposite_choices_settle_on_one_row(self, ledger):
        topic = await create_topic(ledger)

        results = await asyncio.gather(
            *(submit_vote(ledger, 7, topic, "AB"[i % 2], now=NOW) for i in range(10))
        )

        assert sum(r.outcome == VoteOutcome.RECORDED for r in results) == 1
        assert await count_votes(ledger, topic) == 1
        votes_a, votes_b = await topic_tally(ledger, topic)
        assert votes_a + votes_b == 1
        assert (await streak_row(ledger, 7)).total_votes == 1


class TestManyTopics:
    @pytest.mark.asyncio
    async def test_fifty_votes_grant_each_achievement_once(self, ledger):
        first_ballot = await add_definition(ledger, "First Ballot", "votes", 1)
        power_voter = await achievement_id(ledger, "Power Voter")
        topics = [await create_topic(ledger, f"Left{i} vs Right{i}") for i in range(50)]

        results = await asyncio.gather(
            *(submit_vote(ledger, 99, topic, "B", now=NOW) for topic in topics)
        )

        assert all(r.outcome == VoteOutcome.RECORDED for r in results)
        granted = Counter(g for r in results for g in r.newly_granted)
        assert granted[first_ballot] == 1
        assert granted[power_voter] == 1
        assert await grant_count(ledger, 99, first_ballot) == 1
        assert await grant_count(ledger, 99, power_voter) == 1

        row = await streak_row(ledger, 99)
        assert row.total_votes == 50
        assert row.current_streak == 1
        assert row.longest_streak == 1

    @pytest.mark.asyncio
    async def test_many_users_same_topic_lose_no_increments(self, ledger):
        topic = await create_topic(ledger)

        await asyncio.gather(
            *(submit_vote(ledger, fid, topic, "A" if fid % 3 else "B", now=NOW) for fid in range(1, 31))
        )

        assert await count_votes(ledger, topic) == 30
        assert await topic_tally(ledger, topic) == (20, 10)


class TestConcurrentChanges:
    @pytest.mark.asyncio
    async def test_flip_flopping_conserves_tally(self, ledger):
        topic = await create_topic(ledger)
        fids = list(range(1, 11))
        for fid in fids:
            await submit_vote(ledger, fid, topic, "A", now=NOW)

        await asyncio.gather(
            *(
                submit_vote(ledger, fid, topic, "AB"[(fid + i) % 2], now=NOW)
                for fid in fids
                for i in range(4)
            )
        )

        votes_a, votes_b = await topic_tally(ledger, topic)
        assert votes_a + votes_b == 10
        assert votes_a == await count_votes(ledger, topic, "A")
        assert votes_b == await count_votes(ledger, topic, "B")
        for fid in fids:
            assert (await streak_row(ledger, fid)).total_votes == 1
