"""Vote ledger error taxonomy.

InvalidChoice and TopicUnavailable are business errors and are not worth
retrying. TransientStoreError means the store could not settle the
transaction within the bounded attempt count; the whole call is safe to
retry because submissions are idempotent per (fid, topic, choice).
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for vote ledger errors."""

    retryable: bool = False


class InvalidChoice(LedgerError, ValueError):
    """The submitted choice is not one of the two option tokens."""

    def __init__(self, choice: object) -> None:
        super().__init__(f"Choice must be either A or B, got {choice!r}")
        self.choice = choice


class TopicUnavailable(LedgerError, LookupError):
    """The topic does not exist or is not currently open for voting."""

    def __init__(self, topic_id: int) -> None:
        super().__init__(f"Topic {topic_id} not found or inactive")
        self.topic_id = topic_id


class TransientStoreError(LedgerError):
    """Lock contention or timeout outlasted the retry budget."""

    retryable = True

    def __init__(self, attempts: int, cause: BaseException | None = None) -> None:
        super().__init__(f"Vote could not be committed after {attempts} attempt(s)")
        self.attempts = attempts
        self.__cause__ = cause
