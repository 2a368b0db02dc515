"""Vote ledger: tallies, streaks and achievements in one transaction."""
