"""Vote ingestion and gamification ledger."""
