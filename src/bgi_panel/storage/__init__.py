"""SQLite persistence: SQLModel tables, engine policy and migrations."""
