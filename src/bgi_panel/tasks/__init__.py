"""Daily task lifecycle: generation, overdue sweep, claim and completion.

Agents poll for work, so the queue lives in the same SQLite database as the game
accounts it serves. Every state change is a single transaction guarded by a
conditional UPDATE; the database is the only lock.
"""
