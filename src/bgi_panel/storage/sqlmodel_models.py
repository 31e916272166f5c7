"""SQLModel ORM tables for game accounts and their daily tasks."""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, Index, Integer, Text, true
from sqlmodel import Field, SQLModel


class GameAccount(SQLModel, table=True):
    """Automatable account owned by an end user.

    Rows are created and edited by the account management layer; the task engine only
    reads them, forwards reported game data, and writes whitelisted fields on behalf of
    agents. Administrators may add columns at runtime, so code that needs the full field
    set reflects the live table instead of relying on this class.
    """

    __tablename__ = "game_accounts"  # type: ignore[bad-override]

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(index=True)
    game_type: str = Field(index=True)
    game_username: str
    game_password_encrypted: str | None = Field(default=None, sa_column=Column(Text))
    settings_json: str | None = Field(default=None, sa_column=Column(Text))
    is_enabled: bool = Field(
        default=True,
        sa_column_kwargs={"server_default": true()},
    )
    game_data_json: str | None = Field(default=None, sa_column=Column(Text))
    last_game_data_sync: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )


class DailyTask(SQLModel, table=True):
    __tablename__ = "daily_tasks"  # type: ignore[bad-override]
    __table_args__ = (Index("ix_daily_tasks_account_date", "game_account_id", "task_date"),)

    id: int | None = Field(default=None, primary_key=True)
    game_account_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("game_accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
    )
    task_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    status: str = Field(default="PENDING", index=True)
    log_details: str | None = Field(default=None, sa_column=Column(Text))
    started_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    completed_at: datetime | None = Field(
        default=None,
        sa_column=Column(DateTime(timezone=True), nullable=True),
    )
    retry_count: int = 0
    claim_generation: int = 0
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
