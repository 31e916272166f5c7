"""Whitelisted access to game account columns, including ones added at runtime."""

from __future__ import annotations

import re
from typing import Any

from sqlalchemy import Connection, MetaData, Table, select
from sqlalchemy import update as sa_update

from bgi_panel.errors import InvalidFieldKeyError, UnknownFieldError

ACCOUNT_TABLE = "game_accounts"
FIELD_KEY_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

# Identity and credential columns never travel through key/value access.
PROTECTED_FIELDS = frozenset({"id", "user_id", "game_password_encrypted"})
# Dropped from the settings block returned with a claimed task.
CLAIM_HIDDEN_FIELDS = frozenset({"id", "user_id", "game_password_encrypted", "settings_json"})


class AccountFields:
    """Reflects the live ``game_accounts`` table on each call.

    Administrators add columns without a deploy, so the whitelist is the current column
    set minus protected fields, read inside the caller's transaction.
    """

    def __init__(self, connection: Connection) -> None:
        self._table = Table(ACCOUNT_TABLE, MetaData(), autoload_with=connection)
        self._connection = connection

    @property
    def known_fields(self) -> frozenset[str]:
        return frozenset(column.name for column in self._table.columns) - PROTECTED_FIELDS

    def read_row(self, account_id: int) -> dict[str, Any] | None:
        row = (
            self._connection.execute(
                select(self._table).where(self._table.c.id == account_id),
            )
            .mappings()
            .one_or_none()
        )
        return dict(row) if row is not None else None

    def get_value(self, account_id: int, key: str) -> Any:
        column = self._table.c[self.validate_key(key)]
        return self._connection.execute(
            select(column).where(self._table.c.id == account_id),
        ).scalar_one_or_none()

    def set_value(self, account_id: int, key: str, value: Any) -> int:
        column_name = self.validate_key(key)
        result = self._connection.execute(
            sa_update(self._table)
            .where(self._table.c.id == account_id)
            .values({column_name: value}),
        )
        return result.rowcount

    def validate_key(self, key: str) -> str:
        if not FIELD_KEY_PATTERN.match(key):
            raise InvalidFieldKeyError(f"Invalid field key: {key!r}")
        if key not in self.known_fields:
            raise UnknownFieldError(
                f"Field {key!r} does not exist on game accounts; "
                "an administrator has to add it first.",
            )
        return key


def claim_settings(row: dict[str, Any]) -> dict[str, Any]:
    """Account fields handed to the agent alongside a claimed task."""

    return {key: value for key, value in row.items() if key not in CLAIM_HIDDEN_FIELDS}
