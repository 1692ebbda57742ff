"""Roles that users may hold."""

from __future__ import annotations

import sqlite3
from dataclasses import asdict, dataclass

from .common import Context, ModelError, count, delete_rows, insert, select_rows, update_fields

_TABLE = "role"
_COLUMNS = ("name", "note")


@dataclass
class Role:
    id: int = 0
    name: str = ""
    note: str = ""

    def add(self, ctx: Context) -> None:
        try:
            existing = role_get(ctx, "name = ?", self.name)
        except sqlite3.Error as exc:
            raise ModelError(f"failed to query user: {exc}") from exc
        if existing is not None:
            raise ModelError("role name already exists")
        fields = asdict(self)
        fields.pop("id")
        self.id = insert(ctx, _TABLE, fields)

    def delete(self, ctx: Context) -> None:
        delete_rows(ctx, _TABLE, "id = ?", self.id)

    def update(self, ctx: Context, *args: str) -> None:
        """Write the named fields, or every field when given "*"."""
        names = _COLUMNS if "*" in args else args
        update_fields(ctx, _TABLE, self.id, {n: getattr(self, n) for n in names})


def role_gets(ctx: Context, where: str = "", *args) -> list[Role]:
    try:
        rows = select_rows(ctx, _TABLE, where, *args)
    except sqlite3.Error as exc:
        raise ModelError(f"failed to query roles: {exc}") from exc
    return [Role(**row) for row in rows]


def role_gets_all(ctx: Context) -> list[Role]:
    return role_gets(ctx, "")


def role_get(ctx: Context, where: str, *args) -> Role | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    return Role(**rows[0]) if rows else None


def role_count(ctx: Context, where: str = "", *args) -> int:
    return count(ctx, _TABLE, where, *args)