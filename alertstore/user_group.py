"""User groups (teams)."""

from __future__ import annotations

import sqlite3
import time
from dataclasses import dataclass, field

from .common import (
    Context,
    ModelError,
    Statistics,
    count,
    delete_rows,
    insert,
    is_dangerous,
    select_rows,
    statistics,
    update_fields,
)
from .user_group_member import user_group_member_del

_TABLE = "user_group"
_COLUMNS = ("name", "note", "create_at", "create_by", "update_at", "update_by")


@dataclass
class UserGroup:
    id: int = 0
    name: str = ""
    note: str = ""
    create_at: int = 0
    create_by: str = ""
    update_at: int = 0
    update_by: str = ""
    user_ids: list[int] = field(default_factory=list)

    def verify(self) -> None:
        if is_dangerous(self.name):
            raise ModelError("Name has invalid characters")
        if is_dangerous(self.note):
            raise ModelError("Note has invalid characters")

    def update(self, ctx: Context, *args: str) -> None:
        """Write the named fields, or every field when given "*"."""
        self.verify()
        names = _COLUMNS if "*" in args else args
        update_fields(ctx, _TABLE, self.id, {n: getattr(self, n) for n in names})

    def add(self, ctx: Context) -> None:
        self.verify()
        try:
            num = user_group_count(ctx, "name = ?", self.name)
        except sqlite3.Error as exc:
            raise ModelError(f"failed to count user-groups: {exc}") from exc
        if num > 0:
            raise ModelError("UserGroup already exists")
        now = int(time.time())
        self.create_at = now
        self.update_at = now
        self.id = insert(ctx, _TABLE, {n: getattr(self, n) for n in _COLUMNS})

    def delete(self, ctx: Context) -> None:
        with ctx.transaction():
            delete_rows(ctx, "user_group_member", "group_id = ?", self.id)
            delete_rows(ctx, _TABLE, "id = ?", self.id)

    def del_members(self, ctx: Context, user_ids: list[int]) -> None:
        user_group_member_del(ctx, self.id, user_ids)


def user_group_count(ctx: Context, where: str = "", *args) -> int:
    return count(ctx, _TABLE, where, *args)


def user_group_get(ctx: Context, where: str, *args) -> UserGroup | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    return UserGroup(**rows[0]) if rows else None


def user_group_get_by_id(ctx: Context, id: int) -> UserGroup | None:
    return user_group_get(ctx, "id = ?", id)


def user_group_get_by_ids(ctx: Context, ids: list[int]) -> list[UserGroup]:
    if not ids:
        return []
    return [UserGroup(**row) for row in select_rows(ctx, _TABLE, "id in ?", ids, order="name")]


def user_group_get_all(ctx: Context) -> list[UserGroup]:
    return [UserGroup(**row) for row in select_rows(ctx, _TABLE)]


def user_group_statistics(ctx: Context) -> Statistics:
    return statistics(ctx, _TABLE)