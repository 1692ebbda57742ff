"""Membership of users in user groups."""

from __future__ import annotations

from dataclasses import dataclass

from .common import Context, count, delete_rows, insert, select_rows

_TABLE = "user_group_member"


@dataclass
class UserGroupMember:
    group_id: int = 0
    user_id: int = 0


def my_group_ids(ctx: Context, user_id: int) -> list[int]:
    rows = select_rows(ctx, _TABLE, "user_id = ?", user_id, columns=["group_id"])
    return [row["group_id"] for row in rows]


def member_ids(ctx: Context, group_id: int) -> list[int]:
    rows = select_rows(ctx, _TABLE, "group_id = ?", group_id, columns=["user_id"])
    return [row["user_id"] for row in rows]


def user_group_member_count(ctx: Context, where: str = "", *args) -> int:
    return count(ctx, _TABLE, where, *args)


def user_group_member_add(ctx: Context, group_id: int, user_id: int) -> None:
    """Add a member unless already present."""
    if user_group_member_count(ctx, "user_id = ? and group_id = ?", user_id, group_id) > 0:
        return
    insert(ctx, _TABLE, {"group_id": group_id, "user_id": user_id})


def user_group_member_del(ctx: Context, group_id: int, user_ids: list[int]) -> None:
    if not user_ids:
        return
    delete_rows(ctx, _TABLE, "group_id = ? and user_id in ?", group_id, user_ids)


def user_group_member_get_all(ctx: Context) -> list[UserGroupMember]:
    return [UserGroupMember(**row) for row in select_rows(ctx, _TABLE)]