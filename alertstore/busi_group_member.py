"""Membership of user groups in business groups."""

from __future__ import annotations

from dataclasses import dataclass

from .common import Context, count, delete_rows, insert, select_rows

_TABLE = "busi_group_member"


@dataclass
class BusiGroupMember:
    busi_group_id: int = 0
    user_group_id: int = 0
    perm_flag: str = ""


def busi_group_ids(
    ctx: Context, user_group_ids: list[int], perm_flag: str | None = None
) -> list[int]:
    if not user_group_ids:
        return []
    where, args = "user_group_id in ?", [user_group_ids]
    if perm_flag is not None:
        where += " and perm_flag = ?"
        args.append(perm_flag)
    rows = select_rows(ctx, _TABLE, where, *args, columns=["busi_group_id"])
    return [row["busi_group_id"] for row in rows]


def user_group_ids_of_busi_group(
    ctx: Context, busi_group_id: int, perm_flag: str | None = None
) -> list[int]:
    where, args = "busi_group_id = ?", [busi_group_id]
    if perm_flag is not None:
        where += " and perm_flag = ?"
        args.append(perm_flag)
    rows = select_rows(ctx, _TABLE, where, *args, columns=["user_group_id"])
    return [row["user_group_id"] for row in rows]


def busi_group_member_count(ctx: Context, where: str = "", *args) -> int:
    return count(ctx, _TABLE, where, *args)


def busi_group_member_add(ctx: Context, member: BusiGroupMember) -> None:
    """Insert the member, or update its permission flag if it exists."""
    existing = busi_group_member_get(
        ctx,
        "busi_group_id = ? and user_group_id = ?",
        member.busi_group_id,
        member.user_group_id,
    )
    if existing is None:
        insert(
            ctx,
            _TABLE,
            {
                "busi_group_id": member.busi_group_id,
                "user_group_id": member.user_group_id,
                "perm_flag": member.perm_flag,
            },
        )
        return
    if existing.perm_flag == member.perm_flag:
        return
    ctx.db.execute(
        f"UPDATE {_TABLE} SET perm_flag = ? WHERE busi_group_id = ? and user_group_id = ?",
        (member.perm_flag, member.busi_group_id, member.user_group_id),
    )


def busi_group_member_get(ctx: Context, where: str, *args) -> BusiGroupMember | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    return BusiGroupMember(**rows[0]) if rows else None


def busi_group_member_del(ctx: Context, where: str, *args) -> None:
    delete_rows(ctx, _TABLE, where, *args)


def busi_group_member_gets(ctx: Context, where: str = "", *args) -> list[BusiGroupMember]:
    rows = select_rows(ctx, _TABLE, where, *args, order="perm_flag")
    return [BusiGroupMember(**row) for row in rows]


def busi_group_member_gets_by_busi_group_id(
    ctx: Context, busi_group_id: int
) -> list[BusiGroupMember]:
    return busi_group_member_gets(ctx, "busi_group_id = ?", busi_group_id)