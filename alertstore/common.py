"""Storage context, query helpers and small shared predicates."""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

ADMIN_ROLE = "Admin"

# A rule whose datasource ids contain this value takes effect everywhere.
DATASOURCE_ID_ALL = 0

_DANGEROUS_FRAGMENTS = ("<", ">", "&", "'", '"', "file://", "../")

# table -> (integer columns, text columns); an "id" column is the primary key.
_SCHEMA: dict[str, tuple[str, str]] = {
    "configs": ("id", "ckey cval"),
    "role": ("id", "name note"),
    "role_operation": ("", "role_name operation"),
    "user_group": ("id create_at update_at", "name note create_by update_by"),
    "user_group_member": ("group_id user_id", ""),
    "busi_group": (
        "id label_enable create_at update_at",
        "name label_value create_by update_by",
    ),
    "busi_group_member": ("busi_group_id user_group_id", "perm_flag"),
    "datasource": (
        "id plugin_id created_at updated_at",
        "name description plugin_type plugin_type_name category cluster_name "
        "settings status http auth created_by updated_by",
    ),
    "target": ("id group_id datasource_id update_at", "ident note tags"),
    "alert_rule": (
        "id group_id delay severity disabled prom_for_duration prom_eval_interval "
        "enable_in_bg notify_recovered notify_repeat_step notify_max_number "
        "recover_duration create_at update_at",
        "cate datasource_ids cluster name note prod algorithm algo_params prom_ql "
        "rule_config enable_stime enable_etime enable_days_of_week notify_channels "
        "notify_groups callbacks runbook_url append_tags annotations create_by update_by",
    ),
    "alert_cur_event": (
        "id datasource_id group_id rule_id severity prom_for_duration "
        "prom_eval_interval notify_recovered trigger_time notify_cur_number "
        "first_trigger_time",
        "cate cluster group_name hash rule_name rule_note rule_prod rule_algo prom_ql "
        "rule_config callbacks runbook_url notify_channels notify_groups target_ident "
        "target_note trigger_value tags annotations",
    ),
    "alert_mute": (
        "id group_id btime etime disabled create_at update_at mute_time_type",
        "note cate prod datasource_ids cluster tags cause create_by update_by "
        "periodic_mutes",
    ),
    "alert_subscribe": (
        "id disabled group_id rule_id for_duration redefine_severity new_severity "
        "redefine_channels redefine_webhooks create_at update_at",
        "name prod cate datasource_ids cluster tags new_channels user_group_ids "
        "webhooks create_by update_by",
    ),
    "board": (
        "id group_id create_at update_at public built_in hide",
        "name ident tags create_by update_by",
    ),
    "task_tpl": (
        "id group_id batch tolerance timeout create_at update_at",
        "title pause script args tags account create_by update_by",
    ),
}


class ModelError(Exception):
    """Raised when a model operation is rejected."""


@dataclass
class Context:
    """Holds the database connection shared by all model operations."""

    db: sqlite3.Connection

    @contextmanager
    def transaction(self) -> Iterator[Context]:
        """Run the enclosed block atomically; nested blocks join the outer one."""
        if self.db.in_transaction:
            yield self
            return
        self.db.execute("BEGIN")
        try:
            yield self
        except BaseException:
            self.db.execute("ROLLBACK")
            raise
        self.db.execute("COMMIT")


@dataclass
class Statistics:
    total: int = 0
    last_updated: int = 0


@dataclass
class LabelAndKey:
    label: str = ""
    key: str = ""


def open_context(path: str) -> Context:
    """Open (or create) the database at ``path``."""
    conn = sqlite3.connect(path, isolation_level=None)
    conn.row_factory = sqlite3.Row
    return Context(db=conn)


def create_schema(ctx: Context) -> None:
    """Create every table the models use, if missing."""
    for table, (ints, texts) in _SCHEMA.items():
        columns = []
        for name in ints.split():
            if name == "id":
                columns.append("id INTEGER PRIMARY KEY AUTOINCREMENT")
            else:
                columns.append(f"{name} INTEGER NOT NULL DEFAULT 0")
        columns.extend(f"{name} TEXT NOT NULL DEFAULT ''" for name in texts.split())
        ctx.db.execute(f"CREATE TABLE IF NOT EXISTS {table} ({', '.join(columns)})")


def _expand(where: str, args: Sequence[Any]) -> tuple[str, list[Any]]:
    """Expand sequence arguments into placeholder lists."""
    if not where:
        if args:
            raise ModelError("arguments given without a condition")
        return "", []
    parts = where.split("?")
    if len(parts) - 1 != len(args):
        raise ModelError(f"condition {where!r} expects {len(parts) - 1} arguments, got {len(args)}")
    out = [parts[0]]
    params: list[Any] = []
    for arg, tail in zip(args, parts[1:]):
        if isinstance(arg, (list, tuple, set, frozenset)):
            items = list(arg)
            marks = ", ".join("?" * len(items)) if items else "NULL"
            if out[-1].rstrip().endswith("(") and tail.lstrip().startswith(")"):
                out.append(marks)
            else:
                out.append(f"({marks})")
            params.extend(items)
        else:
            out.append("?")
            params.append(arg)
        out.append(tail)
    return " WHERE " + "".join(out), params


def select_rows(
    ctx: Context,
    table: str,
    where: str = "",
    *args: Any,
    columns: Iterable[str] | None = None,
    order: str | None = None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[dict[str, Any]]:
    """Return matching rows as dictionaries."""
    clause, params = _expand(where, args)
    cols = ", ".join(columns) if columns else "*"
    sql = f"SELECT {cols} FROM {table}{clause}"
    if order:
        sql += f" ORDER BY {order}"
    if (limit is not None and limit >= 0) or offset:
        sql += " LIMIT ?"
        params.append(limit if limit is not None and limit >= 0 else -1)
        if offset:
            sql += " OFFSET ?"
            params.append(offset)
    return [dict(row) for row in ctx.db.execute(sql, params)]


def count(ctx: Context, table: str, where: str = "", *args: Any) -> int:
    clause, params = _expand(where, args)
    return ctx.db.execute(f"SELECT count(*) FROM {table}{clause}", params).fetchone()[0]


def exists(ctx: Context, table: str, where: str = "", *args: Any) -> bool:
    return count(ctx, table, where, *args) > 0


def insert(ctx: Context, table: str, fields: dict[str, Any]) -> int:
    """Insert one row and return its row id."""
    if not fields:
        cur = ctx.db.execute(f"INSERT INTO {table} DEFAULT VALUES")
    else:
        names = ", ".join(fields)
        marks = ", ".join("?" * len(fields))
        cur = ctx.db.execute(
            f"INSERT INTO {table} ({names}) VALUES ({marks})", list(fields.values())
        )
    return cur.lastrowid


def update_fields(ctx: Context, table: str, row_id: int, fields: dict[str, Any]) -> int:
    """Set ``fields`` on the row with the given id; return rows changed."""
    if not fields:
        return 0
    assignments = ", ".join(f"{name} = ?" for name in fields)
    cur = ctx.db.execute(
        f"UPDATE {table} SET {assignments} WHERE id = ?", [*fields.values(), row_id]
    )
    return cur.rowcount


def delete_rows(ctx: Context, table: str, where: str = "", *args: Any) -> int:
    clause, params = _expand(where, args)
    return ctx.db.execute(f"DELETE FROM {table}{clause}", params).rowcount


def statistics(ctx: Context, table: str, updated_column: str = "update_at") -> Statistics:
    row = ctx.db.execute(
        f"SELECT count(*) AS total, max({updated_column}) AS last_updated FROM {table}"
    ).fetchone()
    return Statistics(total=row["total"], last_updated=row["last_updated"] or 0)


def is_dangerous(text: str) -> bool:
    """Whether ``text`` holds characters that are refused in names."""
    return any(fragment in text for fragment in _DANGEROUS_FRAGMENTS)


def match_datasource(ids: Iterable[int], id: int) -> bool:
    return id == DATASOURCE_ID_ALL or id in ids


def is_all_datasource(datasource_ids: Iterable[int]) -> bool:
    return any(i == 0 for i in datasource_ids)


def label_and_key_has_key(keys: Iterable[LabelAndKey], key: str) -> bool:
    return any(item.key == key for item in keys)