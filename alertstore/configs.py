"""Key/value settings stored in the configs table."""

from __future__ import annotations

import hashlib
import os
import random
import socket
import string
import sqlite3
import time
from dataclasses import dataclass

from .common import (
    Context,
    ModelError,
    count,
    delete_rows,
    insert,
    select_rows,
    update_fields,
)

_TABLE = "configs"
_SALT_JOIN = "<-*Uk30^96eY*->"


def _md5(text: str) -> str:
    return hashlib.md5(text.encode("utf-8")).hexdigest()


@dataclass
class Configs:
    id: int = 0
    ckey: str = ""
    cval: str = ""

    def add(self, ctx: Context) -> None:
        """Insert a new key; refuses a key that already exists."""
        try:
            num = count(ctx, _TABLE, "ckey = ?", self.ckey)
        except sqlite3.Error as exc:
            raise ModelError(f"failed to count configs: {exc}") from exc
        if num > 0:
            raise ModelError("key is exists")
        self.id = insert(ctx, _TABLE, {"ckey": self.ckey, "cval": self.cval})

    def update(self, ctx: Context) -> None:
        """Write non-empty fields; refuses a key held by another row."""
        try:
            num = count(ctx, _TABLE, "id <> ? and ckey = ?", self.id, self.ckey)
        except sqlite3.Error as exc:
            raise ModelError(f"failed to count configs: {exc}") from exc
        if num > 0:
            raise ModelError("key is exists")
        fields = {k: v for k, v in (("ckey", self.ckey), ("cval", self.cval)) if v}
        update_fields(ctx, _TABLE, self.id, fields)


def init_salt(ctx: Context) -> None:
    """Generate and store a random salt unless one exists."""
    if configs_get(ctx, "salt"):
        return
    letters = "".join(random.choices(string.ascii_letters, k=6))
    content = f"{socket.gethostname()}{os.getpid()}{time.time_ns()}{letters}"
    configs_set(ctx, "salt", _md5(content))


def configs_get(ctx: Context, ckey: str) -> str:
    try:
        rows = select_rows(ctx, _TABLE, "ckey = ?", ckey, columns=["cval"])
    except sqlite3.Error as exc:
        raise ModelError(f"failed to query configs: {exc}") from exc
    return rows[0]["cval"] if rows else ""


def configs_set(ctx: Context, ckey: str, cval: str) -> None:
    try:
        num = count(ctx, _TABLE, "ckey = ?", ckey)
    except sqlite3.Error as exc:
        raise ModelError(f"failed to count configs: {exc}") from exc
    if num == 0:
        insert(ctx, _TABLE, {"ckey": ckey, "cval": cval})
    else:
        ctx.db.execute(f"UPDATE {_TABLE} SET cval = ? WHERE ckey = ?", (cval, ckey))


def config_get(ctx: Context, id: int) -> Configs | None:
    rows = select_rows(ctx, _TABLE, "id = ?", id)
    return Configs(**rows[0]) if rows else None


def configs_gets(
    ctx: Context, prefix: str = "", limit: int | None = None, offset: int | None = None
) -> list[Configs]:
    if prefix:
        rows = select_rows(
            ctx, _TABLE, "ckey like ?", prefix + "%", order="id desc", limit=limit, offset=offset
        )
    else:
        rows = select_rows(ctx, _TABLE, order="id desc", limit=limit, offset=offset)
    return [Configs(**row) for row in rows]


def configs_del(ctx: Context, ids: list[int]) -> None:
    delete_rows(ctx, _TABLE, "id in ?", ids)


def configs_gets_by_key(ctx: Context, ckeys: list[str]) -> dict[str, str]:
    """Map each requested key to its value, or to "" when absent."""
    try:
        rows = select_rows(ctx, _TABLE, "ckey in ?", ckeys)
    except sqlite3.Error as exc:
        raise ModelError(f"failed to gets configs: {exc}") from exc
    result = dict.fromkeys(ckeys, "")
    result.update((row["ckey"], row["cval"]) for row in rows)
    return result


def crypto_pass(ctx: Context, raw: str) -> str:
    """Hash a password with the stored salt."""
    salt = configs_get(ctx, "salt")
    return _md5(salt + _SALT_JOIN + raw)