"""Alert mutes: tag filters that silence matching events for a time span."""

from __future__ import annotations

import contextlib
import json
import logging
import re
import sqlite3
import time
from dataclasses import dataclass, field
from dataclasses import fields as _dc_fields
from typing import Any

from .common import (
    Context,
    ModelError,
    Statistics,
    delete_rows,
    insert,
    is_all_datasource,
    select_rows,
    statistics,
    update_fields,
)
from .datasource import Datasource

TIME_RANGE = 0
PERIODIC = 1

_METRIC = "metric"
_PROMETHEUS = "prometheus"
_EXPIRE_BUFFER = 30

_TABLE = "alert_mute"
_COLUMNS = (
    "group_id",
    "note",
    "cate",
    "prod",
    "datasource_ids",
    "cluster",
    "tags",
    "cause",
    "btime",
    "etime",
    "disabled",
    "create_by",
    "update_by",
    "create_at",
    "update_at",
    "mute_time_type",
    "periodic_mutes",
)

log = logging.getLogger(__name__)

_MISSING = object()


def _loads_quiet(text: Any) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError, UnicodeDecodeError):
        return _MISSING


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _text(item: dict[str, Any], key: str) -> str:
    value = item.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ModelError(f"invalid tags: {key} must be a string")
    return value


def _int_list(value: Any) -> list[int] | None:
    if value is None:
        return []
    if isinstance(value, list) and all(
        isinstance(i, int) and not isinstance(i, bool) for i in value
    ):
        return list(value)
    return None


def tags_text(tags: Any) -> str:
    """Stored json text of a tag filter list."""
    if isinstance(tags, (str, bytes)):
        return tags.decode() if isinstance(tags, bytes) else tags
    return _dumps(tags if tags is not None else [])


def tags_value(raw: Any) -> Any:
    """Tag filter list read back from its stored text."""
    if isinstance(raw, (str, bytes)) and raw:
        parsed = _loads_quiet(raw)
        return raw if parsed is _MISSING else parsed
    return raw if raw != "" else None


@dataclass
class TagFilter:
    key: str = ""
    func: str = ""  # == | =~ | in | != | !~ | not in
    value: str = ""
    regexp: re.Pattern[str] | None = None  # set for =~ and !~
    vset: set[str] | None = None  # set for in and not in


@dataclass
class PeriodicMute:
    enable_stime: str = ""  # split by space: "00:00 10:00 12:00"
    enable_etime: str = ""
    enable_days_of_week: str = ""  # eg: "0 1 2 3 4 5 6"


def _periodic_to_dict(p: PeriodicMute) -> dict[str, str]:
    return {
        "enable_stime": p.enable_stime,
        "enable_etime": p.enable_etime,
        "enable_days_of_week": p.enable_days_of_week,
    }


def _periodic_from_dict(data: Any) -> PeriodicMute:
    if not isinstance(data, dict):
        raise ModelError("invalid periodic_mutes: expected json objects")
    return PeriodicMute(
        enable_stime=data.get("enable_stime") or "",
        enable_etime=data.get("enable_etime") or "",
        enable_days_of_week=data.get("enable_days_of_week") or "",
    )


def parse_tag_filters(raw: Any) -> list[TagFilter]:
    """Parse a json list of tag filters, compiling regexps and value sets."""
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ModelError(f"invalid tags: {exc}") from exc
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ModelError("invalid tags: expected a json array")
    filters = []
    for item in raw:
        if not isinstance(item, dict):
            raise ModelError("invalid tags: expected json objects")
        tf = TagFilter(key=_text(item, "key"), func=_text(item, "func"), value=_text(item, "value"))
        if tf.func in ("=~", "!~"):
            try:
                tf.regexp = re.compile(tf.value)
            except re.error as exc:
                raise ModelError(f"invalid regexp {tf.value!r}: {exc}") from exc
        elif tf.func in ("in", "not in"):
            tf.vset = set(tf.value.split())
        filters.append(tf)
    return filters


@dataclass
class AlertMute:
    id: int = 0
    group_id: int = 0
    note: str = ""
    cate: str = ""
    prod: str = ""
    datasource_ids: str = ""
    datasource_ids_json: list[int] = field(default_factory=list)
    cluster: str = ""
    tags: Any = None
    cause: str = ""
    btime: int = 0
    etime: int = 0
    disabled: int = 0  # 0: enabled, 1: disabled
    create_by: str = ""
    update_by: str = ""
    create_at: int = 0
    update_at: int = 0
    itags: list[TagFilter] = field(default_factory=list)
    mute_time_type: int = TIME_RANGE
    periodic_mutes: str = ""
    periodic_mutes_json: list[PeriodicMute] = field(default_factory=list)

    def _row(self) -> dict[str, Any]:
        row = {name: getattr(self, name) for name in _COLUMNS}
        row["tags"] = tags_text(self.tags)
        return row

    def verify(self) -> None:
        if self.group_id < 0:
            raise ModelError("group_id invalid")
        if is_all_datasource(self.datasource_ids_json):
            self.datasource_ids_json = [0]
        if self.etime <= self.btime:
            raise ModelError(f"oops... etime({self.etime}) <= btime({self.btime})")
        self.parse()
        if not self.itags:
            raise ModelError("tags is blank")

    def parse(self) -> None:
        self.itags = parse_tag_filters(self.tags)

    def add(self, ctx: Context) -> None:
        self.verify()
        self.fe2db()
        now = int(time.time())
        self.create_at = now
        self.update_at = now
        self.id = insert(ctx, _TABLE, self._row())

    def update(self, ctx: Context, arm: AlertMute) -> None:
        """Replace the stored mute with ``arm``, keeping identity and creation data."""
        arm.id = self.id
        arm.group_id = self.group_id
        arm.create_at = self.create_at
        arm.create_by = self.create_by
        arm.update_at = int(time.time())
        arm.verify()
        arm.fe2db()
        update_fields(ctx, _TABLE, self.id, arm._row())

    def fe2db(self) -> None:
        self.datasource_ids = _dumps(self.datasource_ids_json)
        self.periodic_mutes = _dumps([_periodic_to_dict(p) for p in self.periodic_mutes_json])

    def db2fe(self) -> None:
        """Parse stored json; bad datasource ids are ignored, bad periodic mutes raise."""
        ids = _int_list(_loads_quiet(self.datasource_ids))
        if ids is not None:
            self.datasource_ids_json = ids
        try:
            data = json.loads(self.periodic_mutes)
        except (json.JSONDecodeError, TypeError) as exc:
            raise ModelError(f"invalid periodic_mutes: {exc}") from exc
        if data is None:
            self.periodic_mutes_json = []
        elif isinstance(data, list):
            self.periodic_mutes_json = [_periodic_from_dict(d) for d in data]
        else:
            raise ModelError("invalid periodic_mutes: expected a json array")

    def update_fields_map(self, ctx: Context, fields: dict[str, Any]) -> None:
        update_fields(ctx, _TABLE, self.id, fields)


_FIELDS = {f.name for f in _dc_fields(AlertMute)}


def _from_row(row: dict[str, Any]) -> AlertMute:
    values = {k: v for k, v in dict(row).items() if k in _FIELDS}
    if "tags" in values:
        values["tags"] = tags_value(values["tags"])
    return AlertMute(**values)


def _loaded_quietly(rows: list[dict[str, Any]]) -> list[AlertMute]:
    mutes = [_from_row(row) for row in rows]
    for mute in mutes:
        with contextlib.suppress(ModelError):
            mute.db2fe()
    return mutes


def alert_mute_get_by_id(ctx: Context, id: int) -> AlertMute | None:
    return alert_mute_get(ctx, "id = ?", id)


def alert_mute_get(ctx: Context, where: str, *args: Any) -> AlertMute | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    if not rows:
        return None
    mute = _from_row(rows[0])
    mute.db2fe()
    return mute


def alert_mute_gets(ctx: Context, prods: list[str], bgid: int, query: str) -> list[AlertMute]:
    conditions = ["group_id = ? and prod in ?"]
    args: list[Any] = [bgid, list(prods)]
    for word in query.split():
        conditions.append("cause like ?")
        args.append(f"%{word}%")
    rows = select_rows(ctx, _TABLE, " and ".join(conditions), *args, order="id desc")
    return _loaded_quietly(rows)


def alert_mute_gets_by_bg(ctx: Context, group_id: int) -> list[AlertMute]:
    return _loaded_quietly(select_rows(ctx, _TABLE, "group_id = ?", group_id, order="id desc"))


def alert_mute_del(ctx: Context, ids: list[int]) -> None:
    if not ids:
        return
    delete_rows(ctx, _TABLE, "id in ?", ids)


def alert_mute_statistics(ctx: Context) -> Statistics:
    """Drop expired time-range mutes, then count what is left."""
    delete_rows(
        ctx, _TABLE, "etime < ? and mute_time_type = 0", int(time.time()) - _EXPIRE_BUFFER
    )
    return statistics(ctx, _TABLE)


def alert_mute_gets_all(ctx: Context) -> list[AlertMute]:
    return _loaded_quietly(select_rows(ctx, _TABLE))


def alert_mute_upgrade_to_v6(ctx: Context, dsm: dict[str, Datasource]) -> None:
    """Turn cluster names into datasource ids and fill prod and cate."""
    for row in select_rows(ctx, _TABLE):
        mute = _from_row(row)
        if mute.cluster == "$all":
            ids: list[int] = [0]
        else:
            ids = [dsm[name].id for name in mute.cluster.split() if name in dsm]
        mute.datasource_ids = _dumps(ids or None)
        if mute.prod == "":
            mute.prod = _METRIC
        if mute.cate == "":
            mute.cate = _PROMETHEUS
        try:
            mute.update_fields_map(
                ctx,
                {
                    "datasource_ids": mute.datasource_ids,
                    "prod": mute.prod,
                    "cate": mute.cate,
                },
            )
        except sqlite3.Error as exc:
            log.error("update alert rule:%d datasource ids failed, %s", mute.id, exc)