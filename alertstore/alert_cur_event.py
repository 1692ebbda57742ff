"""Active (not yet recovered) alert events."""

from __future__ import annotations

import contextlib
import json
import logging
import re
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

from .common import (
    Context,
    count,
    delete_rows,
    exists,
    insert,
    select_rows,
    update_fields,
)
from .datasource import Datasource
from .rule_config import PromQuery, PromRuleConfig
from .user_group import UserGroup, user_group_get_by_id

_TABLE = "alert_cur_event"
_METRIC = "metric"
_PROMETHEUS = "prometheus"
_UPGRADE_WINDOW = 3600 * 24 * 30
_DECIMAL = re.compile(r"[+-]?[0-9]+")
_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_COLUMNS = (
    "cate",
    "cluster",
    "datasource_id",
    "group_id",
    "group_name",
    "hash",
    "rule_id",
    "rule_name",
    "rule_note",
    "rule_prod",
    "rule_algo",
    "severity",
    "prom_for_duration",
    "prom_ql",
    "rule_config",
    "prom_eval_interval",
    "callbacks",
    "runbook_url",
    "notify_recovered",
    "notify_channels",
    "notify_groups",
    "target_ident",
    "target_note",
    "trigger_time",
    "trigger_value",
    "tags",
    "annotations",
    "notify_cur_number",
    "first_trigger_time",
)

log = logging.getLogger(__name__)


def _stored_json(value: Any) -> str:
    """Compact json with html-sensitive characters escaped."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    return text


_MISSING = object()


def _loads_quiet(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return _MISSING


def _parse_int64(text: str) -> int | None:
    if not _DECIMAL.fullmatch(text):
        return None
    value = int(text)
    if not _INT64_MIN <= value <= _INT64_MAX:
        return None
    return value


@dataclass
class AggrRule:
    type: str = ""
    value: str = ""


@dataclass
class AlertCurEvent:
    id: int = 0
    cate: str = ""
    cluster: str = ""
    datasource_id: int = 0
    group_id: int = 0
    group_name: str = ""
    hash: str = ""
    rule_id: int = 0
    rule_name: str = ""
    rule_note: str = ""
    rule_prod: str = ""
    rule_algo: str = ""
    severity: int = 0
    prom_for_duration: int = 0
    prom_ql: str = ""
    rule_config: str = ""
    rule_config_json: Any = None
    prom_eval_interval: int = 0
    callbacks: str = ""
    callbacks_json: list[str] = field(default_factory=list)
    runbook_url: str = ""
    notify_recovered: int = 0
    notify_channels: str = ""
    notify_channels_json: list[str] = field(default_factory=list)
    notify_groups: str = ""
    notify_groups_json: list[str] = field(default_factory=list)
    notify_groups_obj: list[UserGroup] = field(default_factory=list)
    target_ident: str = ""
    target_note: str = ""
    trigger_time: int = 0
    trigger_value: str = ""
    tags: str = ""
    tags_json: list[str] = field(default_factory=list)
    tags_map: dict[str, str] = field(default_factory=dict)
    annotations: str = ""
    annotations_json: dict[str, str] | None = None
    is_recovered: bool = False
    notify_users_obj: list[Any] = field(default_factory=list)
    last_eval_time: int = 0
    last_sent_time: int = 0
    notify_cur_number: int = 0
    first_trigger_time: int = 0

    def add(self, ctx: Context) -> None:
        self.id = insert(ctx, _TABLE, {n: getattr(self, n) for n in _COLUMNS})

    def gen_card_title(self, rules: list[AggrRule]) -> str:
        """Join the values the aggregation rules pick out, "Null" for blanks."""
        parts = []
        for rule in rules:
            value = ""
            if rule.type == "field":
                value = self.get_field(rule.value)
            elif rule.type == "tagkey":
                value = self.get_tag_value(rule.value)
            parts.append(value or "Null")
        return "::".join(parts)

    def get_tag_value(self, tagkey: str) -> str:
        needle = tagkey + "="
        for tag in self.tags_json:
            if needle in tag:
                return tag[len(needle):]
        return ""

    def get_field(self, field: str) -> str:
        getters = {
            "cluster": lambda: self.cluster,
            "group_id": lambda: str(self.group_id),
            "group_name": lambda: self.group_name,
            "rule_id": lambda: str(self.rule_id),
            "rule_name": lambda: self.rule_name,
            "rule_note": lambda: self.rule_note,
            "severity": lambda: str(self.severity),
            "runbook_url": lambda: self.runbook_url,
            "target_ident": lambda: self.target_ident,
            "target_note": lambda: self.target_note,
            "callbacks": lambda: self.callbacks,
            "annotations": lambda: self.annotations,
        }
        getter = getters.get(field)
        return getter() if getter else ""

    def _split_lists(self) -> None:
        self.notify_channels_json = self.notify_channels.split()
        self.notify_groups_json = self.notify_groups.split()
        self.callbacks_json = self.callbacks.split()
        self.tags_json = self.tags.split(",,")

    def db2fe(self) -> None:
        """Parse stored text into the list and json fields; bad json is ignored."""
        self._split_lists()
        annotations = _loads_quiet(self.annotations)
        if isinstance(annotations, dict):
            self.annotations_json = {str(k): str(v) for k, v in annotations.items()}
        rule_config = _loads_quiet(self.rule_config)
        if rule_config is not _MISSING:
            self.rule_config_json = rule_config

    def db2mem(self) -> None:
        """Prepare an event loaded from storage for in-memory processing."""
        self.is_recovered = False
        self._split_lists()
        self.tags_map = {}
        for item in self.tags_json:
            pair = item.strip()
            if not pair:
                continue
            parts = pair.split("=")
            if len(parts) != 2:
                continue
            self.tags_map[parts[0]] = parts[1]

    def fill_notify_groups(self, ctx: Context, cache: dict[int, UserGroup]) -> None:
        """Attach the user groups named in notify_groups_json, using ``cache``."""
        if not self.notify_groups_json:
            self.notify_groups_obj = []
            return
        for text in self.notify_groups_json:
            group_id = _parse_int64(text)
            if group_id is None:
                continue
            if group_id in cache:
                self.notify_groups_obj.append(cache[group_id])
                continue
            ug = user_group_get_by_id(ctx, group_id)
            if ug is not None:
                self.notify_groups_obj.append(ug)
                cache[group_id] = ug

    def update_fields_map(self, ctx: Context, fields: dict[str, Any]) -> None:
        update_fields(ctx, _TABLE, self.id, fields)


def _from_row(row: dict[str, Any]) -> AlertCurEvent:
    return AlertCurEvent(**row)


def _build_where(
    prods: list[str],
    bgid: int,
    stime: int,
    etime: int,
    severity: int,
    ds_ids: list[int],
    cates: list[str],
    query: str,
) -> tuple[str, list[Any]]:
    conditions = ["trigger_time between ? and ?"]
    args: list[Any] = [stime, etime]
    if prods:
        conditions.append("rule_prod in ?")
        args.append(list(prods))
    if bgid > 0:
        conditions.append("group_id = ?")
        args.append(bgid)
    if severity >= 0:
        conditions.append("severity = ?")
        args.append(severity)
    if ds_ids:
        conditions.append("datasource_id in ?")
        args.append(list(ds_ids))
    if cates:
        conditions.append("cate in ?")
        args.append(list(cates))
    for word in query.split():
        pattern = f"%{word}%"
        conditions.append("(rule_name like ? or tags like ?)")
        args.extend([pattern, pattern])
    return " and ".join(conditions), args


def alert_cur_event_total(
    ctx: Context,
    prods: list[str],
    bgid: int,
    stime: int,
    etime: int,
    severity: int,
    ds_ids: list[int],
    cates: list[str],
    query: str,
) -> int:
    where, args = _build_where(prods, bgid, stime, etime, severity, ds_ids, cates, query)
    return count(ctx, _TABLE, where, *args)


def alert_cur_event_gets(
    ctx: Context,
    prods: list[str],
    bgid: int,
    stime: int,
    etime: int,
    severity: int,
    ds_ids: list[int],
    cates: list[str],
    query: str,
    limit: int | None = None,
    offset: int | None = None,
) -> list[AlertCurEvent]:
    where, args = _build_where(prods, bgid, stime, etime, severity, ds_ids, cates, query)
    rows = select_rows(ctx, _TABLE, where, *args, order="id desc", limit=limit, offset=offset)
    events = [_from_row(row) for row in rows]
    for event in events:
        event.db2fe()
    return events


def alert_cur_event_del(ctx: Context, ids: list[int]) -> None:
    if not ids:
        return
    delete_rows(ctx, _TABLE, "id in ?", ids)


def alert_cur_event_del_by_hash(ctx: Context, event_hash: str) -> None:
    delete_rows(ctx, _TABLE, "hash = ?", event_hash)


def alert_cur_event_exists(ctx: Context, where: str, *args: Any) -> bool:
    return exists(ctx, _TABLE, where, *args)


def alert_cur_event_get(ctx: Context, where: str, *args: Any) -> AlertCurEvent | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    if not rows:
        return None
    event = _from_row(rows[0])
    event.db2fe()
    with contextlib.suppress(sqlite3.Error):
        event.fill_notify_groups(ctx, {})
    return event


def alert_cur_event_get_by_id(ctx: Context, id: int) -> AlertCurEvent | None:
    return alert_cur_event_get(ctx, "id = ?", id)


def alert_numbers(ctx: Context, bgids: list[int]) -> dict[int, int]:
    """Number of active events per business group."""
    if not bgids:
        return {}
    marks = ", ".join("?" * len(bgids))
    rows = ctx.db.execute(
        f"SELECT group_id, count(*) AS group_count FROM {_TABLE} "
        f"WHERE group_id IN ({marks}) GROUP BY group_id",
        list(bgids),
    )
    return {row["group_id"]: row["group_count"] for row in rows}


def alert_cur_event_get_by_ids(ctx: Context, ids: list[int]) -> list[AlertCurEvent]:
    if not ids:
        return []
    events = [_from_row(row) for row in select_rows(ctx, _TABLE, "id in ?", ids, order="id desc")]
    for event in events:
        event.db2fe()
    return events


def alert_cur_event_get_by_rule_id_and_cluster(
    ctx: Context, rule_id: int, datasource_id: int
) -> list[AlertCurEvent]:
    rows = select_rows(
        ctx, _TABLE, "rule_id = ? and datasource_id = ?", rule_id, datasource_id
    )
    return [_from_row(row) for row in rows]


def alert_cur_event_get_map(ctx: Context, cluster: str) -> dict[int, set[str]]:
    """Map rule id to the hashes of its active events."""
    columns = ["rule_id", "hash"]
    if cluster != "":
        rows = select_rows(ctx, _TABLE, "datasource_id = ?", cluster, columns=columns)
    else:
        rows = select_rows(ctx, _TABLE, columns=columns)
    result: dict[int, set[str]] = {}
    for row in rows:
        result.setdefault(row["rule_id"], set()).add(row["hash"])
    return result


def alert_cur_event_upgrade_to_v6(ctx: Context, dsm: dict[str, Datasource]) -> None:
    """Attach datasource ids and rule configs to events of the last 30 days."""
    since = int(time.time()) - _UPGRADE_WINDOW
    for row in select_rows(ctx, _TABLE, "trigger_time > ?", since):
        event = _from_row(row)
        ds = dsm.get(event.cluster)
        if ds is None:
            continue
        event.datasource_id = ds.id
        config = PromRuleConfig(
            queries=[PromQuery(prom_ql=event.prom_ql, severity=event.severity)]
        )
        event.rule_config = _stored_json(config.to_dict())
        if event.rule_prod == "":
            event.rule_prod = _METRIC
        if event.cate == "":
            event.cate = _PROMETHEUS
        try:
            event.update_fields_map(
                ctx,
                {
                    "datasource_id": event.datasource_id,
                    "rule_config": event.rule_config,
                    "rule_prod": event.rule_prod,
                    "cate": event.cate,
                },
            )
        except sqlite3.Error as exc:
            log.error("update alert rule:%d datasource ids failed, %s", event.id, exc)