"""Alert subscriptions: re-route matching events to other channels and teams."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from dataclasses import fields as _dc_fields
from typing import Any

from .alert_cur_event import AlertCurEvent
from .alert_mute import TagFilter, parse_tag_filters, tags_text, tags_value
from .alert_rule import alert_rule_get_name
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
from .rule_config import str2int
from .user_group import UserGroup, user_group_get_by_id

_METRIC = "metric"
_PROMETHEUS = "prometheus"

_TABLE = "alert_subscribe"
_COLUMNS = (
    "name",
    "disabled",
    "group_id",
    "prod",
    "cate",
    "datasource_ids",
    "cluster",
    "rule_id",
    "for_duration",
    "tags",
    "redefine_severity",
    "new_severity",
    "redefine_channels",
    "new_channels",
    "user_group_ids",
    "redefine_webhooks",
    "webhooks",
    "create_by",
    "create_at",
    "update_by",
    "update_at",
)

log = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _is_int64(text: str) -> bool:
    try:
        value = int(text, 10)
    except ValueError:
        return False
    return text.strip() == text and "_" not in text and -(2**63) <= value < 2**63


@dataclass
class AlertSubscribe:
    id: int = 0
    name: str = ""
    disabled: int = 0  # 0: enabled, 1: disabled
    group_id: int = 0
    prod: str = ""
    cate: str = ""
    datasource_ids: str = ""
    datasource_ids_json: list[int] = field(default_factory=list)
    cluster: str = ""
    rule_id: int = 0
    for_duration: int = 0
    rule_name: str = ""
    tags: Any = None
    redefine_severity: int = 0
    new_severity: int = 0
    redefine_channels: int = 0
    new_channels: str = ""
    user_group_ids: str = ""
    user_groups: list[UserGroup] = field(default_factory=list)
    redefine_webhooks: int = 0
    webhooks: str = ""
    webhooks_json: list[str] = field(default_factory=list)
    create_by: str = ""
    create_at: int = 0
    update_by: str = ""
    update_at: int = 0
    itags: list[TagFilter] = field(default_factory=list)

    def _row(self) -> dict[str, Any]:
        row = {name: getattr(self, name) for name in _COLUMNS}
        row["tags"] = tags_text(self.tags)
        return row

    def is_disabled(self) -> bool:
        return self.disabled == 1

    def verify(self) -> None:
        if is_all_datasource(self.datasource_ids_json):
            self.datasource_ids_json = [0]
        self.parse()
        if not self.itags and self.rule_id == 0:
            raise ModelError("rule_id and tags are both blank")
        if not all(_is_int64(ugid) for ugid in self.user_group_ids.split()):
            raise ModelError("user_group_ids invalid")

    def fe2db(self) -> None:
        self.datasource_ids = _dumps(self.datasource_ids_json)
        if self.webhooks_json:
            self.webhooks = _dumps(self.webhooks_json)

    def db2fe(self) -> None:
        """Parse the stored datasource ids and webhooks; bad json raises."""
        if self.datasource_ids != "":
            ids = self._load(self.datasource_ids, "datasource_ids")
            if ids is not None and not (
                isinstance(ids, list)
                and all(isinstance(i, int) and not isinstance(i, bool) for i in ids)
            ):
                raise ModelError("invalid datasource_ids: expected integers")
            self.datasource_ids_json = list(ids or [])
        if self.webhooks != "":
            hooks = self._load(self.webhooks, "webhooks")
            if hooks is not None and not (
                isinstance(hooks, list) and all(isinstance(h, str) for h in hooks)
            ):
                raise ModelError("invalid webhooks: expected strings")
            self.webhooks_json = list(hooks or [])

    @staticmethod
    def _load(text: str, what: str) -> Any:
        try:
            return json.loads(text)
        except json.JSONDecodeError as exc:
            raise ModelError(f"invalid {what}: {exc}") from exc

    def parse(self) -> None:
        self.itags = parse_tag_filters(self.tags)

    def add(self, ctx: Context) -> None:
        self.verify()
        self.fe2db()
        now = int(time.time())
        self.create_at = now
        self.update_at = now
        self.id = insert(ctx, _TABLE, self._row())

    def fill_rule_name(self, ctx: Context, cache: dict[int, str]) -> None:
        if self.rule_id <= 0:
            self.rule_name = ""
            return
        if self.rule_id in cache:
            self.rule_name = cache[self.rule_id]
            return
        name = alert_rule_get_name(ctx, self.rule_id) or "Error: AlertRule not found"
        self.rule_name = name
        cache[self.rule_id] = name

    def fill_datasource_ids(self) -> None:
        """Parse the stored datasource ids, ignoring unparsable text."""
        if self.datasource_ids == "":
            return
        try:
            ids = json.loads(self.datasource_ids)
        except json.JSONDecodeError:
            return
        if ids is None:
            self.datasource_ids_json = []
        elif isinstance(ids, list) and all(
            isinstance(i, int) and not isinstance(i, bool) for i in ids
        ):
            self.datasource_ids_json = list(ids)

    def fill_user_groups(self, ctx: Context, cache: dict[int, UserGroup]) -> None:
        """Attach the user groups; drop ids of groups that no longer exist."""
        ugids = self.user_group_ids.split()
        if not ugids:
            self.user_groups = []
            return
        kept: list[str] = []
        deleted = False
        for text in ugids:
            group_id = str2int([text])[0]
            if group_id in cache:
                kept.append(text)
                self.user_groups.append(cache[group_id])
                continue
            ug = user_group_get_by_id(ctx, group_id)
            if ug is None:
                deleted = True
            else:
                kept.append(text)
                self.user_groups.append(ug)
                cache[group_id] = ug
        if deleted:
            self.user_group_ids = " ".join(kept)
            update_fields(ctx, _TABLE, self.id, {"user_group_ids": self.user_group_ids})

    def update(self, ctx: Context, *args: str) -> None:
        """Store the named columns, or every column when "*" is named."""
        self.verify()
        self.fe2db()
        columns = _COLUMNS if "*" in args else args
        unknown = [c for c in columns if c not in _COLUMNS]
        if unknown:
            raise ModelError(f"unknown column: {unknown[0]}")
        row = self._row()
        update_fields(ctx, _TABLE, self.id, {c: row[c] for c in columns})

    def match_cluster(self, ds_id: int) -> bool:
        """No datasource configured, or an event without a datasource, matches."""
        if not self.datasource_ids_json or ds_id == 0:
            return True
        return any(i in (ds_id, 0) for i in self.datasource_ids_json)

    def modify_event(self, event: AlertCurEvent) -> None:
        if self.redefine_severity == 1:
            event.severity = self.new_severity
        if self.redefine_channels == 1:
            event.notify_channels = self.new_channels
            event.notify_channels_json = self.new_channels.split()
        if self.redefine_webhooks == 1:
            event.callbacks = self.webhooks
            event.callbacks_json = self.webhooks_json
        event.notify_groups = self.user_group_ids
        event.notify_groups_json = self.user_group_ids.split()

    def update_fields_map(self, ctx: Context, fields: dict[str, Any]) -> None:
        update_fields(ctx, _TABLE, self.id, fields)


_FIELDS = {f.name for f in _dc_fields(AlertSubscribe)}


def _from_row(row: dict[str, Any]) -> AlertSubscribe:
    values = {k: v for k, v in dict(row).items() if k in _FIELDS}
    if "tags" in values:
        values["tags"] = tags_value(values["tags"])
    return AlertSubscribe(**values)


def alert_subscribe_gets(ctx: Context, group_id: int) -> list[AlertSubscribe]:
    rows = select_rows(ctx, _TABLE, "group_id = ?", group_id, order="id desc")
    return [_from_row(row) for row in rows]


def alert_subscribe_get(ctx: Context, where: str, *args: Any) -> AlertSubscribe | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    return _from_row(rows[0]) if rows else None


def alert_subscribe_del(ctx: Context, ids: list[int]) -> None:
    if not ids:
        return
    delete_rows(ctx, _TABLE, "id in ?", ids)


def alert_subscribe_statistics(ctx: Context) -> Statistics:
    return statistics(ctx, _TABLE)


def alert_subscribe_gets_all(ctx: Context) -> list[AlertSubscribe]:
    return [_from_row(row) for row in select_rows(ctx, _TABLE)]


def alert_subscribe_upgrade_to_v6(ctx: Context, dsm: dict[str, Datasource]) -> None:
    """Turn cluster names into datasource ids and fill prod and cate."""
    for row in select_rows(ctx, _TABLE):
        sub = _from_row(row)
        if sub.cluster == "$all":
            ids: list[int] = [0]
        else:
            ids = [dsm[name].id for name in sub.cluster.split() if name in dsm]
        sub.datasource_ids = _dumps(ids or None)
        if sub.prod == "":
            sub.prod = _METRIC
        if sub.cate == "":
            sub.cate = _PROMETHEUS
        try:
            sub.update_fields_map(
                ctx,
                {
                    "datasource_ids": sub.datasource_ids,
                    "prod": sub.prod,
                    "cate": _PROMETHEUS,
                },
            )
        except sqlite3.Error as exc:
            log.error("update alert rule:%d datasource ids failed, %s", sub.id, exc)