"""Alert rules: validation, storage and the conversions between stored and edited forms."""

from __future__ import annotations

import json
import logging
import sqlite3
import time
from dataclasses import dataclass, field
from typing import Any

from .alert_cur_event import AlertCurEvent
from .common import (
    Context,
    ModelError,
    Statistics,
    delete_rows,
    insert,
    is_all_datasource,
    is_dangerous,
    match_datasource,
    select_rows,
    update_fields,
)
from .datasource import Datasource
from .rule_config import HostRuleConfig, PromQuery, PromRuleConfig, str2int
from .user_group import UserGroup, user_group_get_by_id

METRIC = "metric"
HOST = "host"
PROMETHEUS = "prometheus"

_TABLE = "alert_rule"
_COLUMNS = (
    "group_id",
    "cate",
    "datasource_ids",
    "cluster",
    "name",
    "note",
    "prod",
    "algorithm",
    "algo_params",
    "delay",
    "severity",
    "disabled",
    "prom_for_duration",
    "prom_ql",
    "rule_config",
    "prom_eval_interval",
    "enable_stime",
    "enable_etime",
    "enable_days_of_week",
    "enable_in_bg",
    "notify_recovered",
    "notify_channels",
    "notify_groups",
    "notify_repeat_step",
    "notify_max_number",
    "recover_duration",
    "callbacks",
    "runbook_url",
    "append_tags",
    "annotations",
    "create_at",
    "create_by",
    "update_at",
    "update_by",
)

log = logging.getLogger(__name__)

_MISSING = object()


def _marshal(value: Any, sort_keys: bool = False) -> str:
    """Compact json with html-sensitive characters escaped."""
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, sort_keys=sort_keys)
    for char, escaped in (
        ("<", "\\u003c"),
        (">", "\\u003e"),
        ("&", "\\u0026"),
        ("\u2028", "\\u2028"),
        ("\u2029", "\\u2029"),
    ):
        text = text.replace(char, escaped)
    return text


def _loads_quiet(text: str) -> Any:
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return _MISSING


def _parse_object(text: str, what: str) -> dict[str, Any] | None:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError) as exc:
        raise ModelError(f"invalid {what}: {exc}") from exc
    if value is not None and not isinstance(value, dict):
        raise ModelError(f"invalid {what}: expected a json object")
    return value


def _default_rule_config(prom_ql: str, severity: int) -> dict[str, Any]:
    return PromRuleConfig(queries=[PromQuery(prom_ql=prom_ql, severity=severity)]).to_dict()


@dataclass
class AlertRule:
    id: int = 0
    group_id: int = 0
    cate: str = ""
    datasource_ids: str = ""
    datasource_ids_json: list[int] = field(default_factory=list)
    cluster: str = ""
    name: str = ""
    note: str = ""
    prod: str = ""
    algorithm: str = ""
    algo_params: str = ""
    algo_params_json: Any = None
    delay: int = 0
    severity: int = 0
    severities: list[int] = field(default_factory=list)
    disabled: int = 0
    prom_for_duration: int = 0
    prom_ql: str = ""
    rule_config: str = ""
    rule_config_json: Any = None
    prom_eval_interval: int = 0
    enable_stime: str = ""
    enable_stime_json: str = ""
    enable_stimes_json: list[str] = field(default_factory=list)
    enable_etime: str = ""
    enable_etime_json: str = ""
    enable_etimes_json: list[str] = field(default_factory=list)
    enable_days_of_week: str = ""
    enable_days_of_week_json: list[str] = field(default_factory=list)
    enable_days_of_weeks_json: list[list[str]] = field(default_factory=list)
    enable_in_bg: int = 0
    notify_recovered: int = 0
    notify_channels: str = ""
    notify_channels_json: list[str] = field(default_factory=list)
    notify_groups: str = ""
    notify_groups_obj: list[UserGroup] = field(default_factory=list)
    notify_groups_json: list[str] = field(default_factory=list)
    notify_repeat_step: int = 0
    notify_max_number: int = 0
    recover_duration: int = 0
    callbacks: str = ""
    callbacks_json: list[str] = field(default_factory=list)
    runbook_url: str = ""
    append_tags: str = ""
    append_tags_json: list[str] = field(default_factory=list)
    annotations: str = ""
    annotations_json: dict[str, str] | None = None
    create_at: int = 0
    create_by: str = ""
    update_at: int = 0
    update_by: str = ""

    def _row(self) -> dict[str, Any]:
        return {name: getattr(self, name) for name in _COLUMNS}

    def verify(self) -> None:
        """Check the rule and fill defaults; raises ModelError when invalid."""
        if self.group_id < 0:
            raise ModelError(f"GroupId({self.group_id}) invalid")
        if is_all_datasource(self.datasource_ids_json):
            self.datasource_ids_json = [0]
        if is_dangerous(self.name):
            raise ModelError("Name has invalid characters")
        if self.name == "":
            raise ModelError("name is blank")
        if self.prod == "":
            self.prod = METRIC
        if self.cate == "":
            self.cate = PROMETHEUS
        if self.rule_config == "":
            raise ModelError("rule_config is blank")
        if self.prom_eval_interval <= 0:
            self.prom_eval_interval = 15
        self.append_tags = self.append_tags.strip()
        for tag in self.append_tags.split():
            if len(tag.split("=")) != 2:
                raise ModelError(f"AppendTags({tag}) invalid")
        for gid in self.notify_groups.split():
            try:
                int(gid, 10)
            except ValueError:
                raise ModelError(f"NotifyGroups({self.notify_groups}) invalid") from None

    def add(self, ctx: Context) -> None:
        self.verify()
        if alert_rule_exists(ctx, 0, self.group_id, self.datasource_ids_json, self.name):
            raise ModelError("AlertRule already exists")
        now = int(time.time())
        self.create_at = now
        self.update_at = now
        self.id = insert(ctx, _TABLE, self._row())

    def update(self, ctx: Context, arf: AlertRule) -> None:
        """Replace this rule's stored fields with those of ``arf``."""
        if self.name != arf.name and alert_rule_exists(
            ctx, self.id, self.group_id, self.datasource_ids_json, arf.name
        ):
            raise ModelError("AlertRule already exists")
        arf.fe2db()
        arf.id = self.id
        arf.group_id = self.group_id
        arf.create_at = self.create_at
        arf.create_by = self.create_by
        arf.update_at = int(time.time())
        arf.verify()
        update_fields(ctx, _TABLE, self.id, arf._row())

    def update_column(self, ctx: Context, column: str, value: Any) -> None:
        """Update one column; a few columns are rewritten inside their json."""
        if value is None:
            return
        if column == "datasource_ids":
            update_fields(ctx, _TABLE, self.id, {column: _marshal(value)})
            return
        if column == "severity":
            severity = int(value)
            if self.cate == PROMETHEUS:
                prom = PromRuleConfig.from_dict(
                    _parse_object(self.rule_config, "rule_config") or {}
                )
                if len(prom.queries) != 1:
                    return
                prom.queries[0].severity = severity
                update_fields(ctx, _TABLE, self.id, {"rule_config": _marshal(prom.to_dict())})
                return
            if self.cate == HOST:
                host = HostRuleConfig.from_dict(
                    _parse_object(self.rule_config, "rule_config") or {}
                )
                if len(host.triggers) != 1:
                    return
                host.triggers[0].severity = severity
                update_fields(ctx, _TABLE, self.id, {"rule_config": _marshal(host.to_dict())})
                return
        if column == "runbook_url":
            parsed = _parse_object(self.annotations, "annotations")
            self.annotations_json = {str(k): str(v) for k, v in (parsed or {}).items()}
            self.annotations_json["runbook_url"] = str(value)
            update_fields(
                ctx,
                _TABLE,
                self.id,
                {"annotations": _marshal(self.annotations_json, sort_keys=True)},
            )
            return
        if column not in _COLUMNS:
            raise ModelError(f"unknown column: {column}")
        update_fields(ctx, _TABLE, self.id, {column: value})

    def update_fields_map(self, ctx: Context, fields: dict[str, Any]) -> None:
        update_fields(ctx, _TABLE, self.id, fields)

    def fill_datasource_ids(self) -> None:
        """Parse the stored datasource ids; unparsable text is ignored."""
        if self.datasource_ids == "":
            return
        parsed = _loads_quiet(self.datasource_ids)
        if parsed is None:
            self.datasource_ids_json = []
        elif isinstance(parsed, list) and all(
            isinstance(i, int) and not isinstance(i, bool) for i in parsed
        ):
            self.datasource_ids_json = list(parsed)

    def fill_severities(self) -> None:
        """Collect the severity of every query in the rule config."""
        if self.rule_config == "":
            return
        data = _parse_object(self.rule_config, "rule_config") or {}
        if self.prod == HOST:
            host = HostRuleConfig.from_dict(data)
            if len(host.triggers) < len(host.queries):
                raise ModelError("rule_config has fewer triggers than queries")
            self.severities.extend(host.triggers[i].severity for i in range(len(host.queries)))
        else:
            prom = PromRuleConfig.from_dict(data)
            self.severities.extend(q.severity for q in prom.queries)

    def fill_notify_groups(self, ctx: Context, cache: dict[int, UserGroup]) -> None:
        """Attach notify user groups; drop ids of groups that no longer exist."""
        if not self.notify_groups_json:
            self.notify_groups_obj = []
            return
        kept: list[str] = []
        deleted = False
        for text in self.notify_groups_json:
            group_id = str2int([text])[0]
            if group_id in cache:
                kept.append(text)
                self.notify_groups_obj.append(cache[group_id])
                continue
            ug = user_group_get_by_id(ctx, group_id)
            if ug is None:
                deleted = True
            else:
                kept.append(text)
                self.notify_groups_obj.append(ug)
                cache[group_id] = ug
        if deleted:
            self.notify_groups_json = kept
            self.notify_groups = " ".join(kept)
            update_fields(ctx, _TABLE, self.id, {"notify_groups": self.notify_groups})

    def fe2db(self) -> None:
        """Serialise the edited list and json fields into their stored text."""
        if self.enable_stimes_json:
            self.enable_stime = " ".join(self.enable_stimes_json)
            self.enable_etime = " ".join(self.enable_etimes_json)
        else:
            self.enable_stime = self.enable_stime_json
            self.enable_etime = self.enable_etime_json

        weeks = self.enable_days_of_weeks_json
        if len(weeks) == 1:
            self.enable_days_of_week = " ".join(weeks[0])
        elif weeks:
            self.enable_days_of_week += ";".join(" ".join(days) for days in weeks)
        else:
            self.enable_days_of_week = " ".join(self.enable_days_of_week_json)

        self.notify_channels = " ".join(self.notify_channels_json)
        self.notify_groups = " ".join(self.notify_groups_json)
        self.callbacks = " ".join(self.callbacks_json)
        self.append_tags = " ".join(self.append_tags_json)
        try:
            self.algo_params = _marshal(self.algo_params_json, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ModelError(f"marshal algo_params err:{exc}") from exc

        if self.datasource_ids_json:
            self.datasource_ids = _marshal(self.datasource_ids_json)

        try:
            if self.rule_config_json is None:
                self.rule_config_json = _default_rule_config(self.prom_ql, self.severity)
                self.rule_config = _marshal(self.rule_config_json)
            else:
                self.rule_config = _marshal(self.rule_config_json, sort_keys=True)
        except (TypeError, ValueError) as exc:
            raise ModelError(f"marshal rule_config err:{exc}") from exc

        if self.annotations_json is not None:
            self.annotations = _marshal(self.annotations_json, sort_keys=True)

    def db2fe(self) -> None:
        """Parse the stored text into the list and json fields."""
        self.enable_stimes_json = self.enable_stime.split()
        self.enable_etimes_json = self.enable_etime.split()
        if self.enable_etimes_json:
            self.enable_stime_json = self.enable_stimes_json[0] if self.enable_stimes_json else ""
            self.enable_etime_json = self.enable_etimes_json[0]

        self.enable_days_of_weeks_json = [
            part.split() for part in self.enable_days_of_week.split(";")
        ]
        self.enable_days_of_week_json = self.enable_days_of_weeks_json[0]

        self.notify_channels_json = self.notify_channels.split()
        self.notify_groups_json = self.notify_groups.split()
        self.callbacks_json = self.callbacks.split()
        self.append_tags_json = self.append_tags.split()

        algo = _loads_quiet(self.algo_params)
        if algo is not _MISSING:
            self.algo_params_json = algo
        rule_config = _loads_quiet(self.rule_config)
        if rule_config is not _MISSING:
            self.rule_config_json = rule_config
        annotations = _loads_quiet(self.annotations)
        if annotations is None:
            self.annotations_json = None
        elif isinstance(annotations, dict):
            self.annotations_json = {str(k): str(v) for k, v in annotations.items()}

        self.fill_datasource_ids()

    def is_prometheus_rule(self) -> bool:
        return self.algorithm == "" and (self.cate == "" or self.cate.lower() == PROMETHEUS)

    def is_host_rule(self) -> bool:
        return self.prod == HOST

    def get_rule_type(self) -> str:
        return self.cate if self.prod == METRIC else self.prod

    def generate_new_event(self) -> AlertCurEvent:
        event = AlertCurEvent()
        self.update_event(event)
        return event

    def update_event(self, event: AlertCurEvent | None) -> None:
        """Copy the rule's attributes onto an event."""
        if event is None:
            return
        event.group_id = self.group_id
        event.cate = self.cate
        event.rule_id = self.id
        event.rule_name = self.name
        event.rule_note = self.note
        event.rule_prod = self.prod
        event.rule_algo = self.algorithm
        event.prom_for_duration = self.prom_for_duration
        event.prom_ql = self.prom_ql
        event.rule_config = self.rule_config
        event.rule_config_json = self.rule_config_json
        event.prom_eval_interval = self.prom_eval_interval
        event.callbacks = self.callbacks
        event.callbacks_json = self.callbacks_json
        event.runbook_url = self.runbook_url
        event.notify_recovered = self.notify_recovered
        event.notify_channels = self.notify_channels
        event.notify_channels_json = self.notify_channels_json
        event.notify_groups = self.notify_groups
        event.notify_groups_json = self.notify_groups_json
        event.annotations_json = self.annotations_json


def _from_row(row: dict[str, Any]) -> AlertRule:
    return AlertRule(**row)


def _loaded(rows: list[dict[str, Any]]) -> list[AlertRule]:
    rules = [_from_row(row) for row in rows]
    for rule in rules:
        rule.db2fe()
    return rules


def alert_rule_dels(ctx: Context, ids: list[int], bgid: int | None = None) -> None:
    """Delete rules, and the active events of every rule actually deleted."""
    for rule_id in ids:
        if bgid is None:
            removed = delete_rows(ctx, _TABLE, "id = ?", rule_id)
        else:
            removed = delete_rows(ctx, _TABLE, "id = ? and group_id = ?", rule_id, bgid)
        if removed > 0:
            # These events can never recover once their rule is gone.
            delete_rows(ctx, "alert_cur_event", "rule_id = ?", rule_id)


def alert_rule_exists(
    ctx: Context, id: int, group_id: int, datasource_ids: list[int], name: str
) -> bool:
    """Whether another rule of the group has this name on an overlapping datasource."""
    rows = select_rows(
        ctx, _TABLE, "id <> ? and group_id = ? and name = ?", id, group_id, name
    )
    for row in rows:
        rule = _from_row(row)
        rule.fill_datasource_ids()
        if any(match_datasource(datasource_ids, ds_id) for ds_id in rule.datasource_ids_json):
            return True
    return False


def alert_rule_gets(ctx: Context, group_id: int) -> list[AlertRule]:
    return _loaded(select_rows(ctx, _TABLE, "group_id = ?", group_id, order="name"))


def alert_rule_gets_all(ctx: Context) -> list[AlertRule]:
    """Enabled rules of the metric, host or unset products."""
    rows = select_rows(
        ctx,
        _TABLE,
        "disabled = ? and (prod = ? or prod = ? or prod = ?)",
        0,
        "",
        HOST,
        METRIC,
    )
    return _loaded(rows)


def alert_rules_gets_by(
    ctx: Context,
    prods: list[str],
    query: str,
    algorithm: str,
    cluster: str,
    cates: list[str],
    disabled: int,
) -> list[AlertRule]:
    conditions = ["prod in ?"]
    args: list[Any] = [list(prods)]
    for word in query.split():
        conditions.append("append_tags like ?")
        args.append(f"%{word}%")
    if algorithm:
        conditions.append("algorithm = ?")
        args.append(algorithm)
    if cluster:
        conditions.append("cluster like ?")
        args.append(f"%{cluster}%")
    if cates:
        conditions.append("cate in ?")
        args.append(list(cates))
    if disabled != -1:
        conditions.append("disabled = ?")
        args.append(disabled)
    return _loaded(select_rows(ctx, _TABLE, " and ".join(conditions), *args))


def alert_rule_get(ctx: Context, where: str, *args: Any) -> AlertRule | None:
    rows = select_rows(ctx, _TABLE, where, *args, limit=1)
    return _loaded(rows)[0] if rows else None


def alert_rule_get_by_id(ctx: Context, id: int) -> AlertRule | None:
    return alert_rule_get(ctx, "id = ?", id)


def alert_rule_get_name(ctx: Context, id: int) -> str:
    rows = select_rows(ctx, _TABLE, "id = ?", id, columns=["name"], limit=1)
    return rows[0]["name"] if rows else ""


def alert_rule_statistics(ctx: Context) -> Statistics:
    row = ctx.db.execute(
        f"SELECT count(*) AS total, max(update_at) AS last_updated FROM {_TABLE} "
        "WHERE disabled = ? and (prod = ? or prod = ? or prod = ?)",
        (0, "", HOST, METRIC),
    ).fetchone()
    return Statistics(total=row["total"], last_updated=row["last_updated"] or 0)


def alert_rule_upgrade_to_v6(ctx: Context, dsm: dict[str, Datasource]) -> None:
    """Convert cluster names into datasource ids and build rule configs."""
    for row in select_rows(ctx, _TABLE):
        rule = _from_row(row)
        if rule.cluster == "$all":
            ids: list[int] = [0]
        else:
            ids = [dsm[name].id for name in rule.cluster.split() if name in dsm]
        rule.datasource_ids = _marshal(ids or None)
        rule.rule_config = _marshal(_default_rule_config(rule.prom_ql, rule.severity))
        if rule.runbook_url != "":
            rule.annotations = _marshal({"runbook_url": rule.runbook_url}, sort_keys=True)
        if rule.prod == "":
            rule.prod = METRIC
        if rule.cate == "":
            rule.cate = PROMETHEUS
        try:
            rule.update_fields_map(
                ctx,
                {
                    "datasource_ids": rule.datasource_ids,
                    "annotations": rule.annotations,
                    "rule_config": rule.rule_config,
                    "prod": rule.prod,
                    "cate": PROMETHEUS,
                },
            )
        except sqlite3.Error as exc:
            log.error("update alert rule:%d datasource ids failed, %s", rule.id, exc)