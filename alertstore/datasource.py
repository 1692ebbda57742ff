"""Datasources that alert rules query."""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict, dataclass, field, fields
from typing import Any

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

_TABLE = "datasource"
_COLUMNS = (
    "name",
    "description",
    "plugin_id",
    "plugin_type",
    "plugin_type_name",
    "category",
    "cluster_name",
    "settings",
    "status",
    "http",
    "auth",
    "created_at",
    "updated_at",
    "created_by",
    "updated_by",
)

log = logging.getLogger(__name__)


def _dumps(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"), ensure_ascii=False)


def _loads_object(text: str) -> dict | None:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ModelError(f"invalid json: {exc}") from exc
    if value is not None and not isinstance(value, dict):
        raise ModelError(f"expected a json object, got {type(value).__name__}")
    return value


def _known(cls, data: dict) -> dict:
    names = {f.name for f in fields(cls)}
    return {k: v for k, v in data.items() if k in names}


@dataclass
class Auth:
    basic_auth: bool = False
    basic_auth_user: str = ""
    basic_auth_password: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> Auth:
        return cls(**_known(cls, data))


@dataclass
class TLSSettings:
    skip_tls_verify: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> TLSSettings:
        return cls(**_known(cls, data))


@dataclass
class HTTPSettings:
    timeout: int = 0
    dial_timeout: int = 0
    tls: TLSSettings = field(default_factory=TLSSettings)
    max_idle_conns_per_host: int = 0
    url: str = ""
    headers: dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> HTTPSettings:
        values = _known(cls, data)
        values["tls"] = TLSSettings.from_dict(data.get("tls") or {})
        values["headers"] = dict(data.get("headers") or {})
        return cls(**values)


@dataclass
class Datasource:
    id: int = 0
    name: str = ""
    description: str = ""
    plugin_id: int = 0
    plugin_type: str = ""
    plugin_type_name: str = ""
    category: str = ""
    cluster_name: str = ""
    settings: str = ""
    settings_json: dict[str, Any] | None = None
    status: str = ""
    http: str = ""
    http_json: HTTPSettings = field(default_factory=HTTPSettings)
    auth: str = ""
    auth_json: Auth = field(default_factory=Auth)
    created_at: int = 0
    updated_at: int = 0
    created_by: str = ""
    updated_by: str = ""

    def verify(self) -> None:
        if is_dangerous(self.name):
            raise ModelError("Name has invalid characters")
        self.fe2db()

    def update(self, ctx: Context, *args: str) -> None:
        """Write the named columns, or every column when given "*"."""
        self.verify()
        self.updated_at = int(time.time())
        names = _COLUMNS if "*" in args else args
        update_fields(ctx, _TABLE, self.id, {n: getattr(self, n) for n in names})

    def add(self, ctx: Context) -> None:
        self.verify()
        now = int(time.time())
        self.created_at = now
        self.updated_at = now
        self.id = insert(ctx, _TABLE, {n: getattr(self, n) for n in _COLUMNS})

    def load(self, ctx: Context) -> None:
        """Reload this datasource from storage by its id."""
        rows = select_rows(ctx, _TABLE, "id = ?", self.id, order="id", limit=1)
        if not rows:
            raise ModelError("record not found")
        for name, value in rows[0].items():
            setattr(self, name, value)
        self.db2fe()

    def fe2db(self) -> None:
        """Serialise the structured fields into their stored text."""
        if self.settings_json is not None:
            self.settings = _dumps(self.settings_json)
        self.http = _dumps(self.http_json.to_dict())
        self.auth = _dumps(self.auth_json.to_dict())

    def db2fe(self) -> None:
        """Parse the stored text into structured fields, filling defaults."""
        if self.settings:
            parsed = _loads_object(self.settings)
            if parsed is not None:
                self.settings_json = parsed
        if self.http:
            parsed = _loads_object(self.http)
            if parsed is not None:
                self.http_json = HTTPSettings.from_dict(parsed)
        if self.http_json.timeout == 0:
            self.http_json.timeout = 10000
        if self.http_json.dial_timeout == 0:
            self.http_json.dial_timeout = 10000
        if self.http_json.max_idle_conns_per_host == 0:
            self.http_json.max_idle_conns_per_host = 100
        if self.auth:
            parsed = _loads_object(self.auth)
            if parsed is not None:
                self.auth_json = Auth.from_dict(parsed)


def _from_row(row: dict) -> Datasource:
    return Datasource(**row)


def _loaded(row: dict) -> Datasource:
    """Build a datasource and parse it, ignoring parse errors."""
    ds = _from_row(row)
    try:
        ds.db2fe()
    except ModelError:
        pass
    return ds


def _name_filter(name: str) -> tuple[str, list[Any]]:
    conditions: list[str] = []
    args: list[Any] = []
    for word in name.split():
        conditions.append("name = ?")
        args.append(f"%{word}%")
    return " and ".join(conditions), args


def _build_where(
    typ: str, cate: str, name: str, status: str = ""
) -> tuple[str, list[Any]]:
    where, args = _name_filter(name)
    conditions = [where] if where else []
    for column, value in (("plugin_type", typ), ("category", cate), ("status", status)):
        if value:
            conditions.append(f"{column} = ?")
            args.append(value)
    return " and ".join(conditions), args


def datasource_del(ctx: Context, ids: list[int]) -> None:
    if not ids:
        return
    delete_rows(ctx, _TABLE, "id in ?", ids)


def datasource_get(ctx: Context, id: int) -> Datasource:
    """Fetch one datasource; raises ModelError when it does not exist."""
    ds = Datasource(id=id)
    ds.load(ctx)
    return ds


def get_datasources(ctx: Context) -> list[Datasource]:
    return [_loaded(row) for row in select_rows(ctx, _TABLE)]


def get_datasource_ids_by_cluster_name(ctx: Context, cluster_name: str) -> list[int]:
    rows = select_rows(ctx, _TABLE, "cluster_name = ?", cluster_name, columns=["id"])
    return [row["id"] for row in rows]


def get_datasources_count_by(ctx: Context, typ: str, cate: str, name: str) -> int:
    where, args = _build_where(typ, cate, name)
    return count(ctx, _TABLE, where, *args)


def get_datasources_gets_by(
    ctx: Context, typ: str, cate: str, name: str, status: str
) -> list[Datasource]:
    where, args = _build_where(typ, cate, name, status)
    return [_loaded(row) for row in select_rows(ctx, _TABLE, where, *args, order="id desc")]


def get_datasources_gets_by_types(ctx: Context, typs: list[str]) -> dict[str, Datasource]:
    rows = select_rows(ctx, _TABLE, "plugin_type in ?", typs)
    return {ds.name: ds for ds in map(_loaded, rows)}


def datasource_get_map(ctx: Context) -> dict[int, Datasource]:
    """Map id to datasource, skipping those whose stored json is broken."""
    result: dict[int, Datasource] = {}
    for row in select_rows(ctx, _TABLE):
        ds = _from_row(row)
        try:
            ds.db2fe()
        except ModelError as exc:
            log.warning("get ds:%r err:%s", ds, exc)
            continue
        result[ds.id] = ds
    return result


def datasource_statistics(ctx: Context) -> Statistics:
    return statistics(ctx, _TABLE, "updated_at")