"""Structured rule configurations and host-query helpers."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1
_DECIMAL = re.compile(r"[+-]?[0-9]+")


@dataclass
class PromQuery:
    prom_ql: str = ""
    severity: int = 0  # 1: Emergency 2: Warning 3: Notice


@dataclass
class HostQuery:
    key: str = ""
    op: str = ""
    values: list[Any] = field(default_factory=list)


@dataclass
class HostTrigger:
    type: str = ""
    duration: int = 0
    percent: int = 0
    severity: int = 0  # 1: Emergency 2: Warning 3: Notice


def _prom_query(data: dict[str, Any]) -> PromQuery:
    return PromQuery(prom_ql=data.get("prom_ql") or "", severity=int(data.get("severity") or 0))


def _host_query(data: dict[str, Any]) -> HostQuery:
    return HostQuery(
        key=data.get("key") or "",
        op=data.get("op") or "",
        values=list(data.get("values") or []),
    )


def _host_trigger(data: dict[str, Any]) -> HostTrigger:
    return HostTrigger(
        type=data.get("type") or "",
        duration=int(data.get("duration") or 0),
        percent=int(data.get("percent") or 0),
        severity=int(data.get("severity") or 0),
    )


@dataclass
class PromRuleConfig:
    queries: list[PromQuery] = field(default_factory=list)
    inhibit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "queries": [{"prom_ql": q.prom_ql, "severity": q.severity} for q in self.queries],
            "inhibit": self.inhibit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PromRuleConfig:
        return cls(
            queries=[_prom_query(q) for q in data.get("queries") or []],
            inhibit=bool(data.get("inhibit", False)),
        )


@dataclass
class HostRuleConfig:
    queries: list[HostQuery] = field(default_factory=list)
    triggers: list[HostTrigger] = field(default_factory=list)
    inhibit: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "queries": [
                {"key": q.key, "op": q.op, "values": list(q.values)} for q in self.queries
            ],
            "triggers": [
                {
                    "type": t.type,
                    "duration": t.duration,
                    "percent": t.percent,
                    "severity": t.severity,
                }
                for t in self.triggers
            ],
            "inhibit": self.inhibit,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HostRuleConfig:
        return cls(
            queries=[_host_query(q) for q in data.get("queries") or []],
            triggers=[_host_trigger(t) for t in data.get("triggers") or []],
            inhibit=bool(data.get("inhibit", False)),
        )


def get_hosts_query(queries: list[HostQuery]) -> dict[str, Any]:
    """Turn host queries into a mapping of condition to argument."""
    query: dict[str, Any] = {}
    for q in queries:
        if q.key == "group_ids":
            ids = parse_int64(q.values)
            if q.op == "==":
                query["group_id in (?)"] = ids
            else:
                query["group_id not in (?)"] = ids
        elif q.key == "tags":
            tags = [v for v in q.values if v is not None]
            condition = "tags like ?" if q.op == "==" else "tags not like ?"
            for tag in tags:
                query[condition] = f"% {tag} %"
        elif q.key == "hosts":
            hosts = [v for v in q.values if v is not None]
            if q.op == "==":
                query["ident in (?)"] = hosts
            else:
                query["ident not in (?)"] = hosts
    return query


def _as_int64(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value if _INT64_MIN <= value <= _INT64_MAX else 0
    if isinstance(value, float) and value.is_integer():
        return _as_int64(int(value))
    return 0


def parse_int64(values: list[Any] | None) -> list[int]:
    """Read json numbers as integers; values that are not whole numbers become 0."""
    return [_as_int64(v) for v in values or []]


def str2int(arr: list[str] | None) -> list[int]:
    """Parse decimal strings; unparsable ones become 0, out-of-range ones are clamped."""
    result = []
    for text in arr or []:
        if not _DECIMAL.fullmatch(text):
            result.append(0)
            continue
        result.append(min(max(int(text), _INT64_MIN), _INT64_MAX))
    return result