"""Notification settings stored as json in the configs table."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

WEBHOOKKEY = "webhook"
NOTIFYSCRIPT = "notify_script"
NOTIFYCHANNEL = "notify_channel"
NOTIFYCONTACT = "notify_contact"
SMTP = "smtp_config"
IBEX = "ibex_server"


@dataclass
class Webhook:
    enable: bool = False
    url: str = ""
    basic_auth_user: str = ""
    basic_auth_pass: str = ""
    timeout: int = 0
    header_map: dict[str, str] = field(default_factory=dict)
    headers: list[str] = field(default_factory=list)
    skip_verify: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "enable": self.enable,
            "url": self.url,
            "basic_auth_user": self.basic_auth_user,
            "basic_auth_pass": self.basic_auth_pass,
            "timeout": self.timeout,
            "headers": dict(self.header_map),
            "headers_str": list(self.headers),
            "skip_verify": self.skip_verify,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Webhook:
        return cls(
            enable=bool(data.get("enable", False)),
            url=data.get("url") or "",
            basic_auth_user=data.get("basic_auth_user") or "",
            basic_auth_pass=data.get("basic_auth_pass") or "",
            timeout=int(data.get("timeout") or 0),
            header_map=dict(data.get("headers") or {}),
            headers=list(data.get("headers_str") or []),
            skip_verify=bool(data.get("skip_verify", False)),
        )


@dataclass
class NotifyScript:
    enable: bool = False
    type: int = 0  # 0: inline script, 1: path
    content: str = ""
    timeout: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "enable": self.enable,
            "type": self.type,
            "content": self.content,
            "timeout": self.timeout,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotifyScript:
        return cls(
            enable=bool(data.get("enable", False)),
            type=int(data.get("type") or 0),
            content=data.get("content") or "",
            timeout=int(data.get("timeout") or 0),
        )


@dataclass
class NotifyChannel:
    name: str = ""
    ident: str = ""
    hide: bool = False
    built_in: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ident": self.ident,
            "hide": self.hide,
            "built_in": self.built_in,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotifyChannel:
        return cls(
            name=data.get("name") or "",
            ident=data.get("ident") or "",
            hide=bool(data.get("hide", False)),
            built_in=bool(data.get("built_in", False)),
        )


@dataclass
class NotifyContact:
    name: str = ""
    ident: str = ""
    hide: bool = False
    built_in: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "ident": self.ident,
            "hide": self.hide,
            "built_in": self.built_in,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotifyContact:
        return cls(
            name=data.get("name") or "",
            ident=data.get("ident") or "",
            hide=bool(data.get("hide", False)),
            built_in=bool(data.get("built_in", False)),
        )