"""Operations granted to roles."""

from __future__ import annotations

from dataclasses import dataclass

from .common import ADMIN_ROLE, Context, delete_rows, exists, insert, select_rows

_TABLE = "role_operation"


@dataclass
class RoleOperation:
    role_name: str = ""
    operation: str = ""


def role_has_operation(ctx: Context, roles: list[str], operation: str) -> bool:
    if not roles:
        return False
    return exists(ctx, _TABLE, "operation = ? and role_name in ?", operation, roles)


def operations_of_role(ctx: Context, roles: list[str]) -> list[str]:
    """Distinct operations of the roles; Admin sees every operation."""
    columns = ["DISTINCT operation AS operation"]
    if ADMIN_ROLE in roles:
        rows = select_rows(ctx, _TABLE, columns=columns)
    else:
        rows = select_rows(ctx, _TABLE, "role_name in ?", roles, columns=columns)
    return [row["operation"] for row in rows]


def role_operation_bind(ctx: Context, role_name: str, operations: list[str]) -> None:
    """Replace the operations bound to a role."""
    with ctx.transaction():
        delete_rows(ctx, _TABLE, "role_name = ?", role_name)
        for op in operations:
            insert(ctx, _TABLE, {"role_name": role_name, "operation": op})