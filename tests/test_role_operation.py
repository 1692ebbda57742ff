import pytest

from alertstore.common import create_schema, open_context
from alertstore.role_operation import (
    operations_of_role,
    role_has_operation,
    role_operation_bind,
)


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_bind_replaces_operations(ctx):
    role_operation_bind(ctx, "Standard", ["/a", "/b"])
    role_operation_bind(ctx, "Standard", ["/c"])
    assert operations_of_role(ctx, ["Standard"]) == ["/c"]


def test_bind_empty_clears(ctx):
    role_operation_bind(ctx, "Standard", ["/a"])
    role_operation_bind(ctx, "Standard", [])
    assert operations_of_role(ctx, ["Standard"]) == []


def test_has_operation(ctx):
    role_operation_bind(ctx, "Standard", ["/a"])
    assert role_has_operation(ctx, ["Standard", "Guest"], "/a") is True
    assert role_has_operation(ctx, ["Guest"], "/a") is False
    assert role_has_operation(ctx, [], "/a") is False


def test_admin_sees_all_distinct(ctx):
    role_operation_bind(ctx, "Standard", ["/a", "/b"])
    role_operation_bind(ctx, "Guest", ["/b"])
    assert sorted(operations_of_role(ctx, ["Admin"])) == ["/a", "/b"]
    assert operations_of_role(ctx, ["Guest"]) == ["/b"]