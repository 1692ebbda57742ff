import pytest

from alertstore.busi_group_member import (
    BusiGroupMember,
    busi_group_ids,
    busi_group_member_add,
    busi_group_member_count,
    busi_group_member_del,
    busi_group_member_get,
    busi_group_member_gets_by_busi_group_id,
    user_group_ids_of_busi_group,
)
from alertstore.common import create_schema, open_context


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_add_then_update_flag(ctx):
    busi_group_member_add(ctx, BusiGroupMember(1, 10, "ro"))
    busi_group_member_add(ctx, BusiGroupMember(1, 10, "rw"))
    assert busi_group_member_count(ctx) == 1
    assert busi_group_member_get(ctx, "busi_group_id = ?", 1) == BusiGroupMember(1, 10, "rw")


def test_ids_with_and_without_flag(ctx):
    busi_group_member_add(ctx, BusiGroupMember(1, 10, "rw"))
    busi_group_member_add(ctx, BusiGroupMember(2, 10, "ro"))
    busi_group_member_add(ctx, BusiGroupMember(2, 11, "rw"))
    assert sorted(busi_group_ids(ctx, [10])) == [1, 2]
    assert busi_group_ids(ctx, [10], "rw") == [1]
    assert busi_group_ids(ctx, []) == []
    assert sorted(user_group_ids_of_busi_group(ctx, 2)) == [10, 11]
    assert user_group_ids_of_busi_group(ctx, 2, "rw") == [11]


def test_gets_ordered_by_flag_and_delete(ctx):
    busi_group_member_add(ctx, BusiGroupMember(1, 10, "rw"))
    busi_group_member_add(ctx, BusiGroupMember(1, 11, "ro"))
    members = busi_group_member_gets_by_busi_group_id(ctx, 1)
    assert [m.perm_flag for m in members] == ["ro", "rw"]
    busi_group_member_del(ctx, "busi_group_id = ? and user_group_id = ?", 1, 11)
    assert busi_group_member_gets_by_busi_group_id(ctx, 1) == [BusiGroupMember(1, 10, "rw")]