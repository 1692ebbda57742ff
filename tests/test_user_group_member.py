import pytest

from alertstore.common import create_schema, open_context
from alertstore.user_group_member import (
    UserGroupMember,
    member_ids,
    my_group_ids,
    user_group_member_add,
    user_group_member_count,
    user_group_member_del,
    user_group_member_get_all,
)


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_add_is_idempotent(ctx):
    user_group_member_add(ctx, 1, 10)
    user_group_member_add(ctx, 1, 10)
    assert user_group_member_get_all(ctx) == [UserGroupMember(group_id=1, user_id=10)]


def test_lookups(ctx):
    pairs = [(1, 10), (1, 11), (2, 10)]
    for g, u in pairs:
        user_group_member_add(ctx, g, u)
    assert sorted(my_group_ids(ctx, 10)) == [1, 2]
    assert sorted(member_ids(ctx, 1)) == [10, 11]
    assert user_group_member_count(ctx) == len(pairs)


def test_delete(ctx):
    user_group_member_add(ctx, 1, 10)
    user_group_member_add(ctx, 1, 11)
    user_group_member_del(ctx, 1, [])
    assert user_group_member_count(ctx, "group_id = ?", 1) == 2
    user_group_member_del(ctx, 1, [10])
    assert member_ids(ctx, 1) == [11]