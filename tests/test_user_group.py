import pytest

from alertstore.common import ModelError, create_schema, open_context
from alertstore.user_group import (
    UserGroup,
    user_group_count,
    user_group_get_all,
    user_group_get_by_id,
    user_group_get_by_ids,
    user_group_statistics,
)
from alertstore.user_group_member import member_ids, user_group_member_add


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_verify_rejects_dangerous():
    with pytest.raises(ModelError):
        UserGroup(name="<b>").verify()
    with pytest.raises(ModelError):
        UserGroup(name="ok", note="a&b").verify()


def test_add_sets_timestamps_and_rejects_duplicate(ctx):
    ug = UserGroup(name="ops", create_by="root")
    ug.add(ctx)
    stored = user_group_get_by_id(ctx, ug.id)
    assert stored == ug
    assert stored.create_at == stored.update_at > 0
    with pytest.raises(ModelError):
        UserGroup(name="ops").add(ctx)


def test_update_selected(ctx):
    ug = UserGroup(name="ops", note="old")
    ug.add(ctx)
    ug.note = "new"
    ug.name = "other"
    ug.update(ctx, "note")
    stored = user_group_get_by_id(ctx, ug.id)
    assert (stored.name, stored.note) == ("ops", "new")


def test_delete_removes_members(ctx):
    ug = UserGroup(name="ops")
    ug.add(ctx)
    user_group_member_add(ctx, ug.id, 7)
    ug.delete(ctx)
    assert user_group_get_by_id(ctx, ug.id) is None
    assert member_ids(ctx, ug.id) == []


def test_del_members(ctx):
    ug = UserGroup(name="ops")
    ug.add(ctx)
    user_group_member_add(ctx, ug.id, 7)
    user_group_member_add(ctx, ug.id, 8)
    ug.del_members(ctx, [7])
    assert member_ids(ctx, ug.id) == [8]


def test_get_by_ids_sorted_and_stats(ctx):
    groups = [UserGroup(name=n) for n in ("zeta", "alpha", "mid")]
    for g in groups:
        g.add(ctx)
    found = user_group_get_by_ids(ctx, [g.id for g in groups[:2]])
    assert [g.name for g in found] == ["alpha", "zeta"]
    assert user_group_get_by_ids(ctx, []) == []
    assert len(user_group_get_all(ctx)) == user_group_count(ctx) == len(groups)
    stats = user_group_statistics(ctx)
    assert stats.total == len(groups)
    assert stats.last_updated == max(g.update_at for g in groups)