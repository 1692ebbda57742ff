import pytest

from alertstore.common import ModelError, create_schema, open_context
from alertstore.role import Role, role_count, role_get, role_gets, role_gets_all


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_add_and_get(ctx):
    role = Role(name="Guest", note="read only")
    role.add(ctx)
    assert role.id > 0
    assert role_get(ctx, "name = ?", "Guest") == role


def test_add_duplicate_name_fails(ctx):
    Role(name="Guest").add(ctx)
    with pytest.raises(ModelError):
        Role(name="Guest").add(ctx)


def test_update_selected_field(ctx):
    role = Role(name="Guest", note="old")
    role.add(ctx)
    role.note = "new"
    role.name = "Renamed"
    role.update(ctx, "note")
    stored = role_get(ctx, "id = ?", role.id)
    assert (stored.name, stored.note) == ("Guest", "new")
    role.update(ctx, "*")
    assert role_get(ctx, "id = ?", role.id).name == "Renamed"


def test_delete_and_count(ctx):
    roles = [Role(name=n) for n in ("A", "B")]
    for r in roles:
        r.add(ctx)
    assert role_count(ctx) == len(roles)
    roles[0].delete(ctx)
    assert [r.name for r in role_gets_all(ctx)] == ["B"]
    assert role_gets(ctx, "name = ?", "A") == []