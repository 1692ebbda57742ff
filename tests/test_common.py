import pytest

from alertstore.common import (
    LabelAndKey,
    ModelError,
    Statistics,
    count,
    create_schema,
    delete_rows,
    exists,
    insert,
    is_all_datasource,
    is_dangerous,
    label_and_key_has_key,
    match_datasource,
    open_context,
    select_rows,
    statistics,
    update_fields,
)


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_match_datasource():
    assert match_datasource([1, 2], 0) is True
    assert match_datasource([1, 2], 2) is True
    assert match_datasource([1, 2], 3) is False


def test_is_all_datasource():
    assert is_all_datasource([3, 0]) is True
    assert is_all_datasource([3, 4]) is False
    assert is_all_datasource([]) is False


def test_label_and_key_has_key():
    keys = [LabelAndKey(label="Host", key="ident")]
    assert label_and_key_has_key(keys, "ident") is True
    assert label_and_key_has_key(keys, "Host") is False


@pytest.mark.parametrize(
    "text,expected",
    [("plain-name", False), ("a<b", True), ("x'y", True), ("file://etc", True), ("../up", True)],
)
def test_is_dangerous(text, expected):
    assert is_dangerous(text) is expected


def test_insert_and_select_with_list_argument(ctx):
    ids = [insert(ctx, "role", {"name": n, "note": ""}) for n in ("a", "b", "c")]
    rows = select_rows(ctx, "role", "id in ?", ids[:2], order="id")
    assert [r["name"] for r in rows] == ["a", "b"]
    rows = select_rows(ctx, "role", "id in (?)", ids[1:], order="id")
    assert [r["name"] for r in rows] == ["b", "c"]
    assert select_rows(ctx, "role", "id in ?", []) == []


def test_count_and_exists(ctx):
    insert(ctx, "role", {"name": "a"})
    insert(ctx, "role", {"name": "b"})
    assert count(ctx, "role") == 2
    assert count(ctx, "role", "name = ?", "a") == 1
    assert exists(ctx, "role", "name = ?", "zz") is False


def test_placeholder_mismatch(ctx):
    with pytest.raises(ModelError):
        count(ctx, "role", "name = ? and note = ?", "a")


def test_update_and_delete(ctx):
    rid = insert(ctx, "role", {"name": "a"})
    assert update_fields(ctx, "role", rid, {"note": "n"}) == 1
    assert select_rows(ctx, "role", "id = ?", rid)[0]["note"] == "n"
    assert delete_rows(ctx, "role", "id = ?", rid) == 1
    assert count(ctx, "role") == 0


def test_statistics(ctx):
    assert statistics(ctx, "user_group") == Statistics(total=0, last_updated=0)
    stamps = [100, 300, 200]
    for s in stamps:
        insert(ctx, "user_group", {"name": str(s), "update_at": s})
    stats = statistics(ctx, "user_group")
    assert stats.total == len(stamps)
    assert stats.last_updated == max(stamps)


def test_transaction_rolls_back(ctx):
    with pytest.raises(RuntimeError):
        with ctx.transaction():
            insert(ctx, "role", {"name": "a"})
            raise RuntimeError("boom")
    assert count(ctx, "role") == 0


def test_limit_offset(ctx):
    names = ["d", "a", "c", "b"]
    for n in names:
        insert(ctx, "role", {"name": n})
    rows = select_rows(ctx, "role", order="name", limit=2, offset=1)
    assert [r["name"] for r in rows] == sorted(names)[1:3]