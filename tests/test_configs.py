import pytest

from alertstore.common import ModelError, create_schema, open_context
from alertstore.configs import (
    Configs,
    config_get,
    configs_del,
    configs_get,
    configs_gets,
    configs_gets_by_key,
    configs_set,
    crypto_pass,
    init_salt,
)


@pytest.fixture
def ctx():
    c = open_context(":memory:")
    create_schema(c)
    return c


def test_get_missing_is_empty(ctx):
    assert configs_get(ctx, "nothing") == ""


def test_set_then_get_and_overwrite(ctx):
    configs_set(ctx, "k", "v1")
    assert configs_get(ctx, "k") == "v1"
    configs_set(ctx, "k", "v2")
    assert configs_get(ctx, "k") == "v2"
    assert len(configs_gets(ctx, "k")) == 1


def test_init_salt_is_idempotent(ctx):
    init_salt(ctx)
    salt = configs_get(ctx, "salt")
    assert len(salt) == 32
    init_salt(ctx)
    assert configs_get(ctx, "salt") == salt


def test_crypto_pass_depends_on_input_and_salt(ctx):
    init_salt(ctx)
    first = crypto_pass(ctx, "password")
    assert first == crypto_pass(ctx, "password")
    assert first != crypto_pass(ctx, "secret")
    configs_set(ctx, "salt", "other")
    assert crypto_pass(ctx, "password") != first


def test_add_rejects_duplicate(ctx):
    Configs(ckey="a", cval="1").add(ctx)
    with pytest.raises(ModelError):
        Configs(ckey="a", cval="2").add(ctx)


def test_update_and_get(ctx):
    item = Configs(ckey="a", cval="1")
    item.add(ctx)
    Configs(ckey="b", cval="x").add(ctx)
    item.cval = "changed"
    item.update(ctx)
    assert config_get(ctx, item.id) == Configs(id=item.id, ckey="a", cval="changed")
    item.ckey = "b"
    with pytest.raises(ModelError):
        item.update(ctx)


def test_gets_by_prefix_newest_first(ctx):
    for key in ("app.a", "app.b", "other"):
        configs_set(ctx, key, "v")
    assert [c.ckey for c in configs_gets(ctx, "app.")] == ["app.b", "app.a"]


def test_gets_by_key_fills_missing(ctx):
    configs_set(ctx, "a", "1")
    assert configs_gets_by_key(ctx, ["a", "b"]) == {"a": "1", "b": ""}


def test_delete(ctx):
    item = Configs(ckey="a", cval="1")
    item.add(ctx)
    configs_del(ctx, [item.id])
    assert config_get(ctx, item.id) is None