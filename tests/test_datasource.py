import json

import pytest

from alertstore.common import ModelError, create_schema, insert, open_context
from alertstore.datasource import (
    Auth,
    Datasource,
    HTTPSettings,
    TLSSettings,
    datasource_del,
    datasource_get,
    datasource_get_map,
    datasource_statistics,
    get_datasource_ids_by_cluster_name,
    get_datasources,
    get_datasources_count_by,
    get_datasources_gets_by,
    get_datasources_gets_by_types,
)


@pytest.fixture
def ctx():
    context = open_context(":memory:")
    create_schema(context)
    yield context
    context.db.close()


def _add(ctx, name, **kwargs):
    ds = Datasource(name=name, **kwargs)
    ds.add(ctx)
    return ds


def test_fe2db_db2fe_round_trip():
    password = "password"
    ds = Datasource(
        name="prom",
        settings_json={"write_addr": "http://localhost"},
        http_json=HTTPSettings(timeout=5, dial_timeout=6, tls=TLSSettings(True), max_idle_conns_per_host=7,
                               url="http://localhost:9090", headers={"X": "y"}),
        auth_json=Auth(basic_auth=True, basic_auth_user="user", basic_auth_password=password),
    )
    ds.fe2db()
    back = Datasource(settings=ds.settings, http=ds.http, auth=ds.auth)
    back.db2fe()
    assert back.settings_json == ds.settings_json
    assert back.http_json == ds.http_json
    assert back.auth_json == ds.auth_json


def test_fe2db_json_keys():
    ds = Datasource()
    ds.fe2db()
    assert set(json.loads(ds.http)) == {"timeout", "dial_timeout", "tls", "max_idle_conns_per_host", "url", "headers"}
    assert set(json.loads(ds.auth)) == {"basic_auth", "basic_auth_user", "basic_auth_password"}
    assert ds.settings == ""


def test_db2fe_defaults():
    ds = Datasource()
    ds.db2fe()
    assert ds.http_json.timeout == 10000
    assert ds.http_json.dial_timeout == 10000
    assert ds.http_json.max_idle_conns_per_host == 100


def test_db2fe_bad_json_raises():
    ds = Datasource(http="{not json")
    with pytest.raises(ModelError):
        ds.db2fe()


def test_verify_rejects_dangerous_name():
    with pytest.raises(ModelError, match="invalid characters"):
        Datasource(name="<script>").verify()


def test_add_and_get(ctx):
    ds = _add(ctx, "prom", plugin_type="prometheus", http_json=HTTPSettings(url="http://localhost:9090"))
    got = datasource_get(ctx, ds.id)
    assert got.name == "prom"
    assert got.http_json.url == "http://localhost:9090"
    assert got.created_at == ds.created_at == got.updated_at


def test_get_missing_raises(ctx):
    with pytest.raises(ModelError, match="not found"):
        datasource_get(ctx, 42)


def test_load(ctx):
    ds = _add(ctx, "prom", description="desc")
    fresh = Datasource(id=ds.id)
    fresh.load(ctx)
    assert fresh.description == "desc"


def test_update_selected_columns(ctx):
    ds = _add(ctx, "prom", description="old", status="enabled")
    ds.description = "new"
    ds.status = "disabled"
    ds.update(ctx, "description")
    got = datasource_get(ctx, ds.id)
    assert got.description == "new"
    assert got.status == "enabled"


def test_delete(ctx):
    a = _add(ctx, "a")
    b = _add(ctx, "b")
    datasource_del(ctx, [a.id])
    assert [d.id for d in get_datasources(ctx)] == [b.id]
    datasource_del(ctx, [])
    assert len(get_datasources(ctx)) == 1


def test_ids_by_cluster_name(ctx):
    a = _add(ctx, "a", cluster_name="c1")
    _add(ctx, "b", cluster_name="c2")
    c = _add(ctx, "c", cluster_name="c1")
    assert sorted(get_datasource_ids_by_cluster_name(ctx, "c1")) == sorted([a.id, c.id])


def test_gets_by_and_count_by(ctx):
    a = _add(ctx, "a", plugin_type="prometheus", category="timeseries", status="enabled")
    b = _add(ctx, "b", plugin_type="prometheus", category="timeseries", status="disabled")
    _add(ctx, "c", plugin_type="elasticsearch", category="logging", status="enabled")
    assert get_datasources_count_by(ctx, "prometheus", "", "") == 2
    assert get_datasources_count_by(ctx, "", "", "") == 3
    found = get_datasources_gets_by(ctx, "prometheus", "timeseries", "", "")
    assert [d.id for d in found] == [b.id, a.id]
    enabled = get_datasources_gets_by(ctx, "prometheus", "", "", "enabled")
    assert [d.id for d in enabled] == [a.id]


def test_gets_by_types(ctx):
    _add(ctx, "a", plugin_type="prometheus")
    _add(ctx, "b", plugin_type="elasticsearch")
    _add(ctx, "c", plugin_type="loki")
    mapping = get_datasources_gets_by_types(ctx, ["prometheus", "loki"])
    assert set(mapping) == {"a", "c"}
    assert mapping["a"].http_json.timeout == 10000


def test_get_map_skips_broken(ctx):
    good = _add(ctx, "good")
    insert(ctx, "datasource", {"name": "bad", "http": "{broken"})
    mapping = datasource_get_map(ctx)
    assert list(mapping) == [good.id]


def test_statistics(ctx):
    a = _add(ctx, "a")
    stats = datasource_statistics(ctx)
    assert stats.total == 1
    assert stats.last_updated == a.updated_at