from alertstore.rule_config import (
    HostQuery,
    HostRuleConfig,
    HostTrigger,
    PromQuery,
    PromRuleConfig,
    get_hosts_query,
    parse_int64,
    str2int,
)


def test_prom_rule_config_round_trip():
    cfg = PromRuleConfig(queries=[PromQuery(prom_ql="up == 0", severity=2)], inhibit=True)
    assert PromRuleConfig.from_dict(cfg.to_dict()) == cfg


def test_prom_rule_config_keys():
    data = PromRuleConfig(queries=[PromQuery(prom_ql="up", severity=1)]).to_dict()
    assert data == {"queries": [{"prom_ql": "up", "severity": 1}], "inhibit": False}


def test_host_rule_config_round_trip():
    cfg = HostRuleConfig(
        queries=[HostQuery(key="hosts", op="==", values=["h1"])],
        triggers=[HostTrigger(type="target_miss", duration=60, percent=10, severity=3)],
    )
    assert HostRuleConfig.from_dict(cfg.to_dict()) == cfg


def test_from_dict_null_queries():
    assert PromRuleConfig.from_dict({"queries": None}).queries == []


def test_hosts_query_group_ids():
    q = get_hosts_query([HostQuery(key="group_ids", op="==", values=[1.0, 2])])
    assert q == {"group_id in (?)": [1, 2]}
    q = get_hosts_query([HostQuery(key="group_ids", op="!=", values=[3])])
    assert q == {"group_id not in (?)": [3]}


def test_hosts_query_tags_last_wins():
    q = get_hosts_query([HostQuery(key="tags", op="==", values=["a=1", None, "b=2"])])
    assert q == {"tags like ?": "% b=2 %"}


def test_hosts_query_hosts_skips_none():
    q = get_hosts_query([HostQuery(key="hosts", op="!=", values=["h1", None])])
    assert q == {"ident not in (?)": ["h1"]}


def test_hosts_query_unknown_key_ignored():
    assert get_hosts_query([HostQuery(key="other", op="==", values=["x"])]) == {}


def test_parse_int64():
    assert parse_int64([1, 2.0, None, "x", 1.5]) == [1, 2, 0, 0, 0]
    assert parse_int64(None) == []


def test_str2int():
    assert str2int(["1", "x", "-3", "+4"]) == [1, 0, -3, 4]
    assert str2int([]) == []