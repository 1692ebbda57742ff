# alertstore

Storage models for an alerting service, kept in one SQLite database and
written against the standard library only.

What the package holds:

- alert rules (`alertstore.alert_rule`) and their structured rule
  configurations (`alertstore.rule_config`)
- active alert events (`alertstore.alert_cur_event`)
- mutes (`alertstore.alert_mute`) and subscriptions
  (`alertstore.alert_subscribe`)
- datasources (`alertstore.datasource`)
- user groups and their members (`alertstore.user_group`,
  `alertstore.user_group_member`), and the membership of user groups in
  business groups (`alertstore.busi_group_member`)
- roles and the operations granted to them (`alertstore.role`,
  `alertstore.role_operation`)
- key/value settings and password hashing (`alertstore.configs`)
- notification settings as dataclasses (`alertstore.notify_config`)
- the storage context and query helpers (`alertstore.common`)

## Installation

```
pip install .
```

With the test dependencies:

```
pip install ".[test]"
pytest
```

## Getting started

Open a context on a database file, or on `":memory:"`, and create the
tables:

```python
from alertstore.common import open_context, create_schema

ctx = open_context(":memory:")
create_schema(ctx)
```

Every model function takes this context first. Invalid input and
refused operations raise `alertstore.common.ModelError`. Several
operations can be grouped atomically:

```python
with ctx.transaction():
    ...
```

Nested `transaction()` blocks join the outer one.

### Teams and permissions

```python
from alertstore.user_group import UserGroup, user_group_get_by_id
from alertstore.user_group_member import user_group_member_add, my_group_ids
from alertstore.busi_group_member import BusiGroupMember, busi_group_member_add, busi_group_ids

team = UserGroup(name="ops", note="on-call team")
team.add(ctx)                       # refuses a duplicate name
user_group_member_add(ctx, team.id, 7)
my_group_ids(ctx, 7)                # [team.id]

busi_group_member_add(ctx, BusiGroupMember(busi_group_id=1, user_group_id=team.id, perm_flag="rw"))
busi_group_ids(ctx, [team.id], "rw")   # [1]
```

`busi_group_member_add` inserts a member, or changes its permission flag
if the pair already exists.

Roles and operations:

```python
from alertstore.role import Role
from alertstore.role_operation import role_operation_bind, role_has_operation, operations_of_role

Role(name="Standard").add(ctx)
role_operation_bind(ctx, "Standard", ["/dashboards", "/alert-rules"])
role_has_operation(ctx, ["Standard"], "/dashboards")   # True
```

`operations_of_role` returns every stored operation when the roles
include `Admin`.

### Alert rules

```python
from alertstore.alert_rule import AlertRule, alert_rule_gets

rule = AlertRule(
    group_id=1,
    name="high cpu",
    prom_ql="cpu_usage_active > 90",
    severity=2,
    datasource_ids_json=[0],
)
rule.fe2db()    # builds rule_config from prom_ql and severity
rule.add(ctx)   # verifies, then refuses a same-named rule on an overlapping datasource

for stored in alert_rule_gets(ctx, 1):
    print(stored.name, stored.rule_config_json)
```

`fe2db` turns the list and dictionary fields into stored text; `db2fe`
reverses it after loading. `update_column` rewrites `severity` inside the
rule config and `runbook_url` inside the annotations.
`alert_rule_dels` also removes the active events of each rule it
deletes. `generate_new_event` builds an `AlertCurEvent` carrying the
rule's attributes.

### Active events

```python
from alertstore.alert_cur_event import AggrRule, alert_cur_event_gets

events = alert_cur_event_gets(ctx, [], 0, 0, 2**31, -1, [], [], "cpu", 20, 0)
for event in events:
    print(event.gen_card_title([AggrRule("field", "rule_name"), AggrRule("tagkey", "ident")]))
```

Tags are stored joined by `,,`; `db2mem` splits them into `tags_map`.
`alert_numbers` counts events per business group id and
`alert_cur_event_get_map` maps each rule id to the hashes of its events.

### Mutes and subscriptions

Tag filters are a JSON list of `{"key": ..., "func": ..., "value": ...}`
objects, with `func` one of `==`, `!=`, `=~`, `!~`, `in`, `not in`.
`parse_tag_filters` compiles regular expressions and builds value sets.

```python
from alertstore.alert_mute import AlertMute
from alertstore.alert_subscribe import AlertSubscribe

tags = [{"key": "ident", "func": "=~", "value": "web-.*"}]

AlertMute(group_id=1, btime=1000, etime=2000, tags=tags, cause="maintenance").add(ctx)

sub = AlertSubscribe(group_id=1, name="to ops", tags=tags, user_group_ids=str(team.id),
                     redefine_severity=1, new_severity=1)
sub.add(ctx)
sub.match_cluster(5)   # True: no datasources configured
```

`AlertSubscribe.modify_event` applies the subscription's redefined
severity, channels, webhooks and user groups to an event.
`alert_mute_statistics` first deletes time-range mutes that have
expired.

### Datasources

```python
from alertstore.datasource import Datasource, HTTPSettings, datasource_get

ds = Datasource(name="prom", plugin_type="prometheus",
                http_json=HTTPSettings(url="http://localhost:9090"))
ds.add(ctx)
loaded = datasource_get(ctx, ds.id)   # raises ModelError if missing
loaded.http_json.timeout              # 10000 when unset
```

### Settings and passwords

`configs_set` and `configs_get` store and read string settings.
`init_salt(ctx)` creates a salt the first time it is called, and
`crypto_pass(ctx, raw)` returns the MD5 hex digest of the password with
that salt.

### Upgrading stored records

`alert_rule_upgrade_to_v6`, `alert_cur_event_upgrade_to_v6`,
`alert_mute_upgrade_to_v6` and `alert_subscribe_upgrade_to_v6` take a
mapping from cluster name to `Datasource` and fill in datasource ids,
product and category on existing records.

## What the package does not do

- It keeps no business groups themselves: only which user groups belong
  to a business group id. Creating, renaming or deleting business
  groups is left to the caller.
- It does not track monitored hosts or their metadata.
- It has no command line, server or user interface; it is a library of
  storage models only.
- It does not evaluate rules, send notifications or apply mutes to
  events; it stores what those steps need.