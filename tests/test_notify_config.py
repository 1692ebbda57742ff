from alertstore.notify_config import (
    NotifyChannel,
    NotifyContact,
    NotifyScript,
    Webhook,
)


def test_webhook_json_keys():
    hook = Webhook(url="http://example.com/hook", header_map={"X-A": "1"}, headers=["X-A", "1"])
    data = hook.to_dict()
    assert data["headers"] == {"X-A": "1"}
    assert data["headers_str"] == ["X-A", "1"]
    assert data["url"] == "http://example.com/hook"


def test_webhook_round_trip():
    password = "password"
    hook = Webhook(
        enable=True,
        url="http://example.com/hook",
        basic_auth_user="user",
        basic_auth_pass=password,
        timeout=5,
        header_map={"K": "V"},
        headers=["K", "V"],
        skip_verify=True,
    )
    assert Webhook.from_dict(hook.to_dict()) == hook


def test_webhook_from_empty_dict_defaults():
    assert Webhook.from_dict({}) == Webhook()


def test_notify_script_round_trip():
    script = NotifyScript(enable=True, type=1, content="/bin/notify", timeout=10)
    assert NotifyScript.from_dict(script.to_dict()) == script


def test_channel_and_contact_round_trip():
    channel = NotifyChannel(name="email", ident="email", built_in=True)
    contact = NotifyContact(name="mm_webhook_url", ident="mm_webhook_url", hide=True)
    assert NotifyChannel.from_dict(channel.to_dict()) == channel
    assert NotifyContact.from_dict(contact.to_dict()) == contact


def test_channel_json_keys():
    channel = NotifyChannel(name="email", ident="email", hide=True, built_in=True)
    data = channel.to_dict()
    assert data["name"] == "email"
    assert data["ident"] == "email"
    assert data["hide"] is True
    assert data["built_in"] is True