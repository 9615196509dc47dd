import json

import cli


class _Resp:
    def __init__(self, payload, ok=True):
        self._payload = payload
        self.ok = ok

    def json(self):
        return self._payload


def test_change_posts_target_and_delta(monkeypatch, capsys):
    calls = []

    def fake_post(url, json=None, timeout=None):
        calls.append((url, json))
        return _Resp({"target": "es1", "required": 2, "running": 0, "delta": 2})

    monkeypatch.setattr(cli.requests, "post", fake_post)

    rc = cli.main(["--api", "http://api:9001/", "change", "--target", "es1", "--delta", "2"])

    assert rc == 0
    assert calls == [("http://api:9001/requirements", {"target": "es1", "delta": 2})]
    assert json.loads(capsys.readouterr().out)["required"] == 2


def test_change_reports_failure(monkeypatch):
    monkeypatch.setattr(cli.requests, "post", lambda url, json=None, timeout=None: _Resp({"detail": "bad"}, ok=False))
    assert cli.main(["change", "--target", "es1", "--delta", "-1"]) == 1


def test_events_passes_limit(monkeypatch, capsys):
    seen = {}

    def fake_get(url, params=None, timeout=None):
        seen["url"], seen["params"] = url, params
        return _Resp([])

    monkeypatch.setattr(cli.requests, "get", fake_get)

    assert cli.main(["events", "--limit", "5"]) == 0
    assert seen == {"url": "http://localhost:9001/events", "params": {"limit": 5}}
