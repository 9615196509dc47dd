import pytest
from fastapi.testclient import TestClient

import main


def test_missing_orchestrator_is_fatal(capsys):
    with pytest.raises(SystemExit) as exc:
        main.build(["--orchestrator", ""])
    assert exc.value.code == 2
    assert "orchestrator address is required" in capsys.readouterr().err


@pytest.mark.parametrize(
    "argv",
    [
        ["--orchestrator", "unix:///var/run/docker.sock", "--api-port", "nope"],
        ["--orchestrator", "unix:///var/run/docker.sock", "--api-port", "70000"],
        ["--orchestrator", "unix:///var/run/docker.sock", "--targets", " ; ;"],
    ],
)
def test_malformed_flags_are_fatal(argv):
    with pytest.raises(SystemExit) as exc:
        main.build(argv)
    assert exc.value.code == 2


def test_build_registers_initial_targets():
    cfg, app = main.build(
        [
            "--orchestrator",
            "unix:///var/run/docker.sock",
            "--targets",
            "http://es1:9200;http://es2:9200;http://es1:9200",
            "--api-port",
            "9100",
            "--image",
            "kibana:4.1",
        ]
    )
    assert cfg.orchestrator_url == "unix:///var/run/docker.sock"
    assert cfg.api_port == 9100
    assert cfg.image == "kibana:4.1"

    # TestClient without a context manager skips startup, so the run loop stays off.
    rows = TestClient(app).get("/requirements").json()
    assert [(r["target"], r["required"]) for r in rows] == [("http://es1:9200", 2), ("http://es2:9200", 1)]


def test_repeated_target_counts_twice():
    _, app = main.build(["--orchestrator", "unix:///var/run/docker.sock", "--targets", "es1;es1"])

    (row,) = TestClient(app).get("/requirements").json()
    assert (row["target"], row["required"]) == ("es1", 2)
