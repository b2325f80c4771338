import json
import logging
from pathlib import Path

import pytest

import main
from main import JSONLogFormatter, _parse_args, configure_logging


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    monkeypatch.setattr(main, "configure_logging", lambda env: None)


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"
    assert args.config is None


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "127.0.0.1", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "127.0.0.1"
    assert args.port == 8080


def test_config_option_precedes_subcommand() -> None:
    args = _parse_args(["--config", "tracker.yaml", "userinfo", "--port", "9001"])
    assert args.command == "userinfo"
    assert args.config == "tracker.yaml"
    assert args.port == 9001

    args = _parse_args(["--config=other.yaml", "--port", "9000"])
    assert args.command == "serve"
    assert args.config == "other.yaml"


def test_add_task_creates_catalog_entry(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "tracker.sqlite3"
    config_path = tmp_path / "tracker.yaml"
    config_path.write_text(f"database:\n  path: {db_path}\n", encoding="utf-8")

    assert main.main(["--config", str(config_path), "add-task", "Design Review"]) == 0
    assert "Created task #1: Design Review" in capsys.readouterr().out

    assert main.main(["--config", str(config_path), "add-task", "  "]) == 1


def test_init_db_creates_database(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "nested" / "tracker.sqlite3"
    config_path = tmp_path / "tracker.yaml"
    config_path.write_text(f"database:\n  path: {db_path}\n", encoding="utf-8")

    assert main.main(["--config", str(config_path), "init-db"]) == 0
    assert db_path.exists()
    assert "Database initialisation complete." in capsys.readouterr().out


def test_missing_config_exits(tmp_path: Path) -> None:
    with pytest.raises(SystemExit):
        main.main(["--config", str(tmp_path / "absent.yaml"), "init-db"])


def test_serve_runs_uvicorn_with_configured_bind(tmp_path: Path, monkeypatch) -> None:
    import uvicorn

    calls = {}

    def fake_run(app, **kwargs):
        calls["app"] = app
        calls.update(kwargs)

    monkeypatch.setattr(uvicorn, "run", fake_run)
    config_path = tmp_path / "tracker.yaml"
    config_path.write_text(
        f"database:\n  path: {tmp_path / 'tracker.sqlite3'}\nhttp_server:\n  port: 9100\n",
        encoding="utf-8",
    )

    assert main.main(["--config", str(config_path), "--host", "127.0.0.1"]) == 0
    assert calls["host"] == "127.0.0.1"
    assert calls["port"] == 9100
    assert calls["timeout_keep_alive"] == 60
    assert calls["app"].state.config.http_server.port == 9100


@pytest.mark.parametrize(
    ("env", "level", "json_lines"),
    [("local", logging.DEBUG, False), ("dev", logging.DEBUG, True), ("prod", logging.INFO, True)],
)
def test_configure_logging_per_environment(env, level, json_lines) -> None:
    root = logging.getLogger()
    handlers, previous_level = root.handlers[:], root.level
    try:
        configure_logging(env)

        assert root.level == level
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, JSONLogFormatter) is json_lines
    finally:
        root.handlers[:] = handlers
        root.setLevel(previous_level)


def test_json_log_lines() -> None:
    record = logging.LogRecord("timetracker.timers", logging.INFO, __file__, 1, "Started task %s", (3,), None)

    payload = json.loads(JSONLogFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "timetracker.timers"
    assert payload["msg"] == "Started task 3"
    assert "time" in payload
