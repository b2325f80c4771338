from __future__ import annotations

from pathlib import Path

import pytest

from timetracker.config import ENV_LOCAL, ENV_PROD, TrackerConfig, load_config


def _write(path: Path, text: str) -> Path:
    path.write_text(text, encoding="utf-8")
    return path


def test_load_config_from_yaml(tmp_path: Path) -> None:
    config_path = _write(
        tmp_path / "tracker.yaml",
        """
env: prod
database:
  path: data/tracker.sqlite3
http_server:
  host: 127.0.0.1
  port: 9000
  timeout_keep_alive: 30
user_info:
  base_url: http://userinfo:8081
  timeout: 2.5
""",
    )

    config = load_config(config_path, environ={})

    assert config.env == ENV_PROD
    assert config.database.path == (tmp_path / "data" / "tracker.sqlite3").resolve()
    assert config.http_server.host == "127.0.0.1"
    assert config.http_server.port == 9000
    assert config.http_server.timeout_keep_alive == 30
    assert config.user_info.base_url == "http://userinfo:8081"
    assert config.user_info.timeout == 2.5
    assert config.user_info.port == 8081


def test_environment_overrides(tmp_path: Path) -> None:
    config_path = _write(tmp_path / "tracker.yaml", "env: local\n")
    db_path = tmp_path / "override.sqlite3"

    config = load_config(
        config_path,
        environ={
            "TRACKER_ENV": "dev",
            "TRACKER_DB_PATH": str(db_path),
            "TRACKER_USERINFO_URL": "http://elsewhere:1234",
        },
    )

    assert config.env == "dev"
    assert config.database.path == db_path.resolve()
    assert config.user_info.base_url == "http://elsewhere:1234"


def test_config_path_from_environment(tmp_path: Path) -> None:
    config_path = _write(tmp_path / "custom.yaml", "http_server:\n  port: 7000\n")

    config = load_config(environ={"TRACKER_CONFIG": str(config_path)})

    assert config.http_server.port == 7000


def test_missing_explicit_file_is_an_error(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml", environ={})
    with pytest.raises(FileNotFoundError):
        load_config(environ={"TRACKER_CONFIG": str(tmp_path / "absent.yaml")})


def test_unknown_environment_is_rejected(tmp_path: Path) -> None:
    config_path = _write(tmp_path / "tracker.yaml", "env: staging\n")
    with pytest.raises(ValueError):
        load_config(config_path, environ={})
    with pytest.raises(ValueError):
        TrackerConfig(env="qa")


def test_non_mapping_sections_are_rejected(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_config(_write(tmp_path / "list.yaml", "- a\n- b\n"), environ={})
    with pytest.raises(ValueError):
        load_config(_write(tmp_path / "section.yaml", "database: nope\n"), environ={})


def test_defaults() -> None:
    config = TrackerConfig()
    assert config.env == ENV_LOCAL
    assert config.database.path is None
    assert config.http_server.port == 8080
    assert config.user_info.base_url == "http://localhost:8081"


def test_app_without_arguments_uses_loaded_config(tmp_path: Path, monkeypatch) -> None:
    from timetracker.service import create_app

    config_path = _write(
        tmp_path / "tracker.yaml",
        "database:\n  path: tracker.sqlite3\nuser_info:\n  base_url: http://userinfo.internal:9000\n",
    )
    override_db = tmp_path / "override.sqlite3"
    monkeypatch.setenv("TRACKER_CONFIG", str(config_path))
    monkeypatch.delenv("TRACKER_ENV", raising=False)
    monkeypatch.delenv("TRACKER_USERINFO_URL", raising=False)
    monkeypatch.delenv("TRACKER_DB_PATH", raising=False)

    app = create_app()

    assert app.state.database.path == (tmp_path / "tracker.sqlite3").resolve()
    assert app.state.users._identity.base_url == "http://userinfo.internal:9000"

    monkeypatch.setenv("TRACKER_DB_PATH", str(override_db))
    monkeypatch.setenv("TRACKER_USERINFO_URL", "http://elsewhere:1234")

    app = create_app()

    assert app.state.database.path == override_db.resolve()
    assert app.state.users._identity.base_url == "http://elsewhere:1234"
    assert override_db.exists()
