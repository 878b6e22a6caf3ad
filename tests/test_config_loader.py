import json
from pathlib import Path

import pytest

from restic_orchestrator.config.loader import CONFIG_ENV_VAR, BackupSource, ConfigLoader
from restic_orchestrator.core.exceptions import ConfigurationError


def _write(path: Path, data) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def _minimal(tmp_path, **extra):
    data = {
        "repository": "sftp:backup@nas.lan:/srv/restic",
        "log_path": str(tmp_path / "logs"),
        "sources": ["/home", {"identifier": "WD-123456", "sub_paths": ["Photos", "Docs"]}],
    }
    data.update(extra)
    return _write(tmp_path / "config.json", data)


def test_minimal_config_uses_defaults(tmp_path):
    settings = ConfigLoader.load(str(_minimal(tmp_path)))

    assert settings.repository == "sftp:backup@nas.lan:/srv/restic"
    assert settings.state_file == tmp_path / "logs" / "state.json"
    assert settings.sources == (
        BackupSource("/home"),
        BackupSource("WD-123456", ("Photos", "Docs")),
    )
    assert settings.global_retry_attempts == 4
    assert settings.maintenance_interval == 7
    assert settings.retention_policy[:2] == ("--keep-daily", "30")
    assert settings.smtp is None
    assert settings.history_file == tmp_path / "logs" / "run-history.jsonl"


def test_config_path_from_environment(tmp_path, monkeypatch):
    config = _minimal(tmp_path)
    monkeypatch.setenv(CONFIG_ENV_VAR, str(config))

    assert ConfigLoader.resolve_path() == config
    assert ConfigLoader.load().repository.startswith("sftp:")


def test_missing_file_raises(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        ConfigLoader.load(str(tmp_path / "absent.json"))


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Invalid JSON"):
        ConfigLoader.load(str(path))


def test_validation_collects_all_errors(tmp_path):
    path = _write(tmp_path / "config.json", {
        "repository": "",
        "sources": [],
        "global_retry_attempts": 0,
        "log_level": "LOUD",
    })

    with pytest.raises(ConfigurationError) as excinfo:
        ConfigLoader.load(str(path))

    message = str(excinfo.value)
    assert "repository must be set" in message
    assert "at least one backup source" in message
    assert "global_retry_attempts" in message
    assert "log_level" in message


def test_wrong_value_type_is_a_configuration_error(tmp_path):
    with pytest.raises(ConfigurationError):
        ConfigLoader.load(str(_minimal(tmp_path, maintenance_interval="weekly")))


def test_secrets_file_supplies_environment_and_smtp_password(tmp_path):
    secrets = _write(tmp_path / "secrets.json", {
        "environment": {"RESTIC_PASSWORD": "hunter2"},
        "smtp_password": "mail-secret",
    })
    config = _minimal(
        tmp_path,
        secrets_file=str(secrets),
        environment={"AWS_REGION": "eu-west-1"},
        smtp={"host": "mail.example.com", "username": "backup@example.com",
              "recipients": "ops@example.com, me@example.com"},
    )

    settings = ConfigLoader.load(str(config))

    assert settings.environment == {"AWS_REGION": "eu-west-1", "RESTIC_PASSWORD": "hunter2"}
    assert settings.smtp.password == "mail-secret"
    assert settings.smtp.sender == "backup@example.com"
    assert settings.smtp.recipients == ("ops@example.com", "me@example.com")
