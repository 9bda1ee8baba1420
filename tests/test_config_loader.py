import logging

import pytest
import yaml

from workforce_ingest.config_loader import ingest_settings, load_config, log_level
from workforce_ingest.errors import ConfigError


def _write(tmp_path, cfg):
    cfg_path = tmp_path / "cfg.yml"
    cfg_path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
    return cfg_path


def test_validate_config_missing_sections(tmp_path):
    cfg_path = tmp_path / "cfg.yml"
    cfg_path.write_text("{}", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)


def test_missing_config_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.yml")


def test_storage_backend_needs_location(tmp_path):
    cfg = {"paths": {}, "storage": {"backend": "relational"}}
    with pytest.raises(ConfigError, match="storage.url"):
        load_config(_write(tmp_path, cfg))

    cfg["storage"] = {"backend": "mongo", "url": "mongodb://x"}
    with pytest.raises(ConfigError, match="storage.backend"):
        load_config(_write(tmp_path, cfg))


def test_ingest_settings_defaults_and_overrides(tmp_path):
    cfg = {"paths": {}, "storage": {"backend": "local", "path": str(tmp_path / "db.sqlite")}}
    settings = ingest_settings(load_config(_write(tmp_path, cfg)))
    assert (settings.batch_size, settings.max_workers, settings.retry_attempts) == (500, 1, 3)
    assert settings.retry_backoff_seconds == 0.5
    assert settings.required_fields == ("employee_id",)

    cfg["ingest"] = {"batch_size": 250, "max_workers": 4, "retry": {"max_attempts": 5, "backoff_seconds": 0}}
    settings = ingest_settings(load_config(_write(tmp_path, cfg)))
    assert (settings.batch_size, settings.max_workers, settings.retry_attempts) == (250, 4, 5)
    assert settings.retry_backoff_seconds == 0.0


@pytest.mark.parametrize(
    "ingest",
    [
        {"batch_size": 0},
        {"batch_size": "big"},
        {"max_workers": 0},
        {"retry": {"max_attempts": 0}},
        {"retry": {"backoff_seconds": -1}},
        {"required_fields": ["badge"]},
    ],
)
def test_invalid_ingest_settings(tmp_path, ingest):
    cfg = {"paths": {}, "storage": {"backend": "local", "path": "db.sqlite"}, "ingest": ingest}
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, cfg))


def test_log_level_is_validated(tmp_path):
    cfg = {"paths": {}, "storage": {"backend": "local", "path": "db.sqlite"}, "log_level": "debug"}
    assert log_level(load_config(_write(tmp_path, cfg))) == logging.DEBUG
    assert log_level({}) == logging.INFO

    cfg["log_level"] = "verbose"
    with pytest.raises(ConfigError, match="log_level"):
        load_config(_write(tmp_path, cfg))
