import logging

import pytest

from statusboard.config import Config, load_config


def test_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("widgets: []\n", encoding="utf-8")
    cfg = load_config(path)
    assert cfg.fetch_timeout == 15
    assert cfg.reload_seconds == 5
    assert cfg.log_level == logging.INFO
    assert cfg.log_file is None
    assert cfg.store_path == path


def test_values_and_relative_store_path(tmp_path, monkeypatch):
    monkeypatch.setenv("SB_LOGS", str(tmp_path / "logs"))
    path = tmp_path / "config.yaml"
    path.write_text(
        "scheduler: {fetch_timeout: 2.5, reload_seconds: 1}\n"
        "logging: {level: debug, file: $SB_LOGS/sb.log}\n"
        "store: {path: widgets.yaml}\n",
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.fetch_timeout == 2.5
    assert cfg.reload_seconds == 1
    assert cfg.log_level == logging.DEBUG
    assert cfg.log_file == tmp_path / "logs" / "sb.log"
    assert cfg.store_path == tmp_path / "widgets.yaml"


def test_invalid_values():
    with pytest.raises(ValueError):
        Config(raw={"scheduler": {"fetch_timeout": 0}}).fetch_timeout
    with pytest.raises(ValueError):
        Config(raw={"scheduler": {"reload_seconds": "often"}}).reload_seconds
    with pytest.raises(ValueError):
        Config(raw={"logging": {"level": "chatty"}}).log_level
    with pytest.raises(ValueError):
        Config(raw={}).store_path


def test_top_level_must_be_mapping(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)
