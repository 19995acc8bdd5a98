import logging

import pytest

from maintenance_hub.logging_setup import LOG_FILENAME, resolve_level, setup_logging
from maintenance_hub.settings import load_settings


def _ours(logger):
    return [h for h in logger.handlers if getattr(h, "baseFilename", "").endswith(LOG_FILENAME)]


@pytest.fixture
def log_settings(clean_env, monkeypatch):
    monkeypatch.setenv("DATA_ROOT", str(clean_env / "data"))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    monkeypatch.setenv("LOG_BACKUP_COUNT", "7")
    return load_settings(env_files=[])


def test_writes_under_data_root(log_settings, clean_env):
    path = setup_logging(log_settings)
    assert path == clean_env / "data" / "logs" / LOG_FILENAME
    logging.getLogger("maintenance_hub.tests").info("hello from the test")
    for h in _ours(logging.getLogger()):
        h.flush()
    assert "hello from the test" in path.read_text(encoding="utf-8")


def test_repeated_setup_keeps_one_handler(log_settings):
    setup_logging(log_settings)
    setup_logging(log_settings)
    root = logging.getLogger()
    assert len(_ours(root)) == 1
    assert len(_ours(logging.getLogger("uvicorn.access"))) == 1
    handler = _ours(root)[0]
    assert handler.backupCount == 7
    assert root.level == logging.DEBUG


def test_new_data_root_replaces_handler(log_settings, clean_env, monkeypatch):
    setup_logging(log_settings)
    monkeypatch.setenv("DATA_ROOT", str(clean_env / "other"))
    path = setup_logging(load_settings(env_files=[]))
    handlers = _ours(logging.getLogger())
    assert len(handlers) == 1
    assert handlers[0].baseFilename == str(path)


def test_unknown_level_falls_back_to_info():
    assert resolve_level("chatty") == logging.INFO
    assert resolve_level("warning") == logging.WARNING
