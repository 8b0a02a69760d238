import logging

import pytest

from statusboard.logging_config import setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


def test_file_handler_gets_tagged_lines(tmp_path):
    log_file = tmp_path / "logs" / "statusboard.log"
    setup_logging("board", level=logging.DEBUG, log_file=log_file)
    logging.getLogger("statusboard.scheduler").warning("Widget %r skipped", 7)
    for handler in logging.getLogger().handlers:
        handler.flush()

    text = log_file.read_text(encoding="utf-8")
    assert "[BOARD] WARNING statusboard.scheduler - Widget 7 skipped" in text


def test_repeated_setup_replaces_handlers():
    setup_logging(level=logging.INFO)
    setup_logging(level=logging.WARNING)
    root = logging.getLogger()
    assert len(root.handlers) == 1
    assert root.level == logging.WARNING
