import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from codex_profiles.log_setup import setup_debug_logger


@pytest.fixture
def clean_logger():
    logger = logging.getLogger("codex_profiles")
    level = logger.level
    yield logger
    for handler in [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]:
        handler.close()
        logger.removeHandler(handler)
    logger.setLevel(level)


def test_debug_log_is_json_lines(tmp_path, clean_logger) -> None:
    log_dir = tmp_path / "logs"

    logger = setup_debug_logger(log_dir)
    setup_debug_logger(log_dir)
    logger.info("Saved profile 'a'")
    for handler in logger.handlers:
        handler.flush()

    handlers = [h for h in logger.handlers if isinstance(h, RotatingFileHandler)]
    assert len(handlers) == 1
    assert logger.propagate is False
    record = json.loads((log_dir / "debug.log").read_text(encoding="utf-8").splitlines()[-1])
    assert record["level"] == "INFO"
    assert record["message"] == "Saved profile 'a'"
    assert record["module"] == "test_log_setup"
