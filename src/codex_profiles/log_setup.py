# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

import json
import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

DEBUG_LOG_NAME = "debug.log"


class JsonFormatter(logging.Formatter):
    """One JSON object per line: timestamp, level, module and message."""

    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "module": record.module,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_record["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_record)


def setup_debug_logger(log_dir: Path) -> logging.Logger:
    """Route the codex_profiles logger into a rotating JSON file under ``log_dir``."""
    os.makedirs(log_dir, exist_ok=True)

    logger = logging.getLogger("codex_profiles")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    if not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        handler = RotatingFileHandler(
            os.path.join(log_dir, DEBUG_LOG_NAME),
            maxBytes=5 * 1024 * 1024,  # 5 MB
            backupCount=2,
            encoding="utf-8",
        )
        handler.setFormatter(JsonFormatter())
        logger.addHandler(handler)

    return logger
