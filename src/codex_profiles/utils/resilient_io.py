# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/codex_profiles/utils/resilient_io.py
"""
Atomic file replacement helpers.

Every write lands in a temp file inside the destination's directory, is
flushed and fsynced, then renamed over the target so readers only ever see
the old or the new contents. Callers translate ``OSError`` into their own
error types.
"""

import json
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

lib_logger = logging.getLogger("codex_profiles")

PathLike = Union[str, Path]


def _existing_mode(path: Path) -> Optional[int]:
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        return None


def _write_with_mode(path: Path, data: bytes, mode: Optional[int]) -> None:
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)

    tmp_fd, tmp_path = tempfile.mkstemp(
        dir=parent, prefix=f".{path.name}.tmp-{os.getpid()}-"
    )
    try:
        with os.fdopen(tmp_fd, "wb") as f:
            tmp_fd = None
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        if mode is not None:
            os.chmod(tmp_path, mode)
        os.replace(tmp_path, path)
        tmp_path = None
    finally:
        if tmp_fd is not None:
            os.close(tmp_fd)
        if tmp_path is not None and os.path.exists(tmp_path):
            os.remove(tmp_path)

    lib_logger.debug(f"Atomically wrote {len(data)} bytes to '{path}'")


def write_atomic(path: PathLike, data: bytes) -> None:
    """
    Replace ``path`` with ``data``, keeping the permissions of the file being
    replaced when it already exists.

    Args:
        path: Destination file
        data: Full new contents

    Raises:
        OSError: If the temp file cannot be written or renamed into place
    """
    path = Path(path)
    _write_with_mode(path, data, _existing_mode(path))


def write_json_atomic(path: PathLike, value: Any) -> None:
    """Serialize ``value`` as pretty JSON with a trailing newline and write it atomically."""
    text = json.dumps(value, indent=2) + "\n"
    write_atomic(path, text.encode("utf-8"))


def copy_atomic(source: PathLike, dest: PathLike) -> None:
    """Copy ``source`` over ``dest`` atomically; ``dest`` takes the permissions of ``source``."""
    source = Path(source)
    mode = stat.S_IMODE(source.stat().st_mode)
    data = source.read_bytes()
    _write_with_mode(Path(dest), data, mode)
