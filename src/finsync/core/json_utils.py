#!/usr/bin/env python3
"""
JSON Utilities Module

Provides centralized JSON reading and writing functions with consistent formatting.
Cache blobs are written atomically (temporary file plus rename) so a crash
mid-write never leaves a truncated collection behind.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any


def write_json_atomic(filepath: str | Path, data: Any, default: Any = str) -> None:
    """
    Replace a JSON file atomically.

    The data is written to a temporary file in the same directory, flushed to
    disk and renamed over the target with os.replace.

    Args:
        filepath: Path to the JSON file
        data: Data to write to the file
        default: Function to serialize non-JSON types (default: str)
    """
    filepath = Path(filepath)
    filepath.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{filepath.name}.", suffix=".tmp", dir=filepath.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, ensure_ascii=False, default=default)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, filepath)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def read_json(filepath: str | Path) -> Any:
    """
    Read data from a JSON file.

    Args:
        filepath: Path to the JSON file

    Returns:
        The parsed JSON data
    """
    with open(filepath, encoding="utf-8") as f:
        return json.load(f)
