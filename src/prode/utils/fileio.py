"""
Atomic file-write helpers for result files and background tables.

Content goes to a temporary file in the destination directory, which is then
moved into place with ``os.replace()``. Readers see either the previous file
or the complete new one.
"""

from __future__ import annotations

import json
import os
import tempfile
from contextlib import contextmanager
from typing import Any, Iterator, TextIO


@contextmanager
def _atomic_open(path: str | os.PathLike) -> Iterator[TextIO]:
    path = os.fspath(path)
    dir_path = os.path.dirname(path) or "."
    tmp_path: str | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w", dir=dir_path, suffix=".tmp", delete=False, newline=""
        ) as tmp:
            tmp_path = tmp.name
            yield tmp
        os.replace(tmp_path, path)
    except BaseException:
        if tmp_path is not None and os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


def atomic_write_text(path: str | os.PathLike, content: str) -> None:
    """Write *content* to *path* atomically."""
    with _atomic_open(path) as f:
        f.write(content)


def atomic_write_json(path: str | os.PathLike, data: Any, *, indent: int = 2) -> None:
    """Serialize *data* as JSON to *path* atomically."""
    with _atomic_open(path) as f:
        json.dump(data, f, indent=indent)
        f.write("\n")
