"""Utility modules shared by the PRODE engine and its I/O layer."""

from prode.utils.fileio import (
    atomic_write_json,
    atomic_write_text,
)

__all__ = [
    'atomic_write_json',
    'atomic_write_text',
]
