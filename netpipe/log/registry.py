"""Process-wide named writers."""

import atexit
import threading
from typing import Dict

from .writer import Writer

_writers: Dict[str, Writer] = {}
_lock = threading.Lock()


def get_writer(name: str = "default") -> Writer:
    """Return the writer registered under name, creating it uninitialized."""
    with _lock:
        writer = _writers.get(name)
        if writer is None:
            writer = _writers[name] = Writer()
        return writer


def finalize_all() -> None:
    """Finalize every registered writer; runs at interpreter exit."""
    with _lock:
        writers = list(_writers.values())
    for writer in writers:
        writer.finalize()


atexit.register(finalize_all)
