import itertools
import os
import re
import threading
import time
from uuid import uuid4

_EXTENSION_RE = re.compile(r"^\.[a-z0-9]{1,8}$")


class NameGenerator:
    """Mints collision-resistant tokens for staged uploads and output artifacts.

    A token is the wall clock in nanoseconds, a process-wide sequence number
    and a random suffix, so two requests landing in the same nanosecond still
    get distinct names.
    """

    def __init__(self):
        self._counter = itertools.count(1)
        self._lock = threading.Lock()

    def token(self) -> str:
        with self._lock:
            seq = next(self._counter)
        return f"{time.time_ns()}_{seq:06d}_{uuid4().hex[:8]}"


def new_job_id() -> str:
    return uuid4().hex


def safe_extension(filename: str) -> str:
    """Return the lower-cased extension of an untrusted filename, or '' if it looks odd."""
    ext = os.path.splitext(os.path.basename(filename or ""))[1].lower()
    return ext if _EXTENSION_RE.match(ext) else ""


def size_in_mb(num_bytes: int) -> float:
    return round(num_bytes / 1024 / 1024, 1)
