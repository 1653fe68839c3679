"""Worker pool helper utilities."""

from __future__ import annotations

import os


def normalize_worker_count(requested: int | None) -> int:
    """Return a safe worker count for local multiprocessing.

    `None` and `0` mean "one worker per CPU".
    """

    cpu = os.cpu_count() or 1
    if requested is None or int(requested) == 0:
        return cpu
    workers = max(1, int(requested))
    return min(workers, cpu)
