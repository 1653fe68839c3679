"""Fold-then-merge fan-out of per-file work over a process pool."""

from __future__ import annotations

from concurrent.futures import Future, ProcessPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, Sequence, TypeVar

from annoconv.observability.progress import ProgressEmitter, should_report
from annoconv.storage.atomic import read_json
from annoconv.workers.pool import normalize_worker_count


T = TypeVar("T")


def read_shapes(json_path: Path) -> list[dict[str, Any]]:
    """Raw shape objects of one document; unreadable documents yield none."""

    try:
        payload = read_json(json_path)
    except (OSError, ValueError):
        return []
    if not isinstance(payload, dict):
        return []
    shapes = payload.get("shapes")
    if not isinstance(shapes, list):
        return []
    return [shape for shape in shapes if isinstance(shape, dict)]


def shape_labels(json_path: Path) -> list[str]:
    """Labels of one document in shape order."""

    return [
        shape["label"]
        for shape in read_shapes(json_path)
        if isinstance(shape.get("label"), str)
    ]


def fold_files(
    json_files: Sequence[Path],
    per_file: Callable[[Path], T],
    merge: Callable[[T], None],
    *,
    workers: int | None = 0,
    progress: ProgressEmitter | None = None,
    message: str = "Scanned {current} / {total} files",
) -> None:
    """Run `per_file` over every file and hand each partial result to `merge`.

    `merge` only ever runs in the calling thread. Progress is reported every
    few files and always on the last one.
    """

    total = len(json_files)
    max_workers = normalize_worker_count(workers)

    def _done(current: int) -> None:
        if progress is not None and should_report(current, total):
            progress.emit(current, total, message.format(current=current, total=total))

    if max_workers <= 1 or total <= 1:
        for current, json_path in enumerate(json_files, start=1):
            merge(per_file(json_path))
            _done(current)
        return

    with ProcessPoolExecutor(max_workers=min(max_workers, total)) as executor:
        futures: list[Future[T]] = [executor.submit(per_file, path) for path in json_files]
        for current, future in enumerate(as_completed(futures), start=1):
            merge(future.result())
            _done(current)
