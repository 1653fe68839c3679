"""Label discovery and per-label shape counts."""

from __future__ import annotations

import asyncio
from collections import Counter
from pathlib import Path

from annoconv.ingest.scanner import ListingCache, find_json_files
from annoconv.observability.progress import ProgressEmitter, reporting_failure
from annoconv.scan.runner import fold_files, shape_labels


def _require_dir(input_dir: Path) -> Path:
    input_dir = Path(input_dir)
    if not input_dir.exists():
        raise FileNotFoundError(f"Directory does not exist: {input_dir}")
    return input_dir


def _label_set(json_path: Path) -> set[str]:
    return set(shape_labels(json_path))


def _label_counts(json_path: Path) -> Counter[str]:
    return Counter(shape_labels(json_path))


def scan_labels(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    *,
    workers: int | None = 0,
    cache: ListingCache | None = None,
) -> list[str]:
    """Return every distinct label in the tree, sorted."""

    with reporting_failure(progress, "Label scan"):
        json_files = find_json_files(_require_dir(input_dir), cache=cache)
        if not json_files:
            if progress is not None:
                progress.complete("No JSON files found")
            return []

        if progress is not None:
            progress.emit(0, len(json_files), "Scanning labels...")
        labels: set[str] = set()
        fold_files(json_files, _label_set, labels.update, workers=workers, progress=progress)

    result = sorted(labels)
    if progress is not None:
        progress.complete(f"Scan complete, found {len(result)} labels")
    return result


def scan_label_counts(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    *,
    workers: int | None = 0,
    cache: ListingCache | None = None,
) -> dict[str, int]:
    """Return label -> number of shapes carrying it, ordered by label."""

    with reporting_failure(progress, "Label count"):
        json_files = find_json_files(_require_dir(input_dir), cache=cache)
        if not json_files:
            if progress is not None:
                progress.complete("No JSON files found")
            return {}

        if progress is not None:
            progress.emit(0, len(json_files), "Counting labels...")
        counts: Counter[str] = Counter()
        fold_files(json_files, _label_counts, counts.update, workers=workers, progress=progress)

    if progress is not None:
        progress.complete(
            f"Count complete, {len(counts)} labels over {sum(counts.values())} shapes"
        )
    return dict(sorted(counts.items()))


async def scan_labels_async(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    *,
    workers: int | None = 0,
    cache: ListingCache | None = None,
) -> list[str]:
    return await asyncio.to_thread(
        scan_labels, input_dir, progress, workers=workers, cache=cache
    )


async def scan_label_counts_async(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    *,
    workers: int | None = 0,
    cache: ListingCache | None = None,
) -> dict[str, int]:
    return await asyncio.to_thread(
        scan_label_counts, input_dir, progress, workers=workers, cache=cache
    )
