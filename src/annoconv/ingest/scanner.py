"""Discover annotation documents and images under an input directory."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import time
from typing import Callable, Iterable

IMAGE_EXTENSIONS = frozenset(
    {"bmp", "dng", "jpeg", "jpg", "mpo", "png", "tif", "tiff", "webp", "pfm"}
)

# Written into every dataset directory this package creates so later scans skip it.
OUTPUT_MARKER = ".annoconv-output"
_LEGACY_OUTPUT_NAMES = ("YOLODataset", "COCODataset")


def is_image_extension(ext: str) -> bool:
    return ext.lower().lstrip(".") in IMAGE_EXTENSIONS


def _walk_files(root: Path) -> list[Path]:
    found: list[Path] = []
    for current, dirnames, filenames in os.walk(root):
        current_path = Path(current)
        if OUTPUT_MARKER in filenames or any(
            name in current_path.name for name in _LEGACY_OUTPUT_NAMES
        ):
            dirnames[:] = []
            continue
        dirnames.sort()
        for filename in sorted(filenames):
            found.append(current_path / filename)
    return found


@dataclass(slots=True)
class _CacheEntry:
    stored_at: float
    paths: list[Path]


@dataclass(slots=True)
class ListingCache:
    """Directory listings keyed by (root, kind), expired after `ttl_seconds`."""

    ttl_seconds: float = 30.0
    clock: Callable[[], float] = time.monotonic
    _entries: dict[tuple[str, str], _CacheEntry] = field(default_factory=dict)

    def get(self, root: Path, kind: str, loader: Callable[[Path], list[Path]]) -> list[Path]:
        key = (str(root.resolve()), kind)
        now = self.clock()
        entry = self._entries.get(key)
        if entry is not None and now - entry.stored_at < self.ttl_seconds:
            return list(entry.paths)
        paths = loader(root)
        self._entries[key] = _CacheEntry(stored_at=now, paths=list(paths))
        return paths

    def invalidate(self, root: Path | None = None) -> None:
        """Drop cached listings for `root`, or everything when omitted."""

        if root is None:
            self._entries.clear()
            return
        resolved = str(root.resolve())
        for key in [key for key in self._entries if key[0] == resolved]:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


def _list_json(root: Path) -> list[Path]:
    return [path for path in _walk_files(root) if path.suffix.lower() == ".json"]


def _list_images(root: Path) -> list[Path]:
    return [path for path in _walk_files(root) if is_image_extension(path.suffix)]


def find_json_files(root: Path, cache: ListingCache | None = None) -> list[Path]:
    """Return annotation JSON files under `root` in deterministic walk order."""

    if cache is not None:
        return cache.get(root, "json", _list_json)
    return _list_json(root)


def find_image_files(root: Path, cache: ListingCache | None = None) -> list[Path]:
    """Return image files under `root` in deterministic walk order."""

    if cache is not None:
        return cache.get(root, "images", _list_images)
    return _list_images(root)


def find_background_images(
    root: Path,
    processed_keys: Iterable[str],
    cache: ListingCache | None = None,
) -> list[Path]:
    """Images under `root` with no annotation: unreferenced and without a sibling JSON."""

    seen = set(processed_keys)
    return [
        path
        for path in find_image_files(root, cache=cache)
        if str(path.resolve()) not in seen and not path.with_suffix(".json").exists()
    ]
