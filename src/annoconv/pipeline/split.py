"""Deterministic train/val/test assignment."""

from __future__ import annotations

from enum import Enum
from hashlib import sha1


class Split(str, Enum):
    """Dataset partition an image is assigned to."""

    TRAIN = "train"
    VAL = "val"
    TEST = "test"
    NONE = ""


class FileType(str, Enum):
    """Kind of output file, used to resolve its directory."""

    IMAGE = "image"
    LABEL = "label"
    ANNOTATION = "annotation"


def stable_hash(value: str) -> int:
    """Process-independent 64-bit hash of a string."""

    digest = sha1(value.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def determine_split(path_hash: int, val_size: float, test_size: float) -> Split:
    """Map a path hash onto a split using per-mille buckets."""

    ratio = (path_hash % 1000) / 1000.0
    if ratio < val_size:
        return Split.VAL
    if ratio < val_size + test_size:
        return Split.TEST
    return Split.TRAIN


def split_for_key(key: str, val_size: float, test_size: float) -> Split:
    return determine_split(stable_hash(key), val_size, test_size)
