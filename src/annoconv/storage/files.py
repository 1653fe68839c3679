"""Annotation document and image file IO."""

from __future__ import annotations

import base64
import binascii
import json
from pathlib import Path
import shutil

from PIL import Image

from annoconv.annotation.schema import Annotation, AnnotationParseError
from annoconv.storage.atomic import atomic_write_bytes, atomic_write_json, read_json


def read_annotation(path: Path) -> Annotation:
    """Read and parse one annotation JSON file."""

    try:
        payload = read_json(path)
    except OSError as exc:
        raise AnnotationParseError(f"Failed to open {path}: {exc}") from exc
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise AnnotationParseError(f"Failed to parse {path}: {exc}") from exc
    try:
        return Annotation.from_dict(payload)
    except AnnotationParseError as exc:
        raise AnnotationParseError(f"Failed to parse {path}: {exc}") from exc


def write_annotation(path: Path, annotation: Annotation) -> None:
    """Write one annotation JSON file keeping the conventional key order."""

    atomic_write_json(path, annotation.to_dict(), sort_keys=False)


def resolve_image_path(json_path: Path, image_path: str) -> Path:
    """Resolve an annotation's image reference relative to its JSON file."""

    candidate = Path(image_path)
    if candidate.is_absolute():
        return candidate
    return json_path.parent / candidate


def image_key(image_path: Path) -> str:
    """Canonical string used for de-duplication and split hashing."""

    return str(image_path.resolve())


def unique_path(path: Path) -> Path:
    """Return `path`, or `<stem>_<n><suffix>` for the first free n >= 1."""

    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def copy_image(src: Path, dest_dir: Path) -> Path:
    """Copy an image into `dest_dir`, renaming on collision."""

    if not src.name:
        raise ValueError(f"Invalid source path: {src}")
    dest_dir.mkdir(parents=True, exist_ok=True)
    final_path = unique_path(dest_dir / src.name)
    shutil.copy2(src, final_path)
    return final_path


def extract_embedded_image(image_data: str, dest_path: Path) -> Path:
    """Decode a base64 payload (optionally a data URL) into `dest_path`."""

    _, sep, tail = image_data.partition(",")
    encoded = tail if sep else image_data
    try:
        decoded = base64.b64decode(encoded, validate=False)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"Failed to decode base64: {exc}") from exc
    atomic_write_bytes(dest_path, decoded)
    return dest_path


def measure_image(path: Path) -> tuple[int, int]:
    """Return (width, height) read from the image header."""

    with Image.open(path) as image:
        return image.size


def image_size(annotation: Annotation, image_path: Path) -> tuple[int, int]:
    """Declared image size, falling back to the image file when it is unset."""

    if annotation.image_width > 0 and annotation.image_height > 0:
        return annotation.image_width, annotation.image_height
    return measure_image(image_path)
