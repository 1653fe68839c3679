"""Output directory layouts for each export format."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from annoconv.pipeline.split import FileType, Split


@dataclass(frozen=True, slots=True)
class LabelFormatPaths:
    """`images/{split}` + `labels/{split}` tree for the bbox/polygon label format."""

    base_dir: Path
    train_images: Path
    val_images: Path
    train_labels: Path
    val_labels: Path
    test_images: Path | None = None
    test_labels: Path | None = None

    def output_dir(self, split: Split, file_type: FileType) -> Path:
        if file_type is FileType.ANNOTATION:
            return self.base_dir
        images = file_type is FileType.IMAGE
        if split is Split.VAL:
            return self.val_images if images else self.val_labels
        if split is Split.TEST:
            test_dir = self.test_images if images else self.test_labels
            if test_dir is not None:
                return test_dir
        return self.train_images if images else self.train_labels


@dataclass(frozen=True, slots=True)
class CocoPaths:
    """`images/{split}` + `annotations/` tree for the COCO-style format."""

    base_dir: Path
    annotations: Path
    train_images: Path
    val_images: Path
    test_images: Path | None = None

    def output_dir(self, split: Split, file_type: FileType) -> Path:
        if file_type is not FileType.IMAGE:
            return self.annotations
        if split is Split.VAL:
            return self.val_images
        if split is Split.TEST and self.test_images is not None:
            return self.test_images
        return self.train_images


@dataclass(frozen=True, slots=True)
class FlatPaths:
    """Single directory holding every output file."""

    base_dir: Path

    def output_dir(self, split: Split, file_type: FileType) -> Path:
        return self.base_dir


def build_label_format_paths(base_dir: Path, with_test: bool) -> LabelFormatPaths:
    images = base_dir / "images"
    labels = base_dir / "labels"
    return LabelFormatPaths(
        base_dir=base_dir,
        train_images=images / Split.TRAIN.value,
        val_images=images / Split.VAL.value,
        train_labels=labels / Split.TRAIN.value,
        val_labels=labels / Split.VAL.value,
        test_images=images / Split.TEST.value if with_test else None,
        test_labels=labels / Split.TEST.value if with_test else None,
    )


def build_coco_paths(base_dir: Path, with_test: bool) -> CocoPaths:
    images = base_dir / "images"
    return CocoPaths(
        base_dir=base_dir,
        annotations=base_dir / "annotations",
        train_images=images / Split.TRAIN.value,
        val_images=images / Split.VAL.value,
        test_images=images / Split.TEST.value if with_test else None,
    )


def ensure_label_format_layout(base_dir: Path, with_test: bool) -> LabelFormatPaths:
    """Create label-format directories if they do not already exist."""

    paths = build_label_format_paths(base_dir, with_test)
    for directory in (
        paths.train_images,
        paths.val_images,
        paths.train_labels,
        paths.val_labels,
        paths.test_images,
        paths.test_labels,
    ):
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)
    return paths


def ensure_coco_layout(base_dir: Path, with_test: bool) -> CocoPaths:
    """Create COCO-style directories if they do not already exist."""

    paths = build_coco_paths(base_dir, with_test)
    for directory in (
        paths.annotations,
        paths.train_images,
        paths.val_images,
        paths.test_images,
    ):
        if directory is not None:
            directory.mkdir(parents=True, exist_ok=True)
    return paths


def ensure_flat_layout(base_dir: Path) -> FlatPaths:
    base_dir.mkdir(parents=True, exist_ok=True)
    return FlatPaths(base_dir=base_dir)
