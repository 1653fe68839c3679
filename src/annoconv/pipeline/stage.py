"""Conversion pipeline interfaces and helpers shared by every exporter."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol, Sequence

from annoconv.annotation.schema import (
    Annotation,
    AnnotationParseError,
    InvalidShapeError,
    Shape,
)
from annoconv.config.schema import ConversionConfig
from annoconv.pipeline.context import (
    InvalidAnnotation,
    ProcessedFileResult,
    ProcessingContext,
)
from annoconv.pipeline.split import FileType, Split
from annoconv.scan.runner import fold_files
from annoconv.storage.files import read_annotation


class OutputDirectories(Protocol):
    """Directory layout of one export format."""

    base_dir: Path

    def output_dir(self, split: Split, file_type: FileType) -> Path:
        ...


class ConversionPipeline(Protocol):
    """Hooks every export format implements."""

    needs_split: bool

    def setup_output_dirs(self, config: ConversionConfig) -> OutputDirectories:
        ...

    def process_file(
        self,
        json_path: Path,
        config: ConversionConfig,
        output_dirs: OutputDirectories,
        context: ProcessingContext,
    ) -> ProcessedFileResult:
        ...

    def finalize(
        self,
        config: ConversionConfig,
        output_dirs: OutputDirectories,
        context: ProcessingContext,
    ) -> None:
        ...


def annotation_labels(json_path: Path) -> set[str]:
    try:
        annotation = read_annotation(json_path)
    except AnnotationParseError:
        return set()
    return {shape.label for shape in annotation.shapes}


def gather_labels(
    json_files: Sequence[Path],
    context: ProcessingContext,
    workers: int | None = 1,
) -> None:
    """First pass: assign ids to every label in alphabetical order."""

    labels: set[str] = set()
    fold_files(json_files, annotation_labels, labels.update, workers=workers)
    for label in sorted(labels):
        context.ensure_label(label)


def new_context(config: ConversionConfig) -> ProcessingContext:
    if config.label_list:
        return ProcessingContext.with_labels(config.label_list)
    return ProcessingContext()


def register_incremental_labels(
    annotation: Annotation,
    config: ConversionConfig,
    context: ProcessingContext,
) -> None:
    """Assign first-encounter ids when neither a list nor sorted ids are in use."""

    if config.label_list or config.deterministic_labels:
        return
    for shape in annotation.shapes:
        context.ensure_label(shape.label)


def invalid_record(file_name: str, shape: Shape, error: InvalidShapeError) -> InvalidAnnotation:
    return InvalidAnnotation(
        file=file_name,
        label=shape.label,
        reason=error.reason.message,
        shape_type=shape.shape_type,
        points_count=len(shape.points),
    )


def filtered_empty_name(annotation: Annotation, accepted: int, label_skips: int, name: str) -> str | None:
    """`name` when the label policy removed every shape of a non-empty image."""

    if annotation.shapes and accepted == 0 and label_skips == len(annotation.shapes):
        return name
    return None
