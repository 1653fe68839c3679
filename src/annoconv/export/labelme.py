"""Self-format exporter: a filtered copy of the source annotation corpus."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Sequence

from annoconv.annotation.schema import SHAPE_POLYGON, SHAPE_RECTANGLE, Shape
from annoconv.config.schema import ConversionConfig, LabelMeOutputFormat
from annoconv.geometry.shapes import bbox
from annoconv.ingest.scanner import OUTPUT_MARKER
from annoconv.pipeline.context import ProcessedFileResult, ProcessingContext
from annoconv.pipeline.split import FileType, Split
from annoconv.storage.atomic import atomic_write_text
from annoconv.storage.files import (
    copy_image,
    image_key,
    read_annotation,
    resolve_image_path,
    unique_path,
    write_annotation,
)
from annoconv.storage.layout import FlatPaths, ensure_flat_layout


def filter_shapes(
    shapes: Sequence[Shape],
    label_list: Sequence[str],
    context: ProcessingContext,
) -> tuple[list[Shape], int]:
    """Keep shapes whose label is allowed; return (kept, skipped_count).

    An empty allow-list keeps everything and registers every label seen.
    """

    if not label_list:
        for shape in shapes:
            context.ensure_label(shape.label)
        return list(shapes), 0

    allowed = set(label_list)
    kept: list[Shape] = []
    skipped = 0
    for shape in shapes:
        if shape.label in allowed:
            context.ensure_label(shape.label)
            kept.append(shape)
        else:
            context.add_skipped_label(shape.label)
            skipped += 1
    return kept, skipped


def rewrite_shape(shape: Shape, output_format: LabelMeOutputFormat) -> Shape:
    """Re-express a rectangle or polygon as an axis-aligned box."""

    if output_format is LabelMeOutputFormat.ORIGINAL:
        return shape
    if shape.shape_type not in (SHAPE_RECTANGLE, SHAPE_POLYGON) or not shape.points:
        return shape

    (min_x, min_y), (max_x, max_y) = bbox(shape.points)
    if output_format is LabelMeOutputFormat.BBOX_2POINT:
        return replace(
            shape,
            points=[(min_x, min_y), (max_x, max_y)],
            shape_type=SHAPE_RECTANGLE,
        )
    return replace(
        shape,
        points=[(min_x, min_y), (max_x, min_y), (max_x, max_y), (min_x, max_y)],
        shape_type=SHAPE_POLYGON,
    )


def render_summary(config: ConversionConfig, context: ProcessingContext) -> str:
    stats = context.stats
    lines = [
        "LabelMe Conversion Summary",
        "==========================",
        f"Source: {config.input_dir}",
        f"Files processed: {stats.processed_files}",
        f"Files skipped: {stats.skipped_files}",
        f"Files failed: {stats.failed_files}",
        f"Total annotations: {stats.total_annotations}",
        f"Skipped annotations: {stats.skipped_annotations}",
        f"Labels: {', '.join(context.labels_by_id())}",
        f"Skipped labels: {', '.join(sorted(context.skipped_labels))}",
    ]
    return "\n".join(lines) + "\n"


class LabelMePipeline:
    """Writes filtered annotation JSON plus images into one flat directory."""

    needs_split = False

    def setup_output_dirs(self, config: ConversionConfig) -> FlatPaths:
        paths = ensure_flat_layout(config.dataset_dir)
        atomic_write_text(paths.base_dir / OUTPUT_MARKER, "labelme\n")
        return paths

    def process_file(
        self,
        json_path: Path,
        config: ConversionConfig,
        output_dirs: FlatPaths,
        context: ProcessingContext,
    ) -> ProcessedFileResult:
        annotation = read_annotation(json_path)
        image_path = resolve_image_path(json_path, annotation.image_path)
        key = image_key(image_path)
        if context.is_image_processed(key):
            return ProcessedFileResult(duplicate=True)
        context.mark_image_processed(key)

        kept, skipped = filter_shapes(annotation.shapes, config.label_list, context)
        filtered_empty = bool(annotation.shapes) and not kept
        annotation.shapes = [
            rewrite_shape(shape, config.labelme_output_format) for shape in kept
        ]
        if config.remove_image_data:
            annotation.image_data = None

        output_dir = output_dirs.output_dir(Split.NONE, FileType.ANNOTATION)
        if image_path.exists():
            annotation.image_path = copy_image(image_path, output_dir).name
        json_target = unique_path(output_dir / json_path.name)
        write_annotation(json_target, annotation)

        return ProcessedFileResult(
            annotations_processed=len(annotation.shapes),
            annotations_skipped=skipped,
            filtered_empty_file=json_target.name if filtered_empty else None,
        )

    def finalize(
        self,
        config: ConversionConfig,
        output_dirs: FlatPaths,
        context: ProcessingContext,
    ) -> None:
        labels = context.labels_by_id()
        if labels:
            atomic_write_text(output_dirs.base_dir / "labels.txt", "\n".join(labels))
        atomic_write_text(
            output_dirs.base_dir / "conversion_summary.txt",
            render_summary(config, context),
        )
