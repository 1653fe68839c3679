"""Bounding-box / polygon label-format exporter."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from annoconv.annotation.schema import (
    Annotation,
    InputAnnotationFormat,
    InvalidReason,
    InvalidShapeError,
    Shape,
)
from annoconv.config.schema import AnnotationFormat, ConversionConfig
from annoconv.detection.analyzer import validate_shape_points
from annoconv.geometry.shapes import calculate_bbox, normalize_polygon, rectangle_to_polygon
from annoconv.ingest.scanner import OUTPUT_MARKER, find_background_images
from annoconv.observability.logging import get_logger, log_event
from annoconv.pipeline.context import ProcessedFileResult, ProcessingContext
from annoconv.pipeline.split import FileType, split_for_key
from annoconv.pipeline.stage import (
    filtered_empty_name,
    invalid_record,
    register_incremental_labels,
)
from annoconv.storage.atomic import atomic_write_text
from annoconv.storage.files import (
    copy_image,
    extract_embedded_image,
    image_key,
    image_size,
    read_annotation,
    resolve_image_path,
    unique_path,
)
from annoconv.storage.layout import LabelFormatPaths, ensure_label_format_layout


_LOGGER = get_logger("annoconv.export.yolo")


def shape_to_yolo_line(
    shape: Shape,
    class_id: int,
    image_width: int,
    image_height: int,
    annotation_format: AnnotationFormat,
    input_format: InputAnnotationFormat,
) -> str:
    """Format one label line, raising InvalidShapeError for unusable shapes."""

    validate_shape_points(shape, input_format)

    if annotation_format is AnnotationFormat.BBOX:
        box = calculate_bbox(shape, image_width, image_height)
        if box is None:
            raise InvalidShapeError(InvalidReason.zero_area())
        x_center, y_center, width, height = box
        return f"{class_id} {x_center:.6f} {y_center:.6f} {width:.6f} {height:.6f}"

    points = shape.points
    if input_format is InputAnnotationFormat.BBOX_2POINT:
        points = rectangle_to_polygon(points)
    normalized = normalize_polygon(points, image_width, image_height)
    coords = " ".join(f"{x:.6f} {y:.6f}" for x, y in normalized)
    return f"{class_id} {coords}"


def write_dataset_yaml(
    base_dir: Path,
    class_names: list[str],
    has_test: bool,
) -> Path:
    """Write the dataset descriptor listing split roots and class names."""

    payload: dict[str, Any] = {
        "path": str(base_dir.resolve()),
        "train": "images/train",
        "val": "images/val",
        "test": "images/test" if has_test else None,
        "names": {idx: name for idx, name in enumerate(class_names)},
    }
    yaml_path = base_dir / "dataset.yaml"
    atomic_write_text(
        yaml_path,
        yaml.safe_dump(payload, default_flow_style=False, allow_unicode=True, sort_keys=False),
    )
    return yaml_path


def _place_image(
    annotation: Annotation,
    image_path: Path,
    images_dir: Path,
) -> Path:
    if annotation.image_data:
        ext = image_path.suffix or ".png"
        dest = unique_path(images_dir / f"{image_path.stem}{ext}")
        return extract_embedded_image(annotation.image_data, dest)
    if image_path.exists():
        return copy_image(image_path, images_dir)
    raise FileNotFoundError(f"Image file not found: {image_path}")


class YoloPipeline:
    """Writes `images/{split}` + `labels/{split}/*.txt` and `dataset.yaml`."""

    needs_split = True

    def setup_output_dirs(self, config: ConversionConfig) -> LabelFormatPaths:
        paths = ensure_label_format_layout(config.dataset_dir, config.has_test_split)
        atomic_write_text(paths.base_dir / OUTPUT_MARKER, "yolo\n")
        return paths

    def process_file(
        self,
        json_path: Path,
        config: ConversionConfig,
        output_dirs: LabelFormatPaths,
        context: ProcessingContext,
    ) -> ProcessedFileResult:
        annotation = read_annotation(json_path)
        image_path = resolve_image_path(json_path, annotation.image_path)
        key = image_key(image_path)
        if context.is_image_processed(key):
            return ProcessedFileResult(duplicate=True)
        context.mark_image_processed(key)

        split = split_for_key(key, config.val_size, config.test_size)
        register_incremental_labels(annotation, config, context)

        placed = _place_image(annotation, image_path, output_dirs.output_dir(split, FileType.IMAGE))
        width, height = annotation.image_width, annotation.image_height
        if annotation.shapes:
            width, height = image_size(annotation, placed)

        input_format = config.detected_input_format or InputAnnotationFormat.UNKNOWN
        lines: list[str] = []
        result = ProcessedFileResult()
        label_skips = 0
        for shape in annotation.shapes:
            class_id = context.label_map.get(shape.label)
            if class_id is None:
                context.add_skipped_label(shape.label)
                result.annotations_skipped += 1
                label_skips += 1
                continue
            try:
                line = shape_to_yolo_line(
                    shape,
                    class_id,
                    width,
                    height,
                    config.annotation_format,
                    input_format,
                )
            except InvalidShapeError as exc:
                result.invalid_annotations.append(invalid_record(json_path.name, shape, exc))
                result.annotations_skipped += 1
                continue
            lines.append(line)

        result.annotations_processed = len(lines)
        result.filtered_empty_file = filtered_empty_name(
            annotation, len(lines), label_skips, placed.name
        )
        label_path = output_dirs.output_dir(split, FileType.LABEL) / f"{placed.stem}.txt"
        atomic_write_text(label_path, "\n".join(lines))
        return result

    def add_background_images(
        self,
        config: ConversionConfig,
        output_dirs: LabelFormatPaths,
        context: ProcessingContext,
    ) -> None:
        """Copy unannotated images into their split with an empty label file."""

        for image_path in find_background_images(config.input_dir, context.processed_images):
            key = image_key(image_path)
            split = split_for_key(key, config.val_size, config.test_size)
            try:
                placed = copy_image(image_path, output_dirs.output_dir(split, FileType.IMAGE))
                label_path = output_dirs.output_dir(split, FileType.LABEL) / f"{placed.stem}.txt"
                atomic_write_text(label_path, "")
            except OSError as exc:
                log_event(
                    _LOGGER,
                    "background_copy_failed",
                    level=logging.WARNING,
                    image=str(image_path),
                    error=str(exc),
                )
                continue
            context.mark_image_processed(key)
            context.stats.add_background_file(image_path.name)

    def finalize(
        self,
        config: ConversionConfig,
        output_dirs: LabelFormatPaths,
        context: ProcessingContext,
    ) -> None:
        if config.include_background:
            self.add_background_images(config, output_dirs, context)
        write_dataset_yaml(output_dirs.base_dir, context.labels_by_id(), config.has_test_split)
