"""COCO-style instance JSON exporter."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from annoconv.annotation.schema import (
    InputAnnotationFormat,
    InvalidShapeError,
    Point,
    SHAPE_CIRCLE,
    SHAPE_POLYGON,
    SHAPE_RECTANGLE,
    Shape,
)
from annoconv.config.schema import ConversionConfig, SegmentationMode
from annoconv.detection.analyzer import validate_shape_points
from annoconv.geometry.shapes import (
    calculate_coco_bbox,
    calculate_polygon_area,
    circle_radius,
    circle_to_polygon,
    flatten_polygon,
    rectangle_to_polygon,
)
from annoconv.ingest.scanner import OUTPUT_MARKER
from annoconv.pipeline.context import ProcessedFileResult, ProcessingContext
from annoconv.pipeline.split import FileType, Split, split_for_key
from annoconv.pipeline.stage import (
    filtered_empty_name,
    invalid_record,
    register_incremental_labels,
)
from annoconv.storage.atomic import atomic_write_json, atomic_write_text
from annoconv.storage.files import (
    copy_image,
    extract_embedded_image,
    image_key,
    image_size,
    read_annotation,
    resolve_image_path,
    unique_path,
)
from annoconv.storage.layout import CocoPaths, ensure_coco_layout


_CLOSING_TOLERANCE = 0.001


def _empty_dataset() -> dict[str, Any]:
    now = datetime.now(timezone.utc)
    return {
        "info": {
            "year": now.year,
            "version": "1.0",
            "description": "Exported from LabelMe annotations",
            "contributor": "annoconv",
            "url": "",
            "date_created": now.strftime("%Y-%m-%d"),
        },
        "licenses": [{"id": 1, "name": "Unknown", "url": ""}],
        "categories": [],
        "images": [],
        "annotations": [],
    }


def shape_to_points(shape: Shape) -> list[Point] | None:
    """Polygon ring for a shape, or None when its type has no COCO geometry."""

    if shape.shape_type == SHAPE_POLYGON:
        points = list(shape.points)
        if len(points) >= 4:
            (fx, fy), (lx, ly) = points[0], points[-1]
            if abs(fx - lx) < _CLOSING_TOLERANCE and abs(fy - ly) < _CLOSING_TOLERANCE:
                points.pop()
        return points
    if shape.shape_type == SHAPE_RECTANGLE:
        if len(shape.points) < 2:
            return None
        return rectangle_to_polygon(shape.points)
    if shape.shape_type == SHAPE_CIRCLE:
        if len(shape.points) < 2:
            return None
        center, rim = shape.points[0], shape.points[1]
        return circle_to_polygon(center, circle_radius(center, rim))
    return None


def shape_to_coco_annotation(
    shape: Shape,
    *,
    annotation_id: int,
    image_id: int,
    category_id: int,
    segmentation_mode: SegmentationMode,
) -> dict[str, Any] | None:
    """Build one annotation record; None for zero-value geometry."""

    points = shape_to_points(shape)
    if points is None or len(points) < 3:
        return None
    area = calculate_polygon_area(points)
    if area <= 0.0:
        return None

    ann: dict[str, Any] = {
        "id": annotation_id,
        "image_id": image_id,
        "category_id": category_id,
        "bbox": calculate_coco_bbox(points),
        "area": area,
        "iscrowd": 0,
    }
    if segmentation_mode is SegmentationMode.POLYGON:
        ann["segmentation"] = [flatten_polygon(points)]
    return ann


def build_categories(context: ProcessingContext) -> list[dict[str, Any]]:
    return [
        {"id": idx + 1, "name": label, "supercategory": "none"}
        for idx, label in enumerate(context.labels_by_id())
    ]


class CocoPipeline:
    """Writes `images/{split}` and `annotations/instances_{split}.json`."""

    needs_split = True

    def __init__(self) -> None:
        self._datasets: dict[Split, dict[str, Any]] = {}
        self._next_image_id = 1
        self._next_annotation_id = 1

    def setup_output_dirs(self, config: ConversionConfig) -> CocoPaths:
        paths = ensure_coco_layout(config.dataset_dir, config.has_test_split)
        atomic_write_text(paths.base_dir / OUTPUT_MARKER, "coco\n")
        splits = [Split.TRAIN, Split.VAL] + ([Split.TEST] if config.has_test_split else [])
        self._datasets = {split: _empty_dataset() for split in splits}
        self._next_image_id = config.start_image_id
        self._next_annotation_id = config.start_annotation_id
        return paths

    def dataset_for(self, split: Split) -> dict[str, Any]:
        return self._datasets.get(split, self._datasets[Split.TRAIN])

    def process_file(
        self,
        json_path: Path,
        config: ConversionConfig,
        output_dirs: CocoPaths,
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

        images_dir = output_dirs.output_dir(split, FileType.IMAGE)
        if annotation.image_data:
            placed = extract_embedded_image(
                annotation.image_data, unique_path(images_dir / image_path.name)
            )
        elif image_path.exists():
            placed = copy_image(image_path, images_dir)
        else:
            raise FileNotFoundError(f"Image file not found: {image_path}")

        width, height = image_size(annotation, placed)
        image_id = self._next_image_id
        self._next_image_id += 1

        input_format = config.detected_input_format or InputAnnotationFormat.UNKNOWN
        records: list[dict[str, Any]] = []
        result = ProcessedFileResult()
        label_skips = 0
        for shape in annotation.shapes:
            label_id = context.label_map.get(shape.label)
            if label_id is None:
                context.add_skipped_label(shape.label)
                result.annotations_skipped += 1
                label_skips += 1
                continue
            try:
                validate_shape_points(shape, input_format)
            except InvalidShapeError as exc:
                result.invalid_annotations.append(invalid_record(json_path.name, shape, exc))
                result.annotations_skipped += 1
                continue

            ann = shape_to_coco_annotation(
                shape,
                annotation_id=self._next_annotation_id,
                image_id=image_id,
                category_id=label_id + 1,
                segmentation_mode=config.segmentation_mode,
            )
            if ann is None:
                continue
            records.append(ann)
            self._next_annotation_id += 1

        dataset = self.dataset_for(split)
        dataset["images"].append(
            {
                "id": image_id,
                "file_name": placed.name,
                "width": width,
                "height": height,
                "license": 1,
            }
        )
        dataset["annotations"].extend(records)

        result.annotations_processed = len(records)
        result.filtered_empty_file = filtered_empty_name(
            annotation, len(records), label_skips, placed.name
        )
        return result

    def finalize(
        self,
        config: ConversionConfig,
        output_dirs: CocoPaths,
        context: ProcessingContext,
    ) -> None:
        categories = build_categories(context)
        for split, dataset in self._datasets.items():
            dataset["categories"] = categories
            atomic_write_json(
                output_dirs.annotations / f"instances_{split.value}.json",
                dataset,
                sort_keys=False,
            )
