"""Detect a dataset's annotation encoding from a sample of its shapes."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Sequence

from annoconv.annotation.schema import (
    AnnotationParseError,
    InputAnnotationFormat,
    InvalidReason,
    InvalidShapeError,
    Shape,
)
from annoconv.ingest.scanner import ListingCache, find_json_files
from annoconv.storage.files import read_annotation


@dataclass(frozen=True, slots=True)
class AnalysisConfig:
    """Sampling bounds and decision threshold for format detection."""

    max_sample_files: int = 20
    max_sample_annotations: int = 100
    confidence_threshold: float = 0.8


@dataclass(slots=True)
class DatasetAnalysis:
    """Detected input format with the evidence behind it."""

    input_format: InputAnnotationFormat = InputAnnotationFormat.UNKNOWN
    total_files: int = 0
    sample_files: int = 0
    sample_annotations: int = 0
    confidence: float = 0.0
    points_distribution: dict[int, int] = field(default_factory=dict)
    format_description: str = "unknown format"

    @property
    def confidence_percent(self) -> str:
        return f"{self.confidence * 100.0:.1f}%"

    def to_dict(self) -> dict[str, Any]:
        return {
            "input_format": self.input_format.value,
            "total_files": self.total_files,
            "sample_files": self.sample_files,
            "sample_annotations": self.sample_annotations,
            "confidence": self.confidence,
            "confidence_percent": self.confidence_percent,
            "points_distribution": {
                str(points): count
                for points, count in sorted(self.points_distribution.items())
            },
            "format_description": self.format_description,
        }


def _describe_bbox_2(ratio: float) -> str:
    return f"2-point bounding boxes (diagonal corners), {ratio * 100.0:.1f}% of shapes match"


def _describe_bbox_4(ratio: float) -> str:
    return f"4-point bounding boxes (all corners), {ratio * 100.0:.1f}% of shapes match"


def _determine_format(
    total_sampled: int,
    distribution: Counter[int],
    threshold: float,
) -> tuple[InputAnnotationFormat, float, str]:
    if total_sampled == 0:
        return InputAnnotationFormat.UNKNOWN, 0.0, "no annotations to analyze"

    count_2 = distribution.get(2, 0)
    count_4 = distribution.get(4, 0)
    count_3_plus = sum(count for points, count in distribution.items() if points >= 3)

    ratio_2 = count_2 / total_sampled
    ratio_4 = count_4 / total_sampled
    ratio_3_plus = count_3_plus / total_sampled

    if ratio_2 >= threshold:
        return InputAnnotationFormat.BBOX_2POINT, ratio_2, _describe_bbox_2(ratio_2)

    if ratio_4 >= threshold:
        return InputAnnotationFormat.BBOX_4POINT, ratio_4, _describe_bbox_4(ratio_4)

    if ratio_3_plus >= threshold:
        distinct = [points for points, count in distribution.items() if points >= 3 and count > 0]
        if len(distinct) > 1:
            return (
                InputAnnotationFormat.POLYGON,
                ratio_3_plus,
                f"polygons with variable vertex counts, {ratio_3_plus * 100.0:.1f}% "
                "of shapes have 3+ points",
            )
        if ratio_4 > 0.5:
            return InputAnnotationFormat.BBOX_4POINT, ratio_4, _describe_bbox_4(ratio_4)
        return (
            InputAnnotationFormat.POLYGON,
            ratio_3_plus,
            f"polygons, {ratio_3_plus * 100.0:.1f}% of shapes have 3+ points",
        )

    max_ratio = max(ratio_2, ratio_4, ratio_3_plus)
    return (
        InputAnnotationFormat.UNKNOWN,
        max_ratio,
        f"mixed format: 2 points {ratio_2 * 100.0:.1f}%, 4 points {ratio_4 * 100.0:.1f}%, "
        f"3+ points {ratio_3_plus * 100.0:.1f}%",
    )


def analyze_shapes(
    shapes: Sequence[Shape],
    total_files: int,
    sample_files: int,
    config: AnalysisConfig = AnalysisConfig(),
) -> DatasetAnalysis:
    """Classify a list of shapes; only the first `max_sample_annotations` count."""

    if not shapes:
        return DatasetAnalysis(
            total_files=total_files,
            sample_files=sample_files,
            format_description="no annotations found",
        )

    sampled = shapes[: config.max_sample_annotations]
    distribution: Counter[int] = Counter(len(shape.points) for shape in sampled)
    input_format, confidence, description = _determine_format(
        len(sampled), distribution, config.confidence_threshold
    )
    return DatasetAnalysis(
        input_format=input_format,
        total_files=total_files,
        sample_files=sample_files,
        sample_annotations=len(sampled),
        confidence=confidence,
        points_distribution=dict(distribution),
        format_description=description,
    )


def sample_shapes(
    json_files: Sequence[Path], config: AnalysisConfig
) -> tuple[list[Shape], int]:
    """Collect shapes from the leading files, stopping once the cap is reached.

    Returns the shapes and the number of files that were actually parsed;
    unreadable files are skipped and not counted.
    """

    shapes: list[Shape] = []
    files_read = 0
    for json_path in json_files[: config.max_sample_files]:
        try:
            annotation = read_annotation(json_path)
        except AnnotationParseError:
            continue
        files_read += 1
        shapes.extend(annotation.shapes)
        if len(shapes) >= config.max_sample_annotations:
            break
    return shapes, files_read


def analyze_dataset(
    input_dir: Path,
    config: AnalysisConfig = AnalysisConfig(),
    cache: ListingCache | None = None,
) -> DatasetAnalysis:
    """Sample a directory's annotation files and detect its input format."""

    json_files = find_json_files(input_dir, cache=cache)
    if not json_files:
        return DatasetAnalysis(format_description="no JSON files found")

    shapes, sample_files = sample_shapes(json_files, config)
    return analyze_shapes(shapes, len(json_files), sample_files, config)


def detect_input_format(shapes: Sequence[Shape]) -> InputAnnotationFormat:
    """Format-only shortcut over `analyze_shapes`."""

    if not shapes:
        return InputAnnotationFormat.UNKNOWN
    return analyze_shapes(shapes, 0, 0).input_format


def validate_shape_points(shape: Shape, input_format: InputAnnotationFormat) -> None:
    """Raise InvalidShapeError when the point count contradicts the dataset format."""

    count = len(shape.points)
    if count == 0:
        raise InvalidShapeError(InvalidReason.empty_points())

    if input_format is InputAnnotationFormat.BBOX_2POINT:
        valid = count == 2
    elif input_format is InputAnnotationFormat.BBOX_4POINT:
        valid = count == 4
    elif input_format is InputAnnotationFormat.POLYGON:
        valid = count >= 3
    else:
        if count < 2:
            raise InvalidShapeError(InvalidReason.insufficient_points())
        return

    if not valid:
        raise InvalidShapeError(InvalidReason.points_count_mismatch(input_format, count))
