"""Annotation schema models and conversion helpers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


Point = tuple[float, float]

SHAPE_RECTANGLE = "rectangle"
SHAPE_POLYGON = "polygon"
SHAPE_CIRCLE = "circle"


class AnnotationParseError(ValueError):
    """Raised when a document does not match the annotation schema."""


class InputAnnotationFormat(str, Enum):
    """Dataset-wide point encoding detected from a sample of shapes."""

    BBOX_2POINT = "Bbox2Point"
    BBOX_4POINT = "Bbox4Point"
    POLYGON = "Polygon"
    UNKNOWN = "Unknown"

    @property
    def expected_points(self) -> str:
        return _EXPECTED_POINTS[self]


_EXPECTED_POINTS = {
    InputAnnotationFormat.BBOX_2POINT: "requires 2 points",
    InputAnnotationFormat.BBOX_4POINT: "requires 4 points",
    InputAnnotationFormat.POLYGON: "requires at least 3 points",
    InputAnnotationFormat.UNKNOWN: "format unknown",
}


@dataclass(frozen=True, slots=True)
class InvalidReason:
    """Why a single shape was rejected."""

    kind: str
    expected_format: InputAnnotationFormat | None = None
    actual_points: int | None = None

    EMPTY_POINTS = "EmptyPoints"
    ZERO_AREA = "ZeroArea"
    INSUFFICIENT_POINTS = "InsufficientPoints"
    LABEL_NOT_IN_LIST = "LabelNotInList"
    POINTS_COUNT_MISMATCH = "PointsCountMismatch"

    @classmethod
    def empty_points(cls) -> InvalidReason:
        return cls(cls.EMPTY_POINTS)

    @classmethod
    def zero_area(cls) -> InvalidReason:
        return cls(cls.ZERO_AREA)

    @classmethod
    def insufficient_points(cls) -> InvalidReason:
        return cls(cls.INSUFFICIENT_POINTS)

    @classmethod
    def label_not_in_list(cls) -> InvalidReason:
        return cls(cls.LABEL_NOT_IN_LIST)

    @classmethod
    def points_count_mismatch(
        cls, expected_format: InputAnnotationFormat, actual_points: int
    ) -> InvalidReason:
        return cls(
            cls.POINTS_COUNT_MISMATCH,
            expected_format=expected_format,
            actual_points=actual_points,
        )

    @property
    def message(self) -> str:
        if self.kind == self.EMPTY_POINTS:
            return "shape has no points"
        if self.kind == self.ZERO_AREA:
            return "shape has zero area (width or height <= 0)"
        if self.kind == self.INSUFFICIENT_POINTS:
            return "polygon has too few points (at least 3 required)"
        if self.kind == self.LABEL_NOT_IN_LIST:
            return "label is not in the selected list"
        if self.kind == self.POINTS_COUNT_MISMATCH and self.expected_format is not None:
            return (
                "point count does not match dataset format "
                f"({self.expected_format.expected_points}, got {self.actual_points} points)"
            )
        return self.kind


class InvalidShapeError(ValueError):
    """Raised when a shape fails validation; carries the structured reason."""

    def __init__(self, reason: InvalidReason) -> None:
        super().__init__(reason.message)
        self.reason = reason


def _parse_point(raw: Any) -> Point:
    if not isinstance(raw, (list, tuple)) or len(raw) < 2:
        raise AnnotationParseError(f"Point must be a [x, y] pair, got {raw!r}")
    try:
        return (float(raw[0]), float(raw[1]))
    except (TypeError, ValueError) as exc:
        raise AnnotationParseError(f"Point coordinates must be numbers, got {raw!r}") from exc


@dataclass(slots=True)
class Shape:
    """One labeled region of an image."""

    label: str
    points: list[Point]
    shape_type: str = SHAPE_POLYGON
    group_id: int | None = None
    description: str | None = None
    mask: str | None = None
    flags: dict[str, bool] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Shape:
        if not isinstance(payload, dict):
            raise AnnotationParseError(f"Shape must be an object, got {type(payload).__name__}")
        try:
            label = payload["label"]
            raw_points = payload["points"]
        except KeyError as exc:
            raise AnnotationParseError(f"Shape is missing required key {exc.args[0]!r}") from exc
        if not isinstance(label, str):
            raise AnnotationParseError("Shape label must be a string")
        if not isinstance(raw_points, list):
            raise AnnotationParseError("Shape points must be a list")

        known = {"label", "points", "shape_type", "group_id", "description", "mask", "flags"}
        return cls(
            label=label,
            points=[_parse_point(item) for item in raw_points],
            shape_type=str(payload.get("shape_type") or SHAPE_POLYGON),
            group_id=payload.get("group_id"),
            description=payload.get("description"),
            mask=payload.get("mask"),
            flags=payload.get("flags"),
            extra={key: value for key, value in payload.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "label": self.label,
            "points": [[float(x), float(y)] for x, y in self.points],
            "group_id": self.group_id,
            "description": self.description,
            "shape_type": self.shape_type,
            "flags": self.flags if self.flags is not None else {},
            "mask": self.mask,
        }
        payload.update(self.extra)
        return payload


@dataclass(slots=True)
class Annotation:
    """All shapes for one image, as stored in one JSON document."""

    version: str
    shapes: list[Shape]
    image_path: str
    image_width: int
    image_height: int
    image_data: str | None = None
    flags: dict[str, bool] | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Annotation:
        if not isinstance(payload, dict):
            raise AnnotationParseError(
                f"Annotation must be an object, got {type(payload).__name__}"
            )
        missing = [
            key
            for key in ("version", "shapes", "imagePath", "imageHeight", "imageWidth")
            if key not in payload
        ]
        if missing:
            raise AnnotationParseError(f"Annotation is missing required keys: {', '.join(missing)}")
        if not isinstance(payload["shapes"], list):
            raise AnnotationParseError("Annotation shapes must be a list")

        try:
            width = int(payload["imageWidth"])
            height = int(payload["imageHeight"])
        except (TypeError, ValueError) as exc:
            raise AnnotationParseError(f"Invalid image size: {exc}") from exc
        if width < 0 or height < 0:
            raise AnnotationParseError("Image size must not be negative")

        known = {"version", "flags", "shapes", "imagePath", "imageData", "imageHeight", "imageWidth"}
        return cls(
            version=str(payload["version"]),
            shapes=[Shape.from_dict(item) for item in payload["shapes"]],
            image_path=str(payload["imagePath"]),
            image_width=width,
            image_height=height,
            image_data=payload.get("imageData"),
            flags=payload.get("flags"),
            extra={key: value for key, value in payload.items() if key not in known},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "version": self.version,
            "flags": self.flags if self.flags is not None else {},
            "shapes": [shape.to_dict() for shape in self.shapes],
            "imagePath": self.image_path,
            "imageData": self.image_data,
            "imageHeight": int(self.image_height),
            "imageWidth": int(self.image_width),
        }
        payload.update(self.extra)
        return payload
