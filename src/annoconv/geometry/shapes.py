"""Pure geometry helpers for bounding boxes, polygons and normalization."""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from annoconv.annotation.schema import Point, Shape


DEFAULT_CIRCLE_POINTS = 12


def _as_array(points: Sequence[Point]) -> np.ndarray:
    return np.asarray(points, dtype=np.float64).reshape(-1, 2)


def _to_points(array: np.ndarray) -> list[Point]:
    return [(float(x), float(y)) for x, y in array]


def bbox(points: Sequence[Point]) -> tuple[Point, Point]:
    """Return ((min_x, min_y), (max_x, max_y)) over all points."""

    if not points:
        raise ValueError("Cannot compute a bounding box of zero points")
    arr = _as_array(points)
    mins = arr.min(axis=0)
    maxs = arr.max(axis=0)
    return (float(mins[0]), float(mins[1])), (float(maxs[0]), float(maxs[1]))


def calculate_bbox(
    shape: Shape,
    image_width: int,
    image_height: int,
) -> tuple[float, float, float, float] | None:
    """Return normalized (x_center, y_center, width, height) clamped to the image.

    None is returned for shapes without points, for images without a size,
    and for boxes that collapse to zero width or height after clamping.
    """

    if not shape.points or image_width <= 0 or image_height <= 0:
        return None

    (min_x, min_y), (max_x, max_y) = bbox(shape.points)
    min_x = min(max(min_x, 0.0), float(image_width))
    max_x = min(max(max_x, 0.0), float(image_width))
    min_y = min(max(min_y, 0.0), float(image_height))
    max_y = min(max(max_y, 0.0), float(image_height))

    width = max_x - min_x
    height = max_y - min_y
    if width <= 0.0 or height <= 0.0:
        return None

    return (
        (min_x + max_x) / 2.0 / image_width,
        (min_y + max_y) / 2.0 / image_height,
        width / image_width,
        height / image_height,
    )


def rectangle_to_polygon(points: Sequence[Point]) -> list[Point]:
    """Expand a two-corner rectangle into its four corners."""

    if len(points) != 2:
        return [(float(x), float(y)) for x, y in points]
    (x1, y1), (x2, y2) = points
    return [(x1, y1), (x2, y1), (x2, y2), (x1, y2)]


def circle_radius(center: Point, rim: Point) -> float:
    return math.hypot(center[0] - rim[0], center[1] - rim[1])


def circle_to_polygon(
    center: Point,
    radius: float,
    num_points: int = DEFAULT_CIRCLE_POINTS,
) -> list[Point]:
    """Approximate a circle with `num_points` vertices evenly spaced by angle."""

    if num_points <= 0:
        return []
    angles = 2.0 * np.pi * np.arange(num_points) / num_points
    xs = center[0] + radius * np.cos(angles)
    ys = center[1] + radius * np.sin(angles)
    return _to_points(np.stack([xs, ys], axis=1))


def calculate_polygon_area(points: Sequence[Point]) -> float:
    """Shoelace area of a simple polygon; 0.0 below three points."""

    if len(points) < 3:
        return 0.0
    arr = _as_array(points)
    x = arr[:, 0]
    y = arr[:, 1]
    cross = x * np.roll(y, -1) - np.roll(x, -1) * y
    return float(abs(cross.sum()) / 2.0)


def calculate_coco_bbox(points: Sequence[Point]) -> list[float]:
    """Return [x, y, width, height] with (x, y) the top-left corner."""

    if not points:
        return [0.0, 0.0, 0.0, 0.0]
    (min_x, min_y), (max_x, max_y) = bbox(points)
    return [min_x, min_y, max_x - min_x, max_y - min_y]


def normalize_polygon(
    points: Sequence[Point],
    image_width: int,
    image_height: int,
) -> list[Point]:
    """Clamp each point to the image then scale it into [0, 1]."""

    if not points:
        return []
    if image_width <= 0 or image_height <= 0:
        raise ValueError(
            f"Image size must be positive to normalize, got {image_width}x{image_height}"
        )
    arr = _as_array(points)
    arr[:, 0] = np.clip(arr[:, 0], 0.0, float(image_width)) / image_width
    arr[:, 1] = np.clip(arr[:, 1], 0.0, float(image_height)) / image_height
    return _to_points(arr)


def flatten_polygon(points: Sequence[Point]) -> list[float]:
    """[(x1, y1), (x2, y2)] -> [x1, y1, x2, y2]."""

    return [float(value) for point in points for value in point]
