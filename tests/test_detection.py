import pytest

from annoconv.annotation.schema import InputAnnotationFormat, InvalidReason, InvalidShapeError, Shape
from annoconv.detection.analyzer import (
    AnalysisConfig,
    analyze_dataset,
    analyze_shapes,
    detect_input_format,
    validate_shape_points,
)

from builders import rectangle, shape, write_sample


def _shapes(*counts: int) -> list[Shape]:
    return [
        Shape(label="x", points=[(float(i), float(i * 2)) for i in range(count)])
        for count in counts
    ]


class TestAnalyzeShapes:
    def test_two_point_boxes(self):
        analysis = analyze_shapes(_shapes(*[2] * 10), total_files=1, sample_files=1)
        assert analysis.input_format is InputAnnotationFormat.BBOX_2POINT
        assert analysis.confidence == pytest.approx(1.0)
        assert analysis.points_distribution == {2: 10}

    def test_four_point_boxes(self):
        analysis = analyze_shapes(_shapes(*[4] * 9, 2), total_files=1, sample_files=1)
        assert analysis.input_format is InputAnnotationFormat.BBOX_4POINT
        assert analysis.confidence == pytest.approx(0.9)

    def test_varying_polygons(self):
        analysis = analyze_shapes(_shapes(3, 5, 6, 7, 8), total_files=1, sample_files=1)
        assert analysis.input_format is InputAnnotationFormat.POLYGON

    def test_single_three_plus_count_is_polygon(self):
        analysis = analyze_shapes(_shapes(*[6] * 5), total_files=1, sample_files=1)
        assert analysis.input_format is InputAnnotationFormat.POLYGON

    def test_mixed_is_unknown_with_max_ratio(self):
        analysis = analyze_shapes(_shapes(2, 2, 2, 5, 5, 5, 5), total_files=1, sample_files=1)
        assert analysis.input_format is InputAnnotationFormat.UNKNOWN
        assert analysis.confidence == pytest.approx(4 / 7)

    def test_no_shapes(self):
        analysis = analyze_shapes([], total_files=3, sample_files=3)
        assert analysis.input_format is InputAnnotationFormat.UNKNOWN
        assert analysis.confidence == 0.0
        assert analysis.format_description == "no annotations found"

    def test_only_first_annotations_are_counted(self):
        config = AnalysisConfig(max_sample_annotations=5)
        analysis = analyze_shapes(_shapes(*[2] * 5, *[5] * 20), 1, 1, config)
        assert analysis.sample_annotations == 5
        assert analysis.input_format is InputAnnotationFormat.BBOX_2POINT

    def test_detect_input_format_shortcut(self):
        assert detect_input_format(_shapes(2, 2, 2)) is InputAnnotationFormat.BBOX_2POINT
        assert detect_input_format([]) is InputAnnotationFormat.UNKNOWN

    def test_to_dict(self):
        payload = analyze_shapes(_shapes(2, 2), 1, 1).to_dict()
        assert payload["input_format"] == "Bbox2Point"
        assert payload["confidence_percent"] == "100.0%"
        assert payload["points_distribution"] == {"2": 2}


class TestAnalyzeDataset:
    def test_empty_directory(self, tmp_path):
        analysis = analyze_dataset(tmp_path)
        assert analysis.total_files == 0
        assert analysis.input_format is InputAnnotationFormat.UNKNOWN
        assert analysis.format_description == "no JSON files found"

    def test_reads_sample_and_skips_broken_files(self, tmp_path):
        write_sample(tmp_path, "a", [rectangle("cat", 1, 1, 5, 5)], image=False)
        write_sample(tmp_path, "b", [rectangle("dog", 1, 1, 9, 9)], image=False)
        (tmp_path / "broken.json").write_text("{not json", encoding="utf-8")
        write_sample(
            tmp_path,
            "c",
            [{**rectangle("cat", 0, 0, 5, 5), "points": [["x", 1], [5, 5]]}],
            image=False,
        )

        analysis = analyze_dataset(tmp_path)
        assert analysis.total_files == 4
        assert analysis.sample_files == 2
        assert analysis.sample_annotations == 2
        assert analysis.input_format is InputAnnotationFormat.BBOX_2POINT

    def test_polygon_dataset(self, tmp_path):
        write_sample(
            tmp_path,
            "poly",
            [
                shape("a", [(0, 0), (5, 0), (5, 5)]),
                shape("b", [(0, 0), (5, 0), (6, 3), (5, 5), (0, 5)]),
            ],
            image=False,
        )
        assert analyze_dataset(tmp_path).input_format is InputAnnotationFormat.POLYGON


class TestValidateShapePoints:
    def test_empty_points(self):
        with pytest.raises(InvalidShapeError) as excinfo:
            validate_shape_points(Shape(label="a", points=[]), InputAnnotationFormat.POLYGON)
        assert excinfo.value.reason.kind == InvalidReason.EMPTY_POINTS

    @pytest.mark.parametrize(
        ("fmt", "count"),
        [
            (InputAnnotationFormat.BBOX_2POINT, 4),
            (InputAnnotationFormat.BBOX_4POINT, 2),
            (InputAnnotationFormat.POLYGON, 2),
        ],
    )
    def test_count_mismatch(self, fmt, count):
        with pytest.raises(InvalidShapeError) as excinfo:
            validate_shape_points(_shapes(count)[0], fmt)
        reason = excinfo.value.reason
        assert reason.kind == InvalidReason.POINTS_COUNT_MISMATCH
        assert reason.expected_format is fmt
        assert reason.actual_points == count
        assert f"got {count} points" in reason.message

    def test_unknown_needs_two_points(self):
        with pytest.raises(InvalidShapeError) as excinfo:
            validate_shape_points(_shapes(1)[0], InputAnnotationFormat.UNKNOWN)
        assert excinfo.value.reason.kind == InvalidReason.INSUFFICIENT_POINTS
        validate_shape_points(_shapes(2)[0], InputAnnotationFormat.UNKNOWN)

    def test_accepts_matching_counts(self):
        validate_shape_points(_shapes(2)[0], InputAnnotationFormat.BBOX_2POINT)
        validate_shape_points(_shapes(4)[0], InputAnnotationFormat.BBOX_4POINT)
        validate_shape_points(_shapes(7)[0], InputAnnotationFormat.POLYGON)
