import json

from annoconv.annotation.schema import Shape
from annoconv.config.schema import ConversionConfig, LabelMeOutputFormat, OutputFormat
from annoconv.export.labelme import LabelMePipeline, filter_shapes, rewrite_shape
from annoconv.pipeline.context import ProcessingContext
from annoconv.pipeline.executor import convert

from builders import rectangle, shape, write_sample


def _config(input_dir, out_dir, **kwargs):
    return ConversionConfig(
        input_dir=input_dir,
        output_dir=out_dir,
        custom_dataset_name="ds",
        output_format=OutputFormat.LABELME,
        **kwargs,
    )


def _shapes():
    return [
        Shape(label="cat", points=[(0.0, 0.0), (10.0, 10.0)], shape_type="rectangle"),
        Shape(label="dog", points=[(0.0, 0.0), (10.0, 10.0)], shape_type="rectangle"),
    ]


class TestFilterShapes:
    def test_empty_list_keeps_everything(self):
        context = ProcessingContext()
        kept, skipped = filter_shapes(_shapes(), (), context)
        assert len(kept) == 2
        assert skipped == 0
        assert set(context.label_map) == {"cat", "dog"}

    def test_allow_list(self):
        context = ProcessingContext()
        kept, skipped = filter_shapes(_shapes(), ("cat",), context)
        assert [item.label for item in kept] == ["cat"]
        assert skipped == 1
        assert "dog" not in context.label_map
        assert context.skipped_labels == {"dog"}

    def test_pipeline_does_not_split(self):
        assert LabelMePipeline.needs_split is False


class TestRewriteShape:
    POLY = Shape(label="a", points=[(1.0, 5.0), (4.0, 2.0), (6.0, 7.0)])

    def test_original_is_untouched(self):
        assert rewrite_shape(self.POLY, LabelMeOutputFormat.ORIGINAL) is self.POLY

    def test_two_point_box(self):
        rewritten = rewrite_shape(self.POLY, LabelMeOutputFormat.BBOX_2POINT)
        assert rewritten.shape_type == "rectangle"
        assert rewritten.points == [(1.0, 2.0), (6.0, 7.0)]

    def test_four_point_box(self):
        rewritten = rewrite_shape(self.POLY, LabelMeOutputFormat.BBOX_4POINT)
        assert rewritten.shape_type == "polygon"
        assert rewritten.points == [(1.0, 2.0), (6.0, 2.0), (6.0, 7.0), (1.0, 7.0)]

    def test_circles_are_kept(self):
        circle = Shape(label="a", points=[(1.0, 1.0), (2.0, 2.0)], shape_type="circle")
        assert rewrite_shape(circle, LabelMeOutputFormat.BBOX_4POINT) is circle


class TestLabelMeConversion:
    def test_filtered_copy(self, tmp_path):
        source = tmp_path / "source"
        write_sample(
            source,
            "a",
            [rectangle("cat", 0, 0, 10, 10), rectangle("dog", 1, 1, 5, 5)],
            imageData="aGVsbG8=",
        )
        write_sample(source / "nested", "b", [rectangle("dog", 0, 0, 3, 3)])

        result = convert(
            _config(source, tmp_path / "out", label_list=("cat",), remove_image_data=True)
        )

        dataset = tmp_path / "out" / "ds"
        assert result.success
        assert result.stats.processed_files == 2
        assert result.stats.total_annotations == 1
        assert result.stats.skipped_annotations == 2
        assert result.stats.skipped_labels == ["dog"]
        assert result.stats.filtered_empty_files == ["b.json"]

        copied = json.loads((dataset / "a.json").read_text(encoding="utf-8"))
        assert [item["label"] for item in copied["shapes"]] == ["cat"]
        assert copied["imageData"] is None
        assert (dataset / "a.png").exists()
        assert (dataset / "b.json").exists()
        assert (dataset / "labels.txt").read_text(encoding="utf-8") == "cat"

        summary = (dataset / "conversion_summary.txt").read_text(encoding="utf-8")
        assert "Files processed: 2" in summary
        assert "Skipped annotations: 2" in summary
        assert "Skipped labels: dog" in summary

    def test_rewrites_to_boxes(self, tmp_path):
        source = tmp_path / "source"
        write_sample(source, "a", [shape("cat", [(1, 5), (4, 2), (6, 7)])])

        convert(_config(source, tmp_path / "out", labelme_output_format=LabelMeOutputFormat.BBOX_2POINT))

        copied = json.loads((tmp_path / "out" / "ds" / "a.json").read_text(encoding="utf-8"))
        assert copied["shapes"][0]["shape_type"] == "rectangle"
        assert copied["shapes"][0]["points"] == [[1.0, 2.0], [6.0, 7.0]]

    def test_no_labels_file_without_labels(self, tmp_path):
        source = tmp_path / "source"
        write_sample(source, "a", [])

        result = convert(_config(source, tmp_path / "out"))

        assert result.stats.processed_files == 1
        assert not (tmp_path / "out" / "ds" / "labels.txt").exists()
        assert (tmp_path / "out" / "ds" / "conversion_summary.txt").exists()

    def test_same_names_in_subdirectories_are_kept_apart(self, tmp_path):
        source = tmp_path / "source"
        write_sample(source / "a", "img", [rectangle("cat", 0, 0, 10, 10)])
        write_sample(source / "b", "img", [rectangle("dog", 0, 0, 10, 10)])

        result = convert(_config(source, tmp_path / "out"))

        dataset = tmp_path / "out" / "ds"
        assert result.stats.processed_files == 2
        first = json.loads((dataset / "img.json").read_text(encoding="utf-8"))
        second = json.loads((dataset / "img_1.json").read_text(encoding="utf-8"))
        assert first["shapes"][0]["label"] == "cat"
        assert first["imagePath"] == "img.png"
        assert second["shapes"][0]["label"] == "dog"
        assert second["imagePath"] == "img_1.png"
        assert (dataset / "img_1.png").exists()
