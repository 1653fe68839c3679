import base64
import json

import pytest

from annoconv.annotation.schema import AnnotationParseError
from annoconv.ingest.scanner import (
    OUTPUT_MARKER,
    ListingCache,
    find_background_images,
    find_image_files,
    find_json_files,
    is_image_extension,
)
from annoconv.storage.files import (
    copy_image,
    extract_embedded_image,
    image_key,
    image_size,
    read_annotation,
    unique_path,
    write_annotation,
)

from builders import rectangle, write_image, write_sample


class TestAnnotationFiles:
    def test_round_trip_keeps_unknown_keys(self, tmp_path):
        json_path = write_sample(
            tmp_path,
            "a",
            [dict(rectangle("cat", 1, 2, 3, 4), score=0.9)],
            image=False,
            lineColor=[0, 255, 0],
        )
        annotation = read_annotation(json_path)
        assert annotation.shapes[0].points == [(1.0, 2.0), (3.0, 4.0)]
        assert annotation.image_width == 100

        out = tmp_path / "out" / "a.json"
        write_annotation(out, annotation)
        payload = json.loads(out.read_text(encoding="utf-8"))
        assert list(payload)[:7] == [
            "version",
            "flags",
            "shapes",
            "imagePath",
            "imageData",
            "imageHeight",
            "imageWidth",
        ]
        assert payload["lineColor"] == [0, 255, 0]
        assert payload["shapes"][0]["score"] == 0.9

    def test_missing_key_is_parse_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"version": "5", "shapes": []}), encoding="utf-8")
        with pytest.raises(AnnotationParseError, match="imagePath"):
            read_annotation(path)

    def test_invalid_json_is_parse_error(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(AnnotationParseError):
            read_annotation(path)

    def test_non_numeric_point_is_parse_error(self, tmp_path):
        for bad_point in (["x", 1], [None, 1]):
            path = write_sample(
                tmp_path,
                "bad",
                [{**rectangle("cat", 0, 0, 5, 5), "points": [bad_point, [5, 5]]}],
                image=False,
            )
            with pytest.raises(AnnotationParseError, match="must be numbers"):
                read_annotation(path)

    def test_missing_file_is_parse_error(self, tmp_path):
        with pytest.raises(AnnotationParseError):
            read_annotation(tmp_path / "nope.json")


class TestImageFiles:
    def test_unique_path_appends_counter(self, tmp_path):
        target = tmp_path / "img.png"
        assert unique_path(target) == target
        target.write_bytes(b"x")
        (tmp_path / "img_1.png").write_bytes(b"x")
        assert unique_path(target) == tmp_path / "img_2.png"

    def test_copy_image_renames_on_collision(self, tmp_path):
        src = write_image(tmp_path / "src" / "a.png")
        dest = tmp_path / "dest"
        assert copy_image(src, dest) == dest / "a.png"
        assert copy_image(src, dest) == dest / "a_1.png"

    def test_extract_embedded_image_accepts_data_url(self, tmp_path):
        raw = b"\x89PNG fake"
        encoded = "data:image/png;base64," + base64.b64encode(raw).decode("ascii")
        out = extract_embedded_image(encoded, tmp_path / "e.png")
        assert out.read_bytes() == raw

    def test_image_size_falls_back_to_file(self, tmp_path):
        json_path = write_sample(tmp_path, "a", [], size=(40, 30), imageWidth=0, imageHeight=0)
        annotation = read_annotation(json_path)
        assert image_size(annotation, tmp_path / "a.png") == (40, 30)

    def test_image_key_is_resolved_path(self, tmp_path):
        assert image_key(tmp_path / "x" / ".." / "a.png") == str((tmp_path / "a.png").resolve())


class TestDiscovery:
    def test_walk_order_and_filtering(self, tmp_path):
        write_sample(tmp_path / "b", "two", [])
        write_sample(tmp_path / "a", "one", [])
        (tmp_path / "notes.txt").write_text("x", encoding="utf-8")

        assert find_json_files(tmp_path) == [tmp_path / "a" / "one.json", tmp_path / "b" / "two.json"]
        assert find_image_files(tmp_path) == [tmp_path / "a" / "one.png", tmp_path / "b" / "two.png"]

    def test_skips_generated_datasets(self, tmp_path):
        write_sample(tmp_path, "one", [])
        generated = tmp_path / "out"
        write_sample(generated, "copy", [])
        (generated / OUTPUT_MARKER).write_text("labelme\n", encoding="utf-8")
        write_sample(tmp_path / "YOLODataset", "old", [])

        assert find_json_files(tmp_path) == [tmp_path / "one.json"]

    def test_background_images(self, tmp_path):
        write_sample(tmp_path, "annotated", [])
        write_image(tmp_path / "empty.jpg")
        write_sample(tmp_path, "unreferenced", [], image=True)
        keys = {image_key(tmp_path / "annotated.png")}

        assert find_background_images(tmp_path, keys) == [tmp_path / "empty.jpg"]

    def test_extension_check(self):
        assert is_image_extension(".JPG")
        assert is_image_extension("webp")
        assert not is_image_extension(".json")


class TestListingCache:
    def test_hits_until_expiry(self, tmp_path):
        now = [0.0]
        cache = ListingCache(ttl_seconds=10.0, clock=lambda: now[0])
        write_sample(tmp_path, "a", [], image=False)
        assert len(find_json_files(tmp_path, cache=cache)) == 1

        write_sample(tmp_path, "b", [], image=False)
        now[0] = 5.0
        assert len(find_json_files(tmp_path, cache=cache)) == 1

        now[0] = 11.0
        assert len(find_json_files(tmp_path, cache=cache)) == 2

    def test_invalidate(self, tmp_path):
        cache = ListingCache()
        write_sample(tmp_path, "a", [], image=False)
        find_json_files(tmp_path, cache=cache)
        find_image_files(tmp_path, cache=cache)
        assert len(cache) == 2

        write_sample(tmp_path, "b", [], image=False)
        cache.invalidate(tmp_path)
        assert len(cache) == 0
        assert len(find_json_files(tmp_path, cache=cache)) == 2

        cache.invalidate()
        assert len(cache) == 0
