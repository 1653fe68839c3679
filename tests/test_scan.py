import asyncio
import logging

import pytest

from annoconv.annotation.schema import InputAnnotationFormat
from annoconv.observability.progress import ProgressEmitter, ScanProgress, should_report
from annoconv.scan.formats import analyze_dataset_async, analyze_dataset_with_progress
from annoconv.scan.labels import (
    scan_label_counts,
    scan_label_counts_async,
    scan_labels,
    scan_labels_async,
)

from builders import rectangle, write_sample


class _Recorder:
    def __init__(self):
        self.events = []

    def __call__(self, event_name, progress):
        self.events.append((event_name, progress))


def _tree(root, count):
    for idx in range(count):
        label = "cat" if idx % 2 == 0 else "dog"
        write_sample(root, f"f{idx:04d}", [rectangle(label, 0, 0, 5, 5), rectangle("bird", 1, 1, 2, 2)], image=False)


class TestProgress:
    def test_payload_percentage(self):
        assert ScanProgress.of(25, 200, "x").percentage == pytest.approx(12.5)
        assert ScanProgress.of(0, 0, "x").percentage == 0.0

    def test_cadence(self):
        assert [n for n in range(1, 251) if should_report(n, 250)] == [100, 200, 250]

    def test_complete_and_error_payloads(self):
        recorder = _Recorder()
        emitter = ProgressEmitter("evt", recorder)
        emitter.complete("done")
        emitter.error("boom")
        assert [progress.to_dict() for _, progress in recorder.events] == [
            {"current": 100, "total": 100, "percentage": 100.0, "message": "done"},
            {"current": 0, "total": 0, "percentage": 0.0, "message": "boom"},
        ]

    def test_callback_failure_is_logged(self, caplog):
        def broken(event_name, progress):
            raise RuntimeError("window closed")

        logger = logging.getLogger("annoconv")
        logger.addHandler(caplog.handler)
        try:
            ProgressEmitter("evt", broken).emit(1, 2, "x")
        finally:
            logger.removeHandler(caplog.handler)
        assert any(record.getMessage() == "progress_emit_failed" for record in caplog.records)


class TestLabelScans:
    def test_labels_sorted_and_deduplicated(self, tmp_path):
        _tree(tmp_path, 5)
        (tmp_path / "broken.json").write_text("{", encoding="utf-8")
        assert scan_labels(tmp_path, workers=1) == ["bird", "cat", "dog"]

    def test_counts(self, tmp_path):
        _tree(tmp_path, 5)
        assert scan_label_counts(tmp_path, workers=1) == {"bird": 5, "cat": 3, "dog": 2}

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            scan_labels(tmp_path / "missing")
        with pytest.raises(FileNotFoundError):
            scan_label_counts(tmp_path / "missing")

    def test_empty_directory_completes(self, tmp_path):
        recorder = _Recorder()
        assert scan_labels(tmp_path, ProgressEmitter("labels", recorder)) == []
        [(event_name, progress)] = recorder.events
        assert event_name == "labels"
        assert progress.percentage == 100.0

    def test_progress_cadence_over_files(self, tmp_path):
        _tree(tmp_path, 250)
        recorder = _Recorder()

        scan_label_counts(tmp_path, ProgressEmitter("counts", recorder), workers=1)

        currents = [progress.current for _, progress in recorder.events]
        assert currents == [0, 100, 200, 250, 100]
        assert recorder.events[-1][1].message.startswith("Count complete")

    def test_process_pool_matches_inline(self, tmp_path):
        _tree(tmp_path, 120)
        recorder = _Recorder()

        parallel = scan_label_counts(tmp_path, ProgressEmitter("counts", recorder), workers=2)

        assert parallel == scan_label_counts(tmp_path, workers=1)
        assert scan_labels(tmp_path, workers=2) == ["bird", "cat", "dog"]
        assert [progress.current for _, progress in recorder.events][1:-1] == [100, 120]

    def test_async_variants(self, tmp_path):
        _tree(tmp_path, 3)

        async def run():
            labels = await scan_labels_async(tmp_path, workers=1)
            counts = await scan_label_counts_async(tmp_path, workers=1)
            return labels, counts

        labels, counts = asyncio.run(run())
        assert labels == ["bird", "cat", "dog"]
        assert counts == {"bird": 3, "cat": 2, "dog": 1}


class TestFormatAnalysisScan:
    def test_phases_are_reported(self, tmp_path):
        _tree(tmp_path, 3)
        recorder = _Recorder()

        analysis = analyze_dataset_with_progress(tmp_path, ProgressEmitter("analyze", recorder))

        assert analysis.input_format is InputAnnotationFormat.BBOX_2POINT
        assert [progress.current for _, progress in recorder.events] == [0, 30, 80, 100]
        assert "Bbox2Point" in recorder.events[-1][1].message

    def test_async(self, tmp_path):
        analysis = asyncio.run(analyze_dataset_async(tmp_path))
        assert analysis.total_files == 0
        assert analysis.format_description == "no JSON files found"

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            analyze_dataset_with_progress(tmp_path / "missing")


class TestScanFailures:
    def test_missing_directory_sends_error_payload(self, tmp_path):
        recorder = _Recorder()
        with pytest.raises(FileNotFoundError):
            scan_labels(tmp_path / "missing", ProgressEmitter("labels", recorder))
        [(_, progress)] = recorder.events
        assert progress.total == 0
        assert progress.message.startswith("Label scan failed: Directory does not exist")

    def test_analysis_failure_sends_error_payload(self, tmp_path):
        recorder = _Recorder()
        with pytest.raises(FileNotFoundError):
            analyze_dataset_with_progress(tmp_path / "missing", ProgressEmitter("analyze", recorder))
        assert recorder.events[-1][1].message.startswith("Format analysis failed")
