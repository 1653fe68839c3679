"""Run-scoped processing state and the reports folded out of it."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Iterable

from annoconv.annotation.schema import InvalidReason
from annoconv.observability.logging import get_logger, log_event

_LOGGER = get_logger("annoconv.pipeline.context")

# Upper bound on the per-run samples of invalid shapes and file names.
SAMPLE_CAP = 100


@dataclass(frozen=True, slots=True)
class InvalidAnnotation:
    """One rejected shape."""

    file: str
    label: str
    reason: str
    shape_type: str
    points_count: int


@dataclass(slots=True)
class ProcessingStats:
    """Accumulation-only counters for one conversion run."""

    total_files: int = 0
    processed_files: int = 0
    skipped_files: int = 0
    failed_files: int = 0
    total_annotations: int = 0
    skipped_annotations: int = 0
    background_images: int = 0
    background_files: list[str] = field(default_factory=list)
    filtered_empty_images: int = 0
    filtered_empty_files: list[str] = field(default_factory=list)
    labels_found: list[str] = field(default_factory=list)
    skipped_labels: list[str] = field(default_factory=list)
    invalid_annotations: list[InvalidAnnotation] = field(default_factory=list)

    def add_background_file(self, file_name: str) -> None:
        self.background_images += 1
        if len(self.background_files) < SAMPLE_CAP:
            self.background_files.append(file_name)

    def add_filtered_empty_file(self, file_name: str) -> None:
        """Image whose shapes were all removed by the label policy."""

        self.filtered_empty_images += 1
        if len(self.filtered_empty_files) < SAMPLE_CAP:
            self.filtered_empty_files.append(file_name)

    def add_label(self, label: str) -> None:
        if label not in self.labels_found:
            self.labels_found.append(label)

    def add_skipped_label(self, label: str) -> None:
        if label not in self.skipped_labels:
            self.skipped_labels.append(label)

    def add_invalid_annotation(self, record: InvalidAnnotation) -> None:
        if len(self.invalid_annotations) < SAMPLE_CAP:
            self.invalid_annotations.append(record)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class ConversionResult:
    """Outcome of one `convert` call."""

    success: bool
    output_dir: str
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def failure(cls, errors: Iterable[str]) -> ConversionResult:
        return cls(success=False, output_dir="", errors=list(errors))

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "output_dir": self.output_dir,
            "stats": self.stats.to_dict(),
            "errors": list(self.errors),
        }


@dataclass(slots=True)
class ProcessedFileResult:
    """Per-file tallies returned by a pipeline's `process_file`."""

    annotations_processed: int = 0
    annotations_skipped: int = 0
    invalid_annotations: list[InvalidAnnotation] = field(default_factory=list)
    duplicate: bool = False
    filtered_empty_file: str | None = None


@dataclass(slots=True)
class ProcessingContext:
    """Mutable state owned by exactly one conversion run."""

    label_map: dict[str, int] = field(default_factory=dict)
    processed_images: set[str] = field(default_factory=set)
    skipped_labels: set[str] = field(default_factory=set)
    stats: ProcessingStats = field(default_factory=ProcessingStats)
    errors: list[str] = field(default_factory=list)

    @classmethod
    def with_labels(cls, labels: Iterable[str]) -> ProcessingContext:
        return cls(label_map={label: idx for idx, label in enumerate(labels)})

    def ensure_label(self, label: str) -> int:
        """Return the id for `label`, assigning the next free id on first sight."""

        existing = self.label_map.get(label)
        if existing is not None:
            return existing
        next_id = len(self.label_map)
        self.label_map[label] = next_id
        return next_id

    def add_error(self, error: str) -> None:
        self.errors.append(error)

    def add_skipped_label(self, label: str) -> None:
        if label in self.skipped_labels:
            return
        self.skipped_labels.add(label)
        log_event(
            _LOGGER,
            "label_skipped",
            label=label,
            reason=InvalidReason.label_not_in_list().message,
        )

    def is_image_processed(self, key: str) -> bool:
        return key in self.processed_images

    def mark_image_processed(self, key: str) -> None:
        self.processed_images.add(key)

    def labels_by_id(self) -> list[str]:
        return [label for label, _ in sorted(self.label_map.items(), key=lambda item: item[1])]

    def record_file(self, result: ProcessedFileResult) -> None:
        """Fold one successfully handled file into the run statistics."""

        if result.duplicate:
            self.stats.skipped_files += 1
            return
        self.stats.processed_files += 1
        self.stats.total_annotations += result.annotations_processed
        self.stats.skipped_annotations += result.annotations_skipped
        for record in result.invalid_annotations:
            self.stats.add_invalid_annotation(record)
        if result.filtered_empty_file is not None:
            self.stats.add_filtered_empty_file(result.filtered_empty_file)

    def record_failure(self, file_label: str, message: str) -> None:
        self.stats.failed_files += 1
        self.add_error(f"{file_label}: {message}")

    def fold_labels(self) -> None:
        """Copy discovered and skipped labels into the stats report."""

        for label in self.labels_by_id():
            self.stats.add_label(label)
        for label in sorted(self.skipped_labels):
            self.stats.add_skipped_label(label)
