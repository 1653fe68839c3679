"""Dataclass-based configuration schema for annoconv."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from annoconv.annotation.schema import InputAnnotationFormat


class OutputFormat(str, Enum):
    """Target corpus layout."""

    YOLO = "yolo"
    COCO = "coco"
    LABELME = "labelme"


class AnnotationFormat(str, Enum):
    """Line geometry written by the label-format exporter."""

    BBOX = "bbox"
    POLYGON = "polygon"


class SegmentationMode(str, Enum):
    """Whether COCO-style annotations carry a segmentation ring."""

    POLYGON = "polygon"
    BBOX_ONLY = "bbox_only"


class LabelMeOutputFormat(str, Enum):
    """Shape rewrite applied by the self-format exporter."""

    ORIGINAL = "original"
    BBOX_2POINT = "bbox_2point"
    BBOX_4POINT = "bbox_4point"


class ConfigValidationError(ValueError):
    """Raised with every violated configuration rule."""

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors))
        self.errors = list(errors)


@dataclass(frozen=True, slots=True)
class ConversionConfig:
    """Immutable parameter bundle for one conversion run."""

    input_dir: Path
    output_dir: Path | None = None
    custom_dataset_name: str | None = None
    output_format: OutputFormat = OutputFormat.YOLO
    annotation_format: AnnotationFormat = AnnotationFormat.BBOX
    val_size: float = 0.2
    test_size: float = 0.0
    seed: int = 42
    include_background: bool = False
    label_list: tuple[str, ...] = ()
    deterministic_labels: bool = False
    workers: int = 0
    # COCO-style options.
    segmentation_mode: SegmentationMode = SegmentationMode.POLYGON
    start_image_id: int = 1
    start_annotation_id: int = 1
    # Self-format options.
    skip_split: bool = False
    remove_image_data: bool = False
    labelme_output_format: LabelMeOutputFormat = LabelMeOutputFormat.ORIGINAL
    detected_input_format: InputAnnotationFormat | None = None
    created_at: datetime = field(default_factory=datetime.now, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "input_dir", Path(self.input_dir))
        if self.output_dir is not None:
            object.__setattr__(self, "output_dir", Path(self.output_dir))
        object.__setattr__(self, "label_list", tuple(self.label_list))
        errors: list[str] = []
        for name, enum_type in (
            ("output_format", OutputFormat),
            ("annotation_format", AnnotationFormat),
            ("segmentation_mode", SegmentationMode),
            ("labelme_output_format", LabelMeOutputFormat),
        ):
            raw = getattr(self, name)
            try:
                object.__setattr__(self, name, enum_type(raw))
            except ValueError:
                known = ", ".join(member.value for member in enum_type)
                errors.append(f"Unknown {name}: {raw!r} (expected one of {known})")
        if self.output_format is OutputFormat.LABELME:
            object.__setattr__(self, "skip_split", True)

        errors.extend(self.validate())
        if errors:
            raise ConfigValidationError(errors)

    def validate(self) -> list[str]:
        """Return every violated rule; empty when the config is usable."""

        errors: list[str] = []
        if not self.input_dir.exists():
            errors.append(f"Input directory does not exist: {self.input_dir}")
        elif not self.input_dir.is_dir():
            errors.append(f"Input path must be a directory: {self.input_dir}")
        if not 0.0 <= self.val_size <= 1.0:
            errors.append(f"val_size must be between 0.0 and 1.0, got {self.val_size}")
        if not 0.0 <= self.test_size <= 1.0:
            errors.append(f"test_size must be between 0.0 and 1.0, got {self.test_size}")
        if self.val_size + self.test_size > 1.0:
            errors.append(
                "val_size + test_size must not exceed 1.0, "
                f"got {self.val_size + self.test_size}"
            )
        if self.start_image_id < 0:
            errors.append(f"start_image_id must be >= 0, got {self.start_image_id}")
        if self.start_annotation_id < 0:
            errors.append(f"start_annotation_id must be >= 0, got {self.start_annotation_id}")
        if self.workers < 0:
            errors.append(f"workers must be >= 0, got {self.workers}")
        if len(set(self.label_list)) != len(self.label_list):
            errors.append("label_list must not contain duplicates")
        return errors

    @property
    def has_test_split(self) -> bool:
        return self.test_size > 0.0

    @property
    def effective_output_dir(self) -> Path:
        return self.output_dir if self.output_dir is not None else self.input_dir

    @property
    def dataset_folder_name(self) -> str:
        """Custom name when set, else `{source}_{format}_{annotation}_{timestamp}`."""

        if self.custom_dataset_name and self.custom_dataset_name.strip():
            return self.custom_dataset_name.strip()
        source = self.input_dir.resolve().name or "dataset"
        stamp = self.created_at.strftime("%Y%m%d_%H%M%S")
        return (
            f"{source}_{self.output_format.value}_{self.annotation_format.value}_{stamp}"
        )

    @property
    def dataset_dir(self) -> Path:
        return self.effective_output_dir / self.dataset_folder_name
