"""`annoconv convert` command."""

from __future__ import annotations

from dataclasses import dataclass
import json
from pathlib import Path
from typing import Literal

from annoconv.config.loader import load_conversion_config
from annoconv.pipeline.context import ConversionResult
from annoconv.pipeline.executor import convert, convert_request


@dataclass(slots=True)
class ConvertCommand:
    """Convert a tree of annotation JSON files into a training corpus."""

    input_dir: Path
    output_dir: Path | None = None
    config: str | None = None
    """`module_or_path:attribute` resolving to a ConversionConfig or dict; other options are ignored."""
    name: str | None = None
    format: Literal["yolo", "coco", "labelme"] = "yolo"
    annotation: Literal["bbox", "polygon"] = "bbox"
    val_size: float = 0.2
    test_size: float = 0.0
    seed: int = 42
    include_background: bool = False
    labels: tuple[str, ...] = ()
    deterministic_labels: bool = False
    segmentation: Literal["polygon", "bbox_only"] = "polygon"
    start_image_id: int = 1
    start_annotation_id: int = 1
    remove_image_data: bool = False
    labelme_output: Literal["original", "bbox_2point", "bbox_4point"] = "original"


def to_request(command: ConvertCommand) -> dict[str, object]:
    return {
        "input_dir": str(command.input_dir),
        "output_dir": str(command.output_dir) if command.output_dir else None,
        "custom_dataset_name": command.name,
        "output_format": command.format,
        "annotation_format": command.annotation,
        "val_size": command.val_size,
        "test_size": command.test_size,
        "seed": command.seed,
        "include_background": command.include_background,
        "label_list": list(command.labels),
        "deterministic_labels": command.deterministic_labels,
        "segmentation_mode": command.segmentation,
        "start_image_id": command.start_image_id,
        "start_annotation_id": command.start_annotation_id,
        "remove_image_data": command.remove_image_data,
        "labelme_output_format": command.labelme_output,
    }


def run(command: ConvertCommand) -> ConversionResult:
    if command.config is not None:
        return convert(load_conversion_config(command.config, input_dir=command.input_dir))
    return convert_request(to_request(command))


def execute(command: ConvertCommand) -> None:
    result = run(command)
    print(json.dumps(result.to_dict(), indent=2, sort_keys=True, default=str))
    if not result.success:
        raise SystemExit(1)
