"""Build conversion configs from Python references or plain request dicts."""

from __future__ import annotations

from dataclasses import fields, replace
import importlib
import importlib.util
from pathlib import Path
from types import ModuleType
from typing import Any

from annoconv.annotation.schema import InputAnnotationFormat
from annoconv.config.schema import (
    AnnotationFormat,
    ConfigValidationError,
    ConversionConfig,
    LabelMeOutputFormat,
    OutputFormat,
    SegmentationMode,
)


_ENUM_FIELDS = {
    "output_format": OutputFormat,
    "annotation_format": AnnotationFormat,
    "segmentation_mode": SegmentationMode,
    "labelme_output_format": LabelMeOutputFormat,
}

_ALIASES = {
    "bboxonly": "bbox_only",
    "bbox2point": "bbox_2point",
    "bbox4point": "bbox_4point",
}


def _load_module(module_ref: str) -> ModuleType:
    path_candidate = Path(module_ref).expanduser()
    if path_candidate.exists():
        module_name = f"_annoconv_cfg_{path_candidate.stem}"
        spec = importlib.util.spec_from_file_location(module_name, path_candidate)
        if spec is None or spec.loader is None:
            raise RuntimeError(f"Could not load module from path: {path_candidate}")
        module = importlib.util.module_from_spec(spec)
        spec.loader.exec_module(module)
        return module
    return importlib.import_module(module_ref)


def _resolve_attr(obj: Any, attr_path: str) -> Any:
    value = obj
    for part in attr_path.split("."):
        value = getattr(value, part)
    return value


def load_object(reference: str) -> Any:
    """Load object by `module_or_path:attribute` reference."""

    if ":" not in reference:
        raise ValueError("Config reference must be in form 'module_or_path:attribute'.")
    module_ref, attr = reference.split(":", maxsplit=1)
    module = _load_module(module_ref)
    return _resolve_attr(module, attr)


def load_conversion_config(config_ref: str, input_dir: Path | None = None) -> ConversionConfig:
    """Load a ConversionConfig from reference, optionally rebinding its input dir."""

    loaded = load_object(config_ref)
    if isinstance(loaded, dict):
        loaded = conversion_config_from_dict(loaded)
    if not isinstance(loaded, ConversionConfig):
        type_name = type(loaded).__name__
        raise TypeError(
            f"Config reference must resolve to ConversionConfig, got {type_name}."
        )
    if input_dir is not None:
        return replace(loaded, input_dir=input_dir.resolve())
    return loaded


def _parse_enum(name: str, raw: Any) -> Any:
    enum_type = _ENUM_FIELDS[name]
    if isinstance(raw, enum_type):
        return raw
    key = str(raw).strip().lower()
    key = _ALIASES.get(key, key)
    try:
        return enum_type(key)
    except ValueError:
        known = ", ".join(member.value for member in enum_type)
        raise ValueError(
            f"Unknown {name.replace('_', ' ')}: {raw} (expected one of {known})"
        ) from None


def _coerce(key: str, value: Any) -> Any:
    if value is None:
        return value
    if key in ("input_dir", "output_dir"):
        return Path(value)
    if key == "detected_input_format":
        return InputAnnotationFormat(value)
    if key == "label_list":
        if isinstance(value, (str, bytes)):
            raise TypeError("expected a list of labels")
        return tuple(str(item) for item in value)
    if key in ("val_size", "test_size"):
        return float(value)
    if key in ("seed", "start_image_id", "start_annotation_id", "workers"):
        return int(value)
    return value


def conversion_config_from_dict(payload: dict[str, Any]) -> ConversionConfig:
    """Map a request dict (string enum values) onto a validated ConversionConfig.

    Unknown fields, unknown enum strings and values of the wrong type are
    collected into one ConfigValidationError before the config is built.
    """

    known = {item.name for item in fields(ConversionConfig)} - {"created_at"}
    errors: list[str] = []
    kwargs: dict[str, Any] = {}

    if not payload.get("input_dir"):
        raise ConfigValidationError(["input_dir is required"])

    for key, value in payload.items():
        if key not in known:
            errors.append(f"Unknown config field: {key}")
            continue
        if value is None and key not in ("output_dir", "custom_dataset_name", "detected_input_format"):
            continue
        if key in _ENUM_FIELDS:
            try:
                value = _parse_enum(key, value)
            except ValueError as exc:
                errors.append(str(exc))
                continue
        else:
            try:
                value = _coerce(key, value)
            except (TypeError, ValueError) as exc:
                errors.append(f"Invalid {key}: {value!r} ({exc})")
                continue
        kwargs[key] = value

    if errors:
        raise ConfigValidationError(errors)
    return ConversionConfig(**kwargs)
