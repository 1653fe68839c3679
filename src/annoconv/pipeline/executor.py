"""Conversion dispatcher: detect, set up, process every file, finalize."""

from __future__ import annotations

from dataclasses import replace
import logging
import time
from typing import Any

from annoconv.annotation.schema import AnnotationParseError
from annoconv.config.loader import conversion_config_from_dict
from annoconv.config.schema import ConfigValidationError, ConversionConfig
from annoconv.detection.analyzer import AnalysisConfig, analyze_dataset
from annoconv.ingest.scanner import ListingCache, find_json_files
from annoconv.observability.logging import get_logger, log_event
from annoconv.pipeline.context import ConversionResult
from annoconv.pipeline.registry import resolve_pipeline
from annoconv.pipeline.stage import gather_labels, new_context


_LOGGER = get_logger("annoconv.executor")

# Per-file failures that are recorded and skipped rather than aborting the run.
_FILE_ERRORS = (AnnotationParseError, OSError, ValueError)


def with_detected_format(
    config: ConversionConfig,
    cache: ListingCache | None = None,
) -> ConversionConfig:
    """Return `config` carrying a detected input format, detecting if needed."""

    if config.detected_input_format is not None:
        return config
    analysis = analyze_dataset(config.input_dir, AnalysisConfig(), cache=cache)
    log_event(
        _LOGGER,
        "format_detected",
        input_dir=str(config.input_dir),
        input_format=analysis.input_format.value,
        confidence=analysis.confidence,
        description=analysis.format_description,
    )
    return replace(config, detected_input_format=analysis.input_format)


def convert(config: ConversionConfig, cache: ListingCache | None = None) -> ConversionResult:
    """Run one conversion to the format named by `config.output_format`."""

    errors = config.validate()
    if errors:
        return ConversionResult.failure(errors)

    config = with_detected_format(config, cache=cache)
    pipeline = resolve_pipeline(config.output_format)
    try:
        output_dirs = pipeline.setup_output_dirs(config)
    except OSError as exc:
        return ConversionResult.failure([f"Failed to create output directories: {exc}"])

    context = new_context(config)
    json_files = find_json_files(config.input_dir, cache=cache)
    context.stats.total_files = len(json_files)
    if config.deterministic_labels and not config.label_list:
        gather_labels(json_files, context, workers=config.workers)

    started = time.perf_counter()
    log_event(
        _LOGGER,
        "conversion_started",
        input_dir=str(config.input_dir),
        output_dir=str(output_dirs.base_dir),
        output_format=config.output_format.value,
        total_files=len(json_files),
    )

    for json_path in json_files:
        try:
            result = pipeline.process_file(json_path, config, output_dirs, context)
        except _FILE_ERRORS as exc:
            context.record_failure(str(json_path), str(exc))
            log_event(
                _LOGGER,
                "file_failed",
                level=logging.WARNING,
                file=str(json_path),
                error=f"{type(exc).__name__}: {exc}",
            )
            continue
        context.record_file(result)

    try:
        pipeline.finalize(config, output_dirs, context)
    except (OSError, ValueError) as exc:
        context.add_error(f"Finalize failed: {exc}")

    context.fold_labels()
    log_event(
        _LOGGER,
        "conversion_finished",
        output_dir=str(output_dirs.base_dir),
        processed_files=context.stats.processed_files,
        failed_files=context.stats.failed_files,
        total_annotations=context.stats.total_annotations,
        elapsed_seconds=round(time.perf_counter() - started, 3),
    )
    return ConversionResult(
        success=True,
        output_dir=str(output_dirs.base_dir),
        stats=context.stats,
        errors=list(context.errors),
    )


def convert_request(payload: dict[str, Any], cache: ListingCache | None = None) -> ConversionResult:
    """Convert from a plain request dict; config problems become a failure result."""

    try:
        config = conversion_config_from_dict(payload)
    except ConfigValidationError as exc:
        return ConversionResult.failure(exc.errors)
    return convert(config, cache=cache)
