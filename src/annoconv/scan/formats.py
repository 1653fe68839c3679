"""Format analysis with progress events."""

from __future__ import annotations

import asyncio
from pathlib import Path

from annoconv.detection.analyzer import (
    AnalysisConfig,
    DatasetAnalysis,
    analyze_shapes,
    sample_shapes,
)
from annoconv.ingest.scanner import ListingCache, find_json_files
from annoconv.observability.progress import ProgressEmitter, reporting_failure


def analyze_dataset_with_progress(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    config: AnalysisConfig = AnalysisConfig(),
    *,
    cache: ListingCache | None = None,
) -> DatasetAnalysis:
    """`analyze_dataset` reporting list, sample and scoring phases."""

    input_dir = Path(input_dir)
    with reporting_failure(progress, "Format analysis"):
        if not input_dir.exists():
            raise FileNotFoundError(f"Directory does not exist: {input_dir}")

        if progress is not None:
            progress.emit(0, 100, "Analyzing dataset format...")
        json_files = find_json_files(input_dir, cache=cache)
        if not json_files:
            analysis = DatasetAnalysis(format_description="no JSON files found")
        else:
            if progress is not None:
                progress.emit(30, 100, "Reading sample files...")
            shapes, sample_files = sample_shapes(json_files, config)
            if progress is not None:
                progress.emit(80, 100, "Computing confidence...")
            analysis = analyze_shapes(
                shapes,
                total_files=len(json_files),
                sample_files=sample_files,
                config=config,
            )

    if progress is not None:
        progress.complete(
            f"Analysis complete: {analysis.input_format.value} "
            f"(confidence {analysis.confidence_percent})"
        )
    return analysis


async def analyze_dataset_async(
    input_dir: Path,
    progress: ProgressEmitter | None = None,
    config: AnalysisConfig = AnalysisConfig(),
    *,
    cache: ListingCache | None = None,
) -> DatasetAnalysis:
    return await asyncio.to_thread(
        analyze_dataset_with_progress, input_dir, progress, config, cache=cache
    )
