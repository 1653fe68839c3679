"""Read-only `labels`, `counts` and `analyze` commands."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import json
from pathlib import Path
import sys
from typing import Annotated, Any

import tyro

from annoconv.observability.progress import ProgressEmitter, ScanProgress
from annoconv.scan.formats import analyze_dataset_async
from annoconv.scan.labels import scan_label_counts_async, scan_labels_async


@dataclass(slots=True)
class LabelsCommand:
    """List every distinct label in a directory tree."""

    path: Annotated[Path, tyro.conf.Positional]
    workers: int = 0
    progress: bool = False


@dataclass(slots=True)
class CountsCommand:
    """Count shapes per label in a directory tree."""

    path: Annotated[Path, tyro.conf.Positional]
    workers: int = 0
    progress: bool = False


@dataclass(slots=True)
class AnalyzeCommand:
    """Detect the point encoding used by a directory's annotations."""

    path: Annotated[Path, tyro.conf.Positional]
    progress: bool = False


def _print_progress(event_name: str, progress: ScanProgress) -> None:
    print(json.dumps({"event": event_name, **progress.to_dict()}), file=sys.stderr)


def _emitter(enabled: bool, event_name: str) -> ProgressEmitter | None:
    if not enabled:
        return None
    return ProgressEmitter(event_name, _print_progress)


def _print(payload: Any) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def execute_labels(command: LabelsCommand) -> None:
    labels = asyncio.run(
        scan_labels_async(
            command.path,
            _emitter(command.progress, "labels-progress"),
            workers=command.workers,
        )
    )
    _print({"path": str(command.path.resolve()), "labels": labels})


def execute_counts(command: CountsCommand) -> None:
    counts = asyncio.run(
        scan_label_counts_async(
            command.path,
            _emitter(command.progress, "counts-progress"),
            workers=command.workers,
        )
    )
    _print({"path": str(command.path.resolve()), "counts": counts})


def execute_analyze(command: AnalyzeCommand) -> None:
    analysis = asyncio.run(
        analyze_dataset_async(command.path, _emitter(command.progress, "analyze-progress"))
    )
    _print(analysis.to_dict())
