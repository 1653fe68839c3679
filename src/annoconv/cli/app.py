"""Tyro CLI application entrypoint."""

from __future__ import annotations

from typing import Annotated

import tyro

from annoconv.cli import commands_convert, commands_scan
from annoconv.observability.logging import configure_logging


TopLevelCommand = Annotated[
    commands_convert.ConvertCommand,
    tyro.conf.subcommand(name="convert"),
] | Annotated[
    commands_scan.LabelsCommand,
    tyro.conf.subcommand(name="labels"),
] | Annotated[
    commands_scan.CountsCommand,
    tyro.conf.subcommand(name="counts"),
] | Annotated[
    commands_scan.AnalyzeCommand,
    tyro.conf.subcommand(name="analyze"),
]


def dispatch(command: TopLevelCommand) -> None:
    """Dispatch parsed top-level command object."""

    if isinstance(command, commands_convert.ConvertCommand):
        commands_convert.execute(command)
        return
    if isinstance(command, commands_scan.LabelsCommand):
        commands_scan.execute_labels(command)
        return
    if isinstance(command, commands_scan.CountsCommand):
        commands_scan.execute_counts(command)
        return
    if isinstance(command, commands_scan.AnalyzeCommand):
        commands_scan.execute_analyze(command)
        return
    raise TypeError(f"Unsupported command type: {type(command).__name__}")


def main(argv: list[str] | None = None) -> None:
    """Parse CLI arguments and run requested command."""

    configure_logging()
    command = tyro.cli(TopLevelCommand, args=argv)
    dispatch(command)
