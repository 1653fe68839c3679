"""annoconv package entrypoint."""

from annoconv.cli.app import main as _cli_main


def main() -> None:
    """Run the annoconv CLI."""
    _cli_main()
