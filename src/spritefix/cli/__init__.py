"""CLI module for SpriteFix commands."""

import click

from .check_cmd import check
from .fix_cmd import fix


@click.group()
@click.version_option(version="0.1.0", prog_name="spritefix")
def main() -> None:
    """🧩 SpriteFix: sprite frame anomaly repair and stabilization."""
    pass


main.add_command(fix)
main.add_command(check)

__all__ = [
    "check",
    "fix",
    "main",
]
