"""Shared utilities for CLI commands."""

import sys
from dataclasses import replace
from pathlib import Path

import click

from ..buckets import get_preset, load_bucket_rules
from ..config import AutoFixConfig, DetectionConfig, StabilizationConfig
from ..error_handling import ConfigurationError
from ..parallel import ParallelConfig


def handle_generic_error(command_name: str, error: Exception) -> None:
    """Handle generic command errors with consistent formatting."""
    click.echo(f"❌ {command_name} failed: {error}", err=True)
    sys.exit(1)


def handle_keyboard_interrupt(command_name: str) -> None:
    """Handle keyboard interrupt with consistent formatting."""
    click.echo(f"\n⏹️  {command_name} interrupted by user", err=True)
    sys.exit(1)


def display_common_header(title: str) -> None:
    """Display a common header for CLI commands."""
    click.echo(f"🧩 {title}")


def display_path_info(label: str, path: Path, emoji: str = "📁") -> None:
    """Display path information with consistent formatting."""
    click.echo(f"{emoji} {label}: {path}")


def load_palette(palette: Path | None, preset: str | None):
    """Resolve bucket rules from a palette file or a named preset.

    Returns:
        Tuple of (rules, primary bucket label or None); empty rules when
        neither source is given

    Raises:
        ConfigurationError: If the palette cannot be read or parsed
    """
    if palette is not None and preset is not None:
        raise ConfigurationError("Use either --palette or --preset, not both")
    try:
        if palette is not None:
            return load_bucket_rules(palette)
        if preset is not None:
            return get_preset(preset)
    except (OSError, ValueError) as e:
        raise ConfigurationError(f"Invalid bucket palette: {e}", cause=e) from e
    return [], None


def build_autofix_config(
    palette: Path | None = None,
    preset: str | None = None,
    primary_bucket: str | None = None,
    margin: int | None = None,
    **thresholds: float | None,
) -> AutoFixConfig:
    """Build an AutoFixConfig from CLI options.

    ``thresholds`` holds DetectionConfig overrides keyed by lower-case field
    name (e.g. ``ssim_threshold``); ``None`` values keep the defaults.
    """
    rules, primary = load_palette(palette, preset)
    if primary_bucket is not None:
        primary = primary_bucket

    overrides = {
        name.upper(): value for name, value in thresholds.items() if value is not None
    }
    try:
        detection = replace(
            DetectionConfig(BUCKET_RULES=rules, PRIMARY_BUCKET=primary), **overrides
        )
        stabilization = (
            StabilizationConfig(MARGIN=margin) if margin is not None else StabilizationConfig()
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e

    return AutoFixConfig(detection=detection, stabilization=stabilization)


def build_parallel_config(workers: int) -> ParallelConfig:
    """Worker count 0 means one worker per CPU (or SPRITEFIX_MAX_PARALLEL_WORKERS)."""
    if workers < 0:
        raise click.BadParameter("must be >= 0", param_hint="--workers")
    return ParallelConfig(max_workers=workers or None)


def display_worker_info(parallel_config: ParallelConfig) -> None:
    """Display worker count information."""
    click.echo(f"👥 Workers: {parallel_config.max_workers}")


def detection_options(func):
    """Options shared by commands that run anomaly detection."""
    options = [
        click.option(
            "--palette",
            type=click.Path(exists=True, dir_okay=False, path_type=Path),
            help="YAML/JSON file with color bucket rules",
        ),
        click.option(
            "--preset",
            type=str,
            help="Named bucket preset (e.g. green_subject)",
        ),
        click.option(
            "--primary-bucket",
            type=str,
            help="Bucket that gets the primary_color_loss diagnosis",
        ),
        click.option(
            "--color-ratio-threshold",
            type=float,
            help="Flag a bucket below this fraction of its median count (default: 0.35)",
        ),
        click.option(
            "--opacity-iqr-multiplier",
            type=float,
            help="IQR multiplier for opacity outliers (default: 2.5)",
        ),
        click.option(
            "--ssim-threshold",
            type=float,
            help="Absolute SSIM floor for adjacent frames (default: 0.55)",
        ),
        click.option(
            "--pixel-diff-threshold",
            type=float,
            help="Minimum pixel-diff outlier bound (default: 0.15)",
        ),
        click.option(
            "--workers",
            "-j",
            type=int,
            default=0,
            help="Number of worker threads (default: 0 = CPU count)",
        ),
        click.option(
            "--log-level",
            type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
            default="WARNING",
            help="Logging level (default: WARNING)",
        ),
    ]
    for option in reversed(options):
        func = option(func)
    return func
