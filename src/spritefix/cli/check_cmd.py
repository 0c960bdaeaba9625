"""Check command: report anomalies and alignment without writing frames."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .utils import (
    build_autofix_config,
    build_parallel_config,
    detection_options,
    handle_generic_error,
    handle_keyboard_interrupt,
)

console = Console()


@click.command()
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@detection_options
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
def check(
    input_path: Path,
    palette: Path | None,
    preset: str | None,
    primary_bucket: str | None,
    color_ratio_threshold: float | None,
    opacity_iqr_multiplier: float | None,
    ssim_threshold: float | None,
    pixel_diff_threshold: float | None,
    workers: int,
    log_level: str,
    output_format: str,
) -> None:
    """Detect bad frames and rate alignment quality of a frame sequence.

    Nothing is written; suggested replacements are shown for each bad frame.

    INPUT_PATH: Directory of frame images (sorted by name) or an animated image
    """
    try:
        from ..detection import detect_bad_frames
        from ..io import load_frames, setup_logging
        from ..parallel import ParallelFrameProcessor
        from ..replacement import assign_replacements
        from ..verification import assess_alignment

        setup_logging(log_level=log_level)

        config = build_autofix_config(
            palette=palette,
            preset=preset,
            primary_bucket=primary_bucket,
            color_ratio_threshold=color_ratio_threshold,
            opacity_iqr_multiplier=opacity_iqr_multiplier,
            ssim_threshold=ssim_threshold,
            pixel_diff_threshold=pixel_diff_threshold,
        )
        processor = ParallelFrameProcessor(build_parallel_config(workers))

        frames = load_frames(input_path)
        detection = detect_bad_frames(frames, config.detection, processor=processor)
        bad_frames = assign_replacements(detection.bad_frames, len(frames))
        alignment = assess_alignment(frames, config.verification)

        if output_format == "json":
            data = {
                "total_frames": len(frames),
                "bad_frames": [record.to_dict() for record in bad_frames],
                "detection_methods": detection.methods_used,
                "alignment": alignment.to_dict(),
            }
            click.echo(json.dumps(data, indent=2))
            return

        table = Table(title=f"Frame Check: {input_path.name} ({len(frames)} frames)")
        table.add_column("Frame", justify="right", style="cyan")
        table.add_column("Severity", style="magenta")
        table.add_column("Anomalies")
        table.add_column("Suggested Replacement", justify="right")
        for record in bad_frames:
            table.add_row(
                str(record.index),
                record.severity,
                ", ".join(reason.type for reason in record.reasons),
                str(record.replacement) if record.resolved else "unresolved",
            )

        if bad_frames:
            console.print(table)
        else:
            click.echo("✅ No bad frames detected")

        click.echo(f"\n📐 Alignment quality: {alignment.quality}")
        for issue in alignment.issues:
            click.echo(f"   • [{issue.severity}] {issue.message}")

    except KeyboardInterrupt:
        handle_keyboard_interrupt("Check")
    except Exception as e:
        handle_generic_error("Check", e)
