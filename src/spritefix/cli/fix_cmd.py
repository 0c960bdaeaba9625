"""Auto-fix command: detect, replace, stabilize and verify a frame sequence."""

from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .utils import (
    build_autofix_config,
    build_parallel_config,
    detection_options,
    display_common_header,
    display_path_info,
    display_worker_info,
    handle_generic_error,
    handle_keyboard_interrupt,
)

console = Console()


def render_bad_frames_table(report) -> Table:
    """Rich table with one row per bad frame."""
    table = Table(title=f"Bad Frames ({len(report.bad_frames)}/{report.total_frames})")
    table.add_column("Frame", justify="right", style="cyan")
    table.add_column("Severity", style="magenta")
    table.add_column("Reasons")
    table.add_column("Replaced With", justify="right")

    for record in report.bad_frames:
        severity_style = "red" if record.severity == "severe" else "yellow"
        table.add_row(
            str(record.index),
            f"[{severity_style}]{record.severity}[/{severity_style}]",
            ", ".join(reason.type for reason in record.reasons),
            str(record.replacement) if record.resolved else "[red]unresolved[/red]",
        )
    return table


@click.command()
@click.argument("input_path", type=click.Path(exists=True, path_type=Path))
@click.argument("output_dir", type=click.Path(file_okay=False, path_type=Path))
@detection_options
@click.option(
    "--margin",
    type=int,
    help="Canvas padding per axis around the largest content box (default: 20)",
)
@click.option(
    "--report",
    "report_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Report JSON path (default: OUTPUT_DIR/autofix_report.json)",
)
@click.option(
    "--debug-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Dump input and corrected frames here for inspection",
)
def fix(
    input_path: Path,
    output_dir: Path,
    palette: Path | None,
    preset: str | None,
    primary_bucket: str | None,
    color_ratio_threshold: float | None,
    opacity_iqr_multiplier: float | None,
    ssim_threshold: float | None,
    pixel_diff_threshold: float | None,
    workers: int,
    log_level: str,
    margin: int | None,
    report_path: Path | None,
    debug_dir: Path | None,
) -> None:
    """Detect and repair corrupted sprite frames, then stabilize the animation.

    Runs four detection methods (color histogram, alpha analysis, structural
    similarity, pixel outliers), replaces bad frames with their nearest good
    neighbour, and recenters every frame on a bottom-anchored canvas.

    INPUT_PATH: Directory of frame images (sorted by name) or an animated image
    OUTPUT_DIR: Directory to write corrected frames and the report into
    """
    try:
        from ..autofix import auto_fix
        from ..io import (
            load_frames,
            save_debug_frames,
            save_json,
            setup_logging,
            write_frames,
        )
        from ..schema import validate_report

        setup_logging(log_level=log_level)

        config = build_autofix_config(
            palette=palette,
            preset=preset,
            primary_bucket=primary_bucket,
            margin=margin,
            color_ratio_threshold=color_ratio_threshold,
            opacity_iqr_multiplier=opacity_iqr_multiplier,
            ssim_threshold=ssim_threshold,
            pixel_diff_threshold=pixel_diff_threshold,
        )
        parallel_config = build_parallel_config(workers)
        report_path = report_path or output_dir / "autofix_report.json"

        display_common_header("SpriteFix Auto-Fix")
        display_path_info("Input", input_path)
        display_path_info("Output directory", output_dir)
        display_path_info("Report", report_path, "📄")
        display_worker_info(parallel_config)
        if config.detection.BUCKET_RULES:
            labels = ", ".join(rule.label for rule in config.detection.BUCKET_RULES)
            click.echo(f"🎨 Color buckets: {labels}")

        frames = load_frames(input_path)
        click.echo(f"🖼️  Frames: {len(frames)}")
        if debug_dir:
            save_debug_frames(frames, debug_dir, label="input")

        click.echo("\n🔍 Running anomaly detection and stabilization...")
        result = auto_fix(frames, config, parallel_config=parallel_config)
        report = result.report

        written = write_frames(result.frames, output_dir)
        report_data = report.to_dict()
        validate_report(report_data)
        save_json(report_data, report_path)
        if debug_dir:
            save_debug_frames(result.frames, debug_dir, label="fixed")

        click.echo("\n📊 Results:")
        click.echo(f"   • Total frames: {report.total_frames}")
        click.echo(f"   • Bad frames: {len(report.bad_frames)}")
        click.echo(f"   • Methods: {', '.join(report.detection_methods) or 'none'}")
        click.echo(f"   • Frames written: {len(written)}")
        click.echo(f"   • Report saved to: {report_path}")

        if report.bad_frames:
            console.print(render_bad_frames_table(report))

        if report.verified:
            click.echo("✅ Final verification passed")
        else:
            click.echo("⚠️  Final verification reported issues:")
            for issue in report.verification.issues:
                click.echo(f"   • {issue}")

    except KeyboardInterrupt:
        handle_keyboard_interrupt("Auto-fix")
    except Exception as e:
        handle_generic_error("Auto-fix", e)
