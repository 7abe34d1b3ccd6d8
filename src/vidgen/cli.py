"""CLI entry point for the video renderer."""

import asyncio
import logging
import typer
from pathlib import Path
from typing import List, Optional
from enum import Enum

from . import __version__
from .config import config
from .errors import VidgenError
from .models import Manifest, resolve_formats
from .render.ffmpeg import check_ffmpeg_available
from .render.presets import PLATFORM_PRESETS

app = typer.Typer(
    name="vidgen",
    help="Render HTML scene manifests into videos",
    no_args_is_help=True
)

MANIFEST_NAME = "project.yaml"


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else getattr(logging, config.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"vidgen version {__version__}")
        raise typer.Exit()


def report_error(error: VidgenError) -> None:
    """Print an error with its remediation hint."""
    typer.echo(f"❌ {error}")
    hint = error.hint()
    if hint:
        typer.echo(f"   💡 {hint}")


def load_manifest(project_dir: Path, manifest: Optional[Path]) -> Manifest:
    path = manifest or project_dir / MANIFEST_NAME
    try:
        return Manifest.from_yaml(path)
    except VidgenError as e:
        report_error(e)
        raise typer.Exit(1)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit"
    )
) -> None:
    """vidgen - Render declarative scenes into finished videos."""
    pass


class Quality(str, Enum):
    """Output quality presets."""
    DRAFT = "draft"
    STANDARD = "standard"
    HIGH = "high"


@app.command()
def render(
    project_dir: Path = typer.Argument(
        Path("."),
        help="Project directory",
        exists=True,
        file_okay=False,
        dir_okay=True
    ),
    manifest_path: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help=f"Manifest file (defaults to <project>/{MANIFEST_NAME})"
    ),
    formats: Optional[List[str]] = typer.Option(
        None,
        "--format",
        "-f",
        help="Render only this format (repeatable)"
    ),
    quality: Optional[Quality] = typer.Option(
        None,
        "--quality",
        "-q",
        help="Output quality preset (overrides the manifest)"
    ),
    fps: Optional[int] = typer.Option(
        None,
        "--fps",
        help="Frames per second (overrides the manifest)",
        min=1,
        max=120
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory (overrides the manifest)"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Render every scene and write one video per output format."""
    from .render.orchestrator import render_project

    setup_logging(verbose)
    manifest = load_manifest(project_dir, manifest_path)

    if not check_ffmpeg_available():
        typer.echo(f"❌ FFmpeg not found ({config.ffmpeg_bin})")
        typer.echo("   💡 Install it (brew install ffmpeg / apt install ffmpeg) or set VIDGEN_FFMPEG")
        raise typer.Exit(1)

    typer.echo(f"🎬 Rendering: {manifest.project.name}")
    typer.echo(f"   Scenes: {len(manifest.scenes)}")

    with typer.progressbar(length=1, label="   Progress") as bar:
        def on_progress(done: int, total: int, message: str) -> None:
            bar.length = total
            bar.update(done - bar.pos)

        try:
            outputs = asyncio.run(
                render_project(
                    manifest,
                    project_dir,
                    fps=fps,
                    quality=quality.value if quality else None,
                    output_dir=output,
                    formats=formats,
                    progress=on_progress,
                )
            )
        except VidgenError as e:
            typer.echo("")
            report_error(e)
            raise typer.Exit(1)

    typer.echo("\n✅ Render complete")
    for result in outputs:
        typer.echo(f"   🎞️  {result.format_name}: {result.output_path} ({result.total_duration:.1f}s)")
        if result.subtitle_path:
            typer.echo(f"      Subtitles: {result.subtitle_path}")


@app.command()
def preview(
    project_dir: Path = typer.Argument(
        Path("."),
        help="Project directory",
        exists=True,
        file_okay=False,
        dir_okay=True
    ),
    scene: int = typer.Option(
        1,
        "--scene",
        "-s",
        help="Scene number (1-based, as listed by 'status')",
        min=1
    ),
    frame: int = typer.Option(
        0,
        "--frame",
        help="Frame index within the scene (0-based)",
        min=0
    ),
    output: Path = typer.Option(
        Path("preview.png"),
        "--output",
        "-o",
        help="PNG file to write"
    ),
    format_name: Optional[str] = typer.Option(
        None,
        "--format",
        "-f",
        help="Output format to preview (defaults to the first)"
    ),
    manifest_path: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help=f"Manifest file (defaults to <project>/{MANIFEST_NAME})"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose logging"
    ),
) -> None:
    """Render a single frame of a scene to a PNG file."""
    from .render.orchestrator import render_preview

    setup_logging(verbose)
    manifest = load_manifest(project_dir, manifest_path)

    typer.echo(f"🔍 Previewing scene {scene} frame {frame}...")
    try:
        png = asyncio.run(
            render_preview(manifest, project_dir, scene - 1, frame, format_name=format_name)
        )
    except VidgenError as e:
        report_error(e)
        raise typer.Exit(1)

    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(png)
    typer.echo(f"✅ Saved preview: {output}")


@app.command()
def status(
    project_dir: Path = typer.Argument(
        Path("."),
        help="Project directory",
        exists=True,
        file_okay=False,
        dir_okay=True
    ),
    manifest_path: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help=f"Manifest file (defaults to <project>/{MANIFEST_NAME})"
    ),
) -> None:
    """Show project status."""
    manifest = load_manifest(project_dir, manifest_path)

    typer.echo(f"📁 Project: {manifest.project.name} (v{manifest.project.version})")
    typer.echo(f"   Video: {manifest.video.width}x{manifest.video.height} @ {manifest.video.fps}fps")
    typer.echo(f"   Quality: {manifest.output.quality}")
    typer.echo(f"   Scenes: {len(manifest.scenes)}")

    fixed_total = sum(
        scene.duration.seconds for scene in manifest.scenes if not scene.is_auto
    )
    auto_count = sum(1 for scene in manifest.scenes if scene.is_auto)
    typer.echo(f"   Fixed duration: {fixed_total:.1f}s (+{auto_count} auto)")

    typer.echo("\n📽️  Scenes:")
    for scene in manifest.scenes:
        icon = "🎙️ " if scene.narration_text else "🔇"
        typer.echo(f"   {icon} {scene.id}: {scene.template} [{scene.duration}]")
        if scene.narration_text:
            text = scene.narration_text
            preview = text[:60] + "..." if len(text) > 60 else text
            typer.echo(f"      → {preview}")


@app.command("formats")
def list_formats(
    project_dir: Path = typer.Argument(
        Path("."),
        help="Project directory",
        exists=True,
        file_okay=False,
        dir_okay=True
    ),
    manifest_path: Optional[Path] = typer.Option(
        None,
        "--manifest",
        "-m",
        help=f"Manifest file (defaults to <project>/{MANIFEST_NAME})"
    ),
) -> None:
    """List the project's output formats and the known platform presets."""
    manifest = load_manifest(project_dir, manifest_path)

    typer.echo("📐 Formats:")
    for spec in resolve_formats(manifest):
        platform = f" → {spec.platform}" if spec.platform else ""
        typer.echo(f"   • {spec.name}: {spec.width}x{spec.height}{platform}")

    typer.echo("\n📺 Platform presets:")
    for name, preset in PLATFORM_PRESETS.items():
        typer.echo(
            f"   • {name}: crf {preset.crf}, {preset.preset}, "
            f"{preset.audio_bitrate} @ {preset.audio_samplerate}Hz"
        )


if __name__ == "__main__":
    app()
