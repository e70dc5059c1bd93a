"""CLI entrypoint for stickreel."""

import argparse
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from . import config
from .animation import export_animation
from .errors import SpeechSynthesisError
from .export import ExportCancelledResult, ExportFailed, ExportSuccess
from .project import ProjectStore
from .speech import ElevenLabsTTSProvider, NoOpTTSProvider, TTSProvider, as_cached
from .subtitles import to_srt

_console = Console()


def _tts_provider() -> TTSProvider:
    if not config.ELEVENLABS_API_KEY:
        _console.print("[yellow]ELEVENLABS_API_KEY not set, using silent placeholder timing[/]")
        return NoOpTTSProvider()
    provider = ElevenLabsTTSProvider(
        api_key=config.ELEVENLABS_API_KEY,
        voice_id=config.ELEVENLABS_VOICE_ID,
        model_id=config.ELEVENLABS_MODEL_ID,
    )
    return as_cached(provider, config.TTS_CACHE_DIR)


def cmd_new(args: argparse.Namespace) -> None:
    project = ProjectStore(args.projects_dir).create(args.name)
    _console.print(f"[green]✓[/] Created project [bold]{project.name}[/] ({project.id})")


def cmd_list(args: argparse.Namespace) -> None:
    projects = ProjectStore(args.projects_dir).list_projects()
    if not projects:
        _console.print("[yellow]No projects found.[/]")
        return
    table = Table(title="Projects")
    table.add_column("ID", style="dim")
    table.add_column("Name", style="bold")
    for info in projects:
        table.add_row(info.id, info.name)
    _console.print(table)


def cmd_rename(args: argparse.Namespace) -> None:
    if not ProjectStore(args.projects_dir).rename(args.project_id, args.name):
        _console.print(f"[red]Error:[/] project not found: {args.project_id}")
        sys.exit(1)
    _console.print(f"[green]✓[/] Renamed to [bold]{args.name}[/]")


def cmd_delete(args: argparse.Namespace) -> None:
    if not ProjectStore(args.projects_dir).delete(args.project_id):
        _console.print(f"[red]Error:[/] project not found: {args.project_id}")
        sys.exit(1)
    _console.print(f"[green]✓[/] Deleted {args.project_id}")


def cmd_export(args: argparse.Namespace) -> None:
    project = ProjectStore(args.projects_dir).load(args.project_id)
    if project is None:
        _console.print(f"[red]Error:[/] project not found: {args.project_id}")
        sys.exit(1)

    output = args.output or f"{project.name}.{'webm' if args.alpha else 'mp4'}"
    _console.print(Panel.fit(
        f"[bold]Project:[/]   {project.name} ({len(project.frames)} keyframes)\n"
        f"[bold]Output:[/]    {output}\n"
        f"[bold]Size:[/]      {args.width}x{args.height} @ {args.fps}fps\n"
        f"[bold]Keyframes:[/] {args.keyframe_fps}/s"
        + ("\n[bold]Alpha:[/]     yes" if args.alpha else ""),
        title="[bold cyan]stickreel export[/]",
    ))

    result = export_animation(
        project.frames,
        output,
        keyframe_fps=args.keyframe_fps,
        target_fps=args.fps,
        width=args.width,
        height=args.height,
        background=args.background,
        with_alpha=args.alpha,
        ffmpeg_bin=args.ffmpeg,
    )

    if isinstance(result, ExportSuccess):
        _console.print(f"\n[bold green]✓ Done![/] Output: {result.destination}")
    elif isinstance(result, ExportCancelledResult):
        _console.print("\n[yellow]Export cancelled.[/]")
        sys.exit(130)
    elif isinstance(result, ExportFailed):
        _console.print(f"\n[red]Export failed:[/] {result.error}")
        sys.exit(1)


def cmd_srt(args: argparse.Namespace) -> None:
    text = Path(args.text[1:]).read_text() if args.text.startswith("@") else args.text
    try:
        with _console.status("[cyan]Synthesizing speech...[/]"):
            speech = _tts_provider().synthesize(text)
    except SpeechSynthesisError as e:
        _console.print(f"[red]Error:[/] {e}")
        sys.exit(1)

    subtitles = speech.subtitles
    Path(args.output).write_text(to_srt(subtitles))
    _console.print(f"[green]✓[/] Wrote {len(subtitles)} subtitles ({speech.length:.2f}s) to {args.output}")


def main() -> None:
    parser = argparse.ArgumentParser(
        description="stickreel: stick-figure keyframe animation and video export"
    )
    parser.add_argument(
        "--projects-dir",
        default=config.PROJECTS_DIR,
        help=f"Directory holding .vid project files (default: {config.PROJECTS_DIR})",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    p_new = sub.add_parser("new", help="Create a project with one humanoid keyframe")
    p_new.add_argument("name")
    p_new.set_defaults(func=cmd_new)

    p_list = sub.add_parser("list", help="List saved projects")
    p_list.set_defaults(func=cmd_list)

    p_rename = sub.add_parser("rename", help="Rename a project")
    p_rename.add_argument("project_id")
    p_rename.add_argument("name")
    p_rename.set_defaults(func=cmd_rename)

    p_delete = sub.add_parser("delete", help="Delete a project")
    p_delete.add_argument("project_id")
    p_delete.set_defaults(func=cmd_delete)

    p_export = sub.add_parser("export", help="Export a project's animation to a video file")
    p_export.add_argument("project_id")
    p_export.add_argument("-o", "--output", help="Output path (default: <name>.mp4, or .webm with --alpha)")
    p_export.add_argument("--fps", type=int, default=config.TARGET_FPS, help=f"Output fps (default: {config.TARGET_FPS})")
    p_export.add_argument(
        "--keyframe-fps",
        type=int,
        default=config.KEYFRAME_FPS,
        help=f"Keyframes per second (default: {config.KEYFRAME_FPS})",
    )
    p_export.add_argument("--width", type=int, default=config.VIDEO_WIDTH)
    p_export.add_argument("--height", type=int, default=config.VIDEO_HEIGHT)
    p_export.add_argument("--background", default=config.BACKGROUND, help="Background colour for opaque exports")
    p_export.add_argument("--alpha", action="store_true", help="Transparent background (.webm or .mov output)")
    p_export.add_argument("--ffmpeg", default=config.FFMPEG_BIN, help="ffmpeg executable")
    p_export.set_defaults(func=cmd_export)

    p_srt = sub.add_parser("srt", help="Synthesize TEXT and write its subtitles as SRT")
    p_srt.add_argument("text", help="Text to speak, or @file to read it from a file")
    p_srt.add_argument("-o", "--output", required=True, help="Output .srt path")
    p_srt.set_defaults(func=cmd_srt)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
