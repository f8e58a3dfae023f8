"""
CLI application for vocal-subtitles
"""
from pathlib import Path
from typing import Optional, Annotated
import typer

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from vocal_subtitles import __version__
from vocal_subtitles.errors import InputNotFoundError, PipelineError, UsageError
from vocal_subtitles.pipeline import DEFAULT_MODEL, PipelineConfig, SubtitlePipeline
from vocal_subtitles.tools import check_tools

app = typer.Typer(
    help="Extract vocals, transcribe them to SRT and merge the subtitles back into video",
    add_completion=False,
)
console = Console()

USAGE = (
    "Usage: vocal-subtitles input_media\n"
    "The input_media can be either an audio or a video file."
)

def _version_callback(value: bool):
    if value:
        console.print(f"vocal-subtitles {__version__}")
        raise typer.Exit()

def _report_tools(config: PipelineConfig) -> bool:
    commands = config.tool_commands()
    available = check_tools(commands)

    table = Table(title="External tools")
    table.add_column("Tool", style="bold cyan")
    table.add_column("Command")
    table.add_column("Status")
    for name, found in available.items():
        status = "[green]✓ found[/green]" if found else "[red]✗ not found[/red]"
        table.add_row(name, escape(commands[name]), status)
    console.print(table)
    return all(available.values())

@app.command()
def main(
    input_media: Annotated[Optional[Path], typer.Argument(help="Input media file (audio or video)", show_default=False)] = None,
    model: Annotated[str, typer.Option("--model", "-m", envvar="MODEL", help="Transcription model passed to SubsAI")] = DEFAULT_MODEL,
    cache_dir: Annotated[Path, typer.Option(help="Directory holding per-content cache partitions")] = Path("cache"),
    output_dir: Annotated[Path, typer.Option("--output-dir", "-o", help="Directory for the final files")] = Path("output"),
    reuse_cache: Annotated[bool, typer.Option(help="Skip stages whose cached output already exists")] = False,
    strict_probe: Annotated[bool, typer.Option(help="Fail instead of assuming audio when probing fails")] = False,
    ffmpeg_bin: Annotated[str, typer.Option("--ffmpeg", envvar="FFMPEG_BIN", help="ffmpeg executable")] = "ffmpeg",
    ffprobe_bin: Annotated[str, typer.Option("--ffprobe", envvar="FFPROBE_BIN", help="ffprobe executable")] = "ffprobe",
    spleeter_bin: Annotated[str, typer.Option("--spleeter", envvar="SPLEETER_BIN", help="spleeter executable")] = "spleeter",
    subsai_bin: Annotated[str, typer.Option("--subsai", envvar="SUBSAI_BIN", help="subsai executable")] = "subsai",
    check: Annotated[bool, typer.Option("--check", help="Check that the external tools are installed and exit")] = False,
    version: Annotated[Optional[bool], typer.Option("--version", callback=_version_callback, is_eager=True, help="Show version and exit")] = None,
):
    """Generate subtitles from the vocals of an audio or video file"""
    config = PipelineConfig(
        model=model,
        cache_dir=cache_dir,
        output_dir=output_dir,
        reuse_cache=reuse_cache,
        strict_probe=strict_probe,
        ffmpeg_cmd=ffmpeg_bin,
        ffprobe_cmd=ffprobe_bin,
        spleeter_cmd=spleeter_bin,
        subsai_cmd=subsai_bin,
    )

    if check:
        raise typer.Exit(0 if _report_tools(config) else 1)

    try:
        if input_media is None:
            raise UsageError("missing input_media")
        SubtitlePipeline(config).run(input_media)
    except UsageError:
        console.print(USAGE, markup=False)
        raise typer.Exit(1)
    except InputNotFoundError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(e.exit_code)
    except PipelineError as e:
        console.print(f"[red]✗ Pipeline aborted: {escape(str(e))}[/red]")
        raise typer.Exit(e.exit_code)
    except OSError as e:
        console.print(f"[red]✗ Pipeline aborted: {escape(str(e))}[/red]")
        raise typer.Exit(1)

if __name__ == "__main__":
    app()
