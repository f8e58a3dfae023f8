"""
Subtitle muxing module for the vocal subtitles pipeline.
"""
from typing import Union
from pathlib import Path

import ffmpeg
from rich.console import Console

from .errors import ExternalToolError
from .media import SubtitleMode

console = Console()

def build_merge_stream(
    video_path: Union[str, Path],
    subtitle_path: Union[str, Path],
    output_path: Union[str, Path],
    mode: SubtitleMode,
):
    """Build the ffmpeg graph that attaches a subtitle file to a media file

    All streams of the media input are copied untouched; only the subtitle
    codec depends on the mode.
    """
    media = ffmpeg.input(str(video_path))
    subtitles = ffmpeg.input(str(subtitle_path))
    return ffmpeg.output(
        media,
        subtitles,
        str(output_path),
        c="copy",
        **{"c:s": mode.codec},
    )

def merge_subtitles(
    video_path: Union[str, Path],
    subtitle_path: Union[str, Path],
    output_path: Union[str, Path],
    mode: SubtitleMode,
    ffmpeg_cmd: str = "ffmpeg",
) -> Path:
    """Mux a subtitle file into a copy of the media file

    Args:
        video_path: Path to the original media file
        subtitle_path: Path to the subtitle file (SRT)
        output_path: Path of the new media file
        mode: EMBED_TEXT re-encodes to a text track, STREAM_COPY copies it

    Returns:
        Path to the output media file
    """
    output_path = Path(output_path)
    stream = build_merge_stream(video_path, subtitle_path, output_path, mode)

    try:
        ffmpeg.run(
            stream,
            cmd=ffmpeg_cmd,
            capture_stdout=True,
            capture_stderr=True,
            overwrite_output=True,
        )
    except ffmpeg.Error as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        console.print("[red]✗ FFmpeg subtitle merge failed[/red]")
        if stderr:
            console.print(f"[dim]{stderr}[/dim]")
        raise ExternalToolError("ffmpeg", "subtitle merge failed", stderr=stderr) from e
    except FileNotFoundError as e:
        console.print(f"[red]✗ {ffmpeg_cmd} not found on PATH[/red]")
        raise ExternalToolError("ffmpeg", f"{ffmpeg_cmd} not found on PATH", returncode=127) from e

    return output_path
