"""
Media classification module for the vocal subtitles pipeline.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Union

import ffmpeg
from rich.console import Console

from .errors import ProbeError

console = Console()

# Subtitle format produced for every media kind
SUBTITLE_FORMAT = "srt"

class SubtitleMode(Enum):
    """How the subtitle track is attached when muxing (value is the ffmpeg codec)"""
    EMBED_TEXT = "mov_text"
    STREAM_COPY = "copy"

    @property
    def codec(self) -> str:
        return self.value

CONTAINER_SUBTITLE_MODES = {
    "mp4": SubtitleMode.EMBED_TEXT,
    "m4v": SubtitleMode.EMBED_TEXT,
    "mov": SubtitleMode.EMBED_TEXT,
    "mkv": SubtitleMode.STREAM_COPY,
    "webm": SubtitleMode.STREAM_COPY,
}

DEFAULT_SUBTITLE_MODE = SubtitleMode.EMBED_TEXT

@dataclass(frozen=True)
class MediaDescriptor:
    """What the pipeline knows about its input, fixed for the whole run"""
    input_path: Path
    extension: str
    basename: str
    is_video: bool
    subtitle_mode: SubtitleMode
    probe_ok: bool = True

    @property
    def kind(self) -> str:
        return "Video" if self.is_video else "Audio"

def subtitle_mode_for(extension: str) -> SubtitleMode:
    """Pick the subtitle attachment mode for a container extension

    Args:
        extension: Container extension, with or without the leading dot

    Returns:
        SubtitleMode for the container, EMBED_TEXT when unrecognized
    """
    return CONTAINER_SUBTITLE_MODES.get(extension.lstrip(".").lower(), DEFAULT_SUBTITLE_MODE)

def has_video_stream(media_path: Union[str, Path], ffprobe_cmd: str = "ffprobe") -> bool:
    """Check whether a media file carries a real video stream

    Embedded cover art is reported by ffprobe as a video stream with the
    attached_pic disposition; it does not make the file a video.

    Raises:
        ffmpeg.Error: ffprobe exited with an error
        FileNotFoundError: ffprobe is not installed
    """
    info = ffmpeg.probe(str(media_path), cmd=ffprobe_cmd, v="error", select_streams="v:0")
    for stream in info.get("streams", []):
        if stream.get("codec_type") != "video":
            continue
        if stream.get("disposition", {}).get("attached_pic", 0) == 1:
            continue
        return True
    return False

def classify(
    media_path: Union[str, Path],
    ffprobe_cmd: str = "ffprobe",
    strict: bool = False,
) -> MediaDescriptor:
    """Classify the input as audio or video and pick its subtitle mode

    A failed probe counts as audio input unless strict is set.

    Args:
        media_path: Path to the input media file
        ffprobe_cmd: ffprobe executable
        strict: Raise ProbeError instead of falling back to audio

    Returns:
        MediaDescriptor for the input
    """
    media_path = Path(media_path)
    extension = media_path.suffix.lstrip(".")
    probe_ok = True

    try:
        is_video = has_video_stream(media_path, ffprobe_cmd=ffprobe_cmd)
    except ffmpeg.Error as e:
        stderr = e.stderr.decode(errors="replace").strip() if e.stderr else ""
        if strict:
            raise ProbeError(ffprobe_cmd, f"cannot probe {media_path}", stderr=stderr) from e
        console.print(f"[yellow]Could not probe {media_path.name}, treating it as audio[/yellow]")
        is_video, probe_ok = False, False
    except FileNotFoundError as e:
        if strict:
            raise ProbeError(ffprobe_cmd, "not found on PATH", returncode=127) from e
        console.print(f"[yellow]{ffprobe_cmd} not found, treating input as audio[/yellow]")
        is_video, probe_ok = False, False

    return MediaDescriptor(
        input_path=media_path,
        extension=extension,
        basename=media_path.stem,
        is_video=is_video,
        subtitle_mode=subtitle_mode_for(extension),
        probe_ok=probe_ok,
    )
