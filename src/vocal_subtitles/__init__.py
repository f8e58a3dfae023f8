"""
Vocal Subtitles - vocals -> subtitles pipeline over a content-addressed cache

Runs three external tools in sequence:
- Spleeter to isolate the vocal track
- SubsAI to transcribe the vocals into SRT subtitles
- FFmpeg to mux the subtitles back into video inputs

Intermediate files are kept under cache/<sha1 of the input>/ so reruns on
the same content land in the same place.
"""

__version__ = "0.1.0"

# Import core classes and functions
from .errors import (
    PipelineError,
    UsageError,
    InputNotFoundError,
    ExternalToolError,
    ProbeError,
    CacheError,
    UnsupportedMediaError,
)
from .cache import identify, layout_for, ensure_created, cache_lock, artifacts_for, CacheLayout, PipelineArtifacts
from .media import classify, subtitle_mode_for, has_video_stream, MediaDescriptor, SubtitleMode
from .tools import separate_vocals, transcribe_vocals, check_tools
from .remux import merge_subtitles
from .pipeline import SubtitlePipeline, PipelineConfig, PipelineResult, RunPlan, Stage

__all__ = [
    # Errors
    "PipelineError",
    "UsageError",
    "InputNotFoundError",
    "ExternalToolError",
    "ProbeError",
    "CacheError",
    "UnsupportedMediaError",

    # Cache
    "identify",
    "layout_for",
    "ensure_created",
    "cache_lock",
    "artifacts_for",
    "CacheLayout",
    "PipelineArtifacts",

    # Media
    "classify",
    "subtitle_mode_for",
    "has_video_stream",
    "MediaDescriptor",
    "SubtitleMode",

    # External tools
    "separate_vocals",
    "transcribe_vocals",
    "check_tools",
    "merge_subtitles",

    # Pipeline
    "SubtitlePipeline",
    "PipelineConfig",
    "PipelineResult",
    "RunPlan",
    "Stage",
]
