"""
Pipeline orchestration: separate -> transcribe -> merge -> finalize.

Each stage runs one external tool to completion and writes only inside the
cache partition of the input; finalize is the only step that touches the
output directory. The first failure aborts the run and leaves the cache
as it is for inspection or reuse.
"""
import json
import shutil
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .cache import (
    CacheLayout,
    PipelineArtifacts,
    artifacts_for,
    cache_lock,
    ensure_created,
    identify,
    layout_for,
)
from .errors import CacheError, ExternalToolError, InputNotFoundError, UnsupportedMediaError
from .media import SUBTITLE_FORMAT, MediaDescriptor, classify
from .remux import merge_subtitles
from .tools import separate_vocals, transcribe_vocals

console = Console()

DEFAULT_MODEL = "openai/whisper"

@dataclass
class PipelineConfig:
    """Settings for one pipeline run"""
    model: str = DEFAULT_MODEL
    cache_dir: Path = Path("cache")
    output_dir: Path = Path("output")
    reuse_cache: bool = False
    strict_probe: bool = False
    ffmpeg_cmd: str = "ffmpeg"
    ffprobe_cmd: str = "ffprobe"
    spleeter_cmd: str = "spleeter"
    subsai_cmd: str = "subsai"

    def __post_init__(self):
        self.cache_dir = Path(self.cache_dir)
        self.output_dir = Path(self.output_dir)

    def tool_commands(self) -> Dict[str, str]:
        return {
            "ffmpeg": self.ffmpeg_cmd,
            "ffprobe": self.ffprobe_cmd,
            "spleeter": self.spleeter_cmd,
            "subsai": self.subsai_cmd,
        }

class Stage(Enum):
    INIT = "init"
    CLASSIFIED = "classified"
    SEPARATED = "separated"
    TRANSCRIBED = "transcribed"
    MERGED = "merged"
    FINALIZED = "finalized"

@dataclass(frozen=True)
class RunPlan:
    """Everything derived from the input before any stage runs"""
    descriptor: MediaDescriptor
    cache_key: str
    layout: CacheLayout
    artifacts: PipelineArtifacts

@dataclass
class PipelineResult:
    plan: RunPlan
    subtitles: Path
    video: Optional[Path] = None
    skipped: List[Stage] = field(default_factory=list)

class SubtitlePipeline:
    """Runs the vocal subtitle pipeline for one input file at a time"""

    def __init__(self, config: Optional[PipelineConfig] = None):
        self.config = config or PipelineConfig()
        self.state = Stage.INIT
        self._skipped: List[Stage] = []
        self._previous: Dict[str, object] = {}

    def prepare(self, input_path: Union[str, Path]) -> RunPlan:
        """Validate the input, hash and classify it, and derive all paths

        Nothing is written to disk here.
        """
        input_path = Path(input_path)
        if not input_path.is_file():
            raise InputNotFoundError(input_path)

        cache_key = identify(input_path)
        descriptor = classify(
            input_path,
            ffprobe_cmd=self.config.ffprobe_cmd,
            strict=self.config.strict_probe,
        )
        if descriptor.is_video and not descriptor.extension:
            raise UnsupportedMediaError(
                f"Cannot merge subtitles into {input_path}: no file extension to pick the output container from"
            )

        layout = layout_for(cache_key, self.config.cache_dir)
        return RunPlan(
            descriptor=descriptor,
            cache_key=cache_key,
            layout=layout,
            artifacts=artifacts_for(layout, descriptor),
        )

    def run(self, input_path: Union[str, Path]) -> PipelineResult:
        """Run every stage for the input file

        Returns:
            PipelineResult with the final output locations
        """
        self.state = Stage.INIT
        self._skipped = []
        self._previous = {}

        plan = self.prepare(input_path)
        self._advance(Stage.CLASSIFIED)
        self.print_parameters(plan)

        ensure_created(plan.layout)
        _mkdir(self.config.output_dir)

        with cache_lock(plan.layout):
            self._previous = self.read_run_config(plan)
            self.write_run_config(plan)
            self.separate(plan)
            self.transcribe(plan)
            if plan.descriptor.is_video:
                self.merge(plan)
            result = self.finalize(plan)

        self.print_summary(result)
        return result

    def separate(self, plan: RunPlan) -> Path:
        vocals = plan.artifacts.vocals
        if self._reusable(vocals, Stage.SEPARATED):
            return vocals

        console.print("[blue]Running Spleeter to separate vocals...[/blue]")
        with console.status("Separating vocals..."):
            produced = separate_vocals(
                plan.descriptor.input_path,
                plan.layout.spleeter_dir,
                spleeter_cmd=self.config.spleeter_cmd,
            )
        _expect_output("spleeter", produced)
        self._advance(Stage.SEPARATED)
        return produced

    def transcribe(self, plan: RunPlan) -> Path:
        subtitles = plan.artifacts.subtitles
        if self._same_as_previous(plan, "model") and self._reusable(subtitles, Stage.TRANSCRIBED):
            return subtitles

        console.print("[blue]Running SubsAI to generate subtitles...[/blue]")
        with console.status(f"Transcribing with {self.config.model}..."):
            produced = transcribe_vocals(
                plan.artifacts.vocals,
                self.config.model,
                plan.layout.subsai_dir,
                subtitle_format=SUBTITLE_FORMAT,
                subsai_cmd=self.config.subsai_cmd,
            )
        _expect_output("subsai", produced)
        self._advance(Stage.TRANSCRIBED)
        return produced

    def merge(self, plan: RunPlan) -> Path:
        merged = plan.artifacts.merged
        if (
            Stage.TRANSCRIBED in self._skipped
            and self._same_as_previous(plan, "subtitle_codec")
            and self._reusable(merged, Stage.MERGED)
        ):
            return merged

        console.print("[blue]Merging subtitles into video...[/blue]")
        with console.status("Muxing..."):
            merge_subtitles(
                plan.descriptor.input_path,
                plan.artifacts.subtitles,
                merged,
                plan.descriptor.subtitle_mode,
                ffmpeg_cmd=self.config.ffmpeg_cmd,
            )
        _expect_output("ffmpeg", merged)
        self._advance(Stage.MERGED)
        return merged

    def finalize(self, plan: RunPlan) -> PipelineResult:
        """Copy (video) or move (audio) the results into the output directory"""
        descriptor = plan.descriptor
        output_dir = self.config.output_dir
        final_subtitles = output_dir / f"{descriptor.basename}.{SUBTITLE_FORMAT}"
        final_video = None

        if descriptor.is_video:
            final_video = output_dir / plan.artifacts.merged.name
            _transfer(shutil.copyfile, plan.artifacts.merged, final_video)
            _transfer(shutil.copyfile, plan.artifacts.subtitles, final_subtitles)
        else:
            _transfer(shutil.move, plan.artifacts.subtitles, final_subtitles)

        self.state = Stage.FINALIZED
        return PipelineResult(
            plan=plan,
            subtitles=final_subtitles,
            video=final_video,
            skipped=list(self._skipped),
        )

    def run_config(self, plan: RunPlan) -> Dict[str, object]:
        descriptor = plan.descriptor
        return {
            "input": str(descriptor.input_path),
            "sha1": plan.cache_key,
            "model": self.config.model,
            "type": descriptor.kind.lower(),
            "extension": descriptor.extension,
            "subtitle_format": SUBTITLE_FORMAT,
            "subtitle_codec": descriptor.subtitle_mode.codec if descriptor.is_video else None,
            "probe_ok": descriptor.probe_ok,
        }

    def read_run_config(self, plan: RunPlan) -> Dict[str, object]:
        """Load the parameters recorded by the previous run on this content

        A missing or unreadable record is treated as no previous run.
        """
        path = plan.artifacts.run_config
        if not path.is_file():
            return {}
        try:
            with open(path, "r", encoding="utf-8") as f:
                recorded = json.load(f)
        except (OSError, ValueError):
            console.print(f"[yellow]Ignoring unreadable {escape(str(path))}[/yellow]")
            return {}
        return recorded if isinstance(recorded, dict) else {}

    def write_run_config(self, plan: RunPlan) -> Path:
        """Record the parameters of this run in the conf stage directory"""
        run_config = self.run_config(plan)
        path = plan.artifacts.run_config
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(run_config, f, indent=2)
        except OSError as e:
            raise CacheError(f"Cannot write {path}: {e}") from e
        return path

    def print_parameters(self, plan: RunPlan) -> None:
        descriptor = plan.descriptor
        table = Table(title="Parameters", show_header=False, title_justify="left")
        table.add_column("Parameter", style="bold cyan")
        table.add_column("Value")
        table.add_row("Input Media", str(descriptor.input_path))
        table.add_row("SHA1", plan.cache_key)
        table.add_row("Whisper Model", self.config.model)
        table.add_row("Detected Type", descriptor.kind)
        if descriptor.is_video:
            table.add_row("Output Video", str(plan.artifacts.merged))
            table.add_row("SRT Codec", descriptor.subtitle_mode.codec)
        else:
            table.add_row("Sub Output", SUBTITLE_FORMAT.upper())
        console.print(table)

    def print_summary(self, result: PipelineResult) -> None:
        if result.video is not None:
            console.print(f"[green]✓ Done! Final video with subtitles: {escape(str(result.video))}[/green]")
            console.print(f"Subtitles file: {escape(str(result.subtitles))}")
        else:
            console.print("[green]✓ Done! Lyrics subtitles file:[/green]")
            console.print(f"SRT: {escape(str(result.subtitles))}")

    def _advance(self, stage: Stage) -> None:
        self.state = stage

    def _same_as_previous(self, plan: RunPlan, key: str) -> bool:
        """Whether the cached artifacts were produced with the same setting"""
        return key in self._previous and self._previous[key] == self.run_config(plan)[key]

    def _reusable(self, artifact: Path, stage: Stage) -> bool:
        if not self.config.reuse_cache or not _has_content(artifact):
            return False
        console.print(f"[dim]Reusing cached {escape(artifact.name)} ({stage.value} stage skipped)[/dim]")
        self._skipped.append(stage)
        self._advance(stage)
        return True

def _has_content(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0

def _expect_output(tool: str, path: Path) -> None:
    if not path.exists():
        raise ExternalToolError(tool, f"reported success but did not produce {path}")

def _mkdir(directory: Path) -> None:
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheError(f"Cannot create directory {directory}: {e}") from e

def _transfer(operation, source: Path, destination: Path) -> None:
    try:
        operation(str(source), str(destination))
    except OSError as e:
        raise CacheError(f"Cannot place {source} at {destination}: {e}") from e
