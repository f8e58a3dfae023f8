"""
Content-addressed cache for intermediate pipeline artifacts.

Every input is keyed by the SHA-1 of its bytes, so the same content always
lands in the same ``cache/<digest>/`` partition regardless of its name or
location. Each pipeline stage writes into its own subdirectory there.
"""
import contextlib
import hashlib
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, Tuple, Union

from filelock import FileLock, Timeout
from rich.console import Console

from .errors import CacheError
from .media import MediaDescriptor

console = Console()

# Stage subdirectory names inside a cache partition
STAGES = ("ffmpeg", "spleeter", "subsai", "conf")

CHUNK_SIZE = 1024 * 1024

_KEY_PATTERN = re.compile(r"^[0-9a-f]+$")

def identify(file_path: Union[str, Path]) -> str:
    """Compute the cache key of a file from its content

    Args:
        file_path: Path to the file to hash

    Returns:
        40-character SHA-1 hex digest of the file bytes
    """
    digest = hashlib.sha1()
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()

@dataclass(frozen=True)
class CacheLayout:
    """Directories of one cache partition"""
    key: str
    root: Path
    ffmpeg_dir: Path
    spleeter_dir: Path
    subsai_dir: Path
    conf_dir: Path

    @property
    def directories(self) -> Tuple[Path, ...]:
        return (self.ffmpeg_dir, self.spleeter_dir, self.subsai_dir, self.conf_dir)

    @property
    def lock_path(self) -> Path:
        return self.root / ".lock"

def layout_for(cache_key: str, cache_dir: Union[str, Path] = "cache") -> CacheLayout:
    """Derive the cache layout for a key

    Args:
        cache_key: Hex digest returned by identify()
        cache_dir: Top-level cache directory

    Returns:
        CacheLayout with one directory per stage
    """
    if not _KEY_PATTERN.match(cache_key or ""):
        raise ValueError(f"Invalid cache key: {cache_key!r}")

    root = Path(cache_dir) / cache_key
    return CacheLayout(key=cache_key, root=root, **{f"{stage}_dir": root / stage for stage in STAGES})

def ensure_created(layout: CacheLayout) -> None:
    """Create every stage directory of a layout (no-op when present)"""
    for directory in layout.directories:
        try:
            directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {directory}: {e}") from e

@contextlib.contextmanager
def cache_lock(layout: CacheLayout) -> Iterator[FileLock]:
    """Hold an exclusive lock on a cache partition

    Concurrent runs on identical content wait here instead of writing into
    the same stage directories. The lock is released when the block exits,
    including on error.
    """
    try:
        layout.root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise CacheError(f"Cannot create cache directory {layout.root}: {e}") from e

    lock = FileLock(str(layout.lock_path))
    try:
        lock.acquire(timeout=0)
    except Timeout:
        console.print(f"[yellow]Cache {layout.key} is in use by another run, waiting...[/yellow]")
        lock.acquire()
    try:
        yield lock
    finally:
        lock.release()

@dataclass(frozen=True)
class PipelineArtifacts:
    """Fixed paths of the files each stage produces"""
    vocals: Path
    subtitles: Path
    merged: Path
    run_config: Path

def artifacts_for(layout: CacheLayout, descriptor: MediaDescriptor) -> PipelineArtifacts:
    """Compute artifact paths from the cache layout and the input name"""
    merged_name = f"{descriptor.basename}_with_subs"
    if descriptor.extension:
        merged_name += f".{descriptor.extension}"

    return PipelineArtifacts(
        vocals=layout.spleeter_dir / descriptor.basename / "vocals.wav",
        subtitles=layout.subsai_dir / "vocals.srt",
        merged=layout.ffmpeg_dir / merged_name,
        run_config=layout.conf_dir / "run.json",
    )
