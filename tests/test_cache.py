"""
Unit tests for the content-addressed cache.
"""
import hashlib
import threading
from pathlib import Path
from unittest.mock import patch

import pytest
from filelock import FileLock

from vocal_subtitles.cache import (
    CHUNK_SIZE,
    STAGES,
    artifacts_for,
    cache_lock,
    ensure_created,
    identify,
    layout_for,
)
from vocal_subtitles.errors import CacheError
from vocal_subtitles.media import MediaDescriptor, SubtitleMode

KEY = "da39a3ee5e6b4b0d3255bfef95601890afd80709"


class TestIdentify:
    """Tests for the content hash used as cache key."""

    def test_same_content_different_names(self, tmp_path: Path):
        first = tmp_path / "song.mp3"
        second = tmp_path / "nested" / "renamed.wav"
        second.parent.mkdir()
        first.write_bytes(b"identical bytes")
        second.write_bytes(b"identical bytes")

        assert identify(first) == identify(second)

    def test_repeated_calls_are_stable(self, tmp_path: Path):
        path = tmp_path / "clip.mkv"
        path.write_bytes(b"some content")

        assert identify(path) == identify(path)

    def test_different_content_different_key(self, tmp_path: Path):
        first = tmp_path / "a.mp3"
        second = tmp_path / "b.mp3"
        first.write_bytes(b"one")
        second.write_bytes(b"two")

        assert identify(first) != identify(second)

    def test_matches_sha1_of_bytes(self, tmp_path: Path):
        content = b"x" * (CHUNK_SIZE * 2 + 17)
        path = tmp_path / "big.bin"
        path.write_bytes(content)

        key = identify(path)

        assert key == hashlib.sha1(content).hexdigest()
        assert len(key) == 40

    def test_empty_file(self, tmp_path: Path):
        path = tmp_path / "empty.mp3"
        path.write_bytes(b"")

        assert identify(path) == KEY

    def test_missing_file_raises_oserror(self, tmp_path: Path):
        with pytest.raises(OSError):
            identify(tmp_path / "missing.mp3")


class TestLayout:
    """Tests for cache layout derivation and creation."""

    def test_layout_is_pure(self, tmp_path: Path):
        assert layout_for(KEY, tmp_path) == layout_for(KEY, tmp_path)

    def test_stage_directories(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path / "cache")

        assert layout.root == tmp_path / "cache" / KEY
        assert [d.name for d in layout.directories] == list(STAGES)
        assert all(d.parent == layout.root for d in layout.directories)
        assert layout.lock_path == layout.root / ".lock"

    def test_default_cache_dir(self):
        assert layout_for(KEY).root == Path("cache") / KEY

    @pytest.mark.parametrize("bad_key", ["", "../etc", "ABCDEF", "not-hex"])
    def test_rejects_invalid_keys(self, bad_key):
        with pytest.raises(ValueError):
            layout_for(bad_key)

    def test_layout_does_not_touch_disk(self, tmp_path: Path):
        layout_for(KEY, tmp_path / "cache")

        assert not (tmp_path / "cache").exists()

    def test_ensure_created_is_idempotent(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path / "cache")

        ensure_created(layout)
        first = sorted(p for p in layout.root.rglob("*"))
        ensure_created(layout)
        second = sorted(p for p in layout.root.rglob("*"))

        assert first == second
        assert all(d.is_dir() for d in layout.directories)

    def test_ensure_created_failure_raises_cache_error(self, tmp_path: Path):
        blocker = tmp_path / "cache"
        blocker.write_text("not a directory")
        layout = layout_for(KEY, blocker)

        with pytest.raises(CacheError):
            ensure_created(layout)


class TestCacheLock:
    """Tests for the per-key exclusive lock."""

    def test_lock_held_inside_block(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path)

        with cache_lock(layout) as lock:
            assert lock.is_locked
            assert layout.lock_path.exists()

    def test_lock_released_after_error(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path)

        with pytest.raises(RuntimeError):
            with cache_lock(layout):
                raise RuntimeError("stage failed")

        other = FileLock(str(layout.lock_path))
        other.acquire(timeout=0)
        assert other.is_locked
        other.release()

    def test_second_run_waits_for_holder(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path)
        layout.root.mkdir(parents=True)
        waiting = threading.Event()
        entered = threading.Event()
        messages = []

        def _print(message, *args, **kwargs):
            messages.append(message)
            waiting.set()

        def _second_run():
            with cache_lock(layout):
                entered.set()

        holder = FileLock(str(layout.lock_path))
        holder.acquire()
        with patch("vocal_subtitles.cache.console") as console:
            console.print.side_effect = _print
            worker = threading.Thread(target=_second_run)
            worker.start()
            try:
                assert waiting.wait(timeout=5)
                assert not entered.is_set()
            finally:
                holder.release()
            worker.join(timeout=5)

        assert not worker.is_alive()
        assert entered.is_set()
        assert "in use by another run" in messages[0]


class TestArtifacts:
    """Tests for predictable artifact paths."""

    def test_paths_follow_layout_and_basename(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path)
        descriptor = MediaDescriptor(
            input_path=Path("clip.mkv"),
            extension="mkv",
            basename="clip",
            is_video=True,
            subtitle_mode=SubtitleMode.STREAM_COPY,
        )

        artifacts = artifacts_for(layout, descriptor)

        assert artifacts.vocals == layout.spleeter_dir / "clip" / "vocals.wav"
        assert artifacts.subtitles == layout.subsai_dir / "vocals.srt"
        assert artifacts.merged == layout.ffmpeg_dir / "clip_with_subs.mkv"
        assert artifacts.run_config == layout.conf_dir / "run.json"

    def test_extensionless_input(self, tmp_path: Path):
        layout = layout_for(KEY, tmp_path)
        descriptor = MediaDescriptor(
            input_path=Path("recording"),
            extension="",
            basename="recording",
            is_video=True,
            subtitle_mode=SubtitleMode.EMBED_TEXT,
        )

        assert artifacts_for(layout, descriptor).merged.name == "recording_with_subs"
