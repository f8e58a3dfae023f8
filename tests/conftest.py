"""
Shared fixtures: fake external tools so no spleeter, subsai or ffmpeg
installation is needed to exercise the pipeline.
"""
import subprocess
from pathlib import Path
from typing import List
from unittest.mock import patch

import ffmpeg
import pytest

SRT_TEXT = "1\n00:00:01,000 --> 00:00:03,500\nla la la\n\n"

VIDEO_SUFFIXES = {".mp4", ".m4v", ".mov", ".mkv", ".webm", ".avi"}


class FakeTools:
    """Stands in for the external processes and records how they were called"""

    def __init__(self):
        self.commands: List[List[str]] = []
        self.ffmpeg_args: List[List[str]] = []
        self.probed: List[str] = []
        self.fail_tool = None
        self.fail_returncode = 1
        self.probe_fails = False
        self.produce_outputs = True
        self.force_video = False

    def tools_called(self) -> List[str]:
        return [Path(cmd[0]).name for cmd in self.commands]

    def run(self, cmd, **kwargs):
        self.commands.append(list(cmd))
        tool = Path(cmd[0]).name
        if tool == self.fail_tool:
            raise subprocess.CalledProcessError(self.fail_returncode, cmd, output="", stderr=f"{tool} exploded")
        if not self.produce_outputs:
            return subprocess.CompletedProcess(cmd, 0, "", "")

        if tool == "spleeter":
            input_path, output_dir = Path(cmd[2]), Path(cmd[4])
            vocals = output_dir / input_path.stem / "vocals.wav"
            vocals.parent.mkdir(parents=True, exist_ok=True)
            vocals.write_bytes(b"RIFF-vocals")
        elif tool == "subsai":
            audio = Path(cmd[1])
            output_dir = Path(cmd[cmd.index("-df") + 1])
            (output_dir / f"{audio.stem}.srt").write_text(SRT_TEXT, encoding="utf-8")
        return subprocess.CompletedProcess(cmd, 0, "", "")

    def probe(self, filename, cmd="ffprobe", **kwargs):
        self.probed.append(filename)
        if self.probe_fails:
            raise ffmpeg.Error(cmd, b"", b"Invalid data found when processing input")
        if self.force_video or Path(filename).suffix.lower() in VIDEO_SUFFIXES:
            return {"streams": [{"index": 0, "codec_type": "video", "disposition": {"attached_pic": 0}}]}
        return {"streams": []}

    def ffmpeg_run(self, stream, cmd="ffmpeg", **kwargs):
        args = ffmpeg.get_args(stream)
        self.ffmpeg_args.append(args)
        if self.fail_tool == "ffmpeg":
            raise ffmpeg.Error("ffmpeg", b"", b"Invalid data found when processing input")
        Path(args[-1]).write_bytes(b"merged-media")
        return b"", b""


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    """Run each test from an empty directory so cache/ and output/ stay isolated"""
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def fake_tools():
    tools = FakeTools()
    with patch("subprocess.run", side_effect=tools.run), \
            patch("ffmpeg.probe", side_effect=tools.probe), \
            patch("ffmpeg.run", side_effect=tools.ffmpeg_run):
        yield tools


@pytest.fixture
def make_media(workdir: Path):
    """Create a small media file with the given name and content"""
    def _make(name: str, content: bytes = b"\x00\x01fake-media-bytes") -> Path:
        path = workdir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        return path
    return _make
