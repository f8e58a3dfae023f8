"""
External tool invocation for the separation and transcription stages.
"""
from typing import Dict, List, Union
import shutil
import subprocess
from pathlib import Path

from rich.console import Console

from .errors import ExternalToolError
from .media import SUBTITLE_FORMAT

console = Console()

# Lines of stderr shown when a tool fails
STDERR_TAIL = 20

def run_tool(cmd: List[str], tool: str) -> subprocess.CompletedProcess:
    """Run an external tool to completion

    Blocks until the process exits; no timeout is applied.

    Args:
        cmd: Command line, executable first
        tool: Name used in messages and errors

    Returns:
        The completed process

    Raises:
        ExternalToolError: the tool is missing or exited non-zero
    """
    try:
        return subprocess.run(
            cmd,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            encoding="utf-8",
            errors="replace",
            check=True,
        )
    except FileNotFoundError as e:
        console.print(f"[red]✗ {cmd[0]} not found on PATH[/red]")
        raise ExternalToolError(tool, f"{cmd[0]} not found on PATH", returncode=127) from e
    except subprocess.CalledProcessError as e:
        stderr = (e.stderr or "").strip()
        console.print(f"[red]✗ {tool} failed with exit code {e.returncode}[/red]")
        if stderr:
            console.print(f"[dim]{_tail(stderr)}[/dim]")
        raise ExternalToolError(tool, f"exited with code {e.returncode}", returncode=e.returncode, stderr=stderr) from e

def _tail(text: str, lines: int = STDERR_TAIL) -> str:
    return "\n".join(text.splitlines()[-lines:])

def separate_vocals(
    input_path: Union[str, Path],
    output_dir: Union[str, Path],
    spleeter_cmd: str = "spleeter",
) -> Path:
    """Isolate the vocal track of a media file with Spleeter

    Args:
        input_path: Path to the input media file
        output_dir: Directory Spleeter writes its stems into

    Returns:
        Path to the isolated vocals WAV (<output_dir>/<basename>/vocals.wav)
    """
    input_path = Path(input_path)
    output_dir = Path(output_dir)

    run_tool([spleeter_cmd, "separate", str(input_path), "-o", str(output_dir)], "spleeter")
    return output_dir / input_path.stem / "vocals.wav"

def transcribe_vocals(
    audio_path: Union[str, Path],
    model: str,
    output_dir: Union[str, Path],
    subtitle_format: str = SUBTITLE_FORMAT,
    subsai_cmd: str = "subsai",
) -> Path:
    """Transcribe an audio file to a subtitle file with SubsAI

    Args:
        audio_path: Path to the audio file (usually the isolated vocals)
        model: SubsAI model identifier, e.g. "openai/whisper"
        output_dir: Directory SubsAI writes the subtitle file into
        subtitle_format: Subtitle format extension

    Returns:
        Path to the subtitle file (<output_dir>/<audio stem>.<format>)
    """
    audio_path = Path(audio_path)
    output_dir = Path(output_dir)

    cmd = [
        subsai_cmd,
        str(audio_path),
        "-m", model,
        "-f", subtitle_format,
        "-df", str(output_dir),
    ]
    run_tool(cmd, "subsai")
    return output_dir / f"{audio_path.stem}.{subtitle_format}"

def check_tool_available(cmd: str) -> bool:
    """Check if an executable is available on the system"""
    return shutil.which(cmd) is not None

def check_tools(commands: Dict[str, str]) -> Dict[str, bool]:
    """Check availability of each named executable

    Args:
        commands: Tool name -> executable

    Returns:
        Tool name -> whether it was found
    """
    return {name: check_tool_available(cmd) for name, cmd in commands.items()}
