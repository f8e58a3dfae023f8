"""
Exception hierarchy for the vocal subtitles pipeline.
"""
from typing import Optional

class PipelineError(Exception):
    """Base error for the vocal subtitles pipeline."""

    exit_code = 1

class UsageError(PipelineError, ValueError):
    """Raised when the command line is missing its input argument."""

class InputNotFoundError(PipelineError, FileNotFoundError):
    """Raised when the input media file does not exist."""

    def __init__(self, path):
        self.path = path
        super().__init__(f"Input file '{path}' not found.")

class ExternalToolError(PipelineError, RuntimeError):
    """Raised when an external collaborator fails or cannot be started."""

    def __init__(
        self,
        tool: str,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
    ):
        self.tool = tool
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(f"{tool}: {message}")

    @property
    def exit_code(self) -> int:
        if self.returncode and 0 < self.returncode < 256:
            return self.returncode
        return 1

class ProbeError(ExternalToolError):
    """Raised when media probing fails and strict probing is enabled."""

class CacheError(PipelineError, OSError):
    """Raised when cache or output files cannot be created, copied or moved."""

class UnsupportedMediaError(PipelineError, ValueError):
    """Raised when the input cannot be handled by the merge stage."""
