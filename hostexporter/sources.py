"""Raw text sources used by readers.

Every reader gets its input through a ``TextSource``. Production code reads
pseudo-files and runs external utilities; tests substitute ``StaticSource``
fixtures.
"""
import subprocess
from abc import ABC, abstractmethod
from typing import List, Optional

from hostexporter.errors import SourceUnavailable


class TextSource(ABC):
    """Produces the raw text of one data source."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable origin, used in log messages."""
        ...

    @abstractmethod
    def read_text(self) -> str:
        """Return the full text or raise SourceUnavailable."""
        ...


class FileSource(TextSource):
    """A fixed-path pseudo-file such as /proc/loadavg."""

    def __init__(self, path: str):
        self.path = path

    @property
    def description(self) -> str:
        return self.path

    def read_text(self) -> str:
        try:
            with open(self.path, "r") as f:
                return f.read()
        except OSError as e:
            raise SourceUnavailable(self.path, f"cannot read file: {e}") from e


class CommandSource(TextSource):
    """Output of an external utility such as ``df -k``."""

    def __init__(self, args: List[str], timeout: Optional[float] = None):
        if not args:
            raise ValueError("Command must have at least one argument")
        self.args = list(args)
        self.timeout = timeout

    @property
    def description(self) -> str:
        return " ".join(self.args)

    def read_text(self) -> str:
        try:
            result = subprocess.run(
                self.args,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise SourceUnavailable(
                self.description, f"timed out after {self.timeout}s"
            ) from e
        except OSError as e:
            raise SourceUnavailable(self.description, f"cannot execute: {e}") from e

        if result.returncode != 0:
            stderr = result.stderr.strip()
            raise SourceUnavailable(
                self.description,
                f"exited with status {result.returncode}: {stderr}",
            )
        return result.stdout


class StaticSource(TextSource):
    """Fixed text, or a fixed failure when ``text`` is None."""

    def __init__(self, text: Optional[str], name: str = "static"):
        self.text = text
        self.name = name

    @property
    def description(self) -> str:
        return self.name

    def read_text(self) -> str:
        if self.text is None:
            raise SourceUnavailable(self.name, "no data")
        return self.text
