"""
Argora logger: every byte argora (and commands built on it) prints.

Streams
- log / info / debug  -> stdout
- warn / error        -> stderr
- out                 -> stdout, raw (no markup, no wrapping) for machine-readable
                         output such as completion candidates and scripts.

Colour
- colors_enabled() follows the usual conventions: NO_COLOR disables, FORCE_COLOR=0
  disables, any other FORCE_COLOR enables, CI disables, a non-tty stdout disables.

Capture
- capture() collects LogEntry records for everything emitted while it is active;
  output still reaches the terminal unless passthrough=False.
"""
import contextlib
import io
import os
import sys
from collections import namedtuple
from datetime import datetime

from rich.console import Console
from rich.text import Text

from .utils import Unset, coalesce

STREAMS = {
    "log": "stdout",
    "info": "stdout",
    "debug": "stdout",
    "warn": "stderr",
    "error": "stderr",
}


class LogEntry(namedtuple("LogEntry", ("message", "level", "stream", "timestamp"))):
    """One captured emission: plain text, level name, stream name, datetime."""
    __slots__ = ()


class CollectedLogs:
    """
    Entries captured during a run, in emission order.
    """

    def __init__(self, entries=()):
        self.entries = list(entries)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self):
        return len(self.entries)

    def __repr__(self):
        return f"collected-logs({len(self.entries)} entries)"

    @property
    def stdout(self):
        return "\n".join(entry.message for entry in self.entries if entry.stream == "stdout")

    @property
    def stderr(self):
        return "\n".join(entry.message for entry in self.entries if entry.stream == "stderr")

    def extend(self, other, /):
        self.entries.extend(other)
        self.entries.sort(key=lambda entry: entry.timestamp)
        return self


def colors_enabled(stream=None):
    """
    Whether colour output should be produced on `stream` (stdout by default).
    """
    if "NO_COLOR" in os.environ:
        return False
    if os.environ.get("FORCE_COLOR") == "0":
        return False
    if os.environ.get("FORCE_COLOR"):
        return True
    if os.environ.get("CI"):
        return False
    stream = stream or sys.stdout
    try:
        return stream.isatty()
    except (AttributeError, ValueError):
        return False


class Logger:
    """
    Level-aware writer over two rich consoles.

    Attributes
    - stdout / stderr: the rich Console objects (they follow sys.stdout/sys.stderr
      at write time, so redirections made after import are honoured).
    - debugging: when False, debug() is silent.
    """

    def __init__(self, *, debugging=False):
        self.stdout = Console(highlight=False)
        self.stderr = Console(stderr=True, highlight=False)
        self.debugging = debugging
        self._collectors = []

    def _emit(self, level, objects, style=None):
        console = self.stderr if STREAMS[level] == "stderr" else self.stdout
        passthrough = all(passthrough for _, passthrough in self._collectors)
        if passthrough:
            console.print(*objects, style=style)
        if self._collectors:
            scratch = Console(file=io.StringIO(), width=console.width, color_system=None, highlight=False)
            scratch.print(*objects)
            entry = LogEntry(scratch.file.getvalue().rstrip("\n"), level, STREAMS[level], datetime.now())
            for collected, _ in self._collectors:
                collected.entries.append(entry)

    def log(self, *objects):
        self._emit("log", objects)

    def info(self, *objects):
        self._emit("info", objects)

    def debug(self, *objects):
        if self.debugging:
            self._emit("debug", objects, style="dim")

    def warn(self, *objects):
        self._emit("warn", objects)

    def error(self, *objects):
        self._emit("error", objects)

    def newline(self):
        self._emit("log", ("",))

    def out(self, text, /):
        """
        Write raw text to stdout: no markup, no highlighting, no wrapping.
        """
        if all(passthrough for _, passthrough in self._collectors):
            self.stdout.file.write(text if text.endswith("\n") else text + "\n")
            self.stdout.file.flush()
        if self._collectors:
            entry = LogEntry(text.rstrip("\n"), "log", "stdout", datetime.now())
            for collected, _ in self._collectors:
                collected.entries.append(entry)

    def plain(self, renderable, /, width=Unset):
        """
        Render anything rich can print to plain text (no colour codes).
        """
        scratch = Console(
            file=io.StringIO(),
            width=coalesce(width, self.stdout.width),
            color_system=None,
            highlight=False,
        )
        scratch.print(renderable)
        return Text.from_ansi(scratch.file.getvalue()).plain

    @contextlib.contextmanager
    def capture(self, *, passthrough=True):
        """
        Collect every emission made while the block runs.

        Usage
            with logger.capture() as logs:
                logger.info("hello")
            logs.entries[0].message == "hello"
        """
        collected = CollectedLogs()
        token = (collected, passthrough)
        self._collectors.append(token)
        try:
            yield collected
        finally:
            self._collectors.remove(token)

    @contextlib.contextmanager
    def debugging_as(self, enabled, /):
        previous, self.debugging = self.debugging, bool(enabled)
        try:
            yield self
        finally:
            self.debugging = previous


logger = Logger()
"""Process-wide logger shared by the runner, faults and completion commands."""


__all__ = (
    "LogEntry",
    "CollectedLogs",
    "Logger",
    "logger",
    "colors_enabled",
)
