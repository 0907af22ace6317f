"""Structured build events and the sinks that consume them.

Stages never print build-log lines themselves. They emit BuildEvent values
into a BuildEventSink, and the sink decides how the host build system wants
to see them. DirectiveSink renders the cargo-style line protocol:

    bpfbuild:clang=clang 17.0.6 x86_64
    cargo:warning=main.bpf.c:12:5: warning: unused variable 'x'
    cargo:rerun-if-env-changed=BPF_CFLAGS
    cargo:rerun-if-changed=src/bpf/main.bpf.c
"""

import sys
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Optional, Protocol, TextIO, runtime_checkable


class EventKind(Enum):
    """Kind of a build event."""

    INFO = "info"
    WARNING = "warning"
    RERUN_IF_CHANGED = "rerun-if-changed"
    RERUN_IF_ENV_CHANGED = "rerun-if-env-changed"


@dataclass(frozen=True)
class BuildEvent:
    """A single build event.

    Attributes:
        kind: What the event means to the host build system
        value: Payload (warning text, path, variable name or info value)
        key: Info key (only meaningful for INFO events)
    """

    kind: EventKind
    value: str
    key: str = ""

    @classmethod
    def info(cls, key: str, value: str) -> "BuildEvent":
        return cls(EventKind.INFO, value, key)

    @classmethod
    def warning(cls, text: str) -> "BuildEvent":
        return cls(EventKind.WARNING, text)

    @classmethod
    def rerun_if_changed(cls, path: str) -> "BuildEvent":
        return cls(EventKind.RERUN_IF_CHANGED, path)

    @classmethod
    def rerun_if_env_changed(cls, name: str) -> "BuildEvent":
        return cls(EventKind.RERUN_IF_ENV_CHANGED, name)


@runtime_checkable
class BuildEventSink(Protocol):
    """Protocol for receiving build events from the pipeline stages."""

    def emit(self, event: BuildEvent) -> None:
        """Deliver one event. I/O errors must propagate."""
        ...


class DirectiveSink:
    """Writes events as `key=value` directive lines for the host build system.

    Args:
        stream: Output stream (defaults to sys.stdout at emit time)
        directive_prefix: Prefix for directives the host acts on
        info_prefix: Prefix for diagnostic info lines
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        directive_prefix: str = "cargo:",
        info_prefix: str = "bpfbuild:",
    ) -> None:
        self._stream = stream
        self.directive_prefix = directive_prefix
        self.info_prefix = info_prefix

    def format(self, event: BuildEvent) -> str:
        """Render an event as a single protocol line (without newline)."""
        if event.kind is EventKind.INFO:
            return f"{self.info_prefix}{event.key}={event.value}"
        return f"{self.directive_prefix}{event.kind.value}={event.value}"

    def emit(self, event: BuildEvent) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(self.format(event) + "\n")
        stream.flush()


class RecordingSink:
    """Sink that keeps every event in memory.

    Used by the CLI to summarize a build and by tests to inspect what a
    stage emitted.
    """

    def __init__(self) -> None:
        self.events: list[BuildEvent] = []

    def emit(self, event: BuildEvent) -> None:
        self.events.append(event)

    def values(self, kind: EventKind) -> list[str]:
        """Return the payloads of all recorded events of the given kind."""
        return [event.value for event in self.events if event.kind is kind]


class TeeSink:
    """Fans every event out to several sinks in order."""

    def __init__(self, sinks: Iterable[BuildEventSink]) -> None:
        self.sinks = list(sinks)

    def emit(self, event: BuildEvent) -> None:
        for sink in self.sinks:
            sink.emit(event)


def forward_diagnostics(sink: BuildEventSink, text: Optional[str]) -> int:
    """Forward each non-empty line of tool diagnostics as a warning event.

    Args:
        sink: Event sink
        text: Captured stderr of an external tool

    Returns:
        Number of lines forwarded
    """
    count = 0
    for line in (text or "").splitlines():
        if line.strip():
            sink.emit(BuildEvent.warning(line))
            count += 1
    return count
