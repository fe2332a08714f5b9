"""Trace record buffers, the command-line cache and record rendering."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterable, Iterator, Mapping

from .point import TraceEntry, TracePoint

_CMDLINE_LEN = 16

_HEADER_BODY = """#
#
#                                _-----=> irqs-off/BH-disabled
#                               / _----=> need-resched
#                              | / _---=> hardirq/softirq
#                              || / _--=> preempt-depth
#                              ||| / _-=> migrate-disable
#                              |||| /     delay
#           TASK-PID     CPU#  |||||  TIMESTAMP  FUNCTION
#              | |         |   |||||     |         |
"""


class KernelTraceOps(ABC):
    """Environment services the tracing machinery depends on."""

    @abstractmethod
    def time_now(self) -> int:
        """Return the current time in nanoseconds."""

    @abstractmethod
    def cpu_id(self) -> int:
        """Return the current CPU number."""

    @abstractmethod
    def current_pid(self) -> int:
        """Return the current process id."""

    @abstractmethod
    def trace_pipe_push_raw_record(self, buf: bytes) -> None:
        """Store a raw record in the trace pipe."""

    @abstractmethod
    def trace_cmdline_push(self, pid: int) -> None:
        """Remember the process name for ``pid``."""


class TracePipeRaw:
    """Bounded buffer of raw trace records."""

    def __init__(self, max_record: int) -> None:
        self._events: list[bytes] = []
        self._max_record = max_record

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._events)

    @property
    def max_record(self) -> int:
        return self._max_record

    @max_record.setter
    def max_record(self, value: int) -> None:
        self._max_record = value
        del self._events[value:]

    def push_event(self, event: bytes) -> None:
        """Append a record, dropping the oldest one when full."""
        if len(self._events) >= self._max_record and self._events:
            self._events.pop(0)
        self._events.append(bytes(event))

    def clear(self) -> None:
        self._events.clear()

    def snapshot(self) -> "TracePipeSnapshot":
        """Return an independent copy of the current records."""
        return TracePipeSnapshot(self._events)

    def peek(self) -> bytes | None:
        """Return the oldest record without removing it."""
        return self._events[0] if self._events else None

    def pop(self) -> bytes | None:
        """Remove and return the oldest record."""
        return self._events.pop(0) if self._events else None

    def is_empty(self) -> bool:
        return not self._events


class TracePipeSnapshot:
    """A copy of a trace pipe's records at one moment."""

    def __init__(self, events: Iterable[bytes] = ()) -> None:
        self._events: list[bytes] = list(events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[bytes]:
        return iter(self._events)

    def default_fmt_str(self) -> str:
        """Return the header printed above the rendered records."""
        count = len(self._events)
        return (
            f"# tracer: nop\n#\n# entries-in-buffer/entries-written: "
            f"{count}/{count}   #P:32\n{_HEADER_BODY}"
        )

    def peek(self) -> bytes | None:
        """Return the oldest record without removing it."""
        return self._events[0] if self._events else None

    def pop(self) -> bytes | None:
        """Remove and return the oldest record."""
        return self._events.pop(0) if self._events else None

    def is_empty(self) -> bool:
        return not self._events


class TraceCmdLineCache:
    """Bounded map from process id to a 16-byte process name."""

    def __init__(self, max_record: int) -> None:
        self._entries: list[tuple[int, bytes]] = []
        self._max_record = max_record

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def max_record(self) -> int:
        return self._max_record

    @max_record.setter
    def max_record(self, value: int) -> None:
        self._max_record = value
        del self._entries[value:]

    def insert(self, pid: int, cmdline: str) -> None:
        """Record a name for ``pid``, truncated to 16 bytes; evicts the oldest when full."""
        if len(self._entries) >= self._max_record and self._entries:
            self._entries.pop(0)
        raw = cmdline.encode("utf-8")[:_CMDLINE_LEN].ljust(_CMDLINE_LEN, b"\0")
        self._entries.append((pid, raw))

    def get(self, pid: int) -> str | None:
        """Return the first name recorded for ``pid``."""
        for key, raw in self._entries:
            if key == pid:
                return raw.decode("utf-8").rstrip("\0")
        return None


def parse_trace_entry(
    tracepoint_map: Mapping[int, TracePoint],
    cmdline_cache: TraceCmdLineCache,
    entry: bytes,
    kops: KernelTraceOps,
) -> str:
    """Render one raw record as a trace pipe line."""
    header = TraceEntry.unpack(entry)
    try:
        tracepoint = tracepoint_map[header.type_]
    except KeyError:
        raise KeyError(f"TracePoint not found: {header.type_}") from None
    body = tracepoint.format_entry(bytes(entry[TraceEntry.SIZE:]))

    time = kops.time_now()
    cpu = kops.cpu_id()
    pname = cmdline_cache.get(header.pid & 0xFFFFFFFF) or "<...>"
    secs = time // 1_000_000_000
    usec_rem = time % 1_000_000_000 // 1000

    return (
        f"{pname:>16}-{header.pid:<7} [{cpu:03}] {header.trace_print_lat_fmt()} "
        f"{secs:5}.{usec_rem:06}: {tracepoint.name}({body})\n"
    )