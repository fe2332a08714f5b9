"""Example program: two events, enabled through the events tree, rendered as a trace pipe."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from dataclasses import dataclass
from typing import Mapping, Optional, Sequence, TextIO

from .event import TracePointRegistry, define_event_trace
from .events import global_init_events
from .point import TracePoint
from .trace_pipe import (
    KernelTraceOps,
    TraceCmdLineCache,
    TracePipeRaw,
    parse_trace_entry,
)

SYSTEM = "tracepoint_test"
PROCESS_NAME = "test_process"

TRACE_RAW_PIPE = TracePipeRaw(1024)
TRACE_CMDLINE_CACHE = TraceCmdLineCache(128)


class DemoKernelOps(KernelTraceOps):
    """Single-CPU environment whose current process is always pid 1."""

    def __init__(
        self,
        pipe: Optional[TracePipeRaw] = None,
        cmdline_cache: Optional[TraceCmdLineCache] = None,
    ) -> None:
        self.pipe = TracePipeRaw(1024) if pipe is None else pipe
        self.cmdline_cache = (
            TraceCmdLineCache(128) if cmdline_cache is None else cmdline_cache
        )

    def time_now(self) -> int:
        return time.time_ns()

    def cpu_id(self) -> int:
        return 0

    def current_pid(self) -> int:
        return 1

    def trace_pipe_push_raw_record(self, buf: bytes) -> None:
        self.pipe.push_event(bytes(buf))

    def trace_cmdline_push(self, pid: int) -> None:
        self.cmdline_cache.insert(pid, PROCESS_NAME)


KOPS = DemoKernelOps(TRACE_RAW_PIPE, TRACE_CMDLINE_CACHE)
REGISTRY = TracePointRegistry()


@dataclass
class _Sample:
    a: int
    b: int


TEST = define_event_trace(
    "TEST",
    SYSTEM,
    KOPS,
    proto=("a", "b"),
    fields=[("a", "u32"), ("pad", "[u8; 5]"), ("b", "u32")],
    assign=lambda a, b: {"a": a, "pad": [0] * 5, "b": b.b},
    printk=lambda entry: f"Hello from tracepoint! a={entry.a!r}, b={entry.b}",
    printk_source="Hello from tracepoint! a={a!r}, b={b}",
    registry=REGISTRY,
)

TEST2 = define_event_trace(
    "TEST2",
    SYSTEM,
    KOPS,
    proto=("a", "b"),
    fields=[("a", "u32"), ("b", "u32")],
    assign=lambda a, b: {"a": a, "b": b},
    printk=lambda entry: f"Hello from tracepoint! a={entry.a}, b={entry.b}",
    printk_source="Hello from tracepoint! a={a}, b={b}",
    registry=REGISTRY,
)


def test_trace(a: int, b: int) -> None:
    """Fire both demo events with the given values."""
    sample = _Sample(a=a, b=b)
    TEST(a, sample)
    TEST2(a, b)
    print(f"Tracepoint TEST called with a={a}, b={b}")


def print_trace_records(
    tracepoint_map: Mapping[int, TracePoint],
    cmdline_cache: TraceCmdLineCache,
    out: Optional[TextIO] = None,
) -> None:
    """Write the header and every buffered record, leaving the pipe untouched."""
    stream = sys.stdout if out is None else out
    snapshot = TRACE_RAW_PIPE.snapshot()
    stream.write(snapshot.default_fmt_str())
    while (event := snapshot.peek()) is not None:
        stream.write(parse_trace_entry(tracepoint_map, cmdline_cache, event, KOPS))
        snapshot.pop()


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="tracekit-demo",
        description="Trace two example events before and after enabling them.",
    )
    parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    manager = global_init_events(REGISTRY)
    tracepoint_map = manager.tracepoint_map

    print("---Before enabling tracepoints---")
    test_trace(1, 2)
    test_trace(3, 4)
    print_trace_records(tracepoint_map, TRACE_CMDLINE_CACHE)

    print()
    for subsystem_name in manager.subsystem_names():
        subsystem = manager.get_subsystem(subsystem_name)
        for event_name in subsystem.event_names():
            subsystem.get_event(event_name).enable_file.write("1")
            print(f"Enabled tracepoint: {subsystem_name}.{event_name}")

    print("---After enabling tracepoints---")
    test_trace(1, 2)
    test_trace(3, 4)
    print_trace_records(tracepoint_map, TRACE_CMDLINE_CACHE)

    for tracepoint in tracepoint_map.values():
        print(tracepoint.print_fmt())
    return 0


if __name__ == "__main__":
    sys.exit(main())