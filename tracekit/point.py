"""Tracepoints, their common entry header and registered callbacks."""

from __future__ import annotations

import struct
import threading
from dataclasses import dataclass
from typing import Any, Callable, ClassVar, Iterator

FormatFunc = Callable[[bytes], str]
PrintFunc = Callable[[], str]
RawCallback = Callable[[bytes], None]


@dataclass
class TraceEntry:
    """Common header written in front of every trace record."""

    type_: int
    flags: int = 0
    preempt_count: int = 0
    pid: int = 0

    _STRUCT: ClassVar[struct.Struct] = struct.Struct("<HBBi")
    SIZE: ClassVar[int] = _STRUCT.size

    def trace_print_lat_fmt(self) -> str:
        """Return the latency and preemption state as five characters."""
        irqs_off = "."
        resched = "."
        hardsoft_irq = "."
        low = self.preempt_count & 0xF
        high = (self.preempt_count & 0xFF) >> 4
        preempt_low = chr(ord("0") + low) if low else "."
        preempt_high = chr(ord("0") + high) if high else "."
        return f"{irqs_off}{resched}{hardsoft_irq}{preempt_low}{preempt_high}"

    def pack(self) -> bytes:
        """Encode the header in its binary layout."""
        return self._STRUCT.pack(
            self.type_ & 0xFFFF, self.flags & 0xFF, self.preempt_count & 0xFF, self.pid
        )

    @classmethod
    def unpack(cls, data: bytes) -> "TraceEntry":
        """Decode a header from the start of ``data``."""
        if len(data) < cls.SIZE:
            raise ValueError(
                f"trace entry needs {cls.SIZE} bytes, got {len(data)}"
            )
        type_, flags, preempt_count, pid = cls._STRUCT.unpack_from(data)
        return cls(type_=type_, flags=flags, preempt_count=preempt_count, pid=pid)


@dataclass
class TracePointFunc:
    """A probe function registered on a tracepoint, with its private data."""

    func: Callable[..., Any]
    data: Any


@dataclass
class CommonTracePointMeta:
    """Pairs a tracepoint with the default probe that records its events."""

    trace_point: "TracePoint"
    print_func: Callable[..., Any]


class TracePoint:
    """A named tracepoint belonging to a subsystem."""

    def __init__(
        self,
        name: str,
        system: str,
        fmt_func: FormatFunc,
        print_func: PrintFunc,
        flags: int = 0,
    ) -> None:
        self._name = name
        self._system = system
        self._fmt_func = fmt_func
        self._print_func = print_func
        self._flags = flags
        self._id = 0
        self._enabled = False
        self._lock = threading.Lock()
        self._callbacks: dict[Callable[..., Any], TracePointFunc] = {}
        self._raw_callbacks: dict[int, RawCallback] = {}

    def __repr__(self) -> str:
        return (
            f"TracePoint(name={self._name!r}, system={self._system!r}, "
            f"id={self._id}, flags={self._flags})"
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def system(self) -> str:
        return self._system

    @property
    def id(self) -> int:
        return self._id

    @id.setter
    def id(self, value: int) -> None:
        self._id = value & 0xFFFFFFFF

    @property
    def flags(self) -> int:
        return self._flags

    @property
    def is_enabled(self) -> bool:
        return self._enabled

    def print_fmt(self) -> str:
        """Describe the tracepoint's name, id and record layout."""
        return f"name: {self._name}\nID: {self._id}\n{self._print_func()}\n"

    def format_entry(self, buf: bytes) -> str:
        """Render the event-specific part of a record as text."""
        return self._fmt_func(buf)

    def register(self, func: Callable[..., Any], data: Any) -> None:
        """Attach a probe; a probe already attached keeps its original data."""
        with self._lock:
            self._callbacks.setdefault(func, TracePointFunc(func, data))

    def unregister(self, func: Callable[..., Any]) -> None:
        """Detach a probe if it is attached."""
        with self._lock:
            self._callbacks.pop(func, None)

    def callbacks(self) -> list[TracePointFunc]:
        """Return the attached probes."""
        with self._lock:
            return list(self._callbacks.values())

    def register_raw_callback(self, callback_id: int, callback: RawCallback) -> None:
        """Attach a callback that receives every raw record; first one per id wins."""
        with self._lock:
            self._raw_callbacks.setdefault(callback_id, callback)

    def unregister_raw_callback(self, callback_id: int) -> None:
        """Detach the raw callback with the given id."""
        with self._lock:
            self._raw_callbacks.pop(callback_id, None)

    def raw_callbacks(self) -> list[RawCallback]:
        """Return raw callbacks ordered by their ids."""
        with self._lock:
            return [self._raw_callbacks[key] for key in sorted(self._raw_callbacks)]

    def iter_raw_callbacks(self) -> Iterator[RawCallback]:
        return iter(self.raw_callbacks())

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False