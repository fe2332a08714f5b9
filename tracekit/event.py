"""Declarative trace events: record layout, probes and formatting."""

from __future__ import annotations

import re
import struct
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, Callable, Iterable, Iterator, Mapping, Sequence, Union

from .point import CommonTracePointMeta, TraceEntry, TracePoint
from .trace_pipe import KernelTraceOps

_SCALARS: dict[str, str] = {
    "u8": "B",
    "i8": "b",
    "u16": "H",
    "i16": "h",
    "u32": "I",
    "i32": "i",
    "u64": "Q",
    "i64": "q",
    "usize": "Q",
    "isize": "q",
    "f32": "f",
    "f64": "d",
    "bool": "?",
}
_SIGNED = frozenset({"i8", "i16", "i32", "i64", "isize"})
_ARRAY_RE = re.compile(r"^\[\s*([A-Za-z_]\w*)\s*;\s*(\d+)\s*\]$")
_HEADER_ALIGN = 4

_FORMAT_HEADER = (
    "format:\n"
    "\tfield: u16 common_type; offset: 0; size: 2; signed: 0;\n"
    "\tfield: u8 common_flags; offset: 2; size: 1; signed: 0;\n"
    "\tfield: u8 common_preempt_count; offset: 3; size: 1; signed: 0;\n"
    "\tfield: i32 common_pid; offset: 4; size: 4; signed: 1;\n"
    "\n"
)


def _align_up(value: int, align: int) -> int:
    return (value + align - 1) // align * align


@dataclass(frozen=True)
class Field:
    """One field of an event record, such as ``u32`` or ``[u8; 5]``."""

    name: str
    type_name: str
    element: str = field(init=False)
    count: int | None = field(init=False)

    def __post_init__(self) -> None:
        text = self.type_name.strip()
        match = _ARRAY_RE.match(text)
        if match:
            element, count = match.group(1), int(match.group(2))
        else:
            element, count = text, None
        if element not in _SCALARS:
            raise ValueError(f"unsupported field type: {self.type_name!r}")
        object.__setattr__(self, "element", element)
        object.__setattr__(self, "count", count)

    @property
    def struct_format(self) -> str:
        prefix = "" if self.count is None else str(self.count)
        return f"<{prefix}{_SCALARS[self.element]}"

    @property
    def size(self) -> int:
        return struct.calcsize(self.struct_format)

    @property
    def align(self) -> int:
        return struct.calcsize(f"<{_SCALARS[self.element]}")

    @property
    def signed(self) -> bool:
        return self.count is None and self.element in _SIGNED

    @property
    def display_type(self) -> str:
        if self.count is None:
            return self.element
        return f"[{self.element}; {self.count}]"


class TracePointRegistry:
    """Collection of tracepoint metadata awaiting initialisation."""

    def __init__(self) -> None:
        self._metas: list[CommonTracePointMeta] = []

    def add(self, meta: CommonTracePointMeta) -> None:
        """Record a tracepoint's metadata."""
        self._metas.append(meta)

    def __iter__(self) -> Iterator[CommonTracePointMeta]:
        return iter(list(self._metas))

    def __len__(self) -> int:
        return len(self._metas)


DEFAULT_REGISTRY = TracePointRegistry()

FieldSpec = Union[Field, tuple]


class EventTrace:
    """A defined trace event; calling it fires the tracepoint's probes."""

    def __init__(
        self,
        name: str,
        system: str,
        kops: KernelTraceOps,
        proto: Sequence[str],
        fields: Iterable[FieldSpec],
        assign: Callable[..., Mapping[str, Any]],
        printk: Callable[[SimpleNamespace], Any],
        printk_source: str = "",
    ) -> None:
        self._proto = tuple(proto)
        if not self._proto:
            raise ValueError("an event needs at least one argument")
        self._fields = tuple(
            spec if isinstance(spec, Field) else Field(*spec) for spec in fields
        )
        if not self._fields:
            raise ValueError("an event needs at least one field")
        names = [f.name for f in self._fields]
        if len(set(names)) != len(names):
            raise ValueError("field names must be unique")
        self._kops = kops
        self._assign = assign
        self._printk = printk
        self._printk_source = printk_source

        offsets = []
        pos = 0
        align = 1
        for fld in self._fields:
            pos = _align_up(pos, fld.align)
            offsets.append(pos)
            pos += fld.size
            align = max(align, fld.align)
        self._offsets = tuple(offsets)
        self._entry_size = _align_up(pos, align)
        self._entry_offset = _align_up(TraceEntry.SIZE, align)
        self._full_size = _align_up(
            self._entry_offset + self._entry_size, max(_HEADER_ALIGN, align)
        )

        self.tracepoint = TracePoint(name, system, self.format_entry, self.show_format)
        self.meta = CommonTracePointMeta(self.tracepoint, self.default_handler)

    @property
    def name(self) -> str:
        return self.tracepoint.name

    @property
    def fields(self) -> tuple[Field, ...]:
        return self._fields

    @property
    def proto(self) -> tuple[str, ...]:
        return self._proto

    def __repr__(self) -> str:
        return f"EventTrace({self.tracepoint.system}:{self.tracepoint.name})"

    def __call__(self, *args: Any) -> None:
        if len(args) != len(self._proto):
            raise TypeError(
                f"{self.name} takes {len(self._proto)} arguments, got {len(args)}"
            )
        if not self.tracepoint.is_enabled:
            return
        for probe in self.tracepoint.callbacks():
            probe.func(probe.data, *args)

    def register(self, func: Callable[..., Any], data: Any = None) -> None:
        """Attach a probe called as ``func(data, *args)``."""
        self.tracepoint.register(func, data)

    def unregister(self, func: Callable[..., Any]) -> None:
        """Detach a probe."""
        self.tracepoint.unregister(func)

    def default_handler(self, data: Any, *args: Any) -> None:
        """Build a raw record from the arguments and push it to the trace pipe."""
        entry = self.pack_entry(self._assign(*args))
        pid = self._kops.current_pid() & 0xFFFFFFFF
        signed_pid = pid - (1 << 32) if pid >= 1 << 31 else pid
        header = TraceEntry(
            type_=self.tracepoint.id & 0xFFFF,
            flags=self.tracepoint.flags,
            preempt_count=0,
            pid=signed_pid,
        )
        record = bytearray(self._full_size)
        head = header.pack()
        record[: len(head)] = head
        record[self._entry_offset : self._entry_offset + len(entry)] = entry
        event_buf = bytes(record)

        for callback in self.tracepoint.raw_callbacks():
            callback(event_buf)

        self._kops.trace_cmdline_push(pid)
        self._kops.trace_pipe_push_raw_record(event_buf)

    def pack_entry(self, values: Mapping[str, Any]) -> bytes:
        """Encode field values in the event's record layout."""
        known = {f.name for f in self._fields}
        extra = set(values) - known
        if extra:
            raise ValueError(f"unknown fields: {sorted(extra)}")
        buf = bytearray(self._entry_size)
        for fld, offset in zip(self._fields, self._offsets):
            if fld.name not in values:
                raise ValueError(f"missing value for field {fld.name!r}")
            value = values[fld.name]
            items = tuple(value) if fld.count is not None else (value,)
            try:
                struct.pack_into(fld.struct_format, buf, offset, *items)
            except struct.error as exc:
                raise ValueError(f"bad value for field {fld.name!r}: {exc}") from None
        return bytes(buf)

    def unpack_entry(self, buf: bytes) -> SimpleNamespace:
        """Decode field values from the event-specific part of a record."""
        if len(buf) < self._entry_size:
            raise ValueError(
                f"event entry needs {self._entry_size} bytes, got {len(buf)}"
            )
        values: dict[str, Any] = {}
        for fld, offset in zip(self._fields, self._offsets):
            items = struct.unpack_from(fld.struct_format, buf, offset)
            values[fld.name] = items[0] if fld.count is None else list(items)
        return SimpleNamespace(**values)

    def format_entry(self, buf: bytes) -> str:
        """Render the event-specific part of a record with the print function."""
        return f"{self._printk(self.unpack_entry(buf))}"

    def show_format(self) -> str:
        """Describe the full record layout and the print expression."""
        lines = [_FORMAT_HEADER]
        for fld, offset in zip(self._fields, self._offsets):
            lines.append(
                f"\tfield: {fld.display_type} {fld.name} "
                f"offset: {self._entry_offset + offset}; size: {fld.size}; "
                f"signed: {1 if fld.signed else 0};\n"
            )
        lines.append(f'\nprint fmt: "{self._printk_source}"')
        return "".join(lines)


def define_event_trace(
    name: str,
    system: str,
    kops: KernelTraceOps,
    proto: Sequence[str],
    fields: Iterable[FieldSpec],
    assign: Callable[..., Mapping[str, Any]],
    printk: Callable[[SimpleNamespace], Any],
    printk_source: str = "",
    registry: TracePointRegistry | None = None,
) -> EventTrace:
    """Define an event and add its tracepoint to ``registry``."""
    event = EventTrace(name, system, kops, proto, fields, assign, printk, printk_source)
    (DEFAULT_REGISTRY if registry is None else registry).add(event.meta)
    return event