# tracekit

tracekit lets you define named trace events and group them into subsystems.
An event that is enabled writes a compact binary record each time it fires.
You can later render each record as one ftrace-style text line.

## Modules

### `tracekit.point`

- `TraceEntry` is the 8-byte header at the start of every record. It holds:
  - `type_`, the tracepoint id;
  - `flags`;
  - `preempt_count`;
  - `pid`.

  `pack()` and `TraceEntry.unpack(data)` convert the header to and from
  bytes. `unpack` raises `ValueError` when `data` is too short.
  `trace_print_lat_fmt()` gives the five-character latency column.
- `TracePoint` is a named hook in a subsystem.
  - It starts disabled. `enable()`, `disable()` and `is_enabled` control and
    report its state.
  - `register(func, data)` and `unregister(func)` manage its probes, and
    `callbacks()` lists them. Registering a probe that is already there keeps
    the data it was first given.
  - `register_raw_callback(callback_id, callback)` adds a callback that
    receives every packed record. `raw_callbacks()` returns these callbacks
    in order of id.
  - `print_fmt()` describes the tracepoint's name, id and record layout.
  - `format_entry(buf)` renders the event-specific bytes of a record.
- `TracePointFunc` pairs a probe with its data. `CommonTracePointMeta` pairs a
  tracepoint with its default probe.

### `tracekit.event`

`define_event_trace(name, system, kops, proto, fields, assign, printk, printk_source, registry)`
builds an `EventTrace` and adds its metadata to a `TracePointRegistry`. When
no registry is given, it uses the module's default registry. The arguments
are:

- `proto`: the names of the event's arguments.
- `fields`: the record layout, as `Field` objects or `(name, type)` pairs.
  - The scalar types are `u8`, `i8`, `u16`, `i16`, `u32`, `i32`, `u64`,
    `i64`, `usize`, `isize`, `f32`, `f64` and `bool`.
  - Fixed arrays are written as `[T; N]`.
  - Fields are laid out with natural alignment, after the header.
- `assign`: takes the event's arguments and returns a mapping of field values.
- `printk`: takes the decoded entry, a namespace of fields, and returns its
  text.
- `printk_source`: the text shown after `print fmt:` in the format
  description.

Calling an `EventTrace` with the wrong number of arguments raises
`TypeError`. When its tracepoint is enabled, the call runs every registered
probe as `func(data, *args)`.

`default_handler` is the probe that `global_init_events` installs. It packs a
record and passes it to every raw callback. It then calls
`kops.trace_cmdline_push(pid)` and `kops.trace_pipe_push_raw_record(record)`.

`EventTrace` also offers:

- `pack_entry(values)` and `unpack_entry(buf)`. Both raise `ValueError` on
  missing, unknown or malformed values.
- `format_entry(buf)`.
- `show_format()`.

### `tracekit.trace_pipe`

- `KernelTraceOps` is an abstract base class. It supplies the following, for
  the events and the renderer to use:
  - the time in nanoseconds;
  - the CPU number;
  - the current pid;
  - where records and process names go.
- `TracePipeRaw(max_record)` is a bounded buffer of records. When it is full,
  the oldest record is dropped. Its methods are `push_event`, `peek`, `pop`,
  `is_empty`, `clear` and `snapshot`. Setting `max_record` lower keeps only
  the first records.
- `TracePipeSnapshot` is an independent copy of a buffer, with `peek`, `pop`
  and `is_empty`. `default_fmt_str()` returns the ftrace-style header, which
  includes the entry count.
- `TraceCmdLineCache(max_record)` maps a pid to a process name of at most 16
  bytes. When it is full, the oldest entry is evicted. `get` returns the first
  name recorded for a pid, or `None`.
- `parse_trace_entry(tracepoint_map, cmdline_cache, entry, kops)` renders one
  record as a line. It raises `KeyError` for an unknown tracepoint id. When
  no name is cached for the pid, the line shows `<...>`.

### `tracekit.events`

`global_init_events(registry)` works through the tracepoints of a registry,
sorted by name and then by system. For each tracepoint it:

- assigns an id from a process-wide counter;
- installs the default probe;
- groups the tracepoint by subsystem.

It returns a `TracingEventsManager`. Because the counter is process-wide, ids
keep counting across calls.

The manager offers the following:

- `tracepoint_map`: a dict from id to tracepoint.
- `get_subsystem`, `remove_subsystem` and `subsystem_names`.
- Each `EventsSubsystem` has `get_event` and `event_names`.

Each `EventInfo` carries its `tracepoint` and three small file-like objects:

| Attribute | Class | `read()` returns | `write()` |
| --- | --- | --- | --- |
| `enable_file` | `TracePointEnableFile` | `"1\n"` or `"0\n"` | `"1"` enables, `"0"` disables, anything else logs a warning |
| `format_file` | `TracePointFormatFile` | the tracepoint's `print_fmt()` | — |
| `id_file` | `TracePointIdFile` | the id followed by a newline | — |

## Example

```python
from tracekit.event import TracePointRegistry, define_event_trace
from tracekit.events import global_init_events
from tracekit.trace_pipe import (
    KernelTraceOps, TraceCmdLineCache, TracePipeRaw, parse_trace_entry,
)


class Ops(KernelTraceOps):
    def __init__(self):
        self.pipe = TracePipeRaw(64)
        self.names = TraceCmdLineCache(16)

    def time_now(self):
        return 1_500_000_000

    def cpu_id(self):
        return 0

    def current_pid(self):
        return 42

    def trace_pipe_push_raw_record(self, buf):
        self.pipe.push_event(buf)

    def trace_cmdline_push(self, pid):
        self.names.insert(pid, "worker")


ops = Ops()
registry = TracePointRegistry()
tick = define_event_trace(
    "sched_tick", "sched", ops,
    proto=("cpu", "load"),
    fields=[("cpu", "u32"), ("load", "u64")],
    assign=lambda cpu, load: {"cpu": cpu, "load": load},
    printk=lambda e: f"cpu={e.cpu} load={e.load}",
    printk_source="cpu={cpu} load={load}",
    registry=registry,
)

manager = global_init_events(registry)
manager.get_subsystem("sched").get_event("sched_tick").enable_file.write("1")
tick(3, 70)

record = ops.pipe.pop()
print(parse_trace_entry(manager.tracepoint_map, ops.names, record, ops), end="")
#           worker-42      [000] .....     1.500000: sched_tick(cpu=3 load=70)
```

## The demonstration command

```
tracekit-demo
```

This command runs `tracekit.demo.main` and writes everything to standard
output. It defines two events in the `tracepoint_test` subsystem, then goes
through these steps:

1. It fires both events while they are disabled, then prints the buffered
   records. Only the header appears, because nothing was recorded.
2. It enables every event through its enable file.
3. It fires the events again and prints the rendered records.
4. It prints each tracepoint's format description.

## What it does not do

- Records, process names and the events tree live only in memory, in the
  objects you create.
- Nothing is exposed as real files or read from the operating system's
  tracing facilities.
- Enabling a tracepoint only sets a flag on it.
- Events have no filters or triggers.

## Running the tests

```
pip install -e .[test]
pytest
```