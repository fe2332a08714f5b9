import logging

from tracekit.event import TracePointRegistry, define_event_trace
from tracekit.events import global_init_events
from tracekit.point import TraceEntry
from tracekit.trace_pipe import KernelTraceOps


class ListOps(KernelTraceOps):
    def __init__(self):
        self.records = []

    def time_now(self):
        return 0

    def cpu_id(self):
        return 0

    def current_pid(self):
        return 1

    def trace_pipe_push_raw_record(self, buf):
        self.records.append(bytes(buf))

    def trace_cmdline_push(self, pid):
        pass


def build(kops):
    registry = TracePointRegistry()
    events = {}
    for name, system in [("B", "sys2"), ("A", "sys1"), ("C", "sys1")]:
        events[name] = define_event_trace(
            name, system, kops, ["x"], [("x", "u32")],
            lambda x: {"x": x}, lambda e: f"x={e.x}", "x={}", registry,
        )
    return registry, events


def test_ids_follow_name_order():
    registry, events = build(ListOps())
    manager = global_init_events(registry)
    ids = [events[n].tracepoint.id for n in ("A", "B", "C")]
    assert ids == [ids[0], ids[0] + 1, ids[0] + 2]
    assert manager.tracepoint_map == {tp_id: events[n].tracepoint
                                      for tp_id, n in zip(ids, "ABC")}


def test_ids_keep_increasing_between_inits():
    first, first_events = build(ListOps())
    global_init_events(first)
    second, second_events = build(ListOps())
    global_init_events(second)
    assert second_events["A"].tracepoint.id > first_events["C"].tracepoint.id


def test_subsystems_and_events():
    registry, events = build(ListOps())
    manager = global_init_events(registry)
    assert manager.subsystem_names() == ["sys1", "sys2"]
    assert manager.get_subsystem("sys1").event_names() == ["A", "C"]
    info = manager.get_subsystem("sys2").get_event("B")
    assert info.tracepoint is events["B"].tracepoint
    assert manager.get_subsystem("missing") is None
    assert manager.get_subsystem("sys1").get_event("B") is None


def test_remove_subsystem():
    registry, _ = build(ListOps())
    manager = global_init_events(registry)
    removed = manager.remove_subsystem("sys2")
    assert removed.event_names() == ["B"]
    assert manager.subsystem_names() == ["sys1"]
    assert manager.remove_subsystem("sys2") is None


def test_enable_file_controls_recording():
    kops = ListOps()
    registry, events = build(kops)
    manager = global_init_events(registry)
    info = manager.get_subsystem("sys1").get_event("A")
    assert info.enable_file.read() == "0\n"
    events["A"](5)
    assert kops.records == []
    info.enable_file.write("1")
    assert info.enable_file.read() == "1\n"
    assert info.tracepoint.is_enabled
    events["A"](5)
    assert len(kops.records) == 1
    assert TraceEntry.unpack(kops.records[0]).type_ == info.tracepoint.id
    info.enable_file.write("0")
    assert info.enable_file.read() == "0\n"


def test_enable_file_ignores_invalid_value(caplog):
    registry, _ = build(ListOps())
    manager = global_init_events(registry)
    info = manager.get_subsystem("sys1").get_event("C")
    with caplog.at_level(logging.WARNING, logger="tracekit.events"):
        info.enable_file.write("x")
    assert info.enable_file.read() == "0\n"
    assert "Invalid value for tracepoint enable" in caplog.text


def test_id_and_format_files():
    registry, events = build(ListOps())
    manager = global_init_events(registry)
    info = manager.get_subsystem("sys2").get_event("B")
    tp = events["B"].tracepoint
    assert info.id_file.read() == f"{tp.id}\n"
    text = info.format_file.read()
    assert text == tp.print_fmt()
    assert text.startswith(f"name: B\nID: {tp.id}\nformat:\n")
    assert text.endswith('print fmt: "x={}"\n')