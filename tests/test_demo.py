import io

import pytest

from tracekit import demo
from tracekit.events import global_init_events
from tracekit.trace_pipe import TraceCmdLineCache, TracePipeRaw


def _reset():
    demo.TRACE_RAW_PIPE.clear()
    demo.TRACE_CMDLINE_CACHE.max_record = 0
    demo.TRACE_CMDLINE_CACHE.max_record = 128
    demo.TEST.tracepoint.disable()
    demo.TEST2.tracepoint.disable()


@pytest.fixture(autouse=True)
def clean_state():
    _reset()
    yield
    _reset()


def _enabled_manager():
    manager = global_init_events(demo.REGISTRY)
    subsystem = manager.get_subsystem(demo.SYSTEM)
    for name in subsystem.event_names():
        subsystem.get_event(name).enable_file.write("1")
    return manager


def test_kernel_ops_values():
    pipe = TracePipeRaw(4)
    cache = TraceCmdLineCache(4)
    kops = demo.DemoKernelOps(pipe, cache)
    assert kops.current_pid() == 1
    assert kops.cpu_id() == 0
    assert kops.time_now() > 0
    kops.trace_pipe_push_raw_record(b"\x01\x02")
    kops.trace_cmdline_push(7)
    assert pipe.peek() == b"\x01\x02"
    assert cache.get(7) == "test_process"


def test_trace_disabled_records_nothing(capsys):
    demo.test_trace(1, 2)
    assert demo.TRACE_RAW_PIPE.is_empty()
    assert capsys.readouterr().out == "Tracepoint TEST called with a=1, b=2\n"


def test_trace_enabled_pushes_records():
    _enabled_manager()
    demo.test_trace(1, 2)
    assert len(demo.TRACE_RAW_PIPE) == 2
    assert demo.TRACE_CMDLINE_CACHE.get(1) == "test_process"


def test_print_trace_records_renders_events():
    manager = _enabled_manager()
    demo.test_trace(1, 2)
    out = io.StringIO()
    demo.print_trace_records(manager.tracepoint_map, demo.TRACE_CMDLINE_CACHE, out)
    text = out.getvalue()
    assert "entries-in-buffer/entries-written: 2/2" in text
    assert "test_process-1 " in text
    assert "TEST(Hello from tracepoint! a=1, b=2)" in text
    assert "TEST2(Hello from tracepoint! a=1, b=2)" in text
    assert len(demo.TRACE_RAW_PIPE) == 2


def test_print_trace_records_empty_is_header_only():
    manager = global_init_events(demo.REGISTRY)
    out = io.StringIO()
    demo.print_trace_records(manager.tracepoint_map, demo.TRACE_CMDLINE_CACHE, out)
    assert out.getvalue() == demo.TRACE_RAW_PIPE.snapshot().default_fmt_str()


def test_records_keep_call_order():
    manager = _enabled_manager()
    demo.test_trace(1, 2)
    demo.test_trace(3, 4)
    out = io.StringIO()
    demo.print_trace_records(manager.tracepoint_map, demo.TRACE_CMDLINE_CACHE, out)
    text = out.getvalue()
    first = text.index("a=1, b=2")
    second = text.index("a=3, b=4")
    assert first < second


def test_main_output(capsys):
    assert demo.main([]) == 0
    out = capsys.readouterr().out
    before, after = out.split("---After enabling tracepoints---")
    assert "---Before enabling tracepoints---" in before
    assert "entries-in-buffer/entries-written: 0/0" in before
    assert "Enabled tracepoint: tracepoint_test.TEST\n" in before
    assert "Enabled tracepoint: tracepoint_test.TEST2\n" in before
    assert "entries-in-buffer/entries-written: 4/4" in after
    assert "name: TEST\nID: " in after
    assert "name: TEST2\nID: " in after
    assert after.count("Tracepoint TEST called with") == 2