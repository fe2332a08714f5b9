"""Tracepoints, binary trace records, an events tree and ftrace-style rendering."""

__version__ = "0.1.0"

__all__ = ["point", "trace_pipe", "event", "events", "demo"]