"""Subsystems, events and the control files that expose them."""

from __future__ import annotations

import itertools
import logging
import threading
from typing import Optional

from .event import DEFAULT_REGISTRY, TracePointRegistry
from .point import TracePoint

logger = logging.getLogger(__name__)

_id_lock = threading.Lock()
_next_ids = itertools.count()


def _next_id() -> int:
    with _id_lock:
        return next(_next_ids)


class TracePointFormatFile:
    """Read-only view of a tracepoint's record format."""

    def __init__(self, tracepoint: TracePoint) -> None:
        self._tracepoint = tracepoint

    def read(self) -> str:
        return self._tracepoint.print_fmt()


class TracePointEnableFile:
    """Switch that turns a tracepoint on and off."""

    def __init__(self, tracepoint: TracePoint) -> None:
        self._tracepoint = tracepoint

    def read(self) -> str:
        return "1\n" if self._tracepoint.is_enabled else "0\n"

    def write(self, enable: str) -> None:
        """Enable on ``'1'``, disable on ``'0'``; anything else is ignored with a warning."""
        if enable == "1":
            self._tracepoint.enable()
        elif enable == "0":
            self._tracepoint.disable()
        else:
            logger.warning("Invalid value for tracepoint enable: %s", enable)


class TracePointIdFile:
    """Read-only view of a tracepoint's id."""

    def __init__(self, tracepoint: TracePoint) -> None:
        self._tracepoint = tracepoint

    def read(self) -> str:
        return f"{self._tracepoint.id}\n"


class EventInfo:
    """A tracepoint together with its control files."""

    def __init__(self, tracepoint: TracePoint) -> None:
        self.tracepoint = tracepoint
        self.enable_file = TracePointEnableFile(tracepoint)
        self.format_file = TracePointFormatFile(tracepoint)
        self.id_file = TracePointIdFile(tracepoint)

    def __repr__(self) -> str:
        return f"EventInfo({self.tracepoint!r})"


class EventsSubsystem:
    """The events belonging to one subsystem."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._events: dict[str, EventInfo] = {}

    def _create_event(self, event_name: str, event_info: EventInfo) -> None:
        with self._lock:
            self._events[event_name] = event_info

    def get_event(self, event_name: str) -> Optional[EventInfo]:
        with self._lock:
            return self._events.get(event_name)

    def event_names(self) -> list[str]:
        with self._lock:
            return sorted(self._events)


class TracingEventsManager:
    """Owns every subsystem and the id-to-tracepoint map."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subsystems: dict[str, EventsSubsystem] = {}
        self._map: dict[int, TracePoint] = {}

    @property
    def tracepoint_map(self) -> dict[int, TracePoint]:
        return self._map

    def _create_subsystem(self, subsystem_name: str) -> EventsSubsystem:
        with self._lock:
            return self._subsystems.setdefault(subsystem_name, EventsSubsystem())

    def get_subsystem(self, subsystem_name: str) -> Optional[EventsSubsystem]:
        with self._lock:
            return self._subsystems.get(subsystem_name)

    def remove_subsystem(self, subsystem_name: str) -> Optional[EventsSubsystem]:
        with self._lock:
            return self._subsystems.pop(subsystem_name, None)

    def subsystem_names(self) -> list[str]:
        with self._lock:
            return sorted(self._subsystems)


def global_init_events(registry: TracePointRegistry | None = None) -> TracingEventsManager:
    """Assign ids to all registered tracepoints and build the events tree."""
    manager = TracingEventsManager()
    metas = sorted(
        DEFAULT_REGISTRY if registry is None else registry,
        key=lambda meta: (meta.trace_point.name, meta.trace_point.system),
    )
    logger.info("tracepoint_data_len: %d", len(metas))
    for meta in metas:
        tracepoint = meta.trace_point
        tp_id = _next_id()
        tracepoint.id = tp_id
        tracepoint.register(meta.print_func, None)
        manager.tracepoint_map[tracepoint.id] = tracepoint
        logger.info("tracepoint registered: %s:%s", tracepoint.system, tracepoint.name)
        subsystem = manager._create_subsystem(tracepoint.system)
        subsystem._create_event(tracepoint.name, EventInfo(tracepoint))
    return manager