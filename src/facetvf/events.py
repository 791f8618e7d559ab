from __future__ import annotations

import logging
import threading
import time
from types import MappingProxyType
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from .errors import StateError

logger = logging.getLogger(__name__)


class PipelineState(Enum):
    IDLE = "Idle"
    INIT = "Init"
    PARSING_GEOMETRY = "ParsingGeometry"
    GEOMETRY_READY = "GeometryReady"
    TRANSFERRING_DATA = "TransferringData"
    DATA_READY = "DataReady"
    COMPUTING = "Computing"
    COMPUTATION_DONE = "ComputationDone"
    EXCEPTION = "Exception"


# Every state may additionally move to EXCEPTION.
TRANSITIONS: Dict[PipelineState, PipelineState] = {
    PipelineState.IDLE: PipelineState.INIT,
    PipelineState.INIT: PipelineState.PARSING_GEOMETRY,
    PipelineState.PARSING_GEOMETRY: PipelineState.GEOMETRY_READY,
    PipelineState.GEOMETRY_READY: PipelineState.TRANSFERRING_DATA,
    PipelineState.TRANSFERRING_DATA: PipelineState.DATA_READY,
    PipelineState.DATA_READY: PipelineState.COMPUTING,
    PipelineState.COMPUTING: PipelineState.COMPUTATION_DONE,
    PipelineState.COMPUTATION_DONE: PipelineState.IDLE,
    PipelineState.EXCEPTION: PipelineState.INIT,
}


def is_legal_transition(current: PipelineState, new: PipelineState) -> bool:
    return new is PipelineState.EXCEPTION or TRANSITIONS[current] is new


class EventKind(Enum):
    JOB_START = "JobStart"
    PARSE_START = "ParseStart"
    PARSE_FINISH = "ParseFinish"
    TRANSFER_START = "TransferStart"
    TRANSFER_FINISH = "TransferFinish"
    COMPUTE_START = "ComputeStart"
    COMPUTE_PROGRESS = "ComputeProgress"
    COMPUTE_FINISH = "ComputeFinish"
    INFO = "Info"
    EXCEPTION = "Exception"
    JOB_FINISH = "JobFinish"


def format_elapsed(seconds: float) -> str:
    """Render a duration in the smallest unit whose value stays below 10000."""
    for unit, scale in (("nanoseconds", 1e9), ("microseconds", 1e6),
                        ("milliseconds", 1e3), ("seconds", 1.0),
                        ("minutes", 1 / 60.0), ("hours", 1 / 3600.0)):
        value = int(seconds * scale)
        if value <= 9999:
            return f"{value} {unit}."
    return f"{int(seconds / 86400.0)} days."


@dataclass(frozen=True)
class ProgressEvent:
    kind: EventKind
    timestamp: float
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        p = self.payload
        k = self.kind
        if k is EventKind.JOB_START:
            return "Initializing..."
        if k is EventKind.PARSE_START:
            return "Reading meshes and precomputing geometry..."
        if k is EventKind.PARSE_FINISH:
            return "Meshes parsed and geometry precomputed in: " + format_elapsed(p["duration"])
        if k is EventKind.TRANSFER_START:
            return "Transferring initial buffers to the compute backend..."
        if k is EventKind.TRANSFER_FINISH:
            return "Initial buffer transfer complete in: " + format_elapsed(p["duration"])
        if k is EventKind.COMPUTE_START:
            return "Beginning computation of view factors..."
        if k is EventKind.COMPUTE_PROGRESS:
            current, total = p["current"], p["total"]
            percent = 100.0 * current / total if total else 100.0
            return f"Computation is {percent:.2f}% complete ({current}/{total})."
        if k is EventKind.COMPUTE_FINISH:
            return (f"Computation finished in: {format_elapsed(p['duration'])}\n"
                    f"Result: {p['result']!r}")
        if k is EventKind.INFO:
            return p["text"]
        if k is EventKind.EXCEPTION:
            return str(p["error"])
        return "All operations completed in: " + format_elapsed(p["duration"])

    @property
    def date_time(self) -> str:
        return time.strftime("[%b %d, %Y %H:%M:%S]", time.localtime(self.timestamp))

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "type": self.kind.value,
            "message": self.message,
            "timestamp": int(self.timestamp * 1000),
        }
        for key, value in self.payload.items():
            if key == "error":
                out["error_type"] = type(value).__name__
                continue
            out[key] = value
        return out


Observer = Callable[[ProgressEvent], None]


class EventManager:
    """Owns the pipeline state machine, the event log and the observer list.

    Observers are plain callables receiving a :class:`ProgressEvent`, or
    objects with an ``on_event`` method. Objects may also provide
    ``on_state_change(state)``. Notification is synchronous on the calling
    thread; a failing observer is logged and skipped.
    """

    def __init__(self, observers: Optional[List[Union[Observer, Any]]] = None,
                 clock: Callable[[], float] = time.perf_counter):
        self._clock = clock
        self._observers: List[Any] = list(observers or [])
        self._events: List[ProgressEvent] = []
        self._lock = threading.Lock()
        self._state = PipelineState.IDLE
        self._started: Dict[str, float] = {}

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def events(self) -> Tuple[ProgressEvent, ...]:
        return tuple(self._events)

    def register(self, observer) -> None:
        self._observers.append(observer)

    def unregister(self, observer) -> None:
        self._observers.remove(observer)

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        self._change_state(PipelineState.INIT)
        self._started = {"job": self._clock()}
        self._record(EventKind.JOB_START)

    def start_parse(self) -> None:
        self._change_state(PipelineState.PARSING_GEOMETRY)
        self._record(EventKind.PARSE_START)
        self._started["parse"] = self._clock()

    def finish_parse(self) -> None:
        self._change_state(PipelineState.GEOMETRY_READY)
        self._record(EventKind.PARSE_FINISH, duration=self._elapsed("parse"))

    def start_transfer(self) -> None:
        self._change_state(PipelineState.TRANSFERRING_DATA)
        self._record(EventKind.TRANSFER_START)
        self._started["transfer"] = self._clock()

    def finish_transfer(self) -> None:
        self._change_state(PipelineState.DATA_READY)
        self._record(EventKind.TRANSFER_FINISH, duration=self._elapsed("transfer"))

    def start_compute(self) -> None:
        self._change_state(PipelineState.COMPUTING)
        self._record(EventKind.COMPUTE_START)
        self._started["compute"] = self._clock()

    def update_progress(self, current: int, total: int) -> None:
        if self._state is not PipelineState.COMPUTING:
            raise StateError(f"Progress reported in state {self._state.value}")
        self._record(EventKind.COMPUTE_PROGRESS, current=current, total=total)

    def finish_compute(self, result: float) -> None:
        self._change_state(PipelineState.COMPUTATION_DONE)
        self._record(EventKind.COMPUTE_FINISH,
                     duration=self._elapsed("compute"), result=float(result))

    def finish(self) -> None:
        self._change_state(PipelineState.IDLE)
        self._record(EventKind.JOB_FINISH, duration=self._elapsed("job"))

    def info(self, text: str) -> None:
        self._record(EventKind.INFO, text=text)

    def exception(self, error: BaseException) -> None:
        self._change_state(PipelineState.EXCEPTION)
        self._record(EventKind.EXCEPTION, error=error)

    # -- internals ---------------------------------------------------------

    def _elapsed(self, key: str) -> float:
        now = self._clock()
        return now - self._started.get(key, now)

    def _change_state(self, new: PipelineState) -> None:
        with self._lock:
            if not is_legal_transition(self._state, new):
                raise StateError(
                    f"Illegal pipeline transition {self._state.value} -> {new.value}")
            self._state = new
        for observer in list(self._observers):
            hook = getattr(observer, "on_state_change", None)
            if hook is not None:
                self._deliver(observer, hook, new)

    def _record(self, kind: EventKind, **payload) -> ProgressEvent:
        event = ProgressEvent(kind, time.time(), MappingProxyType(payload))
        self._events.append(event)
        for observer in list(self._observers):
            self._deliver(observer, getattr(observer, "on_event", observer), event)
        return event

    @staticmethod
    def _deliver(observer, fn, arg) -> None:
        try:
            fn(arg)
        except Exception:
            logger.exception("Observer %r failed; continuing", observer)


__all__ = [
    "PipelineState",
    "TRANSITIONS",
    "is_legal_transition",
    "EventKind",
    "ProgressEvent",
    "EventManager",
    "format_elapsed",
]
