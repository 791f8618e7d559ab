from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from .errors import TransportError
from .events import EventKind, PipelineState, ProgressEvent

logger = logging.getLogger(__name__)


class ConsoleObserver:
    """Writes every event message to the ``facetvf`` logger."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    def on_event(self, event: ProgressEvent) -> None:
        if event.kind is EventKind.EXCEPTION:
            err = event.payload["error"]
            self.log.error("[ERROR]: %s", event.message,
                           exc_info=(type(err), err, err.__traceback__))
        elif event.kind is EventKind.INFO:
            self.log.info("[INFO]: %s", event.message)
        else:
            self.log.info(event.message)


class FileObserver:
    """Appends ``"[date]: message"`` lines to a log file.

    If the file cannot be opened the observer reports it once and stays
    silent, so calculations continue.
    """

    def __init__(self, path: Union[str, Path] = "output.log"):
        self.path = Path(path)
        self._fh = None
        try:
            if self.path.parent and not self.path.parent.exists():
                self.path.parent.mkdir(parents=True, exist_ok=True)
            self._fh = self.path.open("a", encoding="utf-8")
        except OSError:
            logger.exception("Cannot log to %s. Calculations will continue.", self.path)

    def on_event(self, event: ProgressEvent) -> None:
        if self._fh is None:
            return
        self._fh.write(f"{event.date_time}: {event.message}\r\n")
        self._fh.flush()

    def close(self) -> None:
        if self._fh is not None:
            self._fh.close()
            self._fh = None


class RemoteObserver:
    """Forwards events as JSON strings through ``send``."""

    def __init__(self, send: Callable[[str], None]):
        self.send = send

    def on_event(self, event: ProgressEvent) -> None:
        try:
            self.send(json.dumps(event.to_json()))
        except TransportError:
            raise
        except Exception as exc:
            raise TransportError(f"Could not forward {event.kind.value} event: {exc}") from exc


class StatusObserver:
    """Keeps a pollable snapshot of the current run.

    :meth:`snapshot` returns the pending messages (and clears them) together
    with the latest state, progress percentage, failure flag and result.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._messages: List[str] = []
        self.state = PipelineState.IDLE
        self.percentage = 0.0
        self.failure = False
        self.result: Optional[float] = None

    def on_state_change(self, state: PipelineState) -> None:
        self.state = state

    def on_event(self, event: ProgressEvent) -> None:
        with self._lock:
            kind = event.kind
            if kind is EventKind.JOB_START:
                self.percentage = 0.0
                self.failure = False
                self.result = None
            elif kind is EventKind.COMPUTE_PROGRESS:
                total = event.payload["total"]
                self.percentage = 100.0 * event.payload["current"] / total if total else 100.0
            elif kind is EventKind.COMPUTE_FINISH:
                self.percentage = 100.0
                self.result = event.payload["result"]
            elif kind is EventKind.EXCEPTION:
                self.failure = True

            if kind is EventKind.INFO:
                self._messages.append("[INFO]: " + event.message)
            elif kind is EventKind.EXCEPTION:
                self._messages.append("[ERROR]: " + event.message)
            else:
                self._messages.append(event.message)

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            out = {
                "messages": list(self._messages),
                "state": self.state.value,
                "percentage": self.percentage,
                "failure": self.failure,
                "result": self.result,
            }
            self._messages.clear()
        return out


__all__ = ["ConsoleObserver", "FileObserver", "RemoteObserver", "StatusObserver"]
