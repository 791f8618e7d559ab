from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from .errors import StateError, TransportError, ViewFactorError
from .main import ViewFactorPipeline
from .params import WorkerParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JobDescriptor:
    emitter: str
    receiver: str
    interconnect: Optional[str] = None
    job_id: Optional[str] = None

    @classmethod
    def from_json(cls, data: Dict[str, Any]) -> "JobDescriptor":
        try:
            emitter = data["emitter"]
            receiver = data["receiver"]
        except (KeyError, TypeError) as exc:
            raise TransportError(f"Malformed job descriptor: {data!r}") from exc
        interconnect = data.get("interconnect") or None
        job_id = data.get("id")
        return cls(str(emitter), str(receiver),
                   str(interconnect) if interconnect else None,
                   str(job_id) if job_id is not None else None)


class HttpJobSource:
    """Polls a coordinator over HTTP for jobs and reports results back.

    ``GET {base}/jobs/next`` answers 204 when idle or a JSON descriptor
    ``{"id", "emitter", "receiver", "interconnect"}``. Results go to
    ``POST {base}/jobs/{id}/result`` and events to ``POST {base}/events``.
    """

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: float = 30.0):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.timeout = timeout

    def _request(self, method: str, path: str, **kw) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kw)
            resp.raise_for_status()
        except requests.RequestException as exc:
            raise TransportError(f"{method} {url} failed: {exc}") from exc
        return resp

    def next_job(self) -> Optional[JobDescriptor]:
        resp = self._request("GET", "/jobs/next")
        if resp.status_code == 204 or not resp.content:
            return None
        try:
            data = resp.json()
        except ValueError as exc:
            raise TransportError(f"Coordinator sent invalid JSON: {exc}") from exc
        return JobDescriptor.from_json(data)

    def report(self, job: JobDescriptor, result: Optional[float] = None,
               error: Optional[BaseException] = None) -> None:
        body = {
            "status": "failed" if error is not None else "done",
            "result": result,
            "error": str(error) if error is not None else None,
        }
        self._request("POST", f"/jobs/{job.job_id or 'current'}/result", json=body)

    def event_sender(self) -> Callable[[str], None]:
        """Return a ``send(str)`` callable suitable for RemoteObserver."""
        def send(message: str) -> None:
            self._request("POST", "/events", data=message,
                          headers={"Content-Type": "application/json"})
        return send


def _report(source, job: JobDescriptor, **kw) -> None:
    try:
        source.report(job, **kw)
    except TransportError:
        logger.exception("Could not report job %s", job.job_id)


def run_worker(pipeline: ViewFactorPipeline, source, params: Optional[WorkerParams] = None,
               stop_event: Optional[threading.Event] = None) -> int:
    """Fetch and run jobs one at a time until stopped; return the number run.

    A failing job is logged and reported, then the loop takes the next one.
    Only a broken pipeline invariant (:class:`StateError`) ends the loop.
    """
    params = params or WorkerParams()
    stop_event = stop_event or threading.Event()
    done = 0
    while not stop_event.is_set():
        if params.max_jobs is not None and done >= params.max_jobs:
            break
        try:
            job = source.next_job()
        except TransportError:
            logger.exception("Polling %s failed", getattr(source, "base_url", source))
            stop_event.wait(params.poll_interval)
            continue
        if job is None:
            stop_event.wait(params.poll_interval)
            continue

        logger.info("Starting job %s", job.job_id or "<unnamed>")
        try:
            result = pipeline.run(job.emitter, job.receiver, job.interconnect)
        except StateError:
            raise
        except ViewFactorError as exc:
            logger.error("Job %s failed: %s", job.job_id, exc)
            _report(source, job, error=exc)
        except Exception as exc:
            logger.exception("Job %s failed unexpectedly", job.job_id)
            _report(source, job, error=exc)
        else:
            _report(source, job, result=result)
        done += 1
    return done


__all__ = ["JobDescriptor", "HttpJobSource", "run_worker"]
