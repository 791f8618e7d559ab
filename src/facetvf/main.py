from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Iterable, Optional

from .accumulator import ThreadedAccumulator
from .backends import select_backend
from .errors import GeometryError, StateError, ViewFactorError
from .events import EventManager
from .geometry import Facets, TriangleBatch
from .io import load_facets
from .kernel import ViewFactorKernel, normalized
from .params import RunParams

logger = logging.getLogger(__name__)

Loader = Callable[..., Facets]


class ViewFactorPipeline:
    """Drives one view-factor run at a time through the staged state machine.

    Stages: build triangle batches -> transfer data -> compute -> finish.
    Every stage is reported through :attr:`events`. On failure the pipeline
    moves to the ``Exception`` state, emits an ``Exception`` event and
    re-raises; the next :meth:`run` starts again from ``Init``.

    Mesh sources may be anything ``loader`` accepts (paths, URLs, bytes),
    ready-made :class:`Facets`, ``(name, V, F)`` mesh tuples or
    :class:`TriangleBatch` objects.
    """

    def __init__(self, events: Optional[EventManager] = None,
                 params: Optional[RunParams] = None,
                 loader: Loader = load_facets):
        self.events = events if events is not None else EventManager()
        self.params = params if params is not None else RunParams()
        self.loader = loader
        self._run_lock = threading.Lock()
        self._cancel = threading.Event()

    @property
    def busy(self) -> bool:
        return self._run_lock.locked()

    def cancel(self) -> None:
        """Ask the active run to stop before its next emitter dispatch."""
        self._cancel.set()

    def _build(self, source: Any) -> TriangleBatch:
        if isinstance(source, TriangleBatch):
            return source
        if isinstance(source, Facets):
            return TriangleBatch.from_facets(source)
        if isinstance(source, tuple) and len(source) == 3 and isinstance(source[0], str):
            _, V, F = source
            return TriangleBatch.from_mesh(V, F)
        if isinstance(source, list):
            return TriangleBatch.from_facets(source)
        try:
            facets = self.loader(source, timeout=self.params.download_timeout)
        except ViewFactorError:
            raise
        except Exception as exc:
            raise GeometryError(f"Could not load mesh {source!r}: {exc}") from exc
        return TriangleBatch.from_facets(facets)

    def run(self, emitter: Any, receiver: Any, interconnect: Any = None) -> float:
        """Compute the view factor from ``emitter`` to ``receiver``.

        ``interconnect`` is an optional occluding mesh; None means no
        occluders.
        """
        if not self._run_lock.acquire(blocking=False):
            raise StateError("A view-factor run is already in progress")
        self._cancel.clear()
        try:
            return self._run(emitter, receiver, interconnect)
        finally:
            self._run_lock.release()

    def _run(self, emitter: Any, receiver: Any, interconnect: Any) -> float:
        events = self.events
        params = self.params
        events.start()
        adder = None
        try:
            events.start_parse()
            emitters = self._build(emitter)
            receivers = self._build(receiver)
            interconnects = (TriangleBatch.empty() if interconnect is None
                             else self._build(interconnect))
            events.finish_parse()
            events.info(f"Triangles: {emitters.count} emitter, {receivers.count} receiver, "
                        f"{interconnects.count} interconnect")

            backend = select_backend(params.device, params.gpu_threads, params.cpu_threads)
            kernel = ViewFactorKernel(emitters, receivers, interconnects, backend)
            events.start_transfer()
            kernel.transfer()
            events.finish_transfer()

            events.start_compute()
            adder = ThreadedAccumulator(params.accumulator_threads)
            kernel.calculate(adder.add, events.update_progress, self._cancel)
            result = normalized(adder.finish_and_get(), emitters, params.normalize)
            events.finish_compute(result)
        except StateError:
            raise
        except BaseException as exc:
            if adder is not None:
                adder.close()
            events.exception(exc)
            raise
        events.finish()
        return result


def view_factor(emitter: Any, receiver: Any, interconnect: Any = None, *,
                observers: Optional[Iterable[Any]] = None, **params) -> float:
    """Return VF(emitter -> receiver) from a fresh pipeline.

    Parameters
    ----------
    emitter, receiver : source
        Mesh sources accepted by :class:`ViewFactorPipeline`.
    interconnect : source, optional
        Occluding mesh between the two. None means nothing occludes.
    observers : iterable, optional
        Event observers registered for this run.
    **params :
        Fields of :class:`RunParams` (``device``, ``normalize``, ...).
    """
    events = EventManager(list(observers or []))
    pipeline = ViewFactorPipeline(events, RunParams(**params))
    return pipeline.run(emitter, receiver, interconnect)


__all__ = ["ViewFactorPipeline", "view_factor"]
