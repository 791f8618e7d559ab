from __future__ import annotations

import argparse
import logging
import threading
from typing import List, Optional

from .errors import StateError, ViewFactorError
from .events import EventManager
from .io import save_result_json
from .jobs import HttpJobSource, run_worker
from .logging_config import setup_logging
from .main import ViewFactorPipeline
from .observers import ConsoleObserver, FileObserver, RemoteObserver
from .params import RunParams, WorkerParams

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="facetvf",
        description=(
            "Compute the view factor between an emitter and a receiver mesh, "
            "optionally occluded by an interconnect mesh. With two or three "
            "meshes the result is printed; with none (or a coordinator URL) "
            "the process runs as a worker fetching jobs."),
    )
    p.add_argument("meshes", nargs="*",
                   help="EMITTER RECEIVER [INTERCONNECT] (path or URL), or a coordinator URL")
    p.add_argument("--coordinator", default=None,
                   help="coordinator base URL for worker mode")
    p.add_argument("--device", choices=("auto", "gpu", "cpu"), default="auto")
    p.add_argument("--gpu-threads", type=int, default=None)
    p.add_argument("--cpu-threads", type=int, default=None)
    p.add_argument("--accumulator-threads", type=int, default=4)
    p.add_argument("--normalize", action="store_true",
                   help="divide the summed contributions by the emitter area")
    p.add_argument("--event-log", default="output.log",
                   help="file receiving one line per progress event ('' disables)")
    p.add_argument("--save", default=None, help="write the result to this JSON file")
    p.add_argument("--poll-interval", type=float, default=5.0)
    p.add_argument("--max-jobs", type=int, default=None)
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    if len(args.meshes) > 3:
        logger.error("Expected at most three meshes, got %d", len(args.meshes))
        return 2

    run_params = RunParams(
        device=args.device,
        gpu_threads=args.gpu_threads,
        cpu_threads=args.cpu_threads,
        accumulator_threads=args.accumulator_threads,
        normalize=args.normalize,
    )
    observers = [ConsoleObserver()]
    if args.event_log:
        observers.append(FileObserver(args.event_log))
    pipeline = ViewFactorPipeline(EventManager(observers), run_params)

    if len(args.meshes) >= 2:
        try:
            result = pipeline.run(*args.meshes)
        except StateError:
            raise
        except ViewFactorError as exc:
            logger.error("Run failed: %s", exc)
            return 1
        print(result)
        if args.save:
            save_result_json(result, args.save, sources=args.meshes,
                             params=run_params.as_dict())
        return 0

    worker = WorkerParams(poll_interval=args.poll_interval, max_jobs=args.max_jobs)
    url = args.coordinator or (args.meshes[0] if args.meshes else None)
    if url:
        worker.coordinator = url
    source = HttpJobSource(worker.coordinator, timeout=worker.request_timeout)
    pipeline.events.register(RemoteObserver(source.event_sender()))
    logger.info("Worker polling %s", worker.coordinator)
    try:
        run_worker(pipeline, source, worker, threading.Event())
    except KeyboardInterrupt:
        logger.info("Worker stopped")
    return 0


__all__ = ["build_parser", "main"]
