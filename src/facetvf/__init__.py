from .errors import (
    ViewFactorError,
    GeometryError,
    StateError,
    ComputeError,
    RunCancelled,
    TransportError,
)
from .geometry import Facets, TriangleBatch
from .events import EventKind, EventManager, PipelineState, ProgressEvent
from .observers import ConsoleObserver, FileObserver, RemoteObserver, StatusObserver
from .main import ViewFactorPipeline, view_factor
from .params import RunParams, WorkerParams
from .io import (
    load_facets,
    save_meshes_json,
    load_meshes_json,
    save_result_json,
)

__version__ = "1.0.0"

__all__ = [
    "ViewFactorError",
    "GeometryError",
    "StateError",
    "ComputeError",
    "RunCancelled",
    "TransportError",
    "Facets",
    "TriangleBatch",
    "EventKind",
    "EventManager",
    "PipelineState",
    "ProgressEvent",
    "ConsoleObserver",
    "FileObserver",
    "RemoteObserver",
    "StatusObserver",
    "ViewFactorPipeline",
    "view_factor",
    "RunParams",
    "WorkerParams",
    "load_facets",
    "save_meshes_json",
    "load_meshes_json",
    "save_result_json",
]
