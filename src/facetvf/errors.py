from __future__ import annotations


class ViewFactorError(Exception):
    """Base class for every error raised by facetvf."""


class GeometryError(ViewFactorError):
    """A mesh could not be read or contains malformed facets."""


class StateError(ViewFactorError):
    """An illegal pipeline transition was attempted.

    This signals a broken internal invariant and must not be caught and
    continued.
    """


class ComputeError(ViewFactorError):
    """Kernel dispatch failed, e.g. the requested backend is unavailable."""


class RunCancelled(ComputeError):
    """The run was cancelled between two emitter dispatches."""


class TransportError(ViewFactorError):
    """Delivery to or from a remote coordinator failed."""


__all__ = [
    "ViewFactorError",
    "GeometryError",
    "StateError",
    "ComputeError",
    "RunCancelled",
    "TransportError",
]
