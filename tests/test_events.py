import itertools

import pytest

from facetvf.errors import StateError
from facetvf.events import (
    TRANSITIONS,
    EventKind,
    EventManager,
    PipelineState,
    ProgressEvent,
    format_elapsed,
    is_legal_transition,
)

S = PipelineState

# calls that move a fresh manager from Idle into each state
STEPS = [
    ("start", S.INIT),
    ("start_parse", S.PARSING_GEOMETRY),
    ("finish_parse", S.GEOMETRY_READY),
    ("start_transfer", S.TRANSFERRING_DATA),
    ("finish_transfer", S.DATA_READY),
    ("start_compute", S.COMPUTING),
    ("finish_compute", S.COMPUTATION_DONE),
]


def _drive(manager, upto):
    order = [S.IDLE] + [state for _, state in STEPS]
    for name, state in STEPS[order.index(manager.state):order.index(upto)]:
        getattr(manager, name)(*((0.5,) if name == "finish_compute" else ()))
        assert manager.state is state


def _full_run(manager):
    _drive(manager, S.COMPUTATION_DONE)
    manager.finish()


def test_full_sequence_is_legal_and_returns_to_idle():
    m = EventManager()
    _drive(m, S.COMPUTING)
    m.update_progress(1, 2)
    m.update_progress(2, 2)
    m.finish_compute(0.25)
    m.finish()
    assert m.state is S.IDLE
    assert [e.kind for e in m.events] == [
        EventKind.JOB_START, EventKind.PARSE_START, EventKind.PARSE_FINISH,
        EventKind.TRANSFER_START, EventKind.TRANSFER_FINISH, EventKind.COMPUTE_START,
        EventKind.COMPUTE_PROGRESS, EventKind.COMPUTE_PROGRESS,
        EventKind.COMPUTE_FINISH, EventKind.JOB_FINISH,
    ]


def test_parsing_directly_from_idle_fails():
    m = EventManager()
    with pytest.raises(StateError):
        m.start_parse()
    assert m.state is S.IDLE
    assert m.events == ()


def test_skipping_a_stage_fails():
    m = EventManager()
    m.start()
    m.start_parse()
    with pytest.raises(StateError):
        m.start_transfer()
    assert m.state is S.PARSING_GEOMETRY


@pytest.mark.parametrize("state", [s for s in S if s is not S.EXCEPTION])
def test_exception_reachable_from_every_state(state):
    m = EventManager()
    _drive(m, state)
    assert m.state is state
    m.exception(RuntimeError("boom"))
    assert m.state is S.EXCEPTION
    assert m.events[-1].kind is EventKind.EXCEPTION


def test_exception_only_leads_back_to_init():
    m = EventManager()
    m.exception(RuntimeError("boom"))
    for call in ("start_parse", "finish_parse", "start_transfer", "start_compute", "finish"):
        with pytest.raises(StateError):
            getattr(m, call)()
    m.exception(RuntimeError("again"))
    m.start()
    assert m.state is S.INIT
    _drive(m, S.COMPUTATION_DONE)
    m.finish()
    assert m.state is S.IDLE


def test_transition_table():
    for current, new in itertools.product(S, S):
        expected = new is S.EXCEPTION or TRANSITIONS[current] is new
        assert is_legal_transition(current, new) is expected
    assert is_legal_transition(S.EXCEPTION, S.INIT)
    assert not is_legal_transition(S.EXCEPTION, S.IDLE)


def test_progress_outside_computing_fails():
    m = EventManager()
    with pytest.raises(StateError):
        m.update_progress(1, 1)


def test_event_log_is_kept_across_runs():
    m = EventManager()
    _full_run(m)
    first = len(m.events)
    _full_run(m)
    assert len(m.events) == 2 * first


def test_failing_observer_does_not_stop_others():
    received, states = [], []

    def broken(event):
        raise RuntimeError("observer down")

    class Recorder:
        def on_event(self, event):
            received.append(event.kind)

        def on_state_change(self, state):
            states.append(state)

    m = EventManager([broken, Recorder()])
    _full_run(m)
    assert received[0] is EventKind.JOB_START
    assert received[-1] is EventKind.JOB_FINISH
    assert states[-1] is S.IDLE
    assert m.state is S.IDLE


def test_register_and_unregister():
    seen = []
    m = EventManager()
    m.register(seen.append)
    m.start()
    m.unregister(seen.append)
    m.start_parse()
    assert [e.kind for e in seen] == [EventKind.JOB_START]


def test_durations_use_injected_clock():
    ticks = iter(range(100))
    m = EventManager(clock=lambda: float(next(ticks)))
    _full_run(m)
    finish = [e for e in m.events if e.kind is EventKind.PARSE_FINISH][0]
    assert finish.payload["duration"] == 1.0
    assert finish.message == "Meshes parsed and geometry precomputed in: 1 seconds."


def test_messages():
    progress = ProgressEvent(EventKind.COMPUTE_PROGRESS, 0.0, {"current": 1, "total": 3})
    assert progress.message == "Computation is 33.33% complete (1/3)."
    assert ProgressEvent(EventKind.JOB_START, 0.0).message == "Initializing..."
    done = ProgressEvent(EventKind.COMPUTE_FINISH, 0.0, {"duration": 0.5, "result": 0.125})
    assert done.message == "Computation finished in: 500 milliseconds.\nResult: 0.125"
    assert ProgressEvent(EventKind.INFO, 0.0, {"text": "hello"}).message == "hello"


def test_to_json():
    err = ProgressEvent(EventKind.EXCEPTION, 12.5, {"error": ValueError("bad mesh")})
    data = err.to_json()
    assert data == {"type": "Exception", "message": "bad mesh",
                    "timestamp": 12500, "error_type": "ValueError"}
    progress = ProgressEvent(EventKind.COMPUTE_PROGRESS, 1.0, {"current": 2, "total": 4})
    assert progress.to_json()["current"] == 2
    assert progress.to_json()["type"] == "ComputeProgress"


@pytest.mark.parametrize("seconds,text", [
    (2.0 ** -20, "953 nanoseconds."),
    (0.5, "500 milliseconds."),
    (12.0, "12 seconds."),
    (7200.0, "7200 seconds."),
    (86400.0 * 3, "4320 minutes."),
    (86400.0 * 10, "240 hours."),
])
def test_format_elapsed(seconds, text):
    assert format_elapsed(seconds) == text


def test_logged_events_are_read_only():
    m = EventManager()
    m.start()
    m.info("hello")
    event = m.events[-1]
    with pytest.raises(TypeError):
        event.payload["text"] = "changed"
    assert event.message == "hello"
    assert event.to_json()["text"] == "hello"
