import threading

import numpy as np
import pytest

from facetvf.accumulator import ThreadedAccumulator


def test_concurrent_total_matches_sequential_sum():
    rng = np.random.default_rng(0)
    vectors = [rng.uniform(0.0, 1e-3, size=500) for _ in range(400)]
    acc = ThreadedAccumulator(4)

    def submit(chunk):
        for v in chunk:
            acc.add(v)

    producers = [threading.Thread(target=submit, args=(vectors[i::4],)) for i in range(4)]
    for t in producers:
        t.start()
    for t in producers:
        t.join()

    expected = sum(float(np.sum(v)) for v in vectors)
    assert acc.finish_and_get() == pytest.approx(expected, rel=1e-9)


def test_add_copies_the_buffer():
    acc = ThreadedAccumulator(2)
    buf = np.ones(10)
    acc.add(buf)
    buf[:] = 100.0
    acc.add(buf)
    assert acc.finish_and_get() == pytest.approx(10.0 + 1000.0)


def test_empty_accumulator_is_zero():
    assert ThreadedAccumulator().finish_and_get() == 0.0


def test_finish_is_idempotent_and_add_after_finish_fails():
    acc = ThreadedAccumulator(1)
    acc.add(np.array([1.0, 2.0]))
    assert acc.finish_and_get() == pytest.approx(3.0)
    assert acc.finish_and_get() == pytest.approx(3.0)
    assert acc.pending == 0
    with pytest.raises(RuntimeError):
        acc.add(np.array([1.0]))


def test_closed_accumulator_rejects_work():
    acc = ThreadedAccumulator(1)
    acc.close()
    with pytest.raises(RuntimeError):
        acc.add(np.array([1.0]))


def test_thread_count_must_be_positive():
    with pytest.raises(ValueError):
        ThreadedAccumulator(0)
