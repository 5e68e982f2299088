import random
import threading

import pytest

from hardware.input.debounce_gate import DebounceGate


def test_first_press_always_accepted():
    gate = DebounceGate()
    assert gate.consider(123.0, 0.05) is True
    assert gate.last_accepted == 123.0


def test_press_within_window_rejected():
    gate = DebounceGate()
    assert gate.consider(0.000, 0.05) is True
    assert gate.consider(0.030, 0.05) is False
    assert gate.last_accepted == 0.000


def test_exactly_window_rejected():
    gate = DebounceGate()
    gate.consider(1.0, 0.5)
    assert gate.consider(1.5, 0.5) is False
    assert gate.consider(1.5001, 0.5) is True


def test_rejected_press_does_not_extend_window():
    gate = DebounceGate()
    assert gate.consider(0.00, 0.05) is True
    assert gate.consider(0.04, 0.05) is False
    # 80ms after the accepted press, 40ms after the rejected one
    assert gate.consider(0.08, 0.05) is True


def test_zero_window_accepts_everything():
    gate = DebounceGate()
    assert all(gate.consider(t, 0.0) for t in (0.0, 0.0, 0.001, 0.002))


def test_last_accepted_never_decreases():
    gate = DebounceGate()
    gate.consider(10.0, 0.0)
    gate.consider(5.0, 0.0)
    assert gate.last_accepted == 10.0


@pytest.mark.parametrize("seed", range(5))
def test_matches_reference_rule(seed):
    rng = random.Random(seed)
    window = rng.choice([0.0, 0.01, 0.05, 0.2])
    t = 0.0
    times = []
    for _ in range(200):
        t += rng.uniform(0.0, 0.1)
        times.append(t)

    gate = DebounceGate()
    last = None
    for ti in times:
        expected = last is None or ti - last > window
        if expected:
            last = ti
        assert gate.consider(ti, window) is expected


def test_concurrent_callers_accept_once():
    gate = DebounceGate()
    results = []
    barrier = threading.Barrier(8)

    def worker():
        barrier.wait()
        results.append(gate.consider(1.0, 0.05))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for th in threads:
        th.start()
    for th in threads:
        th.join()

    assert results.count(True) == 1


def test_reset_forgets_last_press():
    gate = DebounceGate()
    gate.consider(1.0, 10.0)
    gate.reset()
    assert gate.consider(1.1, 10.0) is True
