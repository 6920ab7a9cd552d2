import threading
import time
import pytest
from trafficsync.common.exceptions import SchedulerClosedError
from trafficsync.common.metrics import MetricsCollector
from trafficsync.control.infrastructure import ThreadPoolScheduler

TIME_UNIT = 0.01  # 10ms per time unit

@pytest.fixture
def scheduler():
    scheduler = ThreadPoolScheduler(max_workers=3, time_unit_seconds=TIME_UNIT, metrics_collector=MetricsCollector())
    yield scheduler
    scheduler.shutdown()

def test_invalid_construction():
    with pytest.raises(ValueError):
        ThreadPoolScheduler(max_workers=0)
    with pytest.raises(ValueError):
        ThreadPoolScheduler(time_unit_seconds=0)

def test_call_later_fires_after_delay(scheduler):
    done = threading.Event()
    start = time.monotonic()

    scheduler.call_later(5, done.set)

    assert done.wait(timeout=2.0)
    assert time.monotonic() - start >= 5 * TIME_UNIT * 0.9

def test_cancelled_timer_does_not_fire(scheduler):
    fired = threading.Event()
    handle = scheduler.call_later(5, fired.set)
    handle.cancel()

    time.sleep(15 * TIME_UNIT)
    assert not fired.is_set()
    assert scheduler.pending_timers() == 0

def test_timers_fire_in_deadline_order(scheduler):
    order = []
    done = threading.Event()
    scheduler.call_later(10, lambda: (order.append("second"), done.set()))
    scheduler.call_later(2, lambda: order.append("first"))

    assert done.wait(timeout=2.0)
    assert order == ["first", "second"]

def test_call_every_repeats(scheduler):
    count = 0
    reached = threading.Event()
    lock = threading.Lock()

    def tick():
        nonlocal count
        with lock:
            count += 1
            if count >= 3:
                reached.set()

    handle = scheduler.call_every(2, tick)

    assert reached.wait(timeout=2.0)
    handle.cancel()

def test_submit_runs_on_worker_pool(scheduler):
    names = set()
    lock = threading.Lock()
    finished = threading.Semaphore(0)

    def work():
        with lock:
            names.add(threading.current_thread().name)
        time.sleep(0.005)
        finished.release()

    for _ in range(30):
        scheduler.submit(work)
    for _ in range(30):
        assert finished.acquire(timeout=2.0)

    # No thread per task: everything ran on the bounded pool
    assert 1 <= len(names) <= 3
    assert all(name.startswith("SignalWorker") for name in names)

def test_failing_callback_does_not_stop_scheduler(scheduler):
    done = threading.Event()

    def explode():
        raise RuntimeError("boom")

    scheduler.call_later(1, explode)
    scheduler.call_later(3, done.set)

    assert done.wait(timeout=2.0)
    assert scheduler.metrics_collector.get_metrics().callback_failures == 1

def test_shutdown_waits_for_in_flight_work(scheduler):
    started = threading.Event()
    finished = threading.Event()

    def slow():
        started.set()
        time.sleep(0.1)
        finished.set()

    scheduler.submit(slow)
    assert started.wait(timeout=2.0)

    scheduler.shutdown(wait=True)
    assert finished.is_set()
    assert scheduler.closed

def test_shutdown_rejects_new_work(scheduler):
    scheduler.shutdown()
    with pytest.raises(SchedulerClosedError):
        scheduler.submit(lambda: None)
    with pytest.raises(SchedulerClosedError):
        scheduler.call_later(1, lambda: None)

def test_shutdown_drops_pending_timers(scheduler):
    fired = threading.Event()
    scheduler.call_later(5, fired.set)
    scheduler.shutdown()
    time.sleep(10 * TIME_UNIT)
    assert not fired.is_set()
