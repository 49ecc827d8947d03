import threading

import pytest

from afina.latch import CountDownLatch, main, run_demo


def test_negative_count_rejected():
    with pytest.raises(ValueError):
        CountDownLatch(-1)


def test_count_down_decrements():
    latch = CountDownLatch(3)
    latch.count_down()
    assert latch.count() == 2


def test_count_does_not_go_below_zero():
    latch = CountDownLatch(1)
    latch.count_down()
    latch.count_down()
    assert latch.count() == 0


def test_wait_returns_at_once_when_zero():
    assert CountDownLatch(0).wait() is True


def test_wait_times_out():
    latch = CountDownLatch(1)
    assert latch.wait(0.01) is False
    assert latch.count() == 1


def test_waiters_released_by_last_count_down():
    latch = CountDownLatch(2)
    released = []

    def waiter():
        released.append(latch.wait(5))

    threads = [threading.Thread(target=waiter) for _ in range(3)]
    for t in threads:
        t.start()
    latch.count_down()
    assert latch.count() == 1
    latch.count_down()
    assert latch.count() == 0
    for t in threads:
        t.join(5)
    assert released == [True, True, True]
    assert latch.wait(0) is True


def test_run_demo_releases_after_last_decrement():
    lines = run_demo(2, 3, 0)
    decrements = [i for i, line in enumerate(lines) if "Decrement latch" in line]
    overs = [i for i, line in enumerate(lines) if "Wait is over" in line]
    assert len(decrements) == 3
    assert len(overs) == 2
    assert min(overs) > max(decrements)


def test_main_runs(capsys):
    assert main(["--waiters", "1", "--count", "2", "--interval", "0"]) == 0
    assert capsys.readouterr().out.count("Decrement latch") == 2