from concurrent.futures import ThreadPoolExecutor

from readygate.probes import ProbeKind
from readygate.targets import FileTarget, TcpTarget
from readygate.tracker import TargetState, TargetStatus, TargetTracker, render_line

DB = TcpTarget("10.0.0.5", 5432)
CACHE = TcpTarget("10.0.0.6", 6379)
FLAG = FileTarget("/tmp/ready.flag")


def _tracker(*targets):
    tracker = TargetTracker()
    for target in targets:
        tracker.register(target)
    return tracker


def test_snapshot_preserves_registration_order():
    tracker = _tracker(FLAG, DB, CACHE)
    tracker.update(CACHE, TargetStatus.ready())
    tracker.update(FLAG, TargetStatus.retrying(1, ProbeKind.MISSING))

    assert [target for target, _ in tracker.snapshot()] == [FLAG, DB, CACHE]
    assert tracker.get(DB) == TargetStatus.waiting()


def test_repeated_update_is_idempotent():
    tracker = _tracker(DB, FLAG)
    status = TargetStatus.retrying(2, ProbeKind.REFUSED)

    assert tracker.update(DB, status) is True
    before = tracker.snapshot()
    assert tracker.update(DB, status) is False
    assert tracker.snapshot() == before


def test_last_write_wins():
    tracker = _tracker(DB)
    tracker.update(DB, TargetStatus.retrying(1, ProbeKind.REFUSED))
    tracker.update(DB, TargetStatus.failed("timed out", 1))
    assert tracker.get(DB).state is TargetState.FAILED


def test_concurrent_updates_keep_every_target():
    targets = [TcpTarget("127.0.0.1", port) for port in range(1000, 1016)]
    tracker = _tracker(*targets)

    def _hammer(target):
        for attempt in range(1, 101):
            tracker.update(target, TargetStatus.retrying(attempt, ProbeKind.REFUSED))
        tracker.update(target, TargetStatus.ready(101))

    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(_hammer, targets))

    snapshot = tracker.snapshot()
    assert [target for target, _ in snapshot] == targets
    assert all(status == TargetStatus.ready(101) for _, status in snapshot)


def test_unready_lists_everything_not_ready_in_order():
    tracker = _tracker(DB, CACHE, FLAG)
    tracker.update(CACHE, TargetStatus.ready())
    tracker.update(FLAG, TargetStatus.failed("timed out"))
    assert tracker.unready() == (DB, FLAG)


def test_status_lines_are_distinguishable():
    assert render_line(DB, TargetStatus.waiting()) == "10.0.0.5:5432 | Waiting"
    assert render_line(DB, TargetStatus.ready()) == "10.0.0.5:5432 | OK"
    assert render_line(FLAG, TargetStatus.failed("timed out")) == "file:/tmp/ready.flag | Failed: timed out"
    assert (
        render_line(CACHE, TargetStatus.retrying(3, ProbeKind.REFUSED))
        == "10.0.0.6:6379 | Retrying (attempt 3, last: refused)"
    )


def test_render_table_has_one_line_per_target():
    tracker = _tracker(DB, FLAG)
    assert tracker.render_table().splitlines() == [
        "10.0.0.5:5432 | Waiting",
        "file:/tmp/ready.flag | Waiting",
    ]
