"""Tests for the scheduler lanes and the active stand registry."""

import asyncio

from orchestrator.src.active_stands import ActiveStands
from orchestrator.src.models.job import ProviderJob
from orchestrator.src.scheduler import Scheduler

def make_scheduler(store, provider, **kwargs):
    kwargs.setdefault("job_poll_interval", 0)
    return Scheduler(store, provider, **kwargs)

class Tracker:
    """Handler that records how many executions overlap per stand."""

    def __init__(self, delay=0.01, fail=False):
        self.delay = delay
        self.fail = fail
        self.running = {}
        self.max_per_stand = {}
        self.max_total = 0
        self.handled = []

    async def __call__(self, stand):
        self.running[stand.name] = self.running.get(stand.name, 0) + 1
        self.max_per_stand[stand.name] = max(self.max_per_stand.get(stand.name, 0), self.running[stand.name])
        self.max_total = max(self.max_total, sum(self.running.values()))
        try:
            await asyncio.sleep(self.delay)
            if self.fail:
                raise RuntimeError("boom")
            self.handled.append(stand.name)
        finally:
            self.running[stand.name] -= 1

def test_active_stands_registry():
    active = ActiveStands()

    assert active.try_acquire("a") is True
    assert active.try_acquire("a") is False
    assert "a" in active
    assert len(active) == 1

    active.release("a")
    assert "a" not in active
    assert active.try_acquire("a") is True

def test_one_executor_per_stand_across_lanes(store, provider, make_stand, monkeypatch):
    make_stand(name="shared", status="pending")
    scheduler = make_scheduler(store, provider)
    stand = store.get_stand("shared")

    # Both lanes see the same stand
    monkeypatch.setattr(store, "stands_by_status", lambda status: [stand])
    tracker = Tracker(delay=0.05)
    scheduler.pending_lane.handler = tracker
    scheduler.created_lane.handler = tracker

    async def both_lanes():
        await asyncio.gather(
            scheduler.check_lane(scheduler.pending_lane),
            scheduler.check_lane(scheduler.created_lane),
        )

    asyncio.run(both_lanes())

    assert tracker.max_per_stand == {"shared": 1}
    assert tracker.handled == ["shared"]
    assert "shared" not in scheduler.active

def test_tick_is_skipped_while_previous_check_runs(store, provider, make_stand):
    make_stand(name="slow", status="pending")
    scheduler = make_scheduler(store, provider)
    tracker = Tracker(delay=0.05)
    scheduler.pending_lane.handler = tracker

    async def overlapping_ticks():
        first = asyncio.create_task(scheduler.check_lane(scheduler.pending_lane))
        await asyncio.sleep(0.01)
        second = await scheduler.check_lane(scheduler.pending_lane)
        return await first, second

    first, second = asyncio.run(overlapping_ticks())

    assert first is True
    assert second is False
    assert tracker.handled == ["slow"]

def test_active_stand_is_released_after_error(store, provider, make_stand):
    make_stand(name="broken", status="created")
    scheduler = make_scheduler(store, provider)
    scheduler.created_lane.handler = Tracker(fail=True)

    assert asyncio.run(scheduler.check_lane(scheduler.created_lane)) is True
    assert "broken" not in scheduler.active
    assert not scheduler.created_lane.guard.locked()

def test_already_active_stand_is_not_dispatched(store, provider, make_stand):
    make_stand(name="busy", status="pending")
    make_stand(name="free", status="pending")
    scheduler = make_scheduler(store, provider)
    scheduler.active.try_acquire("busy")
    tracker = Tracker(delay=0)
    scheduler.pending_lane.handler = tracker

    asyncio.run(scheduler.check_lane(scheduler.pending_lane))

    assert tracker.handled == ["free"]
    assert "busy" in scheduler.active

def test_worker_pool_bounds_concurrency(store, provider, make_stand):
    for i in range(5):
        make_stand(name=f"stand-{i}", status="pending")
    scheduler = make_scheduler(store, provider, max_concurrent_pending=2)
    tracker = Tracker(delay=0.02)
    scheduler.pending_lane.handler = tracker

    asyncio.run(scheduler.check_lane(scheduler.pending_lane))

    assert tracker.max_total == 2
    assert sorted(tracker.handled) == [f"stand-{i}" for i in range(5)]

def test_run_ticks_both_lanes(store, provider, make_stand):
    make_stand(name="p", status="pending")
    make_stand(name="c", status="created")
    scheduler = make_scheduler(store, provider, pending_interval=0, created_interval=0)
    pending, created = Tracker(delay=0), Tracker(delay=0)
    scheduler.pending_lane.handler = pending
    scheduler.created_lane.handler = created

    asyncio.run(scheduler.run(ticks=1))

    assert pending.handled == ["p"]
    assert created.handled == ["c"]

def test_end_to_end_happy_path(store, provider, make_stand, rows):
    make_stand(name="demo", status="created", products=["A", "B"], ref="master")
    scheduler = make_scheduler(store, provider)

    asyncio.run(scheduler.check_lane(scheduler.created_lane))

    assert rows.stand("demo").status == "pending"
    assert provider.called("clone_branch") == [("clone_branch", "demo", "master")]
    assert provider.called("create_environment") == [("create_environment", "demo")]
    assert provider.variables["demo"] == ["A", "B"]

    stand = rows.stand("demo")
    pipeline = rows.pipelines(stand.id)[0]
    steps = rows.steps(pipeline.id)
    assert [len(rows.jobs(s.id)) for s in steps] == [1, 1, 1]

    asyncio.run(scheduler.check_lane(scheduler.pending_lane))

    assert rows.stand("demo").status == "success"
    assert rows.pipelines(stand.id)[0].status == "success"
    assert [s.status for s in rows.steps(pipeline.id)] == ["success", "success", "success"]

    states = rows.step_states()
    assert [(s.step_order, s.step_name, s.status) for s in states] == [
        (1, "Creating vm", "success"),
        (2, "Executing automation", "success"),
        (3, "Executing helm", "success"),
    ]
    assert all(s.stand_name == "demo" and not s.delivered for s in states)
    assert scheduler.active.try_acquire("demo") is True

def test_recover_uses_scheduler_registry(store, provider, make_stand, seed_pipeline, rows):
    stand = make_stand(name="stale", status="running")
    seed_pipeline(stand, status="running", step_statuses={1: "running"}, jobs={1: [(1, "running", None)]})
    scheduler = make_scheduler(store, provider)

    assert scheduler.recover() == ["stale"]
    assert rows.stand("stale").status == "pending"

    asyncio.run(scheduler.check_lane(scheduler.pending_lane))

    assert provider.called("run_job") == [("run_job", 1)]
    assert rows.stand("stale").status == "success"

def test_later_stages_are_played_once_reached(store, provider, make_stand, rows):
    provider.pipeline_jobs = [
        ProviderJob(id=1, name="[1-1]-create-vm", stage="terraform", status="manual"),
        ProviderJob(id=2, name="[1-1]-install-k8s", stage="ansible", status="created"),
        ProviderJob(id=3, name="[1-1]-deploy", stage="helm", status="created"),
    ]
    provider.job_statuses[2] = ["manual", "success"]
    provider.job_statuses[3] = ["manual", "success"]
    make_stand(name="demo", status="created")
    scheduler = make_scheduler(store, provider)

    asyncio.run(scheduler.check_lane(scheduler.created_lane))
    asyncio.run(asyncio.wait_for(scheduler.check_lane(scheduler.pending_lane), timeout=5))

    assert [c[1] for c in provider.called("run_job")] == [1, 2, 3]
    assert rows.stand("demo").status == "success"
