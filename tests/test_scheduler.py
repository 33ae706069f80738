from scheduler import build_scheduler, collect_daily_traffic, rollup_last_week


class StubPipeline:
    def __init__(self):
        self.calls = []

    def collect_daily_traffic(self):
        self.calls.append("collect")
        return {"routes_updated": 2, "routes_failed": 0}

    def run_weekly_rollup(self, week_offset=0):
        self.calls.append(("rollup", week_offset))
        return {"routes_processed": 3}


def test_jobs_are_registered():
    scheduler = build_scheduler(StubPipeline())
    jobs = {job.id: job for job in scheduler.get_jobs()}

    assert set(jobs) == {"daily_traffic_collection", "weekly_rollup"}
    assert "day_of_week='mon'" in str(jobs["weekly_rollup"].trigger)


def test_weekly_job_rolls_up_last_week():
    pipeline = StubPipeline()
    assert rollup_last_week(pipeline)["routes_processed"] == 3
    assert pipeline.calls == [("rollup", -1)]


def test_daily_job_runs_collection():
    pipeline = StubPipeline()
    collect_daily_traffic(pipeline)
    assert pipeline.calls == ["collect"]
