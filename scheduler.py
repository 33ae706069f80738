import logging

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler

from config import Settings, configure_logging

logger = logging.getLogger(__name__)


def collect_daily_traffic(pipeline):
    result = pipeline.collect_daily_traffic()
    logger.info(
        f"Scheduled collection: {result['routes_updated']} routes updated, "
        f"{result['routes_failed']} failed"
    )
    return result


def rollup_last_week(pipeline):
    result = pipeline.run_weekly_rollup(week_offset=-1)
    logger.info(f"Scheduled weekly rollup: {result['routes_processed']} routes processed")
    return result


def build_scheduler(pipeline, scheduler_cls=BackgroundScheduler):
    scheduler = scheduler_cls()
    scheduler.add_job(collect_daily_traffic, "interval", hours=24, args=[pipeline],
                      id="daily_traffic_collection", replace_existing=True)
    scheduler.add_job(rollup_last_week, "cron", day_of_week="mon", hour=1, args=[pipeline],
                      id="weekly_rollup", replace_existing=True)
    return scheduler


def start_scheduler(pipeline):
    scheduler = build_scheduler(pipeline)
    scheduler.start()
    logger.info("Background scheduler started")
    return scheduler


if __name__ == "__main__":
    from services import build_pipeline

    configure_logging()
    build_scheduler(build_pipeline(Settings.from_env()), BlockingScheduler).start()
