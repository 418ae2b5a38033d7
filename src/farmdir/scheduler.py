"""APScheduler-based scheduled builds of the static-site data (configurable cron)."""
from __future__ import annotations

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger
from loguru import logger

from farmdir.build import run_build_job
from farmdir.config import get_config
from farmdir.logging_config import setup_logging


def start_scheduler() -> None:
    cfg = get_config()
    setup_logging(cfg)
    sched_cfg = cfg.get("scheduler", {})
    if not sched_cfg.get("enabled", True):
        logger.info("Scheduler disabled in config")
        return
    cron = sched_cfg.get("cron", "0 6 * * *")
    tz = sched_cfg.get("timezone", "America/Toronto")
    scheduler = BlockingScheduler(timezone=tz)
    scheduler.add_job(run_build_job, CronTrigger.from_crontab(cron, timezone=tz), args=[cfg])
    logger.info("Scheduler started: cron={} timezone={}", cron, tz)
    scheduler.start()


if __name__ == "__main__":
    start_scheduler()
