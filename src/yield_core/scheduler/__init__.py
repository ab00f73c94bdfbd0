"""Periodic crawl scheduling."""

from yield_core.scheduler.tick import Scheduler, TickSummary, run_forever, seconds_until_next_tick

__all__ = ["Scheduler", "TickSummary", "run_forever", "seconds_until_next_tick"]
