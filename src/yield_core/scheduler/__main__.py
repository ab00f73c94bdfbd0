"""Allow running the scheduler as: python -m yield_core.scheduler [--config path] [--once]."""

from yield_core.scheduler.runner import cli

cli()
