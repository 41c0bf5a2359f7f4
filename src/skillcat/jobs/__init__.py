"""Queue- and cron-triggered jobs."""
