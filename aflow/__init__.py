"""Workflow automation core: definitions, templating, cron scheduling, execution, metrics and credentials."""

__version__ = "0.1.0"