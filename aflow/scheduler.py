"""Scheduling of cron trigger jobs when a workflow is published."""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any

from aflow.cron import CronSyntaxError, parse_cron
from aflow.jobs import CronTriggerArgs


class SchedulingError(RuntimeError):
    """Raised when a cron job cannot be scheduled."""


def next_run_time(schedule: str, now: datetime | None = None) -> datetime:
    """Return the next time ``schedule`` fires after ``now`` (default: the current time)."""
    upcoming = parse_cron(schedule).next(datetime.now() if now is None else now)
    if upcoming is None:
        raise CronSyntaxError(f"schedule {schedule} never fires")
    return upcoming


class Scheduler:
    """Inserts cron trigger jobs into a job queue client."""

    def __init__(self, client: Any) -> None:
        self._client = client

    def schedule_cron(self, workspace_id: str, workflow_id: str, schedule: str) -> None:
        """Queue a cron trigger job for the next run, unique by arguments while pending or running."""
        try:
            upcoming = next_run_time(schedule)
        except CronSyntaxError as exc:
            raise SchedulingError(f"invalid cron schedule {json.dumps(schedule)}: {exc}") from exc
        try:
            self._client.insert(
                CronTriggerArgs(workflow_id=workflow_id, workspace_id=workspace_id, schedule=schedule),
                scheduled_at=upcoming,
                unique_by_args=True,
                unique_states=("scheduled", "available", "running"),
            )
        except Exception as exc:
            raise SchedulingError(f"insert cron job: {exc}") from exc