"""Queue workers for cron triggers and workflow executions."""

from __future__ import annotations

import logging
from typing import Any, Protocol

from aflow.executor import ExecutionError
from aflow.jobs import CronTriggerArgs, WorkflowExecuteArgs

logger = logging.getLogger(__name__)

CRON_TRIGGER = "cron"
EMPTY_INPUT = b"{}"


class _CronExecutor(Protocol):
    def execute_with_trigger(
        self, workspace_id: str, workflow_id: str, trigger: str, input: bytes
    ) -> Any: ...


class _CronRescheduler(Protocol):
    def schedule_cron(self, workspace_id: str, workflow_id: str, schedule: str) -> Any: ...


class _WorkflowChecker(Protocol):
    def is_active(self, workspace_id: str, workflow_id: str) -> bool: ...


class _ExecutionRunner(Protocol):
    def run_execution(self, execution_id: str) -> None: ...


class CronTriggerWorker:
    """Runs a workflow when its cron job fires and queues the next firing."""

    kind = CronTriggerArgs.kind

    def __init__(
        self,
        executor: _CronExecutor,
        rescheduler: _CronRescheduler,
        checker: _WorkflowChecker,
    ) -> None:
        self._executor = executor
        self._rescheduler = rescheduler
        self._checker = checker

    def work(self, args: CronTriggerArgs) -> None:
        """Process one cron trigger job.

        An inactive workflow ends the chain quietly; a failed reschedule is logged only.
        """
        try:
            active = self._checker.is_active(args.workspace_id, args.workflow_id)
        except Exception:
            active = False
        if not active:
            logger.info("cron trigger skipped: workflow %s inactive", args.workflow_id)
            return

        try:
            self._executor.execute_with_trigger(
                args.workspace_id, args.workflow_id, CRON_TRIGGER, EMPTY_INPUT
            )
        except Exception as exc:
            raise ExecutionError(f"cron trigger execution: {exc}") from exc

        try:
            self._rescheduler.schedule_cron(args.workspace_id, args.workflow_id, args.schedule)
        except Exception:
            logger.exception("cron reschedule failed for workflow %s", args.workflow_id)

        logger.info(
            "cron triggered execution for workflow %s (schedule %s)",
            args.workflow_id,
            args.schedule,
        )


class WorkflowExecuteWorker:
    """Runs queued workflow executions."""

    kind = WorkflowExecuteArgs.kind

    def __init__(self, executor: _ExecutionRunner) -> None:
        self._executor = executor

    def work(self, args: WorkflowExecuteArgs, attempt: int = 1) -> None:
        """Run the execution; failures are logged and re-raised so the job is retried."""
        logger.info("executing workflow: execution %s, attempt %d", args.execution_id, attempt)
        try:
            self._executor.run_execution(args.execution_id)
        except Exception:
            logger.exception("execution %s failed", args.execution_id)
            raise
        logger.info("execution %s completed", args.execution_id)