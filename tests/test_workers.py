import pytest

from aflow.executor import ExecutionError
from aflow.jobs import CronTriggerArgs, WorkflowExecuteArgs
from aflow.workers import CronTriggerWorker, WorkflowExecuteWorker

ARGS = CronTriggerArgs(workflow_id="wf-1", workspace_id="ws-1", schedule="*/5 * * * *")


class FakeCronExecutor:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def execute_with_trigger(self, workspace_id, workflow_id, trigger, input):
        self.calls.append((workspace_id, workflow_id, trigger, input))
        if self.error:
            raise self.error
        return {"id": "exec-1"}


class FakeRescheduler:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def schedule_cron(self, workspace_id, workflow_id, schedule):
        self.calls.append((workspace_id, workflow_id, schedule))
        if self.error:
            raise self.error


class FakeChecker:
    def __init__(self, active=True, error=None):
        self.active = active
        self.error = error

    def is_active(self, workspace_id, workflow_id):
        if self.error:
            raise self.error
        return self.active


class FakeRunner:
    def __init__(self, error=None):
        self.error = error
        self.calls = []

    def run_execution(self, execution_id):
        self.calls.append(execution_id)
        if self.error:
            raise self.error


def test_active_workflow_is_executed_and_rescheduled():
    executor, rescheduler = FakeCronExecutor(), FakeRescheduler()
    CronTriggerWorker(executor, rescheduler, FakeChecker()).work(ARGS)
    assert executor.calls == [("ws-1", "wf-1", "cron", b"{}")]
    assert rescheduler.calls == [("ws-1", "wf-1", "*/5 * * * *")]


def test_inactive_workflow_stops_chain():
    executor, rescheduler = FakeCronExecutor(), FakeRescheduler()
    assert CronTriggerWorker(executor, rescheduler, FakeChecker(active=False)).work(ARGS) is None
    assert executor.calls == []
    assert rescheduler.calls == []


def test_checker_error_is_treated_as_inactive():
    executor, rescheduler = FakeCronExecutor(), FakeRescheduler()
    checker = FakeChecker(error=RuntimeError("db down"))
    CronTriggerWorker(executor, rescheduler, checker).work(ARGS)
    assert executor.calls == []
    assert rescheduler.calls == []


def test_execution_error_fails_job_without_rescheduling():
    executor = FakeCronExecutor(error=RuntimeError("boom"))
    rescheduler = FakeRescheduler()
    worker = CronTriggerWorker(executor, rescheduler, FakeChecker())
    with pytest.raises(ExecutionError, match="cron trigger execution: boom"):
        worker.work(ARGS)
    assert rescheduler.calls == []


def test_reschedule_error_is_not_fatal():
    executor = FakeCronExecutor()
    rescheduler = FakeRescheduler(error=RuntimeError("queue down"))
    CronTriggerWorker(executor, rescheduler, FakeChecker()).work(ARGS)
    assert len(executor.calls) == 1
    assert len(rescheduler.calls) == 1


def test_workflow_execute_worker_runs_execution():
    runner = FakeRunner()
    WorkflowExecuteWorker(runner).work(WorkflowExecuteArgs(execution_id="exec-9"), attempt=2)
    assert runner.calls == ["exec-9"]


def test_workflow_execute_worker_reraises_failure():
    failure = RuntimeError("node failed")
    runner = FakeRunner(error=failure)
    with pytest.raises(RuntimeError) as caught:
        WorkflowExecuteWorker(runner).work(WorkflowExecuteArgs(execution_id="exec-9"))
    assert caught.value is failure
    assert runner.calls == ["exec-9"]


def test_worker_kinds_match_job_kinds():
    executor, rescheduler = FakeCronExecutor(), FakeRescheduler()
    cron_worker = CronTriggerWorker(executor, rescheduler, FakeChecker())
    cron_worker.work(ARGS)
    runner = FakeRunner()
    execute_worker = WorkflowExecuteWorker(runner)
    execute_worker.work(WorkflowExecuteArgs(execution_id="exec-3"))
    assert cron_worker.kind == "cron.trigger"
    assert execute_worker.kind == "workflow.execute"
    assert executor.calls[0][2] == "cron"
    assert runner.calls == ["exec-3"]