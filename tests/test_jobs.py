import json

from aflow.jobs import CronTriggerArgs, WorkflowExecuteArgs


def test_kinds():
    assert CronTriggerArgs.kind == "cron.trigger"
    assert WorkflowExecuteArgs("e1").kind == "workflow.execute"


def test_cron_trigger_payload_keys():
    args = CronTriggerArgs(workflow_id="wf", workspace_id="ws", schedule="*/5 * * * *")
    assert args.to_dict() == {"workflow_id": "wf", "workspace_id": "ws", "schedule": "*/5 * * * *"}


def test_workflow_execute_payload_keys():
    assert WorkflowExecuteArgs(execution_id="e1").to_dict() == {"execution_id": "e1"}


def test_json_round_trip():
    cron = CronTriggerArgs(workflow_id="wf", workspace_id="ws", schedule="0 * * * *")
    execute = WorkflowExecuteArgs(execution_id="e1")
    assert CronTriggerArgs(**json.loads(json.dumps(cron.to_dict()))) == cron
    assert WorkflowExecuteArgs(**json.loads(json.dumps(execute.to_dict()))) == execute


def test_equal_payloads_compare_equal():
    first = CronTriggerArgs("wf", "ws", "0 * * * *")
    second = CronTriggerArgs("wf", "ws", "0 * * * *")
    assert first == second
    assert hash(first) == hash(second)
    assert first != CronTriggerArgs("wf", "ws", "5 * * * *")