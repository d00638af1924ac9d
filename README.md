# aflow

The core of a workflow automation engine, as a library. A workflow is a
directed acyclic graph of nodes. Each node has a type, a configuration and an
optional retry policy. The package provides:

- `aflow.engine`: parses workflow JSON, orders nodes topologically, finds the
  trigger node and collects each node's parent outputs.
- `aflow.template`: resolves `{{namespace.path}}` placeholders in strings,
  headers and JSON bodies.
- `aflow.executor`: runs a stored execution node by node. It handles retries,
  `$cred:` references, logs and metrics.
- `aflow.cron`: a five-field cron expression parser.
- `aflow.scheduler`: queues the next `cron.trigger` job.
- `aflow.jobs`: job payloads.
- `aflow.workers`: the workers that handle those jobs.
- `aflow.workflows`: a service that creates, updates, publishes and
  deactivates workflows, and activates webhook and cron triggers on publish.
- `aflow.crypto`: AES-256-GCM encryption for credentials at rest.
- `aflow.metrics`: in-process labelled counters and histograms.
- `aflow.config`: configuration from defaults, an `aflow.yaml` file and the
  environment.

Install with `pip install .`. For the tests, use `pip install .[test]` and then
`pytest`.

## What this package does not include

Storage, the job queue and the node implementations are interfaces that you
supply. The package has no database layer, no HTTP server or API, no queue
client, no built-in node types, no tracing setup and no command-line program.
The metrics are kept in process memory and are not exported anywhere.

## Workflow definitions

```python
from aflow.engine import parse_definition, topological_sort, find_trigger_node

definition = parse_definition("""
{
  "nodes": [
    {"id": "start", "type": "trigger.cron", "config": {"schedule": "*/5 * * * *"}},
    {"id": "fetch", "type": "http-request", "config": {"url": "https://example.com"},
     "retry": {"max_attempts": 3, "delay_ms": 500}},
    {"id": "shape", "type": "transform", "config": {}}
  ],
  "edges": [{"from": "start", "to": "fetch"}, {"from": "fetch", "to": "shape"}]
}
""")

[node.id for node in topological_sort(definition)]   # ["start", "fetch", "shape"]
find_trigger_node(definition).type                   # "trigger.cron"
```

In the parsed result, an edge's `from` and `to` become `Edge.source` and
`Edge.target`. `parse_definition` raises `DefinitionError` in these cases:

- the JSON is malformed;
- a field has the wrong type.

`topological_sort` raises `DefinitionError` in these cases:

- an edge names a node that does not exist;
- the graph has a cycle.

`parent_outputs(node_id, edges, outputs)` returns the outputs of a node's
parents, keyed by parent ID.

## Templates

```python
from aflow.template import resolve, resolve_body, resolve_headers

namespaces = {"input": {"user": {"name": "Ada"}, "count": 42}}

resolve("Hello {{input.user.name}}", namespaces)        # "Hello Ada"
resolve("Missing: [{{input.nope}}]", namespaces)        # "Missing: []"
resolve_headers({"X-User": "{{input.user.name}}"}, namespaces)
# {"X-User": "Ada"}

# A JSON string that is exactly one placeholder takes the value's type.
resolve_body('{"count": "{{input.count}}"}', namespaces)   # '{"count":42}'
```

A namespace value can be any of these:

- a dict;
- raw JSON bytes;
- any JSON-serialisable value that encodes to an object.

A body that is not valid JSON gets plain string substitution.

## Encrypting credentials

The key is 32 bytes written as 64 hex characters. Read it from the
environment:

```python
import os
from aflow.crypto import Encryptor

encryptor = Encryptor(os.environ["APP_ENCRYPTION_KEY"])
sealed = encryptor.encrypt(b'{"api_key": "placeholder"}')
assert encryptor.decrypt(sealed) == b'{"api_key": "placeholder"}'
```

A sealed value is laid out as follows:

1. the 12-byte nonce;
2. the ciphertext;
3. the 16-byte tag.

`CryptoError` is raised in these cases:

- the key is missing, is not valid hex, or is the wrong length;
- the input is shorter than a nonce;
- the data fails authentication.

## Cron schedules

```python
from datetime import datetime
from aflow.cron import parse_cron

schedule = parse_cron("30 9 * * 1-5")          # 09:30 on weekdays
schedule.next(datetime(2024, 1, 6, 12, 0))     # datetime(2024, 1, 8, 9, 30)
```

An expression has five fields: minute, hour, day of month, month and day of
week. The parser accepts the following:

- lists, ranges and steps;
- `*` and `?`;
- month and weekday names;
- an optional leading `TZ=<zone>` or `CRON_TZ=<zone>`.

`next` returns `None` if nothing matches within five years. An invalid
expression raises `CronSyntaxError`.

To compute a firing time directly, call
`aflow.scheduler.next_run_time(schedule, now=None)`. To queue a job, use
`Scheduler(client).schedule_cron(workspace_id, workflow_id, schedule)`. It calls
`client.insert(...)` with these arguments:

- a `CronTriggerArgs` payload;
- `scheduled_at` set to the next firing time;
- `unique_by_args=True`;
- `unique_states=("scheduled", "available", "running")`.

Either an invalid schedule or a failed insert raises `SchedulingError`.

## Configuration

```python
import os
from aflow.config import load

config = load(os.environ, ["."])
config.server.port        # "8080" unless overridden
config.queue.workers      # 4 unless overridden
```

If no search paths are given, `.` and `$HOME/.aflow` are searched. The first
file found named `aflow.yaml`, `aflow.yml` or `aflow` is read. For each key,
the first non-empty source wins, in this order:

1. The environment variable `AFLOW_<SECTION>.<KEY>`, with the dot kept, for
   example `AFLOW_SERVER.PORT`.
2. The extra bindings:
   - `APP_ENCRYPTION_KEY` or `AFLOW_CRYPTO_ENCRYPTION_KEY` for
     `crypto.encryption_key`;
   - `AFLOW_JWT_SECRET` for `auth.jwt_secret`.
3. The config file.
4. The defaults:
   - `server.port` is `"8080"`;
   - `server.host` is `"0.0.0.0"`;
   - `database.driver` is `"postgres"`;
   - `database.dsn` is `"postgres://localhost/aflow?sslmode=disable"`;
   - `queue.workers` is `4`;
   - `worker.metrics_port` is `9091`.

A value that cannot be converted to its field's type raises `ValueError`.

## Running workflows

Create the executor with
`Executor(repo, registry, credentials=None, http_actions=None)`.

**The repository** must provide these methods:

- `get_execution_internal(execution_id)`. It returns an object with `id`,
  `workflow_id`, `workspace_id`, `workflow_version_id` and `input`.
- `get_version_definition(version_id)`
- `start_execution(execution_id)`
- `finish_execution(execution_id, status, output, error_message)`
- `write_log(*, execution_id, node_id, level, message, metadata)`

**The registry** is looked up with `registry.get(node_type)` and returns nodes
that provide `execute(context, node_input)`. If the lookup raises
`LookupError`, the `no-op` node is used. If no node is found at all, the input
is passed through unchanged.

`run_execution(execution_id)` proceeds as follows:

1. It runs the nodes in topological order.
2. Each node receives its parents' outputs, keyed by parent ID. A root node
   receives the execution input under `"$"`.
3. A node with `retry.max_attempts > 1` is retried, waiting `delay_ms` between
   attempts.
4. The following node types are handled specially:
   - A node whose type is a UUID goes to `http_actions.execute(...)`, if an
     HTTP-action executor was given.
   - For other nodes, config strings of the form `$cred:<id>` or
     `$cred:<id>.<field>` are first replaced by values from
     `credentials.decrypt(workspace_id, id)`. The standalone
     `resolve_credentials` function does the same replacement.
5. The execution is marked `ExecutionStatus.SUCCESS` with the outputs as JSON.

A definition error or a node failure marks the execution
`ExecutionStatus.FAILED` and raises `ExecutionError`. The following also raise
`ExecutionError`, without marking the execution:

- a failure to load the execution or its version;
- a failure to start the execution.

Execution and node counts and durations are recorded in `aflow.metrics`.

## Queue workers

`WorkflowExecuteWorker(executor).work(WorkflowExecuteArgs(execution_id), attempt)`
runs an execution and re-raises any failure.

`CronTriggerWorker(executor, rescheduler, checker).work(CronTriggerArgs(...))`
handles a cron job:

1. It checks `checker.is_active(...)`. An inactive workflow, or a failed check,
   ends the job quietly.
2. It calls `executor.execute_with_trigger(workspace_id, workflow_id, "cron", b"{}")`.
   If this fails, it raises `ExecutionError`.
3. It calls `rescheduler.schedule_cron(...)`. A failure here is only logged.

## Workflow service

`WorkflowService(repo, scheduler=None)` checks requests and passes storage to
the repository. It raises `ValidationError` in these cases:

- the name is missing;
- the definition is missing;
- the workflow has no versions;
- the latest definition is invalid JSON;
- the latest definition is not a valid DAG.

On `publish`, the service activates the trigger:

- A `trigger.webhook` node gets a fresh secret from `generate_secret()` if it
  has none. The secret is `whsec_` followed by 64 hex characters.
- A `trigger.cron` node with a `schedule` in its config is passed to the
  scheduler.

Failures in either step are logged, not raised. `NotFoundError` and
`ForbiddenError` are available for repositories to raise.