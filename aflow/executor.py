"""Workflow execution: loads a version's DAG, runs its nodes and records the outcome."""

from __future__ import annotations

import enum
import json
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Mapping, Protocol

from aflow import metrics
from aflow.engine import (
    DefinitionError,
    NodeConfig,
    parent_outputs,
    parse_definition,
    topological_sort,
)

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "$cred:"
NO_OP_TYPE = "no-op"

_CANONICAL_UUID = re.compile(
    r"[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}"
)
_BARE_UUID = re.compile(r"[0-9a-fA-F]{32}")
_URN_PREFIX = "urn:uuid:"


class ExecutionStatus(str, enum.Enum):
    """Final state of a workflow execution."""

    SUCCESS = "success"
    FAILED = "failed"


class ExecutionError(RuntimeError):
    """Raised when an execution, a node or a credential reference fails."""


@dataclass(frozen=True)
class ExecutionContext:
    """What a built-in node receives about the run it belongs to."""

    workspace_id: str
    execution_id: str
    node_id: str
    config: dict[str, Any] = field(default_factory=dict)


class _Execution(Protocol):
    id: str
    workflow_id: str
    workspace_id: str
    workflow_version_id: str
    input: Any


class _Repository(Protocol):
    def get_execution_internal(self, execution_id: str) -> _Execution: ...
    def get_version_definition(self, version_id: str) -> bytes | str: ...
    def start_execution(self, execution_id: str) -> None: ...
    def finish_execution(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: str | None,
        error_message: str,
    ) -> None: ...
    def write_log(
        self,
        *,
        execution_id: str,
        node_id: str | None,
        level: str,
        message: str,
        metadata: str | None,
    ) -> None: ...


class _Node(Protocol):
    def execute(self, context: ExecutionContext, node_input: Any) -> Any: ...


class _NodeRegistry(Protocol):
    def get(self, node_type: str) -> _Node | None: ...


class _CredentialDecryptor(Protocol):
    def decrypt(self, workspace_id: str, credential_id: str) -> bytes | str: ...


class _HTTPActionExecutor(Protocol):
    def execute(
        self, workspace_id: str, node_type_id: str, config: Mapping[str, Any], node_input: Any
    ) -> Any: ...


def is_uuid(value: str) -> bool:
    """Return True for a UUID in canonical, braced, ``urn:uuid:`` or 32-hex form."""
    if len(value) == 45 and value[:9].lower() == _URN_PREFIX:
        value = value[9:]
    elif len(value) == 38 and value.startswith("{") and value.endswith("}"):
        value = value[1:-1]
    elif len(value) == 32:
        return _BARE_UUID.fullmatch(value) is not None
    return _CANONICAL_UUID.fullmatch(value) is not None


_UNDECODABLE = object()


def _decode_json(raw: Any) -> Any:
    try:
        return json.loads(raw)
    except (TypeError, ValueError):
        return _UNDECODABLE


def _resolve_reference(workspace_id: str, reference: str, decryptor: _CredentialDecryptor) -> Any:
    credential_id, separator, field_name = reference.partition(".")
    try:
        raw = decryptor.decrypt(workspace_id, credential_id)
    except Exception as exc:
        raise ExecutionError(f"resolve credential {credential_id}: {exc}") from exc

    data = _decode_json(raw)
    if not separator:
        return None if data is _UNDECODABLE else data

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ExecutionError(f"credential {credential_id}: data is not a JSON object")
    if field_name not in data:
        raise ExecutionError(
            f"credential {credential_id} has no field {json.dumps(field_name)}"
        )
    return data[field_name]


def _resolve_value(workspace_id: str, value: Any, decryptor: _CredentialDecryptor) -> Any:
    if isinstance(value, str):
        if value.startswith(CREDENTIAL_PREFIX):
            return _resolve_reference(workspace_id, value[len(CREDENTIAL_PREFIX):], decryptor)
        return value
    if isinstance(value, dict):
        return _resolve_map(workspace_id, value, decryptor)
    return value


def _resolve_map(
    workspace_id: str, config: Mapping[str, Any], decryptor: _CredentialDecryptor
) -> dict[str, Any]:
    return {key: _resolve_value(workspace_id, item, decryptor) for key, item in config.items()}


def resolve_credentials(
    workspace_id: str,
    config: Mapping[str, Any],
    decryptor: _CredentialDecryptor | None,
) -> Mapping[str, Any]:
    """Replace ``$cred:<id>`` and ``$cred:<id>.<field>`` strings with decrypted values.

    Nested objects are resolved too. Without a decryptor the config is returned unchanged.
    """
    if decryptor is None:
        return config
    return _resolve_map(workspace_id, config, decryptor)


def _record_execution(status: ExecutionStatus, started: float) -> None:
    metrics.EXECUTIONS_TOTAL.inc(status.value)
    metrics.EXECUTION_DURATION.observe((status.value,), time.monotonic() - started)


def _record_node(node_type: str, outcome: str, seconds: float) -> None:
    metrics.NODE_EXECUTIONS_TOTAL.inc(node_type, outcome)
    metrics.NODE_EXECUTION_DURATION.observe((node_type,), seconds)


class Executor:
    """Drives a full workflow execution and persists its state through a repository."""

    _sleep: ClassVar[Callable[[float], None]] = staticmethod(time.sleep)

    def __init__(
        self,
        repo: _Repository,
        registry: _NodeRegistry,
        credentials: _CredentialDecryptor | None = None,
        http_actions: _HTTPActionExecutor | None = None,
    ) -> None:
        self._repo = repo
        self._registry = registry
        self._credentials = credentials
        self._http_actions = http_actions

    def run_execution(self, execution_id: str) -> None:
        """Load the execution, run its DAG in order and record the final state."""
        wall_start = time.monotonic()

        try:
            execution = self._repo.get_execution_internal(execution_id)
        except Exception as exc:
            raise ExecutionError(f"load execution {execution_id}: {exc}") from exc

        version_id = execution.workflow_version_id
        try:
            raw_definition = self._repo.get_version_definition(version_id)
        except Exception as exc:
            raise ExecutionError(f"load version {version_id}: {exc}") from exc

        try:
            definition = parse_definition(raw_definition)
            order = topological_sort(definition)
        except DefinitionError as exc:
            self._finish(execution_id, ExecutionStatus.FAILED, None, str(exc))
            _record_execution(ExecutionStatus.FAILED, wall_start)
            raise ExecutionError(str(exc)) from exc

        try:
            self._repo.start_execution(execution_id)
        except Exception as exc:
            raise ExecutionError(f"start execution: {exc}") from exc

        self._write_log(execution_id, None, "info", f"starting execution: {len(order)} nodes")

        initial_input = _decode_json(execution.input)
        if initial_input is _UNDECODABLE:
            initial_input = None

        outputs: dict[str, Any] = {}
        for node in order:
            node_input = parent_outputs(node.id, definition.edges, outputs) or {"$": initial_input}
            node_start = time.monotonic()
            try:
                output = self._run_node_with_retry(execution, node, node_input)
            except Exception as exc:
                seconds = time.monotonic() - node_start
                _record_node(node.type, "failure", seconds)
                self._write_log(
                    execution_id,
                    node.id,
                    "error",
                    f"node {node.id} failed: {exc}",
                    self._duration_meta(seconds),
                )
                self._finish(
                    execution_id, ExecutionStatus.FAILED, None, f"node {node.id}: {exc}"
                )
                _record_execution(ExecutionStatus.FAILED, wall_start)
                raise ExecutionError(f"node {node.id} failed: {exc}") from exc

            seconds = time.monotonic() - node_start
            _record_node(node.type, "success", seconds)
            outputs[node.id] = output
            self._write_log(
                execution_id,
                node.id,
                "info",
                f"node {node.id} completed",
                self._duration_meta(seconds),
            )

        try:
            final_output: str | None = json.dumps(outputs, separators=(",", ":"))
        except (TypeError, ValueError):
            final_output = None
        self._finish(execution_id, ExecutionStatus.SUCCESS, final_output, "")
        _record_execution(ExecutionStatus.SUCCESS, wall_start)
        self._write_log(execution_id, None, "info", "execution completed successfully")

    def _run_node_with_retry(self, execution: _Execution, node: NodeConfig, node_input: Any) -> Any:
        max_attempts, delay_ms = 1, 0
        if node.retry is not None and node.retry.max_attempts > 1:
            max_attempts, delay_ms = node.retry.max_attempts, node.retry.delay_ms

        last_error: Exception | None = None
        for attempt in range(max_attempts):
            if attempt:
                self._write_log(
                    execution.id,
                    node.id,
                    "warn",
                    f"node {node.id} retry {attempt}/{max_attempts - 1} after error: {last_error}",
                )
                if delay_ms > 0:
                    self._sleep(delay_ms / 1000)
            try:
                return self._run_node(execution, node, node_input)
            except Exception as exc:
                last_error = exc
        assert last_error is not None
        raise last_error

    def _run_node(self, execution: _Execution, node: NodeConfig, node_input: Any) -> Any:
        if is_uuid(node.type) and self._http_actions is not None:
            return self._http_actions.execute(
                execution.workspace_id, node.type, node.config, node_input
            )

        config = resolve_credentials(execution.workspace_id, node.config, self._credentials)
        handler = self._lookup(node.type)
        if handler is None:
            return node_input

        context = ExecutionContext(
            workspace_id=execution.workspace_id,
            execution_id=execution.id,
            node_id=node.id,
            config=dict(config),
        )
        return handler.execute(context, node_input)

    def _lookup(self, node_type: str) -> _Node | None:
        try:
            return self._registry.get(node_type)
        except LookupError:
            logger.warning("unknown node type %s, using no-op", node_type)
        try:
            return self._registry.get(NO_OP_TYPE)
        except LookupError:
            return None

    @staticmethod
    def _duration_meta(seconds: float) -> str:
        return json.dumps({"duration_ms": int(seconds * 1000)})

    def _finish(
        self,
        execution_id: str,
        status: ExecutionStatus,
        output: str | None,
        error_message: str,
    ) -> None:
        try:
            self._repo.finish_execution(execution_id, status, output, error_message)
        except Exception:
            logger.exception("failed to mark execution %s as %s", execution_id, status.value)

    def _write_log(
        self,
        execution_id: str,
        node_id: str | None,
        level: str,
        message: str,
        metadata: str | None = None,
    ) -> None:
        try:
            self._repo.write_log(
                execution_id=execution_id,
                node_id=node_id,
                level=level,
                message=message,
                metadata=metadata,
            )
        except Exception:
            logger.exception("failed to write execution log")