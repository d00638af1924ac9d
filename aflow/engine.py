"""Workflow definitions: parsing, DAG ordering and parent lookups."""

from __future__ import annotations

import json
from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

TRIGGER_PREFIX = "trigger."


class DefinitionError(ValueError):
    """Raised when a workflow definition cannot be parsed or ordered."""


@dataclass(frozen=True)
class RetryConfig:
    """How often a node is attempted and how long to wait between attempts."""

    max_attempts: int = 0
    delay_ms: int = 0


@dataclass
class NodeConfig:
    """A single node of a workflow graph."""

    id: str
    type: str
    config: dict[str, Any] = field(default_factory=dict)
    retry: RetryConfig | None = None


@dataclass(frozen=True)
class Edge:
    """A directed edge from ``source`` to ``target``."""

    source: str
    target: str


@dataclass
class WorkflowDefinition:
    """The parsed DAG stored with a workflow version."""

    nodes: list[NodeConfig] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant {name}")


def _obj(value: Any) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ValueError("expected a JSON object")
    return value


def _list(value: Any) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError("expected a JSON array")
    return value


def _typed(obj: Mapping[str, Any], key: str, kind: type, empty: Any) -> Any:
    value = obj.get(key)
    if value is None:
        return empty
    if isinstance(value, bool) or not isinstance(value, kind):
        raise ValueError(f"field {key!r} must be of type {kind.__name__}")
    return value


def _node(value: Any) -> NodeConfig:
    obj = _obj(value)
    retry = None
    if obj.get("retry") is not None:
        spec = _obj(obj["retry"])
        retry = RetryConfig(_typed(spec, "max_attempts", int, 0), _typed(spec, "delay_ms", int, 0))
    return NodeConfig(
        id=_typed(obj, "id", str, ""),
        type=_typed(obj, "type", str, ""),
        config=dict(_obj(obj.get("config"))),
        retry=retry,
    )


def _edge(value: Any) -> Edge:
    obj = _obj(value)
    return Edge(_typed(obj, "from", str, ""), _typed(obj, "to", str, ""))


def parse_definition(raw: str | bytes | bytearray) -> WorkflowDefinition:
    """Parse a JSON workflow definition."""
    try:
        root = _obj(json.loads(raw, parse_constant=_reject_constant))
        return WorkflowDefinition(
            nodes=[_node(item) for item in _list(root.get("nodes"))],
            edges=[_edge(item) for item in _list(root.get("edges"))],
        )
    except ValueError as exc:
        raise DefinitionError(f"parse workflow definition: {exc}") from exc


def topological_sort(definition: WorkflowDefinition) -> list[NodeConfig]:
    """Return the nodes in execution order (Kahn's algorithm).

    Raises DefinitionError for edges to unknown nodes and for cycles.
    """
    node_map = {node.id: node for node in definition.nodes}
    in_degree = {node_id: 0 for node_id in node_map}
    adjacency: dict[str, list[str]] = defaultdict(list)
    for edge in definition.edges:
        for end in (edge.source, edge.target):
            if end not in node_map:
                raise DefinitionError(f"edge references unknown node {json.dumps(end)}")
        adjacency[edge.source].append(edge.target)
        in_degree[edge.target] += 1

    queue = deque(node_id for node_id, degree in in_degree.items() if degree == 0)
    ordered: list[NodeConfig] = []
    while queue:
        current = queue.popleft()
        ordered.append(node_map[current])
        for following in adjacency[current]:
            in_degree[following] -= 1
            if in_degree[following] == 0:
                queue.append(following)

    if len(ordered) != len(definition.nodes):
        raise DefinitionError("workflow definition contains a cycle")
    return ordered


def find_trigger_node(definition: WorkflowDefinition) -> NodeConfig | None:
    """Return the first node whose type starts with ``trigger.``, if any."""
    return next(
        (
            node
            for node in definition.nodes
            if len(node.type) > len(TRIGGER_PREFIX) and node.type.startswith(TRIGGER_PREFIX)
        ),
        None,
    )


def parent_outputs(
    node_id: str, edges: Iterable[Edge], outputs: Mapping[str, Any]
) -> dict[str, Any]:
    """Collect the outputs of all parents of ``node_id``, keyed by parent ID."""
    return {
        edge.source: outputs[edge.source]
        for edge in edges
        if edge.target == node_id and edge.source in outputs
    }