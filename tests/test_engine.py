import pytest

from aflow.engine import (
    DefinitionError,
    Edge,
    NodeConfig,
    RetryConfig,
    WorkflowDefinition,
    find_trigger_node,
    parent_outputs,
    parse_definition,
    topological_sort,
)


def make_def(nodes, edges=()):
    return WorkflowDefinition(nodes=list(nodes), edges=list(edges))


def node(node_id, node_type):
    return NodeConfig(id=node_id, type=node_type)


def ids(nodes):
    return [n.id for n in nodes]


def test_topological_sort_linear():
    d = make_def(
        [node("a", "http-request"), node("b", "transform"), node("c", "no-op")],
        [Edge("a", "b"), Edge("b", "c")],
    )
    assert ids(topological_sort(d)) == ["a", "b", "c"]


def test_topological_sort_linear_declared_out_of_order():
    d = make_def(
        [node("c", "no-op"), node("a", "no-op"), node("b", "no-op")],
        [Edge("a", "b"), Edge("b", "c")],
    )
    assert ids(topological_sort(d)) == ["a", "b", "c"]


def test_topological_sort_single():
    d = make_def([node("only", "no-op")])
    order = topological_sort(d)
    assert ids(order) == ["only"]


def test_topological_sort_diamond():
    d = make_def(
        [node("a", "no-op"), node("b", "no-op"), node("c", "no-op"), node("d", "no-op")],
        [Edge("a", "b"), Edge("a", "c"), Edge("b", "d"), Edge("c", "d")],
    )
    order = topological_sort(d)
    assert len(order) == 4
    assert order[0].id == "a"
    assert order[3].id == "d"


def test_topological_sort_cycle():
    d = make_def(
        [node("a", "no-op"), node("b", "no-op")],
        [Edge("a", "b"), Edge("b", "a")],
    )
    with pytest.raises(DefinitionError, match="cycle"):
        topological_sort(d)


def test_topological_sort_unknown_node():
    d = make_def([node("a", "no-op")], [Edge("a", "ghost")])
    with pytest.raises(DefinitionError, match="ghost"):
        topological_sort(d)


def test_topological_sort_keeps_node_objects():
    retry = RetryConfig(max_attempts=3, delay_ms=10)
    original = NodeConfig(id="x", type="http-request", config={"url": "u"}, retry=retry)
    order = topological_sort(make_def([original]))
    assert order[0] is original


def test_parse_definition_valid():
    raw = """{
        "nodes": [{"id":"n1","type":"http-request","config":{"url":"https://x.com"}}],
        "edges": []
    }"""
    d = parse_definition(raw)
    assert len(d.nodes) == 1
    assert d.nodes[0].id == "n1"
    assert d.nodes[0].config == {"url": "https://x.com"}
    assert d.edges == []


def test_parse_definition_invalid():
    with pytest.raises(DefinitionError):
        parse_definition("{bad json}")


def test_parse_definition_edges_and_retry():
    raw = b"""{
        "nodes": [
            {"id":"a","type":"no-op","retry":{"max_attempts":3,"delay_ms":250}},
            {"id":"b","type":"no-op","config":null}
        ],
        "edges": [{"from":"a","to":"b"}]
    }"""
    d = parse_definition(raw)
    assert d.nodes[0].retry == RetryConfig(max_attempts=3, delay_ms=250)
    assert d.nodes[1].retry is None
    assert d.nodes[1].config == {}
    assert d.edges == [Edge("a", "b")]


def test_parse_definition_null_is_empty():
    assert parse_definition("null") == WorkflowDefinition()


def test_parse_definition_wrong_types():
    with pytest.raises(DefinitionError):
        parse_definition('{"nodes": {"id": "a"}}')
    with pytest.raises(DefinitionError):
        parse_definition('{"nodes": [{"id": 5, "type": "no-op"}]}')
    with pytest.raises(DefinitionError):
        parse_definition('{"nodes": [{"id": "a", "retry": {"max_attempts": 1.5}}]}')


def test_find_trigger_node():
    d = make_def([node("a", "no-op"), node("t", "trigger.cron"), node("w", "trigger.webhook")])
    found = find_trigger_node(d)
    assert found is not None
    assert found.id == "t"


def test_find_trigger_node_requires_suffix():
    d = make_def([node("a", "trigger."), node("b", "no-op")])
    assert find_trigger_node(d) is None


def test_parent_outputs_single_parent():
    edges = [Edge("a", "b")]
    outputs = {"a": {"key": "val"}}
    parents = parent_outputs("b", edges, outputs)
    assert parents == {"a": {"key": "val"}}


def test_parent_outputs_no_parents():
    edges = [Edge("a", "b")]
    outputs = {"a": "data"}
    assert parent_outputs("a", edges, outputs) == {}


def test_parent_outputs_multiple_parents():
    edges = [Edge("a", "c"), Edge("b", "c")]
    outputs = {"a": "outA", "b": "outB"}
    parents = parent_outputs("c", edges, outputs)
    assert len(parents) == 2
    assert parents == {"a": "outA", "b": "outB"}


def test_parent_outputs_skips_parents_without_output():
    edges = [Edge("a", "c"), Edge("b", "c")]
    assert parent_outputs("c", edges, {"a": 1}) == {"a": 1}