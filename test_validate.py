"""Tests for validate module"""

from graph_model import BlockModel, Edge, Node, Port
from validate import (
    ValidationResult,
    are_ports_compatible,
    get_source_port,
    get_target_port,
    is_connection_duplicate,
    parse_handle_index,
    validate_connection,
    validate_full_connection,
)


def _port(port_id, kind="item", rate=30):
    return Port(id=port_id, name=port_id, kind=kind, unit="items/min", rate=rate)


def _node(node_id, inputs=(), outputs=()):
    return Node(
        id=node_id,
        model=BlockModel(type="Miner", name=f"Node {node_id}", inputs=tuple(inputs), outputs=tuple(outputs)),
    )


def _pair(source_kind="item", target_kind="item"):
    source = _node("source", outputs=[_port("out-0", source_kind, 60)])
    target = _node("target", inputs=[_port("in-0", target_kind, 30)])
    return source, target


def _edge(edge_id, source, target, source_handle="out-0", target_handle="in-0"):
    return Edge(id=edge_id, source=source, target=target, source_handle=source_handle, target_handle=target_handle)


# ========== handle parsing ==========


def test_parse_handle_index_basic():
    """handles yield the index after the prefix"""
    assert parse_handle_index("out-0", "out-") == 0
    assert parse_handle_index("in-3", "in-") == 3
    assert parse_handle_index("out-12", "out-") == 12


def test_parse_handle_index_uses_last_prefix():
    """the suffix after the last prefix occurrence is used"""
    assert parse_handle_index("out-out-4", "out-") == 4


def test_parse_handle_index_invalid():
    """non-numeric, negative, empty or missing suffixes give None"""
    assert parse_handle_index("out-x", "out-") is None
    assert parse_handle_index("out-", "out-") is None
    assert parse_handle_index("out--1", "out-") is None
    assert parse_handle_index("out-1.5", "out-") is None
    assert parse_handle_index("out- 1", "out-") is None
    assert parse_handle_index("in-0", "out-") is None
    assert parse_handle_index(None, "out-") is None
    assert parse_handle_index("", "out-") is None


def test_parse_handle_index_rejects_non_ascii_digits():
    """only ASCII digits count as an index"""
    assert parse_handle_index("out-²", "out-") is None
    assert parse_handle_index("out-٣", "out-") is None


def test_get_ports():
    """handles resolve to ports by position"""
    source, target = _pair()
    assert get_source_port(source, "out-0").id == "out-0"
    assert get_target_port(target, "in-0").id == "in-0"
    assert get_source_port(source, "out-1") is None
    assert get_target_port(target, "out-0") is None
    assert get_source_port(source, "in-out-0") is None
    assert get_target_port(target, "out-in-0") is None


def test_are_ports_compatible():
    """ports are compatible only with the same kind"""
    assert are_ports_compatible(_port("a", "fluid"), _port("b", "fluid"))
    assert not are_ports_compatible(_port("a", "item"), _port("b", "power"))


# ========== validate_connection ==========


def test_accepts_valid_connection():
    """out->in between compatible ports is accepted without reason"""
    source, target = _pair()
    result = validate_connection(source, target, "out-0", "in-0")
    assert result == ValidationResult(is_valid=True)
    assert result.reason is None


def test_rejects_missing_handles():
    """a missing handle is rejected first"""
    source, target = _pair()
    assert validate_connection(source, target, None, "in-0").reason == "missing handles"
    assert validate_connection(source, target, "out-0", None).reason == "missing handles"
    assert validate_connection(source, target, "", "in-0").reason == "missing handles"


def test_rejects_input_as_source():
    """the source handle must be an output"""
    source, target = _pair()
    result = validate_connection(source, target, "in-0", "in-0")
    assert not result.is_valid
    assert result.reason == "source handle must be an output"


def test_rejects_reversed_direction():
    """in -> out is rejected on the source handle"""
    source, target = _pair()
    result = validate_connection(source, target, "in-0", "out-0")
    assert not result.is_valid
    assert result.reason == "source handle must be an output"


def test_rejects_output_as_target():
    """the target handle must be an input"""
    source, target = _pair()
    result = validate_connection(source, target, "out-0", "out-0")
    assert not result.is_valid
    assert result.reason == "target handle must be an input"


def test_rejects_invalid_prefix():
    """an unknown handle format is not an output"""
    source, target = _pair()
    result = validate_connection(source, target, "invalid-0", "in-0")
    assert result.reason == "source handle must be an output"


def test_rejects_self_connection():
    """a node cannot feed itself, even through compatible ports"""
    node = _node("node", inputs=[_port("in-0")], outputs=[_port("out-0")])
    result = validate_connection(node, node, "out-0", "in-0")
    assert not result.is_valid
    assert result.reason == "self-connection not allowed"


def test_self_connection_checked_before_index():
    """self-connection wins over a malformed index"""
    node = _node("node")
    result = validate_connection(node, node, "out-x", "in-0")
    assert result.reason == "self-connection not allowed"


def test_rejects_invalid_index():
    """non-numeric suffixes are rejected"""
    source, target = _pair()
    assert validate_connection(source, target, "out-x", "in-0").reason == "invalid handle index"
    assert validate_connection(source, target, "out-0", "in-").reason == "invalid handle index"


def test_rejects_missing_port():
    """an index past the end of the port list is rejected"""
    source, target = _pair()
    assert validate_connection(source, target, "out-1", "in-0").reason == "port does not exist"
    assert validate_connection(source, target, "out-0", "in-7").reason == "port does not exist"


def test_multi_digit_handles():
    """multi-digit indices address later ports"""
    source = _node("source", outputs=[_port(f"out-{i}") for i in range(13)])
    target = _node("target", inputs=[_port("in-0")])
    assert validate_connection(source, target, "out-12", "in-0").is_valid


def test_rejects_incompatible_kinds():
    """item -> fluid is rejected citing both kinds"""
    source, target = _pair("item", "fluid")
    result = validate_connection(source, target, "out-0", "in-0")
    assert not result.is_valid
    assert result.reason == "incompatible port kinds: item → fluid"


def test_accepts_matching_power_ports():
    """power ports connect to power ports"""
    source, target = _pair("power", "power")
    assert validate_connection(source, target, "out-0", "in-0").is_valid


# ========== duplicates ==========


def test_is_connection_duplicate():
    """duplicates match on all four endpoint fields"""
    edges = [_edge("e1", "source", "target")]
    assert is_connection_duplicate(edges, "source", "target", "out-0", "in-0")
    assert not is_connection_duplicate(edges, "source", "target", "out-0", "in-1")
    assert not is_connection_duplicate(edges, "source2", "target2", "out-0", "in-0")
    assert not is_connection_duplicate([], "source", "target", "out-0", "in-0")


def test_full_validation_rejects_duplicate():
    """the second identical connection is rejected"""
    source, target = _pair()
    edges = []

    first = validate_full_connection(source, target, "out-0", "in-0", edges)
    assert first.is_valid
    edges.append(_edge("e1", "source", "target"))

    second = validate_full_connection(source, target, "out-0", "in-0", edges)
    assert not second.is_valid
    assert second.reason == "duplicate connection"


def test_full_validation_reports_base_rejection_first():
    """base rules are checked before duplicates"""
    source, target = _pair("item", "fluid")
    edges = [_edge("e1", "source", "target")]
    result = validate_full_connection(source, target, "out-0", "in-0", edges)
    assert result.reason == "incompatible port kinds: item → fluid"


def test_validation_has_no_side_effects():
    """validation does not touch the edge collection"""
    source, target = _pair()
    edges = [_edge("e1", "other", "target")]
    validate_full_connection(source, target, "out-0", "in-0", edges)
    assert edges == [_edge("e1", "other", "target")]
