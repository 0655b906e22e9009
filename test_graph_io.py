"""Tests for graph_io module"""

import json
import os
import tempfile

from pytest import raises

from blocks import create_node
from graph_io import (
    FORMAT_VERSION,
    GraphImport,
    export_graph_to_json,
    graph_from_import,
    import_graph_from_json,
    load_graph,
    save_graph,
    validate_imported_graph,
)
from graph_model import Edge


def _graph():
    nodes = [create_node("miner", "Miner", (0.0, 0.0)), create_node("smelter", "Smelter", (200.0, 0.0))]
    edges = [Edge(id="e1", source="miner", target="smelter", source_handle="out-0", target_handle="in-0")]
    return nodes, edges


def _node_dict(node_id, block_type="Miner"):
    return {"id": node_id, "type": "block", "position": {"x": 0, "y": 0},
            "data": {"model": {"type": block_type, "name": block_type, "inputs": [], "outputs": []}}}


def test_export_document_shape():
    """exports carry nodes, edges and versioned metadata"""
    nodes, edges = _graph()
    document = json.loads(export_graph_to_json(nodes, edges, name="Iron", author="me", tags=["iron"]))

    assert len(document["nodes"]) == 2
    assert document["edges"][0]["sourceHandle"] == "out-0"
    assert document["metadata"]["version"] == FORMAT_VERSION
    assert document["metadata"]["name"] == "Iron"
    assert document["metadata"]["author"] == "me"
    assert document["metadata"]["tags"] == ["iron"]
    assert isinstance(document["metadata"]["timestamp"], int)
    assert "description" not in document["metadata"]


def test_export_then_import():
    """an exported graph imports back into the same nodes and edges"""
    nodes, edges = _graph()
    graph = import_graph_from_json(export_graph_to_json(nodes, edges))

    assert validate_imported_graph(graph).is_valid
    imported_nodes, imported_edges = graph_from_import(graph)
    assert imported_nodes == nodes
    assert imported_edges == edges


def test_import_invalid_json():
    """text that is not JSON is rejected"""
    with raises(ValueError, match="Invalid JSON"):
        import_graph_from_json("{nodes: ")


def test_import_requires_object():
    """the document must be an object"""
    with raises(ValueError, match="expected an object"):
        import_graph_from_json("[]")


def test_import_requires_nodes_and_edges():
    """nodes and edges must be lists"""
    with raises(ValueError, match="nodes missing or invalid"):
        import_graph_from_json('{"edges": []}')
    with raises(ValueError, match="edges missing or invalid"):
        import_graph_from_json('{"nodes": [], "edges": {}}')


def test_validate_reports_node_problems():
    """nodes without id, model or block type are reported"""
    graph = GraphImport(
        nodes=[
            {"data": {"model": {"type": "Miner"}}},
            {"id": "a", "data": {}},
            {"id": "b", "data": {"model": {"name": "Typeless"}}},
        ],
        edges=[],
    )
    result = validate_imported_graph(graph)

    assert not result.is_valid
    assert "Node 0: missing id" in result.errors
    assert "Node a: missing model data" in result.errors
    assert "Node b: missing block type" in result.errors


def test_validate_reports_edge_problems():
    """edges without id or pointing at unknown nodes are reported"""
    graph = GraphImport(
        nodes=[_node_dict("a")],
        edges=[
            {"source": "a", "target": "a"},
            {"id": "e2", "source": "a"},
            {"id": "e3", "source": "a", "target": "ghost"},
        ],
    )
    result = validate_imported_graph(graph)

    assert "Edge 0: missing id" in result.errors
    assert "Edge e2: missing source or target" in result.errors
    assert "Edge e3: unknown target node (ghost)" in result.errors
    assert not any("unknown source node" in error for error in result.errors)


def test_validate_warns_on_other_version():
    """a different format version is a warning, not an error"""
    graph = GraphImport(nodes=[_node_dict("a")], edges=[], metadata={"version": "0.9.0"})
    result = validate_imported_graph(graph)

    assert result.is_valid
    assert result.warnings == ["Different format version detected: 0.9.0"]


def test_graph_from_import_rejects_invalid():
    """invalid graphs raise with every error joined"""
    graph = GraphImport(nodes=[], edges=[{"id": "e1", "source": "x", "target": "y"}])
    with raises(ValueError, match="unknown source node"):
        graph_from_import(graph)


def test_save_and_load_graph():
    """saved graphs load back with their metadata"""
    nodes, edges = _graph()
    with tempfile.TemporaryDirectory() as directory:
        path = os.path.join(directory, "graph.json")
        save_graph(path, nodes, edges, name="Iron line")

        loaded_nodes, loaded_edges, metadata = load_graph(path)

    assert loaded_nodes == nodes
    assert loaded_edges == edges
    assert metadata["name"] == "Iron line"


def test_load_graph_missing_file():
    """a missing file loads as None"""
    assert load_graph("/nonexistent/graph.json") is None
