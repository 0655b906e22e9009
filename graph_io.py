"""Graph import/export as JSON documents and file persistence."""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from graph_model import Edge, Node, edge_from_dict, edge_to_dict, node_from_dict, node_to_dict

_LOGGER = logging.getLogger("satisplanner")

FORMAT_VERSION = "1.0.0"
DEFAULT_GRAPH_NAME = "Satisfactory graph"


@dataclass
class GraphImport:
    """Graph read from a JSON document, before validation"""
    nodes: List[dict]
    edges: List[dict]
    metadata: dict = field(default_factory=dict)


@dataclass
class ImportValidationResult:
    """Result of imported graph validation"""
    is_valid: bool
    warnings: List[str]
    errors: List[str]


def export_graph_to_json(
    nodes: list[Node],
    edges: list[Edge],
    name: str = DEFAULT_GRAPH_NAME,
    description: Optional[str] = None,
    author: Optional[str] = None,
    tags: Optional[list[str]] = None,
) -> str:
    """Serialize a graph to a JSON document.

    Postcondition:
        returns indented JSON with nodes, edges and metadata
        metadata carries the format version and a timestamp in milliseconds

    Returns:
        JSON string
    """
    metadata: dict[str, Any] = {
        "version": FORMAT_VERSION,
        "timestamp": int(time.time() * 1000),
        "name": name,
        "tags": list(tags or []),
    }
    if description is not None:
        metadata["description"] = description
    if author is not None:
        metadata["author"] = author

    document = {
        "nodes": [node_to_dict(node) for node in nodes],
        "edges": [edge_to_dict(edge) for edge in edges],
        "metadata": metadata,
    }
    return json.dumps(document, indent=2, ensure_ascii=False)


def import_graph_from_json(text: str) -> GraphImport:
    """Parse a JSON document into a GraphImport.

    Precondition:
        text is a string

    Postcondition:
        returns GraphImport whose nodes and edges are lists of dicts

    Raises:
        ValueError: if text is not JSON or nodes/edges are missing
    """
    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValueError("Invalid JSON") from exc

    if not isinstance(document, dict):
        raise ValueError("Invalid format: expected an object")
    if not isinstance(document.get("nodes"), list):
        raise ValueError("Invalid format: nodes missing or invalid")
    if not isinstance(document.get("edges"), list):
        raise ValueError("Invalid format: edges missing or invalid")

    return GraphImport(
        nodes=document["nodes"],
        edges=document["edges"],
        metadata=document.get("metadata") or {},
    )


def _validate_imported_nodes(nodes: list, errors: list[str]) -> set[str]:
    """Check node entries, returning the ids that were found."""
    node_ids = set()
    for index, node in enumerate(nodes):
        if not isinstance(node, dict):
            errors.append(f"Node {index}: must be an object")
            continue
        label = node.get("id") or index
        if not node.get("id"):
            errors.append(f"Node {index}: missing id")
        else:
            node_ids.add(node["id"])
        model = (node.get("data") or {}).get("model")
        if not model:
            errors.append(f"Node {label}: missing model data")
        elif not isinstance(model, dict) or not model.get("type"):
            errors.append(f"Node {label}: missing block type")
    return node_ids


def validate_imported_graph(graph: GraphImport) -> ImportValidationResult:
    """Check an imported graph for structural problems.

    Postcondition:
        errors list missing node/edge ids, missing models or block types,
        missing edge endpoints and edges pointing at unknown nodes
        warnings list a format version other than the current one

    Returns:
        ImportValidationResult
    """
    errors: list[str] = []
    warnings: list[str] = []

    node_ids = _validate_imported_nodes(graph.nodes, errors)

    for index, edge in enumerate(graph.edges):
        if not isinstance(edge, dict):
            errors.append(f"Edge {index}: must be an object")
            continue
        label = edge.get("id") or index
        if not edge.get("id"):
            errors.append(f"Edge {index}: missing id")
        if not edge.get("source") or not edge.get("target"):
            errors.append(f"Edge {label}: missing source or target")
        if edge.get("source") not in node_ids:
            errors.append(f"Edge {label}: unknown source node ({edge.get('source')})")
        if edge.get("target") not in node_ids:
            errors.append(f"Edge {label}: unknown target node ({edge.get('target')})")

    version = graph.metadata.get("version")
    if version and version != FORMAT_VERSION:
        warnings.append(f"Different format version detected: {version}")

    return ImportValidationResult(is_valid=len(errors) == 0, warnings=warnings, errors=errors)


def graph_from_import(graph: GraphImport) -> tuple[list[Node], list[Edge]]:
    """Convert a validated GraphImport into model objects.

    Raises:
        ValueError: if the graph does not validate
    """
    validation = validate_imported_graph(graph)
    if not validation.is_valid:
        raise ValueError("; ".join(validation.errors))
    for warning in validation.warnings:
        _LOGGER.warning(warning)
    nodes = [node_from_dict(node) for node in graph.nodes]
    edges = [edge_from_dict(edge) for edge in graph.edges]
    return nodes, edges


def save_graph(path: str, nodes: list[Node], edges: list[Edge], name: Optional[str] = None) -> None:
    """Write a graph to path.

    Postcondition:
        file at path holds the export document of the graph
    """
    document = export_graph_to_json(nodes, edges, name=name or DEFAULT_GRAPH_NAME)
    with open(path, "w", encoding="utf-8") as f:
        f.write(document)
    _LOGGER.debug("Graph saved to %s", path)


def load_graph(path: str) -> Optional[tuple[list[Node], list[Edge], dict]]:
    """Read a graph saved with save_graph.

    Postcondition:
        returns None if path does not exist
        otherwise returns (nodes, edges, metadata)

    Raises:
        ValueError: if the file content is not a valid graph
    """
    if not os.path.exists(path):
        return None
    with open(path, "r", encoding="utf-8") as f:
        graph = import_graph_from_json(f.read())
    nodes, edges = graph_from_import(graph)
    return nodes, edges, graph.metadata
