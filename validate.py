"""Connection validation for the node planner.

Decides whether a proposed edge from an output handle to an input handle may
be admitted to the graph. Every function here is pure: a rejection is a
returned value, never an exception, so the editor can call these while the
user is still dragging a connection.
"""

import re
from dataclasses import dataclass
from typing import Iterable, Optional

from graph_model import INPUT_PREFIX, OUTPUT_PREFIX, Edge, Node, Port

_INDEX_PATTERN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class ValidationResult:
    """Verdict on a proposed connection"""
    is_valid: bool
    reason: Optional[str] = None


_ACCEPTED = ValidationResult(is_valid=True)


def _reject(reason: str) -> ValidationResult:
    return ValidationResult(is_valid=False, reason=reason)


def parse_handle_index(handle: Optional[str], prefix: str) -> Optional[int]:
    """Extract the port index from a positional handle.

    Precondition:
        prefix is OUTPUT_PREFIX or INPUT_PREFIX

    Postcondition:
        returns the non-negative integer written after the last occurrence of
        prefix in handle
        returns None if handle is None, lacks the prefix, or the suffix is not
        made only of ASCII digits

    Args:
        handle: handle string such as "out-12"
        prefix: handle prefix to strip

    Returns:
        port index, or None if the handle does not address a port
    """
    if not handle:
        return None
    position = handle.rfind(prefix)
    if position < 0:
        return None
    suffix = handle[position + len(prefix):]
    if not _INDEX_PATTERN.fullmatch(suffix):
        return None
    return int(suffix)


def get_source_port(node: Node, source_handle: Optional[str]) -> Optional[Port]:
    """Resolve an output handle to the port it addresses on node.

    Returns:
        the output Port, or None if the handle is malformed or out of range
    """
    if not source_handle or not source_handle.startswith(OUTPUT_PREFIX):
        return None
    index = parse_handle_index(source_handle, OUTPUT_PREFIX)
    if index is None or index >= len(node.model.outputs):
        return None
    return node.model.outputs[index]


def get_target_port(node: Node, target_handle: Optional[str]) -> Optional[Port]:
    """Resolve an input handle to the port it addresses on node.

    Returns:
        the input Port, or None if the handle is malformed or out of range
    """
    if not target_handle or not target_handle.startswith(INPUT_PREFIX):
        return None
    index = parse_handle_index(target_handle, INPUT_PREFIX)
    if index is None or index >= len(node.model.inputs):
        return None
    return node.model.inputs[index]


def are_ports_compatible(source_port: Port, target_port: Port) -> bool:
    """Ports are compatible when they carry the same resource kind."""
    return source_port.kind == target_port.kind


def validate_connection(
    source_node: Node,
    target_node: Node,
    source_handle: Optional[str],
    target_handle: Optional[str],
) -> ValidationResult:
    """Check whether an output handle may be connected to an input handle.

    Precondition:
        source_node and target_node are Node objects

    Postcondition:
        returns the first failing rule, checked in this order:
        missing handles, source direction, target direction, self-connection,
        handle index syntax, port existence, port kind compatibility
        returns an accepted result with no reason when every rule passes

    Args:
        source_node: node owning the output port
        target_node: node owning the input port
        source_handle: output handle ("out-N")
        target_handle: input handle ("in-N")

    Returns:
        ValidationResult with is_valid and, on rejection, a reason
    """
    if not source_handle or not target_handle:
        return _reject("missing handles")

    if not source_handle.startswith(OUTPUT_PREFIX):
        return _reject("source handle must be an output")

    if not target_handle.startswith(INPUT_PREFIX):
        return _reject("target handle must be an input")

    if source_node.id == target_node.id:
        return _reject("self-connection not allowed")

    source_index = parse_handle_index(source_handle, OUTPUT_PREFIX)
    target_index = parse_handle_index(target_handle, INPUT_PREFIX)
    if source_index is None or target_index is None:
        return _reject("invalid handle index")

    if (
        source_index >= len(source_node.model.outputs)
        or target_index >= len(target_node.model.inputs)
    ):
        return _reject("port does not exist")

    source_port = source_node.model.outputs[source_index]
    target_port = target_node.model.inputs[target_index]
    if not are_ports_compatible(source_port, target_port):
        return _reject(f"incompatible port kinds: {source_port.kind} → {target_port.kind}")

    return _ACCEPTED


def is_connection_duplicate(
    edges: Iterable[Edge],
    source: str,
    target: str,
    source_handle: Optional[str],
    target_handle: Optional[str],
) -> bool:
    """Check whether an edge with the same endpoints is already present."""
    key = (source, source_handle, target, target_handle)
    return any(edge.connection_key() == key for edge in edges)


def validate_full_connection(
    source_node: Node,
    target_node: Node,
    source_handle: Optional[str],
    target_handle: Optional[str],
    existing_edges: Iterable[Edge],
) -> ValidationResult:
    """Validate a connection and additionally reject duplicates.

    Precondition:
        existing_edges is the graph's current edge collection

    Postcondition:
        returns the validate_connection verdict if it rejects
        otherwise rejects with "duplicate connection" if the same
        (source, source_handle, target, target_handle) edge exists

    Returns:
        ValidationResult
    """
    verdict = validate_connection(source_node, target_node, source_handle, target_handle)
    if not verdict.is_valid:
        return verdict

    if is_connection_duplicate(
        existing_edges, source_node.id, target_node.id, source_handle, target_handle
    ):
        return _reject("duplicate connection")

    return _ACCEPTED
