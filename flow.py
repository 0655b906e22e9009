"""Flow allocation for the node planner.

Each output port has a fixed capacity. Its capacity is handed out greedily to
the edges leaving it, largest target demand first. All comparisons happen in
items/min.

The allocator is a pure recomputation over the snapshot it is given: it keeps
no state between calls and never mutates the nodes or edges passed in.
"""

import math
from dataclasses import replace
from typing import Iterable, Optional

from graph_model import (
    INPUT,
    INPUT_PREFIX,
    OUTPUT,
    OUTPUT_PREFIX,
    Edge,
    EdgeData,
    Node,
    Port,
    RateUnit,
    port_key,
)
from validate import get_source_port, get_target_port, parse_handle_index

_SECONDS_PER_MINUTE = 60


def to_canonical_rate(value: float, unit: str) -> float:
    """Convert a rate to items/min.

    Precondition:
        unit is one of RateUnit.ALL

    Postcondition:
        items/min values are returned unchanged
        items/s values are multiplied by 60

    Raises:
        ValueError: if unit is not supported
    """
    if unit == RateUnit.ITEMS_PER_MIN:
        return value
    if unit == RateUnit.ITEMS_PER_SEC:
        return value * _SECONDS_PER_MINUTE
    raise ValueError(f"Unsupported rate unit '{unit}'")


def from_canonical_rate(value: float, unit: str) -> float:
    """Convert an items/min rate to unit.

    Precondition:
        unit is one of RateUnit.ALL

    Postcondition:
        from_canonical_rate(to_canonical_rate(v, unit), unit) == v

    Raises:
        ValueError: if unit is not supported
    """
    if unit == RateUnit.ITEMS_PER_MIN:
        return value
    if unit == RateUnit.ITEMS_PER_SEC:
        return value / _SECONDS_PER_MINUTE
    raise ValueError(f"Unsupported rate unit '{unit}'")


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def utilization_to_color(pct: float) -> str:
    """Map a utilization percentage to a red→green hex color.

    Precondition:
        pct is a finite number

    Postcondition:
        pct is clamped to [0, 100]
        0 maps to "#ff0000", 100 maps to "#00ff00", blue is always 00

    Args:
        pct: utilization percentage

    Returns:
        lowercase "#rrggbb" string
    """
    clamped = max(0.0, min(100.0, pct))
    red = _round_half_up(255 * (1 - clamped / 100))
    green = _round_half_up(255 * (clamped / 100))
    return f"#{red:02x}{green:02x}00"


def _port_capacity(port: Port) -> Optional[float]:
    """Port rate in items/min, or None if its unit is not supported."""
    if port.unit not in RateUnit.ALL:
        return None
    return to_canonical_rate(port.rate, port.unit)


def _build_port_index(nodes: Iterable[Node]) -> dict[tuple[str, str, int], Port]:
    """Index every port of every node by (node id, direction, position)."""
    index = {}
    for node in nodes:
        for position, port in enumerate(node.model.outputs):
            index[port_key(node.id, OUTPUT, position)] = port
        for position, port in enumerate(node.model.inputs):
            index[port_key(node.id, INPUT, position)] = port
    return index


def _resolve(
    ports: dict[tuple[str, str, int], Port],
    node_id: str,
    direction: str,
    handle: Optional[str],
    prefix: str,
) -> Optional[tuple[tuple[str, str, int], Port]]:
    """Resolve a handle to (port key, port), or None if it addresses no port."""
    if not handle or not handle.startswith(prefix):
        return None
    position = parse_handle_index(handle, prefix)
    if position is None:
        return None
    key = port_key(node_id, direction, position)
    port = ports.get(key)
    if port is None:
        return None
    return key, port


def _group_edges_by_source(
    edges: list[Edge], ports: dict[tuple[str, str, int], Port]
) -> dict[tuple[str, str, int], tuple[float, list[tuple[int, float]]]]:
    """Group resolvable edges by the source port their handle resolves to.

    Postcondition:
        groups are keyed by port_key, so "out-0" and "out-00" share a group
        each group holds the source capacity and (edge position, target
        demand) pairs in original order
        edges whose ports cannot be resolved or whose units are unsupported
        are left out
    """
    groups = {}
    for position, edge in enumerate(edges):
        source = _resolve(ports, edge.source, OUTPUT, edge.source_handle, OUTPUT_PREFIX)
        target = _resolve(ports, edge.target, INPUT, edge.target_handle, INPUT_PREFIX)
        if source is None or target is None:
            continue
        source_key, source_port = source
        capacity = _port_capacity(source_port)
        demand = _port_capacity(target[1])
        if capacity is None or demand is None:
            continue
        groups.setdefault(source_key, (capacity, []))[1].append((position, demand))
    return groups


def _allocate_group(
    capacity: float, members: list[tuple[int, float]]
) -> list[tuple[int, float, float]]:
    """Hand out one source port's capacity to its edges.

    Precondition:
        members are (edge position, target demand) pairs in original edge order

    Postcondition:
        members are served in descending target demand, ties in original order
        each edge gets min(remaining capacity, its target demand)
        utilization is the cumulative allocation so far as a % of capacity

    Returns:
        list of (edge position, flow per min, utilization pct)
    """
    ordered = sorted(members, key=lambda member: -member[1])
    remaining = capacity
    allocated = 0.0
    result = []
    for position, demand in ordered:
        flow = min(remaining, demand)
        remaining -= flow
        allocated += flow
        utilization = (allocated / capacity) * 100 if capacity > 0 else 0.0
        result.append((position, flow, utilization))
    return result


def calculate_flows(nodes: Iterable[Node], edges: Iterable[Edge]) -> list[Edge]:
    """Recompute the flow data of every edge from scratch.

    Precondition:
        none (malformed ports and edges are tolerated)

    Postcondition:
        returns a new list of edges in the original order
        the sum of flow over edges sharing a source port never exceeds that
        port's capacity
        every flow lies within [0, min(source capacity, target demand)]
        edges referencing a missing node or port, or a port with an
        unsupported unit, get data=None
        inputs are not modified

    Args:
        nodes: every node in the graph
        edges: every edge in the graph

    Returns:
        new edge list with recomputed EdgeData
    """
    edge_list = list(edges)
    ports = _build_port_index(nodes)
    computed: dict[int, EdgeData] = {}

    for capacity, members in _group_edges_by_source(edge_list, ports).values():
        for position, flow, utilization in _allocate_group(capacity, members):
            edge = edge_list[position]
            computed[position] = EdgeData(
                source_port_id=edge.source_handle,
                target_port_id=edge.target_handle,
                flow_per_min=flow,
                utilization_pct=utilization,
                color_hex=utilization_to_color(utilization),
            )

    return [
        replace(edge, data=computed.get(position))
        for position, edge in enumerate(edge_list)
    ]


def _allocated_flow(edges: Iterable[Edge]) -> float:
    return sum(edge.data.flow_per_min for edge in edges if edge.data is not None)


def _same_port(handle: Optional[str], other: Optional[str], prefix: str) -> bool:
    """True if both handles address the same port index, e.g. "out-0" and "out-00"."""
    if not handle or not other or not handle.startswith(prefix) or not other.startswith(prefix):
        return False
    index = parse_handle_index(handle, prefix)
    return index is not None and index == parse_handle_index(other, prefix)


def calculate_source_utilization(node: Node, source_handle: str, edges: Iterable[Edge]) -> float:
    """Share of an output port's capacity allocated to its edges, in percent.

    Postcondition:
        returns 0 if the handle does not resolve, the unit is unsupported or
        the capacity is 0
    """
    port = get_source_port(node, source_handle)
    if port is None:
        return 0.0
    capacity = _port_capacity(port)
    if not capacity:
        return 0.0
    leaving = [
        e for e in edges
        if e.source == node.id and _same_port(e.source_handle, source_handle, OUTPUT_PREFIX)
    ]
    return (_allocated_flow(leaving) / capacity) * 100


def calculate_target_utilization(node: Node, target_handle: str, edges: Iterable[Edge]) -> float:
    """Inbound flow on an input port as a percentage of its demand.

    Postcondition:
        returns 0 if the handle does not resolve, the unit is unsupported or
        the demand is 0
        may exceed 100 when several sources feed the same input
    """
    port = get_target_port(node, target_handle)
    if port is None:
        return 0.0
    demand = _port_capacity(port)
    if not demand:
        return 0.0
    arriving = [
        e for e in edges
        if e.target == node.id and _same_port(e.target_handle, target_handle, INPUT_PREFIX)
    ]
    return (_allocated_flow(arriving) / demand) * 100
