"""Render a planner graph as a graphviz diagram."""

from graphviz import Digraph

from graph_model import Edge, Node

_UNALLOCATED_COLOR = "grey"
_DEFAULT_NODE_COLOR = "lightblue"


def _format_rate(value: float) -> str:
    """Format a rate without a trailing .0, e.g. 30.0 -> "30", 22.5 -> "22.5"."""
    return f"{value:g}"


def _node_label(node: Node) -> str:
    """Build a multi-line label: block name, then its input and output ports."""
    lines = [node.model.name]
    for index, port in enumerate(node.model.inputs):
        lines.append(f"in-{index}: {port.name} {_format_rate(port.rate)} {port.unit}")
    for index, port in enumerate(node.model.outputs):
        lines.append(f"out-{index}: {port.name} {_format_rate(port.rate)} {port.unit}")
    return "\n".join(lines)


def _edge_attributes(edge: Edge) -> dict[str, str]:
    """Color and label an edge from its allocated flow.

    Postcondition:
        allocated edges use color_hex and a "<flow>/min (<util>%)" label
        edges without flow data are grey and dashed
    """
    if edge.data is None:
        return {"color": _UNALLOCATED_COLOR, "style": "dashed"}
    return {
        "color": edge.data.color_hex,
        "label": f"{_format_rate(round(edge.data.flow_per_min, 2))}/min "
                 f"({edge.data.utilization_pct:.0f}%)",
        "penwidth": "2",
    }


def render_graph(nodes: list[Node], edges: list[Edge]) -> Digraph:
    """Build a graphviz diagram of the graph.

    Precondition:
        edges carry flow data from calculate_flows (or None)

    Postcondition:
        returns Digraph with one box per node and one arrow per edge
        arrows whose endpoints are not in nodes are omitted

    Args:
        nodes: graph nodes
        edges: graph edges

    Returns:
        graphviz Digraph laid out left to right
    """
    dot = Digraph()
    dot.attr(rankdir="LR")

    node_ids = set()
    for node in nodes:
        node_ids.add(node.id)
        dot.node(
            node.id,
            _node_label(node),
            shape="box",
            style="filled",
            fillcolor=node.model.color or _DEFAULT_NODE_COLOR,
        )

    for edge in edges:
        if edge.source not in node_ids or edge.target not in node_ids:
            continue
        dot.edge(edge.source, edge.target, **_edge_attributes(edge))

    return dot
