"""Controller for the planner graph - no GUI dependencies"""

import logging
from dataclasses import dataclass, replace
from typing import List, Optional

from diagram import render_graph
from flow import calculate_flows
from graph_io import load_graph, save_graph
from graph_model import BlockModel, Edge, Node
from history import DEFAULT_MAX_HISTORY, History
from validate import ValidationResult, validate_full_connection

_LOGGER = logging.getLogger("satisplanner")


@dataclass
class PlannerConfig:
    """Configuration for the graph controller"""
    max_history: int = DEFAULT_MAX_HISTORY
    autosave_path: Optional[str] = None
    graph_name: Optional[str] = None


@dataclass
class GraphStats:
    """Summary figures for the whole graph"""
    total_nodes: int
    total_edges: int
    unique_block_types: int
    total_flow: float
    total_power: float


class GraphController:
    """Stateful controller for the planner graph - single source of truth for nodes and edges

    Every structural change records a history snapshot and recomputes the
    flows of all edges.
    """

    def __init__(self, config: Optional[PlannerConfig] = None):
        """Initialize an empty graph.

        Precondition:
            config is None or a PlannerConfig

        Postcondition:
            graph has no nodes or edges, nothing is selected
            history holds the empty graph as its only snapshot
        """
        self.config = config or PlannerConfig()
        self._nodes: List[Node] = []
        self._edges: List[Edge] = []
        self._selected_node_id: Optional[str] = None
        self._selected_edge_id: Optional[str] = None
        self._history = History(self.config.max_history)
        self._history.push(self._nodes, self._edges)

    # ========== State Getters ==========

    @property
    def nodes(self) -> List[Node]:
        return list(self._nodes)

    @property
    def edges(self) -> List[Edge]:
        return list(self._edges)

    def get_node(self, node_id: str) -> Optional[Node]:
        return next((node for node in self._nodes if node.id == node_id), None)

    def get_edge(self, edge_id: str) -> Optional[Edge]:
        return next((edge for edge in self._edges if edge.id == edge_id), None)

    def get_selected_node(self) -> Optional[Node]:
        if self._selected_node_id is None:
            return None
        return self.get_node(self._selected_node_id)

    def get_selected_edge(self) -> Optional[Edge]:
        if self._selected_edge_id is None:
            return None
        return self.get_edge(self._selected_edge_id)

    def get_node_edges(self, node_id: str) -> List[Edge]:
        """Edges attached to node_id on either end."""
        return [e for e in self._edges if e.source == node_id or e.target == node_id]

    def get_incoming_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges if e.target == node_id]

    def get_outgoing_edges(self, node_id: str) -> List[Edge]:
        return [e for e in self._edges if e.source == node_id]

    def get_port_edges(self, node_id: str, handle: str) -> List[Edge]:
        """Edges attached to one port, addressed by its handle."""
        return [
            e for e in self._edges
            if (e.source == node_id and e.source_handle == handle)
            or (e.target == node_id and e.target_handle == handle)
        ]

    def get_graph_stats(self) -> GraphStats:
        """Summarize the graph.

        Postcondition:
            total_flow sums allocated flow over all edges
            total_power sums the power estimates of all nodes
        """
        return GraphStats(
            total_nodes=len(self._nodes),
            total_edges=len(self._edges),
            unique_block_types=len({node.model.type for node in self._nodes}),
            total_flow=sum(e.data.flow_per_min for e in self._edges if e.data is not None),
            total_power=sum(node.model.power_estimate_mw or 0 for node in self._nodes),
        )

    def get_graphviz_source(self) -> Optional[str]:
        """Get graphviz source of the current graph, or None if it is empty."""
        if not self._nodes:
            return None
        return render_graph(self._nodes, self._edges).source

    # ========== Node Actions ==========

    def add_node(self, node: Node):
        """Add a node to the graph.

        Raises:
            ValueError: if a node with the same id exists
        """
        if self.get_node(node.id) is not None:
            raise ValueError(f"Node '{node.id}' already exists")
        self._nodes.append(node)
        self._commit()

    def update_node(
        self,
        node_id: str,
        model: Optional[BlockModel] = None,
        position: Optional[tuple[float, float]] = None,
    ):
        """Replace a node's model and/or position.

        Precondition:
            node_id names an existing node

        Postcondition:
            node is replaced with the updated copy
            flows are recomputed only when the model changed

        Raises:
            KeyError: if node_id is unknown
        """
        index = self._index_of_node(node_id)
        node = self._nodes[index]
        if model is not None:
            node = replace(node, model=model)
        if position is not None:
            node = replace(node, position=position)
        self._nodes[index] = node
        self._commit(recalculate=model is not None)

    def delete_node(self, node_id: str):
        """Remove a node and every edge attached to it.

        Raises:
            KeyError: if node_id is unknown
        """
        index = self._index_of_node(node_id)
        del self._nodes[index]
        self._edges = [e for e in self._edges if e.source != node_id and e.target != node_id]
        if self._selected_node_id == node_id:
            self._selected_node_id = None
        if self._selected_edge_id is not None and self.get_edge(self._selected_edge_id) is None:
            self._selected_edge_id = None
        self._commit()

    def select_node(self, node_id: Optional[str]):
        """Select a node; selecting a node clears the edge selection."""
        self._selected_node_id = node_id
        self._selected_edge_id = None

    # ========== Edge Actions ==========

    def add_edge(self, edge: Edge) -> ValidationResult:
        """Validate and add a connection.

        Precondition:
            edge.source and edge.target name nodes of the graph

        Postcondition:
            if the connection is admitted, the edge is added and flows are
            recomputed
            if rejected, the graph is unchanged and the reason is logged

        Returns:
            ValidationResult from the connection validator
        """
        source_node = self.get_node(edge.source)
        target_node = self.get_node(edge.target)
        if source_node is None or target_node is None:
            verdict = ValidationResult(is_valid=False, reason="unknown node")
        else:
            verdict = validate_full_connection(
                source_node, target_node, edge.source_handle, edge.target_handle, self._edges
            )

        if not verdict.is_valid:
            _LOGGER.warning("Invalid connection %s: %s", edge.id, verdict.reason)
            return verdict

        if self.get_edge(edge.id) is not None:
            raise ValueError(f"Edge '{edge.id}' already exists")
        self._edges.append(edge)
        self._commit()
        return verdict

    def delete_edge(self, edge_id: str):
        """Remove an edge.

        Raises:
            KeyError: if edge_id is unknown
        """
        edge = self.get_edge(edge_id)
        if edge is None:
            raise KeyError(edge_id)
        self._edges = [e for e in self._edges if e.id != edge_id]
        if self._selected_edge_id == edge_id:
            self._selected_edge_id = None
        self._commit()

    def select_edge(self, edge_id: Optional[str]):
        """Select an edge; selecting an edge clears the node selection."""
        self._selected_edge_id = edge_id
        self._selected_node_id = None

    # ========== Graph Actions ==========

    def recalculate_flows(self):
        """Replace every edge with its recomputed flow data."""
        if not self._edges:
            return
        self._edges = calculate_flows(self._nodes, self._edges)
        _LOGGER.debug("Flows recalculated for %s edges", len(self._edges))

    def clear_graph(self):
        """Remove every node and edge (undoable)."""
        self._nodes = []
        self._edges = []
        self._selected_node_id = None
        self._selected_edge_id = None
        self._commit(recalculate=False)

    def can_undo(self) -> bool:
        return self._history.can_undo()

    def can_redo(self) -> bool:
        return self._history.can_redo()

    def undo(self) -> bool:
        """Restore the previous snapshot.

        Returns:
            True if a snapshot was restored
        """
        snapshot = self._history.undo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    def redo(self) -> bool:
        """Restore the next snapshot.

        Returns:
            True if a snapshot was restored
        """
        snapshot = self._history.redo()
        if snapshot is None:
            return False
        self._restore(snapshot)
        return True

    # ========== Persistence ==========

    def save_to_file(self, path: str):
        """Write the graph to path."""
        save_graph(path, self._nodes, self._edges, name=self.config.graph_name)
        _LOGGER.info("Graph saved to %s", path)

    def load_from_file(self, path: str) -> bool:
        """Replace the graph with the one stored at path.

        Postcondition:
            returns False and leaves the graph untouched if path is missing
            otherwise the loaded graph becomes current, flows are recomputed
            and history restarts from it
            the current graph is left untouched if loading fails

        Raises:
            ValueError: if the file does not hold a valid graph
        """
        loaded = load_graph(path)
        if loaded is None:
            _LOGGER.info("No saved graph at %s", path)
            return False
        nodes, edges, metadata = loaded
        edges = calculate_flows(nodes, edges)

        self._nodes = nodes
        self._edges = edges
        self._selected_node_id = None
        self._selected_edge_id = None
        if metadata.get("name"):
            self.config.graph_name = metadata["name"]
        self._history.clear()
        self._history.push(self._nodes, self._edges)
        _LOGGER.info("Loaded %s nodes and %s edges from %s", len(nodes), len(edges), path)
        return True

    # ========== Internals ==========

    def _index_of_node(self, node_id: str) -> int:
        for index, node in enumerate(self._nodes):
            if node.id == node_id:
                return index
        raise KeyError(node_id)

    def _commit(self, recalculate: bool = True):
        """Recompute flows, record history and autosave after a mutation."""
        if recalculate:
            self.recalculate_flows()
        self._history.push(self._nodes, self._edges)
        if self.config.autosave_path:
            save_graph(self.config.autosave_path, self._nodes, self._edges, name=self.config.graph_name)

    def _restore(self, snapshot):
        self._nodes = list(snapshot.nodes)
        self._edges = list(snapshot.edges)
        if self._selected_node_id is not None and self.get_node(self._selected_node_id) is None:
            self._selected_node_id = None
        if self._selected_edge_id is not None and self.get_edge(self._selected_edge_id) is None:
            self._selected_edge_id = None
        self.recalculate_flows()
