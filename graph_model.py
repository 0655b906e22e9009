"""Data model for the node planner: ports, block models, nodes and edges.

All rates are stored in the unit declared on the port. The flow engine
converts them to items/min before comparing anything.
"""

from dataclasses import dataclass
from typing import Optional


class PortKind:
    """Resource kinds a port can carry."""
    ITEM = "item"
    FLUID = "fluid"
    POWER = "power"
    ALL = ("item", "fluid", "power")


class RateUnit:
    """Rate units a port can be expressed in."""
    ITEMS_PER_MIN = "items/min"
    ITEMS_PER_SEC = "items/s"
    ALL = ("items/min", "items/s")


OUTPUT_PREFIX = "out-"
INPUT_PREFIX = "in-"

# Direction tags used in port keys
OUTPUT = "out"
INPUT = "in"


@dataclass(frozen=True)
class Port:
    """a typed, rated connection point on a block"""

    id: str
    name: str
    kind: str
    unit: str
    rate: float


@dataclass(frozen=True)
class BlockModel:
    """a block definition: its ports plus display metadata"""

    type: str
    name: str
    inputs: tuple[Port, ...] = ()
    outputs: tuple[Port, ...] = ()
    description: Optional[str] = None
    overclock_pct: Optional[float] = None
    power_estimate_mw: Optional[float] = None
    color: Optional[str] = None
    icon: Optional[str] = None


@dataclass(frozen=True)
class Node:
    """a placed block instance"""

    id: str
    model: BlockModel
    position: tuple[float, float] = (0.0, 0.0)


@dataclass(frozen=True)
class EdgeData:
    """flow fields derived by the allocator for one edge"""

    source_port_id: str
    target_port_id: str
    flow_per_min: float
    utilization_pct: float
    color_hex: str


@dataclass(frozen=True)
class Edge:
    """a connection from an output handle to an input handle"""

    id: str
    source: str
    target: str
    source_handle: Optional[str]
    target_handle: Optional[str]
    data: Optional[EdgeData] = None

    def connection_key(self) -> tuple:
        """Return the (source, source_handle, target, target_handle) tuple."""
        return (self.source, self.source_handle, self.target, self.target_handle)


def port_key(node_id: str, direction: str, index: int) -> tuple[str, str, int]:
    """Build the lookup key addressing one port of one node.

    Args:
        node_id: owning node id
        direction: OUTPUT or INPUT
        index: position of the port in the node's list

    Returns:
        (node_id, direction, index)
    """
    return (node_id, direction, index)


def output_handle(index: int) -> str:
    """Handle string for the index-th output port."""
    return f"{OUTPUT_PREFIX}{index}"


def input_handle(index: int) -> str:
    """Handle string for the index-th input port."""
    return f"{INPUT_PREFIX}{index}"


# ========== dict conversion ==========
# Field names follow the JSON written by the graph editor.


def port_from_dict(data: dict) -> Port:
    """Build a Port from its JSON form.

    Precondition:
        data has id, name, kind, unit and rate keys

    Postcondition:
        returns a Port with rate converted to float

    Raises:
        ValueError: if a required key is missing or rate is not numeric
    """
    try:
        return Port(
            id=str(data["id"]),
            name=str(data["name"]),
            kind=data["kind"],
            unit=data["unit"],
            rate=float(data["rate"]),
        )
    except KeyError as exc:
        raise ValueError(f"Invalid port: missing field {exc}") from exc
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Invalid port rate: {data.get('rate')!r}") from exc


def port_to_dict(port: Port) -> dict:
    return {
        "id": port.id,
        "name": port.name,
        "kind": port.kind,
        "unit": port.unit,
        "rate": port.rate,
    }


def block_model_from_dict(data: dict) -> BlockModel:
    """Build a BlockModel from its JSON form.

    Precondition:
        data has type and name keys; inputs/outputs are lists of port dicts

    Postcondition:
        returns a BlockModel whose port lists keep their JSON order

    Raises:
        ValueError: if a required key is missing or a port is malformed
    """
    if "type" not in data or "name" not in data:
        raise ValueError("Invalid block model: type and name are required")
    return BlockModel(
        type=data["type"],
        name=data["name"],
        inputs=tuple(port_from_dict(p) for p in data.get("inputs", [])),
        outputs=tuple(port_from_dict(p) for p in data.get("outputs", [])),
        description=data.get("description"),
        overclock_pct=data.get("overclockPct"),
        power_estimate_mw=data.get("powerEstimateMW"),
        color=data.get("color"),
        icon=data.get("icon"),
    )


def block_model_to_dict(model: BlockModel) -> dict:
    result = {
        "type": model.type,
        "name": model.name,
        "inputs": [port_to_dict(p) for p in model.inputs],
        "outputs": [port_to_dict(p) for p in model.outputs],
    }
    optional = {
        "description": model.description,
        "overclockPct": model.overclock_pct,
        "powerEstimateMW": model.power_estimate_mw,
        "color": model.color,
        "icon": model.icon,
    }
    result.update({k: v for k, v in optional.items() if v is not None})
    return result


def node_from_dict(data: dict) -> Node:
    """Build a Node from its JSON form ({id, position, data: {model}}).

    Raises:
        ValueError: if id or model is missing
    """
    if not data.get("id"):
        raise ValueError("Invalid node: missing id")
    model_data = (data.get("data") or {}).get("model")
    if model_data is None:
        raise ValueError(f"Invalid node {data['id']}: missing model data")
    position = data.get("position") or {}
    return Node(
        id=str(data["id"]),
        model=block_model_from_dict(model_data),
        position=(float(position.get("x", 0.0)), float(position.get("y", 0.0))),
    )


def node_to_dict(node: Node) -> dict:
    return {
        "id": node.id,
        "type": "block",
        "position": {"x": node.position[0], "y": node.position[1]},
        "data": {"model": block_model_to_dict(node.model)},
    }


def edge_data_from_dict(data: Optional[dict]) -> Optional[EdgeData]:
    if not data or "flowPerMin" not in data:
        return None
    return EdgeData(
        source_port_id=data.get("sourcePortId", ""),
        target_port_id=data.get("targetPortId", ""),
        flow_per_min=float(data["flowPerMin"]),
        utilization_pct=float(data.get("utilizationPct", 0.0)),
        color_hex=data.get("colorHex", ""),
    )


def edge_data_to_dict(data: EdgeData) -> dict:
    return {
        "sourcePortId": data.source_port_id,
        "targetPortId": data.target_port_id,
        "flowPerMin": data.flow_per_min,
        "utilizationPct": data.utilization_pct,
        "colorHex": data.color_hex,
    }


def edge_from_dict(data: dict) -> Edge:
    """Build an Edge from its JSON form.

    Raises:
        ValueError: if id, source or target is missing
    """
    for key in ("id", "source", "target"):
        if not data.get(key):
            raise ValueError(f"Invalid edge: missing {key}")
    return Edge(
        id=str(data["id"]),
        source=str(data["source"]),
        target=str(data["target"]),
        source_handle=data.get("sourceHandle"),
        target_handle=data.get("targetHandle"),
        data=edge_data_from_dict(data.get("data")),
    )


def edge_to_dict(edge: Edge) -> dict:
    result = {
        "id": edge.id,
        "source": edge.source,
        "target": edge.target,
        "sourceHandle": edge.source_handle,
        "targetHandle": edge.target_handle,
    }
    if edge.data is not None:
        result["data"] = edge_data_to_dict(edge.data)
    return result
