"""Built-in block library and custom block models.

Built-in blocks are read from blocks.json next to this module. Custom blocks
are stored one JSON file per model in a user-chosen directory.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, List, Optional

from frozendict import frozendict

from graph_model import (
    BlockModel,
    Node,
    PortKind,
    RateUnit,
    block_model_from_dict,
    block_model_to_dict,
)

_LOGGER = logging.getLogger("satisplanner")

_MIN_OVERCLOCK_PCT = 1
_MAX_OVERCLOCK_PCT = 250

with open(os.path.join(os.path.dirname(os.path.abspath(__file__)), "blocks.json"), "r", encoding="utf-8") as f:
    _BLOCKS: dict[str, dict[str, Any]] = json.load(f)

_BLOCK_MODELS: frozendict[str, BlockModel] = frozendict(
    {block_type: block_model_from_dict(data) for block_type, data in _BLOCKS.items()}
)


@dataclass
class ModelValidationResult:
    """Result of block model validation"""
    is_valid: bool
    errors: List[str] = field(default_factory=list)


def get_all_block_models() -> frozendict[str, BlockModel]:
    """Get every built-in block model keyed by block type."""
    return _BLOCK_MODELS


def get_block_types() -> list[str]:
    """Get the built-in block types in library order."""
    return list(_BLOCK_MODELS.keys())


def get_block_model(block_type: str) -> BlockModel:
    """Get a built-in block model.

    Precondition:
        block_type is a string

    Postcondition:
        returns the BlockModel registered under block_type

    Raises:
        KeyError: if block_type is not a built-in block
    """
    return _BLOCK_MODELS[block_type]


def create_node(node_id: str, block_type: str, position: tuple[float, float] = (0.0, 0.0)) -> Node:
    """Place a built-in block as a new node.

    Raises:
        KeyError: if block_type is not a built-in block
    """
    return Node(id=node_id, model=get_block_model(block_type), position=position)


def _validate_port(port: Any, label: str) -> list[str]:
    """Check one port dict, returning error messages prefixed with label."""
    if not isinstance(port, dict):
        return [f"{label}: must be an object"]

    errors = []
    if not port.get("id") or not isinstance(port.get("id"), str):
        errors.append(f"{label}: id is required")
    if not port.get("name") or not isinstance(port.get("name"), str):
        errors.append(f"{label}: name is required")
    if port.get("kind") not in PortKind.ALL:
        errors.append(f"{label}: invalid kind")
    if port.get("unit") not in RateUnit.ALL:
        errors.append(f"{label}: invalid unit")
    rate = port.get("rate")
    if isinstance(rate, bool) or not isinstance(rate, (int, float)) or rate < 0:
        errors.append(f"{label}: rate must be a non-negative number")
    return errors


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_block_model(data: Any) -> ModelValidationResult:
    """Validate a block model in its JSON form before it reaches the graph.

    Precondition:
        none (data may be anything decoded from JSON)

    Postcondition:
        returns ModelValidationResult listing every problem found
        checks type and name, both port lists, each port's id, name, kind,
        unit and rate, the overclock range and the power estimate

    Args:
        data: block model dict

    Returns:
        ModelValidationResult with is_valid and errors
    """
    if not isinstance(data, dict):
        return ModelValidationResult(is_valid=False, errors=["Model must be an object"])

    errors = []
    if not data.get("type") or not isinstance(data.get("type"), str):
        errors.append("Block type is required")
    if not data.get("name") or not isinstance(data.get("name"), str):
        errors.append("Block name is required")

    for key, label in (("inputs", "Input port"), ("outputs", "Output port")):
        ports = data.get(key)
        if not isinstance(ports, list):
            errors.append(f"{key.capitalize()} must be a list")
            continue
        for index, port in enumerate(ports):
            errors.extend(_validate_port(port, f"{label} {index}"))

    overclock = data.get("overclockPct")
    if overclock is not None and (
        not _is_number(overclock) or not _MIN_OVERCLOCK_PCT <= overclock <= _MAX_OVERCLOCK_PCT
    ):
        errors.append(f"Overclock must be between {_MIN_OVERCLOCK_PCT}% and {_MAX_OVERCLOCK_PCT}%")

    power = data.get("powerEstimateMW")
    if power is not None and (not _is_number(power) or power < 0):
        errors.append("Power estimate must be a non-negative number")

    return ModelValidationResult(is_valid=len(errors) == 0, errors=errors)


# ========== Custom models ==========


def _custom_model_filename(name: str) -> str:
    """Turn a model name into a safe file name, e.g. "My Block!" -> "My_Block.json"."""
    clean = re.sub(r"[^a-zA-Z0-9\s]", "", name)
    clean = re.sub(r"\s+", "_", clean).strip("_")
    if not clean:
        raise ValueError(f"Invalid custom model name: '{name}'")
    return f"{clean}.json"


def save_custom_model(directory: str, name: str, model: BlockModel) -> str:
    """Store a custom block model as JSON.

    Precondition:
        directory is a writable path (created if missing)

    Postcondition:
        the model is written to directory under a name derived from name
        the stored document records name alongside the model

    Returns:
        path of the written file

    Raises:
        ValueError: if the model does not validate or name is unusable
    """
    model_dict = block_model_to_dict(model)
    validation = validate_block_model(model_dict)
    if not validation.is_valid:
        raise ValueError("; ".join(validation.errors))

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, _custom_model_filename(name))
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"name": name, "model": model_dict}, f, indent=2)
    _LOGGER.info("Custom model '%s' saved to %s", name, path)
    return path


def load_custom_models(directory: str) -> dict[str, BlockModel]:
    """Load every custom block model stored in directory.

    Postcondition:
        returns {name: BlockModel} for each valid stored model
        unreadable or invalid files are skipped with a warning
        a missing directory yields an empty dict
    """
    models: dict[str, BlockModel] = {}
    if not os.path.isdir(directory):
        return models

    for filename in sorted(os.listdir(directory)):
        if not filename.endswith(".json"):
            continue
        path = os.path.join(directory, filename)
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.warning("Skipping unreadable custom model %s: %s", path, exc)
            continue

        if not isinstance(document, dict):
            _LOGGER.warning("Skipping invalid custom model %s: not an object", path)
            continue
        validation = validate_block_model(document.get("model"))
        if not validation.is_valid:
            _LOGGER.warning("Skipping invalid custom model %s: %s", path, "; ".join(validation.errors))
            continue
        name = document.get("name") or filename[:-len(".json")]
        models[name] = block_model_from_dict(document["model"])
    return models


def get_custom_model_names(directory: str) -> list[str]:
    """Get the sorted names of the custom models stored in directory."""
    return sorted(load_custom_models(directory).keys())


def delete_custom_model(directory: str, name: str) -> bool:
    """Remove a stored custom model.

    Returns:
        True if a file was removed, False if none existed
    """
    path = os.path.join(directory, _custom_model_filename(name))
    if not os.path.exists(path):
        return False
    os.remove(path)
    _LOGGER.info("Custom model '%s' deleted", name)
    return True


def get_model(block_type: str, custom_models: Optional[dict[str, BlockModel]] = None) -> Optional[BlockModel]:
    """Look a model up among custom models first, then built-in blocks."""
    if custom_models and block_type in custom_models:
        return custom_models[block_type]
    return _BLOCK_MODELS.get(block_type)
