from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from ..logging import get_logger
from ..util.errors import ModelError, require_sequence
from .schema import (
    ArchitectureModel,
    Bounds,
    Edge,
    EntityType,
    GroupingInfo,
    Layer,
    ManagementGroup,
    Node,
    RoutingInfo,
    Subscription,
)

LOG = get_logger(__name__)


def _get(data: Mapping[str, Any], *keys: str) -> Any:
    # Accept camelCase vs snake_case interchangeably.
    for k in keys:
        if k in data:
            return data[k]
        snake = "".join([("_" + ch.lower()) if ch.isupper() else ch for ch in k]).lstrip("_")
        if snake in data:
            return data[snake]
    return None


def _require_mapping(value: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise ModelError(f"{what} must be an object, got {type(value).__name__}")
    return value


def _require_str(value: Any, what: str) -> str:
    if isinstance(value, str) and value:
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    raise ModelError(f"{what} must be a non-empty string")


def _bounds_from(value: Any) -> Optional[Bounds]:
    if not isinstance(value, Mapping):
        return None
    try:
        return Bounds(
            x=float(value["x"]),
            y=float(value["y"]),
            width=float(_get(value, "width", "w")),
            height=float(_get(value, "height", "h")),
        )
    except (KeyError, TypeError, ValueError):
        return None


def _bounds_to(bounds: Optional[Bounds]) -> Optional[Dict[str, float]]:
    if bounds is None:
        return None
    return {"x": bounds.x, "y": bounds.y, "width": bounds.width, "height": bounds.height}


def _grouping_from(meta: Any) -> Optional[GroupingInfo]:
    if not isinstance(meta, Mapping) or not _get(meta, "isGrouped"):
        return None
    count = _get(meta, "nodeCount", "count")
    contained = _get(meta, "containedNodes") or ()
    return GroupingInfo(
        is_grouped=True,
        node_count=int(count) if isinstance(count, (int, float)) else 0,
        contained=tuple(str(c) for c in require_sequence(contained, "meta.containedNodes")),
        group_type=_get(meta, "groupType"),
    )


def node_from_dict(data: Any, index: int = 0) -> Node:
    d = _require_mapping(data, f"nodes[{index}]")
    node_id = _require_str(d.get("id"), f"nodes[{index}].id")
    raw_layer = d.get("layer")
    layer = Layer.parse(raw_layer)
    if raw_layer and layer is None:
        LOG.debug("Unknown layer treated as missing", extra={"node_id": node_id, "layer": str(raw_layer)})
    meta = d.get("meta")
    role = _get(meta, "role") if isinstance(meta, Mapping) else None
    return Node(
        id=node_id,
        label=str(d.get("label") or ""),
        type=str(_get(d, "type", "nodeType") or "custom"),
        layer=layer,
        subscription_id=_get(d, "subscriptionId"),
        entity_type=EntityType.parse(_get(d, "entityType")),
        role=str(role) if role else None,
        grouping=_grouping_from(meta),
        bounds=_bounds_from(d.get("bounds")),
    )


def edge_from_dict(data: Any, index: int = 0) -> Edge:
    d = _require_mapping(data, f"edges[{index}]")
    meta = d.get("meta")
    routed = _get(meta, "routed") if isinstance(meta, Mapping) else None
    return Edge(
        source=_require_str(_get(d, "from", "source"), f"edges[{index}].from"),
        target=_require_str(_get(d, "to", "target"), f"edges[{index}].to"),
        label=str(d.get("label") or ""),
        routing=RoutingInfo(routed=bool(routed)) if routed is not None else None,
    )


def model_from_dict(data: Any) -> ArchitectureModel:
    """
    Build an ArchitectureModel from its JSON shape.
    Raises ModelError only for shape violations; data-quality issues are left to the validator.
    """
    d = _require_mapping(data, "model")
    if "nodes" not in d:
        raise ModelError("model is missing 'nodes'")
    nodes = [node_from_dict(n, i) for i, n in enumerate(require_sequence(d["nodes"], "nodes"))]
    edges = [edge_from_dict(e, i) for i, e in enumerate(require_sequence(d.get("edges") or [], "edges"))]

    subscriptions: List[Subscription] = []
    for i, raw in enumerate(require_sequence(d.get("subscriptions") or [], "subscriptions")):
        s = _require_mapping(raw, f"subscriptions[{i}]")
        subscriptions.append(
            Subscription(
                id=_require_str(s.get("id"), f"subscriptions[{i}].id"),
                type=str(s.get("type") or ""),
                name=_get(s, "displayName", "name"),
                management_group_id=_get(s, "managementGroupId"),
                bounds=_bounds_from(s.get("bounds")),
            )
        )

    groups: List[ManagementGroup] = []
    for i, raw in enumerate(require_sequence(_get(d, "managementGroups") or [], "managementGroups")):
        g = _require_mapping(raw, f"managementGroups[{i}]")
        groups.append(
            ManagementGroup(
                id=_require_str(g.get("id"), f"managementGroups[{i}].id"),
                name=_get(g, "displayName", "name"),
                type=g.get("type"),
                bounds=_bounds_from(g.get("bounds")),
            )
        )

    return ArchitectureModel(
        nodes=tuple(nodes),
        edges=tuple(edges),
        subscriptions=tuple(subscriptions),
        management_groups=tuple(groups),
    )


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in data.items() if v is not None}


def node_to_dict(node: Node) -> Dict[str, Any]:
    meta: Optional[Dict[str, Any]] = None
    if node.grouping is not None or node.role:
        meta = _compact(
            {
                "isGrouped": node.grouping.is_grouped if node.grouping else None,
                "nodeCount": node.grouping.node_count if node.grouping else None,
                "containedNodes": list(node.grouping.contained) if node.grouping and node.grouping.contained else None,
                "groupType": node.grouping.group_type if node.grouping else None,
                "role": node.role,
            }
        )
    return _compact(
        {
            "id": node.id,
            "label": node.label,
            "type": node.type,
            "layer": node.layer.value if node.layer else None,
            "subscriptionId": node.subscription_id,
            "entityType": node.entity_type.value if node.entity_type else None,
            "meta": meta,
            "bounds": _bounds_to(node.bounds),
        }
    )


def edge_to_dict(edge: Edge) -> Dict[str, Any]:
    return _compact(
        {
            "from": edge.source,
            "to": edge.target,
            "label": edge.label or None,
            "meta": {"routed": edge.routing.routed} if edge.routing else None,
        }
    )


def model_to_dict(model: ArchitectureModel) -> Dict[str, Any]:
    return {
        "nodes": [node_to_dict(n) for n in model.nodes],
        "edges": [edge_to_dict(e) for e in model.edges],
        "subscriptions": [
            _compact(
                {
                    "id": s.id,
                    "type": s.type,
                    "displayName": s.name,
                    "managementGroupId": s.management_group_id,
                    "bounds": _bounds_to(s.bounds),
                }
            )
            for s in model.subscriptions
        ],
        "managementGroups": [
            _compact({"id": g.id, "displayName": g.name, "type": g.type, "bounds": _bounds_to(g.bounds)})
            for g in model.management_groups
        ],
    }


def load_model(path: Path) -> ArchitectureModel:
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ModelError(f"Failed to parse model file {path}: {e}") from e
    return model_from_dict(data)


def dump_model(model: ArchitectureModel, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    data = model_to_dict(model)
    if path.suffix.lower() in {".yaml", ".yml"}:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    else:
        path.write_text(json.dumps(data, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    return path
