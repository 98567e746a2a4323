from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

from ..icons import resolve
from ..model.schema import ArchitectureModel, Bounds
from ..util.serialization import stable_json_dumps

CANVAS_FILENAME = "canvas.json"


def _position(bounds: Optional[Bounds]) -> Optional[Dict[str, float]]:
    if bounds is None:
        return None
    return {"x": bounds.x, "y": bounds.y, "width": bounds.width, "height": bounds.height}


def to_canvas(model: ArchitectureModel) -> Dict[str, List[Dict[str, Any]]]:
    """
    Project a (usually positioned) model into a canvas document: containers first
    (management groups, then subscriptions), then nodes, then edges.

    Unpositioned elements carry ``position: None``. A node's ``parentId`` is its
    subscription only when that subscription exists in the model.
    """
    mg_ids = {mg.id for mg in model.management_groups}
    sub_ids = {s.id for s in model.subscriptions}

    containers: List[Dict[str, Any]] = []
    for mg in model.management_groups:
        containers.append(
            {
                "id": mg.id,
                "kind": "managementGroup",
                "label": mg.name or mg.id,
                "parentId": None,
                "position": _position(mg.bounds),
            }
        )
    for sub in model.subscriptions:
        parent = sub.management_group_id if sub.management_group_id in mg_ids else None
        containers.append(
            {
                "id": sub.id,
                "kind": "subscription",
                "label": sub.name or sub.id,
                "subscriptionType": sub.type,
                "parentId": parent,
                "position": _position(sub.bounds),
            }
        )

    nodes: List[Dict[str, Any]] = []
    for node in model.nodes:
        icon = resolve(node.kind)
        entry: Dict[str, Any] = {
            "id": node.id,
            "label": node.display_label,
            "type": node.type,
            "layer": node.layer.value if node.layer else None,
            "parentId": node.subscription_id if node.subscription_id in sub_ids else None,
            "position": _position(node.bounds),
            "icon": icon.asset_path,
            "color": icon.default_color,
        }
        if node.is_grouped and node.grouping:
            entry["nodeCount"] = node.grouping.node_count
        nodes.append(entry)

    edges: List[Dict[str, Any]] = []
    for index, edge in enumerate(model.edges):
        edges.append(
            {
                "id": f"e{index}",
                "source": edge.source,
                "target": edge.target,
                "label": edge.label,
                "routed": bool(edge.routing and edge.routing.routed),
            }
        )

    return {"containers": containers, "nodes": nodes, "edges": edges}


def write_canvas_json(model: ArchitectureModel, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(stable_json_dumps(to_canvas(model), indent=2) + "\n", encoding="utf-8")
    return path
