from __future__ import annotations

import xml.etree.ElementTree as ET
from typing import Dict, List, Mapping, Optional, Tuple

from ..icons import resolve
from ..logging import get_logger
from ..model.schema import ArchitectureModel, Bounds, EntityType, Node, Subscription
from ..validate import validate_and_log
from .mermaid import EdgeBucket, classify_edge

LOG = get_logger(__name__)

DRAWIO_FILENAME = "diagram.drawio"
DIAGRAM_NAME = "Azure CAF Architecture"

_MIN_PAGE_WIDTH = 1400
_MIN_PAGE_HEIGHT = 800
_PAGE_MARGIN = 50
_TOP_MARGIN = 100

_LABEL_MAX = 24
_ICON_SIZE = 30
_ICON_INSET = 5

# Nodes without bounds are lined up below the positioned diagram.
_UNPLACED_WIDTH = 120
_UNPLACED_HEIGHT = 70
_UNPLACED_GAP = 20

_MG_COLORS: Mapping[str, str] = {
    "tenant-root": "#2e7d32",
    "platform": "#1976d2",
    "landing-zones": "#f57c00",
}

_NODE_COLORS: Mapping[Optional[EntityType], Tuple[str, str, bool]] = {
    EntityType.VNET: ("#f3e5f5", "#7b1fa2", True),
    EntityType.TIER: ("#e8f5e8", "#388e3c", True),
    EntityType.SERVICE: ("#e1f5fe", "#0277bd", False),
    EntityType.PAAS: ("#fff3e0", "#f57c00", False),
}

_EDGE_COLORS: Mapping[EdgeBucket, str] = {
    EdgeBucket.CONNECTIVITY: "#1976d2",
    EdgeBucket.DATA: "#f57c00",
    EdgeBucket.SECURITY: "#d32f2f",
    EdgeBucket.OTHER: "#666666",
}


def _num(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else str(value)


def _container_style(fill: str, stroke: str, font_color: str, font_size: int) -> str:
    return (
        f"swimlane;horizontal=1;startSize=30;fontSize={font_size};fontStyle=1;"
        f"fillColor={fill};strokeColor={stroke};fontColor={font_color};"
        f"whiteSpace=wrap;html=1;collapsible=0;container=1;"
    )


def _subscription_fill(sub: Subscription) -> str:
    if sub.is_platform:
        return "#e3f2fd"
    if sub.is_landing_zone:
        return "#fff3e0"
    return "#f5f5f5"


def _node_style(node: Node) -> str:
    fill, stroke, bold = _NODE_COLORS.get(node.entity_type, ("#f5f5f5", "#666666", False))
    return (
        f"rounded=1;whiteSpace=wrap;html=1;fontSize=10;fontStyle={1 if bold else 0};"
        f"fillColor={fill};strokeColor={stroke};verticalAlign=bottom;"
    )


def _icon_style(node: Node, sprites: Mapping[str, str]) -> str:
    sprite = sprites.get(node.kind.value)
    # draw.io reads the payload after the comma as base64.
    image = f"data:image/svg+xml,{sprite}" if sprite else resolve(node.kind).asset_path
    return f"shape=image;aspect=fixed;imageAspect=0;html=1;image={image};"


def _edge_style(bucket: EdgeBucket, routed: bool) -> str:
    style = f"endArrow=classic;html=1;strokeWidth=2;strokeColor={_EDGE_COLORS[bucket]};fontSize=10;"
    if bucket is EdgeBucket.SECURITY:
        style += "dashed=1;"
    if routed:
        style += "edgeStyle=orthogonalEdgeStyle;"
    return style


def _node_label(node: Node) -> str:
    label = node.display_label
    if len(label) > _LABEL_MAX:
        label = label[: _LABEL_MAX - 3] + "..."
    if node.is_grouped and node.grouping and node.grouping.node_count > 1:
        label = f"{label} ({node.grouping.node_count} nodes)"
    return label


def _vertex(root: ET.Element, cell_id: str, value: str, style: str, parent: str, bounds: Bounds) -> ET.Element:
    cell = ET.SubElement(root, "mxCell", {
        "id": cell_id, "value": value, "style": style,
        "vertex": "1", "parent": parent,
    })
    ET.SubElement(cell, "mxGeometry", {
        "x": _num(bounds.x), "y": _num(bounds.y),
        "width": _num(bounds.width), "height": _num(bounds.height),
        "as": "geometry",
    })
    return cell


def _unplaced_bounds(nodes: List[Node], top: float) -> Dict[str, Bounds]:
    out: Dict[str, Bounds] = {}
    for index, node in enumerate(nodes):
        x = _PAGE_MARGIN + index * (_UNPLACED_WIDTH + _UNPLACED_GAP)
        out[node.id] = Bounds(x, top, _UNPLACED_WIDTH, _UNPLACED_HEIGHT)
    return out


def render_drawio(model: ArchitectureModel, sprites: Optional[Mapping[str, str]] = None) -> str:
    """
    Render a positioned model as a draw.io (mxGraph) document.

    Management groups and subscriptions become swimlane containers at their
    bounds. A node inside a placed subscription is a child of that container with
    container-relative geometry, plus an icon cell in its top-left corner. Nodes
    the layout could not place are lined up in a row below everything else.
    Cell ids are prefixed per kind (``mg-``, ``sub-``, ``node-``, ``edge-``) so
    containers and nodes may share ids in the model.
    """
    sprites = sprites or {}
    sanitized = validate_and_log(model, LOG).sanitized_model

    placed = [b for b in (
        [mg.bounds for mg in sanitized.management_groups]
        + [s.bounds for s in sanitized.subscriptions]
        + [n.bounds for n in sanitized.nodes]
    ) if b is not None]
    bottom = max((b.bottom for b in placed), default=_TOP_MARGIN - _PAGE_MARGIN)
    unplaced = _unplaced_bounds([n for n in sanitized.nodes if n.bounds is None], bottom + _PAGE_MARGIN)
    extent = placed + list(unplaced.values())
    page_width = max(_MIN_PAGE_WIDTH, max((b.right for b in extent), default=0) + _PAGE_MARGIN)
    page_height = max(_MIN_PAGE_HEIGHT, max((b.bottom for b in extent), default=0) + _PAGE_MARGIN)

    mxfile = ET.Element("mxfile", {"host": "app.diagrams.net", "type": "device"})
    diagram = ET.SubElement(mxfile, "diagram", {"name": DIAGRAM_NAME, "id": "azure-caf-arch"})
    graph = ET.SubElement(diagram, "mxGraphModel", {
        "grid": "1", "gridSize": "10",
        "guides": "1", "tooltips": "1", "connect": "1", "arrows": "1",
        "fold": "1", "page": "1", "pageScale": "1",
        "pageWidth": _num(page_width), "pageHeight": _num(page_height),
        "math": "0", "shadow": "0",
    })
    root = ET.SubElement(graph, "root")
    ET.SubElement(root, "mxCell", {"id": "0"})
    ET.SubElement(root, "mxCell", {"id": "1", "parent": "0"})

    for mg in sanitized.management_groups:
        if mg.bounds is None:
            continue
        color = _MG_COLORS.get((mg.type or "").lower(), "#666666")
        _vertex(root, f"mg-{mg.id}", mg.name or mg.id, _container_style(color, "#333333", "#ffffff", 12), "1", mg.bounds)

    containers: Dict[str, Bounds] = {}
    for sub in sanitized.subscriptions:
        if sub.bounds is None:
            continue
        style = _container_style(_subscription_fill(sub), "#666666", "#333333", 11)
        _vertex(root, f"sub-{sub.id}", f"Subscription: {sub.name or sub.id}", style, "1", sub.bounds)
        containers.setdefault(sub.id, sub.bounds)

    for node in sanitized.nodes:
        bounds = node.bounds or unplaced[node.id]
        parent = "1"
        box = containers.get(node.subscription_id or "") if node.bounds is not None else None
        if box is not None:
            parent = f"sub-{node.subscription_id}"
            bounds = Bounds(bounds.x - box.x, bounds.y - box.y, bounds.width, bounds.height)
        cell_id = f"node-{node.id}"
        _vertex(root, cell_id, _node_label(node), _node_style(node), parent, bounds)
        icon = Bounds(bounds.x + _ICON_INSET, bounds.y + _ICON_INSET, _ICON_SIZE, _ICON_SIZE)
        _vertex(root, f"{cell_id}-icon", "", _icon_style(node, sprites), parent, icon)

    layers_by_id = {n.id: n.layer for n in sanitized.nodes if n.layer is not None}
    for index, edge in enumerate(sanitized.edges):
        bucket = classify_edge(edge, layers_by_id)
        routed = bool(edge.routing and edge.routing.routed)
        cell = ET.SubElement(root, "mxCell", {
            "id": f"edge-{index}", "value": edge.label, "style": _edge_style(bucket, routed),
            "edge": "1", "parent": "1",
            "source": f"node-{edge.source}", "target": f"node-{edge.target}",
        })
        ET.SubElement(cell, "mxGeometry", {"relative": "1", "as": "geometry"})

    return ET.tostring(mxfile, encoding="utf-8", xml_declaration=True).decode("utf-8") + "\n"
