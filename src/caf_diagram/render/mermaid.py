from __future__ import annotations

import re
import subprocess
import tempfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from shutil import which
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..icons import STYLED_ICON_TYPES, resolve, style_class_for, symbol_for
from ..logging import get_logger
from ..model.schema import (
    CROSS_CUTTING_LAYERS,
    MAIN_FLOW_LAYERS,
    ArchitectureModel,
    Edge,
    Layer,
    Node,
    NodeType,
)
from ..util.errors import ExportError
from ..validate import validate_and_log

LOG = get_logger(__name__)

GROUPED_CLASS = "grouped"

_NON_ID_CHARS = re.compile(r"[^a-zA-Z0-9]")

# Flowchart keywords that cannot stand as a bare node id.
_RESERVED_IDS = frozenset(
    {"end", "subgraph", "graph", "flowchart", "style", "class", "classdef", "click", "linkstyle", "direction"}
)


@dataclass(frozen=True)
class RenderOptions:
    # Passed through verbatim: LR, RL, TB, BT (or TD) for Mermaid.
    direction: str = "LR"


_LAYER_STYLES: Mapping[Layer, str] = {
    Layer.CONNECTIVITY: "fill:#e1f5fe,stroke:#01579b,stroke-width:2px",
    Layer.NETWORKING: "fill:#f3e5f5,stroke:#4a148c,stroke-width:2px",
    Layer.COMPUTE: "fill:#e8f5e8,stroke:#1b5e20,stroke-width:2px",
    Layer.DATA: "fill:#fff3e0,stroke:#e65100,stroke-width:2px",
    Layer.SECURITY: "fill:#ffebee,stroke:#b71c1c,stroke-width:2px",
    Layer.IDENTITY: "fill:#f1f8e9,stroke:#33691e,stroke-width:2px",
    Layer.MANAGEMENT: "fill:#e0f2f1,stroke:#004d40,stroke-width:2px",
    Layer.OBSERVABILITY: "fill:#fce4ec,stroke:#880e4f,stroke-width:2px",
}

_ADVANCED_LAYER_STYLES: Mapping[Layer, str] = {
    Layer.CONNECTIVITY: "fill:#e3f2fd,stroke:#1976d2,stroke-width:3px,color:#0d47a1",
    Layer.NETWORKING: "fill:#f3e5f5,stroke:#7b1fa2,stroke-width:3px,color:#4a148c",
    Layer.COMPUTE: "fill:#e8f5e8,stroke:#388e3c,stroke-width:3px,color:#1b5e20",
    Layer.DATA: "fill:#fff3e0,stroke:#f57c00,stroke-width:3px,color:#e65100",
    Layer.SECURITY: "fill:#ffebee,stroke:#d32f2f,stroke-width:3px,color:#b71c1c",
    Layer.IDENTITY: "fill:#f1f8e9,stroke:#689f38,stroke-width:3px,color:#33691e",
    Layer.MANAGEMENT: "fill:#e0f2f1,stroke:#00796b,stroke-width:3px,color:#004d40",
    Layer.OBSERVABILITY: "fill:#fce4ec,stroke:#c2185b,stroke-width:3px,color:#880e4f",
}

# Icon classes reuse the palette of the layer their category usually lives in.
_CATEGORY_STYLE_LAYER: Mapping[str, Layer] = {
    "networking": Layer.NETWORKING,
    "compute": Layer.COMPUTE,
    "data": Layer.DATA,
    "security": Layer.SECURITY,
    "observability": Layer.OBSERVABILITY,
    "ai": Layer.DATA,
}


def _style_block_lines() -> List[str]:
    lines = ["%% Node styles"]
    for layer in Layer:
        lines.append(f"classDef {layer.slug} {_LAYER_STYLES[layer]}")
    lines.append(f"classDef {GROUPED_CLASS} fill:#fff3e0,stroke:#f57c00,stroke-width:3px,color:#e65100")
    lines.append("classDef overflow fill:#f5f5f5,stroke:#666,stroke-width:1px,stroke-dasharray:5,5")
    lines.append("%% Icon styles")
    for kind in STYLED_ICON_TYPES:
        layer = _CATEGORY_STYLE_LAYER.get(resolve(kind).category, Layer.COMPUTE)
        lines.append(f"classDef {style_class_for(kind)} {_LAYER_STYLES[layer]}")
    return lines


def _advanced_style_block_lines() -> List[str]:
    lines = ["%% Node styles"]
    for layer in Layer:
        lines.append(f"classDef {layer.slug} {_ADVANCED_LAYER_STYLES[layer]}")
    lines.append(f"classDef {GROUPED_CLASS} fill:#fff3e0,stroke:#f57c00,stroke-width:3px,color:#e65100")
    return lines


def sanitize_id(node_id: str) -> str:
    # Collisions introduced here (a-b vs a_b) are accepted as-is.
    ident = _NON_ID_CHARS.sub("_", node_id)
    if ident.lower() in _RESERVED_IDS:
        return f"node_{ident}"
    return ident


def escape_label(label: str) -> str:
    text = str(label).replace('"', "&quot;")
    return text.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "<br>")


def _escape_edge_label(label: str) -> str:
    return escape_label(label).replace("|", "&#124;")


def layer_group_id(layer: Layer) -> str:
    return f"layer_{layer.slug}"


def group_nodes_by_layer(nodes: Iterable[Node]) -> Dict[Layer, List[Node]]:
    grouped: Dict[Layer, List[Node]] = {}
    for node in nodes:
        # Sanitized nodes always carry a layer.
        layer = node.layer or Layer.COMPUTE
        grouped.setdefault(layer, []).append(node)
    return grouped


def render_node(node: Node) -> str:
    label = f"{symbol_for(node.type)}{escape_label(node.display_label)}"
    if node.is_grouped and node.grouping and node.grouping.node_count > 1:
        label = f"{label} ({node.grouping.node_count} nodes)"
    return f'  {sanitize_id(node.id)}["{label}"]'


def render_edge(edge: Edge, *, dotted: bool = False) -> str:
    arrow = "-.->" if dotted else "-->"
    label = f"|{_escape_edge_label(edge.label)}|" if edge.label else ""
    return f"{sanitize_id(edge.source)} {arrow}{label} {sanitize_id(edge.target)}"


def _subgraph_lines(layer: Layer, nodes: Sequence[Node], title: str) -> List[str]:
    lines = ["", f"%% {layer.value} Layer", f'subgraph {layer_group_id(layer)}["{title}"]']
    lines.extend(render_node(n) for n in nodes)
    lines.append("end")
    return lines


def _icon_style_line(node: Node) -> str:
    cls = GROUPED_CLASS if node.is_grouped else style_class_for(node.type)
    return f"{sanitize_id(node.id)}:::{cls}"


def render(model: ArchitectureModel, options: Optional[RenderOptions] = None) -> str:
    """Render a model as a Mermaid flowchart; the model is re-validated first."""
    opts = options or RenderOptions()
    sanitized = validate_and_log(model, LOG).sanitized_model

    lines: List[str] = [f"flowchart {opts.direction}", ""]
    lines.extend(_style_block_lines())

    groups = group_nodes_by_layer(sanitized.nodes)
    for layer in MAIN_FLOW_LAYERS + CROSS_CUTTING_LAYERS:
        nodes = groups.get(layer)
        if nodes:
            lines.extend(_subgraph_lines(layer, nodes, layer.value))

    lines.extend(["", "%% Edges"])
    lines.extend(render_edge(e) for e in sanitized.edges)

    lines.extend(["", "%% Apply styles"])
    for nodes in groups.values():
        lines.extend(_icon_style_line(n) for n in nodes)
    return "\n".join(lines) + "\n"


# ---------------
# Advanced layout
# ---------------

_UNRANKED = 5

_TYPE_PRIORITY: Mapping[Layer, Mapping[NodeType, int]] = {
    Layer.CONNECTIVITY: {
        NodeType.FRONTDOOR: 1,
        NodeType.APPGW: 2,
        NodeType.APPGATEWAY: 2,
        NodeType.FIREWALL: 3,
        NodeType.BASTION: 4,
    },
    Layer.NETWORKING: {
        NodeType.VNET: 1,
        NodeType.SUBNET: 2,
        NodeType.NSG: 3,
        NodeType.LB: 4,
        NodeType.LOADBALANCER: 4,
    },
}

_ROLE_PRIORITY: Mapping[str, int] = {"web": 1, "app": 2, "database": 3, "general": 4}


def node_priority(node: Node, layer: Layer) -> int:
    if layer is Layer.COMPUTE:
        return _ROLE_PRIORITY.get((node.role or "general").lower(), _UNRANKED)
    return _TYPE_PRIORITY.get(layer, {}).get(node.kind, _UNRANKED)


def sort_nodes_within_layer(nodes: Sequence[Node], layer: Layer) -> List[Node]:
    # sorted() is stable: equal priorities keep their input order.
    return sorted(nodes, key=lambda n: node_priority(n, layer))


class EdgeBucket(str, Enum):
    CONNECTIVITY = "connectivity"
    DATA = "data"
    SECURITY = "security"
    OTHER = "other"

    @property
    def dotted(self) -> bool:
        return self in (EdgeBucket.CONNECTIVITY, EdgeBucket.SECURITY)


_BUCKET_LAYERS: Tuple[Tuple[EdgeBucket, Layer], ...] = (
    (EdgeBucket.CONNECTIVITY, Layer.CONNECTIVITY),
    (EdgeBucket.DATA, Layer.DATA),
    (EdgeBucket.SECURITY, Layer.SECURITY),
)


def classify_edge(edge: Edge, layers_by_id: Mapping[str, Layer]) -> EdgeBucket:
    ends = {layers_by_id.get(edge.source), layers_by_id.get(edge.target)}
    for bucket, layer in _BUCKET_LAYERS:
        if layer in ends:
            return bucket
    return EdgeBucket.OTHER


def partition_edges(model: ArchitectureModel) -> Dict[EdgeBucket, List[Edge]]:
    layers_by_id = {n.id: n.layer for n in model.nodes if n.layer is not None}
    buckets: Dict[EdgeBucket, List[Edge]] = {b: [] for b in EdgeBucket}
    for edge in model.edges:
        buckets[classify_edge(edge, layers_by_id)].append(edge)
    return buckets


def render_advanced(model: ArchitectureModel, options: Optional[RenderOptions] = None) -> str:
    """
    Cosmetic variant of render(): nodes are ordered by a per-layer priority and
    edges are emitted in connectivity, data, security, other buckets, dotted for
    connectivity and security. Nodes take their layer's class.
    """
    opts = options or RenderOptions()
    sanitized = validate_and_log(model, LOG).sanitized_model

    lines: List[str] = [f"flowchart {opts.direction}", ""]
    lines.extend(_advanced_style_block_lines())

    groups = group_nodes_by_layer(sanitized.nodes)
    for layer in MAIN_FLOW_LAYERS:
        nodes = groups.get(layer)
        if nodes:
            lines.extend(_subgraph_lines(layer, sort_nodes_within_layer(nodes, layer), f"{layer.value} Layer"))
    for layer in CROSS_CUTTING_LAYERS:
        nodes = groups.get(layer)
        if nodes:
            lines.extend(_subgraph_lines(layer, nodes, layer.value))

    lines.extend(["", "%% Edges"])
    for bucket, edges in partition_edges(sanitized).items():
        if edges:
            lines.append(f"%% {bucket.value} edges")
            lines.extend(render_edge(e, dotted=bucket.dotted) for e in edges)

    lines.extend(["", "%% Apply styles"])
    for layer, nodes in groups.items():
        lines.extend(f"{sanitize_id(n.id)}:::{layer.slug}" for n in nodes)
    return "\n".join(lines) + "\n"


def is_mmdc_available() -> bool:
    return which("mmdc") is not None


def validate_mermaid_with_mmdc(paths: Sequence[Path]) -> List[Path]:
    """Validate Mermaid files by rendering each one with `mmdc`.

    Mermaid CLI doesn't provide a pure "parse-only" mode; rendering is used as a
    deterministic syntax validation step.

    Returns the validated input paths (sorted).
    """
    mmdc = which("mmdc")
    if not mmdc:
        raise ExportError(
            "Mermaid diagram validation requested but 'mmdc' was not found on PATH. "
            "Install Mermaid CLI and retry: npm install -g @mermaid-js/mermaid-cli"
        )

    ordered = sorted(p for p in paths if p.is_file())
    with tempfile.TemporaryDirectory(prefix="caf-diagram-mmdc-") as td:
        tmp_dir = Path(td)
        for p in ordered:
            out_svg = tmp_dir / f"{p.stem}.svg"
            proc = subprocess.run(
                [mmdc, "-i", str(p), "-o", str(out_svg)],
                text=True,
                capture_output=True,
            )
            if proc.returncode != 0:
                stderr = (proc.stderr or "").strip()
                stdout = (proc.stdout or "").strip()
                detail = stderr or stdout or f"mmdc exited with code {proc.returncode}"
                raise ExportError(f"Mermaid validation failed for {p.name}: {detail}")
    return ordered
