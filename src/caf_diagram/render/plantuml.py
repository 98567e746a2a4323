from __future__ import annotations

import base64
import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..icons import icon_catalog, resolve
from ..logging import get_logger
from ..model.schema import CROSS_CUTTING_LAYERS, MAIN_FLOW_LAYERS, ArchitectureModel, Edge, Node
from ..validate import validate_and_log
from .mermaid import RenderOptions, group_nodes_by_layer, layer_group_id, sanitize_id

LOG = get_logger(__name__)

_XML_DECL = re.compile(r"<\?xml[^>]*\?>")
_XML_COMMENT = re.compile(r"<!--.*?-->", re.DOTALL)

_HORIZONTAL_DIRECTIONS = {"LR", "RL"}


def svg_to_sprite(svg_text: str) -> str:
    """Strip the XML declaration and comments from an SVG and base64-encode the rest."""
    clean = _XML_COMMENT.sub("", _XML_DECL.sub("", svg_text)).strip()
    return base64.b64encode(clean.encode("utf-8")).decode("ascii")


def load_sprites(icons_dir: Path) -> Dict[str, str]:
    """
    Read the SVG for every catalogued node type from icons_dir.
    Missing files are skipped; the renderer then draws those nodes without an icon.
    """
    sprites: Dict[str, str] = {}
    for node_type, spec in icon_catalog().items():
        path = icons_dir / spec.filename
        if not path.is_file():
            continue
        sprites[node_type] = svg_to_sprite(path.read_text(encoding="utf-8"))
    LOG.debug("Loaded icon sprites", extra={"step": "sprites", "count": len(sprites), "dir": str(icons_dir)})
    return sprites


def _sprite_var(node_type: str) -> str:
    return f"$icon_{sanitize_id(node_type.lower())}"


def _escape(text: str) -> str:
    safe = str(text).replace('"', "'")
    return safe.replace("\r\n", "\n").replace("\r", "\n").replace("\n", "\\n")


def _header_lines(direction: str) -> List[str]:
    lines = [
        "@startuml",
        "!theme plain",
        "skinparam rectangleRoundCorner 8",
        "skinparam defaultFontName \"Segoe UI\"",
        "skinparam shadowing false",
        "skinparam backgroundColor #FFFFFF",
        "skinparam arrowColor #0078D4",
        "skinparam arrowThickness 2",
    ]
    seen = set()
    for spec in icon_catalog().values():
        if spec.category in seen:
            continue
        seen.add(spec.category)
        lines.append(f"skinparam rectangle<<{spec.category}>> {{")
        lines.append(f"  BorderColor {spec.default_color}")
        lines.append("}")
    if direction.upper() in _HORIZONTAL_DIRECTIONS:
        lines.append("left to right direction")
    else:
        lines.append("top to bottom direction")
    return lines


def _node_line(node: Node, sprites: Mapping[str, str]) -> str:
    label = _escape(node.display_label)
    if node.is_grouped and node.grouping and node.grouping.node_count > 1:
        label = f"{label} ({node.grouping.node_count} nodes)"
    key = node.kind.value
    if key in sprites:
        label = f"{_sprite_var(key)}\\n{label}"
    category = resolve(node.kind).category
    return f'  rectangle "{label}" <<{category}>> as {sanitize_id(node.id)}'


def _edge_line(edge: Edge) -> str:
    line = f"{sanitize_id(edge.source)} --> {sanitize_id(edge.target)}"
    if edge.label:
        line = f"{line} : {_escape(edge.label)}"
    return line


def render_plantuml(
    model: ArchitectureModel,
    options: Optional[RenderOptions] = None,
    sprites: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Render a model as PlantUML with one package per layer.

    ``sprites`` maps a node type to a base64 SVG payload (see svg_to_sprite); one
    icon variable is declared per type that is both present and has a payload.
    """
    opts = options or RenderOptions()
    payloads = {k.lower(): v for k, v in (sprites or {}).items()}
    sanitized = validate_and_log(model, LOG).sanitized_model

    lines = _header_lines(opts.direction)

    used_types: List[str] = []
    for node in sanitized.nodes:
        key = node.kind.value
        if key in payloads and key not in used_types:
            used_types.append(key)
    if used_types:
        lines.append("' Icons")
        for key in used_types:
            lines.append(f'!{_sprite_var(key)} = "<img:data:image/svg+xml;base64,{payloads[key]}{{scale=0.5}}>"')
    active = {k: payloads[k] for k in used_types}

    groups = group_nodes_by_layer(sanitized.nodes)
    for layer in MAIN_FLOW_LAYERS + CROSS_CUTTING_LAYERS:
        nodes = groups.get(layer)
        if not nodes:
            continue
        lines.append(f"' {layer.value} Layer")
        lines.append(f'package "{layer.value}" as {layer_group_id(layer)} {{')
        lines.extend(_node_line(n, active) for n in nodes)
        lines.append("}")

    lines.extend(_edge_line(e) for e in sanitized.edges)
    lines.append("@enduml")
    return "\n".join(lines) + "\n"
