from __future__ import annotations

import base64

from caf_diagram.model.schema import ArchitectureModel, Edge, GroupingInfo, Layer, Node
from caf_diagram.render import RenderOptions
from caf_diagram.render.plantuml import load_sprites, render_plantuml, svg_to_sprite

SVG = """<?xml version="1.0" encoding="UTF-8"?>
<!-- generated -->
<svg xmlns="http://www.w3.org/2000/svg"><rect width="1" height="1"/></svg>
"""


def _model() -> ArchitectureModel:
    return ArchitectureModel(
        nodes=(
            Node("web-vm", label='Web "VM"', type="vm", layer=Layer.COMPUTE),
            Node("fw", label="Firewall", type="firewall", layer=Layer.CONNECTIVITY),
            Node("kv", label="Vault", type="keyvault", layer=Layer.SECURITY),
        ),
        edges=(Edge("fw", "web-vm", "https"), Edge("web-vm", "kv")),
    )


def test_svg_to_sprite_strips_declaration_and_comments() -> None:
    payload = svg_to_sprite(SVG)
    decoded = base64.b64decode(payload).decode("utf-8")
    assert decoded.startswith("<svg")
    assert "<?xml" not in decoded
    assert "generated" not in decoded


def test_render_plantuml_structure() -> None:
    text = render_plantuml(_model())
    lines = text.splitlines()
    assert lines[0] == "@startuml"
    assert lines[-1] == "@enduml"
    assert "left to right direction" in lines
    assert text.index('package "Connectivity"') < text.index('package "Compute"') < text.index('package "Security"')
    assert '  rectangle "Web \'VM\'" <<compute>> as web_vm' in lines
    assert "fw --> web_vm : https" in lines
    assert "web_vm --> kv" in lines
    assert "!$icon_" not in text


def test_render_plantuml_declares_sprites_for_present_types_only() -> None:
    sprites = {"vm": "QUJD", "sql": "REVG", "FIREWALL": "R0hJ"}
    text = render_plantuml(_model(), sprites=sprites)
    lines = text.splitlines()
    assert '!$icon_vm = "<img:data:image/svg+xml;base64,QUJD{scale=0.5}>"' in lines
    assert '!$icon_firewall = "<img:data:image/svg+xml;base64,R0hJ{scale=0.5}>"' in lines
    assert "$icon_sql" not in text
    assert '  rectangle "$icon_vm\\nWeb \'VM\'" <<compute>> as web_vm' in lines
    assert '  rectangle "Vault" <<security>> as kv' in lines


def test_render_plantuml_direction_and_groups() -> None:
    model = ArchitectureModel(
        nodes=(Node("t", label="Web Tier", type="vm", layer=Layer.COMPUTE, grouping=GroupingInfo(node_count=4)),)
    )
    text = render_plantuml(model, RenderOptions(direction="TB"))
    assert "top to bottom direction" in text.splitlines()
    assert "Web Tier (4 nodes)" in text


def test_render_plantuml_empty_model() -> None:
    text = render_plantuml(ArchitectureModel())
    assert text.startswith("@startuml\n")
    assert text.endswith("@enduml\n")
    assert "package" not in text


def test_load_sprites_reads_existing_icon_files(tmp_path) -> None:
    (tmp_path / "sql.svg").write_text(SVG, encoding="utf-8")
    sprites = load_sprites(tmp_path)
    assert sprites == {"sql": svg_to_sprite(SVG)}
