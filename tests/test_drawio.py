from __future__ import annotations

import xml.etree.ElementTree as ET

from caf_diagram.layout import layout
from caf_diagram.model.schema import (
    ArchitectureModel,
    Edge,
    EntityType,
    GroupingInfo,
    Layer,
    ManagementGroup,
    Node,
    Subscription,
)
from caf_diagram.render import render_drawio


def _positioned() -> ArchitectureModel:
    model = ArchitectureModel(
        nodes=(
            Node("n1", label="Hub", type="vnet", layer=Layer.NETWORKING, subscription_id="sub1", entity_type=EntityType.VNET),
            Node("loose", type="sql", layer=Layer.DATA),
        ),
        edges=(Edge("n1", "loose", "peering"),),
        subscriptions=(Subscription("sub1", type="platform-identity", name="Identity", management_group_id="platform"),),
        management_groups=(ManagementGroup("platform", name="Platform", type="platform"),),
    )
    return layout(model)


def _cells(text: str) -> dict:
    root = ET.fromstring(text.encode("utf-8"))
    return {cell.get("id"): cell for cell in root.iter("mxCell")}


def _geometry(cell) -> tuple:
    geo = cell.find("mxGeometry")
    return tuple(geo.get(k) for k in ("x", "y", "width", "height"))


def test_render_drawio_containers_and_relative_nodes() -> None:
    text = render_drawio(_positioned())
    assert text.startswith("<?xml")
    cells = _cells(text)

    assert cells["1"].get("parent") == "0"
    mg = cells["mg-platform"]
    assert mg.get("value") == "Platform"
    assert "swimlane" in mg.get("style")
    assert "fillColor=#1976d2" in mg.get("style")
    assert _geometry(mg) == ("50", "100", "150", "60")

    sub = cells["sub-sub1"]
    assert sub.get("value") == "Subscription: Identity"
    assert "fillColor=#e3f2fd" in sub.get("style")
    assert _geometry(sub) == ("230", "100", "200", "300")

    hub = cells["node-n1"]
    assert hub.get("parent") == "sub-sub1"
    assert hub.get("value") == "Hub"
    assert _geometry(hub) == ("20", "50", "120", "70")
    icon = cells["node-n1-icon"]
    assert icon.get("parent") == "sub-sub1"
    assert "image=/azure-icons/vnet.svg" in icon.get("style")
    assert _geometry(icon) == ("25", "55", "30", "30")


def test_render_drawio_lines_up_unplaced_nodes_below() -> None:
    cells = _cells(render_drawio(_positioned()))
    loose = cells["node-loose"]
    assert loose.get("parent") == "1"
    assert loose.get("value") == "loose"
    assert _geometry(loose) == ("50", "450", "120", "70")


def test_render_drawio_edges_reference_node_cells() -> None:
    cells = _cells(render_drawio(_positioned()))
    edge = cells["edge-0"]
    assert edge.get("edge") == "1"
    assert (edge.get("source"), edge.get("target")) == ("node-n1", "node-loose")
    assert edge.get("value") == "peering"
    assert "strokeColor=#f57c00" in edge.get("style")
    assert "edgeStyle=orthogonalEdgeStyle" in edge.get("style")


def test_render_drawio_without_layout() -> None:
    model = ArchitectureModel(
        nodes=(
            Node("a", label="A very long application server name", type="vm", layer=Layer.COMPUTE),
            Node("kv", type="keyvault", layer=Layer.SECURITY, grouping=GroupingInfo(node_count=3)),
            Node("a", type="vm"),
        ),
        edges=(Edge("a", "kv"), Edge("a", "ghost")),
    )
    cells = _cells(render_drawio(model))

    assert cells["node-a"].get("value") == "A very long applicati..."
    assert cells["node-kv"].get("value") == "kv (3 nodes)"
    assert _geometry(cells["node-a"]) == ("50", "100", "120", "70")
    assert _geometry(cells["node-kv"]) == ("190", "100", "120", "70")
    assert "node-nodea_2" in cells
    edges = [c for c in cells.values() if c.get("edge") == "1"]
    assert len(edges) == 1
    assert "dashed=1" in edges[0].get("style")
    assert "edgeStyle" not in edges[0].get("style")


def test_render_drawio_embeds_sprites_and_is_deterministic() -> None:
    model = _positioned()
    text = render_drawio(model, {"vnet": "PHN2Zy8+"})
    assert "image=data:image/svg+xml,PHN2Zy8+" in _cells(text)["node-n1-icon"].get("style")
    assert render_drawio(model) == render_drawio(model)
