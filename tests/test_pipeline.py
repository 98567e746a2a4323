from __future__ import annotations

import json

import pytest

from caf_diagram.layout import LayoutOptions
from caf_diagram.model.schema import ArchitectureModel, Edge, EntityType, Layer, Node, Subscription
from caf_diagram.pipeline import DEFAULT_FORMATS, generate, write_bundle
from caf_diagram.render import RenderOptions
from caf_diagram.util.errors import ConfigError


def _model() -> ArchitectureModel:
    return ArchitectureModel(
        nodes=(
            Node("web", label="Web Server", type="vm", layer=Layer.COMPUTE, subscription_id="lz", entity_type=EntityType.TIER),
            Node("web", label="Web Server 2", type="vm", layer=Layer.COMPUTE, subscription_id="lz", entity_type=EntityType.TIER),
            Node("sql", label="Orders DB", type="sql", subscription_id="lz", entity_type=EntityType.PAAS),
            Node("fw", label="Firewall", type="firewall", layer=Layer.CONNECTIVITY),
        ),
        edges=(Edge("fw", "web", "https"), Edge("web", "sql", "tds"), Edge("sql", "sql")),
        subscriptions=(Subscription("lz", type="landingzone-corp"),),
    )


def test_generate_validates_lays_out_and_renders() -> None:
    bundle = generate(_model())

    assert list(bundle.diagrams) == list(DEFAULT_FORMATS)
    assert not bundle.validation.is_valid
    kinds = sorted(w.kind.value for w in bundle.validation.warnings)
    assert kinds == ["defaulted_layer", "duplicate_node_id", "self_edge"]

    ids = [n.id for n in bundle.positioned.nodes]
    assert ids == ["web", "nodeweb_1", "sql", "fw"]
    placed = {n.id: n.bounds for n in bundle.positioned.nodes}
    assert placed["web"].x == 410 + 20
    assert placed["fw"] is None

    assert bundle.diagrams["mermaid"].startswith("flowchart LR")
    assert "nodeweb_1" in bundle.diagrams["mermaid"]
    assert bundle.diagrams["plantuml"].startswith("@startuml")


def test_generate_respects_options_and_format_order() -> None:
    bundle = generate(
        _model(),
        ["plantuml", "mermaid"],
        LayoutOptions(column_spacing=300),
        RenderOptions(direction="TB"),
    )
    assert list(bundle.diagrams) == ["plantuml", "mermaid"]
    assert bundle.diagrams["mermaid"].startswith("flowchart TB")
    sub = bundle.positioned.subscriptions[0]
    assert sub.bounds.x == 50 + 2 * 300


def test_generate_with_tier_grouping() -> None:
    bundle = generate(_model(), ["mermaid"], group_tiers=True)
    text = bundle.diagrams["mermaid"]
    assert "web_tier" in text
    assert "(2 nodes)" in text
    assert "web_tier:::grouped" in text


def test_generate_unknown_format_fails_before_work() -> None:
    with pytest.raises(ConfigError):
        generate(_model(), ["mermaid", "svg"])


def test_write_bundle_writes_all_artifacts(tmp_path) -> None:
    bundle = generate(_model())
    written = write_bundle(bundle, tmp_path / "out")
    names = sorted(p.name for p in written)
    assert names == ["canvas.json", "diagram.advanced.mmd", "diagram.drawio", "diagram.mmd", "diagram.puml"]
    assert (tmp_path / "out" / "diagram.mmd").read_text(encoding="utf-8") == bundle.diagrams["mermaid"]
    canvas = json.loads((tmp_path / "out" / "canvas.json").read_text(encoding="utf-8"))
    assert [n["id"] for n in canvas["nodes"]] == ["web", "nodeweb_1", "sql", "fw"]
