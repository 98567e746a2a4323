from __future__ import annotations

from rich.console import Console

from caf_diagram.model.schema import ArchitectureModel, Edge, Layer, Node
from caf_diagram.util.console import render_summary_table, render_validation_table
from caf_diagram.validate import validate


def test_validation_table_lists_warnings() -> None:
    console = Console(record=True, width=160)
    model = ArchitectureModel(nodes=(Node("a[1]", layer=Layer.COMPUTE),), edges=(Edge("a[1]", "a[1]"),))
    render_validation_table(validate(model), console=console)
    text = console.export_text()
    assert "self_edge" in text
    assert "Skipping self-edge from a[1] to a[1]" in text
    assert "invalid: 1 warning(s)" in text


def test_summary_table_rows() -> None:
    console = Console(record=True, width=160)
    render_summary_table(
        status="valid",
        counts={"Nodes": 2},
        written=["diagram.mmd", "canvas.json"],
        outdir="out",
        console=console,
    )
    text = console.export_text()
    assert "Diagram Summary" in text
    assert "diagram.mmd, canvas.json" in text
