from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .export.canvas import CANVAS_FILENAME, write_canvas_json
from .grouping import group_by_tier
from .layout import LayoutOptions, layout
from .logging import StepTimers, get_logger, log_event
from .model.schema import ArchitectureModel
from .render import RenderOptions, get_renderer
from .util.errors import ExportError
from .validate import ValidationResult, validate_and_log

LOG = get_logger(__name__)

DEFAULT_FORMATS = ("mermaid", "mermaid-advanced", "plantuml", "drawio")


@dataclass(frozen=True)
class DiagramBundle:
    validation: ValidationResult
    positioned: ArchitectureModel
    # format name -> diagram text, in requested order
    diagrams: Dict[str, str] = field(default_factory=dict)


def generate(
    model: ArchitectureModel,
    formats: Sequence[str] = DEFAULT_FORMATS,
    layout_options: Optional[LayoutOptions] = None,
    render_options: Optional[RenderOptions] = None,
    sprites: Optional[Mapping[str, str]] = None,
    *,
    group_tiers: bool = False,
) -> DiagramBundle:
    """
    Validate, optionally collapse tiers, lay out and render a model.

    Formats are resolved up front so an unknown name fails with ConfigError before
    any work is done. Text renderers read the sanitized model; renderers flagged
    ``positioned`` (draw.io) read the laid-out one.
    """
    renderers = [get_renderer(name) for name in formats]
    timers = StepTimers()

    log_event(LOG, logging.INFO, "Validation started", step="validate", phase="start", timers=timers)
    validation = validate_and_log(model, LOG)
    log_event(
        LOG,
        logging.INFO,
        "Validation complete",
        step="validate",
        phase="complete",
        timers=timers,
        is_valid=validation.is_valid,
        warnings=len(validation.warnings),
    )

    working = validation.sanitized_model
    if group_tiers:
        grouped = group_by_tier(working)
        working = grouped.model
        LOG.info("Collapsed nodes into tiers", extra={"step": "grouping", "groups": sorted(grouped.grouping)})

    log_event(LOG, logging.INFO, "Layout started", step="layout", phase="start", timers=timers)
    positioned = layout(working, layout_options)
    log_event(
        LOG,
        logging.INFO,
        "Layout complete",
        step="layout",
        phase="complete",
        timers=timers,
        placed=sum(1 for n in positioned.nodes if n.bounds is not None),
    )

    diagrams: Dict[str, str] = {}
    for renderer in renderers:
        key = f"render:{renderer.name}"
        log_event(LOG, logging.INFO, "Render started", step="render", phase="start", timers=timers, timer_key=key)
        source = positioned if renderer.positioned else working
        diagrams[renderer.name] = renderer(source, render_options, sprites)
        log_event(
            LOG,
            logging.INFO,
            "Render complete",
            step="render",
            phase="complete",
            timers=timers,
            timer_key=key,
            format=renderer.name,
        )

    return DiagramBundle(validation=validation, positioned=positioned, diagrams=diagrams)


def write_bundle(bundle: DiagramBundle, outdir: Path) -> List[Path]:
    """Write each diagram under its format's file name plus canvas.json; returns the paths written."""
    try:
        outdir.mkdir(parents=True, exist_ok=True)
        written: List[Path] = []
        for name, text in bundle.diagrams.items():
            path = outdir / get_renderer(name).filename
            path.write_text(text, encoding="utf-8")
            written.append(path)
        written.append(write_canvas_json(bundle.positioned, outdir / CANVAS_FILENAME))
    except OSError as e:
        raise ExportError(f"Failed to write diagrams to {outdir}: {e}") from e
    LOG.info("Wrote diagram bundle", extra={"step": "export", "outdir": str(outdir), "files": len(written)})
    return written
