from __future__ import annotations

import logging
import sys
from typing import Dict, List, Optional

from .config import RunConfig, load_run_config
from .export.canvas import CANVAS_FILENAME, write_canvas_json
from .grouping import group_by_tier
from .layout import layout
from .logging import LogConfig, StepTimers, get_logger, log_event, setup_logging
from .model.io import load_model
from .model.schema import ArchitectureModel
from .pipeline import generate, write_bundle
from .render.mermaid import is_mmdc_available, validate_mermaid_with_mmdc
from .render.plantuml import load_sprites
from .util.console import render_summary_table, render_validation_table
from .util.errors import ConfigError, ExitCode, ExportError, ModelError, as_exit_code
from .validate import validate, validate_and_log

LOG = get_logger(__name__)


def _load(cfg: RunConfig) -> ArchitectureModel:
    if cfg.model is None:
        raise ConfigError("--model is required")
    try:
        return load_model(cfg.model)
    except FileNotFoundError as e:
        raise ModelError(f"Model file not found: {cfg.model}") from e


def _sprites(cfg: RunConfig) -> Dict[str, str]:
    if cfg.sprites_dir is None:
        return {}
    if not cfg.sprites_dir.is_dir():
        raise ConfigError(f"Sprites directory not found: {cfg.sprites_dir}")
    return load_sprites(cfg.sprites_dir)


def cmd_render(cfg: RunConfig) -> int:
    timers = StepTimers()
    log_event(LOG, logging.INFO, "Render run started", step="run", phase="start", timers=timers)
    model = _load(cfg)
    bundle = generate(
        model,
        cfg.formats,
        cfg.layout_options(),
        cfg.render_options(),
        _sprites(cfg) if {"plantuml", "drawio"} & set(cfg.formats) else None,
        group_tiers=cfg.group_tiers,
    )
    written = write_bundle(bundle, cfg.outdir)
    log_event(
        LOG,
        logging.INFO,
        "Render run complete",
        step="run",
        phase="complete",
        timers=timers,
        outdir=str(cfg.outdir),
        files=[p.name for p in written],
    )
    counts = {
        "Nodes": len(bundle.positioned.nodes),
        "Edges": len(bundle.positioned.edges),
        "Warnings": len(bundle.validation.warnings),
    }
    render_summary_table(
        status="valid" if bundle.validation.is_valid else "repaired",
        counts=counts,
        written=[p.name for p in written],
        outdir=str(cfg.outdir),
    )
    return int(ExitCode.OK)


def cmd_layout(cfg: RunConfig) -> int:
    model = validate_and_log(_load(cfg), LOG).sanitized_model
    if cfg.group_tiers:
        model = group_by_tier(model).model
    positioned = layout(model, cfg.layout_options())
    try:
        path = write_canvas_json(positioned, cfg.outdir / CANVAS_FILENAME)
    except OSError as e:
        raise ExportError(f"Failed to write {CANVAS_FILENAME}: {e}") from e
    LOG.info("Wrote canvas", extra={"step": "export", "path": str(path)})
    print(str(path))
    return int(ExitCode.OK)


def cmd_validate(cfg: RunConfig) -> int:
    result = validate(_load(cfg))
    render_validation_table(result)
    return int(ExitCode.OK) if result.is_valid else int(ExitCode.INVALID_MODEL)


def cmd_check(cfg: RunConfig) -> int:
    if not is_mmdc_available():
        print("SKIP: 'mmdc' not found on PATH; Mermaid validation skipped.")
        return int(ExitCode.OK)
    paths = sorted(cfg.outdir.glob("*.mmd"))
    if not paths:
        raise ExportError(f"No .mmd files found in {cfg.outdir}")
    checked = validate_mermaid_with_mmdc(paths)
    for p in checked:
        print(f"OK: {p.name}")
    return int(ExitCode.OK)


def main(argv: Optional[List[str]] = None) -> None:
    try:
        command, cfg = load_run_config(argv)
        setup_logging(LogConfig(level=cfg.log_level, json_logs=cfg.json_logs))

        if command == "render":
            code = cmd_render(cfg)
        elif command == "layout":
            code = cmd_layout(cfg)
        elif command == "validate":
            code = cmd_validate(cfg)
        elif command == "check":
            code = cmd_check(cfg)
        else:
            raise ConfigError(f"Unknown command: {command}")

        sys.exit(code)
    except SystemExit:
        raise
    except BrokenPipeError:
        # Common when users pipe to `head` or similar tools.
        sys.exit(0)
    except Exception as e:
        setup_logging(LogConfig())
        LOG.error("Execution failed", extra={"error": str(e)})
        sys.exit(as_exit_code(e))


if __name__ == "__main__":
    main()
