from __future__ import annotations

import argparse
import json
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from .layout import LayoutOptions
from .render import RenderOptions, list_formats
from .util.errors import ConfigError

# --------
# Defaults
# --------
DEFAULT_FORMATS = ["mermaid", "mermaid-advanced", "plantuml", "drawio"]
DEFAULT_DIRECTION = "LR"
COMMANDS = ("render", "layout", "validate", "check")
ALLOWED_CONFIG_KEYS = {
    "model",
    "outdir",
    "formats",
    "direction",
    "group_tiers",
    "sprites_dir",
    "json_logs",
    "log_level",
    "node_width",
    "node_height",
    "column_spacing",
    "row_spacing",
    "container_padding",
}
BOOL_CONFIG_KEYS = {"group_tiers", "json_logs"}
FLOAT_CONFIG_KEYS = {"node_width", "node_height", "column_spacing", "row_spacing", "container_padding"}
PATH_CONFIG_KEYS = {"model", "outdir", "sprites_dir"}
STR_CONFIG_KEYS = {"direction", "log_level"}

_ENV_PREFIX = "CAF_DIAG_"


@dataclass(frozen=True)
class RunConfig:
    # General
    outdir: Path
    model: Optional[Path] = None
    json_logs: bool = False
    log_level: str = "INFO"

    # Output
    formats: List[str] = field(default_factory=lambda: list(DEFAULT_FORMATS))
    direction: str = DEFAULT_DIRECTION
    group_tiers: bool = False
    sprites_dir: Optional[Path] = None

    # Layout
    node_width: float = LayoutOptions.node_width
    node_height: float = LayoutOptions.node_height
    column_spacing: float = LayoutOptions.column_spacing
    row_spacing: float = LayoutOptions.row_spacing
    container_padding: float = LayoutOptions.container_padding

    def layout_options(self) -> LayoutOptions:
        return LayoutOptions(
            node_width=self.node_width,
            node_height=self.node_height,
            column_spacing=self.column_spacing,
            row_spacing=self.row_spacing,
            container_padding=self.container_padding,
        )

    def render_options(self) -> RenderOptions:
        return RenderOptions(direction=self.direction)


def _parse_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text)
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ValueError(f"Failed to parse config file {path}: {e}") from e
    if not isinstance(data, dict):
        raise ValueError("Top-level config must be an object")
    return data


def _env_str(name: str) -> Optional[str]:
    raw = os.getenv(_ENV_PREFIX + name)
    if raw is None:
        return None
    raw = raw.strip()
    if not raw:
        return None
    return raw


def _env_bool(name: str) -> Optional[bool]:
    raw = _env_str(name)
    if raw is None:
        return None
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_float(name: str) -> Optional[float]:
    raw = _env_str(name)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _coerce_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in {"1", "true", "yes", "on"}:
            return True
        if raw in {"0", "false", "no", "off"}:
            return False
    raise ValueError(f"Config field '{key}' must be a boolean")


def _coerce_float(key: str, value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value)
        except ValueError:
            pass
    raise ValueError(f"Config field '{key}' must be a number")


def _split_formats(value: Any) -> List[str]:
    if isinstance(value, str):
        return [f.strip().lower() for f in value.split(",") if f.strip()]
    if isinstance(value, list) and all(isinstance(f, str) for f in value):
        return [f.strip().lower() for f in value if f.strip()]
    raise ValueError("Config field 'formats' must be a list of strings or comma-separated string")


def _normalize_config_file(data: Dict[str, Any]) -> Dict[str, Any]:
    unknown = sorted(set(data.keys()) - ALLOWED_CONFIG_KEYS)
    if unknown:
        warnings.warn(f"Unknown config keys ignored: {', '.join(unknown)}")
    normalized: Dict[str, Any] = {}
    for key, value in data.items():
        if key not in ALLOWED_CONFIG_KEYS:
            continue
        if value is None:
            normalized[key] = None
            continue
        if key == "formats":
            normalized[key] = _split_formats(value)
        elif key in BOOL_CONFIG_KEYS:
            normalized[key] = _coerce_bool(key, value)
        elif key in FLOAT_CONFIG_KEYS:
            normalized[key] = _coerce_float(key, value)
        elif key in PATH_CONFIG_KEYS:
            if isinstance(value, (str, Path)):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string path")
        elif key in STR_CONFIG_KEYS:
            if isinstance(value, str):
                normalized[key] = value
            else:
                raise ValueError(f"Config field '{key}' must be a string")
    return _compact_dict(normalized)


def _compact_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Drop keys with None values so they don't override lower-precedence config.
    """
    return {k: v for k, v in data.items() if v is not None}


def _merge_dicts(a: Dict[str, Any], b: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(a)
    merged.update(b)
    return merged


def _validate_formats(formats: List[str]) -> List[str]:
    known = set(list_formats())
    unknown = [f for f in formats if f not in known]
    if unknown:
        raise ConfigError(f"Unknown diagram format(s): {', '.join(unknown)} (expected: {', '.join(sorted(known))})")
    if not formats:
        raise ConfigError("At least one diagram format is required")
    # Keep first occurrence order.
    return list(dict.fromkeys(formats))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="caf-diagram", description="CAF architecture diagram generator")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", type=Path, help="Optional YAML/JSON config file")
        p.add_argument(
            "--json-logs",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Enable JSON logs",
        )
        p.add_argument("--log-level", default=None, help="Log level (INFO, DEBUG, ...)")

    def add_layout(p: argparse.ArgumentParser) -> None:
        p.add_argument("--node-width", type=float, default=None, help="Node width in px (default 120)")
        p.add_argument("--node-height", type=float, default=None, help="Node height in px (default 70)")
        p.add_argument("--column-spacing", type=float, default=None, help="Column pitch in px (default 180)")
        p.add_argument("--row-spacing", type=float, default=None, help="Gap between container rows (default 90)")
        p.add_argument("--container-padding", type=float, default=None, help="Inner container padding (default 20)")
        p.add_argument(
            "--group-tiers",
            action=argparse.BooleanOptionalAction,
            default=None,
            help="Collapse nodes into web/app/db/... tiers before layout",
        )

    p_render = subparsers.add_parser("render", help="Validate, lay out and render diagrams")
    add_common(p_render)
    add_layout(p_render)
    p_render.add_argument("--model", type=Path, default=None, help="Architecture model (YAML or JSON)")
    p_render.add_argument("--outdir", type=Path, default=None, help="Output directory")
    p_render.add_argument(
        "--format",
        dest="formats",
        action="append",
        default=None,
        help="Diagram format (repeatable or comma-separated): mermaid, mermaid-advanced, plantuml",
    )
    p_render.add_argument("--direction", default=None, help="Flowchart direction (LR, RL, TB, BT)")
    p_render.add_argument("--sprites-dir", type=Path, default=None, help="Directory of SVG icons for PlantUML sprites")

    p_layout = subparsers.add_parser("layout", help="Lay out a model and write canvas.json")
    add_common(p_layout)
    add_layout(p_layout)
    p_layout.add_argument("--model", type=Path, default=None, help="Architecture model (YAML or JSON)")
    p_layout.add_argument("--outdir", type=Path, default=None, help="Output directory")

    p_validate = subparsers.add_parser("validate", help="Report structural problems in a model")
    add_common(p_validate)
    p_validate.add_argument("--model", type=Path, default=None, help="Architecture model (YAML or JSON)")

    p_check = subparsers.add_parser("check", help="Validate written Mermaid files with mmdc")
    add_common(p_check)
    p_check.add_argument("--outdir", type=Path, default=None, help="Directory holding .mmd files")

    return parser


def load_run_config(
    argv: Optional[List[str]] = None,
    args: Optional[argparse.Namespace] = None,
) -> Tuple[str, RunConfig]:
    """
    Build RunConfig by merging defaults, optional config file, env vars, and CLI args.
    Precedence (low -> high): defaults < config file < env < CLI.

    Returns:
      (command, RunConfig) where command is one of render|layout|validate|check
    """
    ns = args if args is not None else build_parser().parse_args(argv)
    command = ns.command

    base: Dict[str, Any] = {
        "model": None,
        "outdir": None,
        "formats": list(DEFAULT_FORMATS),
        "direction": DEFAULT_DIRECTION,
        "group_tiers": False,
        "sprites_dir": None,
        "json_logs": False,
        "log_level": "INFO",
        "node_width": LayoutOptions.node_width,
        "node_height": LayoutOptions.node_height,
        "column_spacing": LayoutOptions.column_spacing,
        "row_spacing": LayoutOptions.row_spacing,
        "container_padding": LayoutOptions.container_padding,
    }

    file_cfg: Dict[str, Any] = {}
    if getattr(ns, "config", None):
        file_cfg = _normalize_config_file(_parse_config_file(Path(ns.config)))

    env_formats = _env_str("FORMATS")
    env_cfg: Dict[str, Any] = _compact_dict(
        {
            "model": _env_str("MODEL"),
            "outdir": _env_str("OUTDIR"),
            "formats": _split_formats(env_formats) if env_formats else None,
            "direction": _env_str("DIRECTION"),
            "group_tiers": _env_bool("GROUP_TIERS"),
            "sprites_dir": _env_str("SPRITES_DIR"),
            "json_logs": _env_bool("JSON_LOGS"),
            "log_level": _env_str("LOG_LEVEL"),
            "node_width": _env_float("NODE_WIDTH"),
            "node_height": _env_float("NODE_HEIGHT"),
            "column_spacing": _env_float("COLUMN_SPACING"),
            "row_spacing": _env_float("ROW_SPACING"),
            "container_padding": _env_float("CONTAINER_PADDING"),
        }
    )

    cli_formats = getattr(ns, "formats", None)
    cli_cfg: Dict[str, Any] = _compact_dict(
        {
            "model": getattr(ns, "model", None),
            "outdir": getattr(ns, "outdir", None),
            "formats": _split_formats(",".join(cli_formats)) if cli_formats else None,
            "direction": getattr(ns, "direction", None),
            "group_tiers": getattr(ns, "group_tiers", None),
            "sprites_dir": getattr(ns, "sprites_dir", None),
            "json_logs": getattr(ns, "json_logs", None),
            "log_level": getattr(ns, "log_level", None),
            "node_width": getattr(ns, "node_width", None),
            "node_height": getattr(ns, "node_height", None),
            "column_spacing": getattr(ns, "column_spacing", None),
            "row_spacing": getattr(ns, "row_spacing", None),
            "container_padding": getattr(ns, "container_padding", None),
        }
    )

    merged = _merge_dicts(base, _merge_dicts(file_cfg, _merge_dicts(env_cfg, cli_cfg)))

    if command in {"render", "layout", "validate"} and not merged.get("model"):
        raise ConfigError(f"--model is required for {command}")

    layout_values = {key: merged[key] for key in FLOAT_CONFIG_KEYS}
    # Shares validation (non-negative numbers) with programmatic callers.
    LayoutOptions.from_mapping(layout_values)

    model_raw = merged.get("model")
    outdir_raw = merged.get("outdir")
    sprites_raw = merged.get("sprites_dir")
    cfg = RunConfig(
        outdir=Path(outdir_raw) if outdir_raw else Path.cwd(),
        model=Path(model_raw) if model_raw else None,
        json_logs=bool(merged["json_logs"]),
        log_level=str(merged.get("log_level") or "INFO").upper(),
        formats=_validate_formats(list(merged["formats"])),
        direction=str(merged.get("direction") or DEFAULT_DIRECTION),
        group_tiers=bool(merged["group_tiers"]),
        sprites_dir=Path(sprites_raw) if sprites_raw else None,
        **{key: float(value) for key, value in layout_values.items()},
    )
    return command, cfg


def dump_config(cfg: RunConfig) -> Dict[str, Any]:
    return {
        "model": str(cfg.model) if cfg.model else None,
        "outdir": str(cfg.outdir),
        "formats": list(cfg.formats),
        "direction": cfg.direction,
        "group_tiers": cfg.group_tiers,
        "sprites_dir": str(cfg.sprites_dir) if cfg.sprites_dir else None,
        "json_logs": cfg.json_logs,
        "log_level": cfg.log_level,
        "node_width": cfg.node_width,
        "node_height": cfg.node_height,
        "column_spacing": cfg.column_spacing,
        "row_spacing": cfg.row_spacing,
        "container_padding": cfg.container_padding,
    }
