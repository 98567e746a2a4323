from __future__ import annotations

from pathlib import Path

import pytest

from caf_diagram.config import DEFAULT_FORMATS, RunConfig, dump_config, load_run_config
from caf_diagram.layout import LayoutOptions
from caf_diagram.util.errors import ConfigError


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch) -> None:
    for name in ("DIRECTION", "FORMATS", "MODEL", "OUTDIR", "NODE_WIDTH", "GROUP_TIERS", "LOG_LEVEL", "JSON_LOGS"):
        monkeypatch.delenv(f"CAF_DIAG_{name}", raising=False)


def test_render_defaults() -> None:
    command, cfg = load_run_config(argv=["render", "--model", "model.yaml"])
    assert command == "render"
    assert isinstance(cfg, RunConfig)
    assert cfg.model == Path("model.yaml")
    assert cfg.outdir == Path.cwd()
    assert cfg.formats == DEFAULT_FORMATS
    assert cfg.direction == "LR"
    assert not cfg.group_tiers
    assert cfg.layout_options() == LayoutOptions()
    assert cfg.render_options().direction == "LR"


def test_env_overrides_defaults(monkeypatch) -> None:
    monkeypatch.setenv("CAF_DIAG_DIRECTION", "TB")
    monkeypatch.setenv("CAF_DIAG_NODE_WIDTH", "150")
    monkeypatch.setenv("CAF_DIAG_GROUP_TIERS", "yes")
    _, cfg = load_run_config(argv=["render", "--model", "m.json"])
    assert cfg.direction == "TB"
    assert cfg.node_width == 150
    assert cfg.group_tiers


def test_cli_overrides_env(monkeypatch) -> None:
    monkeypatch.setenv("CAF_DIAG_DIRECTION", "TB")
    _, cfg = load_run_config(argv=["render", "--model", "m.json", "--direction", "RL", "--no-group-tiers"])
    assert cfg.direction == "RL"
    assert not cfg.group_tiers


def test_formats_repeatable_and_comma_separated() -> None:
    _, cfg = load_run_config(
        argv=["render", "--model", "m.json", "--format", "plantuml,mermaid", "--format", "plantuml"]
    )
    assert cfg.formats == ["plantuml", "mermaid"]


def test_unknown_format_is_config_error() -> None:
    with pytest.raises(ConfigError):
        load_run_config(argv=["render", "--model", "m.json", "--format", "visio"])


def test_model_required_for_model_commands() -> None:
    with pytest.raises(ConfigError):
        load_run_config(argv=["validate"])
    command, cfg = load_run_config(argv=["check", "--outdir", "out"])
    assert command == "check"
    assert cfg.outdir == Path("out")


def test_config_file_used_when_env_and_cli_missing(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(
        "model: arch.yaml\nrow_spacing: 40\nformats: mermaid\njson_logs: 'true'\n",
        encoding="utf-8",
    )
    _, cfg = load_run_config(argv=["layout", "--config", str(cfg_path)])
    assert cfg.model == Path("arch.yaml")
    assert cfg.row_spacing == 40
    assert cfg.formats == ["mermaid"]
    assert cfg.json_logs


def test_config_file_unknown_keys_warn(tmp_path) -> None:
    cfg_path = tmp_path / "config.json"
    cfg_path.write_text('{"model": "m.yaml", "colour": "blue"}', encoding="utf-8")
    with pytest.warns(UserWarning, match="colour"):
        load_run_config(argv=["validate", "--config", str(cfg_path)])


def test_config_file_type_errors(tmp_path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("model: m.yaml\nnode_width: wide\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_run_config(argv=["render", "--config", str(cfg_path)])

    cfg_path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_run_config(argv=["render", "--config", str(cfg_path)])


def test_negative_layout_value_rejected() -> None:
    with pytest.raises(ConfigError):
        load_run_config(argv=["render", "--model", "m.json", "--row-spacing", "-5"])


def test_dump_config_round_trips_paths() -> None:
    _, cfg = load_run_config(argv=["render", "--model", "m.json", "--outdir", "out", "--sprites-dir", "icons"])
    data = dump_config(cfg)
    assert data["model"] == "m.json"
    assert data["outdir"] == "out"
    assert data["sprites_dir"] == "icons"
    assert data["formats"] == DEFAULT_FORMATS
