from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional

from ..model.schema import ArchitectureModel
from ..util.errors import ConfigError
from .drawio import render_drawio
from .mermaid import RenderOptions, render, render_advanced
from .plantuml import render_plantuml

RenderFunc = Callable[[ArchitectureModel, RenderOptions, Mapping[str, str]], str]


@dataclass(frozen=True)
class Renderer:
    name: str
    filename: str
    func: RenderFunc
    # Draws the laid-out model instead of the sanitized one.
    positioned: bool = False

    def __call__(
        self,
        model: ArchitectureModel,
        options: Optional[RenderOptions] = None,
        sprites: Optional[Mapping[str, str]] = None,
    ) -> str:
        return self.func(model, options or RenderOptions(), sprites or {})


class RendererRegistry:
    """
    Registry mapping output format names to renderers.
    Unlike enrichment there is no fallback: an unknown format is a configuration error.
    """

    def __init__(self) -> None:
        self._map: Dict[str, Renderer] = {}

    def register(self, renderer: Renderer) -> None:
        self._map[renderer.name] = renderer

    def is_registered(self, name: str) -> bool:
        return name in self._map

    def formats(self) -> List[str]:
        return sorted(self._map.keys())

    def get(self, name: str) -> Renderer:
        renderer = self._map.get((name or "").strip().lower())
        if renderer is None:
            raise ConfigError(f"Unknown diagram format '{name}' (expected one of: {', '.join(self.formats())})")
        return renderer


_global_registry = RendererRegistry()

_global_registry.register(Renderer("mermaid", "diagram.mmd", lambda m, o, s: render(m, o)))
_global_registry.register(Renderer("mermaid-advanced", "diagram.advanced.mmd", lambda m, o, s: render_advanced(m, o)))
_global_registry.register(Renderer("plantuml", "diagram.puml", render_plantuml))
_global_registry.register(Renderer("drawio", "diagram.drawio", lambda m, o, s: render_drawio(m, s), positioned=True))


def register_renderer(renderer: Renderer) -> None:
    _global_registry.register(renderer)


def get_renderer(name: str) -> Renderer:
    return _global_registry.get(name)


def list_formats() -> List[str]:
    return _global_registry.formats()


__all__ = [
    "RenderOptions",
    "Renderer",
    "RendererRegistry",
    "get_renderer",
    "list_formats",
    "register_renderer",
    "render",
    "render_advanced",
    "render_drawio",
    "render_plantuml",
]
