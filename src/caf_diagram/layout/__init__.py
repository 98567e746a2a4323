from __future__ import annotations

from .caf import LayoutOptions, layout, node_bounds, subscription_bounds

__all__ = [
    "LayoutOptions",
    "layout",
    "node_bounds",
    "subscription_bounds",
]
