from __future__ import annotations

from .canvas import CANVAS_FILENAME, to_canvas, write_canvas_json

__all__ = ["CANVAS_FILENAME", "to_canvas", "write_canvas_json"]
