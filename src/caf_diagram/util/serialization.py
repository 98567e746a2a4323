from __future__ import annotations

import json
from typing import Any, Optional


def stable_json_dumps(obj: Any, *, indent: Optional[int] = None) -> str:
    """
    Dump JSON with sort_keys=True and fixed separators so repeated runs are byte-identical.
    """
    if indent is None:
        return json.dumps(obj, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return json.dumps(obj, sort_keys=True, indent=indent, ensure_ascii=False)
