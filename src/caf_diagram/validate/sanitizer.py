from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple

from ..logging import get_logger
from ..model.schema import DEFAULT_LAYER, ArchitectureModel, Edge, Node
from ..util.errors import require_sequence

LOG = get_logger(__name__)

RENAME_PREFIX = "node"


class WarningKind(str, Enum):
    DEFAULTED_LAYER = "defaulted_layer"
    DUPLICATE_NODE_ID = "duplicate_node_id"
    SELF_EDGE = "self_edge"
    DUPLICATE_EDGE = "duplicate_edge"
    DANGLING_EDGE = "dangling_edge"


@dataclass(frozen=True)
class ValidationWarning:
    kind: WarningKind
    message: str
    node_id: Optional[str] = None
    edge: Optional[Tuple[str, str, str]] = None

    @property
    def is_defaulting(self) -> bool:
        return self.kind is WarningKind.DEFAULTED_LAYER

    def to_dict(self) -> Dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "node_id": self.node_id,
            "edge": list(self.edge) if self.edge else None,
        }

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    warnings: List[ValidationWarning] = field(default_factory=list)
    sanitized_model: ArchitectureModel = field(default_factory=ArchitectureModel)

    def counts_by_kind(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for w in self.warnings:
            counts[w.kind.value] = counts.get(w.kind.value, 0) + 1
        return dict(sorted(counts.items()))


def _free_id(candidate: str, taken: Set[str]) -> str:
    if candidate not in taken:
        return candidate
    n = 1
    while f"{candidate}_{n}" in taken:
        n += 1
    return f"{candidate}_{n}"


def _sanitize_nodes(nodes: List[Node], warnings: List[ValidationWarning]) -> List[Node]:
    seen: Set[str] = set()
    out: List[Node] = []
    for index, node in enumerate(nodes):
        if node.layer is None:
            warnings.append(
                ValidationWarning(
                    WarningKind.DEFAULTED_LAYER,
                    f"Node {node.id} missing layer, defaulting to {DEFAULT_LAYER.value}",
                    node_id=node.id,
                )
            )
            node = replace(node, layer=DEFAULT_LAYER)

        if node.id in seen:
            new_id = _free_id(f"{RENAME_PREFIX}{node.id}_{index}", seen)
            warnings.append(
                ValidationWarning(
                    WarningKind.DUPLICATE_NODE_ID,
                    f"Duplicate node ID {node.id} renamed to {new_id}",
                    node_id=new_id,
                )
            )
            node = replace(node, id=new_id)

        seen.add(node.id)
        out.append(node)
    return out


def _sanitize_edges(edges: List[Edge], node_ids: Set[str], warnings: List[ValidationWarning]) -> List[Edge]:
    emitted: Set[Tuple[str, str, str]] = set()
    out: List[Edge] = []
    for edge in edges:
        key = edge.key
        if edge.source == edge.target:
            warnings.append(
                ValidationWarning(
                    WarningKind.SELF_EDGE,
                    f"Skipping self-edge from {edge.source} to {edge.target}",
                    edge=key,
                )
            )
            continue
        if key in emitted:
            warnings.append(
                ValidationWarning(
                    WarningKind.DUPLICATE_EDGE,
                    f"Skipping duplicate edge from {edge.source} to {edge.target}",
                    edge=key,
                )
            )
            continue
        missing = next((end for end in (edge.source, edge.target) if end not in node_ids), None)
        if missing is not None:
            warnings.append(
                ValidationWarning(
                    WarningKind.DANGLING_EDGE,
                    f"Skipping dangling edge {edge.source} -> {edge.target}: node {missing} does not exist",
                    node_id=missing,
                    edge=key,
                )
            )
            continue
        emitted.add(key)
        out.append(edge)
    return out


def validate(model: ArchitectureModel) -> ValidationResult:
    """
    Repair structural defects and report them.

    Nodes are walked in input order: a missing layer defaults to Compute and a
    repeated id is renamed to ``node<id>_<index>``. Edges are then checked against
    the sanitized ids, dropping self-edges, repeated (from, to, label) triples and
    dangling references. Edges that named the original id of a renamed node keep
    resolving to the first node holding that id; they are never redirected.

    ``is_valid`` is True when layer defaulting was the only repair. Raises
    ModelError only when nodes or edges are not collections.
    """
    nodes = require_sequence(model.nodes, "nodes")
    edges = require_sequence(model.edges, "edges")

    warnings: List[ValidationWarning] = []
    sanitized_nodes = _sanitize_nodes(nodes, warnings)
    node_ids = {n.id for n in sanitized_nodes}
    sanitized_edges = _sanitize_edges(edges, node_ids, warnings)

    sanitized = replace(model, nodes=tuple(sanitized_nodes), edges=tuple(sanitized_edges))
    return ValidationResult(
        is_valid=all(w.is_defaulting for w in warnings),
        warnings=warnings,
        sanitized_model=sanitized,
    )


def validate_and_log(model: ArchitectureModel, logger: Optional[logging.Logger] = None) -> ValidationResult:
    result = validate(model)
    log = logger or LOG
    for w in result.warnings:
        log.warning(
            w.message,
            extra={"step": "validate", "phase": "warning", "warning_kind": w.kind.value},
        )
    return result
