from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Optional, Set, Tuple

from .logging import get_logger
from .model.schema import ArchitectureModel, Edge, GroupingInfo, Layer, Node, NodeType
from .util.errors import ConfigError

LOG = get_logger(__name__)

GROUP_LEVELS = ("tier", "subnet", "service")


@dataclass(frozen=True)
class GroupSpec:
    id: str
    label: str
    type: NodeType
    layer: Layer


@dataclass(frozen=True)
class GroupingResult:
    model: ArchitectureModel
    # group id -> ids of the nodes it absorbed, in input order
    grouping: Dict[str, List[str]] = field(default_factory=dict)


_TIER_GROUPS: Tuple[GroupSpec, ...] = (
    GroupSpec("web-tier", "Web Tier", NodeType.VM, Layer.COMPUTE),
    GroupSpec("app-tier", "Application Tier", NodeType.VM, Layer.COMPUTE),
    GroupSpec("db-tier", "Database Tier", NodeType.SQL, Layer.DATA),
    GroupSpec("networking", "Networking", NodeType.VNET, Layer.NETWORKING),
    GroupSpec("security", "Security", NodeType.KEYVAULT, Layer.SECURITY),
    GroupSpec("observability", "Observability", NodeType.MONITOR, Layer.OBSERVABILITY),
)

_SUBNET_GROUPS: Tuple[GroupSpec, ...] = (
    GroupSpec("web-subnet", "Web Subnet", NodeType.SUBNET, Layer.NETWORKING),
    GroupSpec("app-subnet", "Application Subnet", NodeType.SUBNET, Layer.NETWORKING),
    GroupSpec("db-subnet", "Database Subnet", NodeType.SUBNET, Layer.NETWORKING),
    GroupSpec("management-subnet", "Management Subnet", NodeType.SUBNET, Layer.NETWORKING),
)

_SERVICE_GROUPS: Tuple[GroupSpec, ...] = (
    GroupSpec("observability", "Observability", NodeType.MONITOR, Layer.OBSERVABILITY),
    GroupSpec("security", "Security", NodeType.KEYVAULT, Layer.SECURITY),
    GroupSpec("networking", "Networking", NodeType.VNET, Layer.NETWORKING),
)


def _has(text: str, *needles: str) -> bool:
    return any(n in text for n in needles)


def _tier_of(node: Node) -> Optional[str]:
    kind = (node.type or "").lower()
    label = (node.label or "").lower()
    if _has(kind, "web") or _has(label, "web", "frontend"):
        return "web-tier"
    if _has(kind, "app") or _has(label, "app", "api"):
        return "app-tier"
    if _has(kind, "sql", "db", "database"):
        return "db-tier"
    if _has(kind, "vnet", "subnet", "nsg"):
        return "networking"
    if _has(kind, "key", "defender", "policy"):
        return "security"
    if _has(kind, "monitor", "log", "insights"):
        return "observability"
    return "app-tier"


def _subnet_of(node: Node) -> Optional[str]:
    kind = (node.type or "").lower()
    label = (node.label or "").lower()
    if _has(label, "web") or _has(kind, "web"):
        return "web-subnet"
    if _has(label, "app") or _has(kind, "app", "api"):
        return "app-subnet"
    if _has(label, "db") or _has(kind, "sql", "database"):
        return "db-subnet"
    return "management-subnet"


def _service_of(node: Node) -> Optional[str]:
    kind = (node.type or "").lower()
    label = (node.label or "").lower()
    if _has(kind, "monitor", "log", "insights") or _has(label, "monitor", "log"):
        return "observability"
    if _has(kind, "key", "defender", "policy") or _has(label, "policy", "defender", "key"):
        return "security"
    if _has(kind, "vnet", "subnet", "nsg") or _has(label, "vnet", "subnet", "networking"):
        return "networking"
    # Everything else stays an individual node.
    return None


_LEVELS: Dict[str, Tuple[Tuple[GroupSpec, ...], Callable[[Node], Optional[str]]]] = {
    "tier": (_TIER_GROUPS, _tier_of),
    "subnet": (_SUBNET_GROUPS, _subnet_of),
    "service": (_SERVICE_GROUPS, _service_of),
}


def _free_group_id(base: str, taken: Set[str]) -> str:
    # Nodes left ungrouped keep their ids; the group gives way.
    if base not in taken:
        return base
    candidate = f"group-{base}"
    n = 2
    while candidate in taken:
        candidate = f"group-{base}_{n}"
        n += 1
    return candidate


def _bundle_edges(edges: List[Edge], owner: Dict[str, str], keep_ungrouped: bool) -> List[Edge]:
    bundles: Dict[Tuple[str, str], Tuple[List[str], int]] = {}
    for edge in edges:
        source = owner.get(edge.source)
        target = owner.get(edge.target)
        if keep_ungrouped:
            source = source or edge.source
            target = target or edge.target
        if source is None or target is None or source == target:
            continue
        labels, count = bundles.get((source, target), ([], 0))
        if edge.label and edge.label not in labels:
            labels.append(edge.label)
        bundles[(source, target)] = (labels, count + 1)

    out: List[Edge] = []
    for (source, target), (labels, count) in bundles.items():
        if count > 1:
            label = f"{', '.join(labels)} ×{count}".strip()
        else:
            label = labels[0] if labels else ""
        out.append(Edge(source=source, target=target, label=label))
    return out


def group_architecture(model: ArchitectureModel, level: str) -> GroupingResult:
    """
    Collapse nodes into coarse groups to reduce diagram clutter.

    Each non-empty group becomes one node flagged as grouped with the count and ids
    of the nodes it contains. Edges between groups are bundled into one edge per
    ordered pair whose label lists the distinct labels and, when more than one edge
    was merged, the count. Edges inside a group disappear. Management groups and
    subscriptions are carried over unchanged.
    """
    try:
        specs, classify = _LEVELS[level]
    except KeyError:
        raise ConfigError(f"Unknown grouping level '{level}' (expected one of: {', '.join(GROUP_LEVELS)})") from None

    members: Dict[str, List[str]] = {spec.id: [] for spec in specs}
    individual: List[Node] = []
    for node in model.nodes:
        group_id = classify(node)
        if group_id is None:
            individual.append(node)
            continue
        members[group_id].append(node.id)

    taken = {n.id for n in individual}
    owner: Dict[str, str] = {}
    nodes: List[Node] = list(individual)
    grouping: Dict[str, List[str]] = {}
    for spec in specs:
        contained = members[spec.id]
        if not contained:
            continue
        group_id = _free_group_id(spec.id, taken)
        taken.add(group_id)
        for node_id in contained:
            owner.setdefault(node_id, group_id)
        nodes.append(
            Node(
                id=group_id,
                label=spec.label,
                type=spec.type.value,
                layer=spec.layer,
                grouping=GroupingInfo(
                    is_grouped=True,
                    node_count=len(contained),
                    contained=tuple(contained),
                    group_type=level,
                ),
            )
        )
        grouping[group_id] = contained

    edges = _bundle_edges(list(model.edges), owner, keep_ungrouped=level == "service")
    LOG.debug(
        "Grouped architecture",
        extra={"step": "grouping", "level": level, "groups": len(grouping), "edges": len(edges)},
    )
    return GroupingResult(model=replace(model, nodes=tuple(nodes), edges=tuple(edges)), grouping=grouping)


def group_by_tier(model: ArchitectureModel) -> GroupingResult:
    return group_architecture(model, "tier")
