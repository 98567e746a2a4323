from __future__ import annotations

from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from ..logging import get_logger
from ..model.schema import (
    ENTITY_STACK_ORDER,
    ArchitectureModel,
    Bounds,
    Edge,
    ManagementGroup,
    Node,
    RoutingInfo,
    Subscription,
)
from ..util.errors import ConfigError

LOG = get_logger(__name__)

LEFT_MARGIN = 50
TOP_MARGIN = 100
PARTITION_GAP = 50

MANAGEMENT_GROUP_WIDTH = 150
MANAGEMENT_GROUP_HEIGHT = 60
MANAGEMENT_GROUP_PITCH = 80

CONTAINER_WIDTH = 200
CONTAINER_HEIGHT = 300
TITLE_BAND = 30
NODE_GAP = 10
CATEGORY_GAP = 20


@dataclass(frozen=True)
class LayoutOptions:
    node_width: float = 120
    node_height: float = 70
    column_spacing: float = 180
    row_spacing: float = 90
    container_padding: float = 20

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> LayoutOptions:
        """
        Build options from a mapping using either snake_case or camelCase keys.
        Omitted or None values keep their defaults.
        """
        if not data:
            return cls()
        values: Dict[str, float] = {}
        for f in fields(cls):
            camel = "".join(w[:1].upper() + w[1:] if i else w for i, w in enumerate(f.name.split("_")))
            raw = data.get(f.name, data.get(camel))
            if raw is None:
                continue
            if isinstance(raw, bool) or not isinstance(raw, (int, float)):
                raise ConfigError(f"Layout option '{f.name}' must be a number")
            if raw < 0:
                raise ConfigError(f"Layout option '{f.name}' must not be negative")
            values[f.name] = raw
        return cls(**values)


class Column(str, Enum):
    MANAGEMENT_GROUPS = "management-groups"
    PLATFORM = "platform-subscriptions"
    LANDING_ZONE = "landing-zone-subscriptions"
    SHARED_PAAS = "shared-paas"


_COLUMN_ORDER: Tuple[Column, ...] = (
    Column.MANAGEMENT_GROUPS,
    Column.PLATFORM,
    Column.LANDING_ZONE,
    Column.SHARED_PAAS,
)


def column_anchors(options: LayoutOptions) -> Dict[Column, float]:
    return {col: LEFT_MARGIN + i * options.column_spacing for i, col in enumerate(_COLUMN_ORDER)}


def subscription_column(sub: Subscription) -> Column:
    if sub.is_platform:
        return Column.PLATFORM
    if sub.is_landing_zone:
        return Column.LANDING_ZONE
    return Column.SHARED_PAAS


def row_anchors(subscriptions: Sequence[Subscription], options: LayoutOptions) -> Dict[str, float]:
    """
    Vertical anchor per subscription id.

    Each partition (platform, landing zone, other) stacks in declaration order,
    one container height plus ``row_spacing`` per row. A partition starts below
    the previous one's total height plus a fixed gap, so boxes never overlap even
    where neighbouring columns are closer than a container is wide.
    """
    pitch = CONTAINER_HEIGHT + options.row_spacing
    anchors: Dict[str, float] = {}
    cursor: float = TOP_MARGIN
    for column in (Column.PLATFORM, Column.LANDING_ZONE, Column.SHARED_PAAS):
        members = [s for s in subscriptions if subscription_column(s) == column]
        for index, sub in enumerate(members):
            anchors.setdefault(sub.id, cursor + index * pitch)
        if column is not Column.SHARED_PAAS:
            cursor += len(members) * pitch + PARTITION_GAP
    return anchors


def _place_management_groups(groups: Sequence[ManagementGroup], x: float) -> List[ManagementGroup]:
    return [
        replace(
            mg,
            bounds=Bounds(
                x=x,
                y=TOP_MARGIN + index * MANAGEMENT_GROUP_PITCH,
                width=MANAGEMENT_GROUP_WIDTH,
                height=MANAGEMENT_GROUP_HEIGHT,
            ),
        )
        for index, mg in enumerate(groups)
    ]


def _place_subscriptions(
    subscriptions: Sequence[Subscription],
    columns: Mapping[Column, float],
    rows: Mapping[str, float],
) -> List[Subscription]:
    return [
        replace(
            sub,
            bounds=Bounds(
                x=columns[subscription_column(sub)],
                y=rows.get(sub.id, TOP_MARGIN),
                width=CONTAINER_WIDTH,
                height=CONTAINER_HEIGHT,
            ),
        )
        for sub in subscriptions
    ]


def _stack_nodes(
    nodes: Sequence[Node],
    containers: Mapping[str, Bounds],
    options: LayoutOptions,
) -> Dict[int, Bounds]:
    # Keyed by node position so an unsanitized model with repeated ids still lays out.
    placed: Dict[int, Bounds] = {}
    step = options.node_height + NODE_GAP
    for sub_id, box in containers.items():
        members = [(i, n) for i, n in enumerate(nodes) if n.subscription_id == sub_id]
        if not members:
            continue
        x = box.x + options.container_padding
        cursor = box.y + options.container_padding + TITLE_BAND
        for entity_type in ENTITY_STACK_ORDER:
            group = [i for i, n in members if n.entity_type == entity_type]
            for offset, node_index in enumerate(group):
                placed[node_index] = Bounds(
                    x=x,
                    y=cursor + offset * step,
                    width=options.node_width,
                    height=options.node_height,
                )
            cursor += len(group) * step + CATEGORY_GAP
    return placed


def _mark_routed(edges: Sequence[Edge]) -> List[Edge]:
    return [replace(e, routing=RoutingInfo(routed=True)) for e in edges]


def layout(model: ArchitectureModel, options: Optional[LayoutOptions] = None) -> ArchitectureModel:
    """
    Assign bounds to management groups, subscriptions and their member nodes.

    Returns a new model; the input is left untouched. Nodes without a matching
    subscription, or whose entity type is not one of vnet/service/tier/paas, keep
    ``bounds=None``. A model without management groups and subscriptions is
    returned unchanged.
    """
    if not model.has_containers:
        return model
    opts = options or LayoutOptions()

    columns = column_anchors(opts)
    rows = row_anchors(model.subscriptions, opts)
    groups = _place_management_groups(model.management_groups, columns[Column.MANAGEMENT_GROUPS])
    subscriptions = _place_subscriptions(model.subscriptions, columns, rows)

    containers: Dict[str, Bounds] = {}
    for sub in subscriptions:
        if sub.bounds is not None:
            containers.setdefault(sub.id, sub.bounds)
    placed = _stack_nodes(model.nodes, containers, opts)
    nodes = [replace(n, bounds=placed[i]) if i in placed else n for i, n in enumerate(model.nodes)]

    unplaced = len(nodes) - len(placed)
    if unplaced:
        LOG.debug("Nodes left without bounds", extra={"step": "layout", "unplaced": unplaced})

    return replace(
        model,
        nodes=tuple(nodes),
        edges=tuple(_mark_routed(model.edges)),
        subscriptions=tuple(subscriptions),
        management_groups=tuple(groups),
    )


def subscription_bounds(model: ArchitectureModel, subscription_id: str) -> Optional[Bounds]:
    for sub in model.subscriptions:
        if sub.id == subscription_id:
            return sub.bounds
    return None


def node_bounds(model: ArchitectureModel, node_id: str) -> Optional[Bounds]:
    for node in model.nodes:
        if node.id == node_id:
            return node.bounds
    return None
