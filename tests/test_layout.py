from __future__ import annotations

from itertools import combinations

import pytest

from caf_diagram.layout import LayoutOptions, layout, node_bounds, subscription_bounds
from caf_diagram.layout.caf import Column, column_anchors, row_anchors
from caf_diagram.model.schema import (
    ArchitectureModel,
    Bounds,
    Edge,
    EntityType,
    Layer,
    ManagementGroup,
    Node,
    Subscription,
)
from caf_diagram.util.errors import ConfigError


def _single_subscription_model() -> ArchitectureModel:
    return ArchitectureModel(
        nodes=(
            Node("n1", subscription_id="sub1", entity_type=EntityType.VNET, layer=Layer.NETWORKING),
        ),
        subscriptions=(Subscription("sub1", type="platform-identity"),),
    )


def test_single_platform_subscription_and_vnet_node() -> None:
    positioned = layout(_single_subscription_model())
    sub = subscription_bounds(positioned, "sub1")
    assert sub == Bounds(x=230, y=100, width=200, height=300)
    n1 = node_bounds(positioned, "n1")
    assert n1.x == sub.x + 20
    assert n1.y == sub.y + 50
    assert (n1.width, n1.height) == (120, 70)


def test_column_anchors_follow_column_spacing() -> None:
    anchors = column_anchors(LayoutOptions(column_spacing=100))
    assert anchors[Column.MANAGEMENT_GROUPS] == 50
    assert anchors[Column.PLATFORM] == 150
    assert anchors[Column.LANDING_ZONE] == 250
    assert anchors[Column.SHARED_PAAS] == 350


def test_subscriptions_go_to_their_partition_columns() -> None:
    model = ArchitectureModel(
        subscriptions=(
            Subscription("lz", type="landingzone-corp"),
            Subscription("plat", type="platform-connectivity"),
            Subscription("misc", type="sandbox"),
        )
    )
    positioned = layout(model)
    assert subscription_bounds(positioned, "plat").x == 230
    assert subscription_bounds(positioned, "lz").x == 410
    assert subscription_bounds(positioned, "misc").x == 590


def test_row_anchors_stack_partitions() -> None:
    subs = [
        Subscription("p1", type="platform-a"),
        Subscription("l1", type="landingzone-a"),
        Subscription("p2", type="platform-b"),
        Subscription("o1", type="other"),
    ]
    rows = row_anchors(subs, LayoutOptions())
    pitch = 300 + 90
    assert rows["p1"] == 100
    assert rows["p2"] == 100 + pitch
    assert rows["l1"] == 100 + 2 * pitch + 50
    assert rows["o1"] == rows["l1"] + pitch + 50


@pytest.mark.parametrize("column_spacing", [180, 60, 0])
def test_subscription_boxes_never_overlap(column_spacing) -> None:
    subs = tuple(
        Subscription(f"{prefix}{i}", type=f"{prefix}-{i}")
        for prefix in ("platform", "landingzone", "shared")
        for i in range(3)
    )
    positioned = layout(ArchitectureModel(subscriptions=subs), LayoutOptions(column_spacing=column_spacing))
    boxes = [s.bounds for s in positioned.subscriptions]
    assert all(b is not None for b in boxes)
    for a, b in combinations(boxes, 2):
        assert not a.intersects(b)


def test_management_groups_stack_in_first_column() -> None:
    model = ArchitectureModel(management_groups=(ManagementGroup("root"), ManagementGroup("platform")))
    positioned = layout(model)
    assert positioned.management_groups[0].bounds == Bounds(50, 100, 150, 60)
    assert positioned.management_groups[1].bounds == Bounds(50, 180, 150, 60)


def test_nodes_stack_by_entity_type() -> None:
    model = ArchitectureModel(
        nodes=(
            Node("paas", subscription_id="s", entity_type=EntityType.PAAS),
            Node("tier", subscription_id="s", entity_type=EntityType.TIER),
            Node("svc", subscription_id="s", entity_type=EntityType.SERVICE),
            Node("vnet", subscription_id="s", entity_type=EntityType.VNET),
        ),
        subscriptions=(Subscription("s", type="landingzone-app"),),
    )
    positioned = layout(model)
    ys = [node_bounds(positioned, nid).y for nid in ("vnet", "svc", "tier", "paas")]
    assert ys == sorted(ys)
    assert len(set(ys)) == 4
    # Each category takes one node step plus the category gap.
    assert ys[1] - ys[0] == 70 + 10 + 20


def test_nodes_of_one_category_step_by_node_height() -> None:
    model = ArchitectureModel(
        nodes=(
            Node("a", subscription_id="s", entity_type=EntityType.SERVICE),
            Node("b", subscription_id="s", entity_type=EntityType.SERVICE),
        ),
        subscriptions=(Subscription("s", type="platform-mgmt"),),
    )
    positioned = layout(model, LayoutOptions(node_height=40))
    a = node_bounds(positioned, "a")
    b = node_bounds(positioned, "b")
    assert a.x == b.x
    assert b.y - a.y == 50
    # The empty vnet category still contributes its gap before services.
    assert a.y == 100 + 20 + 30 + 20


def test_nodes_without_container_or_category_keep_no_bounds() -> None:
    model = ArchitectureModel(
        nodes=(
            Node("orphan", subscription_id="missing", entity_type=EntityType.VNET),
            Node("untyped", subscription_id="s"),
            Node("odd", subscription_id="s", entity_type=EntityType.OTHER),
        ),
        subscriptions=(Subscription("s", type="platform-x"),),
    )
    positioned = layout(model)
    assert all(n.bounds is None for n in positioned.nodes)


def test_model_without_containers_is_returned_unchanged() -> None:
    model = ArchitectureModel(nodes=(Node("a", entity_type=EntityType.VNET),), edges=())
    assert layout(model) is model


def test_layout_returns_new_model_and_marks_edges_routed() -> None:
    model = ArchitectureModel(
        nodes=(
            Node("a", subscription_id="sub1", entity_type=EntityType.VNET),
            Node("b", subscription_id="sub1", entity_type=EntityType.SERVICE),
        ),
        edges=(Edge("a", "b"),),
        subscriptions=(Subscription("sub1", type="platform-identity"),),
    )
    positioned = layout(model)
    assert positioned is not model
    assert model.nodes[0].bounds is None
    assert positioned.edges[0].routing.routed


def test_layout_is_deterministic() -> None:
    model = _single_subscription_model()
    assert layout(model) == layout(model)


def test_layout_options_from_mapping() -> None:
    opts = LayoutOptions.from_mapping({"nodeWidth": 100, "row_spacing": 40, "columnSpacing": None})
    assert opts.node_width == 100
    assert opts.row_spacing == 40
    assert opts.column_spacing == 180
    assert LayoutOptions.from_mapping(None) == LayoutOptions()


@pytest.mark.parametrize("bad", [{"node_width": "wide"}, {"row_spacing": -1}, {"nodeHeight": True}])
def test_layout_options_reject_bad_values(bad) -> None:
    with pytest.raises(ConfigError):
        LayoutOptions.from_mapping(bad)
