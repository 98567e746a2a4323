from __future__ import annotations

from caf_diagram.icons import (
    COMPUTE_GREEN,
    DEFAULT_ICON,
    GENERIC_SYMBOL,
    NETWORKING_BLUE,
    category_color,
    icon_catalog,
    resolve,
    style_class_for,
    symbol_for,
)
from caf_diagram.model.schema import NodeType


def test_every_node_type_resolves() -> None:
    catalog = icon_catalog()
    for kind in NodeType:
        spec = resolve(kind)
        assert spec.category
        assert spec.default_color.startswith("#")
        assert spec.asset_path.startswith("/azure-icons/")
        assert catalog[kind.value] == spec


def test_resolve_known_and_unknown_types() -> None:
    sql = resolve("sql")
    assert (sql.category, sql.asset_path) == ("data", "/azure-icons/sql.svg")
    assert resolve("firewall").default_color == NETWORKING_BLUE
    assert resolve("definitely-not-azure") == DEFAULT_ICON
    assert DEFAULT_ICON.category == "compute"
    assert DEFAULT_ICON.default_color == COMPUTE_GREEN
    assert DEFAULT_ICON.filename == "vm.svg"


def test_category_color() -> None:
    assert category_color("networking") == "#0078d4"
    assert category_color("security") == "#d13438"
    assert category_color("nope") == COMPUTE_GREEN


def test_symbols_and_style_classes() -> None:
    assert symbol_for("vm") == "🖥️ "
    assert symbol_for(NodeType.KV) == symbol_for("keyvault")
    assert symbol_for("subnet") == GENERIC_SYMBOL
    assert style_class_for("VM") == "icon-vm"
    assert style_class_for("") == "icon-custom"


def test_style_classes_cover_every_type() -> None:
    assert style_class_for(NodeType.APPGW) == "icon-appgw"
    assert style_class_for("AppGateway") == "icon-appgateway"
    assert style_class_for("kv") == "icon-kv"
    assert style_class_for("lb") == "icon-lb"
    assert style_class_for("App Service") == "icon-other"
    assert style_class_for("key-vault") == "icon-keyvault"
    for kind in NodeType:
        assert style_class_for(kind).startswith("icon-")
