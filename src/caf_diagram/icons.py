from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Mapping, Tuple

from .model.schema import NodeType

ICON_BASE_PATH = "/azure-icons"

NETWORKING_BLUE = "#0078d4"
COMPUTE_GREEN = "#107c10"
DATA_PURPLE = "#68217a"
SECURITY_RED = "#d13438"
OBSERVABILITY_TEAL = "#00bcf2"

GENERIC_SYMBOL = "☁️ "


@dataclass(frozen=True)
class IconSpec:
    category: str
    default_color: str
    filename: str

    @property
    def asset_path(self) -> str:
        return f"{ICON_BASE_PATH}/{self.filename}"


DEFAULT_ICON = IconSpec("compute", COMPUTE_GREEN, "vm.svg")


def _net(filename: str) -> IconSpec:
    return IconSpec("networking", NETWORKING_BLUE, filename)


_ICONS: Mapping[NodeType, IconSpec] = {
    NodeType.FRONTDOOR: _net("frontdoor.svg"),
    NodeType.APPGW: _net("app-gateway.svg"),
    NodeType.APPGATEWAY: _net("app-gateway.svg"),
    NodeType.FIREWALL: _net("firewall.svg"),
    NodeType.BASTION: _net("bastion.svg"),
    NodeType.LB: _net("load-balancer.svg"),
    NodeType.LOADBALANCER: _net("load-balancer.svg"),
    NodeType.VNET: _net("vnet.svg"),
    NodeType.SUBNET: _net("subnet.svg"),
    NodeType.NSG: _net("nsg.svg"),
    NodeType.VM: DEFAULT_ICON,
    NodeType.VMSS: IconSpec("compute", COMPUTE_GREEN, "vmss.svg"),
    NodeType.SQL: IconSpec("data", DATA_PURPLE, "sql.svg"),
    NodeType.STORAGE: IconSpec("data", DATA_PURPLE, "storage-blob.svg"),
    NodeType.SEARCH: IconSpec("data", DATA_PURPLE, "cognitive-search.svg"),
    NodeType.KV: IconSpec("security", SECURITY_RED, "key-vault.svg"),
    NodeType.KEYVAULT: IconSpec("security", SECURITY_RED, "key-vault.svg"),
    NodeType.DEFENDER: IconSpec("security", SECURITY_RED, "defender.svg"),
    NodeType.POLICY: IconSpec("security", SECURITY_RED, "policy.svg"),
    NodeType.IDENTITY: DEFAULT_ICON,
    NodeType.MONITOR: IconSpec("observability", OBSERVABILITY_TEAL, "monitor.svg"),
    NodeType.LOGANALYTICS: IconSpec("observability", OBSERVABILITY_TEAL, "log-analytics.svg"),
    NodeType.OPENAI: IconSpec("ai", DATA_PURPLE, "openai.svg"),
    NodeType.CUSTOM: DEFAULT_ICON,
    NodeType.OTHER: DEFAULT_ICON,
}

_SYMBOLS: Mapping[NodeType, str] = {
    NodeType.VM: "🖥️ ",
    NodeType.VMSS: "🖥️ ",
    NodeType.VNET: "🌐 ",
    NodeType.SQL: "🗄️ ",
    NodeType.STORAGE: "📦 ",
    NodeType.KV: "🔐 ",
    NodeType.KEYVAULT: "🔐 ",
    NodeType.MONITOR: "📊 ",
    NodeType.FIREWALL: "🔥 ",
    NodeType.APPGW: "🚪 ",
    NodeType.APPGATEWAY: "🚪 ",
    NodeType.BASTION: "🏰 ",
    NodeType.LB: "⚖️ ",
    NodeType.LOADBALANCER: "⚖️ ",
    NodeType.IDENTITY: "👤 ",
    NodeType.POLICY: "📋 ",
}

_STYLE_CLASSES: Mapping[NodeType, str] = {kind: f"icon-{kind.value}" for kind in NodeType}

# Icon keys that get a dedicated classDef line in flowchart output.
STYLED_ICON_TYPES: Tuple[NodeType, ...] = tuple(NodeType)


def resolve(node_type: object) -> IconSpec:
    """Map a node type (enum or raw string) to its icon; unknown types fall back to compute."""
    kind = node_type if isinstance(node_type, NodeType) else NodeType.parse(node_type)
    return _ICONS.get(kind, DEFAULT_ICON)


def symbol_for(node_type: object) -> str:
    kind = node_type if isinstance(node_type, NodeType) else NodeType.parse(node_type)
    return _SYMBOLS.get(kind, GENERIC_SYMBOL)


def style_class_for(node_type: object) -> str:
    """Class name for a node type; unrecognized types share ``icon-other``."""
    kind = node_type if isinstance(node_type, NodeType) else NodeType.parse(node_type)
    return _STYLE_CLASSES[kind]


def category_color(category: str) -> str:
    for spec in _ICONS.values():
        if spec.category == category:
            return spec.default_color
    return DEFAULT_ICON.default_color


def icon_catalog() -> Dict[str, IconSpec]:
    return {kind.value: spec for kind, spec in _ICONS.items()}
