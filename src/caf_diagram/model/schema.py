from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from ..util.errors import require_sequence


class Layer(str, Enum):
    CONNECTIVITY = "Connectivity"
    NETWORKING = "Networking"
    COMPUTE = "Compute"
    DATA = "Data"
    IDENTITY = "Identity"
    SECURITY = "Security"
    MANAGEMENT = "Management"
    OBSERVABILITY = "Observability"

    @classmethod
    def parse(cls, value: object) -> Optional[Layer]:
        if isinstance(value, Layer):
            return value
        raw = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == raw:
                return member
        return None

    @property
    def slug(self) -> str:
        return self.value.lower()


DEFAULT_LAYER = Layer.COMPUTE

# Main flow reads left to right; cross-cutting concerns are drawn beside it.
MAIN_FLOW_LAYERS: Tuple[Layer, ...] = (
    Layer.CONNECTIVITY,
    Layer.NETWORKING,
    Layer.COMPUTE,
    Layer.DATA,
    Layer.OBSERVABILITY,
)
CROSS_CUTTING_LAYERS: Tuple[Layer, ...] = (
    Layer.IDENTITY,
    Layer.SECURITY,
    Layer.MANAGEMENT,
)


class NodeType(str, Enum):
    FRONTDOOR = "frontdoor"
    APPGW = "appgw"
    APPGATEWAY = "appgateway"
    FIREWALL = "firewall"
    BASTION = "bastion"
    LB = "lb"
    LOADBALANCER = "loadbalancer"
    VNET = "vnet"
    SUBNET = "subnet"
    NSG = "nsg"
    VM = "vm"
    VMSS = "vmss"
    SQL = "sql"
    STORAGE = "storage"
    KV = "kv"
    KEYVAULT = "keyvault"
    MONITOR = "monitor"
    LOGANALYTICS = "loganalytics"
    DEFENDER = "defender"
    OPENAI = "openai"
    SEARCH = "search"
    IDENTITY = "identity"
    POLICY = "policy"
    CUSTOM = "custom"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> NodeType:
        raw = str(value or "").strip().lower()
        if not raw:
            return cls.CUSTOM
        raw = _NODE_TYPE_ALIASES.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


# Icon catalog keys that name the same resource under a different spelling.
_NODE_TYPE_ALIASES = {
    "storageblob": "storage",
    "cognitivesearch": "search",
    "app-gateway": "appgateway",
    "load-balancer": "loadbalancer",
    "key-vault": "keyvault",
    "log-analytics": "loganalytics",
}


class EntityType(str, Enum):
    VNET = "vnet"
    SERVICE = "service"
    TIER = "tier"
    PAAS = "paas"
    OTHER = "other"

    @classmethod
    def parse(cls, value: object) -> Optional[EntityType]:
        if value is None or value == "":
            return None
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.OTHER


# Stacking order of siblings inside a subscription container.
ENTITY_STACK_ORDER: Tuple[EntityType, ...] = (
    EntityType.VNET,
    EntityType.SERVICE,
    EntityType.TIER,
    EntityType.PAAS,
)

PLATFORM_PREFIX = "platform-"
LANDING_ZONE_PREFIX = "landingzone-"


@dataclass(frozen=True)
class Bounds:
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def intersects(self, other: Bounds) -> bool:
        # Touching edges do not count as overlap.
        return not (
            self.right <= other.x
            or other.right <= self.x
            or self.bottom <= other.y
            or other.bottom <= self.y
        )


@dataclass(frozen=True)
class GroupingInfo:
    is_grouped: bool = True
    node_count: int = 0
    contained: Tuple[str, ...] = ()
    group_type: Optional[str] = None


@dataclass(frozen=True)
class RoutingInfo:
    routed: bool = False


@dataclass(frozen=True)
class Node:
    id: str
    label: str = ""
    type: str = NodeType.CUSTOM.value
    layer: Optional[Layer] = None
    subscription_id: Optional[str] = None
    entity_type: Optional[EntityType] = None
    role: Optional[str] = None
    grouping: Optional[GroupingInfo] = None
    bounds: Optional[Bounds] = None

    @property
    def kind(self) -> NodeType:
        return NodeType.parse(self.type)

    @property
    def is_grouped(self) -> bool:
        return bool(self.grouping and self.grouping.is_grouped)

    @property
    def display_label(self) -> str:
        return self.label or self.id


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    label: str = ""
    routing: Optional[RoutingInfo] = None

    @property
    def key(self) -> Tuple[str, str, str]:
        return (self.source, self.target, self.label or "")


@dataclass(frozen=True)
class Subscription:
    id: str
    type: str = ""
    name: Optional[str] = None
    management_group_id: Optional[str] = None
    bounds: Optional[Bounds] = None

    @property
    def is_platform(self) -> bool:
        return self.type.startswith(PLATFORM_PREFIX)

    @property
    def is_landing_zone(self) -> bool:
        return self.type.startswith(LANDING_ZONE_PREFIX)


@dataclass(frozen=True)
class ManagementGroup:
    id: str
    name: Optional[str] = None
    type: Optional[str] = None
    bounds: Optional[Bounds] = None


@dataclass(frozen=True)
class ArchitectureModel:
    nodes: Tuple[Node, ...] = ()
    edges: Tuple[Edge, ...] = ()
    subscriptions: Tuple[Subscription, ...] = ()
    management_groups: Tuple[ManagementGroup, ...] = ()

    def __post_init__(self) -> None:
        # Frozen, so normalize through object.__setattr__; lists become tuples.
        object.__setattr__(self, "nodes", tuple(require_sequence(self.nodes, "nodes")))
        object.__setattr__(self, "edges", tuple(require_sequence(self.edges, "edges")))
        object.__setattr__(
            self, "subscriptions", tuple(require_sequence(self.subscriptions or (), "subscriptions"))
        )
        object.__setattr__(
            self,
            "management_groups",
            tuple(require_sequence(self.management_groups or (), "managementGroups")),
        )

    @property
    def has_containers(self) -> bool:
        return bool(self.subscriptions or self.management_groups)

    def node_ids(self) -> Tuple[str, ...]:
        return tuple(n.id for n in self.nodes)
