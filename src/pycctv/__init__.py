"""pycctv - Async UPnP control point for CCTV devices."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pycctv")
except PackageNotFoundError:
    __version__ = "0+local"
from pycctv.client import CctvControlPoint
from pycctv.config import CtrlPointConfig, DeviceSchema, ServiceSchema
from pycctv.dispatcher import EventDispatcher
from pycctv.events import (
    ActionCompleteEvent,
    ByeByeEvent,
    CallbackEvent,
    DiscoveryEvent,
    EventKind,
    SearchTimeoutEvent,
    ServerRequestEvent,
    SubscriptionLostEvent,
    SubscriptionUpdateEvent,
    VariableChangeEvent,
    VariableQueryEvent,
    parse_event,
    parse_property_set,
)
from pycctv.exceptions import (
    CctvConfigError,
    CctvError,
    CctvInvalidArgumentError,
    CctvInvalidPositionError,
    CctvNotFoundError,
    CctvParseError,
    CctvProtocolError,
    CctvTransportError,
)
from pycctv.models import (
    CctvAction,
    DescribedService,
    DeviceDescription,
    DeviceNode,
    ServiceRecord,
    parse_description,
)
from pycctv.protocol import (
    DescriptionFetcher,
    NullObserver,
    ProtocolLayer,
    StateObserver,
    SubscriptionGrant,
)
from pycctv.registry import DeviceListing, DeviceRegistry
from pycctv.subscriptions import SubscriptionManager
from pycctv.sweeper import SweepReport, TimeoutSweeper

__all__ = [
    "__version__",
    "ActionCompleteEvent",
    "ByeByeEvent",
    "CallbackEvent",
    "CctvAction",
    "CctvConfigError",
    "CctvControlPoint",
    "CctvError",
    "CctvInvalidArgumentError",
    "CctvInvalidPositionError",
    "CctvNotFoundError",
    "CctvParseError",
    "CctvProtocolError",
    "CctvTransportError",
    "CtrlPointConfig",
    "DescribedService",
    "DescriptionFetcher",
    "DeviceDescription",
    "DeviceListing",
    "DeviceNode",
    "DeviceRegistry",
    "DeviceSchema",
    "DiscoveryEvent",
    "EventDispatcher",
    "EventKind",
    "NullObserver",
    "ProtocolLayer",
    "SearchTimeoutEvent",
    "ServerRequestEvent",
    "ServiceRecord",
    "ServiceSchema",
    "StateObserver",
    "SubscriptionGrant",
    "SubscriptionLostEvent",
    "SubscriptionManager",
    "SubscriptionUpdateEvent",
    "SweepReport",
    "TimeoutSweeper",
    "VariableChangeEvent",
    "VariableQueryEvent",
    "parse_event",
    "parse_property_set",
]
