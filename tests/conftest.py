from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

import pytest

from pycctv._constants import CCTV_CONTROL_SERVICE_TYPE, CCTV_DEVICE_TYPE
from pycctv.exceptions import CctvProtocolError
from pycctv.models.description import DescribedService, DeviceDescription
from pycctv.protocol import SubscriptionGrant
from pycctv.registry import DeviceRegistry

DESCRIPTION_XML = """<?xml version="1.0"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <URLBase>http://192.168.1.20:49152/</URLBase>
  <device>
    <deviceType>{device_type}</deviceType>
    <friendlyName>Front door camera</friendlyName>
    <UDN>{udn}</UDN>
    <presentationURL>/index.html</presentationURL>
    <serviceList>
      <service>
        <serviceType>urn:schemas-upnp-org:service:cctvcontrol:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:control1</serviceId>
        <SCPDURL>/control.xml</SCPDURL>
        <controlURL>/upnp/control/control1</controlURL>
        <eventSubURL>/upnp/event/control1</eventSubURL>
      </service>
    </serviceList>
  </device>
</root>
"""


def description_xml(udn: str = "uuid:cam-1", device_type: str = CCTV_DEVICE_TYPE) -> str:
    return DESCRIPTION_XML.format(udn=udn, device_type=device_type)


def property_set(**variables: str) -> str:
    props = "".join(f"<e:property><{name}>{value}</{name}></e:property>" for name, value in variables.items())
    return f'<e:propertyset xmlns:e="urn:schemas-upnp-org:event-1-0">{props}</e:propertyset>'


@dataclass
class FakeProtocol:
    """Records every outbound call; subscriptions get sequential SIDs."""

    subscribe_calls: list[tuple[str, int]] = field(default_factory=list)
    unsubscribe_calls: list[str] = field(default_factory=list)
    search_calls: list[tuple[int, str | None]] = field(default_factory=list)
    action_calls: list[tuple[str, str, str, dict[str, str]]] = field(default_factory=list)
    variable_calls: list[tuple[str, str]] = field(default_factory=list)
    fail_subscribe: bool = False
    fail_unsubscribe: bool = False
    fail_search: bool = False
    fail_action: bool = False
    on_subscribe: Callable[[], Awaitable[None]] | None = None
    _issued: int = 0

    async def subscribe(self, event_url: str, timeout: int) -> SubscriptionGrant:
        self.subscribe_calls.append((event_url, timeout))
        if self.on_subscribe is not None:
            await self.on_subscribe()
        if self.fail_subscribe:
            raise CctvProtocolError("subscribe failed", code=-301, operation="subscribe")
        self._issued += 1
        return SubscriptionGrant(subscription_id=f"uuid:sid-{self._issued}", timeout=timeout)

    async def unsubscribe(self, subscription_id: str) -> None:
        self.unsubscribe_calls.append(subscription_id)
        if self.fail_unsubscribe:
            raise CctvProtocolError("unsubscribe failed", code=-302, operation="unsubscribe")

    async def search(self, wait_seconds: int, target: str | None) -> None:
        self.search_calls.append((wait_seconds, target))
        if self.fail_search:
            raise CctvProtocolError("search failed", code=-303, operation="search")

    async def send_action(
        self,
        control_url: str,
        service_type: str,
        action_name: str,
        args: Mapping[str, str],
    ) -> None:
        self.action_calls.append((control_url, service_type, action_name, dict(args)))
        if self.fail_action:
            raise CctvProtocolError("action failed", code=-304, operation="send_action")

    async def get_variable(self, control_url: str, var_name: str) -> None:
        self.variable_calls.append((control_url, var_name))


@dataclass
class RecordingObserver:
    added: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    updated: list[tuple[str, int, str, str]] = field(default_factory=list)
    query_results: list[tuple[str, str, str]] = field(default_factory=list)

    def on_device_added(self, udn: str) -> None:
        self.added.append(udn)

    def on_device_removed(self, udn: str) -> None:
        self.removed.append(udn)

    def on_variable_updated(self, udn: str, service_index: int, var_name: str, value: str) -> None:
        self.updated.append((udn, service_index, var_name, value))

    def on_variable_query_result(self, var_name: str, value: str, udn: str) -> None:
        self.query_results.append((var_name, value, udn))


@dataclass
class FakeFetcher:
    """Serves description documents from a location -> XML mapping."""

    documents: dict[str, str] = field(default_factory=dict)
    error: Exception | None = None
    fetched: list[str] = field(default_factory=list)

    async def fetch_description(self, location: str) -> str:
        self.fetched.append(location)
        if self.error is not None:
            raise self.error
        return self.documents[location]


def make_description(
    udn: str = "uuid:cam-1",
    *,
    device_type: str = CCTV_DEVICE_TYPE,
    with_control: bool = True,
) -> DeviceDescription:
    services: tuple[DescribedService, ...] = ()
    if with_control:
        base = f"http://cam.local/{udn}"
        services = (
            DescribedService(
                service_type=CCTV_CONTROL_SERVICE_TYPE,
                service_id="urn:upnp-org:serviceId:control1",
                control_url=f"{base}/control",
                event_url=f"{base}/event",
            ),
        )
    return DeviceDescription(device_type=device_type, udn=udn, friendly_name=f"Camera {udn}", services=services)


@pytest.fixture
def protocol() -> FakeProtocol:
    return FakeProtocol()


@pytest.fixture
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture
def registry(protocol: FakeProtocol, observer: RecordingObserver) -> DeviceRegistry:
    return DeviceRegistry(protocol, observer=observer)
