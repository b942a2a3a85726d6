"""UPnP device description documents.

Description documents are parsed with ``xmltodict``; the UPnP device
namespace is collapsed so element names can be used directly.  All URLs
are resolved against ``URLBase`` when present, otherwise against the
location the document was downloaded from.
"""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any
from urllib.parse import urljoin
from xml.parsers.expat import ExpatError

import xmltodict
from pydantic import ConfigDict, Field

from pycctv._constants import DEVICE_NAMESPACE
from pycctv.exceptions import CctvParseError
from pycctv.models._base import CctvBaseModel, as_list, xml_text


class DescribedService(CctvBaseModel):
    """A ``<service>`` entry of a device description."""

    model_config = ConfigDict(frozen=True)

    service_type: str
    service_id: str = ""
    control_url: str = ""
    event_url: str = ""
    scpd_url: str = ""


class DeviceDescription(CctvBaseModel):
    """The parts of a device description the control point keeps."""

    model_config = ConfigDict(frozen=True)

    device_type: str
    udn: str
    friendly_name: str = ""
    url_base: str | None = None
    presentation_url: str = ""
    services: tuple[DescribedService, ...] = Field(default_factory=tuple)

    def find_service(self, service_type: str) -> DescribedService | None:
        for service in self.services:
            if service.service_type == service_type:
                return service
        return None


def _iter_devices(device: dict[str, Any]) -> Iterator[dict[str, Any]]:
    """Depth-first walk over a device and its embedded devices."""
    yield device
    device_list = device.get("deviceList")
    if isinstance(device_list, dict):
        for child in as_list(device_list.get("device")):
            if isinstance(child, dict):
                yield from _iter_devices(child)


def _select_device(root_device: dict[str, Any], device_type: str | None) -> dict[str, Any]:
    if device_type is not None:
        for device in _iter_devices(root_device):
            if xml_text(device.get("deviceType")) == device_type:
                return device
    return root_device


def _resolve(base: str, relative: str | None) -> str:
    if not relative:
        return ""
    return urljoin(base, relative)


def _parse_services(device: dict[str, Any], base: str) -> tuple[DescribedService, ...]:
    service_list = device.get("serviceList")
    if not isinstance(service_list, dict):
        return ()
    services: list[DescribedService] = []
    for entry in as_list(service_list.get("service")):
        if not isinstance(entry, dict):
            continue
        service_type = xml_text(entry.get("serviceType"))
        if not service_type:
            continue
        services.append(
            DescribedService(
                service_type=service_type,
                service_id=xml_text(entry.get("serviceId")) or "",
                control_url=_resolve(base, xml_text(entry.get("controlURL"))),
                event_url=_resolve(base, xml_text(entry.get("eventSubURL"))),
                scpd_url=_resolve(base, xml_text(entry.get("SCPDURL"))),
            )
        )
    return tuple(services)


def parse_description(
    xml: str | bytes,
    location: str,
    *,
    device_type: str | None = None,
) -> DeviceDescription:
    """Parse a device description document.

    Parameters
    ----------
    xml
        Raw description document.
    location
        URL the document was fetched from; base for relative URLs when
        the document has no ``URLBase``.
    device_type
        Prefer the first (root or embedded) device of this type.  The
        root device is used when no device matches.

    Raises
    ------
    CctvParseError
        The document is not well-formed XML or lacks ``deviceType``/``UDN``.
    """
    try:
        parsed = xmltodict.parse(
            xml,
            process_namespaces=True,
            namespaces={DEVICE_NAMESPACE: None},
        )
    except ExpatError as exc:
        raise CctvParseError(f"Malformed device description from {location}: {exc}") from exc

    root = parsed.get("root") if isinstance(parsed, dict) else None
    if not isinstance(root, dict) or not isinstance(root.get("device"), dict):
        raise CctvParseError(f"Device description from {location} has no root device")

    url_base = xml_text(root.get("URLBase"))
    base = url_base or location
    device = _select_device(root["device"], device_type)

    found_type = xml_text(device.get("deviceType"))
    udn = xml_text(device.get("UDN"))
    if not found_type or not udn:
        raise CctvParseError(f"Device description from {location} lacks deviceType or UDN")

    return DeviceDescription(
        device_type=found_type,
        udn=udn,
        friendly_name=xml_text(device.get("friendlyName")) or "",
        url_base=url_base,
        presentation_url=_resolve(base, xml_text(device.get("presentationURL"))),
        services=_parse_services(device, base),
    )
