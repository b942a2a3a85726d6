"""High-level async control point for CCTV devices."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import Mapping
from typing import Any

import aiohttp

from pycctv._constants import CCTV_SERVICE_CONTROL
from pycctv._transport import DescriptionTransport
from pycctv.config import CtrlPointConfig
from pycctv.dispatcher import EventDispatcher
from pycctv.events import CallbackEvent
from pycctv.exceptions import CctvInvalidArgumentError, CctvNotFoundError
from pycctv.models.control import CctvAction
from pycctv.models.device import DeviceNode, ServiceRecord
from pycctv.protocol import DescriptionFetcher, ProtocolLayer, StateObserver
from pycctv.registry import DeviceListing, DeviceRegistry
from pycctv.sweeper import TimeoutSweeper

_logger = logging.getLogger(__name__)


class CctvControlPoint:
    """Async control point tracking CCTV devices on the network.

    Usage::

        async with CctvControlPoint(protocol, observer=ui) as ctrlpt:
            ...  # feed protocol callbacks to ctrlpt.dispatch_threadsafe
            await ctrlpt.power_on(1)

    Devices are addressed by UDN or by their 1-based position in
    discovery order.  Positions shift whenever a device is added or
    removed, so a position read from :meth:`list_devices` may resolve to
    a different device (or none) later on.
    """

    def __init__(
        self,
        protocol: ProtocolLayer,
        *,
        config: CtrlPointConfig | None = None,
        observer: StateObserver | None = None,
        fetcher: DescriptionFetcher | None = None,
        http_session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._config = config or CtrlPointConfig()
        self._protocol = protocol
        self._external_session = http_session is not None
        self._http_session = http_session
        self._external_fetcher = fetcher is not None
        self._registry = DeviceRegistry(
            protocol,
            self._config.schema,
            observer=observer,
            subscription_timeout=self._config.subscription_timeout,
        )
        self._sweeper = TimeoutSweeper(self._registry, protocol, interval=self._config.sweep_interval)
        self._dispatcher = EventDispatcher(self._registry, fetcher)

    @property
    def config(self) -> CtrlPointConfig:
        return self._config

    @property
    def registry(self) -> DeviceRegistry:
        return self._registry

    @property
    def sweeper(self) -> TimeoutSweeper:
        return self._sweeper

    @property
    def dispatcher(self) -> EventDispatcher:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> CctvControlPoint:
        self._dispatcher.bind_loop(asyncio.get_running_loop())
        if self._dispatcher.fetcher is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._dispatcher.fetcher = DescriptionTransport(
                self._http_session,
                timeout=self._config.http_timeout,
            )
        if self._config.sweeper_enabled:
            self._sweeper.start()
        if self._config.search_on_start:
            try:
                await self.refresh()
            except Exception:
                _logger.warning("Initial search failed", exc_info=True)
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self._sweeper.stop()
        await self._registry.remove_all()
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        if not self._external_fetcher:
            self._dispatcher.fetcher = None
        self._dispatcher.bind_loop(None)

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    async def remove_device(self, udn: str) -> bool:
        """Stop tracking *udn*; ``False`` when it was not tracked."""
        return await self._registry.remove(udn)

    async def remove_all(self) -> list[str]:
        """Stop tracking every device and return their UDNs."""
        return await self._registry.remove_all()

    async def refresh(self) -> None:
        """Forget every device and search the network for them again.

        Raises
        ------
        CctvProtocolError
            The search could not be issued.
        """
        await self._registry.remove_all()
        device_type = self._config.schema.device_type
        _logger.debug("Searching for %s (MX=%s)", device_type, self._config.search_wait)
        await self._protocol.search(self._config.search_wait, device_type)

    async def get_device(self, position: int) -> DeviceNode:
        """Return a snapshot of the device at 1-based *position*."""
        return await self._registry.get_by_position(position)

    async def get_device_by_udn(self, udn: str) -> DeviceNode:
        return await self._registry.get(udn)

    async def list_devices(self) -> DeviceListing:
        """Return ``(position, udn)`` pairs in discovery order."""
        return await self._registry.listing()

    async def format_device_list(self) -> str:
        lines = ["Device list:"]
        lines.extend(f" {position:3d} -- {udn}" for position, udn in await self.list_devices())
        return "\n".join(lines)

    async def print_device(self, position: int) -> str:
        """Format identifiers, services and state table of a device."""
        node = await self.get_device(position)
        report = self._format_device(position, node)
        _logger.debug("%s", report)
        return report

    def _format_device(self, position: int, node: DeviceNode) -> str:
        lines = [
            f"CCTV device -- {position}",
            f"  +- UDN            = {node.udn}",
            f"  +- DescDocURL     = {node.description_url}",
            f"  +- FriendlyName   = {node.friendly_name}",
            f"  +- PresURL        = {node.presentation_url}",
            f"  +- Adver. TimeOut = {node.advertisement_timeout}",
        ]
        for index, schema in enumerate(self._config.schema.services):
            service = node.service(index)
            lines.append(f"  +- {schema.name} service")
            if service is None:
                lines.append("       (not declared by device)")
                continue
            lines.extend(
                [
                    f"     +- ServiceId    = {service.service_id}",
                    f"     +- ServiceType  = {service.service_type}",
                    f"     +- EventURL     = {service.event_url}",
                    f"     +- ControlURL   = {service.control_url}",
                    f"     +- SID          = {service.subscription_id}",
                    "     +- ServiceStateTable",
                ]
            )
            lines.extend(f"          +- {name:<10} = {value}" for name, value in service.variables.items())
        return "\n".join(lines)

    # ------------------------------------------------------------------
    # Control
    # ------------------------------------------------------------------

    async def _resolve_service(self, service_index: int, position: int) -> ServiceRecord:
        if not 0 <= service_index < len(self._config.schema.services):
            raise CctvInvalidArgumentError(f"Unknown service index {service_index}")
        node = await self._registry.get_by_position(position)
        service = node.service(service_index)
        if service is None:
            raise CctvNotFoundError(f"Device {node.udn} does not provide service {service_index}")
        return service

    async def send_action(
        self,
        service_index: int,
        position: int,
        action_name: str,
        args: Mapping[str, str] | None = None,
    ) -> None:
        """Send *action_name* to a service of the device at *position*.

        The result arrives later as an ``action_complete`` event; state
        changes arrive as variable change events.

        Raises
        ------
        CctvInvalidArgumentError
            Empty action name or unknown service index.
        CctvNotFoundError
            No device at *position*, or it lacks the service.
        CctvProtocolError
            The action could not be sent.
        """
        if not action_name:
            raise CctvInvalidArgumentError("action_name must be non-empty")
        service = await self._resolve_service(service_index, position)
        _logger.debug("Sending %s to %s", action_name, service.control_url)
        await self._protocol.send_action(
            service.control_url,
            service.service_type,
            action_name,
            dict(args or {}),
        )

    async def send_action_numeric_arg(
        self,
        position: int,
        service_index: int,
        action_name: str,
        param_name: str,
        value: int,
    ) -> None:
        """Send an action carrying one integer argument."""
        await self.send_action(service_index, position, action_name, {param_name: str(value)})

    async def get_variable(self, service_index: int, position: int, var_name: str) -> None:
        """Query a state variable; the value arrives as a ``get_var_complete`` event."""
        if not var_name:
            raise CctvInvalidArgumentError("var_name must be non-empty")
        service = await self._resolve_service(service_index, position)
        await self._protocol.get_variable(service.control_url, var_name)

    async def send_command(self, position: int, action: CctvAction | str) -> None:
        """Send an argument-less action to the control service."""
        await self.send_action(CCTV_SERVICE_CONTROL, position, str(action))

    async def power_on(self, position: int) -> None:
        await self.send_command(position, CctvAction.POWER_ON)

    async def power_off(self, position: int) -> None:
        await self.send_command(position, CctvAction.POWER_OFF)

    async def reboot(self, position: int) -> None:
        await self.send_command(position, CctvAction.REBOOT)

    async def get_power(self, position: int) -> None:
        await self.get_variable(CCTV_SERVICE_CONTROL, position, "Power")

    # ------------------------------------------------------------------
    # Inbound events
    # ------------------------------------------------------------------

    async def dispatch(self, event: CallbackEvent) -> None:
        await self._dispatcher.dispatch(event)

    def dispatch_threadsafe(self, event: CallbackEvent) -> concurrent.futures.Future[None]:
        """Hand an event over from a protocol thread."""
        return self._dispatcher.dispatch_threadsafe(event)

    async def handle_callback(self, raw: Mapping[str, Any]) -> None:
        await self._dispatcher.handle_callback(raw)
