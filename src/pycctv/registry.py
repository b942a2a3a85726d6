"""Registry of tracked devices.

All registry state lives in one insertion-ordered mapping guarded by a
single :class:`asyncio.Lock`.  Every lookup and every mutation takes
the lock; calls to the protocol layer are always made after releasing it,
so a reader may briefly see a new device whose subscription ids are
still empty.  Variable changes that arrive for a subscription id no
service holds yet are kept (for a handful of ids) and applied once the
id is attached.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Iterable, Iterator
from itertools import islice

from pycctv._constants import DEFAULT_SUBSCRIPTION_TIMEOUT
from pycctv.config import DeviceSchema
from pycctv.exceptions import CctvInvalidPositionError, CctvNotFoundError
from pycctv.models.description import DeviceDescription
from pycctv.models.device import DeviceNode
from pycctv.protocol import NullObserver, ProtocolLayer, StateObserver, call_observer
from pycctv.subscriptions import SubscriptionManager

_logger = logging.getLogger(__name__)

_HELD_SUBSCRIPTIONS = 16


class DeviceListing:
    """Restartable ``(position, udn)`` sequence over a registry snapshot.

    Positions are only meaningful until the registry next changes; a
    later lookup by position may resolve to a different device or fail.
    """

    def __init__(self, udns: Iterable[str]) -> None:
        self._udns = tuple(udns)

    def __iter__(self) -> Iterator[tuple[int, str]]:
        return enumerate(self._udns, start=1)

    def __len__(self) -> int:
        return len(self._udns)

    def __bool__(self) -> bool:
        return bool(self._udns)

    def __repr__(self) -> str:
        return f"DeviceListing({list(self)!r})"


class DeviceRegistry:
    """Tracked devices keyed by UDN, in discovery order."""

    def __init__(
        self,
        protocol: ProtocolLayer,
        schema: DeviceSchema | None = None,
        *,
        observer: StateObserver | None = None,
        subscription_timeout: int = DEFAULT_SUBSCRIPTION_TIMEOUT,
    ) -> None:
        self._schema = schema or DeviceSchema()
        self._observer: StateObserver = observer or NullObserver()
        self._nodes: dict[str, DeviceNode] = {}
        self._lock = asyncio.Lock()
        self._held: OrderedDict[str, list[tuple[str, str]]] = OrderedDict()
        self.subscriptions = SubscriptionManager(protocol, self, default_timeout=subscription_timeout)

    @property
    def schema(self) -> DeviceSchema:
        return self._schema

    @property
    def observer(self) -> StateObserver:
        return self._observer

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, udn: object) -> bool:
        return udn in self._nodes

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def add_or_refresh(
        self,
        description: DeviceDescription,
        location: str,
        expires: int,
    ) -> DeviceNode | None:
        """Track a discovered device or refresh its advertisement timeout.

        Parameters
        ----------
        description
            Parsed device description.
        location
            URL the description was fetched from.
        expires
            Advertisement lifetime in seconds.

        Returns
        -------
        DeviceNode or None
            Snapshot of the tracked node, or ``None`` when the device is
            not of the recognized type.
        """
        if description.device_type != self._schema.device_type:
            _logger.debug("Ignoring %s of type %s", description.udn, description.device_type)
            return None

        async with self._lock:
            existing = self._nodes.get(description.udn)
            if existing is not None:
                existing.advertisement_timeout = expires
                _logger.debug("Refreshed %s advertisement timeout=%s", existing.udn, expires)
                return existing.snapshot()

            node = DeviceNode.create(self._schema, description, location, expires)
            self._nodes[node.udn] = node
            pending = [(index, s.event_url) for index, s in enumerate(node.services) if s is not None]

        _logger.info("Found device %s (%s) at %s", node.udn, node.friendly_name, location)
        for index, service_schema in enumerate(self._schema.services):
            if node.services[index] is None:
                _logger.warning("Device %s does not declare service %s", node.udn, service_schema.service_type)
        call_observer(self._observer.on_device_added, node.udn)

        for index, event_url in pending:
            grant = await self.subscriptions.subscribe(event_url)
            if grant is None:
                continue
            if not await self._attach_subscription(node, index, grant.subscription_id):
                _logger.debug("Device %s went away while subscribing; releasing %s", node.udn, event_url)
                await self.subscriptions.unsubscribe(grant.subscription_id)

        async with self._lock:
            return node.snapshot()

    async def _attach_subscription(self, node: DeviceNode, index: int, subscription_id: str) -> bool:
        async with self._lock:
            if self._nodes.get(node.udn) is not node:
                return False
            service = node.service(index)
            if service is None:
                return False
            service.subscription_id = subscription_id
            applied = self._claim_held(node, index)
        self._notify_updates(applied)
        return True

    async def remove(self, udn: str) -> bool:
        """Stop tracking *udn*.

        Returns ``False`` (and notifies nobody) when the device is unknown.
        """
        async with self._lock:
            node = self._nodes.pop(udn, None)
        if node is None:
            _logger.debug("Remove requested for unknown device %s", udn)
            return False
        await self.teardown(node)
        return True

    async def remove_all(self) -> list[str]:
        """Detach every device at once, then tear each one down."""
        async with self._lock:
            nodes = list(self._nodes.values())
            self._nodes = {}
        for node in nodes:
            await self.teardown(node)
        return [node.udn for node in nodes]

    async def age(self, interval: int) -> tuple[list[DeviceNode], list[str]]:
        """Subtract *interval* from every advertisement timeout.

        Nodes at or below zero are detached and returned for teardown;
        the UDNs of nodes with less than two intervals left are returned
        as candidates for a renewal search.
        """
        expired: list[DeviceNode] = []
        renewing: list[str] = []
        async with self._lock:
            for udn in list(self._nodes):
                node = self._nodes[udn]
                node.advertisement_timeout -= interval
                if node.advertisement_timeout <= 0:
                    expired.append(self._nodes.pop(udn))
                elif node.advertisement_timeout < 2 * interval:
                    renewing.append(udn)
        return expired, renewing

    async def teardown(self, node: DeviceNode) -> None:
        """Release subscriptions of a detached node and announce its removal."""
        await self.subscriptions.release(node)
        _logger.info("Removed device %s", node.udn)
        call_observer(self._observer.on_device_removed, node.udn)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, udn: str) -> DeviceNode:
        async with self._lock:
            node = self._nodes.get(udn)
            if node is None:
                raise CctvNotFoundError(f"Unknown device {udn}")
            return node.snapshot()

    async def get_by_position(self, position: int) -> DeviceNode:
        """Return the device at 1-based *position* in discovery order.

        Raises
        ------
        CctvInvalidPositionError
            *position* is zero or negative.
        CctvNotFoundError
            *position* is past the end of the registry.
        """
        if position <= 0:
            raise CctvInvalidPositionError(position)
        async with self._lock:
            node = next(islice(self._nodes.values(), position - 1, None), None)
            if node is None:
                raise CctvNotFoundError(f"No device at position {position}; {len(self._nodes)} known")
            return node.snapshot()

    async def listing(self) -> DeviceListing:
        async with self._lock:
            return DeviceListing(self._nodes)

    async def udn_for_control_url(self, control_url: str) -> str | None:
        async with self._lock:
            for node in self._nodes.values():
                for service in node.services:
                    if service is not None and service.control_url == control_url:
                        return node.udn
        return None

    # ------------------------------------------------------------------
    # Event-driven updates
    # ------------------------------------------------------------------

    async def set_subscription_id(self, event_url: str, subscription_id: str) -> list[str]:
        """Overwrite the subscription id of every service publishing at *event_url*.

        Returns the UDNs of the devices that were updated.
        """
        updated: list[str] = []
        applied: list[tuple[str, int, str, str]] = []
        async with self._lock:
            for node in self._nodes.values():
                for index, service in enumerate(node.services):
                    if service is not None and service.event_url == event_url:
                        service.subscription_id = subscription_id
                        updated.append(node.udn)
                        if subscription_id:
                            applied.extend(self._claim_held(node, index))
                        break
        self._notify_updates(applied)
        return updated

    async def detach_subscriptions(self, event_url: str) -> list[tuple[DeviceNode, int]]:
        """Mark every service publishing at *event_url* as unsubscribed.

        Returns the ``(node, service_index)`` pairs that were cleared, to
        be handed to :meth:`reattach_subscription` once a new
        subscription is granted.
        """
        owners: list[tuple[DeviceNode, int]] = []
        async with self._lock:
            for node in self._nodes.values():
                for index, service in enumerate(node.services):
                    if service is not None and service.event_url == event_url:
                        service.subscription_id = ""
                        owners.append((node, index))
                        break
        return owners

    async def reattach_subscription(
        self, owners: Iterable[tuple[DeviceNode, int]], subscription_id: str
    ) -> list[str]:
        """Give *subscription_id* to the *owners* still tracked and unsubscribed.

        A node removed or replaced by a rediscovery since
        :meth:`detach_subscriptions` is skipped, as is a service that got
        a subscription of its own in the meantime.

        Returns the UDNs of the devices that took the id.
        """
        attached: list[str] = []
        applied: list[tuple[str, int, str, str]] = []
        async with self._lock:
            for node, index in owners:
                if self._nodes.get(node.udn) is not node:
                    continue
                service = node.services[index]
                if service is None or service.subscription_id:
                    continue
                service.subscription_id = subscription_id
                attached.append(node.udn)
                applied.extend(self._claim_held(node, index))
        self._notify_updates(applied)
        return attached

    async def apply_variable_changes(
        self,
        subscription_id: str,
        changes: Iterable[tuple[str, str]],
    ) -> list[tuple[str, int, str, str]] | None:
        """Apply changed variables to the service holding *subscription_id*.

        Unknown variable names are skipped.  Every applied change is
        reported to the observer after the lock is released.  Changes for
        a subscription id that no service holds yet are held until the id
        is attached.

        Returns
        -------
        list or None
            ``(udn, service_index, name, value)`` per applied change, or
            ``None`` when no service holds the subscription.
        """
        if not subscription_id:
            return None
        async with self._lock:
            match = self._find_subscription(subscription_id)
            if match is None:
                self._hold(subscription_id, changes)
                return None
            applied = self._apply(*match, changes)
        self._notify_updates(applied)
        return applied

    def _apply(
        self, node: DeviceNode, index: int, changes: Iterable[tuple[str, str]]
    ) -> list[tuple[str, int, str, str]]:
        service = node.services[index]
        assert service is not None
        applied: list[tuple[str, int, str, str]] = []
        for name, value in changes:
            if service.set_variable(name, value):
                applied.append((node.udn, index, name, value))
            else:
                _logger.debug("Ignoring unknown variable %s for %s", name, node.udn)
        return applied

    def _hold(self, subscription_id: str, changes: Iterable[tuple[str, str]]) -> None:
        self._held.setdefault(subscription_id, []).extend(changes)
        self._held.move_to_end(subscription_id)
        while len(self._held) > _HELD_SUBSCRIPTIONS:
            dropped, _ = self._held.popitem(last=False)
            _logger.debug("Dropping held changes for unknown SID=%s", dropped)
        _logger.debug("Holding changes for not yet attached SID=%s", subscription_id)

    def _claim_held(self, node: DeviceNode, index: int) -> list[tuple[str, int, str, str]]:
        service = node.services[index]
        assert service is not None
        held = self._held.pop(service.subscription_id, None)
        if not held:
            return []
        return self._apply(node, index, held)

    def _notify_updates(self, applied: Iterable[tuple[str, int, str, str]]) -> None:
        for udn, index, name, value in applied:
            call_observer(self._observer.on_variable_updated, udn, index, name, value)

    def _find_subscription(self, subscription_id: str) -> tuple[DeviceNode, int] | None:
        for node in self._nodes.values():
            for index, service in enumerate(node.services):
                if service is not None and service.subscription_id == subscription_id:
                    return node, index
        return None
