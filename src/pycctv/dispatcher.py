"""Routing of inbound protocol callbacks into registry mutations."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from collections.abc import Mapping
from typing import Any, assert_never

from pycctv.events import (
    ActionCompleteEvent,
    ByeByeEvent,
    CallbackEvent,
    DiscoveryEvent,
    SearchTimeoutEvent,
    ServerRequestEvent,
    SubscriptionLostEvent,
    SubscriptionUpdateEvent,
    VariableChangeEvent,
    VariableQueryEvent,
    parse_event,
)
from pycctv.exceptions import CctvError
from pycctv.models.description import parse_description
from pycctv.protocol import DescriptionFetcher, call_observer
from pycctv.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


class EventDispatcher:
    """Single entry point for callback events.

    ``dispatch`` must run on the loop that owns the registry.  Threads
    delivering callbacks use :meth:`dispatch_threadsafe`.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        fetcher: DescriptionFetcher | None = None,
    ) -> None:
        self._registry = registry
        self.fetcher = fetcher
        self._loop: asyncio.AbstractEventLoop | None = None

    def bind_loop(self, loop: asyncio.AbstractEventLoop | None) -> None:
        self._loop = loop

    async def dispatch(self, event: CallbackEvent) -> None:
        match event:
            case DiscoveryEvent():
                await self._on_discovery(event)
            case ByeByeEvent():
                await self._on_byebye(event)
            case SearchTimeoutEvent():
                _logger.debug("Search timed out")
            case ActionCompleteEvent():
                self._on_action_complete(event)
            case VariableQueryEvent():
                await self._on_variable_query(event)
            case VariableChangeEvent():
                await self._on_variable_change(event)
            case SubscriptionUpdateEvent():
                await self._on_subscription_update(event)
            case SubscriptionLostEvent():
                await self._registry.subscriptions.on_renewal_failed_or_expired(event.event_url)
            case ServerRequestEvent():
                _logger.debug("Ignoring %s addressed to a device role", event.kind)
            case _:
                assert_never(event)

    async def handle_callback(self, raw: Mapping[str, Any]) -> None:
        """Validate a raw callback mapping and dispatch it.

        Malformed callbacks are logged and dropped.
        """
        try:
            event = parse_event(raw)
        except CctvError:
            _logger.warning("Dropping malformed callback %r", raw.get("kind"), exc_info=True)
            return
        await self.dispatch(event)

    def dispatch_threadsafe(self, event: CallbackEvent) -> concurrent.futures.Future[None]:
        """Schedule :meth:`dispatch` on the bound loop from any thread."""
        loop = self._loop
        if loop is None or loop.is_closed():
            raise CctvError("Dispatcher is not bound to a running event loop")
        return asyncio.run_coroutine_threadsafe(self._dispatch_logged(event), loop)

    async def _dispatch_logged(self, event: CallbackEvent) -> None:
        try:
            await self.dispatch(event)
        except Exception:
            _logger.warning("Dispatch of %s failed", event.kind, exc_info=True)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    async def _on_discovery(self, event: DiscoveryEvent) -> None:
        if not event.ok:
            # Discovery results are still processed after a reported error.
            _logger.warning("Error in discovery callback -- %s", event.error_code)

        fetcher = self.fetcher
        if fetcher is None:
            _logger.warning("No description fetcher; dropping %s from %s", event.kind, event.location)
            return
        try:
            document = await fetcher.fetch_description(event.location)
            description = parse_description(
                document,
                event.location,
                device_type=self._registry.schema.device_type,
            )
        except CctvError as exc:
            _logger.warning("Error obtaining device description from %s: %s", event.location, exc)
            return
        except Exception:
            _logger.warning("Error obtaining device description from %s", event.location, exc_info=True)
            return

        await self._registry.add_or_refresh(description, event.location, event.expires)

    async def _on_byebye(self, event: ByeByeEvent) -> None:
        if not event.ok:
            _logger.warning("Error in byebye callback -- %s", event.error_code)
        _logger.debug("Received byebye for %s", event.device_id)
        await self._registry.remove(event.device_id)

    def _on_action_complete(self, event: ActionCompleteEvent) -> None:
        if event.ok:
            _logger.debug("Action %s on %s completed", event.action_name, event.control_url)
        else:
            _logger.warning(
                "Error in action complete callback for %s -- %s",
                event.action_name or event.control_url,
                event.error_code,
            )

    async def _on_variable_query(self, event: VariableQueryEvent) -> None:
        if not event.ok:
            _logger.warning("Error in get var complete callback for %s -- %s", event.var_name, event.error_code)
            return
        udn = await self._registry.udn_for_control_url(event.control_url)
        if udn is None:
            _logger.debug("Variable %s reported by unknown control URL %s", event.var_name, event.control_url)
            return
        call_observer(self._registry.observer.on_variable_query_result, event.var_name, event.value, udn)

    async def _on_variable_change(self, event: VariableChangeEvent) -> None:
        try:
            changes = event.changes()
        except CctvError as exc:
            _logger.warning("Dropping event for SID=%s: %s", event.subscription_id, exc)
            return
        applied = await self._registry.apply_variable_changes(event.subscription_id, changes)
        if applied is None:
            _logger.debug("Event for unknown SID=%s key=%s", event.subscription_id, event.event_key)

    async def _on_subscription_update(self, event: SubscriptionUpdateEvent) -> None:
        if not event.ok:
            _logger.warning("Error in %s callback for %s -- %s", event.kind, event.event_url, event.error_code)
            return
        await self._registry.subscriptions.on_renewed(event.event_url, event.subscription_id, event.timeout)
