"""Collaborator interfaces consumed and produced by the control point.

The wire protocol (SSDP search, GENA subscriptions, SOAP control) lives
behind :class:`ProtocolLayer`.  Having protocols here makes it easy to
pass test doubles while keeping production adapters concrete.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Protocol

from pydantic import BaseModel, ConfigDict

_logger = logging.getLogger(__name__)


class SubscriptionGrant(BaseModel):
    """A subscription accepted by a device."""

    model_config = ConfigDict(frozen=True)

    subscription_id: str
    timeout: int


class ProtocolLayer(Protocol):
    """Outbound protocol operations.

    Every method returns once the request is issued; results of
    searches, actions and variable queries come back later as callback
    events.  Failures raise :class:`~pycctv.exceptions.CctvProtocolError`.
    """

    async def subscribe(self, event_url: str, timeout: int) -> SubscriptionGrant: ...

    async def unsubscribe(self, subscription_id: str) -> None: ...

    async def search(self, wait_seconds: int, target: str | None) -> None: ...

    async def send_action(
        self,
        control_url: str,
        service_type: str,
        action_name: str,
        args: Mapping[str, str],
    ) -> None: ...

    async def get_variable(self, control_url: str, var_name: str) -> None: ...


class DescriptionFetcher(Protocol):
    """Downloads device description documents."""

    async def fetch_description(self, location: str) -> str: ...


class StateObserver(Protocol):
    """Receives state notifications from the control point."""

    def on_device_added(self, udn: str) -> None: ...

    def on_device_removed(self, udn: str) -> None: ...

    def on_variable_updated(self, udn: str, service_index: int, var_name: str, value: str) -> None: ...

    def on_variable_query_result(self, var_name: str, value: str, udn: str) -> None: ...


class NullObserver:
    """Observer that ignores every notification."""

    def on_device_added(self, udn: str) -> None:
        pass

    def on_device_removed(self, udn: str) -> None:
        pass

    def on_variable_updated(self, udn: str, service_index: int, var_name: str, value: str) -> None:
        pass

    def on_variable_query_result(self, var_name: str, value: str, udn: str) -> None:
        pass


def call_observer(callback: Callable[..., None], *args: Any) -> None:
    """Invoke an observer callback; failures are logged, never raised."""
    try:
        callback(*args)
    except Exception:
        _logger.debug("Observer callback %s failed", getattr(callback, "__name__", callback), exc_info=True)
