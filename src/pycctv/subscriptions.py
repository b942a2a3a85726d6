"""Event subscriptions for tracked services.

Subscription failures never remove a device: a service whose
subscription could not be made or renewed simply stays unsubscribed
until the next discovery or renewal signal.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from pycctv._constants import DEFAULT_SUBSCRIPTION_TIMEOUT
from pycctv.exceptions import CctvProtocolError
from pycctv.protocol import ProtocolLayer, SubscriptionGrant

if TYPE_CHECKING:
    from pycctv.models.device import DeviceNode
    from pycctv.registry import DeviceRegistry

_logger = logging.getLogger(__name__)


class SubscriptionManager:
    """Issues, renews and cancels subscriptions through the protocol layer."""

    def __init__(
        self,
        protocol: ProtocolLayer,
        registry: DeviceRegistry,
        *,
        default_timeout: int = DEFAULT_SUBSCRIPTION_TIMEOUT,
    ) -> None:
        self._protocol = protocol
        self._registry = registry
        self._default_timeout = default_timeout

    @property
    def default_timeout(self) -> int:
        return self._default_timeout

    async def subscribe(self, event_url: str, timeout: int | None = None) -> SubscriptionGrant | None:
        """Subscribe to *event_url*.

        Returns ``None`` on failure; the failure is logged and not retried.
        """
        requested = self._default_timeout if timeout is None else timeout
        _logger.debug("Subscribing to %s timeout=%s", event_url, requested)
        try:
            grant = await self._protocol.subscribe(event_url, requested)
        except CctvProtocolError as exc:
            _logger.warning("Error subscribing to %s: %s (code=%s)", event_url, exc, exc.code)
            return None
        except Exception:
            _logger.warning("Error subscribing to %s", event_url, exc_info=True)
            return None

        if not grant.subscription_id:
            _logger.warning("Subscription to %s returned an empty SID", event_url)
            return None
        _logger.info("Subscribed to %s with SID=%s timeout=%s", event_url, grant.subscription_id, grant.timeout)
        return grant

    async def unsubscribe(self, subscription_id: str) -> bool:
        """Best-effort unsubscribe; errors are logged, never raised."""
        try:
            await self._protocol.unsubscribe(subscription_id)
        except CctvProtocolError as exc:
            _logger.warning("Error unsubscribing SID=%s: %s (code=%s)", subscription_id, exc, exc.code)
            return False
        except Exception:
            _logger.warning("Error unsubscribing SID=%s", subscription_id, exc_info=True)
            return False
        _logger.info("Unsubscribed SID=%s", subscription_id)
        return True

    async def release(self, node: DeviceNode) -> None:
        """Cancel every subscription held by a detached node.

        Subscription ids are cleared locally whether or not the remote
        side acknowledged the cancellation.
        """
        for service in node.services:
            if service is None or not service.subscription_id:
                continue
            subscription_id = service.subscription_id
            service.subscription_id = ""
            await self.unsubscribe(subscription_id)

    async def on_renewed(self, event_url: str, subscription_id: str, timeout: int) -> bool:
        """Record a (re)newed subscription for the service publishing at *event_url*."""
        updated = await self._registry.set_subscription_id(event_url, subscription_id)
        if not updated:
            _logger.debug("No tracked service publishes at %s", event_url)
            return False
        _logger.debug(
            "Subscription renewal for %s on %s SID=%s timeout=%s",
            event_url,
            ", ".join(updated),
            subscription_id,
            timeout,
        )
        return True

    async def on_renewal_failed_or_expired(self, event_url: str) -> bool:
        """Re-subscribe after automatic renewal failed or the subscription lapsed.

        The service is marked unsubscribed first, so it stays that way if
        the new subscription cannot be made.  The new subscription only
        goes to the nodes that were publishing at *event_url* when the
        renewal started; if none of them is still tracked it is cancelled.
        """
        owners = await self._registry.detach_subscriptions(event_url)
        grant = await self.subscribe(event_url, self._default_timeout)
        if grant is None:
            return False
        attached = await self._registry.reattach_subscription(owners, grant.subscription_id)
        if not attached:
            _logger.debug("No tracked service took SID=%s for %s; releasing it", grant.subscription_id, event_url)
            await self.unsubscribe(grant.subscription_id)
            return False
        _logger.debug("Resubscribed %s on %s SID=%s", event_url, ", ".join(attached), grant.subscription_id)
        return True
