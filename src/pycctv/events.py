"""Inbound protocol callback events.

The protocol layer reports everything that happens on the wire as one of
the event models below.  They form a closed union discriminated on
``kind``; :func:`parse_event` validates raw mappings delivered by a
protocol adapter, and the dispatcher matches on the model classes.
"""

from __future__ import annotations

import enum
import logging
import re
from collections.abc import Mapping
from typing import Annotated, Any, Literal
from xml.parsers.expat import ExpatError

import xmltodict
from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from pycctv._constants import SUCCESS_CODE
from pycctv.exceptions import CctvParseError

_logger = logging.getLogger(__name__)


class EventKind(enum.StrEnum):
    """Callback kinds delivered by the protocol layer."""

    ADVERTISEMENT_ALIVE = "advertisement_alive"
    SEARCH_RESULT = "search_result"
    ADVERTISEMENT_BYEBYE = "advertisement_byebye"
    SEARCH_TIMEOUT = "search_timeout"
    ACTION_COMPLETE = "action_complete"
    GET_VAR_COMPLETE = "get_var_complete"
    EVENT_RECEIVED = "event_received"
    SUBSCRIBE_COMPLETE = "subscribe_complete"
    UNSUBSCRIBE_COMPLETE = "unsubscribe_complete"
    RENEWAL_COMPLETE = "renewal_complete"
    AUTORENEWAL_FAILED = "autorenewal_failed"
    SUBSCRIPTION_EXPIRED = "subscription_expired"
    SUBSCRIPTION_REQUEST = "subscription_request"
    GET_VAR_REQUEST = "get_var_request"
    ACTION_REQUEST = "action_request"


class _CallbackEvent(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    error_code: int = SUCCESS_CODE

    @property
    def ok(self) -> bool:
        return self.error_code == SUCCESS_CODE


class DiscoveryEvent(_CallbackEvent):
    """A device advertised itself or answered a search."""

    kind: Literal["advertisement_alive", "search_result"] = "search_result"
    location: str
    expires: int
    device_id: str = ""
    device_type: str = ""


class ByeByeEvent(_CallbackEvent):
    """A device announced it is leaving the network."""

    kind: Literal["advertisement_byebye"] = "advertisement_byebye"
    device_id: str


class SearchTimeoutEvent(_CallbackEvent):
    kind: Literal["search_timeout"] = "search_timeout"


class ActionCompleteEvent(_CallbackEvent):
    kind: Literal["action_complete"] = "action_complete"
    control_url: str = ""
    action_name: str = ""


class VariableQueryEvent(_CallbackEvent):
    """Result of an asynchronous state variable query."""

    kind: Literal["get_var_complete"] = "get_var_complete"
    control_url: str
    var_name: str
    value: str = ""


class VariableChangeEvent(_CallbackEvent):
    """A GENA notification for a subscribed service.

    ``changed_variables`` is the raw ``<e:propertyset>`` document.
    """

    kind: Literal["event_received"] = "event_received"
    subscription_id: str
    event_key: int = 0
    changed_variables: str

    def changes(self) -> list[tuple[str, str]]:
        """Parse ``changed_variables`` (see :func:`parse_property_set`)."""
        return parse_property_set(self.changed_variables)


class SubscriptionUpdateEvent(_CallbackEvent):
    """A subscribe, unsubscribe or renewal request completed."""

    kind: Literal["subscribe_complete", "unsubscribe_complete", "renewal_complete"] = "renewal_complete"
    event_url: str
    subscription_id: str = ""
    timeout: int = 0


class SubscriptionLostEvent(_CallbackEvent):
    """Automatic renewal failed or the subscription expired."""

    kind: Literal["autorenewal_failed", "subscription_expired"] = "subscription_expired"
    event_url: str
    subscription_id: str = ""
    timeout: int = 0


class ServerRequestEvent(_CallbackEvent):
    """Requests addressed to a device role; a control point ignores them."""

    kind: Literal["subscription_request", "get_var_request", "action_request"]


CallbackEvent = Annotated[
    DiscoveryEvent
    | ByeByeEvent
    | SearchTimeoutEvent
    | ActionCompleteEvent
    | VariableQueryEvent
    | VariableChangeEvent
    | SubscriptionUpdateEvent
    | SubscriptionLostEvent
    | ServerRequestEvent,
    Field(discriminator="kind"),
]

_EVENT_ADAPTER: TypeAdapter[CallbackEvent] = TypeAdapter(CallbackEvent)


def parse_event(raw: Mapping[str, Any]) -> CallbackEvent:
    """Validate a raw callback mapping into its event model.

    Raises
    ------
    CctvParseError
        Unknown ``kind`` or missing/invalid fields for that kind.
    """
    try:
        return _EVENT_ADAPTER.validate_python(dict(raw))
    except ValidationError as exc:
        raise CctvParseError(f"Invalid callback event: {exc}") from exc


# ------------------------------------------------------------------
# GENA property sets
# ------------------------------------------------------------------

_PROPERTY_FRAGMENT = re.compile(
    r"<(?P<tag>(?:[\w.-]+:)?property)\b[^>]*>.*?</(?P=tag)\s*>",
    re.DOTALL,
)


def _local(name: str) -> str:
    return name.rsplit(":", 1)[-1]


def _variables_in(prop: Any) -> list[tuple[str, str]]:
    if not isinstance(prop, dict):
        return []
    found: list[tuple[str, str]] = []
    for key, raw in prop.items():
        if key.startswith(("@", "#")):
            continue
        # Only the first element counts when a variable repeats.
        value = raw[0] if isinstance(raw, list) and raw else raw
        if isinstance(value, dict):
            value = value.get("#text")
        if value is None:
            continue
        found.append((_local(key), str(value)))
    return found


def _properties_of(document: Any) -> list[Any]:
    if not isinstance(document, dict) or len(document) != 1:
        raise CctvParseError("Property set must have exactly one root element")
    root_name, root = next(iter(document.items()))
    if _local(root_name) != "propertyset":
        raise CctvParseError(f"Unexpected property set root element {root_name!r}")
    if not isinstance(root, dict):
        return []
    properties: list[Any] = []
    for key, value in root.items():
        if _local(key) == "property":
            properties.extend(value if isinstance(value, list) else [value])
    return properties


def _parse_fragments(xml: str) -> list[tuple[str, str]]:
    changes: list[tuple[str, str]] = []
    recovered = 0
    for match in _PROPERTY_FRAGMENT.finditer(xml):
        try:
            fragment = xmltodict.parse(match.group(0))
        except ExpatError:
            _logger.debug("Dropping malformed property fragment %r", match.group(0)[:80])
            continue
        recovered += 1
        for prop in fragment.values():
            changes.extend(_variables_in(prop))
    if not recovered:
        raise CctvParseError("Property set contains no well-formed property")
    return changes


def parse_property_set(xml: str | bytes) -> list[tuple[str, str]]:
    """Extract ``(variable, value)`` pairs from a GENA property set.

    Namespace prefixes are ignored.  Variables without a text value are
    skipped.  If the document as a whole is malformed, every
    ``<property>`` fragment is parsed on its own and the malformed ones
    are dropped.

    Raises
    ------
    CctvParseError
        Nothing could be recovered from the payload.
    """
    text = xml.decode("utf-8", errors="replace") if isinstance(xml, bytes) else xml
    try:
        document = xmltodict.parse(text)
    except ExpatError:
        _logger.debug("Property set is not well-formed; parsing fragment by fragment")
        return _parse_fragments(text)

    changes: list[tuple[str, str]] = []
    for prop in _properties_of(document):
        changes.extend(_variables_in(prop))
    return changes
