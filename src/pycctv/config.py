"""Control point configuration for pycctv."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from pycctv._constants import (
    CCTV_CONTROL_SERVICE_TYPE,
    CCTV_CONTROL_VARIABLES,
    CCTV_DEVICE_TYPE,
    DEFAULT_SEARCH_WAIT,
    DEFAULT_SUBSCRIPTION_TIMEOUT,
    DEFAULT_SWEEP_INTERVAL,
)
from pycctv.exceptions import CctvConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


@dataclasses.dataclass(frozen=True)
class ServiceSchema:
    """A service the control point subscribes to on every recognized device.

    The variable tuple fixes both the names and the order of the
    mirrored state table; it never changes for the life of a record.
    """

    name: str
    service_type: str
    variables: tuple[str, ...]


@dataclasses.dataclass(frozen=True)
class DeviceSchema:
    """The recognized device type and its ordered service catalogue.

    A service index used anywhere in the public API is a position in
    :attr:`services`.
    """

    device_type: str = CCTV_DEVICE_TYPE
    services: tuple[ServiceSchema, ...] = (
        ServiceSchema(
            name="Control",
            service_type=CCTV_CONTROL_SERVICE_TYPE,
            variables=CCTV_CONTROL_VARIABLES,
        ),
    )

    def service(self, index: int) -> ServiceSchema:
        """Return the schema for service *index* or raise ``IndexError``."""
        if not 0 <= index < len(self.services):
            raise IndexError(index)
        return self.services[index]


@dataclasses.dataclass(frozen=True)
class CtrlPointConfig:
    """Control point configuration.

    Parameters
    ----------
    schema : DeviceSchema
        Device type to track and the services to subscribe to.
    sweep_interval : int
        Seconds between advertisement timeout sweeps.  Every sweep
        subtracts this value from each device's remaining time.
    subscription_timeout : int
        Subscription timeout (seconds) requested from devices, both on
        first subscribe and on re-subscribe after a renewal failure.
    search_wait : int
        MX value (seconds) for broadcast searches issued by refresh.
    sweeper_enabled : bool
        Run the background sweeper while the control point is open.
    search_on_start : bool
        Issue a refresh search when the control point is opened.
    http_timeout : float
        Total timeout in seconds for description document fetches.
    """

    schema: DeviceSchema = dataclasses.field(default_factory=DeviceSchema)
    sweep_interval: int = DEFAULT_SWEEP_INTERVAL
    subscription_timeout: int = DEFAULT_SUBSCRIPTION_TIMEOUT
    search_wait: int = DEFAULT_SEARCH_WAIT
    sweeper_enabled: bool = True
    search_on_start: bool = True
    http_timeout: float = 10.0

    def __post_init__(self) -> None:
        for name in ("sweep_interval", "subscription_timeout", "search_wait"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise CctvConfigError(f"{name} must be a positive integer, got {value!r}")
        if self.http_timeout <= 0:
            raise CctvConfigError(f"http_timeout must be positive, got {self.http_timeout!r}")
        if not self.schema.services:
            raise CctvConfigError("schema must declare at least one service")

    @classmethod
    def from_env(cls, **overrides: Any) -> CtrlPointConfig:
        """Create configuration from environment variables.

        Reads the optional ``CCTV_*`` variables.  Explicit keyword
        arguments override environment values.

        Parameters
        ----------
        **overrides
            Explicit field values that take precedence over env vars.

        Returns
        -------
        CtrlPointConfig
            Populated configuration.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_INT_MAP = {
            "CCTV_SWEEP_INTERVAL": "sweep_interval",
            "CCTV_SUBSCRIPTION_TIMEOUT": "subscription_timeout",
            "CCTV_SEARCH_WAIT": "search_wait",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise CctvConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        timeout_env = env.get("CCTV_HTTP_TIMEOUT")
        if timeout_env is not None and "http_timeout" not in overrides:
            try:
                config_kwargs["http_timeout"] = float(timeout_env)
            except ValueError as exc:
                raise CctvConfigError(f"CCTV_HTTP_TIMEOUT must be a number, got {timeout_env!r}") from exc

        if "sweeper_enabled" not in overrides:
            config_kwargs["sweeper_enabled"] = _env_bool(env.get("CCTV_SWEEPER_ENABLED"), True)
        if "search_on_start" not in overrides:
            config_kwargs["search_on_start"] = _env_bool(env.get("CCTV_SEARCH_ON_START"), True)

        # Only the device type is overridable from the environment; the
        # service catalogue stays the default one.
        device_type = env.get("CCTV_DEVICE_TYPE")
        if device_type and "schema" not in overrides:
            config_kwargs["schema"] = dataclasses.replace(DeviceSchema(), device_type=device_type.strip())

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
