"""Registry records: devices and their subscribed services."""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from pycctv.config import DeviceSchema, ServiceSchema
from pycctv.models._base import CctvBaseModel
from pycctv.models.description import DescribedService, DeviceDescription


class ServiceRecord(CctvBaseModel):
    """One subscribed service of a device and its mirrored state table.

    ``variables`` is created with every schema variable set to ``""`` and
    keeps that exact key set; only values change afterwards.
    """

    service_id: str
    service_type: str
    event_url: str
    control_url: str
    subscription_id: str = ""
    variables: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def create(cls, schema: ServiceSchema, described: DescribedService) -> ServiceRecord:
        """Build an unsubscribed record with an empty state table."""
        return cls(
            service_id=described.service_id,
            service_type=schema.service_type,
            event_url=described.event_url,
            control_url=described.control_url,
            variables=dict.fromkeys(schema.variables, ""),
        )

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "variables" and set(value) != set(self.variables):
            raise ValueError("variable names are fixed once a service record exists")
        super().__setattr__(name, value)

    @property
    def subscribed(self) -> bool:
        return bool(self.subscription_id)

    def set_variable(self, name: str, value: str) -> bool:
        """Overwrite the value of a known variable.

        Returns ``False`` without touching the table when *name* is not
        one of the service's variables.
        """
        if name not in self.variables:
            return False
        self.variables[name] = value
        return True


class DeviceNode(CctvBaseModel):
    """A tracked device.

    ``services`` is aligned with the schema's service tuple; an entry is
    ``None`` when the device description did not declare that service.
    """

    udn: str
    description_url: str
    friendly_name: str = ""
    presentation_url: str = ""
    advertisement_timeout: int
    services: list[ServiceRecord | None] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_udn(self) -> DeviceNode:
        if not self.udn:
            raise ValueError("udn must be non-empty")
        return self

    @classmethod
    def create(
        cls,
        schema: DeviceSchema,
        description: DeviceDescription,
        location: str,
        expires: int,
    ) -> DeviceNode:
        """Build a node for *description* with unsubscribed service records."""
        services: list[ServiceRecord | None] = []
        for service_schema in schema.services:
            described = description.find_service(service_schema.service_type)
            services.append(None if described is None else ServiceRecord.create(service_schema, described))
        return cls(
            udn=description.udn,
            description_url=location,
            friendly_name=description.friendly_name,
            presentation_url=description.presentation_url,
            advertisement_timeout=expires,
            services=services,
        )

    def service(self, index: int) -> ServiceRecord | None:
        if not 0 <= index < len(self.services):
            return None
        return self.services[index]

    def subscription_ids(self) -> list[str]:
        return [s.subscription_id for s in self.services if s is not None and s.subscription_id]

    def snapshot(self) -> DeviceNode:
        """Deep copy detached from the live registry entry."""
        return self.model_copy(deep=True)
