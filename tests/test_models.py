from __future__ import annotations

import pytest
from conftest import make_description
from pydantic import ValidationError

from pycctv.config import DeviceSchema
from pycctv.models import CctvAction, DeviceNode


def _node() -> DeviceNode:
    return DeviceNode.create(DeviceSchema(), make_description("uuid:cam-1"), "http://cam.local/a.xml", 1801)


def test_service_record_keeps_its_variable_names() -> None:
    service = _node().services[0]
    assert service is not None

    assert service.set_variable("Power", "1") is True
    assert service.set_variable("Zoom", "3") is False
    assert service.variables == {"Power": "1", "Temperature": ""}

    service.variables = {"Power": "0", "Temperature": "20"}
    assert service.variables["Temperature"] == "20"
    with pytest.raises(ValueError):
        service.variables = {"Power": "0"}


def test_node_requires_udn() -> None:
    with pytest.raises(ValidationError):
        DeviceNode(udn="", description_url="http://cam.local/a.xml", advertisement_timeout=10)


def test_service_lookup_out_of_range_is_none() -> None:
    node = _node()

    assert node.service(0) is not None
    assert node.service(1) is None
    assert node.service(-1) is None


def test_action_values_are_soap_names() -> None:
    assert CctvAction.POWER_ON == "PowerOn"
    assert str(CctvAction.TOP_MOUNT_MIDDLE) == "TopMountMiddle"
    assert len(CctvAction) == 9
