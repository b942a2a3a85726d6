"""Data models for tracked CCTV devices."""

from pycctv.models._base import CctvBaseModel
from pycctv.models.control import CctvAction
from pycctv.models.description import DescribedService, DeviceDescription, parse_description
from pycctv.models.device import DeviceNode, ServiceRecord

__all__ = [
    "CctvAction",
    "CctvBaseModel",
    "DescribedService",
    "DeviceDescription",
    "DeviceNode",
    "ServiceRecord",
    "parse_description",
]
