"""Control service actions."""

from __future__ import annotations

import enum


class CctvAction(enum.StrEnum):
    """Argument-less actions of the CCTV ``Control`` service.

    Each value is the SOAP action name sent to the service control URL.
    """

    POWER_ON = "PowerOn"
    POWER_OFF = "PowerOff"
    REBOOT = "Reboot"
    BOTTOM_MOUNT_LEFT = "BottomMountLeft"
    BOTTOM_MOUNT_RIGHT = "BottomMountRight"
    BOTTOM_MOUNT_MIDDLE = "BottomMountMiddle"
    TOP_MOUNT_UP = "TopMountUp"
    TOP_MOUNT_DOWN = "TopMountDown"
    TOP_MOUNT_MIDDLE = "TopMountMiddle"
