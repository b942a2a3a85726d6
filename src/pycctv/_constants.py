"""Internal constants shared across the library."""

USER_AGENT = "pycctv/1.0 UPnP/1.1"

# ------------------------------------------------------------------
# CCTV device and service identifiers
# ------------------------------------------------------------------

CCTV_DEVICE_TYPE = "urn:schemas-upnp-org:device:cctvdevice:1"
CCTV_CONTROL_SERVICE_TYPE = "urn:schemas-upnp-org:service:cctvcontrol:1"
CCTV_CONTROL_VARIABLES: tuple[str, ...] = ("Power", "Temperature")

#: Index of the control service in the default schema.
CCTV_SERVICE_CONTROL = 0

# ------------------------------------------------------------------
# Timing defaults (seconds)
# ------------------------------------------------------------------

#: Subscription timeout requested on subscribe and re-subscribe.
DEFAULT_SUBSCRIPTION_TIMEOUT = 1801
#: Interval between advertisement timeout sweeps.
DEFAULT_SWEEP_INTERVAL = 30
#: MX value used for broadcast searches on refresh.
DEFAULT_SEARCH_WAIT = 5

#: Collaborator success code carried on inbound events.
SUCCESS_CODE = 0

DEVICE_NAMESPACE = "urn:schemas-upnp-org:device-1-0"
