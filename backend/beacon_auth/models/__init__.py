from beacon_auth.models.device import Device
from beacon_auth.models.principal import Principal
from beacon_auth.models.session_node import SessionNode

__all__ = [
    "Device",
    "Principal",
    "SessionNode",
]
