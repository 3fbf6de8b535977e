"""EIP Bridge - MQTT request/response access to EtherNet/IP Logix tags.

This package provides a gateway that:
- Connects to a Logix controller over EtherNet/IP (CIP)
- Enumerates the controller's tags once at startup
- Serves read and write requests arriving on MQTT topics
- Publishes one JSON response per request on a derived response topic
"""

__version__ = "0.1.0"

__author__ = "EIP Bridge Team"

from eip_bridge.domain.model.tags import Tag, TagDirectory, WireType

__all__ = [
    "Tag",
    "TagDirectory",
    "WireType",
    "__version__",
]
