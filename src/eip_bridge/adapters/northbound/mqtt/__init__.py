"""MQTT transport module.

Provides the publish/subscribe side of the bridge using the aiomqtt library.
"""

from eip_bridge.adapters.northbound.mqtt.client import InboundMessage, MQTTTransport

__all__ = ["InboundMessage", "MQTTTransport"]
