"""Configuration schema for the EIP bridge.

Pydantic models for the YAML configuration: the device endpoint, the MQTT
broker and topic root, and the request worker pool. Unknown keys are rejected.
"""

from __future__ import annotations

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# BASE CONFIGURATION MODELS
# =============================================================================


class BridgeInfo(BaseModel):
    """Basic bridge identification."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(
        default="ethernet-ip-adapter",
        min_length=1,
        max_length=64,
        description="Bridge instance name",
    )
    description: str = Field(default="", max_length=500)


# =============================================================================
# DEVICE CONFIGURATION
# =============================================================================


class DeviceConfig(BaseModel):
    """EtherNet/IP device connection settings.

    ``endpoint_ip`` and ``endpoint_tcp_port`` are accepted as aliases of
    ``host`` and ``port`` for adapter settings written for earlier releases.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    host: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("host", "endpoint_ip"),
        description="PLC hostname or IP address",
    )
    port: int = Field(
        default=44818,
        ge=1,
        le=65535,
        validation_alias=AliasChoices("port", "endpoint_tcp_port"),
        description="EtherNet/IP TCP port",
    )
    slot: int = Field(default=0, ge=0, description="Processor slot")
    timeout_ms: int = Field(
        default=5000,
        ge=100,
        le=60000,
        description="Timeout for a single tag read or write",
    )

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Host cannot be empty")
        return v.strip()


# =============================================================================
# MQTT CONFIGURATION
# =============================================================================


class MQTTConfig(BaseModel):
    """MQTT broker connection and topic namespace."""

    model_config = ConfigDict(extra="forbid")

    host: str = Field(default="localhost", min_length=1, description="Broker hostname")
    port: int = Field(default=1883, ge=1, le=65535, description="Broker port")
    username: str | None = Field(default=None)
    password: str | None = Field(default=None)
    client_id: str | None = Field(default=None, description="MQTT client identifier")
    keepalive_s: int = Field(default=60, ge=1, le=65535)
    qos: int = Field(default=1, ge=0, le=2, description="QoS for subscriptions and responses")
    topic_root: str = Field(..., min_length=1, description="Root prefix of all bridge topics")

    @field_validator("topic_root")
    @classmethod
    def validate_topic_root(cls, v: str) -> str:
        root = v.strip().rstrip("/")
        if not root:
            raise ValueError("Topic root cannot be empty")
        if "#" in root or "+" in root:
            raise ValueError("Topic root cannot contain wildcards")
        return root


# =============================================================================
# WORKER CONFIGURATION
# =============================================================================


class WorkerPoolConfig(BaseModel):
    """Request worker pool sizing."""

    model_config = ConfigDict(extra="forbid")

    size: int = Field(default=4, ge=1, le=64, description="Concurrent request workers")
    queue_size: int = Field(
        default=100,
        ge=1,
        le=100000,
        description="Pending requests before the listener is paused",
    )


# =============================================================================
# ROOT CONFIGURATION
# =============================================================================


class BridgeConfig(BaseModel):
    """Root configuration model for the EIP bridge."""

    model_config = ConfigDict(extra="forbid")

    schema_version: str = Field(
        default="1.0.0",
        description="Configuration schema version",
    )
    bridge: BridgeInfo = Field(default_factory=BridgeInfo)
    device: DeviceConfig
    mqtt: MQTTConfig
    workers: WorkerPoolConfig = Field(default_factory=WorkerPoolConfig)
