"""Request and response message contracts exchanged over MQTT.

All bodies are JSON. Read and write are live data paths; the method and
subscription shapes are reserved contracts that the bridge parses and
answers with a "not supported" response.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum, IntEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_timestamp(moment: datetime) -> str:
    """Render a datetime as an RFC3339 UTC timestamp (second precision)."""
    return moment.astimezone(UTC).strftime(TIMESTAMP_FORMAT)


def utc_timestamp() -> str:
    """Capture the current time as an RFC3339 UTC timestamp."""
    return format_timestamp(datetime.now(UTC))


class StatusCode(IntEnum):
    """Status codes reported in the ``status_code`` response field.

    Values follow the OPC UA Part 4 StatusCode numbering so that existing
    consumers of the OPC UA flavoured responses can interpret them.
    """

    GOOD = 0x00000000
    BAD_UNEXPECTED = 0x80010000
    BAD_COMMUNICATION_ERROR = 0x80050000
    BAD_DECODING_ERROR = 0x80070000
    BAD_NO_COMMUNICATION = 0x80310000
    BAD_NODE_ID_UNKNOWN = 0x80340000
    BAD_OUT_OF_RANGE = 0x803C0000
    BAD_NOT_SUPPORTED = 0x803D0000
    BAD_TYPE_MISMATCH = 0x80740000
    BAD_DEVICE_FAILURE = 0x808B0000


# =============================================================================
# READ
# =============================================================================


class ReadRequest(BaseModel):
    """Read request: ordered tag names, duplicates allowed."""

    tags: list[str] = Field(default_factory=list)


class ReadResponseData(BaseModel):
    """Converted value of one tag and when it was captured."""

    value: Any = None
    source_timestamp: str = ""


class ReadResponse(BaseModel):
    """Read response document published on ``<root>/read/response``."""

    server_timestamp: str = ""
    data: dict[str, ReadResponseData] = Field(default_factory=dict)
    success: bool = True
    status_code: int = int(StatusCode.GOOD)
    error_message: str = ""


# =============================================================================
# WRITE
# =============================================================================


class WriteRequest(BaseModel):
    """Write request: target tag and a scalar or array value."""

    node_id: str
    value: Any = None


class WriteResponse(BaseModel):
    """Write response document published on ``<root>/write/response``."""

    node_id: str = ""
    timestamp: str = ""
    success: bool = True
    status_code: int = int(StatusCode.GOOD)
    error_message: str = ""


# =============================================================================
# METHOD (reserved)
# =============================================================================


class MethodRequest(BaseModel):
    object_id: str
    method_id: str
    arguments: list[Any] = Field(default_factory=list)


class MethodResponse(BaseModel):
    object_id: str = ""
    method_id: str = ""
    timestamp: str = ""
    success: bool = True
    status_code: int = int(StatusCode.GOOD)
    error_message: str = ""
    arguments: list[Any] = Field(default_factory=list)
    values: list[Any] = Field(default_factory=list)


# =============================================================================
# SUBSCRIPTION (reserved)
# =============================================================================


class SubscriptionOperationType(str, Enum):
    """Subscription operations understood by the reserved contract."""

    CREATE = "create"
    REPUBLISH = "republish"
    PUBLISH = "publish"
    DELETE = "delete"


class MonitoredItemCreate(BaseModel):
    """Item to monitor within a subscription create request."""

    model_config = ConfigDict(extra="forbid")

    node_id: str
    values: bool = False
    events: bool = False


class SubscriptionCreateParams(BaseModel):
    """Parameters of a subscription create request.

    Attributes:
        publish_interval: Minimum milliseconds between updates
        lifetime: Publish intervals without activity before the subscription expires
        keepalive: Empty publish cycles before a keep-alive is sent
        max_publish_notifications: Notifications per publish message
        priority: Relative priority of the subscription
        items_to_monitor: Items to monitor
    """

    model_config = ConfigDict(extra="forbid")

    publish_interval: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)
    lifetime: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)
    keepalive: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)
    max_publish_notifications: int | None = Field(default=None, ge=0, le=0xFFFFFFFF)
    priority: int | None = Field(default=None, ge=0, le=0xFF)
    items_to_monitor: list[MonitoredItemCreate] | None = None


class SubscriptionRepublishParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subscription_id: int = Field(..., ge=0, le=0xFFFFFFFF)


class SubscriptionDeleteParams(BaseModel):
    model_config = ConfigDict(extra="forbid")

    subscription_id: int = Field(..., ge=0, le=0xFFFFFFFF)


SubscriptionParams = SubscriptionCreateParams | SubscriptionRepublishParams | SubscriptionDeleteParams

SUBSCRIPTION_PARAM_MODELS: dict[SubscriptionOperationType, type[BaseModel]] = {
    SubscriptionOperationType.CREATE: SubscriptionCreateParams,
    SubscriptionOperationType.REPUBLISH: SubscriptionRepublishParams,
    SubscriptionOperationType.DELETE: SubscriptionDeleteParams,
}


class SubscriptionRequest(BaseModel):
    request_type: SubscriptionOperationType
    request_params: dict[str, Any] | None = None

    def typed_params(self) -> SubscriptionParams | None:
        """Validate ``request_params`` against the model for ``request_type``.

        Raises:
            pydantic.ValidationError: If the parameters do not fit the operation
        """
        model = SUBSCRIPTION_PARAM_MODELS.get(self.request_type)
        if model is None or self.request_params is None:
            return None
        return model.model_validate(self.request_params)  # type: ignore[return-value]


class MonitoredItemCreateResult(BaseModel):
    node_id: str
    client_handle: int = 0
    discard_oldest: bool = False
    status_code: int = int(StatusCode.GOOD)
    revised_sampling_interval: float = 0.0
    revised_queue_size: int = 0
    filter_result: Any = None
    monitoring_mode: int = 0
    timestamps_to_return: int | None = None


class EventMessage(BaseModel):
    event_id: str = ""
    event_type: str = ""
    severity: int = 0
    time: str = ""
    message: str = ""


class MonitoredItemNotification(BaseModel):
    node_id: str
    client_handle: int = 0
    value: Any = None
    event: EventMessage | None = None


class SubscriptionResponse(BaseModel):
    request_type: SubscriptionOperationType | None = None
    subscription_id: int = 0
    timestamp: str = ""
    success: bool = True
    status_code: int = int(StatusCode.GOOD)
    error_message: str = ""
    results: list[Any] = Field(default_factory=list)
