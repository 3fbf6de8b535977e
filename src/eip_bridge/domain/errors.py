"""Errors raised while serving bridge requests.

Every error carries the status code reported to the caller in the
``status_code`` field of the failed response.
"""

from __future__ import annotations

from eip_bridge.domain.model.messages import StatusCode


class BridgeError(Exception):
    """Base class for request-level failures turned into error responses."""

    status_code: StatusCode = StatusCode.BAD_UNEXPECTED


class RequestError(BridgeError):
    """Raised when a request payload cannot be parsed."""

    status_code = StatusCode.BAD_DECODING_ERROR


class TagNotFoundError(BridgeError):
    """Raised when a tag name is not present in the tag directory."""

    status_code = StatusCode.BAD_NODE_ID_UNKNOWN

    def __init__(self, tag_name: str) -> None:
        super().__init__(f"tag does not exist: {tag_name}")
        self.tag_name = tag_name


class ConversionError(BridgeError):
    """Raised when a value cannot be converted to or from a wire type."""

    status_code = StatusCode.BAD_TYPE_MISMATCH


class ValueOutOfRangeError(ConversionError):
    """Raised when a numeric value does not fit the declared wire type."""

    status_code = StatusCode.BAD_OUT_OF_RANGE


class UnsupportedDataTypeError(ConversionError):
    """Raised for wire types the codec does not convert."""

    status_code = StatusCode.BAD_NOT_SUPPORTED

    def __init__(self, type_code: int) -> None:
        super().__init__(f"unsupported data type: {type_code}")
        self.type_code = type_code


class DeviceError(BridgeError):
    """Raised when a device read or write round trip fails."""

    status_code = StatusCode.BAD_COMMUNICATION_ERROR


class DeviceStatusError(DeviceError):
    """Raised when the device answers with a non-OK status."""

    status_code = StatusCode.BAD_DEVICE_FAILURE

    def __init__(self, detail: str, device_status: int | None = None) -> None:
        super().__init__(f"non OK status returned from device: {detail}")
        self.detail = detail
        self.device_status = device_status
