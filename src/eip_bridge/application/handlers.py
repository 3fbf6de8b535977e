"""Request handlers.

Each handler parses one request, works against the device session through
the shared tag directory, and publishes exactly one response document.
Every failure becomes a ``success=false`` response with a non-empty
``error_message``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

import structlog
from pydantic import BaseModel, ValidationError

from eip_bridge.application.router import TopicCategory
from eip_bridge.domain.codec import decode_tag, encode
from eip_bridge.domain.errors import (
    BridgeError,
    DeviceStatusError,
    RequestError,
    TagNotFoundError,
)
from eip_bridge.domain.model.messages import (
    MethodRequest,
    MethodResponse,
    ReadRequest,
    ReadResponse,
    ReadResponseData,
    StatusCode,
    SubscriptionRequest,
    SubscriptionResponse,
    WriteRequest,
    WriteResponse,
    utc_timestamp,
)
from eip_bridge.domain.model.values import DynamicValue
from eip_bridge.observability.logging import LogContext

if TYPE_CHECKING:
    from eip_bridge.application.context import BridgeContext
    from eip_bridge.application.router import Job

logger = structlog.get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


def parse_request(model: type[M], payload: bytes, kind: str) -> M:
    """Validate a JSON request body.

    Raises:
        RequestError: Listing each invalid field
    """
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        details = "; ".join(
            f"{'.'.join(str(x) for x in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        raise RequestError(f"invalid {kind} request: {details}") from e


async def handle_request(ctx: BridgeContext, job: Job) -> None:
    """Dispatch a routed job to the handler for its category."""
    with LogContext(category=job.category.value, topic=job.topic):
        if job.category == TopicCategory.READ:
            await handle_read(ctx, job.payload)
        elif job.category == TopicCategory.WRITE:
            await handle_write(ctx, job.payload)
        elif job.category == TopicCategory.METHOD:
            await handle_method(ctx, job.payload)
        elif job.category == TopicCategory.SUBSCRIBE:
            await handle_subscribe(ctx, job.payload)
        else:
            logger.warning("No handler for category", category=job.category.value)


# =============================================================================
# READ
# =============================================================================


async def handle_read(ctx: BridgeContext, payload: bytes) -> None:
    """Read the requested tags and publish a read response.

    An unknown tag aborts the whole read and publishes no data. A device or
    conversion failure publishes the values read so far and stops.
    """
    response = ReadResponse()

    try:
        request = parse_request(ReadRequest, payload, "read")
    except RequestError as e:
        logger.error("Failed to parse read request", error=str(e))
        await _return_read_error(ctx, response, e)
        return

    response.server_timestamp = utc_timestamp()

    for name in request.tags:
        tag = ctx.directory.get(name)
        if tag is None:
            logger.error("Cannot read tag, tag does not exist", tag=name)
            response.data.clear()
            await _return_read_error(ctx, response, TagNotFoundError(name))
            return

        try:
            raw = await ctx.session.read(tag)
            reading = decode_tag(tag, raw)
        except BridgeError as e:
            logger.error("Error reading tag", tag=name, error=str(e))
            await _return_read_error(ctx, response, e)
            return

        response.data[name] = ReadResponseData(
            value=reading.value.to_json(),
            source_timestamp=reading.source_timestamp,
        )

    logger.debug("Read complete", tags=len(response.data))
    await ctx.publisher.publish(TopicCategory.READ.value, response)


async def _return_read_error(ctx: BridgeContext, response: ReadResponse, error: BridgeError) -> None:
    response.success = False
    response.status_code = int(error.status_code)
    response.error_message = str(error) or type(error).__name__
    if not response.server_timestamp:
        response.server_timestamp = utc_timestamp()
    await ctx.publisher.publish(TopicCategory.READ.value, response)


# =============================================================================
# WRITE
# =============================================================================


async def handle_write(ctx: BridgeContext, payload: bytes) -> None:
    """Convert and write one tag value, then publish a write response.

    The value is fully converted before the device is touched, so a type
    mismatch never produces a partial write.
    """
    response = WriteResponse()

    try:
        request = parse_request(WriteRequest, payload, "write")
        response.node_id = request.node_id

        tag = ctx.directory.get(request.node_id)
        if tag is None:
            raise TagNotFoundError(request.node_id)

        value = DynamicValue.from_json(request.value)
        converted = encode(tag, value)

        outcome = await ctx.session.write(tag, converted)
        if not outcome.ok:
            raise DeviceStatusError(outcome.error or "unknown", outcome.status_code)
    except BridgeError as e:
        logger.error("Write request failed", node_id=response.node_id, error=str(e))
        await _return_write_error(ctx, response, e)
        return

    response.timestamp = utc_timestamp()
    response.status_code = outcome.status_code
    logger.info("Ethernet-IP write successful", node_id=response.node_id)
    await ctx.publisher.publish(TopicCategory.WRITE.value, response)


async def _return_write_error(
    ctx: BridgeContext, response: WriteResponse, error: BridgeError
) -> None:
    response.success = False
    if isinstance(error, DeviceStatusError) and error.device_status:
        response.status_code = error.device_status
    else:
        response.status_code = int(error.status_code)
    response.error_message = str(error) or type(error).__name__
    response.timestamp = utc_timestamp()
    await ctx.publisher.publish(TopicCategory.WRITE.value, response)


# =============================================================================
# METHOD / SUBSCRIBE (reserved contracts)
# =============================================================================


async def handle_method(ctx: BridgeContext, payload: bytes) -> None:
    """Answer a method call request with a not-supported response."""
    response = MethodResponse(success=False, timestamp=utc_timestamp())
    try:
        request = parse_request(MethodRequest, payload, "method")
    except RequestError as e:
        response.status_code = int(e.status_code)
        response.error_message = str(e)
    else:
        response.object_id = request.object_id
        response.method_id = request.method_id
        response.arguments = request.arguments
        response.status_code = int(StatusCode.BAD_NOT_SUPPORTED)
        response.error_message = "method calls are not supported by this adapter"

    logger.warning("Rejected method request", error=response.error_message)
    await ctx.publisher.publish(TopicCategory.METHOD.value, response)


async def handle_subscribe(ctx: BridgeContext, payload: bytes) -> None:
    """Answer a subscription request with a not-supported response."""
    response = SubscriptionResponse(success=False, timestamp=utc_timestamp())
    try:
        request = parse_request(SubscriptionRequest, payload, "subscribe")
        response.request_type = request.request_type
        try:
            request.typed_params()
        except ValidationError as e:
            raise RequestError(
                f"invalid {request.request_type.value} parameters: {e.error_count()} error(s)"
            ) from e
    except RequestError as e:
        response.status_code = int(e.status_code)
        response.error_message = str(e)
    else:
        response.status_code = int(StatusCode.BAD_NOT_SUPPORTED)
        response.error_message = (
            f"subscription {request.request_type.value} is not supported by this adapter"
        )

    logger.warning("Rejected subscription request", error=response.error_message)
    await ctx.publisher.publish(TopicCategory.SUBSCRIBE.value, response)
