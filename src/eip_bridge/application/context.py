"""Shared state handed to every request handler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from eip_bridge.adapters.southbound.base import SessionPort
    from eip_bridge.application.publisher import ResponsePublisher
    from eip_bridge.domain.model.tags import TagDirectory


@dataclass(frozen=True, slots=True)
class BridgeContext:
    """Device session, immutable tag directory, and response publisher.

    Built once after bootstrap and passed explicitly to each handler call.
    """

    session: SessionPort
    directory: TagDirectory
    publisher: ResponsePublisher
