"""StatusPublisher: renders the coordinator state for the status endpoint."""

from __future__ import annotations

from http import HTTPStatus

import structlog

from mergegate.gate.coordinator import GateCoordinator
from mergegate.gateway.protocol import GateStatusDoc

logger = structlog.get_logger()

EMPTY_DOCUMENT = "{}"


class StatusPublisher:
    """Serializes a fresh snapshot on every call; no caching.

    The coordinator lock is held only while the state is copied, never while
    rendering.
    """

    def __init__(self, coordinator: GateCoordinator | None = None, *, indent: int = 2) -> None:
        self._coordinator = coordinator
        self._indent = indent

    def attach(self, coordinator: GateCoordinator | None) -> None:
        self._coordinator = coordinator

    async def render(self) -> tuple[int, str]:
        """Return (HTTP status code, body)."""
        if self._coordinator is None:
            return HTTPStatus.OK, EMPTY_DOCUMENT
        view = await self._coordinator.snapshot()
        try:
            body = GateStatusDoc.from_view(view).model_dump_json(indent=self._indent)
        except (ValueError, TypeError) as e:
            logger.exception("status_render_failed")
            return HTTPStatus.INTERNAL_SERVER_ERROR, str(e)
        return HTTPStatus.OK, body
