"""
Provider abstraction for model-agnostic completion and tool calling.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, List, Optional, Protocol, runtime_checkable

from ..exceptions import ProviderError, StreamingUnsupportedError
from ..types import Request, Response, StreamEvent

logger = logging.getLogger(__name__)


@runtime_checkable
class Provider(Protocol):
    """
    Interface every provider adapter must satisfy.

    Adapters subclass this protocol explicitly so they inherit the default
    bodies below (no model listing, no streaming, a health check that
    reports whether `available_models()` succeeds).

    `stream_complete()` returns a lazy, finite, non-restartable async
    iterator. Every successful stream ends with exactly one `MessageStop`;
    a transport error ends it by raising instead.
    """

    name: str
    supports_streaming: bool = False

    async def complete(self, request: Request) -> Response:
        """Send a completion request and return the translated response."""
        ...

    def stream_complete(self, request: Request) -> AsyncIterator[StreamEvent]:
        """
        Stream a completion as unified events.

        Adapters that cannot stream raise `StreamingUnsupportedError` on the
        first pull instead of silently falling back to `complete()`.
        """
        return _unsupported_stream(self.name)

    def configured_model(self) -> Optional[str]:
        """Model used when a request leaves `model` empty."""
        return None

    async def available_models(self) -> List[str]:
        """Models this provider can serve. Empty unless the vendor can list them."""
        return []

    async def health_check(self) -> bool:
        """Return whether the provider is reachable. Never raises."""
        try:
            await self.available_models()
        except Exception as exc:  # noqa: BLE001
            logger.info("%s health check failed: %s", self.name, exc)
            return False
        return True


async def _unsupported_stream(provider_name: str) -> AsyncIterator[StreamEvent]:
    raise StreamingUnsupportedError(provider_name)
    yield  # pragma: no cover


__all__ = ["Provider", "ProviderError"]
