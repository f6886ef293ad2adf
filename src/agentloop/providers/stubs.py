"""
Local provider for offline testing and development.

This provider doesn't call any external API and simply echoes user messages.
"""

from __future__ import annotations

from ..types import STOP_END_TURN, Request, Response, Role, TextBlock
from ..usage import Usage
from .base import Provider


class LocalProvider(Provider):
    """
    Local fallback provider.

    This does not call a model. It echoes the latest user text and is useful
    for offline/manual testing or as a safe default. It cannot stream.
    """

    name = "local"
    supports_streaming = False

    def __init__(self, default_model: str = "echo"):
        self.default_model = default_model

    def configured_model(self):
        return self.default_model

    async def complete(self, request: Request) -> Response:
        last_user = next((m for m in reversed(request.messages) if m.role == Role.USER), None)
        user_text = last_user.text() if last_user else ""
        model = request.model or self.default_model
        text = f"[local provider: {model}] {user_text or 'No user message provided.'}"
        return Response(
            content=[TextBlock(text)],
            model=model,
            usage=Usage(input_tokens=len(user_text.split()), output_tokens=len(text.split())),
            stop_reason=STOP_END_TURN,
        )

    async def available_models(self):
        return [self.default_model]


__all__ = ["LocalProvider"]
