"""
Registry of provider adapters keyed by provider id.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Tuple

from ..exceptions import NoProviderError
from .base import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """
    Holds the providers an agent can talk to.

    The first registered provider becomes the default until another id is
    selected with `set_default()`. Registration order is preserved.
    """

    def __init__(self) -> None:
        self._providers: Dict[str, Provider] = {}
        self._default: Optional[str] = None

    def register(self, provider: Provider) -> None:
        """Register a provider under its `name`, replacing any previous one."""
        if provider.name in self._providers:
            logger.warning("Replacing already registered provider %r", provider.name)
        self._providers[provider.name] = provider
        if self._default is None:
            self._default = provider.name
        logger.info("Registered provider %r", provider.name)

    def get(self, provider_id: str) -> Optional[Provider]:
        """Get a provider by id."""
        return self._providers.get(provider_id)

    def default(self) -> Optional[Provider]:
        """The default provider, or None when nothing is registered."""
        if self._default is None:
            return None
        return self._providers.get(self._default)

    def set_default(self, provider_id: str) -> None:
        """
        Select the provider used by the agent.

        Raises:
            NoProviderError: If no provider is registered under `provider_id`.
        """
        if provider_id not in self._providers:
            raise NoProviderError(f"No provider registered with id {provider_id!r}")
        self._default = provider_id

    def ids(self) -> List[str]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def __contains__(self, provider_id: object) -> bool:
        return provider_id in self._providers

    async def health_check_all(self) -> List[Tuple[str, bool]]:
        """
        Run every provider's health check concurrently.

        Total latency is bounded by the slowest check, not their sum.
        Results keep registration order.
        """
        providers = list(self._providers.items())
        results = await asyncio.gather(
            *(provider.health_check() for _, provider in providers), return_exceptions=True
        )
        report: List[Tuple[str, bool]] = []
        for (provider_id, _), result in zip(providers, results):
            if isinstance(result, BaseException):
                logger.info("%s health check raised: %s", provider_id, result)
                report.append((provider_id, False))
            else:
                report.append((provider_id, bool(result)))
        return report


__all__ = ["ProviderRegistry"]
