from core.sync.sync_reconciler import ProviderRegistry, default_registry
from typing import Optional


# Provider registry - maps provider names to calendar clients and normalizers
_provider_registry: Optional[ProviderRegistry] = None


async def get_provider_registry() -> ProviderRegistry:
    """Get calendar provider registry"""
    global _provider_registry
    if _provider_registry is None:
        _provider_registry = default_registry()
    return _provider_registry
