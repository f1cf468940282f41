# adapter registry keyed by provider id, built once at import and read-only afterwards

from types import MappingProxyType
from typing import List, Mapping

from recipe_gateway.providers import anthropic, google, huggingface, openai_compat
from recipe_gateway.providers.adapter import GatewayAdapter
from recipe_gateway.providers.base import ProviderDescriptor
from recipe_gateway.providers.registry import PROVIDERS, get_descriptor

RECOMMENDED_PROVIDER = "openrouter"


def _build() -> Mapping[str, GatewayAdapter]:
    adapters = openai_compat.build_adapters() + [
        anthropic.build_adapter(),
        google.build_adapter(),
        huggingface.build_adapter(),
    ]
    return MappingProxyType({a.descriptor.id: a for a in adapters})


ADAPTERS = _build()


def has_adapter(provider_id: str) -> bool:
    return provider_id in ADAPTERS


def get_adapter(provider_id: str) -> GatewayAdapter:
    try:
        return ADAPTERS[provider_id]
    except KeyError:
        raise KeyError(f"No adapter for provider: {provider_id}") from None


def all_providers() -> List[ProviderDescriptor]:
    return sorted(PROVIDERS.values(), key=lambda d: d.name.casefold())


def free_providers() -> List[ProviderDescriptor]:
    return [d for d in all_providers() if d.is_free]


def paid_providers() -> List[ProviderDescriptor]:
    return [d for d in all_providers() if not d.is_free]


def relay_free_providers() -> List[ProviderDescriptor]:
    """Providers callable directly, without the relay hop."""
    return [d for d in all_providers() if not d.requires_relay]


def recommended_provider() -> ProviderDescriptor:
    return get_descriptor(RECOMMENDED_PROVIDER)
