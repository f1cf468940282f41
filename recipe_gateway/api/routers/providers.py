import logging
from dataclasses import asdict
from typing import Callable, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Header, HTTPException

from recipe_gateway.api.deps import get_key_store
from recipe_gateway.providers.adapter import GatewayAdapter
from recipe_gateway.providers.base import ProviderDescriptor
from recipe_gateway.providers.factory import (
    all_providers,
    free_providers,
    get_adapter,
    has_adapter,
    paid_providers,
    recommended_provider,
    relay_free_providers,
)
from recipe_gateway.schemas.providers import ApiKeyIn, KeyValidationOut, ModelOut, ProviderOut
from recipe_gateway.services.stores import InMemoryKeyStore

router = APIRouter(prefix="/providers", tags=["providers"])
logger = logging.getLogger(__name__)

LISTINGS: Dict[str, Callable[[], List[ProviderDescriptor]]] = {
    "free": free_providers,
    "paid": paid_providers,
    "direct": relay_free_providers,
}


def _adapter_or_404(provider_id: str) -> GatewayAdapter:
    if not has_adapter(provider_id):
        raise HTTPException(status_code=404, detail=f"unknown provider: {provider_id}")
    return get_adapter(provider_id)


def _provider_out(d: ProviderDescriptor) -> ProviderOut:
    return ProviderOut(
        id=d.id,
        name=d.name,
        is_free=d.is_free,
        requires_relay=d.requires_relay,
        free_models=list(d.free_models),
        documentation=d.documentation,
        dashboard_url=d.dashboard_url,
        default_model=get_adapter(d.id).default_model,
    )


@router.get("", response_model=List[ProviderOut])
async def list_providers(only: Optional[Literal["free", "paid", "direct"]] = None):
    descriptors = LISTINGS[only]() if only else all_providers()
    return [_provider_out(d) for d in descriptors]


@router.get("/recommended", response_model=ProviderOut)
async def get_recommended():
    return _provider_out(recommended_provider())


@router.get("/{provider_id}/models", response_model=List[ModelOut])
async def list_models(
    provider_id: str,
    x_api_key: Optional[str] = Header(default=None),
    keys: InMemoryKeyStore = Depends(get_key_store),
):
    adapter = _adapter_or_404(provider_id)
    api_key = x_api_key or await keys.get(provider_id)
    models = await adapter.list_models(api_key)
    return [ModelOut(**asdict(m)) for m in models]


@router.post("/{provider_id}/validate", response_model=KeyValidationOut)
async def validate_key(
    provider_id: str,
    x_api_key: Optional[str] = Header(default=None),
    keys: InMemoryKeyStore = Depends(get_key_store),
):
    adapter = _adapter_or_404(provider_id)
    api_key = x_api_key or await keys.get(provider_id)
    if not api_key:
        return KeyValidationOut(valid=False, error="Missing API key")
    result = await adapter.validate_api_key(api_key)
    logger.info("key validation provider=%s valid=%s", provider_id, result.valid)
    return KeyValidationOut(valid=result.valid, error=result.error)


@router.put("/{provider_id}/key", status_code=204)
async def store_key(provider_id: str, body: ApiKeyIn, keys: InMemoryKeyStore = Depends(get_key_store)):
    _adapter_or_404(provider_id)
    await keys.set(provider_id, body.api_key)


@router.delete("/{provider_id}/key", status_code=204)
async def forget_key(provider_id: str, keys: InMemoryKeyStore = Depends(get_key_store)):
    _adapter_or_404(provider_id)
    await keys.delete(provider_id)
