# Anthropic Messages API: top-level `system`, mandatory max_tokens, typed SSE events

from typing import Any, Dict, List, Optional

from recipe_gateway.providers.adapter import FrameParser, GatewayAdapter, KeyProbe, RequestShaper, load_frame
from recipe_gateway.providers.base import GenerateRequest, ModelInfo, ProviderDescriptor, ProviderHTTPError
from recipe_gateway.providers.catalog import ModelCatalog, max_output_rule
from recipe_gateway.providers.decoders import SSEDecoder
from recipe_gateway.providers.registry import get_descriptor

DEFAULT_MODEL = "claude-sonnet-4-20250514"
DEFAULT_MAX_TOKENS = 16384
CONTEXT_WINDOW = 200000


def messages_endpoint(descriptor: ProviderDescriptor, model: str) -> str:
    return f"{descriptor.base_url}/messages"


def build_messages_body(request: GenerateRequest) -> Dict[str, Any]:
    return {
        "model": request.model,
        "max_tokens": request.max_tokens or DEFAULT_MAX_TOKENS,
        "system": request.system_prompt,
        "messages": [{"role": "user", "content": request.user_prompt}],
        "temperature": request.temperature,
        "stream": True,
    }


def parse_event(frame: str) -> Optional[str]:
    """Text lives in `content_block_delta` events under delta.text; other event types carry none."""
    event = load_frame(frame)
    if not isinstance(event, dict):
        return None
    kind = event.get("type")
    if kind == "error":
        err = event.get("error") if isinstance(event.get("error"), dict) else {}
        raise ProviderHTTPError(529 if err.get("type") == "overloaded_error" else 500, event)
    if kind != "content_block_delta":
        return None
    delta = event.get("delta")
    text = delta.get("text") if isinstance(delta, dict) else None
    return text if isinstance(text, str) else None


def models_listing(catalog: ModelCatalog, payload: Any) -> List[ModelInfo]:
    models = []
    for model in (payload.get("data") or []) if isinstance(payload, dict) else []:
        model_id = model.get("id") if isinstance(model, dict) else None
        if not isinstance(model_id, str):
            continue
        models.append(
            ModelInfo(
                id=model_id,
                name=model.get("display_name") or model_id,
                context_window=CONTEXT_WINDOW,
                max_output_tokens=catalog.max_output(model_id),
                is_free=False,
            )
        )
    return models


CATALOG = ModelCatalog(
    fallback=(
        ModelInfo("claude-sonnet-4-20250514", "Claude 4 Sonnet", CONTEXT_WINDOW, 64000, False),
        ModelInfo("claude-opus-4-20250514", "Claude 4 Opus", CONTEXT_WINDOW, 32000, False),
        ModelInfo("claude-haiku-4-20250514", "Claude 4 Haiku", CONTEXT_WINDOW, 64000, False),
    ),
    max_output=max_output_rule(("opus", 32000), ("sonnet", 64000), ("haiku", 64000), default=DEFAULT_MAX_TOKENS),
    listing=models_listing,
)


def build_adapter() -> GatewayAdapter:
    descriptor = get_descriptor("anthropic")
    return GatewayAdapter(
        descriptor=descriptor,
        default_model=DEFAULT_MODEL,
        shaper=RequestShaper(endpoint=messages_endpoint, build_body=build_messages_body),
        frames=FrameParser(decoder=SSEDecoder, parse=parse_event),
        catalog=CATALOG,
        # a one-token completion is the cheapest call that exercises the key
        key_probe=KeyProbe(
            url=messages_endpoint(descriptor, DEFAULT_MODEL),
            method="POST",
            body={"model": DEFAULT_MODEL, "max_tokens": 1, "messages": [{"role": "user", "content": "Hi"}]},
            accept_bad_request=True,
        ),
    )
