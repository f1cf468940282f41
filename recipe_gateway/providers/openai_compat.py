# OpenAI-compatible chat completions: SSE stream of `data: {json}` lines ending in `data: [DONE]`
# shared by ten vendors; only the default model and the model catalog differ between them

import re
from typing import Any, Dict, List, Optional

from recipe_gateway.providers.adapter import FrameParser, GatewayAdapter, KeyProbe, RequestShaper, load_frame
from recipe_gateway.providers.base import GenerateRequest, ModelInfo, ProviderDescriptor
from recipe_gateway.providers.catalog import (
    DEFAULT_CONTEXT_WINDOW,
    ModelCatalog,
    max_output_rule,
    openai_listing,
    static_models,
    title_words,
)
from recipe_gateway.providers.decoders import SSEDecoder
from recipe_gateway.providers.registry import get_descriptor


def chat_completions_endpoint(descriptor: ProviderDescriptor, model: str) -> str:
    return f"{descriptor.base_url}/chat/completions"


def build_chat_body(request: GenerateRequest) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "model": request.model,
        "messages": [
            {"role": "system", "content": request.system_prompt},
            {"role": "user", "content": request.user_prompt},
        ],
        "temperature": request.temperature,
        "stream": True,
    }
    # no max_tokens means the model's own maximum
    if request.max_tokens:
        body["max_tokens"] = request.max_tokens
    return body


def parse_chat_delta(frame: str) -> Optional[str]:
    data = load_frame(frame)
    if not isinstance(data, dict):
        return None
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content") if isinstance(delta, dict) else None
    return content if isinstance(content, str) else None


CHAT_SHAPER = RequestShaper(endpoint=chat_completions_endpoint, build_body=build_chat_body)
SSE_CHAT_FRAMES = FrameParser(decoder=SSEDecoder, parse=parse_chat_delta)

_default_max_output = max_output_rule(
    ("llama-3.3", 8192), ("llama-3.1", 8192), ("mixtral", 32768), ("deepseek", 8192), ("qwen", 8192)
)


# --- openai ---

CHAT_MODEL_PREFIXES = ("gpt-4", "gpt-3.5", "o1", "o3", "chatgpt")

_openai_max_output = max_output_rule(("gpt-4o", 16384), ("o1", 100000), ("o3", 100000), ("gpt-4", 4096))


def format_openai_name(model_id: str) -> str:
    name = re.sub(r"gpt ", "GPT-", model_id.replace("-", " "), flags=re.I)
    name = title_words(re.sub(r"GPT- ", "GPT-", name, flags=re.I))
    return re.sub(r"^o3", "O3", re.sub(r"^o1", "O1", name, flags=re.I), flags=re.I)


def _openai_context_window(model_id: str) -> int:
    if "gpt-4o" in model_id or "gpt-4-turbo" in model_id:
        return 128000
    if "gpt-4-32k" in model_id:
        return 32768
    if "gpt-4" in model_id:
        return 8192
    if "gpt-3.5-turbo-16k" in model_id:
        return 16385
    if "gpt-3.5" in model_id:
        return 4096
    if model_id.startswith(("o1", "o3")):
        return 128000
    return 8192


def _openai_rank(model_id: str) -> int:
    if model_id.startswith("gpt-4o"):
        return 0
    if model_id.startswith("gpt-4"):
        return 1
    if model_id.startswith("gpt-3"):
        return 2
    if model_id.startswith(("o1", "o3")):
        return 3
    return 4


def openai_chat_listing(catalog: ModelCatalog, payload: Any) -> List[ModelInfo]:
    models = []
    for model in (payload.get("data") or []) if isinstance(payload, dict) else []:
        model_id = model.get("id") if isinstance(model, dict) else None
        if not isinstance(model_id, str) or not model_id.startswith(CHAT_MODEL_PREFIXES):
            continue
        models.append(
            ModelInfo(
                id=model_id,
                name=catalog.format_name(model_id),
                context_window=_openai_context_window(model_id),
                max_output_tokens=catalog.max_output(model_id),
                is_free=False,
            )
        )
    return sorted(models, key=lambda m: _openai_rank(m.id))


# --- openrouter ---

_openrouter_max_output = max_output_rule(("gemini", 8192), ("llama", 8192), ("qwen", 8192), ("deepseek", 8192))


def format_openrouter_name(model_id: str) -> str:
    tail = model_id.split("/")[-1].replace(":free", "")
    return title_words(tail.replace("-", " ")) or model_id


def openrouter_free_listing(catalog: ModelCatalog, payload: Any) -> List[ModelInfo]:
    """Keeps only free models: a `:free` suffix or zero prompt and completion pricing."""
    models = []
    for model in (payload.get("data") or []) if isinstance(payload, dict) else []:
        model_id = model.get("id") if isinstance(model, dict) else None
        if not isinstance(model_id, str):
            continue
        pricing = model.get("pricing") if isinstance(model.get("pricing"), dict) else {}
        if not (model_id.endswith(":free") or (pricing.get("prompt") == "0" and pricing.get("completion") == "0")):
            continue
        top = model.get("top_provider") if isinstance(model.get("top_provider"), dict) else {}
        models.append(
            ModelInfo(
                id=model_id,
                name=model.get("name") or catalog.format_name(model_id),
                context_window=model.get("context_length") or DEFAULT_CONTEXT_WINDOW,
                max_output_tokens=top.get("max_completion_tokens") or catalog.max_output(model_id),
                is_free=True,
            )
        )
    return sorted(models, key=lambda m: m.name.casefold())


# --- per-vendor tables ---

def _catalogs() -> Dict[str, ModelCatalog]:
    openrouter = get_descriptor("openrouter")
    opencode = get_descriptor("opencode")
    return {
        "openai": ModelCatalog(
            fallback=(
                ModelInfo("gpt-4o", "GPT-4o", 128000, 16384, False),
                ModelInfo("gpt-4o-mini", "GPT-4o Mini", 128000, 16384, False),
                ModelInfo("gpt-4-turbo", "GPT-4 Turbo", 128000, 4096, False),
                ModelInfo("gpt-3.5-turbo", "GPT-3.5 Turbo", 16385, 4096, False),
            ),
            max_output=_openai_max_output,
            format_name=format_openai_name,
            listing=openai_chat_listing,
        ),
        "groq": ModelCatalog(
            fallback=(
                ModelInfo("llama-3.3-70b-versatile", "Llama 3.3 70B", 128000, 8192, True),
                ModelInfo("llama-3.1-8b-instant", "Llama 3.1 8B Instant", 128000, 8192, True),
                ModelInfo("deepseek-r1-distill-llama-70b", "DeepSeek R1 Distill 70B", 128000, 16384, True),
                ModelInfo("mixtral-8x7b-32768", "Mixtral 8x7B", 32768, 32768, True),
            ),
            is_free=True,
            max_output=max_output_rule(("mixtral", 32768), ("deepseek", 16384), default=8192),
            listing=openai_listing,
        ),
        "cerebras": ModelCatalog(
            fallback=(
                ModelInfo("llama-3.3-70b", "Llama 3.3 70B", 8192, 8192, True),
                ModelInfo("llama-3.1-8b", "Llama 3.1 8B", 8192, 8192, True),
                ModelInfo("qwen3-32b", "Qwen 3 32B", 32768, 8192, True),
            ),
            is_free=True,
            max_output=max_output_rule(default=8192),
            listing=openai_listing,
        ),
        "deepseek": ModelCatalog(
            fallback=(
                ModelInfo("deepseek-chat", "DeepSeek V3 (Chat)", 128000, 8192, False),
                ModelInfo("deepseek-reasoner", "DeepSeek R1 (Reasoner)", 128000, 8192, False),
            ),
            max_output=max_output_rule(default=8192),
            listing=openai_listing,
        ),
        # Fireworks lists thousands of account models; the curated table is all we expose
        "fireworks": ModelCatalog(
            fallback=(
                ModelInfo("accounts/fireworks/models/llama-v3p3-70b-instruct", "Llama 3.3 70B", 131072, 8192, False),
                ModelInfo("accounts/fireworks/models/llama-v3p1-70b-instruct", "Llama 3.1 70B", 131072, 8192, False),
                ModelInfo("accounts/fireworks/models/qwen2p5-72b-instruct", "Qwen 2.5 72B", 32768, 8192, False),
                ModelInfo("accounts/fireworks/models/deepseek-v3", "DeepSeek V3", 128000, 8192, False),
                ModelInfo("accounts/fireworks/models/mixtral-8x22b-instruct", "Mixtral 8x22B", 65536, 32768, False),
            ),
            max_output=max_output_rule(("mixtral", 32768), default=8192),
        ),
        "mistral": ModelCatalog(
            fallback=(
                ModelInfo("mistral-large-latest", "Mistral Large 3", 256000, 4096, False),
                ModelInfo("mistral-medium-latest", "Mistral Medium 3", 128000, 4096, False),
                ModelInfo("mistral-small-latest", "Mistral Small 3.1", 128000, 4096, False),
                ModelInfo("ministral-8b-latest", "Ministral 8B", 32000, 4096, False),
                ModelInfo("codestral-latest", "Codestral", 32000, 4096, False),
            ),
            max_output=max_output_rule(default=4096),
            listing=openai_listing,
        ),
        "together": ModelCatalog(
            fallback=(
                ModelInfo("meta-llama/Llama-3.3-70B-Instruct-Turbo", "Llama 3.3 70B Turbo", 131072, 8192, False),
                ModelInfo("deepseek-ai/DeepSeek-R1", "DeepSeek R1", 128000, 8192, False),
                ModelInfo("Qwen/Qwen2.5-72B-Instruct-Turbo", "Qwen 2.5 72B", 32768, 8192, False),
                ModelInfo("mistralai/Mixtral-8x7B-Instruct-v0.1", "Mixtral 8x7B", 32768, 32768, False),
            ),
            max_output=max_output_rule(("mixtral", 32768), default=8192),
            listing=openai_listing,
        ),
        "xai": ModelCatalog(
            fallback=(
                ModelInfo("grok-3", "Grok 3", 131072, 16000, False),
                ModelInfo("grok-3-mini", "Grok 3 Mini", 131072, 16000, False),
                ModelInfo("grok-2-1212", "Grok 2", 131072, 16000, False),
                ModelInfo("grok-2-vision-1212", "Grok 2 Vision", 32768, 16000, False),
            ),
            max_output=max_output_rule(default=16000),
            listing=openai_listing,
        ),
        "opencode": ModelCatalog(
            fallback=static_models(opencode.free_models, is_free=False, max_output=_default_max_output),
            max_output=_default_max_output,
            listing=openai_listing,
        ),
        "openrouter": ModelCatalog(
            fallback=static_models(
                openrouter.free_models,
                is_free=True,
                max_output=_openrouter_max_output,
                format_name=format_openrouter_name,
            ),
            is_free=True,
            max_output=_openrouter_max_output,
            format_name=format_openrouter_name,
            listing=openrouter_free_listing,
        ),
    }


DEFAULT_MODELS = {
    "openai": "gpt-4o-mini",
    "groq": "llama-3.3-70b-versatile",
    "cerebras": "llama-3.3-70b",
    "deepseek": "deepseek-chat",
    "fireworks": "accounts/fireworks/models/llama-v3p3-70b-instruct",
    "mistral": "mistral-small-latest",
    "together": "meta-llama/Llama-3.3-70B-Instruct-Turbo",
    "xai": "grok-3",
    "opencode": "opencode/fast-one",
    "openrouter": "google/gemini-2.0-flash-exp:free",
}


def build_adapters() -> List[GatewayAdapter]:
    adapters = []
    for provider_id, catalog in _catalogs().items():
        descriptor = get_descriptor(provider_id)
        adapters.append(
            GatewayAdapter(
                descriptor=descriptor,
                default_model=DEFAULT_MODELS[provider_id],
                shaper=CHAT_SHAPER,
                frames=SSE_CHAT_FRAMES,
                catalog=catalog,
                key_probe=KeyProbe(url=f"{descriptor.base_url}/models"),
            )
        )
    return adapters
