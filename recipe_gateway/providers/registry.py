# static provider registry, loaded once at import and never mutated afterwards
# requires_relay is the single routing switch: True means every call goes through /relay

from types import MappingProxyType
from typing import Mapping

from recipe_gateway.providers.base import ProviderDescriptor

_DESCRIPTORS = (
    # free tiers
    ProviderDescriptor(
        id="cerebras",
        name="Cerebras",
        base_url="https://api.cerebras.ai/v1",
        is_free=True,
        requires_relay=True,
        free_models=(
            "llama-4-scout-17b-16e",
            "llama-3.3-70b",
            "llama-3.1-8b",
            "qwen3-32b",
            "qwen3-235b-instruct",
        ),
        documentation="https://inference-docs.cerebras.ai/",
        dashboard_url="https://cloud.cerebras.ai/",
    ),
    ProviderDescriptor(
        id="google",
        name="Google AI Studio",
        base_url="https://generativelanguage.googleapis.com/v1beta",
        is_free=True,
        requires_relay=True,
        free_models=(
            "gemini-2.5-flash",
            "gemini-2.5-flash-lite",
            "gemini-2.5-pro",
            "gemini-2.0-flash",
            "gemini-3-flash-preview",
        ),
        documentation="https://ai.google.dev/docs",
        dashboard_url="https://aistudio.google.com/apikey",
    ),
    ProviderDescriptor(
        id="groq",
        name="Groq",
        base_url="https://api.groq.com/openai/v1",
        is_free=True,
        requires_relay=True,
        free_models=(
            "meta-llama/llama-4-scout-17b-16e-instruct",
            "llama-3.3-70b-versatile",
            "llama-3.1-8b-instant",
            "qwen/qwen3-32b",
            "deepseek-r1-distill-llama-70b",
            "mixtral-8x7b-32768",
        ),
        documentation="https://console.groq.com/docs",
        dashboard_url="https://console.groq.com/keys",
    ),
    ProviderDescriptor(
        id="huggingface",
        name="Hugging Face",
        base_url="https://api-inference.huggingface.co/models",
        is_free=True,
        requires_relay=True,
        free_models=(
            "meta-llama/Llama-3.1-70B-Instruct",
            "meta-llama/Llama-3.1-8B-Instruct",
            "mistralai/Mistral-7B-Instruct-v0.3",
            "Qwen/Qwen2.5-72B-Instruct",
        ),
        documentation="https://huggingface.co/docs/api-inference",
        dashboard_url="https://huggingface.co/settings/tokens",
    ),
    ProviderDescriptor(
        id="openrouter",
        name="OpenRouter",
        base_url="https://openrouter.ai/api/v1",
        is_free=True,
        requires_relay=False,
        free_models=(
            "meta-llama/llama-4-maverick:free",
            "meta-llama/llama-4-scout:free",
            "meta-llama/llama-3.3-70b-instruct:free",
            "meta-llama/llama-3.2-3b-instruct:free",
            "meta-llama/llama-3.1-8b-instruct:free",
            "deepseek/deepseek-r1:free",
            "deepseek/deepseek-r1-distill-llama-70b:free",
            "deepseek/deepseek-chat:free",
            "qwen/qwen-2.5-72b-instruct:free",
            "qwen/qwen-2.5-coder-32b-instruct:free",
            "qwen/qvq-72b-preview:free",
            "google/gemini-2.0-flash-exp:free",
            "google/gemini-2.5-flash-preview:free",
            "openai/gpt-oss-120b:free",
            "mistralai/mistral-small-24b-instruct-2501:free",
            "mistralai/mistral-7b-instruct:free",
            "nvidia/llama-3.1-nemotron-70b-instruct:free",
            "arcee-ai/trinity-large-preview:free",
            "moonshotai/kimi-vl-a3b-thinking:free",
        ),
        documentation="https://openrouter.ai/docs",
        dashboard_url="https://openrouter.ai/settings/keys",
    ),
    # paid
    ProviderDescriptor(
        id="anthropic",
        name="Anthropic",
        base_url="https://api.anthropic.com/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://docs.anthropic.com/",
        dashboard_url="https://console.anthropic.com/settings/keys",
    ),
    ProviderDescriptor(
        id="deepseek",
        name="DeepSeek",
        base_url="https://api.deepseek.com",
        is_free=False,
        requires_relay=True,
        documentation="https://api-docs.deepseek.com/",
        dashboard_url="https://platform.deepseek.com/api_keys",
    ),
    ProviderDescriptor(
        id="fireworks",
        name="Fireworks AI",
        base_url="https://api.fireworks.ai/inference/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://docs.fireworks.ai/",
        dashboard_url="https://fireworks.ai/account/api-keys",
    ),
    ProviderDescriptor(
        id="mistral",
        name="Mistral AI",
        base_url="https://api.mistral.ai/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://docs.mistral.ai/",
        dashboard_url="https://console.mistral.ai/api-keys",
    ),
    ProviderDescriptor(
        id="openai",
        name="OpenAI",
        base_url="https://api.openai.com/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://platform.openai.com/docs",
        dashboard_url="https://platform.openai.com/api-keys",
    ),
    ProviderDescriptor(
        id="opencode",
        name="OpenCode AI",
        base_url="https://opencode.ai/api/v1",
        is_free=False,
        requires_relay=True,
        free_models=("opencode/fast-one", "opencode/gpt-5-nano"),
        documentation="https://opencode.ai/docs",
        dashboard_url="https://opencode.ai/",
    ),
    ProviderDescriptor(
        id="together",
        name="Together AI",
        base_url="https://api.together.xyz/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://docs.together.ai/",
        dashboard_url="https://api.together.xyz/settings/api-keys",
    ),
    ProviderDescriptor(
        id="xai",
        name="xAI (Grok)",
        base_url="https://api.x.ai/v1",
        is_free=False,
        requires_relay=True,
        documentation="https://docs.x.ai/",
        dashboard_url="https://console.x.ai/",
    ),
)

PROVIDERS: Mapping[str, ProviderDescriptor] = MappingProxyType({d.id: d for d in _DESCRIPTORS})


def get_descriptor(provider_id: str) -> ProviderDescriptor:
    try:
        return PROVIDERS[provider_id]
    except KeyError:
        raise KeyError(f"Unknown provider: {provider_id}") from None

