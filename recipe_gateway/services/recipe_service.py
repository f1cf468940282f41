# orchestrates one generation call:
# guardrails -> adapter + key -> prompts -> stream -> output check -> parsed recipe
# every failure leaves this module as a GatewayError carrying one canonical error

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional, Tuple

from recipe_gateway.core import config
from recipe_gateway.providers.base import GenerateOptions, ProviderAdapter
from recipe_gateway.providers.factory import get_adapter, has_adapter
from recipe_gateway.schemas.profile import ChefProfile
from recipe_gateway.schemas.recipes import IdeasRequest, RecipeIdea, RecipeRequest, RecipeResponse
from recipe_gateway.services.errors import CanonicalError, ErrorKind, GatewayError, get_error, map_exception
from recipe_gateway.services.guardrails import (
    build_ideas_system_prompt,
    build_system_prompt,
    validate_input,
    validate_output,
)
from recipe_gateway.services.ideas import build_ideas_user_prompt, parse_ideas_response
from recipe_gateway.services.prompt import build_user_prompt
from recipe_gateway.services.recipe_parser import has_recipe_structure, parse_recipe
from recipe_gateway.services.stores import KeyStore, ProfileStore

logger = logging.getLogger(__name__)

# a streamed answer that fails after its first byte ends with one line: this prefix + canonical error JSON
STREAM_ERROR_PREFIX = "\n\n[[error]] "


@dataclass(frozen=True)
class PreparedGeneration:
    adapter: ProviderAdapter
    api_key: str
    system_prompt: str
    user_prompt: str
    options: GenerateOptions
    locale: str

    @property
    def provider(self) -> str:
        return self.adapter.descriptor.id

    @property
    def model(self) -> str:
        return self.options.model or self.adapter.default_model


def _checked_input(text: str) -> str:
    result = validate_input(text)
    if not result.valid:
        raise GatewayError(get_error(ErrorKind.PROMPT_INJECTION_DETECTED), status_code=400)
    return result.sanitized_input or text.strip()


async def _resolve(provider_id: Optional[str], keys: KeyStore) -> Tuple[ProviderAdapter, str]:
    provider_id = provider_id or config.DEFAULT_PROVIDER
    if not has_adapter(provider_id):
        raise GatewayError(get_error(ErrorKind.UNKNOWN_ERROR, f"Provider not found: {provider_id}"), status_code=404)
    adapter = get_adapter(provider_id)
    api_key = await keys.get(provider_id)
    if not api_key:
        message = f"No API key configured for {adapter.descriptor.name}. Add one in settings."
        raise GatewayError(get_error(ErrorKind.INVALID_API_KEY, message), status_code=401)
    return adapter, api_key


async def _profile(explicit: Optional[ChefProfile], profiles: Optional[ProfileStore]) -> Optional[ChefProfile]:
    if explicit is not None:
        return explicit
    if profiles is None:
        return None
    return await profiles.get()


async def prepare_generation(
    req: RecipeRequest, *, keys: KeyStore, profiles: Optional[ProfileStore] = None
) -> PreparedGeneration:
    message = _checked_input(req.message)
    adapter, api_key = await _resolve(req.provider, keys)
    locale = req.locale or config.DEFAULT_LOCALE
    profile = await _profile(req.profile, profiles)

    return PreparedGeneration(
        adapter=adapter,
        api_key=api_key,
        system_prompt=build_system_prompt(profile, locale),
        user_prompt=build_user_prompt(message, req.history, locale),
        options=GenerateOptions(model=req.model, max_tokens=req.max_tokens, temperature=req.temperature),
        locale=locale,
    )


async def stream_text(prepared: PreparedGeneration) -> AsyncIterator[str]:
    """Text deltas only; the terminal done marker is consumed here."""
    try:
        async for chunk in prepared.adapter.generate_recipe(
            prepared.system_prompt, prepared.user_prompt, prepared.api_key, prepared.options
        ):
            if chunk.content:
                yield chunk.content
    except GatewayError:
        raise
    except Exception as e:
        error = map_exception(e, prepared.provider)
        logger.warning("generation failed provider=%s kind=%s", prepared.provider, error.kind.value)
        raise GatewayError(error) from e


def stream_error_record(error: CanonicalError) -> str:
    return STREAM_ERROR_PREFIX + json.dumps(error.to_dict(), ensure_ascii=False) + "\n"


def check_output(content: str) -> None:
    result = validate_output(content)
    if result.valid:
        return
    logger.warning("generated text flagged: %s", result.error)
    if config.BLOCK_CODE_OUTPUT:
        raise GatewayError(get_error(ErrorKind.PROMPT_INJECTION_DETECTED))


async def generate_recipe(prepared: PreparedGeneration, prompt_id: Optional[str] = None) -> RecipeResponse:
    acc: List[str] = []
    async for text in stream_text(prepared):
        acc.append(text)
    content = "".join(acc)
    check_output(content)

    recipe = None
    if has_recipe_structure(content):
        recipe = parse_recipe(content, provider=prepared.provider, prompt_id=prompt_id, locale=prepared.locale)
    return RecipeResponse(content=content, provider=prepared.provider, model=prepared.model, recipe=recipe)


async def generate_ideas(
    req: IdeasRequest, *, keys: KeyStore, profiles: Optional[ProfileStore] = None
) -> List[RecipeIdea]:
    ingredients = _checked_input(req.ingredients)
    adapter, api_key = await _resolve(req.provider, keys)
    locale = req.locale or config.DEFAULT_LOCALE
    profile = await _profile(req.profile, profiles)

    system_prompt = build_ideas_system_prompt(profile, locale)
    user_prompt = build_ideas_user_prompt(ingredients, req.meal_type, req.vibes, req.servings, locale)
    try:
        content = await adapter.generate_text(system_prompt, user_prompt, api_key, GenerateOptions(model=req.model))
    except Exception as e:
        raise GatewayError(map_exception(e, adapter.descriptor.id)) from e
    return parse_ideas_response(content, req.meal_type, req.vibes, ingredients, req.servings)
