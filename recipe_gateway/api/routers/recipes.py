import logging
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from recipe_gateway.api.deps import get_key_store, get_profile_store
from recipe_gateway.schemas.profile import ChefProfile
from recipe_gateway.schemas.recipes import (
    IdeasRequest,
    ParsedRecipe,
    ParseRequest,
    RecipeIdea,
    RecipeRequest,
    RecipeResponse,
)
from recipe_gateway.services.errors import GatewayError, map_exception
from recipe_gateway.services.recipe_parser import parse_recipe
from recipe_gateway.services.recipe_service import (
    check_output,
    generate_ideas,
    generate_recipe,
    prepare_generation,
    stream_error_record,
    stream_text,
)
from recipe_gateway.services.stores import InMemoryKeyStore, InMemoryProfileStore

router = APIRouter(tags=["recipes"])
logger = logging.getLogger(__name__)


def _error_response(e: GatewayError) -> JSONResponse:
    return JSONResponse(e.error.to_dict(), status_code=e.status_code)


@router.post("/recipes", response_model=RecipeResponse)
async def create_recipe(
    req: RecipeRequest,
    request: Request,
    keys: InMemoryKeyStore = Depends(get_key_store),
    profiles: InMemoryProfileStore = Depends(get_profile_store),
):
    try:
        prepared = await prepare_generation(req, keys=keys, profiles=profiles)
        if not req.stream:
            return await generate_recipe(prepared, prompt_id=req.prompt_id)

        # pull the first chunk here so failures before any output still get a proper status
        gen = stream_text(prepared)
        try:
            first = await gen.__anext__()
        except StopAsyncIteration:
            first = ""
    except GatewayError as e:
        return _error_response(e)

    async def streamer():
        acc: List[str] = []
        try:
            if first:
                acc.append(first)
                yield first.encode("utf-8")
            async for chunk in gen:
                if await request.is_disconnected():
                    logger.info("client disconnected, stopping stream")
                    return
                acc.append(chunk)
                yield chunk.encode("utf-8")
            check_output("".join(acc))
        except GatewayError as e:
            logger.warning("streaming error occurred: %s", e)
            yield stream_error_record(e.error).encode("utf-8")
        except Exception as e:
            logger.exception("streaming error occurred: %s", e)
            yield stream_error_record(map_exception(e, prepared.provider)).encode("utf-8")
        finally:
            await gen.aclose()

    headers = {"X-Provider": prepared.provider, "X-Model": prepared.model}
    return StreamingResponse(streamer(), media_type="text/plain; charset=utf-8", headers=headers)


@router.post("/recipes/parse", response_model=ParsedRecipe)
async def parse_markdown(req: ParseRequest):
    return parse_recipe(req.markdown, provider=req.provider, locale=req.locale)


@router.post("/ideas", response_model=List[RecipeIdea])
async def create_ideas(
    req: IdeasRequest,
    keys: InMemoryKeyStore = Depends(get_key_store),
    profiles: InMemoryProfileStore = Depends(get_profile_store),
):
    try:
        return await generate_ideas(req, keys=keys, profiles=profiles)
    except GatewayError as e:
        return _error_response(e)


@router.get("/profile", response_model=ChefProfile)
async def read_profile(profiles: InMemoryProfileStore = Depends(get_profile_store)):
    return await profiles.get() or ChefProfile()


@router.put("/profile", response_model=ChefProfile)
async def update_profile(profile: ChefProfile, profiles: InMemoryProfileStore = Depends(get_profile_store)):
    await profiles.set(profile)
    return profile
