# recipe_gateway/main.py
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from recipe_gateway.api.routers.health import router as health_router
from recipe_gateway.api.routers.providers import router as providers_router
from recipe_gateway.api.routers.recipes import router as recipes_router
from recipe_gateway.api.routers.relay import router as relay_router
from recipe_gateway.core import config
from recipe_gateway.services.stores import EnvKeyStore, InMemoryKeyStore, InMemoryProfileStore


def create_app() -> FastAPI:
    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="Recipe Gateway", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # shared stores, reached from routers through Depends(); keys set at runtime shadow the environment
    app.state.key_store = InMemoryKeyStore(fallback=EnvKeyStore())
    app.state.profile_store = InMemoryProfileStore()

    # Routers
    app.include_router(health_router)
    app.include_router(providers_router)
    app.include_router(recipes_router)
    app.include_router(relay_router)

    return app


app = create_app()
