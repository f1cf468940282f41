from fastapi import Request

from recipe_gateway.services.stores import InMemoryKeyStore, InMemoryProfileStore


def get_key_store(request: Request) -> InMemoryKeyStore:
    return request.app.state.key_store


def get_profile_store(request: Request) -> InMemoryProfileStore:
    return request.app.state.profile_store
