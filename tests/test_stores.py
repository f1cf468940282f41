# tests/test_stores.py
import asyncio

import pytest

from recipe_gateway.schemas.profile import ChefProfile
from recipe_gateway.services.stores import EnvKeyStore, InMemoryKeyStore, InMemoryProfileStore


@pytest.mark.asyncio
async def test_env_store_reads_provider_variable(monkeypatch):
    monkeypatch.setenv("GROQ_API_KEY", " gsk-env ")
    monkeypatch.setenv("MISTRAL_API_KEY", "   ")
    store = EnvKeyStore()
    assert await store.get("groq") == "gsk-env"
    # blank counts as unset
    assert await store.get("mistral") is None


@pytest.mark.asyncio
async def test_runtime_key_shadows_env_until_deleted(monkeypatch):
    # Tests the lookup order:
    # - with nothing set at runtime the env key is used
    # - a key set at runtime wins
    # - deleting it falls back to the env again
    monkeypatch.setenv("GROQ_API_KEY", "from-env")
    store = InMemoryKeyStore(fallback=EnvKeyStore())
    assert await store.get("groq") == "from-env"
    await store.set("groq", " runtime ")
    assert await store.get("groq") == "runtime"
    await store.delete("groq")
    assert await store.get("groq") == "from-env"


@pytest.mark.asyncio
async def test_without_fallback_unknown_is_none():
    store = InMemoryKeyStore()
    assert await store.get("openai") is None
    # deleting a missing key is a no-op
    await store.delete("openai")


@pytest.mark.asyncio
async def test_concurrent_writes_do_not_interfere():
    store = InMemoryKeyStore()

    async def writer(pid):
        for i in range(10):
            await store.set(pid, f"{pid}-{i}")
            await asyncio.sleep(0)

    await asyncio.gather(writer("groq"), writer("cerebras"))
    assert await store.get("groq") == "groq-9"
    assert await store.get("cerebras") == "cerebras-9"


@pytest.mark.asyncio
async def test_profile_store_round_trip():
    store = InMemoryProfileStore()
    assert await store.get() is None
    profile = ChefProfile(name="Ana", allergies=["maní"])
    await store.set(profile)
    assert await store.get() == profile
