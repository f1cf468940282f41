# per-provider API keys and the chef profile, both read once per generation call
# in-memory variants live on app.state, the env variant reads <PROVIDER>_API_KEY

from __future__ import annotations

import asyncio
import os
from typing import Dict, Optional, Protocol

from recipe_gateway.core import config
from recipe_gateway.schemas.profile import ChefProfile


class KeyStore(Protocol):
    async def get(self, provider_id: str) -> Optional[str]:
        ...


class ProfileStore(Protocol):
    async def get(self) -> Optional[ChefProfile]:
        ...


class EnvKeyStore:
    async def get(self, provider_id: str) -> Optional[str]:
        value = os.getenv(config.api_key_env_var(provider_id), "").strip()
        return value or None


class InMemoryKeyStore:
    """Keys issued at runtime win over the environment; unset providers fall back to it."""

    def __init__(self, fallback: Optional[KeyStore] = None) -> None:
        self._keys: Dict[str, str] = {}
        self._lock = asyncio.Lock()
        self._fallback = fallback

    async def get(self, provider_id: str) -> Optional[str]:
        async with self._lock:
            key = self._keys.get(provider_id)
        if key is None and self._fallback is not None:
            return await self._fallback.get(provider_id)
        return key

    async def set(self, provider_id: str, api_key: str) -> None:
        async with self._lock:
            self._keys[provider_id] = api_key.strip()

    async def delete(self, provider_id: str) -> None:
        async with self._lock:
            self._keys.pop(provider_id, None)


class InMemoryProfileStore:
    def __init__(self, profile: Optional[ChefProfile] = None) -> None:
        self._profile = profile
        self._lock = asyncio.Lock()

    async def get(self) -> Optional[ChefProfile]:
        async with self._lock:
            return self._profile

    async def set(self, profile: ChefProfile) -> None:
        async with self._lock:
            self._profile = profile
