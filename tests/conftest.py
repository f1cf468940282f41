# tests/conftest.py
import os
import logging
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

# Ensure test-friendly env: a fake relay host and fixed attribution headers
os.environ.setdefault("RELAY_URL", "http://relay.test/relay")
os.environ.setdefault("APP_REFERER", "https://cookbook.test")
os.environ.setdefault("APP_TITLE", "Cookbook Test")
os.environ.setdefault("DEFAULT_LOCALE", "es")
os.environ.setdefault("DEFAULT_PROVIDER", "openrouter")

# IMPORTANT: import the app after envs are set
from recipe_gateway.main import create_app


@pytest_asyncio.fixture
async def app():
    # A fresh app per test so key/profile stores never leak between tests
    return create_app()


@pytest_asyncio.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def caplog_info(caplog):
    caplog.set_level(logging.INFO)
    return caplog


@pytest.fixture
def caplog_debug(caplog):
    caplog.set_level(logging.DEBUG)
    return caplog

