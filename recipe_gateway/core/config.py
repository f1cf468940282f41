# centralized configuration loader
# runs load_dotenv() to read .env
# decouples code from environment so relay location, timeouts and defaults change without code edits

import os
from dotenv import load_dotenv

load_dotenv()


def _as_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "y"}


# Relay
RELAY_URL = os.getenv("RELAY_URL", "http://127.0.0.1:8000/relay")

# Transport timeouts (seconds); enforced by httpx, never by adapter code
CONNECT_TIMEOUT = float(os.getenv("CONNECT_TIMEOUT", "10"))
READ_TIMEOUT = float(os.getenv("READ_TIMEOUT", "120"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "30"))

# Generation defaults
DEFAULT_PROVIDER = os.getenv("DEFAULT_PROVIDER", "openrouter")
DEFAULT_LOCALE = os.getenv("DEFAULT_LOCALE", "es")
DEFAULT_TEMPERATURE = float(os.getenv("DEFAULT_TEMPERATURE", "0.7"))

# Guardrails
MAX_INPUT_LENGTH = int(os.getenv("MAX_INPUT_LENGTH", "500"))
BLOCK_CODE_OUTPUT = _as_bool(os.getenv("BLOCK_CODE_OUTPUT", "false"))

# OpenRouter attribution headers
APP_REFERER = os.getenv("APP_REFERER", "https://smart-cookbook.vercel.app")
APP_TITLE = os.getenv("APP_TITLE", "Smart Cookbook")

# Conversation context passed along with a new request
HISTORY_TURNS = int(os.getenv("HISTORY_TURNS", "6"))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def api_key_env_var(provider_id: str) -> str:
    # groq -> GROQ_API_KEY, huggingface -> HUGGINGFACE_API_KEY
    return f"{provider_id.upper().replace('-', '_')}_API_KEY"
