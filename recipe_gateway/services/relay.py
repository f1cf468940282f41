# request checks for the forwarding relay
# the relay is an open door to paid APIs, so only allow-listed providers and upstream hosts get through

from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from recipe_gateway.providers.headers import auth_headers_for
from recipe_gateway.providers.registry import PROVIDERS

ALLOWED_HOSTS = (
    "api.groq.com",
    "generativelanguage.googleapis.com",
    "api.cerebras.ai",
    "api.openai.com",
    "api.anthropic.com",
    "api.together.xyz",
    "api.fireworks.ai",
    "api.mistral.ai",
    "huggingface.co",
    "api.deepseek.com",
    "api.x.ai",
    "opencode.ai",
    "openrouter.ai",
)

ALLOWED_PROVIDERS = frozenset(PROVIDERS)

STREAMING_MEDIA_TYPES = ("text/event-stream", "application/x-ndjson")

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, X-Target-URL, X-API-Key, X-Provider",
    "Access-Control-Max-Age": "86400",
}


class RelayRejected(Exception):
    def __init__(self, status_code: int, message: str, code: Optional[str] = None) -> None:
        self.status_code = status_code
        self.message = message
        self.code = code
        super().__init__(message)


@dataclass(frozen=True)
class RelayTarget:
    url: httpx.URL
    provider: Optional[str]
    api_key: Optional[str]

    def upstream_headers(self, has_body: bool) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        if has_body:
            headers["Content-Type"] = "application/json"
        if self.api_key:
            headers.update(auth_headers_for(self.provider, self.api_key).as_dict())
        return headers


def error_payload(message: str, code: Optional[str] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"message": message}
    if code:
        error["code"] = code
    return {"error": error}


def host_allowed(host: str) -> bool:
    host = host.lower().rstrip(".")
    return any(host == allowed or host.endswith("." + allowed) for allowed in ALLOWED_HOSTS)


def check_target(
    target_url: Optional[str],
    provider: Optional[str],
    api_key: Optional[str],
    require_key: bool = True,
) -> RelayTarget:
    """Validate the relay headers; raises RelayRejected with the HTTP status to answer with."""
    if not target_url:
        raise RelayRejected(400, "Missing X-Target-URL header")
    try:
        url = httpx.URL(target_url)
    except (httpx.InvalidURL, TypeError, ValueError):
        raise RelayRejected(400, "Malformed X-Target-URL header") from None
    if url.scheme not in ("http", "https") or not url.host:
        raise RelayRejected(400, "Malformed X-Target-URL header")

    if not host_allowed(url.host):
        raise RelayRejected(403, "Target URL not in whitelist", "FORBIDDEN")
    if provider and provider not in ALLOWED_PROVIDERS:
        raise RelayRejected(403, f"Provider {provider} not allowed", "FORBIDDEN")
    if require_key and not api_key and "key" not in url.params:
        raise RelayRejected(400, "Missing X-API-Key header")
    return RelayTarget(url=url, provider=provider or None, api_key=api_key or None)


def is_streaming(response: httpx.Response) -> bool:
    content_type = response.headers.get("content-type", "").lower()
    if any(media in content_type for media in STREAMING_MEDIA_TYPES):
        return True
    return response.headers.get("transfer-encoding", "").lower() == "chunked"
