# tests/test_errors.py
import json
import pytest
import respx
import httpx

from recipe_gateway.core import config
from recipe_gateway.providers.base import ProviderHTTPError
from recipe_gateway.providers.factory import ADAPTERS, get_adapter
from recipe_gateway.providers.openai_compat import CHAT_SHAPER
from recipe_gateway.services.errors import (
    ERROR_CATALOG,
    ErrorKind,
    GatewayError,
    classify,
    get_error,
    map_exception,
    map_response,
)
from recipe_gateway.services.guardrails import GuardrailViolation, ValidationResult

OPENAI_FAMILY = sorted(pid for pid, a in ADAPTERS.items() if a.shaper is CHAT_SHAPER)


def test_openai_family_is_the_ten_chat_vendors():
    assert len(OPENAI_FAMILY) == 10


@pytest.mark.parametrize("provider", OPENAI_FAMILY)
def test_401_is_invalid_key_for_openai_family(provider):
    assert classify(401, {"error": {"message": "Incorrect API key provided"}}, provider) is ErrorKind.INVALID_API_KEY
    assert classify(401, None, provider) is ErrorKind.INVALID_API_KEY


@pytest.mark.parametrize("provider", OPENAI_FAMILY)
def test_429_is_rate_limit_with_auto_retry(provider):
    error = map_response(429, {"error": {"message": "Too many requests"}}, provider)
    assert error.kind is ErrorKind.RATE_LIMIT_EXCEEDED
    assert error.auto_retry is True
    assert error.retry_delay_ms > 0


def test_vendor_code_beats_http_status():
    # 400 alone means context length, but the explicit code wins
    body = {"error": {"code": "invalid_api_key", "message": "bad"}}
    assert classify(400, body, "openai") is ErrorKind.INVALID_API_KEY
    assert classify(400, {"error": {"message": "too long"}}, "openai") is ErrorKind.CONTEXT_LENGTH_EXCEEDED


def test_anthropic_error_types():
    assert classify(529, {"type": "error", "error": {"type": "overloaded_error"}}, "anthropic") is ErrorKind.SERVICE_UNAVAILABLE
    assert classify(401, {"error": {"type": "authentication_error"}}, "anthropic") is ErrorKind.INVALID_API_KEY


def test_google_status_strings_and_reasons():
    exhausted = {"error": {"code": 429, "status": "RESOURCE_EXHAUSTED", "message": "Quota exceeded"}}
    assert classify(429, exhausted, "google") is ErrorKind.RATE_LIMIT_EXCEEDED
    # Google wraps errors in a one-element array on streaming endpoints
    invalid = [{"error": {"code": 400, "status": "INVALID_ARGUMENT", "details": [{"reason": "API_KEY_INVALID"}]}}]
    assert classify(400, invalid, "google") is ErrorKind.INVALID_API_KEY
    assert classify(503, {"error": {"status": "UNAVAILABLE"}}, "google") is ErrorKind.SERVICE_UNAVAILABLE


def test_daily_quota_upgrades_rate_limit():
    body = {"error": {"message": "Rate limit exceeded: free-models-per-day", "code": 429}}
    assert classify(429, body, "openrouter") is ErrorKind.DAILY_LIMIT_REACHED


def test_body_as_text_or_bytes():
    raw = json.dumps({"error": {"code": "insufficient_quota"}})
    assert classify(429, raw, "openai") is ErrorKind.INSUFFICIENT_QUOTA
    assert classify(429, raw.encode(), "openai") is ErrorKind.INSUFFICIENT_QUOTA
    assert classify(502, "<html>Bad gateway</html>", "groq") is ErrorKind.SERVICE_UNAVAILABLE


def test_unknown_status_is_unknown_error():
    assert classify(418, {}, "groq") is ErrorKind.UNKNOWN_ERROR


@pytest.mark.parametrize(
    "status,body,provider",
    [
        (401, None, "groq"),
        (429, {"error": {"message": "daily limit"}}, "openrouter"),
        (400, [{"error": {"status": "INVALID_ARGUMENT"}}], "google"),
        (500, "oops", "anthropic"),
        (404, {"error": {"code": "model_not_found"}}, "openai"),
    ],
)
def test_classification_is_deterministic(status, body, provider):
    kinds = {classify(status, body, provider) for _ in range(5)}
    assert len(kinds) == 1


def test_map_exception_variants():
    assert map_exception(httpx.ReadTimeout("slow")).kind is ErrorKind.TIMEOUT
    assert map_exception(httpx.ConnectError("refused")).kind is ErrorKind.NETWORK_ERROR
    assert map_exception(ProviderHTTPError(402, None, "openrouter")).kind is ErrorKind.PAYMENT_REQUIRED
    assert map_exception(GuardrailViolation(ValidationResult(False, "forbidden_pattern"))).kind is ErrorKind.PROMPT_INJECTION_DETECTED
    assert map_exception(RuntimeError("boom")).kind is ErrorKind.UNKNOWN_ERROR
    wrapped = GatewayError(get_error(ErrorKind.CORS_ERROR))
    assert map_exception(wrapped).kind is ErrorKind.CORS_ERROR


def test_catalog_covers_every_kind():
    assert set(ERROR_CATALOG) == set(ErrorKind)
    for kind, error in ERROR_CATALOG.items():
        assert error.kind is kind
        assert error.title and error.message and error.icon


def test_get_error_returns_independent_copies():
    a = get_error(ErrorKind.INVALID_API_KEY, "custom")
    b = get_error(ErrorKind.INVALID_API_KEY)
    assert a.message == "custom"
    assert b.message != "custom"
    a.provider_links["extra"] = "x"
    assert "extra" not in get_error(ErrorKind.INVALID_API_KEY).provider_links


def test_to_dict_uses_camel_case():
    data = get_error(ErrorKind.RATE_LIMIT_EXCEEDED).to_dict()
    assert data["kind"] == "RATE_LIMIT_EXCEEDED"
    assert data["autoRetry"] is True
    assert "retryDelayMs" in data and "providerLinks" in data


@pytest.mark.parametrize(
    "code,kind",
    [("NETWORK_ERROR", ErrorKind.NETWORK_ERROR), ("TIMEOUT", ErrorKind.TIMEOUT), ("PROXY_ERROR", ErrorKind.UNKNOWN_ERROR)],
)
def test_relay_own_codes_are_recognized(code, kind):
    body = {"error": {"message": "relay failure", "code": code}}
    assert classify(502, body, "groq") is kind


@pytest.mark.asyncio
@respx.mock
async def test_relayed_network_failure_matches_direct_one():
    # The same unreachable-vendor failure must classify identically whether the
    # adapter called the vendor directly or went through /relay.
    respx.post("https://openrouter.ai/api/v1/chat/completions").mock(side_effect=httpx.ConnectError("refused"))
    respx.post(config.RELAY_URL).mock(
        return_value=httpx.Response(502, json={"error": {"message": "Network error", "code": "NETWORK_ERROR"}})
    )

    async def failure(provider):
        with pytest.raises(Exception) as exc:
            async for _ in get_adapter(provider).generate_recipe("sys", "user", "k"):
                pass
        return map_exception(exc.value, provider)

    direct = await failure("openrouter")
    relayed = await failure("groq")
    assert direct.kind is relayed.kind is ErrorKind.NETWORK_ERROR
    assert relayed.auto_retry is True
