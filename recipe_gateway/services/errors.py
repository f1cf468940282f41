"""Canonical error taxonomy.

Every failure that reaches the HTTP layer is exactly one ``CanonicalError``:
a closed ``ErrorKind`` plus self-contained remediation metadata taken from a
static catalog. ``map_response`` classifies a vendor HTTP failure with this
priority:

1. a vendor error code found in the body (``error.code``, ``error.type`` or a
   Google ``details[].reason``), looked up in the provider's own table first and
   then in the table shared by all vendors;
2. a vendor status string (``error.status``, e.g. Google's ``RESOURCE_EXHAUSTED``);
3. the HTTP status code alone.

A rate-limit verdict whose message talks about a per-day quota is upgraded to
``DAILY_LIMIT_REACHED``.
"""

import json
import logging
import re
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Tuple

import httpx
from pydantic import BaseModel, ConfigDict, Field

from recipe_gateway.providers.base import ProviderHTTPError
from recipe_gateway.services.guardrails import GuardrailViolation

logger = logging.getLogger(__name__)


class ErrorKind(str, Enum):
    INVALID_API_KEY = "INVALID_API_KEY"
    INSUFFICIENT_QUOTA = "INSUFFICIENT_QUOTA"
    BILLING_HARD_LIMIT = "BILLING_HARD_LIMIT"
    PAYMENT_REQUIRED = "PAYMENT_REQUIRED"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    DAILY_LIMIT_REACHED = "DAILY_LIMIT_REACHED"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    CONTEXT_LENGTH_EXCEEDED = "CONTEXT_LENGTH_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    TIMEOUT = "TIMEOUT"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    CONTENT_POLICY_VIOLATION = "CONTENT_POLICY_VIOLATION"
    PROMPT_INJECTION_DETECTED = "PROMPT_INJECTION_DETECTED"
    CORS_ERROR = "CORS_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class FreeAlternative(BaseModel):
    model_config = ConfigDict(frozen=True)

    provider: str
    reason: str
    url: str
    action: str


class ActionButton(BaseModel):
    model_config = ConfigDict(frozen=True)

    label: str
    action: str


class CanonicalError(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: ErrorKind
    icon: str
    title: str
    message: str
    remediations: Tuple[str, ...] = ()
    free_alternatives: Tuple[FreeAlternative, ...] = Field(default=(), alias="freeAlternatives")
    provider_links: Dict[str, str] = Field(default_factory=dict, alias="providerLinks")
    action_button: Optional[ActionButton] = Field(default=None, alias="actionButton")
    auto_retry: bool = Field(default=False, alias="autoRetry")
    retry_delay_ms: int = Field(default=0, alias="retryDelayMs")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class GatewayError(Exception):
    """Raised by the service layer; always carries exactly one canonical error."""

    def __init__(self, error: CanonicalError, status_code: int = 502) -> None:
        self.error = error
        self.status_code = status_code
        super().__init__(f"{error.kind.value}: {error.message}")


# --- catalog ---

FREE_ALTERNATIVES = (
    FreeAlternative(
        provider="Cerebras",
        reason="Free tier, no card required, very fast inference",
        url="https://cloud.cerebras.ai/",
        action="switch-provider:cerebras",
    ),
    FreeAlternative(
        provider="Google AI Studio",
        reason="Generous free tier for Gemini models",
        url="https://aistudio.google.com/",
        action="switch-provider:google",
    ),
    FreeAlternative(
        provider="Groq",
        reason="Free tier with fast open models",
        url="https://console.groq.com/",
        action="switch-provider:groq",
    ),
    FreeAlternative(
        provider="Hugging Face",
        reason="Free inference API for open models",
        url="https://huggingface.co/",
        action="switch-provider:huggingface",
    ),
    FreeAlternative(
        provider="OpenRouter",
        reason="Dozens of free models behind one key",
        url="https://openrouter.ai/",
        action="switch-provider:openrouter",
    ),
)

_FAST_ALTERNATIVES = (
    FreeAlternative(
        provider="Cerebras",
        reason="About 2600 tokens/s, the fastest option",
        url="https://cloud.cerebras.ai/",
        action="switch-provider:cerebras",
    ),
    FreeAlternative(
        provider="Groq",
        reason="About 300 tokens/s",
        url="https://console.groq.com/",
        action="switch-provider:groq",
    ),
)

_SETTINGS = ActionButton(label="Open settings", action="navigate:/settings")

ERROR_CATALOG: Mapping[ErrorKind, CanonicalError] = MappingProxyType(
    {
        ErrorKind.INVALID_API_KEY: CanonicalError(
            kind=ErrorKind.INVALID_API_KEY,
            icon="🔑",
            title="Invalid API key",
            message="The provider rejected the API key.",
            remediations=(
                "Check that the whole key was copied",
                "Generate a new API key in the provider dashboard",
                "Make sure the key has not expired",
            ),
            action_button=_SETTINGS,
            provider_links={
                "openai": "https://platform.openai.com/api-keys",
                "groq": "https://console.groq.com/keys",
                "google": "https://aistudio.google.com/apikey",
                "openrouter": "https://openrouter.ai/settings/keys",
                "cerebras": "https://cloud.cerebras.ai/",
                "huggingface": "https://huggingface.co/settings/tokens",
                "anthropic": "https://console.anthropic.com/settings/keys",
            },
        ),
        ErrorKind.INSUFFICIENT_QUOTA: CanonicalError(
            kind=ErrorKind.INSUFFICIENT_QUOTA,
            icon="💳",
            title="Insufficient quota",
            message="The account has no credit left for this provider.",
            remediations=("Add credit to the provider account", "Or switch to a free provider (no card needed):"),
            free_alternatives=FREE_ALTERNATIVES,
            action_button=ActionButton(label="Show free providers", action="show-free-providers"),
        ),
        ErrorKind.BILLING_HARD_LIMIT: CanonicalError(
            kind=ErrorKind.BILLING_HARD_LIMIT,
            icon="🚫",
            title="Spending limit reached",
            message="The monthly spending limit configured for this account was reached.",
            remediations=(
                "Raise the spending limit in the provider dashboard",
                "Wait for the next billing cycle",
                "Use a free provider meanwhile",
            ),
            free_alternatives=FREE_ALTERNATIVES[:3],
        ),
        ErrorKind.PAYMENT_REQUIRED: CanonicalError(
            kind=ErrorKind.PAYMENT_REQUIRED,
            icon="💰",
            title="Payment required",
            message="This provider requires a payment method before it serves requests.",
            remediations=("These providers do not need a credit card:",),
            free_alternatives=FREE_ALTERNATIVES,
            action_button=ActionButton(label="Use Google AI (recommended)", action="switch-provider:google"),
        ),
        ErrorKind.RATE_LIMIT_EXCEEDED: CanonicalError(
            kind=ErrorKind.RATE_LIMIT_EXCEEDED,
            icon="⏱️",
            title="Too many requests",
            message="The provider is rate limiting requests.",
            remediations=(
                "Wait a few seconds before trying again",
                "Send requests less often",
                "Or switch to another free provider",
            ),
            free_alternatives=FREE_ALTERNATIVES[:3],
            auto_retry=True,
            retry_delay_ms=5000,
        ),
        ErrorKind.DAILY_LIMIT_REACHED: CanonicalError(
            kind=ErrorKind.DAILY_LIMIT_REACHED,
            icon="📅",
            title="Daily limit reached",
            message="The daily request quota for this provider is used up.",
            remediations=("The quota resets at 00:00 UTC", "Meanwhile, rotate to another free provider:"),
            free_alternatives=FREE_ALTERNATIVES,
            action_button=ActionButton(label="Rotate provider automatically", action="auto-switch-provider"),
        ),
        ErrorKind.MODEL_NOT_FOUND: CanonicalError(
            kind=ErrorKind.MODEL_NOT_FOUND,
            icon="🤖",
            title="Model not available",
            message="The selected model is not available.",
            remediations=(
                "The model may have been retired",
                "Try another model from the same provider",
                "Check that the API key has access to this model",
            ),
            action_button=ActionButton(label="Pick another model", action="navigate:/settings"),
        ),
        ErrorKind.CONTEXT_LENGTH_EXCEEDED: CanonicalError(
            kind=ErrorKind.CONTEXT_LENGTH_EXCEEDED,
            icon="📏",
            title="Request too long",
            message="The request exceeds the model's context limit.",
            remediations=(
                "List fewer ingredients",
                "Simplify the request",
                "Try a model with a larger context window",
            ),
        ),
        ErrorKind.NETWORK_ERROR: CanonicalError(
            kind=ErrorKind.NETWORK_ERROR,
            icon="📡",
            title="Connection error",
            message="Could not reach the AI provider.",
            remediations=(
                "Check the network connection",
                "The service may be temporarily down",
                "Try again in a few seconds",
            ),
            auto_retry=True,
            retry_delay_ms=3000,
        ),
        ErrorKind.TIMEOUT: CanonicalError(
            kind=ErrorKind.TIMEOUT,
            icon="⏰",
            title="Request timed out",
            message="The provider took too long to answer.",
            remediations=("The provider may be overloaded", "Use a provider with very fast inference:"),
            free_alternatives=_FAST_ALTERNATIVES,
            auto_retry=True,
            retry_delay_ms=5000,
        ),
        ErrorKind.SERVICE_UNAVAILABLE: CanonicalError(
            kind=ErrorKind.SERVICE_UNAVAILABLE,
            icon="🔧",
            title="Service unavailable",
            message="The AI provider is unavailable or under maintenance.",
            remediations=("Check the provider status page", "Use another provider meanwhile"),
            provider_links={
                "openai": "https://status.openai.com",
                "groq": "https://status.groq.com",
                "google": "https://status.cloud.google.com",
                "anthropic": "https://status.anthropic.com",
            },
            free_alternatives=FREE_ALTERNATIVES[:3],
        ),
        ErrorKind.CONTENT_POLICY_VIOLATION: CanonicalError(
            kind=ErrorKind.CONTENT_POLICY_VIOLATION,
            icon="⚠️",
            title="Content not allowed",
            message="The provider refused the request under its content policy.",
            remediations=(
                "Rephrase the request without problematic terms",
                "Ask only for cooking recipes",
                "Avoid topics unrelated to food",
            ),
        ),
        ErrorKind.PROMPT_INJECTION_DETECTED: CanonicalError(
            kind=ErrorKind.PROMPT_INJECTION_DETECTED,
            icon="🛡️",
            title="Invalid request",
            message="The message contains patterns that are not allowed.",
            remediations=(
                "Only cooking recipes are supported",
                "Rephrase the request around ingredients",
                'Example: "I have chicken and vegetables, what can I cook?"',
            ),
        ),
        ErrorKind.CORS_ERROR: CanonicalError(
            kind=ErrorKind.CORS_ERROR,
            icon="🌐",
            title="CORS error",
            message="The provider does not accept calls from the browser.",
            remediations=("Use OpenRouter, which supports CORS natively", "Or wait while the call is retried through the relay"),
            free_alternatives=(
                FreeAlternative(
                    provider="OpenRouter",
                    reason="Supports CORS, 500+ models",
                    url="https://openrouter.ai/",
                    action="switch-provider:openrouter",
                ),
            ),
            auto_retry=True,
            retry_delay_ms=2000,
        ),
        ErrorKind.UNKNOWN_ERROR: CanonicalError(
            kind=ErrorKind.UNKNOWN_ERROR,
            icon="❓",
            title="Unexpected error",
            message="Something went wrong and it could not be identified.",
            remediations=("Try again", "If it persists, switch provider", "Report the error if it keeps happening"),
            auto_retry=True,
            retry_delay_ms=3000,
        ),
    }
)


def get_error(kind: ErrorKind, message: Optional[str] = None) -> CanonicalError:
    error = ERROR_CATALOG.get(kind, ERROR_CATALOG[ErrorKind.UNKNOWN_ERROR])
    update: Dict[str, Any] = {"provider_links": dict(error.provider_links)}
    if message:
        update["message"] = message
    return error.model_copy(update=update)


# --- classification tables ---

COMMON_CODES: Mapping[str, ErrorKind] = MappingProxyType(
    {
        "invalid_api_key": ErrorKind.INVALID_API_KEY,
        "insufficient_quota": ErrorKind.INSUFFICIENT_QUOTA,
        "rate_limit_exceeded": ErrorKind.RATE_LIMIT_EXCEEDED,
        "billing_hard_limit_reached": ErrorKind.BILLING_HARD_LIMIT,
        "model_not_found": ErrorKind.MODEL_NOT_FOUND,
        "context_length_exceeded": ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        "content_policy_violation": ErrorKind.CONTENT_POLICY_VIOLATION,
        "invalid_api_key_error": ErrorKind.INVALID_API_KEY,
        "rate_limit": ErrorKind.RATE_LIMIT_EXCEEDED,
        "tokens_exceeded": ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        "API_KEY_INVALID": ErrorKind.INVALID_API_KEY,
        "RESOURCE_EXHAUSTED": ErrorKind.RATE_LIMIT_EXCEEDED,
        "PERMISSION_DENIED": ErrorKind.INVALID_API_KEY,
        "invalid_credentials": ErrorKind.INVALID_API_KEY,
        "insufficient_credits": ErrorKind.INSUFFICIENT_QUOTA,
        "moderation_blocked": ErrorKind.CONTENT_POLICY_VIOLATION,
        # codes the /relay endpoint puts on its own failures
        "NETWORK_ERROR": ErrorKind.NETWORK_ERROR,
        "TIMEOUT": ErrorKind.TIMEOUT,
        "PROXY_ERROR": ErrorKind.UNKNOWN_ERROR,
    }
)

VENDOR_CODES: Mapping[str, Mapping[str, ErrorKind]] = MappingProxyType(
    {
        "anthropic": {
            "authentication_error": ErrorKind.INVALID_API_KEY,
            "permission_error": ErrorKind.INVALID_API_KEY,
            "rate_limit_error": ErrorKind.RATE_LIMIT_EXCEEDED,
            "overloaded_error": ErrorKind.SERVICE_UNAVAILABLE,
            "api_error": ErrorKind.SERVICE_UNAVAILABLE,
            "not_found_error": ErrorKind.MODEL_NOT_FOUND,
            "request_too_large": ErrorKind.CONTEXT_LENGTH_EXCEEDED,
            "billing_error": ErrorKind.PAYMENT_REQUIRED,
        },
        "google": {
            "API_KEY_INVALID": ErrorKind.INVALID_API_KEY,
            "API_KEY_EXPIRED": ErrorKind.INVALID_API_KEY,
            "RATE_LIMIT_EXCEEDED": ErrorKind.RATE_LIMIT_EXCEEDED,
            "SERVICE_DISABLED": ErrorKind.INVALID_API_KEY,
        },
        "openrouter": {
            "invalid_credentials": ErrorKind.INVALID_API_KEY,
            "insufficient_credits": ErrorKind.INSUFFICIENT_QUOTA,
            "moderation_blocked": ErrorKind.CONTENT_POLICY_VIOLATION,
        },
        "groq": {
            "invalid_api_key_error": ErrorKind.INVALID_API_KEY,
            "rate_limit": ErrorKind.RATE_LIMIT_EXCEEDED,
            "tokens_exceeded": ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        },
    }
)

STATUS_STRINGS: Mapping[str, ErrorKind] = MappingProxyType(
    {
        "RESOURCE_EXHAUSTED": ErrorKind.RATE_LIMIT_EXCEEDED,
        # Google answers a malformed key with INVALID_ARGUMENT
        "INVALID_ARGUMENT": ErrorKind.INVALID_API_KEY,
        "UNAUTHENTICATED": ErrorKind.INVALID_API_KEY,
        "PERMISSION_DENIED": ErrorKind.INVALID_API_KEY,
        "NOT_FOUND": ErrorKind.MODEL_NOT_FOUND,
        "UNAVAILABLE": ErrorKind.SERVICE_UNAVAILABLE,
        "DEADLINE_EXCEEDED": ErrorKind.TIMEOUT,
    }
)

HTTP_STATUS: Mapping[int, ErrorKind] = MappingProxyType(
    {
        400: ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        401: ErrorKind.INVALID_API_KEY,
        402: ErrorKind.PAYMENT_REQUIRED,
        403: ErrorKind.INVALID_API_KEY,
        404: ErrorKind.MODEL_NOT_FOUND,
        408: ErrorKind.TIMEOUT,
        413: ErrorKind.CONTEXT_LENGTH_EXCEEDED,
        429: ErrorKind.RATE_LIMIT_EXCEEDED,
        500: ErrorKind.SERVICE_UNAVAILABLE,
        502: ErrorKind.SERVICE_UNAVAILABLE,
        503: ErrorKind.SERVICE_UNAVAILABLE,
        504: ErrorKind.TIMEOUT,
        529: ErrorKind.SERVICE_UNAVAILABLE,
    }
)

_DAILY_QUOTA = re.compile(r"per[\s_-]*day|daily", re.I)


def _normalize_body(body: Any) -> Any:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            body = json.loads(body)
        except ValueError:
            return body
    if isinstance(body, list) and body:
        body = body[0]
    return body


def _error_object(body: Any) -> Dict[str, Any]:
    if isinstance(body, dict) and isinstance(body.get("error"), dict):
        return body["error"]
    return {}


def _candidate_codes(err: Dict[str, Any]) -> Iterator[str]:
    for key in ("code", "type"):
        if isinstance(err.get(key), str) and err[key]:
            yield err[key]
    for detail in err.get("details") or []:
        if isinstance(detail, dict) and isinstance(detail.get("reason"), str):
            yield detail["reason"]


def _lookup_code(code: str, provider: Optional[str]) -> Optional[ErrorKind]:
    vendor = VENDOR_CODES.get(provider or "", {})
    return vendor.get(code) or COMMON_CODES.get(code)


def _message_text(body: Any) -> str:
    err = _error_object(body)
    if isinstance(err.get("message"), str):
        return err["message"]
    if isinstance(body, str):
        return body
    return ""


def classify(status: int, body: Any = None, provider: Optional[str] = None) -> ErrorKind:
    """Pure (status, body, provider) -> ErrorKind."""
    body = _normalize_body(body)
    err = _error_object(body)

    kind: Optional[ErrorKind] = None
    for code in _candidate_codes(err):
        kind = _lookup_code(code, provider)
        if kind:
            break
    if kind is None and isinstance(err.get("status"), str):
        kind = STATUS_STRINGS.get(err["status"])
    if kind is None:
        kind = HTTP_STATUS.get(status, ErrorKind.UNKNOWN_ERROR)

    if kind is ErrorKind.RATE_LIMIT_EXCEEDED and _DAILY_QUOTA.search(_message_text(body)):
        kind = ErrorKind.DAILY_LIMIT_REACHED
    return kind


def map_response(status: int, body: Any = None, provider: Optional[str] = None) -> CanonicalError:
    kind = classify(status, body, provider)
    logger.info("classified provider=%s status=%s as %s", provider, status, kind.value)
    return get_error(kind)


def map_exception(exc: BaseException, provider: Optional[str] = None) -> CanonicalError:
    if isinstance(exc, GatewayError):
        return exc.error
    if isinstance(exc, ProviderHTTPError):
        return map_response(exc.status, exc.body, exc.provider or provider)
    if isinstance(exc, httpx.TimeoutException):
        return get_error(ErrorKind.TIMEOUT)
    if isinstance(exc, httpx.TransportError):
        return get_error(ErrorKind.NETWORK_ERROR)
    if isinstance(exc, GuardrailViolation):
        return get_error(ErrorKind.PROMPT_INJECTION_DETECTED)
    return get_error(ErrorKind.UNKNOWN_ERROR)


def free_alternatives() -> Tuple[FreeAlternative, ...]:
    return FREE_ALTERNATIVES
